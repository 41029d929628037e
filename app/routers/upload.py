from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from app.core.config import settings
from app.core.deps import get_current_user
from app.models.user import User
from app.schemas.upload import UploadResponse
from app.services.storage import UPLOAD_KINDS, read_upload, save_file

router = APIRouter(prefix="/upload", tags=["Upload"])


@router.post(
    "",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload file",
    description="Multipart upload. Kinds: `avatar`, `portfolio`, `document`, `chat`, `payment`, `ad`. Max 50MB (payment proofs 10MB).",
)
async def upload_file(
    file: UploadFile = File(...),
    type: str = Form(...),
    _user: User = Depends(get_current_user),
):
    if type not in UPLOAD_KINDS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid upload type")

    limit = settings.MAX_PAYMENT_PROOF_SIZE if type == "payment" else settings.MAX_UPLOAD_SIZE
    content = await read_upload(file, limit)
    url = await save_file(type, file.filename, content)

    return UploadResponse(
        url=url,
        type=type,
        filename=file.filename,
        size=len(content),
        mime_type=file.content_type or "application/octet-stream",
    )
