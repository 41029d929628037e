import os
import uuid

import aiofiles
import structlog
from fastapi import HTTPException, UploadFile, status

from app.core.config import settings

logger = structlog.get_logger()

UPLOAD_KINDS = {"avatar", "portfolio", "document", "chat", "payment", "ad"}


async def read_upload(file: UploadFile, max_size: int | None = None) -> bytes:
    """Read an upload into memory, rejecting empty and oversized files."""
    limit = max_size or settings.MAX_UPLOAD_SIZE
    if file.size and file.size > limit:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large (max {limit // (1024 * 1024)}MB)",
        )
    content = await file.read()
    if len(content) > limit:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large (max {limit // (1024 * 1024)}MB)",
        )
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty")
    return content


async def save_file(kind: str, filename: str | None, content: bytes) -> str:
    """Write bytes under UPLOAD_DIR/<kind>/ and return the public URL."""
    ext = os.path.splitext(filename or "file")[1]
    name = f"{uuid.uuid4()}{ext}"
    upload_dir = os.path.join(settings.UPLOAD_DIR, kind)
    os.makedirs(upload_dir, exist_ok=True)

    async with aiofiles.open(os.path.join(upload_dir, name), "wb") as f:
        await f.write(content)

    logger.info("file_stored", kind=kind, name=name, size=len(content))
    return f"/uploads/{kind}/{name}"


def delete_file(url: str | None) -> None:
    """Remove a stored file by its public URL. Missing files are ignored."""
    if not url or not url.startswith("/uploads/"):
        return
    path = os.path.join(settings.UPLOAD_DIR, url.removeprefix("/uploads/"))
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("file_delete_failed", url=url, error=str(e))
