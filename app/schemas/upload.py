from typing import Literal

from pydantic import BaseModel

UploadKind = Literal["avatar", "portfolio", "document", "chat", "payment", "ad"]


class UploadResponse(BaseModel):
    url: str
    type: UploadKind
    filename: str | None = None
    size: int
    mime_type: str
