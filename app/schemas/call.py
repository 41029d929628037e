import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, model_validator


class CreateCallRequest(BaseModel):
    chat_id: uuid.UUID
    callee_id: uuid.UUID
    type: Literal["audio", "video"] = "audio"


class SessionDescription(BaseModel):
    sdp: str
    type: Literal["offer", "answer"]


class SignalRequest(BaseModel):
    offer: SessionDescription | None = None
    answer: SessionDescription | None = None

    @model_validator(mode="after")
    def one_description(self):
        if (self.offer is None) == (self.answer is None):
            raise ValueError("Provide exactly one of offer or answer")
        return self


class CallStatusRequest(BaseModel):
    status: Literal["active", "declined", "ended"]


class CallItem(BaseModel):
    id: uuid.UUID
    chat_id: uuid.UUID
    caller_id: uuid.UUID
    caller_name: str
    callee_id: uuid.UUID
    callee_name: str
    type: str
    status: str
    offer: dict | None = None
    answer: dict | None = None
    created_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None

    model_config = {"from_attributes": True}
