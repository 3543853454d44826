from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import datetime
from typing import Optional

from app.config import get_settings


class SendMessageRequest(BaseModel):
    receiver_id: UUID
    content: str = Field(min_length=1)
    match_id: Optional[UUID] = None  # must name the pair's match when given

    @field_validator("content")
    @classmethod
    def _content_within_limits(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content must not be blank")
        limit = get_settings().MESSAGE_MAX_LENGTH
        if len(v) > limit:
            raise ValueError(f"content exceeds {limit} characters")
        return v


class MessageResponse(BaseModel):
    id: str
    match_id: UUID
    sender_id: UUID
    receiver_id: UUID
    content: str
    created_at: datetime
