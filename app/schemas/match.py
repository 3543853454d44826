from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from typing import Literal, Optional

from app.schemas.user import PublicUserResponse


class LikeCreate(BaseModel):
    target_user_id: UUID
    status: Literal["like", "pass"]


class PassCreate(BaseModel):
    target_user_id: UUID


class PreferenceResponse(BaseModel):
    id: UUID
    user_id: UUID
    target_user_id: UUID
    status: str
    created_at: datetime
    updated_at: datetime


class MatchResponse(BaseModel):
    id: UUID
    user1_id: UUID  # canonical low member
    user2_id: UUID  # canonical high member
    created_at: datetime
    updated_at: datetime


class LikeResponse(BaseModel):
    like: PreferenceResponse
    matched: bool
    match: Optional[MatchResponse] = None


class PassResponse(BaseModel):
    # "pass" is a keyword, hence the alias
    pass_: PreferenceResponse = Field(alias="pass")

    model_config = {"populate_by_name": True}


class MatchListItem(BaseModel):
    id: UUID
    matched_user: PublicUserResponse
    created_at: datetime
