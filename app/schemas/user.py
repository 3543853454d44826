from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import date, datetime
from typing import Literal, Optional

Gender = Literal["male", "female", "other"]


class SignUpRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v


class SignInRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return v.strip().lower()


class UserResponse(BaseModel):
    id: UUID
    email: str
    name: str
    gender: Optional[str] = None
    birth_date: Optional[date] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PublicUserResponse(BaseModel):
    """Profile as shown to a match (no email)."""
    id: UUID
    name: str
    gender: Optional[str] = None
    birth_date: Optional[date] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    gender: Optional[Gender] = None
    birth_date: Optional[date] = None  # YYYY-MM-DD
    bio: Optional[str] = Field(None, max_length=2000)
    avatar_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_not_null(cls, v: Optional[str]) -> str:
        # Omit the field to keep the current name; null would clear a required column.
        if v is None:
            raise ValueError("name cannot be null")
        return v
