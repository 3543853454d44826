"""
Tandem — Users API

Account endpoints: sign up / in / out, own profile, avatar upload.
"""

from __future__ import annotations

import asyncio
import uuid

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id
from app.config import get_settings
from app.database import get_db
from app.models.user import User
from app.schemas.user import (
    AuthResponse,
    SignInRequest,
    SignUpRequest,
    UserResponse,
    UserUpdate,
)
from app.services.auth_service import create_access_token, hash_password, verify_password
from app.utils.deadline import guarded
from app.utils.storage import ALLOWED_IMAGE_TYPES, save_avatar

logger = structlog.get_logger("tandem.api.users")

router = APIRouter()


async def _load_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await guarded(db.get(User, user_id), operation="user_lookup")
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="user not found",
        )
    return user


# ──────────────────────────────────────────────────────────────────────────────
# POST / — Sign up
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def sign_up(
    payload: SignUpRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Register a new account and return an access token.

    The unique index on ``email`` decides duplicates.
    """
    log = logger.bind(email=payload.email)
    log.info("sign_up_start")

    new_user = User(
        email=payload.email,
        password_hash=await asyncio.to_thread(hash_password, payload.password),
        name=payload.name,
    )
    db.add(new_user)
    try:
        await guarded(db.flush(), operation="user_insert")
    except IntegrityError:
        log.warning("sign_up_duplicate_email")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="email already exists",
        )

    log.info("sign_up_complete", user_id=str(new_user.id))
    return AuthResponse(
        token=create_access_token(new_user.id, new_user.email),
        user=UserResponse.model_validate(new_user),
    )


# ──────────────────────────────────────────────────────────────────────────────
# POST /sign_in — Sign in
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/sign_in",
    response_model=AuthResponse,
    summary="Sign in with email and password",
)
async def sign_in(
    payload: SignInRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    stmt = select(User).where(User.email == payload.email)
    result = await guarded(db.execute(stmt), operation="user_lookup")
    user = result.scalar_one_or_none()

    if user is None or not await asyncio.to_thread(
        verify_password, payload.password, user.password_hash
    ):
        logger.warning("sign_in_failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid email or password",
        )

    logger.info("sign_in_complete", user_id=str(user.id))
    return AuthResponse(
        token=create_access_token(user.id, user.email),
        user=UserResponse.model_validate(user),
    )


# ──────────────────────────────────────────────────────────────────────────────
# DELETE /sign_out — Sign out
# ──────────────────────────────────────────────────────────────────────────────

@router.delete("/sign_out", summary="Sign out")
async def sign_out(user_id: uuid.UUID = Depends(get_current_user_id)) -> dict:
    """Tokens are stateless; the client discards its copy."""
    logger.info("sign_out", user_id=str(user_id))
    return {"message": "logged out successfully"}


# ──────────────────────────────────────────────────────────────────────────────
# GET /profile — Own profile
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/profile", response_model=UserResponse, summary="Get own profile")
async def get_profile(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    return await _load_user(db, user_id)


# ──────────────────────────────────────────────────────────────────────────────
# PATCH|PUT /profile — Update own profile
# ──────────────────────────────────────────────────────────────────────────────

@router.api_route(
    "/profile",
    methods=["PATCH", "PUT"],
    response_model=UserResponse,
    summary="Update own profile",
)
async def update_profile(
    payload: UserUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Only fields present in the request body are applied."""
    log = logger.bind(user_id=str(user_id))
    user = await _load_user(db, user_id)

    update_data = payload.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(user, field, value)

    await guarded(db.flush(), operation="user_update")
    log.info("update_profile_complete", updated_fields=list(update_data.keys()))
    return user


# ──────────────────────────────────────────────────────────────────────────────
# POST /profile/avatar — Upload avatar
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/profile/avatar",
    response_model=UserResponse,
    summary="Upload avatar image",
)
async def upload_avatar(
    file: UploadFile = File(..., description="Image file"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    log = logger.bind(user_id=str(user_id))
    settings = get_settings()

    content_type = file.content_type or ""
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="avatar must be a JPEG, PNG, GIF or WebP image",
        )

    file_bytes = await file.read(settings.AVATAR_MAX_BYTES + 1)
    if not file_bytes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="empty file")
    if len(file_bytes) > settings.AVATAR_MAX_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="avatar too large",
        )

    user = await _load_user(db, user_id)
    user.avatar_url = await asyncio.to_thread(
        save_avatar, user_id, file_bytes, file.filename, content_type
    )
    await guarded(db.flush(), operation="user_update")

    log.info("upload_avatar_complete", avatar_url=user.avatar_url)
    return user
