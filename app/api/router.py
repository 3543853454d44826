"""
Tandem — Main API Router

Aggregates all sub-routers under a single prefix so that ``app.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import chat, likes, matching, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(likes.router, tags=["Likes"])
router.include_router(matching.router, tags=["Matching"])
router.include_router(chat.router, tags=["Chat"])
