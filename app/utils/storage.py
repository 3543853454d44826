"""Avatar file storage.

Files land in the GCS bucket when ``GCS_BUCKET_NAME`` is configured and on
the local filesystem otherwise; the local tree is served by ``app.main``
under ``AVATAR_URL_PREFIX``.
"""
import time
import uuid
from pathlib import Path, PurePosixPath

import structlog

from app.config import get_settings

logger = structlog.get_logger("tandem.avatars")

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def get_storage_client():
    from google.cloud import storage as gcs_storage

    return gcs_storage.Client(project=get_settings().GCP_PROJECT_ID or None)


def get_bucket():
    client = get_storage_client()
    return client.bucket(get_settings().GCS_BUCKET_NAME)


def upload_file(path: str, file_bytes: bytes, content_type: str = "application/octet-stream") -> str:
    """Upload file to GCS bucket. Returns the public URL."""
    bucket = get_bucket()
    blob = bucket.blob(path)
    blob.upload_from_string(file_bytes, content_type=content_type)
    return f"https://storage.googleapis.com/{bucket.name}/{path}"


def _avatar_filename(original_filename: str | None, content_type: str) -> str:
    ext = PurePosixPath(original_filename or "").suffix.lower()[:10]
    if not ext:
        ext = ALLOWED_IMAGE_TYPES.get(content_type, "")
    return f"{time.time_ns()}-{uuid.uuid4()}{ext}"


def save_local_avatar(user_id: uuid.UUID, file_bytes: bytes, filename: str) -> str:
    """Write under ``AVATAR_STORAGE_DIR/<user_id>/`` and return the URL path."""
    settings = get_settings()
    user_dir = Path(settings.AVATAR_STORAGE_DIR) / str(user_id)
    user_dir.mkdir(parents=True, exist_ok=True)
    (user_dir / filename).write_bytes(file_bytes)

    prefix = settings.AVATAR_URL_PREFIX.rstrip("/")
    return f"{prefix}/{user_id}/{filename}"


def save_avatar(
    user_id: uuid.UUID,
    file_bytes: bytes,
    original_filename: str | None,
    content_type: str,
) -> str:
    """Persist an avatar image and return the URL clients should use."""
    settings = get_settings()
    filename = _avatar_filename(original_filename, content_type)

    if settings.GCS_BUCKET_NAME:
        url = upload_file(f"avatars/{user_id}/{filename}", file_bytes, content_type=content_type)
    else:
        url = save_local_avatar(user_id, file_bytes, filename)

    logger.info("avatar_saved", user_id=str(user_id), url=url, size=len(file_bytes))
    return url
