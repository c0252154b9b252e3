import io
import logging
from pathlib import Path
from fastapi import HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from PIL import Image, UnidentifiedImageError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from taskmanager.core.config import settings
from taskmanager.models.user import User
from taskmanager.services.user_service import user_service

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png"}
AVATAR_MEDIA_TYPE = "image/png"

# Upload rejections answer 404, matching the behavior clients already rely on
UPLOAD_REJECTED_STATUS = status.HTTP_404_NOT_FOUND


def normalize_avatar(content: bytes, size: int = settings.AVATAR_SIZE) -> bytes:
    """
    Decode image bytes and re-encode them as a size x size PNG.

    The image is stretched to the target box; aspect ratio is not kept.
    CPU bound, so callers on the event loop should run it in a thread.
    """
    with Image.open(io.BytesIO(content)) as image:
        image.load()
        if image.mode not in ("RGB", "RGBA"):
            # Palette, CMYK, greyscale etc. are converted so PNG output is uniform
            image = image.convert("RGBA")
        resized = image.resize((size, size))

    output = io.BytesIO()
    resized.save(output, format="PNG")
    return output.getvalue()


class AvatarService:

    @staticmethod
    async def set_avatar(db: Session, user: User, file: UploadFile) -> None:
        """Validate, normalize and store an uploaded avatar"""
        if not file.filename or Path(file.filename).suffix.lower() not in ALLOWED_EXTENSIONS:
            raise HTTPException(
                status_code=UPLOAD_REJECTED_STATUS,
                detail="Please upload files with formats of .jpg, .jpeg, .png"
            )

        # Read one byte past the limit so oversized files are detected without reading them whole
        content = await file.read(settings.MAX_AVATAR_SIZE + 1)
        if len(content) > settings.MAX_AVATAR_SIZE:
            raise HTTPException(
                status_code=UPLOAD_REJECTED_STATUS,
                detail=f"File too large. Maximum size is {settings.MAX_AVATAR_SIZE} bytes"
            )

        try:
            avatar = await run_in_threadpool(normalize_avatar, content)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
            raise HTTPException(
                status_code=UPLOAD_REJECTED_STATUS,
                detail="Uploaded file is not a readable image"
            )

        user_id = user.id
        user.avatar = avatar
        await run_in_threadpool(AvatarService._commit, db, user_id)
        logger.info(f"Stored avatar for user {user_id} ({len(avatar)} bytes)")

    @staticmethod
    def clear_avatar(db: Session, user: User) -> None:
        user_id = user.id
        user.avatar = None
        AvatarService._commit(db, user_id)
        logger.info(f"Cleared avatar for user {user_id}")

    @staticmethod
    def get_avatar(db: Session, user_id: str) -> bytes:
        """Stored PNG bytes; 404 for a malformed id, a missing user and a missing avatar alike"""
        user = user_service.get_user(db, user_id)
        if not user or not user.avatar:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Avatar not found")
        return user.avatar

    @staticmethod
    def _commit(db: Session, user_id: int) -> None:
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Database error while saving avatar for user {user_id}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error occurred"
            )


avatar_service = AvatarService()
