import uuid
import os
import shutil
from pathlib import Path

from fastapi import UploadFile
from loguru import logger

from familytree.config import settings


# ==========================================================
# LIMITS
# ==========================================================
MAX_IMAGE_SIZE = 5 * 1024 * 1024
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")


# ==========================================================
# VALIDATE IMAGE
# ==========================================================
def validate_image(file: UploadFile):
    """
    Returns (ok, error) for an uploaded image.
    """
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        return False, f"Invalid image type: {file.content_type}. Allowed types: {', '.join(ALLOWED_IMAGE_TYPES)}"

    size = file_size(file)
    if size == 0:
        return False, "Image file is empty."

    if size > MAX_IMAGE_SIZE:
        return False, "Image too large (max 5MB)."

    return True, None


def file_size(file: UploadFile) -> int:
    file.file.seek(0, os.SEEK_END)
    size = file.file.tell()
    file.file.seek(0)
    return size


# ==========================================================
# SAVE FILE
# ==========================================================
def save_file(folder: str, file: UploadFile, filename: str | None = None) -> str:
    """
    Write the upload under LOCAL_MEDIA_PATH/<folder> and return its /media URL path.
    """
    folder = folder.strip("/")

    if not filename:
        ext = os.path.splitext(file.filename or "")[1].lower() or ".jpg"
        filename = f"{uuid.uuid4()}{ext}"

    folder_path = Path(settings.LOCAL_MEDIA_PATH) / folder
    folder_path.mkdir(parents=True, exist_ok=True)

    file_path = folder_path / filename

    with open(file_path, "wb") as buffer:
        shutil.copyfileobj(file.file, buffer)

    rel = file_path.relative_to(settings.LOCAL_MEDIA_PATH)
    return f"/media/{rel}".replace("\\", "/")


# ==========================================================
# DELETE FILE
# ==========================================================
def delete_file(path: str):
    if not path or not path.startswith("/media/"):
        return

    fs_path = Path(settings.LOCAL_MEDIA_PATH) / path[len("/media/"):]
    if fs_path.exists():
        try:
            fs_path.unlink()
        except OSError as e:
            logger.warning(f"Could not delete {fs_path}: {e}")
