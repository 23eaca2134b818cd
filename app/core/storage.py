"""
Cloud Storage utility functions using Cloudinary
"""
import logging
from typing import BinaryIO, Optional, Tuple

import cloudinary
import cloudinary.uploader

from .config import settings
from .errors import DependencyError

logger = logging.getLogger(__name__)

# Configure Cloudinary
cloudinary.config(
    cloud_name=settings.CLOUDINARY_CLOUD_NAME,
    api_key=settings.CLOUDINARY_API_KEY,
    api_secret=settings.CLOUDINARY_API_SECRET,
    secure=True
)

ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/jpg", "image/png", "application/pdf"]
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB


def folder_for(upload_type: Optional[str], user_id: int) -> str:
    """Cloudinary folder for an upload kind"""
    if upload_type == "avatar":
        return f"avatars/{user_id}"
    if upload_type == "salon":
        return "salons"
    if upload_type == "payment":
        return "payments"
    return "uploads"


def validate_image_file(content_type: Optional[str], file_size: int) -> Tuple[bool, Optional[str]]:
    """
    Validate image file type and size

    Args:
        content_type: MIME type of the file
        file_size: Size of the file in bytes

    Returns:
        Tuple of (is_valid, error_message)
    """
    if content_type not in ALLOWED_IMAGE_TYPES:
        return False, "Invalid file type. Only JPEG, PNG, and PDF are allowed."

    if file_size > MAX_FILE_SIZE:
        return False, f"File size exceeds maximum allowed size of {MAX_FILE_SIZE // (1024 * 1024)}MB"

    return True, None


def upload_image(file_data: BinaryIO, filename: str, folder: str = "uploads") -> str:
    """
    Upload a file to Cloudinary and return its secure URL.

    Raises:
        DependencyError: the upload failed
    """
    try:
        file_data.seek(0)
        result = cloudinary.uploader.upload(
            file_data,
            folder=folder,
            resource_type="auto",
            use_filename=True,
            unique_filename=True,
            overwrite=False
        )
    except Exception as e:
        logger.exception(f"Cloudinary upload of {filename} failed")
        raise DependencyError(f"Failed to upload image: {e}", code="UPLOAD_FAILED")

    url = result.get("secure_url") or result.get("url")
    if not url:
        raise DependencyError("Failed to upload image", code="UPLOAD_FAILED")
    logger.info(f"Uploaded {filename} to {folder}")
    return url
