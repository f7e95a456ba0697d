from fastapi import HTTPException, UploadFile
from typing import Iterable
import io
import logging
import os

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from .errors import UploadError

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")
DOCUMENT_TYPES = IMAGE_TYPES + ("application/pdf",)

# CLOUDINARY_URL is picked up by the SDK itself
if os.environ.get('CLOUDINARY_CLOUD_NAME'):
    cloudinary.config(
        cloud_name=os.environ.get('CLOUDINARY_CLOUD_NAME'),
        api_key=os.environ.get('CLOUDINARY_API_KEY'),
        api_secret=os.environ.get('CLOUDINARY_API_SECRET'),
        secure=True,
    )


async def read_upload(file: UploadFile, allowed_types: Iterable[str]) -> bytes:
    allowed_types = tuple(allowed_types)
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if file.content_type not in allowed_types:
        kinds = ", ".join(t.split("/")[-1].upper() for t in allowed_types)
        raise HTTPException(status_code=400, detail=f"Only {kinds} files are allowed")

    content = await file.read(MAX_UPLOAD_BYTES + 1)
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="File too large (max 5MB)")
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    return content


def upload_file(content: bytes, folder: str, resource_type: str = "auto") -> str:
    """Push bytes to the media host and return the public https URL."""
    try:
        result = cloudinary.uploader.upload(
            io.BytesIO(content),
            folder=folder,
            resource_type=resource_type,
        )
    except cloudinary.exceptions.Error as exc:
        logger.error(f"Media upload to {folder} failed: {exc}")
        raise UploadError("File upload failed")

    url = result.get("secure_url")
    if not url:
        raise UploadError("File upload failed")
    logger.info(f"Uploaded file to {folder}: {url}")
    return url
