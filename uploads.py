# uploads.py
"""Validation of wardrobe image uploads."""

import io
import logging
import os
from dataclasses import dataclass
from typing import Optional

from PIL import Image, UnidentifiedImageError

from errors import UploadError

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024
ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
ALLOWED_EXTENSIONS = {"jpeg", "jpg", "png", "webp"}

# leading bytes -> detected format
SIGNATURES = {
    "ffd8ffe0": "JPEG",
    "ffd8ffe1": "JPEG",
    "ffd8ffe2": "JPEG",
    "ffd8ffe3": "JPEG",
    "ffd8ffe8": "JPEG",
    "89504e47": "PNG",
    "52494646": "WEBP",
}


@dataclass
class ValidatedImage:
    data: bytes
    extension: str
    content_type: str
    detected_format: str


def validate_image(data: Optional[bytes], filename: Optional[str], content_type: Optional[str]) -> ValidatedImage:
    """Check an uploaded file and return it with its normalized extension."""
    if data is None or not filename:
        raise UploadError("No file uploaded. Please select an image file.", code="NO_FILE_UPLOADED")
    if len(data) == 0:
        raise UploadError("Uploaded file is empty or corrupted. Please try again.", code="EMPTY_FILE_BUFFER")
    if len(data) > MAX_IMAGE_BYTES:
        raise UploadError("File size too large. Maximum size is 5MB.", code="FILE_TOO_LARGE", maxSize="5MB")

    extension = os.path.splitext(filename)[1].lower().lstrip(".")
    mime = (content_type or "").lower()
    problems = []
    if mime not in ALLOWED_MIME_TYPES:
        problems.append(f"Invalid file type: {content_type}.")
    if extension not in ALLOWED_EXTENSIONS:
        problems.append(f"Invalid extension: .{extension}.")
    if problems:
        message = "Invalid file. " + " ".join(problems) + " Only JPEG, JPG, PNG, and WEBP images are allowed."
        raise UploadError(message, code="INVALID_FILE_TYPE", allowedTypes=["JPEG", "JPG", "PNG", "WEBP"])

    signature = data[:4].hex()
    detected = SIGNATURES.get(signature)
    if detected is None:
        logger.warning("Rejected upload %s with signature %s", filename, signature)
        raise UploadError(
            "Invalid image file. The file may be corrupted or not a valid image.",
            code="INVALID_FILE_SIGNATURE",
        )

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.warning("Rejected upload %s: %s", filename, e)
        raise UploadError(
            "Invalid image file. The file may be corrupted or not a valid image.",
            code="INVALID_FILE_SIGNATURE",
        )

    return ValidatedImage(
        data=data,
        extension=extension,
        content_type="image/jpeg" if mime == "image/jpg" else mime,
        detected_format=detected,
    )
