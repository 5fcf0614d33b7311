# s3_helpers.py
import logging
import os
import time
import uuid
from typing import Optional
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from errors import UploadError

logger = logging.getLogger(__name__)

AWS_ACCESS_KEY = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET = os.getenv("AWS_SECRET_ACCESS_KEY")


def _get_s3_client(region: str):
    return boto3.client(
        "s3",
        aws_access_key_id=AWS_ACCESS_KEY,
        aws_secret_access_key=AWS_SECRET,
        region_name=region,
    )


def build_image_key(user_id: str, category: str, extension: str) -> str:
    """wardrobe/{userId}/{category}/{timestamp}-{uuid}.{ext}"""
    ext = extension.lower().lstrip(".")
    return f"wardrobe/{user_id}/{category}/{int(time.time() * 1000)}-{uuid.uuid4().hex}.{ext}"


def upload_bytes_to_s3(data: bytes, bucket: str, key: str, content_type: str, region: str):
    s3 = _get_s3_client(region)
    try:
        s3.put_object(Bucket=bucket, Key=key, Body=data, ACL="public-read", ContentType=content_type)
    except (BotoCoreError, ClientError) as e:
        raise UploadError(f"S3 upload failed: {e}", code="STORAGE_ERROR", status_code=500)


def delete_object_from_s3(bucket: str, key: str, region: str):
    s3 = _get_s3_client(region)
    s3.delete_object(Bucket=bucket, Key=key)


def get_s3_public_url(bucket: str, key: str, region: str) -> str:
    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"


def key_from_url(image_url: str) -> str:
    return urlparse(image_url).path.lstrip("/")


class ImageStorage:
    """Save wardrobe images to S3 if enabled, otherwise to a local directory."""

    def __init__(self, use_s3: bool, bucket: Optional[str], region: str, storage_dir: str):
        self.use_s3 = use_s3 and bool(bucket)
        self.bucket = bucket
        self.region = region
        self.storage_dir = storage_dir
        if not self.use_s3:
            os.makedirs(storage_dir, exist_ok=True)

    def save(self, data: bytes, user_id: str, category: str, extension: str, content_type: str) -> str:
        """Store the bytes and return a public URL (S3) or a local file path."""
        key = build_image_key(user_id, category, extension)
        if self.use_s3:
            upload_bytes_to_s3(data, self.bucket, key, content_type, self.region)
            return get_s3_public_url(self.bucket, key, self.region)
        path = os.path.join(self.storage_dir, key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        try:
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise UploadError(f"Could not store image: {e}", code="STORAGE_ERROR", status_code=500)
        return path

    def delete(self, image_url: Optional[str]) -> None:
        """Best effort: failures are logged and never raised."""
        if not image_url:
            return
        try:
            if self.use_s3 and image_url.startswith("http"):
                delete_object_from_s3(self.bucket, key_from_url(image_url), self.region)
            elif self._is_local(image_url):
                os.remove(image_url)
        except (BotoCoreError, ClientError, OSError) as e:
            logger.warning("Could not delete image %s: %s", image_url, e)

    def _is_local(self, path: str) -> bool:
        root = os.path.abspath(self.storage_dir)
        return os.path.abspath(path).startswith(root + os.sep) and os.path.isfile(path)
