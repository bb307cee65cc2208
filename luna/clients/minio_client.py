"""
MinIO (S3-compatible) client for post images.

Stores image bytes as objects under posts/{uuid}.{ext}.
Returns pre-signed URLs so the client can fetch images directly from MinIO
without going through the API service.
"""
import base64
import binascii
import logging
import uuid
from io import BytesIO
from typing import Optional

import boto3
from botocore.client import Config

from luna.config import settings

logger = logging.getLogger(__name__)

_s3 = None

IMAGE_TYPES = {
    "jpeg": ("jpg", "image/jpeg"),
    "png": ("png", "image/png"),
    "gif": ("gif", "image/gif"),
}


class InvalidImage(ValueError):
    pass


def init_minio() -> None:
    """Create the S3 client and ensure the media bucket exists."""
    global _s3
    scheme = "https" if settings.minio_use_ssl else "http"
    _s3 = boto3.client(
        "s3",
        endpoint_url=f"{scheme}://{settings.minio_endpoint}",
        aws_access_key_id=settings.minio_access_key,
        aws_secret_access_key=settings.minio_secret_key,
        config=Config(signature_version="s3v4"),
        region_name="us-east-1",
    )

    existing = [b["Name"] for b in _s3.list_buckets().get("Buckets", [])]
    if settings.minio_bucket not in existing:
        _s3.create_bucket(Bucket=settings.minio_bucket)
        logger.info("Created MinIO bucket '%s'", settings.minio_bucket)
    else:
        logger.info("MinIO bucket '%s' already exists", settings.minio_bucket)


def get_s3():
    if _s3 is None:
        raise RuntimeError("MinIO client not initialised — call init_minio() at startup")
    return _s3


def decode_image(image_base64: str, image_type: str) -> bytes:
    """Validate and decode a base64 image payload."""
    if image_type not in IMAGE_TYPES:
        raise InvalidImage("Only jpeg, png and gif images are allowed")
    try:
        data = base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImage("Image is not valid base64")
    if not data:
        raise InvalidImage("Image is empty")
    if len(data) > settings.max_image_bytes:
        raise InvalidImage(
            f"Image must be at most {settings.max_image_bytes // (1024 * 1024)} MB"
        )
    return data


def upload_image(data: bytes, image_type: str) -> str:
    """Upload decoded image bytes to MinIO and return the object key."""
    ext, content_type = IMAGE_TYPES[image_type]
    key = f"posts/{uuid.uuid4()}.{ext}"

    s3 = get_s3()
    s3.put_object(
        Bucket=settings.minio_bucket,
        Key=key,
        Body=BytesIO(data),
        ContentType=content_type,
    )
    logger.debug("Uploaded image to MinIO: %s", key)
    return key


def delete_image(key: str) -> None:
    try:
        get_s3().delete_object(Bucket=settings.minio_bucket, Key=key)
    except Exception as exc:
        logger.warning("Failed to delete image %s: %s", key, exc)


def get_presigned_url(image_key: Optional[str], expires_in: int = 3600) -> Optional[str]:
    """Generate a temporary pre-signed URL valid for `expires_in` seconds."""
    if not image_key:
        return None
    try:
        s3 = get_s3()
        return s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": settings.minio_bucket, "Key": image_key},
            ExpiresIn=expires_in,
        )
    except Exception as exc:
        logger.warning("Failed to generate presigned URL for %s: %s", image_key, exc)
        return None
