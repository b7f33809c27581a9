"""
Object Storage

Thin async wrapper over an S3-compatible bucket (boto3) used for design
documents. boto3 is synchronous, so every call runs in a worker thread.

Stored references have the form "{bucket}/{path}"; paths are keyed by
application id so no two applications share an object.
"""

import asyncio
import logging
from functools import lru_cache
from uuid import UUID

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from studieo.core.config import settings

logger = logging.getLogger(__name__)

DESIGN_DOC_FILENAME = "design-doc.pdf"
PDF_CONTENT_TYPE = "application/pdf"


class StorageError(Exception):
    """Raised when an object storage operation fails."""


@lru_cache
def get_s3_client():
    """Create (once) the boto3 S3 client from settings."""
    return boto3.client(
        "s3",
        region_name=settings.s3_region,
        endpoint_url=settings.s3_endpoint_url,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
    )


def design_doc_path(application_id: UUID) -> str:
    """Deterministic storage path for an application's design document."""
    return f"{application_id}/{DESIGN_DOC_FILENAME}"


def to_reference(path: str) -> str:
    """Build the stored reference for a path in the configured bucket."""
    return f"{settings.storage_bucket}/{path}"


def path_from_reference(reference: str) -> str:
    """Strip the bucket prefix from a stored reference."""
    prefix = f"{settings.storage_bucket}/"
    if reference.startswith(prefix):
        return reference[len(prefix) :]
    return reference


async def upload(path: str, content: bytes, content_type: str = PDF_CONTENT_TYPE) -> str:
    """
    Upload (or overwrite) an object.

    Args:
        path: Object key inside the bucket
        content: File bytes
        content_type: MIME type stored with the object

    Returns:
        The stored reference ("{bucket}/{path}")

    Raises:
        StorageError: If the upload fails
    """
    try:
        await asyncio.to_thread(
            get_s3_client().put_object,
            Bucket=settings.storage_bucket,
            Key=path,
            Body=content,
            ContentType=content_type,
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Upload of {path} failed: {e}")
        raise StorageError(str(e)) from e

    logger.info(f"Uploaded {len(content)} bytes to {path}")
    return to_reference(path)


async def remove(paths: list[str]) -> None:
    """
    Delete objects. Missing objects are not an error.

    Raises:
        StorageError: If the delete request fails
    """
    if not paths:
        return

    try:
        await asyncio.to_thread(
            get_s3_client().delete_objects,
            Bucket=settings.storage_bucket,
            Delete={"Objects": [{"Key": path} for path in paths], "Quiet": True},
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Removing {paths} failed: {e}")
        raise StorageError(str(e)) from e

    logger.info(f"Removed {len(paths)} object(s) from storage")


async def create_signed_url(path: str, ttl_seconds: int) -> str:
    """
    Create a time-limited GET link for an object.

    Raises:
        StorageError: If the URL cannot be generated
    """
    try:
        return await asyncio.to_thread(
            get_s3_client().generate_presigned_url,
            "get_object",
            Params={"Bucket": settings.storage_bucket, "Key": path},
            ExpiresIn=ttl_seconds,
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Signing URL for {path} failed: {e}")
        raise StorageError(str(e)) from e
