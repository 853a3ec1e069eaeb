import logging
from typing import Optional, Tuple

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from optinest.core.config import settings
from optinest.core.errors import BackendError, BackendNotConfiguredError
from optinest.services.media_paths import build_public_url, normalize_object_path

logger = logging.getLogger(__name__)


class StorageService:
    """Object storage through the backend's S3-compatible endpoint."""

    def __init__(self, s3_client=None, bucket_name: Optional[str] = None):
        self._s3_client = s3_client
        self.bucket_name = bucket_name or settings.storage_bucket

    @property
    def s3_client(self):
        if self._s3_client is None:
            if not settings.SUPABASE_S3_ACCESS_KEY_ID or not settings.supabase_base_url:
                raise BackendNotConfiguredError(
                    "Storage is not configured. Set SUPABASE_URL, SUPABASE_S3_ACCESS_KEY_ID and "
                    "SUPABASE_S3_SECRET_ACCESS_KEY."
                )
            self._s3_client = boto3.client(
                "s3",
                endpoint_url=settings.storage_s3_endpoint,
                aws_access_key_id=settings.SUPABASE_S3_ACCESS_KEY_ID,
                aws_secret_access_key=settings.SUPABASE_S3_SECRET_ACCESS_KEY,
                region_name=settings.SUPABASE_S3_REGION,
            )
        return self._s3_client

    def upload_file(self, object_path: str, file_content: bytes, content_type: str) -> str:
        """
        Upload (or overwrite) an object.

        Args:
            object_path: Storage key, e.g. "images/posts/cover-1700000000.png"
            file_content: Binary content of the file
            content_type: MIME type stored with the object

        Returns:
            The normalized object path
        """
        key = normalize_object_path(object_path)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=file_content,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Error uploading %s to storage: %s", key, e)
            raise BackendError(0, f"Failed to upload media: {e}") from e
        return key

    def delete_file(self, object_path: str) -> None:
        key = normalize_object_path(object_path)
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error("Error deleting %s from storage: %s", key, e)
            raise BackendError(0, f"Failed to delete media: {e}") from e

    def get_public_url(self, object_path: str) -> str:
        return build_public_url(object_path, bucket=self.bucket_name)

    def fetch_public_object(self, object_path: str) -> Tuple[int, bytes, Optional[str]]:
        """Download an object through its public URL: (status, body, content type)."""
        try:
            response = requests.get(self.get_public_url(object_path), timeout=settings.REQUEST_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            logger.warning("Media fetch failed for %s: %s", object_path, e)
            return 502, b"", None
        return response.status_code, response.content, response.headers.get("content-type")


_storage: Optional[StorageService] = None


def get_storage() -> StorageService:
    global _storage
    if _storage is None:
        _storage = StorageService()
    return _storage
