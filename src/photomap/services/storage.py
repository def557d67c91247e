"""Storage service for Google Cloud Storage operations."""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import IO

from google.cloud import storage  # type: ignore[attr-defined]
from google.cloud.exceptions import GoogleCloudError, NotFound

from ..config import get_gcs_bucket, get_project_id, get_public_base_url
from ..error_handling import ObjectNotFoundError, StorageError, ValidationError
from ..logging_config import get_logger, log_performance

logger = get_logger(__name__)

IMAGE_PREFIX = "images/"
METADATA_KEY = f"{IMAGE_PREFIX}metadata.json"

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"
NO_CACHE_CONTROL = "no-cache, no-store, max-age=0"

STREAM_CHUNK_SIZE = 256 * 1024


def image_key(photo_id: str) -> str:
    """
    Build the object key of a photo blob.

    Args:
        photo_id: Photo identifier (the metadata document key)

    Returns:
        str: Object key under the images prefix

    Raises:
        ValidationError: If the identifier is empty, carries path parts or
            surrounding whitespace, or names the metadata document
    """
    # The key must name exactly the document entry, so nothing is rewritten
    if (
        not photo_id
        or photo_id != photo_id.strip()
        or Path(photo_id).name != photo_id
        or photo_id in (".", "..")
    ):
        raise ValidationError(
            f"Invalid photo identifier: {photo_id!r}",
            code="invalid_photo_id",
            details={"photo_id": photo_id},
        )
    key = f"{IMAGE_PREFIX}{photo_id}"
    if key == METADATA_KEY:
        raise ValidationError(
            "The metadata document is not a photo",
            code="reserved_photo_id",
            details={"photo_id": photo_id},
        )
    return key


@dataclass
class StoredObject:
    """An object opened for streaming."""

    key: str
    content_type: str
    size: int | None
    reader: IO[bytes]

    def iter_chunks(self, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the object content chunk by chunk, closing the reader at the end."""
        try:
            while True:
                chunk = self.reader.read(chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.reader.close()


class StorageService:
    """Service for Google Cloud Storage operations on the album bucket."""

    def __init__(self, bucket_name: str | None = None, project_id: str | None = None) -> None:
        """
        Initialize the storage service.

        Args:
            bucket_name: Bucket name (defaults to GCS_BUCKET configuration)
            project_id: GCP project ID (defaults to GOOGLE_CLOUD_PROJECT, may be inferred)
        """
        try:
            self.bucket_name = bucket_name or get_gcs_bucket()
        except ValueError as e:
            raise StorageError("GCS_BUCKET configuration is required", code="storage_not_configured") from e
        self.project_id = project_id or get_project_id()
        self.public_base_url = get_public_base_url(self.bucket_name)

        try:
            self.client = storage.Client(project=self.project_id)
            self.bucket = self.client.bucket(self.bucket_name)
            logger.info("storage_service_initialized", bucket=self.bucket_name, project_id=self.project_id)
        except Exception as e:
            raise StorageError(
                f"Failed to initialize GCS client: {e}",
                code="storage_init_failed",
                original_exception=e,
            ) from e

    def upload_file(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: str | None = None,
    ) -> dict:
        """
        Upload bytes to the bucket, overwriting any existing object.

        Args:
            key: Object key
            data: Object content
            content_type: MIME type stored with the object
            cache_control: Optional Cache-Control header stored with the object

        Returns:
            dict: Upload result

        Raises:
            StorageError: If upload fails
        """
        start_time = datetime.now()
        try:
            blob = self.bucket.blob(key)
            if cache_control:
                blob.cache_control = cache_control
            blob.upload_from_string(data, content_type=content_type)

            duration = (datetime.now() - start_time).total_seconds()
            log_performance("upload_file", duration, key=key, file_size=len(data))

            return {
                "key": key,
                "file_size": len(data),
                "content_type": content_type,
                "generation": blob.generation,
            }

        except GoogleCloudError as e:
            raise StorageError(
                f"Failed to upload '{key}': {e}", code="upload_failed", details={"key": key}, original_exception=e
            ) from e
        except Exception as e:
            raise StorageError(
                f"Unexpected error uploading '{key}': {e}",
                code="upload_failed",
                details={"key": key},
                original_exception=e,
            ) from e

    def download_file(self, key: str) -> bytes:
        """
        Download an object.

        Args:
            key: Object key

        Returns:
            bytes: Object content

        Raises:
            ObjectNotFoundError: If the object does not exist
            StorageError: If download fails
        """
        try:
            blob = self.bucket.blob(key)
            file_data: bytes = blob.download_as_bytes()
            logger.debug("file_downloaded", key=key, file_size=len(file_data))
            return file_data

        except NotFound as e:
            raise ObjectNotFoundError(f"Object not found: {key}", details={"key": key}) from e
        except GoogleCloudError as e:
            raise StorageError(
                f"Failed to download '{key}': {e}", code="download_failed", details={"key": key}, original_exception=e
            ) from e
        except Exception as e:
            raise StorageError(
                f"Unexpected error downloading '{key}': {e}",
                code="download_failed",
                details={"key": key},
                original_exception=e,
            ) from e

    def open_file(self, key: str) -> StoredObject:
        """
        Open an object for streaming.

        Raises:
            ObjectNotFoundError: If the object does not exist
            StorageError: If the object cannot be opened
        """
        try:
            blob = self.bucket.get_blob(key)
            if blob is None:
                raise ObjectNotFoundError(f"Object not found: {key}", details={"key": key})

            return StoredObject(
                key=key,
                content_type=blob.content_type or "application/octet-stream",
                size=blob.size,
                reader=blob.open("rb", chunk_size=STREAM_CHUNK_SIZE),
            )

        except ObjectNotFoundError:
            raise
        except NotFound as e:
            raise ObjectNotFoundError(f"Object not found: {key}", details={"key": key}) from e
        except Exception as e:
            raise StorageError(
                f"Failed to open '{key}': {e}", code="download_failed", details={"key": key}, original_exception=e
            ) from e

    def delete_file(self, key: str) -> bool:
        """
        Delete an object. Deleting a missing object is a no-op.

        Args:
            key: Object key

        Returns:
            bool: True if an object was deleted, False if it did not exist

        Raises:
            StorageError: If deletion fails
        """
        try:
            self.bucket.blob(key).delete()
            logger.info("file_deleted", key=key)
            return True

        except NotFound:
            logger.warning("file_not_found_for_deletion", key=key)
            return False
        except GoogleCloudError as e:
            raise StorageError(
                f"Failed to delete '{key}': {e}", code="delete_failed", details={"key": key}, original_exception=e
            ) from e
        except Exception as e:
            raise StorageError(
                f"Unexpected error deleting '{key}': {e}",
                code="delete_failed",
                details={"key": key},
                original_exception=e,
            ) from e

    def list_files(self, prefix: str = IMAGE_PREFIX) -> list[str]:
        """
        List object keys under a prefix.

        Raises:
            StorageError: If listing fails
        """
        try:
            return [blob.name for blob in self.client.list_blobs(self.bucket_name, prefix=prefix)]
        except GoogleCloudError as e:
            raise StorageError(
                f"Failed to list '{prefix}': {e}", code="list_failed", details={"prefix": prefix}, original_exception=e
            ) from e

    def get_public_url(self, photo_id: str) -> str:
        """Get the URL visitors load a photo from."""
        return f"{self.public_base_url}/{photo_id}"


# Global storage service instance
_storage_service: StorageService | None = None


def get_storage_service(bucket_name: str | None = None, project_id: str | None = None) -> StorageService:
    """
    Get the global storage service instance.

    Args:
        bucket_name: Bucket name (optional, uses configuration if not provided)
        project_id: GCP project ID (optional, uses configuration if not provided)

    Returns:
        StorageService: Global storage service instance
    """
    global _storage_service

    if _storage_service is None:
        _storage_service = StorageService(bucket_name=bucket_name, project_id=project_id)

    return _storage_service
