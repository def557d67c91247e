"""
Metadata store backed by a single JSON document in the bucket.

The document ``images/metadata.json`` maps each photo identifier to its
record and is the only source of truth for which photos exist. Every
mutation is a read-modify-write of the whole document:

    fetch (missing document == empty document) -> mutate in memory -> write back

Writers in the same process are serialized by a lock. There is no
generation precondition on the write, so two processes updating the
document at the same time can lose an update: the last full write wins and
silently drops the other writer's change. This is an accepted limitation of
the album, not something callers can detect.
"""

import json
import threading
from datetime import datetime
from typing import Any

from ..error_handling import MetadataError, ObjectNotFoundError
from ..logging_config import get_logger, log_performance
from ..models.photo import Photo
from .storage import METADATA_KEY, NO_CACHE_CONTROL, StorageService, get_storage_service

logger = get_logger(__name__)

PhotoDocument = dict[str, Photo]


class MetadataStore:
    """Read-modify-write access to the metadata document."""

    def __init__(self, storage_service: StorageService | None = None, key: str = METADATA_KEY) -> None:
        """
        Initialize the metadata store.

        Args:
            storage_service: Storage service holding the document (defaults to the global one)
            key: Object key of the document
        """
        self.storage_service = storage_service or get_storage_service()
        self.key = key
        self._write_lock = threading.Lock()

    def load(self) -> PhotoDocument:
        """
        Fetch the current document.

        Returns:
            dict: Photo identifier to Photo; empty when the document does not exist yet

        Raises:
            MetadataError: If the document exists but cannot be parsed
            StorageError: If the fetch fails
        """
        start_time = datetime.now()
        try:
            raw = self.storage_service.download_file(self.key)
        except ObjectNotFoundError:
            logger.info("metadata_document_missing", key=self.key)
            return {}

        document = self._parse(raw)

        duration = (datetime.now() - start_time).total_seconds()
        log_performance("load_metadata", duration, photo_count=len(document))
        return document

    def list_photos(self) -> list[Photo]:
        """Get all photos of the current document."""
        return list(self.load().values())

    def get(self, photo_id: str) -> Photo | None:
        """Get one photo record, or None when it is not in the document."""
        return self.load().get(photo_id)

    def save(self, document: PhotoDocument) -> None:
        """
        Write the document back in full.

        Raises:
            StorageError: If the write fails
        """
        payload = json.dumps(
            {photo_id: photo.to_dict() for photo_id, photo in document.items()},
            ensure_ascii=False,
        ).encode("utf-8")
        self.storage_service.upload_file(
            self.key,
            payload,
            content_type="application/json",
            cache_control=NO_CACHE_CONTROL,
        )
        logger.debug("metadata_document_saved", key=self.key, photo_count=len(document))

    def upsert(self, photo_id: str, photo: Photo) -> PhotoDocument:
        """
        Insert or replace one record.

        Args:
            photo_id: Document key
            photo: Record to store

        Returns:
            dict: The document as written

        Raises:
            MetadataError: If the current document cannot be parsed
            StorageError: If the fetch or the write fails
        """
        with self._write_lock:
            document = self.load()
            replaced = photo_id in document
            document[photo_id] = photo
            self.save(document)

        logger.info("metadata_upserted", photo_id=photo_id, replaced=replaced, photo_count=len(document))
        return document

    def remove(self, photo_id: str) -> bool:
        """
        Remove one record.

        Args:
            photo_id: Document key

        Returns:
            bool: True if the record existed and the document was rewritten

        Raises:
            MetadataError: If the current document cannot be parsed
            StorageError: If the fetch or the write fails
        """
        with self._write_lock:
            document = self.load()
            if photo_id not in document:
                logger.info("metadata_remove_missing", photo_id=photo_id)
                return False
            del document[photo_id]
            self.save(document)

        logger.info("metadata_removed", photo_id=photo_id, photo_count=len(document))
        return True

    def _parse(self, raw: bytes) -> PhotoDocument:
        try:
            data: Any = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MetadataError(
                f"Metadata document is not valid JSON: {e}",
                code="metadata_corrupt",
                details={"key": self.key},
                original_exception=e,
            ) from e

        if not isinstance(data, dict):
            raise MetadataError(
                "Metadata document is not a JSON object",
                code="metadata_corrupt",
                details={"key": self.key, "document_type": type(data).__name__},
            )

        document: PhotoDocument = {}
        for photo_id, record in data.items():
            try:
                document[photo_id] = Photo.from_dict(record)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                # Entries are never silently dropped on rewrite
                raise MetadataError(
                    f"Metadata entry '{photo_id}' is malformed: {e}",
                    code="metadata_corrupt",
                    details={"key": self.key, "photo_id": photo_id},
                    original_exception=e,
                ) from e
        return document


# Global metadata store instance
_metadata_store: MetadataStore | None = None


def get_metadata_store() -> MetadataStore:
    """Get the global metadata store instance."""
    global _metadata_store
    if _metadata_store is None:
        _metadata_store = MetadataStore()
    return _metadata_store
