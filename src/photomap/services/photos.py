"""Photo ingestion and deletion for photomap application."""

import json
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import get_photo_id_timezone
from ..error_handling import IngestionError, PhotoMapError, ValidationError
from ..logging_config import get_logger, log_error, log_performance, log_user_action
from ..models.photo import Photo
from .image_processor import ImageProcessor, get_image_processor
from .metadata import MetadataStore, get_metadata_store
from .storage import IMMUTABLE_CACHE_CONTROL, StorageService, StoredObject, get_storage_service, image_key

logger = get_logger(__name__)

PHOTO_ID_FORMAT = "%Y%m%d%H%M%S"


@dataclass
class DeleteResult:
    """Outcome of a photo deletion."""

    photo_id: str
    blob_deleted: bool
    metadata_updated: bool


class PhotoService:
    """Adds and removes photos, keeping blobs and the metadata document in step."""

    def __init__(
        self,
        storage_service: StorageService | None = None,
        metadata_store: MetadataStore | None = None,
        image_processor: ImageProcessor | None = None,
    ) -> None:
        self.storage_service = storage_service or get_storage_service()
        self.metadata_store = metadata_store or MetadataStore(self.storage_service)
        self.image_processor = image_processor or get_image_processor()

    def generate_photo_id(self, creation_date: datetime | None = None) -> str:
        """
        Build the photo identifier from the capture time.

        Aware datetimes are converted to PHOTO_ID_TIMEZONE first; naive ones
        are taken as already local to it. Two photos taken in the same second
        get the same identifier and the later upload replaces the earlier one.

        Args:
            creation_date: Capture time, or None for the current time

        Returns:
            str: Identifier formatted as ``yyyyMMddHHmmss``
        """
        timezone = _load_timezone(get_photo_id_timezone())
        if creation_date is None:
            creation_date = datetime.now(timezone)
        elif creation_date.tzinfo is not None:
            creation_date = creation_date.astimezone(timezone)
        return creation_date.strftime(PHOTO_ID_FORMAT)

    def ingest(
        self,
        image_data: bytes | None,
        client_metadata: str | dict[str, Any] | None,
        filename: str | None = None,
        user_id: str | None = None,
    ) -> Photo:
        """
        Store an uploaded photo and record it in the metadata document.

        Args:
            image_data: Raw uploaded file
            client_metadata: JSON object (or its string form) with latitude,
                longitude, creationDate, width and height
            filename: Original file name, only used for validation messages
            user_id: Uploader, for the audit log

        Returns:
            Photo: The stored record

        Raises:
            IngestionError: If the file or the metadata is missing
            ValidationError: If the metadata or the image is not acceptable
            ImageProcessingError: If the image cannot be decoded
            StorageError: If writing the blob or the document fails
        """
        if not image_data or client_metadata is None or client_metadata == "":
            raise IngestionError(
                "File and metadata are required",
                details={"has_file": bool(image_data), "has_metadata": bool(client_metadata)},
            )

        start_time = datetime.now()
        metadata = parse_client_metadata(client_metadata)
        latitude = _coordinate(metadata.get("latitude"), "latitude", 90.0)
        longitude = _coordinate(metadata.get("longitude"), "longitude", 180.0)
        photo_id = self.generate_photo_id(_parse_creation_date(metadata.get("creationDate")))

        processed = self.image_processor.process_upload(image_data, filename or photo_id)

        self.storage_service.upload_file(
            image_key(photo_id),
            processed.data,
            content_type=processed.content_type,
            cache_control=IMMUTABLE_CACHE_CONTROL,
        )

        photo = Photo(
            filename=photo_id,
            src=self.storage_service.get_public_url(photo_id),
            width=processed.width,
            height=processed.height,
            latitude=latitude,
            longitude=longitude,
            blur_data_url=processed.placeholder,
        )
        self.metadata_store.upsert(photo_id, photo)

        duration = (datetime.now() - start_time).total_seconds()
        log_performance("ingest_photo", duration, photo_id=photo_id, encoded_size=len(processed.data))
        if user_id:
            log_user_action(user_id, "photo_uploaded", photo_id=photo_id)

        return photo

    def delete_photo(self, photo_id: str, user_id: str | None = None) -> DeleteResult:
        """
        Delete a photo blob, then its metadata entry.

        A missing blob is not an error. A failure while updating the metadata
        document is logged and reported through ``metadata_updated`` only;
        the entry then stays in the document until the next reconcile.

        Raises:
            ValidationError: If the identifier is invalid or names the metadata document
            StorageError: If deleting the blob fails
        """
        key = image_key(photo_id)
        blob_deleted = self.storage_service.delete_file(key)

        metadata_updated = True
        try:
            self.metadata_store.remove(photo_id)
        except PhotoMapError as e:
            metadata_updated = False
            log_error(e, {"operation": "delete_photo_metadata", "photo_id": photo_id})

        if user_id:
            log_user_action(user_id, "photo_deleted", photo_id=photo_id, blob_deleted=blob_deleted)
        logger.info(
            "photo_deleted", photo_id=photo_id, blob_deleted=blob_deleted, metadata_updated=metadata_updated
        )
        return DeleteResult(photo_id=photo_id, blob_deleted=blob_deleted, metadata_updated=metadata_updated)

    def list_photos(self) -> list[Photo]:
        """Get every photo of the metadata document, freshly loaded."""
        return self.metadata_store.list_photos()

    def get_document(self) -> dict[str, dict[str, Any]]:
        """Get the metadata document in its stored layout."""
        return {photo_id: photo.to_dict() for photo_id, photo in self.metadata_store.load().items()}

    def open_image(self, photo_id: str) -> StoredObject:
        """
        Open a photo blob for streaming.

        Raises:
            ValidationError: If the identifier is invalid or names the metadata document
            ObjectNotFoundError: If the blob does not exist
        """
        return self.storage_service.open_file(image_key(photo_id))


def parse_client_metadata(client_metadata: str | dict[str, Any]) -> dict[str, Any]:
    """
    Parse the metadata part of an upload.

    Raises:
        ValidationError: If it is not a JSON object
    """
    if isinstance(client_metadata, dict):
        return client_metadata

    try:
        data = json.loads(client_metadata)
    except (TypeError, json.JSONDecodeError) as e:
        raise ValidationError(
            f"Metadata is not valid JSON: {e}",
            code="invalid_metadata",
            user_message="照片資訊格式錯誤。",
            original_exception=e,
        ) from e

    if not isinstance(data, dict):
        raise ValidationError(
            "Metadata must be a JSON object",
            code="invalid_metadata",
            user_message="照片資訊格式錯誤。",
            details={"metadata_type": type(data).__name__},
        )
    return data


def _coordinate(value: Any, name: str, limit: float) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"{name} is not a number: {value!r}",
            code="invalid_coordinates",
            user_message="座標格式錯誤。",
            details={"field": name},
            original_exception=e,
        ) from e
    if not math.isfinite(number) or abs(number) > limit:
        raise ValidationError(
            f"{name} out of range: {number}",
            code="invalid_coordinates",
            user_message="座標超出範圍。",
            details={"field": name, "value": number},
        )
    return number


def _parse_creation_date(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(
            f"creationDate is not an ISO-8601 date: {value!r}",
            code="invalid_creation_date",
            user_message="拍攝時間格式錯誤。",
            original_exception=e,
        ) from e


def _load_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("invalid_photo_id_timezone", timezone=name, fallback="UTC")
        return ZoneInfo("UTC")


# Global photo service instance
_photo_service: PhotoService | None = None


def get_photo_service() -> PhotoService:
    """Get the global photo service instance."""
    global _photo_service
    if _photo_service is None:
        _photo_service = PhotoService(
            storage_service=get_storage_service(),
            metadata_store=get_metadata_store(),
            image_processor=get_image_processor(),
        )
    return _photo_service
