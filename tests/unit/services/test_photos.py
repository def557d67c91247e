"""
Unit tests for photo ingestion and deletion.
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from photomap.error_handling import (
    ImageProcessingError,
    IngestionError,
    MetadataError,
    StorageError,
    ValidationError,
)
from photomap.services.image_processor import ImageProcessor
from photomap.services.metadata import MetadataStore
from photomap.services.photos import PhotoService, parse_client_metadata
from photomap.services.storage import IMMUTABLE_CACHE_CONTROL, METADATA_KEY
from tests.conftest import InMemoryStorage, TestDataFactory


def client_metadata(**overrides) -> str:
    metadata = {
        "latitude": 25.0330,
        "longitude": 121.5654,
        "creationDate": "2024-05-01T10:20:30Z",
        "width": 4032,
        "height": 3024,
    }
    metadata.update(overrides)
    return json.dumps(metadata)


class TestGeneratePhotoId:
    """Test cases for identifier generation."""

    def setup_method(self):
        self.service = PhotoService(InMemoryStorage(), image_processor=ImageProcessor())

    def test_utc_date(self):
        assert self.service.generate_photo_id(datetime(2024, 5, 1, 10, 20, 30, tzinfo=timezone.utc)) == "20240501102030"

    def test_converted_to_configured_timezone(self, monkeypatch):
        monkeypatch.setenv("PHOTO_ID_TIMEZONE", "Asia/Taipei")
        from photomap.config import get_config

        get_config().clear_cache()

        photo_id = self.service.generate_photo_id(datetime(2024, 5, 1, 10, 20, 30, tzinfo=timezone.utc))

        assert photo_id == "20240501182030"

    def test_naive_date_used_as_is(self, monkeypatch):
        monkeypatch.setenv("PHOTO_ID_TIMEZONE", "Asia/Taipei")
        from photomap.config import get_config

        get_config().clear_cache()

        assert self.service.generate_photo_id(datetime(2024, 5, 1, 10, 20, 30)) == "20240501102030"

    def test_offset_date(self):
        tz = timezone(timedelta(hours=8))

        assert self.service.generate_photo_id(datetime(2024, 5, 1, 18, 20, 30, tzinfo=tz)) == "20240501102030"

    def test_defaults_to_now(self):
        photo_id = self.service.generate_photo_id(None)

        assert len(photo_id) == 14
        assert photo_id.isdigit()

    def test_unknown_timezone_falls_back_to_utc(self, monkeypatch):
        monkeypatch.setenv("PHOTO_ID_TIMEZONE", "Not/AZone")
        from photomap.config import get_config

        get_config().clear_cache()

        photo_id = self.service.generate_photo_id(datetime(2024, 5, 1, 10, 20, 30, tzinfo=timezone.utc))

        assert photo_id == "20240501102030"


class TestParseClientMetadata:
    """Test cases for parse_client_metadata."""

    def test_json_string(self):
        assert parse_client_metadata('{"latitude": 1.5}') == {"latitude": 1.5}

    def test_dict_passthrough(self):
        assert parse_client_metadata({"latitude": 1.5}) == {"latitude": 1.5}

    def test_invalid_json(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_client_metadata("{broken")
        assert exc_info.value.code == "invalid_metadata"

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            parse_client_metadata("[1, 2]")


class TestIngest:
    """Test cases for PhotoService.ingest."""

    def setup_method(self):
        """Set up test fixtures."""
        self.storage = InMemoryStorage()
        self.store = MetadataStore(self.storage)
        self.service = PhotoService(self.storage, self.store, ImageProcessor())
        self.image_data = TestDataFactory.create_image_bytes(size=(80, 60))

    def test_ingest_success(self):
        photo = self.service.ingest(self.image_data, client_metadata(), filename="IMG_0001.jpg")

        assert photo.filename == "20240501102030"
        assert photo.src == "https://storage.googleapis.com/test-photomap-bucket/images/20240501102030"
        assert (photo.width, photo.height) == (80, 60)
        assert photo.latitude == pytest.approx(25.0330)
        assert photo.longitude == pytest.approx(121.5654)
        assert photo.blur_data_url.startswith("data:image/webp;base64,")

        blob = self.storage.objects["images/20240501102030"]
        assert blob["content_type"] == "image/webp"
        assert blob["cache_control"] == IMMUTABLE_CACHE_CONTROL
        assert self.store.get("20240501102030") == photo

    def test_blob_written_before_metadata(self):
        self.service.ingest(self.image_data, client_metadata())

        assert self.storage.writes == ["images/20240501102030", METADATA_KEY]

    def test_client_dimensions_are_ignored(self):
        photo = self.service.ingest(self.image_data, client_metadata(width=1, height=1))

        assert (photo.width, photo.height) == (80, 60)

    def test_missing_metadata_makes_no_writes(self):
        with pytest.raises(IngestionError) as exc_info:
            self.service.ingest(self.image_data, None)

        assert exc_info.value.http_status == 400
        assert self.storage.writes == []

    def test_missing_file_makes_no_writes(self):
        with pytest.raises(IngestionError):
            self.service.ingest(None, client_metadata())

        with pytest.raises(IngestionError):
            self.service.ingest(b"", client_metadata())

        assert self.storage.writes == []

    def test_invalid_metadata_json(self):
        with pytest.raises(ValidationError):
            self.service.ingest(self.image_data, "{not json")

        assert self.storage.writes == []

    @pytest.mark.parametrize("field,value", [("latitude", 91), ("latitude", -90.5), ("longitude", 180.1)])
    def test_out_of_range_coordinates(self, field, value):
        with pytest.raises(ValidationError) as exc_info:
            self.service.ingest(self.image_data, client_metadata(**{field: value}))

        assert exc_info.value.code == "invalid_coordinates"
        assert self.storage.writes == []

    def test_non_numeric_coordinates(self):
        with pytest.raises(ValidationError):
            self.service.ingest(self.image_data, client_metadata(latitude="north"))

    def test_missing_coordinates_are_stored_as_none(self):
        photo = self.service.ingest(self.image_data, client_metadata(latitude=None, longitude=None))

        assert photo.latitude is None
        assert photo.longitude is None
        assert not photo.has_location

    def test_invalid_creation_date(self):
        with pytest.raises(ValidationError) as exc_info:
            self.service.ingest(self.image_data, client_metadata(creationDate="yesterday"))

        assert exc_info.value.code == "invalid_creation_date"
        assert self.storage.writes == []

    @pytest.mark.parametrize("creation_date", ["2024-05-01T10:20:30Z", "2024-05-01T18:20:30+08:00"])
    def test_iso_dates_with_zone(self, creation_date):
        photo = self.service.ingest(self.image_data, client_metadata(creationDate=creation_date))

        assert photo.filename == "20240501102030"

    def test_missing_creation_date_uses_now(self):
        with patch.object(self.service, "generate_photo_id", return_value="20991231235959") as mock_generate:
            photo = self.service.ingest(self.image_data, client_metadata(creationDate=None))

        mock_generate.assert_called_once_with(None)
        assert photo.filename == "20991231235959"

    def test_same_second_overwrites(self):
        first = self.service.ingest(self.image_data, client_metadata(latitude=10.0))
        second = self.service.ingest(
            TestDataFactory.create_image_bytes(size=(40, 40), seed=1), client_metadata(latitude=20.0)
        )

        assert first.filename == second.filename
        document = self.store.load()
        assert len(document) == 1
        assert document[first.filename].latitude == 20.0

    def test_invalid_image(self):
        with pytest.raises(ImageProcessingError):
            self.service.ingest(b"definitely not an image" * 10, client_metadata(), filename="photo.jpg")

        assert self.storage.writes == []

    def test_blob_write_failure(self):
        self.storage.failing_keys.add("images/20240501102030")

        with pytest.raises(StorageError) as exc_info:
            self.service.ingest(self.image_data, client_metadata())

        assert exc_info.value.http_status == 500
        assert self.store.load() == {}


class TestDeletePhoto:
    """Test cases for PhotoService.delete_photo."""

    def setup_method(self):
        """Set up test fixtures."""
        self.storage = InMemoryStorage()
        self.store = MetadataStore(self.storage)
        self.service = PhotoService(self.storage, self.store, ImageProcessor())
        self.photo = self.service.ingest(TestDataFactory.create_image_bytes(), client_metadata())

    def test_delete_success(self):
        result = self.service.delete_photo(self.photo.filename)

        assert result.blob_deleted is True
        assert result.metadata_updated is True
        assert "images/20240501102030" not in self.storage.objects
        assert self.store.load() == {}

    def test_delete_missing_blob_still_removes_entry(self):
        del self.storage.objects["images/20240501102030"]

        result = self.service.delete_photo(self.photo.filename)

        assert result.blob_deleted is False
        assert result.metadata_updated is True
        assert self.store.load() == {}

    def test_delete_unknown_photo(self):
        result = self.service.delete_photo("19990101000000")

        assert result.blob_deleted is False
        assert set(self.store.load()) == {self.photo.filename}

    def test_metadata_failure_is_swallowed(self):
        self.storage.failing_keys.add(METADATA_KEY)

        result = self.service.delete_photo(self.photo.filename)

        assert result.blob_deleted is True
        assert result.metadata_updated is False

    def test_blob_failure_propagates(self):
        self.storage.failing_keys.add("images/20240501102030")

        with pytest.raises(StorageError):
            self.service.delete_photo(self.photo.filename)

        assert set(self.store.load()) == {self.photo.filename}

    def test_metadata_document_cannot_be_deleted(self):
        with pytest.raises(ValidationError):
            self.service.delete_photo("metadata.json")

        assert METADATA_KEY in self.storage.objects

    @pytest.mark.parametrize("photo_id", [" 20240501102030", "20240501102030 ", "nested/20240501102030"])
    def test_unnormalized_identifier_touches_nothing(self, photo_id):
        with pytest.raises(ValidationError):
            self.service.delete_photo(photo_id)

        assert "images/20240501102030" in self.storage.objects
        assert set(self.store.load()) == {self.photo.filename}

    def test_corrupt_document_is_swallowed(self):
        store = MagicMock(spec=MetadataStore)
        store.remove.side_effect = MetadataError("corrupt", code="metadata_corrupt")
        service = PhotoService(self.storage, store, ImageProcessor())

        result = service.delete_photo(self.photo.filename)

        assert result.metadata_updated is False


class TestReadAccess:
    """Test cases for listing and opening photos."""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.service = PhotoService(self.storage, MetadataStore(self.storage), ImageProcessor())

    def test_list_photos_empty(self):
        assert self.service.list_photos() == []
        assert self.service.get_document() == {}

    def test_get_document_layout(self):
        photo = self.service.ingest(TestDataFactory.create_image_bytes(), client_metadata())

        document = self.service.get_document()

        assert document[photo.filename]["blurDataURL"] == photo.blur_data_url
        assert document[photo.filename]["src"] == photo.src

    def test_open_image(self):
        photo = self.service.ingest(TestDataFactory.create_image_bytes(), client_metadata())

        stored = self.service.open_image(photo.filename)

        assert stored.content_type == "image/webp"
        assert b"".join(stored.iter_chunks()) == self.storage.objects["images/20240501102030"]["data"]

    def test_open_metadata_document_is_rejected(self):
        with pytest.raises(ValidationError):
            self.service.open_image("metadata.json")
