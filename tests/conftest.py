"""
Pytest configuration and fixtures for photomap tests.
"""

import base64
import io
import json
import random
import time
from collections.abc import Generator

import pytest
from PIL import ExifTags, Image
from PIL.TiffImagePlugin import IFDRational

from photomap.config import get_config
from photomap.error_handling import ObjectNotFoundError, StorageError
from photomap.models.photo import Photo
from photomap.services.storage import StoredObject

TEST_BUCKET = "test-photomap-bucket"
UPLOADER_EMAIL = "uploader@example.com"


class InMemoryStorage:
    """Stand-in for StorageService keeping objects in a dict."""

    def __init__(self, bucket_name: str = TEST_BUCKET):
        self.bucket_name = bucket_name
        self.public_base_url = f"https://storage.googleapis.com/{bucket_name}/images"
        self.objects: dict[str, dict] = {}
        self.writes: list[str] = []
        self.failing_keys: set[str] = set()

    def _check(self, key: str) -> None:
        if key in self.failing_keys:
            raise StorageError(f"Simulated failure for '{key}'", code="simulated_failure")

    def upload_file(self, key: str, data: bytes, content_type: str, cache_control: str | None = None) -> dict:
        self._check(key)
        self.objects[key] = {"data": data, "content_type": content_type, "cache_control": cache_control}
        self.writes.append(key)
        return {"key": key, "file_size": len(data), "content_type": content_type, "generation": len(self.writes)}

    def download_file(self, key: str) -> bytes:
        self._check(key)
        if key not in self.objects:
            raise ObjectNotFoundError(f"Object not found: {key}")
        return self.objects[key]["data"]

    def open_file(self, key: str) -> StoredObject:
        data = self.download_file(key)
        return StoredObject(
            key=key,
            content_type=self.objects[key]["content_type"],
            size=len(data),
            reader=io.BytesIO(data),
        )

    def delete_file(self, key: str) -> bool:
        self._check(key)
        return self.objects.pop(key, None) is not None

    def list_files(self, prefix: str = "images/") -> list[str]:
        return sorted(key for key in self.objects if key.startswith(prefix))

    def get_public_url(self, photo_id: str) -> str:
        return f"{self.public_base_url}/{photo_id}"


class TestDataFactory:
    """Factory class for creating test data objects."""

    @staticmethod
    def create_photo(
        filename: str = "20240501102030",
        latitude: float | None = 25.0,
        longitude: float | None = 121.5,
        width: int = 800,
        height: int = 600,
    ) -> Photo:
        return Photo(
            filename=filename,
            src=f"https://storage.googleapis.com/{TEST_BUCKET}/images/{filename}",
            width=width,
            height=height,
            latitude=latitude,
            longitude=longitude,
        )

    @staticmethod
    def create_image_bytes(
        size: tuple[int, int] = (64, 48),
        image_format: str = "JPEG",
        mode: str = "RGB",
        exif: Image.Exif | None = None,
        seed: int = 0,
    ) -> bytes:
        """Create a small noise image encoded in the given format."""
        channels = len(mode)
        image = Image.frombytes(mode, size, random.Random(seed).randbytes(size[0] * size[1] * channels))
        output = io.BytesIO()
        if exif is not None:
            image.save(output, format=image_format, exif=exif)
        else:
            image.save(output, format=image_format)
        return output.getvalue()

    @staticmethod
    def create_exif(
        date_taken: str | None = None,
        gps: tuple[tuple[int, int, int], str, tuple[int, int, int], str] | None = None,
        orientation: int | None = None,
    ) -> Image.Exif:
        """
        Build EXIF data.

        Args:
            date_taken: "YYYY:MM:DD HH:MM:SS" written as DateTimeOriginal
            gps: (latitude DMS, "N"/"S", longitude DMS, "E"/"W")
            orientation: EXIF orientation value
        """
        exif = Image.Exif()
        if date_taken:
            exif[ExifTags.IFD.Exif] = {ExifTags.Base.DateTimeOriginal: date_taken}
        if gps:
            latitude, latitude_ref, longitude, longitude_ref = gps
            exif[ExifTags.IFD.GPSInfo] = {
                ExifTags.GPS.GPSLatitudeRef: latitude_ref,
                ExifTags.GPS.GPSLatitude: tuple(IFDRational(value) for value in latitude),
                ExifTags.GPS.GPSLongitudeRef: longitude_ref,
                ExifTags.GPS.GPSLongitude: tuple(IFDRational(value) for value in longitude),
            }
        if orientation:
            exif[ExifTags.Base.Orientation] = orientation
        return exif

    @staticmethod
    def create_jwt_payload(
        user_id: str = "test-user-123",
        email: str = UPLOADER_EMAIL,
        name: str | None = "Test User",
    ) -> dict:
        current_time = int(time.time())
        payload = {
            "sub": user_id,
            "email": email,
            "iss": "https://cloud.google.com/iap",
            "aud": "/projects/123456789/global/backendServices/test-service",
            "iat": current_time,
            "exp": current_time + 3600,
        }
        if name is not None:
            payload["name"] = name
        return payload

    @staticmethod
    def create_jwt_token(payload: dict | None = None) -> str:
        """Create an unsigned JWT token for testing."""
        if payload is None:
            payload = TestDataFactory.create_jwt_payload()

        header = {"alg": "ES256", "typ": "JWT"}
        header_b64 = base64.urlsafe_b64encode(json.dumps(header).encode()).decode().rstrip("=")
        payload_b64 = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")
        signature_b64 = base64.urlsafe_b64encode(b"test_signature").decode().rstrip("=")
        return f"{header_b64}.{payload_b64}.{signature_b64}"

    @staticmethod
    def create_iap_headers(email: str = UPLOADER_EMAIL) -> dict[str, str]:
        payload = TestDataFactory.create_jwt_payload(email=email)
        return {"X-Goog-IAP-JWT-Assertion": TestDataFactory.create_jwt_token(payload)}


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Set up test environment variables and reset cached configuration."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("GCS_BUCKET", TEST_BUCKET)
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "test-project")
    monkeypatch.setenv("ALLOWED_UPLOADERS", UPLOADER_EMAIL)
    monkeypatch.setenv("PHOTO_ID_TIMEZONE", "UTC")
    monkeypatch.setenv("DEV_USER_EMAIL", UPLOADER_EMAIL)
    for key in ("IAP_AUDIENCE", "PHOTO_PUBLIC_BASE_URL", "PHOTO_MAX_DIMENSION", "PHOTO_QUALITY"):
        monkeypatch.delenv(key, raising=False)

    get_config().clear_cache()
    yield
    get_config().clear_cache()


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def test_data_factory() -> TestDataFactory:
    """Provide TestDataFactory instance for tests."""
    return TestDataFactory()
