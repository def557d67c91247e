"""
Unit tests for image processing service.
"""

import base64
import io
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from PIL import ExifTags, Image

from photomap.error_handling import ImageProcessingError, ValidationError
from photomap.services.image_processor import ImageProcessor, _parse_exif_date, dms_to_decimal
from tests.conftest import TestDataFactory


class TestDmsToDecimal:
    """Test cases for dms_to_decimal."""

    def test_north_east(self):
        assert dms_to_decimal((25, 2, 12), "N") == pytest.approx(25.036666, abs=1e-6)
        assert dms_to_decimal((121, 30, 0), "E") == pytest.approx(121.5)

    def test_south_west_are_negative(self):
        assert dms_to_decimal((33, 52, 7.68), "S") == pytest.approx(-33.8688, abs=1e-6)
        assert dms_to_decimal((74, 0, 21.6), "W") == pytest.approx(-74.006, abs=1e-6)

    def test_bytes_reference(self):
        assert dms_to_decimal((10, 30, 0), b"S") == pytest.approx(-10.5)

    def test_two_part_value(self):
        assert dms_to_decimal((10, 30), "N") == pytest.approx(10.5)


class TestParseExifDate:
    """Test cases for _parse_exif_date."""

    def test_valid(self):
        assert _parse_exif_date("2024:05:01 10:20:30") == datetime(2024, 5, 1, 10, 20, 30)

    def test_trailing_null(self):
        assert _parse_exif_date(b"2024:05:01 10:20:30\x00") == datetime(2024, 5, 1, 10, 20, 30)

    @pytest.mark.parametrize("value", [None, "", "0000:00:00 00:00:00", "not a date"])
    def test_invalid(self, value):
        assert _parse_exif_date(value) is None


class TestImageProcessor:
    """Test cases for ImageProcessor class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.processor = ImageProcessor()

    def test_is_supported_format(self):
        assert self.processor.is_supported_format("photo.JPG")
        assert self.processor.is_supported_format("photo.heic")
        assert self.processor.is_supported_format("photo.webp")
        assert not self.processor.is_supported_format("photo.gif")
        assert not self.processor.is_supported_format("document.pdf")

    def test_validate_file_too_small(self):
        with pytest.raises(ValidationError) as exc_info:
            self.processor.validate_image(b"tiny", "photo.jpg")
        assert exc_info.value.code == "file_too_small"

    def test_validate_file_too_large(self):
        self.processor.MAX_FILE_SIZE = 1000

        with pytest.raises(ValidationError) as exc_info:
            self.processor.validate_file_size(b"x" * 2000, "photo.jpg")
        assert exc_info.value.code == "file_too_large"

    def test_validate_unsupported_extension(self):
        data = TestDataFactory.create_image_bytes()

        with pytest.raises(ValidationError) as exc_info:
            self.processor.validate_image(data, "photo.gif")
        assert exc_info.value.code == "unsupported_format"

    def test_validate_corrupted_image(self):
        with pytest.raises(ImageProcessingError) as exc_info:
            self.processor.validate_image(b"not an image" * 20, "photo.jpg")
        assert exc_info.value.http_status == 400

    def test_validate_unsupported_detected_format(self):
        data = TestDataFactory.create_image_bytes(image_format="GIF")

        with pytest.raises(ValidationError) as exc_info:
            self.processor.validate_image(data, "upload")
        assert exc_info.value.code == "invalid_detected_format"

    @pytest.mark.parametrize("image_format,filename", [("JPEG", "a.jpg"), ("PNG", "a.png"), ("WEBP", "a.webp")])
    def test_validate_supported_formats(self, image_format, filename):
        data = TestDataFactory.create_image_bytes(image_format=image_format)

        self.processor.validate_image(data, filename)

    def test_process_upload_outputs_webp(self):
        data = TestDataFactory.create_image_bytes(size=(64, 48), image_format="PNG")

        processed = self.processor.process_upload(data, "photo.png")

        assert processed.content_type == "image/webp"
        assert (processed.width, processed.height) == (64, 48)
        with Image.open(io.BytesIO(processed.data)) as image:
            assert image.format == "WEBP"
            assert image.size == (64, 48)

    def test_process_upload_applies_orientation(self):
        exif = TestDataFactory.create_exif(orientation=6)
        data = TestDataFactory.create_image_bytes(size=(80, 40), exif=exif)

        processed = self.processor.process_upload(data, "rotated.jpg")

        assert (processed.width, processed.height) == (40, 80)

    def test_process_upload_drops_exif(self):
        exif = TestDataFactory.create_exif(date_taken="2024:05:01 10:20:30", orientation=1)
        data = TestDataFactory.create_image_bytes(exif=exif)

        processed = self.processor.process_upload(data, "photo.jpg")

        with Image.open(io.BytesIO(processed.data)) as image:
            assert not image.getexif()

    def test_process_upload_bounds_dimension(self):
        self.processor.MAX_DIMENSION = 32
        data = TestDataFactory.create_image_bytes(size=(128, 64))

        processed = self.processor.process_upload(data, "photo.jpg")

        assert max(processed.width, processed.height) == 32

    def test_process_upload_rgba_input(self):
        data = TestDataFactory.create_image_bytes(size=(20, 20), image_format="PNG", mode="RGBA")

        processed = self.processor.process_upload(data, "alpha.png")

        assert (processed.width, processed.height) == (20, 20)

    def test_placeholder_is_small_webp_data_url(self):
        data = TestDataFactory.create_image_bytes(size=(300, 200))

        processed = self.processor.process_upload(data, "photo.jpg")

        prefix = "data:image/webp;base64,"
        assert processed.placeholder.startswith(prefix)
        raw = base64.b64decode(processed.placeholder[len(prefix) :])
        with Image.open(io.BytesIO(raw)) as placeholder:
            assert placeholder.format == "WEBP"
            assert placeholder.size == (10, 10)

    def test_extract_exif_date_from_image(self):
        exif = TestDataFactory.create_exif(date_taken="2023:08:15 12:30:00")
        data = TestDataFactory.create_image_bytes(exif=exif)

        assert self.processor.extract_exif_date(data) == datetime(2023, 8, 15, 12, 30, 0)

    def test_extract_exif_date_falls_back_to_datetime(self):
        exif = Image.Exif()
        exif[ExifTags.Base.DateTime] = "2022:01:02 03:04:05"
        data = TestDataFactory.create_image_bytes(exif=exif)

        assert self.processor.extract_exif_date(data) == datetime(2022, 1, 2, 3, 4, 5)

    def test_extract_exif_date_without_exif(self):
        assert self.processor.extract_exif_date(TestDataFactory.create_image_bytes()) is None

    def test_extract_gps_coordinates_from_image(self):
        exif = TestDataFactory.create_exif(gps=((25, 2, 12), "N", (121, 30, 0), "E"))
        data = TestDataFactory.create_image_bytes(exif=exif)

        coordinates = self.processor.extract_gps_coordinates(data)

        assert coordinates is not None
        assert coordinates[0] == pytest.approx(25.036666, abs=1e-5)
        assert coordinates[1] == pytest.approx(121.5, abs=1e-5)

    def test_extract_gps_coordinates_southern_western(self):
        exif = MagicMock()
        exif.get_ifd.return_value = {
            ExifTags.GPS.GPSLatitude: (33.0, 52.0, 7.68),
            ExifTags.GPS.GPSLatitudeRef: "S",
            ExifTags.GPS.GPSLongitude: (151.0, 12.0, 33.48),
            ExifTags.GPS.GPSLongitudeRef: "E",
        }

        with patch.object(self.processor, "_read_exif", return_value=exif):
            latitude, longitude = self.processor.extract_gps_coordinates(b"ignored")

        assert latitude == pytest.approx(-33.8688, abs=1e-6)
        assert longitude == pytest.approx(151.2093, abs=1e-6)

    def test_extract_gps_coordinates_without_gps(self):
        exif = TestDataFactory.create_exif(date_taken="2023:08:15 12:30:00")
        data = TestDataFactory.create_image_bytes(exif=exif)

        assert self.processor.extract_gps_coordinates(data) is None

    def test_extract_gps_coordinates_invalid_values(self):
        exif = MagicMock()
        exif.get_ifd.return_value = {
            ExifTags.GPS.GPSLatitude: ("a", "b", "c"),
            ExifTags.GPS.GPSLongitude: (1.0, 0.0, 0.0),
        }

        with patch.object(self.processor, "_read_exif", return_value=exif):
            assert self.processor.extract_gps_coordinates(b"ignored") is None

    def test_quality_from_environment(self, monkeypatch):
        monkeypatch.setenv("PHOTO_QUALITY", "55")
        monkeypatch.setenv("PHOTO_MAX_DIMENSION", "2048")

        processor = ImageProcessor()

        assert processor.QUALITY == 55
        assert processor.MAX_DIMENSION == 2048
