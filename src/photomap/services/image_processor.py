"""Image processing service for photomap application."""

import base64
import io
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from PIL import ExifTags, Image, ImageFilter, ImageOps
from pillow_heif import register_heif_opener  # type: ignore[import-untyped]

from ..error_handling import ImageProcessingError, ValidationError
from ..logging_config import get_logger, log_error, log_performance

register_heif_opener()

logger = get_logger(__name__)


@dataclass
class ProcessedImage:
    """A normalized upload ready to be stored."""

    data: bytes
    width: int
    height: int
    content_type: str
    placeholder: str


class ImageProcessor:
    """Service for normalizing uploads and reading their EXIF data."""

    SUPPORTED_FORMATS = {".jpg", ".jpeg", ".png", ".webp", ".heic", ".heif"}

    # Formats as reported by Pillow after opening the file
    SUPPORTED_DETECTED_FORMATS = {"JPEG", "MPO", "PNG", "WEBP", "HEIF"}

    # EXIF date tags in priority order
    EXIF_DATE_TAGS = [
        ExifTags.Base.DateTimeOriginal,  # When photo was taken
        ExifTags.Base.DateTimeDigitized,  # When photo was digitized
        ExifTags.Base.DateTime,  # When file was modified
    ]

    OUTPUT_FORMAT = "WEBP"
    OUTPUT_CONTENT_TYPE = "image/webp"

    PLACEHOLDER_SIZE = (10, 10)
    PLACEHOLDER_QUALITY = 20

    def __init__(self) -> None:
        """Initialize the image processor."""
        self.MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", 50 * 1024 * 1024))  # Default: 50MB
        self.MIN_FILE_SIZE = int(os.getenv("MIN_FILE_SIZE", 100))  # Default: 100 bytes

        self.QUALITY = int(os.getenv("PHOTO_QUALITY", 80))
        # 0 keeps the original resolution
        self.MAX_DIMENSION = int(os.getenv("PHOTO_MAX_DIMENSION", 0))

    def is_supported_format(self, filename: str) -> bool:
        """
        Check if the file extension is supported.

        Args:
            filename: Name of the image file

        Returns:
            bool: True if format is supported, False otherwise
        """
        return Path(filename).suffix.lower() in self.SUPPORTED_FORMATS

    def validate_file_size(self, image_data: bytes, filename: str) -> None:
        """
        Validate that the file size is within acceptable limits.

        Raises:
            ValidationError: If file size is outside acceptable limits
        """
        file_size = len(image_data)

        if file_size < self.MIN_FILE_SIZE:
            raise ValidationError(
                f"File '{filename}' is too small ({file_size} bytes). Minimum size: {self.MIN_FILE_SIZE} bytes",
                code="file_too_small",
                user_message=f"檔案 '{filename}' 太小了。",
                details={"filename": filename, "file_size": file_size, "min_size": self.MIN_FILE_SIZE},
            )

        if file_size > self.MAX_FILE_SIZE:
            max_size_mb = self.MAX_FILE_SIZE / (1024 * 1024)
            current_size_mb = file_size / (1024 * 1024)
            raise ValidationError(
                f"File '{filename}' is too large ({current_size_mb:.1f}MB). Maximum size: {max_size_mb:.0f}MB",
                code="file_too_large",
                user_message=f"檔案 '{filename}' 太大了，上限為 {max_size_mb:.0f}MB。",
                details={"filename": filename, "file_size": file_size, "max_size": self.MAX_FILE_SIZE},
            )

        logger.debug("file_size_valid", filename=filename, file_size=file_size)

    def validate_image(self, image_data: bytes, filename: str) -> None:
        """
        Validate that the image data is valid and supported.

        Args:
            image_data: Raw image data as bytes
            filename: Name of the uploaded file

        Raises:
            ValidationError: If size or format is not acceptable
            ImageProcessingError: If the image is corrupted
        """
        self.validate_file_size(image_data, filename)

        if Path(filename).suffix and not self.is_supported_format(filename):
            raise ValidationError(
                f"Unsupported format for file '{filename}'",
                code="unsupported_format",
                user_message=f"不支援檔案 '{filename}' 的格式。",
                details={"filename": filename, "supported_formats": sorted(self.SUPPORTED_FORMATS)},
            )

        try:
            with Image.open(io.BytesIO(image_data)) as image:
                image.verify()
                detected_format = image.format

        except Exception as e:
            raise ImageProcessingError(
                f"Invalid or corrupted image file '{filename}': {e}",
                code="image_validation_failed",
                user_message=f"檔案 '{filename}' 已損壞或不是圖片。",
                details={"filename": filename, "file_size": len(image_data)},
                original_exception=e,
            ) from e

        if detected_format not in self.SUPPORTED_DETECTED_FORMATS:
            raise ValidationError(
                f"Detected format '{detected_format}' is not supported",
                code="invalid_detected_format",
                user_message=f"不支援檔案 '{filename}' 的格式 '{detected_format}'。",
                details={"filename": filename, "detected_format": detected_format},
            )

        logger.debug("image_validation_success", filename=filename, format=detected_format)

    def _read_exif(self, image_data: bytes) -> Image.Exif | None:
        try:
            with Image.open(io.BytesIO(image_data)) as image:
                exif = image.getexif()
                return exif if exif else None
        except Exception as e:
            log_error(e, {"operation": "read_exif"})
            return None

    def extract_exif_date(self, image_data: bytes) -> datetime | None:
        """
        Extract capture date from EXIF data.

        Args:
            image_data: Raw image data as bytes

        Returns:
            datetime: Capture date if found, None otherwise
        """
        exif = self._read_exif(image_data)
        if exif is None:
            logger.debug("exif_data_not_found")
            return None

        # DateTimeOriginal/Digitized live in the Exif sub-IFD, DateTime in IFD0
        tags: dict[int, Any] = dict(exif)
        tags.update(exif.get_ifd(ExifTags.IFD.Exif))

        for tag in self.EXIF_DATE_TAGS:
            date_value = _parse_exif_date(tags.get(tag))
            if date_value:
                logger.debug("exif_date_extracted", tag_name=tag.name, date_value=date_value.isoformat())
                return date_value

        logger.debug("exif_date_not_found")
        return None

    def extract_gps_coordinates(self, image_data: bytes) -> tuple[float, float] | None:
        """
        Extract GPS position from EXIF data.

        Args:
            image_data: Raw image data as bytes

        Returns:
            tuple: (latitude, longitude) in signed decimal degrees, None if absent
        """
        exif = self._read_exif(image_data)
        if exif is None:
            return None

        gps = exif.get_ifd(ExifTags.IFD.GPSInfo)
        latitude = gps.get(ExifTags.GPS.GPSLatitude)
        longitude = gps.get(ExifTags.GPS.GPSLongitude)
        if not latitude or not longitude:
            logger.debug("exif_gps_not_found")
            return None

        try:
            return (
                dms_to_decimal(latitude, gps.get(ExifTags.GPS.GPSLatitudeRef, "N")),
                dms_to_decimal(longitude, gps.get(ExifTags.GPS.GPSLongitudeRef, "E")),
            )
        except (TypeError, ValueError, ZeroDivisionError) as e:
            logger.debug("exif_gps_parse_failed", error=str(e))
            return None

    def normalize(self, image: Image.Image) -> Image.Image:
        """
        Apply the EXIF orientation and return an RGB image without it.

        The longest side is bounded by PHOTO_MAX_DIMENSION when it is set.
        """
        normalized = ImageOps.exif_transpose(image)
        if normalized.mode != "RGB":
            normalized = normalized.convert("RGB")
        if self.MAX_DIMENSION > 0:
            normalized.thumbnail((self.MAX_DIMENSION, self.MAX_DIMENSION), Image.Resampling.LANCZOS)
        return normalized

    def encode(self, image: Image.Image) -> bytes:
        """Re-encode at the fixed output quality, dropping all metadata."""
        output = io.BytesIO()
        image.save(output, format=self.OUTPUT_FORMAT, quality=self.QUALITY, method=4, exif=b"")
        return output.getvalue()

    def generate_placeholder(self, image: Image.Image) -> str:
        """
        Generate a tiny blurred preview encoded as a data URL.

        Args:
            image: Normalized image

        Returns:
            str: ``data:image/webp;base64,...``
        """
        preview = image.resize(self.PLACEHOLDER_SIZE, Image.Resampling.BILINEAR)
        preview = preview.filter(ImageFilter.GaussianBlur(radius=1))

        output = io.BytesIO()
        preview.save(output, format=self.OUTPUT_FORMAT, quality=self.PLACEHOLDER_QUALITY)
        encoded = base64.b64encode(output.getvalue()).decode("ascii")
        return f"data:{self.OUTPUT_CONTENT_TYPE};base64,{encoded}"

    def process_upload(self, image_data: bytes, filename: str = "upload") -> ProcessedImage:
        """
        Validate, normalize and re-encode an upload and build its placeholder.

        Args:
            image_data: Raw uploaded bytes
            filename: Name of the uploaded file (used for validation messages)

        Returns:
            ProcessedImage: Encoded image, its dimensions and its placeholder

        Raises:
            ValidationError: If the upload is not an acceptable image
            ImageProcessingError: If the image cannot be decoded or encoded
        """
        start_time = datetime.now()
        self.validate_image(image_data, filename)

        try:
            with Image.open(io.BytesIO(image_data)) as image:
                normalized = self.normalize(image)
                encoded = self.encode(normalized)
                placeholder = self.generate_placeholder(normalized)
        except Exception as e:
            raise ImageProcessingError(
                f"Failed to process image '{filename}': {e}",
                code="image_processing_failed",
                details={"filename": filename, "file_size": len(image_data)},
                original_exception=e,
            ) from e

        duration = (datetime.now() - start_time).total_seconds()
        log_performance(
            "process_upload",
            duration,
            filename=filename,
            original_size=len(image_data),
            encoded_size=len(encoded),
            width=normalized.width,
            height=normalized.height,
        )

        return ProcessedImage(
            data=encoded,
            width=normalized.width,
            height=normalized.height,
            content_type=self.OUTPUT_CONTENT_TYPE,
            placeholder=placeholder,
        )


def dms_to_decimal(dms: Any, ref: Any) -> float:
    """
    Convert an EXIF degrees/minutes/seconds triple to signed decimal degrees.

    South and west references give negative values.
    """
    parts = [float(value) for value in dms]
    while len(parts) < 3:
        parts.append(0.0)
    degrees, minutes, seconds = parts[:3]
    decimal = degrees + minutes / 60 + seconds / 3600

    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if str(ref).strip().upper() in ("S", "W"):
        decimal = -decimal
    return decimal


def _parse_exif_date(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    try:
        # EXIF format: "YYYY:MM:DD HH:MM:SS"
        return datetime.strptime(str(value).strip("\x00 "), "%Y:%m:%d %H:%M:%S")
    except ValueError:
        return None


# Global image processor instance
_image_processor: ImageProcessor | None = None


def get_image_processor() -> ImageProcessor:
    """Get the global image processor instance."""
    global _image_processor
    if _image_processor is None:
        _image_processor = ImageProcessor()
    return _image_processor
