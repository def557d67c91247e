"""
Photo model for photomap application.

This module contains the Photo dataclass that represents one entry of the
metadata document stored next to the images.
"""

import math
from dataclasses import dataclass
from typing import Any


@dataclass
class Photo:
    """
    Represents one photo in the album.

    ``filename`` is derived from the capture timestamp and doubles as the
    object key suffix (``images/<filename>``) and the key inside the
    metadata document. It never changes once the photo is stored.
    """

    filename: str
    src: str
    width: int
    height: int
    latitude: float | None
    longitude: float | None
    blur_data_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """
        Convert Photo to the dictionary layout used in the metadata document.

        Returns:
            Dictionary representation of the photo
        """
        data: dict[str, Any] = {
            "filename": self.filename,
            "src": self.src,
            "width": self.width,
            "height": self.height,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }
        if self.blur_data_url is not None:
            data["blurDataURL"] = self.blur_data_url
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Photo":
        """
        Create Photo from a metadata document entry.

        Args:
            data: Dictionary containing the photo record

        Returns:
            Photo instance
        """
        return cls(
            filename=str(data["filename"]),
            src=str(data["src"]),
            width=int(data.get("width") or 0),
            height=int(data.get("height") or 0),
            latitude=_optional_float(data.get("latitude")),
            longitude=_optional_float(data.get("longitude")),
            blur_data_url=data.get("blurDataURL"),
        )

    @property
    def has_location(self) -> bool:
        """True when both coordinates are present and finite."""
        if self.latitude is None or self.longitude is None:
            return False
        return math.isfinite(self.latitude) and math.isfinite(self.longitude)

    def __str__(self) -> str:
        return f"Photo(filename={self.filename}, lat={self.latitude}, lng={self.longitude})"


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
