"""Configuration management for photomap application.

This module provides centralized configuration management using environment variables
and Streamlit secrets as fallback. Designed for simplicity and personal app usage.
"""

import os
from typing import Any

import streamlit as st

from .logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """Centralized configuration management using environment variables."""

    def __init__(self):
        """Initialize configuration."""
        self._cache = {}

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """Get configuration value from environment variables or Streamlit secrets.

        Args:
            key: Configuration key
            default: Default value if not found
            cast_type: Type to cast the value to (str, int, bool, float)

        Returns:
            Configuration value cast to the specified type
        """
        cache_key = f"{key}:{cast_type.__name__}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        value = os.getenv(key)

        # Fallback to Streamlit secrets; outside a Streamlit run there is no secrets file
        if value is None:
            try:
                value = st.secrets.get(key)
            except Exception:  # nosec B110
                pass

        if value is None:
            value = default

        if value is not None:
            try:
                if cast_type is bool:
                    if isinstance(value, str):
                        value = value.lower() in ("true", "1", "yes", "on")  # type: ignore[assignment]
                    else:
                        value = bool(value)  # type: ignore[assignment]
                elif cast_type is not str:
                    value = cast_type(value)
            except (ValueError, TypeError) as e:
                logger.warning(f"Failed to cast config value '{key}' to {cast_type.__name__}: {e}")
                value = default

        self._cache[cache_key] = value
        return value

    def get_required(self, key: str, cast_type: type = str) -> Any:
        """Get required configuration value.

        Raises:
            ValueError: If the required configuration is not found
        """
        value = self.get(key, cast_type=cast_type)
        if value is None or value == "":
            raise ValueError(f"Required configuration '{key}' not found")
        return value

    def is_development(self) -> bool:
        """Check if running in development mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["development", "dev", "local", "test"]

    def clear_cache(self):
        """Clear configuration cache."""
        self._cache.clear()


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    """Get configuration value with type casting."""
    return get_config().get(key, default, cast_type)


def get_required_env(key: str, cast_type: type = str) -> Any:
    """Get required configuration value.

    Raises:
        ValueError: If the value is not configured
    """
    return get_config().get_required(key, cast_type)


def is_development() -> bool:
    """Check if running in development mode."""
    return get_config().is_development()


# Common configuration getters
def get_project_id() -> str | None:
    """Get Google Cloud project ID (optional, the client can infer it)."""
    return get_env("GOOGLE_CLOUD_PROJECT")


def get_gcs_bucket() -> str:
    """Get the bucket holding images and the metadata document."""
    return str(get_required_env("GCS_BUCKET"))


def get_public_base_url(bucket_name: str) -> str:
    """Get the base URL photos are served from, without trailing slash.

    Defaults to the public GCS endpoint of the bucket.
    """
    default = f"https://storage.googleapis.com/{bucket_name}/images"
    return str(get_env("PHOTO_PUBLIC_BASE_URL", default)).rstrip("/")


def get_allowed_uploaders() -> str:
    """Get the raw comma-separated uploader allow-list."""
    return str(get_env("ALLOWED_UPLOADERS", ""))


def get_photo_id_timezone() -> str:
    """Get the timezone used to format photo identifiers."""
    return str(get_env("PHOTO_ID_TIMEZONE", "UTC"))


def get_iap_audience() -> str | None:
    """Get the expected IAP audience; signature verification is skipped when unset."""
    return get_env("IAP_AUDIENCE")


def get_map_settings() -> dict[str, Any]:
    """Get initial map view settings."""
    return {
        "center_lat": get_env("MAP_CENTER_LAT", 25.003385192865906, float),
        "center_lng": get_env("MAP_CENTER_LNG", 121.52720552731212, float),
        "zoom": get_env("MAP_DEFAULT_ZOOM", 12, int),
    }
