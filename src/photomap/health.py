"""
Health check functionality for photomap application.

Liveness only says the process answers. Readiness checks the configuration,
the bucket and the metadata document the album depends on.
"""

import os
import platform
import time
from typing import Any

from . import __version__
from .logging_config import get_logger
from .services.metadata import MetadataStore
from .services.storage import StorageService

logger = get_logger(__name__)

_start_time = time.time()


def check_environment_health() -> dict[str, Any]:
    """Check environment configuration."""
    required_env_vars = ["GCS_BUCKET"]
    if os.getenv("ENVIRONMENT", "development").lower() in ["production", "prod"]:
        required_env_vars.append("ALLOWED_UPLOADERS")

    missing_vars = [var for var in required_env_vars if not os.getenv(var)]
    if missing_vars:
        return {
            "status": "unhealthy",
            "message": f"Missing environment variables: {', '.join(missing_vars)}",
            "timestamp": time.time(),
            "missing_vars": missing_vars,
        }

    return {"status": "healthy", "message": "Environment configuration is valid", "timestamp": time.time()}


def check_storage_health(storage_service: StorageService) -> dict[str, Any]:
    """Check the bucket is reachable."""
    try:
        if not storage_service.bucket.exists():
            return {
                "status": "unhealthy",
                "message": f"Bucket not found: {storage_service.bucket_name}",
                "timestamp": time.time(),
            }
        return {
            "status": "healthy",
            "message": "Storage connection successful",
            "timestamp": time.time(),
            "bucket": storage_service.bucket_name,
        }
    except Exception as e:
        logger.error("storage_health_check_failed", error=str(e))
        return {"status": "unhealthy", "message": f"Storage connection failed: {e}", "timestamp": time.time()}


def check_metadata_health(metadata_store: MetadataStore) -> dict[str, Any]:
    """Check the metadata document can be read and parsed."""
    try:
        photo_count = len(metadata_store.load())
        return {
            "status": "healthy",
            "message": "Metadata document readable",
            "timestamp": time.time(),
            "photo_count": photo_count,
        }
    except Exception as e:
        logger.error("metadata_health_check_failed", error=str(e))
        return {"status": "unhealthy", "message": f"Metadata check failed: {e}", "timestamp": time.time()}


def get_application_info() -> dict[str, Any]:
    return {
        "name": "photomap",
        "version": __version__,
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "uptime": time.time() - _start_time,
        "python_version": platform.python_version(),
    }


def check_liveness() -> dict[str, Any]:
    """Liveness check for Cloud Run."""
    return {"status": "alive", "timestamp": time.time(), "uptime": time.time() - _start_time}


def check_readiness(storage_service: StorageService, metadata_store: MetadataStore) -> dict[str, Any]:
    """
    Readiness check for Cloud Run.

    Returns:
        dict: ``status`` is ``ready`` only when every check is healthy
    """
    start_time = time.time()
    checks = {
        "environment": check_environment_health(),
        "storage": check_storage_health(storage_service),
        "metadata": check_metadata_health(metadata_store),
    }
    unhealthy_services = [name for name, result in checks.items() if result["status"] != "healthy"]

    response: dict[str, Any] = {
        "status": "not_ready" if unhealthy_services else "ready",
        "timestamp": time.time(),
        "duration_ms": round((time.time() - start_time) * 1000, 2),
        "application": get_application_info(),
        "checks": checks,
    }
    if unhealthy_services:
        response["unhealthy_services"] = unhealthy_services

    logger.info(
        "readiness_check_completed",
        status=response["status"],
        duration_ms=response["duration_ms"],
        unhealthy_services=unhealthy_services,
    )
    return response
