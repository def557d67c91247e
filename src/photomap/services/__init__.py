"""
Services module for photomap application.

This module contains the service classes that handle business logic:
- StorageService: Google Cloud Storage operations
- MetadataStore: read-modify-write of the JSON metadata document
- ImageProcessor: upload normalization, placeholders and EXIF reading
- PhotoService: photo ingestion and deletion
- CloudIAPAuthService / AuthorizationPolicy: identity and uploader allow-list
- clustering: grid-based grouping of photos for the map
"""

from .auth import AuthorizationPolicy, CloudIAPAuthService, UserInfo, get_auth_service, get_authorization_policy
from .image_processor import ImageProcessor, ProcessedImage, get_image_processor
from .metadata import MetadataStore, get_metadata_store
from .photos import DeleteResult, PhotoService, get_photo_service
from .storage import StorageService, StoredObject, get_storage_service

__all__ = [
    "AuthorizationPolicy",
    "CloudIAPAuthService",
    "UserInfo",
    "get_auth_service",
    "get_authorization_policy",
    "ImageProcessor",
    "ProcessedImage",
    "get_image_processor",
    "MetadataStore",
    "get_metadata_store",
    "DeleteResult",
    "PhotoService",
    "get_photo_service",
    "StorageService",
    "StoredObject",
    "get_storage_service",
]
