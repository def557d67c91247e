"""
Maintenance tasks for photomap.

Run with ``photomap-tasks <task> [options]`` or
``invoke -r src/photomap/cli -c tasks <task> [options]``.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from dotenv import load_dotenv
from invoke import Collection, Context, Program, task

from photomap import __version__
from photomap.error_handling import PhotoMapError
from photomap.services.auth import AuthorizationPolicy, UserInfo
from photomap.services.image_processor import ImageProcessor
from photomap.services.metadata import MetadataStore
from photomap.services.photos import PhotoService
from photomap.services.storage import IMAGE_PREFIX, METADATA_KEY, StorageService

logger = structlog.get_logger()

SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".heic", ".heif"}


@dataclass
class ReconcileReport:
    """Differences between stored blobs and the metadata document."""

    orphaned_blobs: list[str] = field(default_factory=list)
    dangling_entries: list[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.orphaned_blobs and not self.dangling_entries


def _load_env(env_file: str) -> None:
    if os.path.exists(env_file):
        logger.info("loading_env_file", env_file=env_file)
        load_dotenv(dotenv_path=env_file)
    else:
        logger.warning("env_file_not_found", env_file=env_file, message="Using existing environment")


def find_inconsistencies(storage_service: StorageService, metadata_store: MetadataStore) -> ReconcileReport:
    """
    Compare the photo blobs with the metadata document.

    Orphaned blobs have no entry (a failed upsert); dangling entries have no
    blob (a half-failed delete).
    """
    # Only direct children of the prefix are photo blobs
    blob_ids = {
        key[len(IMAGE_PREFIX) :]
        for key in storage_service.list_files(IMAGE_PREFIX)
        if key != METADATA_KEY and key != IMAGE_PREFIX and "/" not in key[len(IMAGE_PREFIX) :]
    }
    document_ids = set(metadata_store.load())

    return ReconcileReport(
        orphaned_blobs=sorted(blob_ids - document_ids),
        dangling_entries=sorted(document_ids - blob_ids),
    )


def repair_inconsistencies(
    report: ReconcileReport, storage_service: StorageService, metadata_store: MetadataStore
) -> None:
    """Delete orphaned blobs and drop dangling entries."""
    for photo_id in report.orphaned_blobs:
        storage_service.delete_file(f"{IMAGE_PREFIX}{photo_id}")
        logger.info("orphaned_blob_deleted", photo_id=photo_id)

    for photo_id in report.dangling_entries:
        metadata_store.remove(photo_id)
        logger.info("dangling_entry_removed", photo_id=photo_id)


def find_image_files(directory: str, recursive: bool = False) -> list[Path]:
    """Image files of a directory, sorted by path."""
    root = Path(directory)
    candidates = root.rglob("*") if recursive else root.iterdir()
    return sorted(path for path in candidates if path.is_file() and path.suffix.lower() in SUPPORTED_EXTENSIONS)


def upload_file(
    path: Path,
    photo_service: PhotoService,
    image_processor: ImageProcessor,
    uploader: str,
    require_location: bool = True,
) -> bool:
    """
    Ingest one local file with its EXIF position and capture time.

    Returns:
        bool: False when the file was skipped for lack of a position
    """
    image_data = path.read_bytes()
    coordinates = image_processor.extract_gps_coordinates(image_data)
    if coordinates is None and require_location:
        logger.warning("skipped_no_location", filename=path.name)
        return False

    taken_at = image_processor.extract_exif_date(image_data)
    latitude, longitude = coordinates if coordinates else (None, None)
    metadata = {
        "latitude": latitude,
        "longitude": longitude,
        "creationDate": taken_at.isoformat() if taken_at else None,
    }
    photo = photo_service.ingest(image_data, metadata, filename=path.name, user_id=uploader)
    logger.info("upload_successful", filename=path.name, photo_id=photo.filename)
    return True


@task(
    help={
        "fix": "Delete orphaned blobs and remove dangling metadata entries.",
        "env_file": "Path to the environment file. Default is '.env'.",
    }
)
def reconcile(c: Context, fix: bool = False, env_file: str = ".env") -> None:
    """Report (and optionally repair) differences between blobs and the metadata document."""
    _load_env(env_file)

    storage_service = StorageService()
    metadata_store = MetadataStore(storage_service)
    report = find_inconsistencies(storage_service, metadata_store)

    logger.info(
        "reconcile_report",
        orphaned_blobs=len(report.orphaned_blobs),
        dangling_entries=len(report.dangling_entries),
    )
    for photo_id in report.orphaned_blobs:
        print(f"orphaned blob:   {IMAGE_PREFIX}{photo_id}")
    for photo_id in report.dangling_entries:
        print(f"dangling entry:  {photo_id}")

    if report.is_consistent:
        print("Blobs and metadata are consistent.")
        return

    if fix:
        repair_inconsistencies(report, storage_service, metadata_store)
        print("Repaired.")
    else:
        print("Run with --fix to repair.")


@task(
    help={
        "directory": "Path to the directory containing images.",
        "uploader": "Uploader email; must be on ALLOWED_UPLOADERS.",
        "recursive": "Search for images in subdirectories.",
        "include_unlocated": "Also upload photos without an EXIF position.",
        "dry_run": "List files to be processed without uploading.",
        "env_file": "Path to the environment file. Default is '.env'.",
    }
)
def batch_upload(
    c: Context,
    directory: str,
    uploader: str,
    recursive: bool = False,
    include_unlocated: bool = False,
    dry_run: bool = False,
    env_file: str = ".env",
) -> None:
    """Upload images from a local directory, positioned by their EXIF GPS data."""
    _load_env(env_file)

    if not os.path.isdir(directory):
        logger.error("directory_not_found", directory=directory)
        return

    AuthorizationPolicy.from_config().ensure_uploader(UserInfo(user_id=uploader, email=uploader), "batch_upload")

    image_files = find_image_files(directory, recursive=recursive)
    if not image_files:
        logger.warning("no_image_files_found", directory=directory)
        return

    logger.info("batch_upload_started", directory=directory, file_count=len(image_files), dry_run=dry_run)

    if dry_run:
        print("\n--- Dry Run Mode: Files to be processed ---")
        for path in image_files:
            print(f"- {path}")
        print("--- End of Dry Run ---")
        return

    photo_service = PhotoService()
    image_processor = photo_service.image_processor
    successful, skipped, failed = 0, 0, 0

    for path in image_files:
        try:
            if upload_file(path, photo_service, image_processor, uploader, require_location=not include_unlocated):
                successful += 1
            else:
                skipped += 1
        except (PhotoMapError, OSError) as e:
            logger.error("upload_failed", filename=path.name, error=str(e))
            failed += 1

    logger.info("batch_upload_finished", successful=successful, skipped=skipped, failed=failed)
    print(f"\nBatch upload complete. Successful: {successful}, Skipped: {skipped}, Failed: {failed}")


ns = Collection(reconcile, batch_upload)

program = Program(namespace=ns, version=__version__, name="photomap-tasks")
