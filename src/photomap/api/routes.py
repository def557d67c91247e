"""Image routes of the photomap HTTP API."""

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse

from ..error_handling import PhotoMapError
from ..logging_config import get_logger
from ..services.auth import UserInfo
from ..services.photos import PhotoService
from ..services.storage import IMMUTABLE_CACHE_CONTROL
from .dependencies import get_photo_service_dep, require_uploader

logger = get_logger(__name__)

router = APIRouter()

NO_STORE_CACHE_CONTROL = "no-store"


@router.get("/photos")
def list_photos(service: PhotoService = Depends(get_photo_service_dep)) -> JSONResponse:
    """The metadata document, never cached."""
    return JSONResponse(service.get_document(), headers={"Cache-Control": NO_STORE_CACHE_CONTROL})


@router.post("/image/upload")
def upload_image(
    file: UploadFile | None = File(None),
    metadata: str | None = Form(None),
    user: UserInfo = Depends(require_uploader),
    service: PhotoService = Depends(get_photo_service_dep),
) -> JSONResponse:
    """Store an uploaded photo and return its public URL and record."""
    image_data = file.file.read() if file is not None else None
    filename = file.filename if file is not None else None

    try:
        photo = service.ingest(image_data, metadata, filename=filename, user_id=user.email)
    except PhotoMapError as e:
        if e.is_client_error:
            raise
        return JSONResponse({"error": "Upload failed"}, status_code=500)

    return JSONResponse({"url": photo.src, "metadata": photo.to_dict()})


@router.get("/image/{filename}")
def get_image(filename: str, service: PhotoService = Depends(get_photo_service_dep)) -> StreamingResponse:
    """Stream a photo blob with long-lived caching."""
    stored = service.open_image(filename)

    headers = {"Cache-Control": IMMUTABLE_CACHE_CONTROL}
    if stored.size is not None:
        headers["Content-Length"] = str(stored.size)
    return StreamingResponse(stored.iter_chunks(), media_type=stored.content_type, headers=headers)


@router.delete("/image/{filename}")
def delete_image(
    filename: str,
    user: UserInfo = Depends(require_uploader),
    service: PhotoService = Depends(get_photo_service_dep),
) -> JSONResponse:
    """Delete a photo; metadata failures are logged and not reported."""
    try:
        service.delete_photo(filename, user_id=user.email)
    except PhotoMapError as e:
        if e.is_client_error:
            raise
        return JSONResponse({"error": "Delete failed"}, status_code=500)

    return JSONResponse({"message": "Deleted successfully"})
