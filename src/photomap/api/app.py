"""FastAPI application serving the photomap image routes.

Run with ``uvicorn photomap.api.app:app``.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..error_handling import PhotoMapError
from ..health import check_liveness, check_readiness
from ..logging_config import configure_structured_logging, get_logger
from ..services.auth import AuthorizationPolicy, CloudIAPAuthService, get_auth_service, get_authorization_policy
from ..services.photos import PhotoService, get_photo_service
from .dependencies import get_photo_service_dep
from .routes import router

logger = get_logger(__name__)


def create_app(
    photo_service: PhotoService | None = None,
    auth_service: CloudIAPAuthService | None = None,
    policy: AuthorizationPolicy | None = None,
) -> FastAPI:
    """
    Build the API application.

    Services left out are created on startup from configuration.
    """
    configure_structured_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.authorization_policy is None:
            app.state.authorization_policy = get_authorization_policy()
        if app.state.auth_service is None:
            app.state.auth_service = get_auth_service()
        if app.state.photo_service is None:
            app.state.photo_service = get_photo_service()
        logger.info("api_started", version=__version__)
        yield
        logger.info("api_stopped")

    app = FastAPI(title="photomap", description="Photo album image API", version=__version__, lifespan=lifespan)
    app.state.photo_service = photo_service
    app.state.auth_service = auth_service
    app.state.authorization_policy = policy

    @app.exception_handler(PhotoMapError)
    async def photomap_error_handler(request: Request, exc: PhotoMapError) -> JSONResponse:
        # Details were logged when the error was raised
        message = str(exc) if exc.is_client_error else "Internal server error"
        return JSONResponse({"error": message, "code": exc.code}, status_code=exc.http_status)

    app.include_router(router, prefix="/api")

    @app.get("/health")
    def health_check() -> dict[str, Any]:
        return check_liveness()

    @app.get("/health/ready")
    def readiness_check(service: PhotoService = Depends(get_photo_service_dep)) -> JSONResponse:
        result = check_readiness(service.storage_service, service.metadata_store)
        return JSONResponse(result, status_code=200 if result["status"] == "ready" else 503)

    return app


app = create_app()
