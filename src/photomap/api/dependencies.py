"""Request dependencies for the photomap HTTP API."""

from fastapi import Depends, Request

from ..services.auth import (
    AuthorizationPolicy,
    CloudIAPAuthService,
    UserInfo,
    get_auth_service,
    get_authorization_policy,
)
from ..services.photos import PhotoService, get_photo_service


def get_photo_service_dep(request: Request) -> PhotoService:
    service = getattr(request.app.state, "photo_service", None)
    return service if service is not None else get_photo_service()


def get_auth_service_dep(request: Request) -> CloudIAPAuthService:
    service = getattr(request.app.state, "auth_service", None)
    return service if service is not None else get_auth_service()


def get_policy(request: Request) -> AuthorizationPolicy:
    policy = getattr(request.app.state, "authorization_policy", None)
    return policy if policy is not None else get_authorization_policy()


def get_current_user(
    request: Request, auth_service: CloudIAPAuthService = Depends(get_auth_service_dep)
) -> UserInfo | None:
    """Identity of the request, None when anonymous."""
    return auth_service.authenticate_request(request.headers)


def require_uploader(
    request: Request,
    user: UserInfo | None = Depends(get_current_user),
    policy: AuthorizationPolicy = Depends(get_policy),
) -> UserInfo:
    """
    Allow only uploaders through.

    Raises:
        AuthenticationError: If the request has no identity
        AuthorizationError: If the identity is not on the allow-list
    """
    return policy.ensure_uploader(user, operation=f"{request.method} {request.url.path}")
