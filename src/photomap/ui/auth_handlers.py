"""Authentication handlers for photomap application."""

import streamlit as st
import structlog

from photomap.config import is_development
from photomap.services.auth import AuthorizationPolicy, CloudIAPAuthService, UserInfo

logger = structlog.get_logger()

IAP_SIGN_OUT_PATH = "/_gcp_iap/clear_login_cookie"


@st.cache_resource
def get_cached_auth_service() -> CloudIAPAuthService:
    """Authentication service shared by every session of the process."""
    return CloudIAPAuthService()


@st.cache_resource
def get_cached_policy() -> AuthorizationPolicy:
    """Uploader allow-list, parsed once per process."""
    return AuthorizationPolicy.from_config()


def _request_headers() -> dict[str, str]:
    if hasattr(st, "context") and hasattr(st.context, "headers"):
        return dict(st.context.headers)
    return {}


def authenticate_user() -> UserInfo | None:
    """
    Read the visitor's identity and store it in the session.

    Visitors without an identity can still browse the map.

    Returns:
        UserInfo | None: The signed-in user, if any
    """
    try:
        user = get_cached_auth_service().authenticate_request(_request_headers())
    except Exception as e:
        logger.error("authentication_error", error=str(e))
        user = None

    st.session_state.authenticated = user is not None
    st.session_state.user_id = user.user_id if user else None
    st.session_state.user_email = user.email if user else None
    st.session_state.is_uploader = get_cached_policy().is_allowed_uploader(user.email if user else None)
    return user


def get_current_user() -> UserInfo | None:
    """Identity stored by the last ``authenticate_user`` call."""
    if not st.session_state.get("authenticated"):
        return None
    return UserInfo(user_id=st.session_state.user_id, email=st.session_state.user_email)


def is_uploader() -> bool:
    return bool(st.session_state.get("is_uploader"))


def require_uploader(operation: str) -> UserInfo:
    """
    Check the current user may upload or delete.

    Raises:
        AuthenticationError: If nobody is signed in
        AuthorizationError: If the user is not on the allow-list
    """
    return get_cached_policy().ensure_uploader(get_current_user(), operation)


def sign_out_url() -> str | None:
    """IAP sign-out link; there is nothing to sign out of in development mode."""
    if is_development():
        return None
    return IAP_SIGN_OUT_PATH
