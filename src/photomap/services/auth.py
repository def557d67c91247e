"""Authentication and uploader authorization for photomap application.

Sign-in is handled by Cloud IAP in front of the app: IAP runs the OAuth
flow with the identity provider and forwards a signed assertion carrying
the user's email on every request. This module only reads that identity
and decides whether the email may upload or delete photos.
"""

import base64
import html
import json
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from ..config import get_allowed_uploaders, get_iap_audience
from ..error_handling import AuthenticationError, AuthorizationError
from ..logging_config import get_logger, log_error, log_security_event, log_user_action

logger = get_logger(__name__)

IAP_PUBLIC_KEYS_URL = "https://www.gstatic.com/iap/verify/public_key"


@dataclass
class UserInfo:
    """Represents authenticated user information from Cloud IAP."""

    user_id: str
    email: str
    name: str | None = None
    picture: str | None = None


@dataclass(frozen=True)
class AuthorizationPolicy:
    """Allow-list of emails permitted to upload and delete photos.

    Built once at process start and handed to the request handlers.
    """

    allowed_emails: frozenset[str]

    @classmethod
    def from_emails(cls, emails: Iterable[str]) -> "AuthorizationPolicy":
        normalized = {email.strip().lower() for email in emails}
        normalized.discard("")
        return cls(allowed_emails=frozenset(normalized))

    @classmethod
    def from_string(cls, value: str) -> "AuthorizationPolicy":
        """Parse a comma-separated allow-list."""
        return cls.from_emails(value.split(","))

    @classmethod
    def from_config(cls) -> "AuthorizationPolicy":
        policy = cls.from_string(get_allowed_uploaders())
        logger.info("authorization_policy_loaded", allowed_uploader_count=len(policy.allowed_emails))
        return policy

    def is_allowed_uploader(self, email: str | None) -> bool:
        if not email:
            return False
        return email.strip().lower() in self.allowed_emails

    def ensure_uploader(self, user: UserInfo | None, operation: str) -> UserInfo:
        """
        Return the user when it may perform a mutating operation.

        Raises:
            AuthenticationError: If there is no authenticated user
            AuthorizationError: If the user's email is not on the allow-list
        """
        if user is None:
            raise AuthenticationError(
                f"Authentication required for {operation}",
                code="user_not_authenticated",
                details={"operation": operation},
            )
        if not self.is_allowed_uploader(user.email):
            raise AuthorizationError(
                f"User {user.email} is not an allowed uploader",
                code="uploader_not_allowed",
                details={"operation": operation, "user_email": user.email},
            )
        return user


class CloudIAPAuthService:
    """Service for reading the Cloud IAP identity of a request."""

    IAP_HEADER_NAME = "X-Goog-IAP-JWT-Assertion"

    def __init__(self, audience: str | None = None) -> None:
        """
        Initialize the Cloud IAP authentication service.

        Args:
            audience: Expected IAP audience. When set, assertions are verified
                against the IAP public keys; otherwise only decoded.
        """
        self._development_mode = self._is_development_mode()
        self.audience = audience if audience is not None else get_iap_audience()

        if self._development_mode:
            logger.info("development_auth_mode_enabled", message="Using development authentication mode")
        elif not self.audience:
            logger.warning("iap_signature_verification_disabled", message="IAP_AUDIENCE is not configured")

    def _is_development_mode(self) -> bool:
        environment = os.getenv("ENVIRONMENT", "development").lower().strip()
        return environment in ["development", "dev", "local", "test"]

    def _get_development_user(self) -> UserInfo:
        """Get development user for local testing."""
        dev_email = os.getenv("DEV_USER_EMAIL", "dev@example.com")
        dev_name = os.getenv("DEV_USER_NAME", "Development User")
        dev_user_id = os.getenv("DEV_USER_ID", "dev-user-123")

        if not dev_email or "@" not in dev_email:
            logger.warning("invalid_dev_user_email", email=dev_email, message="Using default email")
            dev_email = "dev@example.com"

        return UserInfo(user_id=dev_user_id or "dev-user-123", email=dev_email, name=dev_name or None)

    def authenticate_request(self, headers: Mapping[str, str]) -> UserInfo | None:
        """
        Read the user of a request.

        Args:
            headers: Request headers (any case-insensitive or plain mapping)

        Returns:
            UserInfo | None: The user, or None when the request carries no valid identity
        """
        if self._development_mode:
            return self._get_development_user()

        jwt_token = _get_header(headers, self.IAP_HEADER_NAME)
        if not jwt_token:
            log_security_event("missing_iap_header")
            return None

        try:
            payload = self._verify_token(jwt_token) if self.audience else self._decode_jwt_payload(jwt_token)
            user_info = self._extract_user_info(payload)
        except Exception as e:
            log_error(e, {"operation": "authenticate_request"})
            log_security_event("authentication_failure", error=str(e))
            return None

        log_user_action(user_info.email, "authentication_success")
        return user_info

    def _verify_token(self, jwt_token: str) -> dict[str, Any]:
        """Verify signature, expiry and audience of an IAP assertion."""
        payload: dict[str, Any] = id_token.verify_token(
            jwt_token,
            google_requests.Request(),
            audience=self.audience,
            certs_url=IAP_PUBLIC_KEYS_URL,
        )
        return payload

    def _decode_jwt_payload(self, jwt_token: str) -> dict[str, Any]:
        """Decode JWT token payload without verifying it."""
        try:
            parts = jwt_token.split(".")
            if len(parts) != 3:
                raise ValueError("Invalid JWT token format")

            payload_b64 = parts[1]
            padding = 4 - len(payload_b64) % 4
            if padding != 4:
                payload_b64 += "=" * padding

            payload: dict[str, Any] = json.loads(base64.urlsafe_b64decode(payload_b64).decode("utf-8"))
            return payload
        except (ValueError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValueError(f"Failed to decode JWT payload: {e}") from e

    def _extract_user_info(self, payload: dict[str, Any]) -> UserInfo:
        email = payload.get("email")
        sub = payload.get("sub")

        if not email:
            raise ValueError("Email not found in JWT payload")
        if not sub:
            raise ValueError("Subject (user ID) not found in JWT payload")

        name = payload.get("name")
        picture = payload.get("picture")
        return UserInfo(
            user_id=str(sub),
            email=str(email).strip(),
            name=html.escape(str(name)) if name else None,
            picture=str(picture) if picture else None,
        )


def _get_header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, header_value in headers.items():
            if key.lower() == lowered:
                return header_value
    return value


# Global instances, created once per process
_auth_service: CloudIAPAuthService | None = None
_authorization_policy: AuthorizationPolicy | None = None


def get_auth_service() -> CloudIAPAuthService:
    """Get the global authentication service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = CloudIAPAuthService()
    return _auth_service


def get_authorization_policy() -> AuthorizationPolicy:
    """Get the process-wide uploader policy."""
    global _authorization_policy
    if _authorization_policy is None:
        _authorization_policy = AuthorizationPolicy.from_config()
    return _authorization_policy
