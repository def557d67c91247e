"""
Centralized error classification for photomap application.

Every error raised by the services derives from PhotoMapError. The error
carries a category, a machine readable code, a user facing message and
structured details, and logs itself when it is created. The API layer turns
the category into an HTTP status; the UI shows the user message.
"""

from enum import Enum
from typing import Any

from .logging_config import get_logger, log_error, log_security_event

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification and handling."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    UPLOAD = "upload"
    IMAGE_PROCESSING = "image_processing"
    METADATA = "metadata"
    STORAGE = "storage"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Client errors map to 4xx, everything else is a server error
HTTP_STATUS_BY_CATEGORY = {
    ErrorCategory.AUTHENTICATION: 403,
    ErrorCategory.AUTHORIZATION: 403,
    ErrorCategory.UPLOAD: 400,
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.IMAGE_PROCESSING: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.METADATA: 500,
    ErrorCategory.STORAGE: 500,
    ErrorCategory.UNKNOWN: 500,
}


class PhotoMapError(Exception):
    """Base exception class for photomap application."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.category = category
        self.severity = severity
        self.code = code or f"{category.value}_error"
        self.user_message = user_message or self._generate_user_message()
        self.details = details or {}
        self.original_exception = original_exception

        self._log_error()

    @property
    def http_status(self) -> int:
        """HTTP status code for this error."""
        return HTTP_STATUS_BY_CATEGORY.get(self.category, 500)

    @property
    def is_client_error(self) -> bool:
        return self.http_status < 500

    def _generate_user_message(self) -> str:
        """Generate user-friendly error message."""
        user_messages = {
            ErrorCategory.AUTHENTICATION: "請先登入。",
            ErrorCategory.AUTHORIZATION: "您沒有執行此操作的權限。",
            ErrorCategory.UPLOAD: "上傳過程中發生錯誤，請稍後再試。",
            ErrorCategory.IMAGE_PROCESSING: "無法處理這張圖片，請確認檔案格式。",
            ErrorCategory.METADATA: "照片資料讀取失敗，請稍後再試。",
            ErrorCategory.STORAGE: "儲存空間發生錯誤，請稍後再試。",
            ErrorCategory.VALIDATION: "輸入的資料有誤，請再確認一次。",
            ErrorCategory.NOT_FOUND: "找不到指定的資料。",
            ErrorCategory.UNKNOWN: "發生未預期的錯誤。",
        }
        return user_messages.get(self.category, "發生錯誤。")

    def _log_error(self) -> None:
        """Log the error with appropriate level."""
        error_context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            **self.details,
        }

        if self.original_exception:
            error_context["original_exception"] = str(self.original_exception)

        if self.is_client_error:
            logger.warning("client_error", message=str(self), **error_context)
        else:
            log_error(self, error_context)

        if self.category in [ErrorCategory.AUTHENTICATION, ErrorCategory.AUTHORIZATION]:
            log_security_event(self.category.value, context=error_context)


class AuthenticationError(PhotoMapError):
    """No usable identity on the request."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHENTICATION,
            severity=ErrorSeverity.HIGH,
            code=code or "auth_failed",
            user_message=user_message,
            details=details,
            original_exception=original_exception,
        )


class AuthorizationError(PhotoMapError):
    """Identity is known but not on the uploader allow-list."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHORIZATION,
            severity=ErrorSeverity.HIGH,
            code=code or "access_denied",
            user_message=user_message,
            details=details,
            original_exception=original_exception,
        )


class ValidationError(PhotoMapError):
    """Validation-related errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            code=code or "validation_failed",
            user_message=user_message,
            details=details,
            original_exception=original_exception,
        )


class IngestionError(PhotoMapError):
    """Upload request is missing a required part."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.UPLOAD,
            severity=ErrorSeverity.LOW,
            code=code or "upload_incomplete",
            user_message=user_message or "請同時提供照片檔案與照片資訊。",
            details=details,
            original_exception=original_exception,
        )


class ImageProcessingError(PhotoMapError):
    """Image processing-related errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.IMAGE_PROCESSING,
            severity=ErrorSeverity.MEDIUM,
            code=code or "image_processing_failed",
            user_message=user_message,
            details=details,
            original_exception=original_exception,
        )


class MetadataError(PhotoMapError):
    """The metadata document could not be read or understood."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.METADATA,
            severity=ErrorSeverity.HIGH,
            code=code or "metadata_error",
            user_message=user_message,
            details=details,
            original_exception=original_exception,
        )


class StorageError(PhotoMapError):
    """Storage-related errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            code=code or "storage_error",
            user_message=user_message,
            details=details,
            original_exception=original_exception,
        )


class ObjectNotFoundError(PhotoMapError):
    """The requested object key does not exist in the bucket."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.LOW,
            code=code or "object_not_found",
            user_message=user_message or "找不到這張照片。",
            details=details,
            original_exception=original_exception,
        )
