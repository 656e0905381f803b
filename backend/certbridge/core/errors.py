"""Error Hierarchy - typed, categorized exceptions for every certbridge failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - to_response() produces the JSON envelope used by the admin-facing routes
    - ProtocolError never leaves the gateway: it is rendered as an XML envelope there
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with CertBridgeError base: FastAPI global handler catches all
      (ADR: uniform error shape)
    - ProtocolErrorKind carries the wire code and HTTP status, so the error class and
      the envelope can never disagree about either
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    STORAGE = "storage"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"


class ProtocolErrorKind(str, Enum):
    """Gateway failure kinds. Value is the numeric ErrorCode sent on the wire."""
    AUTHENTICATION_FAILURE = "401"
    MALFORMED_REQUEST = "400"
    NOT_FOUND = "404"
    UPSTREAM_STORAGE_FAILURE = "502"
    INTERNAL_ERROR = "500"

    @property
    def http_status(self) -> int:
        # Only authentication failures surface at the transport level
        if self is ProtocolErrorKind.AUTHENTICATION_FAILURE:
            return 401
        return 200


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    record_id: str | None = None
    holder_id: str | None = None
    message_type: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class CertBridgeError(Exception):
    """Base exception for all certbridge errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "record_id": self.context.record_id,
                    "holder_id": self.context.holder_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Protocol Errors (rendered as XML by the gateway) ───────────

class ProtocolError(CertBridgeError):
    """Failure inside the locker pull protocol."""
    def __init__(
        self,
        kind: ProtocolErrorKind,
        message: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, kind.name, category, severity, context, kind.http_status,
        )
        self.kind = kind


class AuthenticationFailure(ProtocolError):
    """Request signature missing, invalid, or no secret configured."""
    def __init__(self, message: str = "Unauthorized request", context: ErrorContext | None = None):
        super().__init__(
            ProtocolErrorKind.AUTHENTICATION_FAILURE, message,
            ErrorCategory.AUTHENTICATION, ErrorSeverity.WARNING, context,
        )


class MalformedRequest(ProtocolError):
    """Request body is not a recognizable protocol message."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            ProtocolErrorKind.MALFORMED_REQUEST, message,
            ErrorCategory.VALIDATION, ErrorSeverity.WARNING, context,
        )


class DocumentNotFound(ProtocolError):
    """No record matches the requested holder or reference."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            ProtocolErrorKind.NOT_FOUND, message,
            ErrorCategory.RESOURCE_NOT_FOUND, ErrorSeverity.INFO, context,
        )


class UpstreamStorageFailure(ProtocolError):
    """Artifact could not be read from the object store."""
    def __init__(
        self, message: str = "Failed to retrieve certificate",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            ProtocolErrorKind.UPSTREAM_STORAGE_FAILURE, message,
            ErrorCategory.STORAGE, ErrorSeverity.CRITICAL, context,
        )


class InternalProtocolError(ProtocolError):
    """Anything else. Message is generic; the cause goes to the log only."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            ProtocolErrorKind.INTERNAL_ERROR, "Internal server error",
            ErrorCategory.INTERNAL, ErrorSeverity.CRITICAL, context,
        )


# ─── Domain Errors (400-level) ──────────────────────────────────

class IssuanceError(CertBridgeError):
    """A single record could not be issued. Never aborts a batch."""


class RenderError(IssuanceError):
    """A field required on the certificate is empty."""
    def __init__(self, field_name: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cannot render certificate: '{field_name}' is empty",
            "RENDER_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 422,
        )
        self.field = field_name


class IdentityFieldMissingError(IssuanceError):
    """An identity field feeding the external reference is empty."""
    def __init__(self, field_name: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cannot derive external reference: '{field_name}' is empty",
            "IDENTITY_FIELD_MISSING", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 422,
        )
        self.field = field_name


class ImportFormatError(CertBridgeError):
    """Uploaded spreadsheet cannot be read or lacks required columns."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "IMPORT_FORMAT_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class ObjectStoreError(CertBridgeError):
    """Base for object store failures."""


class ArtifactNotFoundError(ObjectStoreError):
    """No object stored under the key."""
    def __init__(self, key: str, context: ErrorContext | None = None):
        super().__init__(
            f"Artifact '{key}' not found in object store",
            "ARTIFACT_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.key = key


class StoreUnavailableError(ObjectStoreError):
    """Object store transport, auth, or retry-exhaustion failure."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Object store {operation} failed: {message}",
            "STORE_UNAVAILABLE", ErrorCategory.STORAGE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class DatabaseError(CertBridgeError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class ConcurrencyError(CertBridgeError):
    """Concurrent modification detected."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


class PartnerAPIError(CertBridgeError):
    """Partner issuance API call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Partner API error ({api_error_type}): {message}",
            "PARTNER_API_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.api_error_type = api_error_type
