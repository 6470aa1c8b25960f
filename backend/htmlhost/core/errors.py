"""
Typed failures raised by the ingestion, slug and lifecycle code.

Every error carries a stable ``reason`` code, the HTTP status the API layer
answers with, and whether the caller may retry the same request.
"""


class HostingError(Exception):
    reason = "error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])

    def to_payload(self) -> dict:
        payload = {
            "success": False,
            "error": self.message,
            "reason": self.reason,
            "retryable": self.retryable,
        }
        if self.errors:
            payload["errors"] = self.errors
        return payload


# 输入错误：不重试
class InvalidInput(HostingError):
    reason = "invalid_input"
    status_code = 400


class InvalidSlug(InvalidInput):
    reason = "invalid_slug"


class InvalidDocument(InvalidInput):
    reason = "invalid_document"


class MissingEntryPoint(InvalidInput):
    reason = "missing_entry_point"


class SizeLimitExceeded(InvalidInput):
    reason = "size_limit_exceeded"


class BundleRejected(InvalidInput):
    reason = "bundle_rejected"


# 冲突：调用方可以换一个 slug
class Conflict(HostingError):
    reason = "conflict"
    status_code = 409


class SlugConflict(Conflict):
    reason = "slug_conflict"

    def __init__(self, message: str, slug: str | None = None, reserved: bool = False):
        super().__init__(message)
        self.slug = slug
        self.reserved = reserved
        if reserved:
            self.reason = "slug_reserved"


class AllocationExhausted(HostingError):
    reason = "allocation_exhausted"
    status_code = 503
    retryable = True


class ExtractionFailed(HostingError):
    reason = "extraction_failed"
    status_code = 500


class NotFound(HostingError):
    reason = "not_found"
    status_code = 404


class Forbidden(HostingError):
    reason = "forbidden"
    status_code = 403


class Internal(HostingError):
    reason = "internal"
    status_code = 500
    retryable = True

    def __init__(self, message: str = "Internal error"):
        super().__init__(message)


class ContentExpired(NotFound):
    reason = "expired"
    status_code = 410
