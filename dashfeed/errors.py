from __future__ import annotations

from fastapi import status

from dashfeed.schemas import ErrorCode, ErrorDetail, ErrorResponse


class DashError(Exception):
    """Base for errors that map onto a client-visible status."""

    code = ErrorCode.INTERNAL_ERROR
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def detail(self) -> ErrorDetail:
        return ErrorDetail(code=self.code, message=self.message, hint=self.hint)


class ValidationError(DashError):
    """Missing or invalid request parameters. Raised before any cache access."""

    code = ErrorCode.INVALID_REQUEST
    http_status = status.HTTP_400_BAD_REQUEST


class UpstreamError(DashError):
    """A provider failed or returned an unusable shape. Never cached."""

    code = ErrorCode.UPSTREAM_ERROR

    def __init__(self, provider: str, message: str, hint: str | None = None):
        super().__init__(f"{provider}: {message}", hint)
        self.provider = provider


class ConfigError(DashError):
    code = ErrorCode.MISCONFIGURED


# Store failures stay inside dashfeed.store: reads degrade to "absent",
# writes are logged and dropped.
class CacheReadError(Exception):
    pass


class CacheWriteError(Exception):
    pass


def envelope_from_dash_error(exc: DashError) -> ErrorResponse:
    return ErrorResponse(error=exc.detail())

