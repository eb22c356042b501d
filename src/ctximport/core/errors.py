"""Error taxonomy for the import pipeline.

Only ConfigError is allowed to escape a public API (from importer
constructors). Everything else is caught by the importers and reported in
an ImportResult or ConnectionStatus.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import ValidationError

# User-facing messages for non-2xx responses from remote APIs
_STATUS_MESSAGES: dict[int, str] = {
    400: "Bad request: the query was rejected by the server",
    401: "Authentication failed: check the username and API token",
    403: "Access forbidden: the credentials lack permission for this resource",
    404: "Not found: the requested resource does not exist",
    429: "Rate limited: too many requests, try again later",
    500: "Remote server error",
}


class ContextImportError(Exception):
    """Base class for every pipeline error."""


@dataclass
class FieldError:
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ConfigError(ContextImportError):
    """Raised at construction time when credentials or config are unusable."""

    def __init__(self, source: str, field_errors: list[FieldError]):
        self.source = source
        self.field_errors = field_errors
        details = "; ".join(str(e) for e in field_errors) or "invalid configuration"
        super().__init__(f"Invalid {source} configuration: {details}")

    @classmethod
    def from_validation(cls, source: str, exc: ValidationError) -> ConfigError:
        errors = [
            FieldError(
                field=".".join(str(part) for part in err["loc"]) or "config",
                message=err["msg"],
            )
            for err in exc.errors()
        ]
        return cls(source, errors)


class QueryValidationError(ContextImportError):
    """A query failed validation before any network call."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid query: " + "; ".join(errors))


class FileValidationError(ContextImportError):
    """An uploaded file was rejected (size or type)."""


class UnsupportedFileTypeError(FileValidationError):
    def __init__(self, mime_type: str, filename: str = ""):
        self.mime_type = mime_type
        self.filename = filename
        label = mime_type or "unknown"
        super().__init__(f"Unsupported file type: {label}")


class NetworkError(ContextImportError):
    """The server could not be reached, answered too slowly, or the call was cancelled."""

    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"

    def __init__(self, kind: str, url: str = "", detail: str = ""):
        self.kind = kind
        self.url = url
        self.detail = detail
        if kind == self.TIMEOUT:
            msg = "Server too slow: the request timed out"
        elif kind == self.CANCELLED:
            msg = "Request cancelled"
        else:
            msg = "Cannot reach server: check the URL and network connection"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class RemoteAPIError(ContextImportError):
    """A remote API answered with a non-2xx status."""

    def __init__(
        self,
        status: int,
        detail: str = "",
        reset_at: str | None = None,
        rate_limited: bool = False,
    ):
        self.status = status
        self.detail = detail
        self.reset_at = reset_at
        self.rate_limited = rate_limited or status == 429
        super().__init__(status_message(status, detail, reset_at, self.rate_limited))


def status_message(
    status: int,
    detail: str = "",
    reset_at: str | None = None,
    rate_limited: bool = False,
) -> str:
    """Map an HTTP status code to the message shown to users.

    GitHub reports an exhausted quota as 403 with X-RateLimit-Remaining: 0,
    so callers pass ``rate_limited`` to get the 429 wording for it.
    """
    if rate_limited:
        msg = _STATUS_MESSAGES[429]
    elif status in _STATUS_MESSAGES:
        msg = _STATUS_MESSAGES[status]
    elif 500 <= status < 600:
        msg = _STATUS_MESSAGES[500]
    else:
        msg = "Remote API request failed"
    msg = f"{msg} (HTTP {status})"
    if rate_limited and reset_at:
        msg += f", resets at {reset_at}"
    if detail:
        msg += f": {detail[:300]}"
    return msg
