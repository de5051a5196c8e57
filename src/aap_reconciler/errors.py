"""Error taxonomy for controller operations.

Every failure coming out of the CRUD layer is one of:

- TransportError: connection refused, reset or timed out (caller may retry)
- NotFound: the controller answered 404
- RemoteError: any other 4xx/5xx (ValidationError for 400, ConflictError for 409)
- DecodeError: the response body was not the JSON object we expected

Client-side errors (raised before a request is issued) live here too so that
callers can catch ControllerError for everything the engine raises.
"""
from typing import Any, Optional

import httpx


class ControllerError(Exception):
    """Base class for all errors raised by the reconciliation engine."""

    retryable = False

    def __init__(
        self,
        message: str,
        method: str = "",
        path: str = "",
        body: str = "",
    ):
        self.method = method
        self.path = path
        self.body = body
        super().__init__(message)

    @property
    def operation(self) -> str:
        """Remote operation that failed, e.g. ``POST /organizations/``."""
        return f"{self.method} {self.path}".strip()


class TransportError(ControllerError):
    """Network-level failure: no HTTP response was received."""

    retryable = True

    def __init__(self, method: str, path: str, cause: Exception):
        self.cause = cause
        super().__init__(
            f"{method} {path} failed: {type(cause).__name__}: {cause}",
            method=method,
            path=path,
        )


class NotFound(ControllerError):
    """The addressed object does not exist on the controller."""

    status = 404

    def __init__(self, method: str, path: str, body: str = ""):
        super().__init__(
            f"{method} {path} returned 404 Not Found: {body}",
            method=method,
            path=path,
            body=body,
        )


class RemoteError(ControllerError):
    """The controller rejected the request with a 4xx/5xx status."""

    def __init__(self, method: str, path: str, status: int, body: str = ""):
        self.status = status
        super().__init__(
            f"{method} {path} returned {status}: {body}",
            method=method,
            path=path,
            body=body,
        )

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status >= 500


class ValidationError(RemoteError):
    """400 Bad Request, usually a body describing invalid fields."""


class ConflictError(RemoteError):
    """409 Conflict, e.g. a name already taken within an organization."""


class DecodeError(ControllerError):
    """Response did not match the expected shape. Never retryable."""

    def __init__(self, method: str, path: str, body: str, reason: str):
        self.reason = reason
        super().__init__(
            f"{method} {path} returned an undecodable response ({reason}): {body}",
            method=method,
            path=path,
            body=body,
        )


# --- Client-side errors ---

class InvalidReference(ControllerError):
    """A foreign reference could not be parsed into an object id."""

    def __init__(self, field: str, raw: Any):
        self.field = field
        self.raw = raw
        super().__init__(f"Invalid reference for '{field}': {raw!r}")


class MissingRequiredFields(ControllerError):
    """A record is missing fields the controller requires."""

    def __init__(self, resource: str, fields: list[str]):
        self.resource = resource
        self.fields = fields
        super().__init__(
            f"{resource} is missing required field(s): {', '.join(fields)}"
        )


class IdentityError(ControllerError):
    """Operation attempted on a record with the wrong identity state."""


class ConfigError(ControllerError):
    """Controller connection settings are missing or invalid."""


# --- Classification ---

STATUS_ERRORS: dict[int, type[RemoteError]] = {
    400: ValidationError,
    409: ConflictError,
}


def classify_response(
    method: str,
    path: str,
    status: int,
    body: str,
) -> Optional[ControllerError]:
    """Map an HTTP status to an error, or None for 2xx/3xx.

    Args:
        method: HTTP method of the request
        path: Request path (without host)
        status: HTTP status code
        body: Raw response body text, kept verbatim

    Returns:
        The error to raise, or None if the status means success
    """
    if status < 400:
        return None
    if status == 404:
        return NotFound(method, path, body)
    error_class = STATUS_ERRORS.get(status, RemoteError)
    return error_class(method, path, status, body)


def classify_transport_exception(
    method: str,
    path: str,
    exc: Exception,
) -> ControllerError:
    """Wrap an exception raised while talking to the controller."""
    if isinstance(exc, ControllerError):
        return exc
    if isinstance(exc, (httpx.TransportError, OSError, TimeoutError)):
        return TransportError(method, path, exc)
    # Anything else is a protocol problem, not a network one
    return DecodeError(method, path, "", f"{type(exc).__name__}: {exc}")


def is_retryable(exc: BaseException) -> bool:
    """Whether a caller-side retry of the failed operation makes sense."""
    return isinstance(exc, ControllerError) and bool(exc.retryable)
