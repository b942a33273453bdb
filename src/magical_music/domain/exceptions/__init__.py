"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so handlers can inspect it without parsing
    # str(exception). Always raise a specific subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class InvalidStateException(DomainException):
    """Raised when something is in an invalid state for the requested operation.

    Example: moving the server from `terminated` back to `listening`.
    """

    def __init__(self, message: str, current_state: Any = None, target_state: Any = None) -> None:
        super().__init__(message)
        self.current_state = current_state
        self.target_state = target_state


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.

    HTTP Status: 503 (Service Unavailable)

    Example:
        raise ConfigurationError("Invalid cleanup schedule: '61 * * * *'")
    """

    pass


class StartupError(DomainException):
    """The process cannot start serving.

    Raised from the lifespan under the fail-fast policy. uvicorn never binds
    the listener when this escapes startup.
    """

    pass


class DatabaseUnavailableError(DomainException):
    """The database could not be reached or did not answer the probe query.

    HTTP Status: 503
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class UploadRejectedError(DomainException):
    """A multipart upload was refused before reaching the handler.

    The status_code is the HTTP status the staging middleware answers with
    (413 for oversized files, 408 for a stalled upload, 400 for broken bodies).
    """

    def __init__(self, message: str, status_code: int = 400, field_name: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.field_name = field_name


__all__ = [
    "ConfigurationError",
    "DatabaseUnavailableError",
    "DomainException",
    "InvalidStateException",
    "StartupError",
    "UploadRejectedError",
]
