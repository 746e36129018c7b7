"""Errors raised by the backend adapter.

Every error carries a human readable ``message`` plus a ``details`` dict so
callers can log it in a structured way. Endpoints placed in messages or
details are always redacted before the error is built.
"""

from typing import Any, Optional

# Response bodies copied into UnexpectedStatusError are capped to this size
MAX_BODY_EXCERPT = 1024


class DatasourceError(Exception):
    """Base class for all query backend errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = dict(details or {})
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to a dictionary for logging or display."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class UnsupportedEngineError(DatasourceError):
    """The configured engine is not known to the adapter."""

    def __init__(self, engine: Any):
        self.engine = str(getattr(engine, "value", engine))
        super().__init__(f"engine not found: {self.engine!r}", {"engine": self.engine})


class UnsupportedOperationError(DatasourceError):
    """The engine does not support the requested operation."""

    def __init__(self, engine: Any, operation: str):
        self.engine = str(getattr(engine, "value", engine))
        self.operation = operation
        super().__init__(
            f"{self.engine!r} is not supported for {operation}",
            {"engine": self.engine, "operation": operation},
        )


class MissingParameterError(DatasourceError):
    """A required query parameter was not supplied."""

    def __init__(self, parameter: str):
        self.parameter = parameter
        super().__init__(f"{parameter} param is missing", {"parameter": parameter})


class RequestBuildError(DatasourceError):
    """The request could not be constructed, e.g. a malformed endpoint."""


class TransportError(DatasourceError):
    """The backend could not be reached."""

    def __init__(self, endpoint: str, cause: BaseException):
        self.endpoint = endpoint
        self.cause = cause
        super().__init__(
            f"error getting response from {endpoint}: {cause}",
            {"endpoint": endpoint, "cause": type(cause).__name__},
        )


class UnexpectedStatusError(DatasourceError):
    """The backend answered with a non-200 status code."""

    def __init__(self, status_code: int, endpoint: str, body: str):
        self.status_code = status_code
        self.endpoint = endpoint
        self.body = body[:MAX_BODY_EXCERPT]
        super().__init__(
            f"unexpected response code {status_code} for {endpoint}. Response body {self.body}",
            {"status_code": status_code, "endpoint": endpoint},
        )


class ParseError(DatasourceError):
    """The response payload could not be turned into metrics."""
