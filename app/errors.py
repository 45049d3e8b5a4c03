"""Error taxonomy shared by the ingestion, storage and scoring layers.

Every error carries the HTTP status it is reported with, so the API layer
can turn any of them into the ``{success: false, error: ...}`` envelope.
"""

from typing import Any


class PoolError(Exception):
    """Base class for all errors raised by the service."""

    status_code: int = 500


class ConfigurationError(PoolError):
    """A required setting (shared secret, provider list, ...) is missing or invalid."""

    status_code = 503


class AuthorizationError(PoolError):
    """The caller presented no credential or a wrong one."""

    status_code = 401


class ValidationError(PoolError):
    """An input batch is malformed. Raised before any write is attempted."""

    status_code = 400


class NotFoundError(PoolError):
    """A referenced entity does not exist."""

    status_code = 404


class DeadlinePassedError(PoolError):
    """Predictions are read-only once the prediction window has closed."""

    status_code = 403


class AcquisitionError(PoolError):
    """Every standings provider failed or returned incomplete data."""

    status_code = 502

    def __init__(
        self,
        message: str,
        last_error: BaseException | None = None,
        attempts: list[Any] | None = None,
    ):
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts or []

    def __str__(self) -> str:
        message = super().__str__()
        if self.last_error is not None:
            return f"{message}: {self.last_error}"
        return message


class StorageError(PoolError):
    """The backend is unreachable or a statement failed."""

    status_code = 500

    def __init__(self, message: str, unavailable: bool = False):
        super().__init__(message)
        self.unavailable = unavailable
        if unavailable:
            self.status_code = 503
