"""Exception hierarchy for the bulk importer.

Store backends translate their SDK errors into :class:`StoreError`
subclasses at the boundary, so the retry layer only ever has to look at
this module to decide whether a failure is worth another attempt.
"""

from __future__ import annotations


class BulkImportError(Exception):
    """Common base for every error raised by this package."""


class ConfigurationError(BulkImportError):
    """Raised when settings are missing or inconsistent."""


class ScriptResourceError(BulkImportError):
    """Raised when the packaged stored-procedure script cannot be read."""


class InvalidDocumentError(BulkImportError):
    """An input record cannot be imported as given (bad id or partition key)."""


# -- store collaborator errors ------------------------------------------------


class StoreError(BulkImportError):
    """An error reported by the remote document store.

    Parameters
    ----------
    message:
        Remote (or transport) error message.
    status_code:
        HTTP-like status code when the backend exposes one.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"HTTP {self.status_code}: {self.message}"


class TransientStoreError(StoreError):
    """Network failure, timeout, or generic service error worth retrying."""


class RateLimitedError(TransientStoreError):
    """The store throttled the request and suggested a wait in seconds."""

    def __init__(
        self,
        message: str,
        *,
        retry_after: float,
        status_code: int | None = 429,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class FatalStoreError(StoreError):
    """Malformed request, authorization failure, or other permanent error."""


class ResourceExistsError(FatalStoreError):
    """A create call collided with an existing resource of the same id."""


class ResourceNotFoundError(FatalStoreError):
    """A referenced resource does not exist."""


# -- orchestration errors -----------------------------------------------------


class RetryExhaustedError(BulkImportError):
    """A retryable failure persisted past the attempt or wait budget."""

    def __init__(self, description: str, attempts: int, last_error: BaseException | None) -> None:
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{description} failed after {attempts} attempt(s). Last error: {last_error}"
        )


class ResourceResolutionError(BulkImportError):
    """The target database, collection, or procedure could not be resolved."""


class CommittedCountError(BulkImportError):
    """The procedure response is not a usable committed-document count."""


class ZeroProgressError(BulkImportError):
    """A procedure call succeeded but reported that nothing was committed."""


class ChunkSubmissionError(BulkImportError):
    """Submitting one chunk failed; earlier chunks remain committed.

    Parameters
    ----------
    offset:
        Index of the first document of the failed chunk, counted in the
        partition-grouped submission order.
    chunk_size:
        Number of documents in the failed chunk.
    committed:
        Documents committed by earlier chunks of the same run.
    partition_key:
        Logical partition the failed chunk was sent to.
    """

    def __init__(
        self,
        message: str,
        *,
        offset: int,
        chunk_size: int,
        committed: int,
        partition_key: object = None,
    ) -> None:
        super().__init__(message)
        self.offset = offset
        self.chunk_size = chunk_size
        self.committed = committed
        self.partition_key = partition_key
