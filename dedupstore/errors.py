"""
Error Taxonomy

Every failure a FileService operation can surface derives from
FileServiceError, so callers (REST layer, CLI) can map them in one place:

| Error              | Cause                                         | Retry |
|--------------------|-----------------------------------------------|-------|
| ValidationError    | Missing/invalid input (filename, fileId, ...) | No    |
| NotFoundError      | Unknown fileId, or no blob for its hash       | No    |
| PersistenceError   | Durable store / filter snapshot I/O failure   | No    |
| RemoteArchiveError | Object store upload/list/head failure         | No    |
"""


class FileServiceError(Exception):
    """Base class for all file service errors."""


class ValidationError(FileServiceError):
    """Required input is missing or malformed."""


class UnsupportedDeliveryError(ValidationError):
    """The delivery path is reserved but not available yet."""


class NotFoundError(FileServiceError):
    """A file ID or blob could not be resolved."""


class PersistenceError(FileServiceError):
    """
    The durable store or the filter snapshot could not be read or written.

    Always fatal for the current operation: a missed snapshot save leaves
    the in-memory index out of sync with durable state.
    """


class RemoteArchiveError(FileServiceError):
    """The remote archive rejected or failed an operation."""
