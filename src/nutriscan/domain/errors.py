"""Domain error types."""


class NutriscanError(Exception):
    """Base class for nutriscan errors."""


class ValidationError(NutriscanError):
    """Raised when a nutrient profile is malformed."""


class PersistenceError(NutriscanError):
    """Raised when the queue snapshot could not be written."""


class SyncError(NutriscanError):
    """Remote sink submission failure for a single record."""

    def __init__(self, record_id: str, cause: BaseException) -> None:
        super().__init__(f"Failed to submit record {record_id}: {cause}")
        self.record_id = record_id
        self.cause = cause


class CorruptSnapshotError(NutriscanError):
    """Raised when a persisted queue snapshot cannot be parsed."""
