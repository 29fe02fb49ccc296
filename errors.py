class StorageError(Exception):
    """Raised when the underlying storage engine fails (disk, quota, corruption)."""


class ValidationError(ValueError):
    """A payload was rejected before it reached the store."""


class ConsistencyWarning(UserWarning):
    """An aggregate recompute found a dangling reference.

    Emitted through ``warnings`` and logged, never raised. An empty aggregate
    (a list without items) is a valid state and does not trigger it.
    """


class CorruptStoreError(StorageError):
    """Stored data no longer matches the layout this code expects.

    The only storage failure bootstrap answers with a reset; transient
    failures stay plain ``StorageError`` and propagate.
    """
