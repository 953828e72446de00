"""Exceptions raised by model definition and history tracking."""

READ_ONLY_MESSAGE = "This is a read-only history database. You aren't allowed to modify it."


class ShadowBaseError(Exception):
    """Base class for all ShadowBase errors."""
    pass


class ModelDefinitionError(ShadowBaseError):
    """Raised when a model or association definition is invalid."""
    pass


class SchemaDerivationError(ShadowBaseError):
    """Raised at setup when a history schema cannot be derived from a live model."""
    def __init__(self, message: str, model_name: str | None = None):
        self.model_name = model_name
        super().__init__(f"{model_name}: {message}" if model_name else message)


class HistoryConfigError(SchemaDerivationError):
    """Raised at setup when history options are unknown or invalid."""
    pass


class ReadOnlyViolation(ShadowBaseError):
    """Raised before any write to a history model executes."""
    def __init__(self, model_name: str | None = None):
        self.model_name = model_name
        super().__init__(READ_ONLY_MESSAGE)


class SnapshotWriteFailure(ShadowBaseError):
    """Raised when persisting a snapshot fails in blocking mode.

    The underlying persistence error is chained as ``__cause__``.
    """
    def __init__(self, model_name: str, row_count: int = 1):
        self.model_name = model_name
        self.row_count = row_count
        super().__init__(f"Failed to write {row_count} snapshot row(s) to {model_name}")
