"""Per-model history tracking options."""

from typing import Any, Callable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from shadowbase.core.config import Settings, get_settings
from shadowbase.domain.exceptions import HistoryConfigError


class HistoryOptions(BaseModel):
    """Options recognized by ``attach_history``.

    Attributes:
        blocking: The triggering write awaits the snapshot write.
        full: Snapshot post-write state via after-hooks on every mutation
              kind, instead of pre-write state on update/destroy only.
        model_suffix: Appended to the live model name to name the history model.
        index_suffix: Appended to every index copied onto the history table.
        deleted_column_name: Name of the deleted marker attribute.
        add_associations: Mirror the live model's associations at sync time.
        allow_transactions: Snapshot writes join the triggering transaction.
        on_snapshot_error: Called with the error when a detached
                           (non-blocking) snapshot write fails.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    blocking: bool = True
    full: bool = False
    model_suffix: str = Field(default="History", min_length=1)
    index_suffix: str = "_history"
    deleted_column_name: str = Field(default="history_deleted", min_length=1)
    add_associations: bool = False
    allow_transactions: bool = True
    on_snapshot_error: Optional[Callable[[BaseException], Any]] = None

    @classmethod
    def defaults(cls, settings: Settings | None = None) -> dict[str, Any]:
        """Process-wide defaults taken from settings."""
        settings = settings or get_settings()
        return {
            "blocking": settings.history_blocking,
            "full": settings.history_full,
            "model_suffix": settings.history_model_suffix,
            "index_suffix": settings.history_index_suffix,
            "deleted_column_name": settings.history_deleted_column_name,
            "add_associations": settings.history_add_associations,
            "allow_transactions": settings.history_allow_transactions,
        }

    @classmethod
    def resolve(
        cls,
        config: Union["HistoryOptions", Mapping[str, Any], None] = None,
        **overrides: Any,
    ) -> "HistoryOptions":
        """Build options from settings defaults, a config, and overrides.

        Raises:
            HistoryConfigError: If a key is unknown or a value is invalid.
        """
        if isinstance(config, HistoryOptions):
            data = config.model_dump()
        else:
            data = cls.defaults()
            data.update(config or {})
        data.update(overrides)

        try:
            return cls(**data)
        except ValidationError as e:
            raise HistoryConfigError(f"Invalid history options: {e}") from e
