"""History setup for a live model."""

from typing import Any, Mapping, Optional, Union

from shadowbase.core.logging import get_logger
from shadowbase.domain.entities import HistoryOptions
from shadowbase.domain.exceptions import SchemaDerivationError
from shadowbase.domain.services.schema_deriver import derive_history_schema, history_model_name
from shadowbase.infrastructure.history.interceptor import MutationInterceptor
from shadowbase.infrastructure.persistence.model import Model
from shadowbase.infrastructure.persistence.model_registry import ModelRegistry

logger = get_logger(__name__)


def attach_history(
    live: Model,
    registry: ModelRegistry,
    config: Optional[Union[HistoryOptions, Mapping[str, Any]]] = None,
    **overrides: Any,
) -> Model:
    """Track every mutation of ``live`` in a parallel history model.

    Defines ``<name><model_suffix>`` through ``registry`` and wires the
    snapshot hooks onto both models. Call it before ``registry.sync()`` so
    the history table is created with the others.

    Args:
        live: Model to track.
        registry: Registry the history model is defined through.
        config: History options, as a HistoryOptions or a mapping. Keys
                not given fall back to the ``SHADOWBASE_HISTORY_*`` settings.
        **overrides: Individual options, applied last.

    Returns:
        The live model, with ``history_model`` and ``history_tracker`` set.

    Raises:
        HistoryConfigError: If an option is unknown or invalid.
        SchemaDerivationError: If the history model cannot be derived, or
            the live model is already tracked.
    """
    options = HistoryOptions.resolve(config, **overrides)

    if live.history_model is not None:
        raise SchemaDerivationError("history is already attached", live.name)
    if live.origin_model is not None:
        raise SchemaDerivationError("a history model cannot itself be tracked", live.name)

    name = history_model_name(live.name, options)
    if name in registry:
        raise SchemaDerivationError(f"model '{name}' is already defined", live.name)

    schema = derive_history_schema(
        live.attributes,
        live.options,
        options,
        source_table=live.table_name,
    )
    history = registry.define(name, schema.attributes, schema.options)
    history.origin_model = live
    live.history_model = history

    tracker = MutationInterceptor(live, history, options)
    tracker.attach()
    live.history_tracker = tracker

    logger.info(
        "History model attached",
        live_model=live.name,
        history_model=history.name,
        history_table=history.table_name,
        blocking=options.blocking,
        full=options.full,
        live_hook_count=len(tracker.live_wiring()),
        history_hook_count=len(tracker.history_wiring()),
    )
    return live
