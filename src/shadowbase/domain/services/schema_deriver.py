"""History schema derivation.

Derives the attribute set and table options of a history model from a
live model's. The history table is append-only and holds many rows per
live row, so it must not carry the live table's key, uniqueness, or
referential constraints:

- every copied attribute loses its key, uniqueness, index, custom
  accessor, and foreign key metadata;
- the two conventional timestamp attributes become plain timestamps with
  no default, so their values are copied from the live row;
- three own attributes are added: the ``hid`` surrogate key, the
  ``archived_at`` capture time, and the deleted marker;
- unique indexes are dropped and the others renamed with a suffix.

The function is pure: inputs are never modified and equal inputs give
equal outputs.
"""

from dataclasses import MISSING, fields, replace
from typing import Any, Mapping, NamedTuple, Optional

from sqlalchemy import BigInteger, Boolean, Integer

from shadowbase.domain.entities import (
    NOW,
    TIMESTAMP_TYPE,
    AttributeSpec,
    HistoryOptions,
    IndexSpec,
    ModelOptions,
    default_index_name,
)
from shadowbase.domain.exceptions import SchemaDerivationError

HISTORY_KEY = "hid"
ARCHIVED_AT = "archived_at"

HISTORY_KEY_TYPE = BigInteger().with_variant(Integer(), "sqlite")
DELETED_MARKER_TYPE = Boolean()

# Attribute metadata that is never copied onto a history attribute
EXCLUDED_ATTRIBUTE_FIELDS = frozenset(
    {
        "unique",
        "primary_key",
        "autoincrement",
        "get",
        "set",
        "references",
        "on_delete",
        "on_update",
        "index",
    }
)

# Model options that belong to the live model only
EXCLUDED_OPTION_FIELDS = frozenset(
    {
        "table_name",
        "hooks",
        "scopes",
        "default_scope",
        "instance_methods",
    }
)


class HistorySchema(NamedTuple):
    """Derived history attributes and options."""

    attributes: dict[str, AttributeSpec]
    options: ModelOptions


def _field_defaults(cls: type, names: frozenset[str]) -> dict[str, Any]:
    defaults: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in names:
            continue
        if f.default is not MISSING:
            defaults[f.name] = f.default
        else:
            defaults[f.name] = f.default_factory()
    return defaults


_STRIPPED_ATTRIBUTE = _field_defaults(AttributeSpec, EXCLUDED_ATTRIBUTE_FIELDS)


def history_model_name(live_name: str, config: HistoryOptions) -> str:
    """Name of the history model for ``live_name``.

    Raises:
        SchemaDerivationError: If the live model already looks like a
            history model.
    """
    if live_name.endswith(config.model_suffix):
        raise SchemaDerivationError(
            f"model name already ends with the history suffix '{config.model_suffix}'",
            live_name,
        )
    return f"{live_name}{config.model_suffix}"


def history_own_attributes(config: HistoryOptions) -> dict[str, AttributeSpec]:
    """The three attributes every history model adds."""
    return {
        HISTORY_KEY: AttributeSpec(
            name=HISTORY_KEY,
            type=HISTORY_KEY_TYPE,
            primary_key=True,
            autoincrement=True,
            unique=True,
            nullable=False,
        ),
        ARCHIVED_AT: AttributeSpec(
            name=ARCHIVED_AT,
            type=TIMESTAMP_TYPE,
            nullable=False,
            default=NOW,
        ),
        config.deleted_column_name: AttributeSpec(
            name=config.deleted_column_name,
            type=DELETED_MARKER_TYPE,
            nullable=True,
            default=None,
        ),
    }


def derive_history_attribute(attribute: AttributeSpec, options: ModelOptions) -> AttributeSpec:
    """Strip one live attribute down to its history form."""
    derived = replace(attribute, **_STRIPPED_ATTRIBUTE)
    if attribute.name in (options.created_at, options.updated_at):
        derived = replace(derived, type=TIMESTAMP_TYPE, default=None)
    return derived


def derive_history_indexes(
    indexes: tuple[IndexSpec, ...],
    suffix: str,
    source_table: Optional[str] = None,
) -> tuple[IndexSpec, ...]:
    """Drop unique indexes and suffix the names of the rest."""
    derived = []
    for index in indexes:
        if index.is_unique:
            continue
        name = index.name or default_index_name(source_table or "", index.fields).lstrip("_")
        derived.append(replace(index, name=f"{name}{suffix}"))
    return tuple(derived)


def derive_history_schema(
    attributes: Mapping[str, AttributeSpec],
    options: ModelOptions,
    config: HistoryOptions,
    source_table: Optional[str] = None,
) -> HistorySchema:
    """Derive a history model's attributes and options from a live model's.

    Args:
        attributes: Live attributes, in declaration order.
        options: Live model options.
        config: History options (suffixes and deleted marker name).
        source_table: Live table name, used to name unnamed indexes.

    Returns:
        The history attributes (filtered live attributes followed by
        ``hid``, ``archived_at`` and the deleted marker) and options.

    Raises:
        SchemaDerivationError: If the live definition is malformed.
    """
    _validate(attributes, options)

    own = history_own_attributes(config)
    history_attributes = {
        name: derive_history_attribute(attribute, options)
        for name, attribute in attributes.items()
        if name not in own
    }
    history_attributes.update(own)

    history_options = replace(
        options,
        **_field_defaults(ModelOptions, EXCLUDED_OPTION_FIELDS),
        timestamps=False,
        indexes=derive_history_indexes(options.indexes, config.index_suffix, source_table),
    )

    return HistorySchema(attributes=history_attributes, options=history_options)


def _validate(attributes: Mapping[str, AttributeSpec], options: ModelOptions) -> None:
    for key, attribute in attributes.items():
        if not isinstance(attribute, AttributeSpec):
            raise SchemaDerivationError(f"attribute '{key}' is not an AttributeSpec")
        if key != attribute.name:
            raise SchemaDerivationError(
                f"attribute declared as '{key}' is named '{attribute.name}'"
            )
        if attribute.type is None:
            raise SchemaDerivationError(f"attribute '{key}' has no type")

    for index in options.indexes:
        if not index.fields:
            raise SchemaDerivationError(f"index '{index.name}' covers no attributes")
        missing = [name for name in index.fields if name not in attributes]
        if missing:
            raise SchemaDerivationError(
                f"index '{index.name}' names unknown attributes: {', '.join(missing)}"
            )
