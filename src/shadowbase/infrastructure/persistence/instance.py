"""Row instances returned by the model write pipeline."""

import copy
import types
from typing import TYPE_CHECKING, Any

from shadowbase.domain.exceptions import ModelDefinitionError

if TYPE_CHECKING:
    from shadowbase.infrastructure.persistence.model import Model


class Instance:
    """One row of a model.

    ``data_values`` holds the current values. ``previous_data_values``
    holds the values as last read from or written to the database, and is
    empty for a record that has not been persisted yet. The write pipeline
    refreshes it after the after-hooks of each write have run, so
    before-hooks see the pre-write state there.
    """

    def __init__(self, model: "Model", values: dict[str, Any], is_new_record: bool = True) -> None:
        self.model = model
        self.data_values: dict[str, Any] = dict(values)
        self.previous_data_values: dict[str, Any] = (
            {} if is_new_record else copy.deepcopy(self.data_values)
        )
        self.is_new_record = is_new_record

    def get(self, key: str) -> Any:
        """Read an attribute, applying its custom getter if any."""
        attribute = self.model.attributes.get(key)
        value = self.data_values.get(key)
        if attribute is not None and attribute.get is not None:
            return attribute.get(value)
        return value

    def set(self, key: str, value: Any) -> None:
        """Write an attribute, applying its custom setter if any."""
        attribute = self.model.attributes.get(key)
        if attribute is None:
            raise ModelDefinitionError(f"{self.model.name} has no attribute '{key}'")
        if attribute.set is not None:
            value = attribute.set(value)
        self.data_values[key] = value

    def changed(self) -> list[str]:
        """Attributes whose value differs from the persisted state."""
        return [
            key
            for key, value in self.data_values.items()
            if key not in self.previous_data_values or self.previous_data_values[key] != value
        ]

    def primary_key_values(self) -> dict[str, Any]:
        """Primary key as persisted (falls back to current values)."""
        source = self.previous_data_values or self.data_values
        return {
            attribute.name: source.get(attribute.name)
            for attribute in self.model.attributes.values()
            if attribute.primary_key
        }

    def mark_persisted(self) -> None:
        """Make the current values the persisted state."""
        self.previous_data_values = copy.deepcopy(self.data_values)
        self.is_new_record = False

    def __getattr__(self, item: str) -> Any:
        if item.startswith("_") or item in ("model", "data_values"):
            raise AttributeError(item)
        model = self.__dict__.get("model")
        if model is not None:
            if item in model.attributes:
                return self.get(item)
            method = model.options.instance_methods.get(item)
            if method is not None:
                return types.MethodType(method, self)
        raise AttributeError(f"{type(self).__name__} has no attribute '{item}'")

    def __repr__(self) -> str:
        return f"<{self.model.name} {self.primary_key_values()}>"
