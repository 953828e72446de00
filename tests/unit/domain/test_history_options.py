"""Unit tests for history option resolution."""

import os
from unittest.mock import patch

import pytest

from shadowbase.domain.entities import HistoryOptions
from shadowbase.domain.exceptions import HistoryConfigError, SchemaDerivationError


class TestHistoryOptions:
    def test_defaults(self) -> None:
        options = HistoryOptions.resolve()

        assert options.blocking is True
        assert options.full is False
        assert options.model_suffix == "History"
        assert options.index_suffix == "_history"
        assert options.deleted_column_name == "history_deleted"
        assert options.add_associations is False
        assert options.allow_transactions is True
        assert options.on_snapshot_error is None

    def test_mapping_and_overrides(self) -> None:
        """Test that keyword overrides win over the config mapping."""
        options = HistoryOptions.resolve({"full": True, "blocking": False}, blocking=True)

        assert options.full is True
        assert options.blocking is True

    def test_instance_config_is_used_as_is(self) -> None:
        config = HistoryOptions(full=True, model_suffix="Log")

        options = HistoryOptions.resolve(config, index_suffix="_log")

        assert options.full is True
        assert options.model_suffix == "Log"
        assert options.index_suffix == "_log"

    def test_settings_supply_defaults(self) -> None:
        with patch.dict(os.environ, {
            "SHADOWBASE_HISTORY_FULL": "true",
            "SHADOWBASE_HISTORY_INDEX_SUFFIX": "_h",
        }):
            options = HistoryOptions.resolve()

        assert options.full is True
        assert options.index_suffix == "_h"

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(HistoryConfigError, match="modelSuffix"):
            HistoryOptions.resolve({"modelSuffix": "Log"})

    def test_empty_suffix_rejected(self) -> None:
        """Test that an empty model suffix fails at setup."""
        with pytest.raises(SchemaDerivationError):
            HistoryOptions.resolve(model_suffix="")

    def test_invalid_value_rejected(self) -> None:
        with pytest.raises(HistoryConfigError):
            HistoryOptions.resolve(blocking="sometimes")

    def test_options_are_frozen(self) -> None:
        options = HistoryOptions()

        with pytest.raises(Exception):
            options.full = True

    def test_error_callback_accepted(self) -> None:
        errors = []

        options = HistoryOptions.resolve(on_snapshot_error=errors.append)

        options.on_snapshot_error(RuntimeError("x"))
        assert len(errors) == 1
