import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from shadowbase.core.config import Settings, get_settings


def test_settings_defaults():
    """Test that settings load with correct defaults."""
    settings = Settings()

    assert settings.app_name == "ShadowBase"
    assert settings.environment == "development"
    assert settings.database_url.startswith("sqlite+aiosqlite://")
    assert settings.is_development is True
    assert settings.is_production is False
    assert settings.history_blocking is True
    assert settings.history_full is False
    assert settings.history_model_suffix == "History"
    assert settings.history_index_suffix == "_history"
    assert settings.history_deleted_column_name == "history_deleted"
    assert settings.history_add_associations is False
    assert settings.history_allow_transactions is True


def test_settings_env_override():
    """Test that environment variables override defaults."""
    with patch.dict(os.environ, {
        "SHADOWBASE_ENVIRONMENT": "testing",
        "SHADOWBASE_HISTORY_BLOCKING": "false",
        "SHADOWBASE_HISTORY_MODEL_SUFFIX": "Audit",
    }):
        settings = Settings()

        assert settings.is_testing is True
        assert settings.history_blocking is False
        assert settings.history_model_suffix == "Audit"


def test_log_level_is_normalized():
    """Test that log levels are accepted in any case."""
    with patch.dict(os.environ, {"SHADOWBASE_LOG_LEVEL": "debug"}):
        assert Settings().log_level == "DEBUG"


def test_invalid_environment_rejected():
    with patch.dict(os.environ, {"SHADOWBASE_ENVIRONMENT": "staging"}):
        with pytest.raises(ValidationError):
            Settings()


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
