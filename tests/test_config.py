"""
Unit tests for configuration module.
"""
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from datadeck.core import Settings, get_settings


class TestSettings:
    """Tests for Settings class."""

    def test_default_values(self, clean_environment):
        """Test that default values are set correctly."""
        settings = Settings(_env_file=None)

        assert settings.app_name == "DataDeck"
        assert settings.host == "0.0.0.0"
        assert settings.port == 7010
        assert settings.debug is False
        assert settings.generate_max_turns == 50
        assert settings.tweak_max_turns == 15
        assert settings.tweak_fragments_max_turns == 10
        assert settings.query_max_rows == 20

    def test_port_validation(self, clean_environment):
        """Test that port validation works."""
        with pytest.raises(ValueError):
            Settings(_env_file=None, port=0)  # Below minimum

        with pytest.raises(ValueError):
            Settings(_env_file=None, port=70000)  # Above maximum

        settings = Settings(_env_file=None, port=8080)
        assert settings.port == 8080

    def test_path_properties(self, clean_environment):
        """Test that path properties return correct values."""
        settings = Settings(_env_file=None, data_dir="somewhere")

        assert settings.data_dir == Path("somewhere")
        assert settings.workspaces_dir == Path("somewhere") / "workspaces"
        assert settings.logs_dir == Path("somewhere") / "logs"

    def test_ensure_directories(self, tmp_path, clean_environment):
        settings = Settings(_env_file=None, data_dir=tmp_path / "data")

        settings.ensure_directories()

        assert settings.workspaces_dir.is_dir()
        assert settings.logs_dir.is_dir()

    @patch.dict(os.environ, {
        "AZURE_OPENAI_API_KEY": "test-key",
        "AZURE_OPENAI_ENDPOINT": "https://test.openai.azure.com/",
        "AZURE_OPENAI_DEPLOYMENT": "gpt-4.1",
    })
    def test_has_azure_openai(self):
        """Test Azure OpenAI detection."""
        settings = Settings(_env_file=None, openai_api_key=None)

        assert settings.has_azure_openai is True
        assert settings.default_provider == "sdk"
        assert settings.default_model("sdk") == "gpt-4.1"

    def test_openai_compatible_is_preferred(self, settings):
        settings.azure_openai_api_key = "key"
        settings.azure_openai_endpoint = "https://test.openai.azure.com/"

        assert settings.default_provider == "direct"
        assert settings.default_model("direct") == "gemini-2.5-flash"

    def test_no_provider(self, clean_environment):
        """Test when no LLM provider is configured."""
        settings = Settings(_env_file=None)

        assert settings.has_azure_openai is False
        assert settings.has_openai_compatible is False
        assert settings.default_provider == "none"

    def test_model_lists(self, clean_environment):
        settings = Settings(_env_file=None, sdk_models=" gpt-4.1, ,gpt-4o ", direct_models="")

        assert settings.sdk_model_list == ["gpt-4.1", "gpt-4o"]
        assert settings.direct_model_list == []
        assert settings.default_model("direct") == "gemini-2.5-flash"

    @patch.dict(os.environ, {"ANALYTICS_DATABASE_URL": "postgresql://u:p@db/analytics", "QUERY_MAX_ROWS": "50"})
    def test_environment_overrides(self):
        settings = Settings(_env_file=None)

        assert settings.has_analytics_database is True
        assert settings.query_max_rows == 50

    def test_run_timeout_bounds(self, clean_environment):
        with pytest.raises(ValueError):
            Settings(_env_file=None, run_timeout_seconds=1)


class TestGetSettings:
    """Tests for get_settings function."""

    def test_returns_settings(self):
        """Test that get_settings returns Settings instance."""
        get_settings.cache_clear()
        settings = get_settings()

        assert isinstance(settings, Settings)

    def test_caching(self):
        """Test that settings are cached."""
        get_settings.cache_clear()
        settings1 = get_settings()
        settings2 = get_settings()

        assert settings1 is settings2
