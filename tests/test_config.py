"""Tests for debtledger.config: YAML configuration loader."""

import pytest
from pathlib import Path
from debtledger.config import Config
from tests.conftest import FIXTURE_CONFIG_DIR


class TestConfigInit:
    def test_loads_from_config_dir(self):
        config = Config(FIXTURE_CONFIG_DIR)
        assert config.config_dir == FIXTURE_CONFIG_DIR

    def test_accepts_string_path(self):
        config = Config(str(FIXTURE_CONFIG_DIR))
        assert isinstance(config.config_dir, Path)

    def test_raises_on_missing_directory(self):
        with pytest.raises(FileNotFoundError, match="Config directory not found"):
            Config("/nonexistent/path")

    def test_raises_on_file_not_directory(self, tmp_path):
        f = tmp_path / "not_a_dir.yaml"
        f.write_text("test: true")
        with pytest.raises(FileNotFoundError, match="Config directory not found"):
            Config(f)


class TestConfigSettings:
    def test_currency(self, config):
        assert config.currency == {"code": "GBP", "symbol": "£", "decimals": 2}

    def test_format_amount(self, config):
        assert config.format_amount(1234.5) == "£1,234.50"
        assert config.format_amount(0) == "£0.00"

    def test_urgency(self, config):
        assert config.priority_threshold == 100
        assert config.due_soon_days == 7
        assert config.score_with_returns is False

    def test_recurring(self, config):
        assert config.recurring == {
            "catch_up": True,
            "max_occurrences": 30,
            "name_suffix": " (Auto)",
        }

    def test_rate_limit_for(self, config):
        assert config.rate_limit_for("sheets_write") == {
            "max_attempts": 3,
            "window_seconds": 60.0,
        }
        assert config.rate_limit_for("unknown") is None

    def test_settings_are_cached(self, config):
        assert config.settings is config.settings


class TestConfigDefaults:
    def test_minimal_settings_fall_back(self, tmp_path):
        (tmp_path / "settings.yaml").write_text("currency: {}\n")
        config = Config(tmp_path)
        assert config.currency == {"code": "USD", "symbol": "$", "decimals": 2}
        assert config.priority_threshold == 100
        assert config.due_soon_days == 7
        assert config.recurring["max_occurrences"] == 366
        assert config.recurring["catch_up"] is True


class TestConfigReminders:
    def test_levels(self, config):
        assert set(config.reminders) == {"jester", "knight", "king", "executioner"}

    def test_each_level_has_title_and_text(self, config):
        for level, tmpl in config.reminders.items():
            assert tmpl.get("title"), level
            assert "{amount}" in tmpl["text"], level

    def test_flat_mapping_without_levels_key(self, tmp_path):
        (tmp_path / "reminders.yaml").write_text(
            "gentle:\n  title: Gentle\n  text: Pay {amount}\n"
        )
        config = Config(tmp_path)
        assert config.reminders["gentle"]["title"] == "Gentle"


class TestConfigErrors:
    def test_missing_file(self, tmp_path):
        config = Config(tmp_path)
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            config.settings

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "settings.yaml").write_text("currency: [unclosed\n")
        config = Config(tmp_path)
        with pytest.raises(ValueError, match="Invalid YAML"):
            config.settings

    def test_empty_file(self, tmp_path):
        (tmp_path / "settings.yaml").write_text("")
        config = Config(tmp_path)
        with pytest.raises(ValueError, match="Empty config file"):
            config.settings

    def test_settings_must_be_mapping(self, tmp_path):
        (tmp_path / "settings.yaml").write_text("- a\n- b\n")
        config = Config(tmp_path)
        with pytest.raises(ValueError, match="must be a mapping"):
            config.settings
