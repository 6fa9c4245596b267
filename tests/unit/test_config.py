"""Unit tests for wa_assistant/config.py."""

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

# We need to test config in isolation, so we import and reset state each time
from wa_assistant import config
from wa_assistant.config import ConfigError, Settings


@pytest.fixture(autouse=True)
def reset_config():
    """Reset config module state before each test."""
    config._config = {}
    config._loaded = False
    yield
    config._config = {}
    config._loaded = False


def write_config(config_dir, data: dict) -> Path:
    """Write a config.local.yaml in the given dir and return its path."""
    p = config_dir / "config.local.yaml"
    p.write_text(yaml.dump(data))
    return p


class TestLoad:
    def test_load_valid_config(self, tmp_path):
        data = {"owner": {"name": "Ala", "jid": "48111222333@s.whatsapp.net"}}
        cfg_file = write_config(tmp_path, data)
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            assert config.load() == data

    def test_load_missing_file_raises(self, tmp_path):
        with patch.object(config, "LOCAL_CONFIG_FILE", tmp_path / "nonexistent.yaml"):
            with pytest.raises(FileNotFoundError, match="Required config file not found"):
                config.load()

    def test_load_caches_result(self, tmp_path):
        cfg_file = write_config(tmp_path, {"owner": {"name": "Ala"}})
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            first = config.load()
            # Modify file; should NOT be re-read due to caching
            write_config(tmp_path, {"owner": {"name": "Changed"}})
            second = config.load()
        assert first is second
        assert second["owner"]["name"] == "Ala"

    def test_reload_rereads(self, tmp_path):
        cfg_file = write_config(tmp_path, {"owner": {"name": "Ala"}})
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            config.load()
            write_config(tmp_path, {"owner": {"name": "Ola"}})
            assert config.reload()["owner"]["name"] == "Ola"

    def test_load_empty_yaml_returns_empty_dict(self, tmp_path):
        cfg_file = tmp_path / "config.local.yaml"
        cfg_file.write_text("# just a comment\n")
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            assert config.load() == {}


class TestGet:
    def test_get_nested_key(self, tmp_path):
        cfg_file = write_config(tmp_path, {"quiet_hours": {"start": 22, "end": 6}})
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            assert config.get("quiet_hours.start") == 22
            assert config.get("quiet_hours") == {"start": 22, "end": 6}

    def test_get_missing_returns_default(self, tmp_path):
        cfg_file = write_config(tmp_path, {"owner": {"name": "Ala"}})
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            assert config.get("bot.name") is None
            assert config.get("bot.name", "Mietek") == "Mietek"
            assert config.get("owner.name.first") is None

    def test_get_falsy_values_kept(self, tmp_path):
        cfg_file = write_config(tmp_path, {"daily_summary": {"hour": 0}})
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            assert config.get("daily_summary.hour", 8) == 0


class TestRequire:
    def test_require_existing_value(self, tmp_path):
        cfg_file = write_config(tmp_path, {"owner": {"jid": "48111222333@s.whatsapp.net"}})
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            assert config.require("owner.jid") == "48111222333@s.whatsapp.net"

    @pytest.mark.parametrize("value", [None, ""])
    def test_require_missing_or_empty_raises(self, tmp_path, value):
        cfg_file = write_config(tmp_path, {"owner": {"jid": value}})
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            with pytest.raises(ConfigError, match="missing or falsy"):
                config.require("owner.jid")

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestSettings:
    def test_minimal_config_uses_defaults(self, tmp_path):
        cfg_file = write_config(tmp_path, {"owner": {"jid": "48111222333@s.whatsapp.net"}})
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            settings = Settings.from_config()

        assert settings.owner_jid == "48111222333@s.whatsapp.net"
        assert settings.owner_lid is None
        assert settings.bot_name == "Mietek"
        assert settings.trigger_word == "HeyMietek"
        assert settings.bot_lang == "en"
        assert (settings.quiet_hour_start, settings.quiet_hour_end) == (23, 7)
        assert settings.daily_summary_hour == 8
        assert settings.max_message_length == 4000
        assert settings.db_path == config.ASSISTANT_DIR / "data" / "assistant.db"

    def test_full_config(self, tmp_path):
        cfg_file = write_config(tmp_path, {
            "owner": {"jid": "48111222333@s.whatsapp.net", "lid": "987@lid", "name": "Ala"},
            "bot": {"name": "Zosia", "gender": "female", "lang": "pl"},
            "quiet_hours": {"start": 22, "end": 6},
            "paths": {"data_dir": str(tmp_path / "state")},
            "claude": {"timeout_seconds": 600, "max_turns": 20},
            "whatsapp": {"bridge_url": "http://127.0.0.1:8081", "max_message_length": 2000},
            "webhook": {"port": 9191},
        })
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            settings = Settings.from_config()

        assert settings.owner_lid == "987@lid"
        assert settings.bot_name == "Zosia"
        assert settings.trigger_word == "HeyZosia"
        assert settings.bot_gender == "female"
        assert settings.bot_lang == "pl"
        assert settings.quiet_hour_start == 22
        assert settings.data_dir == tmp_path / "state"
        assert settings.claude_timeout == 600
        assert settings.max_turns == 20
        assert settings.bridge_url == "http://127.0.0.1:8081"
        assert settings.max_message_length == 2000
        assert settings.webhook_port == 9191

    def test_explicit_trigger_word(self, tmp_path):
        cfg_file = write_config(tmp_path, {
            "owner": {"jid": "48111222333@s.whatsapp.net"},
            "bot": {"trigger_word": "Hej"},
        })
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            assert Settings.from_config().trigger_word == "Hej"

    def test_missing_owner_jid_is_fatal(self, tmp_path):
        cfg_file = write_config(tmp_path, {"owner": {"name": "Ala"}})
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            with pytest.raises(ConfigError, match="owner.jid"):
                Settings.from_config()

    @pytest.mark.parametrize("jid", ["48111222333", "48111222333@lid", "120363@g.us"])
    def test_malformed_owner_jid_is_fatal(self, tmp_path, jid):
        cfg_file = write_config(tmp_path, {"owner": {"jid": jid}})
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            with pytest.raises(ConfigError, match="invalid format"):
                Settings.from_config()

    def test_bad_gender_rejected(self, tmp_path):
        cfg_file = write_config(tmp_path, {
            "owner": {"jid": "48111222333@s.whatsapp.net"},
            "bot": {"gender": "robot"},
        })
        with patch.object(config, "LOCAL_CONFIG_FILE", cfg_file):
            with pytest.raises(ValidationError):
                Settings.from_config()

    def test_settings_are_frozen(self, settings):
        with pytest.raises(ValidationError):
            settings.bot_name = "Other"
