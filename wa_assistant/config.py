"""Config loader. Loads config.local.yaml, provides get()/require() and Settings."""

import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel

ASSISTANT_DIR = Path(__file__).parent.parent
LOCAL_CONFIG_FILE = Path(os.environ.get("WA_ASSISTANT_CONFIG", ASSISTANT_DIR / "config.local.yaml"))

_config: dict = {}
_loaded = False


class ConfigError(ValueError):
    """Fatal configuration problem; processes refuse to start."""


def load() -> dict:
    """Load config.local.yaml. Safe to call multiple times (cached)."""
    global _config, _loaded
    if _loaded:
        return _config

    if not LOCAL_CONFIG_FILE.exists():
        raise FileNotFoundError(
            f"Required config file not found: {LOCAL_CONFIG_FILE}\n"
            f"Copy config.example.yaml to config.local.yaml and fill in your values."
        )

    with open(LOCAL_CONFIG_FILE) as f:
        _config = yaml.safe_load(f) or {}

    _loaded = True
    return _config


def get(dotpath: str, default: Any = None) -> Any:
    """Get a config value by dot-separated path. e.g. get('owner.jid')"""
    load()
    keys = dotpath.split(".")
    node = _config
    for key in keys:
        if isinstance(node, dict) and key in node:
            node = node[key]
        else:
            return default
    return node


def require(dotpath: str) -> Any:
    """Get a config value or raise if missing/falsy (None, '', 0, False)."""
    value = get(dotpath)
    if not value:
        raise ConfigError(
            f"Required config '{dotpath}' is missing or falsy (got {value!r}). "
            f"Check config.local.yaml."
        )
    return value


def reload() -> dict:
    """Force reload from disk (useful for tests)."""
    global _loaded
    _loaded = False
    return load()


class Settings(BaseModel, frozen=True):
    """Resolved runtime settings shared by the bridge, processor and heartbeat."""

    owner_jid: str
    owner_lid: Optional[str] = None
    owner_name: str = "User"

    bot_name: str = "Mietek"
    bot_gender: Literal["male", "female"] = "male"
    bot_lang: str = "en"
    trigger_word: str = "HeyMietek"

    quiet_hour_start: int = 23
    quiet_hour_end: int = 7
    daily_summary_hour: int = 8

    data_dir: Path = ASSISTANT_DIR / "data"
    mcp_config_path: Path = ASSISTANT_DIR / "mcp-config.json"

    claude_timeout: float = 1200.0  # 20 min
    max_turns: int = 1000
    poll_interval: float = 2.0
    heartbeat_interval: float = 60.0

    max_message_length: int = 4000  # WhatsApp chunk size
    bridge_url: str = "http://localhost:8080"
    webhook_host: str = "127.0.0.1"
    webhook_port: int = 9090

    @property
    def db_path(self) -> Path:
        return self.data_dir / "assistant.db"

    @property
    def daily_summary_state_file(self) -> Path:
        return self.data_dir / "last-daily-summary.txt"

    @classmethod
    def from_config(cls) -> "Settings":
        """Build Settings from config.local.yaml, validating the owner identity."""
        owner_jid = require("owner.jid")
        if not str(owner_jid).endswith("@s.whatsapp.net"):
            raise ConfigError(
                f'owner.jid has invalid format: "{owner_jid}"\n'
                "Expected format: <phone>@s.whatsapp.net (e.g. 48123456789@s.whatsapp.net)"
            )

        bot_name = get("bot.name", "Mietek")
        data_dir = Path(get("paths.data_dir", "data"))
        if not data_dir.is_absolute():
            data_dir = ASSISTANT_DIR / data_dir
        mcp_config = Path(get("claude.mcp_config", "mcp-config.json"))
        if not mcp_config.is_absolute():
            mcp_config = ASSISTANT_DIR / mcp_config

        return cls(
            owner_jid=owner_jid,
            owner_lid=get("owner.lid"),
            owner_name=get("owner.name", "User"),
            bot_name=bot_name,
            bot_gender=get("bot.gender", "male"),
            bot_lang=get("bot.lang", "en"),
            trigger_word=get("bot.trigger_word") or f"Hey{bot_name}",
            quiet_hour_start=get("quiet_hours.start", 23),
            quiet_hour_end=get("quiet_hours.end", 7),
            daily_summary_hour=get("daily_summary.hour", 8),
            data_dir=data_dir,
            mcp_config_path=mcp_config,
            claude_timeout=get("claude.timeout_seconds", 1200),
            max_turns=get("claude.max_turns", 1000),
            poll_interval=get("intervals.poll_seconds", 2),
            heartbeat_interval=get("intervals.heartbeat_seconds", 60),
            max_message_length=get("whatsapp.max_message_length", 4000),
            bridge_url=get("whatsapp.bridge_url", "http://localhost:8080"),
            webhook_host=get("webhook.host", "127.0.0.1"),
            webhook_port=get("webhook.port", 9090),
        )
