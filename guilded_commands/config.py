"""Application configuration: command parsing options and bot settings."""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://www.guilded.gg/api/v1"


class SplitOptions(str, Enum):
    """How consecutive separators are treated when tokenizing a command."""

    KEEP_EMPTY = "keep_empty"
    REMOVE_EMPTY = "remove_empty"


class CommandConfig(BaseModel):
    """Settings consumed by the command dispatcher."""

    prefix: str = "!"
    separators: list[str] = Field(default_factory=lambda: [" ", "\n"])
    split_options: SplitOptions = SplitOptions.REMOVE_EMPTY

    @field_validator("prefix")
    @classmethod
    def _prefix_not_empty(cls, value: str) -> str:
        if not value:
            msg = "prefix must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("separators")
    @classmethod
    def _separators_are_chars(cls, value: list[str]) -> list[str]:
        if not value:
            msg = "at least one separator is required"
            raise ValueError(msg)
        for sep in value:
            if len(sep) != 1:
                msg = f"separator must be a single character, got {sep!r}"
                raise ValueError(msg)
        return value


class BotConfig(BaseModel):
    """Top-level configuration loaded from config.json."""

    log_level: str = "INFO"
    token: str = ""
    api_base_url: str = DEFAULT_API_BASE_URL
    commands: CommandConfig = Field(default_factory=CommandConfig)


def load_config(config_path: Path) -> BotConfig:
    """Read *config_path* into a ``BotConfig``. A missing file yields defaults."""
    if not config_path.is_file():
        logger.info("No config at %s, using defaults", config_path)
        return BotConfig()
    data = json.loads(config_path.read_text(encoding="utf-8"))
    config = BotConfig.model_validate(data)
    logger.info("Loaded config from %s (prefix=%r)", config_path, config.commands.prefix)
    return config


def update_config_file(config_path: Path, **updates: object) -> None:
    """Update specific keys in config.json without overwriting other user settings."""
    data: dict[str, object] = {}
    if config_path.is_file():
        data = json.loads(config_path.read_text(encoding="utf-8"))
    data.update(updates)
    config_path.write_text(
        json.dumps(data, indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    logger.info("Persisted config update: %s", ", ".join(f"{k}={v}" for k, v in updates.items()))
