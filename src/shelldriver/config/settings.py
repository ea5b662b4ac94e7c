"""Configuration management for shelldriver.

Loads settings from a YAML configuration file with environment variable
overrides. Supports .env files.
"""

from __future__ import annotations

import logging
import string
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/shelldriver.yaml")

# Characters a delimiter may use without ever needing shell quoting.
SAFE_DELIMITER_CHARS = frozenset(string.ascii_letters + string.digits + "_")

POSIX_STATUS_ECHO = "printf '\\n%d\\n%s\\n' \"$?\" '{delimiter}'"
BASH_STATUS_ECHO = 'echo -e "\\n$?\\n{delimiter}"'


class ShellConfig(BaseModel):
    command: list[str] = Field(
        default_factory=lambda: ["/bin/bash"],
        min_length=1,
        description="argv of the interpreter to spawn",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Environment overrides applied on top of the inherited environment",
    )
    reap_timeout: float = Field(default=1.0, ge=0)


class DelimiterConfig(BaseModel):
    length: int = Field(default=128, ge=16)
    alphabet: str = Field(default=string.ascii_lowercase)

    @field_validator("alphabet")
    @classmethod
    def _check_alphabet(cls, value: str) -> str:
        if len(set(value)) < 2:
            raise ValueError("alphabet needs at least two distinct characters")
        unsafe = set(value) - SAFE_DELIMITER_CHARS
        if unsafe:
            raise ValueError(f"alphabet contains characters that need quoting: {sorted(unsafe)}")
        return value


class ChannelConfig(BaseModel):
    chunk_size: int = Field(default=1024, gt=0)
    read_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Seconds to wait for the delimiter; None blocks indefinitely",
    )
    status_echo: str = Field(default=POSIX_STATUS_ECHO)

    @field_validator("status_echo")
    @classmethod
    def _check_status_echo(cls, value: str) -> str:
        if "{delimiter}" not in value:
            raise ValueError("status_echo must contain a {delimiter} placeholder")
        return value


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for shelldriver.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "SHELLDRIVER_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    shell: ShellConfig = Field(default_factory=ShellConfig)
    delimiter: DelimiterConfig = Field(default_factory=DelimiterConfig)
    channel: ChannelConfig = Field(default_factory=ChannelConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    # Init kwargs outrank env vars in pydantic-settings, so layer the
    # explicitly set env values over the YAML data before validating.
    env_data = Settings().model_dump(exclude_unset=True)
    return Settings(**_deep_merge(yaml_data, env_data))


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
