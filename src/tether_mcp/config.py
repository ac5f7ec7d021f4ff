"""Configuration management for Tether MCP."""

from __future__ import annotations

from functools import lru_cache
import shlex
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_AGENT_ARGS = (
    "--dangerously-skip-permissions",
    "--output-format",
    "stream-json",
    "--verbose",
)


class TetherSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    agent_path: str | None = Field(default=None, validation_alias="TETHER_AGENT_PATH")
    agent_args: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_AGENT_ARGS, validation_alias="TETHER_AGENT_ARGS"
    )
    tmux_path: str = Field(default="tmux", validation_alias="TETHER_TMUX_PATH")
    session_prefix: str = Field(default="claude-", validation_alias="TETHER_SESSION_PREFIX")
    shell: str = Field(default="/bin/bash", validation_alias="TETHER_SHELL")
    command_timeout_seconds: float = Field(default=60.0, validation_alias="TETHER_COMMAND_TIMEOUT")
    max_output_bytes: int = Field(default=1024 * 1024, validation_alias="TETHER_MAX_OUTPUT_BYTES")
    poll_interval_seconds: float = Field(default=1.0, validation_alias="TETHER_POLL_INTERVAL")
    default_wait_timeout_seconds: float = Field(default=300.0, validation_alias="TETHER_WAIT_TIMEOUT")
    status_tail_lines: int = Field(default=30, validation_alias="TETHER_STATUS_TAIL_LINES")
    output_tail_lines: int = Field(default=500, validation_alias="TETHER_OUTPUT_TAIL_LINES")
    prompt_summary_chars: int = Field(default=100, validation_alias="TETHER_PROMPT_SUMMARY_CHARS")
    log_level: str = Field(default="INFO", validation_alias="TETHER_LOG_LEVEL")
    transport: str = Field(default="stdio", validation_alias="TETHER_TRANSPORT")
    host: str = Field(default="0.0.0.0", validation_alias="TETHER_HOST")
    port: int = Field(default=3001, validation_alias="PORT")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "TETHER_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("transport")
    @classmethod
    def _normalize_transport(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"stdio", "http"}:
            raise ValueError("TETHER_TRANSPORT must be 'stdio' or 'http'")
        return normalized

    @field_validator("agent_args", mode="before")
    @classmethod
    def _parse_agent_args(cls, value):
        if value is None:
            return DEFAULT_AGENT_ARGS
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            return tuple(shlex.split(value))
        raise TypeError("TETHER_AGENT_ARGS must be a list of arguments or a shell-style string")

    @field_validator(
        "command_timeout_seconds",
        "poll_interval_seconds",
        "default_wait_timeout_seconds",
    )
    @classmethod
    def _validate_positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeouts and intervals must be > 0 seconds")
        return value

    @field_validator(
        "max_output_bytes",
        "status_tail_lines",
        "output_tail_lines",
        "prompt_summary_chars",
    )
    @classmethod
    def _validate_positive_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Output limits must be >= 1")
        return value


@lru_cache(maxsize=1)
def get_settings() -> TetherSettings:
    """Return cached settings instance."""

    return TetherSettings()


__all__ = ["DEFAULT_AGENT_ARGS", "TetherSettings", "get_settings"]
