"""
Runtime configuration for the to-do list server.

Settings come from environment variables with CLI overrides applied on top.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator


DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8080",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8080",
]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Validated server and storage configuration."""

    data_dir: Path = Field(default=Path("data"), description="Directory holding storage.json")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = Field(default="INFO")
    cors_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    strict_load: bool = Field(
        default=False,
        description="Fail instead of starting empty when primary and backup are unreadable",
    )
    auto_backup_interval_seconds: int = Field(
        default=0, ge=0, description="Periodic manual backup interval, 0 disables"
    )
    json_indent: int = Field(default=2, ge=0)
    max_request_bytes: int = Field(default=10 * 1024 * 1024, ge=1)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides: Any) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``
            **overrides: Explicit values (e.g. CLI options); ``None`` values are ignored

        Returns:
            Validated Settings instance
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        if env.get("TODO_DATA_DIR"):
            values["data_dir"] = Path(env["TODO_DATA_DIR"])
        if env.get("TODO_HOST"):
            values["host"] = env["TODO_HOST"]
        if env.get("PORT"):
            values["port"] = int(env["PORT"])
        if env.get("TODO_LOG_LEVEL"):
            values["log_level"] = env["TODO_LOG_LEVEL"]
        if env.get("TODO_CORS_ORIGINS"):
            values["cors_origins"] = [
                origin.strip() for origin in env["TODO_CORS_ORIGINS"].split(",") if origin.strip()
            ]
        if env.get("TODO_STRICT_LOAD"):
            values["strict_load"] = env["TODO_STRICT_LOAD"].strip().lower() in _TRUTHY
        if env.get("TODO_AUTO_BACKUP_INTERVAL"):
            values["auto_backup_interval_seconds"] = int(env["TODO_AUTO_BACKUP_INTERVAL"])

        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for CLI and server entry points."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
