"""Pydantic Settings models for ticketflow configuration."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProjectSettings(BaseModel):
    """Project-related configuration."""

    path: Path = Field(default_factory=Path.cwd)


class StorageSettings(BaseModel):
    """Where the ticket document lives."""

    data_file: Path = Path("data/tickets.json")
    allowed_root: Path | None = None  # defaults to the project path


class LoggingSettings(BaseModel):
    """Log output configuration."""

    level: str = "WARNING"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Normalize to an upper-case standard level name."""
        name = v.strip().upper()
        if name not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return name


class TicketflowSettings(BaseSettings):
    """Root settings with layered config: defaults -> file -> env -> CLI."""

    model_config = SettingsConfigDict(
        env_prefix="TICKETFLOW_",
        env_nested_delimiter="__",
    )

    project: ProjectSettings = Field(default_factory=ProjectSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
