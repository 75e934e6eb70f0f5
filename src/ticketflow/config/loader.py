"""Config file discovery, settings loading and data file validation."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from ticketflow.config.settings import (
    LoggingSettings,
    ProjectSettings,
    StorageSettings,
    TicketflowSettings,
)
from ticketflow.core.errors import ConfigError

CONFIG_FILENAMES = ["ticketflow.yaml", "ticketflow.yml", ".ticketflow.yaml", ".ticketflow.yml"]
SECTIONS = ("project", "storage", "logging")
ENV_PREFIX = "TICKETFLOW_"


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Return the first config file in ``start_dir`` or its nearest ancestor."""
    start = (start_dir or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        for name in CONFIG_FILENAMES:
            if (directory / name).is_file():
                return directory / name
    return None


def load_config_file(path: Path) -> dict[str, Any]:
    """Parse a YAML config file; anything but a mapping counts as empty."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse config file {path}: {e}") from e
    return data if isinstance(data, dict) else {}


def _env_section(section: str) -> dict[str, str]:
    """``TICKETFLOW_STORAGE__DATA_FILE=x`` becomes ``{"data_file": "x"}`` for ``storage``."""
    prefix = f"{ENV_PREFIX}{section.upper()}__"
    return {
        key[len(prefix):].lower(): value
        for key, value in os.environ.items()
        if key.startswith(prefix)
    }


def load_settings(
    project_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> TicketflowSettings:
    """Load settings per section: defaults -> config file -> env -> overrides."""
    file_data: dict[str, Any] = {}
    config_file = find_config_file(project_path)
    if config_file:
        file_data = load_config_file(config_file)

    # Explicit kwargs bypass pydantic-settings env parsing, so env is layered here
    sections: dict[str, dict[str, Any]] = {}
    for section in SECTIONS:
        values = dict(file_data.get(section) or {})
        if section == "project" and project_path and "path" not in values:
            values["path"] = str(project_path)
        values.update(_env_section(section))
        values.update((overrides or {}).get(section) or {})
        sections[section] = values

    try:
        return TicketflowSettings(
            project=ProjectSettings(**sections["project"]),
            storage=StorageSettings(**sections["storage"]),
            logging=LoggingSettings(**sections["logging"]),
        )
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def validate_data_file_path(path: Path | str, allowed_root: Path | str) -> Path:
    """Resolve ``path`` and make sure it is a ``.json`` file under ``allowed_root``.

    Relative paths are taken relative to ``allowed_root``.

    Raises:
        ConfigError: the path escapes the root or is not a ``.json`` file.
    """
    root = Path(allowed_root).resolve()
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = root / candidate
    resolved = candidate.resolve()

    try:
        resolved.relative_to(root)
    except ValueError:
        raise ConfigError(
            f"Invalid data file path: must be inside {root}. Path: {path}"
        ) from None

    if resolved.suffix != ".json":
        raise ConfigError(f"Invalid data file path: must be a .json file. Path: {path}")

    return resolved


def resolve_data_file(settings: TicketflowSettings) -> Path:
    """Return the validated absolute data file path for ``settings``."""
    root = settings.storage.allowed_root or settings.project.path
    return validate_data_file_path(settings.storage.data_file, root)
