"""Settings loading entrypoints with deterministic precedence.

The cascade is always:
1) Explicit keyword overrides
2) Environment variables (``FILEVAULT_`` prefix, ``__`` nesting)
3) YAML config file (``~/.config/filevault/filevault.yaml`` unless overridden
   by ``FILEVAULT_CONFIG_FILE`` or the ``config_path`` argument)
4) Built-in model defaults
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic_settings import SettingsConfigDict

from .models import DEFAULT_CONFIG_PATH, VaultSettings

CONFIG_FILE_ENV = "FILEVAULT_CONFIG_FILE"


def load_settings(
    *, config_path: str | Path | None = None, **overrides: Any
) -> VaultSettings:
    """Load root settings using the standard precedence cascade."""
    resolved = _resolve_config_path(config_path)
    if resolved == DEFAULT_CONFIG_PATH:
        return VaultSettings(**overrides)

    settings_cls = type(
        "VaultSettings",
        (VaultSettings,),
        {
            "__module__": VaultSettings.__module__,
            "model_config": SettingsConfigDict(yaml_file=resolved),
        },
    )
    return settings_cls(**overrides)


def _resolve_config_path(config_path: str | Path | None) -> Path:
    """Return the YAML config path from argument, environment, or default."""
    if config_path is not None:
        return Path(config_path).expanduser()
    from_env = os.environ.get(CONFIG_FILE_ENV, "").strip()
    if from_env:
        return Path(from_env).expanduser()
    return DEFAULT_CONFIG_PATH
