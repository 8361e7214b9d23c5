"""Public API for shared file vault configuration utilities."""

from .loader import CONFIG_FILE_ENV, load_settings
from .models import (
    DEFAULT_CONFIG_PATH,
    ComponentsSettings,
    HttpSettings,
    LoggingSettings,
    ObservabilitySettings,
    VaultSettings,
    resolve_component_settings,
)

__all__ = [
    "CONFIG_FILE_ENV",
    "DEFAULT_CONFIG_PATH",
    "ComponentsSettings",
    "HttpSettings",
    "LoggingSettings",
    "ObservabilitySettings",
    "VaultSettings",
    "load_settings",
    "resolve_component_settings",
]
