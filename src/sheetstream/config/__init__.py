"""Config – immutable export settings and their loaders."""

from sheetstream.config.settings import (
    EnvSettingsLoader,
    ExportSettings,
    Settings,
    SettingsFactory,
    SettingsLoader,
)
from sheetstream.config.validation import ConfigError, InvalidSettingValueError

__all__ = [
    "ConfigError",
    "EnvSettingsLoader",
    "ExportSettings",
    "InvalidSettingValueError",
    "Settings",
    "SettingsFactory",
    "SettingsLoader",
]
