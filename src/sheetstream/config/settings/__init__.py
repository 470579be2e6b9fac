"""Config settings – immutable settings, env-based loaders."""
from sheetstream.config.settings.base import Settings
from sheetstream.config.settings.export import ExportSettings
from sheetstream.config.settings.factory import SettingsFactory
from sheetstream.config.settings.loaders import DotenvSettingsLoader, EnvSettingsLoader, SettingsLoader

__all__ = [
    "DotenvSettingsLoader",
    "EnvSettingsLoader",
    "ExportSettings",
    "Settings",
    "SettingsFactory",
    "SettingsLoader",
]
