"""Config settings – SettingsFactory."""
from __future__ import annotations

import dataclasses
from typing import Any, Sequence, TypeVar

from sheetstream.config.settings.base import Settings
from sheetstream.config.settings.loaders import SettingsLoader
from sheetstream.config.validation.errors import ConfigError

T = TypeVar("T", bound=Settings)


class SettingsFactory:
    """Merge the outputs of several loaders, apply overrides, and construct
    a settings dataclass in one step.

    Loaders are applied in order; later loaders win for fields they set to a
    non-default value. *overrides* take the highest priority.
    """

    @staticmethod
    def create(
        settings_cls: type[T],
        loaders: Sequence[SettingsLoader] | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> T:
        """
        Parameters
        ----------
        settings_cls:
            The :class:`~sheetstream.config.settings.base.Settings` subclass
            to construct.
        loaders:
            Ordered sequence of loaders. Errors raised by a loader propagate:
            a malformed environment must not silently fall back to defaults.
        overrides:
            Explicit key-value pairs applied after all loaders, useful for
            tests and per-deployment tuning.

        Raises
        ------
        InvalidSettingValueError
            When a merged value fails the settings' own validation.
        ConfigError
            On any other construction failure.
        """
        defaults = settings_cls()
        merged: dict[str, Any] = {}

        for loader in loaders or []:
            instance = loader.load(settings_cls)
            for field in dataclasses.fields(instance):  # type: ignore[arg-type]
                value = getattr(instance, field.name)
                if value != getattr(defaults, field.name):
                    merged[field.name] = value

        if overrides:
            unknown = set(overrides) - {f.name for f in dataclasses.fields(settings_cls)}  # type: ignore[arg-type]
            if unknown:
                raise ConfigError(f"Unknown settings for {settings_cls.__name__}: {sorted(unknown)}")
            merged.update(overrides)

        try:
            return settings_cls(**merged)
        except ConfigError:
            raise
        except Exception as exc:
            raise ConfigError(f"Failed to construct {settings_cls.__name__}: {exc}") from exc


__all__ = ["SettingsFactory"]
