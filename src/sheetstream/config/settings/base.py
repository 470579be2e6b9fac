"""Config settings – Settings base class."""
from __future__ import annotations

import dataclasses
from typing import ClassVar


@dataclasses.dataclass(frozen=True)
class Settings:
    """Base class for immutable, 12-factor settings.

    Instances are built once (from defaults, environment or explicit
    overrides) and handed to constructors; nothing reads them globally.
    """

    _prefix: ClassVar[str] = ""

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        """Override to add cross-field validation."""

    def replace(self, **changes: object) -> "Settings":
        """Return a copy with *changes* applied (validated again)."""
        return dataclasses.replace(self, **changes)


__all__ = ["Settings"]
