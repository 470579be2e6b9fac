"""Kernel – framework-agnostic building blocks (errors, clock, slug)."""

from sheetstream.kernel.errors import (
    ApplicationError,
    BaseError,
    DomainError,
    InfrastructureError,
    ValidationError,
)
from sheetstream.kernel.time import Clock, FrozenClock, SystemClock
from sheetstream.kernel.types import Slug

__all__ = [
    "ApplicationError",
    "BaseError",
    "Clock",
    "DomainError",
    "FrozenClock",
    "InfrastructureError",
    "Slug",
    "SystemClock",
    "ValidationError",
]
