"""Kernel error hierarchy – public re-export surface.

Hierarchy::

    BaseError
    ├── DomainError          (domain.py)
    │   └── ValidationError
    ├── ApplicationError     (application.py)
    └── InfrastructureError  (infrastructure.py)

Export-specific subclasses live in :mod:`sheetstream.application.export.errors`.
"""

from sheetstream.kernel.errors.application import ApplicationError
from sheetstream.kernel.errors.base import BaseError
from sheetstream.kernel.errors.domain import DomainError, ValidationError
from sheetstream.kernel.errors.infrastructure import InfrastructureError

__all__ = [
    "ApplicationError",
    "BaseError",
    "DomainError",
    "InfrastructureError",
    "ValidationError",
]
