"""Kernel error hierarchy – public re-export surface.

Hierarchy::

    BaseError
    ├── ApplicationError       (application.py)
    └── InfrastructureError    (infrastructure.py)
        ├── SerializationError
        └── ExternalServiceError

Decoder-specific subclasses live in :mod:`mp_payloads.serde.errors`.
"""

from mp_payloads.kernel.errors.application import ApplicationError
from mp_payloads.kernel.errors.base import BaseError
from mp_payloads.kernel.errors.infrastructure import (
    ExternalServiceError,
    InfrastructureError,
    SerializationError,
)

__all__ = [
    "ApplicationError",
    "BaseError",
    "ExternalServiceError",
    "InfrastructureError",
    "SerializationError",
]
