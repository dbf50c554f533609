"""Infrastructure errors – payload decoding and external collaborators."""

from __future__ import annotations

from typing import Any

from mp_payloads.kernel.errors.base import BaseError


class InfrastructureError(BaseError):
    """Failure while handling bytes or talking to an external service."""

    default_code = "infrastructure_error"


class SerializationError(InfrastructureError):
    """Failed to serialize or deserialize a payload."""

    default_code = "serialization_error"

    def __init__(
        self,
        message: str,
        *,
        payload_type: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.payload_type = payload_type


class ExternalServiceError(InfrastructureError):
    """A collaborator (schema registry, descriptor store…) failed."""

    default_code = "external_service_error"

    def __init__(
        self,
        service: str,
        message: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message or f"External service '{service}' error", **kwargs)
        self.service = service


__all__ = [
    "ExternalServiceError",
    "InfrastructureError",
    "SerializationError",
]
