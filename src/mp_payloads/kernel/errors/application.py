"""Application-layer errors – misuse of the library by its caller."""

from __future__ import annotations

from mp_payloads.kernel.errors.base import BaseError


class ApplicationError(BaseError):
    """Caller-side problem: bad configuration, invalid arguments."""

    default_code = "application_error"


__all__ = ["ApplicationError"]
