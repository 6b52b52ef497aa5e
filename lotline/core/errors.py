"""Error taxonomy shared by the licensing core and the HTTP layer."""

from __future__ import annotations


class LicensingError(Exception):
    """Base class for licensing and tenant lifecycle failures."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthenticationError(LicensingError):
    """Billing event signature is missing or does not verify."""


class NotFoundError(LicensingError):
    """Organization, tier or license does not exist."""


class ConflictError(LicensingError):
    """Billing event is older than the state already applied to the license."""


class TransientError(LicensingError):
    """Storage was unavailable or too slow; the caller should retry delivery."""


class ValidationError(LicensingError):
    """Event payload or request is malformed and cannot be applied."""
