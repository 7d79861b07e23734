# File: azurebox/errors.py
from typing import Optional


class AzureBoxError(Exception):
    """Basisklasse aller Fehler dieses Pakets."""


class UsageError(AzureBoxError, ValueError):
    """The caller used the API wrongly (no token, bad field list). Never retried."""


class RemoteAuthFailure(AzureBoxError):
    """Exchanging the authorization code for a token failed."""

    def __init__(self, message: str, *, error: Optional[str] = None, description: Optional[str] = None):
        super().__init__(message)
        self.error = error
        self.description = description

    def __str__(self) -> str:
        base = super().__str__()
        if self.error:
            base = f"{base} ({self.error})"
        if self.description:
            base = f"{base}: {self.description}"
        return base
