"""
Shared data structures and utilities for Kraken clients.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .errors import MissingCredentialsError


_PLACEHOLDER_VALUES = (
    "your_api_key_here",
    "your_secret_key_here",
    "your_api_secret_here",
    "PLACEHOLDER",
    "placeholder",
)


def validate_credentials(
    credential_name: str,
    credential_value: Optional[str],
    placeholder_values: Optional[List[str]] = None,
) -> str:
    """
    Validate a credential so it is neither missing nor a placeholder.

    Args:
        credential_name: Human-readable name used in the error (e.g. 'API key')
        credential_value: Value to check
        placeholder_values: Values to reject as "not configured"

    Returns:
        The credential value, unchanged.

    Raises:
        MissingCredentialsError: If the credential is missing or a placeholder
    """
    if placeholder_values is None:
        placeholder_values = list(_PLACEHOLDER_VALUES)

    if not credential_value:
        raise MissingCredentialsError(f"{credential_name} not set")

    if credential_value in placeholder_values:
        raise MissingCredentialsError(f"{credential_name} is not configured (placeholder value)")

    return credential_value


@dataclass(frozen=True)
class KrakenCredentials:
    """
    API key and base64-encoded secret for private endpoints.

    Either half may be absent; private calls check both before any I/O.
    The secret never appears in ``repr`` output.
    """

    api_key: Optional[str] = None
    api_secret: Optional[str] = field(default=None, repr=False)

    @property
    def is_complete(self) -> bool:
        """True when both the key and the secret are present."""
        return bool(self.api_key) and bool(self.api_secret)

    def require(self) -> "KrakenCredentials":
        """Return self after checking both halves, key first."""
        validate_credentials("API key", self.api_key)
        validate_credentials("API secret", self.api_secret)
        return self


__all__ = [
    "KrakenCredentials",
    "MissingCredentialsError",
    "validate_credentials",
]
