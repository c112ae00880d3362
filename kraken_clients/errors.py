"""
Error taxonomy for Kraken clients.

Three failure families reach callers:

* ``KrakenTransportError`` - the connection itself failed (connect, send,
  receive, or an HTTP body that is not a Kraken envelope).
* ``InvalidUsageError`` - the request could not be built locally (missing
  credentials, malformed secret, unserializable frame, closed session).
* ``KrakenAPIError`` - Kraken answered with an ``error`` list; the list is
  normalised by ``classify_errors`` into one category.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple, Type


RATE_LIMIT_MARKER = "Rate limit exceeded"


class ProviderErrorKind(str, Enum):
    """Categories Kraken error strings are normalised into."""

    GENERAL = "general"
    API = "api"
    SERVICE = "service"
    ORDER = "order"
    TRADING = "trading"
    RATE_LIMIT = "rate_limit"
    UNCLASSIFIED = "unclassified"


class KrakenError(Exception):
    """Base class for every error raised by kraken_clients."""


class KrakenTransportError(KrakenError):
    """Raised when the HTTP or WebSocket transport fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidUsageError(KrakenError):
    """Raised for local misuse: missing credentials, bad secret, serialization failures."""


class MissingCredentialsError(InvalidUsageError):
    """Raised when a private call is attempted without an API key or secret."""


class KrakenAPIError(KrakenError):
    """
    Error reported by Kraken in the response envelope.

    Attributes:
        kind: Normalised category of the error.
        messages: The original error string(s), verbatim.
    """

    kind: ProviderErrorKind = ProviderErrorKind.UNCLASSIFIED

    def __init__(self, messages: Iterable[str] = ()) -> None:
        self.messages: Tuple[str, ...] = tuple(messages)
        super().__init__(self._describe())

    def _describe(self) -> str:
        if not self.messages:
            return f"Kraken {self.kind.value} error (no error information)"
        return f"Kraken {self.kind.value} error: {'; '.join(self.messages)}"

    @property
    def message(self) -> Optional[str]:
        """First error string, or None when Kraken supplied none."""
        return self.messages[0] if self.messages else None


class GeneralError(KrakenAPIError):
    """EGeneral / EQuery / EMarket / EData / EFunding errors."""

    kind = ProviderErrorKind.GENERAL


class ApiError(KrakenAPIError):
    """EAPI errors (bad key, bad signature, invalid nonce, ...)."""

    kind = ProviderErrorKind.API


class ServiceError(KrakenAPIError):
    """EService errors (unavailable, busy, market in cancel-only mode)."""

    kind = ProviderErrorKind.SERVICE


class OrderError(KrakenAPIError):
    """EOrder errors."""

    kind = ProviderErrorKind.ORDER


class TradingError(KrakenAPIError):
    """ETrade errors."""

    kind = ProviderErrorKind.TRADING


class RateLimitExceededError(KrakenAPIError):
    """Any error string reporting rate-limit exhaustion, regardless of prefix."""

    kind = ProviderErrorKind.RATE_LIMIT


class UnclassifiedError(KrakenAPIError):
    """No string matched a known category; carries the complete original list."""

    kind = ProviderErrorKind.UNCLASSIFIED


# Checked per string, in this order. The rate-limit substring test runs first.
_PREFIX_RULES: Tuple[Tuple[Tuple[str, ...], Type[KrakenAPIError]], ...] = (
    (("EAPI:",), ApiError),
    (("EGeneral:", "EQuery:", "EMarket:", "EData:", "EFunding:"), GeneralError),
    (("EService:",), ServiceError),
    (("EOrder:",), OrderError),
    (("ETrade:",), TradingError),
)


def _classify_one(error: str) -> Optional[Type[KrakenAPIError]]:
    if RATE_LIMIT_MARKER in error:
        return RateLimitExceededError
    for prefixes, error_cls in _PREFIX_RULES:
        if error.startswith(prefixes):
            return error_cls
    return None


def classify_errors(errors: Sequence[str]) -> KrakenAPIError:
    """
    Map Kraken's ``error`` list to a single structured error.

    The list is scanned in order and the first string matching any known
    category decides the result; later strings never override it. An empty
    list yields an ``UnclassifiedError`` without messages, meaning "no error
    information available". When nothing matches, the whole list is kept.

    Args:
        errors: Raw error strings from the response envelope.

    Returns:
        The error instance (not raised).
    """
    if not errors:
        return UnclassifiedError()

    for error in errors:
        error_cls = _classify_one(error)
        if error_cls is not None:
            return error_cls([error])

    return UnclassifiedError(errors)


__all__ = [
    "RATE_LIMIT_MARKER",
    "ProviderErrorKind",
    "KrakenError",
    "KrakenTransportError",
    "InvalidUsageError",
    "MissingCredentialsError",
    "KrakenAPIError",
    "GeneralError",
    "ApiError",
    "ServiceError",
    "OrderError",
    "TradingError",
    "RateLimitExceededError",
    "UnclassifiedError",
    "classify_errors",
]
