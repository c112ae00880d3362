"""
Request signing and nonce generation for Kraken private endpoints.

Signature scheme (``API-Sign`` header):

    HMAC-SHA512(
        key=base64decode(api_secret),
        msg=uri_path + SHA256(nonce + post_data),
    )

base64-encoded. ``post_data`` is the form body exactly as transmitted, so
field order matters.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Tuple
from urllib.parse import urlencode

from kraken_clients.errors import InvalidUsageError

FormFields = Sequence[Tuple[str, str]]


class NonceGenerator:
    """
    Strictly increasing nonces derived from the wall clock in microseconds.

    Kraken rejects a nonce that is not greater than the previous one for the
    same key. The clock alone can repeat or step backwards, so each value is
    ``max(clock_us, last + 1)``. One generator per credential pair, shared by
    every request signed with that pair.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.time
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            candidate = int(self._clock() * 1_000_000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return candidate

    @property
    def last(self) -> int:
        return self._last


@dataclass(frozen=True)
class SignedRequest:
    """One signed private request. Built per call and never reused."""

    path: str
    fields: Tuple[Tuple[str, str], ...]
    nonce: int
    signature: str

    @property
    def body(self) -> str:
        """Form-encoded body, byte-identical to the signed post data."""
        return encode_form(self.fields)


def encode_form(fields: FormFields) -> str:
    """Join fields as ``key=value`` pairs with ``&``, keeping the given order."""
    return urlencode(list(fields))


def decode_secret(secret: str) -> bytes:
    """Base64-decode the API secret into the HMAC key."""
    try:
        key = base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidUsageError(f"Could not decode API secret from base64: {exc}") from exc
    if not key:
        raise InvalidUsageError("HMAC error: decoded API secret has length 0")
    return key


def sign_request(secret: str, path: str, fields: FormFields, nonce: int) -> str:
    """
    Compute the ``API-Sign`` value for a private request.

    Args:
        secret: Base64-encoded API secret
        path: URI path, e.g. ``/0/private/Balance``
        fields: Ordered form fields, nonce included
        nonce: The nonce carried in ``fields``

    Returns:
        Base64-encoded HMAC-SHA512 signature

    Raises:
        InvalidUsageError: If the secret is not valid base64 or decodes to an empty key
    """
    key = decode_secret(secret)
    post_data = encode_form(fields)

    sha256_digest = hashlib.sha256(f"{nonce}{post_data}".encode("utf-8")).digest()
    mac = hmac.new(key, path.encode("utf-8") + sha256_digest, hashlib.sha512)
    return base64.b64encode(mac.digest()).decode("ascii")


def build_signed_request(
    secret: str,
    path: str,
    params: Optional[Iterable[Tuple[str, object]]],
    nonce: int,
) -> SignedRequest:
    """
    Assemble the form fields (nonce first, then caller params in caller order) and sign them.
    """
    fields = [("nonce", str(nonce))]
    for key, value in params or ():
        fields.append((str(key), form_value(value)))

    signature = sign_request(secret, path, fields, nonce)
    return SignedRequest(path=path, fields=tuple(fields), nonce=nonce, signature=signature)


def form_value(value: object) -> str:
    """Render a parameter value the way Kraken expects it in a form body."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


__all__ = [
    "NonceGenerator",
    "SignedRequest",
    "build_signed_request",
    "decode_secret",
    "encode_form",
    "form_value",
    "sign_request",
]
