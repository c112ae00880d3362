"""
Single request/response cycle against the Kraken REST API.

Public calls are plain GETs with query parameters. Private calls are signed
POSTs with a form body. Both paths end in the same envelope decode, so every
response is classified the same way.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from helpers.unified_logger import UnifiedLogger, get_exchange_logger
from kraken_clients.base_models import KrakenCredentials
from kraken_clients.config import DEFAULT_REST_URL
from kraken_clients.errors import KrakenTransportError, classify_errors

from .rate_limiter import TokenBucketRateLimiter
from .signer import NonceGenerator, build_signed_request, decode_secret, form_value

ModelT = TypeVar("ModelT", bound=BaseModel)

Params = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None]

DEFAULT_RATE_PER_SECOND = 1.0
DEFAULT_BURST = 15.0


def _normalize_params(params: Params) -> List[Tuple[str, str]]:
    """Caller params as ordered string pairs; mappings keep insertion order."""
    if params is None:
        return []
    items = params.items() if isinstance(params, Mapping) else params
    return [(str(key), form_value(value)) for key, value in items if value is not None]


def create_http_client(timeout: Optional[float] = None, **kwargs: Any) -> httpx.AsyncClient:
    """
    Return the AsyncClient used for REST calls.

    Args:
        timeout: Seconds before httpx gives up on a request. ``None`` disables it.
        **kwargs: Additional parameters forwarded to ``httpx.AsyncClient``.
    """
    client_kwargs = dict(kwargs)
    client_kwargs["timeout"] = httpx.Timeout(timeout)
    return httpx.AsyncClient(**client_kwargs)


class KrakenRestDispatcher:
    """
    Executes public and private REST calls.

    One instance owns one credential pair, one nonce sequence and one rate
    bucket; every private call (and public calls when ``rate_limit_public``
    is set) draws a token from that bucket.
    """

    def __init__(
        self,
        credentials: Optional[KrakenCredentials] = None,
        *,
        base_url: str = DEFAULT_REST_URL,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
        nonce_generator: Optional[NonceGenerator] = None,
        rate_limit_public: bool = False,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        logger: Optional[UnifiedLogger] = None,
    ):
        self.credentials = credentials or KrakenCredentials()
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter or TokenBucketRateLimiter(DEFAULT_RATE_PER_SECOND, DEFAULT_BURST)
        self.nonce_generator = nonce_generator or NonceGenerator()
        self.rate_limit_public = rate_limit_public
        self.logger = logger or get_exchange_logger("kraken", component="rest")

        self._owns_http_client = http_client is None
        self._http = http_client or create_http_client(timeout)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this dispatcher created it."""
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "KrakenRestDispatcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def execute(
        self,
        method: str,
        path: str,
        params: Params = None,
        requires_auth: bool = False,
        result_model: Optional[Type[ModelT]] = None,
    ) -> Any:
        """
        Execute one REST call and return the decoded ``result``.

        Args:
            method: HTTP method. Private calls are always sent as POST.
            path: URI path, e.g. ``/0/public/Time``
            params: Query (public) or form (private) parameters, order preserved
            requires_auth: Sign the call with the configured credentials
            result_model: Optional pydantic model to validate ``result`` into

        Returns:
            The validated model, or the raw ``result`` value when no model is given

        Raises:
            InvalidUsageError: Missing credentials or an undecodable secret (before any I/O)
            KrakenAPIError: Kraken returned a non-empty ``error`` list
            KrakenTransportError: The request failed or the body is not a Kraken envelope
        """
        fields = _normalize_params(params)

        if requires_auth:
            response = await self._send_private(path, fields)
        else:
            response = await self._send_public(method, path, fields)

        return self._decode_envelope(path, response, result_model)

    async def _send_public(self, method: str, path: str, fields: List[Tuple[str, str]]) -> httpx.Response:
        if self.rate_limit_public:
            await self.rate_limiter.acquire()

        self.logger.debug(f"{method.upper()} {path}")
        try:
            return await self._http.request(method.upper(), self._url(path), params=fields)
        except httpx.HTTPError as exc:
            raise KrakenTransportError(f"{method.upper()} {path} failed: {exc}") from exc

    async def _send_private(self, path: str, fields: List[Tuple[str, str]]) -> httpx.Response:
        credentials = self.credentials.require()
        # A malformed secret must fail before a rate token is spent
        decode_secret(credentials.api_secret)

        await self.rate_limiter.acquire()

        signed = build_signed_request(
            credentials.api_secret,
            path,
            fields,
            self.nonce_generator.next(),
        )
        headers = {
            "API-Key": credentials.api_key,
            "API-Sign": signed.signature,
            "Content-Type": "application/x-www-form-urlencoded",
        }

        self.logger.debug(f"POST {path} ({len(fields)} params)")
        try:
            return await self._http.post(self._url(path), content=signed.body, headers=headers)
        except httpx.HTTPError as exc:
            raise KrakenTransportError(f"POST {path} failed: {exc}") from exc

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _decode_envelope(
        self,
        path: str,
        response: httpx.Response,
        result_model: Optional[Type[ModelT]],
    ) -> Any:
        status = response.status_code
        try:
            payload = response.json()
        except ValueError as exc:
            raise KrakenTransportError(
                f"{path} returned a non-JSON body (HTTP {status})",
                status_code=status,
            ) from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("error"), list):
            raise KrakenTransportError(
                f"{path} returned an unexpected body (HTTP {status})",
                status_code=status,
            )

        errors = [str(error) for error in payload["error"]]
        if errors:
            error = classify_errors(errors)
            self.logger.warning(f"{path} rejected: {error}")
            raise error

        # An empty error list with nothing in result carries no information
        result = payload.get("result")
        if result is None:
            raise classify_errors([])

        if result_model is None:
            return result

        try:
            return result_model.model_validate(result)
        except ValidationError as exc:
            raise KrakenTransportError(
                f"{path} result does not match {result_model.__name__}: {exc}",
                status_code=status,
            ) from exc


__all__ = ["KrakenRestDispatcher", "create_http_client"]
