"""
Kraken REST package.

- client: KrakenRestClient, the endpoint catalog
- dispatcher: Single request/response cycle (signing, rate limiting, envelope decode)
- signer: Nonce generation and API-Sign computation
- rate_limiter: Token-bucket admission control
- models: Typed results for common endpoints
"""

from .client import KrakenRestClient
from .dispatcher import KrakenRestDispatcher
from .rate_limiter import TokenBucketRateLimiter
from .signer import NonceGenerator, SignedRequest, build_signed_request, sign_request

__all__ = [
    "KrakenRestClient",
    "KrakenRestDispatcher",
    "TokenBucketRateLimiter",
    "NonceGenerator",
    "SignedRequest",
    "build_signed_request",
    "sign_request",
]
