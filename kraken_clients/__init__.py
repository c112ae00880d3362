"""
Kraken Connectivity Library

Authenticated REST and WebSocket access to the Kraken Spot API with
request signing, rate limiting, and structured error classification.

Modules:
    - rest: Signed REST dispatcher and endpoint catalog (KrakenRestClient)
    - websocket: Stream session, frame models and message classification
    - errors: Error taxonomy and classify_errors
    - config: KrakenSettings (environment / .env)
"""

from .base_models import KrakenCredentials, validate_credentials
from .config import KrakenSettings
from .errors import (
    ApiError,
    GeneralError,
    InvalidUsageError,
    KrakenAPIError,
    KrakenError,
    KrakenTransportError,
    MissingCredentialsError,
    OrderError,
    ProviderErrorKind,
    RateLimitExceededError,
    ServiceError,
    TradingError,
    UnclassifiedError,
    classify_errors,
)
from .rest import KrakenRestClient, KrakenRestDispatcher, TokenBucketRateLimiter
from .websocket import KrakenStreamSession, SessionState

__all__ = [
    "KrakenCredentials",
    "validate_credentials",
    "KrakenSettings",
    "ApiError",
    "GeneralError",
    "InvalidUsageError",
    "KrakenAPIError",
    "KrakenError",
    "KrakenTransportError",
    "MissingCredentialsError",
    "OrderError",
    "ProviderErrorKind",
    "RateLimitExceededError",
    "ServiceError",
    "TradingError",
    "UnclassifiedError",
    "classify_errors",
    "KrakenRestClient",
    "KrakenRestDispatcher",
    "TokenBucketRateLimiter",
    "KrakenStreamSession",
    "SessionState",
]

__version__ = "0.1.0"
