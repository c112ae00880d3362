"""
Kraken WebSocket package.

This package contains the modular stream session implementation:
- manager: KrakenStreamSession, lifecycle and outbound commands
- connection: Socket ownership and the serialized write path
- message_handler: Ordered classification and per-category dispatch
- correlation: Optional req_id tracking
- models: Outbound request and inbound message models
"""

from .manager import KrakenStreamSession, SessionState
from .message_handler import KrakenMessageClassifier, KrakenMessageHandler, MessageCandidate

__all__ = [
    "KrakenStreamSession",
    "SessionState",
    "KrakenMessageClassifier",
    "KrakenMessageHandler",
    "MessageCandidate",
]
