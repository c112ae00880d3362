"""
Message classification and routing for the Kraken stream.

Inbound frames are matched against an explicit, ordered list of candidates.
Each candidate pairs a cheap predicate on the raw payload with a pydantic
decoder; the first candidate whose predicate holds and whose decoder
validates wins. A decoder failure falls through to the next candidate, and
a payload nobody claims is kept as ``CatchAllMessage``.
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Type

from pydantic import ValidationError

from .models import (
    AddOrderStatus,
    AmendOrderStatus,
    BalancesMessage,
    BatchAddStatus,
    BatchCancelStatus,
    BookMessage,
    CancelAllStatus,
    CancelOnDisconnectStatus,
    CancelOrderStatus,
    CandlesMessage,
    CatchAllMessage,
    EditOrderStatus,
    ExecutionsMessage,
    HeartbeatEvent,
    InboundMessage,
    InstrumentsMessage,
    MessageCategory,
    PingStatusEvent,
    SubscriptionStatusEvent,
    SystemStatusEvent,
    TickerMessage,
    TradesMessage,
    UnknownAdminEvent,
)

MessageCallback = Callable[[InboundMessage], Optional[Awaitable[None]]]


@dataclass(frozen=True)
class MessageCandidate:
    """One entry of the classification order."""
    name: str
    predicate: Callable[[Any], bool]
    model: Type[InboundMessage]

    def decode(self, payload: Any) -> InboundMessage:
        return self.model.model_validate(payload)


def _event_is(*tags: str) -> Callable[[Any], bool]:
    def predicate(payload: Any) -> bool:
        return isinstance(payload, dict) and payload.get("event") in tags
    return predicate


def _channel_is(*names: str) -> Callable[[Any], bool]:
    def predicate(payload: Any) -> bool:
        return isinstance(payload, dict) and payload.get("channel") in names
    return predicate


def _either(*predicates: Callable[[Any], bool]) -> Callable[[Any], bool]:
    def predicate(payload: Any) -> bool:
        return any(check(payload) for check in predicates)
    return predicate


def _has_event_tag(payload: Any) -> bool:
    return isinstance(payload, dict) and isinstance(payload.get("event"), str)


# Order is the contract. Known admin tags first, then market data, user data,
# trading acknowledgements, and finally any other event-tagged frame as admin.
DEFAULT_CANDIDATES: Sequence[MessageCandidate] = (
    # Admin
    MessageCandidate("system_status", _either(_event_is("systemStatus"), _channel_is("status")), SystemStatusEvent),
    MessageCandidate("subscription_status", _event_is("subscriptionStatus"), SubscriptionStatusEvent),
    MessageCandidate("ping_status", _event_is("pingStatus", "pong"), PingStatusEvent),
    MessageCandidate("heartbeat", _either(_event_is("heartbeat"), _channel_is("heartbeat")), HeartbeatEvent),
    # Market data
    MessageCandidate("ticker", _channel_is("ticker"), TickerMessage),
    MessageCandidate("book", _channel_is("book"), BookMessage),
    MessageCandidate("candles", _channel_is("ohlc", "candles"), CandlesMessage),
    MessageCandidate("trades", _channel_is("trade", "trades"), TradesMessage),
    MessageCandidate("instruments", _channel_is("instrument", "instruments"), InstrumentsMessage),
    # User data
    MessageCandidate("balances", _channel_is("balances"), BalancesMessage),
    MessageCandidate("executions", _channel_is("executions"), ExecutionsMessage),
    # Trading acknowledgements
    MessageCandidate("add_order_status", _event_is("addOrderStatus"), AddOrderStatus),
    MessageCandidate("amend_order_status", _event_is("amendOrderStatus"), AmendOrderStatus),
    MessageCandidate("edit_order_status", _event_is("editOrderStatus"), EditOrderStatus),
    MessageCandidate("cancel_order_status", _event_is("cancelOrderStatus"), CancelOrderStatus),
    MessageCandidate("cancel_all_status", _event_is("cancelAllStatus"), CancelAllStatus),
    MessageCandidate("cancel_on_disconnect_status", _event_is("cancelOnDisconnectStatus"), CancelOnDisconnectStatus),
    MessageCandidate("batch_add_status", _event_is("batchAddStatus"), BatchAddStatus),
    MessageCandidate("batch_cancel_status", _event_is("batchCancelStatus"), BatchCancelStatus),
    # Any other event tag is an unrecognized admin event
    MessageCandidate("unknown_admin", _has_event_tag, UnknownAdminEvent),
)


class KrakenMessageClassifier:
    """Maps a decoded JSON value to exactly one ``InboundMessage`` variant."""

    def __init__(
        self,
        candidates: Sequence[MessageCandidate] = DEFAULT_CANDIDATES,
        logger: Optional[Any] = None,
    ):
        self.candidates = tuple(candidates)
        self.logger = logger

    def classify(self, payload: Any) -> InboundMessage:
        for candidate in self.candidates:
            if not candidate.predicate(payload):
                continue
            try:
                return candidate.decode(payload)
            except ValidationError as exc:
                if self.logger:
                    self.logger.debug(
                        f"[KRAKEN] Frame looked like {candidate.name} but did not validate "
                        f"({exc.error_count()} errors), trying next shape"
                    )
        return CatchAllMessage(raw=payload)


class KrakenMessageHandler:
    """Parses raw text frames, classifies them and routes them to per-category callbacks."""

    def __init__(
        self,
        on_admin: Optional[MessageCallback] = None,
        on_market_data: Optional[MessageCallback] = None,
        on_user_data: Optional[MessageCallback] = None,
        on_trading: Optional[MessageCallback] = None,
        on_unhandled: Optional[MessageCallback] = None,
        classifier: Optional[KrakenMessageClassifier] = None,
        logger: Optional[Any] = None,
    ):
        """
        Initialize message handler.

        Args:
            on_admin: Callback for system status, subscription and ping acks, heartbeats
            on_market_data: Callback for ticker, book, candles, trades, instruments
            on_user_data: Callback for balances and executions
            on_trading: Callback for order add/amend/edit/cancel/batch acknowledgements
            on_unhandled: Callback for frames that matched no known shape
            classifier: Classifier override
            logger: Logger instance
        """
        self.callbacks: Dict[MessageCategory, Optional[MessageCallback]] = {
            MessageCategory.ADMIN: on_admin,
            MessageCategory.MARKET_DATA: on_market_data,
            MessageCategory.USER_DATA: on_user_data,
            MessageCategory.TRADING: on_trading,
            MessageCategory.UNHANDLED: on_unhandled,
        }
        self.logger = logger
        self.classifier = classifier or KrakenMessageClassifier(logger=logger)

    def set_logger(self, logger):
        """Set the logger instance."""
        self.logger = logger
        self.classifier.logger = logger

    def _log(self, message: str, level: str = "INFO"):
        """Log message using the logger if available."""
        if self.logger:
            if hasattr(self.logger, 'log'):
                self.logger.log(message, level)
            elif level == "ERROR" and hasattr(self.logger, 'error'):
                self.logger.error(message)
            elif level == "WARNING" and hasattr(self.logger, 'warning'):
                self.logger.warning(message)
            elif level == "DEBUG" and hasattr(self.logger, 'debug'):
                self.logger.debug(message)
            elif hasattr(self.logger, 'info'):
                self.logger.info(message)

    def parse(self, message: str) -> Optional[InboundMessage]:
        """
        Decode and classify one text frame.

        Returns:
            The classified message, or None when the text cannot be decoded
        """
        try:
            payload = json.loads(message)
        except (json.JSONDecodeError, RecursionError) as exc:  # RecursionError: nesting too deep
            self._log(f"[KRAKEN] Failed to decode stream message: {exc}; raw: {message[:200]}", "WARNING")
            return None
        return self.classifier.classify(payload)

    async def dispatch(self, message: InboundMessage) -> None:
        """Hand a classified message to its category callback. Callback failures are logged only."""
        callback = self.callbacks.get(message.category)
        if callback is None:
            self._log(f"[KRAKEN] No {message.category.value} handler for {type(message).__name__}", "DEBUG")
            return

        try:
            result = callback(message)
            if isinstance(result, Awaitable):
                await result
        except Exception as exc:
            self._log(f"[KRAKEN] {message.category.value} handler failed: {exc}", "ERROR")

    async def process_message(self, message: str) -> Optional[InboundMessage]:
        """Parse, classify and dispatch one text frame."""
        classified = self.parse(message)
        if classified is not None:
            await self.dispatch(classified)
        return classified
