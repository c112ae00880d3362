"""
Stream session for the Kraken WebSocket API.

Orchestrates the connection, the background reader task, message
classification/dispatch and (optionally) request correlation.
"""

import asyncio
import json
from enum import Enum
from typing import Any, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError
from websockets.exceptions import ConnectionClosedError, WebSocketException

from helpers.unified_logger import UnifiedLogger, get_logger, get_stream_logger
from kraken_clients.config import DEFAULT_WS_URL, KrakenSettings
from kraken_clients.errors import InvalidUsageError, KrakenTransportError

from .connection import KrakenWebSocketConnection
from .correlation import RequestCorrelator, ResolutionCallback
from .message_handler import KrakenMessageClassifier, KrakenMessageHandler, MessageCallback
from .models import (
    AddOrderRequest,
    AmendOrderRequest,
    AuthorizeRequest,
    BatchAddRequest,
    BatchCancelRequest,
    CancelAllRequest,
    CancelOnDisconnectRequest,
    CancelOrderRequest,
    EditOrderRequest,
    HeartbeatRequest,
    InboundMessage,
    OrderSpec,
    PingRequest,
    SubscribeRequest,
    SubscriptionPayload,
    UnsubscribeRequest,
    WsRequest,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


class SessionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class KrakenStreamSession:
    """
    One duplex stream connection with a single background reader.

    Lifecycle is ``CONNECTING -> OPEN -> CLOSED``; CLOSED is terminal and a
    failed handshake goes straight to it. There is no reconnect: build a new
    session instead.
    """

    def __init__(
        self,
        ws_url: str = DEFAULT_WS_URL,
        *,
        on_admin: Optional[MessageCallback] = None,
        on_market_data: Optional[MessageCallback] = None,
        on_user_data: Optional[MessageCallback] = None,
        on_trading: Optional[MessageCallback] = None,
        on_unhandled: Optional[MessageCallback] = None,
        classifier: Optional[KrakenMessageClassifier] = None,
        track_requests: bool = False,
        open_timeout: Optional[float] = None,
        logger: Optional[UnifiedLogger] = None,
    ):
        """
        Initialize the session. Nothing is connected until ``connect()``.

        Args:
            ws_url: Stream URL; use the ws-auth endpoint for trading and user data
            on_admin: Callback for admin events
            on_market_data: Callback for market data
            on_user_data: Callback for balances and executions
            on_trading: Callback for trading acknowledgements
            on_unhandled: Callback for frames no known shape matched
            classifier: Classifier override
            track_requests: Keep a req_id table so callers can await acknowledgements
            open_timeout: Handshake timeout in seconds; None waits indefinitely
            logger: Logger override
        """
        self.ws_url = ws_url
        self.logger = logger or get_stream_logger("kraken_ws")

        self.connection = KrakenWebSocketConnection(ws_url, logger=self.logger, open_timeout=open_timeout)
        self.message_handler = KrakenMessageHandler(
            on_admin=on_admin,
            on_market_data=on_market_data,
            on_user_data=on_user_data,
            on_trading=on_trading,
            on_unhandled=on_unhandled,
            classifier=classifier,
            logger=self.logger,
        )
        self.correlator: Optional[RequestCorrelator] = (
            RequestCorrelator(logger=self.logger) if track_requests else None
        )

        self.state = SessionState.CONNECTING
        self.termination_error: Optional[KrakenTransportError] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._closed_event = asyncio.Event()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[KrakenSettings] = None,
        *,
        authenticated: bool = False,
        **kwargs: Any,
    ) -> "KrakenStreamSession":
        """Build a session against the public or authenticated endpoint from ``KrakenSettings``."""
        settings = settings or KrakenSettings()
        ws_url = settings.ws_auth_url if authenticated else settings.ws_url
        kwargs.setdefault(
            "logger",
            get_logger("stream", "kraken_ws", log_level=settings.log_level, log_dir=settings.log_dir),
        )
        return cls(ws_url, **kwargs)

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    async def __aenter__(self) -> "KrakenStreamSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def connect(self) -> None:
        """
        Open the connection and start the reader task.

        Raises:
            InvalidUsageError: If the session was already connected or closed
            KrakenTransportError: If the handshake fails (the session is then CLOSED)
        """
        if self.state is not SessionState.CONNECTING or self._reader_task is not None:
            raise InvalidUsageError(f"connect() called on a session in state {self.state.value}")

        try:
            await self.connection.connect()
        except KrakenTransportError as exc:
            self.logger.error(f"[KRAKEN] Stream handshake failed: {exc}")
            self._terminate(exc)
            raise

        self.state = SessionState.OPEN
        self._reader_task = asyncio.create_task(self._read_loop(), name="kraken-ws-reader")
        self.logger.info(f"[KRAKEN] Stream open: {self.ws_url}")

    async def close(self) -> None:
        """Send a close frame and wait for the reader to finish. Safe to call twice."""
        if self._reader_task is None:
            if self.state is not SessionState.CLOSED:
                self._terminate(None)
            return

        await self.connection.close()
        await self.wait_closed()

    async def wait_closed(self) -> Optional[KrakenTransportError]:
        """
        Wait until the session is CLOSED.

        Returns:
            The error that ended the session, or None after a clean close
        """
        await self._closed_event.wait()
        return self.termination_error

    def _terminate(self, error: Optional[KrakenTransportError]) -> None:
        self.state = SessionState.CLOSED
        self.termination_error = error
        if self.correlator is not None:
            self.correlator.fail_all(error or KrakenTransportError("session closed"))
        self._closed_event.set()

    async def _read_loop(self) -> None:
        """Sole consumer of inbound frames; runs until close or read error."""
        error: Optional[KrakenTransportError] = None
        try:
            async for frame in self.connection.frames():
                if isinstance(frame, bytes):
                    self.logger.debug(f"[KRAKEN] Ignoring binary frame ({len(frame)} bytes)")
                    continue

                message = self.message_handler.parse(frame)
                if message is None:
                    continue
                if self.correlator is not None:
                    await self.correlator.resolve(message)
                await self.message_handler.dispatch(message)

            self.logger.info(
                f"[KRAKEN] Stream closed (code={self.connection.close_code}, "
                f"reason={self.connection.close_reason!r})"
            )
        except ConnectionClosedError as exc:
            error = KrakenTransportError(f"WebSocket closed abnormally: {exc}")
            error.__cause__ = exc
        except (OSError, WebSocketException) as exc:
            error = KrakenTransportError(f"WebSocket read error: {exc}")
            error.__cause__ = exc
        except Exception as exc:
            error = KrakenTransportError(f"Stream reader failed: {type(exc).__name__}: {exc}")
            error.__cause__ = exc
        finally:
            if error is not None:
                self.logger.error(f"[KRAKEN] Stream reader stopped: {error}")
            # The socket must not outlive the reader
            try:
                await self.connection.close()
            finally:
                self._terminate(error)

    # ========================================================================
    # OUTBOUND
    # ========================================================================

    async def _submit(self, request: WsRequest) -> None:
        if self.state is not SessionState.OPEN:
            raise InvalidUsageError(f"Cannot send '{request.event}': session is {self.state.value}")

        try:
            frame = json.dumps(request.to_frame())
        except (TypeError, ValueError) as exc:
            raise InvalidUsageError(f"Serialize error: {exc}") from exc

        tracked = self.correlator is not None and request.req_id is not None
        if tracked:
            self.correlator.register(request.req_id)

        try:
            await self.connection.submit(frame)
        except InvalidUsageError:
            if tracked:
                self.correlator.discard(request.req_id)
            raise

        self.logger.debug(f"[KRAKEN] Sent {request.event} (req_id={request.req_id})")

    @staticmethod
    def _build(model: Type[ModelT], **fields: Any) -> ModelT:
        """Construct a request model, reporting bad arguments as invalid usage."""
        try:
            return model(**fields)
        except ValidationError as exc:
            raise InvalidUsageError(f"Invalid {model.__name__}: {exc}") from exc

    async def ping(self, req_id: Optional[int] = None) -> None:
        await self._submit(self._build(PingRequest, req_id=req_id))

    async def heartbeat(self, req_id: Optional[int] = None) -> None:
        await self._submit(self._build(HeartbeatRequest, req_id=req_id))

    async def authorize(self, token: str, req_id: Optional[int] = None) -> None:
        """Authorize with a token from ``KrakenRestClient.get_websockets_token()``."""
        await self._submit(self._build(AuthorizeRequest, token=token, req_id=req_id))

    async def subscribe(
        self,
        name: str,
        symbol: Optional[str] = None,
        *,
        depth: Optional[int] = None,
        interval: Optional[int] = None,
        req_id: Optional[int] = None,
    ) -> None:
        """
        Subscribe to a channel. Subscriptions are not tracked locally.

        Args:
            name: Channel name (ticker, book, candles, trades, instruments, ...)
            symbol: Pair such as ``BTC/USD``; required for ticker, book, candles, trades, orders
            depth: Book depth; required for book
            interval: Candle interval in minutes; required for candles
            req_id: Optional request identifier echoed in the acknowledgement
        """
        subscription = self._build(SubscriptionPayload, name=name, symbol=symbol, depth=depth, interval=interval)
        await self._submit(self._build(SubscribeRequest, subscription=subscription, req_id=req_id))

    async def unsubscribe(
        self,
        name: str,
        symbol: Optional[str] = None,
        *,
        depth: Optional[int] = None,
        interval: Optional[int] = None,
        req_id: Optional[int] = None,
    ) -> None:
        subscription = self._build(SubscriptionPayload, name=name, symbol=symbol, depth=depth, interval=interval)
        await self._submit(self._build(UnsubscribeRequest, subscription=subscription, req_id=req_id))

    async def add_order(self, token: str, *, req_id: Optional[int] = None, **order: Any) -> None:
        """
        Place an order.

        ``order`` takes ``OrderSpec`` fields in snake_case, e.g.
        ``order_type="limit", symbol="BTC/USD", side="buy", quantity="0.1", price="30000"``.
        """
        await self._submit(self._build(AddOrderRequest, token=token, req_id=req_id, **order))

    async def amend_order(self, token: str, txid: str, *, req_id: Optional[int] = None, **changes: Any) -> None:
        await self._submit(self._build(AmendOrderRequest, token=token, txid=txid, req_id=req_id, **changes))

    async def edit_order(self, token: str, txid: str, *, req_id: Optional[int] = None, **changes: Any) -> None:
        await self._submit(self._build(EditOrderRequest, token=token, txid=txid, req_id=req_id, **changes))

    async def cancel_order(self, token: str, txid: str, *, req_id: Optional[int] = None) -> None:
        await self._submit(self._build(CancelOrderRequest, token=token, txid=txid, req_id=req_id))

    async def cancel_all(self, token: str, *, req_id: Optional[int] = None) -> None:
        await self._submit(self._build(CancelAllRequest, token=token, req_id=req_id))

    async def cancel_on_disconnect(self, token: str, enable: bool, *, req_id: Optional[int] = None) -> None:
        await self._submit(self._build(CancelOnDisconnectRequest, token=token, enable=enable, req_id=req_id))

    async def batch_add(self, token: str, orders: Sequence[Any], *, req_id: Optional[int] = None) -> None:
        """``orders`` holds ``OrderSpec`` instances or dicts of ``OrderSpec`` fields."""
        specs: List[Any] = [self._build(OrderSpec, **o) if isinstance(o, dict) else o for o in orders]
        await self._submit(self._build(BatchAddRequest, token=token, orders=specs, req_id=req_id))

    async def batch_cancel(self, token: str, txids: Sequence[str], *, req_id: Optional[int] = None) -> None:
        await self._submit(self._build(BatchCancelRequest, token=token, orders=list(txids), req_id=req_id))

    # ========================================================================
    # CORRELATION
    # ========================================================================

    def _require_correlator(self) -> RequestCorrelator:
        if self.correlator is None:
            raise InvalidUsageError("Request tracking is disabled; create the session with track_requests=True")
        return self.correlator

    async def wait_for_response(self, req_id: int, timeout: Optional[float] = None) -> InboundMessage:
        """
        Wait for the acknowledgement echoing ``req_id``.

        A timeout or cancellation abandons the request, so its ``req_id`` may
        be reused.

        Raises:
            InvalidUsageError: Tracking disabled, ``req_id`` never sent or already read
            KrakenTransportError: The session ended first
            asyncio.TimeoutError: ``timeout`` elapsed
        """
        correlator = self._require_correlator()
        future = correlator.get(req_id)
        if future is None:
            raise InvalidUsageError(f"req_id {req_id} is not pending")
        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            if req_id in correlator:
                correlator.discard(req_id)
            raise

    def on_response(self, req_id: int, callback: ResolutionCallback) -> None:
        """Register a callback for the acknowledgement echoing ``req_id``."""
        self._require_correlator().add_callback(req_id, callback)
