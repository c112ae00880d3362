"""
WebSocket frame models for the Kraken stream API.

Outbound requests serialize to ``{"event": <command>, "req_id"?: int, ...}``
with camelCase field names. Inbound messages are grouped into four
categories (admin, market data, user data, trading); anything that matches
none of them is wrapped in ``CatchAllMessage``.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel


class MessageCategory(str, Enum):
    """Routing category of an inbound message."""
    ADMIN = "admin"
    MARKET_DATA = "market_data"
    USER_DATA = "user_data"
    TRADING = "trading"
    UNHANDLED = "unhandled"


# ============================================================================
# OUTBOUND (client -> server)
# ============================================================================


class WsRequest(BaseModel):
    """Base for every outbound frame."""
    event: str
    req_id: Optional[int] = Field(None, alias="req_id", ge=0)

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_frame(self) -> Dict[str, Any]:
        """Wire representation: aliased names, unset options dropped, decimals as strings."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PingRequest(WsRequest):
    event: Literal["ping"] = "ping"


class HeartbeatRequest(WsRequest):
    event: Literal["heartbeat"] = "heartbeat"


class AuthorizeRequest(WsRequest):
    event: Literal["authorize"] = "authorize"
    token: str = Field(..., repr=False)


class SubscriptionChannel(str, Enum):
    TICKER = "ticker"
    BOOK = "book"
    CANDLES = "candles"
    TRADES = "trades"
    INSTRUMENTS = "instruments"
    ORDERS = "orders"
    STATUS = "status"
    HEARTBEAT = "heartbeat"
    PING = "ping"
    BALANCES = "balances"
    EXECUTIONS = "executions"


_SYMBOL_REQUIRED = {
    SubscriptionChannel.TICKER,
    SubscriptionChannel.BOOK,
    SubscriptionChannel.CANDLES,
    SubscriptionChannel.TRADES,
    SubscriptionChannel.ORDERS,
}


class SubscriptionPayload(BaseModel):
    """
    A channel name plus its parameters.

    Flattened into the subscribe/unsubscribe frame, e.g.
    ``{"event": "subscribe", "name": "book", "symbol": "BTC/USD", "depth": 10}``.
    """
    name: SubscriptionChannel
    symbol: Optional[str] = None
    depth: Optional[int] = Field(None, gt=0)
    interval: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def _check_channel_parameters(self) -> "SubscriptionPayload":
        if self.name in _SYMBOL_REQUIRED and not self.symbol:
            raise ValueError(f"channel '{self.name.value}' requires a symbol")
        if self.name is SubscriptionChannel.BOOK and self.depth is None:
            raise ValueError("channel 'book' requires a depth")
        if self.name is SubscriptionChannel.CANDLES and self.interval is None:
            raise ValueError("channel 'candles' requires an interval")
        return self


class SubscribeRequest(WsRequest):
    event: Literal["subscribe"] = "subscribe"
    subscription: SubscriptionPayload

    def to_frame(self) -> Dict[str, Any]:
        frame = super().to_frame()
        frame.update(frame.pop("subscription"))
        return frame


class UnsubscribeRequest(SubscribeRequest):
    event: Literal["unsubscribe"] = "unsubscribe"


class TokenRequest(WsRequest):
    """Base for trading commands, which all carry the session token."""
    token: str = Field(..., repr=False)


class OrderTerms(BaseModel):
    """Price and condition fields shared by add, amend, edit and batch entries."""
    price: Optional[Decimal] = None
    stop_price: Optional[Decimal] = None
    limit_price: Optional[Decimal] = None
    time_in_force: Optional[str] = None  # GTC, IOC, GTD
    expire_time: Optional[str] = None
    post_only: Optional[bool] = None
    reduce_only: Optional[bool] = None
    trigger_signal: Optional[str] = None
    take_profit: Optional[str] = None
    take_profit_price: Optional[Decimal] = None
    stop_loss: Optional[str] = None
    stop_loss_price: Optional[Decimal] = None
    conditional_close: Optional[bool] = None
    close_price: Optional[Decimal] = None
    take_profit_trigger: Optional[str] = None
    stop_loss_trigger: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class OrderSpec(OrderTerms):
    """One new order, as sent in addOrder and batchAdd."""
    order_type: str  # limit, market, stop-loss, ...
    symbol: str
    side: Literal["buy", "sell"]
    quantity: Decimal = Field(..., gt=0)
    leverage: Optional[str] = None
    client_order_id: Optional[str] = None
    self_trade_prevention: Optional[str] = None
    position_id: Optional[str] = None


class AddOrderRequest(TokenRequest, OrderSpec):
    event: Literal["addOrder"] = "addOrder"


class AmendOrderRequest(TokenRequest, OrderTerms):
    event: Literal["amendOrder"] = "amendOrder"
    txid: str
    quantity: Optional[Decimal] = Field(None, gt=0)


class EditOrderRequest(AmendOrderRequest):
    event: Literal["editOrder"] = "editOrder"


class CancelOrderRequest(TokenRequest):
    event: Literal["cancelOrder"] = "cancelOrder"
    txid: str


class CancelAllRequest(TokenRequest):
    event: Literal["cancelAll"] = "cancelAll"


class CancelOnDisconnectRequest(TokenRequest):
    event: Literal["cancelOnDisconnect"] = "cancelOnDisconnect"
    enable: bool


class BatchAddRequest(TokenRequest):
    event: Literal["batchAdd"] = "batchAdd"
    orders: List[OrderSpec] = Field(..., min_length=1)


class BatchCancelRequest(TokenRequest):
    event: Literal["batchCancel"] = "batchCancel"
    orders: List[str] = Field(..., min_length=1)


# ============================================================================
# INBOUND (server -> client)
# ============================================================================


class InboundMessage(BaseModel):
    """Base for decoded inbound frames. Unknown fields are kept."""
    category: ClassVar[MessageCategory] = MessageCategory.UNHANDLED

    class Config:
        extra = "allow"


# --- Admin -----------------------------------------------------------------


class AdminMessage(InboundMessage):
    category: ClassVar[MessageCategory] = MessageCategory.ADMIN
    event: Optional[str] = None
    req_id: Optional[int] = None


class SystemStatusEvent(AdminMessage):
    status: Optional[str] = None
    version: Optional[str] = None


class SubscriptionStatusEvent(AdminMessage):
    event: Literal["subscriptionStatus"] = "subscriptionStatus"
    channel: str
    status: str  # subscribed, unsubscribed or error
    error_message: Optional[str] = Field(None, alias="errorMessage")

    class Config:
        populate_by_name = True


class PingStatusEvent(AdminMessage):
    pass


class HeartbeatEvent(AdminMessage):
    pass


class UnknownAdminEvent(AdminMessage):
    """An ``event``-tagged frame whose tag is not recognized."""
    event: str


# --- Market data -------------------------------------------------------------


class ChannelMessage(InboundMessage):
    """
    Feed message tagged by ``channel``.

    Kraken sends either flat frames (``symbol`` plus fields) or frames whose
    payload sits in a ``data`` list; at least one of the two must be present.
    """
    channel: str
    type: Optional[str] = None  # snapshot / update
    symbol: Optional[str] = None
    data: Optional[List[Dict[str, Any]]] = None

    @model_validator(mode="after")
    def _require_payload(self) -> "ChannelMessage":
        if self.symbol is None and self.data is None and not self._has_flat_payload():
            raise ValueError(f"{self.channel} message carries neither symbol nor data")
        return self

    def _has_flat_payload(self) -> bool:
        return False


class MarketDataMessage(ChannelMessage):
    category: ClassVar[MessageCategory] = MessageCategory.MARKET_DATA


class TickerMessage(MarketDataMessage):
    best_ask_price: Optional[Decimal] = None
    best_ask_quantity: Optional[Decimal] = None
    best_bid_price: Optional[Decimal] = None
    best_bid_quantity: Optional[Decimal] = None
    last_trade_price: Optional[Decimal] = None
    last_trade_quantity: Optional[Decimal] = None
    volume_24h: Optional[Decimal] = None
    vwap_24h: Optional[Decimal] = None
    trades_24h: Optional[int] = None
    low_24h: Optional[Decimal] = None
    high_24h: Optional[Decimal] = None
    open_24h: Optional[Decimal] = None


class BookLevel(BaseModel):
    price: Decimal
    quantity: Decimal


class BookMessage(MarketDataMessage):
    bids: List[BookLevel] = Field(default_factory=list)
    asks: List[BookLevel] = Field(default_factory=list)


class Candle(BaseModel):
    time: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal


class CandlesMessage(MarketDataMessage):
    interval: Optional[int] = None
    candles: Optional[List[Candle]] = None


class Trade(BaseModel):
    price: Decimal
    quantity: Decimal
    time: int
    side: str


class TradesMessage(MarketDataMessage):
    trades: Optional[List[Trade]] = None


class InstrumentsMessage(MarketDataMessage):
    pass


# --- User data ---------------------------------------------------------------


class UserDataMessage(ChannelMessage):
    category: ClassVar[MessageCategory] = MessageCategory.USER_DATA


class BalancesMessage(UserDataMessage):
    balances: Optional[Dict[str, Decimal]] = None

    def _has_flat_payload(self) -> bool:
        return self.balances is not None


class Execution(BaseModel):
    symbol: str
    order_id: str
    exec_id: Optional[str] = None
    quantity: Optional[Decimal] = None
    price: Optional[Decimal] = None
    side: Optional[str] = None
    time: Optional[int] = None
    cost: Optional[Decimal] = None
    fee: Optional[Decimal] = None
    fee_currency: Optional[str] = None
    liquidity: Optional[str] = None  # maker / taker

    class Config:
        extra = "allow"


class ExecutionsMessage(UserDataMessage):
    executions: Optional[List[Execution]] = None

    def _has_flat_payload(self) -> bool:
        return self.executions is not None


# --- Trading acknowledgements --------------------------------------------------


class TradingStatusMessage(InboundMessage):
    category: ClassVar[MessageCategory] = MessageCategory.TRADING
    event: str
    status: str
    req_id: Optional[int] = None
    error_message: Optional[str] = Field(None, alias="errorMessage")

    class Config:
        populate_by_name = True

    @property
    def ok(self) -> bool:
        return self.status == "ok" and not self.error_message


class AddOrderStatus(TradingStatusMessage):
    txid: Optional[str] = None


class AmendOrderStatus(AddOrderStatus):
    pass


class EditOrderStatus(AddOrderStatus):
    pass


class CancelOrderStatus(AddOrderStatus):
    pass


class CancelAllStatus(TradingStatusMessage):
    count: Optional[int] = None


class CancelOnDisconnectStatus(TradingStatusMessage):
    pass


class BatchAddResult(BaseModel):
    txid: Optional[str] = None
    status: Optional[str] = None
    error_message: Optional[str] = None
    client_order_id: Optional[str] = None


class BatchAddStatus(TradingStatusMessage):
    results: Optional[List[BatchAddResult]] = None


class BatchCancelResult(BaseModel):
    txid: Optional[str] = None
    error_message: Optional[str] = None


class BatchCancelStatus(TradingStatusMessage):
    results: Optional[List[BatchCancelResult]] = None


# --- Catch-all ---------------------------------------------------------------------


class CatchAllMessage(InboundMessage):
    """A decoded frame that matched no known shape, kept verbatim."""
    raw: Any
