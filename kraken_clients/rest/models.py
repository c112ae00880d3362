"""
REST response models

Only the shapes callers commonly inspect are typed here; every other endpoint
returns the raw ``result`` value.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class KrakenResultModel(BaseModel):
    """Base for typed results; unknown fields Kraken adds later are kept."""

    class Config:
        extra = "allow"


class ServerTime(KrakenResultModel):
    """/0/public/Time"""
    unixtime: int
    rfc1123: str


class SystemStatus(KrakenResultModel):
    """/0/public/SystemStatus"""
    status: str = Field(..., description="online, maintenance, cancel_only or post_only")
    timestamp: str


class TradeBalance(KrakenResultModel):
    """/0/private/TradeBalance"""
    eb: Decimal = Field(..., description="Equivalent balance")
    tb: Decimal = Field(..., description="Trade balance")
    m: Decimal = Field(..., description="Margin amount of open positions")
    n: Decimal = Field(..., description="Unrealized net profit/loss of open positions")
    c: Decimal = Field(..., description="Cost basis of open positions")
    v: Decimal = Field(..., description="Current floating valuation of open positions")
    e: Decimal = Field(..., description="Equity")
    mf: Decimal = Field(..., description="Free margin")
    ml: Optional[Decimal] = Field(None, description="Margin level, absent without open positions")


class OrderDescription(KrakenResultModel):
    order: str
    close: Optional[str] = None


class AddOrderResult(KrakenResultModel):
    """/0/private/AddOrder"""
    descr: OrderDescription
    txid: List[str] = Field(default_factory=list)


class CancelOrderResult(KrakenResultModel):
    """/0/private/CancelOrder"""
    count: int
    pending: Optional[bool] = None


class CancelAllResult(KrakenResultModel):
    """/0/private/CancelAll"""
    count: int


class CancelAllAfterResult(KrakenResultModel):
    """/0/private/CancelAllOrdersAfter"""
    currentTime: Optional[str] = None
    triggerTime: Optional[str] = None


class WebSocketsToken(KrakenResultModel):
    """/0/private/GetWebSocketsToken"""
    token: str
    expires: int = Field(..., description="Seconds until the token must be used")


__all__ = [
    "KrakenResultModel",
    "ServerTime",
    "SystemStatus",
    "TradeBalance",
    "OrderDescription",
    "AddOrderResult",
    "CancelOrderResult",
    "CancelAllResult",
    "CancelAllAfterResult",
    "WebSocketsToken",
]
