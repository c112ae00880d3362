"""
Kraken Spot REST client: the endpoint catalog.

Every method is a thin delegation to ``KrakenRestDispatcher.execute``; the
dispatcher handles signing, rate limiting and error classification.
"""

from typing import Any, Optional

import httpx

from helpers.unified_logger import UnifiedLogger, get_exchange_logger, get_logger
from kraken_clients.base_models import KrakenCredentials
from kraken_clients.config import DEFAULT_REST_URL, KrakenSettings

from .dispatcher import KrakenRestDispatcher, Params
from .models import (
    AddOrderResult,
    CancelAllAfterResult,
    CancelAllResult,
    CancelOrderResult,
    ServerTime,
    SystemStatus,
    TradeBalance,
    WebSocketsToken,
)
from .rate_limiter import TokenBucketRateLimiter


class KrakenRestClient:
    """Client for all Kraken Spot REST endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        *,
        base_url: str = DEFAULT_REST_URL,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
        rate_limit_public: bool = False,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        logger: Optional[UnifiedLogger] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: API key. Optional; private endpoints fail without it.
            api_secret: Base64-encoded API secret. Optional, as above.
            base_url: REST base URL
            rate_limiter: Shared token bucket (defaults to 1 req/s with a burst of 15)
            rate_limit_public: Also draw tokens for public calls
            http_client: Pre-built httpx client, e.g. with a mock transport
            timeout: Request timeout in seconds; None disables it
            logger: Logger override
        """
        self.logger = logger or get_exchange_logger("kraken", component="rest")
        self.dispatcher = KrakenRestDispatcher(
            KrakenCredentials(api_key=api_key, api_secret=api_secret),
            base_url=base_url,
            rate_limiter=rate_limiter,
            rate_limit_public=rate_limit_public,
            http_client=http_client,
            timeout=timeout,
            logger=self.logger,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[KrakenSettings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "KrakenRestClient":
        """Build a client from ``KrakenSettings`` (environment / .env when omitted)."""
        settings = settings or KrakenSettings()
        credentials = settings.credentials()
        return cls(
            api_key=credentials.api_key,
            api_secret=credentials.api_secret,
            base_url=settings.base_url,
            rate_limiter=TokenBucketRateLimiter(settings.rate_limit_per_second, settings.rate_limit_burst),
            rate_limit_public=settings.rate_limit_public,
            http_client=http_client,
            timeout=settings.request_timeout_seconds,
            logger=get_logger(
                "exchange",
                "kraken",
                {"component": "rest"},
                log_level=settings.log_level,
                log_dir=settings.log_dir,
            ),
        )

    async def aclose(self) -> None:
        await self.dispatcher.aclose()

    async def __aenter__(self) -> "KrakenRestClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _public(self, path: str, params: Params = None, result_model=None) -> Any:
        return await self.dispatcher.execute("GET", path, params, result_model=result_model)

    async def _private(self, path: str, params: Params = None, result_model=None) -> Any:
        return await self.dispatcher.execute("POST", path, params, requires_auth=True, result_model=result_model)

    # ========================================================================
    # PUBLIC ENDPOINTS (market data)
    # ========================================================================

    async def get_server_time(self) -> ServerTime:
        return await self._public("/0/public/Time", result_model=ServerTime)

    async def get_system_status(self) -> SystemStatus:
        return await self._public("/0/public/SystemStatus", result_model=SystemStatus)

    async def get_asset_info(self, params: Params = None) -> dict:
        return await self._public("/0/public/Assets", params)

    async def get_asset_pairs(self, params: Params = None) -> dict:
        return await self._public("/0/public/AssetPairs", params)

    async def get_ticker(self, pair: str) -> dict:
        """Ticker information keyed by Kraken pair name, e.g. ``XXBTZUSD``."""
        return await self._public("/0/public/Ticker", {"pair": pair})

    async def get_ohlc(self, params: Params = None) -> dict:
        return await self._public("/0/public/OHLC", params)

    async def get_order_book(self, params: Params = None) -> dict:
        return await self._public("/0/public/Depth", params)

    async def get_recent_trades(self, params: Params = None) -> dict:
        return await self._public("/0/public/Trades", params)

    async def get_recent_spreads(self, params: Params = None) -> dict:
        return await self._public("/0/public/Spread", params)

    # ========================================================================
    # PRIVATE ENDPOINTS (user data)
    # ========================================================================

    async def get_balance(self) -> dict:
        return await self._private("/0/private/Balance")

    async def get_extended_balance(self) -> dict:
        return await self._private("/0/private/BalanceEx")

    async def get_trade_balance(self, params: Params = None) -> TradeBalance:
        return await self._private("/0/private/TradeBalance", params, result_model=TradeBalance)

    async def get_open_orders(self, params: Params = None) -> dict:
        return await self._private("/0/private/OpenOrders", params)

    async def get_closed_orders(self, params: Params = None) -> dict:
        return await self._private("/0/private/ClosedOrders", params)

    async def query_orders(self, params: Params = None) -> dict:
        return await self._private("/0/private/QueryOrders", params)

    async def get_trades_history(self, params: Params = None) -> dict:
        return await self._private("/0/private/TradesHistory", params)

    async def query_trades(self, params: Params = None) -> dict:
        return await self._private("/0/private/QueryTrades", params)

    async def get_open_positions(self, params: Params = None) -> dict:
        return await self._private("/0/private/OpenPositions", params)

    async def get_ledgers(self, params: Params = None) -> dict:
        return await self._private("/0/private/Ledgers", params)

    async def query_ledgers(self, params: Params = None) -> dict:
        return await self._private("/0/private/QueryLedgers", params)

    async def get_trade_volume(self, params: Params = None) -> dict:
        return await self._private("/0/private/TradeVolume", params)

    async def request_export_report(self, params: Params = None) -> dict:
        return await self._private("/0/private/AddExport", params)

    async def get_export_report_status(self, params: Params = None) -> Any:
        return await self._private("/0/private/ExportStatus", params)

    async def retrieve_export(self, params: Params = None) -> Any:
        return await self._private("/0/private/RetrieveExport", params)

    async def delete_export(self, params: Params = None) -> dict:
        return await self._private("/0/private/RemoveExport", params)

    # ========================================================================
    # TRADING
    # ========================================================================

    async def add_order(self, params: Params = None) -> AddOrderResult:
        return await self._private("/0/private/AddOrder", params, result_model=AddOrderResult)

    async def add_order_batch(self, params: Params = None) -> dict:
        return await self._private("/0/private/AddOrderBatch", params)

    async def amend_order(self, params: Params = None) -> dict:
        return await self._private("/0/private/AmendOrder", params)

    async def edit_order(self, params: Params = None) -> dict:
        return await self._private("/0/private/EditOrder", params)

    async def cancel_order(self, txid: str) -> CancelOrderResult:
        return await self._private("/0/private/CancelOrder", {"txid": txid}, result_model=CancelOrderResult)

    async def cancel_all_orders(self) -> CancelAllResult:
        return await self._private("/0/private/CancelAll", result_model=CancelAllResult)

    async def cancel_all_orders_after(self, timeout_seconds: int) -> CancelAllAfterResult:
        """Dead man's switch: cancel everything unless re-armed within ``timeout_seconds`` (0 disables)."""
        return await self._private(
            "/0/private/CancelAllOrdersAfter",
            {"timeout": timeout_seconds},
            result_model=CancelAllAfterResult,
        )

    async def cancel_order_batch(self, params: Params = None) -> dict:
        return await self._private("/0/private/CancelOrderBatch", params)

    async def get_websockets_token(self) -> WebSocketsToken:
        """Token for ``KrakenStreamSession.authorize`` on the authenticated stream endpoint."""
        return await self._private("/0/private/GetWebSocketsToken", result_model=WebSocketsToken)

    # ========================================================================
    # FUNDING
    # ========================================================================

    async def get_deposit_methods(self, params: Params = None) -> list:
        return await self._private("/0/private/DepositMethods", params)

    async def get_deposit_addresses(self, params: Params = None) -> list:
        return await self._private("/0/private/DepositAddresses", params)

    async def get_deposit_status(self, params: Params = None) -> Any:
        return await self._private("/0/private/DepositStatus", params)

    async def get_withdrawal_methods(self, params: Params = None) -> list:
        return await self._private("/0/private/WithdrawMethods", params)

    async def get_withdrawal_addresses(self, params: Params = None) -> list:
        return await self._private("/0/private/WithdrawAddresses", params)

    async def get_withdrawal_information(self, params: Params = None) -> dict:
        return await self._private("/0/private/WithdrawInfo", params)

    async def withdraw_funds(self, params: Params = None) -> dict:
        return await self._private("/0/private/Withdraw", params)

    async def get_withdraw_status(self, params: Params = None) -> Any:
        return await self._private("/0/private/WithdrawStatus", params)

    async def request_withdrawal_cancellation(self, params: Params = None) -> bool:
        return await self._private("/0/private/WithdrawCancel", params)

    async def request_wallet_transfer(self, params: Params = None) -> dict:
        return await self._private("/0/private/WalletTransfer", params)

    # ========================================================================
    # SUBACCOUNTS
    # ========================================================================

    async def create_subaccount(self, params: Params = None) -> bool:
        return await self._private("/0/private/CreateSubaccount", params)

    async def account_transfer(self, params: Params = None) -> dict:
        return await self._private("/0/private/AccountTransfer", params)

    # ========================================================================
    # EARN
    # ========================================================================

    async def allocate_earn_funds(self, params: Params = None) -> bool:
        return await self._private("/0/private/Earn/Allocate", params)

    async def deallocate_earn_funds(self, params: Params = None) -> bool:
        return await self._private("/0/private/Earn/Deallocate", params)

    async def get_allocation_status(self, params: Params = None) -> dict:
        return await self._private("/0/private/Earn/AllocateStatus", params)

    async def get_deallocation_status(self, params: Params = None) -> dict:
        return await self._private("/0/private/Earn/DeallocateStatus", params)

    async def list_earn_strategies(self, params: Params = None) -> dict:
        return await self._private("/0/private/Earn/Strategies", params)

    async def list_earn_allocations(self, params: Params = None) -> dict:
        return await self._private("/0/private/Earn/Allocations", params)


__all__ = ["KrakenRestClient"]
