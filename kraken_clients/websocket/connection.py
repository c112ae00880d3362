"""
WebSocket connection management for Kraken.

Owns the socket. Writes go through ``submit()`` under a lock, one frame at a
time; the read side is handed out once, to the session's reader task.
"""

import asyncio
from typing import Any, AsyncIterator, Optional, Union

import websockets
from websockets.exceptions import WebSocketException

from kraken_clients.errors import InvalidUsageError, KrakenTransportError


class KrakenWebSocketConnection:
    """Manages one duplex WebSocket connection."""

    def __init__(
        self,
        ws_url: str,
        logger: Optional[Any] = None,
        open_timeout: Optional[float] = None,
    ):
        """
        Initialize connection.

        Args:
            ws_url: WebSocket URL (``wss://ws.kraken.com/v2`` in production)
            logger: Logger instance
            open_timeout: Handshake timeout in seconds; None waits indefinitely
        """
        self.ws_url = ws_url
        self.logger = logger
        self.open_timeout = open_timeout

        self._ws = None
        self._write_lock = asyncio.Lock()
        self._reader_claimed = False

    def set_logger(self, logger):
        """Set the logger instance."""
        self.logger = logger

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def close_code(self) -> Optional[int]:
        return self._ws.close_code if self._ws is not None else None

    @property
    def close_reason(self) -> Optional[str]:
        return self._ws.close_reason if self._ws is not None else None

    async def connect(self) -> None:
        """
        Perform the opening handshake.

        Raises:
            KrakenTransportError: If the handshake fails for any reason
        """
        if self.logger:
            self.logger.info(f"[KRAKEN] Connecting stream {self.ws_url}")
        try:
            self._ws = await websockets.connect(self.ws_url, open_timeout=self.open_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise KrakenTransportError(f"WebSocket connect error: {exc}") from exc

    async def submit(self, frame: Union[str, bytes]) -> None:
        """
        Write one frame. Concurrent callers are serialized in lock acquisition order.

        Raises:
            InvalidUsageError: If the socket is not connected or the write fails
        """
        if self._ws is None:
            raise InvalidUsageError("WebSocket is not connected")
        async with self._write_lock:
            try:
                await self._ws.send(frame)
            except (OSError, WebSocketException) as exc:
                raise InvalidUsageError(f"WebSocket send error: {exc}") from exc

    def frames(self) -> AsyncIterator[Union[str, bytes]]:
        """
        Iterate inbound frames until the connection closes.

        A clean close ends the iteration; an abnormal one raises
        ``websockets.exceptions.ConnectionClosedError``. May be called once.
        """
        if self._ws is None:
            raise InvalidUsageError("WebSocket is not connected")
        if self._reader_claimed:
            raise InvalidUsageError("WebSocket read side already has a reader")
        self._reader_claimed = True
        return self._ws.__aiter__()

    async def close(self) -> None:
        """Send a close frame and wait for the closing handshake."""
        if self._ws is None:
            return
        try:
            await self._ws.close()
        except (OSError, WebSocketException) as exc:
            if self.logger:
                self.logger.warning(f"[KRAKEN] Error while closing stream: {exc}")
