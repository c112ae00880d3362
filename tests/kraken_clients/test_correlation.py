"""Tests for req_id request/response correlation."""

import asyncio
from unittest.mock import MagicMock

import pytest

from kraken_clients.errors import InvalidUsageError, KrakenTransportError
from kraken_clients.websocket.correlation import RequestCorrelator
from kraken_clients.websocket.models import CatchAllMessage, PingStatusEvent


class TestRequestCorrelator:

    @pytest.mark.asyncio
    async def test_first_echo_resolves(self):
        correlator = RequestCorrelator()
        future = correlator.register(1)

        first = PingStatusEvent(event="pong", req_id=1)
        second = PingStatusEvent(event="pong", req_id=1)

        assert await correlator.resolve(first) is True
        assert await correlator.resolve(second) is False
        assert future.result() is first
        assert 1 not in correlator
        assert len(correlator) == 0

    @pytest.mark.asyncio
    async def test_early_response_readable_once(self):
        correlator = RequestCorrelator()
        correlator.register(2)
        await correlator.resolve(PingStatusEvent(event="pong", req_id=2))

        assert correlator.unread_count == 1
        assert correlator.get(2).result().req_id == 2
        assert correlator.get(2) is None
        assert correlator.unread_count == 0

    @pytest.mark.asyncio
    async def test_claimed_entry_not_retained(self):
        correlator = RequestCorrelator()
        correlator.register(2)
        future = correlator.get(2)

        await correlator.resolve(PingStatusEvent(event="pong", req_id=2))

        assert future.done()
        assert len(correlator) == 0
        assert correlator.unread_count == 0

    @pytest.mark.asyncio
    async def test_unread_buffer_is_bounded(self):
        correlator = RequestCorrelator(max_unread=2)
        for req_id in range(3):
            correlator.register(req_id)
            await correlator.resolve(PingStatusEvent(event="pong", req_id=req_id))

        assert correlator.unread_count == 2
        assert correlator.get(0) is None
        assert correlator.get(1).done()
        assert correlator.get(2).done()

    @pytest.mark.asyncio
    async def test_callback_entries_not_retained(self):
        correlator = RequestCorrelator()
        seen = []
        for req_id in range(200):
            correlator.register(req_id)
            correlator.add_callback(req_id, seen.append)

        for req_id in range(200):
            await correlator.resolve(PingStatusEvent(event="pong", req_id=req_id))

        assert len(seen) == 200
        assert len(correlator) == 0
        assert correlator.unread_count == 0

    @pytest.mark.asyncio
    async def test_late_callback_runs_on_unread_response(self):
        correlator = RequestCorrelator()
        correlator.register(8)
        await correlator.resolve(PingStatusEvent(event="pong", req_id=8))
        seen = asyncio.Queue()

        correlator.add_callback(8, seen.put_nowait)
        message = await asyncio.wait_for(seen.get(), 1)

        assert message.req_id == 8
        assert correlator.unread_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("req_id", [[1], {"id": 1}, True, "1"])
    async def test_non_integer_req_id_ignored(self, req_id):
        correlator = RequestCorrelator()
        correlator.register(1)

        message = CatchAllMessage(raw={}, req_id=req_id)

        assert await correlator.resolve(message) is False
        assert 1 in correlator

    @pytest.mark.asyncio
    async def test_messages_without_req_id_ignored(self):
        correlator = RequestCorrelator()
        correlator.register(3)

        assert await correlator.resolve(CatchAllMessage(raw=[1, 2])) is False
        assert 3 in correlator

    @pytest.mark.asyncio
    async def test_duplicate_register_rejected_while_pending(self):
        correlator = RequestCorrelator()
        correlator.register(4)

        with pytest.raises(InvalidUsageError):
            correlator.register(4)

        await correlator.resolve(PingStatusEvent(event="pong", req_id=4))
        correlator.register(4)

    @pytest.mark.asyncio
    async def test_callbacks_run_and_failures_logged(self):
        logger = MagicMock()
        correlator = RequestCorrelator(logger=logger)
        correlator.register(5)
        seen = []

        async def async_callback(message):
            seen.append(message.req_id)

        def broken_callback(message):
            raise RuntimeError("nope")

        correlator.add_callback(5, broken_callback)
        correlator.add_callback(5, async_callback)

        await correlator.resolve(PingStatusEvent(event="pong", req_id=5))

        assert seen == [5]
        logger.error.assert_called_once()

    @pytest.mark.asyncio
    async def test_callback_requires_pending_id(self):
        correlator = RequestCorrelator()

        with pytest.raises(InvalidUsageError):
            correlator.add_callback(99, print)

    @pytest.mark.asyncio
    async def test_fail_all(self):
        correlator = RequestCorrelator()
        futures = [correlator.register(i) for i in range(3)]

        correlator.fail_all(KrakenTransportError("session closed"))

        for future in futures:
            with pytest.raises(KrakenTransportError):
                await future
        assert len(correlator) == 0

    @pytest.mark.asyncio
    async def test_discard_cancels(self):
        correlator = RequestCorrelator()
        future = correlator.register(7)

        correlator.discard(7)

        assert future.cancelled()
        assert correlator.get(7) is None
        with pytest.raises(asyncio.CancelledError):
            await future
