"""
Tests for ClockSync.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.services.live_timer.clock_sync import ClockSync, supabase_time_source
from app.utils.datetime_helper import from_epoch_ms, parse_timestamp

from conftest import FakeLocalClock


def server_clock_source(local_clock, server_epoch_seconds, round_trip_seconds=0.2):
    """Time source answering with a fixed server time, taking round_trip_seconds of local time"""

    async def fetch():
        local_clock.advance(round_trip_seconds / 2)
        answer = from_epoch_ms(server_epoch_seconds * 1000)
        local_clock.advance(round_trip_seconds / 2)
        return answer

    return fetch


class TestClockSync:
    """Tests for offset estimation."""

    @pytest.mark.asyncio
    async def test_offset_accounts_for_half_round_trip(self):
        local = FakeLocalClock(1000.0)
        sync = ClockSync(server_clock_source(local, 1005.0), local_clock=local)

        offset = await sync.sync()

        # server 1005000 + rtt/2 100 - receipt 1000200
        assert offset == pytest.approx(4900.0)
        assert sync.now_ms() == pytest.approx(1000200.0 + 4900.0)

    @pytest.mark.asyncio
    async def test_negative_offset(self):
        local = FakeLocalClock(2000.0)
        sync = ClockSync(server_clock_source(local, 1999.0, round_trip_seconds=0.0), local_clock=local)

        assert await sync.sync() == pytest.approx(-1000.0)

    def test_offset_defaults_to_zero(self):
        local = FakeLocalClock(1000.0)
        sync = ClockSync(server_clock_source(local, 0), local_clock=local)

        assert sync.offset_ms == 0.0
        assert sync.now_ms() == pytest.approx(1000000.0)
        assert sync.should_resync() is True

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_offset(self):
        local = FakeLocalClock(1000.0)
        errors = []
        responses = [server_clock_source(local, 1003.0, round_trip_seconds=0.0)]

        async def flaky():
            if responses:
                return await responses.pop()()
            raise httpx.ConnectError("offline")

        sync = ClockSync(flaky, local_clock=local, on_error=errors.append)

        assert await sync.sync() == pytest.approx(3000.0)
        assert sync.last_sync_succeeded is True
        assert await sync.sync() == pytest.approx(3000.0)
        assert sync.last_sync_succeeded is False
        assert len(errors) == 1
        assert isinstance(errors[0], httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_resync_after_interval(self):
        local = FakeLocalClock(1000.0)
        calls = []
        source = server_clock_source(local, 1000.0, round_trip_seconds=0.0)

        async def counting():
            calls.append(1)
            return await source()

        sync = ClockSync(counting, local_clock=local, resync_interval_seconds=60)

        await sync.ensure_sync()
        local.advance(30)
        await sync.ensure_sync()
        assert len(calls) == 1
        assert sync.should_resync() is False

        local.advance(31)
        assert sync.should_resync() is True
        await sync.ensure_sync()
        assert len(calls) == 2


@pytest.mark.asyncio
async def test_supabase_time_source_awaits_rpc_result():
    client = MagicMock()
    client.rpc.return_value.execute = AsyncMock(return_value=MagicMock(data="2025-03-14T09:00:00.250Z"))

    server_time = await supabase_time_source(client)()

    client.rpc.assert_called_once_with("get_server_time")
    assert server_time == parse_timestamp("2025-03-14T09:00:00.250+00:00")
