"""
Tests for propagation channels.
"""

import asyncio

import pytest

from app.features.workshop_timer.domain import TimerStatus
from app.services.live_timer.channel import InProcessPropagationChannel, SupabaseRealtimeChannel
from app.services.live_timer.models.snapshot import WorkshopTimerSnapshot

from conftest import WORKSHOP_ID


def snapshot(status=TimerStatus.RUNNING, workshop_id=WORKSHOP_ID):
    return WorkshopTimerSnapshot(workshop_id=workshop_id, status=status)


class TestInProcessPropagationChannel:
    """Tests for in-process fan-out."""

    @pytest.mark.asyncio
    async def test_fan_out_per_workshop(self):
        channel = InProcessPropagationChannel()
        first, second, other = [], [], []
        await channel.subscribe(WORKSHOP_ID, first.append)
        await channel.subscribe(WORKSHOP_ID, second.append)
        await channel.subscribe("ws-2", other.append)

        await channel.publish(snapshot())

        assert len(first) == 1 and len(second) == 1
        assert other == []

    @pytest.mark.asyncio
    async def test_async_handlers_are_awaited(self):
        channel = InProcessPropagationChannel()
        received = []

        async def handler(s):
            await asyncio.sleep(0)
            received.append(s.status)

        await channel.subscribe(WORKSHOP_ID, handler)
        await channel.publish(snapshot(TimerStatus.PAUSED))

        assert received == [TimerStatus.PAUSED]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self):
        channel = InProcessPropagationChannel()
        received = []

        def broken(_):
            raise RuntimeError("render crashed")

        await channel.subscribe(WORKSHOP_ID, broken)
        await channel.subscribe(WORKSHOP_ID, received.append)

        await channel.publish(snapshot())

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self):
        channel = InProcessPropagationChannel()
        received = []
        subscription = await channel.subscribe(WORKSHOP_ID, received.append)

        await subscription.unsubscribe()
        await subscription.unsubscribe()
        await channel.publish(snapshot())

        assert received == []
        assert subscription.active is False
        assert channel.subscriber_count(WORKSHOP_ID) == 0

    @pytest.mark.asyncio
    async def test_disconnect_notifies_subscribers(self):
        channel = InProcessPropagationChannel()
        reasons = []
        subscription = await channel.subscribe(WORKSHOP_ID, lambda s: None, on_disconnect=reasons.append)

        await channel.disconnect(WORKSHOP_ID, reason="server restart")

        assert reasons == ["server restart"]
        assert subscription.active is False


class FakeRealtimeChannel:
    def __init__(self, name):
        self.name = name
        self.on_change = None
        self.on_status = None
        self.options = None

    def on_postgres_changes(self, event, schema=None, table=None, filter=None, callback=None):
        self.options = {"event": event, "schema": schema, "table": table, "filter": filter}
        self.on_change = callback
        return self

    async def subscribe(self, callback=None):
        self.on_status = callback
        callback("SUBSCRIBED", None)
        return self


class FakeAsyncSupabaseClient:
    def __init__(self):
        self.channels = []
        self.removed = []

    def channel(self, name):
        realtime_channel = FakeRealtimeChannel(name)
        self.channels.append(realtime_channel)
        return realtime_channel

    async def remove_channel(self, realtime_channel):
        self.removed.append(realtime_channel)


class TestSupabaseRealtimeChannel:
    """Tests for the Supabase Realtime adapter."""

    @pytest.mark.asyncio
    async def test_row_changes_become_snapshots(self):
        client = FakeAsyncSupabaseClient()
        channel = SupabaseRealtimeChannel(client)
        received = []

        await channel.subscribe(WORKSHOP_ID, received.append)
        realtime_channel = client.channels[0]
        realtime_channel.on_change({
            "data": {
                "type": "UPDATE",
                "record": {"workshop_id": WORKSHOP_ID, "status": "paused", "paused_remaining_ms": 4000},
            }
        })
        await asyncio.sleep(0)

        assert realtime_channel.options["filter"] == f"workshop_id=eq.{WORKSHOP_ID}"
        assert realtime_channel.options["table"] == "workshop_timer_states"
        assert len(received) == 1
        assert received[0].status == TimerStatus.PAUSED
        assert received[0].paused_remaining_ms == 4000

    @pytest.mark.asyncio
    async def test_channel_error_reports_disconnect(self):
        client = FakeAsyncSupabaseClient()
        channel = SupabaseRealtimeChannel(client)
        reasons = []

        subscription = await channel.subscribe(WORKSHOP_ID, lambda s: None, on_disconnect=reasons.append)
        client.channels[0].on_status("CHANNEL_ERROR", RuntimeError("socket closed"))
        await asyncio.sleep(0)

        assert reasons == ["CHANNEL_ERROR"]
        assert subscription.active is False

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_channel(self):
        client = FakeAsyncSupabaseClient()
        channel = SupabaseRealtimeChannel(client)

        subscription = await channel.subscribe(WORKSHOP_ID, lambda s: None)
        await subscription.unsubscribe()

        assert client.removed == client.channels
