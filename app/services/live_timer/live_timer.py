"""Live Timer - keeps one client's countdown in step with the canonical timer state"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import httpx

from app import config

from .channel import PropagationChannel, Subscription
from .clock_sync import ClockSync
from .models.snapshot import WorkshopTimerSnapshot
from .store import ClientTimerStatus, TimerStateStore

logger = logging.getLogger(__name__)

SnapshotSource = Callable[[str], Awaitable[WorkshopTimerSnapshot]]


def http_snapshot_source(
    base_url: str = config.TIMER_SERVER_URL,
    timeout: float = config.TIME_SOURCE_TIMEOUT_SECONDS,
) -> SnapshotSource:
    """Fetch the canonical snapshot from GET /api/workshops/{id}/timer"""

    async def fetch(workshop_id: str) -> WorkshopTimerSnapshot:
        async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
            response = await client.get(f"/api/workshops/{workshop_id}/timer")
            response.raise_for_status()
            return WorkshopTimerSnapshot.from_record(response.json()["state"])

    return fetch


def repository_snapshot_source(timer_state_repo) -> SnapshotSource:
    """Fetch the canonical snapshot straight from the timer state repository"""

    async def fetch(workshop_id: str) -> WorkshopTimerSnapshot:
        state = await timer_state_repo.read_timer_state(workshop_id)
        return WorkshopTimerSnapshot.from_state(state)

    return fetch


class LiveTimer:
    """
    Per-workshop client: initial fetch, subscription, tick loop and resync.

    Lifecycle:
        timer = LiveTimer(workshop_id, fetch_snapshot, channel, clock_sync)
        await timer.start()
        ... timer.remaining_ms / timer.status ...
        await timer.stop()

    While running, remaining_ms is refreshed every tick_interval_seconds for
    rendering only. When the channel reports a disconnect the countdown is
    frozen and a reconnect is scheduled after reconnect_delay_seconds: the
    timer resubscribes and reloads the canonical snapshot, retrying until it
    succeeds or stop() is called.
    """

    def __init__(
        self,
        workshop_id: str,
        fetch_snapshot: SnapshotSource,
        channel: PropagationChannel,
        clock_sync: Optional[ClockSync] = None,
        tick_interval_seconds: float = config.TIMER_TICK_INTERVAL_SECONDS,
        reconnect_delay_seconds: float = config.RECONNECT_DELAY_SECONDS,
        local_clock: Callable[[], float] = time.time,
    ):
        self.workshop_id = workshop_id
        self.store = TimerStateStore(workshop_id, local_clock=local_clock)
        self._fetch_snapshot = fetch_snapshot
        self._channel = channel
        self._clock_sync = clock_sync
        self._tick_interval = tick_interval_seconds
        self._reconnect_delay = reconnect_delay_seconds
        self._subscription: Optional[Subscription] = None
        self._ticker: Optional[asyncio.Task] = None
        self._sync_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None

    @property
    def remaining_ms(self) -> int:
        return self.store.remaining_ms

    @property
    def status(self) -> ClientTimerStatus:
        return self.store.status

    @property
    def current_session_id(self) -> Optional[str]:
        return self.store.current_session_id

    @property
    def connected(self) -> bool:
        return self._subscription is not None and self._subscription.active

    async def start(self) -> None:
        if self._clock_sync is not None:
            await self._sync_clock()
        await self._subscribe()

    async def stop(self) -> None:
        self._stop_ticker()
        self._cancel_reconnect()
        if self._sync_task is not None:
            self._sync_task.cancel()
            self._sync_task = None
        if self._subscription is not None:
            await self._subscription.unsubscribe()
            self._subscription = None

    async def reconnect(self) -> None:
        """Resubscribe and reload now; local state is never trusted after a disconnect"""
        self._cancel_reconnect()
        await self._resubscribe()

    async def _resubscribe(self) -> None:
        if self._subscription is not None:
            await self._subscription.unsubscribe()
            self._subscription = None
        logger.info(f"Reconnecting live timer for workshop {self.workshop_id}")
        await self._subscribe()

    async def _subscribe(self) -> None:
        # Subscribe before fetching so no write between the two is missed
        self._subscription = await self._channel.subscribe(
            self.workshop_id,
            self._on_snapshot,
            on_disconnect=self._on_disconnect,
        )
        self._on_snapshot(await self._fetch_snapshot(self.workshop_id))

    def _on_snapshot(self, snapshot: WorkshopTimerSnapshot) -> None:
        if self.store.apply_snapshot(snapshot):
            logger.debug(f"Workshop {self.workshop_id} snapshot applied: {snapshot.status.value}")
        self._sync_ticker()

    def _on_disconnect(self, reason: str) -> None:
        logger.warning(f"Live timer for workshop {self.workshop_id} disconnected ({reason}); freezing display")
        self._stop_ticker()
        self.store.freeze()
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        while True:
            await asyncio.sleep(self._reconnect_delay)
            try:
                await self._resubscribe()
                return
            except Exception as e:
                logger.warning(f"Reconnect for workshop {self.workshop_id} failed, retrying: {e}")

    def _cancel_reconnect(self) -> None:
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None

    def _sync_ticker(self) -> None:
        if self.store.status == ClientTimerStatus.RUNNING and not self.store.frozen:
            if self._ticker is None or self._ticker.done():
                self._ticker = asyncio.get_running_loop().create_task(self._tick_loop())
        else:
            self._stop_ticker()

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            self.store.update_remaining()
            self._maybe_resync()

    def _maybe_resync(self) -> None:
        if self._clock_sync is None or not self._clock_sync.should_resync():
            return
        if self._sync_task is not None and not self._sync_task.done():
            return
        self._sync_task = asyncio.get_running_loop().create_task(self._sync_clock())

    async def _sync_clock(self) -> None:
        offset_ms = await self._clock_sync.sync()
        # A failed sync leaves the snapshot offset in charge
        if self._clock_sync.last_sync_succeeded:
            self.store.set_clock_offset(offset_ms)
