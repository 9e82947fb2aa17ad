"""Clock Sync - estimates the offset between the local clock and the authoritative time source"""
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, Optional

import httpx

from app import config
from app.utils.datetime_helper import from_epoch_ms, parse_timestamp, to_epoch_ms

logger = logging.getLogger(__name__)

TimeSource = Callable[[], Awaitable[datetime]]


class ClockSync:
    """
    Cristian-style offset estimation against a server clock.

    Before the first successful sync the offset is 0. A failed sync keeps
    the previous offset; the failure is reported through on_error and the
    caller is never blocked by it.
    """

    def __init__(
        self,
        time_source: TimeSource,
        local_clock: Callable[[], float] = time.time,
        resync_interval_seconds: float = config.CLOCK_RESYNC_INTERVAL_SECONDS,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._time_source = time_source
        self._local_clock = local_clock
        self._resync_interval_ms = resync_interval_seconds * 1000
        self._on_error = on_error
        self._offset_ms: float = 0.0
        self._last_sync_ms: Optional[float] = None
        self._last_sync_succeeded = False

    @property
    def offset_ms(self) -> float:
        return self._offset_ms

    @property
    def last_sync_ms(self) -> Optional[float]:
        return self._last_sync_ms

    @property
    def last_sync_succeeded(self) -> bool:
        return self._last_sync_succeeded

    def _local_ms(self) -> float:
        return self._local_clock() * 1000

    async def sync(self) -> float:
        """
        One round trip to the time source.

        Returns:
            Offset in milliseconds (server minus local, may be negative)
        """
        t0 = self._local_ms()
        try:
            server_time = await self._time_source()
        except Exception as e:
            self._last_sync_succeeded = False
            logger.warning(f"Clock sync failed, keeping offset {self._offset_ms:.1f}ms: {e}")
            if self._on_error is not None:
                self._on_error(e)
            return self._offset_ms

        t1 = self._local_ms()
        round_trip = t1 - t0
        estimated_server_ms = to_epoch_ms(server_time) + round_trip / 2

        self._offset_ms = estimated_server_ms - t1
        self._last_sync_ms = t1
        self._last_sync_succeeded = True
        logger.debug(f"Clock synced: offset={self._offset_ms:.1f}ms rtt={round_trip:.1f}ms")
        return self._offset_ms

    def now_ms(self) -> float:
        """Estimated server time in epoch milliseconds"""
        return self._local_ms() + self._offset_ms

    def now(self) -> datetime:
        return from_epoch_ms(self.now_ms())

    def should_resync(self) -> bool:
        if self._last_sync_ms is None:
            return True
        return self._local_ms() - self._last_sync_ms > self._resync_interval_ms

    async def ensure_sync(self) -> float:
        if self.should_resync():
            return await self.sync()
        return self._offset_ms


def http_time_source(
    base_url: str = config.TIMER_SERVER_URL,
    timeout: float = config.TIME_SOURCE_TIMEOUT_SECONDS,
) -> TimeSource:
    """Time source backed by GET /api/time on the timer backend"""

    async def fetch() -> datetime:
        async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
            response = await client.get("/api/time")
            response.raise_for_status()
            return parse_timestamp(response.json()["server_time"])

    return fetch


def supabase_time_source(client) -> TimeSource:
    """Time source backed by the get_server_time() RPC (client from get_async_supabase_client)"""

    async def fetch() -> datetime:
        response = await client.rpc("get_server_time").execute()
        return parse_timestamp(response.data)

    return fetch
