"""Propagation channel - delivers full timer snapshots to subscribers"""
import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .models.snapshot import WorkshopTimerSnapshot

logger = logging.getLogger(__name__)

SnapshotHandler = Callable[[WorkshopTimerSnapshot], Union[None, Awaitable[None]]]
DisconnectHandler = Callable[[str], Union[None, Awaitable[None]]]

TIMER_STATE_TABLE = "workshop_timer_states"


async def _invoke(handler: Callable[..., Any], *args: Any) -> None:
    """Call a sync or async handler; handler failures are logged, never propagated"""
    try:
        result = handler(*args)
        if asyncio.iscoroutine(result):
            await result
    except Exception as e:
        logger.error(f"Snapshot handler {getattr(handler, '__name__', handler)} failed: {e}")


class Subscription:
    """Handle returned by subscribe(); cancellation is an explicit unsubscribe()"""

    def __init__(self, workshop_id: str, cancel: Callable[[], Awaitable[None]]):
        self.workshop_id = workshop_id
        self._cancel = cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def _mark_closed(self) -> None:
        self._active = False

    async def unsubscribe(self) -> None:
        """Stop delivery. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        await self._cancel()


class PropagationChannel(ABC):
    """At-least-once, last-value-wins delivery of WorkshopTimerSnapshot messages"""

    @abstractmethod
    async def subscribe(
        self,
        workshop_id: str,
        on_snapshot: SnapshotHandler,
        on_disconnect: Optional[DisconnectHandler] = None,
    ) -> Subscription:
        ...

    @abstractmethod
    async def publish(self, snapshot: WorkshopTimerSnapshot) -> None:
        ...


class InProcessPropagationChannel(PropagationChannel):
    """
    Fan-out within one process.

    Used by the API process to feed websocket subscribers, and by tests.
    A failing handler does not prevent delivery to the others.
    """

    def __init__(self):
        self._handlers: Dict[str, Dict[int, tuple]] = {}
        self._ids = itertools.count(1)

    def subscriber_count(self, workshop_id: str) -> int:
        return len(self._handlers.get(workshop_id, {}))

    async def subscribe(
        self,
        workshop_id: str,
        on_snapshot: SnapshotHandler,
        on_disconnect: Optional[DisconnectHandler] = None,
    ) -> Subscription:
        handler_id = next(self._ids)

        async def cancel() -> None:
            self._handlers.get(workshop_id, {}).pop(handler_id, None)

        subscription = Subscription(workshop_id, cancel)
        self._handlers.setdefault(workshop_id, {})[handler_id] = (on_snapshot, on_disconnect, subscription)
        logger.debug(f"Subscriber {handler_id} added for workshop {workshop_id}")
        return subscription

    async def publish(self, snapshot: WorkshopTimerSnapshot) -> None:
        handlers = list(self._handlers.get(snapshot.workshop_id, {}).values())
        for on_snapshot, _, _ in handlers:
            await _invoke(on_snapshot, snapshot)

    async def disconnect(self, workshop_id: str, reason: str = "disconnected") -> None:
        """Drop every subscriber of a workshop, notifying each of them"""
        handlers = self._handlers.pop(workshop_id, {})
        for _, on_disconnect, subscription in handlers.values():
            subscription._mark_closed()
            if on_disconnect is not None:
                await _invoke(on_disconnect, reason)


class SupabaseRealtimeChannel(PropagationChannel):
    """
    Snapshots from Supabase Realtime postgres_changes on workshop_timer_states.

    Every row write by the control service is itself the publication, so
    publish() has nothing to do here.
    """

    DISCONNECT_STATES = {"CHANNEL_ERROR", "TIMED_OUT", "CLOSED"}

    def __init__(self, client, table: str = TIMER_STATE_TABLE):
        self._client = client
        self._table = table

    @staticmethod
    def _extract_record(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        data = payload.get("data", payload)
        return data.get("record") or data.get("new")

    async def subscribe(
        self,
        workshop_id: str,
        on_snapshot: SnapshotHandler,
        on_disconnect: Optional[DisconnectHandler] = None,
    ) -> Subscription:
        channel = self._client.channel(f"workshop_timer_state:{workshop_id}")
        loop = asyncio.get_running_loop()
        subscription: Optional[Subscription] = None

        def on_change(payload: Dict[str, Any]) -> None:
            record = self._extract_record(payload)
            if not record:
                logger.debug(f"Ignoring change without record for workshop {workshop_id}")
                return
            loop.create_task(_invoke(on_snapshot, WorkshopTimerSnapshot.from_record(record)))

        def on_status(status, error=None) -> None:
            state = getattr(status, "value", status)
            if state not in self.DISCONNECT_STATES:
                logger.info(f"Realtime channel for workshop {workshop_id}: {state}")
                return
            logger.warning(f"Realtime channel for workshop {workshop_id} lost: {state} {error or ''}")
            if subscription is not None:
                subscription._mark_closed()
            if on_disconnect is not None:
                loop.create_task(_invoke(on_disconnect, str(state)))

        channel.on_postgres_changes(
            "*",
            schema="public",
            table=self._table,
            filter=f"workshop_id=eq.{workshop_id}",
            callback=on_change,
        )
        await channel.subscribe(on_status)

        async def cancel() -> None:
            await self._client.remove_channel(channel)

        subscription = Subscription(workshop_id, cancel)
        return subscription

    async def publish(self, snapshot: WorkshopTimerSnapshot) -> None:
        logger.debug(f"Realtime publication for workshop {snapshot.workshop_id} happens through the row write")
