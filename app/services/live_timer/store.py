"""Timer State Store - per-client snapshot holder and remaining-time derivation"""
import logging
import time
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from app.features.workshop_timer.domain import TimerStatus, derive_remaining_ms
from app.utils.datetime_helper import format_countdown, from_epoch_ms

from .models.snapshot import WorkshopTimerSnapshot

logger = logging.getLogger(__name__)


class ClientTimerStatus(str, Enum):
    """What a participant or display device shows"""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


_CLIENT_STATUS = {
    TimerStatus.RUNNING: ClientTimerStatus.RUNNING,
    TimerStatus.PAUSED: ClientTimerStatus.PAUSED,
    TimerStatus.PLANNED: ClientTimerStatus.IDLE,
    TimerStatus.COMPLETED: ClientTimerStatus.IDLE,
}

StoreListener = Callable[["TimerStateStore"], None]


class TimerStateStore:
    """
    Latest canonical snapshot of one workshop plus the derived remaining_ms.

    One instance per workshop subscription. The store only reads canonical
    state; nothing here writes back to the backend.
    """

    def __init__(self, workshop_id: str, local_clock: Callable[[], float] = time.time):
        self.workshop_id = workshop_id
        self._local_clock = local_clock

        self.current_session_id: Optional[str] = None
        self.canonical_status: TimerStatus = TimerStatus.PLANNED
        self.session_started_at: Optional[datetime] = None
        self.session_ends_at: Optional[datetime] = None
        self.paused_at: Optional[datetime] = None
        self.paused_remaining_ms: Optional[int] = None
        self.clock_offset_ms: float = 0.0
        self.remaining_ms: int = 0
        self.updated_at: Optional[datetime] = None
        self.extras: Dict[str, Any] = {}
        self.frozen = False

        self._clock_synced = False
        self._listeners: List[StoreListener] = []

    @property
    def status(self) -> ClientTimerStatus:
        return _CLIENT_STATUS[self.canonical_status]

    @property
    def formatted_remaining(self) -> str:
        return format_countdown(self.remaining_ms)

    def add_listener(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it"""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Timer store listener failed: {e}")

    def set_clock_offset(self, offset_ms: float) -> None:
        """Offset measured by this device's ClockSync; wins over the snapshot value"""
        self.clock_offset_ms = offset_ms
        self._clock_synced = True
        self.update_remaining()

    def apply_snapshot(self, snapshot: WorkshopTimerSnapshot) -> bool:
        """
        Replace local state with a delivered snapshot.

        Snapshots for other workshops and snapshots older than the one held
        (by updated_at) are ignored, so redelivery is harmless.

        Returns:
            True if the snapshot was applied
        """
        if snapshot.workshop_id != self.workshop_id:
            logger.warning(f"Store for {self.workshop_id} ignored snapshot of workshop {snapshot.workshop_id}")
            return False

        if self.updated_at and snapshot.updated_at and snapshot.updated_at < self.updated_at:
            logger.debug(f"Ignoring stale snapshot for workshop {self.workshop_id}")
            return False

        self.current_session_id = snapshot.current_session_id
        self.canonical_status = snapshot.status
        self.session_started_at = snapshot.session_started_at
        self.session_ends_at = snapshot.session_ends_at
        self.paused_at = snapshot.paused_at
        self.paused_remaining_ms = snapshot.paused_remaining_ms
        self.updated_at = snapshot.updated_at
        self.extras = dict(snapshot.extras)
        if not self._clock_synced:
            self.clock_offset_ms = snapshot.clock_offset_ms
        self.frozen = False

        self.update_remaining()
        return True

    def update_remaining(self) -> int:
        """Recompute remaining_ms against the offset-corrected local clock"""
        if self.frozen:
            return self.remaining_ms

        now = from_epoch_ms(self._local_clock() * 1000 + self.clock_offset_ms)
        self.remaining_ms = derive_remaining_ms(
            self.canonical_status,
            self.session_ends_at,
            now,
            paused_remaining_ms=self.paused_remaining_ms,
            paused_at=self.paused_at,
        )
        self._notify()
        return self.remaining_ms

    def freeze(self) -> None:
        """Hold the displayed value until a fresh snapshot arrives (channel lost)"""
        self.frozen = True
        self._notify()
