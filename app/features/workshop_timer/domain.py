"""Domain models for the Workshop Timer feature"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class TimerStatus(str, Enum):
    """Canonical timer status stored in workshop_timer_states"""
    PLANNED = "planned"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class AdjustmentType(str, Enum):
    """How an extension is financed by the remaining agenda"""
    REDUCE_BUFFER = "reduce_buffer"
    SHIFT_END = "shift_end"


class Session(BaseModel):
    """One timed agenda item (owned by the planning subsystem)"""
    id: str
    workshop_id: str
    order_index: int
    planned_duration_minutes: int = Field(..., ge=0)
    is_buffer: bool = False
    title: Optional[str] = None

    class Config:
        from_attributes = True


class SessionDurationUpdate(BaseModel):
    """Only field of a session the timer core may write"""
    planned_duration_minutes: int = Field(..., ge=0)


class WorkshopTimerState(BaseModel):
    """Canonical timer state of a workshop, keyed by workshop_id"""
    workshop_id: str
    current_session_id: Optional[str] = None
    status: TimerStatus = TimerStatus.PLANNED
    session_started_at: Optional[datetime] = None
    session_ends_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    paused_remaining_ms: Optional[int] = Field(None, ge=0)
    clock_offset_ms: int = 0
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    def is_active(self) -> bool:
        return self.status in (TimerStatus.RUNNING, TimerStatus.PAUSED)

    def remaining_ms(self, now: datetime) -> int:
        return derive_remaining_ms(
            self.status,
            self.session_ends_at,
            now,
            paused_remaining_ms=self.paused_remaining_ms,
            paused_at=self.paused_at,
        )


class WorkshopTimerStateUpdate(BaseModel):
    """Partial update for workshop_timer_states - only set fields are written"""
    current_session_id: Optional[str] = None
    status: Optional[TimerStatus] = None
    session_started_at: Optional[datetime] = None
    session_ends_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    paused_remaining_ms: Optional[int] = Field(None, ge=0)
    clock_offset_ms: Optional[int] = None


class BufferAdjustmentPlan(BaseModel):
    """Ephemeral plan describing how an extension is absorbed. Never persisted."""
    type: AdjustmentType
    affected_session_ids: List[str] = Field(default_factory=list)
    new_end_time: datetime
    rationale: str
    reductions: Dict[str, int] = Field(default_factory=dict)


def cleared_timer_fields(status: TimerStatus) -> WorkshopTimerStateUpdate:
    """Update that puts a state back into a session-less status"""
    return WorkshopTimerStateUpdate(
        status=status,
        current_session_id=None,
        session_started_at=None,
        session_ends_at=None,
        paused_at=None,
        paused_remaining_ms=None,
    )


def _ms_until(target: datetime, reference: datetime) -> int:
    return max(0, int((target - reference) / timedelta(milliseconds=1)))


def derive_remaining_ms(
    status: TimerStatus,
    session_ends_at: Optional[datetime],
    now: datetime,
    paused_remaining_ms: Optional[int] = None,
    paused_at: Optional[datetime] = None,
) -> int:
    """
    Derive the remaining milliseconds of the active session.

    This is the only remainder computation in the code base: the control
    service uses it to capture and restore pauses, the client store uses it
    to render the countdown.

    Args:
        status: Canonical timer status
        session_ends_at: Absolute end of the running session
        now: Reference instant (already offset-corrected on clients)
        paused_remaining_ms: Remainder captured at pause, if any
        paused_at: Instant the pause was captured, used when no remainder was stored

    Returns:
        Remaining milliseconds, never negative
    """
    if status == TimerStatus.RUNNING and session_ends_at is not None:
        return _ms_until(session_ends_at, now)

    if status == TimerStatus.PAUSED:
        if paused_remaining_ms is not None:
            return max(0, paused_remaining_ms)
        if session_ends_at is not None and paused_at is not None:
            return _ms_until(session_ends_at, paused_at)

    if session_ends_at is not None:
        return _ms_until(session_ends_at, now)

    return 0
