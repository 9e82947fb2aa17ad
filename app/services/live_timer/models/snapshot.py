"""Snapshot message delivered over the propagation channel"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.features.workshop_timer.domain import TimerStatus, WorkshopTimerState


class WorkshopTimerSnapshot(BaseModel):
    """Full copy of canonical timer state. Always complete, never a delta."""
    workshop_id: str
    current_session_id: Optional[str] = None
    status: TimerStatus = TimerStatus.PLANNED
    session_started_at: Optional[datetime] = None
    session_ends_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    paused_remaining_ms: Optional[int] = None
    clock_offset_ms: int = 0
    updated_at: Optional[datetime] = None
    # Unrelated flags riding the same channel (material pushed, interaction started)
    extras: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_state(cls, state: WorkshopTimerState, extras: Optional[Dict[str, Any]] = None) -> "WorkshopTimerSnapshot":
        return cls(**state.model_dump(), extras=extras or {})

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "WorkshopTimerSnapshot":
        """Build a snapshot from a raw table row; unknown columns go to extras untouched"""
        known = {k: v for k, v in record.items() if k in cls.model_fields and k != "extras"}
        extras = {k: v for k, v in record.items() if k not in cls.model_fields}
        extras.update(record.get("extras") or {})
        return cls(**known, extras=extras)
