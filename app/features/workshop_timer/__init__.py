"""Workshop Timer feature module (router: app.features.workshop_timer.api)"""

from app.features.workshop_timer.domain import (
    AdjustmentType,
    BufferAdjustmentPlan,
    Session,
    SessionDurationUpdate,
    TimerStatus,
    WorkshopTimerState,
    WorkshopTimerStateUpdate,
    derive_remaining_ms,
)
from app.features.workshop_timer.buffer import apply_plan, plan_extension, projected_end_time

__all__ = [
    "AdjustmentType",
    "BufferAdjustmentPlan",
    "Session",
    "SessionDurationUpdate",
    "TimerStatus",
    "WorkshopTimerState",
    "WorkshopTimerStateUpdate",
    "derive_remaining_ms",
    "apply_plan",
    "plan_extension",
    "projected_end_time",
]
