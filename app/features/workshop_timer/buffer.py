"""Buffer reallocation - decides how a session extension is financed by the remaining agenda"""
import logging
from datetime import datetime, timedelta
from typing import List, Sequence, Tuple

from app.errors import InvalidArgumentError, NotFoundError

from .domain import AdjustmentType, BufferAdjustmentPlan, Session

logger = logging.getLogger(__name__)


def _agenda_order(sessions: Sequence[Session]) -> List[Session]:
    return sorted(sessions, key=lambda s: s.order_index)


def _later_sessions(sessions: Sequence[Session], current_session_id: str) -> List[Session]:
    """Sessions strictly after the current one; earlier sessions are immutable"""
    ordered = _agenda_order(sessions)
    current = next((s for s in ordered if s.id == current_session_id), None)
    if current is None:
        raise NotFoundError(f"Session {current_session_id} is not part of the agenda")
    return [s for s in ordered if s.order_index > current.order_index]


def _drain_buffers(buffers: Sequence[Session], extension_minutes: int) -> Tuple[List[Tuple[str, int]], int]:
    """
    Greedy front-to-back walk shared by planning and applying.

    Each buffer gives at most its own duration. Buffers already at zero
    contribute nothing and get no reduction entry.

    Returns:
        ([(session_id, minutes_removed), ...] in touch order, minutes not absorbed)
    """
    remaining = extension_minutes
    reductions: List[Tuple[str, int]] = []

    for buffer in buffers:
        if remaining <= 0:
            break
        reduction = min(buffer.planned_duration_minutes, remaining)
        if reduction <= 0:
            continue
        remaining -= reduction
        reductions.append((buffer.id, reduction))

    return reductions, remaining


def projected_end_time(
    sessions: Sequence[Session],
    current_session_id: str,
    current_session_ends_at: datetime,
) -> datetime:
    """Workshop end implied by the current session's end plus every later planned session"""
    later = _later_sessions(sessions, current_session_id)
    return current_session_ends_at + timedelta(minutes=sum(s.planned_duration_minutes for s in later))


def plan_extension(
    sessions: Sequence[Session],
    current_session_id: str,
    extension_minutes: int,
    planned_end_time: datetime,
) -> BufferAdjustmentPlan:
    """
    Compute how extending the current session is absorbed by the agenda.

    Buffer sessions after the current one are drained front to back so that
    later buffers stay available as margin. Only if all of them together
    cannot cover the extension is the workshop end pushed by the deficit.

    Args:
        sessions: All sessions of the workshop (any order)
        current_session_id: Session being extended
        extension_minutes: Minutes to add to the current session
        planned_end_time: Workshop end before the extension

    Returns:
        BufferAdjustmentPlan (not yet applied)

    Raises:
        InvalidArgumentError: extension_minutes <= 0
        NotFoundError: current session is not in the agenda
    """
    if extension_minutes <= 0:
        raise InvalidArgumentError(f"Extension must be positive, got {extension_minutes} minutes")

    buffers = [s for s in _later_sessions(sessions, current_session_id) if s.is_buffer]
    total_buffer_minutes = sum(s.planned_duration_minutes for s in buffers)
    reductions, deficit = _drain_buffers(buffers, extension_minutes)

    if deficit <= 0:
        affected = [session_id for session_id, _ in reductions]
        rationale = (
            f"{extension_minutes} min taken from buffer time "
            f"({len(affected)} buffer session{'s' if len(affected) != 1 else ''}); "
            f"workshop end unchanged"
        )
        plan_type = AdjustmentType.REDUCE_BUFFER
        new_end_time = planned_end_time
    else:
        if total_buffer_minutes > 0:
            rationale = (
                f"All buffers used ({total_buffer_minutes} min); "
                f"workshop end shifted by {deficit} min"
            )
        else:
            rationale = f"No buffer time left; workshop end shifted by {deficit} min"
        # Every eligible buffer ends at zero, including ones already empty
        affected = [s.id for s in buffers]
        plan_type = AdjustmentType.SHIFT_END
        new_end_time = planned_end_time + timedelta(minutes=deficit)

    logger.debug(f"Extension plan for session {current_session_id}: {plan_type.value}, {rationale}")

    return BufferAdjustmentPlan(
        type=plan_type,
        affected_session_ids=affected,
        new_end_time=new_end_time,
        rationale=rationale,
        reductions=dict(reductions),
    )


def apply_plan(
    sessions: Sequence[Session],
    plan: BufferAdjustmentPlan,
    extension_minutes: int,
) -> List[Session]:
    """
    Return a new session list with the plan's reductions applied.

    Pure function. Repeats the same greedy walk as plan_extension over the
    affected sessions, so planning and applying always agree. Sessions not
    listed in the plan are returned unchanged.
    """
    affected_ids = set(plan.affected_session_ids)
    affected = [s for s in _agenda_order(sessions) if s.id in affected_ids]
    reductions = dict(_drain_buffers(affected, extension_minutes)[0])

    return [
        session.model_copy(
            update={"planned_duration_minutes": session.planned_duration_minutes - reductions[session.id]}
        )
        if session.id in reductions
        else session
        for session in sessions
    ]
