"""Timer Control Service - sole writer of canonical workshop timer state"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from app.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from app.services.live_timer.channel import PropagationChannel
from app.services.live_timer.models.snapshot import WorkshopTimerSnapshot
from app.utils.datetime_helper import minutes_to_ms, utc_now

from .buffer import apply_plan, plan_extension, projected_end_time
from .domain import (
    BufferAdjustmentPlan,
    Session,
    TimerStatus,
    WorkshopTimerState,
    WorkshopTimerStateUpdate,
    cleared_timer_fields,
)
from .repositories import SessionRepository, TimerStateRepository
from .schemas import ExtendTimerResponse

logger = logging.getLogger(__name__)


class TimerControlService:
    """
    Service layer for moderator timer commands.

    Every command reads and writes the canonical row through the
    repositories and then publishes the resulting snapshot. Nothing is
    retried here; failures surface as TimerError subclasses.
    """

    def __init__(
        self,
        session_repo: SessionRepository,
        timer_state_repo: TimerStateRepository,
        channel: Optional[PropagationChannel] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_repo = session_repo
        self.timer_state_repo = timer_state_repo
        self.channel = channel
        self._clock = clock

    async def _publish(self, state: WorkshopTimerState) -> None:
        if self.channel is not None:
            await self.channel.publish(WorkshopTimerSnapshot.from_state(state))

    async def _write(self, workshop_id: str, update: WorkshopTimerStateUpdate) -> WorkshopTimerState:
        state = await self.timer_state_repo.write_timer_state(workshop_id, update)
        await self._publish(state)
        return state

    async def get_state(self, workshop_id: str) -> WorkshopTimerState:
        return await self.timer_state_repo.read_timer_state(workshop_id)

    async def start_session(self, workshop_id: str, session_id: str) -> WorkshopTimerState:
        """
        Start the countdown for one session of the workshop.

        Raises:
            NotFoundError: Session missing or not part of this workshop
        """
        session = await self.session_repo.find_in_workshop(workshop_id, session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found in workshop {workshop_id}")

        now = self._clock()
        ends_at = now + timedelta(minutes=session.planned_duration_minutes)
        state = await self._write(workshop_id, WorkshopTimerStateUpdate(
            current_session_id=session.id,
            status=TimerStatus.RUNNING,
            session_started_at=now,
            session_ends_at=ends_at,
            paused_at=None,
            paused_remaining_ms=None,
        ))

        logger.info(f"Session {session_id} started for workshop {workshop_id}, ends at {ends_at.isoformat()}")
        return state

    async def pause(self, workshop_id: str) -> WorkshopTimerState:
        state = await self.timer_state_repo.read_timer_state(workshop_id)
        if state.status != TimerStatus.RUNNING:
            raise InvalidStateError(f"Cannot pause workshop {workshop_id} while {state.status.value}")

        now = self._clock()
        remaining_ms = state.remaining_ms(now)
        state = await self._write(workshop_id, WorkshopTimerStateUpdate(
            status=TimerStatus.PAUSED,
            paused_at=now,
            paused_remaining_ms=remaining_ms,
        ))

        logger.info(f"Workshop {workshop_id} paused with {remaining_ms}ms remaining")
        return state

    async def resume(self, workshop_id: str) -> WorkshopTimerState:
        """
        Continue a paused countdown from its captured remainder.

        Raises:
            InvalidStateError: Not paused, or no positive remainder to resume from
        """
        state = await self.timer_state_repo.read_timer_state(workshop_id)
        if state.status != TimerStatus.PAUSED:
            raise InvalidStateError(f"Cannot resume workshop {workshop_id} while {state.status.value}")

        now = self._clock()
        remaining_ms = state.remaining_ms(now)
        if remaining_ms <= 0:
            raise InvalidStateError(f"Workshop {workshop_id} has no remaining time to resume")

        state = await self._write(workshop_id, WorkshopTimerStateUpdate(
            status=TimerStatus.RUNNING,
            session_ends_at=now + timedelta(milliseconds=remaining_ms),
            paused_at=None,
            paused_remaining_ms=None,
        ))

        logger.info(f"Workshop {workshop_id} resumed with {remaining_ms}ms remaining")
        return state

    async def _plan_for(
        self,
        workshop_id: str,
        minutes: int,
        session_id: Optional[str] = None,
    ) -> Tuple[WorkshopTimerState, List[Session], BufferAdjustmentPlan]:
        if minutes <= 0:
            raise InvalidArgumentError(f"Extension must be positive, got {minutes} minutes")

        state = await self.timer_state_repo.read_timer_state(workshop_id)
        if not state.is_active():
            raise InvalidStateError(f"Cannot extend workshop {workshop_id} while {state.status.value}")
        if session_id is not None and session_id != state.current_session_id:
            raise InvalidStateError(f"Session {session_id} is not the current session of workshop {workshop_id}")

        sessions = await self.session_repo.list_sessions(workshop_id)
        now = self._clock()
        current_ends_at = now + timedelta(milliseconds=state.remaining_ms(now))
        planned_end = projected_end_time(sessions, state.current_session_id, current_ends_at)

        plan = plan_extension(sessions, state.current_session_id, minutes, planned_end)
        return state, sessions, plan

    async def preview_extension(self, workshop_id: str, minutes: int) -> BufferAdjustmentPlan:
        """Plan an extension of the current session without writing anything"""
        _, _, plan = await self._plan_for(workshop_id, minutes)
        return plan

    async def extend(self, workshop_id: str, session_id: str, minutes: int) -> ExtendTimerResponse:
        """
        Extend the current session and let the agenda absorb it.

        Session durations and the timer row are separate writes. If one of
        them fails the other is not rolled back; clients recover by
        reloading the canonical snapshot.

        Raises:
            InvalidArgumentError: minutes <= 0
            InvalidStateError: Timer not running/paused, or session_id is not current
        """
        state, sessions, plan = await self._plan_for(workshop_id, minutes, session_id=session_id)

        originals = {s.id: s.planned_duration_minutes for s in sessions}
        for session in apply_plan(sessions, plan, minutes):
            if session.planned_duration_minutes != originals[session.id]:
                await self.session_repo.update_session_duration(session.id, session.planned_duration_minutes)

        update = WorkshopTimerStateUpdate(session_ends_at=state.session_ends_at + timedelta(minutes=minutes))
        if state.status == TimerStatus.PAUSED:
            update.paused_remaining_ms = state.remaining_ms(self._clock()) + minutes_to_ms(minutes)
        state = await self._write(workshop_id, update)

        logger.info(f"Workshop {workshop_id} session {session_id} extended by {minutes}min: {plan.rationale}")
        return ExtendTimerResponse(state=state, plan=plan)

    async def complete_session(self, workshop_id: str) -> WorkshopTimerState:
        state = await self.timer_state_repo.read_timer_state(workshop_id)
        if not state.is_active():
            raise InvalidStateError(f"Cannot complete workshop {workshop_id} while {state.status.value}")

        if state.session_started_at is not None:
            actual = self._clock() - state.session_started_at
            logger.info(
                f"Session {state.current_session_id} of workshop {workshop_id} "
                f"completed after {actual.total_seconds() / 60:.1f}min"
            )

        return await self._write(workshop_id, cleared_timer_fields(TimerStatus.COMPLETED))

    async def reset(self, workshop_id: str) -> WorkshopTimerState:
        """Back to planned with every timer field cleared. Session durations are left alone."""
        update = cleared_timer_fields(TimerStatus.PLANNED)
        update.clock_offset_ms = 0
        state = await self._write(workshop_id, update)

        logger.info(f"Timer reset for workshop {workshop_id}")
        return state
