"""
Pytest configuration and fixtures for workshop timer tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from app.errors import NotFoundError, TransientError
from app.features.workshop_timer.domain import (
    Session,
    TimerStatus,
    WorkshopTimerState,
    WorkshopTimerStateUpdate,
)
from app.features.workshop_timer.service import TimerControlService
from app.services.live_timer.channel import InProcessPropagationChannel

WORKSHOP_ID = "ws-1"


class FakeClock:
    """Controllable UTC clock for the control service"""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeLocalClock:
    """Controllable epoch-seconds clock standing in for time.time on clients"""

    def __init__(self, start: float):
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FakeSessionRepository:
    """In-memory stand-in for SessionRepository"""

    def __init__(self, sessions: List[Session]):
        self.sessions: Dict[str, Session] = {s.id: s for s in sessions}
        self.duration_writes: List[tuple] = []
        self.fail_updates = False

    async def list_sessions(self, workshop_id: str) -> List[Session]:
        return sorted(
            (s for s in self.sessions.values() if s.workshop_id == workshop_id),
            key=lambda s: s.order_index,
        )

    async def find_in_workshop(self, workshop_id: str, session_id: str) -> Optional[Session]:
        session = self.sessions.get(session_id)
        if session is None or session.workshop_id != workshop_id:
            return None
        return session

    async def update_session_duration(self, session_id: str, minutes: int) -> Session:
        if self.fail_updates:
            raise TransientError("sessions unreachable")
        if session_id not in self.sessions:
            raise NotFoundError(f"Session {session_id} not found")
        self.sessions[session_id] = self.sessions[session_id].model_copy(
            update={"planned_duration_minutes": minutes}
        )
        self.duration_writes.append((session_id, minutes))
        return self.sessions[session_id]


class FakeTimerStateRepository:
    """In-memory stand-in for TimerStateRepository"""

    def __init__(self, clock):
        self._clock = clock
        self.states: Dict[str, WorkshopTimerState] = {}
        self.writes = 0
        self.fail_writes = False

    async def read_timer_state(self, workshop_id: str) -> WorkshopTimerState:
        if workshop_id not in self.states:
            raise NotFoundError(f"No timer state for workshop {workshop_id}")
        return self.states[workshop_id]

    async def write_timer_state(self, workshop_id: str, update: WorkshopTimerStateUpdate) -> WorkshopTimerState:
        if self.fail_writes:
            raise TransientError("workshop_timer_states unreachable")
        state = await self.read_timer_state(workshop_id)
        data = state.model_dump()
        data.update(update.model_dump(exclude_unset=True))
        data["updated_at"] = self._clock()
        self.states[workshop_id] = WorkshopTimerState(**data)
        self.writes += 1
        return self.states[workshop_id]

    async def create_initial(self, workshop_id: str) -> WorkshopTimerState:
        self.states[workshop_id] = WorkshopTimerState(workshop_id=workshop_id, status=TimerStatus.PLANNED)
        return self.states[workshop_id]


def make_session(session_id: str, order_index: int, minutes: int, is_buffer: bool = False,
                 workshop_id: str = WORKSHOP_ID) -> Session:
    return Session(
        id=session_id,
        workshop_id=workshop_id,
        order_index=order_index,
        planned_duration_minutes=minutes,
        is_buffer=is_buffer,
    )


@pytest.fixture
def clock():
    """Service clock starting at a fixed instant."""
    return FakeClock(datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def agenda():
    """Current(20) followed by two buffers A(10) and B(15)."""
    return [
        make_session("current", 0, 20),
        make_session("a", 1, 10, is_buffer=True),
        make_session("b", 2, 15, is_buffer=True),
    ]


@pytest.fixture
def session_repo(agenda):
    return FakeSessionRepository(agenda)


@pytest.fixture
def timer_state_repo(clock):
    repo = FakeTimerStateRepository(clock)
    repo.states[WORKSHOP_ID] = WorkshopTimerState(workshop_id=WORKSHOP_ID)
    return repo


@pytest.fixture
def channel():
    return InProcessPropagationChannel()


@pytest.fixture
def service(session_repo, timer_state_repo, channel, clock):
    return TimerControlService(session_repo, timer_state_repo, channel=channel, clock=clock)
