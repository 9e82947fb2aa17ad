"""Workshop timer repositories"""
from supabase import Client  # type: ignore

from .sessions import SessionRepository
from .timer_states import TimerStateRepository


class RepositoryFactory:
    """Factory for creating repository instances"""

    def __init__(self, client: Client):
        self._client = client
        self._sessions: SessionRepository = None
        self._timer_states: TimerStateRepository = None

    @property
    def sessions(self) -> SessionRepository:
        """Get sessions repository"""
        if self._sessions is None:
            self._sessions = SessionRepository(self._client)
        return self._sessions

    @property
    def timer_states(self) -> TimerStateRepository:
        """Get timer states repository"""
        if self._timer_states is None:
            self._timer_states = TimerStateRepository(self._client)
        return self._timer_states


__all__ = [
    "RepositoryFactory",
    "SessionRepository",
    "TimerStateRepository",
]
