"""Sessions repository"""
from typing import List, Optional

from supabase import Client  # type: ignore

from app.errors import NotFoundError
from app.features.workshop_timer.domain import Session, SessionDurationUpdate

from app.infra.supabase.repositories.base import BaseRepository


class SessionRepository(BaseRepository[Session, Session, SessionDurationUpdate]):
    """Read access to the agenda plus the single write the timer core is allowed"""

    def __init__(self, client: Client):
        super().__init__(client, "sessions", Session)

    async def list_sessions(self, workshop_id: str) -> List[Session]:
        """All sessions of a workshop in agenda order"""
        return await self.find_by_filters({"workshop_id": workshop_id}, order_by="order_index")

    async def find_in_workshop(self, workshop_id: str, session_id: str) -> Optional[Session]:
        """Find a session only if it belongs to the given workshop"""
        session = await self.find_by_id(session_id)
        if session is None or session.workshop_id != workshop_id:
            return None
        return session

    async def update_session_duration(self, session_id: str, minutes: int) -> Session:
        """Overwrite planned_duration_minutes of one session"""
        session = await self.update(session_id, SessionDurationUpdate(planned_duration_minutes=minutes))
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session
