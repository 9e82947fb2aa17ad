"""Workshop timer state repository"""
import logging

from supabase import Client  # type: ignore

from app.errors import NotFoundError
from app.features.workshop_timer.domain import (
    TimerStatus,
    WorkshopTimerState,
    WorkshopTimerStateUpdate,
)

from app.infra.supabase.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class TimerStateRepository(BaseRepository[WorkshopTimerState, WorkshopTimerState, WorkshopTimerStateUpdate]):
    """Repository for the canonical workshop_timer_states rows (one per workshop)"""

    def __init__(self, client: Client):
        super().__init__(client, "workshop_timer_states", WorkshopTimerState, id_column="workshop_id")

    async def read_timer_state(self, workshop_id: str) -> WorkshopTimerState:
        state = await self.find_by_id(workshop_id)
        if state is None:
            raise NotFoundError(f"No timer state for workshop {workshop_id}")
        return state

    async def write_timer_state(self, workshop_id: str, update: WorkshopTimerStateUpdate) -> WorkshopTimerState:
        """
        Apply a partial update to one row.

        Only fields explicitly set on the update are written, so clearing a
        field requires setting it to None on purpose.
        """
        state = await self.update(workshop_id, update)
        if state is None:
            raise NotFoundError(f"No timer state for workshop {workshop_id}")
        return state

    async def create_initial(self, workshop_id: str) -> WorkshopTimerState:
        """Insert the planned state created alongside a new workshop"""
        logger.info(f"Creating timer state for workshop {workshop_id}")
        return await self.create(WorkshopTimerState(workshop_id=workshop_id, status=TimerStatus.PLANNED))
