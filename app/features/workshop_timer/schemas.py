"""Request and response schemas for the Workshop Timer API"""

from datetime import datetime

from pydantic import BaseModel, Field

from app.features.workshop_timer.domain import BufferAdjustmentPlan, WorkshopTimerState


class StartSessionRequest(BaseModel):
    """Request model for starting a session"""
    session_id: str


class ExtendSessionRequest(BaseModel):
    """Request model for extending the current session"""
    session_id: str
    minutes: int = Field(..., description="Minutes to add; must be positive")


class PreviewExtensionRequest(BaseModel):
    """Request model for previewing an extension before committing it"""
    minutes: int


class TimerStateResponse(BaseModel):
    """Canonical state plus the server's view of the remaining time"""
    state: WorkshopTimerState
    remaining_ms: int
    server_time: datetime


class ExtendTimerResponse(BaseModel):
    """Response model for an applied extension"""
    state: WorkshopTimerState
    plan: BufferAdjustmentPlan
