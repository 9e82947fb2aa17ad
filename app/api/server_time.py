"""Authoritative time source for client clock sync"""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from app.utils.datetime_helper import to_epoch_ms, utc_now

router = APIRouter(prefix="/api/time", tags=["time"])


class ServerTimeResponse(BaseModel):
    server_time: datetime
    epoch_ms: float


@router.get("", response_model=ServerTimeResponse)
async def get_server_time():
    """Current server time; read-only and cheap enough to call once per sync"""
    now = utc_now()
    return {"server_time": now, "epoch_ms": to_epoch_ms(now)}
