"""Workshop Timer API endpoints"""

import asyncio
import logging
import traceback

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect

from app.errors import TimerError, TransientError
from app.infra.supabase.client import get_supabase_client
from app.features.workshop_timer.domain import BufferAdjustmentPlan
from app.features.workshop_timer.repositories import RepositoryFactory
from app.features.workshop_timer.schemas import (
    ExtendSessionRequest,
    ExtendTimerResponse,
    PreviewExtensionRequest,
    StartSessionRequest,
    TimerStateResponse,
)
from app.features.workshop_timer.service import TimerControlService
from app.services.live_timer.channel import InProcessPropagationChannel
from app.services.live_timer.models.snapshot import WorkshopTimerSnapshot
from app.utils.datetime_helper import utc_now

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/workshops/{workshop_id}/timer", tags=["workshop-timer"])

# Fan-out hub for websocket subscribers of this API process
_channel = InProcessPropagationChannel()


def get_propagation_channel() -> InProcessPropagationChannel:
    return _channel


def get_timer_service(
    channel: InProcessPropagationChannel = Depends(get_propagation_channel),
) -> TimerControlService:
    repos = RepositoryFactory(get_supabase_client())
    return TimerControlService(repos.sessions, repos.timer_states, channel=channel)


def _http_error(e: Exception, action: str) -> HTTPException:
    """Map timer errors to status codes; anything else is a 500"""
    if isinstance(e, TimerError):
        if isinstance(e, TransientError):
            logger.warning(f"Transient failure during {action}: {e}")
        return HTTPException(status_code=e.status_code, detail=str(e))

    logger.error(f"Failed to {action}: {e}\n{traceback.format_exc()}")
    return HTTPException(status_code=500, detail=f"Failed to {action}: {str(e)}")


def _state_response(state, now) -> TimerStateResponse:
    return TimerStateResponse(state=state, remaining_ms=state.remaining_ms(now), server_time=now)


@router.get("", response_model=TimerStateResponse)
async def get_timer_state(
    workshop_id: str,
    service: TimerControlService = Depends(get_timer_service),
):
    """
    Get the canonical timer state of a workshop.

    Clients use this for the initial load and after every reconnect.
    """
    try:
        state = await service.get_state(workshop_id)
        return _state_response(state, utc_now())
    except Exception as e:
        raise _http_error(e, "fetch timer state")


@router.post("/start", response_model=TimerStateResponse)
async def start_session(
    workshop_id: str,
    request: StartSessionRequest,
    service: TimerControlService = Depends(get_timer_service),
):
    """
    Start the countdown of a session.

    Raises:
        404: Session not found in this workshop
    """
    try:
        state = await service.start_session(workshop_id, request.session_id)
        return _state_response(state, utc_now())
    except Exception as e:
        raise _http_error(e, "start session")


@router.post("/pause", response_model=TimerStateResponse)
async def pause_session(
    workshop_id: str,
    service: TimerControlService = Depends(get_timer_service),
):
    try:
        state = await service.pause(workshop_id)
        return _state_response(state, utc_now())
    except Exception as e:
        raise _http_error(e, "pause session")


@router.post("/resume", response_model=TimerStateResponse)
async def resume_session(
    workshop_id: str,
    service: TimerControlService = Depends(get_timer_service),
):
    try:
        state = await service.resume(workshop_id)
        return _state_response(state, utc_now())
    except Exception as e:
        raise _http_error(e, "resume session")


@router.post("/extend/preview", response_model=BufferAdjustmentPlan)
async def preview_extension(
    workshop_id: str,
    request: PreviewExtensionRequest,
    service: TimerControlService = Depends(get_timer_service),
):
    """
    Show how an extension would be absorbed, for moderator confirmation.

    Nothing is written.
    """
    try:
        return await service.preview_extension(workshop_id, request.minutes)
    except Exception as e:
        raise _http_error(e, "preview extension")


@router.post("/extend", response_model=ExtendTimerResponse)
async def extend_session(
    workshop_id: str,
    request: ExtendSessionRequest,
    service: TimerControlService = Depends(get_timer_service),
):
    """
    Extend the current session.

    Buffer sessions later in the agenda are shortened first; only the
    remaining deficit pushes the workshop end.

    Raises:
        409: Timer is not running or paused, or session is not current
        422: Non-positive extension
        503: Backing store failure (state may be partially updated; reload)
    """
    try:
        return await service.extend(workshop_id, request.session_id, request.minutes)
    except Exception as e:
        raise _http_error(e, "extend session")


@router.post("/complete", response_model=TimerStateResponse)
async def complete_session(
    workshop_id: str,
    service: TimerControlService = Depends(get_timer_service),
):
    try:
        state = await service.complete_session(workshop_id)
        return _state_response(state, utc_now())
    except Exception as e:
        raise _http_error(e, "complete session")


@router.post("/reset", response_model=TimerStateResponse)
async def reset_timer(
    workshop_id: str,
    service: TimerControlService = Depends(get_timer_service),
):
    try:
        state = await service.reset(workshop_id)
        return _state_response(state, utc_now())
    except Exception as e:
        raise _http_error(e, "reset timer")


@router.websocket("/stream")
async def stream_snapshots(
    websocket: WebSocket,
    workshop_id: str,
    service: TimerControlService = Depends(get_timer_service),
    channel: InProcessPropagationChannel = Depends(get_propagation_channel),
):
    """
    Push full snapshots to a display or participant device.

    The current snapshot is sent right after the handshake, then every
    snapshot published by this process.
    """
    await websocket.accept()
    queue: asyncio.Queue = asyncio.Queue()
    subscription = await channel.subscribe(workshop_id, queue.put_nowait)

    async def forward() -> None:
        while True:
            snapshot = await queue.get()
            await websocket.send_json(snapshot.model_dump(mode="json"))

    forwarder = None
    try:
        state = await service.get_state(workshop_id)
        await websocket.send_json(WorkshopTimerSnapshot.from_state(state).model_dump(mode="json"))

        forwarder = asyncio.create_task(forward())
        while True:
            # Incoming messages are ignored; receiving only detects the close
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Snapshot stream closed for workshop {workshop_id}")
    except TimerError as e:
        logger.warning(f"Snapshot stream for workshop {workshop_id} aborted: {e}")
        await websocket.close(code=1011, reason=str(e))
    finally:
        if forwarder is not None:
            forwarder.cancel()
        await subscription.unsubscribe()
