"""Live timer client: clock sync, snapshot store and propagation channel"""
from .channel import (
    InProcessPropagationChannel,
    PropagationChannel,
    SupabaseRealtimeChannel,
    Subscription,
)
from .clock_sync import ClockSync, http_time_source, supabase_time_source
from .live_timer import LiveTimer, http_snapshot_source, repository_snapshot_source
from .models.snapshot import WorkshopTimerSnapshot
from .store import ClientTimerStatus, TimerStateStore

__all__ = [
    "ClientTimerStatus",
    "ClockSync",
    "InProcessPropagationChannel",
    "LiveTimer",
    "PropagationChannel",
    "Subscription",
    "SupabaseRealtimeChannel",
    "TimerStateStore",
    "WorkshopTimerSnapshot",
    "http_snapshot_source",
    "http_time_source",
    "repository_snapshot_source",
    "supabase_time_source",
]
