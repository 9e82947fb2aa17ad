"""Services module"""

# Client-side live timer (clock sync, snapshot store, propagation channel)
from app.services.live_timer import (
    ClockSync,
    InProcessPropagationChannel,
    LiveTimer,
    PropagationChannel,
    SupabaseRealtimeChannel,
    TimerStateStore,
)

__all__ = [
    "ClockSync",
    "InProcessPropagationChannel",
    "LiveTimer",
    "PropagationChannel",
    "SupabaseRealtimeChannel",
    "TimerStateStore",
]
