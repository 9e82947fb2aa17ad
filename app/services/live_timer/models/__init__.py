from .snapshot import WorkshopTimerSnapshot

__all__ = ["WorkshopTimerSnapshot"]
