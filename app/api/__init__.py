# API module exports
from app.api import health, server_time
from app.api.base import api_router

__all__ = ["health", "server_time", "api_router"]
