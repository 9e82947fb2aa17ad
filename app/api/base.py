from fastapi import APIRouter
from app.api import health, server_time
from app.features.workshop_timer.api import router as workshop_timer_router

api_router = APIRouter()

# Include all sub-routers
api_router.include_router(health.router)
api_router.include_router(server_time.router)
api_router.include_router(workshop_timer_router)
