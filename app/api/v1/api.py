# File: app/api/v1/api.py
from fastapi import APIRouter
from app.api.v1.endpoints import queue, queue_ws

# Create main API router
api_router = APIRouter()

api_router.include_router(
    queue.router,
    tags=["queue"]
)

api_router.include_router(
    queue_ws.router,
    tags=["queue-realtime"]
)
