"""API router aggregation."""
from fastapi import APIRouter

from livecode.api.endpoints import auth, games, websocket

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(games.router)
api_router.include_router(websocket.router)
