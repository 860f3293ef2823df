"""Main API router that aggregates all route modules."""

from fastapi import APIRouter

from backend.app.api.routes import presets

api_router = APIRouter()

# Include all route modules
api_router.include_router(presets.router, prefix="/presets", tags=["presets"])
