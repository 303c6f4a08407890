"""
PURPOSE: API router initialization and exports.

Aggregates the API routers into a single api_router that is included in
the main FastAPI application.
"""

from fastapi import APIRouter

from strategy_core.api.routes_strategy_builder import router as strategy_builder_router

# Create the main API router
api_router = APIRouter(prefix="/api", tags=["api"])

# Include all sub-routers
api_router.include_router(strategy_builder_router, tags=["strategy-builder"])

__all__ = ["api_router"]
