"""Main API router that includes all sub-routers."""

from fastapi import APIRouter

from .restaurants import router as restaurants_router

api_router = APIRouter(prefix="/api")

api_router.include_router(restaurants_router)
