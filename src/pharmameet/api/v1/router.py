"""V1 API router -- aggregates the endpoint routers mounted under /api."""

from __future__ import annotations

from fastapi import APIRouter

from src.pharmameet.api.v1 import ai, meetings, research, save

router = APIRouter()

router.include_router(meetings.router)
router.include_router(save.router)
router.include_router(ai.router)
router.include_router(research.router)
