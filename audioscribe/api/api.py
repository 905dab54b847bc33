# audioscribe/api/api.py
import logging
from fastapi import APIRouter

from audioscribe.api import ask, export, health, transcription, transcriptions

logger = logging.getLogger(__name__)

# Create main API router
router = APIRouter()

# Include all sub-routers
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(transcription.router, tags=["transcription"])
router.include_router(transcriptions.router, tags=["transcriptions"])
router.include_router(ask.router, tags=["ask"])
router.include_router(export.router, tags=["export"])
