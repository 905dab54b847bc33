# audioscribe/api/deps.py
"""FastAPI dependencies resolving the objects ``create_app`` stored on ``app.state``."""
from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from audioscribe.core.config import Settings
from audioscribe.services.pipeline import TranscriptionPipeline
from audioscribe.services.summarization import SummarizationService


def get_db(request: Request) -> Generator[Session, None, None]:
    """Database dependency for FastAPI routes."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_pipeline(request: Request) -> TranscriptionPipeline:
    return request.app.state.pipeline


def get_summarizer(request: Request) -> SummarizationService:
    return request.app.state.summarizer
