# audioscribe/api/transcription.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from audioscribe.api.deps import get_db, get_pipeline, get_settings
from audioscribe.core.config import Settings
from audioscribe.core.errors import BadRequest
from audioscribe.schemas import TranscriptionRead
from audioscribe.services.pipeline import TranscriptionPipeline

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/transcribe", response_model=TranscriptionRead)
async def transcribe_upload(
    audio: Optional[UploadFile] = File(None),
    provider: Optional[str] = Form(None),
    user_prompt: Optional[str] = Form(None, alias="userPrompt"),
    db: Session = Depends(get_db),
    pipeline: TranscriptionPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
):
    """
    Accepts an audio file, transcribes it with the chosen provider and returns
    the stored transcription with its segments.
    """
    if audio is None:
        raise BadRequest("No file provided")

    original_name = audio.filename or "audio"
    content = await audio.read()
    provider_name = provider or settings.DEFAULT_PROVIDER
    logger.info(f"Upload received: {original_name} ({len(content)} bytes, {audio.content_type}) via {provider_name}")

    return await pipeline.process_upload(
        db,
        content=content,
        original_name=original_name,
        mime_type=audio.content_type or "",
        provider_name=provider_name,
        user_prompt=user_prompt,
    )


@router.post("/transcribe/url", response_model=TranscriptionRead)
async def transcribe_hosted_audio(
    audio_url: Optional[str] = Form(None, alias="audioUrl"),
    file_name: Optional[str] = Form(None, alias="fileName"),
    file_size: Optional[int] = Form(None, alias="fileSize"),
    mime_type: Optional[str] = Form(None, alias="mimeType"),
    user_prompt: Optional[str] = Form(None, alias="userPrompt"),
    db: Session = Depends(get_db),
    pipeline: TranscriptionPipeline = Depends(get_pipeline),
):
    """Transcribes audio the browser already uploaded to the provider and got a URL for."""
    if file_size is None:
        raise BadRequest("Missing file size")
    logger.info(f"Hosted audio received: {file_name} ({file_size} bytes, {mime_type})")

    return await pipeline.process_url(
        db,
        audio_url=audio_url,
        original_name=file_name,
        file_size=file_size,
        mime_type=mime_type or "",
        user_prompt=user_prompt,
    )
