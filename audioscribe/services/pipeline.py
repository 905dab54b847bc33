# audioscribe/services/pipeline.py
"""
The single upload pipeline behind every transcription entry point:
validate, record, transcribe, normalize, store, summarize.
"""
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy.orm import Session

from audioscribe.core.errors import AudioScribeError, BadRequest, PersistenceFailure, UpstreamFailure
from audioscribe.db import transcription as crud
from audioscribe.db.models import Transcription
from audioscribe.services.normalizer import DEFAULT_MAX_SEGMENT_CHARS, normalize_segments
from audioscribe.services.summarization import SummarizationService
from audioscribe.services.transcription import BaseTranscriptionService, ProviderTranscript
from audioscribe.services.validation import validate_upload
from audioscribe.utils.files import generate_unique_filename, safe_remove_file, save_upload

logger = logging.getLogger(__name__)


class TranscriptionPipeline:
    def __init__(
        self,
        providers: Dict[str, BaseTranscriptionService],
        summarizer: SummarizationService,
        uploads_dir: str,
        max_segment_chars: int = DEFAULT_MAX_SEGMENT_CHARS,
    ):
        self.providers = providers
        self.summarizer = summarizer
        self.uploads_dir = Path(uploads_dir)
        self.max_segment_chars = max_segment_chars

    def get_provider(self, name: str) -> BaseTranscriptionService:
        provider = self.providers.get((name or "").strip().lower())
        if not provider:
            raise BadRequest(f"Unknown transcription provider: {name}")
        return provider

    async def process_upload(
        self,
        db: Session,
        *,
        content: bytes,
        original_name: str,
        mime_type: str,
        provider_name: str,
        user_prompt: Optional[str] = None,
    ) -> Transcription:
        """Transcribe an uploaded file held in memory."""
        validate_upload(mime_type, len(content))
        provider = self.get_provider(provider_name)
        provider.ensure_configured()

        stored_name = generate_unique_filename(original_name)
        try:
            temp_path = await save_upload(content, self.uploads_dir, stored_name)
        except OSError as e:
            logger.error(f"Error saving file {stored_name}: {e}", exc_info=True)
            raise PersistenceFailure("Failed to save file") from e

        try:
            transcription = crud.create_transcription(
                db,
                file_name=stored_name,
                original_name=original_name,
                file_size=len(content),
                mime_type=mime_type,
                provider=provider.name,
            )
            return await self._run(
                db, transcription, lambda: provider.transcribe_file(str(temp_path), mime_type), user_prompt
            )
        finally:
            if not safe_remove_file(temp_path):
                logger.warning(f"Temp file {temp_path} could not be removed")

    async def process_url(
        self,
        db: Session,
        *,
        audio_url: str,
        original_name: str,
        file_size: int,
        mime_type: str,
        user_prompt: Optional[str] = None,
    ) -> Transcription:
        """Transcribe audio the client already uploaded to a URL-capable provider."""
        if not audio_url or not original_name:
            raise BadRequest("Missing audio URL or file name")
        validate_upload(mime_type, file_size)
        provider = self.get_provider("assemblyai")
        provider.ensure_configured()

        transcription = crud.create_transcription(
            db,
            file_name=generate_unique_filename(original_name),
            original_name=original_name,
            file_size=file_size,
            mime_type=mime_type,
            provider=provider.name,
        )
        return await self._run(db, transcription, lambda: provider.transcribe_url(audio_url), user_prompt)

    async def _run(
        self,
        db: Session,
        transcription: Transcription,
        transcribe: Callable[[], Awaitable[ProviderTranscript]],
        user_prompt: Optional[str],
    ) -> Transcription:
        transcription_id = transcription.id
        try:
            logger.info(f"[Transcription {transcription_id}] Starting provider call ({transcription.provider})")
            result = await transcribe()

            segments = normalize_segments(result.tokens, self.max_segment_chars)
            logger.info(f"[Transcription {transcription_id}] {len(result.tokens)} tokens merged into {len(segments)} segments")
            crud.add_segments(db, transcription_id, segments)

            # A failed summary leaves it empty; the transcription still completes
            summary = await self.summarizer.summarize(result.text, user_prompt)
            return crud.mark_completed(
                db, transcription, text=result.text, summary=summary, language=result.language
            )
        except AudioScribeError as e:
            logger.error(f"[Transcription {transcription_id}] Failed: {e.message}")
            crud.mark_failed(db, transcription_id, e.message)
            raise
        except Exception as e:
            logger.error(f"[Transcription {transcription_id}] Unexpected error: {e}", exc_info=True)
            message = f"Transcription failed: {e}"
            crud.mark_failed(db, transcription_id, message)
            raise UpstreamFailure(message) from e
