# audioscribe/api/ask.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from audioscribe.api.deps import get_db, get_summarizer
from audioscribe.core.errors import BadRequest, NotFound
from audioscribe.db import transcription as crud
from audioscribe.schemas import AskRequest, AskResponse
from audioscribe.services.summarization import SummarizationService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/ask", response_model=AskResponse)
async def ask_question(
    request: AskRequest,
    db: Session = Depends(get_db),
    summarizer: SummarizationService = Depends(get_summarizer),
):
    """Answers a free-form question from a completed transcript."""
    if not request.transcription_id or not request.question or not request.question.strip():
        raise BadRequest("Missing transcriptionId or question")

    transcription = crud.get_transcription(db, request.transcription_id)
    if not transcription or not transcription.text:
        raise NotFound("Transcription not found")

    logger.info(f"Question for transcription {transcription.id}: {request.question[:50]}...")
    answer = await summarizer.answer_question(transcription.text, request.question.strip())
    return AskResponse(answer=answer)
