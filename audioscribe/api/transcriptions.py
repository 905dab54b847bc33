# audioscribe/api/transcriptions.py
import logging
from typing import Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from audioscribe.api.deps import get_db
from audioscribe.core.errors import NotFound
from audioscribe.db import transcription as crud
from audioscribe.schemas import TranscriptionRead

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/transcriptions", response_model=List[TranscriptionRead])
async def list_transcriptions(db: Session = Depends(get_db)):
    """All transcriptions, newest first, each with its first segment as a preview."""
    rows = crud.list_transcriptions(db)
    return [TranscriptionRead.preview(transcription, first) for transcription, first in rows]


@router.get("/transcriptions/{transcription_id}", response_model=TranscriptionRead)
async def get_transcription(transcription_id: str, db: Session = Depends(get_db)):
    """One transcription with all of its segments ordered by start time."""
    transcription = crud.get_transcription(db, transcription_id)
    if not transcription:
        raise NotFound("Transcription not found")
    logger.info(f"Fetching transcription {transcription_id} (Status: {transcription.status.value})")
    return transcription


@router.delete("/transcriptions/{transcription_id}")
async def delete_transcription(transcription_id: str, db: Session = Depends(get_db)) -> Dict[str, str]:
    """Delete a transcription and its segments."""
    if not crud.delete_transcription(db, transcription_id):
        raise NotFound("Transcription not found")
    return {"message": "Transcription deleted successfully"}
