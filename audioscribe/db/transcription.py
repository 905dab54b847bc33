# audioscribe/db/transcription.py
"""Persistence operations for transcriptions and their segments."""

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from audioscribe.core.errors import PersistenceFailure
from audioscribe.db.models import Transcription, TranscriptionSegment, TranscriptionStatus
from audioscribe.services.normalizer import Segment

logger = logging.getLogger(__name__)


def _rollback(db: Session, action: str, e: Exception) -> PersistenceFailure:
    logger.error(f"Database error while {action}: {e}", exc_info=True)
    try:
        db.rollback()
    except SQLAlchemyError as rb_exc:
        logger.error(f"Rollback failed after error while {action}: {rb_exc}", exc_info=True)
    return PersistenceFailure(f"Database error while {action}")


def create_transcription(
    db: Session,
    *,
    file_name: str,
    original_name: str,
    file_size: int,
    mime_type: str,
    provider: Optional[str] = None,
) -> Transcription:
    """Insert a new record in PROCESSING state with no text or segments."""
    transcription = Transcription(
        file_name=file_name,
        original_name=original_name,
        file_size=file_size,
        mime_type=mime_type,
        provider=provider,
        status=TranscriptionStatus.PROCESSING,
    )
    try:
        db.add(transcription)
        db.commit()
        db.refresh(transcription)
    except SQLAlchemyError as e:
        raise _rollback(db, "creating transcription", e) from e
    logger.info(f"Created Transcription record ID: {transcription.id}, Status: {transcription.status.value}")
    return transcription


def add_segments(db: Session, transcription_id: str, segments: Sequence[Segment]) -> int:
    """Bulk insert normalized segments for a transcription. Returns the number stored."""
    rows = [
        TranscriptionSegment(
            transcription_id=transcription_id,
            speaker=seg.speaker,
            text=seg.text,
            start_time=seg.start,
            end_time=seg.end,
            confidence=seg.confidence,
        )
        for seg in segments
    ]
    try:
        if rows:
            db.add_all(rows)
        db.commit()
    except SQLAlchemyError as e:
        raise _rollback(db, f"saving segments for transcription {transcription_id}", e) from e
    logger.info(f"Saved {len(rows)} segments for transcription ID: {transcription_id}")
    return len(rows)


def mark_completed(
    db: Session,
    transcription: Transcription,
    *,
    text: str,
    summary: Optional[str] = None,
    language: Optional[str] = None,
) -> Transcription:
    transcription.transition_to(TranscriptionStatus.COMPLETED)
    transcription.text = text
    transcription.summary = summary
    transcription.language = language
    try:
        db.commit()
        db.refresh(transcription)
    except SQLAlchemyError as e:
        raise _rollback(db, f"completing transcription {transcription.id}", e) from e
    logger.info(f"Transcription ID {transcription.id} status updated to: COMPLETED")
    return transcription


def mark_failed(db: Session, transcription_id: str, error_detail: str) -> bool:
    """
    Mark a transcription FAILED and record why.

    Returns True if the update was stored, False otherwise. Never raises, since it
    runs while another error is already being handled.
    """
    try:
        transcription = db.get(Transcription, transcription_id)
        if not transcription:
            logger.warning(f"Attempted to mark non-existent transcription ID as failed: {transcription_id}")
            return False
        transcription.transition_to(TranscriptionStatus.FAILED)
        transcription.error_detail = error_detail
        db.commit()
        logger.info(f"Transcription ID {transcription_id} status updated to: FAILED")
        return True
    except Exception as e:
        logger.error(f"Failed to mark transcription {transcription_id} as failed: {e}", exc_info=True)
        try:
            db.rollback()
        except SQLAlchemyError as rb_exc:
            logger.error(f"Rollback failed for transcription {transcription_id}: {rb_exc}", exc_info=True)
        return False


def get_transcription(db: Session, transcription_id: str) -> Optional[Transcription]:
    """Fetch one transcription; its ``segments`` load ordered by start time."""
    try:
        return db.get(Transcription, transcription_id)
    except SQLAlchemyError as e:
        raise _rollback(db, f"fetching transcription {transcription_id}", e) from e


def get_segments(db: Session, transcription_id: str) -> List[TranscriptionSegment]:
    try:
        result = db.execute(
            select(TranscriptionSegment)
            .where(TranscriptionSegment.transcription_id == transcription_id)
            .order_by(TranscriptionSegment.start_time)
        )
        return list(result.scalars().all())
    except SQLAlchemyError as e:
        raise _rollback(db, f"fetching segments for transcription {transcription_id}", e) from e


def list_transcriptions(db: Session) -> List[Tuple[Transcription, Optional[TranscriptionSegment]]]:
    """All transcriptions newest first, each paired with its earliest segment (or None)."""
    ranked = select(
        TranscriptionSegment,
        func.row_number()
        .over(partition_by=TranscriptionSegment.transcription_id, order_by=TranscriptionSegment.start_time)
        .label("position"),
    ).subquery()
    preview = aliased(TranscriptionSegment, ranked)

    stmt = (
        select(Transcription, preview)
        .outerjoin(preview, and_(preview.transcription_id == Transcription.id, ranked.c.position == 1))
        .order_by(Transcription.created_at.desc())
    )
    try:
        return [(row[0], row[1]) for row in db.execute(stmt).all()]
    except SQLAlchemyError as e:
        raise _rollback(db, "listing transcriptions", e) from e


def delete_transcription(db: Session, transcription_id: str) -> bool:
    """Delete a transcription; cascades remove its segments."""
    try:
        transcription = db.get(Transcription, transcription_id)
        if not transcription:
            return False
        db.delete(transcription)
        db.commit()
    except SQLAlchemyError as e:
        raise _rollback(db, f"deleting transcription {transcription_id}", e) from e
    logger.info(f"Deleted transcription {transcription_id}")
    return True
