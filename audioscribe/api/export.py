# audioscribe/api/export.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from audioscribe.api.deps import get_db
from audioscribe.core.errors import BadRequest, NotFound
from audioscribe.db import transcription as crud
from audioscribe.services.export import export_transcription, parse_format

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/export")
async def export(id: Optional[str] = None, format: Optional[str] = None, db: Session = Depends(get_db)):
    """Downloads a transcription as plain text or PDF."""
    if not id or not format:
        raise BadRequest("Missing id or format parameter")
    export_format = parse_format(format)

    transcription = crud.get_transcription(db, id)
    if not transcription:
        raise NotFound("Transcription not found")

    content, media_type, filename = export_transcription(transcription, export_format)
    logger.info(f"Exported transcription {id} as {export_format.value} ({len(content)} bytes)")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
