# audioscribe/schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from audioscribe.db.models import TranscriptionStatus


class CamelModel(BaseModel):
    """Serializes snake_case fields as camelCase for the frontend."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class SegmentRead(CamelModel):
    id: str
    transcription_id: str
    speaker: Optional[str] = None
    text: str
    start_time: float
    end_time: float
    confidence: Optional[float] = None


class TranscriptionRead(CamelModel):
    id: str
    file_name: str
    original_name: str
    file_size: int
    mime_type: str
    provider: Optional[str] = None
    status: TranscriptionStatus
    language: Optional[str] = None
    text: Optional[str] = None
    summary: Optional[str] = None
    error_detail: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    segments: List[SegmentRead] = []

    @classmethod
    def preview(cls, transcription, first_segment=None) -> "TranscriptionRead":
        """Transcription with only its earliest segment attached, without loading the rest."""
        fields = {name: getattr(transcription, name) for name in cls.model_fields if name != "segments"}
        segments = [SegmentRead.model_validate(first_segment)] if first_segment is not None else []
        return cls(**fields, segments=segments)


# API Request Models
class AskRequest(CamelModel):
    transcription_id: Optional[str] = None
    question: Optional[str] = None


class AskResponse(CamelModel):
    answer: str
