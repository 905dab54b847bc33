# audioscribe/db/__init__.py
from .models import Base, Transcription, TranscriptionSegment, TranscriptionStatus

__all__ = [
    "Base",
    "Transcription",
    "TranscriptionSegment",
    "TranscriptionStatus",
]
