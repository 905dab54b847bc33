# audioscribe/db/models.py
import enum
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, Integer, String, Float, ForeignKey, Text, DateTime, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship, DeclarativeBase

from audioscribe.core.errors import InvalidStatusTransition


def generate_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    # Columns are naive DateTime holding UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    id: Any


class TranscriptionStatus(str, enum.Enum):
    """Lifecycle of a transcription record."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# PENDING is never produced by the upload pipeline; it is kept for records
# created directly and may only move forward from there.
ALLOWED_TRANSITIONS = {
    TranscriptionStatus.PENDING: {TranscriptionStatus.PROCESSING, TranscriptionStatus.FAILED},
    TranscriptionStatus.PROCESSING: {TranscriptionStatus.COMPLETED, TranscriptionStatus.FAILED},
    TranscriptionStatus.COMPLETED: set(),
    TranscriptionStatus.FAILED: set(),
}


class Transcription(Base):
    __tablename__ = "transcriptions"

    id = Column(String(36), primary_key=True, default=generate_id)
    file_name = Column(String(512), nullable=False)  # <uuid>-<original name>
    original_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(100), nullable=False)
    provider = Column(String(50), nullable=True)
    status = Column(SQLEnum(TranscriptionStatus), nullable=False, default=TranscriptionStatus.PROCESSING, index=True)
    language = Column(String(20), nullable=True)
    text = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    error_detail = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    segments = relationship(
        "TranscriptionSegment",
        back_populates="transcription",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TranscriptionSegment.start_time",
    )

    def transition_to(self, status: TranscriptionStatus) -> None:
        """Move to ``status``, refusing transitions the lifecycle does not allow."""
        current = TranscriptionStatus(self.status) if self.status else None
        if current is not None and status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransition(
                f"Transcription {self.id} cannot move from {current.value} to {status.value}"
            )
        self.status = status

    def __repr__(self):
        return f"<Transcription(id={self.id}, original_name={self.original_name}, status={self.status})>"


class TranscriptionSegment(Base):
    __tablename__ = "transcription_segments"
    __table_args__ = (
        CheckConstraint("end_time >= start_time", name="ck_segment_time_order"),
        CheckConstraint(
            "confidence IS NULL OR (confidence >= 0 AND confidence <= 1)",
            name="ck_segment_confidence_range",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    transcription_id = Column(
        String(36), ForeignKey("transcriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    speaker = Column(String(100), nullable=True)
    text = Column(Text, nullable=False)
    start_time = Column(Float, nullable=False, index=True)
    end_time = Column(Float, nullable=False)
    confidence = Column(Float, nullable=True)

    transcription = relationship("Transcription", back_populates="segments")

    def __repr__(self):
        return f"<TranscriptionSegment(id={self.id}, start_time={self.start_time}, speaker={self.speaker})>"
