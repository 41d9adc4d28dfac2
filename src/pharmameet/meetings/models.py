"""Meeting persistence models.

Three SQLAlchemy models on the shared declarative Base:
- MeetingModel: One recorded rep/doctor conversation with transcript and key points
- MeetingTagModel: Searchable labels, many per meeting
- MeetingAudioModel: Public URL of the stored recording, normally one per meeting

Tags and audio rows reference meetings with ON DELETE CASCADE so they are
removed with their meeting. Identifiers are opaque strings (UUID4 text)
generated by the application, not the database.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.pharmameet.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class MeetingModel(Base):
    """A recorded pharmaceutical sales meeting.

    The transcript is written once at creation and never updated. Key points
    are stored as a JSON array of strings, either supplied by the analyzer or
    produced by the sentence-filter fallback at save time.
    """

    __tablename__ = "meetings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    doctor_name: Mapped[str] = mapped_column(String(300), nullable=False)
    rep_name: Mapped[str] = mapped_column(String(300), nullable=False)
    drugs_discussed: Mapped[str | None] = mapped_column(Text, nullable=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    transcript: Mapped[str] = mapped_column(Text, nullable=False)
    key_points: Mapped[list | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class MeetingTagModel(Base):
    """A tag attached to a meeting. Uniqueness is not enforced."""

    __tablename__ = "meeting_tags"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    meeting_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag_name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class MeetingAudioModel(Base):
    """Reference to a stored audio file for a meeting."""

    __tablename__ = "meeting_audio"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    meeting_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    audio_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
