"""Meeting repository -- async queries against meetings, meeting_tags and meeting_audio.

Provides MeetingRepository with the session_factory callable pattern.
Every method issues a single query and raises on store failure; error
absorption and logging belong to MeetingService and the search/save
services built on top of it.

Substring matching uses ILIKE with LIKE wildcards in the query escaped, so
"%" and "_" typed by a user match literally.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Sequence
from datetime import datetime

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.pharmameet.meetings.models import (
    MeetingAudioModel,
    MeetingModel,
    MeetingTagModel,
)
from src.pharmameet.meetings.schemas import Meeting, MeetingAudio, MeetingTag

logger = structlog.get_logger(__name__)

_LIKE_ESCAPE = "\\"


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_meeting(model: MeetingModel) -> Meeting:
    """Convert MeetingModel to Meeting schema."""
    return Meeting(
        id=model.id,
        doctor_name=model.doctor_name,
        rep_name=model.rep_name,
        drugs_discussed=model.drugs_discussed,
        title=model.title,
        transcript=model.transcript,
        key_points=list(model.key_points) if model.key_points is not None else None,
        created_at=model.created_at,
        updated_at=model.updated_at or model.created_at,
    )


def _model_to_tag(model: MeetingTagModel) -> MeetingTag:
    return MeetingTag(
        id=model.id,
        meeting_id=model.meeting_id,
        tag_name=model.tag_name,
        created_at=model.created_at,
    )


def _model_to_audio(model: MeetingAudioModel) -> MeetingAudio:
    return MeetingAudio(
        id=model.id,
        meeting_id=model.meeting_id,
        audio_url=model.audio_url,
        created_at=model.created_at,
    )


def _like_pattern(query: str) -> str:
    """Build a case-insensitive substring pattern with wildcards escaped."""
    escaped = (
        query.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", f"{_LIKE_ESCAPE}%")
        .replace("_", f"{_LIKE_ESCAPE}_")
    )
    return f"%{escaped}%"


# ── Repository ──────────────────────────────────────────────────────────────


class MeetingRepository:
    """Async CRUD for meetings and their tag and audio rows.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Meetings ─────────────────────────────────────────────────────────

    async def list_meetings(self) -> list[Meeting]:
        """All meetings, newest created first."""
        async for session in self._session_factory():
            stmt = select(MeetingModel).order_by(MeetingModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_meeting(m) for m in result.scalars().all()]

    async def get_meeting(self, meeting_id: str) -> Meeting | None:
        """Get a meeting by ID.

        Returns:
            Meeting if found, None otherwise.
        """
        async for session in self._session_factory():
            stmt = select(MeetingModel).where(MeetingModel.id == meeting_id)
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_meeting(model)

    async def get_meetings_by_ids(self, meeting_ids: Sequence[str]) -> list[Meeting]:
        """Meetings whose id is in the given set, in no particular order."""
        if not meeting_ids:
            return []
        async for session in self._session_factory():
            stmt = select(MeetingModel).where(MeetingModel.id.in_(list(meeting_ids)))
            result = await session.execute(stmt)
            return [_model_to_meeting(m) for m in result.scalars().all()]

    async def search_meetings(self, query: str) -> list[Meeting]:
        """Direct matches: case-insensitive substring over the five text fields.

        Title, doctor name, rep name, transcript and drugs discussed are
        OR-ed together. Results are ordered newest created first.
        """
        pattern = _like_pattern(query)
        async for session in self._session_factory():
            stmt = (
                select(MeetingModel)
                .where(
                    or_(
                        MeetingModel.title.ilike(pattern, escape=_LIKE_ESCAPE),
                        MeetingModel.doctor_name.ilike(pattern, escape=_LIKE_ESCAPE),
                        MeetingModel.rep_name.ilike(pattern, escape=_LIKE_ESCAPE),
                        MeetingModel.transcript.ilike(pattern, escape=_LIKE_ESCAPE),
                        MeetingModel.drugs_discussed.ilike(pattern, escape=_LIKE_ESCAPE),
                    )
                )
                .order_by(MeetingModel.created_at.desc())
            )
            result = await session.execute(stmt)
            return [_model_to_meeting(m) for m in result.scalars().all()]

    async def create_meeting(self, meeting: Meeting) -> Meeting:
        """Insert a meeting row with caller-generated id and timestamps."""
        async for session in self._session_factory():
            model = MeetingModel(
                id=meeting.id,
                doctor_name=meeting.doctor_name,
                rep_name=meeting.rep_name,
                drugs_discussed=meeting.drugs_discussed,
                title=meeting.title,
                transcript=meeting.transcript,
                key_points=meeting.key_points,
                created_at=meeting.created_at,
                updated_at=meeting.updated_at,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_meeting(model)

    # ── Tags ─────────────────────────────────────────────────────────────

    async def search_tags(self, query: str) -> list[MeetingTag]:
        """Tag rows whose text contains the query, case-insensitively."""
        pattern = _like_pattern(query)
        async for session in self._session_factory():
            stmt = select(MeetingTagModel).where(
                MeetingTagModel.tag_name.ilike(pattern, escape=_LIKE_ESCAPE)
            )
            result = await session.execute(stmt)
            return [_model_to_tag(t) for t in result.scalars().all()]

    async def get_tags_for_meetings(self, meeting_ids: Sequence[str]) -> list[MeetingTag]:
        """All tag rows for the given meetings in one query."""
        if not meeting_ids:
            return []
        async for session in self._session_factory():
            stmt = (
                select(MeetingTagModel)
                .where(MeetingTagModel.meeting_id.in_(list(meeting_ids)))
                .order_by(MeetingTagModel.created_at)
            )
            result = await session.execute(stmt)
            return [_model_to_tag(t) for t in result.scalars().all()]

    async def add_tags(
        self, meeting_id: str, tag_names: Sequence[str], created_at: datetime
    ) -> list[MeetingTag]:
        """Insert one tag row per name in a single transaction."""
        async for session in self._session_factory():
            models = [
                MeetingTagModel(
                    meeting_id=meeting_id,
                    tag_name=name,
                    created_at=created_at,
                )
                for name in tag_names
            ]
            session.add_all(models)
            await session.commit()
            return [_model_to_tag(m) for m in models]

    # ── Audio ────────────────────────────────────────────────────────────

    async def get_audio_for_meetings(
        self, meeting_ids: Sequence[str]
    ) -> list[MeetingAudio]:
        """All audio rows for the given meetings in one query, oldest first."""
        if not meeting_ids:
            return []
        async for session in self._session_factory():
            stmt = (
                select(MeetingAudioModel)
                .where(MeetingAudioModel.meeting_id.in_(list(meeting_ids)))
                .order_by(MeetingAudioModel.created_at)
            )
            result = await session.execute(stmt)
            return [_model_to_audio(a) for a in result.scalars().all()]

    async def add_audio(
        self, meeting_id: str, audio_url: str, created_at: datetime
    ) -> MeetingAudio:
        """Insert an audio reference row."""
        async for session in self._session_factory():
            model = MeetingAudioModel(
                meeting_id=meeting_id,
                audio_url=audio_url,
                created_at=created_at,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info("meetings.audio_reference_stored", meeting_id=meeting_id)
            return _model_to_audio(model)
