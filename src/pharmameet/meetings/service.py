"""MeetingService -- read paths that join meetings with their tags and audio.

Wraps MeetingRepository with the degrade-to-empty error policy of the list
and detail views: store errors are logged and absorbed, never raised.

Tags and audio for a batch of meetings are loaded with one query each (run
concurrently) and matched to meetings in memory, avoiding a round trip per
meeting.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from src.pharmameet.meetings.repository import MeetingRepository
from src.pharmameet.meetings.schemas import (
    Meeting,
    MeetingAudio,
    MeetingTag,
    MeetingWithTags,
)

logger = structlog.get_logger(__name__)


def join_tags_and_audio(
    meetings: Sequence[Meeting],
    tags: Sequence[MeetingTag],
    audio: Sequence[MeetingAudio],
) -> list[MeetingWithTags]:
    """Attach tag names and the first audio URL to each meeting, keeping order."""
    joined: list[MeetingWithTags] = []
    for meeting in meetings:
        meeting_tags = [t.tag_name for t in tags if t.meeting_id == meeting.id]
        audio_record = next((a for a in audio if a.meeting_id == meeting.id), None)
        joined.append(
            MeetingWithTags(
                **meeting.model_dump(),
                tags=meeting_tags,
                audio_url=audio_record.audio_url if audio_record else None,
            )
        )
    return joined


class MeetingService:
    """Error-absorbing read access to meetings with tags and audio.

    Args:
        repository: MeetingRepository (or a compatible test double).
    """

    def __init__(self, repository: MeetingRepository) -> None:
        self._repository = repository

    @property
    def repository(self) -> MeetingRepository:
        return self._repository

    async def fetch_all(self) -> list[MeetingWithTags]:
        """All meetings newest first, joined with tags and audio.

        Returns an empty list if the meetings query fails.
        """
        try:
            meetings = await self._repository.list_meetings()
        except Exception:
            logger.error("meetings.fetch_all_failed", exc_info=True)
            return []

        if not meetings:
            return []
        return await self.attach_tags_and_audio(meetings)

    async def fetch_by_id(self, meeting_id: str) -> MeetingWithTags | None:
        """A single meeting joined with its tags and audio, or None.

        A lookup error is logged and reported the same as not found.
        """
        try:
            meeting = await self._repository.get_meeting(meeting_id)
        except Exception:
            logger.error("meetings.fetch_by_id_failed", meeting_id=meeting_id, exc_info=True)
            return None

        if meeting is None:
            return None
        joined = await self.attach_tags_and_audio([meeting])
        return joined[0]

    async def attach_tags_and_audio(
        self, meetings: Sequence[Meeting]
    ) -> list[MeetingWithTags]:
        """Bulk-load tags and audio for the meetings and join them in memory.

        A failure of either bulk lookup is logged and that side is treated
        as empty; the meetings themselves are always returned.
        """
        meeting_ids = [m.id for m in meetings]
        tags_result, audio_result = await asyncio.gather(
            self._repository.get_tags_for_meetings(meeting_ids),
            self._repository.get_audio_for_meetings(meeting_ids),
            return_exceptions=True,
        )

        tags: list[MeetingTag] = []
        if isinstance(tags_result, BaseException):
            logger.error(
                "meetings.tags_fetch_failed",
                meeting_count=len(meeting_ids),
                error=str(tags_result),
            )
        else:
            tags = tags_result

        audio: list[MeetingAudio] = []
        if isinstance(audio_result, BaseException):
            logger.error(
                "meetings.audio_fetch_failed",
                meeting_count=len(meeting_ids),
                error=str(audio_result),
            )
        else:
            audio = audio_result

        return join_tags_and_audio(meetings, tags, audio)
