"""MeetingSearchService -- merges direct field matches with tag matches.

A search hit is either a direct match (the query is a case-insensitive
substring of the title, doctor name, rep name, transcript or drugs
discussed) or a tag-only match (some tag contains the query but none of the
meeting's own fields do). Results are deduplicated by meeting id: direct
matches come first, newest first, followed by tag-only matches in the order
their ids were first seen.

Every step degrades independently. A failed tag lookup means no tag-only
matches; a failed direct lookup means no direct matches. Neither aborts the
search.

Empty or very short queries are not special-cased here; the feed applies
the minimum query length before calling search().
"""

from __future__ import annotations

import structlog

from src.pharmameet.meetings.schemas import Meeting, MeetingWithTags
from src.pharmameet.meetings.service import MeetingService

logger = structlog.get_logger(__name__)


class MeetingSearchService:
    """Search across meeting fields and tags.

    Args:
        meeting_service: MeetingService used for repository access and the
            tag/audio bulk join.
    """

    def __init__(self, meeting_service: MeetingService) -> None:
        self._meetings = meeting_service

    async def search(self, query: str) -> list[MeetingWithTags]:
        """Find meetings matching ``query`` directly or through a tag."""
        repository = self._meetings.repository
        logger.info("search.started", query=query)

        # Step 1: direct matches on the meeting's own fields
        try:
            direct_matches = await repository.search_meetings(query)
        except Exception:
            logger.error("search.direct_lookup_failed", query=query, exc_info=True)
            direct_matches = []

        # Step 2: meeting ids reachable through a matching tag
        try:
            tag_matches = await repository.search_tags(query)
        except Exception:
            logger.error("search.tag_lookup_failed", query=query, exc_info=True)
            tag_matches = []
        tag_match_ids = list(dict.fromkeys(t.meeting_id for t in tag_matches))

        # Step 3: fetch tag-only matches not already found directly
        direct_ids = {m.id for m in direct_matches}
        missing_ids = [mid for mid in tag_match_ids if mid not in direct_ids]
        additional: list[Meeting] = []
        if missing_ids:
            try:
                fetched = await repository.get_meetings_by_ids(missing_ids)
            except Exception:
                logger.error(
                    "search.tag_only_fetch_failed",
                    query=query,
                    missing_count=len(missing_ids),
                    exc_info=True,
                )
                fetched = []
            by_id = {m.id: m for m in fetched}
            additional = [by_id[mid] for mid in missing_ids if mid in by_id]

        # Step 4: combine
        combined = [*direct_matches, *additional]

        logger.info(
            "search.completed",
            query=query,
            direct_matches=len(direct_matches),
            tag_matches=len(tag_match_ids),
            tag_only_matches=len(additional),
        )
        if not combined:
            return []

        # Step 5: resolve tags and audio for the whole set
        return await self._meetings.attach_tags_and_audio(combined)
