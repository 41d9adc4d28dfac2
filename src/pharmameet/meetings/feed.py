"""Feed assembly -- card conversion, filtering, and sorting of meeting lists.

apply_filters_and_sort() is a pure function over an already-fetched result
set and is recomputed from scratch on every search, filter, or sort change.

build_feed() reproduces the list view's data flow: queries at or above the
minimum length go to the search service, shorter ones load every meeting
and filter locally over the card fields.

Relevance ordering uses the relevant-patient count, which real meetings do
not carry; it is a weak proxy and leaves stored meetings in input order.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from src.pharmameet.meetings.key_points import CARD_KEY_POINT_LIMIT, extract_key_points
from src.pharmameet.meetings.schemas import (
    FeedFilters,
    MeetingSummary,
    MeetingWithTags,
    SortOrder,
)
from src.pharmameet.meetings.search import MeetingSearchService
from src.pharmameet.meetings.service import MeetingService

logger = structlog.get_logger(__name__)

DEFAULT_MIN_QUERY_LENGTH = 3
DRUG_NAME_FALLBACK = "Not specified"


def meeting_to_summary(meeting: MeetingWithTags) -> MeetingSummary:
    """Convert a joined meeting to its feed card.

    Stored key points win; otherwise up to four are extracted from the
    transcript.
    """
    if meeting.key_points:
        key_points = list(meeting.key_points)
    elif meeting.transcript:
        key_points = extract_key_points(meeting.transcript, limit=CARD_KEY_POINT_LIMIT)
    else:
        key_points = []

    return MeetingSummary(
        id=meeting.id,
        title=meeting.title,
        drug_name=meeting.drugs_discussed or DRUG_NAME_FALLBACK,
        created_at=meeting.created_at,
        updated_at=meeting.updated_at,
        presenter=meeting.rep_name,
        doctor_name=meeting.doctor_name,
        key_points=key_points,
        tags=list(meeting.tags),
        audio_url=meeting.audio_url,
    )


def matches_short_query(summary: MeetingSummary, query: str) -> bool:
    """Local substring match used for 1-2 character queries."""
    q = query.lower()
    return (
        q in summary.title.lower()
        or q in summary.drug_name.lower()
        or q in summary.doctor_name.lower()
        or any(q in point.lower() for point in summary.key_points)
        or any(q in tag.lower() for tag in summary.tags)
    )


def apply_filters_and_sort(
    items: Sequence[MeetingSummary],
    filters: FeedFilters,
    sort_order: SortOrder,
) -> list[MeetingSummary]:
    """Filter by date range and tags, then sort.

    Args:
        items: Full result set to display.
        filters: Inclusive date range and OR-ed tag list; empty tags keep all.
        sort_order: newest / oldest by created_at, or relevance by
            relevant_patients descending (missing counts as 0).

    Returns:
        A new list; the input is not modified.
    """
    result = list(items)

    if filters.date_range is not None:
        start, end = filters.date_range.start, filters.date_range.end
        result = [s for s in result if start <= s.created_at <= end]

    if filters.tags:
        wanted = set(filters.tags)
        result = [s for s in result if wanted.intersection(s.tags)]

    if sort_order == SortOrder.NEWEST:
        result.sort(key=lambda s: s.created_at, reverse=True)
    elif sort_order == SortOrder.OLDEST:
        result.sort(key=lambda s: s.created_at)
    else:
        result.sort(key=lambda s: s.relevant_patients or 0, reverse=True)

    return result


async def build_feed(
    meeting_service: MeetingService,
    search_service: MeetingSearchService,
    query: str,
    filters: FeedFilters,
    sort_order: SortOrder,
    min_query_length: int = DEFAULT_MIN_QUERY_LENGTH,
) -> list[MeetingSummary]:
    """Produce the displayed feed for a query, filters and sort order."""
    if query and len(query) >= min_query_length:
        meetings = await search_service.search(query)
        summaries = [meeting_to_summary(m) for m in meetings]
    else:
        meetings = await meeting_service.fetch_all()
        summaries = [meeting_to_summary(m) for m in meetings]
        if query:
            summaries = [s for s in summaries if matches_short_query(s, query)]

    feed = apply_filters_and_sort(summaries, filters, sort_order)
    logger.info(
        "feed.built",
        query=query,
        fetched=len(meetings),
        displayed=len(feed),
        sort_order=sort_order.value,
    )
    return feed
