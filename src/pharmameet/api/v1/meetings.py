"""REST endpoints for browsing meetings.

Provides the list, search, feed and detail views backing the home page.
Read paths never fail on store errors: MeetingService and
MeetingSearchService log and degrade to empty results, so these endpoints
answer 200 with whatever could be loaded. Only a missing meeting on the
detail route is a 404.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field

from src.pharmameet.config import get_settings
from src.pharmameet.meetings.feed import build_feed
from src.pharmameet.meetings.schemas import (
    DateRange,
    FeedFilters,
    MeetingSummary,
    MeetingWithTags,
    SortOrder,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/meetings", tags=["meetings"])


# ── Response Schemas ─────────────────────────────────────────────────────────


class SummaryResponse(BaseModel):
    """Feed card, serialized with the camelCase keys the UI reads."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    drug_name: str = Field(alias="drugName")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")
    presenter: str
    doctor_name: str = Field(alias="doctorName")
    key_points: list[str] = Field(default_factory=list, alias="keyPoints")
    relevant_patients: int | None = Field(None, alias="relevantPatients")
    tags: list[str] = Field(default_factory=list)
    audio_url: str | None = Field(None, alias="audioUrl")


# ── Helpers ──────────────────────────────────────────────────────────────────


def _get_meeting_service(request: Request) -> Any:
    """Retrieve MeetingService from app.state, 503 if not available."""
    service = getattr(request.app.state, "meeting_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Meeting service not initialized",
        )
    return service


def _get_search_service(request: Request) -> Any:
    """Retrieve MeetingSearchService from app.state, 503 if not available."""
    service = getattr(request.app.state, "search_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Search service not initialized",
        )
    return service


def _as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with stored timestamps."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _summary_to_response(s: MeetingSummary) -> SummaryResponse:
    """Convert MeetingSummary to SummaryResponse."""
    return SummaryResponse(
        id=s.id,
        title=s.title,
        drug_name=s.drug_name,
        created_at=s.created_at.isoformat(),
        updated_at=s.updated_at.isoformat(),
        presenter=s.presenter,
        doctor_name=s.doctor_name,
        key_points=s.key_points,
        relevant_patients=s.relevant_patients,
        tags=s.tags,
        audio_url=s.audio_url,
    )


def _split_tags(raw: list[str] | None) -> list[str]:
    """Accept both repeated ``tags=`` params and comma-separated values."""
    if not raw:
        return []
    return [t.strip() for value in raw for t in value.split(",") if t.strip()]


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=list[MeetingWithTags])
async def list_meetings(request: Request) -> list[MeetingWithTags]:
    """All meetings, newest first, with tags and audio URL."""
    service = _get_meeting_service(request)
    return await service.fetch_all()


@router.get("/search", response_model=list[MeetingWithTags])
async def search_meetings(
    request: Request,
    q: str = Query(default="", description="Substring to match in fields or tags"),
) -> list[MeetingWithTags]:
    """Direct field matches first, then meetings reachable through a tag.

    The query is passed through unchanged; an empty query matches every
    meeting. The feed applies the minimum query length, this endpoint does not.
    """
    search = _get_search_service(request)
    return await search.search(q)


@router.get("/feed", response_model=list[SummaryResponse])
async def get_feed(
    request: Request,
    q: str = Query(default="", description="Search text"),
    tags: list[str] | None = Query(default=None, description="Tag filter (any match)"),
    start: datetime | None = Query(default=None, description="Range start (ISO format)"),
    end: datetime | None = Query(default=None, description="Range end (ISO format)"),
    sort: SortOrder = Query(default=SortOrder.NEWEST, description="Sort order"),
) -> list[SummaryResponse]:
    """Feed cards for the home page, filtered and sorted.

    Queries of at least SEARCH_MIN_QUERY_LENGTH characters use the search
    service; shorter ones filter the full list locally.
    """
    service = _get_meeting_service(request)
    search = _get_search_service(request)

    if (start is None) != (end is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start and end must be supplied together",
        )
    date_range = (
        DateRange(start=_as_utc(start), end=_as_utc(end))
        if start is not None and end is not None
        else None
    )
    filters = FeedFilters(tags=_split_tags(tags), date_range=date_range)

    feed = await build_feed(
        service,
        search,
        q,
        filters,
        sort,
        min_query_length=get_settings().SEARCH_MIN_QUERY_LENGTH,
    )
    return [_summary_to_response(s) for s in feed]


@router.get("/{meeting_id}", response_model=MeetingWithTags)
async def get_meeting(meeting_id: str, request: Request) -> MeetingWithTags:
    """Single meeting with tags and audio URL."""
    service = _get_meeting_service(request)
    meeting = await service.fetch_by_id(meeting_id)
    if meeting is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Meeting {meeting_id} not found",
        )
    return meeting
