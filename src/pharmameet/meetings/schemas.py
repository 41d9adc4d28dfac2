"""Pydantic v2 schemas for the meetings domain.

Defines the data contracts for stored meetings, tags and audio references,
the joined MeetingWithTags view, save requests and per-step outcomes, and
the feed card/filter types used by the list views.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ────────────────────────────────────────────────────────────────────


class SortOrder(str, Enum):
    """Display ordering for the meeting feed."""

    NEWEST = "newest"
    OLDEST = "oldest"
    RELEVANCE = "relevance"


class StepStatus(str, Enum):
    """Result of a best-effort save step."""

    COMMITTED = "committed"
    SKIPPED = "skipped"


# ── Stored Entities ──────────────────────────────────────────────────────────


class Meeting(BaseModel):
    """One recorded rep/doctor conversation and its metadata."""

    id: str
    doctor_name: str
    rep_name: str
    drugs_discussed: str | None = None
    title: str
    transcript: str
    key_points: list[str] | None = None
    created_at: datetime
    updated_at: datetime


class MeetingTag(BaseModel):
    """A searchable label attached to a meeting."""

    id: str
    meeting_id: str
    tag_name: str
    created_at: datetime


class MeetingAudio(BaseModel):
    """Pointer to a stored recording for a meeting."""

    id: str
    meeting_id: str
    audio_url: str
    created_at: datetime


class MeetingWithTags(Meeting):
    """A meeting joined in memory with its tag strings and audio URL."""

    tags: list[str] = Field(default_factory=list)
    audio_url: str | None = None


# ── Save Request / Result ────────────────────────────────────────────────────


class MeetingMetadata(BaseModel):
    """Caller-supplied metadata for a recorded meeting.

    Field names follow the camelCase JSON used by the recording UI.
    Everything is optional here; required fields are checked by the save
    pipeline so a missing value becomes a validation error, not a 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    doctor_name: str | None = Field(None, alias="doctorName")
    rep_name: str | None = Field(None, alias="repName")
    drugs_discussed: str | None = Field(None, alias="drugsDiscussed")
    generated_title: str | None = Field(None, alias="generatedTitle")
    generated_tags: list[str] | None = Field(None, alias="generatedTags")
    key_points: list[str] | None = Field(None, alias="keyPoints")


class SaveMeetingRequest(BaseModel):
    """Request body for POST /save-meeting."""

    model_config = ConfigDict(populate_by_name=True)

    transcript: str | None = None
    metadata: MeetingMetadata | None = None
    audio_url: str | None = Field(None, alias="audioUrl")


class StepOutcome(BaseModel):
    """Outcome of one secondary save step (tags or audio)."""

    step: str
    status: StepStatus
    reason: str | None = None

    @classmethod
    def committed(cls, step: str) -> StepOutcome:
        return cls(step=step, status=StepStatus.COMMITTED)

    @classmethod
    def skipped(cls, step: str, reason: str) -> StepOutcome:
        return cls(step=step, status=StepStatus.SKIPPED, reason=reason)


class SaveResult(BaseModel):
    """Aggregate result of the save pipeline.

    The meeting row is always committed when a SaveResult exists; tags and
    audio report whether their best-effort writes went through.
    """

    meeting_id: str
    tags: StepOutcome
    audio: StepOutcome

    @property
    def fully_committed(self) -> bool:
        return (
            self.tags.status == StepStatus.COMMITTED
            and self.audio.status == StepStatus.COMMITTED
        )


# ── Feed Models ──────────────────────────────────────────────────────────────


class DateRange(BaseModel):
    """Inclusive creation-time window."""

    start: datetime
    end: datetime


class FeedFilters(BaseModel):
    """Filters applied to the fetched result set before display."""

    tags: list[str] = Field(default_factory=list)
    date_range: DateRange | None = None


class MeetingSummary(BaseModel):
    """Card view of a meeting as rendered in the feed."""

    id: str
    title: str
    drug_name: str
    created_at: datetime
    updated_at: datetime
    presenter: str
    doctor_name: str
    key_points: list[str] = Field(default_factory=list)
    relevant_patients: int | None = None
    tags: list[str] = Field(default_factory=list)
    audio_url: str | None = None
