"""Shared test doubles and fixtures for the meetings service.

Provides:
- InMemoryMeetingRepository: MeetingRepository stand-in with per-method
  failure injection (``repo.fail_on.add("add_tags")``)
- InMemoryBlobStorage: BlobStorage stand-in recording uploads
- make_meeting(): builds Meeting rows with sensible defaults
- Fixtures wiring MeetingService and MeetingSearchService on top of them
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

import pytest

from src.pharmameet.meetings.schemas import Meeting, MeetingAudio, MeetingTag
from src.pharmameet.meetings.search import MeetingSearchService
from src.pharmameet.meetings.service import MeetingService
from src.pharmameet.services.storage import BlobStorageError

BASE_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def make_meeting(
    title: str = "Cardiology follow-up",
    transcript: str = "We reviewed the latest outcomes data for the new statin.",
    doctor_name: str = "Dr. Patel",
    rep_name: str = "Jordan Smith",
    drugs_discussed: str | None = "Atorvastatin",
    key_points: list[str] | None = None,
    created_at: datetime | None = None,
    meeting_id: str | None = None,
) -> Meeting:
    created = created_at or BASE_TIME
    return Meeting(
        id=meeting_id or str(uuid.uuid4()),
        doctor_name=doctor_name,
        rep_name=rep_name,
        drugs_discussed=drugs_discussed,
        title=title,
        transcript=transcript,
        key_points=key_points,
        created_at=created,
        updated_at=created,
    )


# ── In-Memory Test Doubles ───────────────────────────────────────────────────


class InMemoryMeetingRepository:
    """In-memory MeetingRepository for testing without database.

    Methods named in ``fail_on`` raise RuntimeError, simulating a store
    failure for that query only.
    """

    def __init__(self) -> None:
        self.meetings: dict[str, Meeting] = {}
        self.tags: list[MeetingTag] = []
        self.audio: list[MeetingAudio] = []
        self.fail_on: set[str] = set()
        self.calls: list[str] = []

    def _check(self, method: str) -> None:
        self.calls.append(method)
        if method in self.fail_on:
            raise RuntimeError(f"{method} failed")

    def _newest_first(self, meetings: Sequence[Meeting]) -> list[Meeting]:
        return sorted(meetings, key=lambda m: m.created_at, reverse=True)

    async def list_meetings(self) -> list[Meeting]:
        self._check("list_meetings")
        return self._newest_first(list(self.meetings.values()))

    async def get_meeting(self, meeting_id: str) -> Meeting | None:
        self._check("get_meeting")
        return self.meetings.get(meeting_id)

    async def get_meetings_by_ids(self, meeting_ids: Sequence[str]) -> list[Meeting]:
        self._check("get_meetings_by_ids")
        return [self.meetings[mid] for mid in meeting_ids if mid in self.meetings]

    async def search_meetings(self, query: str) -> list[Meeting]:
        self._check("search_meetings")
        q = query.lower()
        hits = [
            m
            for m in self.meetings.values()
            if q in m.title.lower()
            or q in m.doctor_name.lower()
            or q in m.rep_name.lower()
            or q in m.transcript.lower()
            or q in (m.drugs_discussed or "").lower()
        ]
        return self._newest_first(hits)

    async def create_meeting(self, meeting: Meeting) -> Meeting:
        self._check("create_meeting")
        self.meetings[meeting.id] = meeting
        return meeting

    async def search_tags(self, query: str) -> list[MeetingTag]:
        self._check("search_tags")
        return [t for t in self.tags if query.lower() in t.tag_name.lower()]

    async def get_tags_for_meetings(self, meeting_ids: Sequence[str]) -> list[MeetingTag]:
        self._check("get_tags_for_meetings")
        return [t for t in self.tags if t.meeting_id in meeting_ids]

    async def add_tags(
        self, meeting_id: str, tag_names: Sequence[str], created_at: datetime
    ) -> list[MeetingTag]:
        self._check("add_tags")
        rows = [
            MeetingTag(
                id=str(uuid.uuid4()),
                meeting_id=meeting_id,
                tag_name=name,
                created_at=created_at,
            )
            for name in tag_names
        ]
        self.tags.extend(rows)
        return rows

    async def get_audio_for_meetings(self, meeting_ids: Sequence[str]) -> list[MeetingAudio]:
        self._check("get_audio_for_meetings")
        return [a for a in self.audio if a.meeting_id in meeting_ids]

    async def add_audio(
        self, meeting_id: str, audio_url: str, created_at: datetime
    ) -> MeetingAudio:
        self._check("add_audio")
        row = MeetingAudio(
            id=str(uuid.uuid4()),
            meeting_id=meeting_id,
            audio_url=audio_url,
            created_at=created_at,
        )
        self.audio.append(row)
        return row

    # ── Seeding helpers (synchronous, bypass failure injection) ──────────

    def seed(self, meeting: Meeting, tags: Sequence[str] = (), audio_url: str | None = None) -> Meeting:
        self.meetings[meeting.id] = meeting
        for name in tags:
            self.tags.append(
                MeetingTag(
                    id=str(uuid.uuid4()),
                    meeting_id=meeting.id,
                    tag_name=name,
                    created_at=meeting.created_at,
                )
            )
        if audio_url:
            self.audio.append(
                MeetingAudio(
                    id=str(uuid.uuid4()),
                    meeting_id=meeting.id,
                    audio_url=audio_url,
                    created_at=meeting.created_at,
                )
            )
        return meeting


class InMemoryBlobStorage:
    """BlobStorage double that keeps uploads in a dict."""

    def __init__(self, base_url: str = "https://files.test/audio-transcripts") -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.base_url = base_url
        self.fail_uploads = False

    async def upload(
        self, name: str, data: bytes, content_type: str, upsert: bool = True
    ) -> None:
        if self.fail_uploads:
            raise BlobStorageError("bucket unavailable")
        if name in self.objects and not upsert:
            raise BlobStorageError(f"Object already exists: {name}")
        self.objects[name] = (data, content_type)

    def public_url(self, name: str) -> str:
        return f"{self.base_url}/{name}"


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def repo() -> InMemoryMeetingRepository:
    return InMemoryMeetingRepository()


@pytest.fixture
def storage() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()


@pytest.fixture
def meeting_service(repo) -> MeetingService:
    return MeetingService(repository=repo)


@pytest.fixture
def search_service(meeting_service) -> MeetingSearchService:
    return MeetingSearchService(meeting_service=meeting_service)


@pytest.fixture
def hours():
    """Offset helper: hours(n) -> BASE_TIME + n hours."""
    return lambda n: BASE_TIME + timedelta(hours=n)


@pytest.fixture
def meeting_factory():
    """make_meeting() as a fixture, for tests building their own rows."""
    return make_meeting
