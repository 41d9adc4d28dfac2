"""DailySummaryService -- one spoken summary per day, regenerated as meetings arrive.

The day's meetings (UTC date of created_at) are combined into a single text,
one paragraph per meeting:

    Meeting with {doctor_name} about {drugs_discussed}: {transcript}

and turned into summary audio by SummaryAudioGenerator. The result is cached
in a KeyValueStore under the ISO date. A cached entry is only served while it
covers every meeting recorded that day; a new meeting invalidates it and the
next request regenerates the summary.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Protocol

import structlog
from pydantic import BaseModel, Field, ValidationError

from src.pharmameet.meetings.schemas import MeetingWithTags
from src.pharmameet.meetings.service import MeetingService
from src.pharmameet.meetings.summary_audio import SummaryAudioGenerator

logger = structlog.get_logger(__name__)

CACHE_KEY_PREFIX = "daily_summary"
CACHE_TTL_SECONDS = 2 * 24 * 60 * 60


# ── Key-Value Store ──────────────────────────────────────────────────────────


class KeyValueStore(Protocol):
    """String key-value store used for cached summaries."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store; entries never expire."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self._data[key] = value


class RedisKeyValueStore:
    """Store backed by a redis.asyncio client with decode_responses=True."""

    def __init__(self, redis) -> None:
        self._redis = redis

    async def get(self, key: str) -> str | None:
        return await self._redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        await self._redis.set(key, value, ex=ttl_seconds)


# ── Cache Entry ──────────────────────────────────────────────────────────────


class DailySummaryCacheEntry(BaseModel):
    """Generated summary for one day and the meetings it covers."""

    date: str
    audio_url: str
    summary_text: str
    covered_meeting_ids: list[str] = Field(default_factory=list)

    def is_valid_for(self, meeting_ids: list[str]) -> bool:
        """True when every given meeting id was included in this summary."""
        return set(meeting_ids).issubset(self.covered_meeting_ids)


def _utc_date(moment: datetime) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date()


def combine_transcripts(meetings: list[MeetingWithTags]) -> str:
    return "\n\n".join(
        f"Meeting with {m.doctor_name} about {m.drugs_discussed}: {m.transcript}"
        for m in meetings
    )


def cache_key(day: date) -> str:
    return f"{CACHE_KEY_PREFIX}:{day.isoformat()}"


# ── Service ──────────────────────────────────────────────────────────────────


class DailySummaryService:
    """Serves the spoken summary of the current day's meetings.

    Args:
        meeting_service: Source of meetings (fetch_all).
        generator: SummaryAudioGenerator for new summaries.
        store: KeyValueStore holding cached entries.
    """

    def __init__(
        self,
        meeting_service: MeetingService,
        generator: SummaryAudioGenerator,
        store: KeyValueStore,
    ) -> None:
        self._meetings = meeting_service
        self._generator = generator
        self._store = store

    async def get_or_generate(self, day: date | None = None) -> DailySummaryCacheEntry | None:
        """Return the summary for ``day`` (UTC today by default).

        Returns None when no meetings were recorded that day. Generation
        failures propagate as UpstreamServiceError.
        """
        day = day or datetime.now(timezone.utc).date()
        meetings = [m for m in await self._meetings.fetch_all() if _utc_date(m.created_at) == day]
        if not meetings:
            logger.info("daily_summary.no_meetings", date=day.isoformat())
            return None

        meeting_ids = [m.id for m in meetings]
        cached = await self._load(day)
        if cached is not None and cached.is_valid_for(meeting_ids):
            logger.info("daily_summary.cache_hit", date=day.isoformat(), meetings=len(meeting_ids))
            return cached

        summary = await self._generator.generate(combine_transcripts(meetings), day=day)
        entry = DailySummaryCacheEntry(
            date=day.isoformat(),
            audio_url=summary.audio_url,
            summary_text=summary.summary_text,
            covered_meeting_ids=meeting_ids,
        )
        await self._save(day, entry)
        logger.info("daily_summary.generated", date=day.isoformat(), meetings=len(meeting_ids))
        return entry

    async def _load(self, day: date) -> DailySummaryCacheEntry | None:
        try:
            raw = await self._store.get(cache_key(day))
        except Exception:
            logger.warning("daily_summary.cache_read_failed", date=day.isoformat(), exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return DailySummaryCacheEntry.model_validate_json(raw)
        except ValidationError:
            logger.warning("daily_summary.cache_entry_invalid", date=day.isoformat())
            return None

    async def _save(self, day: date, entry: DailySummaryCacheEntry) -> None:
        try:
            await self._store.set(cache_key(day), entry.model_dump_json(), ttl_seconds=CACHE_TTL_SECONDS)
        except Exception:
            logger.warning("daily_summary.cache_write_failed", date=day.isoformat(), exc_info=True)
