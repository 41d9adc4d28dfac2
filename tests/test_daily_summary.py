"""Tests for the daily summary cache and DailySummaryService."""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.pharmameet.meetings.daily_summary import (
    CACHE_TTL_SECONDS,
    DailySummaryCacheEntry,
    DailySummaryService,
    InMemoryKeyValueStore,
    RedisKeyValueStore,
    cache_key,
    combine_transcripts,
)
from src.pharmameet.meetings.schemas import MeetingWithTags
from src.pharmameet.meetings.summary_audio import SummaryAudio
from src.pharmameet.services.speech import UpstreamServiceError

DAY = date(2026, 3, 2)


def _at(hour: int, day: int = 2) -> datetime:
    return datetime(2026, 3, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def generator() -> MagicMock:
    gen = MagicMock()
    gen.generate = AsyncMock(
        return_value=SummaryAudio(audio_url="https://a/summary-2026-03-02.mp3", summary_text="Summary")
    )
    return gen


@pytest.fixture
def service(meeting_service, generator, store) -> DailySummaryService:
    return DailySummaryService(meeting_service=meeting_service, generator=generator, store=store)


class TestCacheEntry:
    def test_valid_when_all_ids_covered(self):
        entry = DailySummaryCacheEntry(
            date="2026-03-02", audio_url="u", summary_text="s", covered_meeting_ids=["a", "b"]
        )
        assert entry.is_valid_for(["a"])
        assert entry.is_valid_for(["b", "a"])
        assert not entry.is_valid_for(["a", "c"])


class TestCombineTranscripts:
    def test_format(self, meeting_factory):
        meetings = [
            MeetingWithTags(**meeting_factory(doctor_name="Dr. Lee", drugs_discussed="Jardiance", transcript="One.").model_dump()),
            MeetingWithTags(**meeting_factory(doctor_name="Dr. Wu", drugs_discussed="Aimovig", transcript="Two.").model_dump()),
        ]
        assert combine_transcripts(meetings) == (
            "Meeting with Dr. Lee about Jardiance: One.\n\nMeeting with Dr. Wu about Aimovig: Two."
        )


class TestDailySummaryService:
    @pytest.mark.asyncio
    async def test_no_meetings_today(self, repo, service, generator, meeting_factory):
        repo.seed(meeting_factory(created_at=_at(10, day=1)))

        assert await service.get_or_generate(DAY) is None
        generator.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_generates_and_caches(self, repo, service, generator, store, meeting_factory):
        first = repo.seed(meeting_factory(created_at=_at(9)))
        second = repo.seed(meeting_factory(created_at=_at(15)))
        repo.seed(meeting_factory(created_at=_at(23, day=1)))

        entry = await service.get_or_generate(DAY)

        assert entry.audio_url == "https://a/summary-2026-03-02.mp3"
        assert set(entry.covered_meeting_ids) == {first.id, second.id}
        generator.generate.assert_awaited_once()
        combined = generator.generate.call_args.args[0]
        assert combined.count("Meeting with ") == 2
        assert await store.get(cache_key(DAY)) is not None

    @pytest.mark.asyncio
    async def test_cache_hit_skips_generation(self, repo, service, generator, meeting_factory):
        repo.seed(meeting_factory(created_at=_at(9)))

        await service.get_or_generate(DAY)
        await service.get_or_generate(DAY)

        assert generator.generate.await_count == 1

    @pytest.mark.asyncio
    async def test_new_meeting_invalidates_cache(self, repo, service, generator, meeting_factory):
        repo.seed(meeting_factory(created_at=_at(9)))
        await service.get_or_generate(DAY)

        late = repo.seed(meeting_factory(created_at=_at(17)))
        entry = await service.get_or_generate(DAY)

        assert generator.generate.await_count == 2
        assert late.id in entry.covered_meeting_ids

    @pytest.mark.asyncio
    async def test_corrupt_cache_entry_regenerates(self, repo, service, generator, store, meeting_factory):
        repo.seed(meeting_factory(created_at=_at(9)))
        await store.set(cache_key(DAY), "not json")

        entry = await service.get_or_generate(DAY)

        assert entry is not None
        generator.generate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_generation_failure_propagates(self, repo, service, generator, store, meeting_factory):
        repo.seed(meeting_factory(created_at=_at(9)))
        generator.generate.side_effect = UpstreamServiceError(500, "Failed to generate summary audio: down")

        with pytest.raises(UpstreamServiceError):
            await service.get_or_generate(DAY)

        assert await store.get(cache_key(DAY)) is None


class TestRedisKeyValueStore:
    @pytest.mark.asyncio
    async def test_delegates_with_ttl(self):
        redis = MagicMock()
        redis.get = AsyncMock(return_value='{"x": 1}')
        redis.set = AsyncMock()
        store = RedisKeyValueStore(redis)

        await store.set("daily_summary:2026-03-02", "value", ttl_seconds=CACHE_TTL_SECONDS)
        value = await store.get("daily_summary:2026-03-02")

        redis.set.assert_awaited_once_with("daily_summary:2026-03-02", "value", ex=CACHE_TTL_SECONDS)
        assert value == '{"x": 1}'
