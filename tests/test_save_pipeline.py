"""Tests for SaveMeetingPipeline: validation, fatal insert, best-effort tags and audio."""

from __future__ import annotations

import base64

import httpx
import pytest
from prometheus_client import REGISTRY

from src.pharmameet.meetings.pipeline import (
    MeetingPersistenceError,
    MeetingValidationError,
    SaveMeetingPipeline,
)
from src.pharmameet.meetings.schemas import MeetingMetadata, StepStatus

TRANSCRIPT = "Dr. Lee asked about dosing. The rep explained the once daily schedule in detail today."
AUDIO_BYTES = b"\x1aE\xdf\xa3fake-webm"
DATA_URL = "data:audio/webm;codecs=opus;base64," + base64.b64encode(AUDIO_BYTES).decode()


def _metadata(**overrides) -> MeetingMetadata:
    fields = {"doctorName": "Dr. Lee", "repName": "Sam Rivera", "drugsDiscussed": "Jardiance"}
    fields.update(overrides)
    return MeetingMetadata(**fields)


@pytest.fixture
def pipeline(repo, storage) -> SaveMeetingPipeline:
    return SaveMeetingPipeline(repository=repo, storage=storage)


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "transcript, metadata",
        [
            ("", _metadata()),
            (None, _metadata()),
            (TRANSCRIPT, None),
            (TRANSCRIPT, _metadata(doctorName="")),
            (TRANSCRIPT, _metadata(repName=None)),
        ],
    )
    async def test_missing_required_fields(self, repo, pipeline, transcript, metadata):
        with pytest.raises(MeetingValidationError, match="Missing required fields"):
            await pipeline.save_meeting(transcript, metadata)

        assert repo.meetings == {}
        assert repo.calls == []


class TestSaveMeeting:
    @pytest.mark.asyncio
    async def test_save_then_fetch_with_fallback_key_points(self, repo, pipeline, meeting_service):
        result = await pipeline.save_meeting(TRANSCRIPT, _metadata())

        saved = await meeting_service.fetch_by_id(result.meeting_id)
        assert saved is not None
        assert saved.transcript == TRANSCRIPT
        assert saved.title == "Untitled Meeting"
        assert 1 <= len(saved.key_points) <= 2
        for point in saved.key_points:
            assert len(point) >= 20
            assert "um" not in point and "uh" not in point

    @pytest.mark.asyncio
    async def test_supplied_key_points_are_capped_at_five(self, pipeline, meeting_service):
        supplied = [f"Point {n}" for n in range(7)]

        result = await pipeline.save_meeting(
            TRANSCRIPT, _metadata(keyPoints=supplied, generatedTitle="Dosing review")
        )

        saved = await meeting_service.fetch_by_id(result.meeting_id)
        assert saved.key_points == supplied[:5]
        assert saved.title == "Dosing review"

    @pytest.mark.asyncio
    async def test_tags_committed(self, pipeline, meeting_service):
        result = await pipeline.save_meeting(
            TRANSCRIPT, _metadata(generatedTags=["diabetes", "SGLT2"])
        )

        assert result.tags.status == StepStatus.COMMITTED
        saved = await meeting_service.fetch_by_id(result.meeting_id)
        assert saved.tags == ["diabetes", "SGLT2"]

    @pytest.mark.asyncio
    async def test_no_tags_and_no_audio_are_skipped(self, pipeline):
        result = await pipeline.save_meeting(TRANSCRIPT, _metadata())

        assert result.tags.status == StepStatus.SKIPPED
        assert result.tags.reason == "no tags supplied"
        assert result.audio.status == StepStatus.SKIPPED
        assert not result.fully_committed

    @pytest.mark.asyncio
    async def test_tag_insert_failure_still_saves_meeting(self, repo, pipeline, meeting_service):
        repo.fail_on.add("add_tags")

        result = await pipeline.save_meeting(TRANSCRIPT, _metadata(generatedTags=["diabetes"]))

        assert result.tags.status == StepStatus.SKIPPED
        assert "tag insert failed" in result.tags.reason
        saved = await meeting_service.fetch_by_id(result.meeting_id)
        assert saved is not None
        assert saved.tags == []

    @pytest.mark.asyncio
    async def test_meeting_insert_failure_is_fatal(self, repo, pipeline):
        repo.fail_on.add("create_meeting")

        with pytest.raises(MeetingPersistenceError):
            await pipeline.save_meeting(TRANSCRIPT, _metadata(generatedTags=["diabetes"]))

        assert "add_tags" not in repo.calls


class TestAudioStep:
    @pytest.mark.asyncio
    async def test_inline_audio_uploaded_and_referenced(self, repo, storage, pipeline, meeting_service):
        result = await pipeline.save_meeting(
            TRANSCRIPT, _metadata(generatedTags=["diabetes"]), DATA_URL
        )

        assert result.fully_committed
        name = f"{result.meeting_id}.webm"
        assert storage.objects[name] == (AUDIO_BYTES, "audio/webm")
        saved = await meeting_service.fetch_by_id(result.meeting_id)
        assert saved.audio_url == f"{storage.base_url}/{name}"

    @pytest.mark.asyncio
    async def test_remote_audio_fetched(self, repo, storage):
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == "https://cdn.test/recording.mp4"
            return httpx.Response(200, content=b"mp4-bytes", headers={"content-type": "audio/mp4"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            pipeline = SaveMeetingPipeline(repository=repo, storage=storage, http_client=client)
            result = await pipeline.save_meeting(
                TRANSCRIPT, _metadata(), "https://cdn.test/recording.mp4"
            )

        assert result.audio.status == StepStatus.COMMITTED
        assert storage.objects[f"{result.meeting_id}.webm"] == (b"mp4-bytes", "audio/mp4")

    @pytest.mark.asyncio
    async def test_remote_fetch_error_skips_audio(self, repo, storage, meeting_service):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            pipeline = SaveMeetingPipeline(repository=repo, storage=storage, http_client=client)
            result = await pipeline.save_meeting(TRANSCRIPT, _metadata(), "https://cdn.test/gone")

        assert result.audio.status == StepStatus.SKIPPED
        assert "404" in result.audio.reason
        assert await meeting_service.fetch_by_id(result.meeting_id) is not None
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_undecodable_data_url_skips_audio(self, repo, pipeline):
        result = await pipeline.save_meeting(TRANSCRIPT, _metadata(), "data:audio/webm;base64")

        assert result.audio.status == StepStatus.SKIPPED
        assert "decode" in result.audio.reason
        assert result.meeting_id in repo.meetings

    @pytest.mark.asyncio
    async def test_upload_failure_skips_audio(self, repo, storage, pipeline):
        storage.fail_uploads = True

        result = await pipeline.save_meeting(TRANSCRIPT, _metadata(), DATA_URL)

        assert result.audio.status == StepStatus.SKIPPED
        assert "upload failed" in result.audio.reason
        assert repo.audio == []

    @pytest.mark.asyncio
    async def test_audio_reference_failure_skips_audio(self, repo, storage, pipeline):
        repo.fail_on.add("add_audio")

        result = await pipeline.save_meeting(TRANSCRIPT, _metadata(), DATA_URL)

        assert result.audio.status == StepStatus.SKIPPED
        assert result.meeting_id in repo.meetings

    @pytest.mark.asyncio
    @pytest.mark.parametrize("audio_url", ["http://[::1", "https://cdn.test/a\x00b"])
    async def test_malformed_remote_url_skips_audio(self, repo, storage, audio_url):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"unreachable")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            pipeline = SaveMeetingPipeline(repository=repo, storage=storage, http_client=client)
            result = await pipeline.save_meeting(TRANSCRIPT, _metadata(), audio_url)

        assert result.audio.status == StepStatus.SKIPPED
        assert result.audio.reason.startswith("Failed to fetch audio file")
        assert result.meeting_id in repo.meetings
        assert storage.objects == {}


def _skipped_count(step: str) -> float:
    return REGISTRY.get_sample_value("save_steps_skipped_total", {"step": step}) or 0.0


class TestSkippedStepMetric:
    @pytest.mark.asyncio
    async def test_steps_with_nothing_to_write_are_not_counted(self, pipeline):
        tags_before, audio_before = _skipped_count("tags"), _skipped_count("audio")

        await pipeline.save_meeting(TRANSCRIPT, _metadata())

        assert _skipped_count("tags") == tags_before
        assert _skipped_count("audio") == audio_before

    @pytest.mark.asyncio
    async def test_failed_steps_are_counted(self, repo, storage, pipeline):
        repo.fail_on.add("add_tags")
        storage.fail_uploads = True
        tags_before, audio_before = _skipped_count("tags"), _skipped_count("audio")

        await pipeline.save_meeting(TRANSCRIPT, _metadata(generatedTags=["diabetes"]), DATA_URL)

        assert _skipped_count("tags") == tags_before + 1
        assert _skipped_count("audio") == audio_before + 1
