"""SaveMeetingPipeline -- multi-step persistence of a recorded meeting.

Steps, in order:
1. Validate transcript, doctor name and rep name (no writes on failure)
2. Generate the meeting id and timestamp
3. Choose key points: supplied (max 5) or extracted from the transcript
4. Insert the meeting row -- the only step whose failure is fatal
5. Insert tag rows (best effort)
6. Decode or fetch audio, upload it, and insert the audio reference (best effort)

Steps 5 and 6 report a StepOutcome instead of raising, so a caller can
tell "meeting saved, tags missing" apart from a full save. Secondary
failures are logged and counted (a step with nothing to write is skipped
without counting); the meeting id is returned either way.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import httpx
import structlog

from src.pharmameet.core.monitoring import meetings_saved_total, save_steps_skipped_total
from src.pharmameet.meetings.audio import (
    AudioDecodeError,
    AudioFetchError,
    load_audio_bytes,
    parse_audio_payload,
)
from src.pharmameet.meetings.key_points import SAVE_KEY_POINT_LIMIT, extract_key_points
from src.pharmameet.meetings.repository import MeetingRepository
from src.pharmameet.meetings.schemas import (
    Meeting,
    MeetingMetadata,
    SaveResult,
    StepOutcome,
)
from src.pharmameet.services.storage import BlobStorage, BlobStorageError

logger = structlog.get_logger(__name__)

DEFAULT_TITLE = "Untitled Meeting"
AUDIO_FILE_EXTENSION = "webm"


class MeetingValidationError(ValueError):
    """Raised when required save inputs are missing."""


class MeetingPersistenceError(Exception):
    """Raised when the meeting row itself cannot be stored."""


def _step_failed(step: str, reason: str) -> StepOutcome:
    """Skipped outcome for a step that had data but could not write it."""
    save_steps_skipped_total.labels(step=step).inc()
    return StepOutcome.skipped(step, reason)


class SaveMeetingPipeline:
    """Persists a meeting with its tags and audio.

    Args:
        repository: MeetingRepository for row inserts.
        storage: Blob store for audio uploads.
        http_client: Optional httpx client used to fetch remote audio.
    """

    def __init__(
        self,
        repository: MeetingRepository,
        storage: BlobStorage,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._repository = repository
        self._storage = storage
        self._http_client = http_client

    async def save_meeting(
        self,
        transcript: str | None,
        metadata: MeetingMetadata | None,
        audio_payload: str | None = None,
    ) -> SaveResult:
        """Run the save pipeline.

        Args:
            transcript: Full transcript text.
            metadata: Doctor/rep names, drugs, and optional analyzer output.
            audio_payload: Data URL or remote URL of the recording.

        Returns:
            SaveResult with the new meeting id and the tag/audio outcomes.

        Raises:
            MeetingValidationError: transcript, doctor name or rep name missing.
            MeetingPersistenceError: the meeting row insert failed.
        """
        if not transcript or metadata is None or not metadata.doctor_name or not metadata.rep_name:
            raise MeetingValidationError(
                "Missing required fields: transcript, doctorName, and repName are required."
            )

        meeting_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)

        if metadata.key_points:
            key_points = list(metadata.key_points[:SAVE_KEY_POINT_LIMIT])
        else:
            key_points = extract_key_points(transcript, limit=SAVE_KEY_POINT_LIMIT)

        meeting = Meeting(
            id=meeting_id,
            doctor_name=metadata.doctor_name,
            rep_name=metadata.rep_name,
            drugs_discussed=metadata.drugs_discussed,
            title=metadata.generated_title or DEFAULT_TITLE,
            transcript=transcript,
            key_points=key_points,
            created_at=now,
            updated_at=now,
        )
        try:
            await self._repository.create_meeting(meeting)
        except Exception as exc:
            logger.error("save.meeting_insert_failed", meeting_id=meeting_id, exc_info=True)
            raise MeetingPersistenceError(f"Failed to store meeting data: {exc}") from exc
        meetings_saved_total.inc()

        tags_outcome = await self._save_tags(meeting_id, metadata.generated_tags or [], now)
        audio_outcome = await self._save_audio(meeting_id, audio_payload, now)

        logger.info(
            "save.meeting_saved",
            meeting_id=meeting_id,
            key_points=len(key_points),
            tags=tags_outcome.status.value,
            audio=audio_outcome.status.value,
        )
        return SaveResult(meeting_id=meeting_id, tags=tags_outcome, audio=audio_outcome)

    async def _save_tags(
        self, meeting_id: str, tags: list[str], now: datetime
    ) -> StepOutcome:
        if not tags:
            return StepOutcome.skipped("tags", "no tags supplied")
        try:
            await self._repository.add_tags(meeting_id, tags, now)
        except Exception as exc:
            logger.error("save.tags_insert_failed", meeting_id=meeting_id, error=str(exc))
            return _step_failed("tags", f"tag insert failed: {exc}")
        return StepOutcome.committed("tags")

    async def _save_audio(
        self, meeting_id: str, raw_payload: str | None, now: datetime
    ) -> StepOutcome:
        if not raw_payload:
            return StepOutcome.skipped("audio", "no audio supplied")

        try:
            payload = parse_audio_payload(raw_payload)
            data, content_type = await load_audio_bytes(payload, self._http_client)
        except AudioDecodeError as exc:
            logger.warning("save.audio_decode_failed", meeting_id=meeting_id, error=str(exc))
            return _step_failed("audio", f"audio decode failed: {exc}")
        except AudioFetchError as exc:
            logger.warning("save.audio_fetch_failed", meeting_id=meeting_id, error=str(exc))
            return _step_failed("audio", str(exc))

        file_name = f"{meeting_id}.{AUDIO_FILE_EXTENSION}"
        try:
            await self._storage.upload(file_name, data, content_type, upsert=True)
        except BlobStorageError as exc:
            logger.error("save.audio_upload_failed", meeting_id=meeting_id, error=str(exc))
            return _step_failed("audio", f"audio upload failed: {exc}")

        audio_url = self._storage.public_url(file_name)
        if not audio_url:
            return _step_failed("audio", "no public URL for uploaded audio")

        try:
            await self._repository.add_audio(meeting_id, audio_url, now)
        except Exception as exc:
            logger.error("save.audio_reference_insert_failed", meeting_id=meeting_id, error=str(exc))
            return _step_failed("audio", f"audio reference insert failed: {exc}")
        return StepOutcome.committed("audio")
