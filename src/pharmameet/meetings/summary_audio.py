"""SummaryAudioGenerator -- spoken summary of a day's meeting transcripts.

Three sequential upstream steps, each fatal on failure:
1. LLM text summary of the combined transcripts (litellm.acompletion)
2. Text-to-speech of the summary (litellm.aspeech, tts-1 / alloy)
3. Upload of the MP3 as summary-YYYY-MM-DD.mp3, overwriting the same day's file

The public URL of the uploaded file and the summary text are returned
together.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import structlog
from pydantic import BaseModel

from src.pharmameet.config import Settings, get_settings
from src.pharmameet.services.speech import UpstreamServiceError
from src.pharmameet.services.storage import BlobStorage, BlobStorageError

logger = structlog.get_logger(__name__)

SUMMARY_CONTENT_TYPE = "audio/mpeg"

SUMMARY_SYSTEM_PROMPT = """\
You are an AI assistant that creates concise summaries of pharmaceutical \
sales representative meetings with doctors.
Create a 1-2 minute summary of the key points from today's meetings, focusing on:
1. The drugs/treatments discussed
2. Key benefits mentioned
3. Important clinical data points
4. Any action items or follow-ups

Make the summary professional, clear, and conversational as it will be \
converted to speech.
"""


class SummaryAudio(BaseModel):
    """A spoken summary and its text."""

    audio_url: str
    summary_text: str


def summary_file_name(day: date) -> str:
    return f"summary-{day.isoformat()}.mp3"


class SummaryAudioGenerator:
    """Generates and stores a spoken summary of meeting transcripts.

    Args:
        storage: Blob store for the MP3 upload.
        settings: Application settings (models, voice, API key).
    """

    def __init__(self, storage: BlobStorage, settings: Settings | None = None) -> None:
        self._storage = storage
        self._settings = settings or get_settings()

    async def generate(self, transcript: str, day: date | None = None) -> SummaryAudio:
        """Summarize, synthesize speech, and upload.

        Args:
            transcript: Text to summarize (one or several meetings).
            day: Date used in the file name; defaults to today (UTC).

        Raises:
            UpstreamServiceError: Any of the three steps failed.
        """
        day = day or datetime.now(timezone.utc).date()

        summary_text = await self._summarize(transcript)
        if not summary_text:
            raise UpstreamServiceError(
                500, "Failed to generate summary audio: Failed to generate summary text"
            )

        audio = await self._synthesize(summary_text)

        file_name = summary_file_name(day)
        try:
            await self._storage.upload(file_name, audio, SUMMARY_CONTENT_TYPE, upsert=True)
        except BlobStorageError as exc:
            logger.error("summary_audio.upload_failed", file_name=file_name, error=str(exc))
            raise UpstreamServiceError(
                500, f"Failed to generate summary audio: Failed to upload summary audio: {exc}"
            ) from exc

        audio_url = self._storage.public_url(file_name)
        logger.info(
            "summary_audio.generated",
            file_name=file_name,
            summary_chars=len(summary_text),
            audio_bytes=len(audio),
        )
        return SummaryAudio(audio_url=audio_url, summary_text=summary_text)

    async def _summarize(self, transcript: str) -> str:
        import litellm

        try:
            response = await litellm.acompletion(
                model=self._settings.SUMMARY_MODEL,
                messages=[
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": transcript},
                ],
                timeout=self._settings.LLM_TIMEOUT,
                api_key=self._settings.OPENAI_API_KEY or None,
            )
        except Exception as exc:
            logger.error("summary_audio.summary_failed", error=str(exc))
            raise UpstreamServiceError(500, f"Failed to generate summary audio: {exc}") from exc
        return (response.choices[0].message.content or "").strip()

    async def _synthesize(self, text: str) -> bytes:
        import litellm

        try:
            response = await litellm.aspeech(
                model=self._settings.TTS_MODEL,
                voice=self._settings.TTS_VOICE,
                input=text,
                api_key=self._settings.OPENAI_API_KEY or None,
            )
        except Exception as exc:
            logger.error("summary_audio.speech_failed", error=str(exc))
            raise UpstreamServiceError(500, f"Failed to generate summary audio: {exc}") from exc
        return response.content
