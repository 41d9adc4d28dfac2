"""TranscriptAnalyzer -- title, tag and key point extraction from transcripts.

Uses the instructor + litellm pattern for structured LLM output. The model
returns a title, 5-10 search tags, and a handful of key points; missing
values fall back to "Untitled Meeting" and empty lists. A single attempt is
made: output that cannot be parsed into TranscriptAnalysis raises
AnalysisParseError rather than being retried.
"""

from __future__ import annotations

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from src.pharmameet.config import Settings, get_settings

logger = structlog.get_logger(__name__)

DEFAULT_TITLE = "Untitled Meeting"

ANALYSIS_SYSTEM_PROMPT = """\
You are an AI assistant that analyzes medical sales representative \
conversations with doctors.
Extract the following information from the transcript:
1. A concise, professional title for this meeting (max 10 words)
2. 5-10 relevant tags that would be useful for searching this conversation later
3. Up to 5 key points: the drugs discussed, clinical data, and any follow-ups
"""


class AnalysisParseError(Exception):
    """Raised when the model output cannot be parsed into an analysis."""


class TranscriptAnalysis(BaseModel):
    """Structured analysis of a meeting transcript."""

    title: str = Field(DEFAULT_TITLE, description="Concise meeting title, max 10 words")
    tags: list[str] = Field(default_factory=list, description="Search tags for the meeting")
    key_points: list[str] = Field(
        default_factory=list, description="Key points from the conversation"
    )

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, value: object) -> object:
        return value or DEFAULT_TITLE

    @field_validator("tags", "key_points", mode="before")
    @classmethod
    def _default_list(cls, value: object) -> object:
        return value if isinstance(value, list) else []


class TranscriptAnalyzer:
    """Generates a title, tags and key points for a transcript.

    Args:
        settings: Application settings (model id, timeout, API key).
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    async def analyze(self, transcript: str) -> TranscriptAnalysis:
        """Analyze a transcript.

        Raises:
            AnalysisParseError: The model output did not match the schema.
        """
        try:
            analysis = await self._extract(transcript)
        except AnalysisParseError:
            logger.error("analysis.parse_failed", transcript_length=len(transcript))
            raise
        except ValidationError as exc:
            logger.error("analysis.parse_failed", transcript_length=len(transcript))
            raise AnalysisParseError("Failed to parse analysis results") from exc

        logger.info(
            "analysis.completed",
            title=analysis.title,
            tags=len(analysis.tags),
            key_points=len(analysis.key_points),
        )
        return analysis

    async def _extract(self, transcript: str) -> TranscriptAnalysis:
        """Single structured extraction call via instructor.from_litellm."""
        import instructor
        import litellm
        from instructor.exceptions import InstructorRetryException

        client = instructor.from_litellm(litellm.acompletion)

        try:
            return await client.chat.completions.create(
                model=self._settings.ANALYSIS_MODEL,
                response_model=TranscriptAnalysis,
                messages=[
                    {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                    {"role": "user", "content": transcript},
                ],
                max_retries=1,
                timeout=self._settings.LLM_TIMEOUT,
                api_key=self._settings.OPENAI_API_KEY or None,
            )
        except InstructorRetryException as exc:
            raise AnalysisParseError("Failed to parse analysis results") from exc
