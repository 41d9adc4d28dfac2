"""AI-backed endpoints used by the recording and home pages.

- POST /analyze-transcript: title, tags and key points for a transcript
- POST /generate-summary-audio: spoken summary of arbitrary transcript text
- GET  /daily-summary: spoken summary of today's meetings, cached per day
- POST /transcribe: one-shot transcription of an uploaded recording
- GET  /realtime-token: ephemeral credential for the realtime voice agent

These endpoints answer errors with ``{"error": message}`` bodies, the shape
the browser client reads.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, File, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.pharmameet.meetings.analysis import AnalysisParseError
from src.pharmameet.services.speech import UpstreamServiceError

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["ai"])


# ── Request Schemas ──────────────────────────────────────────────────────────


class TranscriptRequest(BaseModel):
    """Body carrying a transcript; missing text is answered with 400."""

    transcript: str | None = None


# ── Helpers ──────────────────────────────────────────────────────────────────


def _get_state(request: Request, name: str, label: str) -> Any:
    """Retrieve a collaborator from app.state, 503 if not available."""
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return value


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/analyze-transcript")
async def analyze_transcript(body: TranscriptRequest, request: Request):
    """Generate a title, 5-10 tags and key points for a transcript."""
    analyzer = _get_state(request, "transcript_analyzer", "Transcript analyzer")
    if not body.transcript:
        return _error("No transcript provided", status.HTTP_400_BAD_REQUEST)

    try:
        analysis = await analyzer.analyze(body.transcript)
    except AnalysisParseError:
        return _error("Failed to parse analysis results", status.HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception as exc:
        logger.error("api.analyze_transcript_failed", error=str(exc))
        return _error(
            f"Failed to analyze transcript: {exc}", status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return {
        "title": analysis.title,
        "tags": analysis.tags,
        "keyPoints": analysis.key_points,
    }


@router.post("/generate-summary-audio")
async def generate_summary_audio(body: TranscriptRequest, request: Request):
    """Summarize a transcript and return the spoken summary's URL."""
    generator = _get_state(request, "summary_audio_generator", "Summary audio generator")
    if not body.transcript:
        return _error("No transcript provided", status.HTTP_400_BAD_REQUEST)

    try:
        summary = await generator.generate(body.transcript)
    except UpstreamServiceError as exc:
        return _error(exc.message, exc.status_code)

    return {"audioUrl": summary.audio_url, "summaryText": summary.summary_text}


@router.get("/daily-summary")
async def get_daily_summary(request: Request):
    """Spoken summary of today's meetings; regenerated when new ones arrive."""
    service = _get_state(request, "daily_summary_service", "Daily summary service")

    try:
        entry = await service.get_or_generate()
    except UpstreamServiceError as exc:
        return _error(exc.message, exc.status_code)

    if entry is None:
        return {"date": None, "audioUrl": None, "summaryText": None, "meetingCount": 0}
    return {
        "date": entry.date,
        "audioUrl": entry.audio_url,
        "summaryText": entry.summary_text,
        "meetingCount": len(entry.covered_meeting_ids),
    }


@router.post("/transcribe")
async def transcribe(request: Request, file: UploadFile | None = File(default=None)):
    """Transcribe an uploaded recording (multipart field ``file``)."""
    speech = _get_state(request, "speech_service", "Speech service")
    if file is None or not file.filename:
        return _error("No valid audio file provided", status.HTTP_400_BAD_REQUEST)

    data = await file.read()
    try:
        return await speech.transcribe(
            file.filename, data, file.content_type or "application/octet-stream"
        )
    except UpstreamServiceError as exc:
        return _error(exc.message, exc.status_code)


@router.get("/realtime-token")
async def realtime_token(request: Request):
    """Ephemeral session credential for the realtime voice agent."""
    speech = _get_state(request, "speech_service", "Speech service")
    try:
        return await speech.create_realtime_session()
    except UpstreamServiceError as exc:
        return _error(exc.message, exc.status_code)
