"""POST /save-meeting -- persist a recorded meeting with its tags and audio.

The meeting row is the only required write. Tag and audio failures are
reported per step in the response while the request still succeeds.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from src.pharmameet.meetings.pipeline import MeetingPersistenceError, MeetingValidationError
from src.pharmameet.meetings.schemas import SaveMeetingRequest

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["meetings"])


def _get_save_pipeline(request: Request) -> Any:
    """Retrieve SaveMeetingPipeline from app.state, 503 if not available."""
    pipeline = getattr(request.app.state, "save_pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Save pipeline not initialized",
        )
    return pipeline


@router.post("/save-meeting")
async def save_meeting(body: SaveMeetingRequest, request: Request):
    """Save a meeting; returns its id plus the tag and audio step outcomes."""
    pipeline = _get_save_pipeline(request)

    try:
        result = await pipeline.save_meeting(body.transcript, body.metadata, body.audio_url)
    except MeetingValidationError as exc:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})
    except MeetingPersistenceError as exc:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": f"Failed to save meeting: {exc}"},
        )

    return {
        "message": "Meeting saved successfully",
        "meetingId": result.meeting_id,
        "steps": {
            "tags": result.tags.model_dump(mode="json"),
            "audio": result.audio.model_dump(mode="json"),
        },
    }
