"""GET /research -- clinical trial links for a set of tags."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request, status

from src.pharmameet.services.research import ResearchPaper

router = APIRouter(tags=["research"])


def _get_research_client(request: Request) -> Any:
    """Retrieve ClinicalTrialsClient from app.state, 503 if not available."""
    client = getattr(request.app.state, "research_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Research client not initialized",
        )
    return client


@router.get("/research", response_model=dict[str, ResearchPaper | None])
async def get_research(
    request: Request,
    tags: list[str] | None = Query(default=None, description="Tags to look up"),
) -> dict[str, ResearchPaper | None]:
    """Most recently updated trial per unique tag; null where none was found."""
    client = _get_research_client(request)
    names = [t.strip() for value in tags or [] for t in value.split(",") if t.strip()]
    return await client.fetch_research_papers(names)
