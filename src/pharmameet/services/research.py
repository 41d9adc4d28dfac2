"""Clinical trial links for meeting tags.

ClinicalTrialsClient looks up the most recently updated study for a tag in
the clinicaltrials.gov v2 studies API and returns a ResearchPaper with the
study's brief title and public page URL. Lookups never raise: any HTTP,
decoding, or shape problem yields None for that tag.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog
from pydantic import BaseModel

from src.pharmameet.config import Settings, get_settings

logger = structlog.get_logger(__name__)

STUDY_URL_TEMPLATE = "https://clinicaltrials.gov/study/{nct_id}"
DEFAULT_STUDY_TITLE = "Clinical Trial"


class ResearchPaper(BaseModel):
    """A linked clinical trial."""

    title: str
    url: str


def _as_dict(value: object) -> dict:
    return value if isinstance(value, dict) else {}


def _parse_first_study(data: object) -> ResearchPaper | None:
    """ResearchPaper for the first study in a search body, None on any shape mismatch."""
    studies = _as_dict(data).get("studies")
    if not isinstance(studies, list) or not studies:
        return None
    protocol = _as_dict(_as_dict(studies[0]).get("protocolSection"))
    identification = _as_dict(protocol.get("identificationModule"))

    nct_id = identification.get("nctId")
    if not isinstance(nct_id, str) or not nct_id:
        return None
    title = identification.get("briefTitle")
    return ResearchPaper(
        title=title if isinstance(title, str) and title else DEFAULT_STUDY_TITLE,
        url=STUDY_URL_TEMPLATE.format(nct_id=nct_id),
    )


class ClinicalTrialsClient:
    """Async client for the clinicaltrials.gov studies search.

    Args:
        settings: Application settings (API URL, timeout).
        transport: Optional httpx transport.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.RESEARCH_TIMEOUT,
            transport=self._transport,
        )

    async def fetch_research_paper(self, tag: str) -> ResearchPaper | None:
        """Most recently updated trial for a condition tag, or None."""
        params = {
            "query.cond": tag,
            "sort": "LastUpdatePostDate:desc",
            "countTotal": "true",
            "pageSize": "1",
        }
        try:
            async with self._client() as client:
                response = await client.get(self._settings.CLINICAL_TRIALS_API_URL, params=params)
            if not response.is_success:
                logger.warning(
                    "research.lookup_rejected",
                    tag=tag,
                    status_code=response.status_code,
                )
                return None
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("research.lookup_failed", tag=tag, error=str(exc))
            return None

        paper = _parse_first_study(data)
        if paper is None:
            logger.info("research.no_study", tag=tag)
        return paper

    async def fetch_research_papers(self, tags: list[str]) -> dict[str, ResearchPaper | None]:
        """Look up each unique tag concurrently."""
        unique_tags = list(dict.fromkeys(tags))
        if not unique_tags:
            return {}
        results = await asyncio.gather(
            *(self.fetch_research_paper(t) for t in unique_tags),
            return_exceptions=True,
        )
        papers: list[ResearchPaper | None] = []
        for tag, result in zip(unique_tags, results):
            if isinstance(result, BaseException):
                logger.error("research.lookup_crashed", tag=tag, error=str(result))
                papers.append(None)
            else:
                papers.append(result)
        found = sum(1 for p in papers if p is not None)
        logger.info("research.lookups_completed", tags=len(unique_tags), found=found)
        return dict(zip(unique_tags, papers))
