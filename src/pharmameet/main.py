"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
lifespan events for database initialization and service wiring, the API
router under /api, and the static mount serving stored audio at /audio.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles

from src.pharmameet.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.pharmameet.api.v1 import health
from src.pharmameet.api.v1.router import router as v1_router
from src.pharmameet.config import CacheBackend, get_settings
from src.pharmameet.core.database import close_db, get_session, init_db
from src.pharmameet.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.pharmameet.core.redis import close_redis, get_redis_pool

REMOTE_AUDIO_TIMEOUT = 30.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB, Sentry and services; close on shutdown."""
    import structlog

    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # Shared client for fetching remote meeting audio
    app.state.http_client = httpx.AsyncClient(timeout=REMOTE_AUDIO_TIMEOUT)

    # ── Meetings: storage, reads, search, save ───────────────────────────
    # Each group fails independently; endpoints answer 503 for missing services.
    try:
        from src.pharmameet.meetings.pipeline import SaveMeetingPipeline
        from src.pharmameet.meetings.repository import MeetingRepository
        from src.pharmameet.meetings.search import MeetingSearchService
        from src.pharmameet.meetings.service import MeetingService
        from src.pharmameet.services.storage import FilesystemBlobStorage

        meeting_repo = MeetingRepository(session_factory=get_session)
        storage = FilesystemBlobStorage(
            root_dir=settings.AUDIO_STORAGE_DIR,
            bucket=settings.AUDIO_BUCKET,
            public_base_url=settings.AUDIO_PUBLIC_BASE_URL,
        )
        meeting_service = MeetingService(repository=meeting_repo)

        app.state.blob_storage = storage
        app.state.meeting_service = meeting_service
        app.state.search_service = MeetingSearchService(meeting_service=meeting_service)
        app.state.save_pipeline = SaveMeetingPipeline(
            repository=meeting_repo,
            storage=storage,
            http_client=app.state.http_client,
        )
        log.info("meetings.services_initialized", bucket=settings.AUDIO_BUCKET)
    except Exception:
        log.warning("meetings.services_init_failed", exc_info=True)
        app.state.blob_storage = None
        app.state.meeting_service = None
        app.state.search_service = None
        app.state.save_pipeline = None

    # ── AI: analysis, summary audio, daily summary ───────────────────────
    try:
        from src.pharmameet.meetings.analysis import TranscriptAnalyzer
        from src.pharmameet.meetings.daily_summary import (
            DailySummaryService,
            InMemoryKeyValueStore,
            RedisKeyValueStore,
        )
        from src.pharmameet.meetings.summary_audio import SummaryAudioGenerator

        app.state.transcript_analyzer = TranscriptAnalyzer(settings=settings)

        generator = None
        if app.state.blob_storage is not None:
            generator = SummaryAudioGenerator(storage=app.state.blob_storage, settings=settings)
        app.state.summary_audio_generator = generator

        if settings.DAILY_SUMMARY_CACHE == CacheBackend.redis:
            store = RedisKeyValueStore(get_redis_pool())
        else:
            store = InMemoryKeyValueStore()

        daily_summary = None
        if generator is not None and app.state.meeting_service is not None:
            daily_summary = DailySummaryService(
                meeting_service=app.state.meeting_service,
                generator=generator,
                store=store,
            )
        app.state.daily_summary_service = daily_summary
        log.info(
            "ai.services_initialized",
            analysis_model=settings.ANALYSIS_MODEL,
            cache=settings.DAILY_SUMMARY_CACHE.value,
        )
    except Exception:
        log.warning("ai.services_init_failed", exc_info=True)
        app.state.transcript_analyzer = None
        app.state.summary_audio_generator = None
        app.state.daily_summary_service = None

    # ── Speech and research ──────────────────────────────────────────────
    try:
        from src.pharmameet.services.research import ClinicalTrialsClient
        from src.pharmameet.services.speech import SpeechService

        app.state.speech_service = SpeechService(settings=settings)
        app.state.research_client = ClinicalTrialsClient(settings=settings)
        if not settings.OPENAI_API_KEY:
            log.warning("speech.openai_key_missing")
    except Exception:
        log.warning("speech.services_init_failed", exc_info=True)
        app.state.speech_service = None
        app.state.research_client = None

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    await app.state.http_client.aclose()
    await close_redis()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="PharmaMeet API",
        version="0.1.0",
        description="Recording, search and AI summaries of pharmaceutical sales meetings",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(health.router)
    app.include_router(v1_router, prefix="/api")

    # Stored recordings and summaries, published at AUDIO_PUBLIC_BASE_URL
    audio_dir = Path(settings.AUDIO_STORAGE_DIR)
    audio_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/audio", StaticFiles(directory=audio_dir), name="audio")

    # Prometheus metrics endpoint (infrastructure route, outside the API router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
