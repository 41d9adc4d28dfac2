"""Speech services: audio transcription and realtime voice session tokens.

SpeechService wraps two OpenAI-backed operations used by the recording UI:

- transcribe(): one-shot transcription of an uploaded recording through
  litellm.atranscription (whisper-1, JSON response)
- create_realtime_session(): POST to the realtime sessions endpoint to mint
  an ephemeral credential for the browser's voice connection

Failures surface as UpstreamServiceError carrying the HTTP status the API
layer should answer with.
"""

from __future__ import annotations

import httpx
import structlog

from src.pharmameet.config import Settings, get_settings

logger = structlog.get_logger(__name__)


class UpstreamServiceError(Exception):
    """An upstream AI or HTTP service call failed.

    Attributes:
        status_code: HTTP status to report to the caller.
        message: Client-facing error message.
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class SpeechService:
    """Transcription and realtime session creation.

    Args:
        settings: Application settings (API key, models, sessions URL).
        transport: Optional httpx transport for the realtime sessions call.
    """

    TIMEOUT_SESSION = 15.0

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        """Create a new httpx client with specified timeout."""
        return httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {self._settings.OPENAI_API_KEY}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=self._transport,
        )

    async def transcribe(self, filename: str, data: bytes, content_type: str) -> dict:
        """Transcribe an audio recording.

        Args:
            filename: Original upload filename (used for format detection).
            data: Raw audio bytes.
            content_type: MIME type of the upload.

        Returns:
            Transcription payload, at minimum ``{"text": ...}``.

        Raises:
            UpstreamServiceError: The transcription call failed.
        """
        import litellm

        try:
            response = await litellm.atranscription(
                model=self._settings.TRANSCRIPTION_MODEL,
                file=(filename, data, content_type),
                response_format="json",
                api_key=self._settings.OPENAI_API_KEY or None,
            )
        except Exception as exc:
            logger.error("speech.transcription_failed", filename=filename, error=str(exc))
            raise UpstreamServiceError(500, f"Failed to transcribe audio: {exc}") from exc

        text = response.text if hasattr(response, "text") else response.get("text", "")
        logger.info("speech.transcribed", filename=filename, size=len(data), chars=len(text or ""))
        return {"text": text or ""}

    async def create_realtime_session(self) -> dict:
        """Request an ephemeral realtime session credential.

        Returns:
            The upstream session JSON unchanged.

        Raises:
            UpstreamServiceError: Key missing (500), upstream non-2xx (its
                status), or transport failure (500).
        """
        if not self._settings.OPENAI_API_KEY:
            raise UpstreamServiceError(500, "OpenAI API key not configured")

        try:
            async with self._client(self.TIMEOUT_SESSION) as client:
                response = await client.post(
                    self._settings.REALTIME_SESSIONS_URL,
                    json={
                        "model": self._settings.REALTIME_MODEL,
                        "voice": self._settings.REALTIME_VOICE,
                    },
                )
        except httpx.HTTPError as exc:
            logger.error("speech.realtime_session_request_failed", error=str(exc))
            raise UpstreamServiceError(500, "Internal server error") from exc

        if not response.is_success:
            logger.error(
                "speech.realtime_session_rejected",
                status_code=response.status_code,
                body=response.text,
            )
            raise UpstreamServiceError(response.status_code, "Failed to generate OpenAI token")

        try:
            session = response.json()
        except ValueError as exc:
            logger.error("speech.realtime_session_invalid_body", error=str(exc))
            raise UpstreamServiceError(500, "Internal server error") from exc

        logger.info("speech.realtime_session_created", model=self._settings.REALTIME_MODEL)
        return session
