"""Audio payload handling for the save pipeline.

The recording UI sends audio either inline as a base64 data URL or as a
remote URL. parse_audio_payload() resolves the raw string once, at the
boundary, into one of two variants:

- InlineAudio: decoded bytes and their content type
- RemoteAudio: a URL still to be fetched

load_audio_bytes() turns either variant into (bytes, content_type), fetching
remote audio with httpx. The whole file is held in memory.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass

import httpx
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_AUDIO_CONTENT_TYPE = "audio/webm"
REMOTE_FETCH_TIMEOUT = 30.0

_DATA_URL = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)
_DATA_URL_CONTENT_TYPE = re.compile(r"data:([^;]+)")


class AudioDecodeError(ValueError):
    """Raised when an inline data URL cannot be decoded."""


class AudioFetchError(Exception):
    """Raised when remote audio cannot be downloaded."""


@dataclass(frozen=True)
class InlineAudio:
    """Audio bytes decoded from a data URL."""

    data: bytes
    content_type: str = DEFAULT_AUDIO_CONTENT_TYPE


@dataclass(frozen=True)
class RemoteAudio:
    """Audio referenced by URL, fetched when stored."""

    url: str


AudioPayload = InlineAudio | RemoteAudio


def decode_data_url(data_url: str) -> InlineAudio:
    """Decode a ``data:<content-type>;base64,<data>`` string.

    Falls back to splitting on the first comma when the standard shape does
    not match, recovering the content type from the prefix if present.

    Raises:
        AudioDecodeError: No comma in the payload, or invalid base64.
    """
    content_type = DEFAULT_AUDIO_CONTENT_TYPE
    match = _DATA_URL.match(data_url)
    if match:
        content_type, encoded = match.group(1), match.group(2)
    else:
        comma = data_url.find(",")
        if comma <= 0:
            raise AudioDecodeError("Invalid base64 data URL format - no comma found")
        prefix_match = _DATA_URL_CONTENT_TYPE.search(data_url[:comma])
        if prefix_match:
            content_type = prefix_match.group(1)
        encoded = data_url[comma + 1 :]

    try:
        data = base64.b64decode(encoded)
    except (binascii.Error, ValueError) as exc:
        raise AudioDecodeError(f"Invalid base64 audio data: {exc}") from exc

    logger.debug(
        "audio.data_url_decoded",
        content_type=content_type,
        encoded_length=len(encoded),
        byte_length=len(data),
    )
    return InlineAudio(data=data, content_type=content_type)


def parse_audio_payload(raw: str) -> AudioPayload:
    """Resolve a raw audio string into InlineAudio or RemoteAudio.

    Raises:
        AudioDecodeError: The string is a data URL that cannot be decoded.
    """
    if raw.startswith("data:"):
        return decode_data_url(raw)
    return RemoteAudio(url=raw)


async def load_audio_bytes(
    payload: AudioPayload,
    http_client: httpx.AsyncClient | None = None,
) -> tuple[bytes, str]:
    """Return the audio bytes and content type for a payload.

    Args:
        payload: Parsed audio payload.
        http_client: Optional client for remote fetches; a short-lived one is
            created when omitted.

    Raises:
        AudioFetchError: Malformed URL, failed fetch, or a non-2xx status.
    """
    if isinstance(payload, InlineAudio):
        return payload.data, payload.content_type

    try:
        if http_client is not None:
            response = await http_client.get(payload.url)
        else:
            async with httpx.AsyncClient(timeout=REMOTE_FETCH_TIMEOUT) as client:
                response = await client.get(payload.url)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise AudioFetchError(
            f"Failed to fetch audio file: {exc.response.status_code} {exc.response.reason_phrase}"
        ) from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise AudioFetchError(f"Failed to fetch audio file: {exc}") from exc

    content_type = response.headers.get("content-type") or DEFAULT_AUDIO_CONTENT_TYPE
    return response.content, content_type
