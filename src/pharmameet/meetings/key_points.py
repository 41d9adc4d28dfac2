"""Fallback key-point extraction from a raw transcript.

Used when the analyzer supplied no key points. Pure and deterministic: the
first few sentences that are long enough and free of filler words, in their
original order.

The filler check is a plain substring test on the lowercased sentence, so
words such as "thumb", "humble" or "document" also disqualify a sentence.
"""

from __future__ import annotations

import re

SAVE_KEY_POINT_LIMIT = 5
CARD_KEY_POINT_LIMIT = 4
MIN_SENTENCE_LENGTH = 20
FILLER_TOKENS = ("um", "uh")

_SENTENCE_BOUNDARY = re.compile(r"[.!?]\s+")


def _is_key_sentence(sentence: str) -> bool:
    lowered = sentence.lower()
    return len(sentence) > MIN_SENTENCE_LENGTH and not any(
        token in lowered for token in FILLER_TOKENS
    )


def extract_key_points(transcript: str, limit: int = SAVE_KEY_POINT_LIMIT) -> list[str]:
    """Pick up to ``limit`` sentences from the transcript as key points.

    Args:
        transcript: Full transcript text.
        limit: Maximum number of key points to return.

    Returns:
        Sentences longer than 20 characters containing neither "um" nor "uh",
        stripped and terminated with a period.
    """
    sentences = _SENTENCE_BOUNDARY.split(transcript)
    kept = [s for s in sentences if _is_key_sentence(s)]
    return [f"{s.strip()}." for s in kept[:limit]]
