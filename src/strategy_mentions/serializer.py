"""
Storage form of strategy documents.

Stored strings are a JSON envelope ``{"segments": [...]}``. Anything else,
including plain text written before mentions existed, is legacy content and
comes back as a single literal text segment. ``deserialize`` never raises.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from strategy_mentions.models import MentionSegment, StrategyDocument, TextSegment

logger = logging.getLogger(__name__)


def serialize(document: StrategyDocument) -> str:
    """Encode a document as its compact JSON storage string.

    Optional token fields that are unset are omitted.
    """
    payload = document.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(
        {"segments": list(payload["segments"])},
        ensure_ascii=False,
        separators=(",", ":"),
    )


def deserialize(raw: str | None) -> StrategyDocument:
    """Decode a storage string into a document.

    Total: malformed JSON, a missing ``segments`` list or segments that fail
    validation all degrade to one text segment holding ``raw`` verbatim.
    An empty or missing value yields a single empty text segment.
    """
    if not raw:
        return StrategyDocument.empty()

    envelope = _parse_envelope(raw)
    if envelope is None:
        return StrategyDocument.from_text(raw)

    try:
        document = StrategyDocument.model_validate({"segments": envelope})
    except ValidationError as e:
        logger.debug("Stored strategy has invalid segments, treating as text: %s", e.error_count())
        return StrategyDocument.from_text(raw)

    if not document.segments:
        return StrategyDocument.empty()
    return document


def render_flat_text(document: StrategyDocument) -> str:
    """Concatenate literal runs and ``@name`` anchors into the edit text."""
    return document.flat_text


def coalesce(document: StrategyDocument) -> StrategyDocument:
    """Merge adjacent text segments and drop empty ones.

    Rendering is unaffected; the result still holds at least one segment.
    """
    merged: list[TextSegment | MentionSegment] = []
    pending = ""

    for segment in document.segments:
        if isinstance(segment, TextSegment):
            pending += segment.content
            continue
        if pending:
            merged.append(TextSegment(content=pending))
            pending = ""
        merged.append(segment)

    if pending:
        merged.append(TextSegment(content=pending))

    if not merged:
        return StrategyDocument.empty()
    return StrategyDocument(segments=tuple(merged))


def _parse_envelope(raw: str) -> list[Any] | None:
    """Return the raw segment list, or None when ``raw`` is not an envelope."""
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, RecursionError):
        return None

    if not isinstance(parsed, dict):
        return None

    segments = parsed.get("segments")
    if not isinstance(segments, list):
        return None
    return segments
