"""
Reconciliation of flat-text edits against a structured strategy document.

The edit surface only ever sees the flat text. After each edit, the new text
is mapped back onto the previous document: every mention whose anchor
(``@name``) still appears, in order, is kept; everything else becomes
literal text. A mention whose anchor no longer appears is dropped and its
characters fold into the surrounding text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from strategy_mentions.models import (
    AnchorSpan,
    MentionSegment,
    StrategyDocument,
    TextSegment,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileReport:
    """Outcome of a reconciliation pass.

    Attributes:
        document: The reconciled document; its flat text equals the input text.
        preserved: Mention segments carried over unchanged, in order.
        dropped: Mention segments whose anchors were destroyed by the edit.
        changed: False when the new text equals the previous flat text.
    """
    document: StrategyDocument
    preserved: list[MentionSegment] = field(default_factory=list)
    dropped: list[MentionSegment] = field(default_factory=list)
    changed: bool = True


def anchor_spans(document: StrategyDocument) -> list[AnchorSpan]:
    """Compute the offset of every mention anchor in the document's flat text."""
    spans: list[AnchorSpan] = []
    offset = 0

    for index, segment in enumerate(document.segments):
        length = len(segment.flat_text)
        if isinstance(segment, MentionSegment):
            spans.append(AnchorSpan(start=offset, end=offset + length, index=index, segment=segment))
        offset += length

    return spans


def reconcile_with_report(previous: StrategyDocument, new_text: str) -> ReconcileReport:
    """Map ``new_text`` onto ``previous``, reporting kept and dropped mentions.

    Anchors are matched left to right. Each one is searched for at or after
    the end of the previously matched anchor, and the first occurrence wins.
    Duplicate display names can therefore bind to a different occurrence
    than the one the user originally inserted; order is always preserved.
    """
    if new_text == previous.flat_text and previous.segments:
        return ReconcileReport(
            document=previous,
            preserved=[span.segment for span in anchor_spans(previous)],
            changed=False,
        )

    segments: list[TextSegment | MentionSegment] = []
    preserved: list[MentionSegment] = []
    dropped: list[MentionSegment] = []
    cursor = 0

    for span in anchor_spans(previous):
        found = new_text.find(span.anchor, cursor)
        if found == -1:
            dropped.append(span.segment)
            continue

        if found > cursor:
            segments.append(TextSegment(content=new_text[cursor:found]))
        segments.append(span.segment)
        preserved.append(span.segment)
        cursor = found + len(span.anchor)

    if cursor < len(new_text):
        segments.append(TextSegment(content=new_text[cursor:]))

    if not segments:
        segments.append(TextSegment(content=""))

    if dropped:
        logger.debug(
            "Edit destroyed %d mention(s): %s",
            len(dropped),
            [s.token.anchor for s in dropped],
        )

    return ReconcileReport(
        document=StrategyDocument(segments=tuple(segments)),
        preserved=preserved,
        dropped=dropped,
    )


def reconcile(previous: StrategyDocument, new_text: str) -> StrategyDocument:
    """Return the document for ``new_text``, preserving intact mentions.

    Pure and total; ``reconciled.flat_text == new_text`` always holds.
    """
    return reconcile_with_report(previous, new_text).document
