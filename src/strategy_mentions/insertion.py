"""
The ``@query`` insertion protocol.

While the user types, ``detect_trigger`` looks backwards from the caret for an
``@`` that starts a word. The text between it and the caret is the query.
``MentionComposer`` tracks that gesture (idle or composing), the candidate
list and the keyboard selection. Picking a candidate splices a mention
segment into the document at the trigger offset, replacing the typed
``@query``, followed by one literal space.

This is the only place mention segments are created.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from strategy_mentions.exceptions import InvalidEditError
from strategy_mentions.models import (
    ANCHOR_PREFIX,
    AbilityToken,
    CreatureToken,
    ItemToken,
    MentionSegment,
    MoveToken,
    StrategyDocument,
    TextSegment,
)
from strategy_mentions.search import SearchCandidate

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 50

Token = CreatureToken | MoveToken | ItemToken | AbilityToken


@dataclass(frozen=True)
class TriggerMatch:
    """An in-progress ``@query`` gesture.

    Attributes:
        offset: Offset of the ``@`` in the flat text.
        query: Text typed after the ``@``, up to the caret.
    """
    offset: int
    query: str


@dataclass(frozen=True)
class SpliceResult:
    """Document after inserting a mention, and where the caret goes."""
    document: StrategyDocument
    caret: int


def detect_trigger(
    text: str,
    caret: int,
    max_query_length: int = MAX_QUERY_LENGTH,
    blocked_offsets: Iterable[int] = (),
) -> TriggerMatch | None:
    """Find the ``@query`` the caret is currently inside, if any.

    Only the last ``@`` before the caret is considered. It must sit at the
    start of the text or right after whitespace, the query must contain no
    whitespace and be at most ``max_query_length`` characters. An ``@`` in
    ``blocked_offsets`` (the start of an existing mention anchor) never
    triggers.
    """
    caret = max(0, min(caret, len(text)))
    before = text[:caret]

    at = before.rfind(ANCHOR_PREFIX)
    if at == -1:
        return None
    if at > 0 and not before[at - 1].isspace():
        return None

    query = before[at + 1:]
    if any(ch.isspace() for ch in query):
        return None
    if len(query) > max_query_length:
        return None
    if at in set(blocked_offsets):
        return None

    return TriggerMatch(offset=at, query=query)


def splice_mention(
    document: StrategyDocument,
    trigger_offset: int,
    caret: int,
    token: Token,
) -> SpliceResult:
    """Replace ``flat_text[trigger_offset:caret]`` with a mention of ``token``.

    Text segments straddling the boundaries are split; a mention overlapping
    the replaced range is destroyed. The new anchor is followed by a single
    space and the caret lands right after the anchor.

    Raises:
        InvalidEditError: If the range is not ``0 <= trigger_offset < caret
            <= len(flat_text)`` or does not start with ``@``
    """
    text = document.flat_text
    if not 0 <= trigger_offset < caret <= len(text) or text[trigger_offset] != ANCHOR_PREFIX:
        raise InvalidEditError(
            f"Cannot insert a mention over [{trigger_offset}, {caret})",
            details={"trigger_offset": trigger_offset, "caret": caret, "length": len(text)},
        )

    mention = MentionSegment(content=token)
    out: list[TextSegment | MentionSegment] = []
    inserted = False
    space_pending = False
    offset = 0

    def emit_text(content: str) -> None:
        nonlocal space_pending
        if space_pending:
            content = " " + content
            space_pending = False
        if content:
            out.append(TextSegment(content=content))

    def emit_mention() -> None:
        nonlocal inserted, space_pending
        out.append(mention)
        inserted = True
        space_pending = True

    for segment in document.segments:
        start = offset
        end = start + len(segment.flat_text)
        offset = end

        if end <= trigger_offset:
            out.append(segment)
            continue

        if start >= caret:
            if not inserted:
                emit_mention()
            if isinstance(segment, TextSegment):
                emit_text(segment.content)
            else:
                emit_text("")
                out.append(segment)
            continue

        if isinstance(segment, TextSegment):
            head = segment.content[: max(0, trigger_offset - start)]
            tail = segment.content[max(0, caret - start):]
            if head:
                out.append(TextSegment(content=head))
            if not inserted:
                emit_mention()
            if tail:
                emit_text(tail)
        else:
            logger.debug("Mention %s overlapped by insertion, dropping", segment.token.anchor)
            if not inserted:
                emit_mention()

    if space_pending:
        emit_text("")

    new_caret = 0
    for segment in out:
        new_caret += len(segment.flat_text)
        if segment is mention:
            break

    return SpliceResult(document=StrategyDocument(segments=tuple(out)), caret=new_caret)


class ComposerState(str, Enum):
    """Whether an ``@query`` gesture is in progress."""
    IDLE = "idle"
    COMPOSING = "composing"


class KeyAction(str, Enum):
    """What a key press means while composing."""
    IGNORED = "ignored"
    MOVED = "moved"
    COMMIT = "commit"
    CANCEL = "cancel"


class MentionComposer:
    """State machine for one edit surface's ``@query`` gesture.

    Usage:
        composer = MentionComposer()
        if composer.update(text, caret):
            dispatcher.schedule(composer.query)
        ...
        composer.set_candidates(results)
        if composer.handle_key("Enter") is KeyAction.COMMIT:
            result = composer.commit(document, caret, composer.selected)
    """

    def __init__(self, max_query_length: int = MAX_QUERY_LENGTH) -> None:
        self.max_query_length = max_query_length
        self.state = ComposerState.IDLE
        self.trigger_offset: int | None = None
        self.query = ""
        self.candidates: list[SearchCandidate] = []
        self.selected_index = 0

    @property
    def is_composing(self) -> bool:
        return self.state is ComposerState.COMPOSING

    @property
    def selected(self) -> SearchCandidate | None:
        if not self.is_composing or not self.candidates:
            return None
        return self.candidates[self.selected_index]

    def update(self, text: str, caret: int, blocked_offsets: Iterable[int] = ()) -> bool:
        """Re-evaluate the gesture after an edit.

        Returns:
            True if a new query is now being composed (a search is due).
        """
        match = detect_trigger(text, caret, self.max_query_length, blocked_offsets)
        if match is None:
            if self.is_composing:
                logger.debug("Trigger context lost, leaving composing state")
                self.reset()
            return False

        changed = (
            not self.is_composing
            or match.query != self.query
            or match.offset != self.trigger_offset
        )
        self.state = ComposerState.COMPOSING
        self.trigger_offset = match.offset
        self.query = match.query
        if changed:
            self.selected_index = 0
        return changed

    def set_candidates(self, candidates: Iterable[SearchCandidate]) -> bool:
        """Replace the candidate list. Ignored unless composing."""
        if not self.is_composing:
            return False
        self.candidates = list(candidates)
        self.selected_index = 0
        return True

    def move_selection(self, delta: int) -> int:
        """Move the highlighted candidate, clamped to the list bounds."""
        if not self.candidates:
            self.selected_index = 0
        else:
            self.selected_index = max(0, min(self.selected_index + delta, len(self.candidates) - 1))
        return self.selected_index

    def handle_key(self, key: str) -> KeyAction:
        """Interpret a key press. Keys outside the protocol are ignored."""
        if not self.is_composing:
            return KeyAction.IGNORED

        if key == "ArrowDown":
            self.move_selection(1)
            return KeyAction.MOVED
        if key == "ArrowUp":
            self.move_selection(-1)
            return KeyAction.MOVED
        if key == "Enter" and self.candidates:
            return KeyAction.COMMIT
        if key == "Escape":
            self.reset()
            return KeyAction.CANCEL
        return KeyAction.IGNORED

    def commit(
        self,
        document: StrategyDocument,
        caret: int,
        candidate: SearchCandidate,
    ) -> SpliceResult:
        """Splice ``candidate`` in place of the typed ``@query`` and go idle.

        Raises:
            RuntimeError: If called while idle
            InvalidTokenError: If the candidate cannot form a token
            InvalidEditError: If ``caret`` no longer ends the typed query
        """
        if not self.is_composing or self.trigger_offset is None:
            raise RuntimeError("No mention is being composed")

        result = splice_mention(document, self.trigger_offset, caret, candidate.to_token())
        logger.debug(
            "Inserted %s mention '%s' at offset %d",
            candidate.category.value,
            candidate.name,
            self.trigger_offset,
        )
        self.reset()
        return result

    def reset(self) -> None:
        """Abandon any gesture in progress (Escape, blur, lost trigger)."""
        self.state = ComposerState.IDLE
        self.trigger_offset = None
        self.query = ""
        self.candidates = []
        self.selected_index = 0


__all__ = [
    "ComposerState",
    "KeyAction",
    "MAX_QUERY_LENGTH",
    "MentionComposer",
    "SpliceResult",
    "TriggerMatch",
    "detect_trigger",
    "splice_mention",
]
