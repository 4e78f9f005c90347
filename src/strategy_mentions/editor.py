"""
Headless mention-aware edit surface.

``MentionEditor`` is what a UI text area binds to. It owns one document, the
flat text and caret, and wires every edit through reconciliation, the
``@query`` composer and the debounced search. Each change is serialized and
handed to ``on_change`` for storage.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from strategy_mentions.config import MentionConfig
from strategy_mentions.dispatcher import SearchDispatcher
from strategy_mentions.exceptions import InvalidEditError
from strategy_mentions.insertion import KeyAction, MentionComposer, SpliceResult
from strategy_mentions.models import MentionCategory, StrategyDocument
from strategy_mentions.reconcile import anchor_spans, reconcile_with_report
from strategy_mentions.search import (
    EntitySearchProvider,
    SearchCandidate,
    count_by_category,
    filter_candidates,
)
from strategy_mentions.serializer import deserialize, serialize

logger = logging.getLogger("strategy-mentions")


class MentionEditor:
    """Edit-surface controller for one strategy field.

    Args:
        value: Stored string to start from (structured or legacy plain text).
        provider: Entity search backend; without one no dropdown is offered.
        config: Limits and debounce settings.
        on_change: Receives the serialized value after every mutation.
        allowed_categories: Restrict the dropdown, e.g. to creatures only.

    Usage:
        editor = MentionEditor(stored, provider, on_change=save)
        editor.handle_input("Use @char", caret=9)
        ...  # dropdown fills after the debounce
        editor.handle_key("Enter")
        editor.text  # 'Use @Charmander '
    """

    def __init__(
        self,
        value: str | None = None,
        provider: EntitySearchProvider | None = None,
        *,
        config: MentionConfig | None = None,
        on_change: Callable[[str], Any] | None = None,
        allowed_categories: Iterable[MentionCategory] | None = None,
    ) -> None:
        self.config = config or MentionConfig()
        self.document: StrategyDocument = deserialize(value)
        self.text = self.document.flat_text
        self.caret = len(self.text)
        self.composer = MentionComposer(self.config.max_query_length)
        self.allowed_categories: frozenset[MentionCategory] | None = (
            frozenset(allowed_categories) if allowed_categories is not None else None
        )
        self.active_category: MentionCategory | None = None
        self.filter_text = ""
        self._results: list[SearchCandidate] = []
        self._on_change = on_change
        self._dispatcher: SearchDispatcher | None = None
        if provider is not None:
            self._dispatcher = SearchDispatcher(
                provider,
                on_results=self._on_results,
                debounce=self.config.debounce_seconds,
            )

    @property
    def value(self) -> str:
        """Serialized form of the current document."""
        return serialize(self.document)

    @property
    def candidates(self) -> list[SearchCandidate]:
        """Dropdown entries after the category tab and filter box."""
        return self.composer.candidates

    @property
    def results(self) -> list[SearchCandidate]:
        """Everything the latest search returned, before tab and filter."""
        return list(self._results)

    @property
    def tab_counts(self) -> dict[MentionCategory, int]:
        return count_by_category(self._results)

    def set_tab(self, category: MentionCategory | None) -> None:
        """Switch the dropdown's category tab (None for all). Clears the filter box."""
        self.active_category = category
        self.filter_text = ""
        self._apply_filters()

    def set_filter(self, text: str) -> None:
        """Narrow the dropdown further by name or national number."""
        self.filter_text = text
        self._apply_filters()

    @property
    def dispatcher(self) -> SearchDispatcher | None:
        return self._dispatcher

    def set_value(self, value: str | None) -> None:
        """Replace the document after an external value change."""
        self.document = deserialize(value)
        self.text = self.document.flat_text
        self.caret = min(self.caret, len(self.text))
        self._abandon_composing()

    def handle_input(self, text: str, caret: int) -> StrategyDocument:
        """Apply an edit of the flat text with the caret at ``caret``."""
        if len(text) > self.config.max_length:
            logger.debug(f"Input truncated to {self.config.max_length} characters")
            text = text[: self.config.max_length]
        caret = max(0, min(caret, len(text)))

        report = reconcile_with_report(self.document, text)
        self.document = report.document
        self.text = text
        self.caret = caret

        blocked = [span.start for span in anchor_spans(self.document)]
        if self.composer.update(text, caret, blocked):
            self._search(self.composer.query)
        elif not self.composer.is_composing:
            self._close_dropdown()

        if report.changed:
            self._emit()
        return self.document

    def handle_key(self, key: str) -> bool:
        """Feed a key press to the dropdown protocol.

        Returns:
            True if the key was consumed (the host should not process it).
        """
        action = self.composer.handle_key(key)

        if action is KeyAction.COMMIT:
            candidate = self.composer.selected
            if candidate is not None:
                try:
                    self.select(candidate)
                except InvalidEditError as e:
                    logger.warning(f"Mention not inserted: {e}")
            return True
        if action is KeyAction.CANCEL:
            self._close_dropdown()
            return True
        return action is KeyAction.MOVED

    def select(self, candidate: SearchCandidate) -> SpliceResult:
        """Commit ``candidate`` in place of the ``@query`` being composed.

        The dropdown closes either way. A mention that would push the text
        past ``max_length`` is refused and the document is left untouched.

        Raises:
            RuntimeError: If no mention is being composed
            InvalidEditError: If the result would exceed ``max_length``
        """
        result = self.composer.commit(self.document, self.caret, candidate)
        self._close_dropdown()

        length = len(result.document.flat_text)
        if length > self.config.max_length:
            raise InvalidEditError(
                f"Inserting @{candidate.name} would exceed {self.config.max_length} characters",
                details={"length": length, "max_length": self.config.max_length},
            )

        self.document = result.document
        self.text = result.document.flat_text
        self.caret = result.caret
        self._emit()
        return result

    def blur(self) -> None:
        """Focus left the surface: drop any gesture in progress."""
        self._abandon_composing()

    async def aclose(self) -> None:
        self.composer.reset()
        self._results = []
        if self._dispatcher is not None:
            await self._dispatcher.aclose()

    def _search(self, query: str) -> None:
        if self._dispatcher is None:
            return
        self._dispatcher.schedule(query)

    def _on_results(self, seq: int, query: str, candidates: list[SearchCandidate]) -> None:
        if not self.composer.is_composing or query != self.composer.query:
            logger.debug(f"Dropping results for '{query}', composer has moved on")
            return
        if self.allowed_categories is not None:
            candidates = [c for c in candidates if c.category in self.allowed_categories]
        self._results = list(candidates)
        self._apply_filters()

    def _apply_filters(self) -> None:
        self.composer.set_candidates(
            filter_candidates(self._results, self.active_category, self.filter_text)
        )

    def _close_dropdown(self) -> None:
        self._results = []
        if self._dispatcher is not None:
            self._dispatcher.cancel()

    def _abandon_composing(self) -> None:
        self.composer.reset()
        self._close_dropdown()

    def _emit(self) -> None:
        if self._on_change is not None:
            self._on_change(self.value)


__all__ = ["MentionEditor"]
