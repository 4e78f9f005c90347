"""
Debounced search dispatch for the mention dropdown.

Every query change reschedules a single background task: it waits out the
debounce window, then asks the search provider. Each scheduled search gets a
monotonically increasing sequence number and only the latest one may deliver
results, so a slow earlier response can never overwrite a newer list.
Superseded tasks are cancelled outright.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable

from strategy_mentions.search import EntitySearchProvider, SearchCandidate

logger = logging.getLogger("strategy-mentions")

DEFAULT_DEBOUNCE_SECONDS = 0.3

ResultsCallback = Callable[[int, str, list[SearchCandidate]], Any]


class SearchDispatcher:
    """Schedules provider searches with debounce and stale-result protection.

    Args:
        provider: Search backend.
        on_results: Called as ``on_results(seq, query, candidates)`` for the
            latest search only. Provider failures deliver an empty list.
        debounce: Quiet period in seconds before the provider is queried.

    Usage:
        dispatcher = SearchDispatcher(provider, on_results=show_dropdown)
        dispatcher.schedule("pika")   # from a keystroke handler
        ...
        await dispatcher.aclose()
    """

    def __init__(
        self,
        provider: EntitySearchProvider,
        on_results: ResultsCallback,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self.provider = provider
        self.on_results = on_results
        self.debounce = debounce
        self._seq = 0
        self._task: asyncio.Task | None = None

    @property
    def latest_seq(self) -> int:
        """Sequence number of the most recently issued search."""
        return self._seq

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, query: str) -> int | None:
        """Start a debounced search for ``query``, superseding any pending one.

        Returns:
            The sequence number of the new search, or None when there is no
            running event loop to schedule on.
        """
        self._cancel_task()
        self._seq += 1
        seq = self._seq

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, skipping search for '{query}'")
            return None

        task = loop.create_task(self._run(seq, query))
        self._task = task
        task.add_done_callback(self._clear_task)
        return seq

    def cancel(self) -> None:
        """Cancel the pending search and invalidate anything still in flight."""
        self._cancel_task()
        self._seq += 1

    async def wait(self) -> None:
        """Wait for the pending search (if any) to finish or be cancelled."""
        task = self._task
        if task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def aclose(self) -> None:
        """Cancel and await the pending search."""
        task = self._task
        self.cancel()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self, seq: int, query: str) -> None:
        if self.debounce > 0:
            await asyncio.sleep(self.debounce)

        try:
            results = await self.provider.search(query)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Mention search failed for '{query}': {e}")
            results = []

        self._deliver(seq, query, results)

    def _deliver(self, seq: int, query: str, results: list[SearchCandidate]) -> bool:
        """Hand results to the callback if ``seq`` is still the latest."""
        if seq != self._seq:
            logger.debug(f"Discarding stale results for '{query}' (seq {seq} < {self._seq})")
            return False

        try:
            self.on_results(seq, query, list(results))
        except Exception:
            logger.exception("Error delivering mention search results for '%s'", query)
            return False
        return True

    def _cancel_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _clear_task(self, task: asyncio.Task) -> None:
        if self._task is task:
            self._task = None


__all__ = ["DEFAULT_DEBOUNCE_SECONDS", "SearchDispatcher"]
