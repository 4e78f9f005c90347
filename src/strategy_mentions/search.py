"""
Entity search for the ``@`` mention dropdown.

Candidates come from four catalogs (creatures, moves, items, abilities) served
by the REST backend. The catalogs are fetched once with ``HttpCatalogLoader``
and then filtered locally by ``CatalogSearchProvider`` on every query, the
same way the web client preloads everything on mount and filters in memory.

Candidates are transient: only the fields a reference token needs are copied
out of them when the user picks one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from strategy_mentions.exceptions import InvalidTokenError, SearchProviderError
from strategy_mentions.models import (
    TOKEN_TYPES,
    AbilityToken,
    CreatureToken,
    ItemToken,
    MentionCategory,
    MoveToken,
    normalize_category,
)

logger = logging.getLogger("strategy-mentions")


# API Configuration
DEFAULT_TIMEOUT = 10.0
MAX_RETRIES = 3
RETRY_BACKOFF = 0.5
MOVES_PAGE_SIZE = 1000
DEFAULT_SEARCH_LIMIT = 100


class SearchCandidate(BaseModel):
    """One entry in the mention dropdown.

    Attributes:
        category: Which catalog the entity belongs to
        id: Entity identifier within its category
        name: Display name
        icon: Sprite or icon URL
        secondary_id: Creature national number (text, may be zero-padded)
        kind: Move element
        move_class: Move damage class
        meta: One-line description shown under the name
    """
    category: MentionCategory
    id: int
    name: str = Field(..., min_length=1)
    icon: str | None = None
    secondary_id: str | None = None
    kind: str | None = None
    move_class: str | None = None
    meta: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> Any:
        return normalize_category(value)

    @field_validator("secondary_id", mode="before")
    @classmethod
    def _coerce_secondary_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def to_token(self) -> CreatureToken | MoveToken | ItemToken | AbilityToken:
        """Copy the category-relevant fields into a reference token.

        Raises:
            InvalidTokenError: If the candidate cannot form a valid token
        """
        fields: dict[str, Any] = {"id": self.id, "name": self.name, "sprite": self.icon}
        if self.category is MentionCategory.CREATURE:
            fields["national_number"] = self.secondary_id
        elif self.category is MentionCategory.MOVE:
            fields["move_type"] = self.kind
            fields["move_category"] = self.move_class

        try:
            return TOKEN_TYPES[self.category](**fields)
        except ValidationError as e:
            raise InvalidTokenError(
                f"Cannot build a {self.category.value} mention from '{self.name}'",
                category=self.category.value,
                details={"errors": e.errors()},
            ) from e


class EntitySearchProvider(Protocol):
    """Anything that can answer a mention query."""

    async def search(self, query: str) -> list[SearchCandidate]:
        """Return candidates for ``query``, best first."""
        ...


class CatalogSearchProvider:
    """In-memory search over a preloaded catalog.

    An empty query returns the whole (category-restricted) catalog. Otherwise
    names are matched case-insensitively by substring and the result is
    capped at ``limit``. A purely numeric query also matches creatures by
    national number, ignoring leading zeros.

    Usage:
        provider = CatalogSearchProvider(candidates)
        results = await provider.search("pika")
        creatures_only = provider.restricted_to({MentionCategory.CREATURE})
    """

    def __init__(
        self,
        candidates: Iterable[SearchCandidate] = (),
        *,
        limit: int = DEFAULT_SEARCH_LIMIT,
        categories: Iterable[MentionCategory] | None = None,
    ) -> None:
        self._candidates: list[SearchCandidate] = list(candidates)
        self.limit = limit
        self.categories: frozenset[MentionCategory] | None = (
            frozenset(categories) if categories is not None else None
        )

    @property
    def candidates(self) -> list[SearchCandidate]:
        return [c for c in self._candidates if self._allowed(c)]

    def replace(self, candidates: Iterable[SearchCandidate]) -> None:
        """Swap in a freshly loaded catalog."""
        self._candidates = list(candidates)

    def restricted_to(self, categories: Iterable[MentionCategory]) -> CatalogSearchProvider:
        """A view over the same catalog limited to ``categories``."""
        view = CatalogSearchProvider(limit=self.limit, categories=categories)
        view._candidates = self._candidates
        return view

    async def search(self, query: str) -> list[SearchCandidate]:
        return self.search_now(query)

    def search_now(self, query: str) -> list[SearchCandidate]:
        """Synchronous form of ``search``."""
        pool = self.candidates
        needle = query.strip().lower()
        if not needle:
            return pool

        numeric = needle.isdigit()
        matches = [c for c in pool if _matches(c, needle, numeric)]
        return matches[: self.limit]

    async def load_from(self, loader: HttpCatalogLoader) -> int:
        """Replace the catalog with whatever ``loader`` fetches.

        Returns:
            Number of candidates loaded.
        """
        candidates = await loader.load()
        self.replace(candidates)
        return len(candidates)

    def _allowed(self, candidate: SearchCandidate) -> bool:
        return self.categories is None or candidate.category in self.categories


def _matches(candidate: SearchCandidate, needle: str, numeric: bool) -> bool:
    if needle in candidate.name.lower():
        return True
    if numeric and candidate.category is MentionCategory.CREATURE and candidate.secondary_id:
        number = candidate.secondary_id
        if number.isdigit():
            number = str(int(number))
        return needle in number
    return False


def filter_candidates(
    candidates: Iterable[SearchCandidate],
    category: MentionCategory | None = None,
    text: str = "",
) -> list[SearchCandidate]:
    """Apply the dropdown's category tab and inline filter box."""
    result = [c for c in candidates if category is None or c.category is category]
    needle = text.strip().lower()
    if not needle:
        return result
    numeric = needle.isdigit()
    return [c for c in result if _matches(c, needle, numeric)]


def count_by_category(candidates: Iterable[SearchCandidate]) -> dict[MentionCategory, int]:
    """Per-category counts for the dropdown tab badges."""
    counts = {category: 0 for category in MentionCategory}
    for candidate in candidates:
        counts[candidate.category] += 1
    return counts


class HttpCatalogLoader:
    """Fetches the four mention catalogs from the REST backend.

    Every endpoint answers with the ``{success, data, error}`` envelope.
    Timeouts, transport errors, 429 and 5xx responses are retried with
    exponential backoff. A category that still fails is logged and
    contributes nothing; the other categories load normally.

    Args:
        base_url: API root, e.g. ``http://localhost:3001/api``
        timeout: Per-request timeout in seconds
        client: Optional pre-built client (not closed by the loader)
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        retry_backoff: float = RETRY_BACKOFF,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self._client = client

    async def load(self) -> list[SearchCandidate]:
        """Load all categories concurrently and merge them in category order."""
        if self._client is not None:
            return await self._load_all(self._client)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._load_all(client)

    async def _load_all(self, client: httpx.AsyncClient) -> list[SearchCandidate]:
        loaders = [
            (MentionCategory.CREATURE, self._load_creatures),
            (MentionCategory.MOVE, self._load_moves),
            (MentionCategory.ITEM, self._load_items),
            (MentionCategory.ABILITY, self._load_abilities),
        ]
        batches = await asyncio.gather(
            *(self._load_category(category, fn, client) for category, fn in loaders)
        )

        candidates = [candidate for batch in batches for candidate in batch]
        logger.info(f"Loaded {len(candidates)} mention candidates from {self.base_url}")
        return candidates

    async def _load_category(self, category, fn, client) -> list[SearchCandidate]:
        try:
            records = await fn(client)
        except SearchProviderError as e:
            logger.warning(f"Failed to load {category.value} catalog: {e}")
            return []

        candidates: list[SearchCandidate] = []
        for record in records:
            try:
                candidates.append(self._map(category, record))
            except (ValidationError, KeyError, TypeError) as e:
                logger.debug(f"Skipping malformed {category.value} record: {e}")
        return candidates

    async def _load_creatures(self, client: httpx.AsyncClient) -> list[dict[str, Any]]:
        data = await self._fetch(client, "/pokemon")
        return data if isinstance(data, list) else []

    async def _load_moves(self, client: httpx.AsyncClient) -> list[dict[str, Any]]:
        data = await self._fetch(client, "/moves", params={"pageSize": MOVES_PAGE_SIZE})
        if isinstance(data, dict) and isinstance(data.get("moves"), list):
            return data["moves"]
        return []

    async def _load_items(self, client: httpx.AsyncClient) -> list[dict[str, Any]]:
        data = await self._fetch(client, "/items")
        return data if isinstance(data, list) else []

    async def _load_abilities(self, client: httpx.AsyncClient) -> list[dict[str, Any]]:
        data = await self._fetch(client, "/abilities")
        return data if isinstance(data, list) else []

    @staticmethod
    def _map(category: MentionCategory, record: dict[str, Any]) -> SearchCandidate:
        """Convert one backend record into a candidate."""
        if category is MentionCategory.CREATURE:
            types = record.get("types") or []
            return SearchCandidate(
                category=category,
                id=record["id"],
                name=record["name"],
                icon=record.get("imageUrl"),
                secondary_id=record.get("nationalNumber"),
                meta=", ".join(types) if types else None,
            )
        if category is MentionCategory.MOVE:
            parts = [part for part in (record.get("type"), record.get("category")) if part]
            return SearchCandidate(
                category=category,
                id=record["id"],
                name=record["name"],
                kind=record.get("type"),
                move_class=record.get("category"),
                meta=" | ".join(parts) or None,
            )
        if category is MentionCategory.ITEM:
            return SearchCandidate(
                category=category,
                id=record["id"],
                name=record["name"],
                icon=record.get("spriteUrl"),
                meta=record.get("category"),
            )
        return SearchCandidate(
            category=category,
            id=record["id"],
            name=record["name"],
            meta="Ability",
        )

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """GET one endpoint and unwrap the response envelope.

        Raises:
            SearchProviderError: If the fetch fails after retries, the
                backend reports ``success: false`` or the body is not JSON
        """
        url = f"{self.base_url}{endpoint}"
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            delay = self.retry_backoff * (2 ** attempt)
            try:
                response = await client.get(url, params=params)

                if response.status_code == 429:
                    logger.warning(f"Rate limited on {endpoint}, waiting {delay}s")
                    last_error = SearchProviderError("Rate limited", endpoint, 429)
                    await asyncio.sleep(delay)
                    continue

                response.raise_for_status()
                body = response.json()

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status >= 500:
                    logger.warning(f"Server error {status} on {endpoint}, attempt {attempt + 1}")
                    last_error = e
                    await asyncio.sleep(delay)
                    continue
                raise SearchProviderError(f"HTTP error: {e}", endpoint, status) from e

            except (httpx.TimeoutException, httpx.TransportError) as e:
                logger.warning(f"Request to {endpoint} failed ({type(e).__name__}), attempt {attempt + 1}")
                last_error = e
                await asyncio.sleep(delay)
                continue

            except ValueError as e:
                raise SearchProviderError(f"Invalid JSON from {endpoint}", endpoint, response.status_code) from e

            return self._unwrap(body, endpoint)

        raise SearchProviderError(
            f"Failed to fetch {endpoint} after {self.max_retries} attempts: {last_error}",
            endpoint,
        )

    @staticmethod
    def _unwrap(body: Any, endpoint: str) -> Any:
        if not isinstance(body, dict):
            raise SearchProviderError(f"Unexpected response shape from {endpoint}", endpoint)
        if not body.get("success", False):
            raise SearchProviderError(
                body.get("error") or f"Backend reported failure for {endpoint}",
                endpoint,
            )
        return body.get("data")


__all__ = [
    "CatalogSearchProvider",
    "EntitySearchProvider",
    "HttpCatalogLoader",
    "SearchCandidate",
    "count_by_category",
    "filter_candidates",
]
