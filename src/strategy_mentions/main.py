"""
Strategy Mentions MCP Server
Exposes the mention-aware strategy text model (render, reconcile, insert,
search) as FastMCP tools.
"""

import json
import logging
from typing import Annotated

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import Field

from .config import MentionConfig
from .exceptions import InvalidEditError
from .insertion import detect_trigger, splice_mention
from .models import MentionCategory
from .reconcile import anchor_spans, reconcile_with_report
from .renderer import render_html, render_markdown
from .search import CatalogSearchProvider, HttpCatalogLoader, SearchCandidate
from .serializer import deserialize, serialize

logger = logging.getLogger("strategy-mentions")

logging.basicConfig(
    level=logging.INFO,
    )

if not load_dotenv():
    logger.warning(".env file not found, using process environment only")

config = MentionConfig.from_env(load_env_file=False)
logger.debug(f"Catalog API: {config.api_url}")

catalog = CatalogSearchProvider(limit=config.search_limit)
_catalog_loaded = False

mcp = FastMCP(
    name="strategy-mentions"
)


# ----------------------------------------------------------------------
# Tool implementations (plain functions, usable without the server)
# ----------------------------------------------------------------------

def render_strategy_impl(value: str) -> str:
    """Stored value -> the flat text an edit surface shows."""
    return deserialize(value).flat_text


def reconcile_strategy_impl(value: str, new_text: str) -> str:
    """Map an edited flat text back onto a stored value."""
    report = reconcile_with_report(deserialize(value), new_text)
    result = {
        "value": serialize(report.document),
        "preserved": [s.token.anchor for s in report.preserved],
        "dropped": [s.token.anchor for s in report.dropped],
    }
    return json.dumps(result, ensure_ascii=False)


def insert_mention_impl(
    value: str,
    text: str,
    trigger_offset: int,
    caret: int,
    candidate: SearchCandidate,
) -> str:
    """Reconcile ``text`` then splice ``candidate`` over ``text[trigger_offset:caret]``.

    The range must be the ``@query`` that ends at ``caret``, as an edit
    surface would detect it; an existing mention anchor never qualifies.

    Raises:
        InvalidEditError: If ``[trigger_offset, caret)`` is not a typed ``@query``
    """
    document = reconcile_with_report(deserialize(value), text).document
    blocked = [span.start for span in anchor_spans(document)]
    match = detect_trigger(text, caret, config.max_query_length, blocked)
    if match is None or match.offset != trigger_offset or caret > len(text):
        raise InvalidEditError(
            f"No '@' query spans [{trigger_offset}, {caret}) in the given text",
            details={"trigger_offset": trigger_offset, "caret": caret},
        )

    result = splice_mention(document, trigger_offset, caret, candidate.to_token())
    return json.dumps(
        {
            "value": serialize(result.document),
            "text": result.document.flat_text,
            "caret": result.caret,
        },
        ensure_ascii=False,
    )


async def search_mentions_impl(
    query: str,
    category: MentionCategory | None = None,
    provider: CatalogSearchProvider | None = None,
) -> str:
    """Search the catalog, loading it from the backend on first use."""
    global _catalog_loaded

    if provider is None:
        provider = catalog
        if not _catalog_loaded:
            loader = HttpCatalogLoader(config.api_url, timeout=config.http_timeout)
            count = await provider.load_from(loader)
            _catalog_loaded = count > 0
            logger.info(f"Mention catalog ready ({count} candidates)")

    if category is not None:
        provider = provider.restricted_to({category})

    results = await provider.search(query)
    return json.dumps([c.model_dump(mode="json", exclude_none=True) for c in results], ensure_ascii=False)


# ----------------------------------------------------------------------
# Tools
# ----------------------------------------------------------------------

@mcp.tool
def render_strategy(
    value: Annotated[str, Field(description="Stored strategy value (JSON envelope or legacy plain text)")],
) -> str:
    """Return the flat text of a stored strategy, mentions shown as @name."""
    return render_strategy_impl(value)


@mcp.tool
def strategy_to_html(
    value: Annotated[str, Field(description="Stored strategy value")],
) -> str:
    """Render a stored strategy as an HTML fragment with mention chips."""
    return render_html(value, config)


@mcp.tool
def strategy_to_markdown(
    value: Annotated[str, Field(description="Stored strategy value")],
) -> str:
    """Render a stored strategy as Markdown with mention links."""
    return render_markdown(value, config)


@mcp.tool
def reconcile_strategy(
    value: Annotated[str, Field(description="Stored strategy value before the edit")],
    new_text: Annotated[str, Field(description="Flat text after the edit")],
) -> str:
    """Apply a flat-text edit, keeping every mention whose @name is still intact.

    Returns JSON with the new stored value and the preserved/dropped anchors.
    """
    return reconcile_strategy_impl(value, new_text)


@mcp.tool
def insert_mention(
    value: Annotated[str, Field(description="Stored strategy value")],
    text: Annotated[str, Field(description="Current flat text, including the typed @query")],
    trigger_offset: Annotated[int, Field(ge=0, description="Offset of the '@' that started the query")],
    caret: Annotated[int, Field(ge=0, description="Caret offset at the end of the query")],
    category: Annotated[MentionCategory, Field(description="Entity category")],
    entity_id: Annotated[int, Field(description="Entity id")],
    name: Annotated[str, Field(description="Entity display name")],
    icon: Annotated[str | None, Field(description="Sprite URL")] = None,
    secondary_id: Annotated[str | None, Field(description="Creature national number")] = None,
    kind: Annotated[str | None, Field(description="Move element")] = None,
    move_class: Annotated[str | None, Field(description="Move damage class")] = None,
) -> str:
    """Replace the typed @query with a mention of the chosen entity.

    Returns JSON with the new stored value, flat text and caret.
    """
    candidate = SearchCandidate(
        category=category,
        id=entity_id,
        name=name,
        icon=icon,
        secondary_id=secondary_id,
        kind=kind,
        move_class=move_class,
    )
    return insert_mention_impl(value, text, trigger_offset, caret, candidate)


@mcp.tool
async def search_mentions(
    query: Annotated[str, Field(description="Text typed after '@'")],
    category: Annotated[MentionCategory | None, Field(description="Restrict to one category")] = None,
) -> str:
    """Search creatures, moves, items and abilities for the mention dropdown."""
    return await search_mentions_impl(query, category)


logger.debug("Strategy mention tools registered")

def main() -> None:
    """Main entry point for the Strategy Mentions MCP Server."""
    mcp.run()

if __name__ == "__main__":
    main()
