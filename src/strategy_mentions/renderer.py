"""
Read-only rendering of stored strategy text.

Literal runs become text nodes and mentions become chips linking to the
entity's page. Everything a chip shows was captured when the mention was
inserted; the renderer never consults the search backend.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from urllib.parse import quote

from strategy_mentions.config import MentionConfig
from strategy_mentions.models import (
    AbilityToken,
    CreatureToken,
    ItemToken,
    MentionCategory,
    MentionSegment,
    MoveToken,
    StrategyDocument,
)
from strategy_mentions.serializer import deserialize

logger = logging.getLogger(__name__)

EMPTY_PLACEHOLDER = "No strategy provided"

CATEGORY_LABELS: dict[MentionCategory, str] = {
    MentionCategory.CREATURE: "Creature",
    MentionCategory.MOVE: "Move",
    MentionCategory.ITEM: "Item",
    MentionCategory.ABILITY: "Ability",
}

# Chip colour per category
CHIP_STYLES: dict[MentionCategory, str] = {
    MentionCategory.CREATURE: "blue",
    MentionCategory.MOVE: "orange",
    MentionCategory.ITEM: "purple",
    MentionCategory.ABILITY: "green",
}


@dataclass(frozen=True)
class TextNode:
    text: str


@dataclass(frozen=True)
class ChipNode:
    """A clickable mention chip.

    Attributes:
        category: Entity category
        label: Display name (without the ``@``)
        href: Navigation target
        icon: Sprite URL, if one was captured
        tooltip: Hover text, e.g. "Move: Thunderbolt (Click to view)"
        style: Colour key from ``CHIP_STYLES``
    """
    category: MentionCategory
    label: str
    href: str
    icon: str | None
    tooltip: str
    style: str


@dataclass(frozen=True)
class PlaceholderNode:
    text: str = EMPTY_PLACEHOLDER


RenderNode = TextNode | ChipNode | PlaceholderNode


def navigation_target(
    token: CreatureToken | MoveToken | ItemToken | AbilityToken,
    config: MentionConfig | None = None,
) -> str:
    """Build the detail-page URL for a mention.

    Creatures link by national number when one was captured, otherwise by id.
    Moves, items and abilities link to their catalog page by id.
    """
    config = config or MentionConfig()
    if isinstance(token, CreatureToken):
        ref = token.national_number or str(token.id)
        return config.creature_route.format(ref=quote(ref, safe=""), id=token.id)
    return config.catalog_route.format(category=token.category.value, id=token.id)


def _as_document(source: str | StrategyDocument | None) -> StrategyDocument:
    if isinstance(source, StrategyDocument):
        return source
    return deserialize(source)


def render_nodes(
    source: str | StrategyDocument | None,
    config: MentionConfig | None = None,
) -> list[RenderNode]:
    """Turn a stored value (or a document) into display nodes.

    A blank document yields a single placeholder node.
    """
    document = _as_document(source)
    if document.is_blank:
        return [PlaceholderNode()]

    nodes: list[RenderNode] = []
    for segment in document.segments:
        if isinstance(segment, MentionSegment):
            nodes.append(_chip(segment, config))
        elif segment.content:
            nodes.append(TextNode(text=segment.content))
    return nodes


def _chip(segment: MentionSegment, config: MentionConfig | None) -> ChipNode:
    token = segment.token
    label = CATEGORY_LABELS[token.category]
    return ChipNode(
        category=token.category,
        label=token.name,
        href=navigation_target(token, config),
        icon=token.sprite,
        tooltip=f"{label}: {token.name} (Click to view)",
        style=CHIP_STYLES[token.category],
    )


def render_html(
    source: str | StrategyDocument | None,
    config: MentionConfig | None = None,
) -> str:
    """Render to an HTML fragment. Literal text is escaped, newlines kept."""
    nodes = render_nodes(source, config)
    if len(nodes) == 1 and isinstance(nodes[0], PlaceholderNode):
        return f'<p class="strategy strategy-empty">{html.escape(nodes[0].text)}</p>'

    parts: list[str] = []
    for node in nodes:
        if isinstance(node, TextNode):
            parts.append(f"<span>{html.escape(node.text)}</span>")
            continue

        icon = ""
        if node.icon:
            icon = (
                f'<img class="mention-icon" src="{html.escape(node.icon)}" '
                f'alt="{html.escape(node.label)}"/>'
            )
        parts.append(
            f'<a class="mention mention-{node.category.value} chip-{node.style}" '
            f'href="{html.escape(node.href)}" title="{html.escape(node.tooltip)}" '
            f'target="_blank" rel="noopener noreferrer">'
            f'{icon}<span class="mention-name">{html.escape(node.label)}</span></a>'
        )

    return f'<div class="strategy" style="white-space: pre-wrap">{"".join(parts)}</div>'


def render_markdown(
    source: str | StrategyDocument | None,
    config: MentionConfig | None = None,
) -> str:
    """Render to Markdown, with chips as ``[@name](href)`` links."""
    nodes = render_nodes(source, config)
    if len(nodes) == 1 and isinstance(nodes[0], PlaceholderNode):
        return f"_{nodes[0].text}_"

    parts: list[str] = []
    for node in nodes:
        if isinstance(node, TextNode):
            parts.append(node.text)
        else:
            label = node.label.replace("[", r"\[").replace("]", r"\]")
            parts.append(f"[@{label}]({node.href})")
    return "".join(parts)


__all__ = [
    "CATEGORY_LABELS",
    "CHIP_STYLES",
    "ChipNode",
    "EMPTY_PLACEHOLDER",
    "PlaceholderNode",
    "RenderNode",
    "TextNode",
    "navigation_target",
    "render_html",
    "render_markdown",
    "render_nodes",
]
