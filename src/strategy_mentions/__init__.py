"""
Mention-aware strategy text: a flat-text editing model where @references to
creatures, moves, items and abilities survive arbitrary edits.
"""

from .models import (
    AbilityToken,
    CreatureToken,
    ItemToken,
    MentionCategory,
    MentionSegment,
    MoveToken,
    StrategyDocument,
    TextSegment,
)
from .reconcile import reconcile, reconcile_with_report
from .serializer import deserialize, render_flat_text, serialize

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("strategy-mentions")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable

__all__ = [
    "AbilityToken",
    "CreatureToken",
    "ItemToken",
    "MentionCategory",
    "MentionSegment",
    "MoveToken",
    "StrategyDocument",
    "TextSegment",
    "deserialize",
    "reconcile",
    "reconcile_with_report",
    "render_flat_text",
    "serialize",
]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    """Lazy imports for the interactive and rendering layers."""
    if name == "MentionEditor":
        from .editor import MentionEditor
        return MentionEditor
    if name == "MentionComposer":
        from .insertion import MentionComposer
        return MentionComposer
    if name == "render_nodes":
        from .renderer import render_nodes
        return render_nodes
    if name == "render_html":
        from .renderer import render_html
        return render_html
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
