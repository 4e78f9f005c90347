"""
Unit tests for reconciling flat-text edits with the segment model.
"""

import pytest

from strategy_mentions.models import (
    CreatureToken,
    MentionSegment,
    MoveToken,
    StrategyDocument,
    TextSegment,
)
from strategy_mentions.reconcile import anchor_spans, reconcile, reconcile_with_report


def mention(token) -> MentionSegment:
    return MentionSegment(content=token)


def text(content: str) -> TextSegment:
    return TextSegment(content=content)


class TestAnchorSpans:
    """Test the anchor offset map."""

    def test_offsets(self, see_pikachu: StrategyDocument) -> None:
        spans = anchor_spans(see_pikachu)
        assert len(spans) == 1
        assert (spans[0].start, spans[0].end, spans[0].index) == (4, 12, 1)
        assert spans[0].anchor == "@Pikachu"

    def test_no_mentions(self) -> None:
        assert anchor_spans(StrategyDocument.from_text("nothing here")) == []

    def test_consecutive_mentions(self, pikachu: CreatureToken, thunderbolt: MoveToken) -> None:
        doc = StrategyDocument(segments=(mention(pikachu), mention(thunderbolt)))
        spans = anchor_spans(doc)
        assert [(s.start, s.end) for s in spans] == [(0, 8), (8, 20)]


class TestReconcile:
    """Test mention preservation and destruction."""

    def test_append_preserves_mention(self, see_pikachu: StrategyDocument, pikachu: CreatureToken) -> None:
        result = reconcile(see_pikachu, "See @Pikachu! It's great")
        assert result.segments == (text("See "), mention(pikachu), text("! It's great"))

    def test_altered_anchor_drops_mention(self, see_pikachu: StrategyDocument) -> None:
        result = reconcile(see_pikachu, "See @Pika! (edited)")
        assert result.segments == (text("See @Pika! (edited)"),)

    def test_prepend_preserves_mention(self, see_pikachu: StrategyDocument, pikachu: CreatureToken) -> None:
        result = reconcile(see_pikachu, "Really, see @Pikachu!")
        assert result.segments == (text("Really, see "), mention(pikachu), text("!"))

    def test_unchanged_text_returns_previous(self, see_pikachu: StrategyDocument) -> None:
        report = reconcile_with_report(see_pikachu, "See @Pikachu!")
        assert report.document is see_pikachu
        assert report.changed is False

    def test_clearing_text_yields_single_empty_segment(self, see_pikachu: StrategyDocument) -> None:
        result = reconcile(see_pikachu, "")
        assert result.segments == (text(""),)

    def test_empty_previous_document(self) -> None:
        result = reconcile(StrategyDocument.empty(), "Use ")
        assert result.segments == (text("Use "),)

    def test_only_destroyed_mention_is_dropped(self, pikachu: CreatureToken, thunderbolt: MoveToken) -> None:
        doc = StrategyDocument(segments=(
            mention(pikachu), text(" knows "), mention(thunderbolt), text("."),
        ))
        report = reconcile_with_report(doc, "@Pikachu knows @Thunder.")
        assert report.document.segments == (mention(pikachu), text(" knows @Thunder."))
        assert report.preserved == [mention(pikachu)]
        assert report.dropped == [mention(thunderbolt)]

    def test_mention_moved_later_is_kept(self, see_pikachu: StrategyDocument, pikachu: CreatureToken) -> None:
        result = reconcile(see_pikachu, "Later we see @Pikachu!")
        assert result.mentions == [pikachu]

    def test_anchors_never_reordered(self, pikachu: CreatureToken, thunderbolt: MoveToken) -> None:
        doc = StrategyDocument(segments=(mention(pikachu), text(" "), mention(thunderbolt)))
        # User swapped the two anchors by hand; only the first can still match in order
        result = reconcile(doc, "@Thunderbolt @Pikachu")
        assert result.mentions == [pikachu]
        assert result.flat_text == "@Thunderbolt @Pikachu"

    @pytest.mark.parametrize("new_text", [
        "",
        "See @Pikachu!",
        "See @Pikachu",
        "@Pikachu",
        "x@Pikachux",
        "See @Pikachu! and @Pikachu again",
        "completely different",
        "See\n@Pikachu!\n",
    ])
    def test_flat_text_always_matches_input(self, see_pikachu: StrategyDocument, new_text: str) -> None:
        assert reconcile(see_pikachu, new_text).flat_text == new_text


class TestDuplicateNames:
    """Two distinct mentions sharing a display name bind to occurrences left to right."""

    @pytest.fixture
    def two_eevees(self) -> StrategyDocument:
        first = CreatureToken(id=133, name="Eevee", national_number="133")
        second = CreatureToken(id=10133, name="Eevee", national_number="133-gmax")
        return StrategyDocument(segments=(
            text("Lead "), mention(first), text(" "), mention(second), text(" end"),
        ))

    def test_edit_before_first_keeps_order(self, two_eevees: StrategyDocument) -> None:
        result = reconcile(two_eevees, "Always lead @Eevee @Eevee end")
        ids = [t.id for t in result.mentions]
        assert ids == [133, 10133]
        assert result.flat_text == "Always lead @Eevee @Eevee end"

    def test_deleting_one_anchor_rebinds_first_match(self, two_eevees: StrategyDocument) -> None:
        result = reconcile(two_eevees, "Lead @Eevee end")
        # First occurrence wins: the surviving anchor binds to the first mention
        assert [t.id for t in result.mentions] == [133]
        assert result.flat_text == "Lead @Eevee end"
