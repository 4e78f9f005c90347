"""
Tests for the headless mention editor: typing, searching, selecting and
editing around existing mentions.
"""

import pytest

from strategy_mentions.config import MentionConfig
from strategy_mentions.editor import MentionEditor
from strategy_mentions.exceptions import InvalidEditError
from strategy_mentions.insertion import ComposerState
from strategy_mentions.models import CreatureToken, MentionCategory, StrategyDocument
from strategy_mentions.search import CatalogSearchProvider
from strategy_mentions.serializer import deserialize, serialize

FAST = MentionConfig(debounce_ms=0)


@pytest.fixture
def changes() -> list[str]:
    return []


@pytest.fixture
def editor(catalog_candidates, changes) -> MentionEditor:
    return MentionEditor(
        None,
        CatalogSearchProvider(catalog_candidates),
        config=FAST,
        on_change=changes.append,
    )


class TestEditorBasics:
    """Synchronous behaviour that needs no search."""

    def test_starts_from_legacy_value(self) -> None:
        editor = MentionEditor("old plain strategy")
        assert editor.text == "old plain strategy"
        assert editor.caret == len(editor.text)
        assert editor.document == StrategyDocument.from_text("old plain strategy")

    def test_starts_from_structured_value(self, see_pikachu: StrategyDocument) -> None:
        editor = MentionEditor(serialize(see_pikachu))
        assert editor.text == "See @Pikachu!"
        assert editor.document == see_pikachu

    def test_plain_typing_emits_changes(self) -> None:
        changes: list[str] = []
        editor = MentionEditor(None, on_change=changes.append)
        editor.handle_input("Lead", 4)
        editor.handle_input("Lead", 4)
        assert len(changes) == 1
        assert deserialize(changes[0]).flat_text == "Lead"

    def test_input_truncated_to_max_length(self) -> None:
        editor = MentionEditor(None, config=MentionConfig(max_length=10))
        editor.handle_input("x" * 25, 25)
        assert editor.text == "x" * 10
        assert editor.caret == 10

    def test_editing_anchor_drops_mention(self, see_pikachu: StrategyDocument) -> None:
        editor = MentionEditor(serialize(see_pikachu))
        editor.handle_input("See @Pikach!", 11)
        assert editor.document.mentions == []
        assert editor.text == "See @Pikach!"

    def test_trigger_without_provider_is_harmless(self) -> None:
        editor = MentionEditor(None)
        editor.handle_input("@pi", 3)
        assert editor.composer.state is ComposerState.COMPOSING
        assert editor.candidates == []
        assert editor.dispatcher is None

    def test_existing_anchor_never_reopens_dropdown(self, see_pikachu: StrategyDocument) -> None:
        editor = MentionEditor(serialize(see_pikachu))
        editor.handle_input("See @Pikachu", 12)
        assert editor.composer.state is ComposerState.IDLE
        assert editor.document.mentions != []

    def test_keys_not_consumed_when_idle(self) -> None:
        editor = MentionEditor(None)
        assert editor.handle_key("Enter") is False
        assert editor.handle_key("ArrowDown") is False

    def test_set_value_resets_composing(self, see_pikachu: StrategyDocument) -> None:
        editor = MentionEditor(None)
        editor.handle_input("@pi", 3)
        editor.set_value(serialize(see_pikachu))
        assert editor.composer.state is ComposerState.IDLE
        assert editor.text == "See @Pikachu!"
        assert editor.caret == 3

    def test_blur_abandons_gesture(self) -> None:
        editor = MentionEditor(None)
        editor.handle_input("@pi", 3)
        editor.blur()
        assert editor.composer.state is ComposerState.IDLE


@pytest.mark.anyio
class TestEditorMentionFlow:
    """Full @query flow with a live dispatcher."""

    async def test_type_search_and_select(self, editor: MentionEditor, changes: list[str]) -> None:
        editor.handle_input("Use @char", 9)
        await editor.dispatcher.wait()

        assert [c.name for c in editor.candidates] == ["Charmander", "Charmeleon", "Charcoal"]

        assert editor.handle_key("ArrowDown") is True
        assert editor.handle_key("Enter") is True

        assert editor.text == "Use @Charmeleon "
        assert editor.caret == len("Use @Charmeleon")
        assert editor.composer.state is ComposerState.IDLE
        assert editor.document.mentions == [CreatureToken(id=5, name="Charmeleon", national_number="005")]

        stored = deserialize(changes[-1])
        assert stored == editor.document
        await editor.aclose()

    async def test_results_for_old_query_ignored(self, editor: MentionEditor, catalog_candidates) -> None:
        editor.handle_input("@ch", 3)
        await editor.dispatcher.wait()
        before = list(editor.candidates)
        editor.handle_input("@cha", 4)

        editor._on_results(1, "ch", catalog_candidates)
        assert editor.candidates == before

        await editor.dispatcher.wait()
        assert editor.composer.query == "cha"
        assert [c.name for c in editor.candidates] == ["Charmander", "Charmeleon", "Charcoal"]
        await editor.aclose()

    async def test_allowed_categories_filter_dropdown(self, catalog_candidates) -> None:
        editor = MentionEditor(
            None,
            CatalogSearchProvider(catalog_candidates),
            config=FAST,
            allowed_categories={MentionCategory.CREATURE},
        )
        editor.handle_input("@char", 5)
        await editor.dispatcher.wait()
        assert [c.name for c in editor.candidates] == ["Charmander", "Charmeleon"]
        await editor.aclose()

    async def test_escape_closes_dropdown(self, editor: MentionEditor) -> None:
        editor.handle_input("@pika", 5)
        await editor.dispatcher.wait()
        assert editor.candidates

        assert editor.handle_key("Escape") is True
        assert editor.candidates == []
        assert editor.text == "@pika"
        await editor.aclose()

    async def test_whitespace_ends_composing(self, editor: MentionEditor) -> None:
        editor.handle_input("@pika", 5)
        await editor.dispatcher.wait()
        editor.handle_input("@pika ", 6)
        assert editor.composer.state is ComposerState.IDLE
        assert not editor.dispatcher.pending
        await editor.aclose()

    async def test_second_mention_keeps_first(self, editor: MentionEditor) -> None:
        editor.handle_input("@pika", 5)
        await editor.dispatcher.wait()
        editor.handle_key("Enter")
        assert editor.text == "@Pikachu "

        editor.handle_input("@Pikachu with @thunder", 22)
        await editor.dispatcher.wait()
        editor.handle_key("Enter")

        assert editor.text == "@Pikachu with @Thunderbolt "
        assert [t.name for t in editor.document.mentions] == ["Pikachu", "Thunderbolt"]
        await editor.aclose()

    async def test_tab_counts_and_tabs(self, editor: MentionEditor) -> None:
        editor.handle_input("@char", 5)
        await editor.dispatcher.wait()

        assert editor.tab_counts == {
            MentionCategory.CREATURE: 2,
            MentionCategory.MOVE: 0,
            MentionCategory.ITEM: 1,
            MentionCategory.ABILITY: 0,
        }

        editor.set_tab(MentionCategory.ITEM)
        assert [c.name for c in editor.candidates] == ["Charcoal"]
        assert len(editor.results) == 3

        editor.handle_key("Enter")
        assert editor.text == "@Charcoal "
        assert [t.name for t in editor.document.mentions] == ["Charcoal"]
        await editor.aclose()

    async def test_filter_box_and_tab_switch_clears_it(self, editor: MentionEditor) -> None:
        editor.handle_input("@char", 5)
        await editor.dispatcher.wait()

        editor.set_filter("meleon")
        assert [c.name for c in editor.candidates] == ["Charmeleon"]

        editor.set_tab(MentionCategory.CREATURE)
        assert editor.filter_text == ""
        assert [c.name for c in editor.candidates] == ["Charmander", "Charmeleon"]

        editor.set_tab(None)
        assert [c.name for c in editor.candidates] == ["Charmander", "Charmeleon", "Charcoal"]
        await editor.aclose()

    async def test_mention_past_max_length_refused(self, catalog_candidates) -> None:
        changes: list[str] = []
        editor = MentionEditor(
            None,
            CatalogSearchProvider(catalog_candidates),
            config=MentionConfig(debounce_ms=0, max_length=12),
            on_change=changes.append,
        )
        editor.handle_input("Use @char", 9)
        await editor.dispatcher.wait()
        assert editor.candidates

        assert editor.handle_key("Enter") is True
        assert editor.text == "Use @char"
        assert editor.document.mentions == []
        assert editor.composer.state is ComposerState.IDLE
        assert editor.candidates == []
        assert len(changes) == 1

        editor.handle_input("Use @char", 9)
        with pytest.raises(InvalidEditError) as exc_info:
            editor.select(catalog_candidates[0])
        assert exc_info.value.details == {"length": 16, "max_length": 12}
        assert editor.text == "Use @char"
        assert editor.document.mentions == []
        await editor.aclose()
