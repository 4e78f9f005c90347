"""
Pytest configuration and fixtures for strategy-mentions tests.
"""

import sys
from pathlib import Path
import pytest

# Add src directory to Python path to allow importing strategy_mentions
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from strategy_mentions.models import (  # noqa: E402
    CreatureToken,
    MentionSegment,
    MoveToken,
    StrategyDocument,
    TextSegment,
)
from strategy_mentions.search import SearchCandidate  # noqa: E402


# Configure anyio to only use asyncio (not trio)
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def pikachu() -> CreatureToken:
    return CreatureToken(id=25, name="Pikachu", national_number="025", sprite="https://img.example/25.png")


@pytest.fixture
def thunderbolt() -> MoveToken:
    return MoveToken(id=85, name="Thunderbolt", move_type="electric", move_category="special")


@pytest.fixture
def see_pikachu(pikachu: CreatureToken) -> StrategyDocument:
    """[Text("See "), Mention(Pikachu), Text("!")]"""
    return StrategyDocument(segments=(
        TextSegment(content="See "),
        MentionSegment(content=pikachu),
        TextSegment(content="!"),
    ))


@pytest.fixture
def catalog_candidates() -> list[SearchCandidate]:
    return [
        SearchCandidate(category="creature", id=4, name="Charmander", secondary_id="004", icon="https://img.example/4.png"),
        SearchCandidate(category="creature", id=5, name="Charmeleon", secondary_id="005"),
        SearchCandidate(category="creature", id=25, name="Pikachu", secondary_id="025"),
        SearchCandidate(category="creature", id=133, name="Eevee", secondary_id="133"),
        SearchCandidate(category="move", id=85, name="Thunderbolt", kind="electric", move_class="special"),
        SearchCandidate(category="move", id=52, name="Ember", kind="fire", move_class="special"),
        SearchCandidate(category="item", id=234, name="Charcoal", icon="https://img.example/charcoal.png"),
        SearchCandidate(category="item", id=217, name="Light Ball"),
        SearchCandidate(category="ability", id=66, name="Blaze"),
        SearchCandidate(category="ability", id=9, name="Static"),
    ]
