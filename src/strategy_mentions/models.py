"""
Segment model for mention-aware strategy text.

A strategy document is a flat sequence of segments. Each segment is either a
literal text run or a reference to a catalog entity (creature, move, item or
ability). References are atomic: in the flat text shown to the user they
appear as ``@`` + display name and are never split.

Tokens form a closed sum type: one pydantic model per category, joined into a
discriminated union on the ``type`` field. Each category only accepts its own
metadata fields, so a move can never carry a national number and a creature
can never carry a damage class.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MentionCategory(str, Enum):
    """Closed set of entity categories a mention can point at."""
    CREATURE = "creature"
    MOVE = "move"
    ITEM = "item"
    ABILITY = "ability"


# Category values written by older clients, mapped to the current ones
LEGACY_CATEGORY_ALIASES: dict[str, str] = {
    "pokemon": MentionCategory.CREATURE.value,
}

ANCHOR_PREFIX = "@"


def normalize_category(value: Any) -> Any:
    """Map legacy category spellings to their current value.

    Unknown values are returned untouched so validation can reject them.
    """
    if isinstance(value, MentionCategory):
        return value.value
    if isinstance(value, str):
        return LEGACY_CATEGORY_ALIASES.get(value, value)
    return value


class _TokenBase(BaseModel):
    """Fields shared by every reference token.

    Display name and icon are captured when the mention is inserted and are
    never refreshed from the catalog afterwards.
    """
    id: int = Field(..., description="Stable identifier of the entity within its category")
    name: str = Field(..., min_length=1, description="Display name captured at insertion time")
    sprite: str | None = Field(default=None, description="Icon or sprite URL")

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @property
    def category(self) -> MentionCategory:
        return MentionCategory(self.type)  # type: ignore[attr-defined]

    @property
    def anchor(self) -> str:
        """Flat-text form of this token, e.g. ``@Pikachu``."""
        return f"{ANCHOR_PREFIX}{self.name}"


class CreatureToken(_TokenBase):
    """Reference to a creature. ``national_number`` drives the detail URL."""
    type: Literal["creature"] = "creature"
    national_number: str | None = Field(
        default=None,
        alias="nationalNumber",
        description="Secondary (national dex) identifier, kept as text to preserve padding",
    )

    @field_validator("national_number", mode="before")
    @classmethod
    def _coerce_national_number(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class MoveToken(_TokenBase):
    """Reference to a move, with its element and damage class."""
    type: Literal["move"] = "move"
    move_type: str | None = Field(default=None, alias="moveType", description="Element, e.g. 'electric'")
    move_category: str | None = Field(
        default=None,
        alias="moveCategory",
        description="Mechanical class: physical, special or status",
    )


class ItemToken(_TokenBase):
    """Reference to a held item."""
    type: Literal["item"] = "item"


class AbilityToken(_TokenBase):
    """Reference to an ability."""
    type: Literal["ability"] = "ability"


MentionToken = Annotated[
    Union[CreatureToken, MoveToken, ItemToken, AbilityToken],
    Field(discriminator="type"),
]

TOKEN_TYPES: dict[MentionCategory, type[_TokenBase]] = {
    MentionCategory.CREATURE: CreatureToken,
    MentionCategory.MOVE: MoveToken,
    MentionCategory.ITEM: ItemToken,
    MentionCategory.ABILITY: AbilityToken,
}


class TextSegment(BaseModel):
    """A literal run of user text. May be empty only transiently."""
    type: Literal["text"] = "text"
    content: str = ""

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def flat_text(self) -> str:
        return self.content


class MentionSegment(BaseModel):
    """An atomic reference to a catalog entity."""
    type: Literal["mention"] = "mention"
    content: MentionToken

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("content", mode="before")
    @classmethod
    def _normalize_legacy_category(cls, value: Any) -> Any:
        if isinstance(value, dict) and "type" in value:
            normalized = normalize_category(value["type"])
            if normalized != value["type"]:
                value = {**value, "type": normalized}
        return value

    @property
    def token(self) -> CreatureToken | MoveToken | ItemToken | AbilityToken:
        return self.content

    @property
    def flat_text(self) -> str:
        return self.content.anchor


Segment = Annotated[Union[TextSegment, MentionSegment], Field(discriminator="type")]


class StrategyDocument(BaseModel):
    """Ordered sequence of text and mention segments.

    Adjacent text segments are allowed; they render identically to a single
    merged run. Use ``serializer.coalesce`` to tidy them up.
    """
    segments: tuple[Segment, ...] = Field(default_factory=tuple)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def empty(cls) -> StrategyDocument:
        """A document holding one empty text segment."""
        return cls(segments=(TextSegment(content=""),))

    @classmethod
    def from_text(cls, text: str) -> StrategyDocument:
        """A document holding ``text`` verbatim as a single literal run."""
        return cls(segments=(TextSegment(content=text),))

    @property
    def flat_text(self) -> str:
        """The plain character stream the edit surface displays."""
        return "".join(segment.flat_text for segment in self.segments)

    @property
    def mentions(self) -> list[CreatureToken | MoveToken | ItemToken | AbilityToken]:
        """Tokens of all mention segments, in document order."""
        return [s.content for s in self.segments if isinstance(s, MentionSegment)]

    @property
    def is_blank(self) -> bool:
        return self.flat_text == ""


@dataclass(frozen=True)
class AnchorSpan:
    """Location of one mention anchor inside a document's flat text.

    Attributes:
        start: Offset of the ``@`` character.
        end: Offset one past the last anchor character.
        index: Position of the mention segment in ``document.segments``.
        segment: The mention segment itself.
    """
    start: int
    end: int
    index: int
    segment: MentionSegment

    @property
    def anchor(self) -> str:
        return self.segment.flat_text


__all__ = [
    "ANCHOR_PREFIX",
    "AbilityToken",
    "AnchorSpan",
    "CreatureToken",
    "ItemToken",
    "LEGACY_CATEGORY_ALIASES",
    "MentionCategory",
    "MentionSegment",
    "MentionToken",
    "MoveToken",
    "Segment",
    "StrategyDocument",
    "TOKEN_TYPES",
    "TextSegment",
    "normalize_category",
]
