# classes/entities.py

from typing import Annotated, Any, List, Literal, Optional, get_args

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictStr,
    ValidationError,
    WrapValidator,
    field_validator,
)


CardType = Literal["metric", "image", "testimonial", "chart-bar", "chart-ring", "chart-progress"]
CardCategory = Literal["market", "idea"]

ALLOWED_TYPES = get_args(CardType)
ALLOWED_CATEGORIES = get_args(CardCategory)


# -----------------------
# Cards as exchanged with the UI
# -----------------------

class CardDetail(BaseModel):
    title: str
    summary: str
    points: List[str] = Field(default_factory=list)
    source: str


class Card(BaseModel):
    id: str
    label: str
    value: str
    type: CardType
    category: CardCategory
    subcategory: str
    detail: CardDetail
    author: Optional[str] = None
    quote: Optional[str] = None


class Annotation(BaseModel):
    """A note the user pinned on a card. Read-only context for the prompt."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    card_id: str = Field("", alias="cardId")
    card_label: str = Field("", alias="cardLabel")
    card_value: str = Field("", alias="cardValue")
    selected_text: str = Field("", alias="selectedText")
    note: str = ""
    created_at: Optional[float] = Field(None, alias="createdAt")


class BaseCardSet(BaseModel):
    """The previously accepted response the user is refining."""

    model_config = ConfigDict(populate_by_name=True)

    ai_response: Optional[Any] = Field(None, alias="aiResponse")
    modified_idea: Optional[Any] = Field(None, alias="modifiedIdea")
    cards: List[Card] = Field(default_factory=list)

    @field_validator("cards", mode="before")
    @classmethod
    def _none_cards_to_empty(cls, value):
        return [] if value is None else value

    @field_validator("cards")
    @classmethod
    def _unique_ids(cls, cards: List[Card]) -> List[Card]:
        seen = set()
        duplicates = []
        for card in cards:
            if card.id in seen:
                duplicates.append(card.id)
            seen.add(card.id)
        if duplicates:
            raise ValueError(f"base.cards contains duplicate ids: {', '.join(duplicates)}")
        return cards

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class RevisionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    original_idea: Optional[str] = Field(None, alias="originalIdea")
    notes_text: Optional[str] = Field(None, alias="notesText")
    annotations: List[Annotation] = Field(default_factory=list)
    base: Optional[BaseCardSet] = None

    @field_validator("annotations", mode="before")
    @classmethod
    def _none_annotations_to_empty(cls, value):
        return [] if value is None else value

    @property
    def base_cards(self) -> List[Card]:
        return list(self.base.cards) if self.base else []

    @property
    def expected_ids(self) -> List[str]:
        return [c.id for c in self.base_cards]


class RevisionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ai_response: str = Field("", alias="aiResponse")
    modified_idea: str = Field("", alias="modifiedIdea")
    cards: List[Card] = Field(default_factory=list)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# -----------------------
# Lenient decoding of model output
# -----------------------
# Every field either validates or collapses to None, which the merge
# logic reads as "take the base card's value".

def _none_on_error(value, handler):
    try:
        return handler(value)
    except ValidationError:
        return None


def _coerce_points(value):
    if not isinstance(value, list):
        return None
    points = []
    for p in value:
        if p is None:
            continue
        text = p if isinstance(p, str) else str(p)
        if text:
            points.append(text)
    return points


LenientStr = Annotated[Optional[StrictStr], WrapValidator(_none_on_error)]
LenientPoints = Annotated[Optional[List[str]], BeforeValidator(_coerce_points)]


class CardDetailDraft(BaseModel):
    title: LenientStr = None
    summary: LenientStr = None
    points: LenientPoints = None
    source: LenientStr = None


class CardDraft(BaseModel):
    id: LenientStr = None
    label: LenientStr = None
    value: LenientStr = None
    type: Annotated[Optional[CardType], WrapValidator(_none_on_error)] = None
    category: Annotated[Optional[CardCategory], WrapValidator(_none_on_error)] = None
    subcategory: LenientStr = None
    detail: Annotated[Optional[CardDetailDraft], WrapValidator(_none_on_error)] = None
    author: LenientStr = None
    quote: LenientStr = None

    @classmethod
    def decode(cls, raw: Any) -> "CardDraft":
        if not isinstance(raw, dict):
            return cls()
        return cls.model_validate(raw)


class ModelReply(BaseModel):
    """Top-level shape of what the model returned: {aiResponse, modifiedIdea, cards}."""

    model_config = ConfigDict(populate_by_name=True)

    ai_response: Any = Field(None, alias="aiResponse")
    modified_idea: Any = Field(None, alias="modifiedIdea")
    cards: Annotated[Optional[List[Any]], WrapValidator(_none_on_error)] = None

    @property
    def has_cards(self) -> bool:
        return self.cards is not None

    def drafts(self) -> List[CardDraft]:
        return [CardDraft.decode(c) for c in self.cards or []]

    def card_ids(self) -> List[Optional[str]]:
        return [d.id for d in self.drafts()]
