# classes/utils.py

import re
from typing import Iterable, List, Optional, Sequence

from classes.base_utils import BaseUtils
from classes.entities import Annotation, Card, CardDetail, CardDraft


# Echo artifacts the model sometimes prepends ("Revised: Revised: $46.9B").
# Start of string only, applied until stable.
KNOWN_PREFIX_RE = re.compile(r"^\s*(?:updated|revised|reframed|rewritten|refined):\s*", re.IGNORECASE)

SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
WHITESPACE_RE = re.compile(r"\s+")

MAX_RESPONSE_SENTENCES = 3
MAX_POINTS_IN_OVERVIEW = 5


class Utils(BaseUtils):

    # -----------------------
    # Text normalization
    # -----------------------

    def strip_known_prefixes(self, text: str) -> str:
        out = text
        while True:
            stripped = KNOWN_PREFIX_RE.sub("", out, count=1)
            if stripped == out:
                return out
            out = stripped

    def normalize_comparable_text(self, value) -> str:
        text = self.strip_known_prefixes("" if value is None else str(value))
        return WHITESPACE_RE.sub(" ", text).strip().lower()

    def same_stringish(self, a, b) -> bool:
        return self.normalize_comparable_text(a) == self.normalize_comparable_text(b)

    def same_string_array(self, a, b) -> bool:
        if not isinstance(a, list) or not isinstance(b, list):
            return False
        if len(a) != len(b):
            return False
        return all(self.same_stringish(x, y) for x, y in zip(a, b))

    def limit_to_max_sentences(self, text: str, max_sentences: int = MAX_RESPONSE_SENTENCES) -> str:
        cleaned = (text or "").strip()
        if not cleaned:
            return ""
        parts = [p for p in SENTENCE_SPLIT_RE.split(cleaned) if p]
        if len(parts) <= max_sentences:
            return cleaned
        return " ".join(parts[:max_sentences]).strip()

    def normalize_ai_response(self, value) -> str:
        return self.limit_to_max_sentences(self.coerce_text(value), MAX_RESPONSE_SENTENCES)

    def normalize_modified_idea(self, value, original_idea: str) -> str:
        """
        Never empty. A no-op rewrite of the original is accepted as the
        prefix-stripped original rather than inventing a difference.
        """
        original = (original_idea or "").strip()
        fallback = self.strip_known_prefixes(original).strip() or original

        idea = self.coerce_text(value)
        if not idea.strip():
            idea = original
        idea = self.strip_known_prefixes(idea).strip()
        if not idea or self.same_stringish(idea, original):
            return fallback
        return idea

    # -----------------------
    # Card identity
    # -----------------------

    def same_id_set(self, expected: Sequence[str], returned: Sequence[Optional[str]]) -> bool:
        if len(expected) != len(returned):
            return False
        returned_set = set(returned)
        if len(returned_set) != len(returned):
            return False
        return returned_set == set(expected)

    def count_unchanged_card_text_fields(self, card: Card, base: Card) -> int:
        unchanged = 0
        if self.same_stringish(card.label, base.label):
            unchanged += 1
        if self.same_stringish(card.value, base.value):
            unchanged += 1
        if self.same_stringish(card.detail.title, base.detail.title):
            unchanged += 1
        if self.same_stringish(card.detail.summary, base.detail.summary):
            unchanged += 1
        if self.same_string_array(card.detail.points, base.detail.points):
            unchanged += 1
        return unchanged

    # -----------------------
    # Card merging
    # -----------------------

    def sanitize_card_against_base(self, draft: CardDraft, base: Card) -> Card:
        """Field-by-field merge: whatever the model got wrong comes from the base card."""
        detail = draft.detail
        return Card(
            id=base.id,
            label=draft.label if draft.label is not None else base.label,
            value=draft.value if draft.value is not None else base.value,
            type=draft.type or base.type,
            category=draft.category or base.category,
            subcategory=draft.subcategory if draft.subcategory is not None else base.subcategory,
            detail=CardDetail(
                title=detail.title if detail and detail.title is not None else base.detail.title,
                summary=detail.summary if detail and detail.summary is not None else base.detail.summary,
                points=detail.points if detail and detail.points is not None else list(base.detail.points),
                source=detail.source if detail and detail.source is not None else base.detail.source,
            ),
            author=draft.author if draft.author is not None else base.author,
            quote=draft.quote if draft.quote is not None else base.quote,
        )

    def strip_card_prefixes(self, card: Card) -> Card:
        strip = self.strip_known_prefixes
        return card.model_copy(
            update={
                "label": strip(card.label),
                "value": strip(card.value),
                "detail": CardDetail(
                    title=strip(card.detail.title),
                    summary=strip(card.detail.summary),
                    points=[strip(p) for p in card.detail.points],
                    source=strip(card.detail.source),
                ),
                "author": strip(card.author) if card.author is not None else None,
                "quote": strip(card.quote) if card.quote is not None else None,
            }
        )

    # -----------------------
    # Prompt context
    # -----------------------

    def format_base_cards(self, cards: Iterable[Card]) -> str:
        lines: List[str] = []
        for c in cards:
            points_inline = " | ".join(c.detail.points[:MAX_POINTS_IN_OVERVIEW])
            lines.append(
                f"- [{c.category} / {c.subcategory}] {c.label}: {c.value}\n"
                f"  Summary: {c.detail.summary}\n"
                f"  Evidence: {points_inline}\n"
                f"  Source: {c.detail.source}"
            )
        return "\n".join(lines) if lines else "(no base cards provided)"

    def format_user_notes(self, notes_text: Optional[str], annotations: Iterable[Annotation]) -> str:
        safe_notes = (notes_text or "").strip()
        annotations = list(annotations or [])

        parts = ["User notes (verbatim):", safe_notes or "(none)", "", "User annotations (verbatim, structured):"]
        if not annotations:
            parts.append("(none)")
        for a in annotations:
            parts.append(
                f"- Card: {a.card_label} ({a.card_value})\n"
                f"  Selected: \"{a.selected_text}\"\n"
                f"  Note: {a.note or '(empty)'}"
            )
        return "\n".join(parts)
