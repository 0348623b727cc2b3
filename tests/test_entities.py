import pytest
from pydantic import ValidationError

from classes.entities import BaseCardSet, Card, CardDraft, ModelReply, RevisionRequest, RevisionResult
from classes.response_schema import RESPONSE_JSON_SCHEMA, build_response_schema


def test_revision_request_reads_camel_case(request_payload):
    request = RevisionRequest.model_validate(request_payload)

    assert request.original_idea == request_payload["originalIdea"]
    assert request.annotations[0].card_id == "tam"
    assert request.annotations[0].selected_text == "short leisure trips"
    assert request.expected_ids == ["tam", "pain", "voice"]


def test_revision_request_tolerates_missing_optional_parts():
    request = RevisionRequest.model_validate({"originalIdea": "x", "annotations": None, "base": {"cards": None}})

    assert request.annotations == []
    assert request.base_cards == []
    assert request.expected_ids == []


def test_duplicate_base_ids_are_rejected(base_cards):
    with pytest.raises(ValidationError) as excinfo:
        BaseCardSet.model_validate({"cards": [base_cards[0], base_cards[0]]})

    assert "duplicate ids: tam" in str(excinfo.value)


def test_base_card_with_unknown_type_is_rejected(base_cards):
    base_cards[0]["type"] = "pie"
    with pytest.raises(ValidationError):
        RevisionRequest.model_validate({"originalIdea": "x", "base": {"cards": base_cards}})


def test_result_payload_uses_wire_names(base_cards):
    result = RevisionResult(ai_response="Short.", modified_idea="Idea.", cards=[Card.model_validate(base_cards[0])])
    payload = result.to_payload()

    assert payload["aiResponse"] == "Short."
    assert payload["modifiedIdea"] == "Idea."
    assert "author" not in payload["cards"][0]
    assert payload["cards"][0] == base_cards[0]


def test_card_draft_drops_invalid_fields():
    draft = CardDraft.decode({
        "id": "tam",
        "label": 7,
        "type": "pie",
        "category": "market",
        "detail": {"title": None, "summary": "ok", "points": "not a list"},
    })

    assert draft.id == "tam"
    assert draft.label is None
    assert draft.type is None
    assert draft.category == "market"
    assert draft.detail.title is None
    assert draft.detail.summary == "ok"
    assert draft.detail.points is None


@pytest.mark.parametrize("raw", [None, "card", 3, ["tam"]])
def test_card_draft_from_non_object_is_empty(raw):
    assert CardDraft.decode(raw) == CardDraft()


def test_model_reply_cards_must_be_a_list():
    assert not ModelReply.model_validate({"cards": "nope"}).has_cards
    assert not ModelReply.model_validate({}).has_cards
    reply = ModelReply.model_validate({"cards": [{"id": "a"}, "junk", {"id": 3}]})
    assert reply.has_cards
    assert reply.card_ids() == ["a", None, None]


def test_response_schema_is_pinned_to_ids_without_touching_the_template():
    schema = build_response_schema(["a", "b"])

    assert schema["properties"]["cards"]["items"]["properties"]["id"]["enum"] == ["a", "b"]
    assert schema["properties"]["cards"]["minItems"] == 2
    assert "minItems" not in RESPONSE_JSON_SCHEMA["properties"]["cards"]
    assert "enum" not in RESPONSE_JSON_SCHEMA["properties"]["cards"]["items"]["properties"]["id"]
