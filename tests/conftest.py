import copy
import json

import pytest

from classes.settings import RefineSettings


BASE_CARDS = [
    {
        "id": "tam",
        "label": "Total addressable market",
        "value": "$4.2B",
        "type": "metric",
        "category": "market",
        "subcategory": "Market Sizing",
        "detail": {
            "title": "US Gen Z leisure travel spend",
            "summary": "Gen Z travellers spend heavily on short leisure trips.",
            "points": ["Spend grew 12% year over year", "Most trips are booked on mobile"],
            "source": "IBISWorld report (Jan 2026)",
        },
    },
    {
        "id": "pain",
        "label": "Planning pain",
        "value": "68%",
        "type": "chart-bar",
        "category": "idea",
        "subcategory": "Problem & Demand",
        "detail": {
            "title": "Trip planning is fragmented",
            "summary": "Most respondents juggle more than five tabs per trip.",
            "points": ["Price comparison is manual", "Itineraries live in screenshots"],
            "source": "Prior context",
        },
    },
    {
        "id": "voice",
        "label": "Customer voice",
        "value": "Early adopter",
        "type": "testimonial",
        "category": "idea",
        "subcategory": "Market Readiness & Validation",
        "detail": {
            "title": "What travellers say",
            "summary": "Users want one place to plan and book.",
            "points": ["Wants group planning"],
            "source": "Synthesis",
        },
        "author": "Maya, 23",
        "quote": "I spend hours comparing tabs before every trip.",
    },
]

ORIGINAL_IDEA = "A travel agency for Gen Z that plans and books trips end to end."


class ScriptedLlm:
    """Stands in for ChatLlmClient: returns (or raises) the scripted replies in order."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []
        self.last_usage = None

    def invoke_json(self, messages, *, schema=None):
        self.calls.append({"messages": list(messages), "schema": schema})
        if not self.replies:
            raise AssertionError("LLM called more often than scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return reply, {"output": []}


def rewrite_card(card, tag="v2"):
    out = copy.deepcopy(card)
    out["label"] = f"{card['label']} ({tag})"
    out["value"] = f"{card['value']} ({tag})"
    out["detail"]["title"] = f"{card['detail']['title']} ({tag})"
    out["detail"]["summary"] = f"{card['detail']['summary']} ({tag})"
    out["detail"]["points"] = [f"{p} ({tag})" for p in card["detail"]["points"]]
    return out


def model_reply(cards, ai="The idea now targets student groups. Planning is the wedge.", idea="A group trip planner for Gen Z students."):
    return {"aiResponse": ai, "modifiedIdea": idea, "cards": cards}


@pytest.fixture
def base_cards():
    return copy.deepcopy(BASE_CARDS)


@pytest.fixture
def request_payload(base_cards):
    return {
        "originalIdea": ORIGINAL_IDEA,
        "notesText": "Focus on students travelling in groups.",
        "annotations": [
            {
                "id": "n1",
                "cardId": "tam",
                "cardLabel": "Total addressable market",
                "cardValue": "$4.2B",
                "selectedText": "short leisure trips",
                "note": "Is this only domestic?",
                "createdAt": 1760000000000,
            }
        ],
        "base": {"aiResponse": "Prior summary.", "cards": base_cards},
    }


@pytest.fixture
def settings():
    return RefineSettings(api_key="test-key")


@pytest.fixture
def scripted_llm():
    return ScriptedLlm


@pytest.fixture
def rewrite():
    return rewrite_card


@pytest.fixture
def reply():
    return model_reply
