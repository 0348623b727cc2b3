# classes/response_schema.py

import copy
from typing import Sequence

from classes.entities import ALLOWED_CATEGORIES, ALLOWED_TYPES


SCHEMA_NAME = "RefinedApiResponse"

RESPONSE_JSON_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "required": ["aiResponse", "modifiedIdea", "cards"],
    "properties": {
        # short for the UI: 3 sentences
        "aiResponse": {"type": "string", "maxLength": 500},
        "modifiedIdea": {"type": "string"},
        "cards": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["id", "label", "value", "type", "category", "subcategory", "detail"],
                "properties": {
                    "id": {"type": "string"},
                    "label": {"type": "string"},
                    "value": {"type": "string"},
                    "type": {"type": "string", "enum": list(ALLOWED_TYPES)},
                    "category": {"type": "string", "enum": list(ALLOWED_CATEGORIES)},
                    "subcategory": {"type": "string"},
                    "detail": {
                        "type": "object",
                        "additionalProperties": False,
                        "required": ["title", "summary", "points", "source"],
                        "properties": {
                            "title": {"type": "string"},
                            "summary": {"type": "string"},
                            "points": {"type": "array", "items": {"type": "string"}},
                            "source": {"type": "string"},
                        },
                    },
                    "author": {"type": "string"},
                    "quote": {"type": "string"},
                },
            },
        },
    },
}


def build_response_schema(expected_ids: Sequence[str]) -> dict:
    """
    Copy of RESPONSE_JSON_SCHEMA pinned to the base card set: exact card count
    and an enum of the allowed ids. Without a base set the schema is returned as is.
    """
    schema = copy.deepcopy(RESPONSE_JSON_SCHEMA)
    if expected_ids:
        cards = schema["properties"]["cards"]
        cards["minItems"] = len(expected_ids)
        cards["maxItems"] = len(expected_ids)
        cards["items"]["properties"]["id"] = {"type": "string", "enum": list(expected_ids)}
    return schema


def json_schema_format(schema: dict) -> dict:
    return {"type": "json_schema", "name": SCHEMA_NAME, "schema": schema}


JSON_OBJECT_FORMAT = {"type": "json_object"}
