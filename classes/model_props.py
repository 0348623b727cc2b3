# classes/model_props.py

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


VERBOSITY_TOKENS = ("low", "medium", "high")
REASONING_TOKENS = ("none", "minimal", "low", "medium", "high")
SERVICE_TIER_TOKENS = ("auto", "default", "flex", "priority")

REASONING_MODEL_PREFIXES = ("gpt-5", "o1", "o3", "o4")

# preset -> (verbosity, reasoning_effort, service_tier)
PRESETS: Dict[str, Tuple[Optional[str], Optional[str], Optional[str]]] = {
    "standard": ("low", "low", None),
    "std": ("low", "low", None),
    "fast": ("low", "none", None),
    "deep": ("medium", "high", None),
    "standard-flex": ("low", "low", "flex"),
    "fast-flex": ("low", "none", "flex"),
}


def is_reasoning_model(model_name: str) -> bool:
    return (model_name or "").startswith(REASONING_MODEL_PREFIXES)


@dataclass(frozen=True)
class ModelChoice:
    """A model plus the optional Responses API knobs requested through OPENAI_MODEL suffixes."""

    name: str
    verbosity: Optional[str] = None
    reasoning_effort: Optional[str] = None
    service_tier: Optional[str] = None

    @property
    def accepts_temperature(self) -> bool:
        return not is_reasoning_model(self.name)

    def request_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if self.verbosity:
            params["text"] = {"verbosity": self.verbosity}
        if self.reasoning_effort:
            params["reasoning"] = {"effort": self.reasoning_effort}
        if self.service_tier:
            params["service_tier"] = self.service_tier
        return params


def parse_model_name(raw: str) -> ModelChoice:
    """Read an OPENAI_MODEL value.

        'gpt-4o-mini'            -> ModelChoice('gpt-4o-mini')
        'gpt-5.1_fast'           -> verbosity=low, reasoning_effort=none
        'gpt-5.1_medium_high'    -> verbosity=medium, reasoning_effort=high
        'gpt-5.1_standard-flex'  -> also service_tier=flex

    A bare token fills the first free slot it fits, in verbosity / reasoning / tier
    order. Values already set (by an earlier token or preset) are never overwritten.
    Unknown tokens raise ValueError.
    """
    name, *tokens = (raw or "").strip().split("_")
    if not name:
        raise ValueError("parse_model_name: No Model Name passed.")

    slots: Dict[str, Optional[str]] = {"verbosity": None, "reasoning_effort": None, "service_tier": None}
    allowed = (
        ("verbosity", VERBOSITY_TOKENS),
        ("reasoning_effort", REASONING_TOKENS),
        ("service_tier", SERVICE_TIER_TOKENS),
    )

    unknown = []
    for token in (t.strip().lower() for t in tokens):
        if not token:
            continue
        if token in PRESETS:
            for slot, value in zip(("verbosity", "reasoning_effort", "service_tier"), PRESETS[token]):
                slots[slot] = slots[slot] or value
            continue
        slot = next((s for s, values in allowed if slots[s] is None and token in values), None)
        if slot is None:
            unknown.append(token)
        else:
            slots[slot] = token

    if unknown:
        raise ValueError(f"parse_model_name: Unknown model suffix token(s) {unknown} in '{raw}'.")
    return ModelChoice(name=name, **slots)
