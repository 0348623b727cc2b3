# classes/settings.py

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


logger = logging.getLogger("idea_refine")

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MAX_OUTPUT_TOKENS = 6000
DEFAULT_TEMPERATURE = 0.2
DEFAULT_TIMEOUT_MS = 240000
DEFAULT_OUT_DIR = "data/refined"


def _positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _optional_float(raw: Optional[str], default: float) -> Optional[float]:
    if raw is None:
        return default
    raw = raw.strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric OPENAI_TEMPERATURE={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class RefineSettings:
    """
    Everything the reconciler needs from the outside world.
    Built once per request so nothing process-wide is mutated.
    """

    api_key: str = ""
    model: str = DEFAULT_MODEL
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    temperature: Optional[float] = DEFAULT_TEMPERATURE
    timeout_seconds: float = DEFAULT_TIMEOUT_MS / 1000.0
    save_refined_response: bool = False
    refine_out_dir: str = DEFAULT_OUT_DIR
    refine_out_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "RefineSettings":
        load_dotenv()
        return cls(
            api_key=(os.getenv("OPENAI_API_KEY") or "").strip(),
            model=(os.getenv("OPENAI_MODEL") or DEFAULT_MODEL).strip(),
            max_output_tokens=_positive_int(os.getenv("OPENAI_MAX_OUTPUT_TOKENS"), DEFAULT_MAX_OUTPUT_TOKENS),
            temperature=_optional_float(os.getenv("OPENAI_TEMPERATURE"), DEFAULT_TEMPERATURE),
            timeout_seconds=_positive_int(os.getenv("OPENAI_TIMEOUT_MS"), DEFAULT_TIMEOUT_MS) / 1000.0,
            save_refined_response=os.getenv("SAVE_REFINED_RESPONSE") == "1",
            refine_out_dir=os.getenv("REFINE_OUT_DIR") or DEFAULT_OUT_DIR,
            refine_out_path=os.getenv("REFINE_OUT_PATH") or None,
        )
