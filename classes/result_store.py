# classes/result_store.py

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from classes.entities import RevisionResult
from classes.settings import RefineSettings


logger = logging.getLogger("idea_refine")


def refined_result_path(settings: RefineSettings, now: Optional[datetime] = None) -> str:
    if settings.refine_out_path:
        return settings.refine_out_path
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    return os.path.join(settings.refine_out_dir, f"apiResponse.refined.{timestamp}.json")


def save_refined_result(result: RevisionResult, settings: RefineSettings) -> Optional[str]:
    """
    Write the final result as JSON. Best effort: a read-only or missing
    filesystem is logged and reported as None, never raised.
    """
    out_path = refined_result_path(settings)
    try:
        out_abs = os.path.abspath(out_path)
        os.makedirs(os.path.dirname(out_abs), exist_ok=True)
        with open(out_abs, "w", encoding="utf-8") as f:
            json.dump(result.to_payload(), f, indent=2, ensure_ascii=False)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not save refined response to {out_path}: {e}")
        return None
    logger.info(f"Refined response saved to {out_path}")
    return out_path
