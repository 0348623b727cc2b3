# classes/base_utils.py

import json
import logging
import re

import commentjson
from json_repair import repair_json


logger = logging.getLogger("idea_refine")


class BaseUtils():

    # -----------------------
    # General Utils
    # -----------------------

    def clean_triple_backticks(self, code) -> str:
        pattern = r'```[a-zA-Z]*\s*|```\s*'
        return re.sub(pattern, '', code or '')

    def coerce_text(self, value) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, (dict, list)):
            return self.safe_json_dumps(value)
        return str(value)

    def scrub_surrogates(self, value):
        """Replace lone UTF-16 surrogates (from JSON escapes like \\ud800) so the value can be UTF-8 encoded."""
        if isinstance(value, str):
            return value.encode("utf-8", "replace").decode("utf-8")
        if isinstance(value, dict):
            return {self.scrub_surrogates(k): self.scrub_surrogates(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.scrub_surrogates(v) for v in value]
        return value

    def truncate(self, text: str, max_chars: int) -> str:
        if len(text) <= max_chars:
            return text
        return text[:max_chars] + "\n[truncated]"

    def safe_json_dumps(self, value) -> str:
        try:
            return json.dumps(value, indent=2, ensure_ascii=False)
        except (TypeError, ValueError):
            return ""

    def unsafe_string_format(self, dest_string, print_unused_keys_report=True, **kwargs):
        """
        Formats a destination string by replacing {KEY} placeholders with the values in kwargs.

        Unlike str.format it only touches the keys actually passed, so prompt templates can
        carry literal braces (JSON / TypeScript snippets) without escaping. Placeholders with
        no matching key are left in place and reported.
        """
        missing_keys = []

        def replacer(match):
            key = match.group(1)
            if key in kwargs:
                return str(kwargs[key])
            missing_keys.append(key)
            return match.group(0)

        pattern = re.compile(r'\{(\w+)\}')
        result = pattern.sub(replacer, dest_string)
        if missing_keys and print_unused_keys_report:
            logger.info(f"Missing keys within string-to-format in unsafe_string_format: {', '.join(missing_keys)}")
        return result

    # -----------------------
    # JSON recovery
    # -----------------------

    def load_fault_tolerant_json(self, json_str) -> dict:
        """
        Best-effort parse of a model answer that should be a single JSON object.

        1. strip markdown code fences, strict json
        2. commentjson (tolerates // and # comments)
        3. the slice between the first '{' and the last '}' (drops surrounding prose)
        4. json_repair on that slice

        Only a dict is accepted. Raises ValueError when nothing works; the caller decides
        whether to ask the LLM for a repair.
        """
        cleaned = self.clean_triple_backticks(json_str or "").strip()
        if not cleaned:
            raise ValueError("load_fault_tolerant_json: empty input")

        errors = []

        def load_json(candidate):
            try:
                data = json.loads(candidate)
            except ValueError as e:
                errors.append(str(e))
                try:
                    data = commentjson.loads(candidate)
                except Exception as e2:
                    errors.append(str(e2))
                    return None
            return data if isinstance(data, dict) else None

        data = load_json(cleaned)
        if data is not None:
            return data

        first = cleaned.find("{")
        last = cleaned.rfind("}")
        if first < 0 or last <= first:
            raise ValueError("load_fault_tolerant_json: No JSON object found in output")

        sliced = cleaned[first:last + 1]
        data = load_json(sliced)
        if data is not None:
            return data

        repaired = repair_json(sliced)
        data = load_json(repaired) if isinstance(repaired, str) and repaired else None
        if data is not None:
            logger.info("load_fault_tolerant_json: recovered model output with json_repair")
            return data

        raise ValueError(f"load_fault_tolerant_json: JSON parsing failed: {' | '.join(errors[-2:])}")
