# classes/refine_reconciler.py

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from pydantic import ValidationError

from classes.entities import Card, CardDraft, ModelReply, RevisionRequest, RevisionResult
from classes.errors import (
    RAW_EXCERPT_CHARS,
    ConfigurationError,
    InvalidRequestError,
    ModelOutputError,
    UpstreamError,
)
from classes.llm_client import ChatLlmClient
from classes.refine_prompts import ID_REPAIR_PROMPT, JSON_REPAIR_PROMPT, REFINE_PROMPT, REWRITE_PROMPT
from classes.response_schema import build_response_schema
from classes.result_store import save_refined_result
from classes.settings import RefineSettings
from classes.utils import Utils


logger = logging.getLogger("idea_refine")

BASE_TEXT_LIMIT = 14000
BASE_JSON_LIMIT = 14000
USER_NOTES_LIMIT = 7000
REPAIR_CONTEXT_LIMIT = 12000

DEGRADED_WARNING = "Model did not return valid JSON; cards left unchanged."


class RefineState(str, Enum):
    INITIAL = "initial"
    JSON_REPAIR = "json_repair"
    ID_REPAIR = "id_repair"
    REWRITE_REPAIR = "rewrite_repair"
    DONE = "done"


@dataclass
class RefineRun:
    """Mutable state of one refine invocation. Never shared between requests."""

    request: RevisionRequest
    base_cards: List[Card]
    expected_ids: List[str]
    prompt: str
    schema: dict
    raw_text: str = ""
    parsed: Optional[Dict[str, Any]] = None
    reply: Optional[ModelReply] = None
    result: Optional[RevisionResult] = None
    warning: Optional[str] = None
    raw_excerpt: Optional[str] = None
    calls: int = 0
    trail: List[RefineState] = field(default_factory=list)

    @property
    def base_by_id(self) -> Dict[str, Card]:
        return {c.id: c for c in self.base_cards}


@dataclass
class RefineOutcome:
    result: RevisionResult
    saved_to: Optional[str] = None
    warning: Optional[str] = None
    raw: Optional[str] = None

    def to_payload(self) -> dict:
        payload = {"ok": True, "apiResponse": self.result.to_payload(), "savedTo": self.saved_to}
        if self.warning:
            payload["warning"] = self.warning
        if self.raw is not None:
            payload["raw"] = self.raw
        return payload


class RefineReconciler(Utils):
    """
    Turns a RevisionRequest into a RevisionResult that is structurally
    compatible with the base card set, whatever the model answers.

    Pipeline (one state per outbound call):

        INITIAL --parse fails--> JSON_REPAIR --still fails--> DONE (degraded: base cards)
           |                        |
           +--wrong ids---------> ID_REPAIR --(merge onto base if still wrong)
           |                        |
           +--text unchanged----> REWRITE_REPAIR --> DONE

    The INITIAL call fails the request on an upstream error, empty output or JSON
    without 'cards'. A JSON repair reply without 'cards' fails it too. Every other
    corrective failure keeps the best result so far.
    """

    def __init__(self, settings: RefineSettings, llm: Optional[ChatLlmClient] = None):
        self.settings = settings
        self.llm = llm
        self._steps: Dict[RefineState, Callable[[RefineRun], RefineState]] = {
            RefineState.INITIAL: self._step_initial,
            RefineState.JSON_REPAIR: self._step_json_repair,
            RefineState.ID_REPAIR: self._step_id_repair,
            RefineState.REWRITE_REPAIR: self._step_rewrite_repair,
        }

    # -----------------------
    # Entry point
    # -----------------------

    def refine(self, request: RevisionRequest) -> RefineOutcome:
        if not self.settings.api_key:
            raise ConfigurationError("Missing OPENAI_API_KEY on server")
        if not (request.original_idea or "").strip():
            raise InvalidRequestError("originalIdea is required")

        if self.llm is None:
            self.llm = self._build_llm()

        self.llm.last_usage = None
        run = self._start_run(request)
        state = RefineState.INITIAL
        while state is not RefineState.DONE:
            run.trail.append(state)
            logger.debug(f"refine: entering {state.value} (calls so far: {run.calls})")
            state = self._steps[state](run)

        logger.info(
            f"refine: done after {run.calls} call(s) via {' -> '.join(s.value for s in run.trail)}; "
            f"usage={getattr(self.llm, 'last_usage', None)}"
        )

        saved_to = None
        if self.settings.save_refined_response:
            saved_to = save_refined_result(run.result, self.settings)

        return RefineOutcome(result=run.result, saved_to=saved_to, warning=run.warning, raw=run.raw_excerpt)

    def _build_llm(self) -> ChatLlmClient:
        try:
            return ChatLlmClient(
                self.settings.model,
                api_key=self.settings.api_key,
                timeout=self.settings.timeout_seconds,
                max_output_tokens=self.settings.max_output_tokens,
                temperature=self.settings.temperature,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid OPENAI_MODEL: {e}") from e

    def _start_run(self, request: RevisionRequest) -> RefineRun:
        expected_ids = request.expected_ids
        return RefineRun(
            request=request,
            base_cards=request.base_cards,
            expected_ids=expected_ids,
            prompt=self.build_prompt(request),
            schema=build_response_schema(expected_ids),
        )

    def build_prompt(self, request: RevisionRequest) -> str:
        base_text = self.truncate(self.format_base_cards(request.base_cards), BASE_TEXT_LIMIT)
        user_text = self.truncate(self.format_user_notes(request.notes_text, request.annotations), USER_NOTES_LIMIT)
        base_json = self.truncate(
            self.safe_json_dumps(request.base.to_payload() if request.base else {}),
            BASE_JSON_LIMIT,
        )
        return self.unsafe_string_format(
            REFINE_PROMPT,
            BASE_TEXT=base_text,
            BASE_JSON=base_json,
            USER_TEXT=user_text,
            ORIGINAL_IDEA=(request.original_idea or "").strip(),
            CARD_COUNT=len(request.expected_ids),
            REQUIRED_IDS=", ".join(request.expected_ids) or "(none)",
        )

    # -----------------------
    # States
    # -----------------------

    def _step_initial(self, run: RefineRun) -> RefineState:
        text, data = self._call(run, [HumanMessage(content=run.prompt)])
        if not text:
            raise UpstreamError("No output text returned from model", raw=self.safe_json_dumps(data))

        run.raw_text = text
        try:
            run.parsed, run.reply = self._parse_reply(text)
        except ValueError as e:
            logger.info(f"Initial output is not valid JSON ({e}); asking for a repair")
            return RefineState.JSON_REPAIR

        if not run.reply.has_cards:
            raise ModelOutputError(
                "Model JSON missing required 'cards' array",
                raw=self.safe_json_dumps(run.parsed),
            )
        return self._route_parsed(run)

    def _step_json_repair(self, run: RefineRun) -> RefineState:
        messages = self._follow_up(run, run.raw_text, JSON_REPAIR_PROMPT)
        try:
            text, _ = self._call(run, messages)
            parsed, reply = self._parse_reply(text)
        except Exception:
            logger.warning("JSON repair call failed; returning the base cards unchanged", exc_info=True)
            return self._degrade(run)

        if not reply.has_cards:
            raise ModelOutputError(
                "Model JSON missing required 'cards' array",
                raw=self.safe_json_dumps(parsed),
            )

        run.raw_text, run.parsed, run.reply = text, parsed, reply
        return self._route_parsed(run)

    def _step_id_repair(self, run: RefineRun) -> RefineState:
        directive = self.unsafe_string_format(
            ID_REPAIR_PROMPT,
            CARD_COUNT=len(run.expected_ids),
            REQUIRED_IDS=", ".join(run.expected_ids),
        )
        messages = self._follow_up(run, self.safe_json_dumps(run.parsed), directive)
        try:
            text, _ = self._call(run, messages)
            parsed, reply = self._parse_reply(text)
            if reply.has_cards:
                run.raw_text, run.parsed, run.reply = text, parsed, reply
            else:
                logger.info("Card id repair output has no 'cards' array; keeping the previous output")
        except Exception:
            logger.warning("Card id repair call failed; merging onto the base card set", exc_info=True)

        if not self.same_id_set(run.expected_ids, run.reply.card_ids()):
            logger.info(
                f"Card ids still differ after repair ({run.reply.card_ids()} vs {run.expected_ids}); "
                "merging onto the base card set"
            )
        return self._accept_reply(run)

    def _step_rewrite_repair(self, run: RefineRun) -> RefineState:
        directive = self.unsafe_string_format(
            REWRITE_PROMPT,
            CURRENT_JSON=self.truncate(self.safe_json_dumps(run.result.to_payload()), REPAIR_CONTEXT_LIMIT),
        )
        messages = self._follow_up(run, run.raw_text, directive)
        try:
            text, _ = self._call(run, messages)
            _, reply = self._parse_reply(text)
        except Exception:
            logger.warning("Rewrite call failed; keeping the previous result", exc_info=True)
            return RefineState.DONE

        if reply.has_cards and self.same_id_set(run.expected_ids, reply.card_ids()):
            run.result = self._build_result(run, reply)
        else:
            logger.info("Rewrite output changed the card set; keeping the previous result")
        return RefineState.DONE

    # -----------------------
    # Transitions
    # -----------------------

    def _route_parsed(self, run: RefineRun) -> RefineState:
        if run.expected_ids and not self.same_id_set(run.expected_ids, run.reply.card_ids()):
            return RefineState.ID_REPAIR
        return self._accept_reply(run)

    def _accept_reply(self, run: RefineRun) -> RefineState:
        run.result = self._build_result(run, run.reply)
        unchanged = self._unchanged_field_total(run)
        if unchanged > 0:
            logger.info(f"{unchanged} card text field(s) identical to the base; asking for a rewrite")
            return RefineState.REWRITE_REPAIR
        return RefineState.DONE

    def _degrade(self, run: RefineRun) -> RefineState:
        run.result = RevisionResult(
            ai_response=self.limit_to_max_sentences(run.raw_text),
            modified_idea=run.request.original_idea,
            cards=list(run.base_cards),
        )
        run.warning = DEGRADED_WARNING
        run.raw_excerpt = run.raw_text[:RAW_EXCERPT_CHARS]
        return RefineState.DONE

    # -----------------------
    # Helpers
    # -----------------------

    def _call(self, run: RefineRun, messages: List[BaseMessage]) -> Tuple[str, Dict[str, Any]]:
        run.calls += 1
        text, data = self.llm.invoke_json(messages, schema=run.schema)
        return self.scrub_surrogates(text), data

    def _follow_up(self, run: RefineRun, previous_output: str, directive: str) -> List[BaseMessage]:
        return [
            HumanMessage(content=run.prompt),
            AIMessage(content=self.truncate(previous_output or "", REPAIR_CONTEXT_LIMIT)),
            HumanMessage(content=directive),
        ]

    def _parse_reply(self, text: str) -> Tuple[Dict[str, Any], ModelReply]:
        parsed = self.scrub_surrogates(self.load_fault_tolerant_json(text))
        return parsed, ModelReply.model_validate(parsed)

    def _build_result(self, run: RefineRun, reply: ModelReply) -> RevisionResult:
        if run.expected_ids:
            cards = self._merge_onto_base(run, reply)
        else:
            cards = self._decode_free_cards(reply)
        return RevisionResult(
            ai_response=self.normalize_ai_response(reply.ai_response),
            modified_idea=self.normalize_modified_idea(reply.modified_idea, run.request.original_idea),
            cards=cards,
        )

    def _merge_onto_base(self, run: RefineRun, reply: ModelReply) -> List[Card]:
        drafts: Dict[str, CardDraft] = {}
        for draft in reply.drafts():
            if draft.id is not None:
                drafts.setdefault(draft.id, draft)

        base_by_id = run.base_by_id
        return [
            self.strip_card_prefixes(self.sanitize_card_against_base(drafts.get(card_id, CardDraft()), base_by_id[card_id]))
            for card_id in run.expected_ids
        ]

    def _decode_free_cards(self, reply: ModelReply) -> List[Card]:
        """No base set: keep the model's cards that validate, first occurrence of each id."""
        cards: List[Card] = []
        seen = set()
        for raw in reply.cards or []:
            try:
                card = Card.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Dropping invalid card from model output: {e.error_count()} error(s)")
                continue
            if card.id in seen:
                logger.warning(f"Dropping duplicate card id from model output: {card.id}")
                continue
            seen.add(card.id)
            cards.append(self.strip_card_prefixes(card))
        return cards

    def _unchanged_field_total(self, run: RefineRun) -> int:
        if not run.expected_ids:
            return 0
        base_by_id = run.base_by_id
        total = 0
        for card in run.result.cards:
            base = base_by_id.get(card.id)
            if base is not None:
                total += self.count_unchanged_card_text_fields(card, base)
        return total
