import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI, OpenAIError
from langchain_core.messages import AIMessage, BaseMessage, SystemMessage

from classes.errors import UpstreamError
from classes.model_props import parse_model_name
from classes.response_schema import JSON_OBJECT_FORMAT, json_schema_format


logger = logging.getLogger("idea_refine")


def extract_output_text(response_json: Dict[str, Any]) -> str:
    """
    Text of the first message item in a Responses API payload.
    An output_json part is serialized back to JSON text.
    """
    output = response_json.get("output") if isinstance(response_json, dict) else None
    for item in output if isinstance(output, list) else []:
        if not isinstance(item, dict) or item.get("type") != "message":
            continue
        content = item.get("content")
        for part in content if isinstance(content, list) else []:
            if not isinstance(part, dict):
                continue
            if part.get("type") == "output_text" and isinstance(part.get("text"), str):
                return part["text"]
            if part.get("type") == "output_json":
                json_val = part.get("json", part.get("data"))
                if json_val is not None:
                    return json.dumps(json_val, indent=2)
    return ""


class BaseLlmClient:
    """
    Usage accounting shared by every call of one client.
    """

    last_usage: Optional[Dict[str, int]]

    def _merge_usage(self, resp: Any) -> None:
        usage = getattr(resp, "usage", None)
        if usage is None:
            return
        details = getattr(usage, "input_tokens_details", None)
        inc = {
            "prompt_token_count": getattr(usage, "input_tokens", 0) or 0,
            "candidates_token_count": getattr(usage, "output_tokens", 0) or 0,
            "total_token_count": getattr(usage, "total_tokens", 0) or 0,
            "cached_content_token_count": (getattr(details, "cached_tokens", 0) or 0) if details else 0,
        }
        if self.last_usage is None:
            self.last_usage = inc
            return
        for k, v in inc.items():
            self.last_usage[k] = (self.last_usage.get(k, 0) or 0) + (v or 0)


class ChatLlmClient(BaseLlmClient):
    """
    Chat-style wrapper over the OpenAI Responses API that always asks for JSON:

        text, raw = chat_llm.invoke_json([HumanMessage(...), AIMessage(...), ...], schema=schema)

    - With a schema the request uses text.format=json_schema; if the API rejects that
      with a 400 the same messages are sent once more with text.format=json_object.
    - Every SDK failure surfaces as UpstreamError. The SDK runs with max_retries=0:
      retrying is the caller's decision, never a silent one.
    """

    def __init__(
        self,
        model_name: str,
        *,
        api_key: str,
        timeout: float | None = None,
        max_output_tokens: int = 6000,
        temperature: float | None = 0.2,
        client: Any = None,
    ):
        self.model = parse_model_name(model_name)
        self.model_name = self.model.name
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature if self.model.accepts_temperature else None
        self.last_usage: Optional[Dict[str, int]] = None

        if client is None:
            client_kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
            if timeout is not None:
                client_kwargs["timeout"] = timeout
            client = OpenAI(**client_kwargs)
        self._client = client

    def _to_openai_messages(self, messages: List[BaseMessage]) -> List[Dict[str, str]]:
        out: List[Dict[str, str]] = []
        for m in messages:
            if isinstance(m, SystemMessage):
                role = "developer"
            elif isinstance(m, AIMessage):
                role = "assistant"
            else:
                role = "user"
            out.append({"role": role, "content": str(m.content)})
        return out

    def _request_body(self, messages: List[BaseMessage], text_format: Dict[str, Any]) -> Dict[str, Any]:
        params = self.model.request_params()
        text_params = dict(params.pop("text", {}))
        text_params["format"] = text_format
        body: Dict[str, Any] = {
            "model": self.model_name,
            "input": self._to_openai_messages(messages),
            "max_output_tokens": self.max_output_tokens,
            "text": text_params,
            **params,
        }
        if self.temperature is not None:
            body["temperature"] = self.temperature
        return body

    def _invoke_once(self, messages: List[BaseMessage], text_format: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        Single HTTP call; SDK exceptions are translated to UpstreamError.
        """
        try:
            resp = self._client.responses.create(**self._request_body(messages, text_format))
        except APIStatusError as e:
            reason = getattr(e.response, "reason_phrase", "") or ""
            raw = getattr(e.response, "text", None)
            raise UpstreamError(
                f"OpenAI API error: {e.status_code} {reason}".strip(),
                raw=raw,
                upstream_status=e.status_code,
            ) from e
        except APITimeoutError as e:
            raise UpstreamError(f"OpenAI request timed out: {e}") from e
        except APIConnectionError as e:
            raise UpstreamError(f"OpenAI request failed: {e}") from e
        except OpenAIError as e:
            raise UpstreamError(f"OpenAI request failed: {e}") from e

        self._merge_usage(resp)
        data = resp.model_dump() if hasattr(resp, "model_dump") else dict(resp)
        return extract_output_text(data).strip(), data

    def invoke_json(
        self,
        messages: List[BaseMessage],
        *,
        schema: Optional[Dict[str, Any]] = None,
    ) -> Tuple[str, Dict[str, Any]]:
        """
        Returns (output_text, raw_response_dict). output_text may be empty.
        """
        if schema is not None:
            try:
                return self._invoke_once(messages, json_schema_format(schema))
            except UpstreamError as e:
                if e.upstream_status != 400:
                    raise
                logger.info(f"json_schema output rejected by the API ({e.message}); retrying with json_object")
        return self._invoke_once(messages, JSON_OBJECT_FORMAT)
