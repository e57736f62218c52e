from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional, Protocol, Sequence

from vibecoder_agent.core.contracts import (
    ModelResponse,
    ModelTurn,
    ToolCall,
    ToolResultTurn,
    Turn,
    UsageMetadata,
    UserTurn,
)
from vibecoder_agent.core.errors import ModelRequestError


logger = logging.getLogger("vibecoder_agent.llm")


class ModelClient(Protocol):
    def request(
        self,
        history: Sequence[Turn],
        system_instruction: str,
        tools: list[dict[str, Any]],
        thinking_budget: Optional[int],
        timeout: Optional[float],
        model: Optional[str] = None,
    ) -> ModelResponse: ...


def effort_for_budget(budget: int) -> str:
    """Map a thinking token budget onto a Responses API reasoning effort."""
    if budget <= 2048:
        return "low"
    if budget <= 8192:
        return "medium"
    return "high"


def render_history(history: Sequence[Turn]) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for turn in history:
        if isinstance(turn, UserTurn):
            items.append({"role": "user", "content": turn.text})
        elif isinstance(turn, ModelTurn):
            if turn.text:
                items.append({"role": "assistant", "content": turn.text})
            for call in turn.tool_calls:
                items.append(
                    {
                        "type": "function_call",
                        "call_id": call.call_id,
                        "name": call.name,
                        "arguments": json.dumps(call.args),
                    }
                )
        elif isinstance(turn, ToolResultTurn):
            items.append(
                {"type": "function_call_output", "call_id": turn.call_id, "output": turn.result}
            )
    return items


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw or "{}")
    except (TypeError, ValueError):
        # Unparseable arguments surface as a missing-argument tool error.
        logger.warning("unparseable tool arguments: %r", str(raw)[:200])
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_response(response: Any) -> ModelResponse:
    """Extract text fragments, tool calls and usage from a Responses API result."""
    fragments: list[str] = []
    calls: list[ToolCall] = []

    for item in _get(response, "output") or []:
        kind = _get(item, "type")
        if kind == "message":
            for part in _get(item, "content") or []:
                text = _get(part, "text")
                if isinstance(text, str) and text:
                    fragments.append(text)
        elif kind == "function_call":
            calls.append(
                ToolCall(
                    name=str(_get(item, "name") or ""),
                    args=_parse_arguments(_get(item, "arguments")),
                    call_id=str(_get(item, "call_id") or ""),
                )
            )

    usage = None
    raw_usage = _get(response, "usage")
    if raw_usage is not None:

        def get(k: str) -> int:
            return int(_get(raw_usage, k) or 0)

        usage = UsageMetadata(
            prompt_tokens=get("input_tokens"),
            candidate_tokens=get("output_tokens"),
            total_tokens=get("total_tokens") or get("input_tokens") + get("output_tokens"),
        )

    return ModelResponse(text_fragments=tuple(fragments), tool_calls=tuple(calls), usage=usage)


class OpenAIModelClient:
    """Model client backed by the OpenAI Responses API with function tools."""

    def __init__(self, default_model: str, *, base_url: str | None = None) -> None:
        self.default_model = default_model
        self._base_url = base_url

        self.calls = 0
        self.input_tokens = 0
        self.output_tokens = 0

        # Monitoring hook: how often each model was used.
        self.models_used: dict[str, int] = {}

    def is_configured(self) -> bool:
        return bool(os.getenv("OPENAI_API_KEY"))

    def request(
        self,
        history: Sequence[Turn],
        system_instruction: str,
        tools: list[dict[str, Any]],
        thinking_budget: Optional[int],
        timeout: Optional[float],
        model: Optional[str] = None,
    ) -> ModelResponse:
        use_model = model or self.default_model
        self.models_used[use_model] = self.models_used.get(use_model, 0) + 1

        if not self.is_configured():
            raise ModelRequestError(code="E_NO_API_KEY", message="OPENAI_API_KEY is not set")

        import openai
        from openai import OpenAI  # type: ignore

        client = OpenAI(base_url=self._base_url) if self._base_url else OpenAI()

        kwargs: dict[str, Any] = {}
        if thinking_budget is not None:
            kwargs["reasoning"] = {"effort": effort_for_budget(thinking_budget)}
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = client.responses.create(
                model=use_model,
                instructions=system_instruction,
                input=render_history(history),
                tools=tools,
                **kwargs,
            )
        except openai.APITimeoutError as e:
            raise ModelRequestError(code="E_MODEL_TIMEOUT", message=str(e)) from e
        except openai.OpenAIError as e:
            raise ModelRequestError(code="E_MODEL_REQUEST", message=str(e)) from e

        self.calls += 1
        parsed = parse_response(response)
        if parsed.usage is not None:
            self.input_tokens += parsed.usage.prompt_tokens
            self.output_tokens += parsed.usage.candidate_tokens
        return parsed
