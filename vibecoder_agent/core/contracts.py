from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union


ToolName = Literal["list_files", "read_file", "write_file", "search_files", "run_checks"]


@dataclass(frozen=True)
class ToolCall:
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    # Provider-assigned id pairing a call with its result; empty for stubs.
    call_id: str = ""

    def signature(self) -> str:
        parts = []
        for k, v in self.args.items():
            if isinstance(v, str) and len(v) > 40:
                v = v[:40] + "..."
            parts.append(f"{k}={json.dumps(v, ensure_ascii=False)}")
        return f"{self.name}({', '.join(parts)})"


@dataclass(frozen=True)
class UserTurn:
    text: str


@dataclass(frozen=True)
class ModelTurn:
    text_fragments: tuple[str, ...] = ()
    tool_calls: tuple[ToolCall, ...] = ()

    @property
    def text(self) -> str:
        return "".join(self.text_fragments)


@dataclass(frozen=True)
class ToolResultTurn:
    name: str
    result: str
    call_id: str = ""


Turn = Union[UserTurn, ModelTurn, ToolResultTurn]


@dataclass(frozen=True)
class UsageMetadata:
    prompt_tokens: int = 0
    candidate_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class ModelResponse:
    """One model turn as returned by a ModelClient."""

    text_fragments: tuple[str, ...] = ()
    tool_calls: tuple[ToolCall, ...] = ()
    usage: Optional[UsageMetadata] = None

    def to_turn(self) -> ModelTurn:
        return ModelTurn(text_fragments=tuple(self.text_fragments), tool_calls=tuple(self.tool_calls))


@dataclass(frozen=True)
class VerificationResult:
    passed: bool
    diagnostics: tuple[str, ...] = ()

    @classmethod
    def from_diagnostics(cls, diagnostics: list[str]) -> "VerificationResult":
        return cls(passed=not diagnostics, diagnostics=tuple(diagnostics))
