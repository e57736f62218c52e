from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AgentError(Exception):
    """Base error envelope. Tool-level errors are turned into tool results, not raised to callers."""

    code: str
    message: str
    tool: Optional[str] = None

    def __str__(self) -> str:
        loc = self.tool or "<agent>"
        return f"{loc}: {self.code}: {self.message}"


class ToolValidationError(AgentError):
    pass


class UnknownToolError(AgentError):
    pass


class ModelRequestError(AgentError):
    pass


class SnapshotError(AgentError):
    pass
