"""Events emitted by the agent loop to its caller.

The loop yields these in order; the stream always ends with exactly one
DoneEvent.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Literal, Union

from vibecoder_agent.core.contracts import UsageMetadata
from vibecoder_agent.core.files import FileTree


LogKind = Literal["command", "output", "error", "info"]
DoneReason = Literal["completed", "max_turns", "cancelled", "error"]


@dataclass(frozen=True)
class MessageEvent:
    type: ClassVar[str] = "message"
    text: str


@dataclass(frozen=True)
class FilesUpdatedEvent:
    type: ClassVar[str] = "files"
    tree: FileTree


@dataclass(frozen=True)
class TerminalLogEvent:
    type: ClassVar[str] = "terminal"
    kind: LogKind
    content: str


@dataclass(frozen=True)
class UsageEvent:
    type: ClassVar[str] = "usage"
    usage: UsageMetadata


@dataclass(frozen=True)
class DoneEvent:
    type: ClassVar[str] = "done"
    reason: DoneReason
    turns: int = 0


AgentEvent = Union[MessageEvent, FilesUpdatedEvent, TerminalLogEvent, UsageEvent, DoneEvent]
