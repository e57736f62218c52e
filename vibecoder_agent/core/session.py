from __future__ import annotations

import logging
from typing import Iterable, Protocol, Sequence

from vibecoder_agent.core.contracts import ModelTurn, ToolResultTurn, Turn, UserTurn


logger = logging.getLogger("vibecoder_agent.session")


class HistoryPolicy(Protocol):
    def select(self, turns: Sequence[Turn]) -> list[Turn]: ...


class FullHistory:
    """Replay every turn. Request size grows with the session."""

    def select(self, turns: Sequence[Turn]) -> list[Turn]:
        return list(turns)


class KeepRecentTurns:
    """Keep the first user turn plus the most recent turns.

    The tail never starts on a ToolResultTurn, so every tool result is sent
    together with the model turn that requested it.
    """

    def __init__(self, max_turns: int) -> None:
        if max_turns < 2:
            raise ValueError("max_turns must be >= 2")
        self.max_turns = max_turns

    def select(self, turns: Sequence[Turn]) -> list[Turn]:
        if len(turns) <= self.max_turns:
            return list(turns)

        first_user = next((i for i, t in enumerate(turns) if isinstance(t, UserTurn)), None)
        head = [turns[first_user]] if first_user is not None else []

        start = len(turns) - (self.max_turns - len(head))
        while start > 0 and isinstance(turns[start], ToolResultTurn):
            start -= 1
        if first_user is not None and start <= first_user:
            return list(turns)

        dropped = start - len(head)
        if dropped <= 0:
            return list(turns)
        marker = UserTurn(text=f"[{dropped} earlier turns omitted to keep the request small]")
        logger.debug("history trimmed: dropped %d of %d turns", dropped, len(turns))
        return head + [marker] + list(turns[start:])


class ConversationSession:
    """Append-only ordered history of user, model and tool-result turns."""

    def __init__(self, turns: Iterable[Turn] = (), policy: HistoryPolicy | None = None) -> None:
        self._turns: list[Turn] = list(turns)
        self.policy = policy or FullHistory()

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def add_user(self, text: str) -> None:
        self._turns.append(UserTurn(text=text))

    def add_model(self, turn: ModelTurn) -> None:
        self._turns.append(turn)

    def add_tool_result(self, name: str, result: str, call_id: str = "") -> None:
        self._turns.append(ToolResultTurn(name=name, result=result, call_id=call_id))

    def for_request(self) -> list[Turn]:
        return self.policy.select(self._turns)
