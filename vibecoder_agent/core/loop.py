from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Literal, Optional, Protocol, Sequence

from vibecoder_agent.core.capabilities import (
    ModelCapability,
    merged_capabilities,
    supports_extended_reasoning,
)
from vibecoder_agent.core.checks import Checker, format_verdict
from vibecoder_agent.core.config import DEFAULT_REQUEST_TIMEOUT
from vibecoder_agent.core.contracts import ModelResponse, ToolCall, Turn
from vibecoder_agent.core.errors import ModelRequestError, ToolValidationError, UnknownToolError
from vibecoder_agent.core.events import (
    AgentEvent,
    DoneEvent,
    DoneReason,
    FilesUpdatedEvent,
    MessageEvent,
    TerminalLogEvent,
    UsageEvent,
)
from vibecoder_agent.core.files import FileTree
from vibecoder_agent.core.llm import ModelClient
from vibecoder_agent.core.modes import ModeProfile, profile_for
from vibecoder_agent.core.session import ConversationSession, HistoryPolicy
from vibecoder_agent.core.tools import ToolRegistry


logger = logging.getLogger("vibecoder_agent.loop")

LoopState = Literal["init", "awaiting_model", "dispatching_tools", "terminated"]

VERIFICATION_PASSED_TAG = "[ADK VERIFICATION PASSED]"
VERIFICATION_FAILED_TAG = "[ADK VERIFICATION FAILED]"
LOG_PREVIEW_CHARS = 200


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


def preview(text: str, limit: int = LOG_PREVIEW_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class AgentLoop:
    """Drives model turns, tool dispatch and post-write verification for one session at a time.

    Each run is strictly sequential: the only awaits are the model request and
    the checker. Tool calls from one model turn run in the order given, and each
    sees the tree produced by the previous one.
    """

    def __init__(
        self,
        client: ModelClient,
        *,
        checker: Checker | None = None,
        capabilities: dict[str, ModelCapability] | None = None,
        history_policy: HistoryPolicy | None = None,
        request_timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self.client = client
        self.checker = checker or Checker()
        self.tools = ToolRegistry(self.checker)
        self.capabilities = capabilities if capabilities is not None else merged_capabilities()
        self.history_policy = history_policy
        self.request_timeout = request_timeout

        self.state: LoopState = "init"
        self.turn = 0
        # Final conversation of the last run, for continuing in a later run.
        self.history: tuple[Turn, ...] = ()

    def _enter(self, state: LoopState) -> None:
        logger.debug("state %s -> %s (turn %d)", self.state, state, self.turn)
        self.state = state

    def thinking_budget(self, profile: ModeProfile, model_id: str) -> Optional[int]:
        if supports_extended_reasoning(self.capabilities, model_id):
            return profile.thinking_budget
        return None

    async def _request(
        self,
        session: ConversationSession,
        profile: ModeProfile,
        model_id: str,
        tools: list[dict],
        thinking_budget: Optional[int],
    ) -> ModelResponse:
        call = asyncio.to_thread(
            self.client.request,
            session.for_request(),
            profile.instruction,
            tools,
            thinking_budget,
            self.request_timeout,
            model_id,
        )
        if self.request_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            raise ModelRequestError(
                code="E_MODEL_TIMEOUT",
                message=f"model request exceeded {self.request_timeout:g}s",
            ) from e

    async def _dispatch(
        self, call: ToolCall, tree: FileTree, session: ConversationSession
    ) -> AsyncIterator[AgentEvent | FileTree]:
        """Run one tool call. Yields events, and the new tree last if the call mutated it."""
        yield TerminalLogEvent(kind="command", content=call.signature())

        try:
            outcome = self.tools.execute(call, tree)
        except (UnknownToolError, ToolValidationError) as e:
            result = f"Error: {e.message}"
            logger.info("tool call rejected: %s", e)
            yield TerminalLogEvent(kind="error", content=result)
            session.add_tool_result(call.name, result, call.call_id)
            return

        if outcome.tree is None:
            yield TerminalLogEvent(kind="output", content=preview(outcome.result))
            session.add_tool_result(call.name, outcome.result, call.call_id)
            return

        yield FilesUpdatedEvent(tree=outcome.tree)
        yield TerminalLogEvent(kind="info", content="Running verification checks...")
        verification = await asyncio.to_thread(self.checker.check, outcome.tree)
        verdict = format_verdict(verification)
        if verification.passed:
            tag = VERIFICATION_PASSED_TAG
            yield TerminalLogEvent(kind="output", content=verdict)
        else:
            tag = VERIFICATION_FAILED_TAG
            yield TerminalLogEvent(kind="error", content=verdict)
        session.add_tool_result(call.name, f"{outcome.result}\n\n{tag}\n{verdict}", call.call_id)
        yield outcome.tree

    async def run(
        self,
        history: Sequence[Turn],
        user_message: str,
        initial_tree: FileTree,
        mode: str,
        model_id: str,
        cancel_event: CancelSignal | None = None,
    ) -> AsyncIterator[AgentEvent]:
        profile = profile_for(mode)
        session = ConversationSession(history, policy=self.history_policy)
        session.add_user(user_message)
        tree = initial_tree
        catalog = self.tools.catalog()
        budget = self.thinking_budget(profile, model_id)

        self.state = "init"
        self.turn = 0
        reason: DoneReason = "completed"
        logger.info("run started: mode=%s model=%s files=%d", mode, model_id, len(tree))

        while True:
            self._enter("awaiting_model")
            if cancel_event is not None and cancel_event.is_set():
                reason = "cancelled"
                yield TerminalLogEvent(kind="info", content="Run cancelled.")
                break

            try:
                response = await self._request(session, profile, model_id, catalog, budget)
            except ModelRequestError as e:
                logger.warning("model request failed: %s", e)
                yield TerminalLogEvent(kind="error", content=f"Model request failed: {e.message}")
                reason = "error"
                break

            self.turn += 1
            if response.usage is not None:
                yield UsageEvent(usage=response.usage)
            model_turn = response.to_turn()
            session.add_model(model_turn)

            if not model_turn.tool_calls:
                yield MessageEvent(text=model_turn.text)
                reason = "completed"
                break

            self._enter("dispatching_tools")
            for call in model_turn.tool_calls:
                async for item in self._dispatch(call, tree, session):
                    if isinstance(item, FileTree):
                        tree = item
                    else:
                        yield item

            if self.turn >= profile.max_turns:
                yield TerminalLogEvent(
                    kind="info",
                    content=f"Reached the turn limit ({self.turn}/{profile.max_turns}).",
                )
                reason = "max_turns"
                break

        self.history = session.turns
        self._enter("terminated")
        logger.info("run finished: reason=%s turns=%d", reason, self.turn)
        yield DoneEvent(reason=reason, turns=self.turn)


async def collect_events(stream: AsyncIterator[AgentEvent]) -> list[AgentEvent]:
    return [event async for event in stream]
