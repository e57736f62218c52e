from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, get_args


AgentMode = Literal["architect", "engineer", "fixer"]

MODES: tuple[str, ...] = get_args(AgentMode)


_TOOLS_NOTE = (
    "You work on a virtual React + TypeScript project through tools: list_files, read_file, "
    "search_files, write_file, run_checks.\n"
    "Every write_file is followed by automatic checks. The tool result ends with "
    "[ADK VERIFICATION PASSED] or [ADK VERIFICATION FAILED] plus diagnostics; "
    "when it fails, fix the reported problems before doing anything else.\n"
    "Always write complete file contents. Never leave placeholders.\n"
    "When the work is done, reply with a short summary and no tool calls.\n"
)


@dataclass(frozen=True)
class ModeProfile:
    mode: AgentMode
    instruction: str
    thinking_budget: int
    max_turns: int


PROFILES: dict[str, ModeProfile] = {
    "architect": ModeProfile(
        mode="architect",
        instruction=(
            "You are the ARCHITECT agent. Plan the application structure first: inspect the "
            "project, decide the component layout, then create the files it needs.\n"
            "Prefer a clear modular layout with src/App.tsx as the entry point.\n" + _TOOLS_NOTE
        ),
        thinking_budget=8192,
        max_turns=12,
    ),
    "engineer": ModeProfile(
        mode="engineer",
        instruction=(
            "You are the ENGINEER agent. Implement the requested change with minimal, correct "
            "edits. Read files before editing them and keep existing conventions.\n" + _TOOLS_NOTE
        ),
        thinking_budget=4096,
        max_turns=12,
    ),
    "fixer": ModeProfile(
        mode="fixer",
        instruction=(
            "You are the FIXER agent. Run the checks, read the failing files, and make the "
            "smallest patch that makes the checks pass.\n" + _TOOLS_NOTE
        ),
        thinking_budget=2048,
        max_turns=8,
    ),
}


def profile_for(mode: str) -> ModeProfile:
    try:
        return PROFILES[mode]
    except KeyError:
        raise ValueError(f"unknown mode: {mode} (choose one of: {', '.join(MODES)})") from None


def max_turns(mode: str) -> int:
    return profile_for(mode).max_turns
