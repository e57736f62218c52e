from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable

import yaml

from vibecoder_agent.core.capabilities import ModelCapability
from vibecoder_agent.core.checks import Checker
from vibecoder_agent.core.events import DoneEvent, FilesUpdatedEvent, UsageEvent
from vibecoder_agent.core.files import FileTree, is_file_path, normalize_path
from vibecoder_agent.core.llm import ModelClient
from vibecoder_agent.core.loop import AgentLoop
from vibecoder_agent.core.modes import MODES


@dataclass(frozen=True)
class EvalCase:
    case_id: str
    goal: str
    mode: str
    files: dict[str, str]
    tags: list[str]


def _case_files(raw: Any, case_id: str) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Eval case 'files' must be a mapping of path -> content ({case_id})")
    files: dict[str, str] = {}
    for path, content in raw.items():
        if not isinstance(path, str) or not is_file_path(path):
            raise ValueError(f"Eval case has an invalid file path {path!r} ({case_id})")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise ValueError(f"Eval case file '{path}' must have text content ({case_id})")
        files[normalize_path(path)] = content
    return files


def _case_from_obj(obj: dict[str, Any], fallback_id: str) -> EvalCase:
    case_id = str(obj.get("id") or fallback_id)
    goal = str(obj.get("goal") or "").strip()
    if not goal:
        raise ValueError(f"Eval case missing 'goal' ({case_id})")

    mode = str(obj.get("mode") or "engineer")
    if mode not in MODES:
        raise ValueError(f"Eval case has unknown mode '{mode}' ({case_id})")

    tags = obj.get("tags") or []
    return EvalCase(
        case_id=case_id,
        goal=goal,
        mode=mode,
        files=_case_files(obj.get("files"), case_id),
        tags=[str(t) for t in tags] if isinstance(tags, list) else [str(tags)],
    )


def _cases_from_document(data: Any, source: str) -> list[EvalCase]:
    # one case per mapping document, or a list of them
    if isinstance(data, dict):
        return [_case_from_obj(data, source)]
    if not isinstance(data, list):
        raise ValueError(f"Unsupported suite format: {source}")
    cases: list[EvalCase] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValueError(f"Eval case {source}:{i} must be a mapping")
        cases.append(_case_from_obj(item, f"{source}:{i}"))
    return cases


def load_suite(path: Path) -> list[EvalCase]:
    """Load eval cases from a YAML file, or from every *.yaml/*.yml file in a directory."""
    p = Path(path)
    sources = sorted([*p.glob("*.yaml"), *p.glob("*.yml")]) if p.is_dir() else [p]
    cases: list[EvalCase] = []
    for source in sources:
        try:
            data = yaml.safe_load(source.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {source}: {e}") from e
        cases.extend(_cases_from_document(data, source.stem))

    seen: set[str] = set()
    for case in cases:
        if case.case_id in seen:
            raise ValueError(f"Duplicate eval case id '{case.case_id}'")
        seen.add(case.case_id)
    return cases


def _iter_models(models: Iterable[str]) -> list[str]:
    # order kept, duplicates dropped
    out = list(dict.fromkeys(m.strip() for m in map(str, models) if m.strip()))
    if not out:
        raise ValueError("No models provided")
    return out


@dataclass(frozen=True)
class RunRecord:
    ok: bool
    reason: str
    turns: int
    writes: int
    input_tokens: int
    output_tokens: int


async def run_case(loop: AgentLoop, case: EvalCase, model: str) -> RunRecord:
    tree = FileTree.from_contents(case.files)
    done: DoneEvent | None = None
    writes = 0
    in_tok = 0
    out_tok = 0
    async for event in loop.run([], case.goal, tree, case.mode, model):
        if isinstance(event, FilesUpdatedEvent):
            tree = event.tree
            writes += 1
        elif isinstance(event, UsageEvent):
            in_tok += event.usage.prompt_tokens
            out_tok += event.usage.candidate_tokens
        elif isinstance(event, DoneEvent):
            done = event

    if done is None:
        raise RuntimeError("agent loop ended without a done event")
    final_ok = done.reason == "completed" and loop.checker.check(tree).passed
    return RunRecord(
        ok=final_ok,
        reason=done.reason,
        turns=done.turns,
        writes=writes,
        input_tokens=in_tok,
        output_tokens=out_tok,
    )


def run_eval(
    *,
    suite_path: Path,
    models: Iterable[str],
    runs: int,
    out_jsonl: Path,
    make_client: Callable[[str], ModelClient],
    checker: Checker | None = None,
    capabilities: dict[str, ModelCapability] | None = None,
    request_timeout: float | None = None,
) -> dict[str, Any]:
    cases = load_suite(Path(suite_path))
    if not cases:
        raise ValueError(f"No cases found in suite: {suite_path}")

    models_list = _iter_models(models)
    out_jsonl.parent.mkdir(parents=True, exist_ok=True)

    totals: dict[str, dict[str, float]] = {
        m: {
            "runs": 0.0,
            "ok": 0.0,
            "seconds": 0.0,
            "turns": 0.0,
            "in_tokens": 0.0,
            "out_tokens": 0.0,
        }
        for m in models_list
    }

    with out_jsonl.open("w", encoding="utf-8") as f:
        for model in models_list:
            loop = AgentLoop(
                make_client(model),
                checker=checker,
                capabilities=capabilities,
                request_timeout=request_timeout,
            )
            for case in cases:
                for r in range(max(1, runs)):
                    started = time.time()
                    rec = asyncio.run(run_case(loop, case, model))
                    elapsed = time.time() - started

                    record = {
                        "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
                        "model": model,
                        "case_id": case.case_id,
                        "goal": case.goal,
                        "mode": case.mode,
                        "tags": case.tags,
                        "run_index": r,
                        "ok": rec.ok,
                        "reason": rec.reason,
                        "seconds": elapsed,
                        "turns": rec.turns,
                        "writes": rec.writes,
                        "llm": {
                            "input_tokens": rec.input_tokens,
                            "output_tokens": rec.output_tokens,
                        },
                    }
                    f.write(json.dumps(record) + "\n")

                    t = totals[model]
                    t["runs"] += 1.0
                    t["ok"] += 1.0 if rec.ok else 0.0
                    t["seconds"] += float(elapsed)
                    t["turns"] += float(rec.turns)
                    t["in_tokens"] += float(rec.input_tokens)
                    t["out_tokens"] += float(rec.output_tokens)

    summary: dict[str, Any] = {}
    for model, t in totals.items():
        runs_n = max(1.0, t["runs"])
        summary[model] = {
            "runs": int(t["runs"]),
            "success_rate": t["ok"] / runs_n,
            "avg_seconds": t["seconds"] / runs_n,
            "avg_turns": t["turns"] / runs_n,
            "avg_input_tokens": t["in_tokens"] / runs_n,
            "avg_output_tokens": t["out_tokens"] / runs_n,
        }

    return {"cases": len(cases), "models": models_list, "summary": summary, "out": str(out_jsonl)}
