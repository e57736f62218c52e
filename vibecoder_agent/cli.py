from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from vibecoder_agent.core.capabilities import CapabilityConfigError, load_and_merge
from vibecoder_agent.core.checks import Checker
from vibecoder_agent.core.config import AgentSettings, has_api_key, model_for_mode
from vibecoder_agent.core.contracts import UsageMetadata
from vibecoder_agent.core.errors import AgentError, SnapshotError
from vibecoder_agent.core.eval import run_eval
from vibecoder_agent.core.events import (
    AgentEvent,
    DoneEvent,
    FilesUpdatedEvent,
    MessageEvent,
    TerminalLogEvent,
    UsageEvent,
)
from vibecoder_agent.core.files import FileTree
from vibecoder_agent.core.llm import OpenAIModelClient
from vibecoder_agent.core.loop import AgentLoop
from vibecoder_agent.core.modes import MODES
from vibecoder_agent.core.session import KeepRecentTurns
from vibecoder_agent.core.snapshot import changed_paths, load_tree, write_tree
from vibecoder_agent.core.tools import ToolRegistry
from vibecoder_agent.logger import setup_logging

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()

LOG_STYLES = {
    "command": "bold cyan",
    "output": "green",
    "error": "red",
    "info": "italic blue",
}


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
    log_file: str | None = typer.Option(None, "--log-file", help="Also append logs to this file"),
) -> None:
    """vibecoder: agent loop that edits a project until its checks pass."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING, log_file)


def _print_errors(errors: list[AgentError]) -> None:
    for e in sorted(errors, key=lambda e: (e.tool or "", e.code)):
        typer.echo(str(e), err=True)


def _load_capabilities(capability_file: str | None):
    try:
        return load_and_merge(capability_file)
    except FileNotFoundError:
        _print_errors(
            [
                AgentError(
                    code="E_CAPABILITY_FILE_NOT_FOUND",
                    message=f"capability file not found: {capability_file}",
                )
            ]
        )
        raise typer.Exit(code=1)
    except CapabilityConfigError as e:
        _print_errors([AgentError(code="E_CAPABILITY_FILE_INVALID", message=str(e))])
        raise typer.Exit(code=2)


def _load_dir(directory: Path) -> FileTree:
    try:
        return load_tree(directory)
    except SnapshotError as e:
        _print_errors([e])
        raise typer.Exit(code=1)


def _render(event: AgentEvent) -> None:
    if isinstance(event, TerminalLogEvent):
        marker = "$" if event.kind == "command" else ">"
        console.print(f"[{LOG_STYLES[event.kind]}]{marker} {escape(event.content)}[/]")
    elif isinstance(event, FilesUpdatedEvent):
        console.print(f"[dim]  files: {len(event.tree)}[/]")
    elif isinstance(event, MessageEvent):
        console.print()
        console.print(escape(event.text) if event.text else "[dim](no message)[/]")


async def _drive(
    loop: AgentLoop, goal: str, tree: FileTree, mode: str, model: str
) -> tuple[FileTree, DoneEvent, list[UsageMetadata]]:
    usages: list[UsageMetadata] = []
    done = DoneEvent(reason="error")
    async for event in loop.run([], goal, tree, mode, model):
        _render(event)
        if isinstance(event, FilesUpdatedEvent):
            tree = event.tree
        elif isinstance(event, UsageEvent):
            usages.append(event.usage)
        elif isinstance(event, DoneEvent):
            done = event
    return tree, done, usages


@app.command("run")
def run_cmd(
    goal: str = typer.Argument(..., help="What should the agent build or change?"),
    directory: Path = typer.Option(Path("."), "--dir", help="Project directory to load"),
    mode: str = typer.Option("engineer", "--mode", help="Agent mode: architect|engineer|fixer"),
    model: str | None = typer.Option(None, "--model", help="Model id (default: VIBECODER_MODEL)"),
    write: bool = typer.Option(True, "--write/--no-write", help="Write changed files back"),
    capability_file: str | None = typer.Option(
        None, "--capabilities", help="Optional YAML file to add/override model capabilities"
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds per model request"),
    history_turns: int | None = typer.Option(
        None, "--history-turns", help="Replay only the first request and the last N turns"
    ),
) -> None:
    """Run the agent loop over a project directory."""
    if mode not in MODES:
        _print_errors(
            [
                AgentError(
                    code="E_RUN_UNKNOWN_MODE",
                    message=f"unknown mode: {mode} (choose one of: {', '.join(MODES)})",
                )
            ]
        )
        raise typer.Exit(code=2)

    if not has_api_key():
        _print_errors([AgentError(code="E_NO_API_KEY", message="OPENAI_API_KEY is not set")])
        raise typer.Exit(code=2)

    settings = AgentSettings.from_env()
    use_model = model or model_for_mode(mode, settings.model)
    capabilities = _load_capabilities(capability_file or settings.capability_file)
    tree = _load_dir(directory)

    keep = history_turns or settings.history_turns
    loop = AgentLoop(
        OpenAIModelClient(default_model=use_model, base_url=settings.base_url),
        capabilities=capabilities,
        history_policy=KeepRecentTurns(keep) if keep else None,
        request_timeout=timeout or settings.request_timeout,
    )

    console.print(f"[bold]vibecoder[/] mode={mode} model={escape(use_model)} files={len(tree)}")
    final_tree, done, usages = asyncio.run(_drive(loop, goal, tree, mode, use_model))

    table = Table(title=f"vibecoder run ({done.reason}, {done.turns} turns)")
    table.add_column("Turn")
    table.add_column("Prompt")
    table.add_column("Output")
    table.add_column("Total")
    for i, u in enumerate(usages, start=1):
        table.add_row(str(i), str(u.prompt_tokens), str(u.candidate_tokens), str(u.total_tokens))
    table.add_row(
        "all",
        str(sum(u.prompt_tokens for u in usages)),
        str(sum(u.candidate_tokens for u in usages)),
        str(sum(u.total_tokens for u in usages)),
    )
    console.print(table)

    changed = changed_paths(tree, final_tree)
    if write and changed:
        try:
            written = write_tree(directory, final_tree, changed)
        except SnapshotError as e:
            _print_errors([e])
            raise typer.Exit(code=1)
        console.print("Wrote:")
        for p in written:
            console.print(f"- {escape(p)}")
    elif changed:
        console.print(f"{len(changed)} changed files not written (--no-write)")

    if done.reason == "error":
        raise typer.Exit(code=2)


@app.command("check")
def check_cmd(
    directory: Path = typer.Option(Path("."), "--dir", help="Project directory to check"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Run structure and syntax checks over a project directory."""
    if format not in ("text", "json"):
        _print_errors(
            [
                AgentError(
                    code="E_CHECK_UNKNOWN_FORMAT",
                    message=f"unknown format: {format} (choose one of: text, json)",
                )
            ]
        )
        raise typer.Exit(code=2)

    tree = _load_dir(directory)
    result = Checker().check(tree)

    if format == "json":
        payload = {
            "tool": "vibecoder",
            "command": "check",
            "ok": result.passed,
            "file_count": len(tree),
            "error_count": len(result.diagnostics),
            "diagnostics": list(result.diagnostics),
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=0 if result.passed else 2)

    if not result.passed:
        for d in result.diagnostics:
            typer.echo(d, err=True)
        raise typer.Exit(code=2)
    typer.echo(f"OK: checks passed ({len(tree)} files)")


@app.command("tools")
def tools_cmd() -> None:
    """List the tools the agent can call."""
    registry = ToolRegistry()
    typer.echo("Tools:")
    for name in registry.names:
        args = list(registry.spec(name).args)
        typer.echo(f"- {name}({', '.join(args)})")


@app.command("models")
def models_cmd(
    capability_file: str | None = typer.Option(
        None, "--capabilities", help="Optional YAML file to add/override model capabilities"
    ),
) -> None:
    """Show the model capability table."""
    table_data = _load_capabilities(capability_file)
    table = Table(title="Model capabilities")
    table.add_column("Model")
    table.add_column("Label")
    table.add_column("Extended reasoning")
    for model_id in sorted(table_data):
        cap = table_data[model_id]
        table.add_row(cap.model_id, cap.label, "yes" if cap.supports_extended_reasoning else "no")
    console.print(table)


@app.command("eval")
def eval_cmd(
    suite: Path = typer.Option(..., "--suite", help="Suite file or directory (YAML)"),
    models: list[str] = typer.Option(
        ..., "--model", "-m", help="Model (repeatable): -m gpt-5-mini -m gpt-4.1-mini"
    ),
    runs: int = typer.Option(1, help="Runs per case per model"),
    out: Path = typer.Option(Path("eval/results.jsonl"), "--out", help="Output JSONL path"),
    capability_file: str | None = typer.Option(None, "--capabilities"),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds per model request"),
) -> None:
    """Benchmark models against a suite; writes JSONL and prints a summary."""
    if not has_api_key():
        _print_errors([AgentError(code="E_NO_API_KEY", message="OPENAI_API_KEY is not set")])
        raise typer.Exit(code=2)

    settings = AgentSettings.from_env()
    capabilities = _load_capabilities(capability_file or settings.capability_file)

    try:
        summary = run_eval(
            suite_path=suite,
            models=models,
            runs=runs,
            out_jsonl=out,
            make_client=lambda m: OpenAIModelClient(default_model=m, base_url=settings.base_url),
            capabilities=capabilities,
            request_timeout=timeout or settings.request_timeout,
        )
    except FileNotFoundError:
        _print_errors([AgentError(code="E_EVAL_SUITE_NOT_FOUND", message=f"suite not found: {suite}")])
        raise typer.Exit(code=1)
    except ValueError as e:
        _print_errors([AgentError(code="E_EVAL_SUITE_INVALID", message=str(e))])
        raise typer.Exit(code=2)

    table = Table(title=f"vibecoder eval ({summary['cases']} cases)")
    table.add_column("Model")
    table.add_column("Runs")
    table.add_column("Success")
    table.add_column("Avg sec")
    table.add_column("Avg turns")
    table.add_column("Avg in tok")
    table.add_column("Avg out tok")

    for m, s in summary["summary"].items():
        table.add_row(
            m,
            str(s["runs"]),
            f"{s['success_rate'] * 100:.0f}%",
            f"{s['avg_seconds']:.2f}",
            f"{s['avg_turns']:.2f}",
            f"{s['avg_input_tokens']:.0f}",
            f"{s['avg_output_tokens']:.0f}",
        )
    console.print(table)
    console.print(f"\nWrote: {summary['out']}")


def main() -> None:
    app(prog_name="vibecoder")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
