from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from vibecoder_agent.core.checks import Checker, format_verdict
from vibecoder_agent.core.contracts import ToolCall, ToolName
from vibecoder_agent.core.errors import ToolValidationError, UnknownToolError
from vibecoder_agent.core.files import FileTree, is_file_path, normalize_path


SEARCH_RESULT_LIMIT = 50


@dataclass(frozen=True)
class ToolOutcome:
    result: str
    # Set only by mutating tools.
    tree: Optional[FileTree] = None


Handler = Callable[[FileTree, dict[str, Any]], ToolOutcome]


@dataclass(frozen=True)
class ToolSpec:
    name: ToolName
    description: str
    # Every declared argument is a required string.
    args: dict[str, str]
    handler: Handler

    def definition(self) -> dict[str, Any]:
        """OpenAI function-tool definition (strict structured arguments)."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    arg: {"type": "string", "description": desc} for arg, desc in self.args.items()
                },
                "required": list(self.args),
            },
            "strict": True,
        }


def list_files(tree: FileTree) -> str:
    if not tree:
        return "Repository is empty."
    return "\n".join(f"[{f.language}] {f.path} ({f.size} bytes)" for f in tree.values())


def read_file(tree: FileTree, path: str) -> str:
    node = tree.get(normalize_path(path))
    if node is None:
        return f"Error: File '{path}' not found."
    return node.content


def search_files(tree: FileTree, query: str, limit: int = SEARCH_RESULT_LIMIT) -> str:
    results: list[str] = []
    for node in tree.values():
        for lineno, line in enumerate(node.content.split("\n"), start=1):
            if query in line:
                results.append(f"{node.path}:{lineno}: {line.strip()}")
                if len(results) >= limit:
                    return "\n".join(results)
    if not results:
        return "No matches found."
    return "\n".join(results)


def write_file(tree: FileTree, path: str, content: str) -> tuple[FileTree, str]:
    new_tree = tree.with_file(path, content)
    node = new_tree[normalize_path(path)]
    return new_tree, f"Wrote {node.size} bytes to {node.path}."


class ToolRegistry:
    """Fixed table of tools the model may call against a FileTree."""

    def __init__(self, checker: Checker | None = None) -> None:
        self.checker = checker or Checker()
        self._specs: dict[str, ToolSpec] = {
            spec.name: spec
            for spec in (
                ToolSpec(
                    name="list_files",
                    description="List every file in the project with its language and size.",
                    args={},
                    handler=lambda tree, args: ToolOutcome(list_files(tree)),
                ),
                ToolSpec(
                    name="read_file",
                    description="Read the full content of one file.",
                    args={"path": "Project-relative file path, e.g. src/App.tsx"},
                    handler=lambda tree, args: ToolOutcome(read_file(tree, args["path"])),
                ),
                ToolSpec(
                    name="search_files",
                    description=(
                        "Search all files for a literal substring (not a regex). "
                        f"Returns at most {SEARCH_RESULT_LIMIT} matching lines."
                    ),
                    args={"query": "Literal text to look for"},
                    handler=lambda tree, args: ToolOutcome(search_files(tree, args["query"])),
                ),
                ToolSpec(
                    name="write_file",
                    description=(
                        "Create or replace a file with the given full content. "
                        "Checks run automatically after every write."
                    ),
                    args={
                        "path": "Project-relative file path",
                        "content": "Complete new file content (no placeholders)",
                    },
                    handler=self._write,
                ),
                ToolSpec(
                    name="run_checks",
                    description="Run structural and syntax checks over the whole project.",
                    args={},
                    handler=lambda tree, args: ToolOutcome(format_verdict(self.checker.check(tree))),
                ),
            )
        }

    @staticmethod
    def _write(tree: FileTree, args: dict[str, Any]) -> ToolOutcome:
        new_tree, message = write_file(tree, args["path"], args["content"])
        return ToolOutcome(result=message, tree=new_tree)

    @property
    def names(self) -> list[str]:
        return list(self._specs)

    def spec(self, name: str) -> ToolSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise UnknownToolError(
                code="E_UNKNOWN_TOOL", message=f"Unknown tool '{name}'.", tool=name
            ) from None

    def validate(self, call: ToolCall) -> ToolSpec:
        spec = self.spec(call.name)
        for arg in spec.args:
            value = call.args.get(arg)
            # content may legitimately be empty; paths and queries may not
            if not isinstance(value, str) or (arg != "content" and not value.strip()):
                raise ToolValidationError(
                    code="E_MISSING_ARGUMENT",
                    message=f"{call.name} requires argument '{arg}'.",
                    tool=call.name,
                )
            if arg == "path" and not is_file_path(value):
                raise ToolValidationError(
                    code="E_INVALID_PATH",
                    message=f"{call.name} needs a file path, not '{value}'.",
                    tool=call.name,
                )
        return spec

    def execute(self, call: ToolCall, tree: FileTree) -> ToolOutcome:
        spec = self.validate(call)
        return spec.handler(tree, call.args)

    def catalog(self) -> list[dict[str, Any]]:
        return [spec.definition() for spec in self._specs.values()]
