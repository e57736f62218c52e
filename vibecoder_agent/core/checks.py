from __future__ import annotations

import ast
import json
import logging
import posixpath
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from vibecoder_agent.core.contracts import VerificationResult
from vibecoder_agent.core.files import FileTree


logger = logging.getLogger("vibecoder_agent.checks")

ENTRY_FILES: tuple[str, ...] = (
    "src/App.tsx",
    "src/App.jsx",
    "src/App.ts",
    "src/App.js",
    "App.tsx",
    "App.jsx",
    "App.ts",
    "App.js",
)

PASSED_TEXT = "CHECKS PASSED"


@dataclass(frozen=True)
class Check:
    name: str
    run: Callable[[FileTree], list[str]]


@lru_cache(maxsize=None)
def _language(grammar: str) -> Language:
    if grammar == "tsx":
        return Language(tree_sitter_typescript.language_tsx())
    if grammar == "typescript":
        return Language(tree_sitter_typescript.language_typescript())
    return Language(tree_sitter_javascript.language())


GRAMMAR_BY_EXTENSION: dict[str, str] = {
    ".tsx": "tsx",
    ".ts": "typescript",
    ".jsx": "javascript",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}


def _first_problem(root: Node) -> Node | None:
    """Pre-order search for the first ERROR or MISSING node."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        if node.has_error:
            # reversed so the leftmost child is visited first
            stack.extend(reversed(node.children))
    return None


def _describe(node: Node, source: bytes) -> str:
    row, col = node.start_point[0], node.start_point[1]
    loc = f"({row + 1}:{col + 1})"
    if node.is_missing:
        return f"Missing '{node.type}' {loc}"
    snippet = source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")
    snippet = snippet.strip().splitlines()[0].strip() if snippet.strip() else ""
    if not snippet:
        return f"Unexpected end of input {loc}"
    if len(snippet) > 30:
        snippet = snippet[:30] + "..."
    return f"Unexpected token '{snippet}' {loc}"


def _tag_name(tag: Node | None, source: bytes) -> str:
    if tag is None:
        return ""
    name = tag.child_by_field_name("name")
    if name is None:
        return ""
    return source[name.start_byte : name.end_byte].decode("utf-8", errors="replace")


def _mismatched_jsx(root: Node, source: bytes) -> str | None:
    """The grammar accepts <a></b>; report the first element whose tags disagree."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "jsx_element":
            open_tag = node.child_by_field_name("open_tag")
            close_tag = node.child_by_field_name("close_tag")
            opened = _tag_name(open_tag, source)
            if close_tag is not None and opened != _tag_name(close_tag, source):
                row, col = close_tag.start_point[0], close_tag.start_point[1]
                return (
                    f"Expected corresponding JSX closing tag for '<{opened}>' "
                    f"({row + 1}:{col + 1})"
                )
        stack.extend(reversed(node.children))
    return None


def parse_script(path: str, content: str) -> str | None:
    """Return a parser message for JS/TS source, or None when it parses cleanly."""
    grammar = GRAMMAR_BY_EXTENSION[posixpath.splitext(path)[1].lower()]
    source = content.encode("utf-8")
    parser = Parser(_language(grammar))
    tree = parser.parse(source)
    if not tree.root_node.has_error:
        return _mismatched_jsx(tree.root_node, source)
    problem = _first_problem(tree.root_node)
    if problem is None:
        return "Syntax error"
    return _describe(problem, source)


def parse_json(path: str, content: str) -> str | None:
    try:
        json.loads(content)
    except json.JSONDecodeError as e:
        return f"{e.msg} ({e.lineno}:{e.colno})"
    return None


def parse_python(path: str, content: str) -> str | None:
    try:
        ast.parse(content, filename=path)
    except SyntaxError as e:
        return f"{e.msg} ({e.lineno}:{e.offset})"
    return None


PARSERS: dict[str, Callable[[str, str], str | None]] = {
    **{ext: parse_script for ext in GRAMMAR_BY_EXTENSION},
    ".json": parse_json,
    ".py": parse_python,
}


def _clean_message(raw: str, path: str) -> str:
    prefix = f"{path}: "
    if raw.startswith(prefix):
        raw = raw[len(prefix) :]
    return raw.strip()


def check_structure(tree: FileTree) -> list[str]:
    if any(p in tree for p in ENTRY_FILES):
        return []
    return ["[Structure Error] src/App.tsx is missing. The app cannot render."]


def check_syntax(tree: FileTree) -> list[str]:
    errors: list[str] = []
    for path, node in tree.items():
        parse = PARSERS.get(posixpath.splitext(path)[1].lower())
        if parse is None:
            continue
        try:
            msg = parse(path, node.content)
        except Exception as e:
            # A crashing parser is reported, never raised.
            logger.warning("parser crashed on %s: %s", path, e)
            msg = f"parser failure: {e}"
        if msg is not None:
            errors.append(f"[Syntax Error] {path}: {_clean_message(msg, path)}")
    return errors


DEFAULT_CHECKS: list[Check] = [
    Check(name="structure", run=check_structure),
    Check(name="syntax", run=check_syntax),
]


class Checker:
    """Heuristic verification gate. Pure in the tree; never raises."""

    def __init__(self, checks: list[Check] | None = None) -> None:
        self.checks = list(checks if checks is not None else DEFAULT_CHECKS)

    def check(self, tree: FileTree) -> VerificationResult:
        diagnostics: list[str] = []
        for c in self.checks:
            diagnostics.extend(c.run(tree))
        logger.debug("checked %d files: %d diagnostics", len(tree), len(diagnostics))
        return VerificationResult.from_diagnostics(diagnostics)


def format_verdict(result: VerificationResult) -> str:
    if result.passed:
        return PASSED_TEXT
    return f"CHECKS FAILED ({len(result.diagnostics)} errors):\n" + "\n".join(result.diagnostics)
