from __future__ import annotations

from pathlib import Path

from vibecoder_agent.core.errors import SnapshotError
from vibecoder_agent.core.files import FileTree, is_file_path


def _should_ignore(rel_path: str) -> bool:
    # Keep it simple: skip VCS/tooling caches and dependency folders.
    ignore_prefixes = (
        ".git/",
        ".venv/",
        "venv/",
        ".idea/",
        "__pycache__/",
        "node_modules/",
        "dist/",
        "build/",
        ".cache/",
    )
    return rel_path.startswith(ignore_prefixes) or "/__pycache__/" in rel_path


def load_tree(root: Path, max_bytes: int = 512_000) -> FileTree:
    """Read every text file under root into a FileTree, sorted by path.

    Binary or oversized files are skipped; the agent only edits text.
    """
    if not root.is_dir():
        raise SnapshotError(code="E_DIR_NOT_FOUND", message=f"not a directory: {root}")

    contents: dict[str, str] = {}
    for p in sorted(root.rglob("*")):
        if p.is_dir():
            continue
        rp = p.relative_to(root).as_posix()
        if _should_ignore(rp):
            continue
        if p.stat().st_size > max_bytes:
            continue
        try:
            contents[rp] = p.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            continue
    return FileTree.from_contents(contents)


def changed_paths(before: FileTree, after: FileTree) -> list[str]:
    out: list[str] = []
    for path, node in after.items():
        old = before.get(path)
        if old is None or old.content != node.content:
            out.append(path)
    return out


def write_tree(root: Path, tree: FileTree, paths: list[str] | None = None) -> list[str]:
    """Write files by full content. Returns the paths written.

    Every path is checked before anything is written, so a bad key leaves the
    directory untouched.
    """
    resolved_root = root.resolve()
    targets: list[tuple[str, Path]] = []
    for path in paths if paths is not None else list(tree):
        if not is_file_path(path):
            raise SnapshotError(code="E_INVALID_PATH", message=f"not a file path: '{path}'")
        target = (root / path).resolve()
        if resolved_root not in target.parents:
            raise SnapshotError(
                code="E_PATH_OUTSIDE_ROOT", message=f"refusing to write outside {root}: {path}"
            )
        if target.is_dir():
            raise SnapshotError(code="E_INVALID_PATH", message=f"is a directory: {path}")
        targets.append((path, target))

    written: list[str] = []
    for path, target in targets:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(tree[path].content, encoding="utf-8")
        written.append(path)
    return written
