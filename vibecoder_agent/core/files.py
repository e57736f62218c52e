from __future__ import annotations

import posixpath
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType


LANGUAGE_BY_EXTENSION: dict[str, str] = {
    ".tsx": "typescript",
    ".ts": "typescript",
    ".jsx": "javascript",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".css": "css",
    ".html": "html",
    ".json": "json",
    ".md": "markdown",
    ".py": "python",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def language_for(path: str) -> str:
    _, ext = posixpath.splitext(path)
    return LANGUAGE_BY_EXTENSION.get(ext.lower(), "plaintext")


def normalize_path(path: str) -> str:
    """Canonical tree key: forward slashes, no leading './' or '/'."""
    p = path.strip().replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    return p.lstrip("/")


def is_file_path(path: str) -> bool:
    """True when path names a file rather than a directory."""
    name = normalize_path(path).rsplit("/", 1)[-1]
    return name not in ("", ".", "..")


@dataclass(frozen=True)
class FileNode:
    path: str
    name: str
    content: str
    language: str

    @classmethod
    def create(cls, path: str, content: str) -> "FileNode":
        # name and language are always derived from path
        p = normalize_path(path)
        return cls(path=p, name=posixpath.basename(p), content=content, language=language_for(p))

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))


class FileTree(Mapping[str, FileNode]):
    """Immutable path -> FileNode snapshot.

    Mutations return a new tree (copy-on-write); untouched entries are shared
    between snapshots, so emitted trees are safe to keep.
    """

    __slots__ = ("_files",)

    def __init__(self, files: Mapping[str, FileNode] | None = None) -> None:
        self._files: Mapping[str, FileNode] = MappingProxyType(dict(files or {}))

    @classmethod
    def from_contents(cls, contents: Mapping[str, str]) -> "FileTree":
        nodes: dict[str, FileNode] = {}
        for path, content in contents.items():
            node = FileNode.create(path, content)
            nodes[node.path] = node
        return cls(nodes)

    def __getitem__(self, path: str) -> FileNode:
        return self._files[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __repr__(self) -> str:
        return f"FileTree({list(self._files)!r})"

    def with_file(self, path: str, content: str) -> "FileTree":
        node = FileNode.create(path, content)
        files = dict(self._files)
        # replacing an existing key keeps its position
        files[node.path] = node
        return FileTree(files)

    def contents(self) -> dict[str, str]:
        return {p: f.content for p, f in self._files.items()}
