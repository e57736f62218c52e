"""Agent core: file tree, tools, checker and the orchestration loop.

The loop talks to the outside world only through a ModelClient and a Checker;
everything else here is in-memory and synchronous.
"""
from __future__ import annotations

from vibecoder_agent.core.checks import Checker
from vibecoder_agent.core.files import FileNode, FileTree
from vibecoder_agent.core.loop import AgentLoop

__all__ = ["AgentLoop", "Checker", "FileNode", "FileTree"]
