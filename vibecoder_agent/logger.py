"""Logging configuration for vibecoder."""
from __future__ import annotations

import logging
from pathlib import Path


def setup_logging(level: int = logging.WARNING, log_file: str | None = None) -> None:
    """Configure the root logger: stderr always, plus a file when log_file is given."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="a", encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )

    # Suppress noisy third-party logs
    for name in ("httpx", "httpcore", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("vibecoder_agent").setLevel(level)
