"""Logging setup and the JSONL event writer."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # SDK clients are chatty at DEBUG; keep them at WARNING unless asked.
    for name in ("httpx", "httpcore", "openai", "anthropic"):
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)


class JsonlWriter:
    """Appends one JSON object per line to a log file.

    Each event is written and flushed under a lock, so concurrent writers
    never interleave partial lines.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._file = open(self.path, "a")

    def write(self, event: dict[str, Any]) -> None:
        """Write a JSON event to the JSONL log file."""
        event = dict(event)
        event.setdefault("logged_at", datetime.now(timezone.utc).isoformat())
        line = json.dumps(event, default=str) + "\n"
        with self._lock:
            if self._file is None:
                return
            self._file.write(line)
            self._file.flush()

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None
