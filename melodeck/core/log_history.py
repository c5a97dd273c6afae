# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""In-memory record of the session's log output, written to ``app.log`` on flush."""

from __future__ import annotations

import logging
import threading
from collections import deque
from pathlib import Path

_FORMAT = "[%(levelname)s] (%(name)s) %(message)s"

# oldest lines are dropped past this many
MAX_HISTORY_LINES = 10000


class LogHistoryHandler(logging.Handler):
    """Keeps the session's most recent formatted records so they can be dumped to disk."""

    def __init__(self, path: Path, level: int = logging.INFO, max_lines: int = MAX_HISTORY_LINES) -> None:
        super().__init__(level)
        self.path = Path(path)
        self._lines: deque[str] = deque(maxlen=max_lines)
        self._lines_lock = threading.Lock()
        self.setFormatter(logging.Formatter(_FORMAT))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        with self._lines_lock:
            self._lines.append(line)

    def lines(self) -> list[str]:
        with self._lines_lock:
            return list(self._lines)

    def set_show_debug(self, show: bool) -> None:
        self.setLevel(logging.DEBUG if show else logging.INFO)

    def write(self) -> Path:
        """Write the history to :attr:`path`, replacing the previous log."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("\n".join(self.lines()), encoding="utf-8")
        return self.path
