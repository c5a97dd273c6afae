# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
Debounced, coalescing save queue.

Rapid edits (dragging a loop-point field, toggling settings) would
otherwise rewrite the same JSON file dozens of times a second.  Each
destination path gets at most one pending entry; a new request for the
same path replaces the payload and restarts the delay, so only the last
value is ever written.

Timers run on background threads (``threading.Timer`` by default).  The
entry table is guarded by a single lock; the write itself happens outside
the lock so different paths can be written concurrently.  Writes to one
path are serialised by a per-path lock and stamped with the order they
were requested in, so an older payload never lands after a newer one.
"""

from __future__ import annotations

import copy
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Callable, Protocol

from melodeck.core.file_io import write_document

log = logging.getLogger(__name__)


class Timer(Protocol):
    def start(self) -> None: ...
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]
Writer = Callable[[Path, Any], Any]


def _thread_timer(delay: float, callback: Callable[[], None]) -> Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer


@dataclass
class _Entry:
    """One pending write.  ``consumed`` is set once the entry has been
    superseded, written by its timer, or claimed by a flush."""
    path: Path
    payload: Any
    seq: int
    timer: Timer | None = None
    consumed: bool = False


class SaveQueue:
    """Per-path debounced writer with retries and a synchronous flush."""

    DEFAULT_DELAY = 1.5      # seconds
    DEFAULT_ATTEMPTS = 3

    def __init__(
        self,
        writer: Writer = write_document,
        *,
        delay: float = DEFAULT_DELAY,
        attempts: int = DEFAULT_ATTEMPTS,
        timer_factory: TimerFactory = _thread_timer,
        log_writer: Callable[[], Any] | None = None,
    ) -> None:
        if attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {attempts}")
        self._writer = writer
        self._delay = delay
        self._attempts = attempts
        self._timer_factory = timer_factory
        self._log_writer = log_writer
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._entries: dict[Path, _Entry] = {}
        self._seq = 0
        # timer writes claimed but not finished, per path
        self._in_flight: dict[Path, int] = {}
        self._path_locks: dict[Path, threading.Lock] = {}
        self._written_seq: dict[Path, int] = {}

    # -- Inspection --------------------------------------------------------

    @property
    def delay(self) -> float:
        return self._delay

    def pending_paths(self) -> list[Path]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -- Queueing ----------------------------------------------------------

    def enqueue(self, path: str | Path, document: Any) -> None:
        """Schedule *document* to be written to *path* after the delay.

        The payload is snapshotted now; later changes to *document* do not
        leak into the write.
        """
        key = Path(path)
        payload = _snapshot(document)
        with self._lock:
            previous = self._entries.get(key)
            if previous is not None:
                previous.consumed = True
                if previous.timer is not None:
                    previous.timer.cancel()
            self._seq += 1
            entry = _Entry(path=key, payload=payload, seq=self._seq)
            entry.timer = self._timer_factory(self._delay, partial(self._on_timer, entry))
            self._entries[key] = entry
            entry.timer.start()

        if previous is None:
            log.debug("%s added to save queue", key.name)

    def _on_timer(self, entry: _Entry) -> None:
        with self._lock:
            if entry.consumed:
                return
            entry.consumed = True
            if self._entries.get(entry.path) is entry:
                del self._entries[entry.path]
            self._in_flight[entry.path] = self._in_flight.get(entry.path, 0) + 1
        try:
            self._save(entry)
        finally:
            with self._idle:
                remaining = self._in_flight[entry.path] - 1
                if remaining:
                    self._in_flight[entry.path] = remaining
                else:
                    del self._in_flight[entry.path]
                self._idle.notify_all()

    # -- Writing -----------------------------------------------------------

    def _path_lock(self, path: Path) -> threading.Lock:
        with self._lock:
            return self._path_locks.setdefault(path, threading.Lock())

    def _save(self, entry: _Entry) -> bool:
        path = entry.path
        with self._path_lock(path):
            if self._written_seq.get(path, 0) > entry.seq:
                log.debug("%s already holds a newer save, skipping", path.name)
                return True
            for attempt in range(1, self._attempts + 1):
                try:
                    self._writer(path, entry.payload)
                except OSError as exc:
                    if attempt < self._attempts:
                        log.warning("Retrying save of %s (attempt %d failed: %s)", path, attempt, exc)
                        continue
                    log.critical(
                        "Failed to save %s after %d attempts, changes are not on disk",
                        path, self._attempts,
                    )
                    return False
                self._written_seq[path] = entry.seq
                log.debug("%s saved to file", path.name)
                return True
        return False

    def flush_all(self, include_log: bool = False) -> int:
        """Write every pending entry now and wait for all of them.

        Pending timers are cancelled first so none of them can fire during
        the flush, and writes a timer had already started are waited for
        before returning.  When *include_log* is set the auxiliary log
        writer runs alongside.  Returns how many queued documents were
        written.
        """
        with self._lock:
            claimed = list(self._entries.values())
            self._entries.clear()
            for entry in claimed:
                entry.consumed = True
                if entry.timer is not None:
                    entry.timer.cancel()

        run_log = include_log and self._log_writer is not None
        if not claimed and not run_log:
            self._wait_for_timer_writes()
            return 0

        if claimed:
            log.debug("Flushing %d queued file(s)", len(claimed))

        workers = len(claimed) + (1 if run_log else 0)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="save-flush") as pool:
            futures = [pool.submit(self._save, e) for e in claimed]
            log_future = pool.submit(self._log_writer) if run_log else None
            written = sum(1 for f in futures if f.result())
            if log_future is not None:
                try:
                    log_future.result()
                except OSError:
                    log.exception("Failed to write log file")
        self._wait_for_timer_writes()
        return written

    def _wait_for_timer_writes(self) -> None:
        with self._idle:
            if self._in_flight:
                log.debug("Waiting for %d save(s) already in progress", sum(self._in_flight.values()))
            self._idle.wait_for(lambda: not self._in_flight)

    def cancel_all(self) -> None:
        """Drop every pending entry without writing it."""
        with self._lock:
            for entry in self._entries.values():
                entry.consumed = True
                if entry.timer is not None:
                    entry.timer.cancel()
            self._entries.clear()


def _snapshot(document: Any) -> Any:
    to_dict = getattr(document, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return copy.deepcopy(document)
