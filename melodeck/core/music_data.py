# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
Song-level edits on a :class:`~melodeck.core.models.MusicData` document.

Every operation here is pure: it returns a new document and leaves the one
it was given untouched.  The session substitutes the result and queues
the save.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from melodeck.core.defaults import LOOP_DATA_SUFFIX, MAX_LOOP_SAMPLE, RAW_EXTENSION, TXTH_SUFFIX
from melodeck.core.errors import (
    DocumentError,
    DocumentNotFoundError,
    InvalidLoopError,
    SongNotFoundError,
)
from melodeck.core.file_io import read_document, read_text, write_document
from melodeck.core.models import LoopData, MusicData, Song
from melodeck.core.paths import AppPaths

log = logging.getLogger(__name__)


# -- Loop data -------------------------------------------------------------

def parse_txth(text: str) -> LoopData:
    """Read ``loop_start_sample = N`` / ``loop_end_sample = N`` lines.

    Missing keys stay 0.
    """
    loop = LoopData()
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        try:
            number = int(value.strip())
        except ValueError:
            continue
        if key == "loop_start_sample":
            loop.loop_start = number
        elif key == "loop_end_sample":
            loop.loop_end = number
    return loop


def validate_loop_sample(value: Any, what: str = "loop sample") -> int:
    # bool is an int subclass but never a sample offset
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidLoopError(f"{what} must be an integer, got {value!r}")
    if not 0 <= value < MAX_LOOP_SAMPLE:
        raise InvalidLoopError(f"{what} {value} is outside [0, {MAX_LOOP_SAMPLE})")
    return value


class LoopDataResolver:
    """Finds the loop points for a replacement file.

    Lookup order, first hit wins:

    1. the saved record in the loop-data directory;
    2. ``<file>.p4g`` next to the file;
    3. ``songs/<name>.p4g`` next to the file;
    4. ``<file>.txth`` for raw files;
    5. a new zeroed record, saved to the loop-data directory.
    """

    def __init__(self, paths: AppPaths, writer: Callable[[Path, Any], Any] = write_document) -> None:
        self._paths = paths
        self._writer = writer

    def path_for(self, song_file: str | Path) -> Path:
        return self._paths.loop_data_path(song_file)

    def resolve(self, song_file: str | Path) -> LoopData:
        song_file = Path(song_file)
        name = song_file.name

        candidates = (
            ("saved", self.path_for(song_file)),
            ("local", song_file.with_name(name + LOOP_DATA_SUFFIX)),
            ("songs folder", song_file.parent / "songs" / (name + LOOP_DATA_SUFFIX)),
        )
        for label, candidate in candidates:
            loop = _read_loop_record(candidate)
            if loop is not None:
                log.debug("%s: Loaded %s loop data", name, label)
                return loop

        if song_file.suffix.lower() == RAW_EXTENSION:
            txth = song_file.with_name(name + TXTH_SUFFIX)
            try:
                loop = parse_txth(read_text(txth, tolerate_missing=True))
            except DocumentNotFoundError:
                log.error("Raw files require a txth file present! Missing: %s", txth)
            except DocumentError as exc:
                log.warning("%s: Unreadable txth file, ignoring it (%s)", name, exc)
            else:
                log.debug("%s: Loaded txth loop data", name)
                return loop

        loop = LoopData()
        try:
            self.save(song_file, loop)
        except DocumentError:
            log.error("%s: Failed to create loop data!", name)
        else:
            log.debug("%s: New loop data created", name)
        return loop

    def save(self, song_file: str | Path, loop: LoopData) -> Path:
        return self._writer(self.path_for(song_file), loop)


def _read_loop_record(path: Path) -> LoopData | None:
    try:
        return LoopData.from_dict(read_document(path, tolerate_missing=True))
    except (DocumentError, TypeError, ValueError):
        return None


# -- Mutations -------------------------------------------------------------

def _locate(data: MusicData, song_id: str) -> tuple[MusicData, Song]:
    updated = data.copy()
    song = updated.song(song_id)
    if song is None:
        raise SongNotFoundError(f"No song with id {song_id!r}")
    return updated, song


def set_replacement(
    data: MusicData,
    song_id: str,
    new_file: str | Path | None,
    resolver: LoopDataResolver,
) -> MusicData:
    """Assign (or with ``None``, remove) the replacement file of a song."""
    updated, song = _locate(data, song_id)
    if new_file is None:
        song.replacement_file_path = None
        song.loop_start_sample = 0
        song.loop_end_sample = 0
        song.is_enabled = False
        log.info('Removed replacement for "%s"', song.name)
        return updated

    loop = resolver.resolve(new_file)
    song.replacement_file_path = str(new_file)
    song.loop_start_sample = loop.loop_start
    song.loop_end_sample = loop.loop_end
    song.is_enabled = True
    log.info('Replacing "%s" with "%s"', song.name, Path(new_file).name)
    return updated


def set_loop(data: MusicData, song_id: str, start: int, end: int) -> MusicData:
    """Overwrite both loop samples of a song.  ``start < end`` is not enforced."""
    validate_loop_sample(start, "loop start")
    validate_loop_sample(end, "loop end")
    updated, song = _locate(data, song_id)
    if song.replacement_file_path is None:
        raise InvalidLoopError(f'"{song.name}" has no replacement file to loop')
    song.loop_start_sample = start
    song.loop_end_sample = end
    log.debug("%s: Loop set to %d - %d", song.name, start, end)
    return updated


def loop_record(song: Song) -> LoopData:
    return LoopData(loop_start=song.loop_start_sample, loop_end=song.loop_end_sample)


def set_batch_loop(
    song_file: str | Path,
    start: int,
    end: int,
    writer: Callable[[Path, Any], Any] = write_document,
) -> Path:
    """Write a loop record beside a batch-converted song (``<file>.p4g``)."""
    validate_loop_sample(start, "loop start")
    validate_loop_sample(end, "loop end")
    song_file = Path(song_file)
    return writer(song_file.with_name(song_file.name + LOOP_DATA_SUFFIX), LoopData(start, end))


def clear_replacements(data: MusicData) -> MusicData:
    """Every song back to the no-replacement state."""
    updated = data.copy()
    for song in updated.songs:
        song.replacement_file_path = None
        song.loop_start_sample = 0
        song.loop_end_sample = 0
        song.is_enabled = False
    return updated
