# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
Presets: bulk song assignments applied on top of the current music data.

A raw preset is decoded into a :class:`Preset` tagged with its
:class:`PresetKind` before anything is merged:

``None``            clear every replacement
``"default"``       reset to the game's default music data
``{"game", "type": "music-data"}``  replace the song list
``{"game", "type": "song-pack"}``   merge songs matched by output path
``{"songpack": [...]}``             legacy pack, merged by song id
"""

from __future__ import annotations

import copy
import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from melodeck.core.defaults import LEGACY_PRESET_CATEGORY, LOOP_DATA_SUFFIX
from melodeck.core.errors import InvalidPresetError, NoMusicDataError, PresetGameMismatchError
from melodeck.core.file_io import read_document, write_document
from melodeck.core.models import HIDDEN_CATEGORY, LoopData, MusicData, Song
from melodeck.core.music_data import clear_replacements, validate_loop_sample

log = logging.getLogger(__name__)

PRESET_EXTENSION = ".songs"
LEGACY_PRESET_EXTENSION = ".p4g"

MUSIC_DATA_TYPE = "music-data"
SONG_PACK_TYPE = "song-pack"
DEFAULT_SENTINEL = "default"


class PresetKind(enum.Enum):
    CLEAR = "clear"
    DEFAULT = "default"
    MUSIC_DATA = MUSIC_DATA_TYPE
    SONG_PACK = SONG_PACK_TYPE
    LEGACY = "legacy"


@dataclass
class LegacyEntry:
    """One entry of a legacy ``songpack`` list."""
    id: str
    file_name: str | None
    loop_start: int = 0
    loop_end: int = 0


@dataclass
class Preset:
    kind: PresetKind
    game: str | None = None
    name: str | None = None
    songs: list[Song] = field(default_factory=list)
    legacy_entries: list[LegacyEntry] = field(default_factory=list)


# -- Decoding --------------------------------------------------------------

def _decode_song(value: Any) -> Song:
    song = Song.from_dict(value)
    validate_loop_sample(song.loop_start_sample, "loop start")
    validate_loop_sample(song.loop_end_sample, "loop end")
    return song


def _decode_legacy_entry(value: Any) -> LegacyEntry:
    if not isinstance(value, dict):
        raise ValueError(f"songpack entry must be an object, got {type(value).__name__}")
    return LegacyEntry(
        id=str(value.get("id")),
        file_name=value.get("fileName"),
        loop_start=_legacy_sample(value.get("loopstartSample"), "loop start"),
        loop_end=_legacy_sample(value.get("loopendSample"), "loop end"),
    )


def _legacy_sample(value: Any, what: str) -> int:
    # absent samples mean no loop
    if value is None:
        return 0
    return validate_loop_sample(value, what)


def decode_preset(raw: Any) -> Preset:
    """Classify *raw* into a :class:`Preset`.

    Raises :class:`InvalidPresetError` for anything that matches no known
    preset form or carries malformed songs.
    """
    if raw is None:
        return Preset(PresetKind.CLEAR)
    if raw == DEFAULT_SENTINEL:
        return Preset(PresetKind.DEFAULT)
    if not isinstance(raw, dict):
        raise InvalidPresetError(f"Invalid preset: {type(raw).__name__} is not a preset document")

    try:
        if raw.get("game") is not None:
            preset_type = raw.get("type")
            if preset_type not in (MUSIC_DATA_TYPE, SONG_PACK_TYPE):
                raise InvalidPresetError(f"Invalid preset type {preset_type!r}")
            songs = raw.get("songs")
            if not isinstance(songs, list):
                raise InvalidPresetError("Preset has no song list")
            return Preset(
                kind=PresetKind(preset_type),
                game=raw["game"],
                name=raw.get("name"),
                songs=[_decode_song(s) for s in songs],
            )

        if isinstance(raw.get("songpack"), list):
            return Preset(
                kind=PresetKind.LEGACY,
                name=raw.get("name"),
                legacy_entries=[_decode_legacy_entry(e) for e in raw["songpack"]],
            )
    except (TypeError, ValueError) as exc:
        if isinstance(exc, InvalidPresetError):
            raise
        raise InvalidPresetError(f"Invalid preset: {exc}") from exc

    raise InvalidPresetError("Invalid preset was selected!")


# -- Merging ---------------------------------------------------------------

def _check_game(preset: Preset, game: str | None) -> None:
    if preset.game != game:
        log.error("Song Pack Preset is for a different game! Preset game: %s", preset.game)
        raise PresetGameMismatchError(preset.game, game)


def _normalise(song: Song) -> None:
    song.is_enabled = song.replacement_file_path is not None
    if not song.is_enabled:
        song.loop_start_sample = 0
        song.loop_end_sample = 0


def _merge_song_pack(data: MusicData, preset: Preset) -> MusicData:
    updated = data.copy()
    for preset_song in preset.songs:
        existing = next(
            (s for s in updated.songs if s.output_file_path == preset_song.output_file_path),
            None,
        )
        if existing is not None:
            existing.name = preset_song.name
            existing.category = preset_song.category
            existing.replacement_file_path = preset_song.replacement_file_path
            existing.loop_start_sample = preset_song.loop_start_sample
            existing.loop_end_sample = preset_song.loop_end_sample
            existing.extra_data = copy.deepcopy(preset_song.extra_data)
            _normalise(existing)
            log.debug(
                'Song Pack: Replacing "%s" with "%s"',
                existing.name, Path(existing.replacement_file_path or "").name,
            )
            continue

        song = Song(
            id=str(len(updated.songs)),
            name=preset_song.name,
            category=preset_song.category,
            original_file=None,
            replacement_file_path=preset_song.replacement_file_path,
            loop_start_sample=preset_song.loop_start_sample,
            loop_end_sample=preset_song.loop_end_sample,
            output_file_path=preset_song.output_file_path,
            extra_data=copy.deepcopy(preset_song.extra_data),
        )
        _normalise(song)
        updated.songs.append(song)
        log.debug("New song added by Song Pack: %s", preset.name)

    log.info("Song Pack: %s loaded", preset.name)
    return updated


def _merge_legacy(data: MusicData, preset: Preset) -> MusicData:
    updated = data.copy()
    for entry in preset.legacy_entries:
        song = updated.song(entry.id)
        if song is None:
            log.debug("Legacy Song Pack: no song with id %s, entry skipped", entry.id)
            continue
        if song.category == HIDDEN_CATEGORY:
            song.category = LEGACY_PRESET_CATEGORY
        song.replacement_file_path = entry.file_name
        song.loop_start_sample = entry.loop_start
        song.loop_end_sample = entry.loop_end
        _normalise(song)

    log.warning("Legacy Song Pack Preset loaded, some song files may not be found")
    return updated


def apply_preset(
    preset: Preset,
    data: MusicData,
    game: str | None,
    default_loader: Callable[[], MusicData | None],
) -> MusicData:
    """Return *data* with *preset* applied.  *data* itself is not modified.

    Raises :class:`PresetGameMismatchError` when a game-bound preset was
    made for another game, and :class:`NoMusicDataError` when the default
    preset is requested but no default music data exists.
    """
    if preset.kind is PresetKind.CLEAR:
        return clear_replacements(data)

    if preset.kind is PresetKind.DEFAULT:
        default = default_loader()
        if default is None:
            raise NoMusicDataError(f"No default music data for {game}")
        log.info("Default music data loaded")
        return MusicData(game=data.game, songs=copy.deepcopy(default.songs))

    if preset.kind is PresetKind.MUSIC_DATA:
        _check_game(preset, game)
        log.info("Music Data Preset loaded")
        return MusicData(game=data.game, songs=copy.deepcopy(preset.songs))

    if preset.kind is PresetKind.SONG_PACK:
        _check_game(preset, game)
        return _merge_song_pack(data, preset)

    return _merge_legacy(data, preset)


# -- Preset files ----------------------------------------------------------

def _reroot(base: Path, value: Any) -> Any:
    if not isinstance(value, str) or not value or Path(value).is_absolute():
        return value
    return str(base / value)


def load_preset_file(path: str | Path) -> Preset:
    """Read a ``.songs`` / legacy ``.p4g`` preset and decode it.

    Relative song paths are made absolute: song-pack files live in a
    ``songs`` folder beside the preset, legacy files beside it directly.
    """
    path = Path(path)
    raw = read_document(path)
    folder = path.parent

    if isinstance(raw, dict):
        if raw.get("type") == SONG_PACK_TYPE and isinstance(raw.get("songs"), list):
            for song in raw["songs"]:
                if isinstance(song, dict):
                    song["replacementFilePath"] = _reroot(folder / "songs", song.get("replacementFilePath"))
        elif raw.get("game") is None and isinstance(raw.get("songpack"), list):
            log.warning("Legacy presets are not fully supported, song files may be misplaced")
            for entry in raw["songpack"]:
                if isinstance(entry, dict):
                    entry["fileName"] = _reroot(folder, entry.get("fileName"))

    preset = decode_preset(raw)
    log.debug("Preset %s decoded as %s", path.name, preset.kind.value)
    return preset


def build_music_data_preset(name: str, data: MusicData) -> dict[str, Any]:
    return {
        "game": data.game,
        "name": name,
        "type": MUSIC_DATA_TYPE,
        "songs": [s.to_dict() for s in data.songs],
    }


def save_preset(path: str | Path, data: MusicData, writer: Callable[[Path, Any], Any] = write_document) -> Path:
    """Save *data* as a music-data preset named after the file."""
    path = Path(path)
    writer(path, build_music_data_preset(path.stem, data))
    log.info("Preset saved to %s", path)
    return path


def exported_file_name(replacement: str, encoded_format: str) -> str:
    """Name the converter gives *replacement* when exporting it."""
    return Path(replacement).stem + encoded_format


def build_song_pack_preset(
    name: str,
    data: MusicData,
    encoded_format: str,
) -> tuple[dict[str, Any], dict[str, LoopData]]:
    """Song-pack document for the enabled songs of *data*.

    Also returns the loop records to store beside the exported files,
    keyed by ``<exported file>.p4g``.
    """
    document: dict[str, Any] = {"game": data.game, "name": name, "type": SONG_PACK_TYPE, "songs": []}
    loops: dict[str, LoopData] = {}
    for song in data.songs:
        if not song.is_enabled or song.replacement_file_path is None:
            continue
        file_name = exported_file_name(song.replacement_file_path, encoded_format)
        document["songs"].append({
            "name": song.name,
            "category": song.category,
            "replacementFilePath": file_name,
            "loopStartSample": song.loop_start_sample,
            "loopEndSample": song.loop_end_sample,
            "outputFilePath": song.output_file_path,
            "extraData": copy.deepcopy(song.extra_data),
        })
        loops.setdefault(file_name + LOOP_DATA_SUFFIX, LoopData(song.loop_start_sample, song.loop_end_sample))
    return document, loops


def write_song_pack(
    path: str | Path,
    data: MusicData,
    encoded_format: str,
    writer: Callable[[Path, Any], Any] = write_document,
) -> Path:
    """Write the song-pack preset at *path* and its loop records into ``songs/``.

    The audio files themselves are exported into the same ``songs`` folder
    by the converter.
    """
    path = Path(path)
    document, loops = build_song_pack_preset(path.stem, data, encoded_format)
    songs_dir = path.parent / "songs"
    for file_name, loop in loops.items():
        writer(songs_dir / file_name, loop)
    writer(path, document)
    log.info("Song Pack %s exported with %d song(s)", path.stem, len(document["songs"]))
    return path
