# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
Typed models for every document Melodeck persists.

Attributes are snake_case; the JSON documents keep the camelCase keys the
converter tool chain reads (``replacementFilePath``, ``loopStartSample``
...).  Unknown keys are dropped on load so that older or hand-edited
files never cause a crash.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields
from typing import Any


HIDDEN_CATEGORY = "hidden"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _safe_dataclass_from_dict(dataclass_type: type, value: dict[str, Any], skip: set[str] = frozenset()):
    """Build dataclass instance from camelCase keys, ignoring unknown ones."""
    known = {_camel(f.name): f.name for f in fields(dataclass_type) if f.name not in skip}
    filtered = {known[k]: v for k, v in value.items() if k in known}
    return dataclass_type(**filtered)


def _flat_to_dict(obj: Any) -> dict[str, Any]:
    return {_camel(f.name): copy.deepcopy(getattr(obj, f.name)) for f in fields(obj)}


def _require_mapping(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be an object, got {type(value).__name__}")
    return value


def _sample(value: Any) -> int:
    if value is None or value == "":
        return 0
    return int(value)


# -- Music data ------------------------------------------------------------

@dataclass
class Song:
    """One track entry of a music-data document."""
    id: str = ""
    is_enabled: bool = False
    name: str = ""
    category: str = ""
    original_file: str | None = None
    replacement_file_path: str | None = None
    loop_start_sample: int = 0
    loop_end_sample: int = 0
    output_file_path: str = ""
    extra_data: Any = None

    @property
    def visible(self) -> bool:
        return self.category != HIDDEN_CATEGORY

    @classmethod
    def from_dict(cls, value: Any) -> Song:
        song = _safe_dataclass_from_dict(cls, _require_mapping(value, "song"))
        song.id = str(song.id)
        song.is_enabled = bool(song.is_enabled)
        song.loop_start_sample = _sample(song.loop_start_sample)
        song.loop_end_sample = _sample(song.loop_end_sample)
        return song

    def to_dict(self) -> dict[str, Any]:
        return _flat_to_dict(self)


@dataclass
class MusicData:
    """Ordered song list for one game."""
    game: str | None = None
    songs: list[Song] = field(default_factory=list)

    @classmethod
    def from_dict(cls, value: Any) -> MusicData:
        raw = _require_mapping(value, "music data")
        songs = raw.get("songs")
        if not isinstance(songs, list):
            raise ValueError("music data has no song list")
        return cls(game=raw.get("game"), songs=[Song.from_dict(s) for s in songs])

    def to_dict(self) -> dict[str, Any]:
        return {"game": self.game, "songs": [s.to_dict() for s in self.songs]}

    def copy(self) -> MusicData:
        return copy.deepcopy(self)

    def index_of(self, song_id: str) -> int | None:
        for index, song in enumerate(self.songs):
            if song.id == song_id:
                return index
        return None

    def song(self, song_id: str) -> Song | None:
        index = self.index_of(song_id)
        return None if index is None else self.songs[index]

    def visible_songs(self) -> list[Song]:
        return [s for s in self.songs if s.visible]


@dataclass
class LoopData:
    """A loop record, stored on disk as ``{"settings": {"loopstart", "loopend"}}``."""
    loop_start: int = 0
    loop_end: int = 0

    @classmethod
    def from_dict(cls, value: Any) -> LoopData:
        settings = _require_mapping(_require_mapping(value, "loop data").get("settings"), "loop settings")
        return cls(
            loop_start=_sample(settings.get("loopstart")),
            loop_end=_sample(settings.get("loopend")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"settings": {"loopstart": self.loop_start, "loopend": self.loop_end}}


# -- Games config ----------------------------------------------------------

@dataclass
class GameSettings:
    music_data_path: str | None = None
    game_directory: str | None = None
    output_directory: str | None = None
    low_performance: bool = False
    encoded_format: str | None = None
    supported_filetypes: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, value: Any) -> GameSettings:
        settings = _safe_dataclass_from_dict(cls, _require_mapping(value, "game settings"))
        settings.supported_filetypes = list(settings.supported_filetypes or [])
        return settings

    def to_dict(self) -> dict[str, Any]:
        return _flat_to_dict(self)


@dataclass
class GameEntry:
    """One supported game.  ``tool`` is ``None`` for the built-in converter."""
    name: str = ""
    theme: str = ""
    installed: bool = False
    tool: Any = None
    settings: GameSettings = field(default_factory=GameSettings)

    @property
    def uses_builtin_converter(self) -> bool:
        return self.tool is None

    @classmethod
    def from_dict(cls, value: Any) -> GameEntry:
        raw = _require_mapping(value, "game entry")
        entry = _safe_dataclass_from_dict(cls, raw, skip={"settings"})
        entry.settings = GameSettings.from_dict(raw.get("settings") or {})
        return entry

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "theme": self.theme,
            "installed": self.installed,
            "tool": copy.deepcopy(self.tool),
            "settings": self.settings.to_dict(),
        }


@dataclass
class GamesConfig:
    selected_game: str | None = None
    games: list[GameEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, value: Any) -> GamesConfig:
        raw = _require_mapping(value, "games config")
        games = raw.get("games")
        if not isinstance(games, list):
            raise ValueError("games config has no games list")
        return cls(
            selected_game=raw.get("selectedGame"),
            games=[GameEntry.from_dict(g) for g in games],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "selectedGame": self.selected_game,
            "games": [g.to_dict() for g in self.games],
        }

    def game_names(self) -> list[str]:
        return [g.name for g in self.games]

    def entry(self, name: str | None) -> GameEntry | None:
        for game in self.games:
            if game.name == name:
                return game
        return None


# -- App config ------------------------------------------------------------

@dataclass
class AppSettings:
    show_debug_messages: bool = False

    def to_dict(self) -> dict[str, Any]:
        return _flat_to_dict(self)


@dataclass
class ToolEntry:
    name: str = ""
    path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _flat_to_dict(self)


@dataclass
class Dependencies:
    converter_path: str | None = None
    tools: list[ToolEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, value: Any) -> Dependencies:
        raw = _require_mapping(value, "dependencies")
        converter = raw.get("converterPath", raw.get("phosPath"))
        tools = [
            _safe_dataclass_from_dict(ToolEntry, t)
            for t in raw.get("tools") or []
            if isinstance(t, dict)
        ]
        return cls(converter_path=converter, tools=tools)

    def to_dict(self) -> dict[str, Any]:
        return {
            "converterPath": self.converter_path,
            "tools": [t.to_dict() for t in self.tools],
        }


@dataclass
class AppConfig:
    settings: AppSettings = field(default_factory=AppSettings)
    dependencies: Dependencies = field(default_factory=Dependencies)

    REQUIRED_KEYS = ("settings", "dependencies")

    @classmethod
    def from_dict(cls, value: Any) -> AppConfig:
        """Parse an app config, raising ``ValueError`` if a required section is missing."""
        raw = _require_mapping(value, "app config")
        missing = [key for key in cls.REQUIRED_KEYS if key not in raw]
        if missing:
            raise ValueError(f"app config is missing {', '.join(missing)}")
        return cls(
            settings=_safe_dataclass_from_dict(AppSettings, _require_mapping(raw["settings"], "settings")),
            dependencies=Dependencies.from_dict(raw["dependencies"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "settings": self.settings.to_dict(),
            "dependencies": self.dependencies.to_dict(),
        }
