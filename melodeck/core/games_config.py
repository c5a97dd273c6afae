# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
Game registry: the games config document plus the current game's music data.

The registry owns both.  Music data is replaced wholesale whenever the
selected game or its music-data path changes, and by the session after
every song mutation (:meth:`GameRegistry.replace_music_data`).
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from melodeck.core.defaults import default_games_config, theme_by_name, theme_css
from melodeck.core.errors import (
    DocumentError,
    DocumentNotFoundError,
    GameNotFoundError,
    GameSupportError,
    InvalidThemeError,
)
from melodeck.core.file_io import read_document, write_document
from melodeck.core.models import GameEntry, GamesConfig, MusicData
from melodeck.core.paths import AppPaths
from melodeck.core.save_queue import SaveQueue

log = logging.getLogger(__name__)


@dataclass
class GameSupport:
    """Encoded output format and accepted input extensions for a game."""
    encoded_format: str | None
    supported_filetypes: list[str] = field(default_factory=list)   # without the dot
    game_flag: str | None = None


def _strip_dots(filetypes: Any) -> list[str]:
    return [str(t)[1:] if str(t).startswith(".") else str(t) for t in filetypes or []]


class GameRegistry:
    """Supported games, the selected game and its current music data."""

    def __init__(self, paths: AppPaths, save_queue: SaveQueue) -> None:
        self._paths = paths
        self._queue = save_queue
        self._config = default_games_config()
        self._music_data: MusicData | None = None

    # -- Accessors ---------------------------------------------------------

    @property
    def config(self) -> GamesConfig:
        return self._config

    @property
    def path(self) -> Path:
        return self._paths.games_config_path

    @property
    def music_data(self) -> MusicData | None:
        return self._music_data

    @property
    def current_game(self) -> str | None:
        return self._config.selected_game

    @property
    def current_game_entry(self) -> GameEntry | None:
        return self._config.entry(self.current_game)

    def game_entry(self, name: str) -> GameEntry | None:
        return self._config.entry(name)

    def games_list(self) -> list[str]:
        return self._config.game_names()

    def theme_name(self) -> str | None:
        entry = self.current_game_entry
        return entry.theme if entry is not None else None

    def theme_css(self) -> str:
        return theme_css(self.theme_name())

    def _entry_at(self, game_index: int | None) -> GameEntry:
        if game_index is None:
            entry = self.current_game_entry
            if entry is None:
                raise GameNotFoundError("No game selected")
            return entry
        if not 0 <= game_index < len(self._config.games):
            raise GameNotFoundError(f"No game at index {game_index}")
        return self._config.games[game_index]

    # -- Persistence -------------------------------------------------------

    def load(self) -> bool:
        """Load the games config and the selected game's music data."""
        loaded = self._load_games_config()
        self._music_data = self._load_music_data()
        return loaded

    def _load_games_config(self) -> bool:
        try:
            raw = read_document(self.path, tolerate_missing=True)
        except DocumentNotFoundError:
            return self._write_defaults()
        except DocumentError as exc:
            if isinstance(exc, ValueError):
                return self._write_defaults()
            log.error("Failed to load games config: %s", exc)
            self._config = default_games_config()
            return False

        try:
            self._config = GamesConfig.from_dict(raw)
        except (TypeError, ValueError) as exc:
            log.error("Invalid games config! %s", exc)
            return self._write_defaults()

        if self._config.selected_game is not None and self.current_game_entry is None:
            log.warning("Selected game %r is not configured, clearing selection", self._config.selected_game)
            self._config.selected_game = None
        log.debug("Games config loaded")
        return True

    def _write_defaults(self) -> bool:
        self._config = default_games_config()
        try:
            write_document(self.path, self._config)
        except DocumentError:
            log.error("Failed to create new games config!")
            return False
        log.info("Created new games config")
        return True

    def save(self) -> None:
        self._queue.enqueue(self.path, self._config)

    def save_music_data(self) -> None:
        """Queue the current music data for writing to its configured path."""
        entry = self.current_game_entry
        if self._music_data is None or entry is None:
            return
        path = entry.settings.music_data_path
        if path is None:
            log.error("No music data path set for %s, changes not saved", entry.name)
            return
        self._queue.enqueue(path, self._music_data)

    def _load_music_data(self) -> MusicData | None:
        """Resolve the current game's music data.

        1. the configured music-data path;
        2. a copy of ``<settings>/<game>/default-music-data.json``, written to
           the per-game current path which becomes the configured path;
        3. nothing (``None``), which is a valid state.
        """
        game = self.current_game
        if game is None:
            log.debug("No game selected, music data set to None")
            return None
        entry = self.current_game_entry
        if entry is None:
            log.error("Selected game %r has no config entry", game)
            return None

        configured = entry.settings.music_data_path
        if configured is not None:
            try:
                data = MusicData.from_dict(read_document(configured, tolerate_missing=True))
            except DocumentNotFoundError:
                log.warning("Music data for %s not found at %s", game, configured)
            except DocumentError as exc:
                log.warning("Music data for %s could not be read: %s", game, exc)
            except (TypeError, ValueError) as exc:
                log.error("Music data at %s is invalid: %s", configured, exc)
            else:
                log.debug("Music data loaded for %s", game)
                return data

        default_path = self._paths.default_music_data_path(game)
        try:
            default = MusicData.from_dict(read_document(default_path, tolerate_missing=True))
        except DocumentNotFoundError:
            log.error("No default music data found for %s!", game)
            return None
        except (DocumentError, TypeError, ValueError):
            log.error("Failed to load default music data for %s!", game)
            return None

        current = MusicData(game=default.game or game, songs=copy.deepcopy(default.songs))
        current_path = self._paths.current_music_data_path(game)
        try:
            write_document(current_path, current)
        except DocumentError:
            log.error("Failed to set music data for %s!", game)
            return None

        entry.settings.music_data_path = str(current_path)
        self.save()
        log.info("Created new music data for %s", game)
        return current

    def load_default_music_data(self) -> MusicData | None:
        """The current game's built-in default music data, or ``None``."""
        game = self.current_game
        if game is None:
            return None
        try:
            return MusicData.from_dict(
                read_document(self._paths.default_music_data_path(game), tolerate_missing=True)
            )
        except DocumentNotFoundError:
            log.error("No default music data found for %s!", game)
        except (DocumentError, TypeError, ValueError):
            log.error("Failed to load default music data for %s!", game)
        return None

    def replace_music_data(self, data: MusicData) -> None:
        self._music_data = data

    # -- Game selection ----------------------------------------------------

    def select_game(self, name: str) -> bool:
        """Select *name* and load its music data.  Returns whether it changed."""
        if name not in self.games_list():
            raise GameNotFoundError(f"{name} not found in games list!")
        if name == self.current_game:
            return False
        # Pending writes must land before music data is re-read from disk.
        self._queue.flush_all()
        self._config.selected_game = name
        self._music_data = self._load_music_data()
        self.save()
        log.debug("Game changed to %s", name)
        return True

    def set_music_data_path(self, path: str | Path) -> MusicData | None:
        """Point the current game at *path* and reload music data from it."""
        entry = self._entry_at(None)
        self._queue.flush_all()
        entry.settings.music_data_path = str(path)
        self._music_data = self._load_music_data()
        self.save()
        return self._music_data

    # -- Per-game settings -------------------------------------------------

    def set_game_directory(self, directory: str | Path, game_index: int | None = None) -> GamesConfig:
        self._entry_at(game_index).settings.game_directory = str(directory)
        self.save()
        return self._config

    def set_output_directory(self, directory: str | Path, game_index: int | None = None) -> GamesConfig:
        self._entry_at(game_index).settings.output_directory = str(directory)
        self.save()
        return self._config

    def set_low_performance(self, enabled: bool, game_index: int | None = None) -> GamesConfig:
        if not isinstance(enabled, bool):
            raise ValueError(f"performance mode must be a bool, got {enabled!r}")
        self._entry_at(game_index).settings.low_performance = enabled
        self.save()
        return self._config

    def set_theme(self, theme_name: str, game_index: int | None = None) -> GamesConfig:
        if theme_by_name(theme_name) is None:
            raise InvalidThemeError(f"Unknown theme {theme_name!r}")
        self._entry_at(game_index).theme = theme_name
        self.save()
        return self._config

    # -- Converter support -------------------------------------------------

    def get_game_support(self, manifest: dict[str, Any] | None) -> GameSupport:
        """Resolve encoded format and accepted extensions for the current game.

        Games with a custom tool carry this in their own settings; games using
        the built-in converter are looked up in the converter's support
        manifest.
        """
        entry = self.current_game_entry
        if entry is None:
            raise GameSupportError("No game selected")

        if not entry.uses_builtin_converter:
            return GameSupport(
                encoded_format=entry.settings.encoded_format,
                supported_filetypes=_strip_dots(entry.settings.supported_filetypes),
            )

        if not isinstance(manifest, dict):
            raise GameSupportError("Converter game support manifest is not loaded")
        for game in manifest.get("games") or []:
            if isinstance(game, dict) and game.get("name") == entry.name:
                support = GameSupport(
                    encoded_format=game.get("encodedFormat"),
                    supported_filetypes=_strip_dots(game.get("supportedFiletypes")),
                    game_flag=game.get("flag"),
                )
                log.debug(
                    "%s - Encoded Format: %s Supported Filetypes: %s",
                    entry.name, support.encoded_format, support.supported_filetypes,
                )
                return support
        raise GameSupportError(f"{entry.name} is not in the converter's game support manifest")
