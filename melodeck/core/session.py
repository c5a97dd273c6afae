# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
The running Melodeck session.

:class:`MusicSession` owns the configs, the current music data and the
save queue for one process.  Front ends call its request methods and
listen to its two signals:

``music_data_changed({"updatedMusicData": {...}})``
    after every song edit or preset load.
``config_changed({"updatedSettings": {"theme"?, "musicData"?}})``
    when a config change affects the theme or the loaded music data.

Requests never raise for bad input; they log and return ``None`` /
``False`` so the front end can decide what to tell the user.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import Any

from PySide6.QtCore import QObject, Signal

from melodeck.core.app_config import AppConfigStore
from melodeck.core.converter import (
    ConverterCommand,
    batch_command,
    build_command,
    export_command,
    load_support_manifest,
    run_converter,
    tool_command,
)
from melodeck.core.defaults import THEMES, theme_by_name
from melodeck.core.errors import (
    DocumentError,
    GameNotFoundError,
    GameSupportError,
    InvalidLoopError,
    InvalidPresetError,
    InvalidThemeError,
    NoMusicDataError,
    PresetGameMismatchError,
    SongNotFoundError,
    UnknownSettingError,
)
from melodeck.core.file_io import ensure_directory
from melodeck.core.games_config import GameRegistry, GameSupport
from melodeck.core.log_history import LogHistoryHandler
from melodeck.core.models import MusicData
from melodeck.core.music_data import (
    LoopDataResolver,
    clear_replacements,
    loop_record,
    set_batch_loop,
    set_loop,
    set_replacement,
)
from melodeck.core.paths import AppPaths
from melodeck.core import presets
from melodeck.core.save_queue import SaveQueue

log = logging.getLogger(__name__)

# Setting names accepted by MusicSession.change_config
SETTING_NAMES = (
    "music_data",
    "game_directory",
    "output_directory",
    "performance_mode",
    "game_theme",
    "current_game",
    "show_debug",
)


class MusicSession(QObject):
    """Request entry points plus change notifications for one session."""

    # payload dicts are passed through untouched as Python objects
    music_data_changed = Signal(object)
    config_changed = Signal(object)

    def __init__(
        self,
        paths: AppPaths,
        *,
        save_queue: SaveQueue | None = None,
        log_history: LogHistoryHandler | None = None,
        runner=subprocess.run,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._lock = threading.RLock()
        self.paths = paths
        self.log_history = log_history
        if save_queue is None:
            save_queue = SaveQueue(log_writer=log_history.write if log_history is not None else None)
        self.save_queue = save_queue
        self.app_config_store = AppConfigStore(paths, save_queue)
        self.registry = GameRegistry(paths, save_queue)
        self.loop_resolver = LoopDataResolver(paths)
        self._runner = runner
        self._manifest: dict[str, Any] | None = None

    # -- Lifecycle ---------------------------------------------------------

    def start(self) -> bool:
        """Create directories and load every config.

        Returns ``False`` if a config could not be loaded; the session is
        still usable with defaults in that case.
        """
        with self._lock:
            try:
                self.paths.ensure()
            except DocumentError:
                log.error("Failed to create application directories")
            app_loaded = self.app_config_store.load()
            games_loaded = self.registry.load()
            self._apply_show_debug(self.app_config_store.show_debug)
            self._manifest = load_support_manifest(self.app_config_store.converter_path)

            if not (app_loaded and games_loaded):
                self.save_queue.flush_all()
                return False
            log.debug("Session started")
            return True

    def shutdown(self) -> None:
        """Write everything still queued, including the log history."""
        with self._lock:
            written = self.save_queue.flush_all(include_log=True)
        log.debug("Session shut down, %d file(s) flushed", written)

    def _apply_show_debug(self, show: bool) -> None:
        logging.getLogger("melodeck").setLevel(logging.DEBUG if show else logging.INFO)
        if self.log_history is not None:
            self.log_history.set_show_debug(show)

    # -- Reads -------------------------------------------------------------

    def game_theme(self) -> str:
        with self._lock:
            css = self.registry.theme_css()
            log.debug("Sending theme - %s, Theme: %s", self.registry.current_game, css)
            return css

    def app_themes(self) -> list[str]:
        return [theme.name for theme in THEMES]

    def music_data(self) -> dict[str, Any] | None:
        with self._lock:
            data = self.registry.music_data
            return data.to_dict() if data is not None else None

    def games_config(self) -> dict[str, Any]:
        with self._lock:
            return self.registry.config.to_dict()

    def app_config(self) -> dict[str, Any]:
        with self._lock:
            return self.app_config_store.config.to_dict()

    def game_support(self) -> GameSupport | None:
        with self._lock:
            try:
                return self.registry.get_game_support(self._manifest)
            except GameSupportError as exc:
                log.error("%s", exc)
                return None

    def replacement_filetypes(self) -> list[str] | None:
        """Extensions (without the dot) a replacement file may have."""
        support = self.game_support()
        return support.supported_filetypes if support is not None else None

    # -- Music data --------------------------------------------------------

    def _require_music_data(self) -> MusicData:
        data = self.registry.music_data
        if data is None:
            raise NoMusicDataError("No music data loaded")
        return data

    def _commit(self, data: MusicData) -> None:
        self.registry.replace_music_data(data)
        self.registry.save_music_data()
        log.debug("Sending new music data")
        self.music_data_changed.emit({"updatedMusicData": data.to_dict()})

    def _accepts_file(self, path: str | Path) -> bool:
        try:
            support = self.registry.get_game_support(self._manifest)
        except GameSupportError:
            return True
        suffix = Path(path).suffix.lower().lstrip(".")
        allowed = {t.lower() for t in support.supported_filetypes}
        return not allowed or suffix in allowed

    def set_song_replacement(self, song_id: str, path: str | Path) -> dict[str, Any] | None:
        """Assign *path* to a song.  Returns the updated song, or ``None``."""
        with self._lock:
            if not self._accepts_file(path):
                log.error("%s is not a supported file type for %s", Path(path).name, self.registry.current_game)
                return None
            try:
                updated = set_replacement(self._require_music_data(), song_id, path, self.loop_resolver)
            except (NoMusicDataError, SongNotFoundError) as exc:
                log.error("Song selection failed! %s", exc)
                return None
            self._commit(updated)
            return updated.song(song_id).to_dict()

    def remove_song_replacement(self, song_id: str) -> bool:
        with self._lock:
            try:
                updated = set_replacement(self._require_music_data(), song_id, None, self.loop_resolver)
            except (NoMusicDataError, SongNotFoundError) as exc:
                log.error("Song replacement removal failed! %s", exc)
                return False
            self._commit(updated)
            return True

    def set_song_loop(self, song_id: str, start: int, end: int, is_batch: bool = False) -> bool:
        """Set loop points.  For batch songs *song_id* is the song's file path."""
        with self._lock:
            if is_batch:
                try:
                    set_batch_loop(song_id, start, end)
                except (InvalidLoopError, DocumentError) as exc:
                    log.error("Batch song loop update failed! %s", exc)
                    return False
                return True

            try:
                updated = set_loop(self._require_music_data(), song_id, start, end)
            except (NoMusicDataError, SongNotFoundError, InvalidLoopError) as exc:
                log.error("Song loop update failed! %s", exc)
                return False
            song = updated.song(song_id)
            self.save_queue.enqueue(
                self.loop_resolver.path_for(song.replacement_file_path), loop_record(song)
            )
            self._commit(updated)
            return True

    # -- Presets -----------------------------------------------------------

    def load_preset(self, preset: Any, clear_first: bool = False) -> bool:
        """Apply a raw or decoded preset to the current music data."""
        with self._lock:
            try:
                if not isinstance(preset, presets.Preset):
                    preset = presets.decode_preset(preset)
                data = self._require_music_data()
                if clear_first:
                    data = clear_replacements(data)
                updated = presets.apply_preset(
                    preset, data, self.registry.current_game, self.registry.load_default_music_data,
                )
            except (InvalidPresetError, PresetGameMismatchError, NoMusicDataError) as exc:
                log.error("Preset was not loaded: %s", exc)
                return False
            self._commit(updated)
            return True

    def load_preset_file(self, path: str | Path, clear_first: bool = False) -> bool:
        try:
            preset = presets.load_preset_file(path)
        except DocumentError:
            log.error("Could not parse preset file! File: %s", path)
            return False
        except InvalidPresetError as exc:
            log.error("Invalid preset file %s: %s", path, exc)
            return False
        return self.load_preset(preset, clear_first=clear_first)

    def save_preset(self, path: str | Path) -> bool:
        with self._lock:
            try:
                presets.save_preset(path, self._require_music_data())
            except (NoMusicDataError, DocumentError) as exc:
                log.error("Failed to save preset: %s", exc)
                return False
            return True

    def export_song_pack(self, path: str | Path) -> bool:
        """Export the enabled songs through the converter as a song-pack preset."""
        path = Path(path)
        with self._lock:
            try:
                data = self._require_music_data()
                support = self.registry.get_game_support(self._manifest)
            except (NoMusicDataError, GameSupportError) as exc:
                log.error("Cannot export song pack: %s", exc)
                return False
            entry = self.registry.current_game_entry
            converter = self.app_config_store.converter_path
            if not entry.uses_builtin_converter or support.game_flag is None or converter is None:
                log.error("Song pack export needs the built-in converter for %s", entry.name)
                return False
            if support.encoded_format is None:
                log.error("Unknown encoded format! Current game: %s", entry.name)
                return False
            self.save_queue.flush_all()
            command = export_command(
                converter,
                support.game_flag,
                entry.settings.music_data_path,
                path.parent / "songs",
                verbose=self.app_config_store.show_debug,
                low_performance=entry.settings.low_performance,
            )

        try:
            ensure_directory(command.output_dir)
        except DocumentError:
            return False
        if not run_converter(command, self._runner):
            return False
        try:
            presets.write_song_pack(path, data, support.encoded_format)
        except DocumentError:
            log.error("Failed to write song pack %s", path)
            return False
        return True

    def batch_convert(self, folder: str | Path) -> bool:
        """Convert every song in *folder* in place with the built-in converter."""
        with self._lock:
            try:
                support = self.registry.get_game_support(self._manifest)
            except GameSupportError as exc:
                log.error("Cannot batch convert: %s", exc)
                return False
            converter = self.app_config_store.converter_path
            entry = self.registry.current_game_entry
            if support.game_flag is None or converter is None:
                log.error("Unknown current game! Current game: %s", entry.name)
                return False
            if support.encoded_format is None:
                log.error("Unknown encoded format! Current game: %s", entry.name)
                return False
            command = batch_command(
                converter,
                support.game_flag,
                folder,
                verbose=self.app_config_store.show_debug,
                low_performance=entry.settings.low_performance,
            )
        return run_converter(command, self._runner)

    # -- Config changes ----------------------------------------------------

    def change_config(self, game_index: int | None, name: str, value: Any = None) -> dict[str, Any]:
        """Apply one named setting change.

        Returns the effective configs either way; problems are logged.
        """
        with self._lock:
            try:
                self._change_config(game_index, name, value)
            except (
                GameNotFoundError,
                InvalidThemeError,
                UnknownSettingError,
                ValueError,
            ) as exc:
                log.error("Config change %s failed: %s", name, exc)
            return {"appConfig": self.app_config(), "gamesConfig": self.games_config()}

    def _change_config(self, game_index: int | None, name: str, value: Any) -> None:
        if name not in SETTING_NAMES:
            raise UnknownSettingError(f"Unknown setting {name!r}")
        if value is None:
            log.debug("No value given for %s, nothing changed", name)
            return

        if name == "music_data":
            data = self.registry.set_music_data_path(value)
            self._notify_config(musicData=data.to_dict() if data is not None else None)
        elif name == "game_directory":
            self.registry.set_game_directory(value, game_index)
        elif name == "output_directory":
            self.registry.set_output_directory(value, game_index)
        elif name == "performance_mode":
            self.registry.set_low_performance(value, game_index)
        elif name == "game_theme":
            self.registry.set_theme(value, game_index)
            self._notify_config(theme=theme_by_name(value).css)
        elif name == "current_game":
            if self.registry.select_game(value):
                data = self.registry.music_data
                self._notify_config(
                    musicData=data.to_dict() if data is not None else None,
                    theme=self.registry.theme_css(),
                )
        elif name == "show_debug":
            self.app_config_store.set_show_debug(value)
            self._apply_show_debug(value)

    def _notify_config(self, **updated_settings: Any) -> None:
        log.debug("Sending new updated config settings")
        self.config_changed.emit({"updatedSettings": updated_settings})

    # -- Building ----------------------------------------------------------

    def _build_command(self) -> ConverterCommand | None:
        entry = self.registry.current_game_entry
        if entry is None:
            log.error("No game selected, nothing to build")
            return None
        music_data_path = entry.settings.music_data_path
        if music_data_path is None:
            log.error("No music data for %s, nothing to build", entry.name)
            return None

        if entry.uses_builtin_converter:
            try:
                support = self.registry.get_game_support(self._manifest)
            except GameSupportError as exc:
                log.error("%s", exc)
                return None
            converter = self.app_config_store.converter_path
            if support.game_flag is None or converter is None:
                log.error("Unknown current game! Current game: %s", entry.name)
                return None
            output = entry.settings.output_directory or self.paths.game_build_dir(entry.name)
            return build_command(
                converter,
                support.game_flag,
                music_data_path,
                output,
                verbose=self.app_config_store.show_debug,
                low_performance=entry.settings.low_performance,
            )

        tool_path = self.app_config_store.tool_path(entry.tool)
        if tool_path is None:
            log.error('Path for tool "%s" is not set in dependencies!', entry.tool)
            return None
        output = entry.settings.output_directory or self.paths.build_dir / str(entry.tool)
        return tool_command(str(entry.tool), tool_path, music_data_path, output)

    def build(self) -> bool:
        """Flush pending saves then run the game's converter."""
        log.info("Building output")
        with self._lock:
            self.save_queue.flush_all()
            command = self._build_command()
        if command is None:
            log.error("Failed to generate Music Build!")
            return False
        try:
            ensure_directory(command.output_dir)
        except DocumentError:
            log.error("Failed to generate Music Build!")
            return False
        success = run_converter(command, self._runner)
        if not success:
            log.error("Failed to generate Music Build!")
        return success
