# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
On-disk layout of a Melodeck installation.

By default everything lives under the OS-appropriate application data
directory (``%APPDATA%/Melodeck`` on Windows); tests and portable builds
pass an explicit root instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from PySide6.QtCore import QStandardPaths

from melodeck.core.defaults import (
    APP_CONFIG_FILE,
    CURRENT_MUSIC_DATA_FILE,
    DEFAULT_MUSIC_DATA_FILE,
    GAMES_CONFIG_FILE,
    LOG_FILE,
    LOOP_DATA_SUFFIX,
)
from melodeck.core.file_io import ensure_directory

_APP_DIR_NAME = "Melodeck"


def _data_dir() -> Path:
    """Return the per-user application data directory."""
    base = QStandardPaths.writableLocation(
        QStandardPaths.StandardLocation.AppDataLocation,
    )
    path = Path(base)
    if path.name != _APP_DIR_NAME:
        path = path / _APP_DIR_NAME
    return path


@dataclass(frozen=True)
class AppPaths:
    """Every directory and fixed file path the core reads or writes."""
    root: Path

    @classmethod
    def default(cls) -> AppPaths:
        return cls(_data_dir())

    @property
    def settings_dir(self) -> Path:
        return self.root / "settings"

    @property
    def loop_data_dir(self) -> Path:
        return self.settings_dir / "loop-data"

    @property
    def build_dir(self) -> Path:
        return self.root / "music-build"

    @property
    def dependencies_dir(self) -> Path:
        return self.root / "dependencies"

    @property
    def app_config_path(self) -> Path:
        return self.settings_dir / APP_CONFIG_FILE

    @property
    def games_config_path(self) -> Path:
        return self.settings_dir / GAMES_CONFIG_FILE

    @property
    def log_path(self) -> Path:
        return self.settings_dir / LOG_FILE

    def default_music_data_path(self, game: str) -> Path:
        return self.settings_dir / game / DEFAULT_MUSIC_DATA_FILE

    def current_music_data_path(self, game: str) -> Path:
        return self.settings_dir / game / CURRENT_MUSIC_DATA_FILE

    def loop_data_path(self, song_file: str | Path) -> Path:
        """Saved loop record for *song_file*, keyed by its base name."""
        return self.loop_data_dir / f"{Path(song_file).name}{LOOP_DATA_SUFFIX}"

    def game_build_dir(self, game: str) -> Path:
        return self.build_dir / game

    def ensure(self) -> None:
        """Create the directories Melodeck expects to exist."""
        for directory in (
            self.build_dir,
            self.dependencies_dir,
            self.loop_data_dir,
            self.settings_dir,
        ):
            ensure_directory(directory)
