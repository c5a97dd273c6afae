# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
Built-in tables: supported games, themes, and the documents written the
first time Melodeck runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from melodeck.core.models import (
    AppConfig,
    AppSettings,
    Dependencies,
    GameEntry,
    GameSettings,
    GamesConfig,
    ToolEntry,
)


# -- File names ------------------------------------------------------------

APP_CONFIG_FILE = "app-config.json"
GAMES_CONFIG_FILE = "games-config.json"
DEFAULT_MUSIC_DATA_FILE = "default-music-data.json"
CURRENT_MUSIC_DATA_FILE = "current-music-data.json"
SUPPORT_MANIFEST_FILE = "game-support.json"
LOG_FILE = "app.log"

LOOP_DATA_SUFFIX = ".p4g"
TXTH_SUFFIX = ".txth"
RAW_EXTENSION = ".raw"

# Loop samples are stored as signed 32-bit values by the converter.
MAX_LOOP_SAMPLE = 2147483647

LEGACY_PRESET_CATEGORY = "Song Preset"


# -- Games -----------------------------------------------------------------

P4G = "Persona 4 Golden"
P5 = "Persona 5"
P3F = "Persona 3 FES"
P4 = "Persona 4"
KH3 = "Kingdom Hearts 3"

KNOWN_GAMES: list[str] = [P4G, P5, P3F, P4, KH3]


# -- Themes ----------------------------------------------------------------

@dataclass(frozen=True)
class Theme:
    name: str
    css: str


DEFAULT_DARK = Theme("Default Dark", "defaultDark")
DEFAULT_LIGHT = Theme("Default Light", "defaultLight")
PHOS_TEAL = Theme("Phos Teal", "phos")
ROYAL_RED = Theme("Royal Red", "royal")
CLASSIC_ORANGE = Theme("Classic Orange", "classic")

THEMES: list[Theme] = [DEFAULT_DARK, DEFAULT_LIGHT, PHOS_TEAL, ROYAL_RED, CLASSIC_ORANGE]
THEMES_BY_NAME: dict[str, Theme] = {t.name: t for t in THEMES}


def theme_by_name(name: str | None) -> Theme | None:
    if name is None:
        return None
    return THEMES_BY_NAME.get(name)


def theme_css(name: str | None) -> str:
    """CSS class for theme *name*, falling back to Default Dark."""
    theme = theme_by_name(name)
    return theme.css if theme is not None else DEFAULT_DARK.css


# -- Default documents -----------------------------------------------------

_GAME_THEMES: dict[str, str] = {
    P4G: DEFAULT_DARK.name,
    P5: ROYAL_RED.name,
    P3F: PHOS_TEAL.name,
    P4: CLASSIC_ORANGE.name,
    KH3: ROYAL_RED.name,
}


def default_app_config(dependencies_dir: Path) -> AppConfig:
    converter = (
        dependencies_dir / "phos-music-converter" / "release-build" / "PhosMusicConverterCMD.exe"
    )
    return AppConfig(
        settings=AppSettings(show_debug_messages=False),
        dependencies=Dependencies(
            converter_path=str(converter),
            tools=[ToolEntry(name="Example", path=None)],
        ),
    )


def default_games_config() -> GamesConfig:
    games = []
    for name in KNOWN_GAMES:
        settings = GameSettings()
        if name == P4G:
            settings.encoded_format = ".raw"
            settings.supported_filetypes = [".wav", ".raw"]
        games.append(GameEntry(name=name, theme=_GAME_THEMES[name], settings=settings))
    return GamesConfig(selected_game=None, games=games)
