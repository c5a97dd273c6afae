# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
Exception types raised by the Melodeck core.

Each error subclasses the built-in exception it specialises so callers can
keep catching ``FileNotFoundError`` / ``ValueError`` / ``LookupError`` when
they don't care about the finer distinction.
"""

from __future__ import annotations

from pathlib import Path


# -- Document I/O ----------------------------------------------------------

class DocumentError(OSError):
    """A structured document could not be read or written."""

    def __init__(self, path: str | Path, reason: str = "") -> None:
        self.path = Path(path)
        self.reason = reason
        message = f"{self.path}: {reason}" if reason else str(self.path)
        super().__init__(message)

    def __str__(self) -> str:
        return self.args[0] if self.args else str(self.path)


class DocumentNotFoundError(DocumentError, FileNotFoundError):
    """The document's path does not exist."""


class DocumentPermissionError(DocumentError, PermissionError):
    """The OS refused access to the document."""


class MalformedDocumentError(DocumentError, ValueError):
    """The document exists but is not valid JSON (or not the expected shape)."""


class DocumentIOError(DocumentError):
    """Any other I/O failure."""


# -- Domain validation -----------------------------------------------------

class GameNotFoundError(LookupError):
    """A game name is not among the configured games."""


class SongNotFoundError(LookupError):
    """A song id does not exist in the current music data."""


class NoMusicDataError(LookupError):
    """An operation needs music data but none is loaded."""


class GameSupportError(LookupError):
    """Encoded format / supported file types could not be resolved."""


class InvalidThemeError(ValueError):
    """A theme name is not in the theme table."""


class UnknownSettingError(ValueError):
    """``change_config`` received a setting name it doesn't handle."""


class InvalidLoopError(ValueError):
    """Loop samples are not integers in ``[0, MAX_LOOP_SAMPLE)``."""


class InvalidPresetError(ValueError):
    """A preset document matches none of the known preset formats."""


class PresetGameMismatchError(ValueError):
    """A preset was authored for a different game than the current one."""

    def __init__(self, preset_game: str, current_game: str | None) -> None:
        self.preset_game = preset_game
        self.current_game = current_game
        super().__init__(
            f"Preset is for {preset_game!r}, current game is {current_game!r}"
        )
