# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
External music converter contract.

The built-in converter is invoked as::

    <converter> build  -g FLAG -i MUSIC_DATA -o OUTPUT_DIR [-v] [-l]
    <converter> export -g FLAG -i MUSIC_DATA -o EXPORT_DIR [-v] [-l]
    <converter> batch  -g FLAG -f FOLDER [-v] [-l]

A custom per-game tool gets ``-i MUSIC_DATA -o OUTPUT_DIR``.  Both run with
their own directory as working directory; exit code 0 means success.
The converter publishes ``game-support.json`` next to its executable.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from melodeck.core.defaults import SUPPORT_MANIFEST_FILE
from melodeck.core.errors import DocumentError
from melodeck.core.file_io import read_document

log = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass
class ConverterCommand:
    executable: Path
    args: list[str] = field(default_factory=list)
    output_dir: Path | None = None
    label: str = "Converter"

    @property
    def argv(self) -> list[str]:
        return [str(self.executable), *self.args]

    @property
    def cwd(self) -> Path:
        return self.executable.parent


def load_support_manifest(converter_path: str | Path | None) -> dict[str, Any] | None:
    """Read the converter's game support manifest, or ``None`` if unavailable."""
    if converter_path is None:
        log.error("Converter path is not set in dependencies!")
        return None
    manifest_path = Path(converter_path).parent / SUPPORT_MANIFEST_FILE
    try:
        manifest = read_document(manifest_path)
    except DocumentError:
        log.error("Failed to load converter game support from %s", manifest_path)
        return None
    if not isinstance(manifest, dict) or not isinstance(manifest.get("games"), list):
        log.error("Converter game support manifest %s is malformed", manifest_path)
        return None
    return manifest


def _flags(verbose: bool, low_performance: bool) -> list[str]:
    flags = []
    if verbose:
        flags.append("-v")
    if low_performance:
        flags.append("-l")
    return flags


def build_command(
    converter_path: str | Path,
    game_flag: str,
    music_data_path: str | Path,
    output_dir: str | Path,
    verbose: bool = False,
    low_performance: bool = False,
) -> ConverterCommand:
    return ConverterCommand(
        Path(converter_path),
        ["build", "-g", game_flag, "-i", str(music_data_path), "-o", str(output_dir),
         *_flags(verbose, low_performance)],
        output_dir=Path(output_dir),
    )


def export_command(
    converter_path: str | Path,
    game_flag: str,
    music_data_path: str | Path,
    export_dir: str | Path,
    verbose: bool = False,
    low_performance: bool = False,
) -> ConverterCommand:
    return ConverterCommand(
        Path(converter_path),
        ["export", "-g", game_flag, "-i", str(music_data_path), "-o", str(export_dir),
         *_flags(verbose, low_performance)],
        output_dir=Path(export_dir),
    )


def batch_command(
    converter_path: str | Path,
    game_flag: str,
    folder: str | Path,
    verbose: bool = False,
    low_performance: bool = False,
) -> ConverterCommand:
    return ConverterCommand(
        Path(converter_path),
        ["batch", "-g", game_flag, "-f", str(folder), *_flags(verbose, low_performance)],
    )


def tool_command(
    tool_name: str,
    tool_path: str | Path,
    music_data_path: str | Path,
    output_dir: str | Path,
) -> ConverterCommand:
    return ConverterCommand(
        Path(tool_path),
        ["-i", str(music_data_path), "-o", str(output_dir)],
        output_dir=Path(output_dir),
        label=tool_name,
    )


def run_converter(command: ConverterCommand, runner: Runner = subprocess.run) -> bool:
    """Run *command* to completion, logging its output.  True on exit code 0."""
    log.debug("Running %s", " ".join(command.argv))
    try:
        result = runner(
            command.argv,
            cwd=str(command.cwd),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        log.error("Could not start %s: %s", command.label, exc)
        return False

    output = "\n".join(part for part in (result.stdout, result.stderr) if part)
    for line in output.splitlines():
        if line.strip():
            log.info("[%s] %s", command.label, line.rstrip())

    if result.returncode == 0:
        log.debug("%s exited successfully", command.label)
        return True
    log.error("%s encountered problems! (exit code %d)", command.label, result.returncode)
    return False
