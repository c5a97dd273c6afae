# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""Global application settings (``app-config.json``)."""

from __future__ import annotations

import logging

from melodeck.core.defaults import default_app_config
from melodeck.core.errors import DocumentError, DocumentNotFoundError
from melodeck.core.file_io import read_document, write_document
from melodeck.core.models import AppConfig
from melodeck.core.paths import AppPaths
from melodeck.core.save_queue import SaveQueue

log = logging.getLogger(__name__)


class AppConfigStore:
    """Loads, validates and mutates the app config.

    A missing or corrupt file is replaced with defaults.  Mutations are
    written through the save queue.
    """

    def __init__(self, paths: AppPaths, save_queue: SaveQueue) -> None:
        self._paths = paths
        self._queue = save_queue
        self._config = default_app_config(paths.dependencies_dir)

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def path(self):
        return self._paths.app_config_path

    # -- Persistence -------------------------------------------------------

    def load(self) -> bool:
        """Load from disk.  Returns ``False`` only if the config could be
        neither loaded nor recreated; defaults are in memory either way."""
        try:
            raw = read_document(self.path, tolerate_missing=True)
        except DocumentNotFoundError:
            return self._write_defaults()
        except DocumentError as exc:
            if isinstance(exc, ValueError):
                return self._write_defaults()
            log.error("Failed to load app config: %s", exc)
            self._config = default_app_config(self._paths.dependencies_dir)
            return False

        try:
            self._config = AppConfig.from_dict(raw)
        except (TypeError, ValueError) as exc:
            log.error("Invalid app config! %s", exc)
            return self._write_defaults()

        log.debug("App config loaded")
        return True

    def _write_defaults(self) -> bool:
        self._config = default_app_config(self._paths.dependencies_dir)
        try:
            write_document(self.path, self._config)
        except DocumentError:
            log.error("Failed to create new app config!")
            return False
        log.info("Created new app config")
        return True

    def save(self) -> None:
        self._queue.enqueue(self.path, self._config)

    # -- Mutations ---------------------------------------------------------

    def set_show_debug(self, show: bool) -> AppConfig:
        if not isinstance(show, bool):
            raise ValueError(f"show_debug must be a bool, got {show!r}")
        self._config.settings.show_debug_messages = show
        self.save()
        return self._config

    @property
    def show_debug(self) -> bool:
        return self._config.settings.show_debug_messages

    @property
    def converter_path(self) -> str | None:
        return self._config.dependencies.converter_path

    def tool_path(self, name: str) -> str | None:
        for tool in self._config.dependencies.tools:
            if tool.name == name:
                return tool.path
        return None
