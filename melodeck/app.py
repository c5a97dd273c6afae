# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

from __future__ import annotations

import logging

from PySide6.QtCore import QCoreApplication

from melodeck.core.log_history import LogHistoryHandler
from melodeck.core.paths import AppPaths
from melodeck.core.session import MusicSession

log = logging.getLogger(__name__)


class MelodeckApp:
    """Top-level application controller for Melodeck.

    Owns the Qt application object and the one :class:`MusicSession` of the
    process.  Pending saves and the log history are flushed when Qt is
    about to quit.
    """

    def __init__(self, argv: list[str], paths: AppPaths | None = None,
                 log_history: LogHistoryHandler | None = None):
        self._qt = QCoreApplication.instance() or QCoreApplication(argv)
        self._qt.setApplicationName("Melodeck")
        self._qt.setOrganizationName("Melodeck")

        self.paths = paths or AppPaths.default()
        self.session = MusicSession(self.paths, log_history=log_history)
        self._qt.aboutToQuit.connect(self.session.shutdown)

        if not self.session.start():
            log.error("Melodeck started with default settings, see the log for details")

    @property
    def qt(self) -> QCoreApplication:
        return self._qt

    def run(self) -> int:
        """Enter the Qt event loop."""
        return self._qt.exec()
