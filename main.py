# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

import logging
import sys
import traceback
from datetime import datetime, timezone

from PySide6.QtCore import QCoreApplication

from melodeck.core.log_history import LogHistoryHandler
from melodeck.core.paths import AppPaths


def _install_crash_logger(paths: AppPaths) -> None:
    """Replace the default exception hook so unhandled errors are written
    to ``settings/latest.log`` before the process terminates."""
    _original_hook = sys.excepthook
    crash_log = paths.settings_dir / "latest.log"

    def _crash_hook(exc_type, exc_value, exc_tb):
        try:
            paths.settings_dir.mkdir(parents=True, exist_ok=True)
            tb_text = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
            timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
            header = (
                f"Melodeck crash log\n"
                f"==================\n"
                f"Timestamp : {timestamp}\n"
                f"Python    : {sys.version}\n"
                f"Platform  : {sys.platform}\n"
                f"Exception : {exc_type.__name__}: {exc_value}\n"
                f"\n"
            )
            crash_log.write_text(header + tb_text, encoding="utf-8")
        except OSError:
            pass
        _original_hook(exc_type, exc_value, exc_tb)

    sys.excepthook = _crash_hook


def _show_debug_enabled(paths: AppPaths) -> bool:
    from melodeck.core.errors import DocumentError
    from melodeck.core.file_io import read_document
    from melodeck.core.models import AppConfig
    try:
        cfg = AppConfig.from_dict(read_document(paths.app_config_path, tolerate_missing=True))
    except (DocumentError, TypeError, ValueError):
        return False
    return cfg.settings.show_debug_messages


def _apply_debug_logging(paths: AppPaths, history: LogHistoryHandler) -> None:
    """Configure Python logging based on the user's debug settings."""
    if _show_debug_enabled(paths):
        paths.settings_dir.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            handlers=[
                logging.FileHandler(str(paths.settings_dir / "melodeck_debug.log"), encoding="utf-8"),
                logging.StreamHandler(sys.stderr),
            ],
            force=True,
        )
        history.set_show_debug(True)
    else:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.WARNING)
        logging.basicConfig(level=logging.WARNING, handlers=[console], force=True)
    logging.getLogger("melodeck").addHandler(history)


def main():
    # AppDataLocation depends on these, set them before resolving paths
    QCoreApplication.setOrganizationName("Melodeck")
    QCoreApplication.setApplicationName("Melodeck")
    paths = AppPaths.default()
    history = LogHistoryHandler(paths.log_path)
    _install_crash_logger(paths)
    _apply_debug_logging(paths, history)
    from melodeck.app import MelodeckApp
    app = MelodeckApp(sys.argv, paths=paths, log_history=history)
    sys.exit(app.run())


if __name__ == "__main__":
    main()
