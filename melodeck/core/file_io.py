# Copyright (C) 2025-2026 Melodeck Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
Read / write helpers for Melodeck's JSON documents.

Every config, music-data, loop-data and preset file goes through
:func:`read_document` and :func:`write_document`.  Writes are atomic
(temp file + rename) so a reader never sees a half-written document, and
failures are raised as :class:`~melodeck.core.errors.DocumentError`
subclasses instead of bare ``OSError`` / ``JSONDecodeError``.
"""

from __future__ import annotations

import errno
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from melodeck.core.errors import (
    DocumentError,
    DocumentIOError,
    DocumentNotFoundError,
    DocumentPermissionError,
    MalformedDocumentError,
)

log = logging.getLogger(__name__)


# -- Error explanations ----------------------------------------------------

_ERROR_EXPLANATIONS: dict[str, str] = {
    "EACCES": "Access to the file was denied.",
    "EEXIST": "The file already exists and the call was not set to overwrite.",
    "EISDIR": "Expected a file but was given a directory.",
    "ENOENT": "File or directory was not found. Verify the path exists and create it if not.",
    "ENOTDIR": "Expected a directory but was given a file path.",
    "EPERM": (
        "Did not have permission to do this. Verify that the file/folder is not "
        "read-only or located in a place that requires admin privileges."
    ),
}


def explain_os_error(exc: OSError) -> str | None:
    """Return a human explanation for *exc*'s errno, or ``None`` if unknown."""
    if exc.errno is None:
        return None
    code = errno.errorcode.get(exc.errno)
    return _ERROR_EXPLANATIONS.get(code) if code else None


def _log_os_error(exc: OSError) -> None:
    log.error("%s", exc)
    explanation = explain_os_error(exc)
    if explanation:
        log.error("%s", explanation)


def _classify(path: Path, exc: OSError) -> DocumentError:
    if isinstance(exc, FileNotFoundError):
        return DocumentNotFoundError(path, "not found")
    if isinstance(exc, PermissionError):
        return DocumentPermissionError(path, "permission denied")
    return DocumentIOError(path, exc.strerror or str(exc))


# -- Directories -----------------------------------------------------------

def ensure_directory(path: str | Path) -> Path:
    """Create *path* (and parents) if missing.  Returns it as a ``Path``."""
    directory = Path(path)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        _log_os_error(exc)
        raise _classify(directory, exc) from exc
    return directory


# -- Reading ---------------------------------------------------------------

def read_text(path: str | Path, tolerate_missing: bool = False) -> str:
    """Return the UTF-8 text of *path*.

    Raises :class:`DocumentNotFoundError` when the file is missing; the
    error is only logged when *tolerate_missing* is false.
    """
    target = Path(path)
    try:
        return target.read_text(encoding="utf-8")
    except OSError as exc:
        if not (tolerate_missing and isinstance(exc, FileNotFoundError)):
            _log_os_error(exc)
        raise _classify(target, exc) from exc
    except UnicodeDecodeError as exc:
        log.error("Could not decode %s: %s", target, exc)
        raise MalformedDocumentError(target, "not UTF-8 text") from exc


def read_document(path: str | Path, tolerate_missing: bool = False) -> Any:
    """Parse *path* as JSON and return the resulting object.

    *tolerate_missing* only silences the log line for a missing file; the
    caller still receives :class:`DocumentNotFoundError`.
    """
    target = Path(path)
    text = read_text(target, tolerate_missing=tolerate_missing)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        log.error("Could not parse %s: %s", target, exc)
        raise MalformedDocumentError(target, f"invalid JSON ({exc.msg})") from exc


# -- Writing ---------------------------------------------------------------

def _plain(document: Any) -> Any:
    to_dict = getattr(document, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return document


def dumps_document(document: Any) -> str:
    """Serialise *document* the way :func:`write_document` stores it."""
    return json.dumps(_plain(document), indent=2, ensure_ascii=False)


def write_document(path: str | Path, document: Any) -> Path:
    """Write *document* to *path* as JSON, fully replacing the file.

    *document* may be a JSON-compatible value or any object with a
    ``to_dict()`` method (the Melodeck dataclasses).  The file is written
    via temp-file-and-rename in the destination directory.
    """
    dest = Path(path)
    try:
        text = dumps_document(document)
    except (TypeError, ValueError) as exc:
        log.error("Failed to serialise document for %s: %s", dest, exc)
        raise MalformedDocumentError(dest, "document is not JSON serialisable") from exc

    ensure_directory(dest.parent)
    try:
        fd, tmp_path = tempfile.mkstemp(
            suffix=".json", dir=str(dest.parent), prefix=".tmp_"
        )
    except OSError as exc:
        _log_os_error(exc)
        raise _classify(dest, exc) from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        Path(tmp_path).replace(dest)
    except OSError as exc:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        _log_os_error(exc)
        raise _classify(dest, exc) from exc
    return dest
