"""Tests for the JSON document read / write helpers."""

import errno
import logging
from pathlib import Path

import pytest

from melodeck.core.errors import (
    DocumentNotFoundError,
    MalformedDocumentError,
)
from melodeck.core.file_io import (
    dumps_document,
    ensure_directory,
    explain_os_error,
    read_document,
    read_text,
    write_document,
)
from melodeck.core.models import LoopData


class TestWriteDocument:
    def test_writes_indented_json(self, tmp_path: Path) -> None:
        dest = tmp_path / "doc.json"
        write_document(dest, {"b": 1, "a": [1, 2]})

        text = dest.read_text(encoding="utf-8")
        assert text == '{\n  "b": 1,\n  "a": [\n    1,\n    2\n  ]\n}'

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        dest = tmp_path / "deep" / "er" / "doc.json"
        write_document(dest, {"ok": True})
        assert read_document(dest) == {"ok": True}

    def test_replaces_existing_file(self, tmp_path: Path) -> None:
        dest = tmp_path / "doc.json"
        dest.write_text('{"old": "a much longer document than the new one"}', encoding="utf-8")

        write_document(dest, {"new": 1})

        assert read_document(dest) == {"new": 1}

    def test_leaves_no_temp_files(self, tmp_path: Path) -> None:
        write_document(tmp_path / "doc.json", {"x": 1})
        assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]

    def test_serialises_dataclasses_via_to_dict(self, tmp_path: Path) -> None:
        dest = tmp_path / "loop.p4g"
        write_document(dest, LoopData(loop_start=10, loop_end=20))
        assert read_document(dest) == {"settings": {"loopstart": 10, "loopend": 20}}

    def test_keeps_non_ascii_text(self) -> None:
        assert "Ｐ４Ｇ" in dumps_document({"name": "Ｐ４Ｇ"})

    def test_unserialisable_document_is_malformed(self, tmp_path: Path) -> None:
        with pytest.raises(MalformedDocumentError):
            write_document(tmp_path / "doc.json", {"bad": object()})
        assert not (tmp_path / "doc.json").exists()


class TestReadDocument:
    def test_missing_file_raises_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(DocumentNotFoundError) as info:
            read_document(tmp_path / "missing.json")
        assert isinstance(info.value, FileNotFoundError)
        assert info.value.path == tmp_path / "missing.json"

    def test_tolerate_missing_still_raises_but_does_not_log(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.ERROR, logger="melodeck"):
            with pytest.raises(DocumentNotFoundError):
                read_document(tmp_path / "missing.json", tolerate_missing=True)
        assert caplog.records == []

    def test_missing_file_is_logged_with_explanation(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.ERROR, logger="melodeck"):
            with pytest.raises(DocumentNotFoundError):
                read_document(tmp_path / "missing.json")
        assert any("not found" in r.getMessage() for r in caplog.records)

    def test_invalid_json_is_malformed(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")

        with pytest.raises(MalformedDocumentError) as info:
            read_document(bad)
        assert isinstance(info.value, ValueError)

    def test_non_utf8_is_malformed(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_bytes(b"\xff\xfe\x00garbage")

        with pytest.raises(MalformedDocumentError):
            read_text(bad)


class TestHelpers:
    def test_explains_known_errno(self) -> None:
        exc = FileNotFoundError(errno.ENOENT, "No such file")
        assert "not found" in explain_os_error(exc)

    def test_unknown_errno_has_no_explanation(self) -> None:
        assert explain_os_error(OSError(errno.EPIPE, "Broken pipe")) is None
        assert explain_os_error(OSError("no errno")) is None

    def test_ensure_directory_is_idempotent(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b"
        assert ensure_directory(target) == target
        assert ensure_directory(target) == target
        assert target.is_dir()
