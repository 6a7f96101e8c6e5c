"""Tests for the file IO and logging helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from aibridge.utils import file_io
from aibridge.utils import logging as logging_utils


class TestFileIO:
    def test_write_then_read(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "request.json"

        file_io.write_text(target, '{"prompt": "héllo"}')

        assert file_io.read_text(target) == '{"prompt": "héllo"}'
        assert [path.name for path in target.parent.iterdir()] == ["request.json"]

    def test_non_atomic_write(self, tmp_path: Path) -> None:
        target = tmp_path / "plain.txt"

        file_io.write_text(target, "data", atomic=False)

        assert target.read_text(encoding="utf-8") == "data"

    def test_read_strips_utf8_bom(self, tmp_path: Path) -> None:
        target = tmp_path / "bom.json"
        target.write_bytes(b'\xef\xbb\xbf{"response": "ok"}')

        assert file_io.read_text(target) == '{"response": "ok"}'

    def test_read_utf16_with_bom(self, tmp_path: Path) -> None:
        target = tmp_path / "utf16.json"
        target.write_bytes(b"\xff\xfe" + '{"response": "ok"}'.encode("utf-16-le"))

        assert file_io.read_text(target) == '{"response": "ok"}'

    def test_read_falls_back_to_latin1(self, tmp_path: Path) -> None:
        target = tmp_path / "legacy.json"
        target.write_bytes(b'{"response": "caf\xe9"}')

        assert file_io.read_text(target) == '{"response": "café"}'

    def test_failed_atomic_write_leaves_no_staging_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def refuse(*_args: object) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(file_io.os, "replace", refuse)

        with pytest.raises(OSError):
            file_io.write_text(tmp_path / "request.json", "payload")
        assert list(tmp_path.iterdir()) == []

    def test_remove_file(self, tmp_path: Path) -> None:
        target = tmp_path / "gone.json"
        target.write_text("x", encoding="utf-8")

        assert file_io.remove_file(target) is True
        assert file_io.remove_file(target) is False
        assert not target.exists()


class TestLogging:
    def test_setup_logging_writes_rotating_file(self, tmp_path: Path) -> None:
        log_path = logging_utils.setup_logging(
            logging.DEBUG, log_dir=tmp_path, console=False, force=True
        )

        logging.getLogger("aibridge.test").info("hello log")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_path == tmp_path / "aibridge.log"
        assert "hello log" in log_path.read_text(encoding="utf-8")

    def test_setup_logging_is_idempotent(self, tmp_path: Path) -> None:
        first = logging_utils.setup_logging(log_dir=tmp_path / "one", console=False, force=True)
        second = logging_utils.setup_logging(log_dir=tmp_path / "two", console=False)

        assert first == second

    def test_noisy_loggers_are_quieted(self, tmp_path: Path) -> None:
        logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)

        assert logging.getLogger("asyncio").level == logging.WARNING
