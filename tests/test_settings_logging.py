"""Tests for settings.py and logging_setup.py."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from quire import logging_setup
from quire.settings import _env_int, db_path


class TestSettings:
    def test_env_int_default_and_minimum(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("QUIRE_TEST_INT", raising=False)
        assert _env_int("QUIRE_TEST_INT", 4) == 4

        monkeypatch.setenv("QUIRE_TEST_INT", "0")
        assert _env_int("QUIRE_TEST_INT", 4, min_val=1) == 1

        monkeypatch.setenv("QUIRE_TEST_INT", "9")
        assert _env_int("QUIRE_TEST_INT", 4, min_val=1) == 9

    def test_db_path_prefers_explicit_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("QUIRE_DB_PATH", str(tmp_path / "explicit.db"))
        assert db_path() == tmp_path / "explicit.db"

    def test_db_path_under_data_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("QUIRE_DB_PATH", raising=False)
        monkeypatch.setenv("QUIRE_DATA_DIR", str(tmp_path))
        assert db_path() == tmp_path / "quire.db"


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _reset(self):
        logging_setup.reset_logging()
        yield
        logging_setup.reset_logging()

    def test_installs_file_and_stderr_handlers(self, tmp_path: Path) -> None:
        log_path = tmp_path / "logs" / "quire.log"

        logger = logging_setup.configure_logging(level="debug", log_path=log_path)

        assert logger.name == "quire"
        assert logger.level == logging.DEBUG
        assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
        assert len(logger.handlers) == 2

        logging.getLogger("quire.page_tree").info("hello from the tree")
        for handler in logger.handlers:
            handler.flush()
        assert "hello from the tree" in log_path.read_text(encoding="utf-8")

    def test_configure_is_idempotent(self, tmp_path: Path) -> None:
        log_path = tmp_path / "quire.log"
        logging_setup.configure_logging(log_path=log_path)
        logger = logging_setup.configure_logging(level="WARNING", log_path=log_path)

        assert len(logger.handlers) == 2
        assert logger.level == logging.WARNING

    def test_reset_removes_handlers(self, tmp_path: Path) -> None:
        logging_setup.configure_logging(log_path=tmp_path / "quire.log")
        logging_setup.reset_logging()
        assert logging.getLogger("quire").handlers == []
