"""Tests for the database management CLI and logging configuration."""

import logging

import pytest
import structlog

import manage
from commerce.domain import commerce
from commerce.utils import logging as commerce_logging


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.contextvars.clear_contextvars()


class TestManageCli:
    @pytest.fixture(autouse=True)
    def _skip_init(self, monkeypatch):
        monkeypatch.setattr(commerce, "init", lambda: None)

    def test_setup_db_on_memory_provider(self):
        manage.main(["setup-db"])

    def test_drop_db_on_memory_provider(self):
        manage.main(["drop-db"])

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            manage.main(["migrate"])


class TestLogLevel:
    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert commerce_logging.get_log_level() == "ERROR"

    @pytest.mark.parametrize(
        "env, level",
        [("production", "INFO"), ("development", "DEBUG"), ("test", "WARNING"), ("qa", "INFO")],
    )
    def test_environment_default(self, monkeypatch, env, level):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("ENV", raising=False)
        monkeypatch.delenv("PROTEAN_ENV", raising=False)
        monkeypatch.setenv("ENVIRONMENT", env)
        assert commerce_logging.get_log_level() == level


@pytest.mark.usefixtures("restore_root_logger")
class TestConfigureLogging:
    def test_file_handlers(self, tmp_path):
        commerce_logging.configure_logging(level="INFO", log_dir=str(tmp_path), log_file_prefix="shop")

        assert (tmp_path / "shop.log").exists()
        assert (tmp_path / "shop_error.log").exists()
        assert len(logging.getLogger().handlers) == 3
        assert logging.getLogger("protean").level == logging.WARNING

    def test_console_only(self):
        commerce_logging.configure_logging(level="DEBUG", log_dir=None)
        assert len(logging.getLogger().handlers) == 1

    def test_request_context(self):
        commerce_logging.add_context(request_id="req-1")
        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}

        commerce_logging.clear_context()
        assert structlog.contextvars.get_contextvars() == {}
