"""
Tests for logging configuration
"""

import logging

import pytest

from failure_first.lifecycle import LifecycleEngine
from failure_first.logging_config import HarnessFormatter, entry_logger, get_logger, setup_logging
from failure_first.main import Role


class TestLoggingConfig:
    """Tests for setup_logging and the formatter"""

    @pytest.fixture(autouse=True)
    def reset(self):
        yield
        logging.getLogger("failure_first").handlers.clear()

    def test_setup_sets_level(self):
        setup_logging(level="DEBUG", use_colors=False)
        root = logging.getLogger("failure_first")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "ffh.log"
        setup_logging(level="INFO", log_file=str(log_file), use_colors=False)

        get_logger("lifecycle").info("F001: unaddressed -> in_progress")
        for handler in logging.getLogger("failure_first").handlers:
            handler.flush()

        text = log_file.read_text()
        assert "[failure_first.lifecycle]" in text
        assert "F001: unaddressed -> in_progress" in text

    def test_format_layout(self):
        record = logging.LogRecord("failure_first.guard", logging.WARNING, __file__, 1,
                                   "Blocked post-freeze write", None, None)
        line = HarnessFormatter(use_colors=False).format(record)
        assert line.startswith("[")
        assert "WARNING" in line
        assert line.endswith("[failure_first.guard] Blocked post-freeze write")

    def test_unknown_level_defaults_to_info(self):
        setup_logging(level="chatty", use_colors=False)
        assert logging.getLogger("failure_first").level == logging.INFO


class TestEntryContext:
    """Tests for per-entry log context"""

    def _record(self, **extra):
        record = logging.LogRecord("failure_first.lifecycle", logging.INFO, __file__, 1,
                                   "unaddressed -> in_progress", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_entry_actor_and_role(self):
        line = HarnessFormatter(use_colors=False).format(self._record(entry_id="F001", actor="bob", role="builder"))
        assert line.endswith("[failure_first.lifecycle] [F001 bob/builder] unaddressed -> in_progress")

    def test_entry_only(self):
        line = HarnessFormatter(use_colors=False).format(self._record(entry_id="D002", actor=None))
        assert "[D002] unaddressed" in line

    def test_no_context(self):
        line = HarnessFormatter(use_colors=False).format(self._record())
        assert line.endswith("[failure_first.lifecycle] unaddressed -> in_progress")

    def test_adapter_attaches_context(self, caplog):
        log = entry_logger(get_logger("lifecycle"), "F001", "bob", "builder")
        with caplog.at_level(logging.INFO, logger="failure_first"):
            log.info("unaddressed -> in_progress", extra={"role": "resolver"})

        record = caplog.records[-1]
        assert record.entry_id == "F001"
        assert record.actor == "bob"
        assert record.role == "resolver"

    def test_transitions_logged_with_actor(self, document, clock, config, caplog):
        engine = LifecycleEngine(document, clock=clock, config=config)
        with caplog.at_level(logging.INFO, logger="failure_first.lifecycle"):
            assert engine.start("F001", actor="bob", role=Role.BUILDER).ok
            assert not engine.start("F001", actor="bob", role=Role.BUILDER).ok

        started, refused = [r for r in caplog.records if r.name == "failure_first.lifecycle"]
        assert (started.entry_id, started.actor, started.role) == ("F001", "bob", "builder")
        assert started.getMessage() == "unaddressed -> in_progress"
        assert refused.levelno == logging.WARNING
        assert refused.entry_id == "F001"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
