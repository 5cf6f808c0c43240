"""Tests for logging setup and transition logging."""

import io
import logging

import pytest

from cleardeal.logging_config import get_logger, log_transition, setup_logging


class TestLogTransition:
    def test_single_line_with_fields(self, caplog):
        caplog.set_level(logging.INFO, logger="cleardeal")
        log_transition("job", "job-1", "created", client="0xc", bounty="1.0", note=None)

        assert caplog.messages == ["created | job=job-1 | client=0xc | bounty=1.0"]
        assert caplog.records[0].name == "cleardeal.transitions"

    def test_engine_transitions_are_logged(self, caplog, jobs):
        caplog.set_level(logging.INFO, logger="cleardeal")
        job = jobs.create_job("0x" + "c1" * 20, "Title", "Description", "1")

        assert any(m.startswith(f"created | job={job.id}") for m in caplog.messages)


class TestSetupLogging:
    def test_handler_added_once(self):
        stream = io.StringIO()
        logger = setup_logging("DEBUG", stream=stream)
        handlers = list(logger.handlers)

        again = setup_logging("WARNING")

        assert again is logger
        assert again.handlers == handlers
        assert len(handlers) == 1
        assert logger.level == logging.WARNING

    def test_writes_to_given_stream(self):
        stream = io.StringIO()
        logger = setup_logging("INFO", stream=stream)

        logger.getChild("jobs").info("job posted")

        line = stream.getvalue().strip()
        assert line.endswith("INFO cleardeal.jobs: job posted")

    def test_defaults_to_stderr(self, capsys):
        logger = setup_logging("INFO")
        handler = logger.handlers[0]

        assert type(handler) is logging.StreamHandler
        logger.warning("settlement slow")
        assert "settlement slow" in capsys.readouterr().err

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_logging("LOUD")

    def test_get_logger_namespacing(self):
        assert get_logger().name == "cleardeal"
        assert get_logger("api").name == "cleardeal.api"
        assert get_logger("cleardeal.jobs").name == "cleardeal.jobs"
