"""
Tests for logging setup, masking and the session event subscriber
"""
import json
import logging

import pytest

from mailwire.core.models.session import EventKind, SessionEvent
from mailwire.utils.config import load_config
from mailwire.utils.errors import FileSystemError, MissingConfigError
from mailwire.utils.logging import (
    JSONFormatter,
    SensitiveDataFilter,
    SensitiveDataMasker,
    get_logger,
    init_logging,
    log_session_event,
)


class TestSensitiveDataMasker:
    """Test masking of credentials in log output"""

    def test_mask_password_assignments(self):
        masker = SensitiveDataMasker()
        assert masker.mask_string("password=hunter2") == "password=[REDACTED]"
        assert masker.mask_string('{"user_key": "abc123"}') == '{"user_key": "[REDACTED]"}'

    def test_mask_pass_command(self):
        masker = SensitiveDataMasker()
        assert masker.mask_string("PASS hunter2") == "PASS [REDACTED]"

    def test_mask_email_address(self):
        masker = SensitiveDataMasker()
        assert masker.mask_string("USER sender@example.com") == "USER s***@e***"

    def test_partial_strategy(self):
        masker = SensitiveDataMasker(strategy="partial")
        assert masker.mask_func("abcdefghij") == "abc****hij"
        assert masker.mask_func("short") == "[REDACTED]"

    def test_mask_dict(self):
        masker = SensitiveDataMasker()
        masked = masker.mask_dict({"user_key": "abc", "nested": {"token": "t"}, "port": 587})
        assert masked == {"user_key": "[REDACTED]", "nested": {"token": "[REDACTED]"}, "port": 587}

    def test_filter_masks_event_fields(self):
        record = logging.LogRecord("mailwire", logging.DEBUG, __file__, 1, "pop3 >>> cmd", None, None)
        record.command = "USER sender@example.com"

        assert SensitiveDataFilter().filter(record)
        assert record.command == "USER s***@e***"


class TestJSONFormatter:
    """Test structured log output"""

    def test_event_fields_included(self):
        record = logging.LogRecord("mailwire", logging.INFO, __file__, 10, "hello %s", ("world",), None)
        record.event_type = "session.upgraded"
        record.protocol = "smtp"

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["event_type"] == "session.upgraded"
        assert entry["protocol"] == "smtp"
        assert "command" not in entry


class TestLogManager:
    """Test handler setup"""

    def test_files_are_written(self, tmp_path):
        manager = init_logging("DEBUG", log_dir=tmp_path)

        get_logger("tests").info("plain record")
        log_session_event(SessionEvent(kind=EventKind.UPGRADED, protocol="smtp", state="encrypted"))
        for handler in manager.root_logger.handlers:
            handler.flush()

        app_lines = (tmp_path / "app.log").read_text().splitlines()
        event_lines = (tmp_path / "events.log").read_text().splitlines()

        assert len(app_lines) == 2
        assert len(event_lines) == 1
        assert json.loads(event_lines[0])["event_type"] == "session.upgraded"

    def test_init_twice_updates_level(self, tmp_path):
        first = init_logging("INFO", log_dir=tmp_path)
        second = init_logging("ERROR", log_dir=tmp_path)

        assert first is second
        assert second.log_level == logging.ERROR

    def test_invalid_level(self, tmp_path):
        with pytest.raises(ValueError):
            init_logging("CHATTY", log_dir=tmp_path)

    def test_unwritable_log_dir(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")

        with pytest.raises(FileSystemError):
            init_logging("INFO", log_dir=blocker / "logs")

    def test_logger_names_are_namespaced(self):
        assert get_logger("cli.send").name == "mailwire.cli.send"
        assert get_logger("mailwire.core").name == "mailwire.core"


class TestSessionEventLogging:
    """Test translation of session events to log records"""

    @pytest.mark.parametrize("event, level, message", [
        (SessionEvent(kind=EventKind.COMMAND_SENT, protocol="smtp", command="EHLO localhost"),
         logging.DEBUG, "smtp >>> EHLO localhost"),
        (SessionEvent(kind=EventKind.RESPONSE_RECEIVED, protocol="pop3", response="+OK"),
         logging.DEBUG, "pop3 <<< +OK"),
        (SessionEvent(kind=EventKind.STATE_CHANGED, protocol="smtp", state="ready"),
         logging.INFO, "smtp state_changed: ready"),
        (SessionEvent(kind=EventKind.ERROR, protocol="pop3", error="-ERR gone", message_id=2),
         logging.WARNING, "pop3 error: -ERR gone"),
    ])
    def test_levels_and_messages(self, caplog, event, level, message):
        with caplog.at_level(logging.DEBUG, logger="mailwire"):
            log_session_event(event)

        record = caplog.records[-1]
        assert record.levelno == level
        assert record.getMessage() == message
        assert record.event_type == f"session.{event.kind.value}"
        assert record.protocol == event.protocol

    def test_message_id_attached(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="mailwire"):
            log_session_event(SessionEvent(kind=EventKind.ERROR, protocol="pop3", error="x", message_id=7))

        assert caplog.records[-1].message_id == 7
        assert not hasattr(caplog.records[-1], "command")


class TestCallLogging:
    """Test the call-tracing decorators"""

    def test_load_config_is_traced(self, caplog, config_file):
        with caplog.at_level(logging.DEBUG, logger="mailwire"):
            load_config(config_file)

        messages = [record.getMessage() for record in caplog.records]
        assert "-> Entering mailwire.utils.config.load_config" in messages
        assert any(m.startswith("<- Exiting mailwire.utils.config.load_config") for m in messages)

    def test_failure_is_traced_and_reraised(self, caplog, tmp_path):
        with caplog.at_level(logging.DEBUG, logger="mailwire"):
            with pytest.raises(MissingConfigError):
                load_config(tmp_path / "absent.json")

        assert any(
            record.getMessage().startswith("<- Error in mailwire.utils.config.load_config")
            for record in caplog.records
        )
