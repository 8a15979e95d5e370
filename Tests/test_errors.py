"""
Tests for the error taxonomy and the logging helpers.
"""

import sys

import pytest
from loguru import logger

from vault_agent.errors import (
    AgentError, AgentErrorHandler, AgentErrorType, MalformedDocumentError, SessionNotFoundError,
    SessionPersistenceError,
)
from vault_agent.logging_config import (
    configure_logging, format_params_for_log, mask_sensitive_params, truncate_for_log,
)


class TestAgentErrorHandler:

    @pytest.mark.parametrize("error,expected", [
        (FileNotFoundError("x"), AgentErrorType.NOT_FOUND),
        (FileExistsError("x"), AgentErrorType.CONFLICT),
        (PermissionError("x"), AgentErrorType.PERMISSION_DENIED),
        (OSError("x"), AgentErrorType.IO_FAILURE),
        (ValueError("x"), AgentErrorType.VALIDATION_ERROR),
        (KeyError("x"), AgentErrorType.UNKNOWN_ERROR),
    ])
    def test_classify(self, error, expected):
        assert AgentErrorHandler.classify(error) == expected

    def test_handle_error_with_context(self):
        wrapped = AgentErrorHandler.handle_error(
            OSError("disk full"), {"operation": "append", "path": "gemini-scribe/History/a.md"})
        assert wrapped.error_type == AgentErrorType.IO_FAILURE
        assert wrapped.message == "Failed to read or write a document during append"
        assert wrapped.details == "disk full (path: gemini-scribe/History/a.md)"
        assert "Ensure there is free disk space" in wrapped.get_full_message()

    def test_agent_errors_pass_through(self):
        error = SessionNotFoundError("session_1")
        assert AgentErrorHandler.handle_error(error) is error
        assert AgentErrorHandler.classify(error) == AgentErrorType.NOT_FOUND


class TestSpecificErrors:

    def test_session_not_found(self):
        error = SessionNotFoundError("session_1")
        assert error.session_id == "session_1"
        assert str(error) == "Session not found: session_1"
        assert isinstance(error, AgentError)

    def test_persistence_error(self):
        cause = PermissionError("read-only")
        error = SessionPersistenceError("Failed to save chat history", path="a.md", original_exception=cause)
        assert error.path == "a.md"
        assert error.original_exception is cause
        assert error.get_full_message().startswith("Failed to save chat history\n\nDetails: Path: a.md")

    def test_malformed_document(self):
        error = MalformedDocumentError("a.md", "bad yaml")
        assert error.error_type == AgentErrorType.MALFORMED_DATA
        assert error.get_user_message() == "Malformed document: a.md"


class TestLogHelpers:

    def test_truncate(self):
        assert truncate_for_log("short") == "short"
        assert truncate_for_log("a\nb") == "a\\nb"
        assert truncate_for_log("x" * 100, max_length=10) == "x" * 10 + "..."

    def test_mask_sensitive(self):
        masked = mask_sensitive_params({"path": "a.md", "api_key": "abc", "AuthToken": "def"})
        assert masked == {"path": "a.md", "api_key": "***MASKED***", "AuthToken": "***MASKED***"}

    def test_format_params(self):
        text = format_params_for_log({"password": "hunter2", "path": "a.md"})
        assert "hunter2" not in text
        assert "a.md" in text

    def test_configure_logging_file_sink(self, tmp_path):
        log_file = tmp_path / "agent.log"
        try:
            configure_logging("DEBUG", str(log_file))
            logger.debug("file sink reached")
        finally:
            logger.remove()
            logger.add(sys.stderr)
        assert "file sink reached" in log_file.read_text(encoding="utf-8")
