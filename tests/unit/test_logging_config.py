"""Tests for actionengine/logging_config.py"""

import structlog

from actionengine.logging_config import bind_session, get_logger


class TestBindSession:
    def test_bind_and_clear(self):
        bind_session("flow_42")
        assert structlog.contextvars.get_contextvars()["flow_session_id"] == "flow_42"

        bind_session(None)
        assert "flow_session_id" not in structlog.contextvars.get_contextvars()

    def test_get_logger_is_bound_logger(self):
        logger = get_logger("actionengine.test")
        assert hasattr(logger, "info")
