"""Tests for production hardening: exception handler, structlog, logging config."""

from __future__ import annotations

import inspect
import json
import logging

import pytest

# ---------------------------------------------------------------------------
# 1. Global exception handler returns JSON 500
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_global_exception_handler_returns_json() -> None:
    """The unhandled_exception_handler returns JSON with status 500."""
    from unittest.mock import MagicMock

    from app.main import unhandled_exception_handler

    mock_request = MagicMock()
    mock_request.url.path = "/test"
    mock_request.method = "GET"

    response = await unhandled_exception_handler(mock_request, Exception("boom"))

    assert response.status_code == 500
    assert json.loads(response.body) == {"error": "Failed to get answer"}


# ---------------------------------------------------------------------------
# 2. structlog is configured (smoke test)
# ---------------------------------------------------------------------------


def test_structlog_is_configured() -> None:
    """structlog.get_logger() returns a usable logger without error."""
    import structlog

    logger = structlog.get_logger()
    assert logger is not None


def test_configure_logging_installs_single_handler() -> None:
    """configure_logging replaces root handlers and applies the level."""
    from app.logging_config import configure_logging

    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(json_logs=True, log_level="debug")
        configure_logging(json_logs=False, log_level="warning")

        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


# ---------------------------------------------------------------------------
# 3. No stdlib logging.getLogger in application modules
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "module_path",
    [
        "app.routers.answer",
        "app.services.completion",
        "app.services.stream_transport",
    ],
)
def test_no_stdlib_logging(module_path: str) -> None:
    """Application modules must use structlog, not stdlib logging.getLogger."""
    import importlib

    module = importlib.import_module(module_path)
    source = inspect.getsource(module)
    assert "logging.getLogger" not in source, f"{module_path} still uses stdlib logging"
    assert "structlog" in source, f"{module_path} should use structlog"


# ---------------------------------------------------------------------------
# 4. Provider detail never reaches the client
# ---------------------------------------------------------------------------


def test_error_bodies_are_fixed_strings() -> None:
    """The router only exposes the fixed error messages."""
    from app.routers import answer

    assert answer.MISSING_CONTEXT == "Missing required context"
    assert answer.FAILED_TO_ANSWER == "Failed to get answer"
