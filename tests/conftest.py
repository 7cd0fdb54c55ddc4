"""Pytest configuration and shared fixtures for chatfmt tests."""

import pytest

import chatfmt.io.logging_setup
import chatfmt.io.perf_logging


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point settings and log files at tmp_path; reset logging around each test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("CHATFMT_LOG_FILE", str(tmp_path / "logs" / "chatfmt.log"))
    monkeypatch.delenv("CHATFMT_LOG_LEVEL", raising=False)
    monkeypatch.delenv("CHATFMT_LOG_DIR", raising=False)
    chatfmt.io.logging_setup.reset()
    chatfmt.io.perf_logging.set_enabled(True)
    yield
    chatfmt.io.logging_setup.reset()
    chatfmt.io.perf_logging.set_enabled(True)
