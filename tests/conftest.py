"""Pytest configuration and shared fixtures for all tests."""

import pytest


@pytest.fixture(autouse=True)
def disable_telemetry_for_tests(monkeypatch):
    """Keep Sentry off and the environment predictable for every test.

    Tests that exercise Sentry initialization (test_sentry_filtering.py)
    set TELEMETRY and SENTRY_DSN themselves.
    """
    monkeypatch.setenv("TELEMETRY", "false")
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    for name in ("HARVESTER_TEMP_DIR", "HARVESTER_CONCURRENCY", "HARVESTER_REQUEST_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
