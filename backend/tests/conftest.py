"""Shared fixtures: test configuration and instant pacing."""

import os

# Settings are read at import time; give the relay a test default first.
os.environ.setdefault("WEBHOOK_URL", "https://relay.test/otp")
os.environ.setdefault("WEBHOOK_SECRET", "test-secret")

import pytest

from core.config.settings import Account, settings


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch, tmp_path):
    """No human-like pauses, and every file written lands under tmp_path."""
    monkeypatch.setattr(settings.browser, "delay_scale", 0)
    monkeypatch.setattr(settings.browser, "screenshot_on_error", False)
    monkeypatch.setattr(settings.storage, "session_dir", str(tmp_path / "sessions"))
    monkeypatch.setattr(settings.storage, "screenshot_dir", str(tmp_path / "screenshots"))
    monkeypatch.setattr(settings.relay, "url", "https://relay.test/otp")
    monkeypatch.setattr(settings.relay, "secret", "test-secret")


@pytest.fixture
def account() -> Account:
    return Account(name="Alice", email="alice@example.com", password="hunter2")
