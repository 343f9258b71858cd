"""Tests for account parsing and configuration validation."""

import json

import pytest

from core.config.settings import Account, Settings, parse_accounts
from tgvmax.exceptions import ConfigError


class TestParseAccounts:
    def test_json_list(self):
        raw = json.dumps([
            {"name": "Alice", "email": "alice@example.com", "password": "a"},
            {"name": "Bob", "email": "bob@example.com", "password": "b"},
        ])

        accounts = parse_accounts(raw)

        assert [a.name for a in accounts] == ["Alice", "Bob"]
        assert accounts[1].email == "bob@example.com"

    def test_single_account_fallback(self):
        accounts = parse_accounts(None, "solo@example.com", "pw")

        assert accounts == [Account(name="default", email="solo@example.com", password="pw")]

    def test_single_account_with_name(self):
        assert parse_accounts(None, "solo@example.com", "pw", "Solo")[0].name == "Solo"

    def test_accounts_json_wins_over_single_account(self):
        raw = json.dumps([{"name": "Alice", "email": "alice@example.com", "password": "a"}])

        assert [a.name for a in parse_accounts(raw, "solo@example.com", "pw")] == ["Alice"]

    @pytest.mark.parametrize("raw, message", [
        ("not json", "not valid JSON"),
        ('{"name": "Alice"}', "non-empty JSON list"),
        ("[]", "non-empty JSON list"),
        ('["Alice"]', "must be an object"),
        ('[{"name": "Alice", "email": "a@example.com"}]', "missing: password"),
    ])
    def test_malformed_accounts(self, raw, message):
        with pytest.raises(ConfigError, match=message):
            parse_accounts(raw)

    def test_duplicate_names_are_rejected(self):
        raw = json.dumps([
            {"name": "Alice", "email": "a@example.com", "password": "a"},
            {"name": "alice", "email": "b@example.com", "password": "b"},
        ])

        with pytest.raises(ConfigError, match="unique"):
            parse_accounts(raw)

    def test_nothing_configured(self):
        with pytest.raises(ConfigError, match="No account configured"):
            parse_accounts(None, None, None)

    def test_password_is_not_in_repr(self):
        assert "hunter2" not in repr(Account(name="Alice", email="a@example.com", password="hunter2"))


class TestValidate:
    def _settings(self, monkeypatch) -> Settings:
        monkeypatch.setenv("ACCOUNTS", json.dumps([{"name": "Alice", "email": "a@example.com", "password": "a"}]))
        config = Settings()
        config.relay.url = "https://relay.test/otp"
        config.relay.secret = "s3cret"
        return config

    def test_valid_configuration(self, monkeypatch):
        self._settings(monkeypatch).validate()

    def test_missing_relay_url(self, monkeypatch):
        config = self._settings(monkeypatch)
        config.relay.url = ""

        with pytest.raises(ConfigError, match="WEBHOOK_URL"):
            config.validate()

    def test_missing_relay_secret(self, monkeypatch):
        config = self._settings(monkeypatch)
        config.relay.secret = ""

        with pytest.raises(ConfigError, match="WEBHOOK_SECRET"):
            config.validate()

    def test_non_positive_poll_interval(self, monkeypatch):
        config = self._settings(monkeypatch)
        config.relay.poll_interval_seconds = 0

        with pytest.raises(ConfigError, match="positive"):
            config.validate()

    def test_bad_accounts_fail_validation(self, monkeypatch):
        config = self._settings(monkeypatch)
        monkeypatch.setenv("ACCOUNTS", "not json")

        with pytest.raises(ConfigError):
            config.validate()
