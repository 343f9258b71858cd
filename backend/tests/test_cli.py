"""Tests for the one-shot command line entry point."""

from cli import build_parser, run_once
from core.config.settings import Account, settings
from tgvmax.models import AccountResult, ConfirmationResult


class StubOrchestrator:
    def __init__(self, results):
        self.results = results
        self.check_only = None

    async def run(self, accounts, check_only=False):
        self.check_only = check_only
        return self.results


class TestArguments:
    def test_confirm_is_the_default(self):
        assert build_parser().parse_args([]).check_only is False

    def test_check(self):
        assert build_parser().parse_args(["--check"]).check_only is True

    def test_explicit_confirm(self):
        assert build_parser().parse_args(["--confirm"]).check_only is False


class TestRunOnce:
    async def test_invalid_configuration_exits_non_zero(self, monkeypatch):
        monkeypatch.setattr(settings.relay, "url", "")
        orchestrator = StubOrchestrator([])

        assert await run_once(False, orchestrator) == 1
        assert orchestrator.check_only is None

    async def test_clean_run_exits_zero(self, monkeypatch):
        monkeypatch.setattr(settings, "_accounts", [Account(name="Alice", email="a@example.com", password="pw")])
        orchestrator = StubOrchestrator([AccountResult(account_name="Alice")])

        assert await run_once(True, orchestrator) == 0
        assert orchestrator.check_only is True

    async def test_failed_confirmation_exits_non_zero(self, monkeypatch):
        monkeypatch.setattr(settings, "_accounts", [Account(name="Alice", email="a@example.com", password="pw")])
        failed = ConfirmationResult(reservation=None, success=False, error="Confirmation verification failed")
        orchestrator = StubOrchestrator([AccountResult(account_name="Alice", results=[failed])])

        assert await run_once(False, orchestrator) == 1

    async def test_authentication_failure_exits_non_zero(self, monkeypatch):
        monkeypatch.setattr(settings, "_accounts", [Account(name="Alice", email="a@example.com", password="pw")])
        orchestrator = StubOrchestrator([AccountResult.account_failure("Alice", "Login verification failed")])

        assert await run_once(False, orchestrator) == 1
