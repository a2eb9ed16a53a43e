"""
tests/test_auth_store.py -- Client-side auth state, API client and CLI.

FakeApi stands in for ReadivineApiClient: status() pops scripted outcomes
(a StatusResult to return or an exception to raise) so the retry and error
paths are deterministic.
"""

from __future__ import annotations

from dataclasses import replace
from functools import partial
from unittest.mock import MagicMock

import pytest
import requests

import main as cli
from client.api import ReadivineApiClient, StatusResult
from client.auth_store import AuthStore
from client.circuit_breaker import BreakerConfig, Navigator, RedirectCircuitBreaker
from client.storage import MemoryStorage

API = "http://localhost:8000/api/v1"
APP = "https://app.readivine.test"
ALICE = {"id": 1, "username": "alice", "email": "alice@example.com"}


class FakeApi:
    def __init__(self, outcomes=None, logout_error: Exception | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.logout_error = logout_error
        self.status_calls = 0
        self.logout_calls = 0

    def status(self) -> StatusResult:
        self.status_calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def logout(self) -> None:
        self.logout_calls += 1
        if self.logout_error:
            raise self.logout_error

    def login_url(self, provider: str = "github") -> str:
        return f"{API}/auth/{provider}"


def _server_error(status: int = 500) -> requests.HTTPError:
    resp = requests.Response()
    resp.status_code = status
    return requests.HTTPError(f"HTTP {status}", response=resp)


@pytest.fixture()
def make_store(clock, sleeps):
    def _make(api: FakeApi, current: str = "/") -> AuthStore:
        breaker = RedirectCircuitBreaker(MemoryStorage(), Navigator(current), clock=clock, sleep=sleeps)
        return AuthStore(api, breaker, sleep=sleeps)

    return _make


class TestCheckStatus:
    def test_authenticated(self, make_store) -> None:
        store = make_store(FakeApi([StatusResult(True, ALICE)]))
        state = store.check_status()
        assert state.is_authenticated is True
        assert state.user == ALICE
        assert state.error is None
        assert state.has_checked_auth is True
        assert state.is_loading is False

    def test_not_authenticated_is_not_an_error(self, make_store) -> None:
        state = make_store(FakeApi([StatusResult(False)])).check_status()
        assert state.is_authenticated is False
        assert state.user is None
        assert state.error is None

    def test_recovers_after_two_transient_failures(self, make_store, sleeps) -> None:
        api = FakeApi([requests.ConnectionError("down"), _server_error(502), StatusResult(True, ALICE)])
        state = make_store(api).check_status()
        assert api.status_calls == 3
        assert state.is_authenticated is True
        assert state.retry_count == 0
        assert sleeps.calls == [1.0, 2.0]
        assert all(delay >= 1.0 for delay in sleeps.calls)

    def test_exhausted_retries_set_error(self, make_store) -> None:
        api = FakeApi([requests.ConnectionError("down")] * 4)
        state = make_store(api).check_status()
        assert api.status_calls == 4
        assert state.is_authenticated is False
        assert state.error == "Authentication check failed: Could not reach the server. Check your connection."
        assert state.has_checked_auth is True
        assert state.is_loading is False

    def test_forbidden_is_treated_as_logged_out(self, make_store) -> None:
        api = FakeApi([_server_error(403)])
        state = make_store(api).check_status()
        assert api.status_calls == 1
        assert state.is_authenticated is False
        assert state.error is None

    def test_concurrent_check_is_suppressed(self, make_store) -> None:
        api = FakeApi()
        store = make_store(api)
        inner_results = []

        def reentrant_status() -> StatusResult:
            api.status_calls += 1
            inner_results.append(replace(store.check_status()))
            return StatusResult(True, ALICE)

        api.status = reentrant_status
        store.check_status()
        assert api.status_calls == 1
        assert inner_results[0].is_loading is True

    def test_check_if_needed_runs_once(self, make_store) -> None:
        api = FakeApi([StatusResult(False)])
        store = make_store(api)
        store.check_if_needed()
        store.check_if_needed()
        assert api.status_calls == 1

    def test_clear_error(self, make_store) -> None:
        store = make_store(FakeApi([requests.ConnectionError("down")] * 4))
        store.check_status()
        store.clear_error()
        assert store.state.error is None


class TestNavigation:
    def test_login_goes_to_provider(self, make_store) -> None:
        store = make_store(FakeApi([StatusResult(False)]))
        store.check_status()
        result = store.login()
        assert result.success
        assert store.breaker.navigator.history == [f"{API}/auth/github"]

    def test_login_when_authenticated_goes_to_dashboard(self, make_store) -> None:
        store = make_store(FakeApi([StatusResult(True, ALICE)]), current="/login")
        store.check_status()
        assert store.login().success
        assert store.breaker.navigator.current_path == "/dashboard"

    def test_logout_survives_server_failure(self, make_store) -> None:
        api = FakeApi([StatusResult(True, ALICE)], logout_error=requests.ConnectionError("down"))
        store = make_store(api, current="/dashboard")
        store.check_status()
        result = store.logout()
        assert api.logout_calls == 1
        assert result.success
        assert store.state.is_authenticated is False
        assert store.state.user is None
        assert store.state.is_logging_out is False
        assert store.breaker.navigator.current_path == "/login"

    def test_reset_redirect_circuit(self, make_store) -> None:
        store = make_store(FakeApi())
        store.breaker.state["circuit_open"] = True
        store.reset_redirect_circuit()
        assert store.breaker.state["circuit_open"] is False


class TestApiClient:
    def _client(self, resp: MagicMock) -> ReadivineApiClient:
        session = requests.Session()
        session.get = MagicMock(return_value=resp)
        session.post = MagicMock(return_value=resp)
        return ReadivineApiClient(API + "/", session=session, access_token="jwt")

    def test_status_parses_envelope(self) -> None:
        resp = MagicMock(status_code=200)
        resp.json.return_value = {
            "statusCode": 200,
            "data": {"authenticated": True, "user": ALICE},
            "message": "User is authenticated.",
            "success": True,
        }
        client = self._client(resp)
        assert client.status() == StatusResult(True, ALICE)
        client.session.get.assert_called_once_with(f"{API}/auth/status", timeout=30)
        assert client.session.cookies.get("accessToken") == "jwt"

    def test_401_means_logged_out(self) -> None:
        assert self._client(MagicMock(status_code=401)).status() == StatusResult(False)

    def test_server_error_raises(self) -> None:
        resp = MagicMock(status_code=500)
        resp.raise_for_status.side_effect = _server_error(500)
        with pytest.raises(requests.HTTPError):
            self._client(resp).status()

    def test_login_url(self) -> None:
        assert ReadivineApiClient(API + "/").login_url() == f"{API}/auth/github"


class TestCli:
    @pytest.fixture(autouse=True)
    def _no_debounce(self, monkeypatch) -> None:
        monkeypatch.setattr(cli, "BreakerConfig", partial(BreakerConfig, debounce_delay=0.0))

    def _run(self, tmp_path, *args: str, browser: bool = False) -> int:
        argv = [*args, "--state-file", str(tmp_path / "state.json"), "--api-url", API, "--frontend-url", APP]
        return cli.main(argv if browser else [*argv, "--no-browser"])

    def test_status_logged_in(self, tmp_path, monkeypatch, capsys) -> None:
        monkeypatch.setattr(ReadivineApiClient, "status", lambda self: StatusResult(True, ALICE))
        assert self._run(tmp_path, "status") == 0
        assert "Logged in as alice <alice@example.com>" in capsys.readouterr().out

    def test_login_prints_provider_url(self, tmp_path, monkeypatch, capsys) -> None:
        monkeypatch.setattr(ReadivineApiClient, "status", lambda self: StatusResult(False))
        assert self._run(tmp_path, "login") == 0
        assert f"Opened {API}/auth/github" in capsys.readouterr().out

    def test_repeated_login_trips_circuit_then_reset_clears_it(self, tmp_path, monkeypatch, capsys) -> None:
        monkeypatch.setattr(ReadivineApiClient, "status", lambda self: StatusResult(False))
        for _ in range(3):
            assert self._run(tmp_path, "login") == 0
        assert self._run(tmp_path, "login") == 1
        assert "reset-circuit" in capsys.readouterr().out

        assert self._run(tmp_path, "reset-circuit") == 0
        assert self._run(tmp_path, "login") == 0

    def test_logout_clears_locally_when_server_unreachable(self, tmp_path, monkeypatch, capsys) -> None:
        def unreachable(self) -> None:
            raise requests.ConnectionError("down")

        monkeypatch.setattr(ReadivineApiClient, "logout", unreachable)
        assert self._run(tmp_path, "logout") == 0
        out = capsys.readouterr().out
        assert "Local session cleared." in out
        assert f"Opened {APP}/login" in out

    def test_logout_opens_login_on_the_frontend(self, tmp_path, monkeypatch) -> None:
        opened = []
        monkeypatch.setattr(ReadivineApiClient, "logout", lambda self: None)
        monkeypatch.setattr(cli.webbrowser, "open", opened.append)
        assert self._run(tmp_path, "logout", browser=True) == 0
        assert opened == [f"{APP}/login"]

    def test_circuit_info_is_json(self, tmp_path, capsys) -> None:
        assert self._run(tmp_path, "circuit-info") == 0
        out = capsys.readouterr().out
        assert '"circuit_open": false' in out
