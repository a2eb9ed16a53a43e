"""
client/auth_store.py -- Client-side authentication state.

AuthStore owns the answer to "is this user logged in?" for a frontend or
tool. It asks the server via ReadivineApiClient, retries transient failures
with exponential backoff, and routes every login/logout navigation through
a RedirectCircuitBreaker.

State transitions:
  check_status()  -> is_loading while in flight; afterwards has_checked_auth
                     is always True and is_loading always False
  login()         -> dashboard if already authenticated, else provider login
  logout()        -> server logout (best effort), local state cleared,
                     redirect to the login page
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import requests

from client.api import ReadivineApiClient
from client.circuit_breaker import (
    DASHBOARD_REDIRECT,
    LOGIN_REDIRECT,
    LOGOUT_REDIRECT,
    RedirectCircuitBreaker,
    RedirectResult,
)
from client.errors import ERROR_MESSAGES, ErrorKind, classify_error, is_retryable
from client.retry import RetryPolicy, run_with_retry

logger = logging.getLogger("readivine.client.auth")


@dataclass
class AuthState:
    is_loading: bool = True
    has_checked_auth: bool = False
    is_authenticated: bool = False
    user: dict[str, Any] | None = None
    error: str | None = None
    retry_count: int = 0
    is_logging_out: bool = False


class AuthStore:
    def __init__(
        self,
        api: ReadivineApiClient,
        breaker: RedirectCircuitBreaker,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        provider: str = "github",
    ) -> None:
        self.api = api
        self.breaker = breaker
        self.retry_policy = retry_policy or RetryPolicy()
        self.provider = provider
        self.state = AuthState()
        self._sleep = sleep
        self._check_lock = threading.Lock()
        self._logout_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _on_retry(self, exc: Exception, attempt: int, delay: float) -> None:
        self.state.retry_count = attempt

    def check_status(self) -> AuthState:
        """Refresh state from /auth/status. A call made while another is in flight returns immediately."""
        if not self._check_lock.acquire(blocking=False):
            logger.debug("Auth check already in progress; skipping")
            return self.state
        try:
            self.state.is_loading = True
            self.state.error = None
            try:
                result = run_with_retry(
                    self.api.status,
                    self.retry_policy,
                    should_retry=is_retryable,
                    sleep=self._sleep,
                    on_retry=self._on_retry,
                )
            except (requests.RequestException, ValueError) as exc:
                kind = classify_error(exc)
                self.state.is_authenticated = False
                self.state.user = None
                if kind is ErrorKind.AUTH_FAILURE:
                    self.state.error = None
                else:
                    logger.warning("Auth check failed (%s): %s", kind.value, exc)
                    self.state.error = f"Authentication check failed: {ERROR_MESSAGES[kind]}"
            else:
                self.state.is_authenticated = result.authenticated
                self.state.user = result.user if result.authenticated else None
            return self.state
        finally:
            self.state.retry_count = 0
            self.state.has_checked_auth = True
            self.state.is_loading = False
            self._check_lock.release()

    def check_if_needed(self) -> AuthState:
        if self.state.has_checked_auth:
            return self.state
        return self.check_status()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def login(self) -> RedirectResult:
        if self.state.is_authenticated:
            return self.breaker.perform_safe_redirect(
                DASHBOARD_REDIRECT, self.breaker.config.dashboard_path, self.state
            )
        return self.breaker.perform_safe_redirect(LOGIN_REDIRECT, self.api.login_url(self.provider), self.state)

    def logout(self) -> RedirectResult | None:
        """Log out on the server, then clear local state and go to the login page.

        Returns None if a logout is already running. A failed server call is
        logged; the local session is cleared regardless.
        """
        if not self._logout_lock.acquire(blocking=False):
            logger.debug("Logout already in progress; skipping")
            return None
        try:
            self.state.is_logging_out = True
            self.state.is_loading = True
            try:
                self.api.logout()
            except requests.RequestException as exc:
                logger.warning("Server logout failed (%s); clearing local session anyway", classify_error(exc).value)
            self.state.is_authenticated = False
            self.state.user = None
            self.state.error = None
            return self.breaker.perform_safe_redirect(LOGOUT_REDIRECT, self.breaker.config.login_path, self.state)
        finally:
            self.state.is_logging_out = False
            self.state.is_loading = False
            self._logout_lock.release()

    def clear_error(self) -> None:
        self.state.error = None

    def reset_redirect_circuit(self) -> None:
        self.breaker.reset_circuit()
