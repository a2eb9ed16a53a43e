"""
client/circuit_breaker.py -- Redirect loop prevention.

A misconfigured cookie (wrong SameSite, missing Secure, blocked third-party
cookies) makes the frontend see "not authenticated" right after a successful
login, redirect to the login flow, come back, and repeat. The breaker records
every automatic navigation and refuses the next one once the same
(type, path) pair has fired max_redirects times inside time_window seconds.
The circuit then stays open for cooldown_period seconds, or until
reset_circuit() is called.

State is persisted through a StateStorage so a loop that spans full page
loads (or CLI invocations) is still detected.

Usage:
    breaker = RedirectCircuitBreaker(JsonFileStorage(path), Navigator())
    result = breaker.perform_safe_redirect(LOGIN_REDIRECT, "/login", auth)
    if not result.success:
        print(result.decision.message)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import urlsplit

from client.errors import CircuitOpenError
from client.storage import StateStorage

logger = logging.getLogger("readivine.client.circuit_breaker")

AUTH_CHECK = "auth_check"
LOGIN_REDIRECT = "login_redirect"
DASHBOARD_REDIRECT = "dashboard_redirect"
LOGOUT_REDIRECT = "logout_redirect"

REDIRECT_TYPES = frozenset({AUTH_CHECK, LOGIN_REDIRECT, DASHBOARD_REDIRECT, LOGOUT_REDIRECT})

# Decision reasons, in the order can_redirect() evaluates them.
CIRCUIT_OPEN = "circuit_open"
SAME_PAGE = "same_page_redirect"
MAX_REDIRECTS = "max_redirects_exceeded"
AUTHENTICATED_TO_LOGIN = "authenticated_to_login"
ALLOWED = "allowed"


@dataclass(frozen=True)
class BreakerConfig:
    max_redirects: int = 3
    time_window: float = 60.0
    cooldown_period: float = 300.0
    debounce_delay: float = 2.0
    storage_key: str = "redirectLoopPrevention"
    login_path: str = "/login"
    dashboard_path: str = "/dashboard"


@dataclass(frozen=True)
class RedirectDecision:
    allowed: bool
    reason: str
    message: str = ""
    retry_after: float = 0.0
    suggested_redirect: str | None = None


@dataclass(frozen=True)
class RedirectResult:
    success: bool
    decision: RedirectDecision
    path: str

    def raise_for_circuit(self) -> None:
        """Raise CircuitOpenError if the redirect was blocked by the open circuit."""
        if not self.success and self.decision.reason in (CIRCUIT_OPEN, MAX_REDIRECTS):
            raise CircuitOpenError(self.decision.message, self.decision.retry_after)


class AuthSnapshot(Protocol):
    is_authenticated: bool


class Navigator:
    """Tracks the current location and performs navigations.

    on_navigate receives the target resolved against origin, so a frontend
    route like "/login" reaches it as "<origin>/login". A CLI passes
    webbrowser.open, tests pass a list's append. history and current_path
    keep the unresolved target.
    """

    def __init__(
        self,
        current_path: str = "/",
        on_navigate: Callable[[str], Any] | None = None,
        origin: str | None = None,
    ) -> None:
        self.current_path = current_path
        self.history: list[str] = []
        self.origin = origin.rstrip("/") if origin else None
        self._on_navigate = on_navigate

    def resolve(self, target: str) -> str:
        if self.origin and target.startswith("/"):
            return self.origin + target
        return target

    def navigate(self, target: str) -> None:
        self.history.append(target)
        self.current_path = target if target.startswith("/") else (urlsplit(target).path or "/")
        if self._on_navigate:
            self._on_navigate(self.resolve(target))


def _empty_state(now: float) -> dict[str, Any]:
    return {"redirects": [], "circuit_open": False, "last_reset": now}


class RedirectCircuitBreaker:
    def __init__(
        self,
        storage: StateStorage,
        navigator: Navigator,
        config: BreakerConfig | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.storage = storage
        self.navigator = navigator
        self.config = config or BreakerConfig()
        self._clock = clock
        self._sleep = sleep
        self.state = self._load_state()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load_state(self) -> dict[str, Any]:
        stored = self.storage.get(self.config.storage_key)
        if stored is None:
            return _empty_state(self._clock())
        try:
            return {
                "redirects": [
                    {"type": str(r["type"]), "path": str(r["path"]), "timestamp": float(r["timestamp"])}
                    for r in stored.get("redirects", [])
                ],
                "circuit_open": bool(stored.get("circuit_open", False)),
                "last_reset": float(stored.get("last_reset", self._clock())),
            }
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable redirect state: %s", e)
            return _empty_state(self._clock())

    def _save_state(self) -> None:
        self.storage.set(self.config.storage_key, self.state)

    def _purge(self, now: float) -> None:
        """Drop redirects older than time_window and close an expired circuit."""
        cfg = self.config
        if self.state["circuit_open"] and now - self.state["last_reset"] >= cfg.cooldown_period:
            logger.info("Redirect circuit cooldown elapsed; closing circuit")
            self.state = _empty_state(now)
            self._save_state()
            return
        fresh = [r for r in self.state["redirects"] if now - r["timestamp"] < cfg.time_window]
        if len(fresh) != len(self.state["redirects"]):
            self.state["redirects"] = fresh
            self._save_state()

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def remaining_cooldown(self) -> float:
        """Seconds until the circuit closes on its own; 0.0 when it is closed."""
        if not self.state["circuit_open"]:
            return 0.0
        elapsed = self._clock() - self.state["last_reset"]
        return max(0.0, self.config.cooldown_period - elapsed)

    def can_redirect(self, redirect_type: str, path: str, auth: AuthSnapshot | None = None) -> RedirectDecision:
        if redirect_type not in REDIRECT_TYPES:
            raise ValueError(f"Unknown redirect type: {redirect_type!r}")

        now = self._clock()
        self._purge(now)
        cfg = self.config

        if self.state["circuit_open"]:
            remaining = self.remaining_cooldown()
            return RedirectDecision(
                allowed=False,
                reason=CIRCUIT_OPEN,
                message=f"Too many redirects. Please wait {int(remaining) + 1} seconds or reset the redirect circuit.",
                retry_after=remaining,
            )

        if path == self.navigator.current_path:
            return RedirectDecision(allowed=False, reason=SAME_PAGE, message=f"Already on {path}.")

        count = sum(1 for r in self.state["redirects"] if r["type"] == redirect_type and r["path"] == path)
        if count >= cfg.max_redirects:
            self.state["circuit_open"] = True
            self.state["last_reset"] = now
            self._save_state()
            logger.warning(
                "Redirect loop detected: %d %s redirects to %s within %.0fs; circuit open for %.0fs",
                count,
                redirect_type,
                path,
                cfg.time_window,
                cfg.cooldown_period,
            )
            return RedirectDecision(
                allowed=False,
                reason=MAX_REDIRECTS,
                message="Redirect loop detected. Check that cookies are enabled for this site.",
                retry_after=cfg.cooldown_period,
            )

        if auth is not None and auth.is_authenticated and path == cfg.login_path:
            return RedirectDecision(
                allowed=False,
                reason=AUTHENTICATED_TO_LOGIN,
                message="Already logged in.",
                suggested_redirect=cfg.dashboard_path,
            )

        return RedirectDecision(allowed=True, reason=ALLOWED)

    def record(self, redirect_type: str, path: str) -> None:
        self.state["redirects"].append({"type": redirect_type, "path": path, "timestamp": self._clock()})
        self._save_state()

    def perform_safe_redirect(
        self,
        redirect_type: str,
        path: str,
        auth: AuthSnapshot | None = None,
        force: bool = False,
    ) -> RedirectResult:
        """Check, record, debounce, then navigate.

        force skips the check (the redirect is still recorded). A denied
        redirect that carries a suggested_redirect is not followed here; the
        caller decides.
        """
        if force:
            decision = RedirectDecision(allowed=True, reason=ALLOWED)
        else:
            decision = self.can_redirect(redirect_type, path, auth)
        if not decision.allowed:
            logger.info("Redirect %s -> %s blocked: %s", redirect_type, path, decision.reason)
            return RedirectResult(success=False, decision=decision, path=path)

        self.record(redirect_type, path)
        if self.config.debounce_delay > 0:
            self._sleep(self.config.debounce_delay)
        logger.debug("Redirect %s -> %s", redirect_type, path)
        self.navigator.navigate(path)
        return RedirectResult(success=True, decision=decision, path=path)

    # ------------------------------------------------------------------
    # Manual controls
    # ------------------------------------------------------------------

    def reset_circuit(self) -> None:
        logger.info("Redirect circuit manually reset")
        self.state = _empty_state(self._clock())
        self._save_state()

    def debug_info(self) -> dict[str, Any]:
        now = self._clock()
        self._purge(now)
        cfg = self.config
        return {
            "circuit_open": self.state["circuit_open"],
            "remaining_cooldown": self.remaining_cooldown(),
            "recent_redirects": [
                {"type": r["type"], "path": r["path"], "age": round(now - r["timestamp"], 1)}
                for r in self.state["redirects"]
            ],
            "last_reset": self.state["last_reset"],
            "current_path": self.navigator.current_path,
            "config": {
                "max_redirects": cfg.max_redirects,
                "time_window": cfg.time_window,
                "cooldown_period": cfg.cooldown_period,
                "debounce_delay": cfg.debounce_delay,
            },
        }
