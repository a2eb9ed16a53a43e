#!/usr/bin/env python3
"""
Readivine -- command-line session tool for a running Readivine API.

Drives the same client components a frontend uses (AuthStore, redirect
circuit breaker) so cookie and redirect problems can be reproduced and
cleared from a terminal.

Usage:
  python main.py status
  python main.py login
  python main.py login --no-browser
  python main.py logout
  python main.py circuit-info
  python main.py reset-circuit

Environment variables:
  READIVINE_API_URL       Base URL of the API (default: http://localhost:8000/api/v1)
  READIVINE_ACCESS_TOKEN  Optional accessToken cookie value copied from a browser session
  READIVINE_STATE_FILE    Where redirect history is kept (default: ~/.readivine/state.json)
  READIVINE_FRONTEND_URL  Frontend origin that routes like /login open on (default: http://localhost:5173)
"""

import argparse
import json
import os
import sys
import webbrowser
from pathlib import Path
from typing import Optional

from client.api import ReadivineApiClient
from client.auth_store import AuthStore
from client.circuit_breaker import BreakerConfig, Navigator, RedirectCircuitBreaker
from client.errors import CircuitOpenError
from client.storage import JsonFileStorage

DEFAULT_API_URL = "http://localhost:8000/api/v1"
DEFAULT_FRONTEND_URL = "http://localhost:5173"
DEFAULT_STATE_FILE = Path.home() / ".readivine" / "state.json"


def _build_store(args: argparse.Namespace) -> AuthStore:
    """Wire the client components from CLI arguments and environment."""
    on_navigate = None if args.no_browser else webbrowser.open
    navigator = Navigator(on_navigate=on_navigate, origin=args.frontend_url)
    breaker = RedirectCircuitBreaker(JsonFileStorage(Path(args.state_file)), navigator, BreakerConfig())
    api = ReadivineApiClient(args.api_url, access_token=os.environ.get("READIVINE_ACCESS_TOKEN") or None)
    return AuthStore(api, breaker)


def _print_redirect(store: AuthStore, result) -> None:
    if result.success:
        print(f"  Opened {store.breaker.navigator.resolve(result.path)}")
        return
    print(f"  [!] Redirect blocked ({result.decision.reason}). {result.decision.message}")
    if result.decision.suggested_redirect:
        print(f"  Try {result.decision.suggested_redirect} instead.")


def cmd_status(store: AuthStore) -> int:
    state = store.check_status()
    if state.error:
        print(f"  [!] {state.error}")
        return 1
    if state.is_authenticated:
        user = state.user or {}
        print(f"  Logged in as {user.get('username', '?')} <{user.get('email', '?')}>")
    else:
        print("  Not logged in.")
    return 0


def cmd_login(store: AuthStore) -> int:
    store.check_status()
    result = store.login()
    try:
        result.raise_for_circuit()
    except CircuitOpenError as e:
        print(f"  [!] {e.message}")
        print("  Run 'python main.py reset-circuit' to clear it now.")
        return 1
    _print_redirect(store, result)
    return 0 if result.success else 1


def cmd_logout(store: AuthStore) -> int:
    result = store.logout()
    if result is None:
        print("  Logout already in progress.")
        return 1
    print("  Local session cleared.")
    _print_redirect(store, result)
    return 0


def cmd_reset_circuit(store: AuthStore) -> int:
    store.reset_redirect_circuit()
    print("  Redirect circuit reset.")
    return 0


def cmd_circuit_info(store: AuthStore) -> int:
    print(json.dumps(store.breaker.debug_info(), indent=2))
    return 0


_COMMANDS = {
    "status": cmd_status,
    "login": cmd_login,
    "logout": cmd_logout,
    "reset-circuit": cmd_reset_circuit,
    "circuit-info": cmd_circuit_info,
}


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="readivine",
        description="Check, start and end Readivine sessions against a running API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py status
  python main.py login
  READIVINE_API_URL=https://api.example.com/api/v1 python main.py status
  python main.py reset-circuit
        """,
    )
    parser.add_argument(
        "command",
        choices=sorted(_COMMANDS),
        help="status, login, logout, reset-circuit, or circuit-info",
    )
    parser.add_argument(
        "--api-url",
        default=os.environ.get("READIVINE_API_URL", DEFAULT_API_URL),
        metavar="URL",
        help=f"API base URL (default: $READIVINE_API_URL or {DEFAULT_API_URL})",
    )
    parser.add_argument(
        "--frontend-url",
        default=os.environ.get("READIVINE_FRONTEND_URL", DEFAULT_FRONTEND_URL),
        metavar="URL",
        help=f"Origin that /login and /dashboard open on (default: $READIVINE_FRONTEND_URL or {DEFAULT_FRONTEND_URL})",
    )
    parser.add_argument(
        "--state-file",
        default=os.environ.get("READIVINE_STATE_FILE", str(DEFAULT_STATE_FILE)),
        metavar="PATH",
        help="File holding redirect circuit state between runs",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Print redirect targets instead of opening them in a browser",
    )
    args = parser.parse_args(argv)

    store = _build_store(args)
    return _COMMANDS[args.command](store)


if __name__ == "__main__":
    sys.exit(main())
