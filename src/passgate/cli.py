"""passgate operator CLI.

Provides ``passgate`` console script and ``python -m passgate`` entry point.
"""

from __future__ import annotations

import argparse
import json
import sys
import warnings
from collections.abc import Sequence
from typing import Any

from passgate.config import Settings

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_OK = 0
EXIT_BAD_ARGS = 2
EXIT_CONFIG = 3


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _output(data: Any, *, pretty: bool = False) -> None:
    indent = 2 if pretty else None
    print(json.dumps(data, default=str, indent=indent))


def _err(msg: str) -> None:
    print(msg, file=sys.stderr)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_config(args: argparse.Namespace) -> int:
    settings = Settings()
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            data = {
                "env": settings.env,
                "rp_id": settings.effective_rp_id(),
                "rp_display_name": settings.rp_display_name,
                "origins": settings.effective_origins(),
                "registration_timeout_ms": settings.registration_timeout_ms,
                "login_timeout_ms": settings.login_timeout_ms,
                "enforce_timeouts": settings.enforce_timeouts,
                "user_verification": settings.user_verification,
                "attestation": settings.attestation,
                "resident_key": settings.resident_key,
            }
    except RuntimeError as exc:
        _err(str(exc))
        return EXIT_CONFIG
    for w in caught:
        _err(f"warning: {w.message}")
    _output(data, pretty=args.pretty)
    return EXIT_OK


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = Settings()
    try:
        settings.effective_rp_id()
        settings.effective_origins()
    except RuntimeError as exc:
        _err(str(exc))
        return EXIT_CONFIG

    uvicorn.run(
        "passgate.app:create_app",
        factory=True,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=args.log_level,
    )
    return EXIT_OK


# ---------------------------------------------------------------------------
# Argument parser construction
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="passgate",
        description="passgate passkey server",
    )
    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve = subparsers.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default=None, help="Bind address (default: PASSGATE_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PASSGATE_PORT)")
    serve.add_argument(
        "--log-level",
        choices=["critical", "error", "warning", "info", "debug"],
        default="info",
        help="Log level",
    )

    # config
    config = subparsers.add_parser("config", help="Show effective relying party configuration")
    config.add_argument("--pretty", action="store_true", default=False, help="Pretty-print output")

    return parser


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point. Returns an integer exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        return _cmd_serve(args)
    if args.command == "config":
        return _cmd_config(args)

    parser.print_help()
    return EXIT_BAD_ARGS
