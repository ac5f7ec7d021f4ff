"""Tether MCP diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json

from tether_mcp.config import TetherSettings
from tether_mcp.runner import CommandRunner
from tether_mcp.sessions import SessionError, TmuxSessionBackend
from tether_mcp.tasks import AgentNotFoundError, resolve_agent_executable


def load_backend(settings: TetherSettings) -> TmuxSessionBackend:
    runner = CommandRunner(
        shell=settings.shell,
        timeout=settings.command_timeout_seconds,
        max_output_bytes=settings.max_output_bytes,
    )
    return TmuxSessionBackend(runner, tmux=settings.tmux_path)


def cmd_check(args: argparse.Namespace) -> None:
    settings = TetherSettings()
    backend = load_backend(settings)

    version_result = asyncio.run(backend.version())
    try:
        agent_path = str(resolve_agent_executable(settings.agent_path))
        agent_error = None
    except AgentNotFoundError as exc:
        agent_path = None
        agent_error = str(exc)

    report = {
        "tmux": {
            "path": settings.tmux_path,
            "available": version_result.ok,
            "version": version_result.stdout.strip() or None,
            "error": None if version_result.ok else version_result.stderr.strip(),
        },
        "agent": {
            "path": agent_path,
            "available": agent_path is not None,
            "args": list(settings.agent_args),
            "error": agent_error,
        },
        "session_prefix": settings.session_prefix,
    }
    print(json.dumps(report, indent=2))
    if not (version_result.ok and agent_path):
        raise SystemExit(1)


def cmd_sessions(args: argparse.Namespace) -> None:
    settings = TetherSettings()
    backend = load_backend(settings)
    prefix = None if args.all else settings.session_prefix
    try:
        names = asyncio.run(backend.list_sessions(prefix))
    except SessionError as exc:
        print(f"tmux unavailable: {exc}")
        raise SystemExit(1)
    if args.json:
        print(json.dumps(names, indent=2))
    else:
        for name in names:
            print(name)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tether MCP diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_check = sub.add_parser("check", help="Check tmux and agent availability")
    p_check.set_defaults(func=cmd_check)

    p_sessions = sub.add_parser("sessions", help="List live tmux sessions backing tasks")
    p_sessions.add_argument("--all", action="store_true", help="Include sessions without the task prefix")
    p_sessions.add_argument("--json", action="store_true", help="Output JSON")
    p_sessions.set_defaults(func=cmd_sessions)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
