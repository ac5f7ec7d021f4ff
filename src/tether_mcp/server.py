"""FastMCP server bootstrap for Tether."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastmcp import Context, FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from . import __version__
from .config import TetherSettings, get_settings
from .runner import CommandRunner
from .sessions import SessionBackend, SessionError, TmuxSessionBackend
from .tasks import AgentNotFoundError, TaskController, resolve_agent_executable
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the Tether server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[TetherSettings] = None,
    runner: CommandRunner | None = None,
    sessions: SessionBackend | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with the task tools and status resource."""

    settings = settings or get_settings()
    log = logging.getLogger(__name__)

    runner = runner or CommandRunner(
        shell=settings.shell,
        timeout=settings.command_timeout_seconds,
        max_output_bytes=settings.max_output_bytes,
    )
    if sessions is None:
        sessions = TmuxSessionBackend(runner, tmux=settings.tmux_path)

    agent_metadata: dict[str, Any] = {
        "available": False,
        "path": settings.agent_path,
        "args": list(settings.agent_args),
        "error": None,
    }
    try:
        agent_command = str(resolve_agent_executable(settings.agent_path))
        agent_metadata["available"] = True
        agent_metadata["path"] = agent_command
    except AgentNotFoundError as exc:
        agent_command = settings.agent_path or "claude"
        agent_metadata["error"] = str(exc)
        log.warning("Agent executable unavailable", extra={"error": str(exc)})

    controller = TaskController(
        sessions,
        agent_command=agent_command,
        agent_args=settings.agent_args,
        session_prefix=settings.session_prefix,
        poll_interval=settings.poll_interval_seconds,
        default_wait_timeout=settings.default_wait_timeout_seconds,
        status_tail_lines=settings.status_tail_lines,
        output_tail_lines=settings.output_tail_lines,
        prompt_summary_chars=settings.prompt_summary_chars,
    )

    server = FastMCP(
        name="Tether MCP",
        version=__version__,
        instructions=(
            "Tether runs coding agents as detached tasks on this host. Start a task, "
            "then poll its status or output, send it follow-up input, list tasks, or "
            "stop it. Tasks keep running between calls."
        ),
    )

    handles = register_tools(
        server,
        controller=controller,
        runner=runner,
        settings=settings,
    )

    async def status_snapshot(context: Context | None = None) -> dict[str, Any]:
        """Summarize runtime state: agent, tmux, and task counts."""

        tmux_metadata: dict[str, Any] = {"path": settings.tmux_path, "version": None, "error": None}
        live_sessions: list[str] = []
        list_sessions = getattr(sessions, "list_sessions", None)
        if callable(list_sessions):
            try:
                live_sessions = await list_sessions(settings.session_prefix)
            except SessionError as exc:
                tmux_metadata["error"] = str(exc)
        version = getattr(sessions, "version", None)
        if callable(version):
            version_result = await version()
            if version_result.ok:
                tmux_metadata["version"] = version_result.stdout.strip()
            else:
                tmux_metadata["error"] = version_result.stderr.strip() or (
                    f"tmux -V exited with code {version_result.returncode}"
                )

        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "transport": settings.transport,
            "agent": agent_metadata,
            "tmux": tmux_metadata,
            "tasks": {
                "count": len(controller.registry),
                "status_counts": controller.registry.status_counts(),
                "live_sessions": live_sessions,
            },
            "request_id": getattr(context, "request_id", None),
        }

    @server.resource(
        "resource://tether/status",
        name="tether_status",
        title="Tether MCP Status",
        description="Provides the current runtime status for the Tether MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    async def status_resource() -> str:
        """Return a JSON string summarizing runtime state."""

        return json.dumps(await status_snapshot())

    @server.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "version": __version__})

    setattr(server, "command_runner", runner)
    setattr(server, "session_backend", sessions)
    setattr(server, "task_controller", controller)
    setattr(server, "agent_metadata", agent_metadata)
    setattr(server, "status_snapshot", status_snapshot)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the Tether MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching Tether MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "transport": settings.transport,
            "agent_available": getattr(server, "agent_metadata", {}).get("available"),
        },
    )
    if settings.transport == "http":
        server.run(transport="http", host=settings.host, port=settings.port)
    else:
        server.run()


if __name__ == "__main__":
    main()
