"""Tool registration for Tether MCP."""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP

from ..config import TetherSettings
from ..runner import CommandRunner
from ..tasks import TaskController

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    claude_code_start: Any
    claude_code_status: Any
    claude_code_output: Any
    claude_code_send: Any
    claude_code_list: Any
    claude_code_stop: Any
    execute_command: Any
    tmux_send: Any
    tmux_capture: Any
    controller: TaskController


def format_command_output(stdout: str, stderr: str, returncode: int) -> str:
    """Merge stdout and stderr into one text block for a tool response."""

    content = stdout
    if stderr:
        content += ("\n\nSTDERR:\n" if content else "") + stderr
    return content or f"Command completed with exit code {returncode}"


def register_tools(
    server: FastMCP,
    *,
    controller: TaskController,
    runner: CommandRunner,
    settings: TetherSettings,
) -> ToolHandles:
    """Register Tether's MCP tools on the server."""

    async def _start(
        prompt: str,
        working_directory: str | None = None,
        wait_for_completion: bool = False,
        timeout_seconds: float | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Start an agent task in a detached tmux session."""

        result = await controller.start(
            prompt,
            working_directory,
            wait_for_completion=wait_for_completion,
            timeout_seconds=(
                timeout_seconds if timeout_seconds is not None else settings.default_wait_timeout_seconds
            ),
        )
        await _emit_log(
            context,
            "warning" if result["status"] == "failed" else "info",
            "Task start requested",
            extra={"task_id": result["task_id"], "status": result["status"]},
        )
        return result

    async def _status(task_id: str, context: Context | None = None) -> dict[str, Any]:
        result = await controller.get_status(task_id)
        await _emit_log(
            context,
            "debug",
            "Task status",
            extra={"task_id": task_id, "status": result.get("status"), "error": result.get("error")},
        )
        return result

    async def _output(
        task_id: str,
        lines: int | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        result = await controller.get_output(task_id, lines)
        await _emit_log(context, "debug", "Task output", extra={"task_id": task_id, "lines": lines})
        return result

    async def _send(task_id: str, message: str, context: Context | None = None) -> dict[str, Any]:
        result = await controller.send(task_id, message)
        await _emit_log(
            context,
            "info" if result["sent"] else "warning",
            "Message to task",
            extra={"task_id": task_id, "sent": result["sent"], "error": result.get("error")},
        )
        return result

    async def _list(context: Context | None = None) -> dict[str, Any]:
        result = await controller.list_tasks()
        await _emit_log(context, "debug", "Listing tasks", extra={"count": len(result["sessions"])})
        return result

    async def _stop(task_id: str, context: Context | None = None) -> dict[str, Any]:
        result = await controller.stop(task_id)
        await _emit_log(
            context,
            "warning",
            "Stop requested",
            extra={"task_id": task_id, "stopped": result["stopped"], "error": result.get("error")},
        )
        return result

    tool_start = server.tool(
        name="claude_code_start",
        description=(
            "Start a coding agent on a prompt inside a detached tmux session. Returns a "
            "task id immediately, or waits up to timeout_seconds when wait_for_completion "
            "is set. The task keeps running after a wait times out."
        ),
        annotations={
            "safety": {
                "level": "caution",
                "notes": "The agent runs with permission prompts disabled in the given directory",
            }
        },
    )(_start)

    tool_status = server.tool(
        name="claude_code_status",
        description="Get a task's status, runtime in seconds and the last 30 lines of output.",
    )(_status)

    tool_output = server.tool(
        name="claude_code_output",
        description="Fetch the latest output of a task (default 500 lines).",
    )(_output)

    tool_send = server.tool(
        name="claude_code_send",
        description="Type a message into a running task's session and press Enter.",
    )(_send)

    tool_list = server.tool(
        name="claude_code_list",
        description="List all tasks with a prompt summary, status, runtime and working directory.",
    )(_list)

    tool_stop = server.tool(
        name="claude_code_stop",
        description="Kill a running task's session and mark the task stopped.",
    )(_stop)

    async def _execute_command(
        command: str,
        cwd: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Run a shell command on the host and return its output."""

        if not command.strip():
            raise ValueError("Missing required parameter: command")
        result = await runner.run(command, cwd=cwd)
        await _emit_log(
            context,
            "info",
            "Executed command",
            extra={"command": command, "returncode": result.returncode},
        )
        return {
            "content": format_command_output(result.stdout, result.stderr, result.returncode),
            "returncode": result.returncode,
            "is_error": not result.ok,
        }

    def _tmux_target(session: str | None) -> list[str]:
        return ["-t", session] if session else []

    async def _tmux_send(
        keys: str,
        session: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Send keys (tmux key names allowed) followed by Enter."""

        if not keys:
            raise ValueError("Missing required parameter: keys")
        parts = [settings.tmux_path, "send-keys", *_tmux_target(session), keys, "Enter"]
        result = await runner.run(" ".join(shlex.quote(part) for part in parts))
        await _emit_log(
            context,
            "debug",
            "tmux send-keys",
            extra={"session_name": session, "returncode": result.returncode},
        )
        return {
            "content": result.stderr or "Keys sent successfully",
            "is_error": not result.ok,
        }

    async def _tmux_capture(
        session: str | None = None,
        lines: int = 50,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Capture the visible scrollback of a tmux pane."""

        line_count = lines if lines > 0 else 50
        parts = [settings.tmux_path, "capture-pane", *_tmux_target(session), "-p", "-S", f"-{line_count}"]
        result = await runner.run(" ".join(shlex.quote(part) for part in parts))
        await _emit_log(
            context,
            "debug",
            "tmux capture-pane",
            extra={"session_name": session, "returncode": result.returncode},
        )
        return {
            "content": result.stdout or result.stderr or "(empty)",
            "is_error": not result.ok,
        }

    tool_execute = server.tool(
        name="execute_command",
        description=(
            "Execute a shell command on the host and return the output. Use this to run "
            "commands like git, ls or cat."
        ),
    )(_execute_command)

    tool_tmux_send = server.tool(
        name="tmux_send",
        description="Send keys to a tmux session. Useful for interacting with running processes.",
    )(_tmux_send)

    tool_tmux_capture = server.tool(
        name="tmux_capture",
        description="Capture the current output from a tmux pane.",
    )(_tmux_capture)

    return ToolHandles(
        claude_code_start=tool_start,
        claude_code_status=tool_status,
        claude_code_output=tool_output,
        claude_code_send=tool_send,
        claude_code_list=tool_list,
        claude_code_stop=tool_stop,
        execute_command=tool_execute,
        tmux_send=tool_tmux_send,
        tmux_capture=tool_tmux_capture,
        controller=controller,
    )


async def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Log locally and, when a request context is available, to the MCP client."""

    payload = extra or {}
    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)

    if context is None:
        return
    ctx_log = getattr(context, level, None)
    if not callable(ctx_log):
        return
    try:
        await ctx_log(message, extra=payload)
    except Exception as exc:  # pragma: no cover - depends on FastMCP internals
        logger.debug("Client log forwarding failed", extra={"error": str(exc)})


__all__ = ["ToolHandles", "format_command_output", "register_tools"]
