from __future__ import annotations

import asyncio
import json
from pathlib import Path

from tether_mcp import __version__
from tether_mcp.config import TetherSettings
from tether_mcp.runner import CommandResult, FakeCommandRunner
from tether_mcp.server import configure_logging, create_server
from tether_mcp.sessions import InMemorySessionBackend, TmuxSessionBackend


def _tmux_handler(command: str) -> CommandResult | None:
    if command.endswith("-V"):
        return CommandResult(command, 0, "tmux 3.4", "")
    if "list-sessions" in command:
        return CommandResult(command, 0, "claude-task-1\nscratch", "")
    return None


def _settings(tmp_path: Path, agent: Path | None = None) -> TetherSettings:
    settings = TetherSettings()
    settings.agent_path = str(agent or tmp_path / "missing-agent")
    return settings


def test_create_server_wires_tmux_backend_and_agent(tmp_path: Path) -> None:
    agent = tmp_path / "claude"
    agent.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    agent.chmod(0o755)
    runner = FakeCommandRunner(handler=_tmux_handler)

    server = create_server(_settings(tmp_path, agent), runner=runner)

    assert isinstance(getattr(server, "session_backend"), TmuxSessionBackend)
    assert getattr(server, "command_runner") is runner
    assert getattr(server, "agent_metadata")["available"] is True
    assert getattr(server, "agent_metadata")["path"] == str(agent)

    snapshot = asyncio.run(getattr(server, "status_snapshot")())
    assert snapshot["server_version"] == __version__
    assert snapshot["tmux"]["version"] == "tmux 3.4"
    assert snapshot["tasks"]["live_sessions"] == ["claude-task-1"]
    assert snapshot["tasks"]["count"] == 0
    json.dumps(snapshot)


def test_create_server_reports_missing_agent(tmp_path: Path, caplog) -> None:
    caplog.set_level("WARNING", logger="tether_mcp.server")

    server = create_server(_settings(tmp_path), runner=FakeCommandRunner(), sessions=InMemorySessionBackend())

    metadata = getattr(server, "agent_metadata")
    assert metadata["available"] is False
    assert "not found" in metadata["error"]
    assert any("Agent executable unavailable" in record.getMessage() for record in caplog.records)


def test_status_snapshot_counts_tasks_by_status(tmp_path: Path) -> None:
    backend = InMemorySessionBackend()
    server = create_server(_settings(tmp_path), runner=FakeCommandRunner(), sessions=backend)
    controller = getattr(server, "task_controller")

    async def scenario():
        first = await controller.start("one", str(tmp_path))
        await controller.start("two", str(tmp_path))
        await controller.stop(first["task_id"])
        return await getattr(server, "status_snapshot")()

    snapshot = asyncio.run(scenario())

    assert snapshot["tasks"]["count"] == 2
    assert snapshot["tasks"]["status_counts"] == {"stopped": 1, "running": 1}
    assert snapshot["tmux"]["version"] is None
    assert len(snapshot["tasks"]["live_sessions"]) == 1


def test_task_tools_share_the_server_controller(tmp_path: Path) -> None:
    server = create_server(_settings(tmp_path), runner=FakeCommandRunner(), sessions=InMemorySessionBackend())

    handles = getattr(server, "tool_handles")

    assert handles.controller is getattr(server, "task_controller")


def test_configure_logging_accepts_level() -> None:
    configure_logging("DEBUG")
    configure_logging("NOT_A_LEVEL")
