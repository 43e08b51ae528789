import asyncio
import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from agentflow.cli import cli
from agentflow.config import load_config, save_config


class FakeStdout:
    def __init__(self, lines: list[bytes]) -> None:
        self._lines = lines
        self._index = 0

    def __aiter__(self) -> "FakeStdout":
        return self

    async def __anext__(self) -> bytes:
        if self._index >= len(self._lines):
            raise StopAsyncIteration
        line = self._lines[self._index]
        self._index += 1
        return line


class FakeProcess:
    def __init__(self, exit_code: int = 0) -> None:
        self.pid = 777
        self.returncode: int | None = None
        self.exit_code = exit_code
        self.stdout = FakeStdout([b"Review Feedback\n", b"No blocking issues.\n"])
        self.stderr = None

    async def wait(self) -> int:
        self.returncode = self.exit_code
        return self.exit_code


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    repo = tmp_path / "repo"
    repo.mkdir()
    monkeypatch.chdir(repo)
    return repo


def _fake_spawn(monkeypatch: pytest.MonkeyPatch, exit_code: int = 0) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    async def fake_create_subprocess_exec(*args: Any, **kwargs: Any) -> FakeProcess:
        calls.append({"args": list(args), **kwargs})
        return FakeProcess(exit_code)

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_create_subprocess_exec)
    return calls


def test_init_writes_config_and_history_db(workspace: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["init", "--profile", "CODEX", "--approvals", "deny"])

    assert result.exit_code == 0, result.output
    assert "Default profile: CODEX" in result.output
    config = load_config(workspace / "agentflow.toml")
    assert config.executors.default_profile == "CODEX"
    assert config.approvals.policy == "deny"
    assert (workspace / ".agentflow" / "history.db").exists()


def test_init_rejects_unknown_profile(workspace: Path) -> None:
    result = CliRunner().invoke(cli, ["init", "--profile", "CODEX:TURBO"])

    assert result.exit_code != 0
    assert "Default executor profile is not defined" in result.output
    assert not (workspace / "agentflow.toml").exists()


def test_flow_command_runs_and_records_history(workspace: Path) -> None:
    runner = CliRunner()
    assert runner.invoke(cli, ["init"]).exit_code == 0

    result = runner.invoke(
        cli,
        [
            "flow",
            "jira",
            "--title",
            "PROJ-123: Database migration",
            "--project-key",
            "PROJ",
            "--task-id",
            "task-1",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["task_id"] == "task-1"
    assert payload["intent"] == "jira"
    assert [action["status"] for action in payload["actions"]] == [
        "completed",
        "completed",
        "completed",
        "pending",
        "pending",
    ]

    history = runner.invoke(cli, ["history", "list", "--task-id", "task-1"])
    assert history.exit_code == 0
    assert "Review Jira -> pending" in history.output
    assert "status_change" in history.output

    stats = runner.invoke(cli, ["history", "stats", "task-1"])
    assert json.loads(stats.output)["count"] == 12

    clear = runner.invoke(cli, ["history", "clear", "task-1"])
    assert "Removed 12 entries" in clear.output
    empty = runner.invoke(cli, ["history", "list", "--task-id", "task-1"])
    assert "No history entries." in empty.output


def test_history_list_requires_one_key(workspace: Path) -> None:
    result = CliRunner().invoke(cli, ["history", "list"])

    assert result.exit_code != 0
    assert "Pass exactly one" in result.output


def test_history_cleanup_is_idempotent(workspace: Path) -> None:
    runner = CliRunner()

    first = runner.invoke(cli, ["history", "cleanup"])
    second = runner.invoke(cli, ["history", "cleanup"])

    assert first.exit_code == 0
    assert second.output == "Removed 0 expired entries.\n"


def test_profiles_command_marks_default(workspace: Path) -> None:
    result = CliRunner().invoke(cli, ["profiles"])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0].startswith("* CLAUDE_CODE ")
    assert any("CODEX:HIGH" in line for line in lines)


def test_review_command_spawns_agent_and_records_output(
    workspace: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls = _fake_spawn(monkeypatch)
    (workspace / "pkg").mkdir()
    runner = CliRunner()

    result = runner.invoke(
        cli,
        [
            "review",
            "Add login feature",
            "--profile",
            "CODEX",
            "--working-dir",
            "pkg",
            "--task-id",
            "task-2",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "No blocking issues." in result.output
    assert calls[0]["args"][0:2] == ["codex", "exec"]
    assert calls[0]["cwd"] == str(workspace / "pkg")
    assert "READ-ONLY review mode" in calls[0]["args"][-1]

    history = runner.invoke(cli, ["history", "list", "--task-id", "task-2"])
    assert "agent_turn" in history.output
    assert "Review Feedback" in history.output


def test_review_command_denied_by_policy(workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _fake_spawn(monkeypatch)
    config_path = workspace / "agentflow.toml"
    config = load_config(config_path)
    config.approvals.policy = "deny"
    save_config(config_path, config)
    runner = CliRunner()

    result = runner.invoke(cli, ["review", "Add login feature", "--task-id", "task-3"])

    assert result.exit_code != 0
    assert "Approval denied" in result.output
    assert calls == []
    history = runner.invoke(cli, ["history", "list", "--task-id", "task-3"])
    assert "error" in history.output
    stats = json.loads(runner.invoke(cli, ["history", "stats", "task-3"]).output)
    assert stats["count"] == 1


def test_review_command_unknown_profile(workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_spawn(monkeypatch)

    result = CliRunner().invoke(cli, ["review", "task", "--profile", "CODEX:LOW"])

    assert result.exit_code != 0
    assert "Unknown executor type: CODEX:LOW" in result.output


def test_review_command_surfaces_agent_exit_code(
    workspace: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _fake_spawn(monkeypatch, exit_code=3)

    result = CliRunner().invoke(cli, ["review", "task"])

    assert result.exit_code != 0
    assert "exited with code 3" in result.output
