from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from agentflow.executors.approvals import (
    ApprovalRequest,
    ApprovalStatus,
    ExecutorApprovalService,
)
from agentflow.executors.env import ExecutionEnv

ExecutorEventHook = Callable[[dict[str, Any]], None]


class ExecutorError(RuntimeError):
    """Raised when an agent executor cannot be resolved or launched."""

    def __init__(
        self,
        message: str,
        *,
        executor: str | None = None,
        exit_code: int | None = None,
        retriable: bool = True,
    ) -> None:
        super().__init__(message)
        self.executor = executor
        self.exit_code = exit_code
        self.retriable = retriable


class UnknownExecutorType(ExecutorError):
    """Raised when a profile id is not known to the profile registry."""

    def __init__(self, profile_id: str) -> None:
        super().__init__(f"Unknown executor type: {profile_id}", retriable=False)
        self.profile_id = profile_id


class ExecutorSpawnError(ExecutorError):
    """Raised when the agent process could not be started."""


class ApprovalDenied(ExecutorError):
    """Raised when the approval gate rejects an agent operation."""


@dataclass(slots=True)
class SpawnedChild:
    """Handle to a running agent process. The caller owns its lifecycle."""

    process: Any
    command: list[str]
    working_directory: Path
    executor: str
    stdout_chunks: list[bytes] = field(default_factory=list)

    @property
    def pid(self) -> int | None:
        return getattr(self.process, "pid", None)

    async def wait(self) -> int:
        return await self.process.wait()

    async def read_output(self) -> str:
        if self.process.stdout is not None:
            async for raw_line in self.process.stdout:
                self.stdout_chunks.append(raw_line)
        return b"".join(self.stdout_chunks).decode("utf-8", errors="replace")

    def terminate(self) -> None:
        if getattr(self.process, "returncode", None) is None:
            self.process.terminate()


class CodingAgentExecutor(ABC):
    name: str = "agent"

    def __init__(
        self,
        binary: str,
        *,
        extra_args: list[str] | None = None,
        event_hook: ExecutorEventHook | None = None,
    ) -> None:
        self.binary = binary
        self.extra_args = list(extra_args or [])
        self.event_hook = event_hook
        self.approvals: ExecutorApprovalService | None = None

    def _emit(self, payload: dict[str, Any]) -> None:
        if self.event_hook is not None:
            self.event_hook(payload)

    def use_approvals(self, approvals: ExecutorApprovalService) -> None:
        self.approvals = approvals

    @abstractmethod
    def build_command(self, prompt: str) -> list[str]:
        """Build the argv used to launch the agent for ``prompt``."""

    async def _approve_launch(self, command: list[str], current_dir: Path) -> None:
        if self.approvals is None:
            raise ExecutorError(
                f"{self.name} executor has no approval service bound.",
                executor=self.name,
                retriable=False,
            )
        status = await self.approvals.request_approval(
            ApprovalRequest(
                tool_name="spawn_agent",
                summary=f"Launch {self.name} in {current_dir}",
                working_directory=current_dir,
                metadata={"command": command[:2]},
            )
        )
        if status != ApprovalStatus.APPROVED:
            self._emit({"event": "agent_spawn_denied", "executor": self.name})
            raise ApprovalDenied(
                f"Approval denied for launching {self.name} in {current_dir}",
                executor=self.name,
                retriable=False,
            )

    async def spawn(self, current_dir: Path, prompt: str, env: ExecutionEnv) -> SpawnedChild:
        command = self.build_command(prompt)
        await self._approve_launch(command, current_dir)
        if not current_dir.is_dir():
            raise ExecutorSpawnError(
                f"Working directory does not exist: {current_dir}",
                executor=self.name,
                retriable=False,
            )
        self._emit(
            {
                "event": "agent_spawn_start",
                "executor": self.name,
                "command": command[:2],
                "cwd": str(current_dir),
            }
        )
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(current_dir),
                env=env.merged(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                # the caller drains a single stream
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as exc:
            raise ExecutorSpawnError(
                f"{self.name} binary not found: {self.binary}",
                executor=self.name,
                retriable=False,
            ) from exc

        self._emit(
            {
                "event": "agent_spawned",
                "executor": self.name,
                "pid": getattr(process, "pid", None),
            }
        )
        return SpawnedChild(
            process=process,
            command=command,
            working_directory=current_dir,
            executor=self.name,
        )
