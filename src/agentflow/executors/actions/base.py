from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar

from agentflow.executors.approvals import ExecutorApprovalService
from agentflow.executors.base import SpawnedChild, UnknownExecutorType
from agentflow.executors.env import ExecutionEnv
from agentflow.executors.profile import BaseCodingAgent, ExecutorConfigs, ExecutorProfileId


class Executable(ABC):
    @abstractmethod
    async def spawn(
        self,
        current_dir: Path,
        approvals: ExecutorApprovalService,
        env: ExecutionEnv,
        *,
        registry: ExecutorConfigs,
    ) -> SpawnedChild:
        """Start the action's agent process and hand its handle to the caller."""


@dataclass(slots=True)
class AgentRequest(Executable):
    prompt: str
    executor_profile_id: ExecutorProfileId
    # relative to the caller's working directory; None runs in it directly
    working_dir: str | None = None

    action_type: ClassVar[str] = "agent"

    def base_executor(self) -> BaseCodingAgent:
        return self.executor_profile_id.executor

    def effective_dir(self, current_dir: Path) -> Path:
        if self.working_dir:
            return current_dir / self.working_dir
        return current_dir

    async def spawn(
        self,
        current_dir: Path,
        approvals: ExecutorApprovalService,
        env: ExecutionEnv,
        *,
        registry: ExecutorConfigs,
    ) -> SpawnedChild:
        effective_dir = self.effective_dir(current_dir)
        agent = registry.get_coding_agent(self.executor_profile_id)
        if agent is None:
            raise UnknownExecutorType(str(self.executor_profile_id))
        agent.use_approvals(approvals)
        return await agent.spawn(effective_dir, self.prompt, env)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.action_type,
            "prompt": self.prompt,
            "executor_profile_id": self.executor_profile_id.to_dict(),
            "working_dir": self.working_dir,
        }
