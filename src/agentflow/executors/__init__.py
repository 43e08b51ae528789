from agentflow.executors.approvals import (
    ApprovalRequest,
    ApprovalStatus,
    AutoApprovalService,
    DenyAllApprovalService,
    ExecutorApprovalService,
    approval_service_for,
)
from agentflow.executors.base import (
    ApprovalDenied,
    CodingAgentExecutor,
    ExecutorError,
    ExecutorSpawnError,
    SpawnedChild,
    UnknownExecutorType,
)
from agentflow.executors.claude import ClaudeCodeExecutor
from agentflow.executors.codex import CodexExecutor
from agentflow.executors.env import ExecutionEnv
from agentflow.executors.profile import (
    BaseCodingAgent,
    ExecutorConfigs,
    ExecutorProfile,
    ExecutorProfileId,
)

__all__ = [
    "ApprovalDenied",
    "ApprovalRequest",
    "ApprovalStatus",
    "AutoApprovalService",
    "BaseCodingAgent",
    "ClaudeCodeExecutor",
    "CodexExecutor",
    "CodingAgentExecutor",
    "DenyAllApprovalService",
    "ExecutionEnv",
    "ExecutorApprovalService",
    "ExecutorConfigs",
    "ExecutorError",
    "ExecutorProfile",
    "ExecutorProfileId",
    "ExecutorSpawnError",
    "SpawnedChild",
    "UnknownExecutorType",
    "approval_service_for",
]
