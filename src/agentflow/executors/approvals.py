from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from agentflow.errors import ConfigError


class ApprovalStatus(StrEnum):
    APPROVED = "approved"
    DENIED = "denied"


@dataclass(slots=True)
class ApprovalRequest:
    tool_name: str
    summary: str
    working_directory: Path | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class ExecutorApprovalService(ABC):
    """Shared permission gate consulted before an agent performs an effectful step.

    One instance is threaded through every action of a flow so a single policy
    governs the whole flow.
    """

    @abstractmethod
    async def request_approval(self, request: ApprovalRequest) -> ApprovalStatus:
        """Decide whether the described operation may proceed."""


class StaticApprovalService(ExecutorApprovalService):
    decision: ApprovalStatus = ApprovalStatus.APPROVED

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: list[ApprovalRequest] = []

    @property
    def requests(self) -> list[ApprovalRequest]:
        with self._lock:
            return list(self._requests)

    async def request_approval(self, request: ApprovalRequest) -> ApprovalStatus:
        with self._lock:
            self._requests.append(request)
        return self.decision


class AutoApprovalService(StaticApprovalService):
    decision = ApprovalStatus.APPROVED


class DenyAllApprovalService(StaticApprovalService):
    decision = ApprovalStatus.DENIED


def approval_service_for(policy: str) -> ExecutorApprovalService:
    normalized = policy.strip().lower()
    if normalized == "auto":
        return AutoApprovalService()
    if normalized == "deny":
        return DenyAllApprovalService()
    raise ConfigError(f"Unsupported approval policy: {policy}")
