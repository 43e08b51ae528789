from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from agentflow.executors.actions.base import AgentRequest


@dataclass(slots=True)
class CodingAgentRequest(AgentRequest):
    action_type: ClassVar[str] = "coding_agent"
