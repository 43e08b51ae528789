from __future__ import annotations

from typing import Any

from agentflow.errors import ConfigError
from agentflow.executors.actions.base import AgentRequest, Executable
from agentflow.executors.actions.coding_agent import CodingAgentRequest
from agentflow.executors.actions.review_agent import ReviewAgentRequest, build_review_prompt
from agentflow.executors.profile import ExecutorProfileId

ACTION_TYPES: dict[str, type[AgentRequest]] = {
    CodingAgentRequest.action_type: CodingAgentRequest,
    ReviewAgentRequest.action_type: ReviewAgentRequest,
}


def action_from_dict(data: dict[str, Any]) -> AgentRequest:
    action_type = data.get("type")
    action_cls = ACTION_TYPES.get(str(action_type))
    if action_cls is None:
        raise ConfigError(f"Unknown action type: {action_type}")
    raw_profile = data.get("executor_profile_id", data.get("profile_variant_label"))
    if raw_profile is None:
        raise ConfigError(f"Action '{action_type}' is missing executor_profile_id")
    prompt = data.get("prompt")
    if not isinstance(prompt, str):
        raise ConfigError(f"Action '{action_type}' is missing a prompt")
    working_dir = data.get("working_dir")
    return action_cls(
        prompt=prompt,
        executor_profile_id=ExecutorProfileId.from_value(raw_profile),
        working_dir=str(working_dir) if working_dir else None,
    )


__all__ = [
    "ACTION_TYPES",
    "AgentRequest",
    "CodingAgentRequest",
    "Executable",
    "ReviewAgentRequest",
    "action_from_dict",
    "build_review_prompt",
]
