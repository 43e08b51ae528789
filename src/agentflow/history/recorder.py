from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from agentflow.history.models import BuildHistoryContextType, CreateBuildHistory
from agentflow.history.store import BuildHistoryStore

EVENT_CONTEXT_TYPES: dict[str, BuildHistoryContextType] = {
    "flow_start": BuildHistoryContextType.EXECUTION_STEP,
    "flow_action_status": BuildHistoryContextType.STATUS_CHANGE,
    "flow_complete": BuildHistoryContextType.EXECUTION_STEP,
    "agent_spawn_start": BuildHistoryContextType.AGENT_TURN,
    "agent_spawned": BuildHistoryContextType.AGENT_TURN,
    "agent_spawn_denied": BuildHistoryContextType.ERROR,
}


def describe_event(event: dict[str, Any]) -> str:
    name = str(event.get("event", "event"))
    if name == "flow_action_status":
        return f"{event.get('action')} -> {event.get('status')}"
    if name == "flow_start":
        return f"Started {event.get('description')}"
    if name == "flow_complete":
        return f"Finished {event.get('description')}"
    if name in {"agent_spawn_start", "agent_spawned", "agent_spawn_denied"}:
        return f"{name.replace('_', ' ')}: {event.get('executor')}"
    return name


def history_event_hook(
    store: BuildHistoryStore,
    task_id: str,
    *,
    workspace_id: str | None = None,
    session_id: str | None = None,
) -> Callable[[dict[str, Any]], None]:
    """Return an event hook that appends flow and agent events to ``store``."""

    def _record(event: dict[str, Any]) -> None:
        context_type = EVENT_CONTEXT_TYPES.get(
            str(event.get("event")), BuildHistoryContextType.EXECUTION_STEP
        )
        store.create(
            CreateBuildHistory(
                task_id=task_id,
                workspace_id=workspace_id,
                session_id=session_id,
                context_type=context_type,
                content=describe_event(event),
                metadata=json.dumps(event, ensure_ascii=False, default=str),
            )
        )

    return _record
