from agentflow.history.models import (
    BuildHistoryContextType,
    BuildHistoryEntry,
    BuildHistoryRecord,
    CreateBuildHistory,
)
from agentflow.history.recorder import history_event_hook
from agentflow.history.store import (
    DEFAULT_MAX_ENTRIES_PER_TASK,
    DEFAULT_RETENTION,
    BuildHistoryStore,
    create_history_engine,
)

__all__ = [
    "DEFAULT_MAX_ENTRIES_PER_TASK",
    "DEFAULT_RETENTION",
    "BuildHistoryContextType",
    "BuildHistoryEntry",
    "BuildHistoryRecord",
    "BuildHistoryStore",
    "CreateBuildHistory",
    "create_history_engine",
    "history_event_hook",
]
