from typing import Any

import pytest

from agentflow.errors import ConfigError, InvalidIntent
from agentflow.flow_manager import (
    CodeFlowInput,
    ConfluenceFlowInput,
    FlowAction,
    FlowActionStatus,
    FlowIntent,
    FlowManager,
    FlowSummary,
    JiraFlowInput,
)

CODE_ACTIONS = [
    "Check Existing Code",
    "Create Issue",
    "Implement Solution",
    "Fix Issues",
    "Override Files",
]
JIRA_ACTIONS = [
    "Read Title & Description",
    "Analyze Requirements",
    "Generate Task Proposal",
    "Review Jira",
    "Finalize",
]
CONFLUENCE_ACTIONS = [
    "Read Title & Description",
    "Analyze Documentation Needs",
    "Generate Documentation",
    "Review Confluence",
    "Finalize",
]


def _code_input() -> CodeFlowInput:
    return CodeFlowInput(
        title="Add login feature",
        description="Implement user authentication",
        repository_path="/path/to/repo",
    )


def _jira_input() -> JiraFlowInput:
    return JiraFlowInput(
        title="PROJ-123: Database migration",
        description="Migrate from MySQL to PostgreSQL",
        project_key="PROJ",
    )


def _confluence_input() -> ConfluenceFlowInput:
    return ConfluenceFlowInput(
        title="API Documentation",
        description="Document REST API endpoints",
        space_key="DEV",
    )


def test_code_flow_creation() -> None:
    manager = FlowManager(FlowIntent.CODE)
    summary = manager.create_code_flow(_code_input())

    assert summary.intent == FlowIntent.CODE
    assert summary.description == "Code flow: Add login feature"
    assert [action.name for action in summary.actions] == CODE_ACTIONS
    assert all(action.status == FlowActionStatus.PENDING for action in summary.actions)


def test_jira_flow_creation() -> None:
    manager = FlowManager(FlowIntent.JIRA)
    summary = manager.create_jira_flow(_jira_input())

    assert summary.intent == FlowIntent.JIRA
    assert [action.name for action in summary.actions] == JIRA_ACTIONS
    assert summary.actions[3].name == "Review Jira"
    assert summary.actions[4].name == "Finalize"


def test_confluence_flow_creation() -> None:
    manager = FlowManager(FlowIntent.CONFLUENCE)
    summary = manager.create_confluence_flow(_confluence_input())

    assert summary.intent == FlowIntent.CONFLUENCE
    assert summary.description == "Confluence flow: API Documentation"
    assert [action.name for action in summary.actions] == CONFLUENCE_ACTIONS


@pytest.mark.parametrize(
    ("bound", "create"),
    [
        (FlowIntent.JIRA, lambda manager: manager.create_code_flow(_code_input())),
        (FlowIntent.CONFLUENCE, lambda manager: manager.create_code_flow(_code_input())),
        (FlowIntent.CODE, lambda manager: manager.create_jira_flow(_jira_input())),
        (FlowIntent.CONFLUENCE, lambda manager: manager.create_jira_flow(_jira_input())),
        (FlowIntent.CODE, lambda manager: manager.create_confluence_flow(_confluence_input())),
        (FlowIntent.JIRA, lambda manager: manager.create_confluence_flow(_confluence_input())),
    ],
)
def test_mismatched_template_raises_invalid_intent(bound: FlowIntent, create) -> None:
    manager = FlowManager(bound)

    with pytest.raises(InvalidIntent) as exc_info:
        create(manager)

    assert f"got {bound.value}" in str(exc_info.value)


def test_create_flow_dispatches_on_input_type() -> None:
    summary = FlowManager(FlowIntent.CONFLUENCE).create_flow(_confluence_input())
    assert summary.intent == FlowIntent.CONFLUENCE

    with pytest.raises(InvalidIntent):
        FlowManager(FlowIntent.CONFLUENCE).create_flow(_jira_input())


def test_code_flow_execution_completes_every_action() -> None:
    manager = FlowManager(FlowIntent.CODE)
    summary = manager.create_code_flow(_code_input())

    actions = manager.execute_flow(summary)

    assert len(actions) == 5
    assert all(action.status == FlowActionStatus.COMPLETED for action in actions)
    assert all(action.status == FlowActionStatus.COMPLETED for action in summary.actions)


@pytest.mark.parametrize(
    ("intent", "flow_input"),
    [
        (FlowIntent.JIRA, _jira_input()),
        (FlowIntent.CONFLUENCE, _confluence_input()),
    ],
)
def test_review_flows_leave_review_and_finalize_pending(intent: FlowIntent, flow_input) -> None:
    manager = FlowManager(intent)
    summary = manager.create_flow(flow_input)

    actions = manager.execute_flow(summary)

    assert [action.status for action in actions] == [
        FlowActionStatus.COMPLETED,
        FlowActionStatus.COMPLETED,
        FlowActionStatus.COMPLETED,
        FlowActionStatus.PENDING,
        FlowActionStatus.PENDING,
    ]


def test_execute_flow_is_repeatable() -> None:
    manager = FlowManager(FlowIntent.JIRA)
    summary = manager.create_jira_flow(_jira_input())

    first = [action.status for action in manager.execute_flow(summary)]
    second = [action.status for action in manager.execute_flow(summary)]

    assert first == second


def test_unknown_action_fails_without_stopping_the_flow() -> None:
    manager = FlowManager(FlowIntent.CODE)
    summary = manager.create_code_flow(_code_input())
    summary.actions.insert(1, FlowAction(name="Deploy Everything", description="not in template"))

    actions = manager.execute_flow(summary)

    assert len(actions) == 6
    assert actions[1].status == FlowActionStatus.FAILED
    assert [action.status for action in actions if action.name != "Deploy Everything"] == [
        FlowActionStatus.COMPLETED
    ] * 5


def test_returned_actions_are_detached_copies() -> None:
    manager = FlowManager(FlowIntent.CODE)
    summary = manager.create_code_flow(_code_input())

    actions = manager.execute_flow(summary)
    actions[0].status = FlowActionStatus.FAILED

    assert summary.actions[0].status == FlowActionStatus.COMPLETED


def test_execute_flow_rejects_summary_of_other_intent() -> None:
    summary = FlowManager(FlowIntent.JIRA).create_jira_flow(_jira_input())

    with pytest.raises(InvalidIntent):
        FlowManager(FlowIntent.CODE).execute_flow(summary)

    assert all(action.status == FlowActionStatus.PENDING for action in summary.actions)


def test_execution_emits_status_events() -> None:
    events: list[dict[str, Any]] = []
    manager = FlowManager(FlowIntent.CONFLUENCE, event_hook=events.append)
    summary = manager.create_confluence_flow(_confluence_input())

    manager.execute_flow(summary)

    names = [event["event"] for event in events]
    assert names[0] == "flow_start"
    assert names[-1] == "flow_complete"
    transitions = [event for event in events if event["event"] == "flow_action_status"]
    assert len(transitions) == 10
    assert transitions[0] == {
        "event": "flow_action_status",
        "intent": "confluence",
        "action": "Read Title & Description",
        "index": 0,
        "status": "inprogress",
    }
    assert events[-1]["statuses"] == {"completed": 3, "pending": 2}


def test_failing_event_hook_leaves_current_action_terminal() -> None:
    class StoreDown(RuntimeError):
        pass

    def hook(event: dict[str, Any]) -> None:
        if event["event"] == "flow_action_status" and event["index"] == 1:
            raise StoreDown("history unavailable")

    manager = FlowManager(FlowIntent.CODE, event_hook=hook)
    summary = manager.create_code_flow(_code_input())

    with pytest.raises(StoreDown):
        manager.execute_flow(summary)

    assert [action.status for action in summary.actions] == [
        FlowActionStatus.COMPLETED,
        FlowActionStatus.COMPLETED,
        FlowActionStatus.PENDING,
        FlowActionStatus.PENDING,
        FlowActionStatus.PENDING,
    ]


def test_summary_serializes_with_wire_spellings() -> None:
    manager = FlowManager(FlowIntent.CODE)
    summary = manager.create_code_flow(_code_input())
    manager.execute_flow(summary)
    summary.actions[2].status = FlowActionStatus.IN_PROGRESS

    payload = summary.to_dict()

    assert payload["intent"] == "code"
    assert payload["actions"][0]["status"] == "completed"
    assert payload["actions"][2]["status"] == "inprogress"
    restored = FlowSummary.from_dict(payload)
    assert restored == summary


def test_summary_from_dict_rejects_unknown_intent() -> None:
    with pytest.raises(ConfigError):
        FlowSummary.from_dict({"intent": "slack", "description": "", "actions": []})

    with pytest.raises(ConfigError):
        FlowSummary.from_dict(
            {"intent": "code", "actions": [{"name": "x", "status": "done"}]}
        )
