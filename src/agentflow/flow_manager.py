from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

from agentflow.errors import ConfigError, InvalidIntent

FlowEventHook = Callable[[dict[str, Any]], None]


class FlowIntent(StrEnum):
    CODE = "code"
    JIRA = "jira"
    CONFLUENCE = "confluence"


class FlowActionStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "inprogress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class FlowAction:
    name: str
    description: str
    status: FlowActionStatus = FlowActionStatus.PENDING

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlowAction:
        try:
            status = FlowActionStatus(str(data.get("status", FlowActionStatus.PENDING)))
        except ValueError as exc:
            raise ConfigError(f"Unknown action status: {data.get('status')}") from exc
        return cls(
            name=str(data["name"]),
            description=str(data.get("description", "")),
            status=status,
        )


@dataclass(slots=True)
class FlowSummary:
    intent: FlowIntent
    description: str
    actions: list[FlowAction] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent.value,
            "description": self.description,
            "actions": [action.to_dict() for action in self.actions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlowSummary:
        try:
            intent = FlowIntent(str(data["intent"]))
        except (KeyError, ValueError) as exc:
            raise ConfigError(f"Unknown flow intent: {data.get('intent')}") from exc
        actions = data.get("actions", [])
        if not isinstance(actions, list):
            raise ConfigError("Flow summary actions must be a list.")
        return cls(
            intent=intent,
            description=str(data.get("description", "")),
            actions=[FlowAction.from_dict(item) for item in actions],
        )


@dataclass(slots=True)
class CodeFlowInput:
    title: str
    description: str
    repository_path: str | None = None


@dataclass(slots=True)
class JiraFlowInput:
    title: str
    description: str
    project_key: str | None = None


@dataclass(slots=True)
class ConfluenceFlowInput:
    title: str
    description: str
    space_key: str | None = None


FlowInput = CodeFlowInput | JiraFlowInput | ConfluenceFlowInput

FLOW_TEMPLATES: dict[FlowIntent, tuple[tuple[str, str], ...]] = {
    FlowIntent.CODE: (
        ("Check Existing Code", "Analyze current codebase and identify relevant files"),
        ("Create Issue", "Create task tracking issue for changes"),
        ("Implement Solution", "Generate code changes based on requirements"),
        ("Fix Issues", "Address any errors or test failures"),
        ("Override Files", "Apply changes to repository files"),
    ),
    FlowIntent.JIRA: (
        ("Read Title & Description", "Parse and understand Jira requirements"),
        ("Analyze Requirements", "Use agents to analyze best approach for solution"),
        ("Generate Task Proposal", "Create detailed task breakdown and implementation plan"),
        ("Review Jira", "Present proposal for review (no code modifications)"),
        ("Finalize", "Confirm and save Jira task proposal"),
    ),
    FlowIntent.CONFLUENCE: (
        ("Read Title & Description", "Parse and understand documentation requirements"),
        ("Analyze Documentation Needs", "Use agents to determine best documentation structure"),
        ("Generate Documentation", "Create comprehensive Confluence page content"),
        ("Review Confluence", "Present documentation for review (no code modifications)"),
        ("Finalize", "Confirm and save Confluence documentation"),
    ),
}

# Review and finalize steps wait on a human, so the runner leaves them pending.
_CODE_OUTCOMES: dict[str, FlowActionStatus] = {
    "Check Existing Code": FlowActionStatus.COMPLETED,
    "Create Issue": FlowActionStatus.COMPLETED,
    "Implement Solution": FlowActionStatus.COMPLETED,
    "Fix Issues": FlowActionStatus.COMPLETED,
    "Override Files": FlowActionStatus.COMPLETED,
}
_JIRA_OUTCOMES: dict[str, FlowActionStatus] = {
    "Read Title & Description": FlowActionStatus.COMPLETED,
    "Analyze Requirements": FlowActionStatus.COMPLETED,
    "Generate Task Proposal": FlowActionStatus.COMPLETED,
    "Review Jira": FlowActionStatus.PENDING,
    "Finalize": FlowActionStatus.PENDING,
}
_CONFLUENCE_OUTCOMES: dict[str, FlowActionStatus] = {
    "Read Title & Description": FlowActionStatus.COMPLETED,
    "Analyze Documentation Needs": FlowActionStatus.COMPLETED,
    "Generate Documentation": FlowActionStatus.COMPLETED,
    "Review Confluence": FlowActionStatus.PENDING,
    "Finalize": FlowActionStatus.PENDING,
}


class FlowManager:
    """Builds and runs the fixed action template for one intent.

    A manager is bound to a single intent at construction. Asking it for a
    template of another kind raises ``InvalidIntent`` before anything is built.
    Execution never raises for a failing action; the outcome of each step is
    reported through the returned action statuses.
    """

    def __init__(self, intent: FlowIntent, event_hook: FlowEventHook | None = None) -> None:
        self._intent = FlowIntent(intent)
        self.event_hook = event_hook

    @property
    def intent(self) -> FlowIntent:
        return self._intent

    def _emit(self, payload: dict[str, Any]) -> None:
        if self.event_hook is not None:
            self.event_hook(payload)

    def _require_intent(self, expected: FlowIntent) -> None:
        if self._intent != expected:
            raise InvalidIntent(
                f"Expected {expected.value.capitalize()} intent, got {self._intent.value}"
            )

    @staticmethod
    def _build_actions(intent: FlowIntent) -> list[FlowAction]:
        return [
            FlowAction(name=name, description=description)
            for name, description in FLOW_TEMPLATES[intent]
        ]

    def create_code_flow(self, flow_input: CodeFlowInput) -> FlowSummary:
        self._require_intent(FlowIntent.CODE)
        return FlowSummary(
            intent=FlowIntent.CODE,
            description=f"Code flow: {flow_input.title}",
            actions=self._build_actions(FlowIntent.CODE),
        )

    def create_jira_flow(self, flow_input: JiraFlowInput) -> FlowSummary:
        self._require_intent(FlowIntent.JIRA)
        return FlowSummary(
            intent=FlowIntent.JIRA,
            description=f"Jira flow: {flow_input.title}",
            actions=self._build_actions(FlowIntent.JIRA),
        )

    def create_confluence_flow(self, flow_input: ConfluenceFlowInput) -> FlowSummary:
        self._require_intent(FlowIntent.CONFLUENCE)
        return FlowSummary(
            intent=FlowIntent.CONFLUENCE,
            description=f"Confluence flow: {flow_input.title}",
            actions=self._build_actions(FlowIntent.CONFLUENCE),
        )

    def create_flow(self, flow_input: FlowInput) -> FlowSummary:
        if isinstance(flow_input, CodeFlowInput):
            return self.create_code_flow(flow_input)
        if isinstance(flow_input, JiraFlowInput):
            return self.create_jira_flow(flow_input)
        if isinstance(flow_input, ConfluenceFlowInput):
            return self.create_confluence_flow(flow_input)
        raise ConfigError(f"Unsupported flow input: {type(flow_input).__name__}")

    def execute_flow(self, summary: FlowSummary) -> list[FlowAction]:
        if summary.intent != self._intent:
            raise InvalidIntent(
                f"Cannot run a {summary.intent.value} flow with a {self._intent.value} manager"
            )
        if self._intent == FlowIntent.CODE:
            return self._execute_code_flow(summary)
        if self._intent == FlowIntent.JIRA:
            return self._execute_jira_flow(summary)
        return self._execute_confluence_flow(summary)

    def _execute_code_flow(self, summary: FlowSummary) -> list[FlowAction]:
        return self._run_actions(summary, _CODE_OUTCOMES)

    def _execute_jira_flow(self, summary: FlowSummary) -> list[FlowAction]:
        return self._run_actions(summary, _JIRA_OUTCOMES)

    def _execute_confluence_flow(self, summary: FlowSummary) -> list[FlowAction]:
        return self._run_actions(summary, _CONFLUENCE_OUTCOMES)

    def _set_status(
        self,
        action: FlowAction,
        index: int,
        status: FlowActionStatus,
    ) -> None:
        action.status = status
        self._emit(
            {
                "event": "flow_action_status",
                "intent": self._intent.value,
                "action": action.name,
                "index": index,
                "status": status.value,
            }
        )

    def _run_actions(
        self,
        summary: FlowSummary,
        outcomes: dict[str, FlowActionStatus],
    ) -> list[FlowAction]:
        self._emit(
            {
                "event": "flow_start",
                "intent": self._intent.value,
                "description": summary.description,
                "actions": len(summary.actions),
            }
        )
        for index, action in enumerate(summary.actions):
            # names outside the template mean the summary was tampered with
            outcome = outcomes.get(action.name, FlowActionStatus.FAILED)
            try:
                self._set_status(action, index, FlowActionStatus.IN_PROGRESS)
            except Exception:
                action.status = outcome
                raise
            self._set_status(action, index, outcome)

        counts = Counter(action.status.value for action in summary.actions)
        self._emit(
            {
                "event": "flow_complete",
                "intent": self._intent.value,
                "description": summary.description,
                "statuses": dict(counts),
            }
        )
        return [replace(action) for action in summary.actions]
