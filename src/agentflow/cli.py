from __future__ import annotations

import asyncio
import json
import uuid
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

import click
from sqlalchemy.exc import SQLAlchemyError

from agentflow.config import AgentflowConfig, load_config, save_config
from agentflow.errors import FlowError
from agentflow.executors import (
    ApprovalDenied,
    ExecutionEnv,
    ExecutorApprovalService,
    ExecutorConfigs,
    ExecutorError,
    ExecutorProfileId,
    approval_service_for,
)
from agentflow.executors.actions import ReviewAgentRequest
from agentflow.flow_manager import (
    CodeFlowInput,
    ConfluenceFlowInput,
    FlowInput,
    FlowIntent,
    FlowManager,
    JiraFlowInput,
)
from agentflow.history import (
    BuildHistoryContextType,
    BuildHistoryStore,
    CreateBuildHistory,
    create_history_engine,
    history_event_hook,
)


@dataclass(slots=True)
class Runtime:
    repo_root: Path
    config_path: Path
    config: AgentflowConfig
    registry: ExecutorConfigs
    approvals: ExecutorApprovalService
    history: BuildHistoryStore


def _resolve_config_path(repo_root: Path, config_value: str) -> Path:
    config_path = Path(config_value)
    if not config_path.is_absolute():
        config_path = repo_root / config_path
    return config_path.resolve()


def _resolve_database_url(repo_root: Path, database_url: str) -> str:
    prefix = "sqlite:///"
    if not database_url.startswith(prefix) or database_url.startswith("sqlite:////"):
        return database_url
    db_path = database_url[len(prefix):]
    if not db_path or db_path == ":memory:":
        return database_url
    return f"{prefix}{(repo_root / db_path).resolve()}"


def _build_history(config: AgentflowConfig, repo_root: Path) -> BuildHistoryStore:
    engine = create_history_engine(_resolve_database_url(repo_root, config.history.database_url))
    return BuildHistoryStore(
        engine,
        retention=timedelta(days=config.history.retention_days),
        max_entries_per_task=config.history.max_entries_per_task,
    )


def _load_runtime(repo_root: Path, config_path: Path) -> Runtime:
    config = load_config(config_path)
    try:
        registry = ExecutorConfigs.from_config(config.executors)
        approvals = approval_service_for(config.approvals.policy)
        history = _build_history(config, repo_root)
    except (FlowError, SQLAlchemyError) as exc:
        raise click.ClickException(str(exc)) from exc
    return Runtime(
        repo_root=repo_root,
        config_path=config_path,
        config=config,
        registry=registry,
        approvals=approvals,
        history=history,
    )


def _flow_input(
    intent: FlowIntent,
    title: str,
    description: str,
    repository_path: str | None,
    project_key: str | None,
    space_key: str | None,
) -> FlowInput:
    if intent == FlowIntent.JIRA:
        return JiraFlowInput(title=title, description=description, project_key=project_key)
    if intent == FlowIntent.CONFLUENCE:
        return ConfluenceFlowInput(title=title, description=description, space_key=space_key)
    return CodeFlowInput(title=title, description=description, repository_path=repository_path)


@click.group()
def cli() -> None:
    """Agentflow CLI."""


@cli.command("init")
@click.option("--profile", "default_profile", default=None)
@click.option("--approvals", "policy", type=click.Choice(["auto", "deny"]), default=None)
@click.option("--config", "config_value", default="agentflow.toml", show_default=True)
def init_command(default_profile: str | None, policy: str | None, config_value: str) -> None:
    repo_root = Path.cwd().resolve()
    config_path = _resolve_config_path(repo_root, config_value)
    config = load_config(config_path)
    if default_profile:
        config.executors.default_profile = default_profile
    if policy:
        config.approvals.policy = policy  # type: ignore[assignment]

    try:
        ExecutorConfigs.from_config(config.executors)
    except FlowError as exc:
        raise click.ClickException(str(exc)) from exc
    save_config(config_path, config)
    (repo_root / ".agentflow").mkdir(parents=True, exist_ok=True)
    _build_history(config, repo_root)

    click.echo(f"Initialized agentflow in {repo_root}")
    click.echo(f"Config: {config_path}")
    click.echo(f"Default profile: {config.executors.default_profile}")
    click.echo(f"Approvals: {config.approvals.policy}")


@cli.command("flow")
@click.argument("intent", type=click.Choice([item.value for item in FlowIntent]))
@click.option("--title", required=True)
@click.option("--description", default="", show_default=False)
@click.option("--repository-path", default=None)
@click.option("--project-key", default=None)
@click.option("--space-key", default=None)
@click.option("--task-id", default=None)
@click.option("--workspace-id", default=None)
@click.option("--session-id", default=None)
@click.option("--config", "config_value", default="agentflow.toml", show_default=True)
def flow_command(
    intent: str,
    title: str,
    description: str,
    repository_path: str | None,
    project_key: str | None,
    space_key: str | None,
    task_id: str | None,
    workspace_id: str | None,
    session_id: str | None,
    config_value: str,
) -> None:
    repo_root = Path.cwd().resolve()
    runtime = _load_runtime(repo_root, _resolve_config_path(repo_root, config_value))
    task_id = task_id or str(uuid.uuid4())
    flow_intent = FlowIntent(intent)
    manager = FlowManager(
        flow_intent,
        event_hook=history_event_hook(
            runtime.history,
            task_id,
            workspace_id=workspace_id,
            session_id=session_id,
        ),
    )
    try:
        summary = manager.create_flow(
            _flow_input(flow_intent, title, description, repository_path, project_key, space_key)
        )
        manager.execute_flow(summary)
    except (FlowError, SQLAlchemyError) as exc:
        raise click.ClickException(str(exc)) from exc

    payload = {"task_id": task_id, **summary.to_dict()}
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))


async def _run_review(runtime: Runtime, request: ReviewAgentRequest) -> tuple[int, str]:
    child = await request.spawn(
        runtime.repo_root,
        runtime.approvals,
        ExecutionEnv(),
        registry=runtime.registry,
    )
    output = await child.read_output()
    exit_code = await child.wait()
    return exit_code, output


@cli.command("review")
@click.argument("task_description")
@click.option("--profile", "profile_value", default=None)
@click.option("--working-dir", default=None)
@click.option("--task-id", default=None)
@click.option("--config", "config_value", default="agentflow.toml", show_default=True)
def review_command(
    task_description: str,
    profile_value: str | None,
    working_dir: str | None,
    task_id: str | None,
    config_value: str,
) -> None:
    repo_root = Path.cwd().resolve()
    runtime = _load_runtime(repo_root, _resolve_config_path(repo_root, config_value))
    if task_id:
        runtime.registry.event_hook = history_event_hook(runtime.history, task_id)
    try:
        profile_id = (
            ExecutorProfileId.parse(profile_value)
            if profile_value
            else runtime.registry.default_profile
        )
        request = ReviewAgentRequest.new(profile_id, task_description, working_dir)
        exit_code, output = asyncio.run(_run_review(runtime, request))
    except (ExecutorError, FlowError) as exc:
        # denials are already recorded by the event hook
        if task_id and not isinstance(exc, ApprovalDenied):
            runtime.history.create(
                CreateBuildHistory(
                    task_id=task_id,
                    context_type=BuildHistoryContextType.ERROR,
                    content=str(exc),
                )
            )
        raise click.ClickException(str(exc)) from exc

    if task_id and output.strip():
        runtime.history.create(
            CreateBuildHistory(
                task_id=task_id,
                context_type=BuildHistoryContextType.AGENT_TURN,
                content=output.strip(),
                metadata=json.dumps({"exit_code": exit_code, "profile": str(profile_id)}),
            )
        )
    click.echo(output.rstrip())
    if exit_code != 0:
        raise click.ClickException(f"Review agent exited with code {exit_code}")


@cli.command("profiles")
@click.option("--config", "config_value", default="agentflow.toml", show_default=True)
def profiles_command(config_value: str) -> None:
    repo_root = Path.cwd().resolve()
    runtime = _load_runtime(repo_root, _resolve_config_path(repo_root, config_value))
    default_profile = runtime.registry.default_profile
    for profile in runtime.registry.profiles():
        marker = "*" if profile.profile_id == default_profile else " "
        extra = " ".join(profile.extra_args)
        click.echo(f"{marker} {str(profile.profile_id):<20} {profile.binary} {extra}".rstrip())


@cli.group("history")
def history_group() -> None:
    """Inspect and prune the build history log."""


@history_group.command("list")
@click.option("--task-id", default=None)
@click.option("--workspace-id", default=None)
@click.option("--session-id", default=None)
@click.option("--config", "config_value", default="agentflow.toml", show_default=True)
def history_list_command(
    task_id: str | None,
    workspace_id: str | None,
    session_id: str | None,
    config_value: str,
) -> None:
    selected = [value for value in (task_id, workspace_id, session_id) if value]
    if len(selected) != 1:
        raise click.UsageError("Pass exactly one of --task-id, --workspace-id, --session-id.")
    repo_root = Path.cwd().resolve()
    runtime = _load_runtime(repo_root, _resolve_config_path(repo_root, config_value))
    if task_id:
        entries = runtime.history.find_by_task_id(task_id)
    elif workspace_id:
        entries = runtime.history.find_by_workspace_id(workspace_id)
    else:
        entries = runtime.history.find_by_session_id(session_id or "")
    if not entries:
        click.echo("No history entries.")
        return
    for entry in entries:
        click.echo(
            f"{entry.created_at.isoformat(timespec='seconds')} "
            f"{entry.context_type.value:<14} {entry.content}"
        )


@history_group.command("stats")
@click.argument("task_id")
@click.option("--config", "config_value", default="agentflow.toml", show_default=True)
def history_stats_command(task_id: str, config_value: str) -> None:
    repo_root = Path.cwd().resolve()
    runtime = _load_runtime(repo_root, _resolve_config_path(repo_root, config_value))
    oldest = runtime.history.get_oldest_entry_date(task_id)
    payload = {
        "task_id": task_id,
        "count": runtime.history.count_by_task_id(task_id),
        "oldest": oldest.isoformat() if oldest else None,
        "max_entries": runtime.history.max_entries_per_task,
    }
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@history_group.command("cleanup")
@click.option("--config", "config_value", default="agentflow.toml", show_default=True)
def history_cleanup_command(config_value: str) -> None:
    repo_root = Path.cwd().resolve()
    runtime = _load_runtime(repo_root, _resolve_config_path(repo_root, config_value))
    removed = runtime.history.cleanup_expired()
    click.echo(f"Removed {removed} expired entries.")


@history_group.command("clear")
@click.argument("task_id")
@click.option("--config", "config_value", default="agentflow.toml", show_default=True)
def history_clear_command(task_id: str, config_value: str) -> None:
    repo_root = Path.cwd().resolve()
    runtime = _load_runtime(repo_root, _resolve_config_path(repo_root, config_value))
    removed = runtime.history.delete_by_task_id(task_id)
    click.echo(f"Removed {removed} entries for task {task_id}.")
