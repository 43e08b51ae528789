from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

ApprovalPolicyName = Literal["auto", "deny"]


@dataclass(slots=True)
class ProjectConfig:
    name: str = "my-project"


@dataclass(slots=True)
class ExecutorsConfig:
    default_profile: str = "CLAUDE_CODE"
    claude_binary: str = "claude"
    codex_binary: str = "codex"
    # "EXECUTOR:VARIANT" -> extra command line arguments for that variant
    variants: dict[str, list[str]] = field(
        default_factory=lambda: {
            "CLAUDE_CODE:PLAN": ["--permission-mode", "plan"],
            "CODEX:HIGH": ["-c", "model_reasoning_effort=high"],
        }
    )


@dataclass(slots=True)
class ApprovalsConfig:
    policy: ApprovalPolicyName = "auto"


@dataclass(slots=True)
class HistoryConfig:
    database_url: str = "sqlite:///.agentflow/history.db"
    retention_days: int = 20
    max_entries_per_task: int = 100


@dataclass(slots=True)
class AgentflowConfig:
    project: ProjectConfig = field(default_factory=ProjectConfig)
    executors: ExecutorsConfig = field(default_factory=ExecutorsConfig)
    approvals: ApprovalsConfig = field(default_factory=ApprovalsConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)

    @classmethod
    def default(cls) -> AgentflowConfig:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> AgentflowConfig:
        executors = dict(data.get("executors", {}))
        variants = executors.pop("variants", None)
        executors_config = ExecutorsConfig(**executors)
        if isinstance(variants, dict):
            executors_config.variants = {
                str(key): [str(arg) for arg in value] for key, value in variants.items()
            }
        return cls(
            project=ProjectConfig(**data.get("project", {})),
            executors=executors_config,
            approvals=ApprovalsConfig(**data.get("approvals", {})),
            history=HistoryConfig(**data.get("history", {})),
        )

    def to_dict(self) -> dict:
        return {
            "project": {
                "name": self.project.name,
            },
            "executors": {
                "default_profile": self.executors.default_profile,
                "claude_binary": self.executors.claude_binary,
                "codex_binary": self.executors.codex_binary,
                "variants": {
                    key: list(value) for key, value in self.executors.variants.items()
                },
            },
            "approvals": {
                "policy": self.approvals.policy,
            },
            "history": {
                "database_url": self.history.database_url,
                "retention_days": self.history.retention_days,
                "max_entries_per_task": self.history.max_entries_per_task,
            },
        }


def _toml_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        rendered = f"{value:.3f}".rstrip("0").rstrip(".")
        return rendered if rendered else "0"
    if isinstance(value, list):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    return json.dumps(str(value), ensure_ascii=False)


def _toml_key(key: str) -> str:
    if key.replace("_", "").replace("-", "").isalnum():
        return key
    return json.dumps(key, ensure_ascii=False)


def dumps_toml(config: AgentflowConfig) -> str:
    data = config.to_dict()
    lines: list[str] = []
    section_order = ["project", "executors", "approvals", "history"]
    for section in section_order:
        tables: dict[str, dict] = {}
        lines.append(f"[{section}]")
        for key, value in data[section].items():
            if isinstance(value, dict):
                tables[key] = value
                continue
            lines.append(f"{_toml_key(key)} = {_toml_value(value)}")
        lines.append("")
        for table_name, table in tables.items():
            lines.append(f"[{section}.{table_name}]")
            for key, value in table.items():
                lines.append(f"{_toml_key(key)} = {_toml_value(value)}")
            lines.append("")
    return "\n".join(lines).strip() + "\n"


def load_config(path: Path) -> AgentflowConfig:
    if not path.exists():
        return AgentflowConfig.default()
    return AgentflowConfig.from_dict(tomllib.loads(path.read_text(encoding="utf-8")))


def save_config(path: Path, config: AgentflowConfig) -> None:
    path.write_text(dumps_toml(config), encoding="utf-8")
