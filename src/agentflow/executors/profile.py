from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from agentflow.config import ExecutorsConfig
from agentflow.errors import ConfigError
from agentflow.executors.base import CodingAgentExecutor, ExecutorEventHook
from agentflow.executors.claude import ClaudeCodeExecutor
from agentflow.executors.codex import CodexExecutor


class BaseCodingAgent(StrEnum):
    CLAUDE_CODE = "CLAUDE_CODE"
    CODEX = "CODEX"


_EXECUTOR_TYPES: dict[BaseCodingAgent, type[CodingAgentExecutor]] = {
    BaseCodingAgent.CLAUDE_CODE: ClaudeCodeExecutor,
    BaseCodingAgent.CODEX: CodexExecutor,
}


@dataclass(frozen=True, slots=True)
class ExecutorProfileId:
    executor: BaseCodingAgent
    variant: str | None = None

    def __str__(self) -> str:
        if self.variant:
            return f"{self.executor.value}:{self.variant}"
        return self.executor.value

    @classmethod
    def parse(cls, raw: str) -> ExecutorProfileId:
        executor_name, _, variant = raw.strip().partition(":")
        try:
            executor = BaseCodingAgent(executor_name.strip().upper())
        except ValueError as exc:
            raise ConfigError(f"Unknown coding agent in profile '{raw}'") from exc
        variant = variant.strip().upper()
        return cls(executor=executor, variant=variant or None)

    @classmethod
    def from_value(cls, value: Any) -> ExecutorProfileId:
        if isinstance(value, ExecutorProfileId):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, dict) and "executor" in value:
            try:
                executor = BaseCodingAgent(str(value["executor"]).upper())
            except ValueError as exc:
                raise ConfigError(f"Unknown coding agent: {value['executor']}") from exc
            variant = value.get("variant")
            return cls(executor=executor, variant=str(variant).upper() if variant else None)
        raise ConfigError(f"Invalid executor profile id: {value!r}")

    def to_dict(self) -> dict[str, Any]:
        return {"executor": self.executor.value, "variant": self.variant}


@dataclass(slots=True)
class ExecutorProfile:
    profile_id: ExecutorProfileId
    binary: str
    extra_args: list[str] = field(default_factory=list)


class ExecutorConfigs:
    """Registry of executor profiles.

    Build one at startup and pass it to every action that needs to resolve an
    agent. Each lookup returns a fresh executor so approval bindings never leak
    between actions.
    """

    def __init__(
        self,
        profiles: list[ExecutorProfile] | None = None,
        *,
        default_profile: ExecutorProfileId | None = None,
        event_hook: ExecutorEventHook | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._profiles: dict[ExecutorProfileId, ExecutorProfile] = {}
        self._default_profile = default_profile
        self.event_hook = event_hook
        for profile in profiles or []:
            self._profiles[profile.profile_id] = profile

    @classmethod
    def from_config(
        cls,
        config: ExecutorsConfig,
        *,
        event_hook: ExecutorEventHook | None = None,
    ) -> ExecutorConfigs:
        registry = cls(event_hook=event_hook)
        registry.reload(config)
        return registry

    @staticmethod
    def _profiles_from_config(config: ExecutorsConfig) -> list[ExecutorProfile]:
        binaries = {
            BaseCodingAgent.CLAUDE_CODE: config.claude_binary,
            BaseCodingAgent.CODEX: config.codex_binary,
        }
        profiles = [
            ExecutorProfile(profile_id=ExecutorProfileId(agent), binary=binaries[agent])
            for agent in BaseCodingAgent
        ]
        for key, extra_args in config.variants.items():
            profile_id = ExecutorProfileId.parse(key)
            if profile_id.variant is None:
                raise ConfigError(f"Variant profile '{key}' is missing a variant name")
            profiles.append(
                ExecutorProfile(
                    profile_id=profile_id,
                    binary=binaries[profile_id.executor],
                    extra_args=list(extra_args),
                )
            )
        return profiles

    def reload(self, config: ExecutorsConfig) -> None:
        profiles = self._profiles_from_config(config)
        default_profile = ExecutorProfileId.parse(config.default_profile)
        known = {profile.profile_id for profile in profiles}
        if default_profile not in known:
            raise ConfigError(f"Default executor profile is not defined: {default_profile}")
        with self._lock:
            self._profiles = {profile.profile_id: profile for profile in profiles}
            self._default_profile = default_profile

    def register(self, profile: ExecutorProfile) -> None:
        with self._lock:
            self._profiles[profile.profile_id] = profile

    @property
    def default_profile(self) -> ExecutorProfileId:
        with self._lock:
            if self._default_profile is not None:
                return self._default_profile
            if self._profiles:
                return sorted(self._profiles, key=str)[0]
        raise ConfigError("No executor profiles are registered.")

    def profiles(self) -> list[ExecutorProfile]:
        with self._lock:
            return sorted(self._profiles.values(), key=lambda item: str(item.profile_id))

    def get_profile(self, profile_id: ExecutorProfileId) -> ExecutorProfile | None:
        with self._lock:
            return self._profiles.get(profile_id)

    def get_coding_agent(self, profile_id: ExecutorProfileId) -> CodingAgentExecutor | None:
        profile = self.get_profile(profile_id)
        if profile is None:
            return None
        executor_type = _EXECUTOR_TYPES[profile.profile_id.executor]
        return executor_type(
            profile.binary,
            extra_args=profile.extra_args,
            event_hook=self.event_hook,
        )
