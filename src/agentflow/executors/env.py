from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(slots=True)
class ExecutionEnv:
    """Environment variables handed to a spawned agent process."""

    vars: dict[str, str] = field(default_factory=dict)

    def with_var(self, key: str, value: str) -> ExecutionEnv:
        updated = dict(self.vars)
        updated[key] = value
        return ExecutionEnv(vars=updated)

    def merged(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        env = dict(os.environ if base is None else base)
        env.update(self.vars)
        return env
