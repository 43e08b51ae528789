from __future__ import annotations

from agentflow.executors.base import CodingAgentExecutor, ExecutorEventHook


class CodexExecutor(CodingAgentExecutor):
    name = "codex"

    def __init__(
        self,
        binary: str = "codex",
        *,
        extra_args: list[str] | None = None,
        event_hook: ExecutorEventHook | None = None,
    ) -> None:
        super().__init__(binary, extra_args=extra_args, event_hook=event_hook)

    def build_command(self, prompt: str) -> list[str]:
        # prompt stays last; codex treats trailing positional text as the task
        return [self.binary, "exec", "--json", *self.extra_args, prompt]
