from __future__ import annotations

from agentflow.executors.base import CodingAgentExecutor, ExecutorEventHook


class ClaudeCodeExecutor(CodingAgentExecutor):
    name = "claude"

    def __init__(
        self,
        binary: str = "claude",
        *,
        extra_args: list[str] | None = None,
        event_hook: ExecutorEventHook | None = None,
    ) -> None:
        super().__init__(binary, extra_args=extra_args, event_hook=event_hook)

    def build_command(self, prompt: str) -> list[str]:
        return [
            self.binary,
            "-p",
            prompt,
            "--output-format",
            "stream-json",
            "--verbose",
            *self.extra_args,
        ]
