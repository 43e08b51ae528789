from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from agentflow.executors.actions.base import AgentRequest
from agentflow.executors.profile import ExecutorProfileId

REVIEW_PROMPT_TEMPLATE = """# Code Review Task

You are a specialized code review agent. Your task is to review the code changes that were made for the following task:

{task_description}

## Your Review Process

1. **Examine the Changes**: Use git commands to review:
   - `git --no-pager diff HEAD` - See all uncommitted changes
   - `git --no-pager log --oneline -10` - Check recent commits
   - `git --no-pager diff <commit>^..<commit>` - Review specific commits

2. **Code Quality Assessment**:
   - Check if the implementation matches the task requirements
   - Look for potential bugs, edge cases, or logic errors
   - Verify code follows best practices and conventions
   - Check for proper error handling
   - Assess test coverage (if applicable)

3. **Security & Performance**:
   - Identify any security vulnerabilities
   - Check for performance issues or inefficiencies
   - Look for proper input validation

4. **Provide Structured Feedback**:
   - Start with a Review Feedback header
   - List specific issues found (if any)
   - Suggest improvements
   - Highlight what was done well
   - Give an overall assessment

## Important Guidelines

- You are in READ-ONLY review mode - DO NOT modify any code
- Focus on providing constructive, actionable feedback
- Be specific: reference file names, line numbers, and code snippets
- Prioritize critical issues over minor style preferences
- If everything looks good, say so clearly

Begin your review now."""


def build_review_prompt(task_description: str) -> str:
    return REVIEW_PROMPT_TEMPLATE.format(task_description=task_description)


@dataclass(slots=True)
class ReviewAgentRequest(AgentRequest):
    """Read-only review run of a coding agent over the current changes.

    The read-only constraint lives in the prompt only; the agent process is
    not sandboxed.
    """

    action_type: ClassVar[str] = "review_agent"

    @classmethod
    def new(
        cls,
        executor_profile_id: ExecutorProfileId,
        task_description: str,
        working_dir: str | None = None,
    ) -> ReviewAgentRequest:
        return cls(
            prompt=build_review_prompt(task_description),
            executor_profile_id=executor_profile_id,
            working_dir=working_dir,
        )
