from __future__ import annotations


class FlowError(RuntimeError):
    """Base class for flow orchestration errors."""


class InvalidIntent(FlowError):
    """Raised when a flow template does not match the manager's bound intent."""


class ExecutionFailed(FlowError):
    """Raised when an action's side effects fail during execution."""


class ConfigError(FlowError):
    """Raised for executor, profile, or store configuration problems."""
