"""
Exception and warning classes for the orchestration engine.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Any


@dataclass
class ValidationError(Exception):
    """
    Validation error with context information.

    Raised for malformed inputs: empty solution lists, bad weights, bad config.
    """
    message: str
    field: Optional[str] = None
    value: Any = None
    context: Optional[Dict[str, Any]] = None

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Any = None, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.field = field
        self.value = value
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context"""
        parts = [self.message]
        if self.field:
            parts.append(f"Field: {self.field}")
        if self.value is not None:
            parts.append(f"Value: {repr(self.value)}")
        if self.context:
            ctx_parts = [f"{k}={v}" for k, v in self.context.items()]
            parts.append(f"Context: {', '.join(ctx_parts)}")
        return " | ".join(parts)

    def __str__(self) -> str:
        return self._format_message()


@dataclass
class OrchestrationError(Exception):
    """
    Orchestration error carrying the session and agent it relates to.
    """
    message: str
    session_id: Optional[str] = None
    agent_id: Optional[str] = None
    context: Optional[Dict[str, Any]] = None

    def __init__(self, message: str, session_id: Optional[str] = None,
                 agent_id: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.session_id = session_id
        self.agent_id = agent_id
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context"""
        parts = [self.message]
        if self.session_id:
            parts.append(f"Session: {self.session_id}")
        if self.agent_id:
            parts.append(f"Agent: {self.agent_id}")
        if self.context:
            ctx_parts = [f"{k}={v}" for k, v in self.context.items()]
            parts.append(f"Context: {', '.join(ctx_parts)}")
        return " | ".join(parts)

    def __str__(self) -> str:
        return self._format_message()


class WorkspaceMissingError(OrchestrationError):
    """Workspace root does not exist or is not a directory"""

    def __init__(self, workspace_path: Any):
        super().__init__(
            f"Workspace not found: {workspace_path}",
            context={"workspace": str(workspace_path)}
        )
        self.workspace_path = workspace_path


class SecurityError(Exception):
    """Security-related error for path validation"""
    pass


# Degradation categories, reported through warnings.warn

class ParseFailureWarning(UserWarning):
    """A source file could not be read or parsed and was skipped"""


class AgentFailureWarning(UserWarning):
    """An agent (or its observer callback) failed during a session"""


class ConsolidationFallbackWarning(UserWarning):
    """Relevance filtering removed every solution; the unfiltered set was used"""


class StorageWarning(UserWarning):
    """A snapshot could not be saved or loaded"""
