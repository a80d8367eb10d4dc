"""
Agent Council

Self-learning multi-agent orchestration: dependency-aware brainstorming,
multi-criteria solution evaluation and strategy learning from history.
"""

from .core import (
    Agent,
    BrainstormingCoordinator,
    DependencyGraph,
    KnowledgeBase,
    LearningEngine,
    OrchestrationError,
    SelfLearningOrchestrator,
    SolutionEvaluator,
    Task,
    TaskType,
    ValidationError,
)

__version__ = "0.1.0"
__all__ = [
    "Agent",
    "BrainstormingCoordinator",
    "DependencyGraph",
    "KnowledgeBase",
    "LearningEngine",
    "OrchestrationError",
    "SelfLearningOrchestrator",  # High-level API (recommended)
    "SolutionEvaluator",
    "Task",
    "TaskType",
    "ValidationError",
]
