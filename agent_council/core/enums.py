"""
Enumeration classes for the orchestration engine.
"""

from enum import Enum


class TaskType(Enum):
    """Category of a software-change task"""
    FEATURE = "feature"
    BUG = "bug"
    IMPROVEMENT = "improvement"
    REFACTORING = "refactoring"
    DOCUMENTATION = "documentation"
    QUALITY_CHECK = "quality-check"


class TaskPriority(Enum):
    IMMEDIATE = "immediate"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(Enum):
    """Task lifecycle status"""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"  # terminal
    BLOCKED = "blocked"      # terminal


class SessionStatus(Enum):
    """Brainstorming session status"""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ChangeType(Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


class ImpactLevel(Enum):
    """Bucket for the number of files a change touches"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DeviationLevel(Enum):
    """How far a solution strays from the original task"""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ThoughtPhase(Enum):
    ANALYZING = "analyzing"
    BRAINSTORMING = "brainstorming"
    EVALUATING = "evaluating"
    IMPLEMENTING = "implementing"


class DecisionType(Enum):
    """How a solution was chosen"""
    SELECTED = "selected"
    MERGED = "merged"
    REFINED = "refined"


class SuggestionPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
