"""
Data model classes for the orchestration engine.
Following Single Responsibility Principle - all data models in one module.
"""

from typing import Dict, List, Optional, Any, Set
from dataclasses import dataclass, field
from datetime import datetime

from .enums import (
    TaskType, TaskPriority, TaskStatus, SessionStatus, ChangeType,
    ImpactLevel, DeviationLevel, ThoughtPhase, DecisionType, SuggestionPriority
)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now()
    return datetime.fromisoformat(value)


# ============================================================================
# Task Models
# ============================================================================

@dataclass
class Task:
    """A unit of requested software change"""
    id: str
    type: TaskType
    description: str
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    assigned_agent: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.BLOCKED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "description": self.description,
            "priority": self.priority.value,
            "status": self.status.value,
            "assigned_agent": self.assigned_agent,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        return cls(
            id=data["id"],
            type=TaskType(data.get("type", "feature")),
            description=data.get("description", ""),
            priority=TaskPriority(data.get("priority", "medium")),
            status=TaskStatus(data.get("status", "pending")),
            assigned_agent=data.get("assigned_agent"),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass
class TaskVariation:
    """Per-agent rephrasing of a shared task"""
    id: str
    original_task_id: str
    agent_id: str
    variation: Task
    emphasis: List[str] = field(default_factory=list)
    similarity: float = 1.0
    reasoning: str = ""


# ============================================================================
# Dependency Graph Models
# ============================================================================

@dataclass
class FileInfo:
    """
    Import/export surface of a single source file.

    `dependents` is derived by the graph and never authored by parsers.
    """
    path: str
    exports: Set[str] = field(default_factory=set)
    imports: List[str] = field(default_factory=list)
    dependents: Set[str] = field(default_factory=set)
    symbols: Dict[str, List[str]] = field(default_factory=lambda: {
        "classes": [], "functions": [], "types": [], "variables": []
    })
    mtime: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "exports": sorted(self.exports),
            "imports": list(self.imports),
            "dependents": sorted(self.dependents),
            "symbols": {k: list(v) for k, v in self.symbols.items()},
            "mtime": self.mtime,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FileInfo':
        return cls(
            path=data["path"],
            exports=set(data.get("exports", [])),
            imports=list(data.get("imports", [])),
            dependents=set(data.get("dependents", [])),
            symbols={k: list(v) for k, v in data.get("symbols", {}).items()} or {
                "classes": [], "functions": [], "types": [], "variables": []
            },
            mtime=data.get("mtime", 0.0),
        )


@dataclass
class FileChange:
    """A proposed change to one file"""
    file: str
    type: ChangeType


@dataclass
class ImpactAnalysis:
    """Blast radius of a set of file changes"""
    directly_affected: Set[str] = field(default_factory=set)
    indirectly_affected: Set[str] = field(default_factory=set)
    impact_level: ImpactLevel = ImpactLevel.LOW
    risks: List[str] = field(default_factory=list)

    @property
    def total_affected(self) -> int:
        return len(self.directly_affected | self.indirectly_affected)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "directly_affected": sorted(self.directly_affected),
            "indirectly_affected": sorted(self.indirectly_affected),
            "total_affected": self.total_affected,
            "impact_level": self.impact_level.value,
            "risks": list(self.risks),
        }


# ============================================================================
# Solution Models
# ============================================================================

@dataclass
class CodeChange:
    file: str
    type: ChangeType
    description: str = ""
    estimated_lines: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "type": self.type.value,
            "description": self.description,
            "estimated_lines": self.estimated_lines,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CodeChange':
        return cls(
            file=data["file"],
            type=ChangeType(data.get("type", "modify")),
            description=data.get("description", ""),
            estimated_lines=data.get("estimated_lines"),
        )


@dataclass
class SolutionDependencies:
    """Dependencies a solution declares for itself"""
    files: List[str] = field(default_factory=list)
    impact: ImpactLevel = ImpactLevel.LOW


@dataclass
class SolutionDetails:
    title: str
    description: str
    approach: str = ""
    files_to_modify: List[str] = field(default_factory=list)
    code_changes: List[CodeChange] = field(default_factory=list)
    dependencies: SolutionDependencies = field(default_factory=SolutionDependencies)

    @property
    def text(self) -> str:
        """Title, description and approach joined for keyword matching"""
        return f"{self.title} {self.description} {self.approach}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "approach": self.approach,
            "files_to_modify": list(self.files_to_modify),
            "code_changes": [c.to_dict() for c in self.code_changes],
            "dependencies": {
                "files": list(self.dependencies.files),
                "impact": self.dependencies.impact.value,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SolutionDetails':
        deps = data.get("dependencies", {})
        return cls(
            title=data.get("title", ""),
            description=data.get("description", ""),
            approach=data.get("approach", ""),
            files_to_modify=list(data.get("files_to_modify", [])),
            code_changes=[CodeChange.from_dict(c) for c in data.get("code_changes", [])],
            dependencies=SolutionDependencies(
                files=list(deps.get("files", [])),
                impact=ImpactLevel(deps.get("impact", "low")),
            ),
        )


@dataclass
class SolutionEvaluation:
    """Self-assessed scores an agent attaches to its solution, each in [0, 1]"""
    quality: float = 0.5
    performance: float = 0.5
    security: float = 0.5
    maintainability: float = 0.5
    compliance: float = 0.5
    overall_score: float = 0.5

    def to_dict(self) -> Dict[str, float]:
        return {
            "quality": self.quality,
            "performance": self.performance,
            "security": self.security,
            "maintainability": self.maintainability,
            "compliance": self.compliance,
            "overall_score": self.overall_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SolutionEvaluation':
        return cls(**{k: float(data.get(k, 0.5)) for k in (
            "quality", "performance", "security", "maintainability", "compliance", "overall_score"
        )})


@dataclass(frozen=True)
class AgentSolution:
    """A solution proposed by one agent for one task; immutable once produced"""
    id: str
    agent_id: str
    agent_name: str
    task_id: str
    solution: SolutionDetails
    evaluation: SolutionEvaluation = field(default_factory=SolutionEvaluation)
    reasoning: str = ""
    confidence: float = 0.5
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "agent_name": self.agent_name,
            "task_id": self.task_id,
            "solution": self.solution.to_dict(),
            "evaluation": self.evaluation.to_dict(),
            "reasoning": self.reasoning,
            "confidence": self.confidence,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AgentSolution':
        return cls(
            id=data["id"],
            agent_id=data["agent_id"],
            agent_name=data.get("agent_name", data["agent_id"]),
            task_id=data["task_id"],
            solution=SolutionDetails.from_dict(data.get("solution", {})),
            evaluation=SolutionEvaluation.from_dict(data.get("evaluation", {})),
            reasoning=data.get("reasoning", ""),
            confidence=data.get("confidence", 0.5),
            timestamp=_parse_datetime(data.get("timestamp")),
        )


@dataclass
class AgentThoughts:
    """Intermediate reasoning an agent streams while working"""
    agent_id: str
    agent_name: str
    task_id: str
    phase: ThoughtPhase
    reasoning: str = ""
    options: List[Dict[str, Any]] = field(default_factory=list)
    implementation_plan: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class DeviationResult:
    """Outcome of checking a solution against the original task"""
    has_deviation: bool
    deviation_level: DeviationLevel
    relevance: float
    key_requirements: List[str] = field(default_factory=list)
    missing_requirements: List[str] = field(default_factory=list)
    extra_requirements: List[str] = field(default_factory=list)
    feedback: str = ""
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_deviation": self.has_deviation,
            "deviation_level": self.deviation_level.value,
            "relevance": self.relevance,
            "key_requirements": list(self.key_requirements),
            "missing_requirements": list(self.missing_requirements),
            "extra_requirements": list(self.extra_requirements),
            "feedback": self.feedback,
            "recommendations": list(self.recommendations),
        }


# ============================================================================
# Session Models
# ============================================================================

@dataclass
class BrainstormingSession:
    """
    One concurrent brainstorming round over a shared task.

    Becomes terminal (completed or cancelled) exactly once. Per-agent maps are
    written only under that agent's own key.
    """
    id: str
    task_id: str
    original_task: Task
    agent_ids: List[str]
    started_at: datetime = field(default_factory=datetime.now)
    status: SessionStatus = SessionStatus.ACTIVE
    solutions: Dict[str, AgentSolution] = field(default_factory=dict)
    thoughts: Dict[str, List[AgentThoughts]] = field(default_factory=dict)
    completed_agents: Set[str] = field(default_factory=set)
    task_variations: Dict[str, TaskVariation] = field(default_factory=dict)
    deviation_results: Dict[str, DeviationResult] = field(default_factory=dict)
    finished_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def total_agents(self) -> int:
        return len(self.agent_ids)

    def ordered_solutions(self) -> List[AgentSolution]:
        """Recorded solutions in the order agents were requested"""
        return [self.solutions[a] for a in self.agent_ids if a in self.solutions]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "agent_ids": list(self.agent_ids),
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "completed_agents": sorted(self.completed_agents),
            "solutions": [s.to_dict() for s in self.ordered_solutions()],
            "deviation_results": {k: v.to_dict() for k, v in self.deviation_results.items()},
        }


@dataclass
class ConsolidatedSolution:
    """Ranked solutions of a session with the chosen best one"""
    id: str
    task_id: str
    solutions: List[AgentSolution]
    best_solution: AgentSolution
    reasoning: str
    used_fallback: bool = False
    timestamp: datetime = field(default_factory=datetime.now)


# ============================================================================
# Evaluation Models
# ============================================================================

@dataclass
class EvaluationReport:
    solution: AgentSolution
    score: float
    breakdown: Dict[str, float]
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    impact: Optional[ImpactAnalysis] = None
    deviation: Optional[DeviationResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "solution_id": self.solution.id,
            "agent_id": self.solution.agent_id,
            "score": self.score,
            "breakdown": dict(self.breakdown),
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
            "recommendations": list(self.recommendations),
            "impact": self.impact.to_dict() if self.impact else None,
            "deviation": self.deviation.to_dict() if self.deviation else None,
        }


@dataclass
class RankedSolutions:
    """Evaluation reports sorted by score, best first"""
    reports: List[EvaluationReport]
    best: EvaluationReport
    worst: EvaluationReport
    average: Dict[str, float]


@dataclass
class MergedSolution:
    """Union of several solutions, keeping the strongest change per file"""
    id: str
    task_id: str
    title: str
    description: str
    approach: str
    files_to_modify: List[str]
    code_changes: List[CodeChange]
    evaluation: SolutionEvaluation
    reasoning: str
    source_solutions: List[str]
    used_fallback: bool = False


@dataclass
class ImprovementSuggestion:
    """One agent's proposal for improving another agent's solution"""
    agent_id: str
    agent_name: str
    suggestion: str
    target_aspect: str  # an evaluation criterion
    confidence: float = 0.5
    reasoning: str = ""
    priority: SuggestionPriority = SuggestionPriority.MEDIUM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "agent_name": self.agent_name,
            "suggestion": self.suggestion,
            "target_aspect": self.target_aspect,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "priority": self.priority.value,
        }


@dataclass
class EnsembleRefinementResult:
    """
    Outcome of refining one solution with suggestions from several agents.

    `refined_solution` is the original when the refined candidate failed
    validation; `improvement_score` is never negative.
    """
    original_solution: AgentSolution
    refined_solution: AgentSolution
    suggestions: List[ImprovementSuggestion]
    applied_suggestions: List[str]
    improvement_score: float
    evaluation_before: EvaluationReport
    evaluation_after: EvaluationReport
    reasoning: str
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors


# ============================================================================
# Knowledge Models
# ============================================================================

@dataclass
class DecisionDetails:
    type: DecisionType
    solution_id: str
    agent_id: str
    reasoning: str = ""


@dataclass
class DecisionOutcome:
    success: bool
    execution_time: float = 0.0
    files_changed: int = 0
    quality: float = 0.0
    issues: List[str] = field(default_factory=list)


@dataclass
class Decision:
    """Historical record of a choice and its outcome"""
    id: str
    task_id: str
    decision: DecisionDetails
    outcome: DecisionOutcome
    lessons: List[str] = field(default_factory=list)
    task_type: Optional[TaskType] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "task_type": self.task_type.value if self.task_type else None,
            "timestamp": self.timestamp.isoformat(),
            "decision": {
                "type": self.decision.type.value,
                "solution_id": self.decision.solution_id,
                "agent_id": self.decision.agent_id,
                "reasoning": self.decision.reasoning,
            },
            "outcome": {
                "success": self.outcome.success,
                "execution_time": self.outcome.execution_time,
                "files_changed": self.outcome.files_changed,
                "quality": self.outcome.quality,
                "issues": list(self.outcome.issues),
            },
            "lessons": list(self.lessons),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Decision':
        details = data.get("decision", {})
        outcome = data.get("outcome", {})
        task_type = data.get("task_type")
        return cls(
            id=data["id"],
            task_id=data["task_id"],
            task_type=TaskType(task_type) if task_type else None,
            timestamp=_parse_datetime(data.get("timestamp")),
            decision=DecisionDetails(
                type=DecisionType(details.get("type", "selected")),
                solution_id=details.get("solution_id", ""),
                agent_id=details.get("agent_id", ""),
                reasoning=details.get("reasoning", ""),
            ),
            outcome=DecisionOutcome(
                success=bool(outcome.get("success", False)),
                execution_time=outcome.get("execution_time", 0.0),
                files_changed=outcome.get("files_changed", 0),
                quality=outcome.get("quality", 0.0),
                issues=list(outcome.get("issues", [])),
            ),
            lessons=list(data.get("lessons", [])),
        )


@dataclass
class CodePattern:
    """A recurring code pattern observed in the project"""
    name: str
    description: str = ""
    files: List[str] = field(default_factory=list)
    frequency: int = 1
    effectiveness: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "files": list(self.files),
            "frequency": self.frequency,
            "effectiveness": self.effectiveness,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CodePattern':
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            files=list(data.get("files", [])),
            frequency=data.get("frequency", 1),
            effectiveness=data.get("effectiveness", 0.5),
        )


@dataclass
class ProjectMetrics:
    """Aggregates derived from decision history"""
    total_tasks: int = 0
    completed_tasks: int = 0
    average_execution_time: float = 0.0
    average_quality: float = 0.0
    success_rate: float = 0.0
    most_effective_agents: List[Dict[str, Any]] = field(default_factory=list)  # {agent_id, success_rate}
    common_patterns: List[str] = field(default_factory=list)
    last_updated: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "average_execution_time": self.average_execution_time,
            "average_quality": self.average_quality,
            "success_rate": self.success_rate,
            "most_effective_agents": [dict(a) for a in self.most_effective_agents],
            "common_patterns": list(self.common_patterns),
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectMetrics':
        return cls(
            total_tasks=data.get("total_tasks", 0),
            completed_tasks=data.get("completed_tasks", 0),
            average_execution_time=data.get("average_execution_time", 0.0),
            average_quality=data.get("average_quality", 0.0),
            success_rate=data.get("success_rate", 0.0),
            most_effective_agents=[dict(a) for a in data.get("most_effective_agents", [])],
            common_patterns=list(data.get("common_patterns", [])),
            last_updated=_parse_datetime(data.get("last_updated")),
        )


@dataclass
class ProjectStructure:
    files: List[str] = field(default_factory=list)
    directories: List[str] = field(default_factory=list)
    entry_points: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "files": list(self.files),
            "directories": list(self.directories),
            "entry_points": list(self.entry_points),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectStructure':
        return cls(
            files=list(data.get("files", [])),
            directories=list(data.get("directories", [])),
            entry_points=list(data.get("entry_points", [])),
        )


@dataclass
class CodingStandards:
    code_style: Optional[str] = None
    architecture: Optional[str] = None
    patterns: List[str] = field(default_factory=list)
    conventions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code_style": self.code_style,
            "architecture": self.architecture,
            "patterns": list(self.patterns),
            "conventions": list(self.conventions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CodingStandards':
        return cls(
            code_style=data.get("code_style"),
            architecture=data.get("architecture"),
            patterns=list(data.get("patterns", [])),
            conventions=list(data.get("conventions", [])),
        )


@dataclass
class ProjectContext:
    """
    Project profile handed to agents and to the evaluator.

    `patterns` are pattern names; `architecture` and `code_style` come from
    the declared standards.
    """
    structure: ProjectStructure = field(default_factory=ProjectStructure)
    dependencies: Dict[str, List[str]] = field(default_factory=dict)
    patterns: List[str] = field(default_factory=list)
    standards: CodingStandards = field(default_factory=CodingStandards)
    profile: Dict[str, Any] = field(default_factory=dict)

    @property
    def architecture(self) -> Optional[str]:
        return self.standards.architecture or self.profile.get("architecture")


@dataclass
class AgentStrategy:
    """Preferred agents and their weights for one task category"""
    task_type: TaskType
    preferred_agents: List[str]
    weights: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_type": self.task_type.value,
            "preferred_agents": list(self.preferred_agents),
            "weights": dict(self.weights),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AgentStrategy':
        return cls(
            task_type=TaskType(data["task_type"]),
            preferred_agents=list(data.get("preferred_agents", [])),
            weights={k: float(v) for k, v in data.get("weights", {}).items()},
        )
