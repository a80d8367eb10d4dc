"""
Learning engine adapting agent selection and evaluation weights from history.
Following Single Responsibility Principle - handles strategy learning only.
"""

import warnings
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .enums import TaskType
from .exceptions import StorageWarning, ValidationError
from .knowledge_base import KnowledgeBase
from .models import AgentStrategy, Decision, Task
from .orchestration_events import EventLogger
from .solution_evaluator import CRITERIA, DEFAULT_WEIGHTS, validate_weights
from .state_storage import FileStateStorage, StateStorage


LEARNING_WINDOW = 100
PREFERRED_AGENT_COUNT = 3

DEFAULT_AGENTS: Dict[TaskType, List[str]] = {
    TaskType.FEATURE: ["architect", "backend", "frontend", "qa"],
    TaskType.BUG: ["backend", "qa", "analyst"],
    TaskType.IMPROVEMENT: ["analyst", "backend", "devops"],
    TaskType.REFACTORING: ["architect", "backend", "qa"],
    TaskType.DOCUMENTATION: ["architect"],
    TaskType.QUALITY_CHECK: ["backend", "frontend", "architect", "analyst", "devops", "qa"],
}

# Checked in order; the first match wins, FEATURE otherwise
TASK_TYPE_KEYWORDS: List[Tuple[TaskType, Tuple[str, ...]]] = [
    (TaskType.BUG, ("bug", "error", "fix")),
    (TaskType.IMPROVEMENT, ("improv", "optimi")),
    (TaskType.REFACTORING, ("refactor", "restructur")),
    (TaskType.DOCUMENTATION, ("document",)),
    (TaskType.QUALITY_CHECK, ("quality", "check")),
]

CRITERION_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "quality": ("quality",),
    "performance": ("performance",),
    "security": ("secur",),
    "maintainability": ("maintainab",),
    "compliance": ("standard", "complian"),
    "dependency_impact": ("dependen",),
    "architecture": ("architect",),
}

# Task alignment is never learned from lessons; its weight stays fixed
FIXED_CRITERION = "task_alignment"


def default_strategy(task_type: TaskType) -> AgentStrategy:
    agents = DEFAULT_AGENTS.get(task_type, ["backend"])
    return AgentStrategy(
        task_type=task_type,
        preferred_agents=list(agents),
        weights={agent: 1.0 / len(agents) for agent in agents},
    )


class LearningEngine:
    """
    Derives agent preferences and evaluation weights from decision history.

    Each `learn()` pass replaces the strategies of every task type it has
    evidence for; nothing is blended with the previous pass.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        storage: Optional[StateStorage] = None,
        strategies_file: Optional[Path] = None,
        event_logger: Optional[EventLogger] = None
    ):
        self.knowledge_base = knowledge_base
        self.storage = storage or FileStateStorage()
        self.strategies_file = strategies_file or knowledge_base.workspace_path / ".council" / "strategies.yaml"
        self.event_logger = event_logger
        self.strategies: Dict[TaskType, AgentStrategy] = {}
        self.evaluation_weights: Dict[str, float] = {}
        self._initialize_strategies()

    def _initialize_strategies(self) -> None:
        self.strategies = {t: default_strategy(t) for t in TaskType}
        self.evaluation_weights = dict(DEFAULT_WEIGHTS)

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def learn(self) -> bool:
        """Run one learning pass; returns False when there was nothing to learn from"""
        successful = self.knowledge_base.get_successful_decisions(LEARNING_WINDOW)
        if not successful:
            return False

        updated = self._update_agent_selection(successful)
        self._update_evaluation_weights(successful)

        if self.event_logger:
            self.event_logger.log(
                "learning_pass", str(self.knowledge_base.workspace_path), status="success",
                decisions=len(successful), task_types=[t.value for t in updated],
                weights=dict(self.evaluation_weights)
            )
        return True

    def infer_task_type(self, decision: Decision) -> TaskType:
        """Stored task type, or a keyword guess over the reasoning for older records"""
        if decision.task_type is not None:
            return decision.task_type
        reasoning = decision.decision.reasoning.lower()
        for task_type, keywords in TASK_TYPE_KEYWORDS:
            if any(k in reasoning for k in keywords):
                return task_type
        return TaskType.FEATURE

    def _update_agent_selection(self, successful: List[Decision]) -> List[TaskType]:
        groups: Dict[TaskType, List[str]] = {}
        for decision in successful:
            agents = groups.setdefault(self.infer_task_type(decision), [])
            if decision.decision.agent_id not in agents:
                agents.append(decision.decision.agent_id)

        # Rates use every recorded outcome, failures included
        stats: Dict[Tuple[TaskType, str], List[int]] = {}
        for decision in self.knowledge_base.history:
            key = (self.infer_task_type(decision), decision.decision.agent_id)
            counts = stats.setdefault(key, [0, 0])
            counts[1] += 1
            if decision.outcome.success:
                counts[0] += 1

        for task_type, agents in groups.items():
            rates = {}
            for agent in agents:
                success, total = stats.get((task_type, agent), [0, 0])
                rates[agent] = success / total if total else 0.0
            ranked = sorted(
                agents,
                key=lambda a: (rates[a], stats.get((task_type, a), [0, 0])[0]),
                reverse=True
            )
            self.strategies[task_type] = AgentStrategy(
                task_type=task_type,
                preferred_agents=ranked[:PREFERRED_AGENT_COUNT],
                weights=rates,
            )
        return list(groups)

    def _update_evaluation_weights(self, successful: List[Decision]) -> None:
        hits = {criterion: 0 for criterion in CRITERION_KEYWORDS}
        for decision in successful:
            for lesson in decision.lessons:
                text = lesson.lower()
                for criterion, keywords in CRITERION_KEYWORDS.items():
                    if any(k in text for k in keywords):
                        hits[criterion] += 1

        total = sum(hits.values())
        if total == 0:
            return

        fixed = DEFAULT_WEIGHTS[FIXED_CRITERION]
        weights = {criterion: (1.0 - fixed) * count / total for criterion, count in hits.items()}
        weights[FIXED_CRITERION] = fixed
        self.evaluation_weights = {c: weights[c] for c in CRITERIA}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_agent_selection_strategy(self, task_type: TaskType) -> AgentStrategy:
        return self.strategies.get(task_type) or default_strategy(task_type)

    def get_evaluation_weights(self) -> Dict[str, float]:
        return dict(self.evaluation_weights)

    def recommend_agents(self, task: Task, available_agents: List[str]) -> List[str]:
        """Preferred agents that are available; all available agents if none are"""
        strategy = self.get_agent_selection_strategy(task.type)
        preferred = [a for a in strategy.preferred_agents if a in available_agents]
        return preferred or list(available_agents)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_strategies(self) -> bool:
        return self.storage.save({
            "strategies": {t.value: s.to_dict() for t, s in self.strategies.items()},
            "evaluation_weights": dict(self.evaluation_weights),
        }, self.strategies_file)

    def load_strategies(self) -> bool:
        """Restore persisted strategies; defaults stay in place when none exist"""
        self._initialize_strategies()
        data = self.storage.load(self.strategies_file)
        if not data:
            return False

        try:
            for raw in data.get("strategies", {}).values():
                strategy = AgentStrategy.from_dict(raw)
                self.strategies[strategy.task_type] = strategy
            if data.get("evaluation_weights"):
                self.evaluation_weights = validate_weights(data["evaluation_weights"])
        except (KeyError, ValueError, ValidationError) as e:
            warnings.warn(f"Ignoring invalid strategies in {self.strategies_file}: {e}", StorageWarning)
            self._initialize_strategies()
            return False
        return True
