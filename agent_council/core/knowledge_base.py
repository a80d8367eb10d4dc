"""
Project knowledge base: decision history, patterns and derived metrics.
Following Single Responsibility Principle - handles project knowledge persistence only.
"""

import warnings
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

from .exceptions import StorageWarning
from .models import (
    CodePattern, CodingStandards, Decision, ProjectContext, ProjectMetrics,
    ProjectStructure
)
from .state_storage import FileStateStorage, StateStorage


MAX_HISTORY = 1000
TOP_AGENTS = 5
TOP_PATTERNS = 10


class KnowledgeBase:
    """
    Knowledge aggregate for one workspace, persisted as a single JSON document.

    History is a bounded FIFO: once it holds `history_limit` decisions, each
    new decision evicts the oldest. Metrics are recomputed on every append.
    """

    def __init__(
        self,
        workspace_path: Path,
        storage: Optional[StateStorage] = None,
        knowledge_file: Optional[Path] = None,
        history_limit: int = MAX_HISTORY
    ):
        self.workspace_path = Path(workspace_path)
        self.storage = storage or FileStateStorage()
        self.knowledge_file = knowledge_file or self.workspace_path / ".council" / "knowledge.json"
        self.history_limit = history_limit
        self._reset()

    def _reset(self) -> None:
        self.structure = ProjectStructure()
        self.dependencies: Dict[str, List[str]] = {}
        self.patterns: List[CodePattern] = []
        self.standards = CodingStandards()
        self.history: Deque[Decision] = deque(maxlen=self.history_limit)
        self.metrics = ProjectMetrics()
        self.profile: Dict[str, Any] = {}
        self.last_updated = datetime.now()

    def initialize(self) -> None:
        """Load persisted knowledge; start empty (and persist it) when there is none"""
        if not self.load():
            self._reset()
            self.save()

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_structure(self, structure: ProjectStructure) -> None:
        self.structure = structure
        self._touch()

    def update_dependencies(self, dependencies: Dict[str, List[str]]) -> None:
        self.dependencies = {k: list(v) for k, v in dependencies.items()}
        self._touch()

    def update_profile(self, profile: Dict[str, Any]) -> None:
        """Store the project profile and derive coding standards from it"""
        self.profile = dict(profile)
        self.standards = CodingStandards(
            code_style=profile.get("code_style"),
            architecture=profile.get("architecture"),
            patterns=list(profile.get("patterns", [])),
            conventions=list(profile.get("conventions", [])),
        )
        self._touch()

    def add_pattern(self, pattern: CodePattern) -> CodePattern:
        """Add a pattern, merging into an existing one with the same name"""
        for existing in self.patterns:
            if existing.name == pattern.name:
                existing.files = list(dict.fromkeys(existing.files + pattern.files))
                existing.frequency += pattern.frequency
                existing.effectiveness = (existing.effectiveness + pattern.effectiveness) / 2
                self._touch()
                return existing
        self.patterns.append(pattern)
        self._touch()
        return pattern

    def add_decision(self, decision: Decision) -> None:
        self.history.append(decision)
        self._update_metrics()
        self._touch()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_history(self, limit: Optional[int] = None) -> List[Decision]:
        """Decisions, newest first"""
        history = list(reversed(self.history))
        return history[:limit] if limit else history

    def get_successful_decisions(self, limit: Optional[int] = None) -> List[Decision]:
        """Successful decisions, newest first"""
        successful = [d for d in reversed(self.history) if d.outcome.success]
        return successful[:limit] if limit else successful

    def get_metrics(self) -> ProjectMetrics:
        return self.metrics

    def get_patterns(self) -> List[CodePattern]:
        """Patterns, most effective first"""
        return sorted(self.patterns, key=lambda p: p.effectiveness, reverse=True)

    def get_standards(self) -> CodingStandards:
        return self.standards

    def get_knowledge(self) -> Dict[str, Any]:
        return self.to_dict()

    def build_context(self) -> ProjectContext:
        """Project context for agents and the evaluator"""
        pattern_names = list(dict.fromkeys(self.standards.patterns + [p.name for p in self.patterns]))
        return ProjectContext(
            structure=self.structure,
            dependencies=self.dependencies,
            patterns=pattern_names,
            standards=self.standards,
            profile=self.profile,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "structure": self.structure.to_dict(),
            "dependencies": self.dependencies,
            "patterns": [p.to_dict() for p in self.patterns],
            "standards": self.standards.to_dict(),
            "history": [d.to_dict() for d in self.history],
            "metrics": self.metrics.to_dict(),
            "profile": self.profile,
            "last_updated": self.last_updated.isoformat(),
        }

    def save(self) -> bool:
        return self.storage.save(self.to_dict(), self.knowledge_file)

    def load(self) -> bool:
        """Restore persisted knowledge; a malformed document is ignored with a warning"""
        data = self.storage.load(self.knowledge_file)
        if data is None:
            return False

        try:
            structure = ProjectStructure.from_dict(data.get("structure", {}))
            dependencies = {k: list(v) for k, v in data.get("dependencies", {}).items()}
            patterns = [CodePattern.from_dict(p) for p in data.get("patterns", [])]
            standards = CodingStandards.from_dict(data.get("standards", {}))
            history = deque(
                (Decision.from_dict(d) for d in data.get("history", [])),
                maxlen=self.history_limit
            )
            profile = dict(data.get("profile", {}))
            last_updated = data.get("last_updated")
            last_updated = datetime.fromisoformat(last_updated) if last_updated else datetime.now()
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            warnings.warn(f"Ignoring invalid knowledge in {self.knowledge_file}: {e!r}", StorageWarning)
            return False

        self.structure = structure
        self.dependencies = dependencies
        self.patterns = patterns
        self.standards = standards
        self.history = history
        self.profile = profile
        self.last_updated = last_updated
        self._update_metrics()
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _touch(self) -> None:
        self.last_updated = datetime.now()

    def _update_metrics(self) -> None:
        history = list(self.history)
        total = len(history)
        completed = sum(1 for d in history if d.outcome.success)

        agent_stats: Dict[str, List[int]] = {}
        for d in history:
            stats = agent_stats.setdefault(d.decision.agent_id, [0, 0])
            stats[1] += 1
            if d.outcome.success:
                stats[0] += 1

        # sorted() is stable, so ties keep first-seen order
        ranked_agents = sorted(
            ({"agent_id": agent, "success_rate": s / t} for agent, (s, t) in agent_stats.items()),
            key=lambda a: a["success_rate"],
            reverse=True
        )
        common = sorted(self.patterns, key=lambda p: p.frequency, reverse=True)

        self.metrics = ProjectMetrics(
            total_tasks=total,
            completed_tasks=completed,
            average_execution_time=sum(d.outcome.execution_time for d in history) / total if total else 0.0,
            average_quality=sum(d.outcome.quality for d in history) / total if total else 0.0,
            success_rate=completed / total if total else 0.0,
            most_effective_agents=ranked_agents[:TOP_AGENTS],
            common_patterns=[p.name for p in common[:TOP_PATTERNS]],
        )
