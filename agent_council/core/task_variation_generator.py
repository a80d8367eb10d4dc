"""
Per-agent task variations: the same task phrased with each agent's emphasis.
Following Single Responsibility Principle - handles task rephrasing only.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Tuple

from .models import Task, TaskVariation


class TaskVariationGenerator(ABC):
    """Abstract variation generator"""

    @abstractmethod
    async def generate_variations(self, task: Task, agent_ids: List[str], count: int = 1) -> List[TaskVariation]:
        pass


# agent id -> list of (focus areas, approach)
FOCUS_STRATEGIES: Dict[str, List[Tuple[List[str], str]]] = {
    "backend": [
        (["performance", "security"], "technical"),
        (["maintainability", "scalability"], "architectural"),
    ],
    "frontend": [
        (["user-experience", "performance"], "user-centred"),
        (["accessibility", "simplicity"], "quality"),
    ],
    "architect": [
        (["architecture", "scalability"], "systemic"),
        (["design-patterns", "maintainability"], "pattern-driven"),
    ],
    "analyst": [
        (["metrics", "performance"], "analytical"),
        (["optimization", "data"], "optimizing"),
    ],
    "qa": [
        (["quality", "testing"], "test-driven"),
        (["reliability", "compliance"], "reliability"),
    ],
    "devops": [
        (["deployment", "infrastructure"], "infrastructure"),
        (["automation", "monitoring"], "automation"),
    ],
}
GENERAL_STRATEGY: List[Tuple[List[str], str]] = [(["general"], "general")]


class HeuristicVariationGenerator(TaskVariationGenerator):
    """
    Appends each agent's focus areas to the task description.

    Results are cached per (task, agents, count) for an hour.
    """

    CACHE_TTL = 3600.0

    def __init__(self):
        self._cache: Dict[str, Tuple[float, List[TaskVariation]]] = {}

    async def generate_variations(self, task: Task, agent_ids: List[str], count: int = 1) -> List[TaskVariation]:
        cache_key = f"{task.id}-{','.join(agent_ids)}-{count}"
        cached = self._cache.get(cache_key)
        if cached and time.time() - cached[0] < self.CACHE_TTL:
            return cached[1]

        variations = [
            self.variation_for(task, agent_id, index)
            for agent_id in agent_ids
            for index in range(count)
        ]
        self._cache[cache_key] = (time.time(), variations)
        return variations

    def variation_for(self, task: Task, agent_id: str, index: int = 0) -> TaskVariation:
        strategies = FOCUS_STRATEGIES.get(agent_id, GENERAL_STRATEGY)
        focus, approach = strategies[index % len(strategies)]
        emphasis = ", ".join(f.replace("-", " ") for f in focus)

        return TaskVariation(
            id=f"variation-{task.id}-{agent_id}-{index}",
            original_task_id=task.id,
            agent_id=agent_id,
            variation=replace(task, description=f"{task.description}\n\n[Focus: {emphasis}]"),
            emphasis=list(focus),
            similarity=0.9,
            reasoning=f"Variation with a {approach} approach, emphasis on {emphasis}",
        )

    def clear_cache(self) -> None:
        self._cache.clear()
