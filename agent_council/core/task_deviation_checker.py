"""
Task deviation checking: how well a solution matches the original task.
Following Single Responsibility Principle - handles task/solution alignment only.
"""

import re
from abc import ABC, abstractmethod
from functools import cmp_to_key
from typing import Callable, Dict, List, Optional, Set, Tuple

from .enums import DeviationLevel, TaskType
from .models import AgentSolution, DeviationResult, Task


DEFAULT_RELEVANCE = 0.5
MIN_RELEVANCE = 0.5
RELEVANCE_TIE = 0.1


def relevance_of(deviation: Optional[DeviationResult]) -> float:
    """Relevance of a checked solution; neutral when it was never checked"""
    return deviation.relevance if deviation is not None else DEFAULT_RELEVANCE


def is_on_task(deviation: Optional[DeviationResult]) -> bool:
    """False for high-deviation or low-relevance solutions; unchecked ones pass"""
    if deviation is None:
        return True
    return deviation.deviation_level != DeviationLevel.HIGH and deviation.relevance >= MIN_RELEVANCE


def relevance_sort_key(deviations: Dict[str, DeviationResult]) -> Callable:
    """
    Sort key ordering solutions by relevance, highest first.

    Relevances within RELEVANCE_TIE of each other count as a tie and are
    ordered by overall score instead.
    """
    def compare(a: AgentSolution, b: AgentSolution) -> int:
        rel_a = relevance_of(deviations.get(a.agent_id))
        rel_b = relevance_of(deviations.get(b.agent_id))
        if abs(rel_a - rel_b) > RELEVANCE_TIE:
            return -1 if rel_a > rel_b else 1
        score_a, score_b = a.evaluation.overall_score, b.evaluation.overall_score
        if score_a == score_b:
            return 0
        return -1 if score_a > score_b else 1

    return cmp_to_key(compare)


class TaskDeviationChecker(ABC):
    """Abstract deviation checker"""

    @abstractmethod
    async def check_deviation(self, original_task: Task, solution: AgentSolution) -> DeviationResult:
        pass


def _words(text: str, min_length: int) -> List[str]:
    return [w for w in re.split(r"\s+", text.lower()) if len(w) > min_length]


class HeuristicDeviationChecker(TaskDeviationChecker):
    """
    Keyword-based deviation checker.

    Relevance is the Jaccard similarity of the task's and the solution's
    significant words, plus a small bonus when the solution title uses the
    task type's action verb, penalized for very short descriptions.
    """

    RELEVANCE_THRESHOLD = 0.7
    MEDIUM_RELEVANCE = 0.5

    ACTION_VERBS = ("create", "add", "implement", "improve", "fix", "optimize", "configure", "refactor")
    TYPE_VERBS = {
        TaskType.FEATURE: "add",
        TaskType.BUG: "fix",
        TaskType.IMPROVEMENT: "improve",
        TaskType.REFACTORING: "refactor",
    }
    TECHNICAL_TERMS = ("file", "code", "function", "class", "method", "interface", "module")

    async def check_deviation(self, original_task: Task, solution: AgentSolution) -> DeviationResult:
        key_requirements = self.extract_key_requirements(original_task)
        missing, extra, matched = self._analyze_compliance(original_task, solution, key_requirements)
        relevance = self.calculate_relevance(original_task, solution)
        level = self._deviation_level(len(missing), len(extra), relevance)

        return DeviationResult(
            has_deviation=level != DeviationLevel.NONE,
            deviation_level=level,
            relevance=relevance,
            key_requirements=key_requirements,
            missing_requirements=missing,
            extra_requirements=extra,
            feedback=self._feedback(missing, extra, matched, relevance),
            recommendations=self._recommendations(missing, extra, relevance),
        )

    def extract_key_requirements(self, task: Task) -> List[str]:
        """Phrases starting at each action verb; the whole description if none"""
        description = task.description.lower()
        requirements = []
        for verb in self.ACTION_VERBS:
            match = re.search(rf"\b{verb}\b", description)
            if match:
                requirements.append(description[match.start():match.start() + 100].strip())
        return requirements or [task.description]

    def calculate_relevance(self, original_task: Task, solution: AgentSolution) -> float:
        task_words: Set[str] = set(_words(original_task.description, 3))
        solution_words: Set[str] = set(_words(solution.solution.text, 3))

        intersection = len(task_words & solution_words)
        union = len(task_words) + len(solution_words) - intersection
        relevance = intersection / union if union > 0 else 0.0

        verb = self.TYPE_VERBS.get(original_task.type)
        if verb and verb in solution.solution.title.lower():
            relevance += 0.1

        # Overly generic solutions
        if len(solution.solution.description) < 50:
            relevance *= 0.8

        return min(1.0, relevance)

    def _analyze_compliance(
        self,
        task: Task,
        solution: AgentSolution,
        key_requirements: List[str]
    ) -> Tuple[List[str], List[str], List[str]]:
        solution_text = solution.solution.text.lower()

        missing: List[str] = []
        matched: List[str] = []
        for requirement in key_requirements:
            req = requirement.lower()
            mentioned = req in solution_text or any(
                len(word) > 3 and word in solution_text for word in req.split(" ")
            )
            (matched if mentioned else missing).append(requirement)

        task_text = task.description.lower()
        extra: List[str] = []
        for keyword in _words(solution_text, 4):
            if keyword in task_text or keyword in extra:
                continue
            if any(keyword in req.lower() for req in key_requirements):
                continue
            if any(term in keyword for term in self.TECHNICAL_TERMS):
                continue
            extra.append(keyword)

        return missing, extra[:5], matched

    def _deviation_level(self, missing: int, extra: int, relevance: float) -> DeviationLevel:
        if relevance >= self.RELEVANCE_THRESHOLD and missing == 0 and extra == 0:
            return DeviationLevel.NONE
        if relevance >= self.RELEVANCE_THRESHOLD and missing <= 1 and extra <= 2:
            return DeviationLevel.LOW
        if relevance >= self.MEDIUM_RELEVANCE and missing <= 2 and extra <= 3:
            return DeviationLevel.MEDIUM
        return DeviationLevel.HIGH

    def _feedback(self, missing: List[str], extra: List[str], matched: List[str], relevance: float) -> str:
        parts = []
        if relevance < self.RELEVANCE_THRESHOLD:
            parts.append(f"Solution has low relevance ({relevance * 100:.0f}%) to the original task.")
        if missing:
            parts.append(f"Missing requirements: {', '.join(missing[:3])}")
        if extra:
            parts.append(f"Solution adds elements not mentioned in the task: {', '.join(extra[:3])}")
        if matched:
            parts.append(f"Covered requirements: {', '.join(matched[:3])}")
        return "\n".join(parts) if parts else "Solution matches the original task."

    def _recommendations(self, missing: List[str], extra: List[str], relevance: float) -> List[str]:
        recommendations = []
        if relevance < self.RELEVANCE_THRESHOLD:
            recommendations.append("Align the solution more closely with the original task")
        if missing:
            recommendations.append(f"Address missing requirements: {', '.join(missing[:2])}")
        if len(extra) > 3:
            recommendations.append("Simplify the solution by dropping elements the task does not ask for")
        return recommendations or ["Solution meets the task requirements"]
