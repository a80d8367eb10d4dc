"""
Ensemble refinement: several agents suggest improvements to one chosen solution.
Following Single Responsibility Principle - handles suggestion collection and refinement only.
"""

import asyncio
import uuid
import warnings
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .agent import Agent
from .brainstorming_coordinator import BrainstormingCoordinator
from .enums import SuggestionPriority
from .exceptions import AgentFailureWarning
from .models import (
    AgentSolution, EnsembleRefinementResult, EvaluationReport, ImprovementSuggestion,
    ProjectContext, Task
)
from .orchestration_events import EventLogger
from .solution_evaluator import SolutionEvaluator
from .task_deviation_checker import HeuristicDeviationChecker, TaskDeviationChecker


# Aspect each role reviews when asked for a suggestion
AGENT_ASPECTS: Dict[str, str] = {
    "backend": "performance",
    "frontend": "quality",
    "architect": "maintainability",
    "analyst": "performance",
    "qa": "quality",
    "devops": "security",
}
DEFAULT_ASPECT = "quality"

# Roles recruited when a self-assessed criterion is weak
WEAK_ASPECT_AGENTS: List[Tuple[str, Tuple[str, ...]]] = [
    ("quality", ("qa", "frontend")),
    ("performance", ("backend", "analyst")),
    ("security", ("backend", "devops")),
    ("maintainability", ("architect", "backend")),
    ("compliance", ("qa", "architect")),
]

WEAK_THRESHOLD = 0.7
MAX_REVIEWERS = 4
TOP_SUGGESTIONS = 3
MIN_RELEVANCE = 0.7
MIN_SCORE = 0.5


class EnsembleRefinement:
    """
    Refines a solution with improvement suggestions from other agents.

    Reviewers are picked by the solution's weak self-assessed criteria, or
    every other available agent when none is weak. The top suggestions are
    handed back to the solution's author through the coordinator's
    `refine_solution`; without the author they are folded into the solution
    text. The candidate is then validated against the original task and
    kept only when it passes.
    """

    def __init__(
        self,
        evaluator: SolutionEvaluator,
        coordinator: Optional[BrainstormingCoordinator] = None,
        deviation_checker: Optional[TaskDeviationChecker] = None,
        event_logger: Optional[EventLogger] = None
    ):
        self.evaluator = evaluator
        self.coordinator = coordinator
        self.deviation_checker = deviation_checker or HeuristicDeviationChecker()
        self.event_logger = event_logger or EventLogger()

    async def refine(
        self,
        solution: AgentSolution,
        original_task: Task,
        agents: Dict[str, Agent],
        context: ProjectContext,
        evaluation_before: Optional[EvaluationReport] = None
    ) -> EnsembleRefinementResult:
        if evaluation_before is None:
            evaluation_before = await self.evaluator.evaluate_solution(solution, context, original_task)

        reviewers = self.select_agents(solution, agents)
        suggestions = self.rank_suggestions(
            await self.collect_suggestions(solution, original_task, reviewers, context),
            evaluation_before
        )
        if not suggestions:
            self.event_logger.log("ensemble_refinement", original_task.id, agent_id=solution.agent_id,
                                  status="degraded", suggestions=0)
            return EnsembleRefinementResult(
                original_solution=solution,
                refined_solution=solution,
                suggestions=[],
                applied_suggestions=[],
                improvement_score=0.0,
                evaluation_before=evaluation_before,
                evaluation_after=evaluation_before,
                reasoning="Received no improvement suggestions.",
            )

        candidate = await self._apply_suggestions(
            solution, suggestions[:TOP_SUGGESTIONS], original_task, agents, context
        )
        evaluation_after = await self.evaluator.evaluate_solution(candidate, context, original_task)
        errors, warnings_ = await self.validate(candidate, original_task, evaluation_after)
        improvement = max(0.0, evaluation_after.score - evaluation_before.score)
        applied = [
            s.suggestion for s in suggestions
            if s.priority == SuggestionPriority.HIGH or s.confidence > 0.7
        ]

        self.event_logger.log(
            "ensemble_refinement", original_task.id, agent_id=solution.agent_id,
            status="success" if not errors else "degraded",
            suggestions=len(suggestions), before=evaluation_before.score,
            after=evaluation_after.score, errors=errors
        )
        return EnsembleRefinementResult(
            original_solution=solution,
            refined_solution=candidate if not errors else solution,
            suggestions=suggestions,
            applied_suggestions=applied,
            improvement_score=improvement,
            evaluation_before=evaluation_before,
            evaluation_after=evaluation_after,
            reasoning=self._reasoning(suggestions, improvement, errors, warnings_),
            validation_errors=errors,
            validation_warnings=warnings_,
        )

    def select_agents(self, solution: AgentSolution, agents: Dict[str, Agent]) -> Dict[str, Agent]:
        evaluation = solution.evaluation
        selected: Dict[str, Agent] = {}
        for criterion, roles in WEAK_ASPECT_AGENTS:
            if getattr(evaluation, criterion) >= WEAK_THRESHOLD:
                continue
            for role in roles:
                if role in agents and role not in selected:
                    selected[role] = agents[role]

        if not selected:
            selected = {a: agent for a, agent in agents.items() if a != solution.agent_id}
        return dict(list(selected.items())[:MAX_REVIEWERS])

    async def collect_suggestions(
        self,
        solution: AgentSolution,
        original_task: Task,
        agents: Dict[str, Agent],
        context: ProjectContext
    ) -> List[ImprovementSuggestion]:
        """Ask every reviewer concurrently; failed reviewers are skipped"""
        agent_ids = list(agents)
        results = await asyncio.gather(
            *(
                agents[a].suggest_improvement(
                    solution, original_task, AGENT_ASPECTS.get(a, DEFAULT_ASPECT), context
                )
                for a in agent_ids
            ),
            return_exceptions=True
        )

        suggestions = []
        for agent_id, result in zip(agent_ids, results):
            if isinstance(result, Exception):
                warnings.warn(f"Suggestion by agent {agent_id} failed: {result}", AgentFailureWarning)
                self.event_logger.log("suggestion_failed", original_task.id, agent_id=agent_id,
                                      status="failed", error=str(result))
            elif result is not None:
                result.confidence = max(0.0, min(1.0, result.confidence))
                suggestions.append(result)
        return suggestions

    @staticmethod
    def rank_suggestions(
        suggestions: List[ImprovementSuggestion],
        evaluation: EvaluationReport
    ) -> List[ImprovementSuggestion]:
        """Order by confidence plus priority and weak-aspect bonuses, highest first"""
        def priority_score(s: ImprovementSuggestion) -> float:
            score = s.confidence
            if s.priority == SuggestionPriority.HIGH:
                score += 0.3
            elif s.priority == SuggestionPriority.MEDIUM:
                score += 0.1
            if evaluation.breakdown.get(s.target_aspect, 0.5) < 0.6:
                score += 0.2
            return score

        return sorted(suggestions, key=priority_score, reverse=True)

    async def validate(
        self,
        candidate: AgentSolution,
        original_task: Task,
        evaluation: EvaluationReport
    ) -> Tuple[List[str], List[str]]:
        """Errors reject the candidate; warnings are only reported"""
        errors: List[str] = []
        warnings_: List[str] = []

        deviation = evaluation.deviation
        if deviation is None:
            deviation = await self.deviation_checker.check_deviation(original_task, candidate)
        if deviation.relevance < MIN_RELEVANCE:
            errors.append(f"Low relevance of refined solution: {deviation.relevance * 100:.0f}%")
        if deviation.missing_requirements:
            warnings_.append(f"Missing requirements: {', '.join(deviation.missing_requirements[:2])}")
        if evaluation.score < MIN_SCORE:
            errors.append(f"Refined solution scores too low: {evaluation.score:.2f}")
        return errors, warnings_

    async def _apply_suggestions(
        self,
        solution: AgentSolution,
        suggestions: List[ImprovementSuggestion],
        original_task: Task,
        agents: Dict[str, Agent],
        context: ProjectContext
    ) -> AgentSolution:
        improvements = "\n".join(
            f"- [{s.target_aspect}] {s.suggestion} ({s.reasoning})" for s in suggestions
        )
        author = agents.get(solution.agent_id)
        if author is not None and self.coordinator is not None:
            try:
                return await self.coordinator.refine_solution(
                    solution, f"Improvements suggested by other agents:\n{improvements}",
                    author, original_task, context
                )
            except Exception as e:
                warnings.warn(
                    f"Refinement by agent {solution.agent_id} failed, folding suggestions in: {e}",
                    AgentFailureWarning
                )

        details = solution.solution
        return replace(
            solution,
            id=f"refined-{solution.id}-{uuid.uuid4().hex[:6]}",
            timestamp=datetime.now(),
            solution=replace(
                details,
                description=f"{details.description}\n\nImprovements:\n{improvements}",
                approach=(
                    f"{details.approach}\n\nApplied improvements: "
                    f"{'; '.join(s.suggestion for s in suggestions)}"
                ),
            ),
            reasoning=(
                f"{solution.reasoning}\n\nRefined with suggestions from: "
                f"{'; '.join(f'{s.agent_name}: {s.suggestion}' for s in suggestions)}"
            ),
        )

    @staticmethod
    def _reasoning(
        suggestions: List[ImprovementSuggestion],
        improvement: float,
        errors: List[str],
        warnings_: List[str]
    ) -> str:
        parts = [f"Received {len(suggestions)} improvement suggestions."]
        if improvement > 0.1:
            parts.append(f"Score improved by {improvement * 100:.1f}%.")
        parts.append(f"Top suggestion from {suggestions[0].agent_name}: {suggestions[0].suggestion}")
        if errors:
            parts.append(f"Refined solution rejected: {', '.join(errors)}")
        if warnings_:
            parts.append(f"Warnings: {', '.join(warnings_)}")
        return "\n".join(parts)
