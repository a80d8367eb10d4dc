"""
Multi-criteria scoring, ranking and merging of agent solutions.
Following Single Responsibility Principle - handles solution evaluation only.
"""

import math
import uuid
import warnings
from typing import Dict, List, Optional, Tuple

from .dependency_graph import DependencyGraph
from .enums import ChangeType, ImpactLevel
from .exceptions import ConsolidationFallbackWarning, ValidationError
from .models import (
    AgentSolution, CodeChange, DeviationResult, EvaluationReport, FileChange,
    ImpactAnalysis, MergedSolution, ProjectContext, RankedSolutions,
    SolutionEvaluation, Task
)
from .task_deviation_checker import TaskDeviationChecker, is_on_task, relevance_sort_key


AGENT_CRITERIA = ("quality", "performance", "security", "maintainability", "compliance")
CRITERIA = AGENT_CRITERIA + ("dependency_impact", "architecture", "task_alignment")

DEFAULT_WEIGHTS: Dict[str, float] = {
    "quality": 0.13,
    "performance": 0.13,
    "security": 0.13,
    "maintainability": 0.13,
    "compliance": 0.13,
    "dependency_impact": 0.13,
    "architecture": 0.09,
    "task_alignment": 0.13,
}

NEUTRAL_SCORE = 0.5
STRENGTH_THRESHOLD = 0.8
WEAKNESS_THRESHOLD = 0.6
RECOMMENDATION_THRESHOLD = 0.7

STRENGTH_TEXT = {
    "quality": "High code quality",
    "performance": "Good performance",
    "security": "Strong security",
    "maintainability": "Good maintainability",
    "compliance": "Fully compliant with project standards",
    "dependency_impact": "Minimal impact on dependent files",
    "architecture": "Consistent with project architecture",
    "task_alignment": "Closely aligned with the task",
}

WEAKNESS_TEXT = {
    "quality": "Low code quality",
    "performance": "Performance concerns",
    "security": "Potential security issues",
    "maintainability": "Hard to maintain",
    "compliance": "Incomplete compliance with project standards",
    "dependency_impact": "High impact on dependent files",
    "architecture": "Inconsistent with project architecture",
    "task_alignment": "Drifts from the original task",
}

RECOMMENDATION_TEXT = {
    "quality": "Improve code quality: clarify naming, add comments, improve readability",
    "performance": "Optimize performance: review algorithms and caching",
    "security": "Harden security: check for vulnerabilities and use safe patterns",
    "maintainability": "Improve maintainability: simplify structure, add documentation",
    "compliance": "Bring the solution in line with project standards",
    "dependency_impact": "Reduce dependency impact: reconsider the solution's footprint",
    "architecture": "Bring the solution in line with the project architecture",
    "task_alignment": "Refocus the solution on the original task requirements",
}


def _clamp(value: float) -> float:
    if value is None or math.isnan(value):
        return NEUTRAL_SCORE
    return max(0.0, min(1.0, float(value)))


def validate_weights(weights: Dict[str, float]) -> Dict[str, float]:
    """
    Check that weights cover every criterion, are non-negative and sum to 1.0.

    Raises:
        ValidationError: If any check fails
    """
    missing = [c for c in CRITERIA if c not in weights]
    unknown = [k for k in weights if k not in CRITERIA]
    if missing or unknown:
        raise ValidationError(
            "Evaluation weights must cover exactly the known criteria",
            field="weights",
            context={"missing": missing, "unknown": unknown}
        )
    if any(w < 0 for w in weights.values()):
        raise ValidationError("Evaluation weights must be non-negative", field="weights", value=weights)
    total = sum(weights.values())
    if not math.isclose(total, 1.0, abs_tol=1e-6):
        raise ValidationError("Evaluation weights must sum to 1.0", field="weights", value=round(total, 6))
    return {c: float(weights[c]) for c in CRITERIA}


class SolutionEvaluator:
    """
    Scores solutions over eight weighted criteria.

    Five criteria are the agent's own self-assessment; dependency impact,
    architecture fit and task alignment are computed here. The weighted sum
    is the report score, always within [0, 1].
    """

    def __init__(
        self,
        dependency_graph: Optional[DependencyGraph] = None,
        deviation_checker: Optional[TaskDeviationChecker] = None,
        weights: Optional[Dict[str, float]] = None
    ):
        self.dependency_graph = dependency_graph
        self.deviation_checker = deviation_checker
        self.weights = validate_weights(weights) if weights else dict(DEFAULT_WEIGHTS)

    def set_weights(self, weights: Dict[str, float]) -> None:
        self.weights = validate_weights(weights)

    async def evaluate_solution(
        self,
        solution: AgentSolution,
        context: ProjectContext,
        original_task: Optional[Task] = None
    ) -> EvaluationReport:
        dependency_score, impact = self._evaluate_dependency_impact(solution)
        alignment_score, deviation = await self._evaluate_task_alignment(solution, original_task)

        evaluation = solution.evaluation
        breakdown = {
            "quality": _clamp(evaluation.quality),
            "performance": _clamp(evaluation.performance),
            "security": _clamp(evaluation.security),
            "maintainability": _clamp(evaluation.maintainability),
            "compliance": _clamp(evaluation.compliance),
            "dependency_impact": _clamp(dependency_score),
            "architecture": _clamp(self._evaluate_architecture(solution, context)),
            "task_alignment": _clamp(alignment_score),
        }
        score = _clamp(sum(self.weights[c] * breakdown[c] for c in CRITERIA))

        return EvaluationReport(
            solution=solution,
            score=score,
            breakdown=breakdown,
            strengths=[STRENGTH_TEXT[c] for c in CRITERIA if breakdown[c] >= STRENGTH_THRESHOLD],
            weaknesses=[WEAKNESS_TEXT[c] for c in CRITERIA if breakdown[c] < WEAKNESS_THRESHOLD],
            recommendations=self._recommendations(solution, breakdown),
            impact=impact,
            deviation=deviation,
        )

    async def compare_solutions(
        self,
        solutions: List[AgentSolution],
        context: ProjectContext,
        original_task: Optional[Task] = None
    ) -> RankedSolutions:
        """
        Evaluate every solution and sort best first.

        Raises:
            ValidationError: If no solutions are given
        """
        if not solutions:
            raise ValidationError("No solutions to compare", field="solutions", value=[])

        reports = [await self.evaluate_solution(s, context, original_task) for s in solutions]
        # stable sort keeps input order among equal scores
        reports.sort(key=lambda r: r.score, reverse=True)

        average = {c: sum(r.breakdown[c] for r in reports) / len(reports) for c in CRITERIA}
        average["score"] = sum(r.score for r in reports) / len(reports)

        return RankedSolutions(reports=reports, best=reports[0], worst=reports[-1], average=average)

    async def merge_solutions(
        self,
        solutions: List[AgentSolution],
        context: ProjectContext,
        original_task: Optional[Task] = None
    ) -> MergedSolution:
        """
        Merge solutions into one: union of files, strongest change per file.

        With an original task, off-task solutions are dropped first; if that
        would drop all of them, the unfiltered set is merged and the
        fallback is reported.

        Raises:
            ValidationError: If no solutions are given
        """
        if not solutions:
            raise ValidationError("No solutions to merge", field="solutions", value=[])

        if len(solutions) == 1:
            only = solutions[0]
            return MergedSolution(
                id=f"merged-{uuid.uuid4().hex[:8]}",
                task_id=only.task_id,
                title=only.solution.title,
                description=only.solution.description,
                approach=only.solution.approach,
                files_to_modify=list(only.solution.files_to_modify),
                code_changes=list(only.solution.code_changes),
                evaluation=only.evaluation,
                reasoning=f"Used the single solution from {only.agent_name}",
                source_solutions=[only.id],
            )

        ranked = await self.compare_solutions(solutions, context, original_task)
        reports = {r.solution.id: r for r in ranked.reports}
        deviations: Dict[str, DeviationResult] = {
            r.solution.agent_id: r.deviation for r in ranked.reports if r.deviation is not None
        }

        selected = list(solutions)
        used_fallback = False
        if original_task is not None and deviations:
            selected = [s for s in solutions if is_on_task(deviations.get(s.agent_id))]
            if not selected:
                used_fallback = True
                selected = list(solutions)
                warnings.warn(
                    f"All {len(solutions)} solutions deviate from task {original_task.id}; "
                    f"merging the unfiltered set",
                    ConsolidationFallbackWarning
                )
            selected.sort(key=relevance_sort_key(deviations))

        files: List[str] = []
        strongest: Dict[str, Tuple[float, CodeChange]] = {}
        for solution in selected:
            score = reports[solution.id].score
            for path in solution.solution.files_to_modify:
                if path not in files:
                    files.append(path)
            for change in solution.solution.code_changes:
                held = strongest.get(change.file)
                if held is None or score > held[0]:
                    strongest[change.file] = (score, change)

        selected_reports = [reports[s.id] for s in selected]
        base = max(selected_reports, key=lambda r: r.score)
        n = len(selected_reports)
        merged_evaluation = SolutionEvaluation(
            quality=sum(r.breakdown["quality"] for r in selected_reports) / n,
            performance=sum(r.breakdown["performance"] for r in selected_reports) / n,
            security=sum(r.breakdown["security"] for r in selected_reports) / n,
            maintainability=sum(r.breakdown["maintainability"] for r in selected_reports) / n,
            compliance=sum(r.breakdown["compliance"] for r in selected_reports) / n,
            overall_score=sum(r.score for r in selected_reports) / n,
        )

        return MergedSolution(
            id=f"merged-{uuid.uuid4().hex[:8]}",
            task_id=base.solution.task_id,
            title=f"Merged solution: {base.solution.solution.title}",
            description=f"Combination of the strongest elements of {n} solutions",
            approach=base.solution.solution.approach,
            files_to_modify=files,
            code_changes=[change for _, change in strongest.values()],
            evaluation=merged_evaluation,
            reasoning=(
                f"Merged {n} solutions. The solution from {base.solution.agent_name} "
                f"was used as the base; the highest-scoring change was kept for each file."
            ),
            source_solutions=[s.id for s in selected],
            used_fallback=used_fallback,
        )

    # ------------------------------------------------------------------
    # Computed criteria
    # ------------------------------------------------------------------

    def _evaluate_dependency_impact(self, solution: AgentSolution) -> Tuple[float, Optional[ImpactAnalysis]]:
        if self.dependency_graph is None:
            return NEUTRAL_SCORE, None

        analysis = self.dependency_graph.get_impact_analysis(
            FileChange(file=f, type=ChangeType.MODIFY) for f in solution.solution.files_to_modify
        )
        affected = analysis.total_affected
        if affected > 20:
            score = 0.3
        elif affected > 10:
            score = 0.5
        elif affected > 5:
            score = 0.7
        elif affected > 0:
            score = 0.9
        else:
            score = 1.0

        if analysis.impact_level == ImpactLevel.HIGH:
            score *= 0.7
        elif analysis.impact_level == ImpactLevel.MEDIUM:
            score *= 0.85
        return score, analysis

    @staticmethod
    def _evaluate_architecture(solution: AgentSolution, context: ProjectContext) -> float:
        architecture = context.architecture
        if not architecture:
            return NEUTRAL_SCORE

        text = solution.solution.text.lower()
        if architecture.lower() in text:
            return 0.9
        if any(p and p.lower() in text for p in context.patterns):
            return 0.8
        return 0.6

    async def _evaluate_task_alignment(
        self,
        solution: AgentSolution,
        original_task: Optional[Task]
    ) -> Tuple[float, Optional[DeviationResult]]:
        if self.deviation_checker is None or original_task is None:
            return NEUTRAL_SCORE, None
        deviation = await self.deviation_checker.check_deviation(original_task, solution)
        return deviation.relevance, deviation

    @staticmethod
    def _recommendations(solution: AgentSolution, breakdown: Dict[str, float]) -> List[str]:
        recommendations = [
            RECOMMENDATION_TEXT[c] for c in CRITERIA if breakdown[c] < RECOMMENDATION_THRESHOLD
        ]
        if solution.solution.dependencies.impact == ImpactLevel.HIGH:
            recommendations.append("Warning: high dependency impact. A phased rollout is recommended.")
        return recommendations
