"""
Self-learning orchestrator tying graph, brainstorming, evaluation and learning together.
Following Single Responsibility Principle - handles the task-to-decision loop only.
"""

import time
import uuid
import warnings
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .agent import Agent
from .brainstorming_coordinator import BrainstormingCoordinator, ObserverCallback
from .config_loader import ConfigLoader, CouncilConfig
from .dependency_graph import DependencyGraph
from .enums import DecisionType, TaskStatus
from .ensemble_refinement import EnsembleRefinement
from .exceptions import AgentFailureWarning, OrchestrationError
from .knowledge_base import KnowledgeBase
from .learning_engine import LearningEngine
from .models import (
    AgentSolution, ConsolidatedSolution, Decision, DecisionDetails, DecisionOutcome,
    EvaluationReport, ProjectContext, RankedSolutions, Task
)
from .orchestration_events import EventLogger
from .project_scanner import ProjectScanner
from .solution_evaluator import SolutionEvaluator
from .state_storage import FileStateStorage, StateStorage
from .task_deviation_checker import HeuristicDeviationChecker, TaskDeviationChecker


SolutionExecutor = Callable[[AgentSolution, Task], Awaitable[bool]]


@dataclass
class BrainstormingResult:
    """Outcome of one brainstorming round"""
    session_id: str
    consolidated: ConsolidatedSolution
    ranked: RankedSolutions


@dataclass
class TaskResult:
    """Final solution chosen for a task and the decision recorded for it"""
    task: Task
    solution: AgentSolution
    report: EvaluationReport
    decision: Decision
    refined: bool = False


class SelfLearningOrchestrator:
    """
    Runs the full loop for a task: recommend agents, brainstorm, rank,
    refine when the best score is below the threshold, record the decision.

    Collaborators are built from the workspace configuration unless passed
    in. `start()` must be awaited before running tasks.
    """

    def __init__(
        self,
        workspace_path: Path,
        agents: Dict[str, Agent],
        config: Optional[CouncilConfig] = None,
        storage: Optional[StateStorage] = None,
        deviation_checker: Optional[TaskDeviationChecker] = None,
        coordinator: Optional[BrainstormingCoordinator] = None,
        event_logger: Optional[EventLogger] = None
    ):
        self.workspace_path = Path(workspace_path)
        self.agents = dict(agents)
        self.config_loader = ConfigLoader(self.workspace_path)
        self.config = config or self.config_loader.load()
        self.storage = storage or FileStateStorage()

        if event_logger is None:
            log_file = self.config_loader.resolve(self.config.event_log) if self.config.event_log else None
            event_logger = EventLogger(log_file)
        self.event_logger = event_logger

        self.deviation_checker = deviation_checker or HeuristicDeviationChecker()
        self.dependency_graph = DependencyGraph(
            self.workspace_path,
            storage=self.storage,
            cache_ttl=self.config.cache_ttl,
            max_depth=self.config.max_depth,
            max_age=timedelta(hours=self.config.graph_max_age_hours),
            event_logger=self.event_logger,
        )
        self.knowledge_base = KnowledgeBase(
            self.workspace_path,
            storage=self.storage,
            history_limit=self.config.history_limit,
        )
        self.learning_engine = LearningEngine(
            self.knowledge_base, storage=self.storage, event_logger=self.event_logger
        )
        self.evaluator = SolutionEvaluator(
            dependency_graph=self.dependency_graph,
            deviation_checker=self.deviation_checker,
            weights=self.config.evaluation_weights,
        )
        self.coordinator = coordinator or BrainstormingCoordinator(
            deviation_checker=self.deviation_checker,
            timeout=self.config.session_timeout,
            event_logger=self.event_logger,
        )
        self.ensemble = EnsembleRefinement(
            self.evaluator,
            coordinator=self.coordinator,
            deviation_checker=self.deviation_checker,
            event_logger=self.event_logger,
        )
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load or build the graph, load knowledge and learned strategies"""
        self.dependency_graph.initialize()
        self.knowledge_base.initialize()
        if self.learning_engine.load_strategies() and not self.config.evaluation_weights:
            self.evaluator.set_weights(self.learning_engine.get_evaluation_weights())
        self._started = True
        self.event_logger.log("orchestrator_started", str(self.workspace_path), status="success",
                              agents=sorted(self.agents))

    async def stop(self) -> None:
        """Cancel running sessions and persist knowledge and strategies"""
        self.coordinator.dispose()
        self.dependency_graph.dispose()
        self.knowledge_base.save()
        self.learning_engine.save_strategies()
        self._started = False
        self.event_logger.log("orchestrator_stopped", str(self.workspace_path))
        self.event_logger.flush()

    def analyze_project(self, profile: Optional[Dict[str, Any]] = None) -> ProjectContext:
        """
        Scan the workspace into the knowledge base.

        Raises:
            WorkspaceMissingError: If the workspace does not exist
        """
        structure = ProjectScanner(self.workspace_path, self.config.max_depth).scan()
        self.knowledge_base.update_structure(structure)
        self.knowledge_base.update_dependencies(self.dependency_graph.get_adjacency())
        if profile is not None:
            self.knowledge_base.update_profile(profile)
        self.knowledge_base.save()
        return self.knowledge_base.build_context()

    # ------------------------------------------------------------------
    # Task loop
    # ------------------------------------------------------------------

    async def run_brainstorming(
        self,
        task: Task,
        agent_ids: Optional[List[str]] = None,
        thoughts_callback: Optional[ObserverCallback] = None
    ) -> BrainstormingResult:
        """
        Brainstorm over a task with the given or recommended agents.

        Raises:
            OrchestrationError: If no agent produced a solution
        """
        self._require_started()
        if agent_ids is None:
            agent_ids = self.learning_engine.recommend_agents(task, sorted(self.agents))
        context = self.knowledge_base.build_context()

        session = await self.coordinator.initiate_brainstorming(
            task, agent_ids, self.agents, context, thoughts_callback
        )
        solutions = session.ordered_solutions()
        if not solutions:
            raise OrchestrationError(
                f"No solutions were produced for task {task.id}",
                session_id=session.id,
                context={"status": session.status.value, "agents": list(agent_ids)}
            )

        consolidated = await self.coordinator.consolidate_solutions(
            solutions, task, dict(session.deviation_results)
        )
        ranked = await self.evaluator.compare_solutions(consolidated.solutions, context, task)
        return BrainstormingResult(session_id=session.id, consolidated=consolidated, ranked=ranked)

    async def execute_task(
        self,
        task: Task,
        executor: Optional[SolutionExecutor] = None,
        thoughts_callback: Optional[ObserverCallback] = None
    ) -> TaskResult:
        """
        Choose a solution for a task and record the decision.

        The top-ranked on-task solution is taken; below the refinement
        threshold it gets one refinement round (by its own agent, or by the
        ensemble when `ensemble_refinement` is set), and the refined
        solution is kept only if it scores higher. A failed refinement
        keeps the unrefined solution. With an `executor`, its
        result is the decision outcome; without one, the solution counts as
        successful when its score meets the threshold.
        """
        task.status = TaskStatus.IN_PROGRESS
        try:
            result = await self.run_brainstorming(task, thoughts_callback=thoughts_callback)
        except OrchestrationError:
            task.status = TaskStatus.BLOCKED
            raise

        context = self.knowledge_base.build_context()
        report = result.ranked.best
        solution = report.solution
        decision_type = DecisionType.SELECTED
        refined = False

        if report.score < self.config.refinement_threshold:
            try:
                candidate_report = await self._refine(report, task, context)
            except Exception as e:
                warnings.warn(f"Refinement of {solution.id} failed, keeping it as is: {e}", AgentFailureWarning)
                self.event_logger.log("refinement_failed", task.id, agent_id=solution.agent_id,
                                      status="failed", error=str(e))
                candidate_report = None
            if candidate_report is not None and candidate_report.score > report.score:
                solution, report = candidate_report.solution, candidate_report
                decision_type = DecisionType.REFINED
                refined = True

        started = time.monotonic()
        if executor is not None:
            success = await executor(solution, task)
        else:
            success = report.score >= self.config.refinement_threshold
        execution_time = time.monotonic() - started

        task.assigned_agent = solution.agent_id
        task.status = TaskStatus.COMPLETED if success else TaskStatus.BLOCKED
        decision = self.record_decision(task, solution, report, success, execution_time, decision_type)
        return TaskResult(task=task, solution=solution, report=report, decision=decision, refined=refined)

    async def _refine(
        self,
        report: EvaluationReport,
        task: Task,
        context: ProjectContext
    ) -> Optional[EvaluationReport]:
        """Report of the refined candidate, or None when nothing could refine it"""
        solution = report.solution
        if self.config.ensemble_refinement:
            result = await self.ensemble.refine(solution, task, self.agents, context, evaluation_before=report)
            if result.refined_solution is solution:
                return None
            return result.evaluation_after

        agent = self.agents.get(solution.agent_id)
        if agent is None:
            return None
        candidate = await self.coordinator.refine_solution(
            solution, self.refinement_feedback(report), agent, task, context
        )
        candidate_report = await self.evaluator.evaluate_solution(candidate, context, task)
        self.event_logger.log(
            "solution_refined", task.id, agent_id=agent.agent_id,
            before=report.score, after=candidate_report.score
        )
        return candidate_report

    def record_decision(
        self,
        task: Task,
        solution: AgentSolution,
        report: EvaluationReport,
        success: bool,
        execution_time: float = 0.0,
        decision_type: DecisionType = DecisionType.SELECTED
    ) -> Decision:
        """Append a decision, with lessons drawn from the evaluation, and persist"""
        decision = Decision(
            id=f"decision-{uuid.uuid4().hex[:12]}",
            task_id=task.id,
            task_type=task.type,
            decision=DecisionDetails(
                type=decision_type,
                solution_id=solution.id,
                agent_id=solution.agent_id,
                reasoning=solution.reasoning,
            ),
            outcome=DecisionOutcome(
                success=success,
                execution_time=execution_time,
                files_changed=len(solution.solution.files_to_modify),
                quality=report.score,
                issues=list(report.weaknesses),
            ),
            lessons=(
                [f"Strength: {s}" for s in report.strengths]
                + [f"Weakness: {w}" for w in report.weaknesses]
                + [f"Recommendation: {r}" for r in report.recommendations]
            ),
        )
        self.knowledge_base.add_decision(decision)
        self.knowledge_base.save()
        self.event_logger.log(
            "decision_recorded", task.id, agent_id=solution.agent_id,
            status="success" if success else "failed", quality=report.score
        )
        return decision

    def learn(self) -> bool:
        """Run a learning pass and apply the learned evaluation weights"""
        if not self.learning_engine.learn():
            return False
        if not self.config.evaluation_weights:
            self.evaluator.set_weights(self.learning_engine.get_evaluation_weights())
        self.learning_engine.save_strategies()
        return True

    @staticmethod
    def refinement_feedback(report: EvaluationReport) -> str:
        lines = ["The current solution needs work:"]
        lines.extend(f"- {w}" for w in report.weaknesses)
        if report.recommendations:
            lines.append("Recommendations:")
            lines.extend(f"- {r}" for r in report.recommendations)
        return "\n".join(lines)

    def _require_started(self) -> None:
        if not self._started:
            raise OrchestrationError("Orchestrator is not started; await start() first")
