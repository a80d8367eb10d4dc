"""
Brainstorming coordinator running several agents concurrently over one task.
Following Single Responsibility Principle - handles session lifecycle and consolidation only.
"""

import asyncio
import uuid
import warnings
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .agent import Agent
from .enums import DeviationLevel, SessionStatus
from .exceptions import (
    AgentFailureWarning, ConsolidationFallbackWarning, OrchestrationError, ValidationError
)
from .models import (
    AgentSolution, AgentThoughts, BrainstormingSession, ConsolidatedSolution,
    DeviationResult, ProjectContext, Task, TaskVariation
)
from .orchestration_events import EventLogger
from .session_store import InMemorySessionStore, SessionStore
from .task_deviation_checker import (
    HeuristicDeviationChecker, TaskDeviationChecker, is_on_task, relevance_of, relevance_sort_key
)
from .task_variation_generator import HeuristicVariationGenerator, TaskVariationGenerator


ObserverCallback = Callable[[str, AgentThoughts], None]


@dataclass
class _SessionRuntime:
    """Event-loop resources owned by one session"""
    finished: asyncio.Event
    timer: Optional[asyncio.TimerHandle] = None
    tasks: List["asyncio.Task[None]"] = field(default_factory=list)


class BrainstormingCoordinator:
    """
    Fans a task out to agents and collects their solutions.

    Each session goes `active -> completed` when every agent has settled, or
    `active -> cancelled` when the session timer fires first (the session is
    then evicted from the active registry). Terminal sessions accept no
    further writes: solutions produced after the timeout are discarded.
    """

    DEFAULT_TIMEOUT = 600.0  # seconds
    REFINEMENT_RELEVANCE = 0.7

    def __init__(
        self,
        session_store: Optional[SessionStore] = None,
        variation_generator: Optional[TaskVariationGenerator] = None,
        deviation_checker: Optional[TaskDeviationChecker] = None,
        timeout: float = DEFAULT_TIMEOUT,
        event_logger: Optional[EventLogger] = None
    ):
        self.session_store = session_store or InMemorySessionStore()
        self.variation_generator = variation_generator or HeuristicVariationGenerator()
        self.deviation_checker = deviation_checker or HeuristicDeviationChecker()
        self.timeout = timeout
        self.event_logger = event_logger or EventLogger()
        self._runtime: Dict[str, _SessionRuntime] = {}

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start_brainstorming(
        self,
        task: Task,
        agent_ids: List[str],
        agents: Dict[str, Agent],
        context: ProjectContext,
        thoughts_callback: Optional[ObserverCallback] = None,
        timeout: Optional[float] = None
    ) -> BrainstormingSession:
        """
        Create a session and dispatch every agent; returns without waiting.

        Variations are generated once, before dispatch. An agent whose
        variation is missing gets the original task. Repeated agent ids run
        once.
        """
        session = BrainstormingSession(
            id=f"brainstorm-{task.id}-{uuid.uuid4().hex[:8]}",
            task_id=task.id,
            original_task=task,
            agent_ids=list(dict.fromkeys(agent_ids)),
        )
        for agent_id in session.agent_ids:
            session.thoughts[agent_id] = []
        for variation in await self._create_task_variations(task, session.agent_ids):
            session.task_variations[variation.agent_id] = variation

        runtime = _SessionRuntime(finished=asyncio.Event())
        self._runtime[session.id] = runtime
        self.session_store.add(session)
        self.event_logger.log("session_started", session.id, agents=list(session.agent_ids), task_id=task.id)

        if not session.agent_ids:
            self._finish(session, SessionStatus.COMPLETED)
            return session

        loop = asyncio.get_running_loop()
        runtime.timer = loop.call_later(
            timeout if timeout is not None else self.timeout, self._on_timeout, session.id
        )
        for agent_id in session.agent_ids:
            runtime.tasks.append(loop.create_task(
                self._run_agent(session, agent_id, agents.get(agent_id), context, thoughts_callback)
            ))
        return session

    async def initiate_brainstorming(
        self,
        task: Task,
        agent_ids: List[str],
        agents: Dict[str, Agent],
        context: ProjectContext,
        thoughts_callback: Optional[ObserverCallback] = None,
        timeout: Optional[float] = None
    ) -> BrainstormingSession:
        """Run a session until every agent settles or the timeout fires"""
        session = await self.start_brainstorming(task, agent_ids, agents, context, thoughts_callback, timeout)
        await self._runtime[session.id].finished.wait()
        return session

    async def wait_for_all_agents(self, session_id: str, timeout: Optional[float] = None) -> List[AgentSolution]:
        """
        Wait until the session is terminal and return its solutions in agent order.

        Raises:
            OrchestrationError: If the session is unknown or the wait times out
        """
        session = self.session_store.lookup(session_id)
        if session is None:
            raise OrchestrationError("Session not found", session_id=session_id)

        runtime = self._runtime.get(session_id)
        if session.is_active and runtime is not None:
            try:
                await asyncio.wait_for(runtime.finished.wait(), timeout if timeout is not None else self.timeout)
            except asyncio.TimeoutError:
                raise OrchestrationError(
                    "Timeout waiting for agents",
                    session_id=session_id,
                    context={"completed": len(session.completed_agents), "total": session.total_agents}
                )
        return session.ordered_solutions()

    def get_session(self, session_id: str) -> Optional[BrainstormingSession]:
        return self.session_store.lookup(session_id)

    def get_session_status(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Progress counters; also answers for sessions evicted by a timeout"""
        session = self.session_store.lookup(session_id)
        if session is None:
            return None
        return {
            "status": session.status.value,
            "completed": len(session.completed_agents),
            "total": session.total_agents,
            "solutions": len(session.solutions),
        }

    def cancel_session(self, session_id: str) -> bool:
        session = self.session_store.get(session_id)
        if session is None or not session.is_active:
            return False
        self._finish(session, SessionStatus.CANCELLED, reason="cancelled")
        return True

    def cleanup_old_sessions(self, max_age: float = 3600.0) -> int:
        """Forget finished sessions older than max_age seconds"""
        now = datetime.now()
        stale = [
            s.id for s in self.session_store.list_sessions()
            if not s.is_active and (now - s.started_at).total_seconds() > max_age
        ]
        for session_id in stale:
            self.session_store.remove(session_id)
            self._runtime.pop(session_id, None)
        return len(stale)

    def dispose(self) -> None:
        """Cancel active sessions and any agent work still in flight"""
        for session in self.session_store.list_sessions():
            if session.is_active:
                self._finish(session, SessionStatus.CANCELLED, reason="disposed")
        for runtime in self._runtime.values():
            for agent_task in runtime.tasks:
                if not agent_task.done():
                    agent_task.cancel()
        self._runtime.clear()

    # ------------------------------------------------------------------
    # Consolidation and refinement
    # ------------------------------------------------------------------

    async def consolidate_solutions(
        self,
        solutions: List[AgentSolution],
        original_task: Optional[Task] = None,
        deviation_results: Optional[Dict[str, DeviationResult]] = None
    ) -> ConsolidatedSolution:
        """
        Rank solutions and pick the best one.

        With deviation data, off-task solutions are filtered out; if that
        leaves nothing, the unfiltered set is used and the fallback is
        reported. Ranking is by relevance, then overall score; the best
        solution maximizes `relevance*0.4 + overall*0.6`.

        Raises:
            ValidationError: If no solutions are given
        """
        if not solutions:
            raise ValidationError("No solutions to consolidate", field="solutions", value=[])

        ranked = list(solutions)
        used_fallback = False
        deviations = deviation_results if original_task is not None else None

        if deviations is not None:
            ranked = [s for s in solutions if is_on_task(deviations.get(s.agent_id))]
            if not ranked:
                used_fallback = True
                ranked = list(solutions)
                warnings.warn(
                    f"All {len(solutions)} solutions deviate from task {solutions[0].task_id}; "
                    f"consolidating the unfiltered set",
                    ConsolidationFallbackWarning
                )
                self.event_logger.log(
                    "consolidation_fallback", solutions[0].task_id, status="degraded",
                    solutions=[s.id for s in solutions]
                )
            ranked.sort(key=relevance_sort_key(deviations))

            def blended(s: AgentSolution) -> float:
                return relevance_of(deviations.get(s.agent_id)) * 0.4 + s.evaluation.overall_score * 0.6
            best = self._argmax(ranked, blended)
        else:
            best = self._argmax(ranked, lambda s: s.evaluation.overall_score)

        return ConsolidatedSolution(
            id=f"consolidated-{uuid.uuid4().hex[:8]}",
            task_id=ranked[0].task_id,
            solutions=ranked,
            best_solution=best,
            reasoning=self._consolidation_reasoning(ranked, best, deviations),
            used_fallback=used_fallback,
        )

    async def refine_solution(
        self,
        solution: AgentSolution,
        feedback: str,
        agent: Agent,
        task: Task,
        context: ProjectContext
    ) -> AgentSolution:
        """One think/propose round on a task augmented with feedback"""
        refined_task = replace(
            task,
            description=(
                f"{task.description}\n\nRefinement feedback: {feedback}"
                f"\n\nCurrent solution: {solution.solution.title}"
            ),
        )
        thoughts = await agent.think(refined_task, context)
        return await agent.propose_solution(refined_task, thoughts, context)

    async def monitor_task_alignment(self, session_id: str, original_task: Task) -> Dict[str, DeviationResult]:
        """Re-check every recorded solution against the original task"""
        session = self._require_session(session_id)
        results: Dict[str, DeviationResult] = {}
        for solution in session.ordered_solutions():
            results[solution.agent_id] = await self.deviation_checker.check_deviation(original_task, solution)
        if session.is_active:
            session.deviation_results.update(results)
        return results

    async def trigger_refinement_if_needed(
        self,
        session_id: str,
        original_task: Task,
        agents: Dict[str, Agent],
        context: ProjectContext
    ) -> Dict[str, AgentSolution]:
        """
        Refine each solution whose deviation is high or relevance below 0.7.

        Returns refined solutions by agent id; the session's own recorded
        solutions are left as produced.
        """
        session = self._require_session(session_id)
        refined: Dict[str, AgentSolution] = {}

        for solution in session.ordered_solutions():
            agent_id = solution.agent_id
            deviation = session.deviation_results.get(agent_id)
            agent = agents.get(agent_id)
            if deviation is None or agent is None:
                continue
            if deviation.deviation_level != DeviationLevel.HIGH and deviation.relevance >= self.REFINEMENT_RELEVANCE:
                continue
            try:
                refined[agent_id] = await self.refine_solution(
                    solution, deviation.feedback, agent, original_task, context
                )
            except Exception as e:
                warnings.warn(f"Refinement by agent {agent_id} failed: {e}", AgentFailureWarning)
                self.event_logger.log("refinement_failed", session_id, agent_id=agent_id,
                                      status="failed", error=str(e))
        return refined

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _create_task_variations(self, task: Task, agent_ids: List[str]) -> List[TaskVariation]:
        try:
            return await self.variation_generator.generate_variations(task, agent_ids, 1)
        except Exception as e:
            warnings.warn(f"Task variation failed for {task.id}, using original task: {e}", AgentFailureWarning)
            return []

    async def _run_agent(
        self,
        session: BrainstormingSession,
        agent_id: str,
        agent: Optional[Agent],
        context: ProjectContext,
        thoughts_callback: Optional[ObserverCallback]
    ) -> None:
        try:
            if agent is None:
                self._agent_failed(session, agent_id, "agent not found")
                return

            variation = session.task_variations.get(agent_id)
            task_for_agent = variation.variation if variation else session.original_task
            agent.set_thoughts_callback(self._make_observer(session, agent_id, thoughts_callback))

            try:
                thoughts = await agent.think(task_for_agent, context)
                if session.is_active:
                    session.thoughts.setdefault(agent_id, []).append(thoughts)
                solution = await agent.propose_solution(task_for_agent, thoughts, context)
            except Exception as e:
                self._agent_failed(session, agent_id, e)
                return

            if not session.is_active:
                self.event_logger.log("late_solution_discarded", session.id, agent_id=agent_id, status="degraded")
                return
            session.solutions[agent_id] = solution

            try:
                deviation = await self.deviation_checker.check_deviation(session.original_task, solution)
            except Exception as e:
                warnings.warn(f"Deviation check failed for agent {agent_id}: {e}", AgentFailureWarning)
            else:
                if session.is_active:
                    session.deviation_results[agent_id] = deviation

            self.event_logger.log(
                "agent_completed", session.id, agent_id=agent_id, status="success",
                relevance=session.deviation_results[agent_id].relevance
                if agent_id in session.deviation_results else None
            )
        finally:
            self._mark_completed(session, agent_id)

    def _make_observer(
        self,
        session: BrainstormingSession,
        agent_id: str,
        callback: Optional[ObserverCallback]
    ) -> Callable[[AgentThoughts], None]:
        def observe(thoughts: AgentThoughts) -> None:
            if session.is_active:
                session.thoughts.setdefault(agent_id, []).append(thoughts)
            if callback is None:
                return
            try:
                callback(agent_id, thoughts)
            except Exception as e:
                warnings.warn(f"Thoughts observer failed for agent {agent_id}: {e}", AgentFailureWarning)
        return observe

    def _agent_failed(self, session: BrainstormingSession, agent_id: str, error: Any) -> None:
        warnings.warn(f"Agent {agent_id} failed in session {session.id}: {error}", AgentFailureWarning)
        self.event_logger.log("agent_failed", session.id, agent_id=agent_id, status="failed", error=str(error))

    def _mark_completed(self, session: BrainstormingSession, agent_id: str) -> None:
        if not session.is_active:
            return
        session.completed_agents.add(agent_id)
        if len(session.completed_agents) >= session.total_agents:
            self._finish(session, SessionStatus.COMPLETED)

    def _on_timeout(self, session_id: str) -> None:
        session = self.session_store.get(session_id)
        if session is not None and session.is_active:
            self._finish(session, SessionStatus.CANCELLED, reason="timeout")

    def _finish(self, session: BrainstormingSession, status: SessionStatus, reason: Optional[str] = None) -> None:
        """The single terminal transition of a session"""
        if not session.is_active:
            return
        session.status = status
        session.finished_at = datetime.now()

        runtime = self._runtime.get(session.id)
        if runtime is not None:
            if runtime.timer is not None:
                runtime.timer.cancel()
                runtime.timer = None
            runtime.finished.set()
            if status == SessionStatus.COMPLETED:
                # nothing left to cancel
                runtime.tasks.clear()

        if status == SessionStatus.CANCELLED:
            self.session_store.evict(session.id)
            self.event_logger.log(
                "session_cancelled", session.id, status="degraded", reason=reason,
                completed=len(session.completed_agents), total=session.total_agents
            )
        else:
            self.event_logger.log(
                "session_completed", session.id, status="success", solutions=len(session.solutions)
            )

    def _require_session(self, session_id: str) -> BrainstormingSession:
        session = self.session_store.lookup(session_id)
        if session is None:
            raise OrchestrationError("Session not found", session_id=session_id)
        return session

    @staticmethod
    def _argmax(solutions: List[AgentSolution], score: Callable[[AgentSolution], float]) -> AgentSolution:
        best = solutions[0]
        for candidate in solutions[1:]:
            if score(candidate) > score(best):
                best = candidate
        return best

    @staticmethod
    def _consolidation_reasoning(
        solutions: List[AgentSolution],
        best: AgentSolution,
        deviations: Optional[Dict[str, DeviationResult]]
    ) -> str:
        deviation = deviations.get(best.agent_id) if deviations else None
        relevance_text = f" (relevance {deviation.relevance * 100:.0f}%)" if deviation else ""

        if len(solutions) == 1:
            return f"Single solution received from agent {best.agent_name}{relevance_text}."

        names = ", ".join(s.agent_name for s in solutions)
        reasoning = (
            f"Received {len(solutions)} solutions from agents: {names}. "
            f"Best solution proposed by {best.agent_name} with overall score "
            f"{best.evaluation.overall_score:.2f}{relevance_text}."
        )
        if deviation and deviation.deviation_level != DeviationLevel.NONE:
            reasoning += f" Deviation level: {deviation.deviation_level.value}."
        return reasoning
