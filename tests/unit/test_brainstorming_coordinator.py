"""
Unit tests for BrainstormingCoordinator.
"""
import asyncio
import pytest

from agent_council.core.brainstorming_coordinator import BrainstormingCoordinator
from agent_council.core.enums import DeviationLevel, SessionStatus
from agent_council.core.exceptions import (
    AgentFailureWarning, ConsolidationFallbackWarning, OrchestrationError, ValidationError
)
from agent_council.core.orchestration_events import EventLogger


class TestBrainstormingSessions:
    """Test session lifecycle."""

    @pytest.mark.asyncio
    async def test_all_agents_complete(self, sample_task, project_context, fake_agent_class):
        """Test that a session completes once every agent settles."""
        agents = {"backend": fake_agent_class("backend"), "qa": fake_agent_class("qa")}
        coordinator = BrainstormingCoordinator()

        session = await coordinator.initiate_brainstorming(
            sample_task, ["backend", "qa"], agents, project_context
        )

        assert session.status == SessionStatus.COMPLETED
        assert [s.agent_id for s in session.ordered_solutions()] == ["backend", "qa"]
        assert set(session.deviation_results) == {"backend", "qa"}
        assert coordinator.get_session_status(session.id) == {
            "status": "completed", "completed": 2, "total": 2, "solutions": 2,
        }
        assert coordinator.event_logger.get_events(kind="session_completed", source=session.id)

    @pytest.mark.asyncio
    async def test_agents_receive_their_variation(self, sample_task, project_context, fake_agent_class):
        agent = fake_agent_class("backend")
        coordinator = BrainstormingCoordinator()

        await coordinator.initiate_brainstorming(sample_task, ["backend"], {"backend": agent}, project_context)

        assert "[Focus: performance, security]" in agent.seen_tasks[0].description

    @pytest.mark.asyncio
    async def test_timeout_cancels_session(self, sample_task, project_context, fake_agent_class):
        """Test that the session timer ends the session before a slow agent settles."""
        agents = {"backend": fake_agent_class("backend"), "qa": fake_agent_class("qa", delay=5.0)}
        coordinator = BrainstormingCoordinator(timeout=0.2)

        session = await coordinator.initiate_brainstorming(
            sample_task, ["backend", "qa"], agents, project_context
        )

        status = coordinator.get_session_status(session.id)
        assert status["status"] == "cancelled"
        assert status["completed"] < status["total"]
        assert coordinator.session_store.get(session.id) is None
        assert coordinator.get_session(session.id) is session
        assert [s.agent_id for s in await coordinator.wait_for_all_agents(session.id)] == ["backend"]

        coordinator.dispose()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_late_solution_is_discarded(self, sample_task, project_context, fake_agent_class):
        """Test that a solution produced after the timeout is not recorded."""
        agents = {"qa": fake_agent_class("qa", delay=0.3)}
        coordinator = BrainstormingCoordinator(timeout=0.1)

        session = await coordinator.initiate_brainstorming(sample_task, ["qa"], agents, project_context)
        await asyncio.sleep(0.4)

        assert session.status == SessionStatus.CANCELLED
        assert session.solutions == {}
        assert session.completed_agents == set()
        assert coordinator.event_logger.get_events(kind="late_solution_discarded")

    @pytest.mark.asyncio
    async def test_failing_agent_does_not_block_session(self, sample_task, project_context, fake_agent_class):
        agents = {"backend": fake_agent_class("backend"), "qa": fake_agent_class("qa", fail=True)}
        coordinator = BrainstormingCoordinator()

        with pytest.warns(AgentFailureWarning):
            session = await coordinator.initiate_brainstorming(
                sample_task, ["backend", "qa"], agents, project_context
            )

        assert session.status == SessionStatus.COMPLETED
        assert session.completed_agents == {"backend", "qa"}
        assert list(session.solutions) == ["backend"]
        failed = coordinator.event_logger.get_events(kind="agent_failed")
        assert [e.agent_id for e in failed] == ["qa"]

    @pytest.mark.asyncio
    async def test_unknown_agent_counts_as_settled(self, sample_task, project_context):
        coordinator = BrainstormingCoordinator()

        with pytest.warns(AgentFailureWarning, match="agent not found"):
            session = await coordinator.initiate_brainstorming(sample_task, ["ghost"], {}, project_context)

        assert session.status == SessionStatus.COMPLETED
        assert session.solutions == {}

    @pytest.mark.asyncio
    async def test_no_agents_completes_immediately(self, sample_task, project_context):
        coordinator = BrainstormingCoordinator()

        session = await coordinator.initiate_brainstorming(sample_task, [], {}, project_context)

        assert session.status == SessionStatus.COMPLETED
        assert await coordinator.wait_for_all_agents(session.id) == []

    @pytest.mark.asyncio
    async def test_thoughts_are_streamed(self, sample_task, project_context, fake_agent_class):
        received = []
        coordinator = BrainstormingCoordinator()

        session = await coordinator.initiate_brainstorming(
            sample_task, ["backend"], {"backend": fake_agent_class("backend")}, project_context,
            thoughts_callback=lambda agent_id, thoughts: received.append(agent_id),
        )

        assert received == ["backend"]
        assert len(session.thoughts["backend"]) == 2

    @pytest.mark.asyncio
    async def test_failing_observer_is_isolated(self, sample_task, project_context, fake_agent_class):
        def broken(agent_id, thoughts):
            raise RuntimeError("observer down")

        coordinator = BrainstormingCoordinator()
        with pytest.warns(AgentFailureWarning, match="observer"):
            session = await coordinator.initiate_brainstorming(
                sample_task, ["backend"], {"backend": fake_agent_class("backend")}, project_context,
                thoughts_callback=broken,
            )

        assert list(session.solutions) == ["backend"]

    @pytest.mark.asyncio
    async def test_repeated_agent_id_runs_once(self, sample_task, project_context, fake_agent_class):
        """Test that a duplicated agent id does not keep the session open until the timeout."""
        agent = fake_agent_class("backend")
        coordinator = BrainstormingCoordinator(timeout=5.0)

        session = await asyncio.wait_for(
            coordinator.initiate_brainstorming(
                sample_task, ["backend", "qa", "backend"], {"backend": agent, "qa": fake_agent_class("qa")},
                project_context
            ),
            timeout=2.0
        )

        assert session.status == SessionStatus.COMPLETED
        assert session.agent_ids == ["backend", "qa"]
        assert len(agent.seen_tasks) == 1
        assert coordinator.get_session_status(session.id) == {
            "status": "completed", "completed": 2, "total": 2, "solutions": 2,
        }

    @pytest.mark.asyncio
    async def test_completed_session_releases_agent_tasks(self, sample_task, project_context, fake_agent_class):
        coordinator = BrainstormingCoordinator()

        session = await coordinator.initiate_brainstorming(
            sample_task, ["backend"], {"backend": fake_agent_class("backend")}, project_context
        )

        assert session.status == SessionStatus.COMPLETED
        assert coordinator._runtime[session.id].tasks == []
        assert coordinator._runtime[session.id].timer is None


class TestSessionControl:
    """Test waiting, cancelling and cleanup."""

    @pytest.mark.asyncio
    async def test_wait_unknown_session(self):
        with pytest.raises(OrchestrationError):
            await BrainstormingCoordinator().wait_for_all_agents("missing")

    @pytest.mark.asyncio
    async def test_wait_times_out(self, sample_task, project_context, fake_agent_class):
        coordinator = BrainstormingCoordinator(timeout=10.0)
        session = await coordinator.start_brainstorming(
            sample_task, ["qa"], {"qa": fake_agent_class("qa", delay=5.0)}, project_context
        )

        with pytest.raises(OrchestrationError) as exc_info:
            await coordinator.wait_for_all_agents(session.id, timeout=0.05)

        assert exc_info.value.session_id == session.id
        coordinator.dispose()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_cancel_session(self, sample_task, project_context, fake_agent_class):
        coordinator = BrainstormingCoordinator()
        session = await coordinator.start_brainstorming(
            sample_task, ["qa"], {"qa": fake_agent_class("qa", delay=5.0)}, project_context
        )

        assert coordinator.cancel_session(session.id) is True
        assert coordinator.cancel_session(session.id) is False
        assert coordinator.get_session_status(session.id)["status"] == "cancelled"
        assert await coordinator.wait_for_all_agents(session.id) == []

        coordinator.dispose()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_dispose_cancels_active_sessions(self, sample_task, project_context, fake_agent_class):
        coordinator = BrainstormingCoordinator()
        session = await coordinator.start_brainstorming(
            sample_task, ["qa"], {"qa": fake_agent_class("qa", delay=5.0)}, project_context
        )

        coordinator.dispose()
        await asyncio.sleep(0)

        assert session.status == SessionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cleanup_old_sessions(self, sample_task, project_context, fake_agent_class):
        coordinator = BrainstormingCoordinator()
        session = await coordinator.initiate_brainstorming(
            sample_task, ["qa"], {"qa": fake_agent_class("qa")}, project_context
        )

        assert coordinator.cleanup_old_sessions(max_age=3600.0) == 0
        assert coordinator.cleanup_old_sessions(max_age=-1.0) == 1
        assert coordinator.get_session(session.id) is None


class TestConsolidation:
    """Test consolidation of solutions."""

    @pytest.mark.asyncio
    async def test_high_deviation_solution_excluded(self, sample_task, solution_factory, make_deviation):
        """Test that the top-scoring but off-task solution is not chosen."""
        off_task = solution_factory("frontend", overall=0.95)
        good = solution_factory("backend", overall=0.7)
        ok = solution_factory("qa", overall=0.6)
        deviations = {
            "frontend": make_deviation(DeviationLevel.HIGH, 0.2),
            "backend": make_deviation(DeviationLevel.NONE, 0.9),
            "qa": make_deviation(DeviationLevel.LOW, 0.75),
        }

        result = await BrainstormingCoordinator().consolidate_solutions(
            [off_task, good, ok], sample_task, deviations
        )

        assert result.best_solution is good
        assert off_task not in result.solutions
        assert [s.agent_id for s in result.solutions] == ["backend", "qa"]
        assert result.used_fallback is False
        assert "Backend" in result.reasoning

    @pytest.mark.asyncio
    async def test_all_off_task_falls_back(self, sample_task, solution_factory, make_deviation):
        solutions = [solution_factory("a", overall=0.4), solution_factory("b", overall=0.8)]
        deviations = {
            "a": make_deviation(DeviationLevel.HIGH, 0.3),
            "b": make_deviation(DeviationLevel.HIGH, 0.2),
        }
        coordinator = BrainstormingCoordinator(event_logger=EventLogger())

        with pytest.warns(ConsolidationFallbackWarning):
            result = await coordinator.consolidate_solutions(solutions, sample_task, deviations)

        assert result.used_fallback is True
        assert len(result.solutions) == 2
        assert result.best_solution.agent_id == "b"
        assert coordinator.event_logger.get_events(kind="consolidation_fallback")

    @pytest.mark.asyncio
    async def test_without_deviations_best_by_score(self, solution_factory):
        solutions = [solution_factory("a", overall=0.4), solution_factory("b", overall=0.8)]

        result = await BrainstormingCoordinator().consolidate_solutions(solutions)

        assert result.best_solution.agent_id == "b"
        assert result.solutions == solutions

    @pytest.mark.asyncio
    async def test_single_solution(self, solution_factory):
        only = solution_factory("a")

        result = await BrainstormingCoordinator().consolidate_solutions([only])

        assert result.best_solution is only
        assert result.reasoning.startswith("Single solution")

    @pytest.mark.asyncio
    async def test_empty_input_rejected(self):
        with pytest.raises(ValidationError):
            await BrainstormingCoordinator().consolidate_solutions([])


class TestRefinement:
    """Test refinement and alignment monitoring."""

    @pytest.mark.asyncio
    async def test_refine_solution_passes_feedback(self, sample_task, project_context,
                                                   fake_agent_class, solution_factory):
        agent = fake_agent_class("qa")
        original = solution_factory("qa", title="First attempt")

        refined = await BrainstormingCoordinator().refine_solution(
            original, "cover the session handling", agent, sample_task, project_context
        )

        prompt = agent.seen_tasks[-1].description
        assert "Refinement feedback: cover the session handling" in prompt
        assert "Current solution: First attempt" in prompt
        assert refined.agent_id == "qa"

    @pytest.mark.asyncio
    async def test_trigger_refinement_only_for_off_task(self, sample_task, project_context, fake_agent_class,
                                                        static_checker_class, make_deviation):
        agents = {"backend": fake_agent_class("backend"), "qa": fake_agent_class("qa")}
        checker = static_checker_class({"qa": make_deviation(DeviationLevel.HIGH, 0.2)})
        coordinator = BrainstormingCoordinator(deviation_checker=checker)
        session = await coordinator.initiate_brainstorming(
            sample_task, ["backend", "qa"], agents, project_context
        )
        recorded = dict(session.solutions)

        refined = await coordinator.trigger_refinement_if_needed(session.id, sample_task, agents, project_context)

        assert list(refined) == ["qa"]
        assert session.solutions == recorded

    @pytest.mark.asyncio
    async def test_monitor_task_alignment(self, sample_task, project_context, fake_agent_class,
                                          static_checker_class, make_deviation):
        checker = static_checker_class()
        coordinator = BrainstormingCoordinator(deviation_checker=checker)
        session = await coordinator.initiate_brainstorming(
            sample_task, ["qa"], {"qa": fake_agent_class("qa")}, project_context
        )
        checker.results["qa"] = make_deviation(DeviationLevel.MEDIUM, 0.55)

        results = await coordinator.monitor_task_alignment(session.id, sample_task)

        assert results["qa"].relevance == 0.55
        # completed sessions are not rewritten
        assert session.deviation_results["qa"].relevance == 0.9
