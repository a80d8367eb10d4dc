"""
Unit tests for LearningEngine.
"""
import math
import pytest

from agent_council.core.enums import DecisionType, TaskType
from agent_council.core.exceptions import StorageWarning
from agent_council.core.knowledge_base import KnowledgeBase
from agent_council.core.learning_engine import DEFAULT_AGENTS, LearningEngine
from agent_council.core.models import Decision, DecisionDetails, DecisionOutcome, Task
from agent_council.core.orchestration_events import EventLogger
from agent_council.core.solution_evaluator import DEFAULT_WEIGHTS


def _decision(n, agent_id, success=True, task_type=TaskType.BUG, lessons=None, reasoning=""):
    return Decision(
        id=f"decision-{n}",
        task_id=f"task-{n}",
        task_type=task_type,
        decision=DecisionDetails(
            type=DecisionType.SELECTED, solution_id=f"solution-{n}", agent_id=agent_id, reasoning=reasoning
        ),
        outcome=DecisionOutcome(success=success, quality=0.8),
        lessons=lessons or [],
    )


@pytest.fixture
def knowledge(temp_workspace):
    return KnowledgeBase(temp_workspace)


class TestAgentSelection:
    """Test learned agent preferences."""

    def test_nothing_to_learn(self, knowledge):
        engine = LearningEngine(knowledge)

        assert engine.learn() is False
        assert engine.get_agent_selection_strategy(TaskType.BUG).preferred_agents == DEFAULT_AGENTS[TaskType.BUG]

    def test_agents_ranked_by_success_rate(self, knowledge):
        """Test that failures lower an agent's rate for the task type."""
        knowledge.add_decision(_decision(1, "qa"))
        knowledge.add_decision(_decision(2, "qa"))
        knowledge.add_decision(_decision(3, "backend"))
        knowledge.add_decision(_decision(4, "backend", success=False))
        knowledge.add_decision(_decision(5, "analyst", success=False))
        events = EventLogger()
        engine = LearningEngine(knowledge, event_logger=events)

        assert engine.learn() is True

        strategy = engine.get_agent_selection_strategy(TaskType.BUG)
        assert strategy.preferred_agents == ["qa", "backend"]
        assert strategy.weights == {"qa": 1.0, "backend": 0.5}
        assert events.get_events(kind="learning_pass")[0].metadata["task_types"] == ["bug"]

    def test_at_most_three_preferred_agents(self, knowledge):
        for n, agent in enumerate(["a", "b", "c", "d"]):
            knowledge.add_decision(_decision(n, agent, task_type=TaskType.FEATURE))
        engine = LearningEngine(knowledge)
        engine.learn()

        assert len(engine.get_agent_selection_strategy(TaskType.FEATURE).preferred_agents) == 3

    def test_task_type_inferred_for_untyped_records(self, knowledge):
        decision = _decision(1, "qa", task_type=None, reasoning="Fix the crash in the parser")

        assert LearningEngine(knowledge).infer_task_type(decision) == TaskType.BUG

    def test_untyped_without_keywords_is_feature(self, knowledge):
        decision = _decision(1, "qa", task_type=None, reasoning="Dark mode")

        assert LearningEngine(knowledge).infer_task_type(decision) == TaskType.FEATURE


class TestRecommendAgents:
    """Test agent recommendations."""

    def test_preferred_and_available(self, knowledge):
        knowledge.add_decision(_decision(1, "qa"))
        knowledge.add_decision(_decision(2, "backend"))
        knowledge.add_decision(_decision(3, "qa"))
        engine = LearningEngine(knowledge)
        engine.learn()
        task = Task(id="t", type=TaskType.BUG, description="Fix crash")

        assert engine.recommend_agents(task, ["backend", "frontend", "qa"]) == ["qa", "backend"]

    def test_falls_back_to_all_available(self, knowledge):
        """Test that recommendations are never empty when agents exist."""
        task = Task(id="t", type=TaskType.DOCUMENTATION, description="Document the API")

        assert LearningEngine(knowledge).recommend_agents(task, ["qa", "devops"]) == ["qa", "devops"]

    def test_default_strategy_filtered_by_availability(self, knowledge):
        task = Task(id="t", type=TaskType.FEATURE, description="Add export")

        assert LearningEngine(knowledge).recommend_agents(task, ["devops", "backend"]) == ["backend"]

    def test_no_agents_available(self, knowledge):
        task = Task(id="t", type=TaskType.FEATURE, description="Add export")

        assert LearningEngine(knowledge).recommend_agents(task, []) == []


class TestEvaluationWeights:
    """Test weights learned from lessons."""

    def test_defaults_without_lessons(self, knowledge):
        knowledge.add_decision(_decision(1, "qa"))
        engine = LearningEngine(knowledge)
        engine.learn()

        assert engine.get_evaluation_weights() == DEFAULT_WEIGHTS

    def test_lesson_keywords_shift_weights(self, knowledge):
        knowledge.add_decision(_decision(
            1, "qa", lessons=["Strength: Strong security", "Weakness: Performance concerns"]
        ))
        engine = LearningEngine(knowledge)
        engine.learn()

        weights = engine.get_evaluation_weights()
        assert weights["security"] == pytest.approx(0.435)
        assert weights["performance"] == pytest.approx(0.435)
        assert weights["task_alignment"] == DEFAULT_WEIGHTS["task_alignment"]
        assert weights["quality"] == 0.0
        assert math.isclose(sum(weights.values()), 1.0)


class TestStrategyPersistence:
    """Test saving and loading strategies."""

    def test_round_trip(self, knowledge, temp_workspace):
        knowledge.add_decision(_decision(1, "qa", lessons=["Good maintainability"]))
        engine = LearningEngine(knowledge)
        engine.learn()
        assert engine.save_strategies() is True
        assert (temp_workspace / ".council" / "strategies.yaml").exists()

        restored = LearningEngine(knowledge)
        assert restored.load_strategies() is True

        assert restored.get_agent_selection_strategy(TaskType.BUG).preferred_agents == ["qa"]
        assert restored.get_evaluation_weights() == pytest.approx(engine.get_evaluation_weights())

    def test_missing_file_keeps_defaults(self, knowledge):
        engine = LearningEngine(knowledge)

        assert engine.load_strategies() is False
        assert engine.get_evaluation_weights() == DEFAULT_WEIGHTS

    def test_invalid_file_warns(self, knowledge, temp_workspace):
        (temp_workspace / ".council" / "strategies.yaml").write_text(
            "evaluation_weights:\n  quality: 1.0\n", encoding="utf-8"
        )
        engine = LearningEngine(knowledge)

        with pytest.warns(StorageWarning):
            assert engine.load_strategies() is False

        assert engine.get_evaluation_weights() == DEFAULT_WEIGHTS
