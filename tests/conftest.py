"""
Shared pytest fixtures and configuration for all tests.
"""
import asyncio
import pytest
import tempfile
import shutil
import uuid
from pathlib import Path
from typing import Dict, Generator, List, Optional

from agent_council.core.agent import Agent
from agent_council.core.enums import DeviationLevel, TaskType, ThoughtPhase
from agent_council.core.models import (
    AgentSolution, AgentThoughts, CodeChange, DeviationResult, ProjectContext,
    SolutionDetails, SolutionEvaluation, Task
)
from agent_council.core.enums import ChangeType
from agent_council.core.task_deviation_checker import TaskDeviationChecker


@pytest.fixture
def temp_workspace() -> Generator[Path, None, None]:
    """Create a temporary workspace directory for testing."""
    workspace = Path(tempfile.mkdtemp(prefix="agent_council_test_"))
    (workspace / ".council").mkdir(parents=True, exist_ok=True)

    yield workspace

    shutil.rmtree(workspace, ignore_errors=True)


@pytest.fixture
def ts_workspace(temp_workspace: Path) -> Path:
    """Workspace with two TypeScript files where b.ts imports a.ts."""
    src = temp_workspace / "src"
    src.mkdir()
    (src / "a.ts").write_text("export function foo() {\n  return 1;\n}\n", encoding="utf-8")
    (src / "b.ts").write_text("import { foo } from './a';\n\nexport const bar = foo() + 1;\n", encoding="utf-8")
    return temp_workspace


@pytest.fixture
def sample_task() -> Task:
    """Create a sample task for testing."""
    return Task(
        id="task-1",
        type=TaskType.FEATURE,
        description="Add user authentication with login form and session handling",
    )


@pytest.fixture
def project_context() -> ProjectContext:
    return ProjectContext()


def make_solution(
    agent_id: str,
    overall: float = 0.5,
    task_id: str = "task-1",
    title: Optional[str] = None,
    description: str = "",
    files: Optional[List[str]] = None,
    changes: Optional[List[CodeChange]] = None,
    criteria: Optional[float] = None,
) -> AgentSolution:
    """Build a solution; `criteria` sets all five self-assessed scores at once."""
    scores = {}
    if criteria is not None:
        scores = {k: criteria for k in ("quality", "performance", "security", "maintainability", "compliance")}
    return AgentSolution(
        id=f"solution-{agent_id}-{uuid.uuid4().hex[:6]}",
        agent_id=agent_id,
        agent_name=agent_id.capitalize(),
        task_id=task_id,
        solution=SolutionDetails(
            title=title or f"Solution by {agent_id}",
            description=description,
            files_to_modify=list(files or []),
            code_changes=list(changes or []),
        ),
        evaluation=SolutionEvaluation(overall_score=overall, **scores),
        reasoning=f"Reasoning of {agent_id}",
    )


@pytest.fixture
def solution_factory():
    return make_solution


class FakeAgent(Agent):
    """Scripted agent: optional delay, failure and fixed self-assessment."""

    def __init__(self, agent_id: str, delay: float = 0.0, fail: bool = False,
                 score: float = 0.8, files: Optional[List[str]] = None):
        super().__init__(agent_id, agent_id.capitalize())
        self.delay = delay
        self.fail = fail
        self.score = score
        self.files = files or []
        self.seen_tasks: List[Task] = []

    async def think(self, task: Task, context: ProjectContext) -> AgentThoughts:
        self.seen_tasks.append(task)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError(f"{self.agent_id} crashed")
        thoughts = AgentThoughts(
            agent_id=self.agent_id,
            agent_name=self.name,
            task_id=task.id,
            phase=ThoughtPhase.ANALYZING,
            reasoning=f"{self.agent_id} analyzing",
        )
        self.emit_thoughts(thoughts)
        return thoughts

    async def propose_solution(self, task: Task, thoughts: AgentThoughts,
                               context: ProjectContext) -> AgentSolution:
        # Echo the task without the focus suffix added by variations
        description = task.description.split("\n\n[Focus")[0]
        return AgentSolution(
            id=f"solution-{self.agent_id}-{uuid.uuid4().hex[:6]}",
            agent_id=self.agent_id,
            agent_name=self.name,
            task_id=task.id,
            solution=SolutionDetails(
                title=description,
                description=description,
                approach=description,
                files_to_modify=list(self.files),
                code_changes=[CodeChange(file=f, type=ChangeType.MODIFY) for f in self.files],
            ),
            evaluation=SolutionEvaluation(
                quality=self.score, performance=self.score, security=self.score,
                maintainability=self.score, compliance=self.score, overall_score=self.score,
            ),
            reasoning=f"{self.agent_id} reasoning",
        )


@pytest.fixture
def fake_agent_class():
    return FakeAgent


class StaticDeviationChecker(TaskDeviationChecker):
    """Returns preset deviation results per agent id."""

    def __init__(self, results: Optional[Dict[str, DeviationResult]] = None):
        self.results = results or {}

    async def check_deviation(self, original_task: Task, solution: AgentSolution) -> DeviationResult:
        return self.results.get(solution.agent_id, deviation(DeviationLevel.NONE, 0.9))


def deviation(level: DeviationLevel, relevance: float) -> DeviationResult:
    return DeviationResult(
        has_deviation=level != DeviationLevel.NONE,
        deviation_level=level,
        relevance=relevance,
        feedback=f"relevance {relevance}",
    )


@pytest.fixture
def make_deviation():
    return deviation


@pytest.fixture
def static_checker_class():
    return StaticDeviationChecker
