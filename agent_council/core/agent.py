"""
Agent interface consumed by the brainstorming coordinator.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable, Optional

from .models import AgentSolution, AgentThoughts, ImprovementSuggestion, ProjectContext, Task


ThoughtsCallback = Callable[[AgentThoughts], None]


class Agent(ABC):
    """
    A role-specialized solution producer (backend, frontend, architect, ...).

    Implementations call `emit_thoughts` while working; the coordinator
    installs an observer through `set_thoughts_callback`.
    """

    def __init__(self, agent_id: str, name: Optional[str] = None):
        self.agent_id = agent_id
        self.name = name or agent_id
        self._thoughts_callback: Optional[ThoughtsCallback] = None

    def set_thoughts_callback(self, callback: Optional[ThoughtsCallback]) -> None:
        self._thoughts_callback = callback

    def emit_thoughts(self, thoughts: AgentThoughts) -> None:
        if self._thoughts_callback is not None:
            self._thoughts_callback(thoughts)

    @abstractmethod
    async def think(self, task: Task, context: ProjectContext) -> AgentThoughts:
        """Analyze the task and produce reasoning"""
        pass

    @abstractmethod
    async def propose_solution(
        self,
        task: Task,
        thoughts: AgentThoughts,
        context: ProjectContext
    ) -> AgentSolution:
        """Turn reasoning into a concrete solution"""
        pass

    async def suggest_improvement(
        self,
        solution: AgentSolution,
        task: Task,
        aspect: str,
        context: ProjectContext
    ) -> Optional[ImprovementSuggestion]:
        """
        Propose one improvement to another agent's solution, focused on `aspect`.

        The default reviews the solution through `think` and returns its
        reasoning as a medium-priority suggestion; agents with a better
        notion of confidence should override it.
        """
        review_task = replace(
            task,
            description=(
                f"{task.description}\n\nReview the solution \"{solution.solution.title}\" "
                f"and suggest one concrete improvement to its {aspect.replace('_', ' ')}.\n"
                f"{solution.solution.description}"
            ),
        )
        thoughts = await self.think(review_task, context)
        text = thoughts.implementation_plan or thoughts.reasoning
        if not text:
            return None
        return ImprovementSuggestion(
            agent_id=self.agent_id,
            agent_name=self.name,
            suggestion=text,
            target_aspect=aspect,
            reasoning=f"Review by {self.name}",
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.agent_id!r})"
