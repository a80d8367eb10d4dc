"""
Core orchestration modules.
Following SOLID principles - modules are organized by responsibility.
"""

# Exceptions and degradation warnings
from .exceptions import (
    ValidationError, OrchestrationError, WorkspaceMissingError, SecurityError,
    ParseFailureWarning, AgentFailureWarning, ConsolidationFallbackWarning, StorageWarning
)

# Enums
from .enums import (
    TaskType, TaskPriority, TaskStatus, SessionStatus, ChangeType,
    ImpactLevel, DeviationLevel, ThoughtPhase, DecisionType, SuggestionPriority
)

# Models
from .models import (
    Task, TaskVariation, FileInfo, FileChange, ImpactAnalysis, CodeChange,
    SolutionDependencies, SolutionDetails, SolutionEvaluation, AgentSolution,
    AgentThoughts, DeviationResult, BrainstormingSession, ConsolidatedSolution,
    EvaluationReport, RankedSolutions, MergedSolution, DecisionDetails,
    DecisionOutcome, Decision, CodePattern, ProjectMetrics, ProjectStructure,
    CodingStandards, ProjectContext, AgentStrategy, ImprovementSuggestion,
    EnsembleRefinementResult
)

# Persistence and configuration
from .state_storage import StateStorage, FileStateStorage
from .config_loader import ConfigLoader, CouncilConfig, normalize_path
from .orchestration_events import EventLogger, OrchestrationEvent

# Dependency graph
from .source_parser import SourceParser, RegexSourceParser, ParseResult
from .dependency_graph import DependencyGraph
from .project_scanner import ProjectScanner

# Brainstorming
from .agent import Agent
from .session_store import SessionStore, InMemorySessionStore
from .task_deviation_checker import TaskDeviationChecker, HeuristicDeviationChecker
from .task_variation_generator import TaskVariationGenerator, HeuristicVariationGenerator
from .brainstorming_coordinator import BrainstormingCoordinator

# Evaluation and learning
from .solution_evaluator import SolutionEvaluator
from .ensemble_refinement import EnsembleRefinement
from .knowledge_base import KnowledgeBase
from .learning_engine import LearningEngine
from .orchestrator import SelfLearningOrchestrator, BrainstormingResult, TaskResult

__all__ = [
    'ValidationError', 'OrchestrationError', 'WorkspaceMissingError', 'SecurityError',
    'ParseFailureWarning', 'AgentFailureWarning', 'ConsolidationFallbackWarning', 'StorageWarning',
    'TaskType', 'TaskPriority', 'TaskStatus', 'SessionStatus', 'ChangeType',
    'ImpactLevel', 'DeviationLevel', 'ThoughtPhase', 'DecisionType', 'SuggestionPriority',
    'Task', 'TaskVariation', 'FileInfo', 'FileChange', 'ImpactAnalysis', 'CodeChange',
    'SolutionDependencies', 'SolutionDetails', 'SolutionEvaluation', 'AgentSolution',
    'AgentThoughts', 'DeviationResult', 'BrainstormingSession', 'ConsolidatedSolution',
    'EvaluationReport', 'RankedSolutions', 'MergedSolution', 'DecisionDetails',
    'DecisionOutcome', 'Decision', 'CodePattern', 'ProjectMetrics', 'ProjectStructure',
    'CodingStandards', 'ProjectContext', 'AgentStrategy', 'ImprovementSuggestion',
    'EnsembleRefinementResult',
    'StateStorage', 'FileStateStorage', 'ConfigLoader', 'CouncilConfig', 'normalize_path',
    'EventLogger', 'OrchestrationEvent',
    'SourceParser', 'RegexSourceParser', 'ParseResult', 'DependencyGraph', 'ProjectScanner',
    'Agent', 'SessionStore', 'InMemorySessionStore',
    'TaskDeviationChecker', 'HeuristicDeviationChecker',
    'TaskVariationGenerator', 'HeuristicVariationGenerator', 'BrainstormingCoordinator',
    'SolutionEvaluator', 'EnsembleRefinement', 'KnowledgeBase', 'LearningEngine',
    'SelfLearningOrchestrator', 'BrainstormingResult', 'TaskResult',
]
