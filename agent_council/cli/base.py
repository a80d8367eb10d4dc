"""
Base utilities for CLI commands.
"""

from datetime import timedelta
from pathlib import Path
from typing import Tuple

from ..core.config_loader import ConfigLoader, CouncilConfig
from ..core.dependency_graph import DependencyGraph
from ..core.knowledge_base import KnowledgeBase
from ..core.orchestration_events import EventLogger


def _workspace(args) -> Path:
    return Path(getattr(args, 'workspace', None) or ".").resolve()


def _load_config(args) -> Tuple[Path, CouncilConfig, EventLogger]:
    """Workspace, its configuration and the event logger it configures"""
    workspace = _workspace(args)
    loader = ConfigLoader(workspace)
    config = loader.load()
    log_file = loader.resolve(config.event_log) if config.event_log else None
    return workspace, config, EventLogger(log_file)


def _init_graph(args) -> DependencyGraph:
    workspace, config, events = _load_config(args)
    return DependencyGraph(
        workspace,
        cache_ttl=config.cache_ttl,
        max_depth=config.max_depth,
        max_age=timedelta(hours=config.graph_max_age_hours),
        event_logger=events,
    )


def _init_knowledge(args) -> Tuple[KnowledgeBase, EventLogger]:
    workspace, config, events = _load_config(args)
    knowledge_base = KnowledgeBase(workspace, history_limit=config.history_limit)
    knowledge_base.initialize()
    return knowledge_base, events
