"""
Orchestration event logging for observability and post-mortem review.
Following Single Responsibility Principle - handles orchestration event logging only.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Any
from pathlib import Path
import json
import warnings

import yaml

from .exceptions import StorageWarning


@dataclass
class OrchestrationEvent:
    """
    A single point-in-time orchestration event.

    `kind` names what happened (session_started, agent_completed,
    agent_failed, session_completed, session_cancelled, consolidation_fallback,
    graph_built, learning_pass, ...). `source` is the session, graph or
    engine the event belongs to.
    """
    kind: str
    source: str
    agent_id: Optional[str] = None
    status: str = "info"  # "info" | "success" | "failed" | "degraded"
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "source": self.source,
            "agent_id": self.agent_id,
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OrchestrationEvent':
        return cls(
            kind=data["kind"],
            source=data.get("source", ""),
            agent_id=data.get("agent_id"),
            status=data.get("status", "info"),
            timestamp=datetime.fromisoformat(data.get("timestamp", datetime.now().isoformat())),
            metadata=data.get("metadata", {}),
            error=data.get("error"),
        )


class EventLogger:
    """
    Records orchestration events in memory and optionally to a log file.

    The log file format follows its suffix: YAML for .yaml/.yml, JSON otherwise.
    Writes are batched: the file is rewritten every `flush_every` events and
    on `flush()`, which owners call when they shut down.
    """

    def __init__(self, log_file: Optional[Path] = None, max_events: int = 5000, flush_every: int = 50):
        self.events: List[OrchestrationEvent] = []
        self.log_file = Path(log_file) if log_file else None
        self.max_events = max_events
        self.flush_every = max(1, flush_every)
        self._pending = 0
        if self.log_file and self.log_file.exists():
            self._load_from_file()

    def log_event(self, event: OrchestrationEvent) -> OrchestrationEvent:
        self.events.append(event)
        if len(self.events) > self.max_events:
            del self.events[:len(self.events) - self.max_events]
        if self.log_file:
            self._pending += 1
            if self._pending >= self.flush_every:
                self.flush()
        return event

    def flush(self) -> None:
        """Write buffered events to the log file"""
        if self.log_file and self._pending:
            self._write_file()
            self._pending = 0

    def log(
        self,
        kind: str,
        source: str,
        agent_id: Optional[str] = None,
        status: str = "info",
        error: Optional[str] = None,
        **metadata: Any
    ) -> OrchestrationEvent:
        """Shorthand for building and recording an event"""
        return self.log_event(OrchestrationEvent(
            kind=kind,
            source=source,
            agent_id=agent_id,
            status=status,
            error=error,
            metadata=metadata,
        ))

    def get_events(
        self,
        kind: Optional[str] = None,
        source: Optional[str] = None,
        agent_id: Optional[str] = None,
        status: Optional[str] = None
    ) -> List[OrchestrationEvent]:
        filtered = self.events
        if kind:
            filtered = [e for e in filtered if e.kind == kind]
        if source:
            filtered = [e for e in filtered if e.source == source]
        if agent_id:
            filtered = [e for e in filtered if e.agent_id == agent_id]
        if status:
            filtered = [e for e in filtered if e.status == status]
        return filtered

    def export_events(
        self,
        output_file: Path,
        format: str = "json",
        filters: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Export events to file.

        Args:
            output_file: Output file path
            format: Export format ("json" or "yaml")
            filters: Optional filters dict (kind, source, agent_id, status)
        """
        if format not in ("json", "yaml"):
            raise ValueError(f"Unsupported format: {format}")

        events = self.get_events(**filters) if filters else self.events
        self._dump([e.to_dict() for e in events], Path(output_file), format)

    def clear(self) -> None:
        self.events.clear()

    @staticmethod
    def _dump(records: List[Dict[str, Any]], path: Path, format: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open('w', encoding='utf-8') as f:
            if format == "yaml":
                yaml.dump(records, f, default_flow_style=False, allow_unicode=True)
            else:
                json.dump(records, f, indent=2, ensure_ascii=False, default=str)

    def _format_for(self, path: Path) -> str:
        return "yaml" if path.suffix in ('.yaml', '.yml') else "json"

    def _load_from_file(self) -> None:
        assert self.log_file is not None
        try:
            with self.log_file.open('r', encoding='utf-8') as f:
                if self._format_for(self.log_file) == "yaml":
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
            if isinstance(data, list):
                self.events = [OrchestrationEvent.from_dict(e) for e in data]
        except (OSError, ValueError, KeyError, yaml.YAMLError) as e:
            warnings.warn(f"Failed to load events from {self.log_file}: {e}", StorageWarning)

    def _write_file(self) -> None:
        assert self.log_file is not None
        try:
            self._dump([e.to_dict() for e in self.events], self.log_file, self._format_for(self.log_file))
        except (OSError, TypeError, yaml.YAMLError) as e:
            warnings.warn(f"Failed to write events to {self.log_file}: {e}", StorageWarning)
