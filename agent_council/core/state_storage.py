"""
State storage for persisting graph, knowledge and strategy snapshots.
Following Single Responsibility Principle - handles snapshot persistence only.
"""

import json
import yaml
import warnings
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import StorageWarning


class StateStorage(ABC):
    """Abstract base class for snapshot storage backends"""

    @abstractmethod
    def save(self, data: Dict[str, Any], path: Path) -> bool:
        """Save a snapshot, returns False if it could not be written"""
        pass

    @abstractmethod
    def load(self, path: Path) -> Optional[Dict[str, Any]]:
        """Load a snapshot, returns None if not found or unreadable"""
        pass

    @abstractmethod
    def exists(self, path: Path) -> bool:
        """Check if a snapshot exists at path"""
        pass


class FileStateStorage(StateStorage):
    """File-based storage; YAML for .yaml/.yml paths, JSON otherwise"""

    @staticmethod
    def _is_yaml(path: Path) -> bool:
        return path.suffix in ('.yaml', '.yml')

    def save(self, data: Dict[str, Any], path: Path) -> bool:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                if self._is_yaml(path):
                    yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
                else:
                    json.dump(data, f, indent=2, ensure_ascii=False, default=str)
            return True
        except (OSError, TypeError, ValueError, yaml.YAMLError) as e:
            # Graceful degradation: warn but don't interrupt the caller
            warnings.warn(f"Failed to save snapshot to {path}: {e}", StorageWarning)
            return False

    def load(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) if self._is_yaml(path) else json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            warnings.warn(f"Failed to load snapshot from {path}: {e}. Starting fresh.", StorageWarning)
            return None

        if not isinstance(data, dict):
            if data is not None:
                warnings.warn(f"Snapshot root in {path} is not a mapping. Starting fresh.", StorageWarning)
            return None
        return data

    def exists(self, path: Path) -> bool:
        return path.exists()
