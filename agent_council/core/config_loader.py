"""
Configuration loader for the orchestration engine.
Following Single Responsibility Principle - handles configuration loading only.
"""

import json
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, cast

import jsonschema
import yaml

from .exceptions import ValidationError, SecurityError


COUNCIL_DIR = ".council"

# Maximum config file size (1MB)
MAX_CONFIG_SIZE = 1024 * 1024

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "session_timeout": {"type": "number", "exclusiveMinimum": 0},
        "cache_ttl": {"type": "number", "minimum": 0},
        "max_depth": {"type": "integer", "minimum": 1},
        "graph_max_age_hours": {"type": "number", "exclusiveMinimum": 0},
        "history_limit": {"type": "integer", "minimum": 1},
        "refinement_threshold": {"type": "number", "minimum": 0, "maximum": 1},
        "ensemble_refinement": {"type": "boolean"},
        "evaluation_weights": {
            "type": "object",
            "additionalProperties": {"type": "number", "minimum": 0},
        },
        "event_log": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}


def normalize_path(base: Path, relative_path: str) -> Path:
    """
    Resolve a path under base, refusing anything that escapes it.

    Raises:
        SecurityError: If path traversal is detected
    """
    base_resolved = base.resolve()
    try:
        target = (base / relative_path).resolve()
    except (ValueError, OSError) as e:
        raise SecurityError(f"Invalid path: '{relative_path}': {e}")

    if target != base_resolved and base_resolved not in target.parents:
        raise SecurityError(
            f"Path traversal detected: '{relative_path}' resolves outside '{base}'"
        )
    return target


@dataclass
class CouncilConfig:
    """Tunable settings, all optional in the config file"""
    session_timeout: float = 600.0       # seconds
    cache_ttl: float = 60.0              # seconds, parse cache
    max_depth: int = 20                  # directory walk depth
    graph_max_age_hours: float = 24.0
    history_limit: int = 1000
    refinement_threshold: float = 0.8
    ensemble_refinement: bool = False    # refine with suggestions from other agents
    evaluation_weights: Optional[Dict[str, float]] = None
    event_log: Optional[str] = None      # relative to .council/
    council_dir: str = field(default=COUNCIL_DIR, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("council_dir")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CouncilConfig':
        try:
            jsonschema.validate(data, CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            path = ".".join(str(p) for p in e.absolute_path) or None
            raise ValidationError(
                f"Invalid configuration: {e.message}",
                field=path,
                value=e.instance,
            )
        return cls(**data)


class ConfigLoader:
    """Loads `.council/config.yaml` (or `.json`) with an mtime cache"""

    CONFIG_NAMES = ("config.yaml", "config.yml", "config.json")

    def __init__(self, workspace_path: Path):
        self.workspace_path = Path(workspace_path)
        self._cache: Dict[Path, Tuple[CouncilConfig, float]] = {}

    @property
    def council_dir(self) -> Path:
        return self.workspace_path / COUNCIL_DIR

    def find_config_file(self) -> Optional[Path]:
        for name in self.CONFIG_NAMES:
            candidate = self.council_dir / name
            if candidate.exists():
                return candidate
        return None

    def load(self, config_file: Optional[Path] = None) -> CouncilConfig:
        """
        Load configuration; defaults are returned when no file exists.

        Raises:
            ValidationError: If the file is malformed or fails schema validation
            SecurityError: If the file lies outside the workspace or is too large
        """
        path = Path(config_file) if config_file else self.find_config_file()
        if path is None:
            return CouncilConfig()
        if not path.is_absolute():
            path = normalize_path(self.workspace_path, str(path))

        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            raise ValidationError(f"Configuration file not found: {path}", field="file", value=str(path))

        cached = self._cache.get(path)
        if cached and cached[1] == mtime:
            return cached[0]

        config = CouncilConfig.from_dict(self._read(path))
        self._cache[path] = (config, mtime)
        return config

    def resolve(self, relative: str) -> Path:
        """Path of a file inside `.council/`"""
        return normalize_path(self.council_dir, relative)

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        if path.stat().st_size > MAX_CONFIG_SIZE:
            raise SecurityError(f"File '{path}' exceeds maximum size limit ({MAX_CONFIG_SIZE} bytes)")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                if path.suffix == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValidationError(
                f"Invalid syntax in {path}: {e}",
                field="syntax",
                context={"file": str(path)}
            )

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError(
                f"Configuration root must be a mapping in {path}",
                field="root",
                context={"file": str(path)}
            )
        return cast(Dict[str, Any], data)

    def clear_cache(self) -> None:
        self._cache.clear()
