"""
Project dependency graph over source-file imports and exports.
Following Single Responsibility Principle - handles cross-file dependency tracking only.
"""

import os
import posixpath
import threading
import time
import warnings
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .enums import ChangeType, ImpactLevel
from .exceptions import ParseFailureWarning, WorkspaceMissingError
from .models import FileChange, FileInfo, ImpactAnalysis
from .orchestration_events import EventLogger
from .source_parser import ParseResult, RegexSourceParser, SourceParser
from .state_storage import FileStateStorage, StateStorage


GRAPH_VERSION = "1.0.0"

SKIP_DIRS = {"node_modules", "out", "dist", "build", "coverage", "__pycache__", "venv"}

# Candidate suffixes tried, in order, when resolving an import specifier
RESOLVE_SUFFIXES = ["", ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
                    "/index.ts", "/index.tsx", "/index.js"]

HIGH_IMPACT_THRESHOLD = 20
MEDIUM_IMPACT_THRESHOLD = 5

PathLike = Union[str, Path]


class DependencyGraph:
    """
    Directed graph of project files keyed by workspace-relative POSIX path.

    Forward edges are each file's import specifiers; reverse edges
    (`FileInfo.dependents`) are always rebuilt from scratch after a
    structural change, so a file F is a dependent of X exactly when one of
    F's imports resolves to X.
    """

    def __init__(
        self,
        workspace_path: PathLike,
        parser: Optional[SourceParser] = None,
        storage: Optional[StateStorage] = None,
        snapshot_file: Optional[Path] = None,
        cache_ttl: float = 60.0,
        max_depth: int = 20,
        max_age: timedelta = timedelta(days=1),
        event_logger: Optional[EventLogger] = None
    ):
        self.workspace_path = Path(workspace_path)
        self.parser = parser or RegexSourceParser()
        self.storage = storage or FileStateStorage()
        self.snapshot_file = snapshot_file or self.workspace_path / ".council" / "dependency_graph.json"
        self.cache_ttl = cache_ttl
        self.max_depth = max_depth
        self.max_age = max_age
        self.event_logger = event_logger

        self.files: Dict[str, FileInfo] = {}
        self.by_export: Dict[str, Set[str]] = {}
        self.by_import: Dict[str, Set[str]] = {}
        self.last_updated: Optional[datetime] = None

        # path -> (mtime, cached_at, result)
        self._parse_cache: Dict[str, Tuple[float, float, ParseResult]] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Load the persisted snapshot, rebuilding when missing or stale"""
        if self.load() and not self.is_outdated():
            return
        self.build_graph()

    def build_graph(self) -> int:
        """
        Rebuild the whole graph from the workspace.

        Returns:
            Number of files in the graph

        Raises:
            WorkspaceMissingError: If the workspace root does not exist
        """
        if not self.workspace_path.is_dir():
            raise WorkspaceMissingError(self.workspace_path)

        with self._lock:
            started = time.time()
            files: Dict[str, FileInfo] = {}
            for abs_path in self._walk(self.workspace_path, 0):
                info = self._parse_file(abs_path)
                if info is not None:
                    files[info.path] = info

            self.files = files
            self._rebuild_indexes()
            self.last_updated = datetime.now()
            self.save()

        if self.event_logger:
            self.event_logger.log(
                "graph_built", str(self.workspace_path), status="success",
                files=len(self.files), duration=round(time.time() - started, 3)
            )
        return len(self.files)

    def update_file(self, path: PathLike) -> Optional[FileInfo]:
        """Re-parse one file and rebuild the reverse edges; removes it if gone"""
        key = self._key(path)
        abs_path = self.workspace_path / key
        if not abs_path.is_file():
            self.remove_file(key)
            return None
        if not self.parser.supports(abs_path.name):
            return None

        with self._lock:
            self._parse_cache.pop(key, None)
            info = self._parse_file(abs_path)
            if info is None:
                return None
            self.files[key] = info
            self._rebuild_indexes()
            self.last_updated = datetime.now()
            self.save()
            return info

    def remove_file(self, path: PathLike) -> bool:
        key = self._key(path)
        with self._lock:
            self._parse_cache.pop(key, None)
            if self.files.pop(key, None) is None:
                return False
            self._rebuild_indexes()
            self.last_updated = datetime.now()
            self.save()
            return True

    def build_dependents(self) -> None:
        """Recompute every file's dependents from the current import lists"""
        with self._lock:
            self._rebuild_indexes()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_dependencies(self, path: PathLike) -> Optional[FileInfo]:
        return self.files.get(self._key(path))

    def get_dependents(self, path: PathLike) -> List[str]:
        info = self.files.get(self._key(path))
        return sorted(info.dependents) if info else []

    def get_resolved_imports(self, path: PathLike) -> List[str]:
        """Graph files that `path` imports, in import order"""
        key = self._key(path)
        info = self.files.get(key)
        if not info:
            return []
        resolved = []
        for spec in info.imports:
            target = self.resolve_import(key, spec)
            if target and target not in resolved:
                resolved.append(target)
        return resolved

    def get_adjacency(self) -> Dict[str, List[str]]:
        """Resolved import edges of every file"""
        return {key: self.get_resolved_imports(key) for key in sorted(self.files)}

    def get_files_exporting(self, symbol: str) -> List[str]:
        return sorted(self.by_export.get(symbol, set()))

    def get_impact_analysis(self, changes: Iterable[FileChange]) -> ImpactAnalysis:
        """
        Estimate the blast radius of a set of changes. Does not mutate the graph.

        Deleted and modified files contribute their dependents as directly
        affected; created files are themselves directly affected. Indirectly
        affected files are the dependents of the directly affected ones.
        """
        direct: Set[str] = set()
        risks: List[str] = []

        for change in changes:
            key = self._key(change.file)
            info = self.files.get(key)

            if change.type == ChangeType.CREATE:
                direct.add(key)
            elif change.type == ChangeType.DELETE:
                if info:
                    direct |= info.dependents
                    risks.append(
                        f"Deleting {key} breaks imports in {len(info.dependents)} dependent file(s)"
                    )
            elif change.type == ChangeType.MODIFY and info:
                direct |= info.dependents
                if info.exports:
                    risks.append(
                        f"Modifying {key} may change exported API "
                        f"({', '.join(sorted(info.exports))})"
                    )

        indirect: Set[str] = set()
        for key in direct:
            info = self.files.get(key)
            if info:
                indirect |= info.dependents
        indirect -= direct

        total = len(direct) + len(indirect)
        if total > HIGH_IMPACT_THRESHOLD:
            level = ImpactLevel.HIGH
        elif total > MEDIUM_IMPACT_THRESHOLD:
            level = ImpactLevel.MEDIUM
        else:
            level = ImpactLevel.LOW

        return ImpactAnalysis(
            directly_affected=direct,
            indirectly_affected=indirect,
            impact_level=level,
            risks=risks,
        )

    def find_related_files(self, path: PathLike, depth: int = 1) -> List[str]:
        """Files reachable over imports and dependents within `depth` hops"""
        origin = self._key(path)
        if depth <= 0 or origin not in self.files:
            return []

        visited = {origin}
        frontier = [origin]
        for _ in range(depth):
            next_frontier = []
            for key in frontier:
                neighbours = self.get_resolved_imports(key) + sorted(self.files[key].dependents)
                for neighbour in neighbours:
                    if neighbour not in visited and neighbour in self.files:
                        visited.add(neighbour)
                        next_frontier.append(neighbour)
            frontier = next_frontier
            if not frontier:
                break

        visited.discard(origin)
        return sorted(visited)

    def resolve_import(self, from_key: str, specifier: str) -> Optional[str]:
        """Map an import specifier to a graph file key, or None if unresolved"""
        if specifier.startswith("/"):
            base = posixpath.normpath(specifier.lstrip("/"))
        else:
            base = posixpath.normpath(posixpath.join(posixpath.dirname(from_key), specifier))
        if base == ".." or base.startswith("../"):
            return None

        for suffix in RESOLVE_SUFFIXES:
            candidate = base + suffix
            if candidate in self.files:
                return candidate
        return None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def is_outdated(self) -> bool:
        if self.last_updated is None:
            return True
        return datetime.now() - self.last_updated > self.max_age

    def to_dict(self) -> Dict:
        return {
            "version": GRAPH_VERSION,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "files": {key: info.to_dict() for key, info in sorted(self.files.items())},
            "indexes": {
                "by_export": {k: sorted(v) for k, v in sorted(self.by_export.items())},
                "by_import": {k: sorted(v) for k, v in sorted(self.by_import.items())},
            },
        }

    def get_graph(self) -> Dict:
        return self.to_dict()

    def save(self) -> bool:
        return self.storage.save(self.to_dict(), self.snapshot_file)

    def load(self) -> bool:
        """Restore from the snapshot file; returns False if none was usable"""
        data = self.storage.load(self.snapshot_file)
        if not data or data.get("version") != GRAPH_VERSION:
            return False

        with self._lock:
            self.files = {
                key: FileInfo.from_dict(info) for key, info in data.get("files", {}).items()
            }
            last_updated = data.get("last_updated")
            self.last_updated = datetime.fromisoformat(last_updated) if last_updated else None
            # dependents in the snapshot are derived data; recompute them
            self._rebuild_indexes()
        return True

    def dispose(self) -> None:
        with self._lock:
            self._parse_cache.clear()
            self.files.clear()
            self.by_export.clear()
            self.by_import.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _key(self, path: PathLike) -> str:
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.relative_to(self.workspace_path)
            except ValueError:
                p = Path(os.path.relpath(p, self.workspace_path))
        return posixpath.normpath(p.as_posix())

    def _walk(self, directory: Path, depth: int) -> Iterable[Path]:
        if depth > self.max_depth:
            return
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            warnings.warn(f"Cannot read directory {directory}: {e}", ParseFailureWarning)
            return

        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if entry.name.startswith(".") or entry.name in SKIP_DIRS:
                    continue
                yield from self._walk(Path(entry.path), depth + 1)
            elif entry.is_file() and self.parser.supports(entry.name):
                yield Path(entry.path)

    def _parse_file(self, abs_path: Path) -> Optional[FileInfo]:
        key = self._key(abs_path)
        try:
            mtime = abs_path.stat().st_mtime
            cached = self._parse_cache.get(key)
            now = time.time()
            if cached and cached[0] == mtime and now - cached[1] < self.cache_ttl:
                result = cached[2]
            else:
                content = abs_path.read_text(encoding="utf-8")
                result = self.parser.parse(content)
                self._parse_cache[key] = (mtime, now, result)
        except (OSError, UnicodeDecodeError) as e:
            warnings.warn(f"Skipping unreadable file {key}: {e}", ParseFailureWarning)
            return None
        except Exception as e:
            warnings.warn(f"Skipping file {key}, parser failed: {e}", ParseFailureWarning)
            return None

        return FileInfo(
            path=key,
            exports=set(result.exports),
            imports=list(result.imports),
            symbols={k: list(v) for k, v in result.symbols.items()},
            mtime=mtime,
        )

    def _rebuild_indexes(self) -> None:
        self.by_export = {}
        self.by_import = {}
        for info in self.files.values():
            info.dependents = set()

        for key, info in self.files.items():
            for symbol in info.exports:
                self.by_export.setdefault(symbol, set()).add(key)
            for spec in info.imports:
                target = self.resolve_import(key, spec)
                if target is None or target == key:
                    continue
                self.files[target].dependents.add(key)
                self.by_import.setdefault(target, set()).add(key)
