"""
Project scanner for discovering project structure.
Following Single Responsibility Principle - handles project scanning only.
"""

import json
import os
from pathlib import Path
from typing import List

from .dependency_graph import SKIP_DIRS
from .exceptions import WorkspaceMissingError
from .models import ProjectStructure


ENTRY_POINT_NAMES = [
    "src/extension.ts", "src/index.ts", "src/main.ts", "src/app.ts",
    "src/index.js", "src/main.js", "index.ts", "index.js", "main.ts", "main.js",
]


class ProjectScanner:
    """Scans the workspace tree into a ProjectStructure"""

    def __init__(self, root_path: Path, max_depth: int = 20):
        self.root_path = Path(root_path)
        self.max_depth = max_depth

    def scan(self) -> ProjectStructure:
        """
        Raises:
            WorkspaceMissingError: If the root does not exist
        """
        if not self.root_path.is_dir():
            raise WorkspaceMissingError(self.root_path)

        files: List[str] = []
        directories: List[str] = []
        for current, dirnames, filenames in os.walk(self.root_path):
            rel_dir = Path(current).relative_to(self.root_path)
            depth = len(rel_dir.parts)
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith(".") and d not in SKIP_DIRS and depth < self.max_depth
            )
            for d in dirnames:
                directories.append((rel_dir / d).as_posix())
            for f in sorted(filenames):
                files.append((rel_dir / f).as_posix())

        return ProjectStructure(
            files=files,
            directories=directories,
            entry_points=self._find_entry_points(set(files)),
        )

    def _find_entry_points(self, files: set) -> List[str]:
        entry_points = [name for name in ENTRY_POINT_NAMES if name in files]

        # package.json "main" points at build output; map it back to sources when possible
        package_json = self.root_path / "package.json"
        if package_json.is_file():
            try:
                main = json.loads(package_json.read_text(encoding="utf-8")).get("main")
            except (OSError, ValueError):
                main = None
            if isinstance(main, str):
                main = main.lstrip("./")
                if main not in entry_points:
                    entry_points.append(main)
        return entry_points
