"""
Unit tests for ProjectScanner.
"""
import json
import pytest

from agent_council.core.exceptions import WorkspaceMissingError
from agent_council.core.project_scanner import ProjectScanner


class TestProjectScanner:
    """Test workspace structure discovery."""

    def test_scan_structure(self, temp_workspace):
        (temp_workspace / "src" / "lib").mkdir(parents=True)
        (temp_workspace / "src" / "index.ts").write_text("export {};")
        (temp_workspace / "src" / "lib" / "util.ts").write_text("export {};")
        (temp_workspace / "node_modules" / "dep").mkdir(parents=True)
        (temp_workspace / "node_modules" / "dep" / "index.js").write_text("")
        (temp_workspace / "package.json").write_text(json.dumps({"main": "./out/extension.js"}))

        structure = ProjectScanner(temp_workspace).scan()

        assert structure.files == ["package.json", "src/index.ts", "src/lib/util.ts"]
        assert structure.directories == ["src", "src/lib"]
        assert structure.entry_points == ["src/index.ts", "out/extension.js"]

    def test_depth_limit(self, temp_workspace):
        (temp_workspace / "a" / "b").mkdir(parents=True)
        (temp_workspace / "a" / "b" / "deep.ts").write_text("")

        structure = ProjectScanner(temp_workspace, max_depth=1).scan()

        assert structure.directories == ["a"]
        assert "a/b/deep.ts" not in structure.files

    def test_unreadable_package_json_is_ignored(self, temp_workspace):
        (temp_workspace / "package.json").write_text("{broken")

        assert ProjectScanner(temp_workspace).scan().entry_points == []

    def test_missing_workspace(self, temp_workspace):
        with pytest.raises(WorkspaceMissingError):
            ProjectScanner(temp_workspace / "missing").scan()
