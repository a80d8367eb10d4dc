"""
Unit tests for RegexSourceParser.
"""
import pytest

from agent_council.core.source_parser import RegexSourceParser


@pytest.fixture
def parser():
    return RegexSourceParser()


class TestRegexSourceParser:
    """Test import/export extraction."""

    def test_named_and_default_imports(self, parser):
        """Test ES imports of several shapes."""
        result = parser.parse(
            "import { a, b } from './a';\n"
            "import C from \"../c\";\n"
            "import * as ns from './ns';\n"
            "import type { T } from './types';\n"
            "import './side-effect';\n"
        )

        assert result.imports == ["./a", "../c", "./ns", "./types", "./side-effect"]

    def test_package_imports_are_ignored(self, parser):
        """Test that non-local specifiers are not part of the graph."""
        result = parser.parse("import * as vscode from 'vscode';\nconst fs = require('fs');\n")

        assert result.imports == []

    def test_require_and_dynamic_import(self, parser):
        """Test CommonJS require and dynamic import()."""
        result = parser.parse("const x = require('./x');\nconst y = await import('./y');\n")

        assert result.imports == ["./x", "./y"]

    def test_duplicate_imports_are_collapsed(self, parser):
        result = parser.parse("import { a } from './a';\nimport { b } from './a';\n")

        assert result.imports == ["./a"]

    def test_export_declarations(self, parser):
        """Test exported declarations land in exports and symbol buckets."""
        result = parser.parse(
            "export class Service {}\n"
            "export interface Options {}\n"
            "export async function run() {}\n"
            "export const LIMIT = 5;\n"
            "export enum Mode { A }\n"
        )

        assert result.exports == {"Service", "Options", "run", "LIMIT", "Mode"}
        assert result.symbols["classes"] == ["Service"]
        assert result.symbols["functions"] == ["run"]
        assert result.symbols["variables"] == ["LIMIT"]
        assert set(result.symbols["types"]) == {"Options", "Mode"}

    def test_export_list_with_alias(self, parser):
        result = parser.parse("const a = 1; const b = 2;\nexport { a, b as c };\n")

        assert result.exports == {"a", "c"}

    def test_reexport_counts_as_import(self, parser):
        """Test that a re-export source path is recorded as an import."""
        result = parser.parse("export { helper } from './helpers';\nexport * from './all';\n")

        assert result.imports == ["./helpers", "./all"]
        assert "helper" in result.exports

    def test_default_expression_export(self, parser):
        result = parser.parse("const config = {};\nexport default config;\n")

        assert "default" in result.exports

    def test_comments_are_ignored(self, parser):
        """Test that commented-out imports are not extracted."""
        result = parser.parse(
            "// import { gone } from './gone';\n"
            "/* import { alsoGone } from './also-gone'; */\n"
            "import { kept } from './kept';\n"
        )

        assert result.imports == ["./kept"]

    def test_supports_extensions(self, parser):
        assert parser.supports("a.ts")
        assert parser.supports("component.tsx")
        assert parser.supports("index.mjs")
        assert not parser.supports("README.md")
        assert not parser.supports("main.py")
