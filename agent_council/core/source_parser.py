"""
Source parsers extracting the import/export surface of a file.
Following Single Responsibility Principle - handles source parsing only.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Set


@dataclass
class ParseResult:
    """Import specifiers, exported names and declared symbols of one file"""
    imports: List[str] = field(default_factory=list)
    exports: Set[str] = field(default_factory=set)
    symbols: Dict[str, List[str]] = field(default_factory=lambda: {
        "classes": [], "functions": [], "types": [], "variables": []
    })


class SourceParser(ABC):
    """Abstract base class for source parsers"""

    extensions: tuple = ()

    @abstractmethod
    def parse(self, content: str) -> ParseResult:
        """Parse file content; only project-local import specifiers are returned"""
        pass

    def supports(self, filename: str) -> bool:
        return filename.endswith(self.extensions)


class RegexSourceParser(SourceParser):
    """
    Regex-level parser for JavaScript and TypeScript.

    Recognizes ES `import` statements (including `import type` and bare
    side-effect imports), `require()` calls, `export ... from` re-exports and
    exported declarations. Only relative (`./`, `../`) and root-absolute (`/`)
    specifiers are kept; package imports are not part of the project graph.
    """

    extensions = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")

    IMPORT_RE = re.compile(
        r"import\s+(?:type\s+)?"
        r"(?:(?:\{[^}]*\}|\*\s+as\s+\w+|\w+)(?:\s*,\s*(?:\{[^}]*\}|\*\s+as\s+\w+|\w+))*\s+from\s+)?"
        r"['\"]([^'\"]+)['\"]"
    )
    REQUIRE_RE = re.compile(r"require\s*\(\s*['\"]([^'\"]+)['\"]\s*\)")
    DYNAMIC_IMPORT_RE = re.compile(r"import\s*\(\s*['\"]([^'\"]+)['\"]\s*\)")
    REEXPORT_RE = re.compile(
        r"export\s+(?:type\s+)?(\*(?:\s+as\s+\w+)?|\{[^}]*\})\s+from\s+['\"]([^'\"]+)['\"]"
    )
    EXPORT_DECL_RE = re.compile(
        r"export\s+(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?(?:async\s+)?"
        r"(class|interface|type|function\*?|const|let|var|enum)\s+(\w+)"
    )
    EXPORT_LIST_RE = re.compile(r"export\s+(?:type\s+)?\{([^}]*)\}(?!\s*from)")
    EXPORT_DEFAULT_RE = re.compile(r"export\s+default\s+(?!class|interface|type|function|const|let|var|enum|abstract|async|declare)")

    _SYMBOL_KINDS = {
        "class": "classes",
        "interface": "types",
        "type": "types",
        "enum": "types",
        "function": "functions",
        "function*": "functions",
        "const": "variables",
        "let": "variables",
        "var": "variables",
    }

    @staticmethod
    def is_local_specifier(specifier: str) -> bool:
        return specifier.startswith((".", "/"))

    def parse(self, content: str) -> ParseResult:
        result = ParseResult()
        content = self._strip_comments(content)

        seen: Set[str] = set()

        def add_import(spec: str) -> None:
            if self.is_local_specifier(spec) and spec not in seen:
                seen.add(spec)
                result.imports.append(spec)

        for match in self.IMPORT_RE.finditer(content):
            add_import(match.group(1))
        for match in self.REQUIRE_RE.finditer(content):
            add_import(match.group(1))
        for match in self.DYNAMIC_IMPORT_RE.finditer(content):
            add_import(match.group(1))

        # Re-exports: the source path is an import, named members are exports
        for match in self.REEXPORT_RE.finditer(content):
            clause, spec = match.group(1), match.group(2)
            add_import(spec)
            if clause.startswith("{"):
                result.exports.update(self._names_from_list(clause[1:-1]))
            elif " as " in clause:
                result.exports.add(clause.split(" as ")[1].strip())

        for match in self.EXPORT_DECL_RE.finditer(content):
            kind, name = match.group(1), match.group(2)
            result.exports.add(name)
            bucket = result.symbols[self._SYMBOL_KINDS[kind]]
            if name not in bucket:
                bucket.append(name)

        for match in self.EXPORT_LIST_RE.finditer(content):
            result.exports.update(self._names_from_list(match.group(1)))

        if self.EXPORT_DEFAULT_RE.search(content):
            result.exports.add("default")

        return result

    @staticmethod
    def _names_from_list(body: str) -> Set[str]:
        """Exported names from `a, b as c, type D`"""
        names = set()
        for item in body.split(","):
            item = item.strip()
            if not item:
                continue
            if item.startswith("type "):
                item = item[5:].strip()
            if " as " in item:
                item = item.split(" as ")[1].strip()
            if re.fullmatch(r"\w+", item):
                names.add(item)
        return names

    @staticmethod
    def _strip_comments(content: str) -> str:
        content = re.sub(r"/\*.*?\*/", "", content, flags=re.DOTALL)
        return re.sub(r"(^|[^:'\"\\])//[^\n]*", r"\1", content)
