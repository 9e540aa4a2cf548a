"""Line-oriented symbol extraction.

Each language has an ordered list of (kind, pattern) rules; the first rule
that matches a line yields one symbol. There is no brace or indentation
tracking, so ``end_line`` always equals ``start_line`` and nested
declarations are reported like top-level ones.
"""

from __future__ import annotations

import re
from pathlib import PurePath

from codeshell.core.models import Symbol, SymbolKind

LANGUAGE_BY_EXTENSION = {
    ".apex": "apex",
    ".cls": "apex",
    ".trigger": "apex",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".soql": "soql",
}

# Words a call-like line can start with that are never declarations.
_STATEMENT_KEYWORDS = frozenset(
    {"if", "for", "while", "switch", "catch", "return", "new", "else", "throw", "do", "try", "super", "this"}
)

_JAVA_MODIFIERS = r"(?:(?:public|private|protected|static|final|abstract|synchronized|native|default)\s+)*"
_APEX_MODIFIERS = (
    r"(?:(?:public|private|protected|global|static|final|abstract|virtual|override|"
    r"webservice|testmethod|with\s+sharing|without\s+sharing|inherited\s+sharing)\s+)*"
)

Rule = tuple[SymbolKind, re.Pattern[str]]

_JS_RULES: list[Rule] = [
    ("class", re.compile(r"^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+(\w+)")),
    ("interface", re.compile(r"^\s*(?:export\s+)?interface\s+(\w+)")),
    ("enum", re.compile(r"^\s*(?:export\s+)?(?:const\s+)?enum\s+(\w+)")),
    ("function", re.compile(r"^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*(\w+)")),
    (
        "function",
        re.compile(r"^\s*(?:export\s+)?(?:const|let|var)\s+(\w+)\s*(?::[^=]+)?=\s*(?:async\s+)?(?:\([^)]*\)|\w+)\s*=>"),
    ),
]

RULES: dict[str, list[Rule]] = {
    "apex": [
        ("class", re.compile(rf"^\s*{_APEX_MODIFIERS}class\s+(\w+)", re.IGNORECASE)),
        ("interface", re.compile(rf"^\s*{_APEX_MODIFIERS}interface\s+(\w+)", re.IGNORECASE)),
        ("enum", re.compile(rf"^\s*{_APEX_MODIFIERS}enum\s+(\w+)", re.IGNORECASE)),
        ("method", re.compile(rf"^\s*{_APEX_MODIFIERS}[\w<>\[\],.]+\s+(\w+)\s*\([^;]*$", re.IGNORECASE)),
    ],
    "javascript": _JS_RULES,
    "typescript": _JS_RULES,
    "python": [
        ("class", re.compile(r"^\s*class\s+(\w+)")),
        ("function", re.compile(r"^\s*(?:async\s+)?def\s+(\w+)")),
    ],
    "java": [
        ("class", re.compile(rf"^\s*{_JAVA_MODIFIERS}class\s+(\w+)")),
        ("interface", re.compile(rf"^\s*{_JAVA_MODIFIERS}interface\s+(\w+)")),
        ("enum", re.compile(rf"^\s*{_JAVA_MODIFIERS}enum\s+(\w+)")),
        ("method", re.compile(rf"^\s*{_JAVA_MODIFIERS}[\w<>\[\],.?]+\s+(\w+)\s*\([^;]*$")),
    ],
}


def detect_language(file_path: str) -> str:
    """Language tag from the file extension; ``text`` when unknown."""
    return LANGUAGE_BY_EXTENSION.get(PurePath(file_path).suffix.lower(), "text")


def extract_symbols(file_path: str, content: str, language: str | None = None) -> list[Symbol]:
    """Scan ``content`` line by line and return symbols in line order.

    Line numbers are 1-based. Languages without rules (soql, text) yield
    nothing.
    """
    language = language or detect_language(file_path)
    rules = RULES.get(language)
    if not rules:
        return []

    symbols: list[Symbol] = []
    seen: set[str] = set()
    for line_number, line in enumerate(content.split("\n"), start=1):
        for kind, pattern in rules:
            match = pattern.match(line)
            if not match:
                continue
            name = match.group(1)
            if name in _STATEMENT_KEYWORDS:
                break
            symbol_id = Symbol.make_id(file_path, name, line_number)
            if symbol_id not in seen:
                seen.add(symbol_id)
                symbols.append(
                    Symbol(
                        id=symbol_id,
                        name=name,
                        kind=kind,
                        file_path=file_path,
                        start_line=line_number,
                        end_line=line_number,
                        signature=line.strip(),
                        language=language,
                    )
                )
            break
    return symbols
