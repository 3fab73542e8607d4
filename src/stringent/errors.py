"""Structured errors for grammar construction, parsing and evaluation.

Every parse or evaluation failure is raised as a :class:`StringentError`
subclass carrying a machine-readable :class:`ErrorKind`, the offending
offset, and the line/column/snippet derived from the source text.
Rendering (carets, colours, context lines) is left to callers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


DEFAULT_SNIPPET_WIDTH = 40


class ErrorKind(Enum):
    """Failure taxonomy shared by the parser and the evaluator."""

    # Parse time
    NO_MATCH = "NoMatch"
    TYPE_MISMATCH = "TypeMismatch"
    UNTERMINATED_STRING = "UnterminatedString"
    UNBALANCED_PAREN = "UnbalancedParen"
    UNKNOWN_IDENTIFIER = "UnknownIdentifier"
    INVALID_SCHEMA = "InvalidSchema"
    NESTING_TOO_DEEP = "NestingTooDeep"

    # Evaluation time
    MISSING_DATA = "MissingData"
    DATA_TYPE_VIOLATION = "DataTypeViolation"
    NOT_IMPLEMENTED = "NotImplemented"
    RULE_FAILED = "RuleFailed"


@dataclass(frozen=True)
class SourceLocation:
    """Position of an offset within a source string.

    Attributes:
        offset: Character offset (0-indexed)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Text of the line around the offset, clipped to the snippet width
    """

    offset: int
    line: int
    column: int
    snippet: str


def locate(source: str, offset: int, width: int = DEFAULT_SNIPPET_WIDTH) -> SourceLocation:
    """Compute line, column and snippet for an offset in source."""
    offset = max(0, min(offset, len(source)))
    line = source.count("\n", 0, offset) + 1
    line_start = source.rfind("\n", 0, offset) + 1
    line_end = source.find("\n", offset)
    if line_end == -1:
        line_end = len(source)
    column = offset - line_start + 1

    snippet_start = max(line_start, offset - width)
    snippet_end = min(line_end, offset + width)
    return SourceLocation(
        offset=offset,
        line=line,
        column=column,
        snippet=source[snippet_start:snippet_end],
    )


class StringentError(Exception):
    """Base class for positioned parse and evaluation failures.

    Attributes:
        kind: The failure category
        message: Human-readable description (without position)
        offset: Offending character offset, or None when not positional
        line: 1-indexed line, or None when no source is known
        column: 1-indexed column, or None when no source is known
        snippet: Source text surrounding the offset, or None
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        offset: int | None = None,
        source: str | None = None,
        snippet_width: int = DEFAULT_SNIPPET_WIDTH,
    ):
        self.kind = kind
        self.message = message
        self.offset = offset
        self.line: int | None = None
        self.column: int | None = None
        self.snippet: str | None = None
        if offset is not None and source is not None:
            location = locate(source, offset, snippet_width)
            self.offset = location.offset
            self.line = location.line
            self.column = location.column
            self.snippet = location.snippet
        super().__init__(self._format())

    def _format(self) -> str:
        if self.line is not None:
            return f"{self.message} at line {self.line}, column {self.column}"
        if self.offset is not None:
            return f"{self.message} at position {self.offset}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "offset": self.offset,
            "line": self.line,
            "column": self.column,
            "snippet": self.snippet,
        }


class ParseError(StringentError):
    """Error while parsing an input string."""
    pass


class EvalError(StringentError):
    """Error while evaluating an AST.

    For DataTypeViolation errors, ``violations`` lists every schema
    violation found before the tree walk was aborted.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        offset: int | None = None,
        source: str | None = None,
        snippet_width: int = DEFAULT_SNIPPET_WIDTH,
        violations: list[Any] | None = None,
    ):
        self.violations = list(violations or [])
        super().__init__(kind, message, offset, source, snippet_width)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.violations:
            result["violations"] = [v.to_dict() for v in self.violations]
        return result


class GrammarError(ValueError):
    """Invalid node definitions supplied to the grammar builder or loader."""
    pass
