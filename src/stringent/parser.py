"""Precedence parser.

Parses an input string against a compiled grammar and a caller schema,
producing an immutable AST whose nodes carry their resolved output
schema.

The algorithm is precedence climbing over scannerless recursive descent:

1. Parse an operand: an atom-level node, a prefix node (levels at or
   above the current minimum first, then looser ones, tightest first), a
   parenthesized sub-expression, a literal, or an identifier declared in
   the schema.
2. Repeatedly try to extend the operand: for each level at or above the
   minimum, loosest first, try that level's nodes whose pattern starts
   with an operand, in registry order. The first node whose whole
   pattern matches becomes the new left operand.
3. Stop when nothing extends the operand.

Operand roles: ``lhs`` parses strictly tighter than the node's level,
``rhs`` at the node's own level (right-associative), ``expr`` at any
level. In the leading position the role instead limits which left
operands a node accepts.
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, NamedTuple

from stringent.bindings import BindingCollector
from stringent.config import ParserSettings
from stringent.descriptors import is_assignable
from stringent.errors import ErrorKind, ParseError
from stringent.grammar import (
    ATOM_RANK,
    IDENTIFIER_NODE,
    LITERAL_NODE,
    Grammar,
    build_grammar,
)
from stringent.lexer import KEYWORDS, Lexer, Token, TokenType
from stringent.nodes import (
    ConstMatcher,
    IdentMatcher,
    KeywordMatcher,
    NodeDefinition,
    NumberMatcher,
    Operand,
    PatternElement,
    Role,
    StringMatcher,
)
from stringent.schema import check_schema


ANY_RANK = -math.inf

SchemaMap = Mapping[str, Any]


# -----------------------------------------------------------------------------
# AST
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Span:
    """Source offsets covered by a node (end is exclusive)."""

    start: int
    end: int


@dataclass(frozen=True)
class ASTNode:
    """A parsed node.

    Attributes:
        node: Name of the node definition, or "literal" / "identifier"
        output_schema: Resolved type descriptor
        span: Source offsets
        bindings: Binding name to child ASTNode or literal value
        value: Decoded value, for literals
        name: Field name, for identifiers
    """

    node: str
    output_schema: str
    span: Span
    bindings: Mapping[str, Any] = field(default_factory=dict)
    value: Any = None
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "bindings", MappingProxyType(dict(self.bindings)))

    @property
    def is_literal(self) -> bool:
        return self.node == LITERAL_NODE

    @property
    def is_identifier(self) -> bool:
        return self.node == IDENTIFIER_NODE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "node": self.node,
            "outputSchema": self.output_schema,
            "span": [self.span.start, self.span.end],
        }
        if self.is_literal:
            data["value"] = self.value
        elif self.is_identifier:
            data["name"] = self.name
        else:
            data["bindings"] = {
                key: value.to_dict() if isinstance(value, ASTNode) else value
                for key, value in self.bindings.items()
            }
        return data


# -----------------------------------------------------------------------------
# Parse session
# -----------------------------------------------------------------------------


class _Match(NamedTuple):
    node: ASTNode
    rank: float
    start: int
    end: int


@dataclass(frozen=True)
class _Failure:
    kind: ErrorKind
    message: str
    offset: int
    at: int
    priority: int


class _ParseSession:
    """State for a single parse call.

    A new session is created per call, so one Parser can serve concurrent
    parses.
    """

    def __init__(
        self,
        grammar: Grammar,
        source: str,
        schema: SchemaMap,
        settings: ParserSettings,
    ):
        self.grammar = grammar
        self.source = source
        self.schema = schema
        self.settings = settings
        self.lexer = Lexer(
            source,
            reserved_words=grammar.reserved_words,
            longer_tokens=grammar.longer_tokens,
            snippet_width=settings.snippet_width,
        )
        self.depth = 0
        self.failure: _Failure | None = None

    # -------------------------------------------------------------------------
    # Failure tracking
    # -------------------------------------------------------------------------

    def error(self, kind: ErrorKind, message: str, offset: int | None) -> ParseError:
        return ParseError(kind, message, offset, self.source, self.settings.snippet_width)

    def _record(self, kind: ErrorKind, message: str, offset: int, at: int | None = None) -> None:
        """Remember a soft failure; the deepest (then most specific) one wins."""
        at = offset if at is None else at
        priority = 1 if kind is ErrorKind.TYPE_MISMATCH else 0
        if self.failure is None or (at, priority) > (self.failure.at, self.failure.priority):
            self.failure = _Failure(kind, message, offset, at, priority)

    def failure_error(self, position: int) -> ParseError:
        if self.failure is not None:
            return self.error(self.failure.kind, self.failure.message, self.failure.offset)
        return self.error(ErrorKind.NO_MATCH, "Expected an expression", position)

    def _describe(self, position: int) -> str:
        if position >= len(self.source):
            return "end of input"
        return repr(self.source[position])

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def parse_expr(self, position: int, min_rank: float) -> _Match | None:
        """Parse the longest expression at position whose operators bind at min_rank or tighter."""
        self.depth += 1
        try:
            if self.depth > self.settings.max_depth:
                raise self.error(
                    ErrorKind.NESTING_TOO_DEEP,
                    f"Expression nests deeper than {self.settings.max_depth} levels",
                    self.lexer.skip_whitespace(position),
                )

            left = self._parse_operand(position, min_rank)
            if left is None:
                return None

            while True:
                extended = self._extend(left, min_rank)
                if extended is None:
                    return left
                left = extended
        finally:
            self.depth -= 1

    def _parse_operand(self, position: int, min_rank: float) -> _Match | None:
        start = self.lexer.skip_whitespace(position)

        for node in self.grammar.atom_level.prefix_nodes:
            match = self._match_node(node, ATOM_RANK, start)
            if match is not None:
                return match

        numeric = self.grammar.levels[:-1]
        eligible = [level for level in numeric if level.rank >= min_rank]
        # A prefix node starts with its own token, so it is unambiguous even
        # below min_rank (``2 ^ -x``); its operand stays bound by its own level
        looser = [level for level in reversed(numeric) if level.rank < min_rank]
        for level in eligible + looser:
            for node in level.prefix_nodes:
                match = self._match_node(node, level.rank, start)
                if match is not None:
                    return match

        if start < len(self.source) and self.source[start] == "(":
            return self._parse_group(start)

        token = (
            self.lexer.match_number(start)
            or self.lexer.match_string(start)
            or self.lexer.match_keyword(start)
        )
        if token is not None:
            return _Match(self._literal(token), ATOM_RANK, token.start, token.end)

        token = self.lexer.match_identifier(start)
        if token is not None:
            return _Match(self._identifier(token), ATOM_RANK, token.start, token.end)

        self._record(
            ErrorKind.NO_MATCH,
            f"Expected an expression, found {self._describe(start)}",
            start,
        )
        return None

    def _parse_group(self, start: int) -> _Match | None:
        """Parse ``( expr )``; the group is transparent in the AST."""
        inner = self.parse_expr(start + 1, ANY_RANK)
        if inner is None:
            return None

        close = self.lexer.match_text(inner.end, ")")
        if close is None:
            expected_at = self.lexer.skip_whitespace(inner.end)
            failure = self.failure
            if failure is not None and (
                failure.at > expected_at
                or (failure.at == expected_at and failure.kind is ErrorKind.TYPE_MISMATCH)
            ):
                raise self.failure_error(expected_at)
            raise self.error(
                ErrorKind.UNBALANCED_PAREN,
                "Unbalanced parenthesis: '(' is never closed",
                start,
            )
        return _Match(inner.node, ATOM_RANK, start, close.end)

    def _literal(self, token: Token) -> ASTNode:
        if token.type == TokenType.NUMBER:
            schema = "number"
        elif token.type == TokenType.STRING:
            schema = "string"
        else:
            schema = KEYWORDS[self.source[token.start:token.end]][1]
        return ASTNode(LITERAL_NODE, schema, Span(token.start, token.end), value=token.value)

    def _identifier(self, token: Token) -> ASTNode:
        name = token.value
        if name not in self.schema:
            raise self.error(
                ErrorKind.UNKNOWN_IDENTIFIER,
                f"Unknown identifier '{name}'",
                token.start,
            )
        entry = self.schema[name]
        output_schema = entry if isinstance(entry, str) else "object"
        return ASTNode(IDENTIFIER_NODE, output_schema, Span(token.start, token.end), name=name)

    # -------------------------------------------------------------------------
    # Extension
    # -------------------------------------------------------------------------

    def _extend(self, left: _Match, min_rank: float) -> _Match | None:
        position = self.lexer.skip_whitespace(left.end)

        for level in self.grammar.levels:
            if level.rank < min_rank:
                continue
            for node in level.extension_nodes:
                lead = node.leading_operand
                if not self._accepts_left(lead.role, left.rank, level.rank):
                    continue

                if lead.constraint and not is_assignable(left.node.output_schema, lead.constraint):
                    if self._operator_follows(node, position):
                        self._record(
                            ErrorKind.TYPE_MISMATCH,
                            f"Left operand of '{node.name}' must be {lead.constraint}, "
                            f"got {left.node.output_schema}",
                            left.start,
                            at=position,
                        )
                    continue

                match = self._match_node(node, level.rank, left.end, lead=left)
                if match is not None:
                    return match

        return None

    def _accepts_left(self, role: Role, left_rank: float, rank: float) -> bool:
        if role is Role.EXPR:
            return True
        if role is Role.RHS:
            return left_rank >= rank
        # lhs: the left operand must come from a tighter level; at the
        # atom level only atoms qualify
        return left_rank > rank or left_rank == rank == ATOM_RANK

    def _operator_follows(self, node: NodeDefinition, position: int) -> bool:
        if len(node.pattern) > 1 and isinstance(node.pattern[1], ConstMatcher):
            return self.lexer.match_text(position, node.pattern[1].text) is not None
        return True

    # -------------------------------------------------------------------------
    # Patterns
    # -------------------------------------------------------------------------

    def _match_node(
        self,
        node: NodeDefinition,
        rank: float,
        position: int,
        lead: _Match | None = None,
    ) -> _Match | None:
        collector = BindingCollector()
        elements: Sequence[PatternElement] = node.pattern
        start: int | None = None
        cursor = position

        if lead is not None:
            collector.bind(elements[0].binding, lead.node, lead.node.output_schema)
            start = lead.start
            elements = elements[1:]

        committed = False
        for element in elements:
            result = self._match_element(element, node, rank, cursor)
            if result is None:
                if committed:
                    at = self.lexer.skip_whitespace(cursor)
                    self._record(
                        ErrorKind.NO_MATCH,
                        f"Expected {element.describe()} in '{node.name}', "
                        f"found {self._describe(at)}",
                        at,
                    )
                return None

            value, schema, element_start, element_end = result
            if start is None:
                start = element_start
            collector.bind(element.binding, value, schema)
            cursor = element_end
            committed = True

        ast = ASTNode(
            node.name,
            collector.output_schema(node.result_type),
            Span(start, cursor),
            collector.values,
        )
        return _Match(ast, rank, start, cursor)

    def _match_element(
        self,
        element: PatternElement,
        node: NodeDefinition,
        rank: float,
        position: int,
    ) -> tuple[Any, str, int, int] | None:
        """Match one pattern element; returns (value, schema, start, end) or None."""
        if isinstance(element, ConstMatcher):
            token = self.lexer.match_text(position, element.text)
            if token is None:
                return None
            return token.value, "string", token.start, token.end

        if isinstance(element, NumberMatcher):
            token = self.lexer.match_number(position)
            if token is None:
                return None
            return token.value, "number", token.start, token.end

        if isinstance(element, StringMatcher):
            token = self.lexer.match_string(position)
            if token is None:
                return None
            return token.value, "string", token.start, token.end

        if isinstance(element, KeywordMatcher):
            token = self.lexer.match_keyword(position, element.word)
            if token is None:
                return None
            return token.value, KEYWORDS[element.word][1], token.start, token.end

        if isinstance(element, IdentMatcher):
            token = self.lexer.match_identifier(position)
            if token is None:
                return None
            identifier = self._identifier(token)
            return identifier, identifier.output_schema, token.start, token.end

        if isinstance(element, Operand):
            if element.role is Role.RHS:
                min_rank = rank
            elif element.role is Role.LHS:
                min_rank = rank + 1
            else:
                min_rank = ANY_RANK

            match = self.parse_expr(position, min_rank)
            if match is None:
                return None

            if element.constraint and not is_assignable(match.node.output_schema, element.constraint):
                label = f"'{element.binding}'" if element.binding else "operand"
                self._record(
                    ErrorKind.TYPE_MISMATCH,
                    f"Operand {label} of '{node.name}' must be {element.constraint}, "
                    f"got {match.node.output_schema}",
                    match.start,
                )
                return None
            return match.node, match.node.output_schema, match.start, match.end

        raise TypeError(f"Unsupported pattern element: {element!r}")


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


class Parser:
    """Parser built from a node registry.

    Usage:
        parser = build_parser([add, mul])
        ast, rest = parser.parse("x + 1", {"x": "number"})

    The parser and its grammar are immutable; parse() may be called from
    several threads at once.
    """

    def __init__(self, nodes: Sequence[NodeDefinition], settings: ParserSettings | None = None):
        self.grammar = build_grammar(nodes)
        self.settings = settings or ParserSettings()

    @property
    def nodes(self) -> tuple[NodeDefinition, ...]:
        return self.grammar.nodes

    def parse(self, source: str, schema: SchemaMap | None = None) -> tuple[ASTNode, str]:
        """Parse the longest expression at the start of source.

        Args:
            source: The input string
            schema: Field name to type descriptor (or nested mapping)

        Returns:
            The AST root and the unparsed remainder (empty when the whole
            input was consumed)

        Raises:
            ParseError: If no expression could be parsed
        """
        session, match = self._run(source, schema)
        end = session.lexer.skip_whitespace(match.end)
        return match.node, source[end:]

    def parse_full(self, source: str, schema: SchemaMap | None = None) -> ASTNode:
        """Parse source, requiring the whole input to be consumed."""
        session, match = self._run(source, schema)
        end = session.lexer.skip_whitespace(match.end)
        if end >= len(source):
            return match.node

        if source[end] == ")":
            raise session.error(
                ErrorKind.UNBALANCED_PAREN,
                "Unbalanced parenthesis: unmatched ')'",
                end,
            )
        if session.failure is not None and session.failure.at >= end:
            raise session.failure_error(end)
        raise session.error(
            ErrorKind.NO_MATCH,
            f"Unexpected input {source[end:end + 20]!r}",
            end,
        )

    def evaluate(self, source: str, schema: SchemaMap | None, data: Mapping[str, Any]) -> Any:
        """Parse source fully and evaluate it against data."""
        from stringent.evaluator import EvalContext, Evaluator

        ast = self.parse_full(source, schema)
        context = EvalContext(data=data, nodes=self.grammar, schema=schema, source=source)
        return Evaluator(context, self.settings).evaluate(ast)

    def _run(self, source: str, schema: SchemaMap | None) -> tuple[_ParseSession, _Match]:
        if not isinstance(source, str):
            raise TypeError(f"source must be a string, got {type(source).__name__}")
        schema = self._checked_schema(source, schema)

        session = _ParseSession(self.grammar, source, schema, self.settings)
        match = session.parse_expr(0, ANY_RANK)
        if match is None:
            raise session.failure_error(session.lexer.skip_whitespace(0))
        return session, match

    def _checked_schema(self, source: str, schema: SchemaMap | None) -> SchemaMap:
        if schema is None:
            return {}
        if not isinstance(schema, Mapping):
            raise ParseError(
                ErrorKind.INVALID_SCHEMA,
                f"Schema must be a mapping, got {type(schema).__name__}",
                0,
                source,
                self.settings.snippet_width,
            )
        problems = check_schema(schema)
        if problems:
            raise ParseError(
                ErrorKind.INVALID_SCHEMA,
                "Invalid schema: " + "; ".join(problems),
                0,
                source,
                self.settings.snippet_width,
            )
        return schema


def build_parser(nodes: Sequence[NodeDefinition], settings: ParserSettings | None = None) -> Parser:
    """Build a parser from node definitions.

    Raises:
        GrammarError: On duplicate names, empty patterns or other invalid definitions
    """
    return Parser(nodes, settings)
