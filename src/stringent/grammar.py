"""Grammar builder.

Compiles an ordered list of node definitions into precedence levels used
by the parser. Levels are ordered from loosest to tightest binding; the
atom level is always last. Within a level, nodes keep registry order and
the first full match wins.
"""

import logging
import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from stringent.descriptors import DescriptorError, parse_descriptor
from stringent.errors import GrammarError
from stringent.nodes import (
    ATOM,
    LITERAL_KEYWORDS,
    ConstMatcher,
    FixedType,
    KeywordMatcher,
    NodeDefinition,
    Operand,
    PatternElement,
    UnionOf,
)

logger = logging.getLogger(__name__)

ATOM_RANK = math.inf

LITERAL_NODE = "literal"
IDENTIFIER_NODE = "identifier"
RESERVED_NODE_NAMES = frozenset({LITERAL_NODE, IDENTIFIER_NODE})

_WORD = re.compile(r"\w+")


@dataclass(frozen=True)
class PrecedenceLevel:
    """The nodes active at one precedence level.

    Attributes:
        precedence: The declared level (an int, or ATOM)
        rank: Numeric rank used for comparisons (ATOM ranks above every int)
        extension_nodes: Nodes whose pattern starts with an operand; they
            extend an already-parsed left operand
        prefix_nodes: Nodes whose pattern starts with a token; they are
            tried where an operand is expected
    """

    precedence: int | str
    rank: float
    extension_nodes: tuple[NodeDefinition, ...]
    prefix_nodes: tuple[NodeDefinition, ...]

    @property
    def nodes(self) -> tuple[NodeDefinition, ...]:
        return self.extension_nodes + self.prefix_nodes


@dataclass(frozen=True)
class Grammar:
    """Immutable, precedence-indexed view of a node registry.

    Safe to share between threads; the parser never mutates it.
    """

    nodes: tuple[NodeDefinition, ...]
    levels: tuple[PrecedenceLevel, ...]
    tokens: tuple[str, ...]
    reserved_words: frozenset[str]
    _by_name: Mapping[str, NodeDefinition] = field(repr=False, compare=False)
    _longer_tokens: Mapping[str, tuple[str, ...]] = field(repr=False, compare=False)

    def get(self, name: str) -> NodeDefinition:
        """Look up a node definition by name.

        Raises:
            KeyError: If no node has this name
        """
        return self._by_name[name]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def atom_level(self) -> PrecedenceLevel:
        return self.levels[-1]

    def longer_tokens(self, text: str) -> tuple[str, ...]:
        """Registered exact-text tokens that extend ``text`` (e.g. ``==`` for ``=``)."""
        return self._longer_tokens.get(text, ())

    def to_dict(self) -> dict[str, Any]:
        return {
            "levels": [
                {
                    "precedence": level.precedence,
                    "nodes": [node.name for node in level.nodes],
                }
                for level in self.levels
            ],
            "nodes": [node.to_dict() for node in self.nodes],
            "tokens": list(self.tokens),
        }


def _rank(precedence: int | str) -> float:
    return ATOM_RANK if precedence == ATOM else float(precedence)


def _validate_descriptor(node_name: str, text: str, what: str) -> None:
    try:
        parse_descriptor(text)
    except DescriptorError as e:
        raise GrammarError(f"Node '{node_name}': invalid {what}: {e}") from e


def _validate_node(node: Any, seen: set[str]) -> None:
    if not isinstance(node, NodeDefinition):
        raise GrammarError(f"Expected a NodeDefinition, got {type(node).__name__}")

    name = node.name
    if not isinstance(name, str) or not name:
        raise GrammarError(f"Node name must be a non-empty string, got {name!r}")
    if name in RESERVED_NODE_NAMES:
        raise GrammarError(f"Node name '{name}' is reserved for built-in atoms")
    if name in seen:
        raise GrammarError(f"Duplicate node name '{name}'")

    precedence = node.precedence
    if not node.is_atom and (
        not isinstance(precedence, int) or isinstance(precedence, bool) or precedence < 0
    ):
        raise GrammarError(
            f"Node '{name}': precedence must be a non-negative integer or '{ATOM}', "
            f"got {precedence!r}"
        )

    if not node.pattern:
        raise GrammarError(f"Node '{name}' has an empty pattern")
    if len(node.pattern) == 1 and isinstance(node.pattern[0], Operand):
        raise GrammarError(f"Node '{name}' pattern must consume input beyond a single operand")

    bindings: set[str] = set()
    for element in node.pattern:
        if not isinstance(element, PatternElement):
            raise GrammarError(
                f"Node '{name}': pattern elements must be PatternElement, "
                f"got {type(element).__name__}"
            )
        if isinstance(element, ConstMatcher) and (
            not element.text or element.text != element.text.strip()
        ):
            raise GrammarError(f"Node '{name}': invalid exact-text token {element.text!r}")
        if isinstance(element, KeywordMatcher) and element.word not in LITERAL_KEYWORDS:
            raise GrammarError(f"Node '{name}': unknown keyword literal {element.word!r}")
        if isinstance(element, Operand) and element.constraint is not None:
            _validate_descriptor(name, element.constraint, "operand constraint")
        if element.binding is not None:
            if element.binding in bindings:
                raise GrammarError(f"Node '{name}': duplicate binding '{element.binding}'")
            bindings.add(element.binding)

    result_type = node.result_type
    if isinstance(result_type, FixedType):
        _validate_descriptor(name, result_type.descriptor, "result type")
    elif isinstance(result_type, UnionOf):
        if not result_type.names:
            raise GrammarError(f"Node '{name}': union result type names no bindings")
        missing = [n for n in result_type.names if n not in bindings]
        if missing:
            raise GrammarError(
                f"Node '{name}': union result type references unknown bindings {missing}"
            )

    if node.eval_rule is not None and not callable(node.eval_rule):
        raise GrammarError(f"Node '{name}': eval rule must be callable")


def build_grammar(nodes: Iterable[NodeDefinition]) -> Grammar:
    """Compile node definitions into a Grammar.

    Args:
        nodes: Node definitions in registry order

    Returns:
        The compiled grammar

    Raises:
        GrammarError: On duplicate names, empty patterns, bad precedence,
            invalid descriptors or union specs naming undeclared bindings
    """
    registry = tuple(nodes)
    seen: set[str] = set()
    for node in registry:
        _validate_node(node, seen)
        seen.add(node.name)

    by_level: dict[int | str, list[NodeDefinition]] = {}
    for node in registry:
        by_level.setdefault(node.precedence, []).append(node)
    by_level.setdefault(ATOM, [])

    levels = tuple(
        PrecedenceLevel(
            precedence=precedence,
            rank=_rank(precedence),
            extension_nodes=tuple(n for n in members if n.leading_operand is not None),
            prefix_nodes=tuple(n for n in members if n.leading_operand is None),
        )
        for precedence, members in sorted(by_level.items(), key=lambda item: _rank(item[0]))
    )

    texts = {
        element.text
        for node in registry
        for element in node.pattern
        if isinstance(element, ConstMatcher)
    }
    tokens = tuple(sorted(texts, key=lambda t: (-len(t), t)))
    longer = {
        text: tuple(t for t in tokens if len(t) > len(text) and t.startswith(text))
        for text in tokens
    }
    reserved = frozenset(LITERAL_KEYWORDS) | {t for t in tokens if _WORD.fullmatch(t)}

    grammar = Grammar(
        nodes=registry,
        levels=levels,
        tokens=tokens,
        reserved_words=reserved,
        _by_name={node.name: node for node in registry},
        _longer_tokens={text: ext for text, ext in longer.items() if ext},
    )
    logger.debug(
        "Built grammar with %d nodes across %d precedence levels (%d tokens)",
        len(registry),
        len(levels),
        len(tokens),
    )
    return grammar
