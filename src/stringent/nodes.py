"""Node definitions: the declarative grammar rules fed to the grammar builder.

A node definition names a rule, gives its pattern (an ordered sequence of
pattern elements), its precedence level and how its result type is
computed, and optionally the rule used to evaluate it.

Usage:
    add = define_node(
        name="add",
        pattern=[lhs("number").as_("left"), const("+"), rhs("number").as_("right")],
        precedence=1,
        result_type="number",
        eval=lambda b: b["left"] + b["right"],
    )
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, TypeVar

from stringent.descriptors import UNKNOWN


ATOM = "atom"

EvalRule = Callable[[Mapping[str, Any]], Any]

_E = TypeVar("_E", bound="PatternElement")


# -----------------------------------------------------------------------------
# Pattern elements
# -----------------------------------------------------------------------------


class Role(Enum):
    """How an operand position is parsed."""

    LHS = "lhs"    # strictly tighter than the node's own level
    RHS = "rhs"    # the node's own level (right-associative)
    EXPR = "expr"  # any level (full sub-expression)


@dataclass(frozen=True)
class PatternElement:
    """Base class for pattern elements.

    Attributes:
        binding: Name under which the matched value is kept, or None to discard it
    """

    binding: str | None = field(default=None, kw_only=True)

    def as_(self: _E, name: str) -> _E:
        """Return a copy of this element bound to ``name``."""
        return replace(self, binding=name)

    def describe(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    def _with_binding(self, data: dict[str, Any]) -> dict[str, Any]:
        if self.binding:
            data["as"] = self.binding
        return data


@dataclass(frozen=True)
class NumberMatcher(PatternElement):
    """Numeric literal."""

    def describe(self) -> str:
        return "a number"

    def to_dict(self) -> dict[str, Any]:
        return self._with_binding({"match": "number"})


@dataclass(frozen=True)
class StringMatcher(PatternElement):
    """Single- or double-quoted string literal."""

    def describe(self) -> str:
        return "a string"

    def to_dict(self) -> dict[str, Any]:
        return self._with_binding({"match": "string"})


@dataclass(frozen=True)
class IdentMatcher(PatternElement):
    """Identifier resolved against the parse-time schema."""

    def describe(self) -> str:
        return "an identifier"

    def to_dict(self) -> dict[str, Any]:
        return self._with_binding({"match": "ident"})


@dataclass(frozen=True)
class KeywordMatcher(PatternElement):
    """One of the keyword literals null, true, false, undefined."""

    word: str

    def describe(self) -> str:
        return f"'{self.word}'"

    def to_dict(self) -> dict[str, Any]:
        return self._with_binding({"match": "keyword", "word": self.word})


@dataclass(frozen=True)
class ConstMatcher(PatternElement):
    """Exact text, matched verbatim (operator symbol or keyword)."""

    text: str

    def describe(self) -> str:
        return f"'{self.text}'"

    def to_dict(self) -> dict[str, Any]:
        return self._with_binding({"const": self.text})


@dataclass(frozen=True)
class Operand(PatternElement):
    """A sub-expression, optionally constrained to a type descriptor."""

    role: Role
    constraint: str | None = None

    def describe(self) -> str:
        if self.constraint:
            return f"an expression of type {self.constraint}"
        return "an expression"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"operand": self.role.value}
        if self.constraint:
            data["type"] = self.constraint
        return self._with_binding(data)


LITERAL_KEYWORDS = ("null", "true", "false", "undefined")


def number() -> NumberMatcher:
    return NumberMatcher()


def string() -> StringMatcher:
    return StringMatcher()


def ident() -> IdentMatcher:
    return IdentMatcher()


def keyword(word: str) -> KeywordMatcher:
    if word not in LITERAL_KEYWORDS:
        raise ValueError(f"Unknown keyword literal {word!r}; expected one of {LITERAL_KEYWORDS}")
    return KeywordMatcher(word)


def const(text: str) -> ConstMatcher:
    if not text or text != text.strip():
        raise ValueError(f"Exact-text token must be non-empty without surrounding whitespace: {text!r}")
    return ConstMatcher(text)


def lhs(constraint: str | None = None) -> Operand:
    return Operand(Role.LHS, constraint)


def rhs(constraint: str | None = None) -> Operand:
    return Operand(Role.RHS, constraint)


def expr(constraint: str | None = None) -> Operand:
    return Operand(Role.EXPR, constraint)


# -----------------------------------------------------------------------------
# Result types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FixedType:
    """Result type given verbatim as a type descriptor."""

    descriptor: str

    def to_spec(self) -> str:
        return self.descriptor


@dataclass(frozen=True)
class SoleBinding:
    """The ``unknown`` sentinel: inherit the type of the only binding, if any."""

    def to_spec(self) -> str:
        return UNKNOWN


@dataclass(frozen=True)
class UnionOf:
    """Union of the result types of the named bindings."""

    names: tuple[str, ...]

    def to_spec(self) -> dict[str, Any]:
        return {"union": list(self.names)}


ResultType = FixedType | SoleBinding | UnionOf


def union_of(*names: str) -> UnionOf:
    return UnionOf(tuple(names))


def result_type_from(value: Any) -> ResultType:
    """Normalize a user-supplied result type.

    Accepts a ResultType, a descriptor string (``"unknown"`` meaning
    SoleBinding), or a ``{"union": [...]}`` mapping.
    """
    if isinstance(value, (FixedType, SoleBinding, UnionOf)):
        return value
    if isinstance(value, str):
        return SoleBinding() if value == UNKNOWN else FixedType(value)
    if isinstance(value, Mapping) and set(value) == {"union"}:
        return UnionOf(tuple(value["union"]))
    raise TypeError(f"Unsupported result type: {value!r}")


# -----------------------------------------------------------------------------
# Node definition
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class NodeDefinition:
    """One grammar rule.

    Attributes:
        name: Unique node name
        pattern: Ordered pattern elements
        precedence: Numeric level (higher binds tighter) or ATOM
        result_type: How the node's output schema is computed
        eval_rule: Function from resolved bindings to a value, or None
    """

    name: str
    pattern: tuple[PatternElement, ...]
    precedence: int | str
    result_type: ResultType = field(default_factory=SoleBinding)
    eval_rule: EvalRule | None = field(default=None, compare=False)

    @property
    def is_atom(self) -> bool:
        return self.precedence == ATOM

    @property
    def leading_operand(self) -> Operand | None:
        """The operand that receives the already-parsed left operand, if any."""
        if self.pattern and isinstance(self.pattern[0], Operand):
            return self.pattern[0]
        return None

    @property
    def binding_names(self) -> list[str]:
        return [element.binding for element in self.pattern if element.binding]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "precedence": self.precedence,
            "pattern": [element.to_dict() for element in self.pattern],
            "resultType": self.result_type.to_spec(),
            "evaluable": self.eval_rule is not None,
        }


def define_node(
    name: str,
    pattern: Sequence[PatternElement],
    precedence: int | str,
    result_type: Any = UNKNOWN,
    eval: EvalRule | None = None,
) -> NodeDefinition:
    """Create a node definition.

    Args:
        name: Unique node name
        pattern: Pattern elements, e.g. ``[lhs("number").as_("left"), const("+"), rhs()]``
        precedence: Numeric level or ATOM
        result_type: Descriptor string, ``"unknown"`` or a union_of(...) spec
        eval: Evaluation rule receiving the resolved bindings

    Structural checks (unique names, non-empty patterns) happen in the
    grammar builder.
    """
    return NodeDefinition(
        name=name,
        pattern=tuple(pattern),
        precedence=precedence,
        result_type=result_type_from(result_type),
        eval_rule=eval,
    )
