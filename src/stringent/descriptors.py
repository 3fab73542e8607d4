"""Type descriptors for schema fields and node result types.

A type descriptor is a small string language shared by caller schemas,
operand constraints and node result types:

- Primitives: string, number, boolean, bigint, null, undefined, unknown, object, Date, symbol
- Subtypes: string.email, string.uuid, number.integer, ...
- Bounds: ``number >= 0``, ``1 <= number <= 100``, ``string >= 8`` (length)
- Arrays: ``string[]``, ``(string | number)[]``, ``number[] >= 1`` (length)
- Unions: ``string | number | null``

Descriptors are parsed once and cached. Parsed descriptors check runtime
values (schema validation) and decide assignability between two
descriptors (operand constraints during parsing).
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from functools import lru_cache
from typing import Any, Callable


UNKNOWN = "unknown"


class _Undefined:
    """Singleton standing in for an absent value (the ``undefined`` keyword)."""

    _instance: "_Undefined | None" = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


class DescriptorError(ValueError):
    """Invalid type descriptor text."""

    def __init__(self, message: str, text: str):
        self.text = text
        super().__init__(f"Invalid type descriptor {text!r}: {message}")


# =============================================================================
# Format Patterns
# =============================================================================

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)

URL_PATTERN = re.compile(
    r"^https?://[^\s/$.?#].[^\s]*$",
    re.IGNORECASE
)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE
)

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MAX_SAFE_INTEGER = 2**53 - 1


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_integral(value: Any) -> bool:
    if isinstance(value, int):
        return True
    try:
        return value == value.to_integral_value() if isinstance(value, Decimal) else value.is_integer()
    except (ArithmeticError, AttributeError):
        return False


def _is_iso_date(value: str) -> bool:
    if not ISO_DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


_KIND_CHECKS: dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "number": _is_number,
    "bigint": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "null": lambda v: v is None,
    "undefined": lambda v: v is UNDEFINED,
    "unknown": lambda v: True,
    "object": lambda v: isinstance(v, Mapping),
    "Date": lambda v: isinstance(v, date),
    # No Python value is a symbol: such fields can be declared, never satisfied
    "symbol": lambda v: False,
}

PRIMITIVES = frozenset(_KIND_CHECKS)

# Kinds that accept bounds, and whether the bound applies to the length
_BOUNDABLE = {"number": False, "bigint": False, "string": True}

_SUBTYPES: dict[str, dict[str, tuple[Callable[[Any], bool], str]]] = {
    "string": {
        "email": (lambda v: bool(EMAIL_PATTERN.match(v)), "a valid email address"),
        "uuid": (lambda v: bool(UUID_PATTERN.match(v)), "a valid UUID"),
        "url": (lambda v: bool(URL_PATTERN.match(v)), "a valid URL"),
        "alpha": (lambda v: bool(re.fullmatch(r"[A-Za-z]*", v)), "only letters"),
        "alphanumeric": (lambda v: bool(re.fullmatch(r"[A-Za-z0-9]*", v)), "only letters and digits"),
        "digits": (lambda v: bool(re.fullmatch(r"[0-9]*", v)), "only digits"),
        "lower": (lambda v: v == v.lower(), "lowercase"),
        "upper": (lambda v: v == v.upper(), "uppercase"),
        "date": (_is_iso_date, "a valid date (YYYY-MM-DD)"),
    },
    "number": {
        "integer": (_is_integral, "an integer"),
        "safe": (lambda v: _is_integral(v) and abs(v) <= MAX_SAFE_INTEGER, "a safe integer"),
    },
}


def type_name(value: Any) -> str:
    """Describe a runtime value using descriptor vocabulary."""
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, date):
        return "Date"
    return type(value).__name__


def _format_number(value: float) -> str:
    if isinstance(value, int):
        return str(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


# =============================================================================
# Descriptor Types
# =============================================================================


@dataclass(frozen=True)
class Bounds:
    """Closed or open interval constraining a number or a length."""

    minimum: float | None = None
    minimum_exclusive: bool = False
    maximum: float | None = None
    maximum_exclusive: bool = False

    def admits(self, value: float) -> bool:
        if self.minimum is not None:
            if value < self.minimum or (self.minimum_exclusive and value == self.minimum):
                return False
        if self.maximum is not None:
            if value > self.maximum or (self.maximum_exclusive and value == self.maximum):
                return False
        return True

    def within(self, other: "Bounds") -> bool:
        """True if every value admitted by self is admitted by other."""
        if other.minimum is not None:
            if self.minimum is None or self.minimum < other.minimum:
                return False
            if (
                self.minimum == other.minimum
                and other.minimum_exclusive
                and not self.minimum_exclusive
            ):
                return False
        if other.maximum is not None:
            if self.maximum is None or self.maximum > other.maximum:
                return False
            if (
                self.maximum == other.maximum
                and other.maximum_exclusive
                and not self.maximum_exclusive
            ):
                return False
        return True

    def _is_exact(self) -> bool:
        return (
            self.minimum is not None
            and self.minimum == self.maximum
            and not self.minimum_exclusive
            and not self.maximum_exclusive
        )

    def describe(self) -> str:
        """Render as a condition, e.g. ``>= 0 and < 10``."""
        if self._is_exact():
            return f"== {_format_number(self.minimum)}"
        parts = []
        if self.minimum is not None:
            op = ">" if self.minimum_exclusive else ">="
            parts.append(f"{op} {_format_number(self.minimum)}")
        if self.maximum is not None:
            op = "<" if self.maximum_exclusive else "<="
            parts.append(f"{op} {_format_number(self.maximum)}")
        return " and ".join(parts)

    def render(self, base: str) -> str:
        """Render back into descriptor syntax around a base type."""
        if self._is_exact():
            return f"{base} == {_format_number(self.minimum)}"
        if self.minimum is not None and self.maximum is not None:
            low_op = "<" if self.minimum_exclusive else "<="
            high_op = "<" if self.maximum_exclusive else "<="
            return (
                f"{_format_number(self.minimum)} {low_op} {base} "
                f"{high_op} {_format_number(self.maximum)}"
            )
        return f"{base} {self.describe()}"


@dataclass(frozen=True)
class Primitive:
    """A primitive kind, optionally narrowed by a subtype and bounds."""

    kind: str
    subtype: str | None = None
    bounds: Bounds | None = None

    def render(self) -> str:
        base = f"{self.kind}.{self.subtype}" if self.subtype else self.kind
        return self.bounds.render(base) if self.bounds else base

    def violation(self, value: Any) -> tuple[str, str] | None:
        """Return (code, message) if value does not conform, else None."""
        if not _KIND_CHECKS[self.kind](value):
            return "INVALID_TYPE", f"must be {self.kind}, got {type_name(value)}"

        if self.subtype:
            predicate, label = _SUBTYPES[self.kind][self.subtype]
            if not predicate(value):
                return "INVALID_FORMAT", f"must be {label}"

        if self.bounds:
            if _BOUNDABLE[self.kind]:
                if not self.bounds.admits(len(value)):
                    return "INVALID_LENGTH", f"length must be {self.bounds.describe()}"
            elif not self.bounds.admits(value):
                return "OUT_OF_RANGE", f"must be {self.bounds.describe()}"

        return None


@dataclass(frozen=True)
class ArrayOf:
    """An array whose items all conform to an element descriptor."""

    element: "Descriptor"
    bounds: Bounds | None = None

    def render(self) -> str:
        inner = self.element.render()
        if isinstance(self.element, UnionType) or getattr(self.element, "bounds", None):
            inner = f"({inner})"
        base = f"{inner}[]"
        return self.bounds.render(base) if self.bounds else base

    def violation(self, value: Any) -> tuple[str, str] | None:
        if not isinstance(value, (list, tuple)):
            return "INVALID_TYPE", f"must be an array, got {type_name(value)}"

        if self.bounds and not self.bounds.admits(len(value)):
            return "INVALID_LENGTH", f"length must be {self.bounds.describe()}"

        for index, item in enumerate(value):
            problem = self.element.violation(item)
            if problem:
                code, message = problem
                return code, f"item {index} {message}"

        return None


@dataclass(frozen=True)
class UnionType:
    """Any one of several member descriptors."""

    members: tuple["Primitive | ArrayOf", ...]

    def render(self) -> str:
        return " | ".join(member.render() for member in self.members)

    def violation(self, value: Any) -> tuple[str, str] | None:
        if any(member.violation(value) is None for member in self.members):
            return None
        return "INVALID_TYPE", f"must be {self.render()}, got {type_name(value)}"


Descriptor = Primitive | ArrayOf | UnionType


def members_of(descriptor: Descriptor) -> tuple["Primitive | ArrayOf", ...]:
    if isinstance(descriptor, UnionType):
        return descriptor.members
    return (descriptor,)


# =============================================================================
# Descriptor Parser
# =============================================================================

# Token patterns (order matters - longer matches first)
_TOKEN_PATTERNS = [
    (re.compile(r"\s+"), None),
    (re.compile(r"\[\]"), "ARRAY"),
    (re.compile(r">=|<=|==|>|<"), "CMP"),
    (re.compile(r"\|"), "PIPE"),
    (re.compile(r"\("), "LPAREN"),
    (re.compile(r"\)"), "RPAREN"),
    (re.compile(r"\."), "DOT"),
    (re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?"), "NUMBER"),
    (re.compile(r"[A-Za-z_]\w*"), "NAME"),
]


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    position = 0
    while position < len(text):
        for pattern, token_type in _TOKEN_PATTERNS:
            match = pattern.match(text, position)
            if match:
                if token_type is not None:
                    tokens.append((token_type, match.group()))
                position = match.end()
                break
        else:
            raise DescriptorError(f"unexpected character {text[position]!r}", text)
    tokens.append(("EOF", ""))
    return tokens


class _DescriptorParser:
    """Recursive descent parser over descriptor tokens."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.position = 0

    def parse(self) -> Descriptor:
        if self._match("EOF"):
            raise DescriptorError("empty descriptor", self.text)
        descriptor = self._parse_union()
        if not self._match("EOF"):
            raise DescriptorError(f"unexpected {self._current()[1]!r}", self.text)
        return descriptor

    def _current(self) -> tuple[str, str]:
        return self.tokens[self.position]

    def _match(self, token_type: str) -> bool:
        return self._current()[0] == token_type

    def _advance(self) -> tuple[str, str]:
        token = self._current()
        if token[0] != "EOF":
            self.position += 1
        return token

    def _consume(self, token_type: str, message: str) -> str:
        if self._match(token_type):
            return self._advance()[1]
        raise DescriptorError(message, self.text)

    def _parse_union(self) -> Descriptor:
        members: list[Primitive | ArrayOf] = list(members_of(self._parse_bounded()))
        while self._match("PIPE"):
            self._advance()
            members.extend(members_of(self._parse_bounded()))
        if len(members) == 1:
            return members[0]
        return UnionType(tuple(members))

    def _parse_bounded(self) -> Descriptor:
        # Range form: 1 <= number <= 100
        if self._match("NUMBER"):
            low = self._number(self._advance()[1])
            low_op = self._consume("CMP", "expected a comparator after a bound")
            if low_op not in ("<", "<="):
                raise DescriptorError(f"left bound must use '<' or '<=', got {low_op!r}", self.text)
            base = self._parse_base()
            bounds = Bounds(minimum=low, minimum_exclusive=low_op == "<")
            if self._match("CMP"):
                high_op = self._advance()[1]
                if high_op not in ("<", "<="):
                    raise DescriptorError(
                        f"right bound must use '<' or '<=', got {high_op!r}", self.text
                    )
                high = self._number(self._consume("NUMBER", "expected a number after comparator"))
                bounds = replace(bounds, maximum=high, maximum_exclusive=high_op == "<")
            return self._with_bounds(base, bounds)

        base = self._parse_base()
        if self._match("CMP"):
            op = self._advance()[1]
            limit = self._number(self._consume("NUMBER", f"expected a number after {op!r}"))
            if op == ">=":
                bounds = Bounds(minimum=limit)
            elif op == ">":
                bounds = Bounds(minimum=limit, minimum_exclusive=True)
            elif op == "<=":
                bounds = Bounds(maximum=limit)
            elif op == "<":
                bounds = Bounds(maximum=limit, maximum_exclusive=True)
            else:
                bounds = Bounds(minimum=limit, maximum=limit)
            return self._with_bounds(base, bounds)
        return base

    def _parse_base(self) -> Descriptor:
        term = self._parse_term()
        while self._match("ARRAY"):
            self._advance()
            term = ArrayOf(term)
        return term

    def _parse_term(self) -> Descriptor:
        if self._match("LPAREN"):
            self._advance()
            inner = self._parse_union()
            self._consume("RPAREN", "expected ')'")
            return inner

        if not self._match("NAME"):
            token = self._current()[1] or "end of input"
            raise DescriptorError(f"expected a type name, got {token!r}", self.text)

        kind = self._advance()[1]
        if kind not in PRIMITIVES:
            raise DescriptorError(f"unknown type {kind!r}", self.text)

        subtype = None
        if self._match("DOT"):
            self._advance()
            subtype = self._consume("NAME", "expected a subtype name after '.'")
            if subtype not in _SUBTYPES.get(kind, {}):
                raise DescriptorError(f"unknown subtype {kind}.{subtype}", self.text)

        return Primitive(kind, subtype)

    def _with_bounds(self, base: Descriptor, bounds: Bounds) -> Descriptor:
        if isinstance(base, ArrayOf) and base.bounds is None:
            return replace(base, bounds=bounds)
        if isinstance(base, Primitive) and base.kind in _BOUNDABLE and base.bounds is None:
            return replace(base, bounds=bounds)
        raise DescriptorError(f"bounds are not supported on {base.render()!r}", self.text)

    def _number(self, text: str) -> float:
        if any(c in text for c in ".eE"):
            return float(text)
        return int(text)


@lru_cache(maxsize=1024)
def parse_descriptor(text: str) -> Descriptor:
    """Parse descriptor text.

    Raises:
        DescriptorError: If the text is not a valid descriptor
    """
    if not isinstance(text, str):
        raise DescriptorError("descriptor must be a string", repr(text))
    return _DescriptorParser(text).parse()


def is_valid_descriptor(text: str) -> bool:
    try:
        parse_descriptor(text)
    except DescriptorError:
        return False
    return True


# =============================================================================
# Assignability
# =============================================================================


def _is_unknown(descriptor: "Primitive | ArrayOf") -> bool:
    return isinstance(descriptor, Primitive) and descriptor.kind == UNKNOWN


def _bounds_within(source: Bounds | None, target: Bounds | None) -> bool:
    if target is None:
        return True
    if source is None:
        return False
    return source.within(target)


def _member_assignable(source: "Primitive | ArrayOf", target: "Primitive | ArrayOf") -> bool:
    if _is_unknown(target):
        return True

    if isinstance(source, Primitive) and isinstance(target, Primitive):
        if source.kind != target.kind:
            return False
        if target.subtype and source.subtype != target.subtype:
            return False
        return _bounds_within(source.bounds, target.bounds)

    if isinstance(source, ArrayOf) and isinstance(target, ArrayOf):
        return _descriptor_assignable(source.element, target.element) and _bounds_within(
            source.bounds, target.bounds
        )

    return False


def _descriptor_assignable(source: Descriptor, target: Descriptor) -> bool:
    target_members = members_of(target)
    return all(
        any(_member_assignable(s, t) for t in target_members)
        for s in members_of(source)
    )


def is_assignable(source: str, target: str) -> bool:
    """True if every value described by source is described by target.

    ``unknown`` as a target accepts everything; as a source it is only
    assignable to ``unknown``.
    """
    return _descriptor_assignable(parse_descriptor(source), parse_descriptor(target))


# =============================================================================
# Unions of result types
# =============================================================================


def union_of_schemas(schemas: Iterable[str]) -> str:
    """Flatten, de-duplicate and sort descriptors into one union descriptor.

    A member ``unknown`` absorbs the whole union.
    """
    rendered: set[str] = set()
    for schema in schemas:
        for member in members_of(parse_descriptor(schema)):
            if _is_unknown(member):
                return UNKNOWN
            rendered.add(member.render())
    if not rendered:
        return UNKNOWN
    return " | ".join(sorted(rendered))
