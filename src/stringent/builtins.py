"""Built-in evaluation rules.

This module registers the rules used by the bundled standard grammar with
the RuleRegistry. Call register_all_builtins() before loading grammars
that refer to rules by name.

Categories:
- Arithmetic: add, subtract, multiply, divide, modulo, power, negate
- String: concat
- Comparison: eq, neq, lt, lte, gt, gte
- Logic: and, or, not, ternary
- Structure: group

Rules never coerce: operands of the wrong runtime type raise TypeError,
which the evaluator reports as RuleFailed.
"""

from collections.abc import Mapping
from typing import Any

from stringent.descriptors import type_name
from stringent.rules import RuleCategory, RuleDefinition, RuleRegistry


def register_all_builtins() -> None:
    """Register all built-in rules with the RuleRegistry."""
    _register_arithmetic_rules()
    _register_string_rules()
    _register_comparison_rules()
    _register_logic_rules()
    _register_structure_rules()


def _number(value: Any, role: str) -> Any:
    if type_name(value) != "number":
        raise TypeError(f"{role} operand must be a number, got {type_name(value)}")
    return value


def _boolean(value: Any, role: str) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"{role} operand must be a boolean, got {type_name(value)}")
    return value


def _register(
    name: str,
    description: str,
    category: RuleCategory,
    bindings: list[str],
    implementation: Any,
    examples: list[str],
) -> None:
    RuleRegistry.register(
        RuleDefinition(
            name=name,
            description=description,
            category=category,
            bindings=bindings,
            implementation=implementation,
            examples=examples,
        )
    )


# -----------------------------------------------------------------------------
# Arithmetic Rules
# -----------------------------------------------------------------------------


def _add(b: Mapping[str, Any]) -> Any:
    return _number(b["left"], "Left") + _number(b["right"], "Right")


def _subtract(b: Mapping[str, Any]) -> Any:
    return _number(b["left"], "Left") - _number(b["right"], "Right")


def _multiply(b: Mapping[str, Any]) -> Any:
    return _number(b["left"], "Left") * _number(b["right"], "Right")


def _divide(b: Mapping[str, Any]) -> Any:
    left = _number(b["left"], "Left")
    right = _number(b["right"], "Right")
    if right == 0:
        raise ValueError("Division by zero")
    return left / right


def _modulo(b: Mapping[str, Any]) -> Any:
    left = _number(b["left"], "Left")
    right = _number(b["right"], "Right")
    if right == 0:
        raise ValueError("Modulo by zero")
    return left % right


def _power(b: Mapping[str, Any]) -> Any:
    return _number(b["left"], "Left") ** _number(b["right"], "Right")


def _negate(b: Mapping[str, Any]) -> Any:
    return -_number(b["operand"], "Negated")


def _register_arithmetic_rules() -> None:
    binary = ["left", "right"]
    _register("add", "Sum of two numbers", RuleCategory.ARITHMETIC, binary, _add, ["price + tax"])
    _register(
        "subtract", "Difference of two numbers", RuleCategory.ARITHMETIC, binary, _subtract,
        ["total - discount"],
    )
    _register(
        "multiply", "Product of two numbers", RuleCategory.ARITHMETIC, binary, _multiply,
        ["quantity * price"],
    )
    _register(
        "divide", "Quotient of two numbers; fails on division by zero",
        RuleCategory.ARITHMETIC, binary, _divide, ["total / count"],
    )
    _register(
        "modulo", "Remainder of a division; fails on a zero divisor",
        RuleCategory.ARITHMETIC, binary, _modulo, ["index % 2"],
    )
    _register(
        "power", "Left operand raised to the right operand",
        RuleCategory.ARITHMETIC, binary, _power, ["2 ^ 10"],
    )
    _register(
        "negate", "Arithmetic negation", RuleCategory.ARITHMETIC, ["operand"], _negate,
        ["-balance"],
    )


# -----------------------------------------------------------------------------
# String Rules
# -----------------------------------------------------------------------------


def _concat(b: Mapping[str, Any]) -> str:
    left, right = b["left"], b["right"]
    if not isinstance(left, str) or not isinstance(right, str):
        raise TypeError(
            f"Concatenation requires two strings, got {type_name(left)} and {type_name(right)}"
        )
    return left + right


def _register_string_rules() -> None:
    _register(
        "concat", "Concatenation of two strings", RuleCategory.STRING, ["left", "right"],
        _concat, ['first ++ " " ++ last'],
    )


# -----------------------------------------------------------------------------
# Comparison Rules
# -----------------------------------------------------------------------------


def _strict_equals(left: Any, right: Any) -> bool:
    # No coercion: true is not 1, "1" is not 1
    return type_name(left) == type_name(right) and left == right


def _ordered(b: Mapping[str, Any]) -> tuple[Any, Any]:
    left, right = b["left"], b["right"]
    kinds = (type_name(left), type_name(right))
    if kinds not in (("number", "number"), ("string", "string")):
        raise TypeError(f"Cannot compare {kinds[0]} with {kinds[1]}")
    return left, right


def _eq(b: Mapping[str, Any]) -> bool:
    return _strict_equals(b["left"], b["right"])


def _neq(b: Mapping[str, Any]) -> bool:
    return not _strict_equals(b["left"], b["right"])


def _lt(b: Mapping[str, Any]) -> bool:
    left, right = _ordered(b)
    return left < right


def _lte(b: Mapping[str, Any]) -> bool:
    left, right = _ordered(b)
    return left <= right


def _gt(b: Mapping[str, Any]) -> bool:
    left, right = _ordered(b)
    return left > right


def _gte(b: Mapping[str, Any]) -> bool:
    left, right = _ordered(b)
    return left >= right


def _register_comparison_rules() -> None:
    binary = ["left", "right"]
    _register(
        "eq", "Strict equality (no coercion)", RuleCategory.COMPARISON, binary, _eq,
        ['status == "active"'],
    )
    _register("neq", "Strict inequality", RuleCategory.COMPARISON, binary, _neq, ["count != 0"])
    _register("lt", "Less than", RuleCategory.COMPARISON, binary, _lt, ["age < 18"])
    _register("lte", "Less than or equal", RuleCategory.COMPARISON, binary, _lte, ["score <= 100"])
    _register("gt", "Greater than", RuleCategory.COMPARISON, binary, _gt, ["balance > 0"])
    _register("gte", "Greater than or equal", RuleCategory.COMPARISON, binary, _gte, ["age >= 21"])


# -----------------------------------------------------------------------------
# Logic Rules
# -----------------------------------------------------------------------------


def _and(b: Mapping[str, Any]) -> bool:
    return _boolean(b["left"], "Left") and _boolean(b["right"], "Right")


def _or(b: Mapping[str, Any]) -> bool:
    return _boolean(b["left"], "Left") or _boolean(b["right"], "Right")


def _not(b: Mapping[str, Any]) -> bool:
    return not _boolean(b["operand"], "Negated")


def _ternary(b: Mapping[str, Any]) -> Any:
    if _boolean(b["condition"], "Condition"):
        return b["then"]
    return b["else"]


def _register_logic_rules() -> None:
    binary = ["left", "right"]
    _register(
        "and", "Logical conjunction of two booleans", RuleCategory.LOGIC, binary, _and,
        ["active && verified"],
    )
    _register(
        "or", "Logical disjunction of two booleans", RuleCategory.LOGIC, binary, _or,
        ["admin || owner"],
    )
    _register("not", "Logical negation", RuleCategory.LOGIC, ["operand"], _not, ["!archived"])
    _register(
        "ternary", "Selects 'then' when the condition holds, otherwise 'else'",
        RuleCategory.LOGIC, ["condition", "then", "else"], _ternary,
        ['age >= 18 ? "adult" : "minor"'],
    )


# -----------------------------------------------------------------------------
# Structure Rules
# -----------------------------------------------------------------------------


def _group(b: Mapping[str, Any]) -> Any:
    return b["inner"]


def _register_structure_rules() -> None:
    _register(
        "group", "Value of the single wrapped expression", RuleCategory.STRUCTURE, ["inner"],
        _group, ["(x + 1)"],
    )
