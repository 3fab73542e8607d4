"""Shared fixtures for the stringent test suite."""

import pytest

from stringent import (
    ATOM,
    RuleRegistry,
    build_parser,
    const,
    define_node,
    expr,
    lhs,
    number,
    register_all_builtins,
    rhs,
    standard_nodes,
    union_of,
)


@pytest.fixture(autouse=True)
def setup_rules():
    """Register built-in rules before each test."""
    RuleRegistry.clear()
    register_all_builtins()
    yield
    RuleRegistry.clear()


@pytest.fixture
def arith_nodes():
    """Minimal arithmetic grammar: + at level 1, * at level 2, ^ at level 3."""
    return [
        define_node(
            name="add",
            pattern=[expr("number").as_("left"), const("+"), lhs("number").as_("right")],
            precedence=1,
            result_type="number",
            eval=lambda b: b["left"] + b["right"],
        ),
        define_node(
            name="mul",
            pattern=[expr("number").as_("left"), const("*"), lhs("number").as_("right")],
            precedence=2,
            result_type="number",
            eval=lambda b: b["left"] * b["right"],
        ),
        define_node(
            name="pow",
            pattern=[lhs("number").as_("left"), const("^"), rhs("number").as_("right")],
            precedence=3,
            result_type="number",
            eval=lambda b: b["left"] ** b["right"],
        ),
    ]


@pytest.fixture
def arith_parser(arith_nodes):
    return build_parser(arith_nodes)


@pytest.fixture
def ternary_nodes():
    """A conditional node whose result is the union of its branches."""
    return [
        define_node(
            name="ternary",
            pattern=[
                lhs("boolean").as_("condition"),
                const("?"),
                expr().as_("then"),
                const(":"),
                expr().as_("else"),
            ],
            precedence=0,
            result_type=union_of("then", "else"),
            eval=lambda b: b["then"] if b["condition"] else b["else"],
        ),
    ]


@pytest.fixture
def paren_nodes():
    """A user-defined parenthesis node with the sole-binding result type."""
    return [
        define_node(
            name="parens",
            pattern=[const("["), expr().as_("inner"), const("]")],
            precedence=ATOM,
            eval=lambda b: b["inner"],
        ),
        define_node(
            name="num",
            pattern=[number().as_("value")],
            precedence=ATOM,
            eval=lambda b: b["value"],
        ),
    ]


@pytest.fixture
def standard_parser():
    return build_parser(standard_nodes())
