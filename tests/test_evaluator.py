"""Tests for AST evaluation.

Tests cover:
- Literal, identifier and composite evaluation
- Data checks before evaluation (MissingData, DataTypeViolation)
- NotImplemented and RuleFailed errors
- Parser.evaluate convenience
"""

import pytest

from stringent import (
    UNDEFINED,
    EvalContext,
    EvalError,
    ErrorKind,
    Evaluator,
    build_parser,
    const,
    define_node,
    evaluate,
    expr,
    lhs,
    number,
)


# =============================================================================
# Basic Evaluation
# =============================================================================


class TestEvaluate:
    """Tests for the tree walk."""

    def test_literal_round_trip(self, arith_parser, arith_nodes):
        ast = arith_parser.parse_full('"a\\nb"')
        assert evaluate(ast, EvalContext(data={}, nodes=arith_nodes)) == "a\nb"

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("1 + 2 * 3", 7),
            ("(1 + 2) * 3", 9),
            ("2 ^ 3 ^ 2", 512),
            ("1.5 + 1.5", 3.0),
        ],
    )
    def test_arithmetic(self, arith_parser, arith_nodes, source, expected):
        ast = arith_parser.parse_full(source)
        assert evaluate(ast, EvalContext(data={}, nodes=arith_nodes)) == expected

    def test_identifiers_resolve_against_data(self, arith_parser, arith_nodes):
        ast = arith_parser.parse_full("price * quantity", {"price": "number", "quantity": "number"})
        ctx = EvalContext(data={"price": 2.5, "quantity": 4}, nodes=arith_nodes)
        assert evaluate(ast, ctx) == 10.0

    def test_deeply_nested_literal(self, arith_parser, arith_nodes):
        ast = arith_parser.parse_full("(" * 15 + "42" + ")" * 15)
        assert evaluate(ast, EvalContext(data={}, nodes=arith_nodes)) == 42

    def test_grammar_can_be_used_for_dispatch(self, arith_parser):
        ast = arith_parser.parse_full("2 * 21")
        assert evaluate(ast, EvalContext(data={}, nodes=arith_parser.grammar)) == 42

    def test_literal_bindings_pass_through(self):
        seen = {}

        def capture(bindings):
            seen.update(bindings)
            return bindings["amount"]

        money = define_node(
            name="money",
            pattern=[const("$").as_("symbol"), number().as_("amount")],
            precedence=0,
            result_type="number",
            eval=capture,
        )
        parser = build_parser([money])

        result = evaluate(parser.parse_full("$ 12"), EvalContext(data={}, nodes=[money]))

        assert result == 12
        assert seen == {"symbol": "$", "amount": 12}

    def test_evaluator_class(self, arith_parser, arith_nodes):
        ast = arith_parser.parse_full("x + 1", {"x": "number"})
        evaluator = Evaluator(EvalContext(data={"x": 41}, nodes=arith_nodes))
        assert evaluator.evaluate(ast) == 42

    def test_long_chain_evaluates_without_recursion(self, arith_parser, arith_nodes):
        source = " + ".join(["1"] * 3000)
        ast = arith_parser.parse_full(source)
        assert evaluate(ast, EvalContext(data={}, nodes=arith_nodes)) == 3000

    def test_long_chain_failure_is_typed(self, arith_parser):
        source = " + ".join(["1"] * 3000)
        ast = arith_parser.parse_full(source)
        unevaluable = [define_node(name="add", pattern=[const("+"), number()], precedence=1)]

        with pytest.raises(EvalError) as exc_info:
            evaluate(ast, EvalContext(data={}, nodes=unevaluable))

        assert exc_info.value.kind == ErrorKind.NOT_IMPLEMENTED

    def test_rules_run_innermost_first_left_to_right(self):
        calls = []

        def record(bindings):
            calls.append((bindings["left"], bindings["right"]))
            return bindings["left"] + bindings["right"]

        add = define_node(
            name="add",
            pattern=[expr("number").as_("left"), const("+"), lhs("number").as_("right")],
            precedence=1,
            result_type="number",
            eval=record,
        )
        parser = build_parser([add])

        assert evaluate(parser.parse_full("1 + 2 + 3"), EvalContext(data={}, nodes=[add])) == 6
        assert calls == [(1, 2), (3, 3)]


# =============================================================================
# Data Checks
# =============================================================================


class TestDataChecks:
    """Tests for the validation performed before any rule runs."""

    @pytest.fixture
    def recording_nodes(self):
        calls = []

        def record(bindings):
            calls.append(dict(bindings))
            return bindings["left"] + bindings["right"]

        node = define_node(
            name="add",
            pattern=[expr("number").as_("left"), const("+"), lhs("number").as_("right")],
            precedence=1,
            result_type="number",
            eval=record,
        )
        return [node], calls

    def test_missing_data(self, arith_parser, arith_nodes):
        ast = arith_parser.parse_full("1 + x", {"x": "number"})

        with pytest.raises(EvalError) as exc_info:
            evaluate(ast, EvalContext(data={}, nodes=arith_nodes, source="1 + x"))

        error = exc_info.value
        assert error.kind == ErrorKind.MISSING_DATA
        assert error.offset == 4
        assert error.column == 5

    def test_field_admitting_undefined_may_be_absent(self):
        seen = []
        is_set = define_node(
            name="is_set",
            pattern=[const("?"), expr().as_("value")],
            precedence=0,
            result_type="boolean",
            eval=lambda b: seen.append(b["value"]) or b["value"] is not UNDEFINED,
        )
        parser = build_parser([is_set])
        ast = parser.parse_full("? nickname", {"nickname": "string | undefined"})

        assert evaluate(ast, EvalContext(data={}, nodes=[is_set])) is False
        assert seen == [UNDEFINED]

    def test_unknown_field_must_still_be_present(self, standard_parser):
        schema = {"x": "unknown"}
        ast = standard_parser.parse_full("x", schema)
        ctx = EvalContext(data={}, nodes=standard_parser.grammar, schema=schema)

        with pytest.raises(EvalError) as exc_info:
            evaluate(ast, ctx)

        assert exc_info.value.kind == ErrorKind.MISSING_DATA

    def test_schema_violation_aborts_before_rules(self, recording_nodes):
        nodes, calls = recording_nodes
        parser = build_parser(nodes)
        schema = {"x": "number >= 0"}
        ast = parser.parse_full("x + 1", schema)

        with pytest.raises(EvalError) as exc_info:
            evaluate(ast, EvalContext(data={"x": -5}, nodes=nodes, schema=schema))

        error = exc_info.value
        assert error.kind == ErrorKind.DATA_TYPE_VIOLATION
        assert [v.code for v in error.violations] == ["OUT_OF_RANGE"]
        assert error.violations[0].path == "x"
        assert calls == []

    def test_schema_checks_unreferenced_fields(self, recording_nodes):
        nodes, calls = recording_nodes
        parser = build_parser(nodes)
        schema = {"x": "number", "email": "string.email"}
        ast = parser.parse_full("x + 1", schema)

        with pytest.raises(EvalError) as exc_info:
            evaluate(
                ast,
                EvalContext(data={"x": 1, "email": "nope"}, nodes=nodes, schema=schema),
            )

        assert exc_info.value.violations[0].code == "INVALID_FORMAT"
        assert calls == []

    def test_identifier_types_checked_without_schema(self, recording_nodes):
        nodes, calls = recording_nodes
        parser = build_parser(nodes)
        ast = parser.parse_full("x + 1", {"x": "number >= 0"})

        with pytest.raises(EvalError) as exc_info:
            evaluate(ast, EvalContext(data={"x": -5}, nodes=nodes))

        assert exc_info.value.kind == ErrorKind.DATA_TYPE_VIOLATION
        assert calls == []

    def test_wrong_type_is_a_violation(self, arith_parser, arith_nodes):
        ast = arith_parser.parse_full("x + 1", {"x": "number"})

        with pytest.raises(EvalError) as exc_info:
            evaluate(ast, EvalContext(data={"x": "5"}, nodes=arith_nodes))

        assert exc_info.value.violations[0].code == "INVALID_TYPE"

    def test_data_must_be_a_mapping(self, arith_parser, arith_nodes):
        ast = arith_parser.parse_full("1 + 1")

        with pytest.raises(EvalError) as exc_info:
            evaluate(ast, EvalContext(data=[1, 2], nodes=arith_nodes))

        assert exc_info.value.kind == ErrorKind.DATA_TYPE_VIOLATION
        assert exc_info.value.violations[0].code == "NOT_AN_OBJECT"

    def test_violations_in_to_dict(self, arith_parser, arith_nodes):
        schema = {"x": "number"}
        ast = arith_parser.parse_full("x", schema)

        with pytest.raises(EvalError) as exc_info:
            evaluate(ast, EvalContext(data={"x": True}, nodes=arith_nodes, schema=schema))

        data = exc_info.value.to_dict()
        assert data["kind"] == "DataTypeViolation"
        assert data["violations"][0]["path"] == "x"
        assert data["violations"][0]["descriptor"] == "number"


# =============================================================================
# Rule Errors
# =============================================================================


class TestRuleErrors:
    def test_node_without_rule_is_not_implemented(self):
        add = define_node(
            name="add",
            pattern=[expr().as_("left"), const("+"), lhs().as_("right")],
            precedence=1,
        )
        parser = build_parser([add])
        ast = parser.parse_full("1 + 2")

        with pytest.raises(EvalError) as exc_info:
            evaluate(ast, EvalContext(data={}, nodes=[add]))

        assert exc_info.value.kind == ErrorKind.NOT_IMPLEMENTED

    def test_unknown_node_name_is_not_implemented(self, arith_parser):
        ast = arith_parser.parse_full("1 + 2")

        with pytest.raises(EvalError) as exc_info:
            evaluate(ast, EvalContext(data={}, nodes=[]))

        assert exc_info.value.kind == ErrorKind.NOT_IMPLEMENTED
        assert "add" in exc_info.value.message

    def test_rule_exception_is_wrapped(self):
        def explode(bindings):
            raise ZeroDivisionError("boom")

        bad = define_node(
            name="bad",
            pattern=[const("!"), number().as_("value")],
            precedence=0,
            eval=explode,
        )
        parser = build_parser([bad])

        with pytest.raises(EvalError) as exc_info:
            evaluate(parser.parse_full("!1"), EvalContext(data={}, nodes=[bad]))

        error = exc_info.value
        assert error.kind == ErrorKind.RULE_FAILED
        assert isinstance(error.__cause__, ZeroDivisionError)
        assert "boom" in error.message


# =============================================================================
# Parser.evaluate
# =============================================================================


class TestParserEvaluate:
    def test_parse_and_evaluate(self, arith_parser):
        assert arith_parser.evaluate("x * 2 + 1", {"x": "number"}, {"x": 20}) == 41

    def test_errors_carry_source_location(self, arith_parser):
        with pytest.raises(EvalError) as exc_info:
            arith_parser.evaluate("1 +\n x", {"x": "number"}, {})

        error = exc_info.value
        assert error.kind == ErrorKind.MISSING_DATA
        assert error.line == 2
        assert error.column == 2
