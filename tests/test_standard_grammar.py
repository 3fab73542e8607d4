"""Tests for the bundled standard grammar and its built-in rules."""

import pytest

from stringent import ErrorKind, EvalError, ParseError, RuleRegistry, standard_nodes


# =============================================================================
# Evaluation
# =============================================================================


class TestStandardEvaluation:
    """End-to-end parse and evaluate with the standard grammar."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("1 + 2 * 3", 7),
            ("(1 + 2) * 3", 9),
            ("10 - 4 - 3", 3),
            ("10 / 4", 2.5),
            ("7 % 3", 1),
            ("2 ^ 3 ^ 2", 512),
            ("-2 ^ 2", -4),
            ("2 ^ -1", 0.5),
            ("3 - -2", 5),
            ('"foo" ++ "bar"', "foobar"),
            ("1 < 2", True),
            ("2 <= 2", True),
            ("3 > 4", False),
            ("4 >= 5", False),
            ('"a" < "b"', True),
            ("1 == 1", True),
            ("1 != 1", False),
            ('1 == "1"', False),
            ("true == 1", False),
            ("null == null", True),
            ("1 < 2 == true", True),
            ("true && false", False),
            ("true || false", True),
            ("!true || true", True),
            ("!(1 < 2)", False),
            ("true ? 1 : 2", 1),
            ("false ? 1 : false ? 2 : 3", 3),
        ],
    )
    def test_expression(self, standard_parser, source, expected):
        assert standard_parser.evaluate(source, {}, {}) == expected

    def test_fields(self, standard_parser):
        schema = {"age": "number >= 0", "name": "string"}
        source = 'age >= 18 ? name ++ " (adult)" : name'

        assert standard_parser.evaluate(source, schema, {"age": 30, "name": "Ada"}) == "Ada (adult)"
        assert standard_parser.evaluate(source, schema, {"age": 12, "name": "Bo"}) == "Bo"

    def test_group_node_propagates_inner_type(self, standard_parser):
        ast = standard_parser.parse_full("(1 + 2)")
        assert ast.node == "group"
        assert ast.output_schema == "number"

    def test_ternary_union_type(self, standard_parser):
        ast = standard_parser.parse_full('flag ? "yes" : 0', {"flag": "boolean"})
        assert ast.output_schema == "number | string"

    def test_negated_field_as_exponent(self, standard_parser):
        schema = {"x": "number"}
        assert standard_parser.evaluate("2 ^ -x", schema, {"x": 1}) == 0.5

        ast = standard_parser.parse_full("2 ^ -x", schema)
        assert ast.node == "power"
        assert ast.bindings["right"].node == "negate"

    def test_negated_literal_as_exponent_matches_field_form(self, standard_parser):
        ast = standard_parser.parse_full("2 ^ -1")
        assert ast.bindings["right"].node == "negate"

    def test_negated_group_as_exponent(self, standard_parser):
        assert standard_parser.evaluate("2 ^ -(1 + 1)", {}, {}) == 0.25

    def test_boolean_prefix_as_exponent_is_type_mismatch(self, standard_parser):
        with pytest.raises(ParseError) as exc_info:
            standard_parser.parse_full("2 ^ !b", {"b": "boolean"})

        assert exc_info.value.kind == ErrorKind.TYPE_MISMATCH
        assert exc_info.value.offset == 4

    def test_power_binds_tighter_than_negation(self, standard_parser):
        ast = standard_parser.parse_full("-2 ^ 2")
        assert ast.node == "negate"
        assert ast.bindings["operand"].node == "power"


# =============================================================================
# Errors
# =============================================================================


class TestStandardErrors:
    def test_division_by_zero_is_rule_failure(self, standard_parser):
        with pytest.raises(EvalError) as exc_info:
            standard_parser.evaluate("x / 0", {"x": "number"}, {"x": 1})

        assert exc_info.value.kind == ErrorKind.RULE_FAILED
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_arithmetic_on_string_is_type_mismatch(self, standard_parser):
        with pytest.raises(ParseError) as exc_info:
            standard_parser.parse_full('"a" * 2')

        assert exc_info.value.kind == ErrorKind.TYPE_MISMATCH

    def test_type_mismatch_inside_group(self, standard_parser):
        with pytest.raises(ParseError) as exc_info:
            standard_parser.parse_full("(x + 1)", {"x": "string"})

        assert exc_info.value.kind == ErrorKind.TYPE_MISMATCH
        assert exc_info.value.offset == 1

    def test_ternary_condition_must_be_boolean(self, standard_parser):
        with pytest.raises(ParseError) as exc_info:
            standard_parser.parse_full("1 ? 2 : 3")

        assert exc_info.value.kind == ErrorKind.TYPE_MISMATCH
        assert exc_info.value.offset == 0

    def test_comparisons_do_not_chain(self, standard_parser):
        with pytest.raises(ParseError) as exc_info:
            standard_parser.parse_full("1 < 2 < 3")

        assert exc_info.value.kind == ErrorKind.NO_MATCH
        assert exc_info.value.offset == 6

    def test_missing_ternary_branch(self, standard_parser):
        with pytest.raises(ParseError) as exc_info:
            standard_parser.parse_full("true ? 1")

        assert exc_info.value.kind == ErrorKind.NO_MATCH
        assert exc_info.value.offset == 8

    def test_unclosed_group(self, standard_parser):
        with pytest.raises(ParseError) as exc_info:
            standard_parser.parse_full("(1 + 2")

        assert exc_info.value.kind == ErrorKind.UNBALANCED_PAREN
        assert exc_info.value.offset == 0


# =============================================================================
# Built-in Rules
# =============================================================================


class TestBuiltinRules:
    """Direct tests for built-in rule implementations."""

    def test_all_standard_rules_registered(self):
        for node in standard_nodes():
            assert RuleRegistry.is_registered(node.name)
            assert node.eval_rule is not None

    def test_add(self):
        assert RuleRegistry.call("add", {"left": 1, "right": 2}) == 3

    def test_add_rejects_booleans(self):
        with pytest.raises(TypeError):
            RuleRegistry.call("add", {"left": True, "right": 2})

    def test_modulo_by_zero(self):
        with pytest.raises(ValueError):
            RuleRegistry.call("modulo", {"left": 1, "right": 0})

    def test_concat_requires_strings(self):
        with pytest.raises(TypeError):
            RuleRegistry.call("concat", {"left": "a", "right": 1})

    def test_compare_mixed_types(self):
        with pytest.raises(TypeError):
            RuleRegistry.call("lt", {"left": "a", "right": 1})

    def test_eq_is_strict(self):
        assert RuleRegistry.call("eq", {"left": 1, "right": 1.0}) is True
        assert RuleRegistry.call("eq", {"left": 0, "right": False}) is False

    def test_not_requires_boolean(self):
        with pytest.raises(TypeError):
            RuleRegistry.call("not", {"operand": 0})

    def test_ternary(self):
        bindings = {"condition": False, "then": "a", "else": "b"}
        assert RuleRegistry.call("ternary", bindings) == "b"

    def test_group(self):
        assert RuleRegistry.call("group", {"inner": 5}) == 5
