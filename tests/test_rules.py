"""Tests for the rule registry."""

import pytest

from stringent.rules import RuleCategory, RuleDefinition, RuleRegistry


def _rule(name="double", category=RuleCategory.ARITHMETIC):
    return RuleDefinition(
        name=name,
        description="Twice the operand",
        category=category,
        bindings=["operand"],
        implementation=lambda b: b["operand"] * 2,
        examples=["double 4"],
    )


class TestRuleRegistry:
    def test_register_and_call(self):
        RuleRegistry.register(_rule())
        assert RuleRegistry.is_registered("double")
        assert RuleRegistry.call("double", {"operand": 4}) == 8

    def test_register_replaces(self):
        RuleRegistry.register(_rule())
        RuleRegistry.register(_rule(category=RuleCategory.STRUCTURE))
        assert RuleRegistry.get("double").category == RuleCategory.STRUCTURE

    def test_unknown_rule(self):
        with pytest.raises(ValueError, match="Unknown rule: triple"):
            RuleRegistry.get("triple")

    def test_list_by_category(self):
        names = {r.name for r in RuleRegistry.list_by_category(RuleCategory.COMPARISON)}
        assert names == {"eq", "neq", "lt", "lte", "gt", "gte"}

    def test_list_all(self):
        assert len(RuleRegistry.list_all()) == 19

    def test_export_documentation(self):
        doc = RuleRegistry.export_documentation()

        assert doc["rules"]["concat"] == {
            "name": "concat",
            "description": "Concatenation of two strings",
            "category": "string",
            "bindings": ["left", "right"],
            "examples": ['first ++ " " ++ last'],
        }
        assert [r["name"] for r in doc["byCategory"]["structure"]] == ["group"]

    def test_clear(self):
        RuleRegistry.clear()
        assert RuleRegistry.list_all() == []
        assert not RuleRegistry.is_registered("add")
