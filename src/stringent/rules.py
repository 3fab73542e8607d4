"""Rule registry for node evaluation.

Evaluation rules are plain callables from a node's resolved bindings to a
value. Registering them by name lets grammars loaded from YAML refer to a
rule with a string (``rule: add``) and keeps each rule documented.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from stringent.nodes import EvalRule


class RuleCategory(Enum):
    """Categories for organizing rules in documentation."""

    ARITHMETIC = "arithmetic"
    STRING = "string"
    COMPARISON = "comparison"
    LOGIC = "logic"
    STRUCTURE = "structure"


@dataclass
class RuleDefinition:
    """Complete definition of an evaluation rule.

    Attributes:
        name: Rule name as referenced by grammars
        description: Human-readable description
        category: Category for documentation organization
        bindings: Binding names the rule reads
        examples: Example expressions using this rule
        implementation: Callable receiving the resolved bindings
    """

    name: str
    description: str
    category: RuleCategory
    bindings: list[str]
    implementation: EvalRule
    examples: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Export for documentation."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "bindings": list(self.bindings),
            "examples": self.examples,
        }


class RuleRegistry:
    """Registry for evaluation rules.

    Example:
        RuleRegistry.register(RuleDefinition(
            name="add",
            description="Sum of two numbers",
            ...
        ))

        rule = RuleRegistry.get("add")
        result = rule.implementation({"left": 1, "right": 2})  # Returns 3
    """

    _rules: dict[str, RuleDefinition] = {}

    @classmethod
    def register(cls, rule_def: RuleDefinition) -> None:
        """Register a rule definition, replacing any rule of the same name."""
        cls._rules[rule_def.name] = rule_def

    @classmethod
    def get(cls, name: str) -> RuleDefinition:
        """Get a rule definition by name.

        Raises:
            ValueError: If rule is not registered
        """
        if name not in cls._rules:
            raise ValueError(f"Unknown rule: {name}")
        return cls._rules[name]

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._rules

    @classmethod
    def call(cls, name: str, bindings: Mapping[str, Any]) -> Any:
        """Call a registered rule with resolved bindings."""
        return cls.get(name).implementation(bindings)

    @classmethod
    def list_all(cls) -> list[RuleDefinition]:
        return list(cls._rules.values())

    @classmethod
    def list_by_category(cls, category: RuleCategory) -> list[RuleDefinition]:
        return [r for r in cls._rules.values() if r.category == category]

    @classmethod
    def export_documentation(cls) -> dict[str, Any]:
        """Export the registry, with rules grouped by category."""
        by_category: dict[str, list[dict[str, Any]]] = {}
        for rule_def in cls._rules.values():
            by_category.setdefault(rule_def.category.value, []).append(rule_def.to_dict())

        return {
            "rules": {name: r.to_dict() for name, r in cls._rules.items()},
            "byCategory": by_category,
        }

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._rules.clear()
