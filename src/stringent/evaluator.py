"""Evaluator for parsed ASTs.

Walks the AST and computes its value against caller-supplied data.
Before any evaluation rule runs, the data is checked: against the full
schema when one is given, and always for presence of every referenced
identifier. Evaluation therefore either validates and then runs, or does
not run at all.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from stringent.config import ParserSettings
from stringent.descriptors import UNDEFINED, Descriptor, Primitive, members_of, parse_descriptor
from stringent.errors import ErrorKind, EvalError
from stringent.grammar import Grammar
from stringent.nodes import NodeDefinition
from stringent.parser import ASTNode
from stringent.schema import Violation, validate

logger = logging.getLogger(__name__)


@dataclass
class EvalContext:
    """Context for evaluation.

    Attributes:
        data: Field name to runtime value, shaped like the schema
        nodes: Node definitions (or a built Grammar) used to dispatch eval rules
        schema: The schema the AST was parsed with; when given, data is
            validated against all of it before evaluation
        source: The parsed source text, used to locate errors
    """

    data: Mapping[str, Any]
    nodes: Sequence[NodeDefinition] | Grammar
    schema: Mapping[str, Any] | None = None
    source: str | None = None


class Evaluator:
    """Evaluates an AST against a context.

    Usage:
        ctx = EvalContext(data={"x": 2}, nodes=nodes)
        result = Evaluator(ctx).evaluate(ast)
    """

    def __init__(self, context: EvalContext, settings: ParserSettings | None = None):
        self.context = context
        self.settings = settings or ParserSettings()
        nodes = context.nodes.nodes if isinstance(context.nodes, Grammar) else context.nodes
        self._definitions: dict[str, NodeDefinition] = {node.name: node for node in nodes}

    def evaluate(self, ast: ASTNode) -> Any:
        """Validate the data, then evaluate the AST and return its value.

        Raises:
            EvalError: MissingData, DataTypeViolation, NotImplemented or RuleFailed
        """
        self._check_data(ast)
        return self._eval(ast)

    def _error(
        self,
        kind: ErrorKind,
        message: str,
        offset: int | None = None,
        violations: list[Violation] | None = None,
    ) -> EvalError:
        return EvalError(
            kind,
            message,
            offset,
            self.context.source,
            self.settings.snippet_width,
            violations=violations,
        )

    # -------------------------------------------------------------------------
    # Data checks
    # -------------------------------------------------------------------------

    def _check_data(self, ast: ASTNode) -> None:
        data = self.context.data
        if not isinstance(data, Mapping):
            violation = Violation(
                path="$",
                code="NOT_AN_OBJECT",
                message=f"data must be an object, got {type(data).__name__}",
            )
            raise self._error(
                ErrorKind.DATA_TYPE_VIOLATION,
                violation.message,
                violations=[violation],
            )

        if self.context.schema is not None:
            self._raise_violations(validate(data, self.context.schema))

        violations: list[Violation] = []
        for identifier in _identifiers(ast):
            name = identifier.name
            descriptor = parse_descriptor(identifier.output_schema)
            if name not in data:
                if _admits_absence(descriptor):
                    continue
                raise self._error(
                    ErrorKind.MISSING_DATA,
                    f"Missing data for identifier '{name}'",
                    identifier.span.start,
                )

            if self.context.schema is None:
                problem = descriptor.violation(data[name])
                if problem:
                    code, message = problem
                    violations.append(
                        Violation(name, code, f"{name} {message}", identifier.output_schema)
                    )
        self._raise_violations(violations)

    def _raise_violations(self, violations: list[Violation]) -> None:
        if not violations:
            return
        message = f"Data does not match schema: {violations[0].message}"
        if len(violations) > 1:
            message += f" (and {len(violations) - 1} more)"
        raise self._error(ErrorKind.DATA_TYPE_VIOLATION, message, violations=violations)

    # -------------------------------------------------------------------------
    # Tree walk
    # -------------------------------------------------------------------------

    def _eval(self, root: ASTNode) -> Any:
        """Post-order walk over an explicit stack, so deep trees need no recursion."""
        results: dict[int, Any] = {}
        stack: list[tuple[ASTNode, bool]] = [(root, False)]

        while stack:
            node, expanded = stack.pop()
            if node.is_literal:
                results[id(node)] = node.value
            elif node.is_identifier:
                results[id(node)] = self.context.data.get(node.name, UNDEFINED)
            elif not expanded:
                self._definition(node)
                stack.append((node, True))
                children = [v for v in node.bindings.values() if isinstance(v, ASTNode)]
                # Reversed so children are evaluated in binding order
                stack.extend((child, False) for child in reversed(children))
            else:
                bindings = {
                    name: results[id(value)] if isinstance(value, ASTNode) else value
                    for name, value in node.bindings.items()
                }
                results[id(node)] = self._apply(node, bindings)

        return results[id(root)]

    def _definition(self, node: ASTNode) -> NodeDefinition:
        definition = self._definitions.get(node.node)
        if definition is None:
            raise self._error(
                ErrorKind.NOT_IMPLEMENTED,
                f"No node definition named '{node.node}'",
                node.span.start,
            )
        if definition.eval_rule is None:
            raise self._error(
                ErrorKind.NOT_IMPLEMENTED,
                f"Node '{node.node}' has no evaluation rule",
                node.span.start,
            )
        return definition

    def _apply(self, node: ASTNode, bindings: dict[str, Any]) -> Any:
        definition = self._definitions[node.node]
        try:
            return definition.eval_rule(bindings)
        except EvalError:
            raise
        except Exception as e:
            logger.debug("Rule for node '%s' raised %s", node.node, type(e).__name__)
            raise self._error(
                ErrorKind.RULE_FAILED,
                f"Evaluation of '{node.node}' failed: {e}",
                node.span.start,
            ) from e


def _admits_absence(descriptor: Descriptor) -> bool:
    # Only an explicit ``undefined`` member; ``unknown`` still requires the field
    return any(
        isinstance(member, Primitive) and member.kind == "undefined"
        for member in members_of(descriptor)
    )


def _identifiers(ast: ASTNode) -> list[ASTNode]:
    """Collect identifier nodes in source order."""
    found: list[ASTNode] = []
    stack = [ast]
    while stack:
        node = stack.pop()
        if node.is_identifier:
            found.append(node)
            continue
        stack.extend(
            value for value in node.bindings.values() if isinstance(value, ASTNode)
        )
    return sorted(found, key=lambda n: n.span.start)


def evaluate(ast: ASTNode, ctx: EvalContext, settings: ParserSettings | None = None) -> Any:
    """Convenience function to evaluate an AST against a context."""
    return Evaluator(ctx, settings).evaluate(ast)
