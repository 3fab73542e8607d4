"""Binding collection and output schema resolution.

When a node's pattern fully matches, every named element contributes a
binding (a child ASTNode or a literal value) together with that
binding's output schema. The node's own output schema is then resolved
from its declared result type:

1. A fixed descriptor other than ``unknown`` is used verbatim.
2. ``unknown`` with exactly one binding inherits that binding's schema.
3. A union spec joins the schemas of the named bindings that are present
   (flattened, de-duplicated, sorted).
4. Anything else resolves to ``unknown``.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from stringent.descriptors import UNKNOWN, union_of_schemas
from stringent.nodes import FixedType, ResultType, SoleBinding, UnionOf


def resolve_output_schema(result_type: ResultType, binding_schemas: Mapping[str, str]) -> str:
    """Compute a node's output schema from its result type and binding schemas."""
    if isinstance(result_type, FixedType) and result_type.descriptor != UNKNOWN:
        return result_type.descriptor

    if isinstance(result_type, (FixedType, SoleBinding)):
        if len(binding_schemas) == 1:
            return next(iter(binding_schemas.values()))
        return UNKNOWN

    if isinstance(result_type, UnionOf):
        # Bindings absent from this particular match are left out of the union
        present = [binding_schemas[name] for name in result_type.names if name in binding_schemas]
        if present:
            return union_of_schemas(present)

    return UNKNOWN


@dataclass
class BindingCollector:
    """Accumulates named matches for one node attempt."""

    values: dict[str, Any] = field(default_factory=dict)
    schemas: dict[str, str] = field(default_factory=dict)

    def bind(self, name: str | None, value: Any, schema: str) -> None:
        if name is None:
            return
        self.values[name] = value
        self.schemas[name] = schema

    def output_schema(self, result_type: ResultType) -> str:
        return resolve_output_schema(result_type, self.schemas)
