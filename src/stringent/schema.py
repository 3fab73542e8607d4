"""Schema validation for runtime data.

A schema maps field names to a type descriptor string or to a nested
schema of the same shape:

    {"age": "number >= 0", "user": {"email": "string.email"}}

validate() walks the schema and reports every value in the data that does
not conform. Fields absent from the data are not reported here; the
evaluator decides whether a referenced field may be absent.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from stringent.descriptors import DescriptorError, parse_descriptor, type_name


@dataclass(frozen=True)
class Violation:
    """A single schema violation.

    Attributes:
        path: Dotted path to the offending field ("$" for the data root)
        code: Machine-readable code (INVALID_TYPE, INVALID_FORMAT, OUT_OF_RANGE,
            INVALID_LENGTH, NOT_AN_OBJECT)
        message: Human-readable description
        descriptor: The descriptor the value failed, if any
    """

    path: str
    code: str
    message: str
    descriptor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "code": self.code,
            "message": self.message,
            "descriptor": self.descriptor,
        }


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def check_schema(schema: Mapping[str, Any], path: str = "") -> list[str]:
    """Return a description of every malformed entry in a schema."""
    problems: list[str] = []
    for key, entry in schema.items():
        if not isinstance(key, str) or not key:
            problems.append(f"Field names must be non-empty strings, got {key!r}")
            continue

        field_path = _join(path, key)
        if isinstance(entry, Mapping):
            problems.extend(check_schema(entry, field_path))
        elif isinstance(entry, str):
            try:
                parse_descriptor(entry)
            except DescriptorError as e:
                problems.append(f"Field '{field_path}': {e}")
        else:
            problems.append(
                f"Field '{field_path}': expected a type descriptor or nested schema, "
                f"got {type(entry).__name__}"
            )
    return problems


def validate(data: Any, schema: Mapping[str, Any]) -> list[Violation]:
    """Validate data against a schema.

    Args:
        data: Mapping of field name to value
        schema: Mapping of field name to descriptor or nested schema

    Returns:
        List of violations (empty if valid)

    Raises:
        DescriptorError: If the schema contains an invalid descriptor
    """
    return _validate(data, schema, "")


def _validate(data: Any, schema: Mapping[str, Any], path: str) -> list[Violation]:
    if not isinstance(data, Mapping):
        return [
            Violation(
                path=path or "$",
                code="NOT_AN_OBJECT",
                message=f"{path or 'data'} must be an object, got {type_name(data)}",
            )
        ]

    violations: list[Violation] = []
    for key, entry in schema.items():
        if key not in data:
            continue

        field_path = _join(path, key)
        value = data[key]
        if isinstance(entry, Mapping):
            violations.extend(_validate(value, entry, field_path))
            continue

        problem = parse_descriptor(entry).violation(value)
        if problem:
            code, message = problem
            violations.append(
                Violation(
                    path=field_path,
                    code=code,
                    message=f"{field_path} {message}",
                    descriptor=entry,
                )
            )
    return violations
