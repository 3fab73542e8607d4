"""
loader.py - Load node definitions from YAML grammar files.

Grammar files are validated against the bundled JSON Schema before any
node is built. Each node names its evaluation rule; rules are looked up
in the RuleRegistry.

Usage:
    from stringent.loader import load_grammar

    nodes = load_grammar(Path("grammars/arith.yaml"))
    parser = build_parser(nodes)

Format:
    nodes:
      - name: add
        precedence: 1
        pattern:
          - { operand: expr, type: number, as: left }
          - { const: "+" }
          - { operand: lhs, type: number, as: right }
        resultType: number
        rule: add

PyYAML quirk: unquoted ``true``, ``false`` and ``null`` are parsed as
Python values, so ``{ match: keyword, word: true }`` arrives with a
boolean word. Keyword elements are normalized back to text before schema
validation.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from stringent.builtins import register_all_builtins
from stringent.errors import GrammarError
from stringent.nodes import (
    NodeDefinition,
    PatternElement,
    const,
    define_node,
    expr,
    ident,
    keyword,
    lhs,
    number,
    rhs,
    string,
)
from stringent.rules import RuleRegistry

logger = logging.getLogger(__name__)

_SCHEMAS_DIR = Path(__file__).parent / "schemas"
_GRAMMARS_DIR = Path(__file__).parent / "grammars"

_GRAMMAR_SCHEMA = "grammar.schema.json"

_KEYWORD_TEXT = {True: "true", False: "false", None: "null"}

_OPERANDS = {"lhs": lhs, "rhs": rhs, "expr": expr}

_MATCHERS = {"number": number, "string": string, "ident": ident}


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _validator() -> Draft202012Validator:
    with (_SCHEMAS_DIR / _GRAMMAR_SCHEMA).open() as fh:
        schema = json.load(fh)
    return Draft202012Validator(schema)


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


def _normalize_keywords(doc: Any) -> Any:
    """Turn YAML-parsed keyword words (True/False/None) back into text."""
    if not isinstance(doc, Mapping) or not isinstance(doc.get("nodes"), list):
        return doc

    nodes = []
    for node in doc["nodes"]:
        if isinstance(node, Mapping) and isinstance(node.get("pattern"), list):
            pattern = []
            for element in node["pattern"]:
                if (
                    isinstance(element, Mapping)
                    and element.get("match") == "keyword"
                    and "word" in element
                    and not isinstance(element["word"], str)
                    and element["word"] in _KEYWORD_TEXT
                ):
                    element = {**element, "word": _KEYWORD_TEXT[element["word"]]}
                pattern.append(element)
            node = {**node, "pattern": pattern}
        nodes.append(node)
    return {**doc, "nodes": nodes}


def validate_grammar_document(doc: Any) -> list[str]:
    """
    Validate a parsed grammar document against the grammar JSON Schema.

    Returns:
        A list of problems, each prefixed with its location (empty on success).
    """
    problems = []
    for error in sorted(_validator().iter_errors(doc), key=lambda e: [str(p) for p in e.path]):
        location = _json_path(error)
        problems.append(f"{location}: {error.message}" if location else error.message)
    return problems


# ---------------------------------------------------------------------------
# Building nodes
# ---------------------------------------------------------------------------


def _element_from_dict(data: Mapping[str, Any]) -> PatternElement:
    element: PatternElement
    if "operand" in data:
        element = _OPERANDS[data["operand"]](data.get("type"))
    elif "const" in data:
        element = const(data["const"])
    elif data["match"] == "keyword":
        element = keyword(data["word"])
    else:
        element = _MATCHERS[data["match"]]()

    if "as" in data:
        element = element.as_(data["as"])
    return element


def _node_from_dict(data: Mapping[str, Any], strict: bool) -> NodeDefinition:
    name = data["name"]
    try:
        pattern = [_element_from_dict(element) for element in data["pattern"]]
    except ValueError as e:
        raise GrammarError(f"Node '{name}': {e}") from e

    eval_rule = None
    rule_name = data.get("rule")
    if rule_name:
        if RuleRegistry.is_registered(rule_name):
            eval_rule = RuleRegistry.get(rule_name).implementation
        elif strict:
            raise GrammarError(f"Node '{name}' references unregistered rule '{rule_name}'")
        else:
            logger.warning(
                "Node '%s' references unregistered rule '%s'; it can be parsed but not evaluated",
                name,
                rule_name,
            )

    try:
        return define_node(
            name=name,
            pattern=pattern,
            precedence=data["precedence"],
            result_type=data.get("resultType", "unknown"),
            eval=eval_rule,
        )
    except TypeError as e:
        raise GrammarError(f"Node '{name}': {e}") from e


def nodes_from_dicts(items: Iterable[Mapping[str, Any]], *, strict: bool = False) -> list[NodeDefinition]:
    """
    Build node definitions from plain dicts (the ``nodes`` entries of a grammar file).

    Args:
        items:  Node dicts in registry order.
        strict: If ``True``, a rule name that is not registered raises
                instead of logging a warning.

    Raises:
        GrammarError: If the dicts do not match the grammar schema.
    """
    doc = _normalize_keywords({"nodes": list(items)})
    problems = validate_grammar_document(doc)
    if problems:
        raise GrammarError("Invalid grammar: " + "; ".join(problems))
    return [_node_from_dict(node, strict) for node in doc["nodes"]]


def load_grammar_string(text: str, *, strict: bool = False) -> list[NodeDefinition]:
    """Load node definitions from YAML text."""
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise GrammarError(f"YAML parse error: {exc}") from exc

    if doc is None:
        raise GrammarError("Grammar is empty or contains only whitespace")

    doc = _normalize_keywords(doc)
    problems = validate_grammar_document(doc)
    if problems:
        raise GrammarError("Invalid grammar: " + "; ".join(problems))

    nodes = [_node_from_dict(node, strict) for node in doc["nodes"]]
    logger.debug("Loaded %d grammar nodes", len(nodes))
    return nodes


def load_grammar(path: Path | str, *, strict: bool = False) -> list[NodeDefinition]:
    """
    Load node definitions from a YAML grammar file.

    Raises:
        GrammarError: If the file is not valid YAML or does not match the
                      grammar schema.
        FileNotFoundError: If the file does not exist.
    """
    path = Path(path)
    with path.open() as fh:
        text = fh.read()
    try:
        nodes = load_grammar_string(text, strict=strict)
    except GrammarError as e:
        raise GrammarError(f"{path}: {e}") from e
    logger.debug("Loaded grammar %s", path)
    return nodes


def standard_nodes() -> list[NodeDefinition]:
    """
    Node definitions of the bundled standard grammar.

    Registers the built-in rules first, so every returned node is evaluable.
    """
    register_all_builtins()
    return load_grammar(_GRAMMARS_DIR / "standard.yaml", strict=True)
