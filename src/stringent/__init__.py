"""Stringent: runtime grammar compiler, precedence parser and evaluator.

This package provides:
- Node definitions: declarative grammar rules (define_node and pattern factories)
- Grammar builder: compiles node definitions into precedence levels
- Parser: parses input strings into typed ASTs against a field schema
- Evaluator: evaluates ASTs against runtime data
- Schema validation: checks runtime data against type descriptors
- RuleRegistry and a bundled standard grammar loadable from YAML

Usage:
    from stringent import build_parser, standard_nodes

    parser = build_parser(standard_nodes())
    ast = parser.parse_full("price * quantity", {"price": "number", "quantity": "number"})
    total = parser.evaluate("price * quantity", schema, {"price": 2.5, "quantity": 4})
"""

from stringent.builtins import register_all_builtins
from stringent.config import ParserSettings
from stringent.descriptors import (
    UNDEFINED,
    UNKNOWN,
    DescriptorError,
    is_assignable,
    is_valid_descriptor,
    parse_descriptor,
)
from stringent.errors import (
    ErrorKind,
    EvalError,
    GrammarError,
    ParseError,
    SourceLocation,
    StringentError,
    locate,
)
from stringent.evaluator import EvalContext, Evaluator, evaluate
from stringent.grammar import Grammar, PrecedenceLevel, build_grammar
from stringent.loader import (
    load_grammar,
    load_grammar_string,
    nodes_from_dicts,
    standard_nodes,
)
from stringent.nodes import (
    ATOM,
    FixedType,
    NodeDefinition,
    SoleBinding,
    UnionOf,
    const,
    define_node,
    expr,
    ident,
    keyword,
    lhs,
    number,
    rhs,
    string,
    union_of,
)
from stringent.parser import ASTNode, Parser, Span, build_parser
from stringent.rules import RuleCategory, RuleDefinition, RuleRegistry
from stringent.schema import Violation, validate

__all__ = [
    # Nodes
    "ATOM",
    "FixedType",
    "NodeDefinition",
    "SoleBinding",
    "UnionOf",
    "const",
    "define_node",
    "expr",
    "ident",
    "keyword",
    "lhs",
    "number",
    "rhs",
    "string",
    "union_of",
    # Grammar
    "Grammar",
    "PrecedenceLevel",
    "build_grammar",
    # Parser
    "ASTNode",
    "Parser",
    "Span",
    "build_parser",
    # Evaluator
    "EvalContext",
    "Evaluator",
    "evaluate",
    # Descriptors and schemas
    "UNDEFINED",
    "UNKNOWN",
    "DescriptorError",
    "Violation",
    "is_assignable",
    "is_valid_descriptor",
    "parse_descriptor",
    "validate",
    # Errors
    "ErrorKind",
    "EvalError",
    "GrammarError",
    "ParseError",
    "SourceLocation",
    "StringentError",
    "locate",
    # Rules and grammars
    "RuleCategory",
    "RuleDefinition",
    "RuleRegistry",
    "load_grammar",
    "load_grammar_string",
    "nodes_from_dicts",
    "register_all_builtins",
    "standard_nodes",
    # Configuration
    "ParserSettings",
]
