"""Ticket query language: tokenizer, parser, evaluator and autocomplete."""

from pql.engine.ast_nodes import (
    ASTNode,
    ComparisonNode,
    InNode,
    IsEmptyNode,
    LogicalNode,
    NotNode,
)
from pql.engine.autocomplete import AutocompleteContext, get_autocomplete_context
from pql.engine.evaluator import evaluate_query, matches
from pql.engine.parser import parse_query
from pql.engine.suggestions import DynamicValues, Suggestion, apply_suggestion, get_suggestions
from pql.engine.tokens import Token, TokenType, tokenize
from pql.exceptions import QueryParseError

__all__ = [
    "ASTNode",
    "AutocompleteContext",
    "ComparisonNode",
    "DynamicValues",
    "InNode",
    "IsEmptyNode",
    "LogicalNode",
    "NotNode",
    "QueryParseError",
    "Suggestion",
    "Token",
    "TokenType",
    "apply_suggestion",
    "evaluate_query",
    "get_autocomplete_context",
    "get_suggestions",
    "matches",
    "parse_query",
    "tokenize",
]
