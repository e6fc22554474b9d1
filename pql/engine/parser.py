"""Recursive-descent parser for the ticket query language.

Grammar, lowest to highest precedence::

    expression := or
    or         := and ( OR and )*
    and        := not ( ( AND | <implicit> ) not )*
    not        := NOT not | primary
    primary    := '(' expression ')'
                | field ( comparison | IN list | NOT IN list | IS [NOT] EMPTY )

Field names are resolved to their canonical form here, so the evaluator
only ever sees canonical names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import cast

from pql.engine.ast_nodes import (
    ASTNode,
    ComparisonNode,
    ComparisonOperator,
    InNode,
    IsEmptyNode,
    LogicalNode,
    NotNode,
    ValueType,
)
from pql.engine.fields import resolve_field_name
from pql.engine.tokens import Token, TokenType, tokenize
from pql.exceptions import QueryParseError

# Tokens that may stand for a field name at the start of a comparison
_FIELD_TOKENS = frozenset({TokenType.FIELD, TokenType.VALUE})

# Tokens that show a preceding VALUE token is really a field name
_FIELD_FOLLOWERS = frozenset({TokenType.OPERATOR, TokenType.IN, TokenType.IS, TokenType.NOT})

# Parentheses and NOTs allowed around a single condition
MAX_NESTING = 100

# Tokens allowed as a value in an IN list
_LIST_VALUE_TOKENS = frozenset(
    {TokenType.STRING, TokenType.NUMBER, TokenType.VALUE, TokenType.FIELD}
)


def _span_length(token: Token) -> int:
    return max(1, token.end - token.start)


def _error_at(message: str, token: Token) -> QueryParseError:
    return QueryParseError(message, token.start, _span_length(token))


def _parse_number(token: Token) -> int:
    try:
        return int(token.value)
    except ValueError:
        raise _error_at("Invalid number", token) from None


def _parse_date(token: Token) -> datetime:
    try:
        return datetime.strptime(token.value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        raise _error_at(f'Invalid date "{token.value}"', token) from None


class _QueryParser:
    """Parser state over a fixed token list."""

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 1) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.type is not TokenType.EOF:
            self.pos += 1
        return token

    def expect(self, token_type: TokenType, message: str | None = None) -> Token:
        token = self.current
        if token.type is not token_type:
            raise _error_at(
                message or f'Expected {token_type.value} but got {token.type.value} "{token.value}"',
                token,
            )
        return self.advance()

    def enter(self, token: Token) -> None:
        """Count one level of nesting opened by ``token``."""
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise _error_at(f"Query nested too deeply (more than {MAX_NESTING} levels)", token)

    def parse(self) -> ASTNode:
        node = self.parse_expression()
        if self.current.type is not TokenType.EOF:
            remaining = self.current
            raise _error_at(f'Unexpected token "{remaining.value}" after expression', remaining)
        return node

    def parse_expression(self) -> ASTNode:
        return self.parse_or()

    def parse_or(self) -> ASTNode:
        left = self.parse_and()
        while self.current.type is TokenType.OR:
            self.advance()
            right = self.parse_and()
            left = LogicalNode("OR", left, right)
        return left

    def starts_implicit_and(self) -> bool:
        """Return True if the current token begins another condition."""
        token_type = self.current.type
        if token_type in (TokenType.FIELD, TokenType.LPAREN, TokenType.NOT):
            return True
        if token_type is TokenType.VALUE:
            return self.peek().type in _FIELD_FOLLOWERS
        return False

    def parse_and(self) -> ASTNode:
        left = self.parse_not()
        while True:
            if self.current.type is TokenType.AND:
                self.advance()
            elif not self.starts_implicit_and():
                break
            right = self.parse_not()
            left = LogicalNode("AND", left, right)
        return left

    def parse_not(self) -> ASTNode:
        if self.current.type is TokenType.NOT:
            if self.peek().type is TokenType.IN:
                # "NOT IN" belongs to a field comparison, not unary negation.
                return self.parse_primary()
            self.enter(self.advance())
            operand = self.parse_not()
            self.depth -= 1
            return NotNode(operand)
        return self.parse_primary()

    def parse_primary(self) -> ASTNode:
        token = self.current

        if token.type is TokenType.LPAREN:
            self.enter(self.advance())
            expr = self.parse_expression()
            self.expect(TokenType.RPAREN, 'Expected closing parenthesis ")"')
            self.depth -= 1
            return expr

        if token.type in _FIELD_TOKENS:
            self.advance()
            return self.parse_field_condition(resolve_field_name(token.value))

        if token.type is TokenType.NOT:
            raise _error_at('Expected a field name before "NOT IN"', token)

        if token.type is TokenType.EOF:
            raise _error_at("Unexpected end of query", token)

        raise _error_at(f'Unexpected token "{token.value}"', token)

    def parse_field_condition(self, field: str) -> ASTNode:
        token_type = self.current.type

        if token_type is TokenType.IS:
            self.advance()
            negated = self.current.type is TokenType.NOT
            if negated:
                self.advance()
            self.expect(TokenType.EMPTY, f'Expected "EMPTY" after "IS{" NOT" if negated else ""}"')
            return IsEmptyNode(field, negated)

        if token_type is TokenType.NOT:
            self.advance()
            self.expect(TokenType.IN, 'Expected "IN" after "NOT"')
            self.expect(TokenType.LPAREN, 'Expected "(" after "NOT IN"')
            return InNode(field, self.parse_value_list(), negated=True)

        if token_type is TokenType.IN:
            self.advance()
            self.expect(TokenType.LPAREN, 'Expected "(" after "IN"')
            return InNode(field, self.parse_value_list(), negated=False)

        op_token = self.expect(TokenType.OPERATOR, f'Expected operator after "{field}"')
        value, value_type = self.parse_comparison_value(op_token.value)
        operator = cast(ComparisonOperator, op_token.value)
        return ComparisonNode(field, operator, value, value_type)

    def parse_comparison_value(self, operator: str) -> tuple[str | int | datetime, ValueType]:
        token = self.current
        if token.type is TokenType.STRING:
            self.advance()
            return token.value, "string"
        if token.type is TokenType.NUMBER:
            self.advance()
            return _parse_number(token), "number"
        if token.type is TokenType.DATE:
            self.advance()
            return _parse_date(token), "date"
        if token.type is TokenType.RELATIVE_DATE:
            self.advance()
            return token.value, "relative_date"
        if token.type in (TokenType.VALUE, TokenType.FIELD, TokenType.EMPTY):
            self.advance()
            return token.value, "string"
        raise _error_at(f'Expected a value after "{operator}"', token)

    def take_list_value(self) -> str | int:
        token = self.advance()
        if token.type is TokenType.NUMBER:
            return _parse_number(token)
        return token.value

    def parse_value_list(self) -> tuple[str | int, ...]:
        """Parse the values after ``IN (``.

        A missing closing parenthesis at end of input and a trailing comma
        both end the list, so partially typed queries still parse.
        """
        values: list[str | int] = []

        first = self.current
        if first.type in (TokenType.RPAREN, TokenType.EOF):
            self.finish_value_list()
            return tuple(values)
        if first.type not in _LIST_VALUE_TOKENS:
            raise _error_at(f'Expected value in list but got "{first.value}"', first)
        values.append(self.take_list_value())

        while self.current.type is TokenType.COMMA:
            self.advance()
            token = self.current
            if token.type in (TokenType.RPAREN, TokenType.EOF):
                break
            if token.type not in _LIST_VALUE_TOKENS:
                raise _error_at(f'Expected value after "," but got "{token.value}"', token)
            values.append(self.take_list_value())

        self.finish_value_list()
        return tuple(values)

    def finish_value_list(self) -> None:
        if self.current.type is TokenType.EOF:
            return
        self.expect(TokenType.RPAREN, 'Expected closing parenthesis ")"')


def parse_query(text: str) -> ASTNode:
    """Parse a query string into an AST.

    Args:
        text: The query to parse.

    Returns:
        The root node of the parsed expression.

    Raises:
        QueryParseError: If the query is empty or malformed. ``position`` and
            ``length`` locate the offending text in ``text``.
    """
    if not text.strip():
        raise QueryParseError("Empty query", 0, 0)
    return _QueryParser(tokenize(text)).parse()
