"""Work out what the user is typing at the cursor.

The resolver re-tokenizes the text before the cursor and classifies the
position as a place for a field name, an operator, a value or a keyword.
It never raises; text it cannot make sense of yields ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pql.engine.tokens import Token, TokenType, tokenize
from pql.exceptions import QueryParseError

ContextType = Literal["field", "operator", "value", "keyword"]

_TYPING_TOKENS = frozenset({TokenType.FIELD, TokenType.VALUE})

# A field name is expected after these (or at the very start)
_FIELD_POSITION_TOKENS = frozenset({TokenType.AND, TokenType.OR, TokenType.NOT, TokenType.LPAREN})

# Tokens that close a condition; AND/OR may follow
_COMPLETED_TOKENS = frozenset(
    {
        TokenType.VALUE,
        TokenType.STRING,
        TokenType.NUMBER,
        TokenType.DATE,
        TokenType.RELATIVE_DATE,
        TokenType.RPAREN,
        TokenType.EMPTY,
    }
)


@dataclass(frozen=True)
class AutocompleteContext:
    """What kind of completion fits at the cursor.

    Attributes:
        type: ``field``, ``operator``, ``value`` or ``keyword``.
        partial: Text already typed for the item being completed.
        position: Offset where ``partial`` starts; a suggestion replaces
            ``text[position:position + len(partial)]``.
        field_name: Field the value or operator belongs to, as typed.
    """

    type: ContextType
    partial: str
    position: int
    field_name: str | None = None


def _list_field(tokens: list[Token], index: int) -> str | None:
    """Find the field of the ``IN (`` list enclosing ``tokens[index]``.

    Returns None if the token is not inside an IN list.
    """
    depth = 0
    for i in range(index, -1, -1):
        token = tokens[i]
        if token.type is TokenType.RPAREN:
            depth += 1
        elif token.type is TokenType.LPAREN:
            if depth:
                depth -= 1
                continue
            if i >= 1 and tokens[i - 1].type is TokenType.IN:
                field_index = i - 2
                if field_index >= 0 and tokens[field_index].type is TokenType.NOT:
                    field_index -= 1
                if field_index >= 0 and tokens[field_index].type in _TYPING_TOKENS:
                    return tokens[field_index].value
            return None
    return None


def _in_value_list(tokens: list[Token], index: int) -> bool:
    token = tokens[index]
    if token.type is TokenType.COMMA:
        return True
    return (
        token.type is TokenType.LPAREN
        and index >= 1
        and tokens[index - 1].type is TokenType.IN
    )


def _expects_field(tokens: list[Token], index: int) -> bool:
    """Return True if a field name may follow ``tokens[index]``."""
    if index < 0:
        return True
    token = tokens[index]
    if token.type in _FIELD_POSITION_TOKENS:
        return not _in_value_list(tokens, index)
    return False


def get_autocomplete_context(text: str, cursor_position: int) -> AutocompleteContext | None:
    """Classify the completion wanted at ``cursor_position`` in ``text``.

    Args:
        text: The full query text.
        cursor_position: Cursor offset; clamped to ``[0, len(text)]``.

    Returns:
        The completion context, or None when no suggestion applies.
    """
    cursor = max(0, min(cursor_position, len(text)))
    before = text[:cursor]
    trimmed = before.rstrip()

    if not trimmed:
        return AutocompleteContext("field", "", cursor)

    try:
        tokens = [t for t in tokenize(trimmed) if t.type is not TokenType.EOF]
    except QueryParseError:
        return None
    if not tokens:
        return AutocompleteContext("field", "", cursor)

    last_index = len(tokens) - 1
    last = tokens[last_index]
    prev = tokens[last_index - 1] if last_index >= 1 else None
    # Trailing whitespace means the last token is finished.
    is_typing = last.end >= len(trimmed) and len(before) == len(trimmed)

    if last.type is TokenType.OPERATOR:
        return AutocompleteContext("value", "", cursor, prev.value if prev else None)

    if last.type in (TokenType.LPAREN, TokenType.COMMA) and _in_value_list(tokens, last_index):
        return AutocompleteContext("value", "", cursor, _list_field(tokens, last_index))

    if last.type in _FIELD_POSITION_TOKENS:
        return AutocompleteContext("field", "", cursor)

    if last.type is TokenType.IN:
        # Wait for the opening parenthesis.
        return None

    if last.type in _TYPING_TOKENS and is_typing:
        if prev is not None and prev.type is TokenType.OPERATOR:
            field_token = tokens[last_index - 2] if last_index >= 2 else None
            return AutocompleteContext(
                "value", last.value, last.start, field_token.value if field_token else None
            )
        if prev is not None and _in_value_list(tokens, last_index - 1):
            return AutocompleteContext(
                "value", last.value, last.start, _list_field(tokens, last_index - 1)
            )
        return AutocompleteContext("field", last.value, last.start)

    if last.type in _TYPING_TOKENS and _expects_field(tokens, last_index - 1):
        # A finished bare word where a field belongs: offer operators for it.
        return AutocompleteContext("operator", "", cursor, last.value)

    if last.type in _COMPLETED_TOKENS and not is_typing:
        return AutocompleteContext("keyword", "", cursor)

    return None
