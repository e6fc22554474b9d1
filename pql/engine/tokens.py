"""Tokenizer for the ticket query language.

Turns raw query text into a flat list of :class:`Token` objects with exact
source offsets. The only failure is an unterminated quoted string; every
other unexpected character becomes an ``UNKNOWN`` token for the parser to
reject.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pql.exceptions import QueryParseError


class TokenType(Enum):
    """Lexical category of a token."""

    FIELD = "FIELD"
    OPERATOR = "OPERATOR"
    VALUE = "VALUE"
    STRING = "STRING"
    NUMBER = "NUMBER"
    DATE = "DATE"
    RELATIVE_DATE = "RELATIVE_DATE"
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    IN = "IN"
    IS = "IS"
    EMPTY = "EMPTY"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    COMMA = "COMMA"
    EOF = "EOF"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class Token:
    """A token and its ``[start, end)`` span in the source text."""

    type: TokenType
    value: str
    start: int
    end: int


# Longest operators first so "!=" wins over "=".
OPERATORS: tuple[str, ...] = ("!=", ">=", "<=", "=", ">", "<")

KEYWORDS: dict[str, TokenType] = {
    "AND": TokenType.AND,
    "OR": TokenType.OR,
    "NOT": TokenType.NOT,
    "IN": TokenType.IN,
    "IS": TokenType.IS,
    "EMPTY": TokenType.EMPTY,
    "NULL": TokenType.EMPTY,
    "NONE": TokenType.EMPTY,
}

RELATIVE_DATE_UNITS = "dwmy"

_WHITESPACE = " \t\n\r"
_FIELD_LOOKAHEAD_CHARS = ("=", "!", ">", "<")
_FIELD_LOOKAHEAD_WORDS = ("IN ", "IN(", "NOT ", "IS ")


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _is_alpha(ch: str) -> bool:
    return ("a" <= ch <= "z") or ("A" <= ch <= "Z") or ch == "_"


def _is_word_char(ch: str) -> bool:
    return _is_alpha(ch) or _is_digit(ch) or ch == "."


def _looks_like_field(text: str, pos: int) -> bool:
    """Return True if the text after ``pos`` starts an operator-like construct."""
    while pos < len(text) and text[pos] in _WHITESPACE:
        pos += 1
    rest = text[pos:]
    if rest.startswith(_FIELD_LOOKAHEAD_CHARS):
        return True
    return rest[:4].upper().startswith(_FIELD_LOOKAHEAD_WORDS)


class _Scanner:
    """Single forward pass over the query text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.tokens: list[Token] = []

    def peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        if index < len(self.text):
            return self.text[index]
        return ""

    def emit(self, token_type: TokenType, value: str, start: int) -> None:
        self.tokens.append(Token(token_type, value, start, self.pos))

    def run(self) -> list[Token]:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch in _WHITESPACE:
                self.pos += 1
                continue

            start = self.pos
            if ch == "(":
                self.pos += 1
                self.emit(TokenType.LPAREN, ch, start)
            elif ch == ")":
                self.pos += 1
                self.emit(TokenType.RPAREN, ch, start)
            elif ch == ",":
                self.pos += 1
                self.emit(TokenType.COMMA, ch, start)
            elif self.scan_operator():
                pass
            elif ch in ('"', "'"):
                self.scan_string()
            elif ch == "-" and _is_digit(self.peek(1)):
                self.scan_relative_date()
            elif _is_digit(ch):
                self.scan_number()
            elif _is_alpha(ch):
                self.scan_word()
            else:
                self.pos += 1
                self.emit(TokenType.UNKNOWN, ch, start)

        self.tokens.append(Token(TokenType.EOF, "", self.pos, self.pos))
        return self.tokens

    def scan_operator(self) -> bool:
        start = self.pos
        for op in OPERATORS:
            if self.text.startswith(op, start):
                self.pos += len(op)
                self.emit(TokenType.OPERATOR, op, start)
                return True
        return False

    def scan_string(self) -> None:
        start = self.pos
        quote = self.text[start]
        self.pos += 1
        chars: list[str] = []
        while self.pos < len(self.text) and self.text[self.pos] != quote:
            if self.text[self.pos] == "\\" and self.pos + 1 < len(self.text):
                self.pos += 1
            chars.append(self.text[self.pos])
            self.pos += 1
        if self.pos >= len(self.text):
            raise QueryParseError(f"Unterminated string starting at position {start}", start)
        self.pos += 1
        self.emit(TokenType.STRING, "".join(chars), start)

    def scan_digits(self) -> str:
        begin = self.pos
        while _is_digit(self.peek()):
            self.pos += 1
        return self.text[begin : self.pos]

    def scan_relative_date(self) -> None:
        # "-7d" is a relative date; "-7" on its own is a negative number.
        start = self.pos
        self.pos += 1
        digits = self.scan_digits()
        unit = self.peek().lower()
        if unit and unit in RELATIVE_DATE_UNITS:
            self.pos += 1
            self.emit(TokenType.RELATIVE_DATE, f"-{digits}{unit}", start)
            return
        self.emit(TokenType.NUMBER, f"-{digits}", start)

    def scan_number(self) -> None:
        start = self.pos
        digits = self.scan_digits()
        if (
            len(digits) == 4
            and self.peek() == "-"
            and _is_digit(self.peek(1))
            and _is_digit(self.peek(2))
            and self.peek(3) == "-"
        ):
            self.pos += 4
            if _is_digit(self.peek()) and _is_digit(self.peek(1)):
                self.pos += 2
                self.emit(TokenType.DATE, self.text[start : self.pos], start)
            else:
                # "2024-12-" without a day: keep the text together.
                self.emit(TokenType.VALUE, self.text[start : self.pos], start)
            return
        self.emit(TokenType.NUMBER, digits, start)

    def scan_word(self) -> None:
        start = self.pos
        while _is_word_char(self.peek()):
            self.pos += 1
        word = self.text[start : self.pos]

        keyword = KEYWORDS.get(word.upper())
        if keyword is not None:
            self.emit(keyword, word, start)
        elif _looks_like_field(self.text, self.pos):
            self.emit(TokenType.FIELD, word, start)
        else:
            self.emit(TokenType.VALUE, word, start)


def tokenize(text: str) -> list[Token]:
    """Split query text into tokens.

    Args:
        text: The raw query text.

    Returns:
        Tokens in source order, always terminated by a single EOF token.

    Raises:
        QueryParseError: If a quoted string is not terminated.
    """
    return _Scanner(text).run()
