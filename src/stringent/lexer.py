"""Atom matchers for the parser.

The parser is scannerless: it asks the lexer to recognize one token at a
given offset. Insignificant whitespace (space, tab, carriage return,
newline) is skipped before every token.

Token types:
- Literals: NUMBER, STRING, KEYWORD (null, true, false, undefined)
- IDENTIFIER: Unicode-letter-led names, excluding reserved words
- TEXT: exact-text tokens declared by the grammar (operators, keywords)
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable

from stringent.descriptors import UNDEFINED
from stringent.errors import ErrorKind, ParseError


class TokenType(Enum):
    """Types of tokens recognized by the matchers."""

    NUMBER = auto()
    STRING = auto()
    KEYWORD = auto()
    IDENTIFIER = auto()
    TEXT = auto()


@dataclass(frozen=True)
class Token:
    """A single matched token.

    Attributes:
        type: The token type
        value: Decoded value (number, unescaped string, keyword value, name, text)
        start: Offset of the first character
        end: Offset just past the last character
    """

    type: TokenType
    value: Any
    start: int
    end: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.start}:{self.end})"


WHITESPACE = " \t\r\n"

NUMBER_PATTERN = re.compile(r"-?\d+(\.\d+)?([eE][+-]?\d+)?")

IDENTIFIER_PATTERN = re.compile(r"[^\W\d_]\w*")

# Keyword literals and the output schema of the literal they produce
KEYWORDS: dict[str, tuple[Any, str]] = {
    "null": (None, "null"),
    "true": (True, "boolean"),
    "false": (False, "boolean"),
    "undefined": (UNDEFINED, "undefined"),
}

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    '"': '"',
    "'": "'",
}

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class Lexer:
    """Matches individual tokens in a source string.

    Usage:
        lexer = Lexer('1 + "two"')
        token = lexer.match_number(0)
        plus = lexer.match_text(token.end, "+")
    """

    def __init__(
        self,
        source: str,
        reserved_words: frozenset[str] = frozenset(),
        longer_tokens: Callable[[str], tuple[str, ...]] | None = None,
        snippet_width: int = 40,
    ):
        self.source = source
        self.reserved_words = reserved_words
        self._longer_tokens = longer_tokens or (lambda text: ())
        self.snippet_width = snippet_width

    def skip_whitespace(self, position: int) -> int:
        """Return the first non-whitespace offset at or after position."""
        source = self.source
        while position < len(source) and source[position] in WHITESPACE:
            position += 1
        return position

    def at_end(self, position: int) -> bool:
        return self.skip_whitespace(position) >= len(self.source)

    def match_number(self, position: int) -> Token | None:
        """Match a numeric literal (optional sign, fraction and exponent)."""
        start = self.skip_whitespace(position)
        match = NUMBER_PATTERN.match(self.source, start)
        if not match:
            return None

        text = match.group()
        value: int | float
        if match.group(1) or match.group(2):
            value = float(text)
        else:
            value = int(text)
        return Token(TokenType.NUMBER, value, start, match.end())

    def match_string(self, position: int) -> Token | None:
        """Match a single- or double-quoted string literal.

        Raises:
            ParseError: UnterminatedString if no closing quote is found
        """
        start = self.skip_whitespace(position)
        if start >= len(self.source) or self.source[start] not in "\"'":
            return None

        quote = self.source[start]
        i = start + 1
        while i < len(self.source):
            char = self.source[i]
            if char == "\\":
                i += 2
                continue
            if char == quote:
                body = self.source[start + 1:i]
                return Token(TokenType.STRING, self._unescape_string(body), start, i + 1)
            i += 1

        raise ParseError(
            ErrorKind.UNTERMINATED_STRING,
            "Unterminated string literal",
            start,
            self.source,
            self.snippet_width,
        )

    def match_keyword(self, position: int, word: str | None = None) -> Token | None:
        """Match a keyword literal, or only ``word`` when given."""
        start = self.skip_whitespace(position)
        match = IDENTIFIER_PATTERN.match(self.source, start)
        if not match:
            return None

        text = match.group()
        if text not in KEYWORDS or (word is not None and text != word):
            return None
        value, _ = KEYWORDS[text]
        return Token(TokenType.KEYWORD, value, start, match.end())

    def match_identifier(self, position: int) -> Token | None:
        """Match an identifier that is not a keyword or reserved word."""
        start = self.skip_whitespace(position)
        match = IDENTIFIER_PATTERN.match(self.source, start)
        if not match:
            return None

        name = match.group()
        if name in KEYWORDS or name in self.reserved_words:
            return None
        return Token(TokenType.IDENTIFIER, name, start, match.end())

    def match_text(self, position: int, text: str) -> Token | None:
        """Match exact text, longest registered token first.

        ``=`` does not match where ``==`` is registered and present, and a
        word-like token such as ``and`` does not match inside ``android``.
        """
        start = self.skip_whitespace(position)
        if not self.source.startswith(text, start):
            return None

        for longer in self._longer_tokens(text):
            if self.source.startswith(longer, start):
                return None

        end = start + len(text)
        if (
            text[-1].isalnum() or text[-1] == "_"
        ) and end < len(self.source) and (
            self.source[end].isalnum() or self.source[end] == "_"
        ):
            return None

        return Token(TokenType.TEXT, text, start, end)

    def _unescape_string(self, s: str) -> str:
        """Process escape sequences in a string body."""
        result = []
        i = 0
        while i < len(s):
            if s[i] == "\\" and i + 1 < len(s):
                next_char = s[i + 1]
                if next_char in _ESCAPES:
                    result.append(_ESCAPES[next_char])
                    i += 2
                elif next_char == "u" and set(s[i + 2:i + 6]) <= _HEX_DIGITS and len(s[i + 2:i + 6]) == 4:
                    result.append(chr(int(s[i + 2:i + 6], 16)))
                    i += 6
                else:
                    result.append(next_char)
                    i += 2
            else:
                result.append(s[i])
                i += 1
        return "".join(result)
