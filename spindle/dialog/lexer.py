"""
Dialogue script lexer.

The grammar is line oriented and irregular: dialogue text and command
bodies are captured raw, while headers, delimiters and expressions are
tokenized. The lexer therefore exposes both a token stream (next/peek) and
raw character access (remainder_of_line, read_until, read_until_pair,
read_quoted) over the same position, with a single character of pushback
shared between them.

Words end at whitespace and also at any of `(),=<>!+*/|"`, so `$x+1` is
the variable `x` plus 1 and `f($a)` is a call. Characters outside that set,
such as `-` and `.`, stay inside a word: `$a-1` is the variable `a-1`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union

from spindle.core.errors import ParseError


class TokenKind(Enum):
    """Kinds of lexical tokens."""
    DOLLAR = auto()
    LEFT_ANGLE = auto()
    RIGHT_ANGLE = auto()
    EQUALS = auto()
    PIPE = auto()
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    BANG = auto()
    LEFT_BRACKET = auto()
    RIGHT_BRACKET = auto()
    LEFT_PAREN = auto()
    RIGHT_PAREN = auto()
    COMMA = auto()
    NUMBER = auto()
    WORD = auto()


SYMBOLS: dict[str, TokenKind] = {
    '$': TokenKind.DOLLAR,
    '<': TokenKind.LEFT_ANGLE,
    '>': TokenKind.RIGHT_ANGLE,
    '=': TokenKind.EQUALS,
    '|': TokenKind.PIPE,
    '+': TokenKind.PLUS,
    '-': TokenKind.MINUS,
    '*': TokenKind.STAR,
    '/': TokenKind.SLASH,
    '!': TokenKind.BANG,
    '[': TokenKind.LEFT_BRACKET,
    ']': TokenKind.RIGHT_BRACKET,
    '(': TokenKind.LEFT_PAREN,
    ')': TokenKind.RIGHT_PAREN,
    ',': TokenKind.COMMA,
}

DIGITS = '0123456789'
BLANK = ' \t'
WORD_BREAK = ' \t\n(),=<>!+*/|"'


@dataclass(frozen=True)
class Token:
    """A lexical token. `value` is set for NUMBER and WORD tokens."""
    kind: TokenKind
    value: Union[str, float, None] = None
    line: int = 0

    def is_word(self, text: str) -> bool:
        return self.kind == TokenKind.WORD and self.value == text


class Lexer:
    """
    Converts script text into tokens on demand.

    Usage:
        lexer = Lexer("title: Start\\n---\\nHello\\n===\\n")
        lexer.next()                # Token(WORD, "title:")
        lexer.remainder_of_line()   # " Start"
    """

    def __init__(self, source: str):
        self._source = source.replace('\r\n', '\n')
        self._pos = 0
        self._pushback: Optional[str] = None
        self._start_of_line = True
        self._indent = 0

        self.line = 1
        self.last_indent = 0

    # Raw character access

    def _next_char(self) -> Optional[str]:
        if self._pushback is not None:
            ch, self._pushback = self._pushback, None
        elif self._pos < len(self._source):
            ch = self._source[self._pos]
            self._pos += 1
            if ch == '\n':
                self.line += 1
        else:
            return None

        if ch == '\n':
            self._start_of_line = True
            self._indent = 0
        return ch

    def push_back(self, ch: str) -> None:
        """Return one character to the input."""
        if self._pushback is not None:
            raise RuntimeError("pushback buffer already full")
        self._pushback = ch

    def _skip_blank(self) -> Optional[str]:
        """Consume whitespace and return the next significant character."""
        while True:
            ch = self._next_char()
            if ch is None:
                return None
            if ch == '\n':
                continue
            if ch in BLANK:
                if self._start_of_line:
                    self._indent += 1
                continue
            if self._start_of_line:
                self.last_indent = self._indent
                self._start_of_line = False
            return ch

    def peek(self) -> Optional[str]:
        """Return the next significant character without consuming it."""
        ch = self._skip_blank()
        if ch is not None:
            self.push_back(ch)
        return ch

    def remainder_of_line(self) -> Optional[str]:
        """
        Consume and return the rest of the current line.

        The terminating newline is consumed but not returned. Returns None
        only when input is exhausted and nothing was read.
        """
        buffer = []
        while True:
            ch = self._next_char()
            if ch is None:
                return ''.join(buffer) if buffer else None
            if ch == '\n':
                return ''.join(buffer)
            buffer.append(ch)

    def read_until(self, terminator: str) -> str:
        """Consume raw text up to and including `terminator`, returning the text before it."""
        buffer = []
        start_line = self.line
        while True:
            ch = self._next_char()
            if ch is None:
                raise ParseError(f"expected '{terminator}' before end of input", start_line)
            if ch == terminator:
                return ''.join(buffer)
            buffer.append(ch)

    def read_until_pair(self, terminator: str) -> str:
        """
        Consume raw text up to and including two consecutive `terminator`s.

        A lone `terminator` is kept in the returned text, so `<<if $a > 1>>`
        reads as `if $a > 1`.
        """
        buffer = []
        start_line = self.line
        while True:
            ch = self._next_char()
            if ch is None:
                raise ParseError(f"expected '{terminator * 2}' before end of input", start_line)
            if ch == terminator:
                following = self._next_char()
                if following == terminator:
                    return ''.join(buffer)
                if following is not None:
                    self.push_back(following)
            buffer.append(ch)

    def read_quoted(self) -> str:
        """Consume a double-quoted string literal and return its contents."""
        if self._skip_blank() != '"':
            raise ParseError("expected '\"'", self.line)

        buffer = []
        start_line = self.line
        while True:
            ch = self._next_char()
            if ch is None or ch == '\n':
                raise ParseError("unterminated string literal", start_line)
            if ch == '"':
                return ''.join(buffer)
            if ch == '\\':
                escaped = self._next_char()
                if escaped is None:
                    raise ParseError("unterminated string literal", start_line)
                buffer.append({'n': '\n', 't': '\t'}.get(escaped, escaped))
                continue
            buffer.append(ch)

    # Tokens

    def next(self) -> Optional[Token]:
        """Consume and return the next token, or None at end of input."""
        ch = self._skip_blank()
        if ch is None:
            return None
        line = self.line

        kind = SYMBOLS.get(ch)
        if kind is not None:
            return Token(kind, line=line)

        if ch in DIGITS:
            return Token(TokenKind.NUMBER, self._lex_number(ch), line)

        buffer = [ch]
        while True:
            ch = self._next_char()
            if ch is None:
                break
            if ch in WORD_BREAK:
                self.push_back(ch)
                break
            buffer.append(ch)
        return Token(TokenKind.WORD, ''.join(buffer), line)

    def _lex_number(self, first: str) -> float:
        buffer = [first]
        seen_point = False
        while True:
            ch = self._next_char()
            if ch is None:
                break
            if ch in DIGITS:
                buffer.append(ch)
            elif ch == '.' and not seen_point:
                seen_point = True
                buffer.append(ch)
            else:
                self.push_back(ch)
                break
        return float(''.join(buffer))

    def __iter__(self):
        while True:
            token = self.next()
            if token is None:
                return
            yield token
