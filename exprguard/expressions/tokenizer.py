"""
Tokenizer for ${{ }} expressions.

Turns the text between '${{' and '}}' into a flat list of tokens using the
lexer of the expression grammar (grammar.lark). Lexing stops at the end of
input or at a '}}' terminator, so the same tokenizer can find the end of an
expression embedded in a larger string.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from lark import Lark
from lark import Token as LarkToken
from lark import UnexpectedCharacters

from exprguard.expressions.errors import ErrorKind, ExprError, ExprSyntaxError, quote

logger = logging.getLogger(__name__)


class TokenKind(Enum):
    END = "end of input"
    IDENT = "IDENT"
    STRING = "STRING"
    INT = "INTEGER"
    FLOAT = "FLOAT"
    LEFT_BRACKET = "["
    RIGHT_BRACKET = "]"
    LEFT_PAREN = "("
    RIGHT_PAREN = ")"
    DOT = "."
    COMMA = ","
    STAR = "*"
    NOT = "!"
    LESS = "<"
    LESS_EQ = "<="
    GREATER = ">"
    GREATER_EQ = ">="
    EQ = "=="
    NOT_EQ = "!="
    AND = "&&"
    OR = "||"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    offset: int   # 0-based offset in the source
    line: int     # 1-based
    column: int   # 1-based

    def __str__(self) -> str:
        if self.kind == TokenKind.END:
            return TokenKind.END.value
        return self.value


# Load grammar from file
_GRAMMAR_PATH = Path(__file__).parent / "grammar.lark"
_GRAMMAR = _GRAMMAR_PATH.read_text()

# Shared by the tokenizer (lex) and the parser (parse_interactive)
expr_lark = Lark(
    _GRAMMAR,
    parser="lalr",
    lexer="basic",
    start="start",
)

CLOSE_TERMINAL = "CLOSE"

_IDENT_START = re.compile(r"[a-zA-Z_0-9]")


def describe_terminals(names) -> str:
    """Quote grammar terminal names for an 'expecting ...' list, in a stable order."""
    names = set(names)
    described = [quote(k.value) for k in TokenKind if k.name in names]
    if CLOSE_TERMINAL in names:
        described.append(quote("}}"))
    return ", ".join(described)


def _unescape_string(raw: str) -> str:
    return raw[1:-1].replace("''", "'")


class Tokenizer:
    """
    Lexer over a single expression source.

    Call next_token() repeatedly until a TokenKind.END token comes back, or use
    tokenize() to get the whole stream. Lexical errors raise ExprSyntaxError.
    """

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.done = False
        self._stream: Iterator[LarkToken] = expr_lark.lex(source)

    # offset of the '}}' terminator, or len(source) when lexing ran off the end
    @property
    def end_offset(self) -> int:
        return self.pos

    def _position(self, offset: int) -> tuple[int, int]:
        line = self.source.count("\n", 0, offset) + 1
        column = offset - (self.source.rfind("\n", 0, offset) + 1) + 1
        return line, column

    def _end_token(self, offset: int) -> Token:
        self.done = True
        self.pos = offset
        line, column = self._position(offset)
        return Token(TokenKind.END, "", offset, line, column)

    def _error(self, offset: int, message: str) -> ExprSyntaxError:
        line, column = self._position(offset)
        logger.debug("Lexical error at offset %d: %s", offset, message)
        return ExprSyntaxError(ExprError(
            message=message,
            offset=offset,
            line=line,
            column=column,
            kind=ErrorKind.LEXICAL,
        ))

    def _lexical_error(self, e: UnexpectedCharacters) -> ExprSyntaxError:
        offset = e.pos_in_stream
        c = self.source[offset]
        if c == '"':
            return self._error(
                offset,
                "unexpected character '\"' while lexing expression. do you mean string literals? "
                "only single quotes are available for string delimiter",
            )
        if c == "'":
            return self._error(
                offset,
                "unexpected end of input while lexing string literal. expecting \"'\" to close it",
            )
        if c == "}":
            return self._error(
                offset,
                "unexpected character '}' while lexing expression. expecting '}}' to end the expression",
            )
        return self._error(
            offset,
            "unexpected character %r while lexing expression. expecting %s"
            % (c, describe_terminals(e.allowed)),
        )

    def _convert(self, tok: LarkToken) -> Token:
        kind = TokenKind[tok.type]
        start = tok.start_pos
        end = start + len(tok)
        if kind in (TokenKind.INT, TokenKind.FLOAT):
            # 1abc and 0xg lex as a number followed by an identifier
            if end < len(self.source) and _IDENT_START.match(self.source, end):
                raise self._error(
                    end,
                    "unexpected character %r while lexing number. expecting a separator after the number"
                    % self.source[end],
                )
        value = _unescape_string(str(tok)) if kind == TokenKind.STRING else str(tok)
        line, column = self._position(start)
        self.pos = end
        return Token(kind=kind, value=value, offset=start, line=line, column=column)

    def next_token(self) -> Token:
        """Lex the next token. Returns an END token at '}}' or end of input."""
        if self.done:
            line, column = self._position(self.pos)
            return Token(TokenKind.END, "", self.pos, line, column)

        try:
            tok: Optional[LarkToken] = next(self._stream, None)
        except UnexpectedCharacters as e:
            raise self._lexical_error(e) from e

        if tok is None:
            return self._end_token(len(self.source))
        if tok.type == CLOSE_TERMINAL:
            return self._end_token(tok.start_pos)
        return self._convert(tok)

    def tokenize(self) -> list[Token]:
        """Lex the whole source. The last token is always TokenKind.END."""
        tokens = []
        while True:
            tok = self.next_token()
            tokens.append(tok)
            if tok.kind == TokenKind.END:
                return tokens


def tokenize(source: str) -> list[Token]:
    """
    Tokenize an expression.

    Args:
        source: Expression text without the surrounding '${{' and '}}'.

    Returns:
        The token list, terminated by an END token.

    Raises:
        ExprSyntaxError: On the first lexical error.
    """
    return Tokenizer(source).tokenize()
