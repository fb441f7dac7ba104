"""
Diagnostics produced while lexing, parsing and checking ${{ }} expressions.

Every layer of the engine reports problems as ExprError values and keeps
going. The tokenizer raises ExprSyntaxError on the first bad character; the
parser boundary turns it, and any grammar error, back into an ExprError.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    LEXICAL = "lexical"
    SYNTAX = "syntax"
    SEMANTIC = "semantic"
    UNTRUSTED_INPUT = "untrusted-input"    # a leaf untrusted property was reached
    UNTRUSTED_OBJECT = "untrusted-object"  # a whole object was passed to a function


@dataclass(frozen=True)
class ExprError:
    """A single diagnostic inside an expression."""
    message: str
    offset: int           # 0-based offset in the expression source
    line: int             # 1-based
    column: int           # 1-based
    kind: ErrorKind = ErrorKind.SEMANTIC
    paths: tuple[str, ...] = ()  # untrusted paths named by taint diagnostics

    @property
    def is_untrusted(self) -> bool:
        return self.kind in (ErrorKind.UNTRUSTED_INPUT, ErrorKind.UNTRUSTED_OBJECT)

    def shifted(self, offset: int, line: int, column: int) -> "ExprError":
        """
        Move this error from expression-relative coordinates to the caller's.

        The caller passes the position of the first character of the expression
        in its own document (e.g. a workflow file). Columns only shift on the
        first line of the expression.
        """
        new_column = self.column + column - 1 if self.line == 1 else self.column
        return ExprError(
            message=self.message,
            offset=self.offset + offset,
            line=self.line + line - 1,
            column=new_column,
            kind=self.kind,
            paths=self.paths,
        )

    def __str__(self) -> str:
        return f"{self.line}:{self.column}: {self.message}"


class ExprSyntaxError(Exception):
    """Raised by the tokenizer and parser; carries the ExprError to report."""

    def __init__(self, error: ExprError):
        self.error = error
        super().__init__(str(error))


def errorf_at_token(token, kind: ErrorKind, fmt: str, *args) -> ExprError:
    """Build an ExprError positioned at a token."""
    message = fmt % args if args else fmt
    return ExprError(
        message=message,
        offset=token.offset,
        line=token.line,
        column=token.column,
        kind=kind,
    )


def errorf_at_expr(node, kind: ErrorKind, fmt: str, *args, paths: tuple[str, ...] = ()) -> ExprError:
    """Build an ExprError positioned at the first token of an expression node."""
    message = fmt % args if args else fmt
    token = node.token
    return ExprError(
        message=message,
        offset=token.offset,
        line=token.line,
        column=token.column,
        kind=kind,
        paths=paths,
    )


def quote(s: str) -> str:
    """Double-quote a value for a diagnostic message."""
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def sorted_quotes(values) -> str:
    """Sort, quote and comma-join values, e.g. '"a", "b"'."""
    return ", ".join(quote(v) for v in sorted(values))
