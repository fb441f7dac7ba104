"""
Analyzer: ties together tokenizer → parser → semantic checker → taint checker.

This is the call surface for the rule layer. It takes expression text plus
the position of that text in the caller's document and returns every
diagnostic in the caller's coordinates.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional

from exprguard.expressions.ast import ExprNode
from exprguard.expressions.errors import ErrorKind, ExprError, ExprSyntaxError
from exprguard.expressions.parser import parse_expression
from exprguard.expressions.semantics import ExprSemanticsChecker
from exprguard.expressions.tokenizer import Tokenizer
from exprguard.expressions.untrusted_map import (
    BUILTIN_PRIVILEGED_UNTRUSTED_INPUTS,
    BUILTIN_UNTRUSTED_INPUTS,
    ContextPropertySearchRoots,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Position:
    """Where an expression starts in the caller's document (1-based line/column)."""
    line: int = 1
    column: int = 1
    offset: int = 0


@dataclass(frozen=True)
class EmbeddedExpression:
    """A ${{ }} expression found inside a larger string."""
    source: str    # text between '${{' and '}}', whitespace-trimmed
    offset: int    # offset of source[0] in the containing string
    line: int
    column: int

    def position_in(self, base: Position) -> Position:
        column = self.column + base.column - 1 if self.line == 1 else self.column
        return Position(
            line=base.line + self.line - 1,
            column=column,
            offset=base.offset + self.offset,
        )


@dataclass
class ExpressionReport:
    """Result of analyzing one expression."""
    source: str
    node: Optional[ExprNode]
    errors: list[ExprError] = field(default_factory=list)
    position: Position = field(default_factory=Position)

    @property
    def untrusted_paths(self) -> list[str]:
        paths = {p for e in self.errors if e.is_untrusted for p in e.paths}
        return sorted(paths)

    @property
    def has_untrusted_input(self) -> bool:
        return any(e.is_untrusted for e in self.errors)

    @property
    def has_syntax_errors(self) -> bool:
        return any(e.kind in (ErrorKind.LEXICAL, ErrorKind.SYNTAX) for e in self.errors)


def _default_roots(privileged: bool) -> ContextPropertySearchRoots:
    return BUILTIN_PRIVILEGED_UNTRUSTED_INPUTS if privileged else BUILTIN_UNTRUSTED_INPUTS


def _line_col(text: str, offset: int) -> tuple[int, int]:
    line = text.count("\n", 0, offset) + 1
    column = offset - (text.rfind("\n", 0, offset) + 1) + 1
    return line, column


def analyze_expression(
    source: str,
    roots: Optional[ContextPropertySearchRoots] = None,
    *,
    position: Optional[Position] = None,
    privileged: bool = False,
    config_vars: Optional[Iterable[str]] = None,
) -> ExpressionReport:
    """
    Analyze a single expression.

    Args:
        source: Expression text without the surrounding '${{' and '}}'.
        roots: Untrusted-path search roots. Defaults to the built-in table
               chosen by `privileged`.
        position: Position of source[0] in the caller's document.
        privileged: Use the privileged-trigger table when `roots` is None.
        config_vars: Defined configuration variable names, if known.

    Returns:
        An ExpressionReport. The taint check is skipped when parsing fails.
    """
    position = position or Position()
    if roots is None:
        roots = _default_roots(privileged)

    t0 = time.monotonic()
    node, errors = parse_expression(source)
    if node is not None:
        checker = ExprSemanticsChecker(
            check_untrusted_input=True,
            untrusted_roots=roots,
            config_vars=config_vars,
        )
        _, errors = checker.check(node)
    elapsed_ms = (time.monotonic() - t0) * 1000

    errors = [e.shifted(position.offset, position.line, position.column) for e in errors]
    logger.debug(
        "Analyzed %r: %d error(s) in %.2fms", source, len(errors), elapsed_ms,
    )
    return ExpressionReport(source=source, node=node, errors=errors, position=position)


def extract_expressions(text: str) -> list[EmbeddedExpression]:
    """
    Find every ${{ ... }} expression in a string.

    The tokenizer decides where an expression ends, so '}}' inside a string
    literal does not close it. An unterminated '${{' ends the search.
    """
    found = []
    pos = 0
    while True:
        start = text.find("${{", pos)
        if start == -1:
            break
        body_start = start + 3
        tokenizer = Tokenizer(text[body_start:])
        try:
            tokenizer.tokenize()
            body_end = body_start + tokenizer.end_offset
            terminated = text.startswith("}}", body_end)
        except ExprSyntaxError:
            # let the analyzer report the lexical error on the raw text
            body_end = text.find("}}", body_start)
            terminated = body_end != -1
        if not terminated:
            logger.debug("Unterminated expression at offset %d", start)
            break

        raw = text[body_start:body_end]
        lead = len(raw) - len(raw.lstrip())
        offset = body_start + lead
        line, column = _line_col(text, offset)
        found.append(EmbeddedExpression(source=raw.strip(), offset=offset, line=line, column=column))
        pos = body_end + 2

    logger.debug("Found %d expression(s) in %d chars", len(found), len(text))
    return found


def analyze_string(
    text: str,
    roots: Optional[ContextPropertySearchRoots] = None,
    *,
    position: Optional[Position] = None,
    privileged: bool = False,
    config_vars: Optional[Iterable[str]] = None,
) -> list[ExpressionReport]:
    """Analyze every ${{ }} expression embedded in `text`."""
    base = position or Position()
    if roots is None:
        roots = _default_roots(privileged)

    t0 = time.monotonic()
    reports = [
        analyze_expression(
            expr.source,
            roots,
            position=expr.position_in(base),
            config_vars=config_vars,
        )
        for expr in extract_expressions(text)
    ]
    total_ms = (time.monotonic() - t0) * 1000
    logger.info(
        "Completed: %d expression(s), %d with untrusted input, in %.1fms",
        len(reports), sum(1 for r in reports if r.has_untrusted_input), total_ms,
    )
    return reports
