"""
Parser for ${{ }} expressions.

The grammar lives in grammar.lark. Tokens from our Tokenizer are fed one by
one into the LALR parser, so every tree node keeps the offset, line and column
of the token it started at. _ExprTransformer turns the Lark tree into the
ExprNode dataclasses consumed by the checkers.
"""

import logging
from typing import Optional, Union

from lark import Token as LarkToken
from lark import Transformer, UnexpectedToken

from exprguard.expressions.ast import (
    ArrayDerefNode,
    BoolNode,
    CompareOpKind,
    CompareOpNode,
    ExprNode,
    FuncCallNode,
    IndexAccessNode,
    LogicalOpKind,
    LogicalOpNode,
    NotOpNode,
    NullNode,
    NumberNode,
    ObjectDerefNode,
    StringNode,
    VariableNode,
)
from exprguard.expressions.errors import (
    ErrorKind,
    ExprError,
    ExprSyntaxError,
    errorf_at_token,
    quote,
)
from exprguard.expressions.tokenizer import (
    Token,
    TokenKind,
    Tokenizer,
    describe_terminals,
    expr_lark,
)

logger = logging.getLogger(__name__)

_COMPARE_OPS = {
    "EQ": CompareOpKind.EQ,
    "NOT_EQ": CompareOpKind.NOT_EQ,
    "LESS": CompareOpKind.LESS,
    "LESS_EQ": CompareOpKind.LESS_EQ,
    "GREATER": CompareOpKind.GREATER,
    "GREATER_EQ": CompareOpKind.GREATER_EQ,
}

_LOGICAL_OPS = {
    "AND": LogicalOpKind.AND,
    "OR": LogicalOpKind.OR,
}

_KEYWORD_LITERALS = {"null", "true", "false", "nan", "infinity"}


def _to_lark(tok: Token) -> LarkToken:
    name = "$END" if tok.kind == TokenKind.END else tok.kind.name
    return LarkToken(name, tok.value, start_pos=tok.offset, line=tok.line, column=tok.column)


def _from_lark(tok: LarkToken) -> Token:
    return Token(
        kind=TokenKind[tok.type],
        value=str(tok),
        offset=tok.start_pos,
        line=tok.line,
        column=tok.column,
    )


class _ExprTransformer(Transformer):
    """Build ExprNode trees from the Lark parse tree, bottom-up."""

    def start(self, items):
        return items[0]

    def _fold_binary(self, items, build):
        left = items[0]
        for i in range(1, len(items), 2):
            left = build(left, items[i].type, items[i + 1])
        return left

    def or_expr(self, items):
        return self._fold_binary(items, lambda l, op, r: LogicalOpNode(
            token=l.token, kind=_LOGICAL_OPS[op], left=l, right=r))

    and_expr = or_expr

    def eq_expr(self, items):
        return self._fold_binary(items, lambda l, op, r: CompareOpNode(
            token=l.token, kind=_COMPARE_OPS[op], left=l, right=r))

    rel_expr = eq_expr

    def not_op(self, items):
        return NotOpNode(token=_from_lark(items[0]), operand=items[1])

    def object_deref(self, items):
        receiver, _dot, prop = items
        return ObjectDerefNode(token=receiver.token, receiver=receiver, property=str(prop))

    def array_deref(self, items):
        receiver = items[0]
        return ArrayDerefNode(token=receiver.token, receiver=receiver)

    def index_access(self, items):
        receiver, _lb, index, _rb = items
        return IndexAccessNode(token=receiver.token, receiver=receiver, index=index)

    def variable(self, items):
        ident = _from_lark(items[0])
        keyword = ident.value.lower()
        if keyword in _KEYWORD_LITERALS:
            if keyword == "null":
                return NullNode(token=ident)
            if keyword == "true":
                return BoolNode(token=ident, value=True)
            if keyword == "false":
                return BoolNode(token=ident, value=False)
            if keyword == "nan":
                return NumberNode(token=ident, value=float("nan"))
            return NumberNode(token=ident, value=float("inf"))
        return VariableNode(token=ident, name=ident.value)

    def func_call(self, items):
        ident, _lp, args, _rp = items
        return FuncCallNode(
            token=_from_lark(ident),
            callee=str(ident),
            args=tuple(args) if args else (),
        )

    def args(self, items):
        return items[0::2]

    def string(self, items):
        tok = _from_lark(items[0])
        return StringNode(token=tok, value=tok.value)

    def integer(self, items):
        tok = _from_lark(items[0])
        text = tok.value
        return NumberNode(token=tok, value=int(text, 16) if "0x" in text else int(text))

    def decimal(self, items):
        tok = _from_lark(items[0])
        return NumberNode(token=tok, value=float(tok.value))

    def paren(self, items):
        return items[1]


class ExprParser:
    """
    Parser over a Tokenizer's output.

    parse() never raises for bad input: it returns (None, errors) so the
    caller can still report the exact position of the problem.
    """

    def _unexpected(self, tok: Token, prev: Optional[Token], e: UnexpectedToken) -> ExprError:
        if tok.kind == TokenKind.END:
            found = "end of input"
        else:
            found = "token " + quote(tok.value)
        what = "object property dereference" if prev and prev.kind == TokenKind.DOT else "expression"
        return errorf_at_token(
            tok,
            ErrorKind.SYNTAX,
            "unexpected %s while parsing %s. expecting %s",
            found, what, describe_terminals(e.expected),
        )

    def parse_tokens(self, tokens: list[Token]) -> tuple[Optional[ExprNode], list[ExprError]]:
        """Parse a token list terminated by an END token."""
        if not tokens or tokens[-1].kind != TokenKind.END:
            raise ValueError("token list must end with an END token")

        ip = expr_lark.parse_interactive()
        prev = None
        tree = None
        for tok in tokens:
            try:
                if tok.kind == TokenKind.END:
                    tree = ip.feed_eof(_to_lark(tok))
                    break
                ip.feed_token(_to_lark(tok))
            except UnexpectedToken as e:
                err = self._unexpected(tok, prev, e)
                logger.debug("Syntax error: %s", err)
                return None, [err]
            prev = tok

        return _ExprTransformer().transform(tree), []

    def parse(self, source: Union[str, Tokenizer]) -> tuple[Optional[ExprNode], list[ExprError]]:
        """
        Parse an expression.

        Args:
            source: Expression text (without '${{' and '}}') or a Tokenizer
                    positioned at its start.

        Returns:
            (tree, []) on success, (None, [error]) on a lexical or syntax error.
        """
        tokenizer = source if isinstance(source, Tokenizer) else Tokenizer(source)
        try:
            tokens = tokenizer.tokenize()
        except ExprSyntaxError as e:
            return None, [e.error]
        return self.parse_tokens(tokens)


def parse_expression(source: str) -> tuple[Optional[ExprNode], list[ExprError]]:
    """Tokenize and parse an expression in one call."""
    return ExprParser().parse(source)
