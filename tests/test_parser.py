"""Tests for the expression parser."""

import math

import pytest

from exprguard.expressions import (
    ArrayDerefNode,
    BoolNode,
    CompareOpKind,
    CompareOpNode,
    ErrorKind,
    ExprParser,
    FuncCallNode,
    IndexAccessNode,
    LogicalOpKind,
    LogicalOpNode,
    NotOpNode,
    NullNode,
    NumberNode,
    ObjectDerefNode,
    StringNode,
    Tokenizer,
    VariableNode,
    parse_expression,
    tokenize,
    walk,
)


def _parse(source):
    node, errs = parse_expression(source)
    assert errs == []
    return node


def _parse_error(source):
    node, errs = parse_expression(source)
    assert node is None
    assert len(errs) == 1
    return errs[0]


# ---------------------------------------------------------------------------
# Property access
# ---------------------------------------------------------------------------

class TestPropertyAccess:
    def test_variable(self):
        node = _parse("github")
        assert isinstance(node, VariableNode)
        assert node.name == "github"

    def test_object_deref_chain(self):
        node = _parse("github.event.issue")
        assert isinstance(node, ObjectDerefNode)
        assert node.property == "issue"
        assert node.receiver.property == "event"
        assert node.receiver.receiver.name == "github"

    def test_object_filter(self):
        node = _parse("github.event.commits.*.message")
        assert node.property == "message"
        assert isinstance(node.receiver, ArrayDerefNode)
        assert node.receiver.receiver.property == "commits"

    def test_index_access(self):
        node = _parse("github['event'][0]")
        assert isinstance(node, IndexAccessNode)
        assert isinstance(node.index, NumberNode)
        assert node.index.value == 0
        assert isinstance(node.receiver.index, StringNode)
        assert node.receiver.index.value == "event"

    def test_node_token_is_first_token(self):
        node = _parse("github.event.issue.title")
        assert node.token.value == "github"
        assert node.token.offset == 0

    def test_names_keep_original_case(self):
        node = _parse("GitHub.Event")
        assert node.property == "Event"
        assert node.receiver.name == "GitHub"


# ---------------------------------------------------------------------------
# Literals and calls
# ---------------------------------------------------------------------------

class TestLiteralsAndCalls:
    def test_keyword_literals(self):
        assert isinstance(_parse("null"), NullNode)
        assert _parse("TRUE").value is True
        assert _parse("false").value is False
        assert math.isnan(_parse("NaN").value)
        assert _parse("Infinity").value == float("inf")

    def test_numbers(self):
        assert _parse("0xff").value == 255
        assert _parse("-12").value == -12
        assert _parse("1.5").value == 1.5

    def test_string(self):
        node = _parse("'it''s'")
        assert isinstance(node, StringNode)
        assert node.value == "it's"

    def test_function_call(self):
        node = _parse("format('{0}', github.sha)")
        assert isinstance(node, FuncCallNode)
        assert node.callee == "format"
        assert len(node.args) == 2
        assert isinstance(node.args[1], ObjectDerefNode)

    def test_function_call_without_args(self):
        node = _parse("success()")
        assert isinstance(node, FuncCallNode)
        assert node.args == ()

    def test_nested_calls(self):
        node = _parse("contains(toJSON(github.event), 'x')")
        assert node.args[0].callee == "toJSON"


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

class TestOperators:
    def test_and_binds_tighter_than_or(self):
        node = _parse("a || b && c")
        assert isinstance(node, LogicalOpNode)
        assert node.kind == LogicalOpKind.OR
        assert node.right.kind == LogicalOpKind.AND

    def test_relation_binds_tighter_than_equality(self):
        node = _parse("a < b == c")
        assert node.kind == CompareOpKind.EQ
        assert node.left.kind == CompareOpKind.LESS

    def test_not_binds_tightest(self):
        node = _parse("!a == b")
        assert isinstance(node, CompareOpNode)
        assert isinstance(node.left, NotOpNode)

    def test_parentheses(self):
        node = _parse("(a || b) && c")
        assert node.kind == LogicalOpKind.AND
        assert node.left.kind == LogicalOpKind.OR

    def test_left_associative(self):
        node = _parse("a && b && c")
        assert isinstance(node.left, LogicalOpNode)
        assert isinstance(node.right, VariableNode)

    def test_bool_operand(self):
        node = _parse("!true")
        assert isinstance(node.operand, BoolNode)


# ---------------------------------------------------------------------------
# Syntax errors
# ---------------------------------------------------------------------------

class TestSyntaxErrors:
    def test_empty_expression(self):
        err = _parse_error("")
        assert err.kind == ErrorKind.SYNTAX
        assert "unexpected end of input" in err.message

    def test_dangling_dot(self):
        err = _parse_error("github.")
        assert err.message == (
            'unexpected end of input while parsing object property dereference. expecting "IDENT", "*"'
        )

    def test_trailing_tokens(self):
        err = _parse_error("a b")
        assert 'unexpected token "b"' in err.message
        assert err.offset == 2

    def test_missing_comma(self):
        err = _parse_error("f(a b)")
        assert 'unexpected token "b" while parsing expression' in err.message
        assert '","' in err.message
        assert '")"' in err.message
        assert err.offset == 4

    def test_unclosed_paren(self):
        err = _parse_error("(a")
        assert '")"' in err.message

    def test_unclosed_bracket(self):
        err = _parse_error("a[0")
        assert '"]"' in err.message

    def test_expecting_lists_operand_starts(self):
        err = _parse_error("a ==")
        assert err.message.startswith("unexpected end of input while parsing expression. expecting ")
        for alt in ('"IDENT"', '"STRING"', '"INTEGER"', '"FLOAT"', '"("', '"!"'):
            assert alt in err.message

    def test_error_position_on_second_line(self):
        err = _parse_error("a &&\n  )")
        assert (err.offset, err.line, err.column) == (7, 2, 3)

    def test_lexical_error_is_returned(self):
        err = _parse_error('"a"')
        assert err.kind == ErrorKind.LEXICAL


# ---------------------------------------------------------------------------
# Entry points and traversal
# ---------------------------------------------------------------------------

class TestEntryPoints:
    def test_parse_from_tokenizer(self):
        node, errs = ExprParser().parse(Tokenizer("github.sha }} rest"))
        assert errs == []
        assert node.property == "sha"

    def test_parse_tokens_requires_end(self):
        tokens = tokenize("a")[:-1]
        with pytest.raises(ValueError):
            ExprParser().parse_tokens(tokens)

    def test_parser_is_reusable(self):
        parser = ExprParser()
        assert parser.parse("a.b")[0].property == "b"
        assert parser.parse("c")[0].name == "c"

    def test_walk_visits_index_before_receiver(self):
        node = _parse("a[b]")
        order = []
        walk(node, lambda n, parent, entering: order.append(n) if not entering else None)
        assert [type(n).__name__ for n in order] == ["VariableNode", "VariableNode", "IndexAccessNode"]
        assert order[0].name == "b"

    def test_walk_passes_parent(self):
        node = _parse("!a")
        parents = {}

        def record(n, parent, entering):
            if entering:
                parents[type(n).__name__] = parent

        walk(node, record)
        assert parents["NotOpNode"] is None
        assert parents["VariableNode"] is node
