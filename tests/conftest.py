"""Shared fixtures for all tests."""

import pytest

from exprguard.expressions import (
    BUILTIN_UNTRUSTED_INPUTS,
    ContextPropertyMap,
    UntiChecker,
    parse_expression,
    visit_expr_node,
)


def check_untrusted(source, roots=None):
    """Parse an expression and return the taint checker's errors."""
    node, errs = parse_expression(source)
    assert errs == [], f"unexpected parse errors for {source!r}: {errs}"
    checker = UntiChecker(roots if roots is not None else BUILTIN_UNTRUSTED_INPUTS)
    checker.init()
    visit_expr_node(node, checker)
    checker.on_visit_end()
    return checker.errs()


@pytest.fixture
def default_roots():
    """The built-in untrusted-path table."""
    return BUILTIN_UNTRUSTED_INPUTS


@pytest.fixture
def sample_roots():
    """github.event.pull_request.{title, head.ref} only."""
    p = ContextPropertyMap
    return {
        "github": p(
            "github",
            p("event", p("pull_request", p("title"), p("head", p("ref")))),
        ),
    }


@pytest.fixture
def run_check():
    """check_untrusted() as a fixture."""
    return check_untrusted
