"""Tests for the semantic checker and the built-in signature table."""

import pytest

from exprguard.expressions import (
    BUILTIN_FUNC_SIGNATURES,
    ErrorKind,
    ExprSemanticsChecker,
    parse_expression,
)
from exprguard.expressions.exprtypes import AnyType, BoolType, ExprType, NumberType, StringType


def _check(source, **kwargs):
    node, errs = parse_expression(source)
    assert errs == []
    return ExprSemanticsChecker(**kwargs).check(node)


def _errors(source, **kwargs):
    return _check(source, **kwargs)[1]


# ---------------------------------------------------------------------------
# case()
# ---------------------------------------------------------------------------

class TestCaseFunction:
    @pytest.mark.parametrize("source", [
        "case()",
        "case(true)",
        "case(true, 'value')",
    ])
    def test_too_few_arguments(self, source):
        errs = _errors(source)
        assert len(errs) == 1
        assert "number of arguments is wrong" in errs[0].message
        assert "at least 3 parameters" in errs[0].message

    @pytest.mark.parametrize("source", [
        "case(true, 'a', 'b')",
        "case(github.event_name == 'push', 'a', github.event_name == 'pull_request', 'b', 'c')",
        "case(matrix.os, 'a', 'b')",
    ])
    def test_valid_calls(self, source):
        assert _errors(source) == []

    @pytest.mark.parametrize("source", [
        "case(true, 'a', false, 'b')",
        "case(true, 'a', false, 'b', true, 'c')",
    ])
    def test_even_argument_count(self, source):
        errs = _errors(source)
        assert len(errs) == 1
        assert "must be odd" in errs[0].message

    def test_non_bool_predicate(self):
        errs = _errors("case('x', 'a', 'b')")
        assert len(errs) == 1
        assert '1st argument of function "case" must be a bool predicate' in errs[0].message
        assert errs[0].offset == 5

    def test_third_predicate_checked(self):
        errs = _errors("case(true, 'a', 1, 'b', 'c')")
        assert len(errs) == 1
        assert "3rd argument" in errs[0].message

    def test_signature(self):
        sigs = BUILTIN_FUNC_SIGNATURES["case"]
        assert len(sigs) == 1
        sig = sigs[0]
        assert sig.variable_length_params is True
        assert sig.min_args == 3
        assert isinstance(sig.params[0], BoolType)
        assert isinstance(sig.ret, AnyType)

    def test_return_type_is_any(self):
        ty, _ = _check("case(true, 'a', 'b')")
        assert isinstance(ty, AnyType)


# ---------------------------------------------------------------------------
# Other function calls
# ---------------------------------------------------------------------------

class TestFunctionCalls:
    def test_undefined_function(self):
        errs = _errors("foo(github.sha)")
        assert len(errs) == 1
        assert 'undefined function "foo"' in errs[0].message
        assert '"toJSON"' in errs[0].message

    def test_function_names_are_case_insensitive(self):
        assert _errors("TOJSON(github.event)") == []

    def test_fixed_arity(self):
        errs = _errors("contains('a')")
        assert len(errs) == 1
        assert "takes 2 parameters but 1 arguments are given" in errs[0].message

    def test_argument_type(self):
        errs = _errors("startsWith(github, 'x')")
        assert len(errs) == 1
        assert "1st argument of function call is not assignable" in errs[0].message

    def test_overloads(self):
        assert _errors("join(github.event.commits.*.message)") == []
        assert _errors("join(github.event.commits.*.message, ', ')") == []

    def test_no_overload_matches(self):
        errs = _errors("join('a', 'b', 'c')")
        assert len(errs) == 1
        assert "number of arguments is wrong" in errs[0].message

    def test_format_placeholders(self):
        assert _errors("format('{0} and {1}', 'a', 'b')") == []
        errs = _errors("format('{0} and {1}', 'a')")
        assert len(errs) == 1
        assert "placeholder {1}" in errs[0].message

    def test_format_escaped_braces_ignored(self):
        assert _errors("format('{{0}} {0}', 'a')") == []

    def test_status_functions(self):
        assert _errors("success() && !cancelled()") == []
        errs = _errors("always('x')")
        assert "takes 0 parameters" in errs[0].message

    def test_return_types(self):
        assert isinstance(_check("format('{0}', 'a')")[0], StringType)
        assert isinstance(_check("contains('abc', 'b')")[0], BoolType)


# ---------------------------------------------------------------------------
# Contexts and property access
# ---------------------------------------------------------------------------

class TestContexts:
    def test_event_properties_are_loose(self):
        assert _errors("github.event.issue.title") == []

    def test_undefined_variable(self):
        errs = _errors("unknown.x")
        assert len(errs) == 1
        assert 'undefined variable "unknown"' in errs[0].message

    def test_strict_github_context(self):
        errs = _errors("github.foo")
        assert len(errs) == 1
        assert 'property "foo" is not defined' in errs[0].message

    def test_strict_runner_context(self):
        assert _errors("runner.os") == []
        assert len(_errors("runner.nope")) == 1

    def test_step_outputs(self):
        assert _errors("steps.build.outputs.version") == []
        errs = _errors("steps.build.nope")
        assert 'property "nope" is not defined' in errs[0].message

    def test_index_access_by_string_checks_property(self):
        assert _errors("github['sha']") == []
        assert len(_errors("github['nope']")) == 1

    def test_deref_of_scalar(self):
        errs = _errors("github.event_name.foo")
        assert "must be type of object but got string" in errs[0].message

    def test_filter_of_scalar(self):
        errs = _errors("github.event_name.*")
        assert "receiver of object filter" in errs[0].message

    def test_index_of_scalar(self):
        errs = _errors("github.event_name[0]")
        assert "index access operand" in errs[0].message

    def test_filter_on_strict_element(self):
        assert _errors("needs.*.result") == []
        errs = _errors("needs.*.nope")
        assert 'property "nope" is not defined' in errs[0].message

    def test_config_vars(self):
        assert _errors("vars.deploy_env", config_vars=["DEPLOY_ENV"]) == []
        errs = _errors("vars.other", config_vars=["DEPLOY_ENV"])
        assert len(errs) == 1
        assert 'undefined configuration variable "other"' in errs[0].message

    def test_config_vars_unchecked_by_default(self):
        assert _errors("vars.anything") == []


# ---------------------------------------------------------------------------
# Untrusted input integration
# ---------------------------------------------------------------------------

class TestUntrustedIntegration:
    def test_untrusted_check_off_by_default(self):
        assert _errors("github.event.issue.title") == []

    def test_untrusted_check_on(self):
        errs = _errors("github.event.issue.title", check_untrusted_input=True)
        assert len(errs) == 1
        assert errs[0].kind == ErrorKind.UNTRUSTED_INPUT

    def test_semantic_errors_come_first(self):
        errs = _errors("foo(github.event.issue.title)", check_untrusted_input=True)
        assert [e.kind for e in errs] == [ErrorKind.SEMANTIC, ErrorKind.UNTRUSTED_INPUT]

    def test_checker_is_reusable(self):
        node, _ = parse_expression("github.event.issue.title")
        checker = ExprSemanticsChecker(check_untrusted_input=True)
        first = checker.check(node)[1]
        second = checker.check(node)[1]
        assert first == second
        assert len(second) == 1


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

class TestExprTypes:
    def test_base_type_is_abstract(self):
        with pytest.raises(TypeError):
            ExprType()

    def test_subclass_must_implement_assignable(self):
        class Incomplete(ExprType):
            def __str__(self):
                return "incomplete"

        with pytest.raises(TypeError):
            Incomplete()

    def test_concrete_types_assignable(self):
        assert AnyType().assignable(StringType())
        assert BoolType().assignable(StringType())
        assert not NumberType().assignable(StringType())
