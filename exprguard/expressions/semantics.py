"""
Semantic checks for parsed expressions.

ExprSemanticsChecker infers a loose type for every node and reports calls to
unknown functions, calls with the wrong number or type of arguments, unknown
context roots, properties missing from strict context objects and
dereferences of scalar values. Optionally it also runs UntiChecker so a
single call yields both kinds of diagnostics.
"""

import logging
import re
from typing import Iterable, Optional

from exprguard.expressions.ast import (
    ArrayDerefNode,
    BoolNode,
    CompareOpNode,
    ExprNode,
    FuncCallNode,
    IndexAccessNode,
    LogicalOpNode,
    NotOpNode,
    NullNode,
    NumberNode,
    ObjectDerefNode,
    StringNode,
    VariableNode,
    visit_expr_node,
)
from exprguard.expressions.builtins import BUILTIN_FUNC_SIGNATURES, FuncSignature, builtin_contexts
from exprguard.expressions.errors import ErrorKind, ExprError, errorf_at_expr, quote, sorted_quotes
from exprguard.expressions.exprtypes import (
    AnyType,
    ArrayType,
    BoolType,
    ExprType,
    NullType,
    NumberType,
    ObjectType,
    StringType,
    merge_types,
)
from exprguard.expressions.untrusted_checker import UntiChecker
from exprguard.expressions.untrusted_map import BUILTIN_UNTRUSTED_INPUTS, ContextPropertySearchRoots

logger = logging.getLogger(__name__)

_FORMAT_PLACEHOLDER = re.compile(r"(?<!\{)\{(\d+)\}")


def _ordinal(i: int) -> str:
    if 10 <= i % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(i % 10, "th")
    return f"{i}{suffix}"


class ExprSemanticsChecker:
    """
    Type and arity checker for expression trees.

    Args:
        check_untrusted_input: Also report untrusted inputs via UntiChecker.
        untrusted_roots: Search roots for the taint check. Defaults to
                         BUILTIN_UNTRUSTED_INPUTS.
        config_vars: Names of defined configuration variables. When given,
                     `vars.<name>` must be one of them.
    """

    def __init__(
        self,
        check_untrusted_input: bool = False,
        untrusted_roots: Optional[ContextPropertySearchRoots] = None,
        config_vars: Optional[Iterable[str]] = None,
    ):
        self.contexts = builtin_contexts()
        self.untrusted: Optional[UntiChecker] = None
        if check_untrusted_input:
            roots = untrusted_roots if untrusted_roots is not None else BUILTIN_UNTRUSTED_INPUTS
            self.untrusted = UntiChecker(roots)
        self.config_vars = {v.lower() for v in config_vars} if config_vars is not None else None
        self._errs: list[ExprError] = []

    def _error(self, node: ExprNode, fmt: str, *args) -> None:
        self._errs.append(errorf_at_expr(node, ErrorKind.SEMANTIC, fmt, *args))

    def check(self, node: ExprNode) -> tuple[ExprType, list[ExprError]]:
        """
        Check a tree.

        Returns:
            The inferred type of the whole expression and all diagnostics,
            semantic ones first, then untrusted-input ones.
        """
        self._errs = []
        ty = self._check(node)
        if self.untrusted is not None:
            self.untrusted.init()
            visit_expr_node(node, self.untrusted)
            self.untrusted.on_visit_end()
            self._errs.extend(self.untrusted.errs())
        logger.debug("Checked expression: type=%s, %d error(s)", ty, len(self._errs))
        return ty, list(self._errs)

    # -- per-node checks ---------------------------------------------------------

    def _check(self, node: ExprNode) -> ExprType:
        if isinstance(node, VariableNode):
            return self._check_variable(node)
        if isinstance(node, ObjectDerefNode):
            return self._check_object_deref(node)
        if isinstance(node, ArrayDerefNode):
            return self._check_array_deref(node)
        if isinstance(node, IndexAccessNode):
            return self._check_index_access(node)
        if isinstance(node, FuncCallNode):
            return self._check_func_call(node)
        if isinstance(node, NotOpNode):
            self._check(node.operand)
            return BoolType()
        if isinstance(node, CompareOpNode):
            self._check(node.left)
            self._check(node.right)
            return BoolType()
        if isinstance(node, LogicalOpNode):
            return merge_types(self._check(node.left), self._check(node.right))
        if isinstance(node, NullNode):
            return NullType()
        if isinstance(node, BoolNode):
            return BoolType()
        if isinstance(node, NumberNode):
            return NumberType()
        if isinstance(node, StringNode):
            return StringType()
        raise TypeError(f"unknown expression node: {type(node).__name__}")

    def _check_variable(self, node: VariableNode) -> ExprType:
        ty = self.contexts.get(node.name.lower())
        if ty is None:
            self._error(
                node,
                "undefined variable %s. available variables are %s",
                quote(node.name), sorted_quotes(self.contexts),
            )
            return AnyType()
        return ty

    def _check_prop(self, node: ExprNode, receiver_node: ExprNode, receiver: ExprType, name: str) -> ExprType:
        if isinstance(receiver, AnyType):
            return AnyType()

        if isinstance(receiver, ObjectType):
            if (
                self.config_vars is not None
                and isinstance(receiver_node, VariableNode)
                and receiver_node.name.lower() == "vars"
                and name.lower() not in self.config_vars
            ):
                self._error(
                    node,
                    "undefined configuration variable %s. defined variables are %s",
                    quote(name), sorted_quotes(self.config_vars) or "none",
                )
            ty = receiver.prop(name)
            if ty is None:
                self._error(
                    node,
                    "property %s is not defined in object type %s",
                    quote(name), receiver,
                )
                return AnyType()
            return ty

        if isinstance(receiver, ArrayType) and receiver.deref:
            # github.event.commits.*.message: dereference every element
            elem = receiver.elem
            if isinstance(elem, AnyType):
                return ArrayType(AnyType(), deref=True)
            if isinstance(elem, ObjectType):
                ty = elem.prop(name)
                if ty is None:
                    self._error(node, "property %s is not defined in object type %s", quote(name), elem)
                    return ArrayType(AnyType(), deref=True)
                return ArrayType(ty, deref=True)
            self._error(
                node,
                "property %s cannot be dereferenced from elements of type %s",
                quote(name), elem,
            )
            return AnyType()

        self._error(
            node,
            "receiver of object dereference %s must be type of object but got %s",
            quote(name), receiver,
        )
        return AnyType()

    def _check_object_deref(self, node: ObjectDerefNode) -> ExprType:
        receiver = self._check(node.receiver)
        return self._check_prop(node, node.receiver, receiver, node.property)

    def _check_array_deref(self, node: ArrayDerefNode) -> ExprType:
        receiver = self._check(node.receiver)
        if isinstance(receiver, AnyType):
            return ArrayType(AnyType(), deref=True)
        if isinstance(receiver, ArrayType):
            return ArrayType(receiver.elem, deref=True)
        if isinstance(receiver, ObjectType):
            return ArrayType(receiver.mapped or AnyType(), deref=True)
        self._error(
            node,
            "receiver of object filter must be type of array or object but got %s",
            receiver,
        )
        return ArrayType(AnyType(), deref=True)

    def _check_index_access(self, node: IndexAccessNode) -> ExprType:
        self._check(node.index)
        receiver = self._check(node.receiver)

        if isinstance(node.index, StringNode) and isinstance(receiver, ObjectType):
            return self._check_prop(node, node.receiver, receiver, node.index.value)

        if isinstance(receiver, AnyType):
            return AnyType()
        if isinstance(receiver, ArrayType):
            return receiver.elem
        if isinstance(receiver, ObjectType):
            return receiver.mapped or AnyType()
        self._error(
            node,
            "index access operand must be type of object or array but got %s",
            receiver,
        )
        return AnyType()

    # -- function calls ----------------------------------------------------------

    def _check_signature(self, node: FuncCallNode, sig: FuncSignature, args: list[ExprType]) -> list[ExprError]:
        errs = []
        n = len(args)
        if sig.variable_length_params:
            if n < sig.min_args:
                errs.append(errorf_at_expr(
                    node, ErrorKind.SEMANTIC,
                    "number of arguments is wrong. function %s takes at least %d parameters but %d arguments are given",
                    quote(str(sig)), sig.min_args, n,
                ))
                return errs
        elif n != len(sig.params):
            errs.append(errorf_at_expr(
                node, ErrorKind.SEMANTIC,
                "number of arguments is wrong. function %s takes %d parameters but %d arguments are given",
                quote(str(sig)), len(sig.params), n,
            ))
            return errs

        for i, arg in enumerate(args):
            param = sig.params[min(i, len(sig.params) - 1)]
            if not param.assignable(arg):
                errs.append(errorf_at_expr(
                    node.args[i], ErrorKind.SEMANTIC,
                    "%s argument of function call is not assignable. %s cannot be assigned to %s. "
                    "called function type is %s",
                    _ordinal(i + 1), quote(str(arg)), quote(str(param)), quote(str(sig)),
                ))
        return errs

    def _check_case_call(self, node: FuncCallNode, args: list[ExprType]) -> None:
        n = len(args)
        if n < 3:
            return  # reported by the arity check
        if n % 2 == 0:
            self._error(
                node,
                "number of arguments is wrong. function \"case\" takes pairs of predicate and value "
                "followed by a default value, so the number of arguments must be odd but %d arguments are given",
                n,
            )
        for i in range(0, n - 1, 2):
            if not isinstance(args[i], (BoolType, AnyType)):
                self._error(
                    node.args[i],
                    "%s argument of function \"case\" must be a bool predicate but got %s",
                    _ordinal(i + 1), quote(str(args[i])),
                )

    def _check_format_call(self, node: FuncCallNode) -> None:
        if not node.args or not isinstance(node.args[0], StringNode):
            return
        fmt = node.args[0].value
        given = len(node.args) - 1
        for placeholder in sorted({int(m) for m in _FORMAT_PLACEHOLDER.findall(fmt)}):
            if placeholder >= given:
                self._error(
                    node.args[0],
                    "format string %s contains placeholder {%d} but only %d arguments are given to format",
                    quote(fmt), placeholder, given,
                )

    def _check_func_call(self, node: FuncCallNode) -> ExprType:
        args = [self._check(a) for a in node.args]
        name = node.callee.lower()
        sigs = BUILTIN_FUNC_SIGNATURES.get(name)
        if sigs is None:
            available = [s[0].name for s in BUILTIN_FUNC_SIGNATURES.values()]
            self._error(
                node,
                "undefined function %s. available functions are %s",
                quote(node.callee), sorted_quotes(available),
            )
            return AnyType()

        if name == "case":
            self._check_case_call(node, args)
        elif name == "format":
            self._check_format_call(node)

        candidates = []
        for sig in sigs:
            errs = self._check_signature(node, sig, args)
            if not errs:
                return sig.ret
            candidates.append((sig, errs))

        # report against the overload whose arity fits, if any
        for sig, errs in candidates:
            fits = len(args) >= sig.min_args if sig.variable_length_params else len(args) == len(sig.params)
            if fits:
                self._errs.extend(errs)
                return sig.ret
        sig, errs = candidates[0]
        self._errs.extend(errs)
        return sig.ret
