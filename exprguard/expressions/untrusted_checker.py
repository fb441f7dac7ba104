"""
Taint checker for ${{ }} expressions.

UntiChecker walks an expression tree bottom-up and keeps a candidate set: the
trie nodes of the search roots that are still reachable through the property
accesses seen so far. Property misses prune candidates, object filters (`.*`)
fan one candidate out into all of its children. When a property chain ends,
the candidates left over name the untrusted paths the chain resolves to.

Leaf candidates are always reported. Intermediate candidates (whole objects
that contain untrusted properties) are only reported when the chain is an
argument of a function call, e.g. toJSON(github.event.pull_request).
"""

import logging
from typing import Optional

from exprguard.expressions.ast import (
    ArrayDerefNode,
    ExprNode,
    FuncCallNode,
    IndexAccessNode,
    ObjectDerefNode,
    StringNode,
    VariableNode,
)
from exprguard.expressions.errors import ErrorKind, ExprError, errorf_at_expr, quote, sorted_quotes
from exprguard.expressions.untrusted_map import ContextPropertyMap, ContextPropertySearchRoots

logger = logging.getLogger(__name__)

HARDENING_URL = "https://docs.github.com/en/actions/security-guides/security-hardening-for-github-actions"

_MSG_LEAF = (
    "%s is potentially untrusted. Avoid using it directly in inline scripts. "
    "Instead, pass it through an environment variable. See " + HARDENING_URL + " for more details."
)
_MSG_LEAVES = (
    "Object filter extracts potentially untrusted properties %s. Avoid using the value directly "
    "in inline scripts. Instead, pass the value through an environment variable. See "
    + HARDENING_URL + " for more details."
)
_MSG_OBJECT = (
    "%s contains potentially untrusted properties. Avoid passing entire objects to functions "
    "in inline scripts. Instead, access specific safe properties or pass values through "
    "environment variables. See " + HARDENING_URL + " for more details."
)
_MSG_OBJECTS = (
    "Objects %s contain potentially untrusted properties. Avoid passing entire objects to "
    "functions in inline scripts. Instead, access specific safe properties or pass values "
    "through environment variables. See " + HARDENING_URL + " for more details."
)


class UntiChecker:
    """
    Finds untrusted inputs in an expression tree.

    Usage:
        checker = UntiChecker(roots)
        checker.init()
        visit_expr_node(tree, checker)
        checker.on_visit_end()
        errors = checker.errs()

    One instance holds per-walk state only; reuse it by calling init() again,
    but do not share it between threads. The roots are never modified.
    """

    def __init__(self, roots: ContextPropertySearchRoots):
        self.roots = {name.lower(): root for name, root in roots.items()}
        self.filtering_object = False
        self.cur: list[Optional[ContextPropertyMap]] = []
        self.start: Optional[ExprNode] = None
        self._errs: list[ExprError] = []
        # nesting of function calls around the current node; survives reset()
        self.func_arg_depth = 0

    def init(self) -> None:
        """Clear all state before walking a new tree."""
        self._errs = []
        self.func_arg_depth = 0
        self.reset()

    def reset(self) -> None:
        self.start = None
        self.filtering_object = False
        self.cur = []

    def compact(self) -> None:
        self.cur = [c for c in self.cur if c is not None]

    def errs(self) -> list[ExprError]:
        return self._errs

    # -- candidate set transitions ---------------------------------------------

    def on_var(self, node: VariableNode) -> None:
        root = self.roots.get(node.name.lower())
        if root is None:
            return
        self.start = node
        self.cur.append(root)

    def on_prop_access(self, name: str) -> None:
        pruned = False
        for i, cur in enumerate(self.cur):
            child = cur.find_object_prop(name)
            if child is None:
                self.cur[i] = None
                pruned = True
                continue
            self.cur[i] = child
        if pruned:
            self.compact()

    def on_index_access(self) -> None:
        if self.filtering_object:
            # github.event.*.body[0] matches like github.event.commits[0].body
            self.filtering_object = False
            return

        pruned = False
        for i, cur in enumerate(self.cur):
            child = cur.find_array_elem()
            if child is None:
                self.cur[i] = None
                pruned = True
                continue
            self.cur[i] = child
        if pruned:
            self.compact()

    def on_object_filter(self) -> None:
        self.filtering_object = True

        pruned = False
        # candidates appended by the fan-out below are not revisited
        for i in range(len(self.cur)):
            cur = self.cur[i]
            elem = cur.find_array_elem()
            if elem is not None:
                self.cur[i] = elem
                continue

            if cur.is_leaf:
                self.cur[i] = None
                pruned = True
                continue

            first = True
            for key in sorted(cur.children):
                if first:
                    self.cur[i] = cur.children[key]
                    first = False
                else:
                    self.cur.append(cur.children[key])
        if pruned:
            self.compact()

    # -- flushing ----------------------------------------------------------------

    def end(self) -> None:
        self._end_with_intermediate_check(False)

    def end_in_func_arg(self) -> None:
        self._end_with_intermediate_check(True)

    def _flush(self) -> None:
        if self.func_arg_depth > 0:
            self.end_in_func_arg()
        else:
            self.end()

    def _end_with_intermediate_check(self, check_intermediate: bool) -> None:
        inputs = []
        intermediate_inputs = []
        for cur in self.cur:
            if not cur.is_leaf:
                if check_intermediate:
                    intermediate_inputs.append(cur.path)
                continue
            inputs.append(cur.path)

        if len(inputs) == 1:
            self._errs.append(errorf_at_expr(
                self.start, ErrorKind.UNTRUSTED_INPUT, _MSG_LEAF, quote(inputs[0]),
                paths=tuple(inputs),
            ))
        elif len(inputs) > 1:
            # an object filter picked several untrusted properties at once
            self._errs.append(errorf_at_expr(
                self.start, ErrorKind.UNTRUSTED_INPUT, _MSG_LEAVES, sorted_quotes(inputs),
                paths=tuple(sorted(inputs)),
            ))

        # whole objects are only reported when no leaf was reached in this flush
        if intermediate_inputs and not inputs:
            if len(intermediate_inputs) == 1:
                self._errs.append(errorf_at_expr(
                    self.start, ErrorKind.UNTRUSTED_OBJECT, _MSG_OBJECT, quote(intermediate_inputs[0]),
                    paths=tuple(intermediate_inputs),
                ))
            else:
                self._errs.append(errorf_at_expr(
                    self.start, ErrorKind.UNTRUSTED_OBJECT, _MSG_OBJECTS, sorted_quotes(intermediate_inputs),
                    paths=tuple(sorted(intermediate_inputs)),
                ))

        reported = inputs or intermediate_inputs
        if reported:
            logger.debug("Untrusted access: %s", ", ".join(reported))

        self.reset()

    # -- visitor callbacks ---------------------------------------------------------

    def on_visit_node_enter(self, node: ExprNode) -> None:
        if isinstance(node, FuncCallNode):
            self.func_arg_depth += 1

    def on_visit_node_leave(self, node: ExprNode) -> None:
        if isinstance(node, VariableNode):
            self._flush()
            self.on_var(node)
        elif isinstance(node, ObjectDerefNode):
            self.on_prop_access(node.property)
        elif isinstance(node, IndexAccessNode):
            if isinstance(node.index, StringNode):
                # github['event']['issue']['title']
                self.on_prop_access(node.index.value)
            else:
                self.on_index_access()
        elif isinstance(node, ArrayDerefNode):
            self.on_object_filter()
        elif isinstance(node, FuncCallNode):
            self.end_in_func_arg()
            self.func_arg_depth -= 1
        else:
            self._flush()

    def on_visit_end(self) -> None:
        """Flush a property chain that ends at the root of the tree."""
        self.end()
