from .ast import (
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
    visit_expr_node,
    walk,
)
from .builtins import BUILTIN_FUNC_SIGNATURES, FuncSignature
from .errors import ErrorKind, ExprError, ExprSyntaxError
from .parser import ExprParser, parse_expression
from .semantics import ExprSemanticsChecker
from .tokenizer import Token, TokenKind, Tokenizer, tokenize
from .untrusted_checker import UntiChecker
from .untrusted_map import (
    BUILTIN_PRIVILEGED_UNTRUSTED_INPUTS,
    BUILTIN_UNTRUSTED_INPUTS,
    PRIVILEGED_TRIGGERS,
    ContextPropertyMap,
    ContextPropertySearchRoots,
    build_search_roots,
    create_untrusted_inputs_for_reusable_workflow,
    create_untrusted_inputs_with_tainted_reusable_workflow_inputs,
    create_untrusted_inputs_with_tainted_step_outputs,
    untrusted_inputs_for_triggers,
)

__all__ = [
    "ArrayDerefNode",
    "BoolNode",
    "CompareOpKind",
    "CompareOpNode",
    "ExprNode",
    "FuncCallNode",
    "IndexAccessNode",
    "LogicalOpKind",
    "LogicalOpNode",
    "NotOpNode",
    "NullNode",
    "NumberNode",
    "ObjectDerefNode",
    "StringNode",
    "VariableNode",
    "visit_expr_node",
    "walk",
    "BUILTIN_FUNC_SIGNATURES",
    "FuncSignature",
    "ErrorKind",
    "ExprError",
    "ExprSyntaxError",
    "ExprParser",
    "parse_expression",
    "ExprSemanticsChecker",
    "Token",
    "TokenKind",
    "Tokenizer",
    "tokenize",
    "UntiChecker",
    "BUILTIN_PRIVILEGED_UNTRUSTED_INPUTS",
    "BUILTIN_UNTRUSTED_INPUTS",
    "PRIVILEGED_TRIGGERS",
    "ContextPropertyMap",
    "ContextPropertySearchRoots",
    "build_search_roots",
    "create_untrusted_inputs_for_reusable_workflow",
    "create_untrusted_inputs_with_tainted_reusable_workflow_inputs",
    "create_untrusted_inputs_with_tainted_step_outputs",
    "untrusted_inputs_for_triggers",
]
