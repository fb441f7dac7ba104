"""
Built-in function signatures and context-root schemas.

Both tables are static data consulted by the semantic checker. Keys are
lower-case because function names and context names are case-insensitive.
"""

from dataclasses import dataclass

from exprguard.expressions.exprtypes import (
    AnyType,
    BoolType,
    ExprType,
    NumberType,
    StringType,
    loose_object,
    strict_object,
)


@dataclass(frozen=True)
class FuncSignature:
    """
    Signature of a built-in function.

    When `variable_length_params` is set, `params` is the required prefix and
    any number of further arguments may follow it.
    """
    name: str
    ret: ExprType
    params: tuple[ExprType, ...]
    variable_length_params: bool = False

    @property
    def min_args(self) -> int:
        return len(self.params)

    def __str__(self) -> str:
        params = ", ".join(str(p) for p in self.params)
        if self.variable_length_params:
            params += ", ..."
        return f"{self.name}({params}) -> {self.ret}"


_STRING_OR_ARRAY = AnyType()  # contains() and join() accept both; checked loosely

BUILTIN_FUNC_SIGNATURES: dict[str, list[FuncSignature]] = {
    "contains": [
        FuncSignature("contains", BoolType(), (_STRING_OR_ARRAY, AnyType())),
    ],
    "startswith": [
        FuncSignature("startsWith", BoolType(), (StringType(), StringType())),
    ],
    "endswith": [
        FuncSignature("endsWith", BoolType(), (StringType(), StringType())),
    ],
    "format": [
        FuncSignature("format", StringType(), (StringType(), AnyType()), variable_length_params=True),
    ],
    "join": [
        FuncSignature("join", StringType(), (_STRING_OR_ARRAY,)),
        FuncSignature("join", StringType(), (_STRING_OR_ARRAY, StringType())),
    ],
    "tojson": [
        FuncSignature("toJSON", StringType(), (AnyType(),)),
    ],
    "fromjson": [
        FuncSignature("fromJSON", AnyType(), (StringType(),)),
    ],
    "hashfiles": [
        FuncSignature("hashFiles", StringType(), (StringType(),), variable_length_params=True),
    ],
    "success": [
        FuncSignature("success", BoolType(), ()),
    ],
    "always": [
        FuncSignature("always", BoolType(), ()),
    ],
    "cancelled": [
        FuncSignature("cancelled", BoolType(), ()),
    ],
    "failure": [
        FuncSignature("failure", BoolType(), ()),
    ],
    # case(pred1, val1, pred2, val2, ..., default)
    "case": [
        FuncSignature("case", AnyType(), (BoolType(), AnyType(), AnyType()), variable_length_params=True),
    ],
}


_GITHUB_CONTEXT = strict_object({
    "action": StringType(),
    "action_path": StringType(),
    "action_ref": StringType(),
    "action_repository": StringType(),
    "action_status": StringType(),
    "actor": StringType(),
    "actor_id": StringType(),
    "api_url": StringType(),
    "base_ref": StringType(),
    "env": StringType(),
    "event": loose_object(),
    "event_name": StringType(),
    "event_path": StringType(),
    "graphql_url": StringType(),
    "head_ref": StringType(),
    "job": StringType(),
    "job_workflow_sha": StringType(),
    "path": StringType(),
    "ref": StringType(),
    "ref_name": StringType(),
    "ref_protected": BoolType(),
    "ref_type": StringType(),
    "repository": StringType(),
    "repository_id": StringType(),
    "repository_owner": StringType(),
    "repository_owner_id": StringType(),
    "repositoryurl": StringType(),
    "retention_days": NumberType(),
    "run_attempt": StringType(),
    "run_id": StringType(),
    "run_number": StringType(),
    "secret_source": StringType(),
    "server_url": StringType(),
    "sha": StringType(),
    "token": StringType(),
    "triggering_actor": StringType(),
    "workflow": StringType(),
    "workflow_ref": StringType(),
    "workflow_sha": StringType(),
    "workspace": StringType(),
})

_RUNNER_CONTEXT = strict_object({
    "name": StringType(),
    "os": StringType(),
    "arch": StringType(),
    "temp": StringType(),
    "tool_cache": StringType(),
    "debug": StringType(),
    "environment": StringType(),
})

_STRATEGY_CONTEXT = strict_object({
    "fail-fast": BoolType(),
    "job-index": NumberType(),
    "job-total": NumberType(),
    "max-parallel": NumberType(),
})

_STEP_OBJECT = strict_object({
    "outputs": loose_object(StringType()),
    "conclusion": StringType(),
    "outcome": StringType(),
})

_NEEDS_OBJECT = strict_object({
    "outputs": loose_object(StringType()),
    "result": StringType(),
})


def builtin_contexts() -> dict[str, ExprType]:
    """Context roots available in expressions, keyed by lower-case name."""
    return {
        "github": _GITHUB_CONTEXT,
        "env": loose_object(StringType()),
        "vars": loose_object(StringType()),
        "job": loose_object(),
        "jobs": loose_object(),
        "steps": loose_object(_STEP_OBJECT),
        "runner": _RUNNER_CONTEXT,
        "secrets": loose_object(StringType()),
        "strategy": _STRATEGY_CONTEXT,
        "matrix": loose_object(),
        "needs": loose_object(_NEEDS_OBJECT),
        "inputs": loose_object(),
    }
