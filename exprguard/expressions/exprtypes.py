"""
Value types known to the semantic checker.

This is deliberately loose: values are coerced freely at runtime, so the
checker only needs enough structure to reject obviously wrong calls and
property accesses.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


class ExprType(ABC):
    @abstractmethod
    def assignable(self, other: "ExprType") -> bool:
        """True when a value of type `other` can be used where this type is expected."""

    @abstractmethod
    def __str__(self) -> str: ...


class AnyType(ExprType):
    def assignable(self, other: ExprType) -> bool:
        return True

    def __str__(self) -> str:
        return "any"

    def __eq__(self, other) -> bool:
        return isinstance(other, AnyType)

    def __hash__(self) -> int:
        return hash("any")


class NullType(ExprType):
    def assignable(self, other: ExprType) -> bool:
        return isinstance(other, (NullType, AnyType))

    def __str__(self) -> str:
        return "null"

    def __eq__(self, other) -> bool:
        return isinstance(other, NullType)

    def __hash__(self) -> int:
        return hash("null")


class NumberType(ExprType):
    def assignable(self, other: ExprType) -> bool:
        return isinstance(other, (NumberType, AnyType))

    def __str__(self) -> str:
        return "number"

    def __eq__(self, other) -> bool:
        return isinstance(other, NumberType)

    def __hash__(self) -> int:
        return hash("number")


class BoolType(ExprType):
    # every value has a truthiness, so anything converts to bool
    def assignable(self, other: ExprType) -> bool:
        return True

    def __str__(self) -> str:
        return "bool"

    def __eq__(self, other) -> bool:
        return isinstance(other, BoolType)

    def __hash__(self) -> int:
        return hash("bool")


class StringType(ExprType):
    def assignable(self, other: ExprType) -> bool:
        return isinstance(other, (StringType, NumberType, BoolType, AnyType))

    def __str__(self) -> str:
        return "string"

    def __eq__(self, other) -> bool:
        return isinstance(other, StringType)

    def __hash__(self) -> int:
        return hash("string")


@dataclass(eq=False)
class ObjectType(ExprType):
    """
    An object with known properties.

    A strict object rejects properties it does not list. A loose object
    accepts any property and gives it the `mapped` type.
    """
    props: dict[str, ExprType] = field(default_factory=dict)
    mapped: Optional[ExprType] = None
    strict: bool = False

    def prop(self, name: str) -> Optional[ExprType]:
        key = name.lower()
        if key in self.props:
            return self.props[key]
        if self.strict:
            return None
        return self.mapped if self.mapped is not None else AnyType()

    def assignable(self, other: ExprType) -> bool:
        return isinstance(other, (ObjectType, AnyType))

    def __str__(self) -> str:
        if self.strict and self.props:
            inner = "; ".join(f"{k}: {v}" for k, v in sorted(self.props.items()))
            return "{" + inner + "}"
        if self.mapped is not None:
            return "{string => " + str(self.mapped) + "}"
        return "object"


@dataclass(eq=False)
class ArrayType(ExprType):
    elem: ExprType = field(default_factory=AnyType)
    deref: bool = False   # produced by an object filter `.*`

    def assignable(self, other: ExprType) -> bool:
        if isinstance(other, AnyType):
            return True
        return isinstance(other, ArrayType) and self.elem.assignable(other.elem)

    def __str__(self) -> str:
        return f"array<{self.elem}>"


def merge_types(a: ExprType, b: ExprType) -> ExprType:
    """Type of `a || b` and `a && b`: the common type, or any."""
    if type(a) is type(b) and not isinstance(a, (ObjectType, ArrayType)):
        return a
    return AnyType()


def loose_object(mapped: Optional[ExprType] = None) -> ObjectType:
    return ObjectType(mapped=mapped)


def strict_object(props: dict[str, ExprType]) -> ObjectType:
    return ObjectType(props={k.lower(): v for k, v in props.items()}, strict=True)
