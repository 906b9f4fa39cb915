"""
Defines the abstract syntax tree (AST) for the Ember programming language.

The AST is a closed set of immutable variants. Lowering dispatches on them with
a single `match`, so adding a variant means extending that match.

Classes:
    ASTNode:
        Base class; carries the source position (excluded from equality) and
        `to_dict()` serialization.
    NumberExpr, VariableExpr, BinaryExpr, CallExpr, IfExpr:
        Expression forms.
    Prototype:
        A function's name plus its ordered, unique parameter names.
    Function:
        A prototype with a body expression; the unit of compilation.
    ASTDict:
        TypedDict shape produced by `ASTNode.to_dict()`, for JSON output or debugging.

Children are exclusively owned by their parent and every child is fully
constructed before its parent exists.

Example:
    node = BinaryExpr("+", NumberExpr(3.0), VariableExpr("x"), line=1, col=3)
"""

from dataclasses import dataclass, field, fields
from typing import Any, TypedDict, Union


class ASTDict(TypedDict, total=False):
    """
    Serialized form of an ASTNode.

    Fields:
        kind (str): The variant name (e.g. "number", "binary", "function").
        line (int): Line number where the node originates.
        col (int): Column number where the node originates.
        Remaining keys are the variant's own fields, with child nodes nested.
    """

    kind: str
    line: int
    col: int


@dataclass(frozen=True)
class ASTNode:
    """
    Base class for Ember AST nodes.

    Attributes:
        line (int): Source line number (keyword-only, ignored by `==`).
        col (int): Source column number (keyword-only, ignored by `==`).
    """

    kind = "node"

    line: int = field(default=0, kw_only=True, compare=False, repr=False)
    col: int = field(default=0, kw_only=True, compare=False, repr=False)

    def to_dict(self) -> ASTDict:
        out: dict[str, Any] = {"kind": self.kind, "line": self.line, "col": self.col}
        for f in fields(self):
            if f.name in ("line", "col"):
                continue
            out[f.name] = _serialize(getattr(self, f.name))
        return out  # type: ignore[return-value]


def _serialize(val: Any) -> Any:
    if isinstance(val, ASTNode):
        return val.to_dict()
    if isinstance(val, tuple):
        return [_serialize(v) for v in val]
    return val


@dataclass(frozen=True)
class NumberExpr(ASTNode):
    kind = "number"

    value: float


@dataclass(frozen=True)
class VariableExpr(ASTNode):
    kind = "variable"

    name: str


@dataclass(frozen=True)
class BinaryExpr(ASTNode):
    kind = "binary"

    op: str
    lhs: "Expr"
    rhs: "Expr"


@dataclass(frozen=True)
class CallExpr(ASTNode):
    kind = "call"

    callee: str
    args: tuple["Expr", ...] = ()


@dataclass(frozen=True)
class IfExpr(ASTNode):
    kind = "if"

    cond: "Expr"
    then: "Expr"
    orelse: "Expr"


@dataclass(frozen=True)
class Prototype(ASTNode):
    """A function signature: name and ordered parameter names."""

    kind = "prototype"

    name: str
    params: tuple[str, ...] = ()

    @property
    def arity(self) -> int:
        return len(self.params)


@dataclass(frozen=True)
class Function(ASTNode):
    """A prototype plus its body expression."""

    kind = "function"

    proto: Prototype
    body: "Expr"


Expr = Union[NumberExpr, VariableExpr, BinaryExpr, CallExpr, IfExpr]
"""Any node that lowers to a single value."""

__all__ = [
    "ASTDict",
    "ASTNode",
    "BinaryExpr",
    "CallExpr",
    "Expr",
    "Function",
    "IfExpr",
    "NumberExpr",
    "Prototype",
    "VariableExpr",
]
