"""Structured C++ statement buffer.

Backends build lists of statements and expressions; :class:`CppRenderer`
turns them into text. Keeping the structure around lets the generated code be
inspected (and evaluated) without parsing C++.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from engines.scene_export.core.literals import cpp_bool, cpp_float, cpp_string
from engines.scene_export.ir.values import (
    ArrayValue,
    BoolValue,
    ColorValue,
    EnumValue,
    FieldValue,
    FloatValue,
    IntValue,
    ResourceRefValue,
    StringValue,
    Vector2Value,
    Vector3Value,
    Vector4Value,
)

INVALID_ID = "ResourceManager::INVALID_ID"
INDENT = "    "


# -- expressions -------------------------------------------------------


@dataclass(frozen=True)
class FloatLit:
    value: float


@dataclass(frozen=True)
class IntLit:
    value: int


@dataclass(frozen=True)
class BoolLit:
    value: bool


@dataclass(frozen=True)
class StrLit:
    value: str


@dataclass(frozen=True)
class VecLit:
    values: tuple


@dataclass(frozen=True)
class QuatLit:
    """Quaternion stored as (w, x, y, z)."""

    values: tuple


@dataclass(frozen=True)
class ArrayLit:
    items: tuple


@dataclass(frozen=True)
class Ident:
    name: str


@dataclass(frozen=True)
class CallExpr:
    func: str
    args: tuple = ()


@dataclass(frozen=True)
class InvalidRef:
    pass


Expr = Union[FloatLit, IntLit, BoolLit, StrLit, VecLit, QuatLit, ArrayLit, Ident, CallExpr, InvalidRef]


# -- statements --------------------------------------------------------


@dataclass
class Comment:
    text: str


@dataclass
class Blank:
    pass


@dataclass
class Raw:
    text: str


@dataclass
class Declare:
    type: str
    name: str
    init: Optional[Expr] = None
    const: bool = False


@dataclass
class Assign:
    target: str
    value: Expr
    op: str = "="


@dataclass
class Call:
    expr: CallExpr


@dataclass
class Block:
    body: List["Statement"] = field(default_factory=list)
    header: Optional[str] = None


Statement = Union[Comment, Blank, Raw, Declare, Assign, Call, Block]


def vec(values: Sequence[float]) -> VecLit:
    return VecLit(tuple(float(v) for v in values))


def value_expr(value: FieldValue) -> Expr:
    """Literal expression for a custom component field value."""
    if isinstance(value, BoolValue):
        return BoolLit(value.value)
    if isinstance(value, (IntValue, EnumValue)):
        return IntLit(value.value)
    if isinstance(value, FloatValue):
        return FloatLit(value.value)
    if isinstance(value, (StringValue, ResourceRefValue)):
        return StrLit(value.value)
    if isinstance(value, (Vector2Value, Vector3Value, Vector4Value, ColorValue)):
        return vec(value.to_json())
    if isinstance(value, ArrayValue):
        return ArrayLit(tuple(value_expr(item) for item in value.items))
    raise ValueError(f"no literal for field value type {value.type}")


class CppRenderer:
    def render_expr(self, expr: Expr) -> str:
        if isinstance(expr, BoolLit):
            return cpp_bool(expr.value)
        if isinstance(expr, IntLit):
            return str(int(expr.value))
        if isinstance(expr, FloatLit):
            return cpp_float(expr.value)
        if isinstance(expr, StrLit):
            return cpp_string(expr.value)
        if isinstance(expr, VecLit):
            return f"glm::vec{len(expr.values)}(" + ", ".join(cpp_float(v) for v in expr.values) + ")"
        if isinstance(expr, QuatLit):
            return "glm::quat(" + ", ".join(cpp_float(v) for v in expr.values) + ")"
        if isinstance(expr, ArrayLit):
            return "{" + ", ".join(self.render_expr(item) for item in expr.items) + "}"
        if isinstance(expr, Ident):
            return expr.name
        if isinstance(expr, CallExpr):
            return f"{expr.func}(" + ", ".join(self.render_expr(a) for a in expr.args) + ")"
        if isinstance(expr, InvalidRef):
            return INVALID_ID
        raise TypeError(f"unknown expression {expr!r}")

    def render(self, statements: Sequence[Statement], depth: int = 1) -> List[str]:
        lines: List[str] = []
        pad = INDENT * depth
        for stmt in statements:
            if isinstance(stmt, Blank):
                lines.append("")
            elif isinstance(stmt, Comment):
                lines.append(f"{pad}// {stmt.text}")
            elif isinstance(stmt, Raw):
                lines.append(f"{pad}{stmt.text}")
            elif isinstance(stmt, Declare):
                prefix = "const " if stmt.const else ""
                if stmt.init is None:
                    lines.append(f"{pad}{prefix}{stmt.type} {stmt.name}{{}};")
                else:
                    lines.append(f"{pad}{prefix}{stmt.type} {stmt.name} = {self.render_expr(stmt.init)};")
            elif isinstance(stmt, Assign):
                lines.append(f"{pad}{stmt.target} {stmt.op} {self.render_expr(stmt.value)};")
            elif isinstance(stmt, Call):
                lines.append(f"{pad}{self.render_expr(stmt.expr)};")
            elif isinstance(stmt, Block):
                if stmt.header:
                    lines.append(f"{pad}{stmt.header}")
                lines.append(f"{pad}{{")
                lines.extend(self.render(stmt.body, depth + 1))
                lines.append(f"{pad}}}")
            else:
                raise TypeError(f"unknown statement {stmt!r}")
        return lines
