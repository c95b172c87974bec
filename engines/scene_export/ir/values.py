"""Closed set of custom component field values.

Producers translate their reflected script fields into one of these variants.
Anything that has no mapping arrives as :class:`DroppedValue` carrying the
reason, and is reported instead of emitted.
"""
from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from engines.scene_export.core.literals import normalize_float, normalize_vector


class BoolValue(BaseModel):
    type: Literal["bool"] = "bool"
    value: bool = False

    @property
    def cpp_type(self) -> str:
        return "bool"

    def to_json(self) -> Any:
        return self.value


class IntValue(BaseModel):
    type: Literal["int"] = "int"
    value: int = 0

    @property
    def cpp_type(self) -> str:
        return "int"

    def to_json(self) -> Any:
        return self.value


class EnumValue(BaseModel):
    """Enum fields are carried by index."""

    type: Literal["enum"] = "enum"
    value: int = 0
    label: Optional[str] = None

    @property
    def cpp_type(self) -> str:
        return "int"

    def to_json(self) -> Any:
        return self.value


class FloatValue(BaseModel):
    type: Literal["float"] = "float"
    value: float = 0.0

    @property
    def cpp_type(self) -> str:
        return "float"

    def to_json(self) -> Any:
        return normalize_float(self.value)


class StringValue(BaseModel):
    type: Literal["string"] = "string"
    value: str = ""

    @property
    def cpp_type(self) -> str:
        return "std::string"

    def to_json(self) -> Any:
        return self.value


class ResourceRefValue(BaseModel):
    """Reference to another asset, carried as its source asset path."""

    type: Literal["resource_ref"] = "resource_ref"
    value: str = ""

    @property
    def cpp_type(self) -> str:
        return "std::string"

    def to_json(self) -> Any:
        return self.value


class Vector2Value(BaseModel):
    type: Literal["vector2"] = "vector2"
    value: List[float] = Field(default_factory=lambda: [0.0, 0.0])

    @property
    def cpp_type(self) -> str:
        return "glm::vec2"

    def to_json(self) -> Any:
        return normalize_vector(self.value, (0.0, 0.0))


class Vector3Value(BaseModel):
    type: Literal["vector3"] = "vector3"
    value: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])

    @property
    def cpp_type(self) -> str:
        return "glm::vec3"

    def to_json(self) -> Any:
        return normalize_vector(self.value, (0.0, 0.0, 0.0))


class Vector4Value(BaseModel):
    type: Literal["vector4"] = "vector4"
    value: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0, 0.0])

    @property
    def cpp_type(self) -> str:
        return "glm::vec4"

    def to_json(self) -> Any:
        return normalize_vector(self.value, (0.0, 0.0, 0.0, 0.0))


class ColorValue(BaseModel):
    type: Literal["color"] = "color"
    value: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0, 1.0])

    @property
    def cpp_type(self) -> str:
        return "glm::vec4"

    def to_json(self) -> Any:
        return normalize_vector(self.value, (0.0, 0.0, 0.0, 1.0))


class DroppedValue(BaseModel):
    type: Literal["dropped"] = "dropped"
    reason: str = "unsupported"

    @property
    def cpp_type(self) -> Optional[str]:
        return None

    def to_json(self) -> Any:
        return None


class ArrayValue(BaseModel):
    type: Literal["array"] = "array"
    items: List["FieldValue"] = Field(default_factory=list)

    @property
    def element_cpp_type(self) -> str:
        return self.items[0].cpp_type if self.items else "int"

    @property
    def cpp_type(self) -> str:
        return f"std::vector<{self.element_cpp_type}>"

    def to_json(self) -> Any:
        return [item.to_json() for item in self.items]


FieldValue = Annotated[
    Union[
        BoolValue,
        IntValue,
        EnumValue,
        FloatValue,
        StringValue,
        ResourceRefValue,
        Vector2Value,
        Vector3Value,
        Vector4Value,
        ColorValue,
        ArrayValue,
        DroppedValue,
    ],
    Field(discriminator="type"),
]

ArrayValue.model_rebuild()


def resolve_value(value: FieldValue) -> Tuple[Optional[FieldValue], Optional[str]]:
    """Return ``(value, None)`` when emittable, else ``(None, reason)``.

    Arrays are all-or-nothing: a single unconvertible element, or elements
    disagreeing on their C++ type, drops the whole array.
    """
    if isinstance(value, DroppedValue):
        return None, value.reason
    if isinstance(value, ArrayValue):
        element_type = None
        for item in value.items:
            resolved, reason = resolve_value(item)
            if resolved is None:
                return None, f"array element {reason}"
            if element_type is None:
                element_type = resolved.cpp_type
            elif resolved.cpp_type != element_type:
                return None, f"mixed array element types {element_type}/{resolved.cpp_type}"
    return value, None
