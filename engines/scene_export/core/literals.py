"""Numeric literal policy shared by every bundle writer.

Floats are rounded to a fixed precision once, non-finite values collapse to
zero and negative zero is never emitted. Rendering always uses fixed notation
so that the JSON documents and the generated C++ agree digit for digit.
"""
from __future__ import annotations

import math
from typing import List, Optional, Sequence

FLOAT_DECIMALS = 6


def normalize_float(value: Optional[float]) -> float:
    if value is None:
        return 0.0
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return 0.0
    value = round(value, FLOAT_DECIMALS)
    if value == 0.0:
        return 0.0
    return value


def normalize_vector(values: Optional[Sequence[float]], defaults: Sequence[float]) -> List[float]:
    """Pad or truncate ``values`` to the length of ``defaults`` and normalize each component."""
    values = list(values or [])
    out: List[float] = []
    for index, fallback in enumerate(defaults):
        out.append(normalize_float(values[index] if index < len(values) else fallback))
    return out


def format_float(value: float) -> str:
    value = normalize_float(value)
    text = f"{value:.{FLOAT_DECIMALS}f}".rstrip("0")
    if text.endswith("."):
        text += "0"
    if text in ("-0.0", "-0"):
        return "0.0"
    return text


def cpp_float(value: float) -> str:
    return format_float(value) + "f"


def cpp_bool(value: bool) -> str:
    return "true" if value else "false"


def escape_cpp_string(value: Optional[str]) -> str:
    if not value:
        return ""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def cpp_string(value: Optional[str]) -> str:
    return '"' + escape_cpp_string(value) + '"'
