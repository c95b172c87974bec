"""Header generation for unified custom component schemas."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

from engines.scene_export.codegen.statements import CppRenderer, value_expr
from engines.scene_export.core.ids import sanitize_identifier
from engines.scene_export.custom_components.schema import CustomComponentSchema

logger = logging.getLogger(__name__)

COMPONENTS_DIR = "game/components"
GENERATED_DIR = f"{COMPONENTS_DIR}/generated"
AGGREGATOR = "generated_components.hpp"


def component_header_text(schema: CustomComponentSchema) -> str:
    renderer = CppRenderer()
    lines = [
        "#pragma once",
        "#include <glm/glm.hpp>",
        "#include <string>",
        "#include <vector>",
        "",
        f"struct {schema.generatedType}",
        "{",
    ]
    for field in schema.sorted_fields():
        default = renderer.render_expr(value_expr(field.default))
        lines.append(f"    {field.cppType} {sanitize_identifier(field.name, 'field')} = {default};")
    lines.append("};")
    return "\n".join(lines) + "\n"


def aggregator_text(schemas: Iterable[CustomComponentSchema]) -> str:
    lines = ["#pragma once"]
    lines += [f'#include "generated/{s.headerFileName}"' for s in schemas]
    return "\n".join(lines) + "\n"


def write_component_headers(bundle_root: Path, schemas: List[CustomComponentSchema]) -> List[str]:
    """Write one header per schema plus the aggregator; returns bundle-relative paths."""
    root = Path(bundle_root)
    (root / GENERATED_DIR).mkdir(parents=True, exist_ok=True)
    ordered = sorted(schemas, key=lambda s: s.generatedType)
    written: List[str] = []
    for schema in ordered:
        rel = f"{GENERATED_DIR}/{schema.headerFileName}"
        (root / rel).write_text(component_header_text(schema), encoding="utf-8")
        written.append(rel)
    rel = f"{COMPONENTS_DIR}/{AGGREGATOR}"
    (root / rel).write_text(aggregator_text(ordered), encoding="utf-8")
    written.append(rel)
    logger.info("wrote %d custom component headers", len(ordered))
    return written
