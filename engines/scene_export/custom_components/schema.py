"""Custom Schema Unifier.

Script components of one source type may expose different field sets on
different instances (added fields, conditional serialization). The unifier
keeps one superset schema per source type: a field name, once observed, is
never removed and keeps its first-seen type.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from engines.scene_export.core.diagnostics import DiagnosticLog
from engines.scene_export.core.ids import sanitize_identifier, to_snake_case
from engines.scene_export.ir.models import CustomComponentInstance, CustomFieldInstance
from engines.scene_export.ir.values import FieldValue, resolve_value
from engines.scene_export.producer.models import ScriptSpec

logger = logging.getLogger(__name__)

GENERATED_TYPE_PREFIX = "Exported"
HEADER_PREFIX = "exported_"


class CustomFieldSchema(BaseModel):
    name: str
    type: str
    cppType: str
    default: FieldValue


class CustomComponentSchema(BaseModel):
    sourceType: str
    generatedType: str
    headerFileName: str
    fields: List[CustomFieldSchema] = Field(default_factory=list)

    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def sorted_fields(self) -> List[CustomFieldSchema]:
        return sorted(self.fields, key=lambda f: f.name)

    def get(self, name: str) -> Optional[CustomFieldSchema]:
        for field in self.fields:
            if field.name == name:
                return field
        return None


def generated_names(short_name: str) -> tuple:
    """Return ``(generatedType, headerFileName)`` for a script's short type name."""
    generated_type = GENERATED_TYPE_PREFIX + sanitize_identifier(short_name, "Custom") + "Component"
    header = HEADER_PREFIX + to_snake_case(short_name, "custom") + "_component.hpp"
    return generated_type, header


class CustomSchemaUnifier:
    def __init__(self, log: Optional[DiagnosticLog] = None):
        self.log = log or DiagnosticLog()
        self._schemas: Dict[str, CustomComponentSchema] = {}

    @property
    def schemas(self) -> List[CustomComponentSchema]:
        return sorted(self._schemas.values(), key=lambda s: s.generatedType)

    def schema_for(self, source_type: str) -> Optional[CustomComponentSchema]:
        return self._schemas.get(source_type)

    def _schema(self, source_type: str, short_name: Optional[str]) -> CustomComponentSchema:
        schema = self._schemas.get(source_type)
        if schema is None:
            generated_type, header = generated_names(short_name or source_type.rsplit(".", 1)[-1])
            schema = CustomComponentSchema(
                sourceType=source_type,
                generatedType=generated_type,
                headerFileName=header,
            )
            self._schemas[source_type] = schema
        return schema

    def observe(
        self,
        source_type: str,
        field_name: str,
        value: FieldValue,
        short_name: Optional[str] = None,
        scene_warnings: Optional[List[str]] = None,
    ) -> Optional[FieldValue]:
        """Record one field sighting; return the emittable value or ``None`` when dropped."""
        schema = self._schema(source_type, short_name)
        resolved, reason = resolve_value(value)
        if resolved is None:
            self.log.warn(f"Custom component field skipped: {source_type}.{field_name} ({reason})", scene_warnings)
            return None

        name = sanitize_identifier(field_name, "field")
        existing = schema.get(name)
        if existing is None:
            schema.fields.append(
                CustomFieldSchema(name=name, type=resolved.type, cppType=resolved.cpp_type, default=resolved)
            )
        elif existing.cppType != resolved.cpp_type:
            self.log.warn(
                f"Custom component field type mismatch: {source_type}.{name} keeps {existing.cppType}, "
                f"instance has {resolved.cpp_type}",
                scene_warnings,
            )
        return resolved

    def ensure_schema(self, schema: CustomComponentSchema) -> None:
        """Merge a prebuilt schema (e.g. a metadata stub) by field name."""
        existing = self._schemas.get(schema.sourceType)
        if existing is None:
            self._schemas[schema.sourceType] = schema.model_copy(deep=True)
            return
        for field in schema.fields:
            if existing.get(field.name) is None:
                existing.fields.append(field.model_copy(deep=True))

    def collect(self, script: ScriptSpec, scene_warnings: Optional[List[str]] = None) -> Optional[CustomComponentInstance]:
        schema = self._schema(script.type_name, script.display_name)
        instance = CustomComponentInstance(sourceType=schema.sourceType, generatedType=schema.generatedType)
        for field in script.fields:
            value = self.observe(script.type_name, field.name, field.value, script.display_name, scene_warnings)
            if value is None:
                continue
            instance.fields.append(CustomFieldInstance(name=sanitize_identifier(field.name, "field"), value=value))

        if not instance.fields:
            logger.debug("no exportable fields on %s", script.type_name)
            return None
        return instance
