"""Declarative backend: the scene document as canonical JSON."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from engines.scene_export.codegen.stages import EmitContext, run_stages
from engines.scene_export.core.ids import sanitize_identifier
from engines.scene_export.core.literals import format_float
from engines.scene_export.ir.models import COMPONENT_KEYS, SceneDocument, SceneEntity

logger = logging.getLogger(__name__)

SCENES_DIR = "assets/data/scenes"
INDENT = "  "


def render_json(value: Any, depth: int = 0) -> str:
    """Serialize with fixed float notation, 2-space indent and insertion key order."""
    pad = INDENT * depth
    inner = INDENT * (depth + 1)
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_float(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, dict):
        if not value:
            return "{}"
        items = [f"{inner}{json.dumps(str(k), ensure_ascii=False)}: {render_json(v, depth + 1)}" for k, v in value.items()]
        return "{\n" + ",\n".join(items) + "\n" + pad + "}"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value):
            return "[" + ", ".join(render_json(v) for v in value) + "]"
        items = [inner + render_json(v, depth + 1) for v in value]
        return "[\n" + ",\n".join(items) + "\n" + pad + "]"
    raise TypeError(f"cannot serialize {type(value).__name__}")


def entity_to_json(entity: SceneEntity) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "stableId": entity.stableId,
        "parentStableId": entity.parentStableId,
        "name": entity.name,
        "tag": entity.tag,
        "isStatic": entity.isStatic,
        "isActive": entity.isActive,
        "localPosition": list(entity.localPosition),
        "localRotation": list(entity.localRotation),
        "localScale": list(entity.localScale),
    }
    for key in COMPONENT_KEYS:
        payload = getattr(entity, key)
        if payload is not None:
            data[key] = payload.model_dump()
    data["customComponents"] = [
        {
            "sourceType": custom.sourceType,
            "generatedType": custom.generatedType,
            "fields": [f.to_json() for f in custom.fields],
        }
        for custom in entity.customComponents
    ]
    return data


class JsonSceneBackend:
    def __init__(self) -> None:
        self.data: Dict[str, Any] = {}

    def emit_preamble(self, ctx: EmitContext) -> None:
        doc = ctx.document
        self.data = {
            "schemaVersion": doc.schemaVersion,
            "sceneName": doc.sceneName,
            "renderSettings": doc.renderSettings.model_dump(),
            "skybox": doc.skybox.model_dump() if doc.skybox is not None else None,
        }

    def emit_shared_resources(self, ctx: EmitContext) -> None:
        # resources are referenced inline by path; nothing to declare up front
        return None

    def emit_entities(self, ctx: EmitContext) -> None:
        self.data["entities"] = [entity_to_json(e) for e in ctx.entities]

    def emit_hierarchy_links(self, ctx: EmitContext) -> None:
        known = {e["stableId"] for e in self.data["entities"]}
        for entity in self.data["entities"]:
            if entity["parentStableId"] and entity["parentStableId"] not in known:
                entity["parentStableId"] = ""

    def emit_epilogue(self, ctx: EmitContext) -> None:
        self.data["warnings"] = list(ctx.document.warnings)


def scene_to_json(document: SceneDocument) -> Dict[str, Any]:
    backend = JsonSceneBackend()
    run_stages(document, backend)
    return backend.data


def scene_json_text(document: SceneDocument) -> str:
    return render_json(scene_to_json(document)) + "\n"


def scene_json_path(scene_name: str) -> str:
    return f"{SCENES_DIR}/{sanitize_identifier(scene_name, 'Scene')}.scene.json"


def write_scene_json(bundle_root: Path, document: SceneDocument, relative_path: Optional[str] = None) -> str:
    relative_path = relative_path or scene_json_path(document.sceneName)
    target = Path(bundle_root) / relative_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(scene_json_text(document), encoding="utf-8")
    logger.info("wrote scene json %s (%d entities)", relative_path, len(document.entities))
    return relative_path

