"""Per-scene emission sequence shared by both backends."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Protocol

from engines.scene_export.codegen.resources import ResourceTable
from engines.scene_export.ir.models import SceneDocument, SceneEntity

logger = logging.getLogger(__name__)


class EmitStage(str, Enum):
    PREAMBLE = "preamble"
    SHARED_RESOURCES = "shared_resources"
    ENTITIES = "entities"
    HIERARCHY_LINKS = "hierarchy_links"
    EPILOGUE = "epilogue"


STAGE_ORDER = (
    EmitStage.PREAMBLE,
    EmitStage.SHARED_RESOURCES,
    EmitStage.ENTITIES,
    EmitStage.HIERARCHY_LINKS,
    EmitStage.EPILOGUE,
)


@dataclass
class EmitContext:
    document: SceneDocument
    resources: ResourceTable
    entities: List[SceneEntity] = field(default_factory=list)
    completed: List[EmitStage] = field(default_factory=list)

    @classmethod
    def for_document(cls, document: SceneDocument) -> "EmitContext":
        return cls(
            document=document,
            resources=ResourceTable.from_document(document),
            entities=sorted(document.entities, key=lambda e: e.stableId),
        )


class StageEmitter(Protocol):
    def emit_preamble(self, ctx: EmitContext) -> None: ...

    def emit_shared_resources(self, ctx: EmitContext) -> None: ...

    def emit_entities(self, ctx: EmitContext) -> None: ...

    def emit_hierarchy_links(self, ctx: EmitContext) -> None: ...

    def emit_epilogue(self, ctx: EmitContext) -> None: ...


def run_stages(document: SceneDocument, emitter: StageEmitter) -> EmitContext:
    ctx = EmitContext.for_document(document)
    for stage in STAGE_ORDER:
        getattr(emitter, f"emit_{stage.value}")(ctx)
        ctx.completed.append(stage)
    logger.debug("emitted %s via %s", document.sceneName, type(emitter).__name__)
    return ctx
