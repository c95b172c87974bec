"""Material records and scene-wide material deduplication."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from engines.scene_export.assets.models import AssetKind
from engines.scene_export.assets.service import ContentStore
from engines.scene_export.core.ids import DEFAULT_MATERIAL_ID, build_material_id
from engines.scene_export.core.literals import normalize_float, normalize_vector
from engines.scene_export.ir.models import MaterialRecord, SceneDocument
from engines.scene_export.producer.models import MaterialSpec

logger = logging.getLogger(__name__)

TEXTURE_SLOTS = ("diffuse", "normal", "specular", "emissive", "ao", "metallic")
DEFAULT_SMOOTHNESS = 0.5
DEFAULT_SPECULAR = (0.5, 0.5, 0.5)


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def build_material(spec: Optional[MaterialSpec], owner_name: str, store: ContentStore) -> MaterialRecord:
    """Translate a producer material into a record, exporting its textures.

    A missing material yields the default record with id ``mat_default``.
    """
    if spec is None:
        return MaterialRecord(stableId=DEFAULT_MATERIAL_ID)

    smoothness = spec.smoothness if spec.smoothness is not None else DEFAULT_SMOOTHNESS
    emission = normalize_vector(spec.emission_color, (0.0, 0.0, 0.0, 0.0))
    specular = normalize_vector(spec.specular_color, DEFAULT_SPECULAR)

    textures: Dict[str, str] = {}
    for slot in TEXTURE_SLOTS:
        handle = spec.textures.get(slot)
        if handle is None:
            continue
        textures[slot] = store.export_handle(handle, AssetKind.TEXTURE, f"{owner_name}_{slot}")

    record = MaterialRecord(
        name=spec.name,
        baseColor=normalize_vector(spec.base_color, (1.0, 1.0, 1.0, 1.0)),
        emissionColor=emission,
        emissionIntensity=normalize_float(max(max(emission[:3]), 0.0)),
        shininess=normalize_float(4.0 + (128.0 - 4.0) * _clamp01(smoothness)),
        specularStrength=normalize_float(sum(specular[:3]) / 3.0),
        alphaCutoff=normalize_float(spec.alpha_cutoff) if spec.alpha_cutoff is not None else -1.0,
        doubleSided=spec.double_sided,
        transparent=spec.transparent,
        uvScale=normalize_vector(spec.uv_scale, (1.0, 1.0)),
        uvOffset=normalize_vector(spec.uv_offset, (0.0, 0.0)),
        diffuseTexture=textures.get("diffuse", ""),
        normalTexture=textures.get("normal", ""),
        specularTexture=textures.get("specular", ""),
        emissiveTexture=textures.get("emissive", ""),
        aoTexture=textures.get("ao", ""),
        metallicTexture=textures.get("metallic", ""),
    )
    record.stableId = build_material_id(
        record.name,
        record.diffuseTexture,
        record.normalTexture,
        record.specularTexture,
        record.emissiveTexture,
        record.aoTexture,
        record.metallicTexture,
    )
    return record


class MaterialDeduplicator:
    """Collapses materials sharing a dedup key onto the first instance seen.

    Documents are visited in entity id order, so "first" is stable across
    traversal orders of the same scene.
    """

    def __init__(self) -> None:
        self._records: Dict[str, MaterialRecord] = {}

    def register(self, record: MaterialRecord) -> MaterialRecord:
        key = record.dedup_key
        existing = self._records.get(key)
        if existing is None:
            self._records[key] = record
            return record
        if existing != record:
            logger.debug("material %s collapsed onto first instance", key)
        return existing

    def canonicalize(self, document: SceneDocument) -> None:
        for entity in document.entities:
            if entity.model is not None and entity.model.material is not None:
                entity.model.material = self.register(entity.model.material)

    @property
    def records(self) -> List[MaterialRecord]:
        return [self._records[k] for k in sorted(self._records)]
