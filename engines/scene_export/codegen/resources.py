"""Per-scene resource table shared by both backends.

Texture and mesh variables are numbered over the sorted set of distinct paths;
materials over the sorted set of distinct dedup keys, each key bound to the
first record seen in entity id order. Lookups that do not resolve return
``None`` and each backend renders its own "invalid reference" sentinel.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from engines.scene_export.ir.models import MaterialRecord, SceneDocument

MATERIAL_TEXTURE_FIELDS = ("diffuseTexture", "normalTexture", "specularTexture", "emissiveTexture")


def _add(paths: set, value: Optional[str]) -> None:
    if value and value.strip():
        paths.add(value)


def material_key(material) -> str:
    """Dedup key of a material given as a record or as its JSON dict."""
    if isinstance(material, MaterialRecord):
        return material.dedup_key
    stable_id = (material or {}).get("stableId") or ""
    if stable_id.strip():
        return stable_id
    return (material or {}).get("name") or "default"


class ResourceTable:
    def __init__(self, textures: Iterable[str], meshes: Iterable[str], materials: Dict[str, MaterialRecord]):
        self.texture_paths: List[str] = sorted(set(textures))
        self.mesh_paths: List[str] = sorted(set(meshes))
        self.material_keys: List[str] = sorted(materials)
        self._materials = materials
        self._texture_vars = {p: f"tex_{i}" for i, p in enumerate(self.texture_paths)}
        self._mesh_vars = {p: f"mesh_{i}" for i, p in enumerate(self.mesh_paths)}
        self._material_vars = {k: f"materialId_{i}" for i, k in enumerate(self.material_keys)}

    @classmethod
    def from_document(cls, document: SceneDocument) -> "ResourceTable":
        textures: set = set()
        meshes: set = set()
        materials: Dict[str, MaterialRecord] = {}
        for entity in sorted(document.entities, key=lambda e: e.stableId):
            if entity.model is not None:
                _add(meshes, entity.model.meshAssetRelativePath)
                material = entity.model.material
                if material is not None:
                    materials.setdefault(material.dedup_key, material)
                    for name in MATERIAL_TEXTURE_FIELDS:
                        _add(textures, getattr(material, name))
            if entity.meshCollider is not None:
                _add(meshes, entity.meshCollider.meshAssetRelativePath)
            if entity.terrain is not None:
                _add(meshes, entity.terrain.meshAssetRelativePath)
                _add(textures, entity.terrain.blend_map_path)
                for layer in entity.terrain.layers:
                    _add(textures, layer.albedoTexture)
                    _add(textures, layer.normalTexture)
            if entity.reflectionProbe is not None:
                _add(textures, entity.reflectionProbe.cubemapPath)
        return cls(textures, meshes, materials)

    def texture_var(self, path: Optional[str]) -> Optional[str]:
        return self._texture_vars.get(path or "")

    def mesh_var(self, path: Optional[str]) -> Optional[str]:
        return self._mesh_vars.get(path or "")

    def material_var(self, material) -> Optional[str]:
        if material is None:
            return None
        return self._material_vars.get(material_key(material))

    def material(self, key: str) -> Optional[MaterialRecord]:
        return self._materials.get(key)

    def textures(self) -> List[Tuple[str, str]]:
        return [(self._texture_vars[p], p) for p in self.texture_paths]

    def meshes(self) -> List[Tuple[str, str]]:
        return [(self._mesh_vars[p], p) for p in self.mesh_paths]

    def materials(self) -> List[Tuple[int, str, MaterialRecord]]:
        return [(i, k, self._materials[k]) for i, k in enumerate(self.material_keys)]
