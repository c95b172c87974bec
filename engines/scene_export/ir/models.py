"""Scene IR: the canonical document both backends render.

Field names are the on-disk JSON keys. Vectors are plain float lists, already
normalized by the collector; rotations are stored as (w, x, y, z).
"""
from __future__ import annotations

from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field

from engines.scene_export.ir.values import FieldValue

SCENE_SCHEMA_VERSION = "1.0.0"


def _vec(*values: float):
    return Field(default_factory=lambda: list(values))


class MaterialRecord(BaseModel):
    stableId: str = ""
    name: str = "Default"
    baseColor: List[float] = _vec(1.0, 1.0, 1.0, 1.0)
    emissionColor: List[float] = _vec(0.0, 0.0, 0.0, 0.0)
    emissionIntensity: float = 0.0
    shininess: float = 32.0
    reflectivity: float = 0.0
    specularStrength: float = 0.5
    alphaCutoff: float = -1.0
    receiveShadows: bool = True
    doubleSided: bool = False
    transparent: bool = False
    uvScale: List[float] = _vec(1.0, 1.0)
    uvOffset: List[float] = _vec(0.0, 0.0)
    diffuseTexture: str = ""
    normalTexture: str = ""
    specularTexture: str = ""
    emissiveTexture: str = ""
    aoTexture: str = ""
    metallicTexture: str = ""

    @property
    def dedup_key(self) -> str:
        if self.stableId and self.stableId.strip():
            return self.stableId
        return self.name or "default"


class ModelPayload(BaseModel):
    enabled: bool = True
    castShadows: bool = True
    receiveShadows: bool = True
    isStatic: bool = False
    meshAssetRelativePath: str = ""
    meshSource: str = ""
    meshWasBaked: bool = False
    material: Optional[MaterialRecord] = None


class DirectionalLightPayload(BaseModel):
    enabled: bool = True
    color: List[float] = _vec(1.0, 1.0, 1.0)
    intensity: float = 1.0
    castShadows: bool = False


class PointLightPayload(BaseModel):
    enabled: bool = True
    color: List[float] = _vec(1.0, 1.0, 1.0)
    intensity: float = 1.0
    radius: float = 10.0
    castShadows: bool = False


class SpotLightPayload(BaseModel):
    enabled: bool = True
    color: List[float] = _vec(1.0, 1.0, 1.0)
    intensity: float = 1.0
    range: float = 10.0
    innerConeAngleDegrees: float = 21.8
    outerConeAngleDegrees: float = 30.0
    castShadows: bool = False


class CameraPayload(BaseModel):
    enabled: bool = True
    fov: float = 60.0
    nearPlane: float = 0.3
    farPlane: float = 1000.0
    aspect: float = 16.0 / 9.0
    isActive: bool = True


class RigidbodyPayload(BaseModel):
    isKinematic: bool = False
    useGravity: bool = True
    maxLinearVelocity: float = 1e5
    maxAngularVelocity: float = 7.0
    centerOfMass: List[float] = _vec(0.0, 0.0, 0.0)
    linearVelocity: List[float] = _vec(0.0, 0.0, 0.0)
    angularVelocity: List[float] = _vec(0.0, 0.0, 0.0)


class BoxColliderPayload(BaseModel):
    enabled: bool = True
    isTrigger: bool = False
    size: List[float] = _vec(1.0, 1.0, 1.0)
    offset: List[float] = _vec(0.0, 0.0, 0.0)


class SphereColliderPayload(BaseModel):
    enabled: bool = True
    isTrigger: bool = False
    radius: float = 0.5
    offset: List[float] = _vec(0.0, 0.0, 0.0)


class CapsuleColliderPayload(BaseModel):
    enabled: bool = True
    isTrigger: bool = False
    radius: float = 0.5
    height: float = 2.0
    direction: int = 1
    offset: List[float] = _vec(0.0, 0.0, 0.0)


class MeshColliderPayload(BaseModel):
    enabled: bool = True
    isTrigger: bool = False
    scale: List[float] = _vec(1.0, 1.0, 1.0)
    offset: List[float] = _vec(0.0, 0.0, 0.0)
    meshAssetRelativePath: str = ""
    meshWasBaked: bool = False
    meshSource: str = ""


class TerrainLayerPayload(BaseModel):
    index: int = 0
    name: str = ""
    metallic: float = 0.0
    smoothness: float = 0.0
    specularColor: List[float] = _vec(0.5, 0.5, 0.5)
    tileOffset: List[float] = _vec(0.0, 0.0)
    tileSize: List[float] = _vec(1.0, 1.0)
    albedoTexture: str = ""
    normalTexture: str = ""


class TerrainPayload(BaseModel):
    enabled: bool = True
    size: List[float] = _vec(1.0, 1.0, 1.0)
    heightmapTexture: str = ""
    splatmapTexture: str = ""
    weightmapTexture: str = ""
    meshAssetRelativePath: str = ""
    layers: List[TerrainLayerPayload] = Field(default_factory=list)

    @property
    def blend_map_path(self) -> str:
        return self.splatmapTexture or self.weightmapTexture or ""


class AudioSourcePayload(BaseModel):
    enabled: bool = True
    clipPath: str = ""
    volume: float = 1.0
    pitch: float = 1.0
    loop: bool = False
    playOnAwake: bool = True
    spatialize: bool = False


class ReflectionProbePayload(BaseModel):
    enabled: bool = True
    isBaked: bool = True
    intensity: float = 1.0
    size: List[float] = _vec(10.0, 10.0, 10.0)
    center: List[float] = _vec(0.0, 0.0, 0.0)
    cubemapPath: str = ""


class CustomFieldInstance(BaseModel):
    name: str
    value: FieldValue

    def to_json(self) -> Dict:
        return {
            "name": self.name,
            "type": self.value.type,
            "cppType": self.value.cpp_type,
            "value": self.value.to_json(),
        }


class CustomComponentInstance(BaseModel):
    sourceType: str
    generatedType: str
    fields: List[CustomFieldInstance] = Field(default_factory=list)


class RenderSettings(BaseModel):
    ambientLight: List[float] = _vec(0.2, 0.2, 0.2)
    ambientIntensity: float = 1.0
    fogEnabled: bool = False
    fogColor: List[float] = _vec(0.5, 0.5, 0.5)
    fogDensity: float = 0.01
    fogStartDistance: float = 0.0
    fogEndDistance: float = 300.0
    fogMode: str = "ExponentialSquared"
    reflectionIntensity: float = 1.0
    reflectionBounces: int = 1
    defaultReflectionMode: str = "Skybox"


class Skybox(BaseModel):
    enabled: bool = True
    sourceType: str = "unknown"
    materialName: str = ""
    shaderName: str = ""
    panoramicTexture: str = ""
    cubemapFacePaths: List[str] = Field(default_factory=list)

    @property
    def has_cubemap(self) -> bool:
        return self.enabled and len(self.cubemapFacePaths) == 6 and all(p.strip() for p in self.cubemapFacePaths)


COMPONENT_KEYS = (
    "model",
    "directionalLight",
    "pointLight",
    "spotLight",
    "reflectionProbe",
    "camera",
    "rigidbody",
    "boxCollider",
    "sphereCollider",
    "capsuleCollider",
    "meshCollider",
    "terrain",
    "audioSource",
)


class SceneEntity(BaseModel):
    stableId: str
    parentStableId: str = ""
    name: str = ""
    tag: str = "Untagged"
    isStatic: bool = False
    isActive: bool = True
    localPosition: List[float] = _vec(0.0, 0.0, 0.0)
    localRotation: List[float] = _vec(1.0, 0.0, 0.0, 0.0)
    localScale: List[float] = _vec(1.0, 1.0, 1.0)
    model: Optional[ModelPayload] = None
    directionalLight: Optional[DirectionalLightPayload] = None
    pointLight: Optional[PointLightPayload] = None
    spotLight: Optional[SpotLightPayload] = None
    reflectionProbe: Optional[ReflectionProbePayload] = None
    camera: Optional[CameraPayload] = None
    rigidbody: Optional[RigidbodyPayload] = None
    boxCollider: Optional[BoxColliderPayload] = None
    sphereCollider: Optional[SphereColliderPayload] = None
    capsuleCollider: Optional[CapsuleColliderPayload] = None
    meshCollider: Optional[MeshColliderPayload] = None
    terrain: Optional[TerrainPayload] = None
    audioSource: Optional[AudioSourcePayload] = None
    customComponents: List[CustomComponentInstance] = Field(default_factory=list)


class SceneDocument(BaseModel):
    schemaVersion: str = SCENE_SCHEMA_VERSION
    sceneName: str
    sceneAssetPath: str = ""
    renderSettings: RenderSettings = Field(default_factory=RenderSettings)
    skybox: Optional[Skybox] = None
    entities: List[SceneEntity] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    def entity_ids(self) -> Set[str]:
        return {e.stableId for e in self.entities}

    @property
    def custom_component_count(self) -> int:
        return sum(len(e.customComponents) for e in self.entities)


def validate_hierarchy(document: SceneDocument) -> List[str]:
    """Return referential-integrity problems: dangling parents, duplicate ids, cycles."""
    problems: List[str] = []
    parents: Dict[str, str] = {}
    for entity in document.entities:
        if entity.stableId in parents:
            problems.append(f"duplicate stable id {entity.stableId}")
        parents[entity.stableId] = entity.parentStableId

    for child, parent in parents.items():
        if parent and parent not in parents:
            problems.append(f"dangling parent {parent} on {child}")

    for start in parents:
        seen = {start}
        current = parents.get(start)
        while current:
            if current in seen:
                problems.append(f"cycle through {start}")
                break
            seen.add(current)
            current = parents.get(current)
    return problems
