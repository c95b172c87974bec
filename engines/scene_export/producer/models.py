"""Producer-side inputs: what a host scene graph hands to the exporter.

Values arrive already in semantic form (floats, vectors, source-order
quaternions, byte-providing handles). :class:`NodeSpec` is the concrete node
used by fixtures and by the HTTP surface; live hosts can implement
:class:`~engines.scene_export.producer.protocol.SceneNodeSource` directly.
"""
from __future__ import annotations

from typing import Annotated, Dict, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from engines.scene_export.core.geometry import MeshData
from engines.scene_export.ir.models import RenderSettings
from engines.scene_export.ir.values import FieldValue


class AssetHandle(BaseModel):
    """Byte-providing handle.

    ``asset_path`` is relative to the project asset root. Objects with no
    path on disk (generated textures, inline clips) carry ``data`` and an
    ``instance_key`` that identifies them within one export.
    """

    asset_path: Optional[str] = None
    data: Optional[bytes] = None
    name: str = ""
    instance_key: Optional[str] = None


class MeshSource(BaseModel):
    asset_path: Optional[str] = None
    is_main_asset: bool = True
    mesh: Optional[MeshData] = None
    name: str = "mesh"


class MaterialSpec(BaseModel):
    name: str = "Material"
    base_color: Optional[List[float]] = None
    emission_color: Optional[List[float]] = None
    smoothness: Optional[float] = None
    specular_color: Optional[List[float]] = None
    alpha_cutoff: Optional[float] = None
    transparent: bool = False
    double_sided: bool = False
    uv_scale: List[float] = Field(default_factory=lambda: [1.0, 1.0])
    uv_offset: List[float] = Field(default_factory=lambda: [0.0, 0.0])
    # slots: diffuse, normal, specular, emissive, ao, metallic
    textures: Dict[str, AssetHandle] = Field(default_factory=dict)


class MeshRendererSpec(BaseModel):
    kind: Literal["mesh_renderer"] = "mesh_renderer"
    type_name: str = "MeshRenderer"
    enabled: bool = True
    cast_shadows: bool = True
    receive_shadows: bool = True
    mesh: Optional[MeshSource] = None
    materials: List[Optional[MaterialSpec]] = Field(default_factory=list)


class LightSpec(BaseModel):
    kind: Literal["light"] = "light"
    type_name: str = "Light"
    light_type: str = "directional"
    enabled: bool = True
    color: List[float] = Field(default_factory=lambda: [1.0, 1.0, 1.0])
    intensity: float = 1.0
    range: float = 10.0
    inner_spot_angle: float = 21.8
    spot_angle: float = 30.0
    casts_shadows: bool = False


class CameraSpec(BaseModel):
    kind: Literal["camera"] = "camera"
    type_name: str = "Camera"
    enabled: bool = True
    field_of_view: float = 60.0
    near_clip: float = 0.3
    far_clip: float = 1000.0
    aspect: float = 0.0


class RigidbodySpec(BaseModel):
    kind: Literal["rigidbody"] = "rigidbody"
    type_name: str = "Rigidbody"
    is_kinematic: bool = False
    use_gravity: bool = True
    max_linear_velocity: float = 1e5
    max_angular_velocity: float = 7.0
    center_of_mass: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    linear_velocity: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    angular_velocity: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])


class BoxColliderSpec(BaseModel):
    kind: Literal["box_collider"] = "box_collider"
    type_name: str = "BoxCollider"
    enabled: bool = True
    is_trigger: bool = False
    size: List[float] = Field(default_factory=lambda: [1.0, 1.0, 1.0])
    center: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])


class SphereColliderSpec(BaseModel):
    kind: Literal["sphere_collider"] = "sphere_collider"
    type_name: str = "SphereCollider"
    enabled: bool = True
    is_trigger: bool = False
    radius: float = 0.5
    center: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])


class CapsuleColliderSpec(BaseModel):
    kind: Literal["capsule_collider"] = "capsule_collider"
    type_name: str = "CapsuleCollider"
    enabled: bool = True
    is_trigger: bool = False
    radius: float = 0.5
    height: float = 2.0
    direction: int = 1
    center: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])


class MeshColliderSpec(BaseModel):
    kind: Literal["mesh_collider"] = "mesh_collider"
    type_name: str = "MeshCollider"
    enabled: bool = True
    is_trigger: bool = False
    mesh: Optional[MeshSource] = None


class TerrainLayerSpec(BaseModel):
    name: str = "layer"
    metallic: float = 0.0
    smoothness: float = 0.0
    specular_color: List[float] = Field(default_factory=lambda: [0.5, 0.5, 0.5])
    tile_offset: List[float] = Field(default_factory=lambda: [0.0, 0.0])
    tile_size: List[float] = Field(default_factory=lambda: [1.0, 1.0])
    diffuse: Optional[AssetHandle] = None
    normal: Optional[AssetHandle] = None


class TerrainSpec(BaseModel):
    """Terrain data: a normalized height grid (row 0 = bottom) plus splat data."""

    kind: Literal["terrain"] = "terrain"
    type_name: str = "Terrain"
    enabled: bool = True
    size: List[float] = Field(default_factory=lambda: [1.0, 1.0, 1.0])
    heights: List[List[float]] = Field(default_factory=list)
    alphamap_texture: Optional[AssetHandle] = None
    alphamaps: Optional[List[List[List[float]]]] = None
    layers: List[Optional[TerrainLayerSpec]] = Field(default_factory=list)


class AudioSourceSpec(BaseModel):
    kind: Literal["audio_source"] = "audio_source"
    type_name: str = "AudioSource"
    enabled: bool = True
    clip: Optional[AssetHandle] = None
    volume: float = 1.0
    pitch: float = 1.0
    loop: bool = False
    play_on_awake: bool = True
    spatialize: bool = False


class ReflectionProbeSpec(BaseModel):
    kind: Literal["reflection_probe"] = "reflection_probe"
    type_name: str = "ReflectionProbe"
    enabled: bool = True
    refresh_every_frame: bool = False
    intensity: float = 1.0
    size: List[float] = Field(default_factory=lambda: [10.0, 10.0, 10.0])
    center: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    cubemap: Optional[AssetHandle] = None


class ScriptFieldSpec(BaseModel):
    name: str
    value: FieldValue


class ScriptSpec(BaseModel):
    """A user script component with its serialized fields."""

    kind: Literal["script"] = "script"
    type_name: str
    short_name: Optional[str] = None
    is_behaviour: bool = True
    fields: List[ScriptFieldSpec] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.short_name or self.type_name.rsplit(".", 1)[-1]


class OtherComponentSpec(BaseModel):
    """A component the exporter has no mapping for.

    ``builtin`` marks host engine components (recorded as unsupported);
    ``authoring`` marks editor-only data that is skipped silently.
    """

    kind: Literal["other"] = "other"
    type_name: str
    builtin: bool = True
    authoring: bool = False


class MissingComponentSpec(BaseModel):
    """A component slot whose script could not be resolved by the host."""

    kind: Literal["missing"] = "missing"
    type_name: str = ""


ComponentSpec = Annotated[
    Union[
        MeshRendererSpec,
        LightSpec,
        CameraSpec,
        RigidbodySpec,
        BoxColliderSpec,
        SphereColliderSpec,
        CapsuleColliderSpec,
        MeshColliderSpec,
        TerrainSpec,
        AudioSourceSpec,
        ReflectionProbeSpec,
        ScriptSpec,
        OtherComponentSpec,
        MissingComponentSpec,
    ],
    Field(discriminator="kind"),
]


class NodeSpec(BaseModel):
    name: str
    persistent_id: Optional[str] = None
    tag: str = "Untagged"
    is_static: bool = False
    active_self: bool = True
    local_position: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    # source order (x, y, z, w)
    local_rotation: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0, 1.0])
    local_scale: List[float] = Field(default_factory=lambda: [1.0, 1.0, 1.0])
    components: List[ComponentSpec] = Field(default_factory=list)
    children: List["NodeSpec"] = Field(default_factory=list)

    def iter_components(self) -> Iterator[ComponentSpec]:
        return iter(self.components)

    def iter_children(self) -> Iterator["NodeSpec"]:
        return iter(self.children)


class SkyboxSpec(BaseModel):
    """Skybox material inputs.

    ``six_sided`` maps right/left/up/down/front/back to face textures.
    ``cubemap_faces`` holds six pixel grids ordered east, west, up, down,
    north, south.
    """

    material_name: str = "Skybox"
    shader_name: str = ""
    six_sided: Optional[Dict[str, AssetHandle]] = None
    cubemap_faces: Optional[List[List[List[List[float]]]]] = None
    panoramic: Optional[AssetHandle] = None


class SceneSource(BaseModel):
    name: str
    asset_path: str
    render_settings: RenderSettings = Field(default_factory=RenderSettings)
    skybox: Optional[SkyboxSpec] = None
    roots: List[NodeSpec] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)


NodeSpec.model_rebuild()
