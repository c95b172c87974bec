"""Field bindings between the JSON document and the generated C++.

Each binding names a JSON source (a field of the component object, or a
function of the entity and component objects) and the C++ field or setter
that receives the same value. The C++ backend emits assignments from this
table, so both outputs are driven by a single description of every field.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from engines.scene_export.codegen.resources import ResourceTable
from engines.scene_export.codegen.statements import (
    Assign,
    BoolLit,
    Call,
    CallExpr,
    Expr,
    FloatLit,
    Ident,
    InvalidRef,
    Statement,
    Block,
    vec,
)
from engines.scene_export.core.literals import normalize_float, normalize_vector

MAX_TERRAIN_LAYERS = 4


class BindingKind(str, Enum):
    FLOAT = "float"
    BOOL = "bool"
    VEC2 = "vec2"
    VEC3 = "vec3"
    VEC4 = "vec4"
    DEGREES = "degrees"
    MESH_REF = "mesh_ref"
    TEXTURE_REF = "texture_ref"
    MATERIAL_REF = "material_ref"
    DERIVED = "derived"
    CONST_INVALID = "const_invalid"
    FLAG = "flag"


@dataclass(frozen=True)
class Binding:
    cpp_field: str
    kind: BindingKind
    json_field: Optional[str] = None
    derive: Optional[Callable[[Dict, Dict], Any]] = None
    default: Tuple[float, ...] = ()
    setter: bool = False
    guard_flag: Optional[str] = None

    def source_value(self, entity: Dict, component: Dict) -> Any:
        if self.derive is not None:
            return self.derive(entity, component)
        if self.json_field is None:
            return None
        return component.get(self.json_field)


@dataclass(frozen=True)
class ComponentBinding:
    json_key: str
    cpp_type: str
    var: str
    fields: Tuple[Binding, ...]


def _b(cpp_field: str, kind: BindingKind, json_field: Optional[str] = None, **kw) -> Binding:
    return Binding(cpp_field=cpp_field, kind=kind, json_field=json_field if json_field else cpp_field, **kw)


def _d(cpp_field: str, derive: Callable[[Dict, Dict], Any], **kw) -> Binding:
    return Binding(cpp_field=cpp_field, kind=BindingKind.DERIVED, derive=derive, **kw)


F, B = BindingKind.FLOAT, BindingKind.BOOL
ONE3 = (1.0, 1.0, 1.0)
ZERO3 = (0.0, 0.0, 0.0)


def _alpha_cutout(entity: Dict, material: Dict) -> Tuple[float, bool]:
    cutoff = normalize_float(material.get("alphaCutoff", -1.0))
    if cutoff >= 0.0:
        return cutoff, True
    return 0.0, False


MATERIAL_BINDINGS: Tuple[Binding, ...] = (
    _b("baseColor", BindingKind.VEC4, default=(1.0, 1.0, 1.0, 1.0)),
    _b("emissiveColor", BindingKind.VEC4, "emissionColor", default=(0.0, 0.0, 0.0, 0.0)),
    _b("emissiveColor.w", F, "emissionIntensity"),
    _b("shininess", F),
    _b("reflectivity", F),
    _b("specularStrength", F),
    _b("SetTiling", BindingKind.VEC2, "uvScale", default=(1.0, 1.0), setter=True),
    _b("MaterialFlags::ReceiveShadows", BindingKind.FLAG, "receiveShadows"),
    _b("SetDoubleSided", B, "doubleSided", setter=True),
    _b("SetTransparent", B, "transparent", setter=True),
    _d("SetAlphaCutout", _alpha_cutout, setter=True),
    _b("SetDiffuseTexture", BindingKind.TEXTURE_REF, "diffuseTexture", setter=True),
    _b("SetNormalTexture", BindingKind.TEXTURE_REF, "normalTexture", setter=True),
    _b("SetSpecularTexture", BindingKind.TEXTURE_REF, "specularTexture", setter=True),
    _b("SetEmissiveTexture", BindingKind.TEXTURE_REF, "emissiveTexture", setter=True),
)


def _layers(component: Dict) -> List[Dict]:
    return list(component.get("layers") or [])[:MAX_TERRAIN_LAYERS]


def _first_layer(fn: Callable[[Dict], Any]) -> Callable[[Dict, Dict], Any]:
    def derive(entity: Dict, component: Dict) -> Any:
        layers = _layers(component)
        return fn(layers[0]) if layers else None

    return derive


def _layer_start(index: int) -> Callable[[Dict, Dict], Any]:
    def derive(entity: Dict, component: Dict) -> Any:
        count = len(_layers(component))
        return normalize_float(index / count) if count > index else None

    return derive


def _layer_map(index: int, field: str) -> Callable[[Dict, Dict], Any]:
    def derive(entity: Dict, component: Dict) -> Any:
        layers = _layers(component)
        return layers[index].get(field, "") if index < len(layers) else ""

    return derive


def _blend_map(entity: Dict, component: Dict) -> str:
    return component.get("splatmapTexture") or component.get("weightmapTexture") or ""


def _specular_average(layer: Dict) -> float:
    spec = normalize_vector(layer.get("specularColor"), (0.5, 0.5, 0.5))
    return normalize_float(sum(spec) / 3.0)


TERRAIN_MATERIAL_BINDINGS: Tuple[Binding, ...] = (
    _d("specularStrength", _first_layer(_specular_average)),
    _d("shininess", _first_layer(lambda l: normalize_float(4.0 + max(0.0, l.get("smoothness", 0.0)) * 124.0))),
    _d("reflectivity", _first_layer(lambda l: normalize_float(max(0.0, l.get("metallic", 0.0)) * 0.25))),
    _d("layer1Start", _layer_start(1)),
    _d("layer2Start", _layer_start(2)),
    _d("layer3Start", _layer_start(3)),
    _d("uvTilingX", _first_layer(lambda l: normalize_vector(l.get("tileSize"), (1.0, 1.0))[0])),
    _d("uvTilingY", _first_layer(lambda l: normalize_vector(l.get("tileSize"), (1.0, 1.0))[1])),
) + tuple(
    Binding(
        cpp_field=f"layer{i}{slot}Map",
        kind=BindingKind.TEXTURE_REF,
        derive=_layer_map(i, field),
        guard_flag=f"TerrainMaterialFlags::UseLayer{i}{slot}Map",
    )
    for i in range(MAX_TERRAIN_LAYERS)
    for slot, field in (("Diffuse", "albedoTexture"), ("Normal", "normalTexture"))
) + (
    Binding(
        cpp_field="weightMap",
        kind=BindingKind.TEXTURE_REF,
        derive=_blend_map,
        guard_flag="TerrainMaterialFlags::UseWeightMap",
    ),
)


COMPONENT_BINDINGS: Tuple[ComponentBinding, ...] = (
    ComponentBinding("model", "ModelComponent", "model", (
        _b("meshId", BindingKind.MESH_REF, "meshAssetRelativePath"),
        _b("materialId", BindingKind.MATERIAL_REF, "material"),
        _d("visible", lambda e, c: bool(c.get("enabled") and e.get("isActive"))),
        _b("castShadows", B),
        _b("receiveShadows", B),
        _b("isStatic", B),
    )),
    ComponentBinding("directionalLight", "DirectionalLightComponent", "directionalLight", (
        _b("color", BindingKind.VEC3, default=ONE3),
        _b("intensity", F),
        _b("castShadows", B),
        _b("enabled", B),
    )),
    ComponentBinding("pointLight", "PointLightComponent", "pointLight", (
        _b("color", BindingKind.VEC3, default=ONE3),
        _b("intensity", F),
        _b("radius", F),
        _b("castShadows", B),
        _b("enabled", B),
    )),
    ComponentBinding("spotLight", "SpotLightComponent", "spotLight", (
        _b("color", BindingKind.VEC3, default=ONE3),
        _b("intensity", F),
        _b("range", F),
        _b("innerConeAngle", BindingKind.DEGREES, "innerConeAngleDegrees"),
        _b("outerConeAngle", BindingKind.DEGREES, "outerConeAngleDegrees"),
        _b("castShadows", B),
        _b("enabled", B),
    )),
    ComponentBinding("reflectionProbe", "ReflectionProbeComponent", "probe", (
        _b("cubemapTextureId", BindingKind.TEXTURE_REF, "cubemapPath"),
    )),
    ComponentBinding("camera", "CameraComponent", "camera", (
        _b("fov", F),
        _b("nearPlane", F),
        _b("farPlane", F),
        _b("aspectRatio", F, "aspect"),
        _b("isActive", B),
    )),
    ComponentBinding("rigidbody", "RigidbodyComponent", "rigidbody", (
        _b("isKinematic", B),
        _b("useGravity", B),
        _b("maxLinearVelocity", F),
        _b("maxAngularVelocity", F),
        _b("centerOfMass", BindingKind.VEC3, default=ZERO3),
        _b("linearVelocity", BindingKind.VEC3, default=ZERO3),
        _b("angularVelocity", BindingKind.VEC3, default=ZERO3),
    )),
    ComponentBinding("boxCollider", "BoxColliderComponent", "boxCollider", (
        _b("size", BindingKind.VEC3, default=ONE3),
        _b("offset", BindingKind.VEC3, default=ZERO3),
        _b("isTrigger", B),
    )),
    ComponentBinding("sphereCollider", "SphereColliderComponent", "sphereCollider", (
        _b("radius", F),
        _b("offset", BindingKind.VEC3, default=ZERO3),
        _b("isTrigger", B),
    )),
    ComponentBinding("capsuleCollider", "CapsuleColliderComponent", "capsuleCollider", (
        _b("radius", F),
        _b("height", F),
        _b("offset", BindingKind.VEC3, default=ZERO3),
        _b("isTrigger", B),
    )),
    ComponentBinding("meshCollider", "MeshColliderComponent", "meshCollider", (
        _b("meshId", BindingKind.MESH_REF, "meshAssetRelativePath"),
        _b("scale", BindingKind.VEC3, default=ONE3),
        _b("offset", BindingKind.VEC3, default=ZERO3),
        _b("isTrigger", B),
    )),
    ComponentBinding("terrain", "TerrainComponent", "terrainComp", (
        _b("meshId", BindingKind.MESH_REF, "meshAssetRelativePath"),
        _b("visible", B, "enabled"),
        _d("castShadows", lambda e, c: True),
        _d("receiveShadows", lambda e, c: True),
        _d("isStatic", lambda e, c: bool(e.get("isStatic"))),
    )),
    ComponentBinding("audioSource", "AudioSourceComponent", "audio", (
        Binding(cpp_field="audioId", kind=BindingKind.CONST_INVALID),
        _b("volume", F),
        _b("pitch", F),
        _b("loop", B),
    )),
)

BINDINGS_BY_KEY: Dict[str, ComponentBinding] = {c.json_key: c for c in COMPONENT_BINDINGS}


def _literal(value: Any) -> Expr:
    if isinstance(value, bool):
        return BoolLit(value)
    if isinstance(value, (int, float)):
        return FloatLit(normalize_float(value))
    if isinstance(value, (list, tuple)) and len(value) in (2, 3, 4):
        return vec(normalize_vector(value, [0.0] * len(value)))
    raise ValueError(f"no literal for derived value {value!r}")


def binding_args(binding: Binding, value: Any, resources: ResourceTable) -> Tuple[Expr, ...]:
    kind = binding.kind
    if kind == BindingKind.FLOAT:
        return (FloatLit(normalize_float(value)),)
    if kind == BindingKind.BOOL:
        return (BoolLit(bool(value)),)
    if kind in (BindingKind.VEC2, BindingKind.VEC3, BindingKind.VEC4):
        return (vec(normalize_vector(value, binding.default)),)
    if kind == BindingKind.DEGREES:
        return (CallExpr("glm::radians", (FloatLit(normalize_float(value)),)),)
    if kind == BindingKind.MESH_REF:
        var = resources.mesh_var(value)
        return (Ident(var) if var else InvalidRef(),)
    if kind == BindingKind.TEXTURE_REF:
        var = resources.texture_var(value)
        return (Ident(var) if var else InvalidRef(),)
    if kind == BindingKind.MATERIAL_REF:
        var = resources.material_var(value)
        return (Ident(var) if var else InvalidRef(),)
    if kind == BindingKind.CONST_INVALID:
        return (InvalidRef(),)
    if kind == BindingKind.DERIVED:
        if isinstance(value, tuple):
            return tuple(_literal(v) for v in value)
        return (_literal(value),)
    raise ValueError(f"binding kind {kind} has no argument form")


def emit_bindings(
    bindings: Tuple[Binding, ...],
    var: str,
    entity: Dict,
    component: Dict,
    resources: ResourceTable,
) -> List[Statement]:
    """Assignments/setter calls that set ``var`` from the JSON-shaped ``component``."""
    out: List[Statement] = []
    for binding in bindings:
        value = binding.source_value(entity, component)
        if binding.kind == BindingKind.FLAG:
            if value:
                out.append(Assign(f"{var}Flags", Ident(binding.cpp_field), op="|="))
            continue
        if binding.kind == BindingKind.DERIVED and value is None:
            continue
        if binding.guard_flag is not None:
            tex = resources.texture_var(value)
            if tex is None:
                continue
            out.append(
                Block(
                    header=f"if ({tex} != ResourceManager::INVALID_ID)",
                    body=[
                        Assign(f"{var}.{binding.cpp_field}", Ident(tex)),
                        Assign(f"{var}.featureFlags", Ident(binding.guard_flag), op="|="),
                    ],
                )
            )
            continue
        args = binding_args(binding, value, resources)
        if binding.setter:
            out.append(Call(CallExpr(f"{var}.{binding.cpp_field}", args)))
        else:
            out.append(Assign(f"{var}.{binding.cpp_field}", args[0]))
    return out
