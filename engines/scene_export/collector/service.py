"""Scene IR assembly.

Walks the producer's node tree depth first, derives stable ids, maps every
known component onto its IR payload and degrades everything else to warnings
plus audit records. Entities are re-sorted by id and parent links are
resolved in a second pass once every id exists.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from engines.scene_export.assets.models import AssetKind
from engines.scene_export.assets.service import ContentStore
from engines.scene_export.assets.transcode import TranscodeError, heightmap_pixels, splatmap_pixels
from engines.scene_export.collector.audit import (
    CUSTOM_STUB,
    IGNORED_AUTHORING,
    NATIVE_MAPPED,
    UNSUPPORTED_BUILTIN,
    ComponentAudit,
)
from engines.scene_export.collector.materials import MaterialDeduplicator, build_material
from engines.scene_export.core.conversions import to_wxyz
from engines.scene_export.core.diagnostics import DiagnosticLog
from engines.scene_export.core.geometry import build_grid_mesh
from engines.scene_export.core.ids import IdentityAssigner, to_snake_case
from engines.scene_export.core.literals import normalize_float, normalize_vector
from engines.scene_export.custom_components.schema import (
    CustomComponentSchema,
    CustomFieldSchema,
    CustomSchemaUnifier,
    generated_names,
)
from engines.scene_export.ir.models import (
    AudioSourcePayload,
    BoxColliderPayload,
    CameraPayload,
    CapsuleColliderPayload,
    CustomComponentInstance,
    CustomFieldInstance,
    DirectionalLightPayload,
    MeshColliderPayload,
    ModelPayload,
    PointLightPayload,
    ReflectionProbePayload,
    RigidbodyPayload,
    SceneDocument,
    SceneEntity,
    Skybox,
    SphereColliderPayload,
    SpotLightPayload,
    TerrainLayerPayload,
    TerrainPayload,
)
from engines.scene_export.ir.values import BoolValue, FloatValue, StringValue
from engines.scene_export.producer.models import (
    AudioSourceSpec,
    BoxColliderSpec,
    CameraSpec,
    CapsuleColliderSpec,
    LightSpec,
    MeshColliderSpec,
    MeshRendererSpec,
    MeshSource,
    MissingComponentSpec,
    OtherComponentSpec,
    ReflectionProbeSpec,
    RigidbodySpec,
    SceneSource,
    ScriptSpec,
    SkyboxSpec,
    SphereColliderSpec,
    TerrainSpec,
)
from engines.scene_export.producer.protocol import SceneNodeSource, is_baked_or_transient

logger = logging.getLogger(__name__)

MAX_TERRAIN_LAYERS = 4
DEFAULT_ASPECT = 16.0 / 9.0
AUDIO_STUB_SOURCE_TYPE = "AudioSource"
AUDIO_STUB_SHORT_NAME = "AudioSourceMetadata"
SKYBOX_FACES = ("east", "west", "up", "down", "north", "south")
SIX_SIDED_SLOTS = ("right", "left", "up", "down", "front", "back")
TERRAIN_TEXTURE_PREFIXES = ("assets/textures/", "assets/terrains/")

_VEC3_ZERO = (0.0, 0.0, 0.0)
_VEC3_ONE = (1.0, 1.0, 1.0)


def _v3(values, defaults=_VEC3_ZERO) -> List[float]:
    return normalize_vector(values, defaults)


def audio_stub_schema() -> CustomComponentSchema:
    generated_type, header = generated_names(AUDIO_STUB_SHORT_NAME)
    defaults = (
        ("clipPath", StringValue(value="")),
        ("volume", FloatValue(value=1.0)),
        ("pitch", FloatValue(value=1.0)),
        ("loop", BoolValue(value=False)),
        ("playOnAwake", BoolValue(value=True)),
        ("spatialize", BoolValue(value=False)),
    )
    return CustomComponentSchema(
        sourceType=AUDIO_STUB_SOURCE_TYPE,
        generatedType=generated_type,
        headerFileName=header,
        fields=[CustomFieldSchema(name=n, type=v.type, cppType=v.cpp_type, default=v) for n, v in defaults],
    )


class _NodeContext:
    def __init__(self, path: str, stable_id: str, active_in_hierarchy: bool):
        self.path = path
        self.stable_id = stable_id
        self.active_in_hierarchy = active_in_hierarchy


class SceneCollector:
    """Builds :class:`SceneDocument` objects for one export run.

    The content store, schema unifier, audit and diagnostics are shared by all
    scenes of the run; identity and material dedup state is per scene.
    """

    def __init__(
        self,
        store: ContentStore,
        unifier: CustomSchemaUnifier,
        audit: Optional[ComponentAudit] = None,
        log: Optional[DiagnosticLog] = None,
    ):
        self.store = store
        self.unifier = unifier
        self.audit = audit or ComponentAudit()
        self.log = log or store.log
        self._unsupported_seen: set = set()
        self._non_behaviour_seen: set = set()

    def collect_scene(self, source: SceneSource) -> SceneDocument:
        document = SceneDocument(
            sceneName=source.name,
            sceneAssetPath=source.asset_path,
            renderSettings=source.render_settings.model_copy(deep=True),
        )
        document.skybox = self._collect_skybox(source.skybox, document)

        identities = IdentityAssigner()
        links: Dict[str, str] = {}
        for root in source.roots:
            self._collect_node(root, None, None, True, identities, document, links)

        document.entities.sort(key=lambda e: e.stableId)
        self._link_parents(document, links)
        MaterialDeduplicator().canonicalize(document)

        if identities.collisions:
            self.log.warn(
                f"Stable id collisions resolved by rehash on scene {source.name}: {identities.collisions}",
                document.warnings,
            )
        logger.info("collected scene %s: %d entities", source.name, len(document.entities))
        return document

    # -- traversal -----------------------------------------------------

    def _collect_node(
        self,
        node: SceneNodeSource,
        parent_path: Optional[str],
        parent_id: Optional[str],
        parent_active: bool,
        identities: IdentityAssigner,
        document: SceneDocument,
        links: Dict[str, str],
    ) -> None:
        path = identities.child_path(parent_path, node.name)
        stable_id = identities.assign(path, node.persistent_id)
        ctx = _NodeContext(path, stable_id, parent_active and node.active_self)

        entity = SceneEntity(
            stableId=stable_id,
            name=node.name,
            tag=node.tag or "Untagged",
            isStatic=node.is_static,
            isActive=node.active_self,
            localPosition=_v3(node.local_position),
            localRotation=to_wxyz(node.local_rotation),
            localScale=_v3(node.local_scale, _VEC3_ONE),
        )
        if parent_id:
            links[stable_id] = parent_id

        self.audit.record("Transform", NATIVE_MAPPED, document.sceneName, path, is_builtin=True)
        for component in node.iter_components():
            self._collect_component(component, node, ctx, entity, document)

        document.entities.append(entity)
        for child in node.iter_children():
            self._collect_node(child, path, stable_id, ctx.active_in_hierarchy, identities, document, links)

    def _link_parents(self, document: SceneDocument, links: Dict[str, str]) -> None:
        ids = document.entity_ids()
        for entity in document.entities:
            parent = links.get(entity.stableId, "")
            if parent and parent not in ids:
                self.log.warn(
                    f"Dangling parent reference {parent} on {entity.name} ({entity.stableId}); attached to root.",
                    document.warnings,
                )
                parent = ""
            entity.parentStableId = parent

    def _collect_component(self, component, node, ctx: _NodeContext, entity: SceneEntity, document: SceneDocument) -> None:
        scene_name = document.sceneName
        if isinstance(component, MissingComponentSpec):
            self.log.warn(f"Missing script component on {ctx.path}")
            return

        if isinstance(component, ScriptSpec):
            self.audit.record(component.type_name, CUSTOM_STUB, scene_name, ctx.path, is_behaviour=component.is_behaviour)
            if component.is_behaviour:
                instance = self.unifier.collect(component, document.warnings)
                if instance is not None:
                    entity.customComponents.append(instance)
            elif component.type_name not in self._non_behaviour_seen:
                self._non_behaviour_seen.add(component.type_name)
                self.log.warn(
                    f"Custom non-MonoBehaviour component skipped: {component.type_name} on {ctx.path}",
                    document.warnings,
                )
            return

        if isinstance(component, OtherComponentSpec):
            self._collect_other(component, ctx, document)
            return

        self.audit.record(component.type_name, NATIVE_MAPPED, scene_name, ctx.path, is_builtin=True)
        if isinstance(component, MeshRendererSpec):
            self._collect_model(component, node, ctx, entity, document)
        elif isinstance(component, LightSpec):
            self._collect_light(component, ctx, entity, document)
        elif isinstance(component, ReflectionProbeSpec):
            self._collect_reflection_probe(component, node, ctx, entity, document)
        elif isinstance(component, CameraSpec):
            self._collect_camera(component, ctx, entity)
        elif isinstance(component, RigidbodySpec):
            self._collect_rigidbody(component, entity)
        elif isinstance(component, (BoxColliderSpec, SphereColliderSpec, CapsuleColliderSpec, MeshColliderSpec)):
            self._collect_collider(component, node, ctx, entity, document)
        elif isinstance(component, TerrainSpec):
            self._collect_terrain(component, node, ctx, entity, document)
        elif isinstance(component, AudioSourceSpec):
            self._collect_audio(component, node, entity)

    def _collect_other(self, component: OtherComponentSpec, ctx: _NodeContext, document: SceneDocument) -> None:
        scene_name = document.sceneName
        if component.authoring:
            self.audit.record(component.type_name, IGNORED_AUTHORING, scene_name, ctx.path, is_builtin=component.builtin)
            return
        if component.builtin:
            self.audit.record(component.type_name, UNSUPPORTED_BUILTIN, scene_name, ctx.path, is_builtin=True)
            if component.type_name not in self._unsupported_seen:
                self._unsupported_seen.add(component.type_name)
                self.log.warn(f"Unsupported built-in component: {component.type_name} on {ctx.path}", document.warnings)
            return
        self.audit.record(component.type_name, CUSTOM_STUB, scene_name, ctx.path)
        if component.type_name not in self._non_behaviour_seen:
            self._non_behaviour_seen.add(component.type_name)
            self.log.warn(
                f"Custom non-MonoBehaviour component skipped: {component.type_name} on {ctx.path}",
                document.warnings,
            )

    # -- native components ---------------------------------------------

    def _resolve_mesh(self, source: Optional[MeshSource], key: str, fallback_name: str) -> Tuple[str, bool]:
        if source is None:
            return "", False
        if source.asset_path and source.asset_path.strip():
            if ContentStore.classify_by_path(source.asset_path) == AssetKind.MODEL and source.is_main_asset:
                return self.store.export_asset_path(source.asset_path, AssetKind.MODEL), False
            self.log.warn(f"Mesh sub-asset fallback to baked OBJ for {source.name} from {source.asset_path}")
        return self.store.export_baked_mesh(source.mesh, key, fallback_name), True

    def _collect_model(self, spec: MeshRendererSpec, node, ctx: _NodeContext, entity: SceneEntity, document: SceneDocument) -> None:
        if entity.model is not None or spec.mesh is None:
            return
        if spec.mesh.asset_path is None and spec.mesh.mesh is None:
            return

        mesh_path, baked = self._resolve_mesh(spec.mesh, ctx.stable_id, f"{node.name}_mesh")
        if len(spec.materials) > 1:
            self.log.warn(
                f"MeshRenderer with multiple materials detected on {ctx.path}. "
                "Only first material is mapped to ModelComponent.",
                document.warnings,
            )
        first = spec.materials[0] if spec.materials else None
        entity.model = ModelPayload(
            enabled=spec.enabled,
            castShadows=spec.cast_shadows,
            receiveShadows=spec.receive_shadows,
            isStatic=node.is_static,
            meshAssetRelativePath=mesh_path,
            meshSource=spec.mesh.asset_path or "",
            meshWasBaked=baked,
            material=build_material(first, node.name, self.store),
        )

    def _collect_light(self, spec: LightSpec, ctx: _NodeContext, entity: SceneEntity, document: SceneDocument) -> None:
        if entity.directionalLight is not None or entity.pointLight is not None or entity.spotLight is not None:
            return
        color = _v3(spec.color, _VEC3_ONE)
        intensity = normalize_float(spec.intensity)
        light_type = (spec.light_type or "").lower()
        if light_type == "directional":
            entity.directionalLight = DirectionalLightPayload(
                enabled=spec.enabled, color=color, intensity=intensity, castShadows=spec.casts_shadows
            )
        elif light_type == "point":
            entity.pointLight = PointLightPayload(
                enabled=spec.enabled,
                color=color,
                intensity=intensity,
                radius=normalize_float(spec.range),
                castShadows=spec.casts_shadows,
            )
        elif light_type == "spot":
            entity.spotLight = SpotLightPayload(
                enabled=spec.enabled,
                color=color,
                intensity=intensity,
                range=normalize_float(spec.range),
                innerConeAngleDegrees=normalize_float(spec.inner_spot_angle),
                outerConeAngleDegrees=normalize_float(spec.spot_angle),
                castShadows=spec.casts_shadows,
            )
        else:
            self.log.warn(f"Unsupported light type on {ctx.path}: {spec.light_type}", document.warnings)

    def _collect_reflection_probe(
        self, spec: ReflectionProbeSpec, node, ctx: _NodeContext, entity: SceneEntity, document: SceneDocument
    ) -> None:
        if entity.reflectionProbe is not None:
            return
        cubemap_path = ""
        handle = spec.cubemap
        if handle is not None and not is_baked_or_transient(handle.asset_path or ""):
            cubemap_path = self.store.export_handle(handle, AssetKind.TEXTURE, f"{node.name}_reflection_probe")
        if cubemap_path:
            self.log.warn(
                f"ReflectionProbe exported as texture path on {ctx.path}. "
                "Runtime reflection probe import may require custom cubemap handling.",
                document.warnings,
            )
        entity.reflectionProbe = ReflectionProbePayload(
            enabled=spec.enabled,
            isBaked=not spec.refresh_every_frame,
            intensity=normalize_float(spec.intensity),
            size=_v3(spec.size, (10.0, 10.0, 10.0)),
            center=_v3(spec.center),
            cubemapPath=cubemap_path,
        )

    def _collect_camera(self, spec: CameraSpec, ctx: _NodeContext, entity: SceneEntity) -> None:
        if entity.camera is not None:
            return
        entity.camera = CameraPayload(
            enabled=spec.enabled,
            fov=normalize_float(spec.field_of_view),
            nearPlane=normalize_float(spec.near_clip),
            farPlane=normalize_float(spec.far_clip),
            aspect=normalize_float(spec.aspect if spec.aspect > 0.0 else DEFAULT_ASPECT),
            isActive=spec.enabled and ctx.active_in_hierarchy,
        )

    def _collect_rigidbody(self, spec: RigidbodySpec, entity: SceneEntity) -> None:
        if entity.rigidbody is not None:
            return
        entity.rigidbody = RigidbodyPayload(
            isKinematic=spec.is_kinematic,
            useGravity=spec.use_gravity,
            maxLinearVelocity=normalize_float(spec.max_linear_velocity),
            maxAngularVelocity=normalize_float(spec.max_angular_velocity),
            centerOfMass=_v3(spec.center_of_mass),
            linearVelocity=_v3(spec.linear_velocity),
            angularVelocity=_v3(spec.angular_velocity),
        )

    def _collect_collider(self, spec, node, ctx: _NodeContext, entity: SceneEntity, document: SceneDocument) -> None:
        if isinstance(spec, BoxColliderSpec) and entity.boxCollider is None:
            entity.boxCollider = BoxColliderPayload(
                enabled=spec.enabled, isTrigger=spec.is_trigger, size=_v3(spec.size, _VEC3_ONE), offset=_v3(spec.center)
            )
        elif isinstance(spec, SphereColliderSpec) and entity.sphereCollider is None:
            entity.sphereCollider = SphereColliderPayload(
                enabled=spec.enabled,
                isTrigger=spec.is_trigger,
                radius=normalize_float(spec.radius),
                offset=_v3(spec.center),
            )
        elif isinstance(spec, CapsuleColliderSpec) and entity.capsuleCollider is None:
            if spec.direction != 1:
                self.log.warn(f"CapsuleCollider direction != Y fallback on {ctx.path}", document.warnings)
            entity.capsuleCollider = CapsuleColliderPayload(
                enabled=spec.enabled,
                isTrigger=spec.is_trigger,
                radius=normalize_float(spec.radius),
                height=normalize_float(spec.height),
                direction=spec.direction,
                offset=_v3(spec.center),
            )
        elif isinstance(spec, MeshColliderSpec) and entity.meshCollider is None:
            mesh_path, baked = self._resolve_mesh(spec.mesh, f"{ctx.stable_id}_meshcol", f"{node.name}_mesh_collider")
            entity.meshCollider = MeshColliderPayload(
                enabled=spec.enabled,
                isTrigger=spec.is_trigger,
                meshAssetRelativePath=mesh_path,
                meshWasBaked=baked,
                meshSource=(spec.mesh.asset_path or "") if spec.mesh else "",
            )

    def _collect_terrain(self, spec: TerrainSpec, node, ctx: _NodeContext, entity: SceneEntity, document: SceneDocument) -> None:
        if entity.terrain is not None:
            return
        size = _v3(spec.size, _VEC3_ONE)
        terrain = TerrainPayload(enabled=spec.enabled, size=size)

        if spec.heights:
            try:
                terrain.heightmapTexture = self.store.export_generated_texture(
                    heightmap_pixels(spec.heights), f"{ctx.stable_id}_heightmap", f"{ctx.stable_id}_heightmap", AssetKind.TERRAIN
                )
            except TranscodeError as exc:
                self.log.warn(f"Terrain heightmap export failed on {ctx.path}: {exc}", document.warnings)
            ground = build_grid_mesh(spec.heights, size, f"{node.name}_terrain")
            terrain.meshAssetRelativePath = self.store.export_baked_mesh(
                ground, f"{ctx.stable_id}_terrain", f"{node.name}_terrain"
            )

        terrain.splatmapTexture = self._export_splatmap(spec, f"{ctx.stable_id}_splatmap")
        terrain.weightmapTexture = terrain.splatmapTexture
        self._validate_terrain_texture(ctx, "splatmap", terrain.splatmapTexture, document)

        if len(spec.layers) > MAX_TERRAIN_LAYERS:
            self.log.warn(
                f"Terrain on {ctx.path} has {len(spec.layers)} layers. "
                f"Only {MAX_TERRAIN_LAYERS} layers are supported. Extra layers are ignored.",
                document.warnings,
            )
        for index, layer in enumerate(spec.layers):
            if layer is None:
                continue
            payload = TerrainLayerPayload(
                index=index,
                name=layer.name,
                metallic=normalize_float(layer.metallic),
                smoothness=normalize_float(layer.smoothness),
                specularColor=_v3(layer.specular_color, (0.5, 0.5, 0.5)),
                tileOffset=normalize_vector(layer.tile_offset, (0.0, 0.0)),
                tileSize=normalize_vector(layer.tile_size, (1.0, 1.0)),
                albedoTexture=self.store.export_handle(layer.diffuse, AssetKind.TEXTURE, f"{layer.name}_albedo"),
                normalTexture=self.store.export_handle(layer.normal, AssetKind.TEXTURE, f"{layer.name}_normal"),
            )
            terrain.layers.append(payload)
            self._validate_terrain_texture(ctx, "layer albedo", payload.albedoTexture, document)
            self._validate_terrain_texture(ctx, "layer normal", payload.normalTexture, document)

        entity.terrain = terrain

    def _export_splatmap(self, spec: TerrainSpec, key: str) -> str:
        if spec.alphamap_texture is not None:
            path = self.store.export_handle(spec.alphamap_texture, AssetKind.TERRAIN, key)
            if path:
                return path
        if not spec.alphamaps:
            return ""
        pixels = splatmap_pixels(spec.alphamaps)
        if pixels is None:
            return ""
        return self.store.export_generated_texture(pixels, key, key, AssetKind.TERRAIN)

    def _validate_terrain_texture(self, ctx: _NodeContext, role: str, relative_path: str, document: SceneDocument) -> None:
        if relative_path and relative_path.lower().startswith(TERRAIN_TEXTURE_PREFIXES):
            return
        self.log.warn(f"Terrain texture export invalid or missing ({role}) on {ctx.path}.", document.warnings)

    def _collect_audio(self, spec: AudioSourceSpec, node, entity: SceneEntity) -> None:
        if entity.audioSource is not None:
            return
        clip_path = self.store.export_handle(spec.clip, AssetKind.AUDIO, f"{node.name}_audio")
        audio = AudioSourcePayload(
            enabled=spec.enabled,
            clipPath=clip_path,
            volume=normalize_float(spec.volume),
            pitch=normalize_float(spec.pitch),
            loop=spec.loop,
            playOnAwake=spec.play_on_awake,
            spatialize=spec.spatialize,
        )
        entity.audioSource = audio

        schema = audio_stub_schema()
        self.unifier.ensure_schema(schema)
        entity.customComponents.append(
            CustomComponentInstance(
                sourceType=schema.sourceType,
                generatedType=schema.generatedType,
                fields=[
                    CustomFieldInstance(name="clipPath", value=StringValue(value=audio.clipPath)),
                    CustomFieldInstance(name="volume", value=FloatValue(value=audio.volume)),
                    CustomFieldInstance(name="pitch", value=FloatValue(value=audio.pitch)),
                    CustomFieldInstance(name="loop", value=BoolValue(value=audio.loop)),
                    CustomFieldInstance(name="playOnAwake", value=BoolValue(value=audio.playOnAwake)),
                    CustomFieldInstance(name="spatialize", value=BoolValue(value=audio.spatialize)),
                ],
            )
        )

    # -- scene level ---------------------------------------------------

    def _collect_skybox(self, spec: Optional[SkyboxSpec], document: SceneDocument) -> Optional[Skybox]:
        if spec is None:
            return None
        scene = document.sceneName
        skybox = Skybox(materialName=spec.material_name, shaderName=spec.shader_name)

        if spec.six_sided and all(spec.six_sided.get(slot) is not None for slot in SIX_SIDED_SLOTS):
            paths = [
                self.store.export_handle(spec.six_sided[slot], AssetKind.TEXTURE, f"{scene}_skybox_{face}")
                for slot, face in zip(SIX_SIDED_SLOTS, SKYBOX_FACES)
            ]
            if all(paths):
                skybox.sourceType = "six_sided"
                skybox.cubemapFacePaths = paths
                return skybox

        if spec.cubemap_faces and len(spec.cubemap_faces) == len(SKYBOX_FACES):
            scene_key = to_snake_case(scene, "scene")
            paths = []
            for face, pixels in zip(SKYBOX_FACES, spec.cubemap_faces):
                key = f"{scene_key}_skybox_{face}"
                paths.append(self.store.export_generated_texture(pixels, key, key, AssetKind.TEXTURE))
            if all(paths):
                skybox.sourceType = "cubemap"
                skybox.cubemapFacePaths = paths
                return skybox
            self.log.warn(f"Failed to export cubemap skybox faces on scene {scene}", document.warnings)

        if spec.panoramic is not None:
            skybox.sourceType = "panoramic"
            skybox.panoramicTexture = self.store.export_handle(
                spec.panoramic, AssetKind.TEXTURE, f"{scene}_skybox_panoramic"
            )
            self.log.warn(
                f"Skybox panoramic texture exported as data only on scene {scene}. "
                "Runtime cubemap conversion is not implemented yet.",
                document.warnings,
            )
            return skybox

        self.log.warn(
            f"Skybox material exported without runtime mapping on scene {scene} ({skybox.shaderName}).",
            document.warnings,
        )
        return skybox
