"""Procedural backend: one C++ scene class per scene document.

Initialize() is built as a statement list through the shared emission stages
and rendered with :class:`CppRenderer`. Component fields are assigned from the
binding table over the same dicts the JSON backend serializes.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from engines.scene_export.codegen.bindings import (
    BINDINGS_BY_KEY,
    MATERIAL_BINDINGS,
    TERRAIN_MATERIAL_BINDINGS,
    ComponentBinding,
    emit_bindings,
)
from engines.scene_export.codegen.json_backend import entity_to_json
from engines.scene_export.codegen.runtime_helper import HELPER_HEADER, SCENES_DIR
from engines.scene_export.codegen.stages import EmitContext, run_stages
from engines.scene_export.codegen.statements import (
    ArrayLit,
    Assign,
    Blank,
    Block,
    BoolLit,
    Call,
    CallExpr,
    Comment,
    CppRenderer,
    Declare,
    Ident,
    IntLit,
    QuatLit,
    Raw,
    Statement,
    StrLit,
    vec,
    value_expr,
)
from engines.scene_export.core.ids import sanitize_identifier, to_snake_case
from engines.scene_export.core.literals import cpp_bool, cpp_float, cpp_string, escape_cpp_string, normalize_vector
from engines.scene_export.ir.models import COMPONENT_KEYS, SceneDocument, SceneEntity

logger = logging.getLogger(__name__)

DEFAULT_BASE_CLASS = "Scene"
ENTITY_VAR = "entity"
GENERATED_COMPONENTS_INCLUDE = "../components/generated_components.hpp"

_ENGINE_INCLUDES = (
    "<assets/mesh_factory.hpp>",
    "<assets/resource_manager.hpp>",
    "<SDL3/SDL.h>",
    "<graphics/material.hpp>",
    "<graphics/terrain_material.hpp>",
    "<scene/components/audio_components.hpp>",
    "<scene/components/components.hpp>",
    "<scene/components/lighting_components.hpp>",
    "<scene/components/mesh_components.hpp>",
    "<scene/components/physics_components.hpp>",
    "<scene/hierarchy.hpp>",
)
_STD_INCLUDES = ("<array>", "<string>", "<unordered_map>", "<utility>")


def scene_class_name(scene_name: str, base_class: str = DEFAULT_BASE_CLASS) -> str:
    name = sanitize_identifier(scene_name, "Exported")
    if not name.endswith("Scene"):
        name += "Scene"
    if name == (base_class or DEFAULT_BASE_CLASS):
        name = "Exported" + name
    return name


def _emplace(cpp_type: str, value: str) -> Call:
    return Call(CallExpr(f"m_registry.emplace<{cpp_type}>", (Ident(ENTITY_VAR), Ident(value))))


def _braced(cpp_type: str, text: str) -> Ident:
    return Ident(f"{cpp_type}{{{cpp_string(text)}}}")


class CppStageEmitter:
    """Collects the body of ``Initialize()``."""

    def __init__(self) -> None:
        self.statements: List[Statement] = []

    def emit_preamble(self, ctx: EmitContext) -> None:
        self.statements += [
            Declare("auto&", "rm", CallExpr("ResourceManager::GetInstance")),
            Declare("std::unordered_map<std::string, entt::entity>", "entityMap"),
            Call(CallExpr("entityMap.reserve", (IntLit(len(ctx.entities)),))),
            Blank(),
        ]

    def emit_shared_resources(self, ctx: EmitContext) -> None:
        out = self.statements
        loader_args = (Ident("rm"), Ident("m_exportRoot"))
        for var, path in ctx.resources.textures():
            out.append(Declare("uint32_t", var, CallExpr("SceneExportRuntime::LoadTexture", loader_args + (StrLit(path),)), const=True))
        if ctx.resources.texture_paths:
            out.append(Blank())
        for var, path in ctx.resources.meshes():
            out.append(Declare("uint32_t", var, CallExpr("SceneExportRuntime::LoadFirstMeshFromModel", loader_args + (StrLit(path),)), const=True))
        if ctx.resources.mesh_paths:
            out.append(Blank())

        for index, key, record in ctx.resources.materials():
            var = f"material_{index}"
            out.append(Comment(f"Material: {escape_cpp_string(record.name)} ({escape_cpp_string(key)})"))
            out.append(Declare("Material", var))
            out.append(Declare("uint32_t", f"{var}Flags", IntLit(0)))
            out.extend(emit_bindings(MATERIAL_BINDINGS, var, {}, record.model_dump(), ctx.resources))
            out.append(Assign(f"{var}.featureFlags", Ident(f"{var}Flags"), op="|="))
            register = CallExpr("rm.RegisterMaterial", (CallExpr("std::move", (Ident(var),)),))
            out.append(Declare("uint32_t", f"materialId_{index}", register, const=True))
            out.append(Blank())

        settings = ctx.document.renderSettings
        out += [
            Comment("Render settings (not mapped to runtime state)"),
            Comment("AmbientLight: " + _vec3_text(settings.ambientLight)),
            Comment("AmbientIntensity: " + cpp_float(settings.ambientIntensity)),
            Comment("FogEnabled: " + cpp_bool(settings.fogEnabled)),
            Comment("FogColor: " + _vec3_text(settings.fogColor)),
            Comment("FogDensity: " + cpp_float(settings.fogDensity)),
            Blank(),
        ]

        skybox = ctx.document.skybox
        if skybox is not None and skybox.has_cubemap:
            faces = ArrayLit(tuple(StrLit(p) for p in skybox.cubemapFacePaths))
            out += [
                Declare("std::array<std::string, 6>", "skyboxFaces", faces, const=True),
                Declare("uint32_t", "skyboxCubemapId", CallExpr("SceneExportRuntime::LoadCubemap", loader_args + (Ident("skyboxFaces"),)), const=True),
                Block(
                    header="if (skyboxCubemapId != ResourceManager::INVALID_ID)",
                    body=[
                        Declare("entt::entity", "skyboxEntity", CallExpr("m_registry.create"), const=True),
                        Call(CallExpr("m_registry.emplace<NameComponent>", (Ident("skyboxEntity"), _braced("NameComponent", "Skybox")))),
                        Declare("SkyboxComponent", "skybox"),
                        Assign("skybox.cubemapTextureId", Ident("skyboxCubemapId")),
                        Assign("skybox.enabled", BoolLit(True)),
                        Call(CallExpr("m_registry.emplace<SkyboxComponent>", (Ident("skyboxEntity"), Ident("skybox")))),
                    ],
                ),
                Blank(),
            ]

    def emit_entities(self, ctx: EmitContext) -> None:
        for index, entity in enumerate(ctx.entities):
            label = escape_cpp_string(entity.name)
            self.statements.append(Comment(f"----- BEGIN ENTITY: {entity.stableId} | {label} -----"))
            self.statements.append(Block(body=self._entity_body(ctx, index, entity)))
            self.statements.append(Comment(f"----- END ENTITY: {entity.stableId} -----"))
            self.statements.append(Blank())

    def _entity_body(self, ctx: EmitContext, index: int, entity: SceneEntity) -> List[Statement]:
        body: List[Statement] = [
            Declare("entt::entity", ENTITY_VAR, CallExpr("m_registry.create"), const=True),
            Assign(f"entityMap[{cpp_string(entity.stableId)}]", Ident(ENTITY_VAR)),
            Call(CallExpr("m_registry.emplace<NameComponent>", (Ident(ENTITY_VAR), _braced("NameComponent", entity.name)))),
        ]
        if entity.tag and entity.tag != "Untagged":
            body.append(Call(CallExpr("m_registry.emplace<TagComponent>", (Ident(ENTITY_VAR), _braced("TagComponent", entity.tag)))))
        body += [
            Declare("TransformComponent", "transform"),
            Assign("transform.position", vec(normalize_vector(entity.localPosition, (0.0, 0.0, 0.0)))),
            Assign("transform.rotation", QuatLit(tuple(normalize_vector(entity.localRotation, (1.0, 0.0, 0.0, 0.0))))),
            Assign("transform.scale", vec(normalize_vector(entity.localScale, (1.0, 1.0, 1.0)))),
            _emplace("TransformComponent", "transform"),
        ]

        data = entity_to_json(entity)
        for key in COMPONENT_KEYS:
            component = data.get(key)
            if component is None:
                continue
            binding = BINDINGS_BY_KEY[key]
            if key == "terrain":
                body += self._terrain(ctx, data, component, binding)
                continue
            body.append(Declare(binding.cpp_type, binding.var))
            body.extend(emit_bindings(binding.fields, binding.var, data, component, ctx.resources))
            body.append(_emplace(binding.cpp_type, binding.var))

        for custom in entity.customComponents:
            if not custom.generatedType.strip():
                continue
            var = f"custom_{to_snake_case(custom.generatedType)}_{index}"
            body.append(Declare(custom.generatedType, var))
            for field in custom.fields:
                body.append(Assign(f"{var}.{sanitize_identifier(field.name, 'field')}", value_expr(field.value)))
            body.append(_emplace(custom.generatedType, var))
        return body

    def _terrain(self, ctx: EmitContext, entity: Dict, component: Dict, binding: ComponentBinding) -> List[Statement]:
        out: List[Statement] = [
            Declare("TerrainMaterial", "terrainMaterial"),
            Assign("terrainMaterial.featureFlags", Ident("TerrainMaterialFlags::ReceiveShadows")),
        ]
        out.extend(emit_bindings(TERRAIN_MATERIAL_BINDINGS, "terrainMaterial", entity, component, ctx.resources))
        out.append(Declare(binding.cpp_type, binding.var))
        out.extend(emit_bindings(binding.fields, binding.var, entity, component, ctx.resources))
        register = CallExpr("rm.RegisterTerrainMaterial", (CallExpr("std::move", (Ident("terrainMaterial"),)),))
        out.append(Assign(f"{binding.var}.terrainMaterialId", register))
        out.append(_emplace(binding.cpp_type, binding.var))
        return out

    def emit_hierarchy_links(self, ctx: EmitContext) -> None:
        known = ctx.document.entity_ids()
        links = [e for e in ctx.entities if e.parentStableId and e.parentStableId in known]
        if not links:
            return
        self.statements.append(Comment("Hierarchy"))
        for entity in links:
            self.statements.append(
                Block(
                    body=[
                        Declare("auto", "childIt", CallExpr("entityMap.find", (StrLit(entity.stableId),))),
                        Declare("auto", "parentIt", CallExpr("entityMap.find", (StrLit(entity.parentStableId),))),
                        Block(
                            header="if (childIt != entityMap.end() && parentIt != entityMap.end())",
                            body=[
                                Call(
                                    CallExpr(
                                        "Hierarchy::AttachChild",
                                        (Ident("m_registry"), Ident("parentIt->second"), Ident("childIt->second")),
                                    )
                                )
                            ],
                        ),
                    ]
                )
            )
        self.statements.append(Blank())

    def emit_epilogue(self, ctx: EmitContext) -> None:
        self.statements += [
            Comment("Use the first active camera; activate the first camera when none is active."),
            Declare("auto", "cameraView", CallExpr("m_registry.view<CameraComponent>")),
            Block(
                header="for (auto cameraEntity : cameraView)",
                body=[
                    Raw("if (!cameraView.get<CameraComponent>(cameraEntity).isActive)"),
                    Raw("    continue;"),
                    Assign("m_activeCameraEntity", Ident("cameraEntity")),
                    Raw("break;"),
                ],
            ),
            Block(
                header="if (m_activeCameraEntity == entt::null)",
                body=[
                    Block(
                        header="for (auto cameraEntity : cameraView)",
                        body=[
                            Assign("m_activeCameraEntity", Ident("cameraEntity")),
                            Assign("cameraView.get<CameraComponent>(cameraEntity).isActive", BoolLit(True)),
                            Raw("break;"),
                        ],
                    )
                ],
            ),
        ]


def _vec3_text(values) -> str:
    return CppRenderer().render_expr(vec(normalize_vector(values, (0.0, 0.0, 0.0))))


class CppSceneGenerator:
    def __init__(self, base_class: str = DEFAULT_BASE_CLASS) -> None:
        self.base_class = base_class or DEFAULT_BASE_CLASS
        self.renderer = CppRenderer()

    def class_name(self, scene_name: str) -> str:
        return scene_class_name(scene_name, self.base_class)

    def initialize_statements(self, document: SceneDocument) -> List[Statement]:
        emitter = CppStageEmitter()
        run_stages(document, emitter)
        return emitter.statements

    def header_text(self, class_name: str) -> str:
        lines = [
            "#pragma once",
            "#include <scene/scene.hpp>",
            "#include <string>",
            "",
            f"class {class_name} : public {self.base_class}",
            "{",
            "  public:",
            f'    explicit {class_name}(std::string exportRoot = ".");',
            "    void Initialize() override;",
            "    void Unload() override;",
            "    void Update(const GameTime& gameTime) override;",
            "    void OnEvent(const GameTime& gameTime, const SDL_Event& event) override;",
            "    void OnGUI(const GameTime& gameTime) override;",
            "",
            "  private:",
            "    std::string m_exportRoot;",
            "    entt::entity m_activeCameraEntity = entt::null;",
            "};",
        ]
        return "\n".join(lines) + "\n"

    def cpp_text(self, document: SceneDocument, class_name: str) -> str:
        includes = [f'#include "{class_name}.hpp"', f'#include "{HELPER_HEADER}"']
        includes += [f"#include {inc}" for inc in _ENGINE_INCLUDES]
        if document.custom_component_count:
            includes.append(f'#include "{GENERATED_COMPONENTS_INCLUDE}"')
        includes += [f"#include {inc}" for inc in _STD_INCLUDES]

        lines = includes + [
            "",
            f"{class_name}::{class_name}(std::string exportRoot) : m_exportRoot(std::move(exportRoot)) {{}}",
            "",
            f"void {class_name}::Initialize()",
            "{",
        ]
        lines += self.renderer.render(self.initialize_statements(document))
        lines += [
            "}",
            "",
            f"void {class_name}::Unload()",
            "{",
            "    m_registry.clear();",
            "    m_activeCameraEntity = entt::null;",
            "}",
            "",
            f"void {class_name}::Update(const GameTime& gameTime)",
            "{",
            "    (void)gameTime;",
            "}",
            "",
            f"void {class_name}::OnEvent(const GameTime& gameTime, const SDL_Event& event)",
            "{",
            "    (void)gameTime;",
            "    (void)event;",
            "}",
            "",
            f"void {class_name}::OnGUI(const GameTime& gameTime)",
            "{",
            "    (void)gameTime;",
            "}",
        ]
        return "\n".join(lines) + "\n"

    def write_scene_files(
        self, bundle_root: Path, document: SceneDocument, class_name: Optional[str] = None
    ) -> Tuple[str, str]:
        """Write ``<Class>.hpp`` and ``<Class>.cpp``; returns their bundle-relative paths."""
        class_name = class_name or self.class_name(document.sceneName)
        scenes_dir = Path(bundle_root) / SCENES_DIR
        scenes_dir.mkdir(parents=True, exist_ok=True)
        header_rel = f"{SCENES_DIR}/{class_name}.hpp"
        cpp_rel = f"{SCENES_DIR}/{class_name}.cpp"
        (Path(bundle_root) / header_rel).write_text(self.header_text(class_name), encoding="utf-8")
        (Path(bundle_root) / cpp_rel).write_text(self.cpp_text(document, class_name), encoding="utf-8")
        logger.info("wrote scene class %s (%d entities)", class_name, len(document.entities))
        return header_rel, cpp_rel
