from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple

from engines.scene_export.assets.service import ContentStore
from engines.scene_export.codegen.bindings import (
    BINDINGS_BY_KEY,
    MATERIAL_BINDINGS,
    TERRAIN_MATERIAL_BINDINGS,
    Binding,
    BindingKind,
)
from engines.scene_export.codegen.cpp_backend import CppSceneGenerator, scene_class_name
from engines.scene_export.codegen.json_backend import (
    entity_to_json,
    render_json,
    scene_json_path,
    scene_json_text,
    scene_to_json,
    write_scene_json,
)
from engines.scene_export.codegen.stages import STAGE_ORDER, run_stages
from engines.scene_export.codegen.statements import (
    ArrayLit,
    Assign,
    Block,
    BoolLit,
    Call,
    CallExpr,
    Comment,
    Declare,
    FloatLit,
    Ident,
    IntLit,
    InvalidRef,
    QuatLit,
    StrLit,
    VecLit,
)
from engines.scene_export.collector.audit import ComponentAudit
from engines.scene_export.collector.service import SceneCollector
from engines.scene_export.core.literals import normalize_float, normalize_vector
from engines.scene_export.custom_components.schema import CustomSchemaUnifier
from engines.scene_export.ir.models import (
    COMPONENT_KEYS,
    AudioSourcePayload,
    BoxColliderPayload,
    CameraPayload,
    CapsuleColliderPayload,
    CustomComponentInstance,
    CustomFieldInstance,
    DirectionalLightPayload,
    MaterialRecord,
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
from engines.scene_export.ir.values import FloatValue, Vector3Value
from engines.scene_export.tests.fixtures import main_scene


# -- a tiny evaluator over the generated statement tree -----------------


def _eval(expr, env: Dict[str, Any]) -> Any:
    if isinstance(expr, (FloatLit, IntLit, BoolLit, StrLit)):
        return expr.value
    if isinstance(expr, (VecLit, QuatLit)):
        return list(expr.values)
    if isinstance(expr, ArrayLit):
        return [_eval(item, env) for item in expr.items]
    if isinstance(expr, InvalidRef):
        return ""
    if isinstance(expr, Ident):
        return env.get(expr.name, expr.name)
    if isinstance(expr, CallExpr):
        if expr.func == "glm::radians":
            return _eval(expr.args[0], env)
        if expr.func.startswith("SceneExportRuntime::Load"):
            return _eval(expr.args[2], env)
        if expr.func in ("rm.RegisterMaterial", "rm.RegisterTerrainMaterial"):
            return ("registered", expr.args[0].args[0].name)
        return (expr.func, tuple(_eval(a, env) for a in expr.args))
    raise TypeError(expr)


def _execute(statements, env: Dict[str, Any], fields: Dict[str, Any]) -> None:
    for stmt in statements:
        if isinstance(stmt, Declare) and stmt.init is not None:
            env[stmt.name] = _eval(stmt.init, env)
        elif isinstance(stmt, Assign) and stmt.op == "=":
            fields[stmt.target] = _eval(stmt.value, env)
        elif isinstance(stmt, Call) and "." in stmt.expr.func:
            fields[stmt.expr.func] = tuple(_eval(a, env) for a in stmt.expr.args)
        elif isinstance(stmt, Block):
            _execute(stmt.body, env, fields)


def _run(statements) -> Tuple[Dict[str, Any], Dict[str, Any], Dict[str, Dict[str, Any]]]:
    """Execute shared statements, then each entity block in its own scope keyed by stable id."""
    env: Dict[str, Any] = {}
    fields: Dict[str, Any] = {}
    entities: Dict[str, Dict[str, Any]] = {}
    current = None
    for stmt in statements:
        if isinstance(stmt, Comment) and stmt.text.startswith("----- BEGIN ENTITY: "):
            current = stmt.text[len("----- BEGIN ENTITY: "):].split(" | ")[0]
            continue
        if current is not None and isinstance(stmt, Block) and stmt.header is None:
            scope: Dict[str, Any] = {}
            _execute(stmt.body, dict(env), scope)
            entities[current] = scope
            current = None
            continue
        _execute([stmt], env, fields)
    return env, fields, entities


def _expected(binding: Binding, value: Any) -> Any:
    kind = binding.kind
    if kind in (BindingKind.FLOAT, BindingKind.DEGREES):
        return normalize_float(value)
    if kind == BindingKind.BOOL:
        return bool(value)
    if kind in (BindingKind.VEC2, BindingKind.VEC3, BindingKind.VEC4):
        return normalize_vector(value, binding.default)
    if kind in (BindingKind.MESH_REF, BindingKind.TEXTURE_REF):
        return value or ""
    if kind == BindingKind.CONST_INVALID:
        return ""
    if kind == BindingKind.DERIVED:
        return list(value) if isinstance(value, tuple) else value
    raise AssertionError(kind)


def _assert_bindings(bindings, var: str, entity: Dict, component: Dict, fields: Dict[str, Any], materials: Dict) -> None:
    for binding in bindings:
        value = binding.source_value(entity, component)
        target = f"{var}.{binding.cpp_field}"
        if binding.kind == BindingKind.FLAG:
            continue
        if binding.kind == BindingKind.DERIVED and value is None:
            assert target not in fields, target
            continue
        if binding.guard_flag is not None:
            if value:
                assert fields[target] == value, target
            else:
                assert target not in fields, target
            continue
        actual = fields[target]
        if binding.setter:
            actual = list(actual) if len(actual) > 1 else actual[0]
        if binding.kind == BindingKind.MATERIAL_REF:
            if value is None:
                assert actual == "", target
                continue
            registered = actual
            assert registered[0] == "registered"
            _assert_bindings(MATERIAL_BINDINGS, registered[1], {}, value, materials, materials)
            continue
        assert actual == _expected(binding, value), target


def _assert_equivalent(document: SceneDocument) -> None:
    data = scene_to_json(document)
    env, shared_fields, entity_fields = _run(CppSceneGenerator().initialize_statements(document))
    assert set(entity_fields) == {e["stableId"] for e in data["entities"]}
    for entity in data["entities"]:
        fields = entity_fields[entity["stableId"]]
        assert fields["transform.position"] == entity["localPosition"]
        assert fields["transform.rotation"] == entity["localRotation"]
        assert fields["transform.scale"] == entity["localScale"]
        for key in COMPONENT_KEYS:
            component = entity.get(key)
            if component is None:
                continue
            binding = BINDINGS_BY_KEY[key]
            if key == "terrain":
                _assert_bindings(TERRAIN_MATERIAL_BINDINGS, "terrainMaterial", entity, component, fields, shared_fields)
            _assert_bindings(binding.fields, binding.var, entity, component, fields, shared_fields)


# -- fixtures -------------------------------------------------------------


def _rich_document() -> SceneDocument:
    brick = MaterialRecord(
        stableId="mat_brick",
        name="Brick",
        baseColor=[0.9, 0.3, 0.2, 1.0],
        emissionColor=[0.5, 0.1, 0.0, 0.0],
        emissionIntensity=0.5,
        shininess=36.0,
        alphaCutoff=0.35,
        transparent=True,
        uvScale=[2.0, 3.0],
        diffuseTexture="assets/textures/brick.png",
        normalTexture="assets/textures/brick_n.png",
    )
    glass = MaterialRecord(stableId="mat_glass", name="Glass", receiveShadows=False, doubleSided=True)
    terrain = TerrainPayload(
        size=[100.0, 20.0, 100.0],
        meshAssetRelativePath="assets/models/generated/ground_terrain.obj",
        splatmapTexture="assets/terrains/generated/splat.png",
        weightmapTexture="assets/terrains/generated/splat.png",
        layers=[
            TerrainLayerPayload(index=0, name="Grass", smoothness=0.5, metallic=0.2, tileSize=[4.0, 5.0], albedoTexture="assets/textures/grass.png"),
            TerrainLayerPayload(index=1, name="Rock", normalTexture="assets/textures/rock_n.png"),
        ],
    )
    return SceneDocument(
        sceneName="Rich",
        skybox=Skybox(sourceType="six_sided", cubemapFacePaths=[f"assets/textures/sky_{i}.png" for i in range(6)]),
        entities=[
            SceneEntity(
                stableId="go_01",
                name="Wall",
                tag="Level",
                localPosition=[1.0, 2.0, 3.0],
                localRotation=[0.707107, 0.0, 0.707107, 0.0],
                model=ModelPayload(meshAssetRelativePath="assets/models/wall.fbx", material=brick, isStatic=True),
                boxCollider=BoxColliderPayload(size=[2.0, 3.0, 0.5], isTrigger=True),
                rigidbody=RigidbodyPayload(isKinematic=True, centerOfMass=[0.0, 1.0, 0.0]),
            ),
            SceneEntity(
                stableId="go_02",
                parentStableId="go_01",
                name="Window",
                isActive=False,
                model=ModelPayload(meshAssetRelativePath="assets/models/window.obj", material=glass, castShadows=False),
                meshCollider=MeshColliderPayload(meshAssetRelativePath="assets/models/window.obj"),
                customComponents=[
                    CustomComponentInstance(
                        sourceType="Game.Spinner",
                        generatedType="ExportedSpinnerComponent",
                        fields=[
                            CustomFieldInstance(name="speed", value=FloatValue(value=2.5)),
                            CustomFieldInstance(name="axis", value=Vector3Value(value=[0.0, 1.0, 0.0])),
                        ],
                    )
                ],
            ),
            SceneEntity(
                stableId="go_03",
                name="Lights",
                directionalLight=DirectionalLightPayload(color=[1.0, 0.9, 0.8], intensity=1.2, castShadows=True),
                pointLight=PointLightPayload(radius=4.0),
                spotLight=SpotLightPayload(innerConeAngleDegrees=15.0, outerConeAngleDegrees=40.0, range=25.0),
                reflectionProbe=ReflectionProbePayload(cubemapPath="assets/textures/probe.png"),
            ),
            SceneEntity(
                stableId="go_04",
                name="Camera",
                camera=CameraPayload(fov=75.0, nearPlane=0.1, farPlane=500.0, aspect=1.5, isActive=False),
                sphereCollider=SphereColliderPayload(radius=0.25, offset=[0.0, 0.5, 0.0]),
                capsuleCollider=CapsuleColliderPayload(radius=0.3, height=1.8),
                audioSource=AudioSourcePayload(clipPath="assets/audio/step.wav", volume=0.4, pitch=1.1, loop=True),
            ),
            SceneEntity(stableId="go_05", name="Ground", isStatic=True, terrain=terrain),
            SceneEntity(stableId="go_06", parentStableId="go_missing", name="Orphan", model=ModelPayload()),
        ],
    )


def _collect(tmp_path, project_root, scene):
    store = ContentStore(str(tmp_path), str(project_root))
    return SceneCollector(store, CustomSchemaUnifier(store.log), ComponentAudit()).collect_scene(scene)


# -- tests ----------------------------------------------------------------


def test_stage_order_is_shared():
    calls: List[str] = []

    class Recorder:
        def __getattr__(self, name):
            return lambda ctx: calls.append(name)

    ctx = run_stages(SceneDocument(sceneName="Empty"), Recorder())
    assert calls == [f"emit_{stage.value}" for stage in STAGE_ORDER]
    assert ctx.completed == list(STAGE_ORDER)


def test_cpp_fields_match_json_document():
    _assert_equivalent(_rich_document())


def test_collected_scene_backends_agree(tmp_path, project_root):
    _assert_equivalent(_collect(tmp_path / "bundle", project_root, main_scene()))


def test_unresolved_references_use_sentinels():
    document = _rich_document()
    orphan = entity_to_json(next(e for e in document.entities if e.stableId == "go_06"))
    assert orphan["model"]["meshAssetRelativePath"] == ""

    text = CppSceneGenerator().cpp_text(document, "RichScene")
    assert "model.meshId = ResourceManager::INVALID_ID;" in text
    assert "audio.audioId = ResourceManager::INVALID_ID;" in text

    data = scene_to_json(document)
    assert next(e for e in data["entities"] if e["stableId"] == "go_06")["parentStableId"] == ""


def test_guarded_terrain_textures():
    text = CppSceneGenerator().cpp_text(_rich_document(), "RichScene")
    assert "terrainMaterial.featureFlags |= TerrainMaterialFlags::UseLayer0DiffuseMap;" in text
    assert "terrainMaterial.featureFlags |= TerrainMaterialFlags::UseLayer1NormalMap;" in text
    assert "TerrainMaterialFlags::UseLayer1DiffuseMap" not in text
    assert "terrainMaterial.featureFlags |= TerrainMaterialFlags::UseWeightMap;" in text
    assert "terrainMaterial.layer1Start = 0.5f;" in text


def test_cpp_text_structure():
    document = _rich_document()
    text = CppSceneGenerator().cpp_text(document, "RichScene")
    assert '#include "RichScene.hpp"' in text
    assert '#include "../components/generated_components.hpp"' in text
    assert "void RichScene::Initialize()" in text
    assert "transform.rotation = glm::quat(0.707107f, 0.0f, 0.707107f, 0.0f);" in text
    assert 'm_registry.emplace<TagComponent>(entity, TagComponent{"Level"});' in text
    assert text.count("TagComponent{") == 1
    assert "spotLight.outerConeAngle = glm::radians(40.0f);" in text
    assert "material_0.SetAlphaCutout(0.35f, true);" in text
    assert "material_0Flags |= MaterialFlags::ReceiveShadows;" in text
    assert text.count("|= MaterialFlags::ReceiveShadows;") == 1
    assert "custom_exported_spinner_component_1.speed = 2.5f;" in text
    assert "custom_exported_spinner_component_1.axis = glm::vec3(0.0f, 1.0f, 0.0f);" in text
    assert 'const std::array<std::string, 6> skyboxFaces = {"assets/textures/sky_0.png"' in text
    assert 'auto childIt = entityMap.find("go_02");' in text
    assert 'entityMap.find("go_missing")' not in text
    assert text.index("BEGIN ENTITY: go_01") < text.index("BEGIN ENTITY: go_02")


def test_header_and_class_names():
    generator = CppSceneGenerator("GameScene")
    header = generator.header_text("LevelScene")
    assert "class LevelScene : public GameScene" in header
    assert "entt::entity m_activeCameraEntity = entt::null;" in header
    assert scene_class_name("Level 1") == "Level_1Scene"
    assert scene_class_name("MainScene") == "MainScene"
    assert scene_class_name("Scene") == "ExportedScene"
    assert scene_class_name("9lives") == "_9livesScene"


def test_json_document_layout():
    document = _rich_document()
    data = scene_to_json(document)
    assert list(data) == ["schemaVersion", "sceneName", "renderSettings", "skybox", "entities", "warnings"]
    wall = data["entities"][0]
    assert list(wall)[:9] == [
        "stableId",
        "parentStableId",
        "name",
        "tag",
        "isStatic",
        "isActive",
        "localPosition",
        "localRotation",
        "localScale",
    ]
    assert wall["model"]["material"]["stableId"] == "mat_brick"
    assert "pointLight" not in wall
    window = data["entities"][1]
    assert window["customComponents"][0]["fields"][0] == {"name": "speed", "type": "float", "cppType": "float", "value": 2.5}

    text = scene_json_text(document)
    assert '"localPosition": [1.0, 2.0, 3.0]' in text
    assert json.loads(text)["sceneName"] == "Rich"


def test_render_json_float_format():
    assert render_json({"a": [1e-9, -0.0, 2.0], "b": {"c": True, "d": None}}) == (
        '{\n  "a": [0.0, 0.0, 2.0],\n  "b": {\n    "c": true,\n    "d": null\n  }\n}'
    )
    assert render_json([]) == "[]"
    assert render_json({}) == "{}"


def test_outputs_are_deterministic_across_traversal_order(tmp_path, project_root):
    forward = main_scene()
    backward = main_scene()
    backward.roots = list(reversed(backward.roots))
    first = _collect(tmp_path / "a", project_root, forward)
    second = _collect(tmp_path / "b", project_root, backward)
    assert scene_json_text(first) == scene_json_text(second)
    generator = CppSceneGenerator()
    assert generator.cpp_text(first, "MainScene") == generator.cpp_text(second, "MainScene")


def test_write_scene_json(tmp_path):
    document = SceneDocument(sceneName="My Level")
    assert scene_json_path("My Level") == "assets/data/scenes/My_Level.scene.json"
    rel = write_scene_json(tmp_path, document)
    assert rel == "assets/data/scenes/My_Level.scene.json"
    assert (tmp_path / rel).read_text(encoding="utf-8") == scene_json_text(document)


def test_write_scene_files(tmp_path):
    header, source = CppSceneGenerator().write_scene_files(tmp_path, SceneDocument(sceneName="Intro"))
    assert (header, source) == ("game/scenes/IntroScene.hpp", "game/scenes/IntroScene.cpp")
    assert "generated_components.hpp" not in (tmp_path / source).read_text()
