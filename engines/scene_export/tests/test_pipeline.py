from __future__ import annotations

import json
from pathlib import Path

import pytest

from engines.config import runtime_config
from engines.scene_export.codegen.project import registry_source_text, write_project
from engines.scene_export.collector.service import SceneCollector
from engines.scene_export.core.diagnostics import DiagnosticLog
from engines.scene_export.ir.values import FloatValue
from engines.scene_export.pipeline.errors import ExportFailedError, ExportValidationError
from engines.scene_export.pipeline.models import ExportOptions, SceneManifestEntry
from engines.scene_export.pipeline.service import (
    SceneExportPipeline,
    preview_scenes,
    run_export,
    safe_directory_name,
)
from engines.scene_export.producer.models import NodeSpec, SceneSource, ScriptFieldSpec, ScriptSpec
from engines.scene_export.producer.protocol import AssetScope, InMemorySceneProvider, is_baked_or_transient
from engines.scene_export.tests.fixtures import MAIN_SCENE_PATH, main_scene

MISSING_SCENE = "Assets/Scenes/Missing.unity"


def _provider(project_root: Path, *scenes: SceneSource) -> InMemorySceneProvider:
    return InMemorySceneProvider(scenes or [main_scene()], str(project_root))


def _read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


def test_full_export_writes_bundle(export_options, project_root, tmp_path):
    result = run_export(export_options, _provider(project_root))
    bundle = tmp_path / "out" / "Demo"
    assert result.bundleRoot == str(bundle.resolve())
    assert not result.has_errors

    for rel in (
        "assets/data/scenes/Main.scene.json",
        "assets/data/manifest.json",
        "assets/data/report.json",
        "assets/data/report.txt",
        "assets/data/game.json",
        "assets/data/component_audit.json",
        "assets/data/component_audit.md",
        "assets/textures/Textures/wood.png",
        "game/scenes/MainScene.hpp",
        "game/scenes/MainScene.cpp",
        "game/scenes/scene_export_runtime_helper.hpp",
        "game/scenes/scene_export_runtime_helper.cpp",
        "game/components/generated_components.hpp",
        "game/src/main.cpp",
        "game/src/scene_registry.cpp",
        "CMakeLists.txt",
        "README.md",
    ):
        assert (bundle / rel).is_file(), rel

    manifest = _read_json(bundle / "assets/data/manifest.json")
    assert manifest["schemaVersion"] == "1.2.0"
    assert manifest["projectName"] == "Demo"
    assert manifest["generatedAtUtc"] == "2026-01-01T00:00:00+00:00"
    assert manifest["options"]["generateCpp"] is True
    scene = manifest["scenes"][0]
    assert scene["sceneClassName"] == "MainScene"
    assert scene["sceneJsonPath"] == "assets/data/scenes/Main.scene.json"
    assert scene["entityCount"] == 3
    assert manifest["gameDataPath"] == "assets/data/game.json"
    assert manifest["generatedProject"]["sceneLoadingMode"] == "cpp"
    assert {a["relativePath"] for a in manifest["assets"]} >= {"assets/textures/Textures/wood.png"}

    report = _read_json(bundle / "assets/data/report.json")
    assert report["schemaVersion"] == "1.1.0"
    assert report["errors"] == []
    assert report["stats"]["sceneCount"] == 1
    assert report["stats"]["entityCount"] == 3
    assert report["stats"]["materialCount"] == 1
    assert report["stats"]["textureCount"] == 1
    assert report["stats"]["modelAssetCount"] == 1

    game = _read_json(bundle / "assets/data/game.json")
    assert game["defaultSceneName"] == "Main"
    assert game["scenes"][0]["sceneCppPath"] == "game/scenes/MainScene.cpp"

    text = (bundle / "assets/data/report.txt").read_text()
    assert "- Scenes: 1" in text
    assert "Errors: none" in text


def test_exports_are_byte_identical(export_options, project_root, tmp_path):
    run_export(export_options, _provider(project_root))
    bundle = tmp_path / "out" / "Demo"
    first = {rel: (bundle / rel).read_bytes() for rel in ("assets/data/scenes/Main.scene.json", "game/scenes/MainScene.cpp")}
    run_export(export_options, _provider(project_root))
    for rel, data in first.items():
        assert (bundle / rel).read_bytes() == data


@pytest.mark.parametrize(
    "changes, message",
    [
        ({"scene_paths": []}, "No scenes were selected for export."),
        ({"output_root": " "}, "Output root is empty."),
        ({"generate_cpp": False, "generate_json": False, "generate_cpp_project": False}, "At least one output mode must be enabled (C++ or JSON)."),
        ({"convert_scene_to_cpp": False, "generate_json": False}, "JSON output is required when convertSceneToCpp is disabled."),
        ({"generate_cpp": False}, "C++ project generation requires generateCpp=true."),
    ],
)
def test_invalid_options(export_options, project_root, changes, message):
    options = export_options.model_copy(update=changes)
    assert options.validate_options() == message
    result = run_export(options, _provider(project_root))
    assert result.report.errors == ["Invalid export options: " + message]
    assert result.scenes == []


def test_invalid_options_write_failure_report(export_options, project_root, tmp_path):
    options = export_options.model_copy(update={"scene_paths": []})
    run_export(options, _provider(project_root))
    report = _read_json(tmp_path / "out" / "Demo" / "assets/data/report.json")
    assert report["errors"] == ["Invalid export options: No scenes were selected for export."]
    assert not (tmp_path / "out" / "Demo" / "game").exists()


def test_invalid_options_raise_when_failing_fast(export_options, project_root):
    options = export_options.model_copy(update={"scene_paths": [], "fail_on_error": True})
    with pytest.raises(ExportValidationError, match="No scenes were selected"):
        run_export(options, _provider(project_root))


def test_blank_names_fall_back_to_defaults(export_options):
    options = export_options.model_copy(update={"base_scene_class": " ", "generated_project_name": ""})
    assert options.validate_options() is None
    assert options.base_scene_class == "Scene"
    assert options.generated_project_name == "ExportedProject"


def test_unreadable_scene_is_reported_and_others_continue(export_options, project_root, tmp_path):
    options = export_options.model_copy(update={"scene_paths": [MAIN_SCENE_PATH, MISSING_SCENE]})
    result = run_export(options, _provider(project_root))
    assert result.report.errors == [f"Scene export failed for {MISSING_SCENE}: Scene path not found: {MISSING_SCENE}"]
    assert [d.sceneName for d in result.scenes] == ["Main"]
    assert (tmp_path / "out" / "Demo" / "assets/data/scenes/Main.scene.json").is_file()


def test_fail_fast_raises_after_outputs(export_options, project_root, tmp_path):
    options = export_options.model_copy(update={"scene_paths": [MAIN_SCENE_PATH, MISSING_SCENE], "fail_on_error": True})
    with pytest.raises(ExportFailedError) as excinfo:
        run_export(options, _provider(project_root))
    assert str(excinfo.value) == "Export completed with errors. See report.json."
    assert len(excinfo.value.errors) == 1
    report = _read_json(tmp_path / "out" / "Demo" / "assets/data/report.json")
    assert report["errors"] == excinfo.value.errors


def test_collector_bug_is_not_reported_as_unreadable_scene(export_options, project_root, tmp_path, monkeypatch):
    def broken_collect(self, source):
        raise ValueError("bad vertex layout")

    monkeypatch.setattr(SceneCollector, "collect_scene", broken_collect)
    with pytest.raises(ValueError, match="bad vertex layout"):
        run_export(export_options, _provider(project_root))
    report = _read_json(tmp_path / "out" / "Demo" / "assets/data/report.json")
    assert report["errors"] == ["Unexpected export failure: ValueError('bad vertex layout')"]
    assert not any(e.startswith("Scene export failed") for e in report["errors"])


def test_in_memory_mesh_scene_is_exported(export_options, project_root, tmp_path):
    result = run_export(export_options, _provider(project_root))
    assert result.report.errors == []
    assert [d.sceneName for d in result.scenes] == ["Main"]
    baked = tmp_path / "out" / "Demo" / "assets/models/generated/cube_mesh.obj"
    assert baked.read_text(encoding="utf-8").count("\nv ") == 4


def test_no_readable_scenes(export_options, project_root):
    options = export_options.model_copy(update={"scene_paths": [MISSING_SCENE]})
    result = run_export(options, _provider(project_root))
    assert "No scenes were exported. Check the scene list and input scene paths." in result.report.errors
    assert "C++ project generation skipped: no generated scene C++ files found in manifest." in result.report.errors


def test_json_runtime_mode(export_options, project_root, tmp_path):
    options = export_options.model_copy(update={"convert_scene_to_cpp": False})
    result = run_export(options, _provider(project_root))
    bundle = tmp_path / "out" / "Demo"
    assert not (bundle / "game/scenes/MainScene.cpp").exists()
    assert (bundle / "game/scenes/scene_export_runtime_helper.cpp").is_file()
    registry = (bundle / "game/src/scene_registry.cpp").read_text()
    assert "#include <scene/json_runtime_scene.hpp>" in registry
    assert 'std::make_unique<JsonRuntimeScene>(name, "assets/data/scenes/Main.scene.json", exportRoot);' in registry
    assert result.manifest.scenes[0].sceneClassName == ""
    assert result.manifest.generatedProject.sceneLoadingMode == "json"
    assert any(w.startswith("Scene C++ generation disabled (convertSceneToCpp=false).") for w in result.report.warnings)


def test_json_only_export(export_options, project_root, tmp_path):
    options = export_options.model_copy(update={"generate_cpp": False, "generate_cpp_project": False})
    result = run_export(options, _provider(project_root))
    bundle = tmp_path / "out" / "Demo"
    assert (bundle / "assets/data/scenes/Main.scene.json").is_file()
    assert not (bundle / "game/scenes/MainScene.cpp").exists()
    assert not (bundle / "CMakeLists.txt").exists()
    assert result.manifest.generatedProject is None
    assert result.manifest.scenes[0].sceneHeaderPath == ""


def test_duplicate_scene_names_get_unique_outputs(export_options, project_root):
    first = main_scene("Main", "Assets/Scenes/A/Main.unity")
    second = main_scene("Main", "Assets/Scenes/B/Main.unity")
    options = export_options.model_copy(update={"scene_paths": [first.asset_path, second.asset_path]})
    result = run_export(options, _provider(project_root, first, second))
    entries = result.manifest.scenes
    assert [e.sceneJsonPath for e in entries] == [
        "assets/data/scenes/Main.scene.json",
        "assets/data/scenes/Main_2.scene.json",
    ]
    assert [e.sceneClassName for e in entries] == ["MainScene", "MainScene_2"]
    assert entries[1].sceneCppPath == "game/scenes/MainScene_2.cpp"


def test_clean_output_removes_stale_files(export_options, project_root, tmp_path):
    stale = tmp_path / "out" / "Demo" / "stale.txt"
    stale.parent.mkdir(parents=True)
    stale.write_text("old")
    run_export(export_options, _provider(project_root))
    assert not stale.exists()


def test_all_assets_scope_skips_baked_data(export_options, project_root):
    (project_root / "Assets" / "Audio").mkdir(parents=True)
    (project_root / "Assets" / "Audio" / "theme.wav").write_bytes(b"RIFF0000WAVE")
    (project_root / "Assets" / "Scenes" / "Main").mkdir(parents=True)
    (project_root / "Assets" / "Scenes" / "Main" / "Lightmap-0_comp_light.exr").write_bytes(b"baked")
    options = export_options.model_copy(update={"asset_scope": AssetScope.ALL_ASSETS})
    result = run_export(options, _provider(project_root))
    paths = {a.relativePath for a in result.manifest.assets}
    assert "assets/audio/Audio/theme.wav" in paths
    assert not any("lightmap" in p.lower() for p in paths)
    assert result.report.stats.audioAssetCount == 1


def test_baked_or_transient_paths():
    assert is_baked_or_transient("Assets/Scenes/Main/LightingData.asset")
    assert is_baked_or_transient("Assets/Scenes/Main/ReflectionProbe-0.exr")
    assert is_baked_or_transient("Assets/ProBuilder Data/mesh.asset")
    assert not is_baked_or_transient("Assets/Textures/wood.tga")


def test_custom_components_flow_into_headers(export_options, project_root, tmp_path):
    scene = main_scene()
    scene.roots.append(
        NodeSpec(
            name="Fan",
            components=[ScriptSpec(type_name="Game.Spinner", fields=[ScriptFieldSpec(name="speed", value=FloatValue(value=3.0))])],
        )
    )
    result = run_export(export_options, _provider(project_root, scene))
    bundle = tmp_path / "out" / "Demo"
    assert "game/components/generated/exported_spinner_component.hpp" in result.manifest.generatedComponentHeaders
    assert result.report.stats.generatedCustomComponentCount == 1
    assert result.manifest.scenes[0].customComponentCount == 1
    assert '#include "../components/generated_components.hpp"' in (bundle / "game/scenes/MainScene.cpp").read_text()


def test_preview_collects_without_codegen(export_options, project_root, tmp_path):
    documents, report = preview_scenes(export_options, _provider(project_root))
    assert [d.sceneName for d in documents] == ["Main"]
    assert report.errors == []
    assert not (tmp_path / "out" / "Demo" / "game" / "scenes" / "MainScene.cpp").exists()


def test_safe_directory_name():
    assert safe_directory_name('My:Game?') == "My_Game_"
    assert safe_directory_name("  ") == "ExportedProject"


def test_pipeline_uses_timestamp_override(export_options, project_root):
    pipeline = SceneExportPipeline(export_options, _provider(project_root))
    assert pipeline.report.generatedAtUtc == "2026-01-01T00:00:00+00:00"
    assert pipeline.manifest.options.generatedProjectName == "Demo"


def _entry(name: str, cls: str) -> SceneManifestEntry:
    return SceneManifestEntry(
        sceneName=name,
        sceneJsonPath=f"assets/data/scenes/{name}.scene.json",
        sceneHeaderPath=f"game/scenes/{cls}.hpp",
        sceneCppPath=f"game/scenes/{cls}.cpp",
        sceneClassName=cls,
    )


def test_project_registry_in_cpp_mode(tmp_path):
    log = DiagnosticLog()
    entries = [_entry("Zeta", "ZetaScene"), _entry("alpha", "alphaScene")]
    project = write_project(tmp_path, entries, "My Game", convert_scene_to_cpp=True, log=log)
    assert project.defaultSceneName == "alpha"
    assert project.sceneLoadingMode == "cpp"
    assert not project.engineLinkCreated

    registry = (tmp_path / "game/src/scene_registry.cpp").read_text()
    assert '#include "../scenes/alphaScene.hpp"' in registry
    assert "return std::make_unique<ZetaScene>(exportRoot);" in registry
    assert registry.index('"alpha"') < registry.index('"Zeta"')

    cmake = (tmp_path / "CMakeLists.txt").read_text()
    assert "project(My_Game VERSION 1.0.0 LANGUAGES CXX)" in cmake
    game_cmake = (tmp_path / "game/CMakeLists.txt").read_text()
    assert '"${CMAKE_CURRENT_LIST_DIR}/scenes/ZetaScene.cpp"' in game_cmake
    main = (tmp_path / "game/src/main.cpp").read_text()
    assert 'std::string sceneName = "alpha";' in main
    assert log.errors == []


def test_project_skipped_without_runtime_scenes(tmp_path):
    log = DiagnosticLog()
    entries = [SceneManifestEntry(sceneName="Main")]
    project = write_project(tmp_path, entries, "Demo", convert_scene_to_cpp=False, log=log)
    assert project.rootPath == ""
    assert log.errors == ["C++ project generation skipped: no scene JSON files found in manifest."]
    assert not (tmp_path / "CMakeLists.txt").exists()


def test_registry_source_lists_scene_names():
    text = registry_source_text([_entry("Main", "MainScene")], use_json_runtime=False)
    assert "std::vector<std::string> GetSceneNames()" in text
    assert '        "Main"\n' in text


def test_engine_checkout_is_linked(tmp_path):
    engine = tmp_path / "engine_src"
    engine.mkdir()
    bundle = tmp_path / "bundle"
    project = write_project(bundle, [_entry("Main", "MainScene")], "Demo", engine_root=str(engine))
    assert project.engineLinkCreated
    assert (bundle / "engine").resolve() == engine.resolve()


def test_default_options_from_environment(monkeypatch):
    monkeypatch.setenv("SCENE_EXPORT_OUTPUT_ROOT", "/tmp/exports")
    monkeypatch.setenv("SCENE_EXPORT_FAIL_ON_ERROR", "true")
    options = ExportOptions(scene_paths=[MAIN_SCENE_PATH])
    assert options.output_root == "/tmp/exports"
    assert options.fail_on_error is True
    assert options.generated_project_name == "TestProject"


def test_config_snapshot_reflects_environment(monkeypatch):
    monkeypatch.setenv("SCENE_EXPORT_ENGINE_ROOT", "/opt/engine")
    monkeypatch.setenv("SCENE_EXPORT_FAIL_ON_ERROR", "0")
    monkeypatch.delenv("SCENE_EXPORT_OUTPUT_ROOT", raising=False)
    snapshot = runtime_config.config_snapshot()
    assert snapshot["engine_root"] == "/opt/engine"
    assert snapshot["output_root"] == runtime_config.DEFAULT_OUTPUT_ROOT
    assert snapshot["base_scene_class"] == "Scene"
    assert snapshot["fail_on_error"] is False
