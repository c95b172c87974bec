"""Runnable project around the generated scenes: registry, entry point, CMake, README."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

from engines.scene_export.core.diagnostics import DiagnosticLog
from engines.scene_export.core.ids import sanitize_identifier
from engines.scene_export.core.literals import cpp_string
from engines.scene_export.pipeline.models import GeneratedProjectEntry, SceneManifestEntry

logger = logging.getLogger(__name__)

GAME_DIR = "game"
SRC_DIR = "game/src"
ENGINE_LINK = "engine"
ENGINE_TARGET = "Engine"
REGISTRY_HEADER = "scene_registry.hpp"
REGISTRY_SOURCE = "scene_registry.cpp"
MODE_CPP = "cpp"
MODE_JSON = "json"


def _game_relative(path: str) -> str:
    path = (path or "").replace("\\", "/")
    return path[len("game/"):] if path.lower().startswith("game/") else path


def registry_header_text() -> str:
    return "\n".join(
        [
            "#pragma once",
            "#include <scene/scene.hpp>",
            "#include <memory>",
            "#include <string>",
            "#include <vector>",
            "",
            "std::unique_ptr<Scene> CreateSceneByName(const std::string& name, const std::string& exportRoot);",
            "std::vector<std::string> GetSceneNames();",
        ]
    ) + "\n"


def registry_source_text(scenes: List[SceneManifestEntry], use_json_runtime: bool) -> str:
    lines = [f'#include "{REGISTRY_HEADER}"']
    if use_json_runtime:
        lines.append("#include <scene/json_runtime_scene.hpp>")
    else:
        for scene in scenes:
            lines.append(f"#include {cpp_string('../' + _game_relative(scene.sceneHeaderPath))}")
    lines += [
        "",
        "std::unique_ptr<Scene> CreateSceneByName(const std::string& name, const std::string& exportRoot)",
        "{",
    ]
    for scene in scenes:
        lines.append(f"    if (name == {cpp_string(scene.sceneName)})")
        if use_json_runtime:
            lines.append(
                f"        return std::make_unique<JsonRuntimeScene>(name, {cpp_string(scene.sceneJsonPath)}, exportRoot);"
            )
        else:
            lines.append(f"        return std::make_unique<{scene.sceneClassName}>(exportRoot);")
    lines += [
        "    return nullptr;",
        "}",
        "",
        "std::vector<std::string> GetSceneNames()",
        "{",
        "    return {",
    ]
    for index, scene in enumerate(scenes):
        suffix = "," if index < len(scenes) - 1 else ""
        lines.append(f"        {cpp_string(scene.sceneName)}{suffix}")
    lines += ["    };", "}"]
    return "\n".join(lines) + "\n"


def main_text(project_name: str, default_scene: str) -> str:
    return f"""#include "{REGISTRY_HEADER}"
#include <core/game.hpp>
#include <core/game_settings.hpp>
#include <algorithm>
#include <iostream>
#include <string>
#include <utility>
#include <vector>

static std::string ArgumentValue(int argc, char* argv[], const std::string& flag)
{{
    const std::string prefix = flag + "=";
    for (int i = 1; i < argc; ++i)
    {{
        const std::string arg = argv[i];
        if (arg == flag && i + 1 < argc)
            return argv[i + 1];
        if (arg.rfind(prefix, 0) == 0)
            return arg.substr(prefix.size());
    }}
    return {{}};
}}

int main(int argc, char* argv[])
{{
    const std::vector<std::string> sceneNames = GetSceneNames();
    if (sceneNames.empty())
    {{
        std::cerr << "No generated scenes available." << std::endl;
        return 1;
    }}

    std::string sceneName = {cpp_string(default_scene)};
    const std::string requested = ArgumentValue(argc, argv, "--scene");
    if (!requested.empty())
    {{
        if (std::find(sceneNames.begin(), sceneNames.end(), requested) != sceneNames.end())
            sceneName = requested;
        else
            std::cerr << "Unknown scene '" << requested << "', loading " << sceneName << std::endl;
    }}

    std::string exportRoot = ArgumentValue(argc, argv, "--export-root");
    if (exportRoot.empty())
        exportRoot = ".";

    GameSettings settings;
    settings.resolutionWidth = 1280;
    settings.resolutionHeight = 720;
    Game game({cpp_string(project_name)}, settings);
    auto& sceneManager = game.GetSceneManager();
    for (const auto& name : sceneNames)
        sceneManager.AddScene(name, CreateSceneByName(name, exportRoot));
    sceneManager.LoadScene(sceneName);
    game.Run();
    return 0;
}}
"""


def root_cmake_text(project_name: str) -> str:
    return f"""cmake_minimum_required(VERSION 3.20)
project({project_name} VERSION 1.0.0 LANGUAGES CXX)

set(CMAKE_CXX_STANDARD 20)
set(CMAKE_CXX_STANDARD_REQUIRED ON)
set(CMAKE_EXPORT_COMPILE_COMMANDS ON)

set(ENGINE_DIR "${{CMAKE_CURRENT_LIST_DIR}}/{ENGINE_LINK}")
if(NOT EXISTS "${{ENGINE_DIR}}/CMakeLists.txt")
    message(FATAL_ERROR "Engine not found. Link or copy the engine checkout to ${{ENGINE_DIR}}")
endif()

add_subdirectory("{ENGINE_LINK}" EXCLUDE_FROM_ALL)
add_subdirectory("game")
"""


def game_cmake_text(project_name: str, scenes: List[SceneManifestEntry], use_json_runtime: bool) -> str:
    sources = ['    "${CMAKE_CURRENT_LIST_DIR}/src/main.cpp"', f'    "${{CMAKE_CURRENT_LIST_DIR}}/src/{REGISTRY_SOURCE}"']
    if not use_json_runtime:
        sources.append('    "${CMAKE_CURRENT_LIST_DIR}/scenes/scene_export_runtime_helper.cpp"')
        for scene in scenes:
            sources.append(f'    "${{CMAKE_CURRENT_LIST_DIR}}/{_game_relative(scene.sceneCppPath)}"')
    lines = [f"add_executable({project_name}"] + sources + [")", ""]
    lines += [
        f"target_include_directories({project_name} PRIVATE",
        '    "${CMAKE_CURRENT_LIST_DIR}/src"',
        '    "${CMAKE_CURRENT_LIST_DIR}/scenes"',
        '    "${CMAKE_CURRENT_LIST_DIR}/components"',
        ")",
        "",
        f"target_link_libraries({project_name} PRIVATE {ENGINE_TARGET})",
        "",
        'set(EXPORT_ASSETS_DIR "${CMAKE_CURRENT_LIST_DIR}/../assets")',
        f"add_custom_command(TARGET {project_name} POST_BUILD",
        f'    COMMAND ${{CMAKE_COMMAND}} -E copy_directory "${{EXPORT_ASSETS_DIR}}" "$<TARGET_FILE_DIR:{project_name}>/assets"',
        ")",
    ]
    return "\n".join(lines) + "\n"


def readme_text(project_name: str, default_scene: str, mode: str) -> str:
    loading = "generated C++ scenes" if mode == MODE_CPP else "JSON runtime scenes"
    return f"""# {project_name}

- Default scene: `{default_scene}`
- Scene loading: {loading}

Link or copy the engine checkout to `./{ENGINE_LINK}`, then:

    cmake -S . -B build
    cmake --build build
    build/game/{project_name} --scene "{default_scene}" --export-root .
"""


def _link_engine(bundle_root: Path, engine_root: str, log: DiagnosticLog) -> bool:
    link = bundle_root / ENGINE_LINK
    if link.exists():
        return True
    if not engine_root or not Path(engine_root).is_dir():
        return False
    try:
        os.symlink(Path(engine_root).resolve(), link, target_is_directory=True)
    except OSError as exc:
        log.warn(f"Could not link engine checkout {engine_root}: {exc}")
        return False
    return True


def write_project(
    bundle_root: Path,
    scenes: List[SceneManifestEntry],
    project_name: str,
    convert_scene_to_cpp: bool = True,
    engine_root: str = "",
    log: Optional[DiagnosticLog] = None,
) -> GeneratedProjectEntry:
    log = log or DiagnosticLog()
    root = Path(bundle_root)
    use_json_runtime = not convert_scene_to_cpp
    if use_json_runtime:
        runtime = [s for s in scenes if s.sceneJsonPath.strip()]
    else:
        runtime = [s for s in scenes if s.sceneCppPath.strip() and s.sceneHeaderPath.strip()]
    runtime.sort(key=lambda s: s.sceneName.lower())
    if not runtime:
        log.error(
            "C++ project generation skipped: no scene JSON files found in manifest."
            if use_json_runtime
            else "C++ project generation skipped: no generated scene C++ files found in manifest."
        )
        return GeneratedProjectEntry()

    name = sanitize_identifier(project_name, "ExportedProject")
    default_scene = runtime[0].sceneName
    mode = MODE_JSON if use_json_runtime else MODE_CPP
    (root / SRC_DIR).mkdir(parents=True, exist_ok=True)

    files = {
        "CMakeLists.txt": root_cmake_text(name),
        f"{GAME_DIR}/CMakeLists.txt": game_cmake_text(name, runtime, use_json_runtime),
        f"{SRC_DIR}/{REGISTRY_HEADER}": registry_header_text(),
        f"{SRC_DIR}/{REGISTRY_SOURCE}": registry_source_text(runtime, use_json_runtime),
        f"{SRC_DIR}/main.cpp": main_text(name, default_scene),
        "README.md": readme_text(name, default_scene, mode),
    }
    for rel, text in files.items():
        (root / rel).write_text(text, encoding="utf-8")
    logger.info("wrote %s project for %d scenes", mode, len(runtime))

    return GeneratedProjectEntry(
        rootPath=".",
        cmakePath="CMakeLists.txt",
        gameCmakePath=f"{GAME_DIR}/CMakeLists.txt",
        mainPath=f"{SRC_DIR}/main.cpp",
        sceneRegistryHeaderPath=f"{SRC_DIR}/{REGISTRY_HEADER}",
        sceneRegistryCppPath=f"{SRC_DIR}/{REGISTRY_SOURCE}",
        readmePath="README.md",
        engineLinkPath=ENGINE_LINK,
        engineLinkCreated=_link_engine(root, engine_root, log),
        defaultSceneName=default_scene,
        sceneLoadingMode=mode,
    )
