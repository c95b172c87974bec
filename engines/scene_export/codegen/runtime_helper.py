"""Loader helpers shared by every generated scene translation unit."""
from __future__ import annotations

from pathlib import Path
from typing import List

SCENES_DIR = "game/scenes"
HELPER_HEADER = "scene_export_runtime_helper.hpp"
HELPER_SOURCE = "scene_export_runtime_helper.cpp"

_HEADER = """#pragma once
#include <assets/resource_manager.hpp>
#include <array>
#include <cstdint>
#include <string>

namespace SceneExportRuntime
{
    std::string ResolveAssetPath(const std::string& exportRoot, const std::string& relativePath);
    uint32_t LoadTexture(ResourceManager& rm, const std::string& exportRoot, const std::string& relativePath);
    uint32_t LoadFirstMeshFromModel(ResourceManager& rm, const std::string& exportRoot, const std::string& relativePath);
    uint32_t LoadCubemap(ResourceManager& rm, const std::string& exportRoot, const std::array<std::string, 6>& faces);
} // namespace SceneExportRuntime
"""

_SOURCE = """#include "scene_export_runtime_helper.hpp"
#include <assets/model_importer.hpp>
#include <assets/texture_importer.hpp>
#include <filesystem>
#include <iostream>
#include <utility>

namespace
{
    bool FindFirstMesh(const ModelNode& node, uint32_t& meshId)
    {
        if (!node.meshIds.empty())
        {
            meshId = node.meshIds.front();
            return true;
        }
        for (const auto& child : node.children)
        {
            if (FindFirstMesh(child, meshId))
                return true;
        }
        return false;
    }
} // namespace

std::string SceneExportRuntime::ResolveAssetPath(const std::string& exportRoot, const std::string& relativePath)
{
    if (relativePath.empty())
        return {};
    const std::filesystem::path path(relativePath);
    if (path.is_absolute())
        return path.generic_string();
    const std::filesystem::path root(exportRoot.empty() ? std::string(".") : exportRoot);
    return (root / path).generic_string();
}

uint32_t SceneExportRuntime::LoadTexture(ResourceManager& rm, const std::string& exportRoot, const std::string& relativePath)
{
    if (relativePath.empty())
        return ResourceManager::INVALID_ID;
    const std::string fullPath = ResolveAssetPath(exportRoot, relativePath);
    Texture texture(0, 0);
    if (!TextureImporter::LoadTexture(fullPath, texture))
    {
        std::cerr << "[scene_export] texture load failed: " << fullPath << std::endl;
        return ResourceManager::INVALID_ID;
    }
    return rm.RegisterTexture(std::move(texture));
}

uint32_t SceneExportRuntime::LoadFirstMeshFromModel(ResourceManager& rm, const std::string& exportRoot, const std::string& relativePath)
{
    if (relativePath.empty())
        return ResourceManager::INVALID_ID;
    const std::string fullPath = ResolveAssetPath(exportRoot, relativePath);
    ModelImporter importer(rm);
    ModelNode root;
    if (!importer.LoadModel(fullPath, root))
    {
        std::cerr << "[scene_export] model load failed: " << fullPath << std::endl;
        return ResourceManager::INVALID_ID;
    }
    uint32_t meshId = ResourceManager::INVALID_ID;
    if (!FindFirstMesh(root, meshId))
        std::cerr << "[scene_export] model has no mesh: " << fullPath << std::endl;
    return meshId;
}

uint32_t SceneExportRuntime::LoadCubemap(ResourceManager& rm, const std::string& exportRoot, const std::array<std::string, 6>& faces)
{
    std::array<std::string, 6> fullPaths{};
    for (size_t i = 0; i < faces.size(); ++i)
    {
        if (faces[i].empty())
            return ResourceManager::INVALID_ID;
        fullPaths[i] = ResolveAssetPath(exportRoot, faces[i]);
    }
    Texture cubemap(0, 0);
    if (!TextureImporter::LoadCubemap(fullPaths, cubemap))
        return ResourceManager::INVALID_ID;
    return rm.RegisterTexture(std::move(cubemap));
}
"""


def write_runtime_helper(bundle_root: Path) -> List[str]:
    scenes_dir = Path(bundle_root) / SCENES_DIR
    scenes_dir.mkdir(parents=True, exist_ok=True)
    (scenes_dir / HELPER_HEADER).write_text(_HEADER, encoding="utf-8")
    (scenes_dir / HELPER_SOURCE).write_text(_SOURCE, encoding="utf-8")
    return [f"{SCENES_DIR}/{HELPER_HEADER}", f"{SCENES_DIR}/{HELPER_SOURCE}"]
