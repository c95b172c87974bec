"""Interfaces the exporter consumes. The core never sees host object types."""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence

from engines.scene_export.core.ids import normalize_relative_path
from engines.scene_export.pipeline.errors import SceneReadError
from engines.scene_export.producer.models import ComponentSpec, SceneSource


class AssetScope(str, Enum):
    DEPENDENCIES_ONLY = "dependencies_only"
    ALL_ASSETS = "all_assets"


class SceneNodeSource(Protocol):
    name: str
    persistent_id: Optional[str]
    tag: str
    is_static: bool
    active_self: bool
    local_position: List[float]
    local_rotation: List[float]
    local_scale: List[float]

    def iter_components(self) -> Iterator[ComponentSpec]:
        ...

    def iter_children(self) -> Iterator["SceneNodeSource"]:
        ...


class SceneProvider(Protocol):
    def open_scene(self, scene_path: str) -> SceneSource:
        """Load one scene; raise SceneReadError when it cannot be read."""
        ...

    def discover_assets(self, scene_paths: Sequence[str], scope: AssetScope) -> Iterable[str]:
        ...


_BAKED_PREFIXES = ("lightmap-", "reflectionprobe-")
_BAKED_NAMES = {"lightingdata.asset", "lightprobes.asset"}


def is_baked_or_transient(asset_path: str) -> bool:
    """Lighting bakes and editor-generated data never ship with the bundle."""
    if not asset_path or not asset_path.strip():
        return False
    normalized = normalize_relative_path(asset_path)
    file_name = normalized.rsplit("/", 1)[-1].lower()
    if file_name.startswith(_BAKED_PREFIXES) or file_name in _BAKED_NAMES:
        return True
    return "/probuilder data/" in normalized.lower()


class InMemorySceneProvider:
    """Provider over already-materialized :class:`SceneSource` objects."""

    def __init__(self, scenes: Iterable[SceneSource], asset_root: Optional[str] = None):
        self._scenes: Dict[str, SceneSource] = {}
        for scene in scenes:
            self._scenes[normalize_relative_path(scene.asset_path).lower()] = scene
        self.asset_root = Path(asset_root) if asset_root else None

    @property
    def scene_paths(self) -> List[str]:
        return [s.asset_path for s in self._scenes.values()]

    def open_scene(self, scene_path: str) -> SceneSource:
        scene = self._scenes.get(normalize_relative_path(scene_path).lower())
        if scene is None:
            raise SceneReadError(f"Scene path not found: {scene_path}")
        return scene

    def discover_assets(self, scene_paths: Sequence[str], scope: AssetScope) -> Iterable[str]:
        found: Dict[str, str] = {}
        if scope == AssetScope.ALL_ASSETS and self.asset_root is not None:
            base = self.asset_root / "Assets"
            if base.is_dir():
                for path in base.rglob("*"):
                    if path.is_file():
                        rel = path.relative_to(self.asset_root).as_posix()
                        if not is_baked_or_transient(rel):
                            found.setdefault(rel.lower(), rel)
            return sorted(found.values(), key=str.lower)

        for scene_path in scene_paths:
            scene = self._scenes.get(normalize_relative_path(scene_path).lower())
            if scene is None:
                continue
            for dep in scene.dependencies:
                if dep and dep.strip() and not is_baked_or_transient(dep):
                    rel = normalize_relative_path(dep)
                    found.setdefault(rel.lower(), rel)
        return sorted(found.values(), key=str.lower)
