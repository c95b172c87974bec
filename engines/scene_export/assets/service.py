"""Content-addressed asset store for one export bundle.

``register_bytes`` is the single entry point that writes payloads: a source
key cache short-circuits repeat requests, the sha256 of the bytes is the
source of truth for deduplication, and a suggested sub-path that is already
taken by different content gets the first 8 hex digits of the hash appended.
"""
from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

import numpy as np

from engines.scene_export.assets.models import (
    AUDIO_EXTENSIONS,
    KIND_FOLDERS,
    MODEL_EXTENSIONS,
    NON_RUNTIME_EXTENSIONS,
    TEXTURE_EXTENSIONS,
    TRANSCODE_TO_PNG_EXTENSIONS,
    AssetKind,
    AssetManifestEntry,
    ContentRecord,
)
from engines.scene_export.assets.transcode import (
    TranscodeError,
    encode_pixels_png,
    is_png,
    transcode_to_png,
)
from engines.scene_export.core.conversions import bake_obj
from engines.scene_export.core.diagnostics import DiagnosticLog
from engines.scene_export.core.geometry import MeshData
from engines.scene_export.core.ids import normalize_relative_path, sha256_hex, to_snake_case
from engines.scene_export.producer.models import AssetHandle

logger = logging.getLogger(__name__)

EMPTY_SUBPATH = "generated/asset.bin"
HASH_SUFFIX_LENGTH = 8


def _extension(path: str) -> str:
    return posixpath.splitext(path)[1].lower()


def logical_sub_path(asset_path: str) -> str:
    """Strip a leading ``Assets/`` folder, otherwise keep only the file name."""
    if asset_path.lower().startswith("assets/"):
        return asset_path[len("assets/"):]
    return posixpath.basename(asset_path)


class ContentStore:
    def __init__(self, bundle_root: str, asset_root: Optional[str] = None, log: Optional[DiagnosticLog] = None):
        self.bundle_root = Path(bundle_root)
        self.asset_root = Path(asset_root) if asset_root else Path.cwd()
        self.log = log or DiagnosticLog()
        self.records: List[ContentRecord] = []
        self.counts: Dict[AssetKind, int] = {kind: 0 for kind in AssetKind}
        self.total_bytes = 0
        self._by_source: Dict[str, str] = {}
        self._by_hash: Dict[str, str] = {}
        self._used_paths: Set[str] = set()

    # -- core contract -------------------------------------------------

    def register_bytes(
        self,
        source_key: Optional[str],
        data: Optional[bytes],
        kind: AssetKind,
        suggested_sub_path: Optional[str],
    ) -> str:
        if not data:
            self.log.warn(f"Empty asset payload skipped: {source_key or suggested_sub_path or '<unnamed>'}")
            return ""

        cache_key = source_key.lower() if source_key and source_key.strip() else None
        if cache_key and cache_key in self._by_source:
            return self._by_source[cache_key]

        content_hash = sha256_hex(data)
        existing = self._by_hash.get(content_hash)
        if existing is not None:
            if cache_key:
                self._by_source[cache_key] = existing
            return existing

        relative_path = self._allocate_path(kind, suggested_sub_path, content_hash)
        target = self.bundle_root / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

        self._used_paths.add(relative_path.lower())
        self._by_hash[content_hash] = relative_path
        if cache_key:
            self._by_source[cache_key] = relative_path

        self.records.append(
            ContentRecord(
                source_key=source_key,
                content_hash=content_hash,
                relative_path=relative_path,
                kind=kind,
                byte_size=len(data),
            )
        )
        self.counts[kind] += 1
        self.total_bytes += len(data)
        logger.debug("stored %s (%d bytes) for %s", relative_path, len(data), source_key)
        return relative_path

    def _allocate_path(self, kind: AssetKind, suggested_sub_path: Optional[str], content_hash: str) -> str:
        clean = normalize_relative_path(suggested_sub_path or "").lstrip("/")
        if not clean.strip():
            clean = EMPTY_SUBPATH
        clean = clean.replace("..", "_")
        relative_path = posixpath.join("assets", KIND_FOLDERS[kind], clean)

        if relative_path.lower() in self._used_paths:
            directory, file_name = posixpath.split(relative_path)
            stem, ext = posixpath.splitext(file_name)
            relative_path = f"{directory}/{stem}_{content_hash[:HASH_SUFFIX_LENGTH]}{ext}"
            if relative_path.lower() in self._used_paths:
                relative_path = f"{directory}/{stem}_{content_hash}{ext}"
        return relative_path

    # -- typed entry points -------------------------------------------

    def export_asset_path(self, asset_path: Optional[str], kind: AssetKind) -> str:
        if not asset_path or not asset_path.strip():
            return ""
        asset_path = normalize_relative_path(asset_path)
        cached = self._by_source.get(asset_path.lower())
        if cached is not None:
            return cached

        absolute = self.asset_root / asset_path
        if not absolute.is_file():
            self.log.warn(f"Missing asset file: {asset_path}")
            return ""

        ext = _extension(asset_path)
        if not ext or ext in NON_RUNTIME_EXTENSIONS:
            self.log.warn(f"Skipping non-runtime asset file: {asset_path}")
            return ""

        data = absolute.read_bytes()
        sub_path = logical_sub_path(asset_path)
        if kind in (AssetKind.TEXTURE, AssetKind.TERRAIN) and ext in TRANSCODE_TO_PNG_EXTENSIONS:
            try:
                png = transcode_to_png(data)
            except TranscodeError as exc:
                logger.debug("transcode failed for %s: %s", asset_path, exc)
                self.log.warn(f"Failed to transcode texture to PNG, keeping original: {asset_path}")
            else:
                return self.register_bytes(asset_path, png, kind, posixpath.splitext(sub_path)[0] + ".png")

        return self.register_bytes(asset_path, data, kind, sub_path)

    def export_handle(self, handle: Optional[AssetHandle], kind: AssetKind, fallback_name: str) -> str:
        if handle is None:
            return ""
        if handle.asset_path and handle.asset_path.strip():
            return self.export_asset_path(handle.asset_path, kind)

        label = handle.name or fallback_name
        if not handle.data:
            self.log.warn(f"Asset object has no export path and unsupported fallback: {label}")
            return ""

        instance = handle.instance_key or sha256_hex(handle.data)[:16]
        if kind in (AssetKind.TEXTURE, AssetKind.TERRAIN):
            data = handle.data
            if not is_png(data):
                try:
                    data = transcode_to_png(data)
                except TranscodeError:
                    self.log.warn(f"Unable to encode texture to PNG: {label}")
                    return ""
            safe_name = to_snake_case(fallback_name, "texture")
            return self.register_bytes(f"generated:texture:{instance}", data, kind, f"generated/{safe_name}.png")

        ext = _extension(handle.name) or ".bin"
        safe_name = to_snake_case(fallback_name, kind.value)
        return self.register_bytes(f"generated:{kind.value}:{instance}", handle.data, kind, f"generated/{safe_name}{ext}")

    def export_generated_texture(
        self,
        pixels: np.ndarray,
        key: str,
        file_stem: str,
        kind: AssetKind = AssetKind.TEXTURE,
    ) -> str:
        try:
            data = encode_pixels_png(pixels)
        except TranscodeError as exc:
            self.log.warn(f"Unable to encode generated texture {file_stem}: {exc}")
            return ""
        safe_name = to_snake_case(file_stem, "generated_tex")
        return self.register_bytes(f"generated:texture:{key}", data, kind, f"generated/{safe_name}.png")

    def export_baked_mesh(self, mesh: Optional[MeshData], key: str, file_stem: str) -> str:
        if mesh is None or not mesh.vertices:
            return ""
        data = bake_obj(mesh).encode("utf-8")
        safe_name = to_snake_case(file_stem, "generated_mesh")
        return self.register_bytes(f"generated:mesh:{key}", data, AssetKind.MODEL, f"generated/{safe_name}.obj")

    def export_discovered_assets(self, asset_paths: Iterable[str]) -> None:
        for raw in sorted((p for p in asset_paths if p and p.strip()), key=str.lower):
            normalized = normalize_relative_path(raw)
            kind = self.classify_by_path(normalized)
            if kind is None:
                continue
            self.export_asset_path(normalized, kind)

    @staticmethod
    def classify_by_path(asset_path: Optional[str]) -> Optional[AssetKind]:
        if not asset_path:
            return None
        ext = _extension(asset_path)
        if ext in TEXTURE_EXTENSIONS:
            return AssetKind.TEXTURE
        if ext in AUDIO_EXTENSIONS:
            return AssetKind.AUDIO
        if ext in MODEL_EXTENSIONS:
            return AssetKind.MODEL
        return None

    # -- reporting -----------------------------------------------------

    def manifest_entries(self) -> List[AssetManifestEntry]:
        return [record.to_manifest_entry() for record in self.records]
