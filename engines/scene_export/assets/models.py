"""Content store records and manifest entries."""
from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class AssetKind(str, Enum):
    MODEL = "model"
    TEXTURE = "texture"
    AUDIO = "audio"
    TERRAIN = "terrain"
    DATA = "data"


KIND_FOLDERS: Dict[AssetKind, str] = {
    AssetKind.MODEL: "models",
    AssetKind.TEXTURE: "textures",
    AssetKind.AUDIO: "audio",
    AssetKind.TERRAIN: "terrains",
    AssetKind.DATA: "data",
}

TEXTURE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".tga", ".tif", ".tiff", ".bmp", ".exr", ".hdr", ".psd"}
# no decoder is guaranteed on every runtime platform for these
TRANSCODE_TO_PNG_EXTENSIONS = {".tga", ".tif", ".tiff", ".psd"}
AUDIO_EXTENSIONS = {".wav", ".mp3", ".ogg", ".aif", ".aiff", ".flac"}
MODEL_EXTENSIONS = {".fbx", ".obj", ".dae", ".gltf", ".glb", ".blend", ".3ds", ".stl"}
NON_RUNTIME_EXTENSIONS = {".asset", ".terrainlayer"}


class ContentRecord(BaseModel):
    """One unique payload written to the bundle. Immutable once created."""

    source_key: Optional[str] = None
    content_hash: str = Field(..., description="sha256 hex digest of the stored bytes")
    relative_path: str
    kind: AssetKind
    byte_size: int

    model_config = {"frozen": True}

    def to_manifest_entry(self) -> "AssetManifestEntry":
        return AssetManifestEntry(
            kind=self.kind.value,
            source=self.source_key or "",
            relativePath=self.relative_path,
            sha256=self.content_hash,
            byteSize=self.byte_size,
        )


class AssetManifestEntry(BaseModel):
    kind: str
    source: str = ""
    relativePath: str
    sha256: str
    byteSize: int
