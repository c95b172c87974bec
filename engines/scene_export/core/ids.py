"""Identity derivation for scene entities, materials and generated C++ names."""
from __future__ import annotations

import hashlib
import logging
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)

ENTITY_ID_PREFIX = "go_"
MATERIAL_ID_PREFIX = "mat_"
DEFAULT_MATERIAL_ID = "mat_default"
ID_HASH_LENGTH = 16


def sha1_hex(text: str) -> str:
    return hashlib.sha1((text or "").encode("utf-8")).hexdigest()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def normalize_relative_path(path: str) -> str:
    return (path or "").replace("\\", "/")


def sanitize_identifier(value: Optional[str], fallback: str = "item") -> str:
    """Map ``value`` onto ``[A-Za-z0-9_]`` with no leading digit."""
    if not value or not value.strip():
        return fallback
    chars = [c if (c.isascii() and c.isalnum()) or c == "_" else "_" for c in value]
    clean = "".join(chars) or fallback
    if clean[0].isdigit():
        clean = "_" + clean
    return clean


def to_snake_case(value: Optional[str], fallback: str = "item") -> str:
    clean = sanitize_identifier(value, fallback)
    out = []
    for index, c in enumerate(clean):
        if c.isupper() and index > 0 and clean[index - 1] != "_":
            out.append("_")
        out.append(c.lower())
    return "".join(out)


def build_stable_id(path: str, persistent_id: Optional[str] = None) -> str:
    raw = f"{persistent_id}|{path}" if persistent_id else path
    return ENTITY_ID_PREFIX + sha1_hex(raw)[:ID_HASH_LENGTH]


def build_material_id(
    name: str,
    diffuse: str = "",
    normal: str = "",
    specular: str = "",
    emissive: str = "",
    ao: str = "",
    metallic: str = "",
) -> str:
    seed = "|".join(p or "" for p in (name, diffuse, normal, specular, emissive, ao, metallic))
    return MATERIAL_ID_PREFIX + sha1_hex(seed)[:ID_HASH_LENGTH]


class IdentityAssigner:
    """Per-scene stable id allocation.

    Paths are slash-joined node names. A sibling that repeats an earlier
    sibling's name gets ``[n]`` appended so paths stay unique even without a
    persistent id. A residual hash collision is re-derived with ``#n``.
    """

    def __init__(self) -> None:
        self._sibling_names: Dict[str, Dict[str, int]] = {}
        self._used: Set[str] = set()
        self.collisions = 0

    def child_path(self, parent_path: Optional[str], name: str) -> str:
        scope = parent_path or ""
        seen = self._sibling_names.setdefault(scope, {})
        occurrence = seen.get(name, 0)
        seen[name] = occurrence + 1
        segment = name if occurrence == 0 else f"{name}[{occurrence}]"
        return f"{parent_path}/{segment}" if parent_path else segment

    def assign(self, path: str, persistent_id: Optional[str] = None) -> str:
        stable_id = build_stable_id(path, persistent_id)
        attempt = 0
        while stable_id in self._used:
            attempt += 1
            self.collisions += 1
            logger.debug("stable id collision for %s, rehashing (%d)", path, attempt)
            stable_id = build_stable_id(f"{path}#{attempt}", persistent_id)
        self._used.add(stable_id)
        return stable_id
