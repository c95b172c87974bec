"""Handedness conversions applied once before any backend sees the data.

Source data is left-handed with (x, y, z, w) quaternions and a bottom-left
texture origin. Baked OBJ files are mirrored on z, have their triangle
winding reversed and their v coordinate flipped; the three go together and
the runtime importer undoes all of them at load time.
"""
from __future__ import annotations

from typing import List, Sequence

from engines.scene_export.core.geometry import MeshData
from engines.scene_export.core.literals import format_float, normalize_vector

OBJ_HEADER = (
    "# scene export baked mesh",
    "# pre-converted for importer flags: MakeLeftHanded + FlipWindingOrder + FlipUVs",
)


def to_wxyz(rotation_xyzw: Sequence[float]) -> List[float]:
    """Reorder a source (x, y, z, w) quaternion into (w, x, y, z)."""
    x, y, z, w = normalize_vector(rotation_xyzw, (0.0, 0.0, 0.0, 1.0))
    return [w, x, y, z]


def bake_obj(mesh: MeshData) -> str:
    lines = list(OBJ_HEADER)
    lines.append(f"o {mesh.name or 'mesh'}")
    for vx, vy, vz in ((list(v) + [0.0, 0.0, 0.0])[:3] for v in mesh.vertices):
        lines.append(f"v {format_float(vx)} {format_float(vy)} {format_float(-vz)}")

    has_uv = mesh.has_uvs
    has_normals = mesh.has_normals
    if has_uv:
        for uv in mesh.uvs:
            lines.append(f"vt {format_float(uv[0])} {format_float(1.0 - uv[1])}")
    if has_normals:
        for nx, ny, nz in ((list(n) + [0.0, 0.0, 0.0])[:3] for n in mesh.normals):
            lines.append(f"vn {format_float(nx)} {format_float(ny)} {format_float(-nz)}")

    for a, b, c in mesh.triangles():
        # reversed winding: a, c, b (1-based)
        corners = (a + 1, c + 1, b + 1)
        if has_uv and has_normals:
            face = " ".join(f"{i}/{i}/{i}" for i in corners)
        elif has_uv:
            face = " ".join(f"{i}/{i}" for i in corners)
        elif has_normals:
            face = " ".join(f"{i}//{i}" for i in corners)
        else:
            face = " ".join(str(i) for i in corners)
        lines.append(f"f {face}")
    return "\n".join(lines) + "\n"


def import_obj(text: str, name: str = "mesh") -> MeshData:
    """Read a baked OBJ back applying the importer flags.

    This is the inverse of :func:`bake_obj`: z is mirrored back, v is flipped
    back and each face's winding is reversed again.
    """
    mesh = MeshData(name=name)
    triangles: List[int] = []
    for raw in text.splitlines():
        parts = raw.strip().split()
        if not parts or parts[0].startswith("#"):
            continue
        tag = parts[0]
        if tag == "o" and len(parts) > 1:
            mesh.name = parts[1]
        elif tag == "v":
            x, y, z = (float(p) for p in parts[1:4])
            mesh.vertices.append([x, y, -z])
        elif tag == "vt":
            u, v = (float(p) for p in parts[1:3])
            mesh.uvs.append([u, 1.0 - v])
        elif tag == "vn":
            x, y, z = (float(p) for p in parts[1:4])
            mesh.normals.append([x, y, -z])
        elif tag == "f":
            corners = [int(p.split("/")[0]) - 1 for p in parts[1:4]]
            a, c, b = corners
            triangles.extend([a, b, c])
    if triangles:
        mesh.submeshes.append(triangles)
    return mesh
