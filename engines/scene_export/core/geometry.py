"""Mesh data handed over by producers, in the source (left-handed) convention."""
from __future__ import annotations

from typing import List, Sequence

from pydantic import BaseModel, Field, field_validator


class MeshData(BaseModel):
    """Indexed triangle mesh.

    ``vertices``/``normals`` are xyz triples, ``uvs`` are uv pairs and each
    entry of ``submeshes`` is a flat triangle index list.
    """

    name: str = "mesh"
    vertices: List[List[float]] = Field(default_factory=list)
    normals: List[List[float]] = Field(default_factory=list)
    uvs: List[List[float]] = Field(default_factory=list)
    submeshes: List[List[int]] = Field(default_factory=list)

    @field_validator("submeshes")
    @classmethod
    def _check_triangles(cls, value: List[List[int]]) -> List[List[int]]:
        for indices in value:
            if len(indices) % 3 != 0:
                raise ValueError("submesh index count must be a multiple of 3")
        return value

    @property
    def has_uvs(self) -> bool:
        return bool(self.uvs) and len(self.uvs) == len(self.vertices)

    @property
    def has_normals(self) -> bool:
        return bool(self.normals) and len(self.normals) == len(self.vertices)

    def triangles(self) -> List[tuple]:
        out = []
        for indices in self.submeshes:
            for i in range(0, len(indices), 3):
                out.append((indices[i], indices[i + 1], indices[i + 2]))
        return out


def build_grid_mesh(heights: Sequence[Sequence[float]], size: Sequence[float], name: str = "terrain") -> MeshData:
    """Ground mesh over a normalized height grid (rows along z, columns along x)."""
    rows = len(heights)
    cols = len(heights[0]) if rows else 0
    mesh = MeshData(name=name)
    if rows < 2 or cols < 2:
        return mesh

    sx, sy, sz = (list(size) + [1.0, 1.0, 1.0])[:3]
    for z in range(rows):
        for x in range(cols):
            u = x / (cols - 1)
            v = z / (rows - 1)
            mesh.vertices.append([u * sx, float(heights[z][x]) * sy, v * sz])
            mesh.uvs.append([u, v])
            mesh.normals.append([0.0, 1.0, 0.0])

    indices: List[int] = []
    for z in range(rows - 1):
        for x in range(cols - 1):
            a = z * cols + x
            b = a + 1
            c = a + cols
            d = c + 1
            # clockwise seen from above, matching the source winding
            indices.extend([a, c, b, b, c, d])
    mesh.submeshes.append(indices)
    return mesh
