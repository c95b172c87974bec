"""Scene builders shared by the scene export tests."""
from __future__ import annotations

import io

from PIL import Image

from engines.scene_export.core.geometry import MeshData
from engines.scene_export.producer.models import (
    AssetHandle,
    BoxColliderSpec,
    CameraSpec,
    LightSpec,
    MaterialSpec,
    MeshRendererSpec,
    MeshSource,
    NodeSpec,
    SceneSource,
)

MAIN_SCENE_PATH = "Assets/Scenes/Main.unity"
WOOD_TEXTURE = "Assets/Textures/wood.tga"


def image_bytes(fmt: str, color=(200, 120, 40, 255), size=(4, 4)) -> bytes:
    out = io.BytesIO()
    Image.new("RGBA" if len(color) == 4 else "RGB", size, color).save(out, format=fmt)
    return out.getvalue()


def cube_mesh() -> MeshData:
    return MeshData(
        name="Cube",
        vertices=[[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]],
        normals=[[0.0, 0.0, -1.0], [0.0, 0.0, -1.0], [0.0, 0.0, -1.0], [0.0, 0.0, -1.0]],
        uvs=[[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [0.5, 0.5]],
        submeshes=[[0, 1, 2, 0, 2, 3]],
    )


def wood_material(name: str = "Wood") -> MaterialSpec:
    return MaterialSpec(
        name=name,
        base_color=[0.8, 0.7, 0.6, 1.0],
        smoothness=0.25,
        textures={"diffuse": AssetHandle(asset_path=WOOD_TEXTURE)},
    )


def cube_node(name: str = "Cube", material: MaterialSpec = None, **kw) -> NodeSpec:
    return NodeSpec(
        name=name,
        local_position=[1.0, 2.0, 3.0],
        components=[
            MeshRendererSpec(
                mesh=MeshSource(asset_path="Library/unity default resources", is_main_asset=False, mesh=cube_mesh(), name="Cube"),
                materials=[material or wood_material()],
            ),
            BoxColliderSpec(size=[1.0, 1.0, 1.0]),
        ],
        **kw,
    )


def main_scene(name: str = "Main", asset_path: str = MAIN_SCENE_PATH) -> SceneSource:
    return SceneSource(
        name=name,
        asset_path=asset_path,
        roots=[
            NodeSpec(name="Main Camera", tag="MainCamera", components=[CameraSpec(field_of_view=70.0)]),
            NodeSpec(name="Sun", components=[LightSpec(light_type="directional", intensity=1.5)]),
            cube_node(),
        ],
        dependencies=[WOOD_TEXTURE],
    )


