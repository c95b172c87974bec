from __future__ import annotations

from pathlib import Path

import pytest

from engines.scene_export.pipeline.models import ExportOptions
from engines.scene_export.tests.fixtures import MAIN_SCENE_PATH, WOOD_TEXTURE, image_bytes


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Source project with one .tga texture on disk."""
    root = tmp_path / "project"
    texture = root / WOOD_TEXTURE
    texture.parent.mkdir(parents=True)
    texture.write_bytes(image_bytes("TGA"))
    return root


@pytest.fixture
def export_options(tmp_path: Path, project_root: Path) -> ExportOptions:
    return ExportOptions(
        output_root=str(tmp_path / "out"),
        scene_paths=[MAIN_SCENE_PATH],
        asset_root=str(project_root),
        generated_project_name="Demo",
        engine_root_path="",
        fail_on_error=False,
        timestamp="2026-01-01T00:00:00+00:00",
    )
