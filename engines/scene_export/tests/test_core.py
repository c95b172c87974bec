from __future__ import annotations

import math

from engines.scene_export.core.conversions import bake_obj, import_obj, to_wxyz
from engines.scene_export.core.diagnostics import DiagnosticLog
from engines.scene_export.core.geometry import MeshData, build_grid_mesh
from engines.scene_export.core.ids import (
    IdentityAssigner,
    build_material_id,
    build_stable_id,
    sanitize_identifier,
    to_snake_case,
)
from engines.scene_export.core.literals import (
    cpp_float,
    cpp_string,
    format_float,
    normalize_float,
    normalize_vector,
)
from engines.scene_export.ir.models import SceneDocument, SceneEntity, validate_hierarchy


def test_float_normalization_policy():
    assert normalize_float(math.nan) == 0.0
    assert normalize_float(math.inf) == 0.0
    assert normalize_float(None) == 0.0
    assert format_float(-0.0) == "0.0"
    assert format_float(-1e-9) == "0.0"
    assert format_float(1.0) == "1.0"
    assert format_float(0.1234567) == "0.123457"
    assert format_float(1e-7) == "0.0"
    assert format_float(100000.0) == "100000.0"
    assert cpp_float(2.5) == "2.5f"


def test_normalize_vector_pads_and_truncates():
    assert normalize_vector([1.0], (0.0, 0.0, 5.0)) == [1.0, 0.0, 5.0]
    assert normalize_vector([1.0, 2.0, 3.0, 4.0], (0.0, 0.0)) == [1.0, 2.0]
    assert normalize_vector(None, (1.0, 1.0)) == [1.0, 1.0]


def test_cpp_string_escaping():
    assert cpp_string('say "hi"\\now\n') == '"say \\"hi\\"\\\\now\\n"'
    assert cpp_string(None) == '""'


def test_identifier_sanitizing():
    assert sanitize_identifier("3d Model-1") == "_3d_Model_1"
    assert sanitize_identifier("", "Scene") == "Scene"
    assert sanitize_identifier("Café") == "Caf_"
    assert to_snake_case("PlayerController") == "player_controller"
    assert to_snake_case("Speaker_audio") == "speaker_audio"


def test_sibling_paths_get_occurrence_suffix():
    ids = IdentityAssigner()
    first = ids.child_path(None, "Cube")
    second = ids.child_path(None, "Cube")
    child = ids.child_path(first, "Handle")
    assert (first, second, child) == ("Cube", "Cube[1]", "Cube/Handle")


def test_stable_ids_are_deterministic():
    def assign_all():
        ids = IdentityAssigner()
        return [ids.assign(ids.child_path(None, name)) for name in ("A", "B", "A")]

    first, second = assign_all(), assign_all()
    assert first == second
    assert len(set(first)) == 3
    assert all(i.startswith("go_") and len(i) == 19 for i in first)
    assert build_stable_id("A", "pid-1") != build_stable_id("A")


def test_identity_collision_is_rehashed():
    ids = IdentityAssigner()
    a = ids.assign("Root")
    b = ids.assign("Root")
    assert a != b
    assert ids.collisions == 1


def test_material_id_depends_on_textures():
    plain = build_material_id("Wood")
    textured = build_material_id("Wood", "assets/textures/wood.png")
    assert plain.startswith("mat_")
    assert plain != textured
    assert build_material_id("Wood", "assets/textures/wood.png") == textured


def test_material_id_covers_ao_and_metallic_maps():
    base = build_material_id("Wood", "assets/textures/wood.png")
    with_ao = build_material_id("Wood", "assets/textures/wood.png", ao="assets/textures/wood_ao.png")
    with_metallic = build_material_id("Wood", "assets/textures/wood.png", metallic="assets/textures/wood_ao.png")
    assert len({base, with_ao, with_metallic}) == 3


def test_quaternion_reordered_to_wxyz():
    assert to_wxyz([0.1, 0.2, 0.3, 0.9]) == [0.9, 0.1, 0.2, 0.3]
    assert to_wxyz([]) == [1.0, 0.0, 0.0, 0.0]


def test_obj_bake_mirrors_z_flips_v_and_reverses_winding():
    mesh = MeshData(
        name="tri",
        vertices=[[0.0, 0.0, 1.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]],
        normals=[[0.0, 0.0, 1.0]] * 3,
        uvs=[[0.0, 0.25], [1.0, 0.0], [0.0, 1.0]],
        submeshes=[[0, 1, 2]],
    )
    text = bake_obj(mesh)
    assert "v 0.0 0.0 -1.0" in text
    assert "vt 0.0 0.75" in text
    assert "vn 0.0 0.0 -1.0" in text
    assert "f 1/1/1 3/3/3 2/2/2" in text

    back = import_obj(text)
    assert back.name == "tri"
    assert back.vertices == mesh.vertices
    assert back.uvs == mesh.uvs
    assert back.normals == mesh.normals
    assert back.triangles() == [(0, 1, 2)]


def test_obj_faces_without_uvs_or_normals():
    mesh = MeshData(vertices=[[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], submeshes=[[0, 1, 2]])
    assert "f 1 3 2" in bake_obj(mesh)


def test_obj_bake_writes_one_vertex_line_per_vertex():
    mesh = MeshData(vertices=[[0.0, 0.0, 0.5], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], submeshes=[[0, 1, 2]])
    lines = [line for line in bake_obj(mesh).splitlines() if line.startswith("v ")]
    assert lines == ["v 0.0 0.0 -0.5", "v 1.0 0.0 0.0", "v 0.0 1.0 0.0"]


def test_grid_mesh_from_heights():
    mesh = build_grid_mesh([[0.0, 0.5], [1.0, 0.25]], [10.0, 2.0, 20.0])
    assert len(mesh.vertices) == 4
    assert mesh.vertices[3] == [10.0, 0.5, 20.0]
    assert len(mesh.triangles()) == 2
    assert build_grid_mesh([[0.0]], [1.0, 1.0, 1.0]).vertices == []


def test_validate_hierarchy_reports_problems():
    doc = SceneDocument(
        sceneName="S",
        entities=[
            SceneEntity(stableId="go_a"),
            SceneEntity(stableId="go_b", parentStableId="go_a"),
            SceneEntity(stableId="go_c", parentStableId="go_missing"),
            SceneEntity(stableId="go_d", parentStableId="go_e"),
            SceneEntity(stableId="go_e", parentStableId="go_d"),
        ],
    )
    problems = validate_hierarchy(doc)
    assert "dangling parent go_missing on go_c" in problems
    assert any(p.startswith("cycle through") for p in problems)
    assert not any("go_b" in p for p in problems)


def test_diagnostic_log_deduplicates():
    log = DiagnosticLog()
    scene_warnings = []
    log.warn("careful", scene_warnings)
    log.warn("careful", scene_warnings)
    log.error("broken")
    log.error("broken")
    assert log.warnings == ["careful"]
    assert scene_warnings == ["careful"]
    assert log.errors == ["broken"]
    assert log.has_errors
