from __future__ import annotations

from engines.scene_export.codegen.components_header import (
    aggregator_text,
    component_header_text,
    write_component_headers,
)
from engines.scene_export.custom_components.schema import CustomSchemaUnifier, generated_names
from engines.scene_export.ir.values import (
    ArrayValue,
    BoolValue,
    DroppedValue,
    FloatValue,
    IntValue,
    StringValue,
    Vector3Value,
)
from engines.scene_export.producer.models import ScriptFieldSpec, ScriptSpec

SPINNER = "Game.Spinner"


def _spinner(**fields) -> ScriptSpec:
    return ScriptSpec(
        type_name=SPINNER,
        fields=[ScriptFieldSpec(name=name, value=value) for name, value in fields.items()],
    )


def test_generated_names():
    assert generated_names("Spinner") == ("ExportedSpinnerComponent", "exported_spinner_component.hpp")
    assert generated_names("HUDLabel")[1] == "exported_h_u_d_label_component.hpp"


def test_schema_grows_monotonically():
    unifier = CustomSchemaUnifier()
    first = unifier.collect(_spinner(speed=FloatValue(value=2.5)))
    unifier.collect(_spinner(speed=FloatValue(value=1.0), axis=Vector3Value(value=[0.0, 1.0, 0.0])))
    third = unifier.collect(_spinner(axis=Vector3Value(value=[1.0, 0.0, 0.0])))

    schema = unifier.schema_for(SPINNER)
    assert schema.generatedType == "ExportedSpinnerComponent"
    assert schema.field_names() == ["speed", "axis"]
    assert [f.name for f in first.fields] == ["speed"]
    assert [f.name for f in third.fields] == ["axis"]


def test_first_seen_type_wins_with_warning():
    unifier = CustomSchemaUnifier()
    unifier.collect(_spinner(speed=FloatValue(value=2.5)))
    unifier.collect(_spinner(speed=IntValue(value=3)))
    assert unifier.schema_for(SPINNER).get("speed").cppType == "float"
    assert any("type mismatch: Game.Spinner.speed keeps float" in w for w in unifier.log.warnings)


def test_arrays_are_all_or_nothing():
    unifier = CustomSchemaUnifier()
    scene_warnings = []
    instance = unifier.collect(
        _spinner(
            waypoints=ArrayValue(items=[IntValue(value=1), FloatValue(value=2.0)]),
            tags=ArrayValue(items=[StringValue(value="a"), DroppedValue(reason="nested object")]),
            ids=ArrayValue(items=[IntValue(value=1), IntValue(value=2)]),
            enabled=BoolValue(value=True),
        ),
        scene_warnings,
    )
    assert [f.name for f in instance.fields] == ["ids", "enabled"]
    assert unifier.schema_for(SPINNER).get("ids").cppType == "std::vector<int>"
    assert "Custom component field skipped: Game.Spinner.waypoints (mixed array element types int/float)" in scene_warnings
    assert "Custom component field skipped: Game.Spinner.tags (array element nested object)" in scene_warnings


def test_instance_without_fields_is_dropped():
    unifier = CustomSchemaUnifier()
    assert unifier.collect(_spinner(blob=DroppedValue(reason="unsupported type"))) is None
    assert unifier.schema_for(SPINNER) is not None


def test_component_header_lists_fields_sorted():
    unifier = CustomSchemaUnifier()
    unifier.collect(
        _spinner(
            speed=FloatValue(value=2.5),
            axis=Vector3Value(value=[0.0, 1.0, 0.0]),
            label=StringValue(value='say "hi"'),
        )
    )
    text = component_header_text(unifier.schema_for(SPINNER))
    body = [line.strip() for line in text.splitlines() if line.startswith("    ")]
    assert body == [
        "glm::vec3 axis = glm::vec3(0.0f, 1.0f, 0.0f);",
        'std::string label = "say \\"hi\\"";',
        "float speed = 2.5f;",
    ]
    assert "struct ExportedSpinnerComponent" in text


def test_headers_written_with_aggregator_last(tmp_path):
    unifier = CustomSchemaUnifier()
    unifier.collect(_spinner(speed=FloatValue(value=1.0)))
    unifier.collect(ScriptSpec(type_name="Game.Door", fields=[ScriptFieldSpec(name="open", value=BoolValue(value=False))]))
    written = write_component_headers(tmp_path, unifier.schemas)
    assert written == [
        "game/components/generated/exported_door_component.hpp",
        "game/components/generated/exported_spinner_component.hpp",
        "game/components/generated_components.hpp",
    ]
    aggregate = (tmp_path / written[-1]).read_text()
    assert aggregate == aggregator_text(unifier.schemas)
    assert '#include "generated/exported_door_component.hpp"' in aggregate
