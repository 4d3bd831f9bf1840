import json

import pytest

from flatgltf.errors import FormatError, SchemaError
from flatgltf.model import (
    MatrixTransform,
    TrsTransform,
    dump_asset_json,
    parse_asset_json,
)


def _doc(**extra):
    d = {"asset": {"version": "2.0"}}
    d.update(extra)
    return json.dumps(d)


def test_unknown_fields_and_extensions_survive_roundtrip():
    text = _doc(
        nodes=[
            {
                "name": "n",
                "futureField": {"a": [1, 2]},
                "extensions": {"VENDOR_thing": {"x": 1}},
                "extras": {"tag": "keep"},
            }
        ],
        topLevelUnknown=42,
        extensionsUsed=["VENDOR_thing"],
    )
    asset = parse_asset_json(text)
    assert asset.nodes[0].unknown == {"futureField": {"a": [1, 2]}}
    out = json.loads(dump_asset_json(asset))
    assert out["topLevelUnknown"] == 42
    node = out["nodes"][0]
    assert node["futureField"] == {"a": [1, 2]}
    assert node["extensions"] == {"VENDOR_thing": {"x": 1}}
    assert node["extras"] == {"tag": "keep"}
    assert out["extensionsUsed"] == ["VENDOR_thing"]


def test_matrix_wins_over_trs():
    matrix = [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 5, 6, 7, 1]
    asset = parse_asset_json(
        _doc(nodes=[{"matrix": matrix, "translation": [1, 2, 3]}])
    )
    t = asset.nodes[0].transform
    assert isinstance(t, MatrixTransform)
    assert t.matrix[12:15] == (5.0, 6.0, 7.0)
    out = json.loads(dump_asset_json(asset))["nodes"][0]
    assert "translation" not in out
    assert out["matrix"] == [float(v) for v in matrix]


def test_trs_defaults_are_not_written():
    asset = parse_asset_json(_doc(nodes=[{"translation": [1, 0, 0]}]))
    assert isinstance(asset.nodes[0].transform, TrsTransform)
    out = json.loads(dump_asset_json(asset))["nodes"][0]
    assert out == {"translation": [1.0, 0.0, 0.0]}


def test_invalid_json_is_format_error():
    with pytest.raises(FormatError) as ei:
        parse_asset_json("{not json")
    assert ei.value.code == "E_JSON"


def test_missing_asset_block():
    with pytest.raises(SchemaError) as ei:
        parse_asset_json("{}")
    assert ei.value.code == "E_FIELD"


def test_missing_required_accessor_field_names_path():
    with pytest.raises(SchemaError) as ei:
        parse_asset_json(_doc(accessors=[{"componentType": 5126, "type": "VEC3"}]))
    assert ei.value.code == "E_FIELD"
    assert ei.value.context["path"] == "accessors[0].count"


def test_unknown_component_type():
    with pytest.raises(SchemaError) as ei:
        parse_asset_json(
            _doc(accessors=[{"componentType": 1234, "count": 1, "type": "SCALAR"}])
        )
    assert ei.value.code == "E_TYPE"


def test_wrong_field_type():
    with pytest.raises(SchemaError) as ei:
        parse_asset_json(_doc(scene="zero"))
    assert ei.value.code == "E_TYPE"
    assert ei.value.context["path"] == "scene"


def test_material_defaults_and_textures():
    asset = parse_asset_json(
        _doc(
            materials=[
                {
                    "pbrMetallicRoughness": {"baseColorTexture": {"index": 0}},
                    "normalTexture": {"index": 1, "scale": 0.5},
                }
            ]
        )
    )
    mat = asset.materials[0]
    assert mat.pbr.metallic_factor == 1.0
    assert mat.pbr.base_color_texture.index == 0
    assert mat.normal_texture.scale == 0.5
    out = json.loads(dump_asset_json(asset))["materials"][0]
    assert out["normalTexture"] == {"index": 1, "scale": 0.5}
    assert "alphaMode" not in out
