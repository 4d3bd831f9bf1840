"""Validator record tests.

Each case breaks one thing in an otherwise valid asset and checks the
reported code and path.
"""

import json
from pathlib import Path

import pytest

from conftest import triangle_asset
from flatgltf.api import load, save
from flatgltf.constants import REPEAT, TRIANGLES
from flatgltf.errors import SchemaError
from flatgltf.model import Accessor, BufferView, Image, Node, Sampler, Texture
from flatgltf.validator import first_fatal, validate_asset


def _codes(errors):
    return {e.code for e in errors}


def _paths(errors):
    return {e.path for e in errors}


def test_valid_asset_has_no_errors(triangle):
    assert validate_asset(triangle) == []


def test_missing_material_reference(triangle):
    triangle.meshes[0].primitives[0].material = 4
    errs = validate_asset(triangle)
    assert "E_REF" in _codes(errs)
    assert "meshes[0].primitives[0].material" in _paths(errs)


def test_missing_child_node(triangle):
    triangle.nodes[0].children = [7]
    errs = validate_asset(triangle)
    assert "nodes[0].children[0]" in _paths(errs)


def test_default_scene_out_of_range(triangle):
    triangle.scene = 2
    assert "scene" in _paths(validate_asset(triangle))


def test_view_exceeds_buffer(triangle):
    triangle.buffer_views.append(BufferView(byte_offset=4, byte_length=4096))
    errs = validate_asset(triangle)
    assert "E_SIZE" in _codes(errs)


def test_accessor_exceeds_view(triangle):
    triangle.accessors[0].count = 100
    errs = validate_asset(triangle)
    assert "E_SIZE" in _codes(errs)
    assert "accessors[0]" in _paths(errs)


def test_float_index_accessor(triangle):
    triangle.meshes[0].primitives[0].indices = 0
    errs = validate_asset(triangle)
    assert "meshes[0].primitives[0].indices" in _paths(errs)


def test_bad_stride(triangle):
    triangle.buffer_views[0].byte_stride = 6
    assert "bufferViews[0].byteStride" in _paths(validate_asset(triangle))


def test_image_without_source(triangle):
    triangle.images.append(Image())
    triangle.textures.append(Texture(source=0, sampler=3))
    errs = validate_asset(triangle)
    assert {"images[0]", "textures[0].sampler"} <= _paths(errs)


def test_sampler_wrap_mode(triangle):
    triangle.samplers.append(Sampler(wrap_s=1))
    assert "samplers[0].wrapS" in _paths(validate_asset(triangle))


def test_unknown_accessor_type(triangle):
    triangle.accessors.append(Accessor(component_type=5126, type="VEC9", count=1))
    assert "E_TYPE" in _codes(validate_asset(triangle))


def test_load_raises_first_record(tmp_path: Path):
    doc = {
        "asset": {"version": "2.0"},
        "nodes": [{"mesh": 3}],
        "scenes": [{"nodes": [0]}],
    }
    path = tmp_path / "bad.gltf"
    path.write_text(json.dumps(doc))
    with pytest.raises(SchemaError) as ei:
        load(path)
    assert ei.value.code == "E_REF"
    assert ei.value.context["path"] == "nodes[0].mesh"
    # validation can be disabled
    assert load(path, validate=False).nodes[0].mesh == 3


def test_node_added_without_scene_is_valid(triangle):
    triangle.nodes.append(Node())
    assert validate_asset(triangle) == []


def test_load_names_missing_nested_field(tmp_path: Path):
    path = tmp_path / "nolen.gltf"
    path.write_text(
        json.dumps({"asset": {"version": "2.0"}, "buffers": [{"uri": "x.bin"}]})
    )
    with pytest.raises(SchemaError) as ei:
        load(path)
    assert ei.value.code == "E_FIELD"
    assert ei.value.context["path"] == "buffers[0].byteLength"


def test_unknown_enum_values_are_not_fatal(triangle):
    triangle.samplers.append(Sampler(wrap_s=1, min_filter=7))
    triangle.materials[0].alpha_mode = "GLOSSY"
    errs = validate_asset(triangle)
    assert {"samplers[0].wrapS", "samplers[0].minFilter", "materials[0].alphaMode"} <= _paths(errs)
    assert first_fatal(errs) is None
    # reported only; nothing changed until defaults are applied
    assert triangle.samplers[0].wrap_s == 1
    validate_asset(triangle, apply_defaults=True)
    assert triangle.samplers[0].wrap_s == REPEAT
    assert triangle.samplers[0].min_filter is None
    assert triangle.materials[0].alpha_mode == "OPAQUE"


def test_load_falls_back_to_enum_defaults(tmp_path: Path):
    asset = triangle_asset()
    asset.buffers[0].uri = "tri.bin"
    path = tmp_path / "tri.gltf"
    save(path, asset)
    doc = json.loads(path.read_text())
    doc["samplers"] = [{"wrapS": 1234, "magFilter": 5}]
    doc["materials"][0]["alphaMode"] = "GLOSSY"
    doc["meshes"][0]["primitives"][0]["mode"] = 42
    path.write_text(json.dumps(doc))
    loaded = load(path)
    assert loaded.samplers[0].wrap_s == REPEAT
    assert loaded.samplers[0].mag_filter is None
    assert loaded.materials[0].alpha_mode == "OPAQUE"
    assert loaded.meshes[0].primitives[0].mode == TRIANGLES


def test_fatal_record_wins_over_enum_defaults(triangle):
    triangle.samplers.append(Sampler(wrap_s=1))
    triangle.nodes[0].mesh = 9
    first = first_fatal(validate_asset(triangle))
    assert first is not None and first.path == "nodes[0].mesh"
