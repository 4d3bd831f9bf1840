from pathlib import Path

import numpy as np
import pytest

from conftest import triangle_asset
from flatgltf.api import load, save
from flatgltf.constants import (
    ELEMENT_ARRAY_BUFFER,
    KHR_SPECULAR_GLOSSINESS,
    LINES,
    UNSIGNED_BYTE,
    UNSIGNED_SHORT,
)
from flatgltf.errors import ResourceError, SchemaError
from flatgltf.flat import (
    FlatCamera,
    FlatMaterial,
    FlatMesh,
    FlatModel,
    FlatPrimitive,
    FlatTexture,
)
from flatgltf.flatten import flatten
from flatgltf.model import MatrixTransform
from flatgltf.unflatten import unflatten


def _assert_flat_equal(a: FlatModel, b: FlatModel):
    assert len(a.primitives) == len(b.primitives)
    for pa, pb in zip(a.primitives, b.primitives):
        for attr in ("pos", "norm", "texcoord", "color", "radius"):
            assert np.allclose(getattr(pa, attr), getattr(pb, attr))
        for attr in ("points", "lines", "triangles"):
            assert np.array_equal(getattr(pa, attr), getattr(pb, attr))
        assert pa.material == pb.material
    assert len(a.meshes) == len(b.meshes)
    for ma, mb in zip(a.meshes, b.meshes):
        assert np.allclose(ma.xform, mb.xform)
        assert ma.primitives == mb.primitives
    assert len(a.materials) == len(b.materials)
    for xa, xb in zip(a.materials, b.materials):
        assert np.allclose(xa.kd, xb.kd) and np.isclose(xa.op, xb.op)
        assert np.allclose(xa.ks, xb.ks) and np.isclose(xa.rs, xb.rs)


def _two_instance_model() -> FlatModel:
    asset = triangle_asset(translation=(1.0, 2.0, 3.0))
    asset.nodes.append(asset.nodes[0].__class__(mesh=0))
    asset.scenes[0].nodes.append(1)
    return flatten(asset)


def test_flatten_unflatten_flatten_roundtrip():
    flat = _two_instance_model()
    asset = unflatten(flat, "scene")
    assert asset.scene == 0
    assert len(asset.meshes) == 1  # both instances share one mesh
    assert all(isinstance(n.transform, MatrixTransform) for n in asset.nodes)
    _assert_flat_equal(flatten(asset), flat)


def test_buffer_layout():
    asset = unflatten(_two_instance_model(), "scene")
    assert len(asset.buffers) == 1
    buf = asset.buffers[0]
    assert buf.uri == "scene.bin"
    assert buf.byte_length == len(buf.data)
    assert all(v.byte_offset % 4 == 0 for v in asset.buffer_views)
    prim = asset.meshes[0].primitives[0]
    idx = asset.accessors[prim.indices]
    assert idx.component_type == UNSIGNED_BYTE
    assert asset.buffer_views[idx.buffer_view].target == ELEMENT_ARRAY_BUFFER
    pos = asset.accessors[prim.attributes["POSITION"]]
    assert pos.min == [0.0, 0.0, 0.0] and pos.max == [1.0, 1.0, 0.0]


def test_large_index_uses_short():
    prim = FlatPrimitive(
        pos=np.zeros((300, 3), np.float32),
        lines=np.array([[0, 299]], dtype=np.int64),
    )
    model = FlatModel(primitives=[prim], meshes=[FlatMesh(primitives=[0])])
    asset = unflatten(model, "big")
    gprim = asset.meshes[0].primitives[0]
    assert gprim.mode == LINES
    assert asset.accessors[gprim.indices].component_type == UNSIGNED_SHORT


def test_mixed_element_kinds_rejected():
    prim = FlatPrimitive(
        pos=np.zeros((3, 3), np.float32),
        points=np.array([0], dtype=np.int64),
        triangles=np.array([[0, 1, 2]], dtype=np.int64),
    )
    model = FlatModel(primitives=[prim], meshes=[FlatMesh(primitives=[0])])
    with pytest.raises(SchemaError):
        unflatten(model, "bad")


def test_cameras_materials_textures_roundtrip():
    pixels = np.arange(2 * 2 * 3, dtype=np.uint8).reshape(2, 2, 3)
    model = FlatModel(
        cameras=[
            FlatCamera(name="persp", yfov=0.5, aspect=1.5, near=0.1, far=100),
            FlatCamera(name="ortho", ortho=True, yfov=2.0, aspect=2.0, near=1, far=10),
        ],
        textures=[FlatTexture(name="t", path="t.png", width=2, height=2, ncomp=3, pixels=pixels)],
        materials=[FlatMaterial(name="m", kd=(0.5, 0.5, 0.5), kd_txt=0, norm_txt=0)],
    )
    asset = unflatten(model, "cams")
    assert asset.buffers == []
    assert asset.cameras[1].orthographic.xmag == 4.0
    again = flatten(asset)
    assert [c.name for c in again.cameras] == ["persp", "ortho"]
    assert again.cameras[1].ortho and again.cameras[1].aspect == 2.0
    assert again.cameras[0].far == 100
    # unreferenced materials are not flattened back
    assert again.materials == []
    assert asset.images[0].uri == "t.png"
    assert np.array_equal(asset.images[0].data.pixels, pixels)


def test_save_and_load_gltf(tmp_path: Path):
    flat = _two_instance_model()
    asset = unflatten(flat, "scene")
    save(tmp_path / "scene.gltf", asset)
    assert (tmp_path / "scene.bin").stat().st_size == asset.buffers[0].byte_length
    loaded = load(tmp_path / "scene.gltf")
    _assert_flat_equal(flatten(loaded), flat)


def test_save_and_load_glb(tmp_path: Path):
    flat = _two_instance_model()
    asset = unflatten(flat, "scene")
    save(tmp_path / "scene.glb", asset)
    assert not (tmp_path / "scene.bin").exists()
    loaded = load(tmp_path / "scene.glb")
    assert loaded.buffers[0].uri is None
    assert asset.buffers[0].uri == "scene.bin"
    _assert_flat_equal(flatten(loaded), flat)


def test_textures_written_as_png(tmp_path: Path):
    asset = triangle_asset()
    flat = flatten(asset)
    flat.textures.append(
        FlatTexture(
            name="white",
            width=1,
            height=1,
            ncomp=4,
            pixels=np.full((1, 1, 4), 255, np.uint8),
        )
    )
    flat.materials[0].kd_txt = 0
    rebuilt = unflatten(flat, "tex")
    save(tmp_path / "tex.gltf", rebuilt)
    assert (tmp_path / "tex_texture0.png").exists()
    loaded = load(tmp_path / "tex.gltf")
    assert loaded.images[0].data.width == 1
    again = flatten(loaded)
    assert again.textures[0].pixels.reshape(-1).tolist() == [255, 255, 255, 255]


def test_glb_save_needs_loaded_buffer(tmp_path: Path):
    asset = triangle_asset()
    asset.buffers[0].uri = "tri.bin"
    save(tmp_path / "tri.gltf", asset)
    header_only = load(tmp_path / "tri.gltf", load_buffers=False)
    with pytest.raises(ResourceError):
        save(tmp_path / "tri.glb", header_only)
    assert not (tmp_path / "tri.glb").exists()


def test_radius_written_as_custom_semantic():
    prim = FlatPrimitive(
        pos=np.zeros((2, 3), np.float32),
        radius=np.array([0.25, 0.5], np.float32),
        points=np.array([0, 1], dtype=np.int64),
    )
    model = FlatModel(primitives=[prim], meshes=[FlatMesh(primitives=[0])])
    asset = unflatten(model, "pts")
    attrs = asset.meshes[0].primitives[0].attributes
    assert "_RADIUS" in attrs and "RADIUS" not in attrs
    assert flatten(asset).primitives[0].radius.tolist() == [0.25, 0.5]


def test_specular_glossiness_roundtrip():
    model = FlatModel(
        primitives=[
            FlatPrimitive(
                pos=np.zeros((3, 3), np.float32),
                triangles=np.array([[0, 1, 2]], dtype=np.int64),
                material=0,
            )
        ],
        meshes=[FlatMesh(primitives=[0])],
        materials=[
            FlatMaterial(
                name="sg",
                kd=(0.2, 0.3, 0.4),
                ks=(0.5, 0.6, 0.7),
                rs=0.25,
                op=0.5,
                specular_glossiness=True,
            )
        ],
    )
    asset = unflatten(model, "sg")
    mat = asset.materials[0]
    assert mat.pbr_metallic_roughness is None
    assert KHR_SPECULAR_GLOSSINESS in asset.extensions_used
    assert mat.extensions[KHR_SPECULAR_GLOSSINESS]["glossinessFactor"] == 0.75
    again = flatten(asset).materials[0]
    assert again.specular_glossiness
    assert np.allclose(again.ks, (0.5, 0.6, 0.7)) and np.isclose(again.rs, 0.25)


def test_float_texture_survives_save(tmp_path: Path):
    values = np.array([[[0.0], [0.3]], [[0.6], [1.0]]], dtype=np.float32)
    flat = flatten(triangle_asset())
    flat.textures.append(
        FlatTexture(
            name="height",
            width=2,
            height=2,
            ncomp=1,
            pixels=np.rint(values * 255).astype(np.uint8),
            pixels_f=values,
        )
    )
    flat.materials[0].kd_txt = 0
    save(tmp_path / "h.gltf", unflatten(flat, "h"))
    tex = flatten(load(tmp_path / "h.gltf")).textures[0]
    assert tex.is_float
    assert np.allclose(tex.pixels_f, values, atol=1e-4)
