import base64
import io
import json
from pathlib import Path

import numpy as np
import pytest
from PIL import Image as PILImage

from flatgltf.api import load
from flatgltf.errors import FormatError, ResourceError, SchemaError
from flatgltf.resources import (
    decode_data_uri,
    decode_image,
    encode_data_uri,
    encode_image,
    peek_image,
)


def _png(width=2, height=3, color=(10, 20, 30, 255)) -> bytes:
    out = io.BytesIO()
    PILImage.new("RGBA", (width, height), color).save(out, format="PNG")
    return out.getvalue()


def _write_gltf(path: Path, doc: dict) -> Path:
    doc.setdefault("asset", {"version": "2.0"})
    path.write_text(json.dumps(doc))
    return path


def test_data_uri_roundtrip():
    uri = encode_data_uri(b"\x00\x01\xff")
    assert uri.startswith("data:application/octet-stream;base64,")
    assert decode_data_uri(uri) == ("application/octet-stream", b"\x00\x01\xff")


def test_malformed_base64_is_format_error():
    with pytest.raises(FormatError) as ei:
        decode_data_uri("data:application/octet-stream;base64,@@@=")
    assert ei.value.code == "E_BASE64"


def test_embedded_buffer_loads(tmp_path: Path):
    payload = bytes(range(8))
    path = _write_gltf(
        tmp_path / "a.gltf",
        {"buffers": [{"byteLength": 8, "uri": encode_data_uri(payload)}]},
    )
    asset = load(path)
    assert asset.buffers[0].data == payload


def test_external_buffer_with_percent_encoded_uri(tmp_path: Path):
    (tmp_path / "my data.bin").write_bytes(b"abcd")
    path = _write_gltf(
        tmp_path / "a.gltf", {"buffers": [{"byteLength": 4, "uri": "my%20data.bin"}]}
    )
    assert load(path).buffers[0].data == b"abcd"


def test_missing_external_buffer_names_path(tmp_path: Path):
    path = _write_gltf(
        tmp_path / "a.gltf", {"buffers": [{"byteLength": 4, "uri": "gone.bin"}]}
    )
    with pytest.raises(ResourceError) as ei:
        load(path)
    assert ei.value.code == "E_MISSING"
    assert "gone.bin" in ei.value.message
    assert ei.value.context["path"].endswith("gone.bin")


def test_skip_missing_leaves_empty_placeholder(tmp_path: Path):
    path = _write_gltf(
        tmp_path / "a.gltf",
        {
            "buffers": [{"byteLength": 4, "uri": "gone.bin"}],
            "images": [{"uri": "gone.png"}],
        },
    )
    asset = load(path, skip_missing=True)
    assert asset.buffers[0].data == b""
    assert asset.images[0].data is None


def test_short_buffer_is_schema_error(tmp_path: Path):
    (tmp_path / "short.bin").write_bytes(b"ab")
    path = _write_gltf(
        tmp_path / "a.gltf", {"buffers": [{"byteLength": 4, "uri": "short.bin"}]}
    )
    with pytest.raises(SchemaError) as ei:
        load(path)
    assert ei.value.code == "E_SIZE"


def test_image_from_buffer_view(tmp_path: Path):
    png = _png()
    doc = {
        "buffers": [{"byteLength": len(png), "uri": encode_data_uri(png)}],
        "bufferViews": [{"buffer": 0, "byteLength": len(png)}],
        "images": [{"bufferView": 0, "mimeType": "image/png"}],
    }
    asset = load(_write_gltf(tmp_path / "a.gltf", doc))
    data = asset.images[0].data
    assert (data.width, data.height, data.ncomp) == (2, 3, 4)
    assert data.pixels.shape == (3, 2, 4)
    assert tuple(data.pixels[0, 0]) == (10, 20, 30, 255)


def test_image_from_data_uri(tmp_path: Path):
    png = _png(1, 1)
    uri = "data:image/png;base64," + base64.b64encode(png).decode("ascii")
    asset = load(_write_gltf(tmp_path / "a.gltf", {"images": [{"uri": uri}]}))
    assert asset.images[0].data.width == 1


def test_undecodable_image_is_resource_error(tmp_path: Path):
    (tmp_path / "bad.png").write_bytes(b"not an image")
    path = _write_gltf(tmp_path / "a.gltf", {"images": [{"uri": "bad.png"}]})
    with pytest.raises(ResourceError) as ei:
        load(path)
    assert ei.value.code == "E_IMAGE"
    assert load(path, skip_missing=True).images[0].data is None


def test_encode_decode_image_pixels():
    data = decode_image(_png(4, 2, (1, 2, 3, 4)))
    again = decode_image(encode_image(data))
    assert np.array_equal(again.pixels, data.pixels)
    assert peek_image(encode_image(data)) == (4, 2, 4)
    assert peek_image(b"junk") is None


def _png16(values: np.ndarray) -> bytes:
    out = io.BytesIO()
    PILImage.fromarray(values.astype(np.uint16)).save(out, format="PNG")
    return out.getvalue()


def test_sixteen_bit_png_keeps_precision():
    values = np.array([[0, 1000], [40000, 65535]], dtype=np.uint16)
    data = decode_image(_png16(values))
    assert (data.width, data.height, data.ncomp) == (2, 2, 1)
    assert data.is_float
    assert data.pixels_f.dtype == np.float32
    assert np.allclose(data.pixels_f[:, :, 0], values / 65535.0, atol=1e-6)
    assert data.pixels[:, :, 0].tolist() == [[0, 4], [156, 255]]
    # written back as 16-bit, not truncated to 8
    again = decode_image(encode_image(data))
    assert again.is_float
    assert np.allclose(again.pixels_f, data.pixels_f, atol=1e-6)
    assert peek_image(_png16(values)) == (2, 2, 1)


def test_eight_bit_image_has_no_float_pixels():
    assert not decode_image(_png()).is_float
