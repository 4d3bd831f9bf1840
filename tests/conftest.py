from __future__ import annotations

import struct

import numpy as np
import pytest

from flatgltf.accessors import append_accessor
from flatgltf.constants import (
    ARRAY_BUFFER,
    ELEMENT_ARRAY_BUFFER,
    FLOAT,
    UNSIGNED_BYTE,
)
from flatgltf.model import (
    Asset,
    Buffer,
    Material,
    Mesh,
    Node,
    PbrMetallicRoughness,
    Primitive,
    Scene,
    TrsTransform,
)
from flatgltf.reporting import SilentReporter, set_reporter


@pytest.fixture(autouse=True)
def _silent_reporter():
    set_reporter(SilentReporter())
    yield


def finish_buffer(asset: Asset, blob: bytearray, uri: str | None = None) -> Asset:
    """Attach ``blob`` as buffer 0 (4-byte padded)."""
    blob.extend(b"\x00" * ((4 - len(blob) % 4) % 4))
    asset.buffers = [Buffer(uri=uri, byte_length=len(blob), data=bytes(blob))]
    return asset


def raw_asset(payload: bytes) -> Asset:
    """Asset whose only buffer holds ``payload`` verbatim."""
    return Asset(buffers=[Buffer(byte_length=len(payload), data=payload)])


def pack(fmt: str, *values) -> bytes:
    return struct.pack("<" + fmt, *values)


def triangle_asset(translation=(0.0, 0.0, 0.0)) -> Asset:
    """One node, one mesh, one indexed triangle, one material."""
    asset = Asset()
    blob = bytearray()
    pos = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float32)
    norm = np.array([[0, 0, 1]] * 3, dtype=np.float32)
    p = append_accessor(
        asset, blob, pos, FLOAT, target=ARRAY_BUFFER, with_bounds=True
    )
    n = append_accessor(asset, blob, norm, FLOAT, target=ARRAY_BUFFER)
    i = append_accessor(
        asset,
        blob,
        np.array([0, 1, 2]),
        UNSIGNED_BYTE,
        target=ELEMENT_ARRAY_BUFFER,
    )
    asset.materials.append(
        Material(
            name="red",
            pbr_metallic_roughness=PbrMetallicRoughness(
                base_color_factor=[1.0, 0.0, 0.0, 0.5],
                metallic_factor=0.25,
                roughness_factor=0.75,
            ),
            emissive_factor=[0.1, 0.2, 0.3],
        )
    )
    asset.meshes.append(
        Mesh(
            name="tri",
            primitives=[
                Primitive(attributes={"POSITION": p, "NORMAL": n}, indices=i, material=0)
            ],
        )
    )
    asset.nodes.append(
        Node(name="tri_node", mesh=0, transform=TrsTransform(translation=translation))
    )
    asset.scenes.append(Scene(name="main", nodes=[0]))
    asset.scene = 0
    return finish_buffer(asset, blob)


@pytest.fixture
def triangle() -> Asset:
    return triangle_asset()
