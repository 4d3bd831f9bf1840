"""Rebuild a glTF :class:`~flatgltf.model.Asset` from a FlatModel.

All geometry goes into a single buffer; every array becomes one bufferView
and one accessor. Nodes are written in matrix mode and listed by one scene.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Dict, List, Optional, Tuple

import numpy as np

from . import __version__
from .accessors import append_accessor, smallest_index_type
from .constants import (
    ARRAY_BUFFER,
    CAMERA_ORTHOGRAPHIC,
    CAMERA_PERSPECTIVE,
    ELEMENT_ARRAY_BUFFER,
    FLOAT,
    KHR_SPECULAR_GLOSSINESS,
    LINES,
    POINTS,
    TRIANGLES,
)
from .errors import E_TYPE, SchemaError
from .flat import FlatCamera, FlatMaterial, FlatModel, FlatPrimitive, FlatTexture
from .logging import get_logger
from .model import (
    Asset,
    AssetInfo,
    Buffer,
    Camera,
    Image,
    ImageData,
    Material,
    MatrixTransform,
    Mesh,
    Node,
    NormalTextureInfo,
    Orthographic,
    PbrMetallicRoughness,
    PbrSpecularGlossiness,
    Perspective,
    Primitive,
    Scene,
    Texture,
    TextureInfo,
)
from .reporting import task
from .transforms import matrix_to_gltf

__all__ = ["unflatten"]

_MODES = {"triangles": TRIANGLES, "lines": LINES, "points": POINTS}
_MIME_BY_SUFFIX = {".png": "image/png", ".jpg": "image/jpeg", ".jpeg": "image/jpeg"}

# FlatPrimitive field -> glTF attribute semantic
_VERTEX_ARRAYS = (
    ("pos", "POSITION"),
    ("norm", "NORMAL"),
    ("texcoord", "TEXCOORD_0"),
    ("color", "COLOR_0"),
    ("radius", "_RADIUS"),
)


def _texture_info(index: int, cls=TextureInfo):
    return cls(index=index) if index >= 0 else None


def _image(texture: FlatTexture, index: int, stem: str) -> Image:
    uri = texture.path or f"{stem}_texture{index}.png"
    image = Image(
        name=texture.name,
        uri=uri,
        mime_type=_MIME_BY_SUFFIX.get(PurePosixPath(uri).suffix.lower()),
    )
    if texture.loaded:
        pixels = np.asarray(texture.pixels, dtype=np.uint8).reshape(
            texture.height, texture.width, texture.ncomp
        )
        image.data = ImageData(
            texture.width, texture.height, texture.ncomp, pixels.copy()
        )
        if texture.is_float:
            image.data.pixels_f = np.asarray(
                texture.pixels_f, dtype=np.float32
            ).reshape(texture.height, texture.width, texture.ncomp).copy()
    return image


def _specular_glossiness(flat: FlatMaterial) -> Material:
    sg_txt = flat.ks_txt if flat.ks_txt >= 0 else flat.rs_txt
    sg = PbrSpecularGlossiness(
        diffuse_factor=[float(v) for v in flat.kd] + [float(flat.op)],
        diffuse_texture=_texture_info(flat.kd_txt),
        specular_factor=[float(v) for v in flat.ks],
        glossiness_factor=1.0 - float(flat.rs),
        specular_glossiness_texture=_texture_info(sg_txt),
    )
    return Material(
        name=flat.name,
        normal_texture=_texture_info(flat.norm_txt, NormalTextureInfo),
        emissive_texture=_texture_info(flat.ke_txt),
        emissive_factor=[float(v) for v in flat.ke],
        double_sided=flat.double_sided,
        extensions={KHR_SPECULAR_GLOSSINESS: sg.to_json()},
    )


def _material(flat: FlatMaterial) -> Material:
    if flat.specular_glossiness:
        return _specular_glossiness(flat)
    mr_txt = flat.ks_txt if flat.ks_txt >= 0 else flat.rs_txt
    return Material(
        name=flat.name,
        pbr_metallic_roughness=PbrMetallicRoughness(
            base_color_factor=[float(v) for v in flat.kd] + [float(flat.op)],
            base_color_texture=_texture_info(flat.kd_txt),
            metallic_factor=float(flat.ks[0]),
            roughness_factor=float(flat.rs),
            metallic_roughness_texture=_texture_info(mr_txt),
        ),
        normal_texture=_texture_info(flat.norm_txt, NormalTextureInfo),
        emissive_texture=_texture_info(flat.ke_txt),
        emissive_factor=[float(v) for v in flat.ke],
        double_sided=flat.double_sided,
    )


def _camera(flat: FlatCamera) -> Camera:
    if flat.ortho:
        return Camera(
            name=flat.name,
            type=CAMERA_ORTHOGRAPHIC,
            orthographic=Orthographic(
                xmag=flat.yfov * flat.aspect,
                ymag=flat.yfov,
                znear=flat.near,
                zfar=flat.far,
            ),
        )
    return Camera(
        name=flat.name,
        type=CAMERA_PERSPECTIVE,
        perspective=Perspective(
            yfov=flat.yfov,
            znear=flat.near,
            aspect_ratio=flat.aspect,
            zfar=flat.far,
        ),
    )


def _primitive(
    asset: Asset, blob: bytearray, flat: FlatPrimitive, index: int
) -> Primitive:
    kinds = flat.element_kinds()
    if len(kinds) > 1:
        raise SchemaError(
            E_TYPE,
            f"Primitive {index} ({flat.name!r}) mixes {' and '.join(kinds)}",
            {"primitive": index},
        )
    prim = Primitive(material=flat.material if flat.material >= 0 else None)
    for attr, semantic in _VERTEX_ARRAYS:
        values = getattr(flat, attr)
        if not len(values):
            continue
        prim.attributes[semantic] = append_accessor(
            asset,
            blob,
            np.asarray(values, dtype=np.float32),
            FLOAT,
            target=ARRAY_BUFFER,
            with_bounds=semantic == "POSITION",
        )
    if kinds:
        kind = kinds[0]
        elements = np.asarray(getattr(flat, kind), dtype=np.int64).reshape(-1)
        prim.mode = _MODES[kind]
        max_index = int(elements.max()) if len(elements) else 0
        prim.indices = append_accessor(
            asset,
            blob,
            elements,
            smallest_index_type(max_index),
            target=ELEMENT_ARRAY_BUFFER,
        )
    else:
        prim.mode = POINTS
    return prim


def unflatten(model: FlatModel, buffer_uri_stem: str) -> Asset:
    """Build an asset whose geometry lives in ``<buffer_uri_stem>.bin``."""
    logger = get_logger("unflatten")
    stem = buffer_uri_stem[:-4] if buffer_uri_stem.endswith(".bin") else buffer_uri_stem
    with task("unflatten", "Unflatten scene") as stats:
        asset = Asset(asset=AssetInfo(generator=f"flatgltf {__version__}"))
        blob = bytearray()

        for i, texture in enumerate(model.textures):
            asset.images.append(_image(texture, i, stem))
            asset.textures.append(Texture(name=texture.name, source=i))
        asset.materials = [_material(m) for m in model.materials]
        if any(m.specular_glossiness for m in model.materials):
            asset.extensions_used.append(KHR_SPECULAR_GLOSSINESS)

        primitives = [
            _primitive(asset, blob, p, i) for i, p in enumerate(model.primitives)
        ]

        # FlatMeshes with the same primitive list share one glTF mesh
        mesh_ids: Dict[Tuple[int, ...], int] = {}
        for flat_mesh in model.meshes:
            key = tuple(flat_mesh.primitives)
            mesh_index: Optional[int] = mesh_ids.get(key)
            if mesh_index is None:
                asset.meshes.append(
                    Mesh(
                        name=flat_mesh.name,
                        primitives=[primitives[p] for p in flat_mesh.primitives],
                    )
                )
                mesh_index = mesh_ids[key] = len(asset.meshes) - 1
            asset.nodes.append(
                Node(
                    name=flat_mesh.name,
                    mesh=mesh_index,
                    transform=MatrixTransform(matrix_to_gltf(flat_mesh.xform)),
                )
            )

        for flat_camera in model.cameras:
            asset.cameras.append(_camera(flat_camera))
            asset.nodes.append(
                Node(
                    name=flat_camera.name,
                    camera=len(asset.cameras) - 1,
                    transform=MatrixTransform(matrix_to_gltf(flat_camera.xform)),
                )
            )

        if blob:
            blob.extend(b"\x00" * ((4 - len(blob) % 4) % 4))
            asset.buffers.append(
                Buffer(
                    name=PurePosixPath(stem).name,
                    uri=f"{stem}.bin",
                    byte_length=len(blob),
                    data=bytes(blob),
                )
            )
        scene_name = ""
        if 0 <= model.default_scene < len(model.scenes):
            scene_name = model.scenes[model.default_scene].name
        nodes: List[int] = list(range(len(asset.nodes)))
        asset.scenes.append(Scene(name=scene_name, nodes=nodes))
        asset.scene = 0
        stats.update(
            nodes=len(asset.nodes),
            meshes=len(asset.meshes),
            primitives=len(primitives),
            materials=len(asset.materials),
            textures=len(asset.textures),
            bytes=len(blob),
        )
    logger.debug("Packed %d bytes into %s.bin", len(blob), stem)
    return asset
