"""Flatten one scene of an :class:`~flatgltf.model.Asset` into a FlatModel.

Mesh transforms stay unbaked: each FlatMesh carries the world matrix of its
node and vertex positions remain in mesh space. Nodes sharing a mesh share
its FlatPrimitive indices. Materials and textures are flattened once, in
first-reference order.
"""

from __future__ import annotations

from typing import Dict, List, Optional

import numpy as np

from .accessors import AccessorView, ElementView
from .constants import (
    CAMERA_ORTHOGRAPHIC,
    LINE_LOOP,
    LINE_STRIP,
    LINES,
    POINTS,
    TRIANGLE_FAN,
    TRIANGLE_STRIP,
    TRIANGLES,
)
from .errors import E_MISSING, E_REF, E_TYPE, ResourceError, SchemaError
from .flat import (
    FlatCamera,
    FlatMaterial,
    FlatMesh,
    FlatModel,
    FlatPrimitive,
    FlatScene,
    FlatTexture,
)
from .logging import get_logger
from .model import Asset, Node, Primitive, TextureInfo
from .reporting import task
from .resources import is_data_uri, peek_image
from .transforms import iter_world_transforms, parent_map

__all__ = ["flatten", "expand_elements", "select_roots"]

# semantic -> (FlatPrimitive field, components kept)
_ATTRIBUTES = {
    "POSITION": ("pos", 3),
    "NORMAL": ("norm", 3),
    "TEXCOORD_0": ("texcoord", 2),
    "COLOR_0": ("color", 3),
    # legacy spelling first so the conformant custom semantic wins
    "RADIUS": ("radius", 1),
    "_RADIUS": ("radius", 1),
}

_WHITE = np.full((1, 1, 4), 255, dtype=np.uint8)


def expand_elements(mode: int, idx: np.ndarray) -> Dict[str, np.ndarray]:
    """Convert an index list in ``mode`` topology to points/lines/triangles."""
    idx = np.asarray(idx, dtype=np.int64).reshape(-1)
    n = len(idx)
    if mode == POINTS:
        return {"points": idx.copy()}
    if mode == LINES:
        return {"lines": idx[: n - n % 2].reshape(-1, 2)}
    if mode in (LINE_STRIP, LINE_LOOP):
        if n < 2:
            return {"lines": np.zeros((0, 2), np.int64)}
        lines = np.stack([idx[:-1], idx[1:]], axis=1)
        if mode == LINE_LOOP:
            lines = np.vstack([lines, [[idx[-1], idx[0]]]])
        return {"lines": lines}
    if mode == TRIANGLES:
        return {"triangles": idx[: n - n % 3].reshape(-1, 3)}
    if mode in (TRIANGLE_STRIP, TRIANGLE_FAN):
        if n < 3:
            return {"triangles": np.zeros((0, 3), np.int64)}
        k = np.arange(n - 2)
        if mode == TRIANGLE_STRIP:
            odd = k % 2
            tris = np.stack(
                [idx[k], idx[k + 1 + odd], idx[k + 2 - odd]], axis=1
            )
        else:
            tris = np.stack(
                [np.full(n - 2, idx[0]), idx[k + 1], idx[k + 2]], axis=1
            )
        return {"triangles": tris}
    raise SchemaError(E_TYPE, f"Unknown primitive mode {mode}", {"mode": mode})


def select_roots(asset: Asset, scene_index: Optional[int]) -> tuple[str, List[int]]:
    """Resolve the scene to flatten to ``(name, root node indices)``.

    A negative or missing index selects the declared default scene, then
    scene 0; an asset without scenes yields every parentless node.
    """
    if scene_index is None or scene_index < 0:
        if asset.scene is not None:
            scene_index = asset.scene
        elif asset.scenes:
            scene_index = 0
        else:
            parents = parent_map(asset)
            return "", [i for i in range(len(asset.nodes)) if i not in parents]
    if not 0 <= scene_index < len(asset.scenes):
        raise SchemaError(
            E_REF,
            f"Scene index {scene_index} out of range ({len(asset.scenes)} scenes)",
            {"scene": scene_index},
        )
    scene = asset.scenes[scene_index]
    return scene.name, list(scene.nodes)


def _ref(items: list, index: int, kind: str, referrer: str):
    if not 0 <= index < len(items):
        raise SchemaError(
            E_REF,
            f"{referrer} references missing {kind} {index}",
            {kind: index},
        )
    return items[index]


class _Flattener:
    def __init__(self, asset: Asset) -> None:
        self.asset = asset
        self.model = FlatModel()
        self.scene = FlatScene()
        self._mesh_prims: Dict[int, List[int]] = {}
        self._materials: Dict[int, int] = {}
        self._textures: Dict[int, int] = {}
        self._logger = get_logger("flatten")
        self.skipped = 0

    # textures / materials -------------------------------------------------

    def texture(self, info: Optional[TextureInfo]) -> int:
        if info is None:
            return -1
        if info.index in self._textures:
            return self._textures[info.index]
        tex = _ref(self.asset.textures, info.index, "texture", "material")
        flat = FlatTexture(name=tex.name)
        image = None
        if tex.source is not None:
            image = _ref(self.asset.images, tex.source, "image", "texture")
            flat.name = flat.name or image.name
            if image.uri is not None and not is_data_uri(image.uri):
                flat.path = image.uri
        if image is not None and image.data is not None:
            flat.width = image.data.width
            flat.height = image.data.height
            flat.ncomp = image.data.ncomp
            flat.pixels = np.array(image.data.pixels, dtype=np.uint8, copy=True)
            if image.data.is_float:
                flat.pixels_f = np.array(
                    image.data.pixels_f, dtype=np.float32, copy=True
                )
        else:
            peeked = peek_image(image.raw) if image is not None else None
            if peeked is not None:
                flat.width, flat.height, flat.ncomp = peeked
            else:
                flat.width, flat.height, flat.ncomp = 1, 1, 4
                flat.pixels = _WHITE.copy()
            self._logger.warning(
                "Texture %d has no decoded pixels; using %s",
                info.index,
                "declared size" if peeked is not None else "1x1 white",
            )
        self.model.textures.append(flat)
        flat_index = len(self.model.textures) - 1
        self._textures[info.index] = flat_index
        self.scene.textures.append(flat_index)
        return flat_index

    def material(self, index: Optional[int]) -> int:
        if index is None:
            return -1
        if index in self._materials:
            return self._materials[index]
        mat = _ref(self.asset.materials, index, "material", "primitive")
        flat = FlatMaterial(name=mat.name, ke=tuple(mat.emissive_factor))
        sg = mat.specular_glossiness()
        if sg is not None:
            diffuse = list(sg.diffuse_factor)
            flat.specular_glossiness = True
            flat.kd, flat.op = tuple(diffuse[:3]), diffuse[3]
            flat.ks = tuple(sg.specular_factor)
            flat.rs = 1.0 - sg.glossiness_factor
            spec_txt = self.texture(sg.specular_glossiness_texture)
            diffuse_info = sg.diffuse_texture
        else:
            pbr = mat.pbr
            base = list(pbr.base_color_factor)
            metallic = pbr.metallic_factor
            flat.kd, flat.op = tuple(base[:3]), base[3]
            flat.ks = (metallic, metallic, metallic)
            flat.rs = pbr.roughness_factor
            spec_txt = self.texture(pbr.metallic_roughness_texture)
            diffuse_info = pbr.base_color_texture
        flat.ks_txt = flat.rs_txt = spec_txt
        flat.ke_txt = self.texture(mat.emissive_texture)
        flat.kd_txt = self.texture(diffuse_info)
        flat.norm_txt = self.texture(mat.normal_texture)
        flat.double_sided = mat.double_sided
        self.model.materials.append(flat)
        flat_index = len(self.model.materials) - 1
        self._materials[index] = flat_index
        self.scene.materials.append(flat_index)
        return flat_index

    # geometry -------------------------------------------------------------

    def primitive(self, prim: Primitive, name: str) -> FlatPrimitive:
        material = self.material(prim.material)
        try:
            return self._geometry(prim, name, material)
        except ResourceError as exc:
            if exc.code != E_MISSING:
                raise
            # buffer left empty by load(skip_missing=True)
            self._logger.warning("Primitive %r has no geometry: %s", name, exc.message)
            self.skipped += 1
            return FlatPrimitive(name=name, material=material)

    def _geometry(self, prim: Primitive, name: str, material: int) -> FlatPrimitive:
        flat = FlatPrimitive(name=name, material=material)
        vertex_count = 0
        for semantic, (attr, ncomp) in _ATTRIBUTES.items():
            acc = prim.attributes.get(semantic)
            if acc is None:
                continue
            values = AccessorView(self.asset, acc).to_array(np.float32)
            values = values[:, :ncomp]
            if ncomp == 1:
                values = values[:, 0]
            elif values.shape[1] < ncomp:
                values = np.pad(values, ((0, 0), (0, ncomp - values.shape[1])))
            setattr(flat, attr, np.ascontiguousarray(values))
            vertex_count = max(vertex_count, len(values))
        if prim.indices is not None:
            idx = ElementView(self.asset, prim.indices).to_array()
        else:
            idx = np.arange(vertex_count, dtype=np.int64)
        for kind, elements in expand_elements(prim.mode, idx).items():
            setattr(flat, kind, elements)
        return flat

    def mesh(self, index: int) -> List[int]:
        if index in self._mesh_prims:
            return self._mesh_prims[index]
        mesh = _ref(self.asset.meshes, index, "mesh", "node")
        base = mesh.name or f"mesh{index}"
        out: List[int] = []
        for k, prim in enumerate(mesh.primitives):
            name = base if len(mesh.primitives) == 1 else f"{base}_{k}"
            self.model.primitives.append(self.primitive(prim, name))
            out.append(len(self.model.primitives) - 1)
        self.scene.primitives.extend(out)
        self._mesh_prims[index] = out
        return out

    # nodes ----------------------------------------------------------------

    def camera(self, node: Node, world: np.ndarray) -> None:
        cam = _ref(self.asset.cameras, node.camera, "camera", "node")
        flat = FlatCamera(name=node.name or cam.name, xform=world)
        if cam.type == CAMERA_ORTHOGRAPHIC and cam.orthographic is not None:
            o = cam.orthographic
            flat.ortho = True
            flat.yfov = o.ymag
            flat.aspect = o.xmag / o.ymag if o.ymag else 1.0
            flat.near, flat.far = o.znear, o.zfar
        elif cam.perspective is not None:
            p = cam.perspective
            flat.yfov = p.yfov
            flat.aspect = p.aspect_ratio if p.aspect_ratio else 1.0
            flat.near = p.znear
            if p.zfar is not None:
                flat.far = p.zfar
        self.model.cameras.append(flat)
        self.scene.cameras.append(len(self.model.cameras) - 1)

    def run(self, scene_index: Optional[int]) -> FlatModel:
        self.scene.name, roots = select_roots(self.asset, scene_index)
        for index, world in iter_world_transforms(self.asset, roots):
            node = self.asset.nodes[index]
            if node.camera is not None:
                self.camera(node, world)
            if node.mesh is not None:
                prims = self.mesh(node.mesh)
                mesh_name = node.name or self.asset.meshes[node.mesh].name
                self.model.meshes.append(
                    FlatMesh(name=mesh_name, xform=world, primitives=list(prims))
                )
                self.scene.meshes.append(len(self.model.meshes) - 1)
        self.model.scenes.append(self.scene)
        self.model.default_scene = 0
        return self.model


def flatten(asset: Asset, scene_index: Optional[int] = -1) -> FlatModel:
    """Flatten ``scene_index`` (or the default scene) of ``asset``."""
    with task("flatten", "Flatten scene") as stats:
        flattener = _Flattener(asset)
        model = flattener.run(scene_index)
        stats.update(
            meshes=len(model.meshes),
            primitives=len(model.primitives),
            materials=len(model.materials),
            textures=len(model.textures),
            skipped=flattener.skipped,
        )
    return model
