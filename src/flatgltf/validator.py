"""Structural validation of a parsed asset.

Phases:
 1. references: every index points at an existing entity
 2. enums: sampler filters / wrap modes, alphaMode, primitive mode,
    animation interpolation and path (non-fatal, defaults apply)
 3. layout: bufferView / accessor extents, component and shape typing

Returns a list of ValidationErrorRecord; empty list means success. Layout
checks only run when the reference phase is clean. Records with
``fatal=False`` describe values that fall back to their glTF default;
``validate_asset(asset, apply_defaults=True)`` writes those defaults back.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from .constants import (
    ACCESSOR_TYPES,
    ALPHA_MODES,
    ANIMATION_PATHS,
    COMPONENT_TYPES,
    INDEX_COMPONENT_TYPES,
    INTERPOLATIONS,
    KHR_SPECULAR_GLOSSINESS,
    MAG_FILTERS,
    MIN_FILTERS,
    PRIMITIVE_MODES,
    REPEAT,
    TRIANGLES,
    WRAP_MODES,
)
from .errors import E_FIELD, E_RANGE, E_REF, E_SIZE, E_TYPE, SchemaError
from .model import Asset, Material

__all__ = ["ValidationErrorRecord", "validate_asset", "first_fatal"]

# largest byteStride allowed for vertex data
MAX_BYTE_STRIDE = 252


class ValidationErrorRecord:
    def __init__(
        self, code: str, message: str, path: str = "", fatal: bool = True
    ) -> None:
        self.code = code
        self.message = message
        self.path = path
        self.fatal = fatal

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "path": self.path,
            "fatal": self.fatal,
        }

    def __repr__(self) -> str:
        return (
            f"ValidationErrorRecord(code={self.code}, path={self.path}, "
            f"fatal={self.fatal}, message={self.message})"
        )


def _err(errors: List[ValidationErrorRecord], code: str, message: str, path: str):
    errors.append(ValidationErrorRecord(code, message, path))


def _default(
    errors: List[ValidationErrorRecord],
    obj: Any,
    attr: str,
    default: Any,
    message: str,
    path: str,
    apply: bool,
) -> None:
    errors.append(
        ValidationErrorRecord(E_RANGE, f"{message}; using {default!r}", path, fatal=False)
    )
    if apply:
        setattr(obj, attr, default)


def _check_ref(
    errors: List[ValidationErrorRecord],
    index: Optional[int],
    items: list,
    kind: str,
    path: str,
) -> None:
    if index is None:
        return
    if not 0 <= index < len(items):
        _err(errors, E_REF, f"Missing {kind} {index}", path)


def _check_refs(
    errors: List[ValidationErrorRecord],
    indices: Iterable[int],
    items: list,
    kind: str,
    path: str,
) -> None:
    for k, index in enumerate(indices):
        _check_ref(errors, index, items, kind, f"{path}[{k}]")


def _material_refs(
    errors: List[ValidationErrorRecord], asset: Asset, mat: Material, path: str
) -> None:
    slots = [
        ("normalTexture", mat.normal_texture),
        ("occlusionTexture", mat.occlusion_texture),
        ("emissiveTexture", mat.emissive_texture),
    ]
    if mat.pbr_metallic_roughness is not None:
        pbr = mat.pbr_metallic_roughness
        slots += [
            ("pbrMetallicRoughness.baseColorTexture", pbr.base_color_texture),
            (
                "pbrMetallicRoughness.metallicRoughnessTexture",
                pbr.metallic_roughness_texture,
            ),
        ]
    try:
        sg = mat.specular_glossiness()
    except SchemaError as exc:
        _err(errors, exc.code, exc.message, f"{path}.{(exc.context or {}).get('path', 'extensions')}")
        sg = None
    if sg is not None:
        ext = f"extensions.{KHR_SPECULAR_GLOSSINESS}"
        slots += [
            (f"{ext}.diffuseTexture", sg.diffuse_texture),
            (f"{ext}.specularGlossinessTexture", sg.specular_glossiness_texture),
        ]
    for key, info in slots:
        if info is not None:
            _check_ref(
                errors, info.index, asset.textures, "texture", f"{path}.{key}.index"
            )


def _reference_phase(asset: Asset) -> List[ValidationErrorRecord]:
    errors: List[ValidationErrorRecord] = []
    _check_ref(errors, asset.scene, asset.scenes, "scene", "scene")
    for i, view in enumerate(asset.buffer_views):
        _check_ref(errors, view.buffer, asset.buffers, "buffer", f"bufferViews[{i}].buffer")
    for i, acc in enumerate(asset.accessors):
        path = f"accessors[{i}]"
        _check_ref(errors, acc.buffer_view, asset.buffer_views, "bufferView", f"{path}.bufferView")
        if acc.sparse is not None:
            _check_ref(
                errors,
                acc.sparse.indices.buffer_view,
                asset.buffer_views,
                "bufferView",
                f"{path}.sparse.indices.bufferView",
            )
            _check_ref(
                errors,
                acc.sparse.values.buffer_view,
                asset.buffer_views,
                "bufferView",
                f"{path}.sparse.values.bufferView",
            )
    for i, image in enumerate(asset.images):
        path = f"images[{i}]"
        _check_ref(errors, image.buffer_view, asset.buffer_views, "bufferView", f"{path}.bufferView")
        if image.uri is None and image.buffer_view is None:
            _err(errors, E_FIELD, "Image needs a uri or a bufferView", path)
    for i, tex in enumerate(asset.textures):
        _check_ref(errors, tex.sampler, asset.samplers, "sampler", f"textures[{i}].sampler")
        _check_ref(errors, tex.source, asset.images, "image", f"textures[{i}].source")
    for i, mat in enumerate(asset.materials):
        _material_refs(errors, asset, mat, f"materials[{i}]")
    for m, mesh in enumerate(asset.meshes):
        for p, prim in enumerate(mesh.primitives):
            path = f"meshes[{m}].primitives[{p}]"
            for sem, acc in prim.attributes.items():
                _check_ref(errors, acc, asset.accessors, "accessor", f"{path}.attributes.{sem}")
            _check_ref(errors, prim.indices, asset.accessors, "accessor", f"{path}.indices")
            _check_ref(errors, prim.material, asset.materials, "material", f"{path}.material")
    for i, node in enumerate(asset.nodes):
        path = f"nodes[{i}]"
        _check_ref(errors, node.camera, asset.cameras, "camera", f"{path}.camera")
        _check_ref(errors, node.mesh, asset.meshes, "mesh", f"{path}.mesh")
        _check_ref(errors, node.skin, asset.skins, "skin", f"{path}.skin")
        _check_refs(errors, node.children, asset.nodes, "node", f"{path}.children")
    for i, scene in enumerate(asset.scenes):
        _check_refs(errors, scene.nodes, asset.nodes, "node", f"scenes[{i}].nodes")
    for i, skin in enumerate(asset.skins):
        path = f"skins[{i}]"
        _check_ref(
            errors,
            skin.inverse_bind_matrices,
            asset.accessors,
            "accessor",
            f"{path}.inverseBindMatrices",
        )
        _check_refs(errors, skin.joints, asset.nodes, "node", f"{path}.joints")
        _check_ref(errors, skin.skeleton, asset.nodes, "node", f"{path}.skeleton")
    for a, anim in enumerate(asset.animations):
        for s, sampler in enumerate(anim.samplers):
            path = f"animations[{a}].samplers[{s}]"
            _check_ref(errors, sampler.input, asset.accessors, "accessor", f"{path}.input")
            _check_ref(errors, sampler.output, asset.accessors, "accessor", f"{path}.output")
        for c, channel in enumerate(anim.channels):
            path = f"animations[{a}].channels[{c}]"
            _check_ref(errors, channel.sampler, anim.samplers, "sampler", f"{path}.sampler")
            _check_ref(errors, channel.target.node, asset.nodes, "node", f"{path}.target.node")
    return errors


def _enum_phase(asset: Asset, apply: bool) -> List[ValidationErrorRecord]:
    errors: List[ValidationErrorRecord] = []
    for i, sampler in enumerate(asset.samplers):
        path = f"samplers[{i}]"
        if sampler.mag_filter is not None and sampler.mag_filter not in MAG_FILTERS:
            _default(errors, sampler, "mag_filter", None,
                     f"Unknown magFilter {sampler.mag_filter}", f"{path}.magFilter", apply)
        if sampler.min_filter is not None and sampler.min_filter not in MIN_FILTERS:
            _default(errors, sampler, "min_filter", None,
                     f"Unknown minFilter {sampler.min_filter}", f"{path}.minFilter", apply)
        for key, attr in (("wrapS", "wrap_s"), ("wrapT", "wrap_t")):
            mode = getattr(sampler, attr)
            if mode not in WRAP_MODES:
                _default(errors, sampler, attr, REPEAT,
                         f"Unknown wrap mode {mode}", f"{path}.{key}", apply)
    for i, mat in enumerate(asset.materials):
        if mat.alpha_mode not in ALPHA_MODES:
            _default(errors, mat, "alpha_mode", "OPAQUE",
                     f"Unknown alphaMode {mat.alpha_mode!r}", f"materials[{i}].alphaMode", apply)
    for m, mesh in enumerate(asset.meshes):
        for p, prim in enumerate(mesh.primitives):
            if prim.mode not in PRIMITIVE_MODES:
                _default(errors, prim, "mode", TRIANGLES,
                         f"Unknown primitive mode {prim.mode}",
                         f"meshes[{m}].primitives[{p}].mode", apply)
    for a, anim in enumerate(asset.animations):
        for s, sampler in enumerate(anim.samplers):
            if sampler.interpolation not in INTERPOLATIONS:
                _default(errors, sampler, "interpolation", "LINEAR",
                         f"Unknown interpolation {sampler.interpolation!r}",
                         f"animations[{a}].samplers[{s}].interpolation", apply)
        for c, channel in enumerate(anim.channels):
            # no default exists for a target path; the channel is left as-is
            if channel.target.path not in ANIMATION_PATHS:
                errors.append(
                    ValidationErrorRecord(
                        E_RANGE,
                        f"Unknown animation path {channel.target.path!r}; channel ignored",
                        f"animations[{a}].channels[{c}].target.path",
                        fatal=False,
                    )
                )
    return errors


def _layout_phase(asset: Asset) -> List[ValidationErrorRecord]:
    errors: List[ValidationErrorRecord] = []
    for i, view in enumerate(asset.buffer_views):
        path = f"bufferViews[{i}]"
        buffer = asset.buffers[view.buffer]
        if view.byte_offset + view.byte_length > buffer.byte_length:
            _err(
                errors,
                E_SIZE,
                f"Range {view.byte_offset}+{view.byte_length} exceeds buffer "
                f"{view.buffer} byteLength {buffer.byte_length}",
                path,
            )
        stride = view.byte_stride
        if stride and (stride < 4 or stride > MAX_BYTE_STRIDE or stride % 4):
            _err(errors, E_RANGE, f"Invalid byteStride {stride}", f"{path}.byteStride")
    for i, acc in enumerate(asset.accessors):
        path = f"accessors[{i}]"
        if acc.component_type not in COMPONENT_TYPES:
            _err(errors, E_TYPE, f"Unknown componentType {acc.component_type}", f"{path}.componentType")
            continue
        if acc.type not in ACCESSOR_TYPES:
            _err(errors, E_TYPE, f"Unknown accessor type {acc.type!r}", f"{path}.type")
            continue
        element_size = ACCESSOR_TYPES[acc.type] * COMPONENT_TYPES[acc.component_type][1]
        if acc.buffer_view is not None and acc.count > 0:
            view = asset.buffer_views[acc.buffer_view]
            stride = view.byte_stride or element_size
            extent = acc.byte_offset + (acc.count - 1) * stride + element_size
            if extent > view.byte_length:
                _err(
                    errors,
                    E_SIZE,
                    f"Needs {extent} bytes, bufferView {acc.buffer_view} holds "
                    f"{view.byte_length}",
                    path,
                )
        if acc.sparse is not None:
            if acc.sparse.indices.component_type not in INDEX_COMPONENT_TYPES:
                _err(
                    errors,
                    E_TYPE,
                    "Sparse indices must use an unsigned integer type",
                    f"{path}.sparse.indices.componentType",
                )
            if acc.sparse.count > acc.count:
                _err(
                    errors,
                    E_RANGE,
                    f"Sparse count {acc.sparse.count} exceeds count {acc.count}",
                    f"{path}.sparse.count",
                )
    for m, mesh in enumerate(asset.meshes):
        for p, prim in enumerate(mesh.primitives):
            if prim.indices is None:
                continue
            acc = asset.accessors[prim.indices]
            if acc.type != "SCALAR" or acc.component_type not in INDEX_COMPONENT_TYPES:
                _err(
                    errors,
                    E_TYPE,
                    "Index accessor must be SCALAR with an unsigned integer type",
                    f"meshes[{m}].primitives[{p}].indices",
                )
    return errors


def validate_asset(
    asset: Asset, *, apply_defaults: bool = False
) -> List[ValidationErrorRecord]:
    errors = _reference_phase(asset)
    errors.extend(_enum_phase(asset, apply_defaults))
    if any(e.fatal for e in errors):
        return errors  # layout checks index into referenced entities
    errors.extend(_layout_phase(asset))
    return errors


def first_fatal(
    errors: Iterable[ValidationErrorRecord],
) -> Optional[ValidationErrorRecord]:
    return next((e for e in errors if e.fatal), None)
