"""High-level API for flatgltf.

``load`` / ``save`` move assets between disk and the object model;
``flatten`` / ``unflatten`` convert between the object model and a
FlatModel; ``summarize`` condenses either into a plain dict for reporting.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np

from . import resources
from .container import decode_container, encode_container, is_container
from .errors import E_IO, E_MISSING, ResourceError, SchemaError
from .flat import FlatModel
from .flatten import flatten
from .logging import get_logger
from .model import Asset, parse_asset_json
from .options import LoadOptions, SaveOptions, load_options_file
from .reporting import get_reporter, task
from .unflatten import unflatten
from .validator import ValidationErrorRecord, first_fatal, validate_asset

__all__ = [
    "load",
    "save",
    "flatten",
    "unflatten",
    "summarize",
    "flat_to_dict",
    "report_summary",
    "load_with_options",
    "save_with_options",
    "load_options_file",
    "LoadOptions",
    "SaveOptions",
    "ValidationErrorRecord",
]

_BINARY_SUFFIX = ".glb"


def _read(path: Path) -> bytes:
    if not path.is_file():
        raise ResourceError(E_MISSING, f"File not found: {path}", {"path": str(path)})
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ResourceError(
            E_IO, f"Cannot read {path}: {exc}", {"path": str(path)}
        ) from exc


def load(
    path: str | Path,
    load_buffers: bool = True,
    load_images: bool = True,
    skip_missing: bool = False,
    *,
    validate: bool = True,
) -> Asset:
    """Load a ``.gltf`` or ``.glb`` file into an :class:`Asset`.

    Buffers are resolved before images, since images may live in a
    bufferView. ``skip_missing`` downgrades unresolvable external files to
    warnings and leaves empty placeholders.
    """
    p = Path(path)
    logger = get_logger("api")
    with task("load", f"Load {p.name}") as stats:
        data = _read(p)
        glb_bin = None
        if p.suffix.lower() == _BINARY_SUFFIX or is_container(data):
            json_bytes, glb_bin = decode_container(data)
        else:
            json_bytes = data
        asset = parse_asset_json(json_bytes)
        if validate:
            records = validate_asset(asset, apply_defaults=True)
            first = first_fatal(records)
            for rec in records:
                if rec is first:
                    continue
                if rec.fatal:
                    logger.debug("%s at %s: %s", rec.code, rec.path, rec.message)
                else:
                    logger.warning("%s at '%s'", rec.message, rec.path)
            if first is not None:
                raise SchemaError(
                    first.code,
                    f"{first.message} at '{first.path}'",
                    {"path": first.path, "errors": sum(r.fatal for r in records)},
                )
            stats["defaulted"] = len(records)
        if load_buffers:
            resources.load_buffers(
                asset, p.parent, skip_missing=skip_missing, glb_bin=glb_bin
            )
        if load_images:
            resources.load_images(asset, p.parent, skip_missing=skip_missing)
        stats.update(
            nodes=len(asset.nodes),
            meshes=len(asset.meshes),
            materials=len(asset.materials),
            textures=len(asset.textures),
            bytes=sum(len(b.data) for b in asset.buffers),
        )
    return asset


def _document(asset: Asset, embed_first_buffer: bool) -> Dict[str, Any]:
    doc = asset.to_json()
    for i, (buffer, entry) in enumerate(zip(asset.buffers, doc.get("buffers", []))):
        if i == 0 and embed_first_buffer:
            if buffer.byte_length and not buffer.data:
                raise ResourceError(
                    E_MISSING,
                    f"Buffer 0 declares {buffer.byte_length} bytes but holds no data; "
                    "load it before saving as .glb",
                    {"buffer": 0, "uri": buffer.uri},
                )
            entry.pop("uri", None)
            entry["byteLength"] = len(buffer.data)
        elif resources.is_data_uri(buffer.uri) and buffer.data:
            entry["uri"] = resources.encode_data_uri(buffer.data)
            entry["byteLength"] = len(buffer.data)
    return doc


def save(
    path: str | Path,
    asset: Asset,
    save_buffers: bool = True,
    save_images: bool = True,
    *,
    indent: int | None = None,
) -> None:
    """Write ``asset`` as ``.glb`` (buffer 0 in the BIN chunk) or ``.gltf``.

    The asset is not modified; external buffers and images are written
    relative to the target directory.
    """
    p = Path(path)
    binary = p.suffix.lower() == _BINARY_SUFFIX
    embed = binary and bool(asset.buffers)
    with task("save", f"Save {p.name}") as stats:
        doc = _document(asset, embed)
        if binary:
            json_bytes = json.dumps(doc, separators=(",", ":")).encode("utf-8")
            payload = encode_container(
                json_bytes, asset.buffers[0].data if embed else None
            )
        else:
            payload = json.dumps(doc, indent=indent).encode("utf-8")
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(payload)
        except OSError as exc:
            raise ResourceError(
                E_IO, f"Cannot write {p}: {exc}", {"path": str(p)}
            ) from exc
        if save_buffers:
            resources.save_buffers(asset, p.parent, skip=(0,) if embed else ())
        if save_images:
            resources.save_images(asset, p.parent)
        stats["bytes"] = len(payload)


def load_with_options(path: str | Path, options: LoadOptions) -> Asset:
    return load(
        path,
        load_buffers=options.load_buffers,
        load_images=options.load_images,
        skip_missing=options.skip_missing,
        validate=options.validate,
    )


def save_with_options(path: str | Path, asset: Asset, options: SaveOptions) -> None:
    save(
        path,
        asset,
        save_buffers=options.save_buffers,
        save_images=options.save_images,
        indent=options.indent,
    )


def _bounds(model: FlatModel) -> Dict[str, list] | None:
    boxes = [model.mesh_bounds(i) for i in range(len(model.meshes))]
    boxes = [b for b, m in zip(boxes, model.meshes) if m.primitives]
    if not boxes:
        return None
    lo = np.min([b[0] for b in boxes], axis=0)
    hi = np.max([b[1] for b in boxes], axis=0)
    return {"min": [float(v) for v in lo], "max": [float(v) for v in hi]}


def summarize(obj: Union[Asset, FlatModel]) -> Dict[str, Any]:
    """Entity counts (and world bounds for a FlatModel)."""
    if isinstance(obj, FlatModel):
        prims = obj.primitives
        return {
            "kind": "flat",
            "scenes": len(obj.scenes),
            "cameras": len(obj.cameras),
            "materials": len(obj.materials),
            "textures": len(obj.textures),
            "primitives": len(prims),
            "meshes": len(obj.meshes),
            "vertices": sum(p.vertex_count for p in prims),
            "triangles": sum(len(p.triangles) for p in prims),
            "lines": sum(len(p.lines) for p in prims),
            "points": sum(len(p.points) for p in prims),
            "bounds": _bounds(obj),
        }
    if isinstance(obj, Asset):
        return {
            "kind": "asset",
            "version": obj.asset.version,
            "generator": obj.asset.generator,
            "scenes": len(obj.scenes),
            "nodes": len(obj.nodes),
            "meshes": len(obj.meshes),
            "primitives": sum(len(m.primitives) for m in obj.meshes),
            "materials": len(obj.materials),
            "textures": len(obj.textures),
            "images": len(obj.images),
            "accessors": len(obj.accessors),
            "buffers": len(obj.buffers),
            "bytes": sum(len(b.data) for b in obj.buffers),
            "cameras": len(obj.cameras),
            "skins": len(obj.skins),
            "animations": len(obj.animations),
            "extensions_used": list(obj.extensions_used),
        }
    raise TypeError(f"Cannot summarize {type(obj).__name__}")


def _matrix(m: np.ndarray) -> list:
    return [[float(v) for v in row] for row in np.asarray(m)]


def flat_to_dict(model: FlatModel) -> Dict[str, Any]:
    """Plain-data description of a FlatModel (array sizes, not contents)."""
    return {
        "default_scene": model.default_scene,
        "scenes": [
            {
                "name": s.name,
                "cameras": list(s.cameras),
                "materials": list(s.materials),
                "textures": list(s.textures),
                "primitives": list(s.primitives),
                "meshes": list(s.meshes),
            }
            for s in model.scenes
        ],
        "cameras": [
            {
                "name": c.name,
                "ortho": c.ortho,
                "yfov": c.yfov,
                "aspect": c.aspect,
                "near": c.near,
                "far": c.far,
                "xform": _matrix(c.xform),
            }
            for c in model.cameras
        ],
        "materials": [
            {
                "name": m.name,
                "ke": [float(v) for v in m.ke],
                "kd": [float(v) for v in m.kd],
                "ks": [float(v) for v in m.ks],
                "rs": float(m.rs),
                "op": float(m.op),
                "ke_txt": m.ke_txt,
                "kd_txt": m.kd_txt,
                "ks_txt": m.ks_txt,
                "rs_txt": m.rs_txt,
                "norm_txt": m.norm_txt,
                "double_sided": m.double_sided,
                "specular_glossiness": m.specular_glossiness,
            }
            for m in model.materials
        ],
        "textures": [
            {
                "name": t.name,
                "path": t.path,
                "width": t.width,
                "height": t.height,
                "ncomp": t.ncomp,
                "loaded": t.loaded,
                "float": t.is_float,
            }
            for t in model.textures
        ],
        "primitives": [
            {
                "name": p.name,
                "material": p.material,
                "vertices": p.vertex_count,
                "normals": len(p.norm) > 0,
                "texcoords": len(p.texcoord) > 0,
                "colors": len(p.color) > 0,
                "radius": len(p.radius) > 0,
                "points": len(p.points),
                "lines": len(p.lines),
                "triangles": len(p.triangles),
            }
            for p in model.primitives
        ],
        "meshes": [
            {
                "name": m.name,
                "primitives": list(m.primitives),
                "xform": _matrix(m.xform),
            }
            for m in model.meshes
        ],
    }


def report_summary(obj: Union[Asset, FlatModel]) -> None:
    rep = get_reporter()
    summary = summarize(obj)
    parts = [f"{k}={v}" for k, v in summary.items() if isinstance(v, int) and not isinstance(v, bool)]
    rep.status(f"Summary ({summary['kind']}): " + " ".join(parts))
