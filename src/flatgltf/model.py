"""Dataclass models mirroring the glTF 2.0 object graph.

Entities live in per-kind lists on :class:`Asset` and reference each other by
integer index. ``from_json`` / ``to_json`` convert to and from the parsed JSON
document; fields the model does not know about are kept in ``unknown`` and
written back untouched.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

from .constants import (
    ACCESSOR_TYPES,
    CAMERA_ORTHOGRAPHIC,
    CAMERA_PERSPECTIVE,
    COMPONENT_TYPES,
    IDENTITY_MATRIX,
    KHR_SPECULAR_GLOSSINESS,
    REPEAT,
    TRIANGLES,
)
from .errors import E_FIELD, E_JSON, E_TYPE, FormatError, SchemaError

__all__ = [
    "AssetInfo",
    "Buffer",
    "BufferView",
    "SparseIndices",
    "SparseValues",
    "Sparse",
    "Accessor",
    "AnimationTarget",
    "AnimationChannel",
    "AnimationSampler",
    "Animation",
    "Perspective",
    "Orthographic",
    "Camera",
    "ImageData",
    "Image",
    "Sampler",
    "Texture",
    "TextureInfo",
    "NormalTextureInfo",
    "OcclusionTextureInfo",
    "PbrMetallicRoughness",
    "PbrSpecularGlossiness",
    "Material",
    "Primitive",
    "Mesh",
    "MatrixTransform",
    "TrsTransform",
    "Transform",
    "Node",
    "Scene",
    "Skin",
    "Asset",
    "parse_asset_json",
    "dump_asset_json",
]


# JSON field helpers ---------------------------------------------------------


def _type_error(path: str, expected: str) -> SchemaError:
    return SchemaError(E_TYPE, f"'{path}' must be {expected}", {"path": path})


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _require(d: Dict[str, Any], key: str, path: str) -> Any:
    if key not in d or d[key] is None:
        full = _join(path, key)
        raise SchemaError(
            E_FIELD, f"Missing required field '{full}'", {"path": full}
        )
    return d[key]


def _int(d: Dict[str, Any], key: str, default: Any, path: str) -> Any:
    v = d.get(key)
    if v is None:
        return default
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise _type_error(_join(path, key), "an integer")
    if isinstance(v, float):
        if not v.is_integer():
            raise _type_error(_join(path, key), "an integer")
        v = int(v)
    return v


def _req_int(d: Dict[str, Any], key: str, path: str) -> int:
    _require(d, key, path)
    return _int(d, key, None, path)


def _num(d: Dict[str, Any], key: str, default: Any, path: str) -> Any:
    v = d.get(key)
    if v is None:
        return default
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise _type_error(_join(path, key), "a number")
    return float(v)


def _str(d: Dict[str, Any], key: str, default: Any, path: str) -> Any:
    v = d.get(key)
    if v is None:
        return default
    if not isinstance(v, str):
        raise _type_error(_join(path, key), "a string")
    return v


def _bool(d: Dict[str, Any], key: str, default: bool, path: str) -> bool:
    v = d.get(key)
    if v is None:
        return default
    if not isinstance(v, bool):
        raise _type_error(_join(path, key), "a boolean")
    return v


def _floats(
    d: Dict[str, Any],
    key: str,
    default: Any,
    path: str,
    length: int | None = None,
) -> Any:
    v = d.get(key)
    if v is None:
        return default
    if not isinstance(v, list) or any(
        isinstance(x, bool) or not isinstance(x, (int, float)) for x in v
    ):
        raise _type_error(_join(path, key), "an array of numbers")
    if length is not None and len(v) != length:
        raise SchemaError(
            E_TYPE,
            f"'{_join(path, key)}' must have {length} elements, got {len(v)}",
            {"path": _join(path, key)},
        )
    return [float(x) for x in v]


def _ints(d: Dict[str, Any], key: str, path: str) -> List[int]:
    v = d.get(key)
    if v is None:
        return []
    if not isinstance(v, list) or any(
        isinstance(x, bool) or not isinstance(x, int) for x in v
    ):
        raise _type_error(_join(path, key), "an array of integers")
    return list(v)


def _obj(d: Dict[str, Any], key: str, path: str) -> Optional[Dict[str, Any]]:
    v = d.get(key)
    if v is None:
        return None
    if not isinstance(v, dict):
        raise _type_error(_join(path, key), "an object")
    return v


def _objs(d: Dict[str, Any], key: str, path: str) -> List[Dict[str, Any]]:
    v = d.get(key)
    if v is None:
        return []
    if not isinstance(v, list) or any(not isinstance(x, dict) for x in v):
        raise _type_error(_join(path, key), "an array of objects")
    return v


_COMMON_KEYS = frozenset({"extensions", "extras"})


def _common(d: Dict[str, Any], known: frozenset[str], path: str) -> Dict[str, Any]:
    ext = d.get("extensions")
    if ext is not None and not isinstance(ext, dict):
        raise _type_error(f"{path}.extensions", "an object")
    return {
        "extensions": dict(ext or {}),
        "extras": d.get("extras"),
        "unknown": {
            k: v for k, v in d.items() if k not in known and k not in _COMMON_KEYS
        },
    }


def _put(out: Dict[str, Any], key: str, value: Any, default: Any = None) -> None:
    if value is None:
        return
    if default is not None and value == default:
        return
    out[key] = value


@dataclass(slots=True)
class _Property:
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None
    unknown: Dict[str, Any] = field(default_factory=dict)

    def _common_json(self, out: Dict[str, Any]) -> Dict[str, Any]:
        # unknown first so that modelled fields win on a name clash
        merged = dict(self.unknown)
        merged.update(out)
        if self.extensions:
            merged["extensions"] = dict(self.extensions)
        if self.extras is not None:
            merged["extras"] = self.extras
        return merged


# Entities -------------------------------------------------------------------


@dataclass(slots=True)
class AssetInfo(_Property):
    version: str = "2.0"
    generator: str = ""
    copyright: str = ""
    min_version: Optional[str] = None

    _KEYS = frozenset({"version", "generator", "copyright", "minVersion"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str = "asset") -> "AssetInfo":
        version = _require(d, "version", path)
        if not isinstance(version, str):
            raise _type_error(f"{path}.version", "a string")
        return cls(
            version=version,
            generator=_str(d, "generator", "", path),
            copyright=_str(d, "copyright", "", path),
            min_version=_str(d, "minVersion", None, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"version": self.version}
        _put(out, "generator", self.generator or None)
        _put(out, "copyright", self.copyright or None)
        _put(out, "minVersion", self.min_version)
        return self._common_json(out)


@dataclass(slots=True)
class Buffer(_Property):
    name: str = ""
    uri: Optional[str] = None
    byte_length: int = 0
    # Loaded payload; not part of the JSON document.
    data: bytes = b""

    _KEYS = frozenset({"name", "uri", "byteLength"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Buffer":
        return cls(
            name=_str(d, "name", "", path),
            uri=_str(d, "uri", None, path),
            byte_length=_req_int(d, "byteLength", path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        _put(out, "uri", self.uri)
        out["byteLength"] = self.byte_length
        return self._common_json(out)


@dataclass(slots=True)
class BufferView(_Property):
    name: str = ""
    buffer: int = 0
    byte_offset: int = 0
    byte_length: int = 0
    byte_stride: int = 0
    target: Optional[int] = None

    _KEYS = frozenset(
        {"name", "buffer", "byteOffset", "byteLength", "byteStride", "target"}
    )

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "BufferView":
        return cls(
            name=_str(d, "name", "", path),
            buffer=_req_int(d, "buffer", path),
            byte_offset=_int(d, "byteOffset", 0, path),
            byte_length=_req_int(d, "byteLength", path),
            byte_stride=_int(d, "byteStride", 0, path),
            target=_int(d, "target", None, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        out["buffer"] = self.buffer
        _put(out, "byteOffset", self.byte_offset or None)
        out["byteLength"] = self.byte_length
        _put(out, "byteStride", self.byte_stride or None)
        _put(out, "target", self.target)
        return self._common_json(out)


@dataclass(slots=True)
class SparseIndices(_Property):
    buffer_view: int = 0
    byte_offset: int = 0
    component_type: int = 0

    _KEYS = frozenset({"bufferView", "byteOffset", "componentType"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "SparseIndices":
        return cls(
            buffer_view=_req_int(d, "bufferView", path),
            byte_offset=_int(d, "byteOffset", 0, path),
            component_type=_req_int(d, "componentType", path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"bufferView": self.buffer_view}
        _put(out, "byteOffset", self.byte_offset or None)
        out["componentType"] = self.component_type
        return self._common_json(out)


@dataclass(slots=True)
class SparseValues(_Property):
    buffer_view: int = 0
    byte_offset: int = 0

    _KEYS = frozenset({"bufferView", "byteOffset"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "SparseValues":
        return cls(
            buffer_view=_req_int(d, "bufferView", path),
            byte_offset=_int(d, "byteOffset", 0, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"bufferView": self.buffer_view}
        _put(out, "byteOffset", self.byte_offset or None)
        return self._common_json(out)


@dataclass(slots=True)
class Sparse(_Property):
    count: int = 0
    indices: SparseIndices = field(default_factory=SparseIndices)
    values: SparseValues = field(default_factory=SparseValues)

    _KEYS = frozenset({"count", "indices", "values"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Sparse":
        count = _req_int(d, "count", path)
        _require(d, "indices", path)
        _require(d, "values", path)
        return cls(
            count=count,
            indices=SparseIndices.from_json(
                _obj(d, "indices", path), f"{path}.indices"
            ),
            values=SparseValues.from_json(
                _obj(d, "values", path), f"{path}.values"
            ),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        return self._common_json(
            {
                "count": self.count,
                "indices": self.indices.to_json(),
                "values": self.values.to_json(),
            }
        )


@dataclass(slots=True)
class Accessor(_Property):
    name: str = ""
    buffer_view: Optional[int] = None
    byte_offset: int = 0
    component_type: int = 0
    count: int = 0
    type: str = "SCALAR"
    normalized: bool = False
    min: Optional[List[float]] = None
    max: Optional[List[float]] = None
    sparse: Optional[Sparse] = None

    _KEYS = frozenset(
        {
            "name",
            "bufferView",
            "byteOffset",
            "componentType",
            "count",
            "type",
            "normalized",
            "min",
            "max",
            "sparse",
        }
    )

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Accessor":
        component_type = _req_int(d, "componentType", path)
        if component_type not in COMPONENT_TYPES:
            raise SchemaError(
                E_TYPE,
                f"Unknown componentType {component_type} at '{path}'",
                {"path": f"{path}.componentType"},
            )
        acc_type = _require(d, "type", path)
        if acc_type not in ACCESSOR_TYPES:
            raise SchemaError(
                E_TYPE,
                f"Unknown accessor type {acc_type!r} at '{path}'",
                {"path": f"{path}.type"},
            )
        sparse = _obj(d, "sparse", path)
        return cls(
            name=_str(d, "name", "", path),
            buffer_view=_int(d, "bufferView", None, path),
            byte_offset=_int(d, "byteOffset", 0, path),
            component_type=component_type,
            count=_req_int(d, "count", path),
            type=acc_type,
            normalized=_bool(d, "normalized", False, path),
            min=_floats(d, "min", None, path),
            max=_floats(d, "max", None, path),
            sparse=(
                Sparse.from_json(sparse, f"{path}.sparse")
                if sparse is not None
                else None
            ),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        _put(out, "bufferView", self.buffer_view)
        _put(out, "byteOffset", self.byte_offset or None)
        out["componentType"] = self.component_type
        _put(out, "normalized", self.normalized or None)
        out["count"] = self.count
        out["type"] = self.type
        _put(out, "min", self.min)
        _put(out, "max", self.max)
        if self.sparse is not None:
            out["sparse"] = self.sparse.to_json()
        return self._common_json(out)

    @property
    def ncomp(self) -> int:
        return ACCESSOR_TYPES[self.type]

    @property
    def element_size(self) -> int:
        return self.ncomp * COMPONENT_TYPES[self.component_type][1]


@dataclass(slots=True)
class AnimationTarget(_Property):
    node: Optional[int] = None
    path: str = "translation"

    _KEYS = frozenset({"node", "path"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "AnimationTarget":
        target_path = _require(d, "path", path)
        if not isinstance(target_path, str):
            raise _type_error(f"{path}.path", "a string")
        return cls(
            node=_int(d, "node", None, path),
            path=target_path,
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "node", self.node)
        out["path"] = self.path
        return self._common_json(out)


@dataclass(slots=True)
class AnimationChannel(_Property):
    sampler: int = 0
    target: AnimationTarget = field(default_factory=AnimationTarget)

    _KEYS = frozenset({"sampler", "target"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "AnimationChannel":
        sampler = _req_int(d, "sampler", path)
        _require(d, "target", path)
        return cls(
            sampler=sampler,
            target=AnimationTarget.from_json(
                _obj(d, "target", path), f"{path}.target"
            ),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        return self._common_json(
            {"sampler": self.sampler, "target": self.target.to_json()}
        )


@dataclass(slots=True)
class AnimationSampler(_Property):
    input: int = 0
    output: int = 0
    interpolation: str = "LINEAR"

    _KEYS = frozenset({"input", "output", "interpolation"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "AnimationSampler":
        return cls(
            input=_req_int(d, "input", path),
            output=_req_int(d, "output", path),
            interpolation=_str(d, "interpolation", "LINEAR", path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"input": self.input, "output": self.output}
        _put(out, "interpolation", self.interpolation, "LINEAR")
        return self._common_json(out)


@dataclass(slots=True)
class Animation(_Property):
    name: str = ""
    channels: List[AnimationChannel] = field(default_factory=list)
    samplers: List[AnimationSampler] = field(default_factory=list)

    _KEYS = frozenset({"name", "channels", "samplers"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Animation":
        _require(d, "channels", path)
        _require(d, "samplers", path)
        return cls(
            name=_str(d, "name", "", path),
            channels=[
                AnimationChannel.from_json(c, f"{path}.channels[{i}]")
                for i, c in enumerate(_objs(d, "channels", path))
            ],
            samplers=[
                AnimationSampler.from_json(s, f"{path}.samplers[{i}]")
                for i, s in enumerate(_objs(d, "samplers", path))
            ],
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        out["channels"] = [c.to_json() for c in self.channels]
        out["samplers"] = [s.to_json() for s in self.samplers]
        return self._common_json(out)


@dataclass(slots=True)
class Perspective(_Property):
    yfov: float = 0.7853981633974483
    znear: float = 0.01
    aspect_ratio: Optional[float] = None
    zfar: Optional[float] = None

    _KEYS = frozenset({"yfov", "znear", "aspectRatio", "zfar"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Perspective":
        _require(d, "yfov", path)
        _require(d, "znear", path)
        return cls(
            yfov=_num(d, "yfov", None, path),
            znear=_num(d, "znear", None, path),
            aspect_ratio=_num(d, "aspectRatio", None, path),
            zfar=_num(d, "zfar", None, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "aspectRatio", self.aspect_ratio)
        out["yfov"] = self.yfov
        _put(out, "zfar", self.zfar)
        out["znear"] = self.znear
        return self._common_json(out)


@dataclass(slots=True)
class Orthographic(_Property):
    xmag: float = 1.0
    ymag: float = 1.0
    znear: float = 0.01
    zfar: float = 1000.0

    _KEYS = frozenset({"xmag", "ymag", "znear", "zfar"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Orthographic":
        for key in ("xmag", "ymag", "znear", "zfar"):
            _require(d, key, path)
        return cls(
            xmag=_num(d, "xmag", None, path),
            ymag=_num(d, "ymag", None, path),
            znear=_num(d, "znear", None, path),
            zfar=_num(d, "zfar", None, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        return self._common_json(
            {
                "xmag": self.xmag,
                "ymag": self.ymag,
                "zfar": self.zfar,
                "znear": self.znear,
            }
        )


@dataclass(slots=True)
class Camera(_Property):
    name: str = ""
    type: str = CAMERA_PERSPECTIVE
    perspective: Optional[Perspective] = None
    orthographic: Optional[Orthographic] = None

    _KEYS = frozenset({"name", "type", "perspective", "orthographic"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Camera":
        cam_type = _require(d, "type", path)
        if cam_type not in (CAMERA_PERSPECTIVE, CAMERA_ORTHOGRAPHIC):
            raise SchemaError(
                E_TYPE,
                f"Unknown camera type {cam_type!r} at '{path}'",
                {"path": f"{path}.type"},
            )
        persp = _obj(d, "perspective", path)
        ortho = _obj(d, "orthographic", path)
        if cam_type == CAMERA_PERSPECTIVE and persp is None:
            _require(d, "perspective", path)
        if cam_type == CAMERA_ORTHOGRAPHIC and ortho is None:
            _require(d, "orthographic", path)
        return cls(
            name=_str(d, "name", "", path),
            type=cam_type,
            perspective=(
                Perspective.from_json(persp, f"{path}.perspective")
                if persp is not None
                else None
            ),
            orthographic=(
                Orthographic.from_json(ortho, f"{path}.orthographic")
                if ortho is not None
                else None
            ),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        out["type"] = self.type
        if self.perspective is not None:
            out["perspective"] = self.perspective.to_json()
        if self.orthographic is not None:
            out["orthographic"] = self.orthographic.to_json()
        return self._common_json(out)


@dataclass(slots=True)
class ImageData:
    """Decoded pixels, shape (height, width, ncomp).

    ``pixels`` is always 8-bit. Sources with more than 8 bits per channel
    (16-bit and float grayscale) also keep ``pixels_f``: float32 values,
    integers normalized to [0, 1].
    """

    width: int
    height: int
    ncomp: int
    pixels: np.ndarray
    pixels_f: Optional[np.ndarray] = None

    @property
    def is_float(self) -> bool:
        return self.pixels_f is not None


@dataclass(slots=True)
class Image(_Property):
    name: str = ""
    uri: Optional[str] = None
    mime_type: Optional[str] = None
    buffer_view: Optional[int] = None
    # Encoded file bytes and decoded pixels; not part of the JSON document.
    raw: bytes = b""
    data: Optional[ImageData] = None

    _KEYS = frozenset({"name", "uri", "mimeType", "bufferView"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Image":
        return cls(
            name=_str(d, "name", "", path),
            uri=_str(d, "uri", None, path),
            mime_type=_str(d, "mimeType", None, path),
            buffer_view=_int(d, "bufferView", None, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        _put(out, "uri", self.uri)
        _put(out, "mimeType", self.mime_type)
        _put(out, "bufferView", self.buffer_view)
        return self._common_json(out)


@dataclass(slots=True)
class Sampler(_Property):
    name: str = ""
    mag_filter: Optional[int] = None
    min_filter: Optional[int] = None
    wrap_s: int = REPEAT
    wrap_t: int = REPEAT

    _KEYS = frozenset({"name", "magFilter", "minFilter", "wrapS", "wrapT"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Sampler":
        return cls(
            name=_str(d, "name", "", path),
            mag_filter=_int(d, "magFilter", None, path),
            min_filter=_int(d, "minFilter", None, path),
            wrap_s=_int(d, "wrapS", REPEAT, path),
            wrap_t=_int(d, "wrapT", REPEAT, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        _put(out, "magFilter", self.mag_filter)
        _put(out, "minFilter", self.min_filter)
        _put(out, "wrapS", self.wrap_s, REPEAT)
        _put(out, "wrapT", self.wrap_t, REPEAT)
        return self._common_json(out)


@dataclass(slots=True)
class Texture(_Property):
    name: str = ""
    sampler: Optional[int] = None
    source: Optional[int] = None

    _KEYS = frozenset({"name", "sampler", "source"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Texture":
        return cls(
            name=_str(d, "name", "", path),
            sampler=_int(d, "sampler", None, path),
            source=_int(d, "source", None, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        _put(out, "sampler", self.sampler)
        _put(out, "source", self.source)
        return self._common_json(out)


@dataclass(slots=True)
class TextureInfo(_Property):
    index: int = 0
    tex_coord: int = 0

    _KEYS = frozenset({"index", "texCoord"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "TextureInfo":
        return cls(
            index=_req_int(d, "index", path),
            tex_coord=_int(d, "texCoord", 0, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"index": self.index}
        _put(out, "texCoord", self.tex_coord or None)
        return self._common_json(out)


@dataclass(slots=True)
class NormalTextureInfo(TextureInfo):
    scale: float = 1.0

    _KEYS = frozenset({"index", "texCoord", "scale"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "NormalTextureInfo":
        return cls(
            index=_req_int(d, "index", path),
            tex_coord=_int(d, "texCoord", 0, path),
            scale=_num(d, "scale", 1.0, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"index": self.index}
        _put(out, "texCoord", self.tex_coord or None)
        _put(out, "scale", self.scale, 1.0)
        return self._common_json(out)


@dataclass(slots=True)
class OcclusionTextureInfo(TextureInfo):
    strength: float = 1.0

    _KEYS = frozenset({"index", "texCoord", "strength"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "OcclusionTextureInfo":
        return cls(
            index=_req_int(d, "index", path),
            tex_coord=_int(d, "texCoord", 0, path),
            strength=_num(d, "strength", 1.0, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"index": self.index}
        _put(out, "texCoord", self.tex_coord or None)
        _put(out, "strength", self.strength, 1.0)
        return self._common_json(out)


def _texture_info(d: Dict[str, Any], key: str, path: str, cls=TextureInfo):
    sub = _obj(d, key, path)
    if sub is None:
        return None
    return cls.from_json(sub, f"{path}.{key}")


@dataclass(slots=True)
class PbrMetallicRoughness(_Property):
    base_color_factor: List[float] = field(
        default_factory=lambda: [1.0, 1.0, 1.0, 1.0]
    )
    base_color_texture: Optional[TextureInfo] = None
    metallic_factor: float = 1.0
    roughness_factor: float = 1.0
    metallic_roughness_texture: Optional[TextureInfo] = None

    _KEYS = frozenset(
        {
            "baseColorFactor",
            "baseColorTexture",
            "metallicFactor",
            "roughnessFactor",
            "metallicRoughnessTexture",
        }
    )

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "PbrMetallicRoughness":
        return cls(
            base_color_factor=_floats(
                d, "baseColorFactor", [1.0, 1.0, 1.0, 1.0], path, 4
            ),
            base_color_texture=_texture_info(d, "baseColorTexture", path),
            metallic_factor=_num(d, "metallicFactor", 1.0, path),
            roughness_factor=_num(d, "roughnessFactor", 1.0, path),
            metallic_roughness_texture=_texture_info(
                d, "metallicRoughnessTexture", path
            ),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "baseColorFactor", self.base_color_factor, [1.0, 1.0, 1.0, 1.0])
        if self.base_color_texture is not None:
            out["baseColorTexture"] = self.base_color_texture.to_json()
        _put(out, "metallicFactor", self.metallic_factor, 1.0)
        _put(out, "roughnessFactor", self.roughness_factor, 1.0)
        if self.metallic_roughness_texture is not None:
            out["metallicRoughnessTexture"] = (
                self.metallic_roughness_texture.to_json()
            )
        return self._common_json(out)


@dataclass(slots=True)
class PbrSpecularGlossiness(_Property):
    """``KHR_materials_pbrSpecularGlossiness`` material extension."""

    diffuse_factor: List[float] = field(
        default_factory=lambda: [1.0, 1.0, 1.0, 1.0]
    )
    diffuse_texture: Optional[TextureInfo] = None
    specular_factor: List[float] = field(default_factory=lambda: [1.0, 1.0, 1.0])
    glossiness_factor: float = 1.0
    specular_glossiness_texture: Optional[TextureInfo] = None

    _KEYS = frozenset(
        {
            "diffuseFactor",
            "diffuseTexture",
            "specularFactor",
            "glossinessFactor",
            "specularGlossinessTexture",
        }
    )

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "PbrSpecularGlossiness":
        return cls(
            diffuse_factor=_floats(d, "diffuseFactor", [1.0, 1.0, 1.0, 1.0], path, 4),
            diffuse_texture=_texture_info(d, "diffuseTexture", path),
            specular_factor=_floats(d, "specularFactor", [1.0, 1.0, 1.0], path, 3),
            glossiness_factor=_num(d, "glossinessFactor", 1.0, path),
            specular_glossiness_texture=_texture_info(
                d, "specularGlossinessTexture", path
            ),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "diffuseFactor", self.diffuse_factor, [1.0, 1.0, 1.0, 1.0])
        if self.diffuse_texture is not None:
            out["diffuseTexture"] = self.diffuse_texture.to_json()
        _put(out, "specularFactor", self.specular_factor, [1.0, 1.0, 1.0])
        _put(out, "glossinessFactor", self.glossiness_factor, 1.0)
        if self.specular_glossiness_texture is not None:
            out["specularGlossinessTexture"] = (
                self.specular_glossiness_texture.to_json()
            )
        return self._common_json(out)


@dataclass(slots=True)
class Material(_Property):
    name: str = ""
    pbr_metallic_roughness: Optional[PbrMetallicRoughness] = None
    normal_texture: Optional[NormalTextureInfo] = None
    occlusion_texture: Optional[OcclusionTextureInfo] = None
    emissive_texture: Optional[TextureInfo] = None
    emissive_factor: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    alpha_mode: str = "OPAQUE"
    alpha_cutoff: Optional[float] = None
    double_sided: bool = False

    _KEYS = frozenset(
        {
            "name",
            "pbrMetallicRoughness",
            "normalTexture",
            "occlusionTexture",
            "emissiveTexture",
            "emissiveFactor",
            "alphaMode",
            "alphaCutoff",
            "doubleSided",
        }
    )

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Material":
        pbr = _obj(d, "pbrMetallicRoughness", path)
        return cls(
            name=_str(d, "name", "", path),
            pbr_metallic_roughness=(
                PbrMetallicRoughness.from_json(
                    pbr, f"{path}.pbrMetallicRoughness"
                )
                if pbr is not None
                else None
            ),
            normal_texture=_texture_info(
                d, "normalTexture", path, NormalTextureInfo
            ),
            occlusion_texture=_texture_info(
                d, "occlusionTexture", path, OcclusionTextureInfo
            ),
            emissive_texture=_texture_info(d, "emissiveTexture", path),
            emissive_factor=_floats(
                d, "emissiveFactor", [0.0, 0.0, 0.0], path, 3
            ),
            alpha_mode=_str(d, "alphaMode", "OPAQUE", path),
            alpha_cutoff=_num(d, "alphaCutoff", None, path),
            double_sided=_bool(d, "doubleSided", False, path),
            **_common(d, cls._KEYS, path),
        )

    @property
    def pbr(self) -> PbrMetallicRoughness:
        """Metallic-roughness block, falling back to glTF defaults."""
        return self.pbr_metallic_roughness or PbrMetallicRoughness()

    def specular_glossiness(self) -> Optional[PbrSpecularGlossiness]:
        """Parsed ``KHR_materials_pbrSpecularGlossiness`` block, if present.

        The raw extension stays in ``extensions`` so that it round-trips
        untouched.
        """
        ext = self.extensions.get(KHR_SPECULAR_GLOSSINESS)
        if ext is None:
            return None
        path = f"extensions.{KHR_SPECULAR_GLOSSINESS}"
        if not isinstance(ext, dict):
            raise _type_error(path, "an object")
        return PbrSpecularGlossiness.from_json(ext, path)

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        if self.pbr_metallic_roughness is not None:
            out["pbrMetallicRoughness"] = self.pbr_metallic_roughness.to_json()
        if self.normal_texture is not None:
            out["normalTexture"] = self.normal_texture.to_json()
        if self.occlusion_texture is not None:
            out["occlusionTexture"] = self.occlusion_texture.to_json()
        if self.emissive_texture is not None:
            out["emissiveTexture"] = self.emissive_texture.to_json()
        _put(out, "emissiveFactor", self.emissive_factor, [0.0, 0.0, 0.0])
        _put(out, "alphaMode", self.alpha_mode, "OPAQUE")
        _put(out, "alphaCutoff", self.alpha_cutoff)
        _put(out, "doubleSided", self.double_sided or None)
        return self._common_json(out)


@dataclass(slots=True)
class Primitive(_Property):
    attributes: Dict[str, int] = field(default_factory=dict)
    indices: Optional[int] = None
    material: Optional[int] = None
    mode: int = TRIANGLES
    targets: List[Dict[str, int]] = field(default_factory=list)

    _KEYS = frozenset({"attributes", "indices", "material", "mode", "targets"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Primitive":
        _require(d, "attributes", path)
        attributes = _obj(d, "attributes", path)
        for sem, idx in attributes.items():
            if isinstance(idx, bool) or not isinstance(idx, int):
                raise _type_error(f"{path}.attributes.{sem}", "an integer")
        targets = _objs(d, "targets", path)
        return cls(
            attributes=dict(attributes),
            indices=_int(d, "indices", None, path),
            material=_int(d, "material", None, path),
            mode=_int(d, "mode", TRIANGLES, path),
            targets=[dict(t) for t in targets],
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"attributes": dict(self.attributes)}
        _put(out, "indices", self.indices)
        _put(out, "material", self.material)
        _put(out, "mode", self.mode, TRIANGLES)
        _put(out, "targets", [dict(t) for t in self.targets] or None)
        return self._common_json(out)


@dataclass(slots=True)
class Mesh(_Property):
    name: str = ""
    primitives: List[Primitive] = field(default_factory=list)
    weights: List[float] = field(default_factory=list)

    _KEYS = frozenset({"name", "primitives", "weights"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Mesh":
        _require(d, "primitives", path)
        return cls(
            name=_str(d, "name", "", path),
            primitives=[
                Primitive.from_json(p, f"{path}.primitives[{i}]")
                for i, p in enumerate(_objs(d, "primitives", path))
            ],
            weights=_floats(d, "weights", [], path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        out["primitives"] = [p.to_json() for p in self.primitives]
        _put(out, "weights", self.weights or None)
        return self._common_json(out)


@dataclass(slots=True, frozen=True)
class MatrixTransform:
    """Node transform given as a column-major 4x4 matrix."""

    matrix: Tuple[float, ...] = IDENTITY_MATRIX


@dataclass(slots=True, frozen=True)
class TrsTransform:
    """Node transform given as translation, rotation (x, y, z, w), scale."""

    translation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)


Transform = Union[MatrixTransform, TrsTransform]


@dataclass(slots=True)
class Node(_Property):
    name: str = ""
    camera: Optional[int] = None
    mesh: Optional[int] = None
    skin: Optional[int] = None
    children: List[int] = field(default_factory=list)
    transform: Transform = field(default_factory=TrsTransform)
    weights: List[float] = field(default_factory=list)

    _KEYS = frozenset(
        {
            "name",
            "camera",
            "mesh",
            "skin",
            "children",
            "matrix",
            "translation",
            "rotation",
            "scale",
            "weights",
        }
    )

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Node":
        matrix = _floats(d, "matrix", None, path, 16)
        transform: Transform
        if matrix is not None:
            transform = MatrixTransform(tuple(matrix))
        else:
            transform = TrsTransform(
                translation=tuple(
                    _floats(d, "translation", [0.0, 0.0, 0.0], path, 3)
                ),
                rotation=tuple(
                    _floats(d, "rotation", [0.0, 0.0, 0.0, 1.0], path, 4)
                ),
                scale=tuple(_floats(d, "scale", [1.0, 1.0, 1.0], path, 3)),
            )
        return cls(
            name=_str(d, "name", "", path),
            camera=_int(d, "camera", None, path),
            mesh=_int(d, "mesh", None, path),
            skin=_int(d, "skin", None, path),
            children=_ints(d, "children", path),
            transform=transform,
            weights=_floats(d, "weights", [], path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        _put(out, "camera", self.camera)
        _put(out, "mesh", self.mesh)
        _put(out, "skin", self.skin)
        _put(out, "children", list(self.children) or None)
        t = self.transform
        if isinstance(t, MatrixTransform):
            _put(out, "matrix", list(t.matrix), list(IDENTITY_MATRIX))
        else:
            _put(out, "translation", list(t.translation), [0.0, 0.0, 0.0])
            _put(out, "rotation", list(t.rotation), [0.0, 0.0, 0.0, 1.0])
            _put(out, "scale", list(t.scale), [1.0, 1.0, 1.0])
        _put(out, "weights", self.weights or None)
        return self._common_json(out)


@dataclass(slots=True)
class Scene(_Property):
    name: str = ""
    nodes: List[int] = field(default_factory=list)

    _KEYS = frozenset({"name", "nodes"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Scene":
        return cls(
            name=_str(d, "name", "", path),
            nodes=_ints(d, "nodes", path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        _put(out, "nodes", list(self.nodes) or None)
        return self._common_json(out)


@dataclass(slots=True)
class Skin(_Property):
    name: str = ""
    inverse_bind_matrices: Optional[int] = None
    joints: List[int] = field(default_factory=list)
    skeleton: Optional[int] = None

    _KEYS = frozenset({"name", "inverseBindMatrices", "joints", "skeleton"})

    @classmethod
    def from_json(cls, d: Dict[str, Any], path: str) -> "Skin":
        _require(d, "joints", path)
        return cls(
            name=_str(d, "name", "", path),
            inverse_bind_matrices=_int(d, "inverseBindMatrices", None, path),
            joints=_ints(d, "joints", path),
            skeleton=_int(d, "skeleton", None, path),
            **_common(d, cls._KEYS, path),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name or None)
        _put(out, "inverseBindMatrices", self.inverse_bind_matrices)
        out["joints"] = list(self.joints)
        _put(out, "skeleton", self.skeleton)
        return self._common_json(out)


# (json key, attribute name, entity class)
_ROOT_ARRAYS = (
    ("accessors", "accessors", Accessor),
    ("animations", "animations", Animation),
    ("buffers", "buffers", Buffer),
    ("bufferViews", "buffer_views", BufferView),
    ("cameras", "cameras", Camera),
    ("images", "images", Image),
    ("materials", "materials", Material),
    ("meshes", "meshes", Mesh),
    ("nodes", "nodes", Node),
    ("samplers", "samplers", Sampler),
    ("scenes", "scenes", Scene),
    ("skins", "skins", Skin),
    ("textures", "textures", Texture),
)


@dataclass(slots=True)
class Asset(_Property):
    """Root of the object graph; owns every entity and all buffer bytes."""

    asset: AssetInfo = field(default_factory=AssetInfo)
    accessors: List[Accessor] = field(default_factory=list)
    animations: List[Animation] = field(default_factory=list)
    buffers: List[Buffer] = field(default_factory=list)
    buffer_views: List[BufferView] = field(default_factory=list)
    cameras: List[Camera] = field(default_factory=list)
    images: List[Image] = field(default_factory=list)
    materials: List[Material] = field(default_factory=list)
    meshes: List[Mesh] = field(default_factory=list)
    nodes: List[Node] = field(default_factory=list)
    samplers: List[Sampler] = field(default_factory=list)
    scene: Optional[int] = None
    scenes: List[Scene] = field(default_factory=list)
    skins: List[Skin] = field(default_factory=list)
    textures: List[Texture] = field(default_factory=list)
    extensions_used: List[str] = field(default_factory=list)
    extensions_required: List[str] = field(default_factory=list)

    _KEYS = frozenset(
        {key for key, _, _ in _ROOT_ARRAYS}
        | {"asset", "scene", "extensionsUsed", "extensionsRequired"}
    )

    @classmethod
    def from_json(cls, d: Dict[str, Any]) -> "Asset":
        if not isinstance(d, dict):
            raise SchemaError(E_TYPE, "Root of a glTF document must be an object")
        info = _obj(d, "asset", "")
        if info is None:
            raise SchemaError(
                E_FIELD, "Missing required field 'asset'", {"path": "asset"}
            )
        kwargs: Dict[str, Any] = {}
        for key, attr, entity in _ROOT_ARRAYS:
            kwargs[attr] = [
                entity.from_json(item, f"{key}[{i}]")
                for i, item in enumerate(_objs(d, key, ""))
            ]
        for key in ("extensionsUsed", "extensionsRequired"):
            names = d.get(key) or []
            if not isinstance(names, list) or any(
                not isinstance(n, str) for n in names
            ):
                raise _type_error(key, "an array of strings")
        return cls(
            asset=AssetInfo.from_json(info),
            scene=_int(d, "scene", None, ""),
            extensions_used=list(d.get("extensionsUsed") or []),
            extensions_required=list(d.get("extensionsRequired") or []),
            **kwargs,
            **_common(d, cls._KEYS, ""),
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"asset": self.asset.to_json()}
        _put(out, "extensionsUsed", list(self.extensions_used) or None)
        _put(out, "extensionsRequired", list(self.extensions_required) or None)
        _put(out, "scene", self.scene)
        for key, attr, _ in _ROOT_ARRAYS:
            items = getattr(self, attr)
            if items:
                out[key] = [item.to_json() for item in items]
        return self._common_json(out)


def parse_asset_json(text: Union[str, bytes]) -> Asset:
    """Parse a glTF JSON document into an :class:`Asset`."""
    try:
        data = json.loads(text)
    except (ValueError, UnicodeDecodeError) as exc:
        raise FormatError(E_JSON, f"Invalid glTF JSON: {exc}") from exc
    return Asset.from_json(data)


def dump_asset_json(asset: Asset, *, indent: int | None = None) -> str:
    return json.dumps(
        asset.to_json(),
        indent=indent,
        separators=None if indent else (",", ":"),
    )
