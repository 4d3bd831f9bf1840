"""Typed views over accessor data, and the matching write helpers.

:class:`AccessorView` decodes one element per call straight from the owning
buffer bytes; nothing is copied up front, so random access is O(1).
:meth:`AccessorView.to_array` is the bulk path used by flattening and maps the
same strided layout onto a numpy array.

A view keeps a reference to its :class:`~flatgltf.model.Asset`; it must not
be used after the asset's buffers are replaced.
"""

from __future__ import annotations

import struct
from typing import Dict, Iterator, Optional, Tuple, Union

import numpy as np

from .constants import (
    ACCESSOR_TYPES,
    COMPONENT_TYPES,
    FLOAT,
    INDEX_COMPONENT_TYPES,
    SIGNED_COMPONENT_TYPES,
    UNSIGNED_BYTE,
    UNSIGNED_INT,
    UNSIGNED_SHORT,
)
from .errors import E_MISSING, E_RANGE, E_REF, E_SIZE, E_TYPE, ResourceError, SchemaError
from .model import Accessor, Asset, BufferView

__all__ = [
    "AccessorView",
    "ElementView",
    "component_size",
    "component_count",
    "smallest_index_type",
    "append_accessor",
]

_NP_DTYPES = {
    "b": np.dtype("<i1"),
    "B": np.dtype("<u1"),
    "h": np.dtype("<i2"),
    "H": np.dtype("<u2"),
    "I": np.dtype("<u4"),
    "f": np.dtype("<f4"),
}


def component_size(component_type: int) -> int:
    try:
        return COMPONENT_TYPES[component_type][1]
    except KeyError:
        raise SchemaError(
            E_TYPE, f"Unknown component type {component_type}"
        ) from None


def component_count(acc_type: str) -> int:
    try:
        return ACCESSOR_TYPES[acc_type]
    except KeyError:
        raise SchemaError(E_TYPE, f"Unknown accessor type {acc_type!r}") from None


def _buffer_view(asset: Asset, index: int, what: str) -> BufferView:
    if not 0 <= index < len(asset.buffer_views):
        raise SchemaError(
            E_REF,
            f"{what} references missing bufferView {index}",
            {"bufferView": index},
        )
    view = asset.buffer_views[index]
    if not 0 <= view.buffer < len(asset.buffers):
        raise SchemaError(
            E_REF,
            f"bufferView {index} references missing buffer {view.buffer}",
            {"bufferView": index},
        )
    return view


def _view_bytes(asset: Asset, view: BufferView, index: int) -> bytes:
    data = asset.buffers[view.buffer].data
    end = view.byte_offset + view.byte_length
    if end > len(data):
        if not data:
            raise ResourceError(
                E_MISSING,
                f"Buffer {view.buffer} behind bufferView {index} is not loaded",
                {"bufferView": index},
            )
        raise SchemaError(
            E_SIZE,
            f"bufferView {index} range {view.byte_offset}+{view.byte_length} "
            f"exceeds buffer {view.buffer} size {len(data)}",
            {"bufferView": index},
        )
    return data


class _Source:
    """Strided element layout inside one buffer."""

    __slots__ = ("data", "start", "stride")

    def __init__(self, data: bytes, start: int, stride: int) -> None:
        self.data = data
        self.start = start
        self.stride = stride


def _source(
    asset: Asset,
    view_index: int,
    byte_offset: int,
    count: int,
    element_size: int,
    what: str,
    allow_stride: bool = True,
) -> _Source:
    view = _buffer_view(asset, view_index, what)
    data = _view_bytes(asset, view, view_index)
    stride = view.byte_stride if allow_stride and view.byte_stride else element_size
    if stride < element_size:
        raise SchemaError(
            E_SIZE,
            f"{what}: byteStride {stride} smaller than element size "
            f"{element_size}",
            {"bufferView": view_index},
        )
    if count > 0:
        extent = byte_offset + (count - 1) * stride + element_size
        if extent > view.byte_length:
            raise SchemaError(
                E_SIZE,
                f"{what}: needs {extent} bytes, bufferView {view_index} "
                f"holds {view.byte_length}",
                {"bufferView": view_index},
            )
    return _Source(data, view.byte_offset + byte_offset, stride)


class AccessorView:
    """Random access decoder for one accessor.

    ``read_element`` returns a float tuple with ``ncomp`` entries; integer
    data is widened, or mapped to [0, 1] / [-1, 1] when ``normalized`` is set.
    Sparse substitutions are applied on read, later entries winning over
    earlier ones for the same index.
    """

    __slots__ = (
        "accessor",
        "ncomp",
        "_count",
        "_ctype",
        "_struct",
        "_divisor",
        "_base",
        "_sparse",
        "_sparse_values",
    )

    def __init__(self, asset: Asset, accessor: Union[Accessor, int]) -> None:
        if isinstance(accessor, int):
            if not 0 <= accessor < len(asset.accessors):
                raise SchemaError(
                    E_REF,
                    f"Accessor index {accessor} out of range",
                    {"accessor": accessor},
                )
            accessor = asset.accessors[accessor]
        self.accessor = accessor
        fmt, csize, divisor = COMPONENT_TYPES.get(
            accessor.component_type, (None, 0, None)
        )
        if fmt is None:
            raise SchemaError(
                E_TYPE,
                f"Unknown component type {accessor.component_type}",
                {"accessor": accessor.name},
            )
        self.ncomp = component_count(accessor.type)
        self._count = accessor.count
        self._ctype = accessor.component_type
        self._struct = struct.Struct(f"<{self.ncomp}{fmt}")
        self._divisor = divisor if accessor.normalized else None
        element_size = self._struct.size
        self._base: Optional[_Source] = None
        if accessor.buffer_view is not None:
            self._base = _source(
                asset,
                accessor.buffer_view,
                accessor.byte_offset,
                accessor.count,
                element_size,
                f"accessor {accessor.name or '<unnamed>'}",
            )
        self._sparse: Dict[int, int] = {}
        self._sparse_values: Optional[_Source] = None
        if accessor.sparse is not None and accessor.sparse.count > 0:
            self._init_sparse(asset, element_size)

    def _init_sparse(self, asset: Asset, element_size: int) -> None:
        sparse = self.accessor.sparse
        ictype = sparse.indices.component_type
        if ictype not in INDEX_COMPONENT_TYPES:
            raise SchemaError(
                E_TYPE,
                f"Sparse indices must be an unsigned integer type, got {ictype}",
                {"accessor": self.accessor.name},
            )
        ifmt, isize, _ = COMPONENT_TYPES[ictype]
        indices = _source(
            asset,
            sparse.indices.buffer_view,
            sparse.indices.byte_offset,
            sparse.count,
            isize,
            "sparse indices",
            allow_stride=False,
        )
        self._sparse_values = _source(
            asset,
            sparse.values.buffer_view,
            sparse.values.byte_offset,
            sparse.count,
            element_size,
            "sparse values",
            allow_stride=False,
        )
        unpack = struct.Struct(f"<{ifmt}").unpack_from
        for k in range(sparse.count):
            (idx,) = unpack(indices.data, indices.start + k * isize)
            if idx >= self._count:
                raise SchemaError(
                    E_RANGE,
                    f"Sparse index {idx} out of range for count {self._count}",
                    {"accessor": self.accessor.name, "entry": k},
                )
            self._sparse[idx] = k

    # Element access -------------------------------------------------------

    @property
    def count(self) -> int:
        return self._count

    def __len__(self) -> int:
        return self._count

    def _raw(self, index: int) -> Tuple:
        if not 0 <= index < self._count:
            raise IndexError(f"element {index} out of range [0, {self._count})")
        k = self._sparse.get(index)
        if k is not None:
            src = self._sparse_values
            return self._struct.unpack_from(src.data, src.start + k * src.stride)
        if self._base is None:
            return (0,) * self.ncomp
        src = self._base
        return self._struct.unpack_from(src.data, src.start + index * src.stride)

    def read_element(self, index: int) -> Tuple[float, ...]:
        raw = self._raw(index)
        div = self._divisor
        if div is None:
            return tuple(float(v) for v in raw)
        if self._ctype in SIGNED_COMPONENT_TYPES:
            return tuple(max(v / div, -1.0) for v in raw)
        return tuple(v / div for v in raw)

    def __getitem__(self, index: int) -> Tuple[float, ...]:
        if index < 0:
            index += self._count
        return self.read_element(index)

    def __iter__(self) -> Iterator[Tuple[float, ...]]:
        for i in range(self._count):
            yield self.read_element(i)

    # Bulk access ----------------------------------------------------------

    def _raw_array(self) -> np.ndarray:
        dtype = _NP_DTYPES[self._struct.format[-1]]
        shape = (self._count, self.ncomp)
        if self._count == 0:
            return np.zeros(shape, dtype=dtype)
        if self._base is None:
            out = np.zeros(shape, dtype=dtype)
        else:
            src = self._base
            out = np.ndarray(
                shape,
                dtype=dtype,
                buffer=src.data,
                offset=src.start,
                strides=(src.stride, dtype.itemsize),
            ).copy()
        if self._sparse:
            src = self._sparse_values
            values = np.ndarray(
                (self.accessor.sparse.count, self.ncomp),
                dtype=dtype,
                buffer=src.data,
                offset=src.start,
                strides=(src.stride, dtype.itemsize),
            )
            targets = np.fromiter(self._sparse.keys(), dtype=np.int64)
            entries = np.fromiter(self._sparse.values(), dtype=np.int64)
            out[targets] = values[entries]
        return out

    def to_array(self, dtype=np.float32) -> np.ndarray:
        """Decode every element into a ``(count, ncomp)`` array."""
        raw = self._raw_array()
        if self._divisor is None:
            return raw.astype(dtype)
        out = raw.astype(np.float64) / self._divisor
        if self._ctype in SIGNED_COMPONENT_TYPES:
            np.maximum(out, -1.0, out=out)
        return out.astype(dtype)


class ElementView:
    """Index-buffer view: scalar integer accessors, one ``int`` per element."""

    __slots__ = ("_view",)

    def __init__(self, asset: Asset, accessor: Union[Accessor, int]) -> None:
        view = AccessorView(asset, accessor)
        acc = view.accessor
        if acc.type != "SCALAR" or acc.component_type == FLOAT:
            raise SchemaError(
                E_TYPE,
                "Element view requires a SCALAR integer accessor, got "
                f"{acc.type}/{acc.component_type}",
                {"accessor": acc.name},
            )
        self._view = view

    @property
    def count(self) -> int:
        return self._view.count

    def __len__(self) -> int:
        return self._view.count

    def __getitem__(self, index: int) -> int:
        if index < 0:
            index += self._view.count
        return int(self._view._raw(index)[0])

    def __iter__(self) -> Iterator[int]:
        for i in range(self._view.count):
            yield self[i]

    def to_array(self) -> np.ndarray:
        return self._view._raw_array()[:, 0].astype(np.int64)


# Write side -----------------------------------------------------------------


def smallest_index_type(max_index: int) -> int:
    if max_index < 0xFF:
        return UNSIGNED_BYTE
    if max_index < 0xFFFF:
        return UNSIGNED_SHORT
    return UNSIGNED_INT


_ACCESSOR_TYPE_BY_NCOMP = {1: "SCALAR", 2: "VEC2", 3: "VEC3", 4: "VEC4", 16: "MAT4"}


def append_accessor(
    asset: Asset,
    blob: bytearray,
    values: np.ndarray,
    component_type: int,
    *,
    buffer: int = 0,
    target: Optional[int] = None,
    with_bounds: bool = False,
    name: str = "",
) -> int:
    """Pack ``values`` into ``blob`` as a new bufferView + accessor pair.

    ``values`` is ``(count,)`` or ``(count, ncomp)``. Data starts on a 4-byte
    boundary. Returns the new accessor index.
    """
    arr = np.asarray(values)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    count, ncomp = arr.shape
    acc_type = _ACCESSOR_TYPE_BY_NCOMP.get(ncomp)
    if acc_type is None:
        raise SchemaError(E_TYPE, f"No accessor type with {ncomp} components")
    fmt = COMPONENT_TYPES[component_type][0]
    packed = np.ascontiguousarray(arr, dtype=_NP_DTYPES[fmt]).tobytes()
    blob.extend(b"\x00" * ((4 - len(blob) % 4) % 4))
    asset.buffer_views.append(
        BufferView(
            name=name,
            buffer=buffer,
            byte_offset=len(blob),
            byte_length=len(packed),
            target=target,
        )
    )
    blob.extend(packed)
    accessor = Accessor(
        name=name,
        buffer_view=len(asset.buffer_views) - 1,
        component_type=component_type,
        count=count,
        type=acc_type,
    )
    if with_bounds and count:
        stored = np.frombuffer(packed, dtype=_NP_DTYPES[fmt]).reshape(count, ncomp)
        accessor.min = [float(v) for v in stored.min(axis=0)]
        accessor.max = [float(v) for v in stored.max(axis=0)]
    asset.accessors.append(accessor)
    return len(asset.accessors) - 1
