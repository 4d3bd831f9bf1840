"""Flattened, renderer-facing scene representation.

A :class:`FlatModel` owns arenas of cameras, materials, textures, primitives
and meshes; everything else refers to them by index (-1 = none). Arrays are
owned copies, so a model outlives the asset it was flattened from.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from .transforms import transform_points

__all__ = [
    "FlatCamera",
    "FlatTexture",
    "FlatMaterial",
    "FlatPrimitive",
    "FlatMesh",
    "FlatScene",
    "FlatModel",
    "Hit",
    "SpatialQuery",
]


def _identity() -> np.ndarray:
    return np.eye(4)


def _empty(ncomp: int, dtype=np.float32) -> np.ndarray:
    return np.zeros((0, ncomp), dtype=dtype)


@dataclass(slots=True)
class FlatCamera:
    name: str = ""
    xform: np.ndarray = field(default_factory=_identity)
    ortho: bool = False
    # vertical field of view in radians; vertical size when orthographic
    yfov: float = 2.0 * float(np.arctan(0.5))
    aspect: float = 1.0
    near: float = 0.01
    far: float = 10000.0


@dataclass(slots=True)
class FlatTexture:
    name: str = ""
    path: str = ""
    width: int = 0
    height: int = 0
    ncomp: int = 0
    # uint8 (height, width, ncomp); empty when the image could not be resolved
    pixels: np.ndarray = field(default_factory=lambda: np.zeros((0,), np.uint8))
    # float32 copy for sources above 8 bits per channel, else empty
    pixels_f: np.ndarray = field(
        default_factory=lambda: np.zeros((0,), np.float32)
    )

    @property
    def loaded(self) -> bool:
        return self.pixels.size > 0

    @property
    def is_float(self) -> bool:
        return self.pixels_f.size > 0


@dataclass(slots=True)
class FlatMaterial:
    name: str = ""
    ke: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    kd: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    ks: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rs: float = 1.0
    op: float = 1.0
    ke_txt: int = -1
    kd_txt: int = -1
    ks_txt: int = -1
    rs_txt: int = -1
    norm_txt: int = -1
    double_sided: bool = False
    # kd/ks/rs came from KHR_materials_pbrSpecularGlossiness (diffuse,
    # specular, 1 - glossiness) rather than pbrMetallicRoughness
    specular_glossiness: bool = False


@dataclass(slots=True)
class FlatPrimitive:
    name: str = ""
    material: int = -1
    pos: np.ndarray = field(default_factory=lambda: _empty(3))
    norm: np.ndarray = field(default_factory=lambda: _empty(3))
    texcoord: np.ndarray = field(default_factory=lambda: _empty(2))
    color: np.ndarray = field(default_factory=lambda: _empty(3))
    radius: np.ndarray = field(
        default_factory=lambda: np.zeros((0,), np.float32)
    )
    points: np.ndarray = field(default_factory=lambda: np.zeros((0,), np.int64))
    lines: np.ndarray = field(default_factory=lambda: _empty(2, np.int64))
    triangles: np.ndarray = field(default_factory=lambda: _empty(3, np.int64))

    @property
    def vertex_count(self) -> int:
        return len(self.pos)

    def element_kinds(self) -> List[str]:
        return [
            kind
            for kind in ("triangles", "lines", "points")
            if len(getattr(self, kind))
        ]

    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        if not len(self.pos):
            zero = np.zeros(3)
            return zero, zero
        return self.pos.min(axis=0), self.pos.max(axis=0)


@dataclass(slots=True)
class FlatMesh:
    name: str = ""
    xform: np.ndarray = field(default_factory=_identity)
    primitives: List[int] = field(default_factory=list)


@dataclass(slots=True)
class FlatScene:
    name: str = ""
    cameras: List[int] = field(default_factory=list)
    materials: List[int] = field(default_factory=list)
    textures: List[int] = field(default_factory=list)
    primitives: List[int] = field(default_factory=list)
    meshes: List[int] = field(default_factory=list)


@dataclass(slots=True)
class Hit:
    mesh: int
    primitive: int
    element: int
    distance: float
    uv: Tuple[float, float] = (0.0, 0.0)


@runtime_checkable
class SpatialQuery(Protocol):
    """Capability an acceleration structure offers over a :class:`FlatModel`."""

    def intersect_ray(
        self,
        origin: Sequence[float],
        direction: Sequence[float],
        tmax: float = float("inf"),
    ) -> Optional[Hit]: ...

    def overlap(
        self, bounds_min: Sequence[float], bounds_max: Sequence[float]
    ) -> List[int]: ...


@dataclass(slots=True)
class FlatModel:
    cameras: List[FlatCamera] = field(default_factory=list)
    materials: List[FlatMaterial] = field(default_factory=list)
    textures: List[FlatTexture] = field(default_factory=list)
    primitives: List[FlatPrimitive] = field(default_factory=list)
    meshes: List[FlatMesh] = field(default_factory=list)
    scenes: List[FlatScene] = field(default_factory=list)
    default_scene: int = -1
    _query: Optional[SpatialQuery] = None

    def attach_query(self, query: SpatialQuery) -> None:
        if not isinstance(query, SpatialQuery):
            raise TypeError(
                f"{type(query).__name__} does not implement SpatialQuery"
            )
        self._query = query

    @property
    def query(self) -> SpatialQuery:
        if self._query is None:
            raise RuntimeError("No spatial query attached to this model")
        return self._query

    def primitive_bounds(self, index: int) -> Tuple[np.ndarray, np.ndarray]:
        """Object-space bounds of one primitive."""
        return self.primitives[index].bounds()

    def mesh_bounds(self, index: int) -> Tuple[np.ndarray, np.ndarray]:
        """World-space bounds of one mesh instance."""
        mesh = self.meshes[index]
        corners = []
        for p in mesh.primitives:
            lo, hi = self.primitives[p].bounds()
            if not len(self.primitives[p].pos):
                continue
            corners.extend(
                [lo[0] if i & 1 == 0 else hi[0],
                 lo[1] if i & 2 == 0 else hi[1],
                 lo[2] if i & 4 == 0 else hi[2]]
                for i in range(8)
            )  # fmt: skip
        if not corners:
            zero = np.zeros(3)
            return zero, zero
        world = transform_points(mesh.xform, np.asarray(corners))
        return world.min(axis=0), world.max(axis=0)
