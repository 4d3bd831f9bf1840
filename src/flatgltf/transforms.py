"""Node transform resolution.

Matrices are numpy ``(4, 4)`` float64 arrays in row-major math convention
(``M @ p`` transforms column vector ``p``). glTF stores matrices column-major;
:func:`matrix_from_gltf` / :func:`matrix_to_gltf` convert between the two.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

import numpy as np

from .errors import E_CYCLE, E_REF, GraphError
from .model import Asset, MatrixTransform, Node, TrsTransform

__all__ = [
    "matrix_from_gltf",
    "matrix_to_gltf",
    "quaternion_to_matrix",
    "trs_matrix",
    "local_matrix",
    "parent_map",
    "ancestor_chain",
    "world_matrix",
    "iter_world_transforms",
    "transform_points",
    "decompose_matrix",
]


def matrix_from_gltf(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64).reshape(4, 4).T.copy()


def matrix_to_gltf(m: np.ndarray) -> Tuple[float, ...]:
    return tuple(float(v) for v in np.asarray(m, dtype=np.float64).T.reshape(16))


def quaternion_to_matrix(q: Sequence[float]) -> np.ndarray:
    """3x3 rotation for unit quaternion ``(x, y, z, w)``."""
    x, y, z, w = (float(v) for v in q)
    n = x * x + y * y + z * z + w * w
    if n == 0.0:
        return np.eye(3)
    s = 2.0 / n
    return np.array(
        [
            [1 - s * (y * y + z * z), s * (x * y - z * w), s * (x * z + y * w)],
            [s * (x * y + z * w), 1 - s * (x * x + z * z), s * (y * z - x * w)],
            [s * (x * z - y * w), s * (y * z + x * w), 1 - s * (x * x + y * y)],
        ],
        dtype=np.float64,
    )


def trs_matrix(
    translation: Sequence[float],
    rotation: Sequence[float],
    scale: Sequence[float],
) -> np.ndarray:
    """``T @ R @ S``: scale first, then rotation, then translation."""
    m = np.eye(4)
    m[:3, :3] = quaternion_to_matrix(rotation) * np.asarray(scale, dtype=np.float64)
    m[:3, 3] = translation
    return m


def local_matrix(node: Node) -> np.ndarray:
    t = node.transform
    if isinstance(t, MatrixTransform):
        return matrix_from_gltf(t.matrix)
    if isinstance(t, TrsTransform):
        return trs_matrix(t.translation, t.rotation, t.scale)
    raise TypeError(f"Unsupported node transform {type(t).__name__}")


def _check_node(asset: Asset, index: int, referrer: str) -> None:
    if not 0 <= index < len(asset.nodes):
        raise GraphError(
            E_REF,
            f"{referrer} references missing node {index}",
            {"node": index},
        )


def parent_map(asset: Asset) -> Dict[int, int]:
    """Map child -> parent; rejects shared children and cycles."""
    parents: Dict[int, int] = {}
    for i, node in enumerate(asset.nodes):
        for child in node.children:
            _check_node(asset, child, f"node {i}")
            if child == i:
                raise GraphError(
                    E_CYCLE, f"Node {i} lists itself as a child", {"node": i}
                )
            if child in parents:
                raise GraphError(
                    E_CYCLE,
                    f"Node {child} has two parents ({parents[child]} and {i})",
                    {"node": child},
                )
            parents[child] = i
    # every chain must terminate within len(nodes) steps
    limit = len(asset.nodes)
    for start in parents:
        cur, steps = start, 0
        while cur in parents:
            cur = parents[cur]
            steps += 1
            if steps > limit:
                raise GraphError(
                    E_CYCLE,
                    f"Cycle in node hierarchy through node {start}",
                    {"node": start},
                )
    return parents


def ancestor_chain(parents: Dict[int, int], index: int) -> List[int]:
    """Nodes from the root down to ``index`` (inclusive)."""
    chain = [index]
    while chain[-1] in parents:
        chain.append(parents[chain[-1]])
        if len(chain) > len(parents) + 1:
            raise GraphError(
                E_CYCLE, f"Cycle above node {index}", {"node": index}
            )
    chain.reverse()
    return chain


def world_matrix(
    asset: Asset, index: int, chain: Iterable[int] | None = None
) -> np.ndarray:
    """Compose local matrices root ... parent, node.

    ``chain`` is the root-to-node path; it is derived from the hierarchy when
    omitted.
    """
    _check_node(asset, index, "world_matrix")
    if chain is None:
        chain = ancestor_chain(parent_map(asset), index)
    m = np.eye(4)
    for i in chain:
        _check_node(asset, i, "ancestor chain")
        m = m @ local_matrix(asset.nodes[i])
    return m


def iter_world_transforms(
    asset: Asset, roots: Iterable[int]
) -> Iterator[Tuple[int, np.ndarray]]:
    """Depth-first ``(node_index, world_matrix)`` over the given roots.

    Iterative; revisiting a node (shared child, cycle, repeated root) raises
    :class:`GraphError`.
    """
    visited: set[int] = set()
    stack: List[Tuple[int, np.ndarray]] = []
    for root in reversed(list(roots)):
        _check_node(asset, root, "scene")
        stack.append((root, np.eye(4)))
    while stack:
        index, parent = stack.pop()
        if index in visited:
            raise GraphError(
                E_CYCLE,
                f"Node {index} reached twice while walking the hierarchy",
                {"node": index},
            )
        visited.add(index)
        node = asset.nodes[index]
        world = parent @ local_matrix(node)
        yield index, world
        for child in reversed(node.children):
            _check_node(asset, child, f"node {index}")
            stack.append((child, world))


def transform_points(m: np.ndarray, points: np.ndarray) -> np.ndarray:
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return pts @ m[:3, :3].T + m[:3, 3]


def _matrix_to_quaternion(r: np.ndarray) -> Tuple[float, float, float, float]:
    trace = r[0, 0] + r[1, 1] + r[2, 2]
    if trace > 0.0:
        s = 2.0 * np.sqrt(trace + 1.0)
        w = 0.25 * s
        x = (r[2, 1] - r[1, 2]) / s
        y = (r[0, 2] - r[2, 0]) / s
        z = (r[1, 0] - r[0, 1]) / s
    elif r[0, 0] > r[1, 1] and r[0, 0] > r[2, 2]:
        s = 2.0 * np.sqrt(1.0 + r[0, 0] - r[1, 1] - r[2, 2])
        w = (r[2, 1] - r[1, 2]) / s
        x = 0.25 * s
        y = (r[0, 1] + r[1, 0]) / s
        z = (r[0, 2] + r[2, 0]) / s
    elif r[1, 1] > r[2, 2]:
        s = 2.0 * np.sqrt(1.0 + r[1, 1] - r[0, 0] - r[2, 2])
        w = (r[0, 2] - r[2, 0]) / s
        x = (r[0, 1] + r[1, 0]) / s
        y = 0.25 * s
        z = (r[1, 2] + r[2, 1]) / s
    else:
        s = 2.0 * np.sqrt(1.0 + r[2, 2] - r[0, 0] - r[1, 1])
        w = (r[1, 0] - r[0, 1]) / s
        x = (r[0, 2] + r[2, 0]) / s
        y = (r[1, 2] + r[2, 1]) / s
        z = 0.25 * s
    return float(x), float(y), float(z), float(w)


def decompose_matrix(m: np.ndarray) -> TrsTransform:
    """Split an affine matrix without shear into translation/rotation/scale.

    A negative determinant is folded into the x scale.
    """
    m = np.asarray(m, dtype=np.float64)
    basis = m[:3, :3]
    scale = np.linalg.norm(basis, axis=0)
    if np.linalg.det(basis) < 0.0:
        scale[0] = -scale[0]
    safe = np.where(scale == 0.0, 1.0, scale)
    rotation = _matrix_to_quaternion(basis / safe)
    return TrsTransform(
        translation=tuple(float(v) for v in m[:3, 3]),
        rotation=rotation,
        scale=tuple(float(v) for v in scale),
    )
