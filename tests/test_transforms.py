import math

import numpy as np
import pytest

from flatgltf.errors import GraphError
from flatgltf.model import Asset, MatrixTransform, Node, TrsTransform
from flatgltf.transforms import (
    ancestor_chain,
    decompose_matrix,
    iter_world_transforms,
    local_matrix,
    matrix_from_gltf,
    matrix_to_gltf,
    parent_map,
    transform_points,
    trs_matrix,
    world_matrix,
)


def _chain_asset() -> Asset:
    return Asset(
        nodes=[
            Node(name="root", children=[1], transform=TrsTransform(translation=(1, 0, 0))),
            Node(name="child", transform=TrsTransform(translation=(2, 0, 0))),
        ]
    )


def test_child_world_translation_composes():
    asset = _chain_asset()
    world = dict(iter_world_transforms(asset, [0]))
    assert np.allclose(world[0][:3, 3], [1, 0, 0])
    assert np.allclose(world[1][:3, 3], [3, 0, 0])
    assert np.allclose(world_matrix(asset, 1), world[1])
    assert ancestor_chain(parent_map(asset), 1) == [0, 1]


def test_trs_order_scale_rotate_translate():
    half = math.sqrt(0.5)
    # 90 degrees about z, scale x by 2, then move up
    m = trs_matrix((0, 0, 5), (0, 0, half, half), (2, 1, 1))
    p = transform_points(m, np.array([[1.0, 0.0, 0.0]]))[0]
    assert np.allclose(p, [0, 2, 5])


def test_matrix_mode_is_column_major():
    values = [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 4, 5, 6, 1]
    m = local_matrix(Node(transform=MatrixTransform(tuple(float(v) for v in values))))
    assert np.allclose(m[:3, 3], [4, 5, 6])
    assert matrix_to_gltf(matrix_from_gltf(values)) == tuple(float(v) for v in values)


def test_decompose_matrix_recovers_trs():
    half = math.sqrt(0.5)
    m = trs_matrix((1, 2, 3), (half, 0, 0, half), (1, 2, 3))
    trs = decompose_matrix(m)
    assert np.allclose(trs_matrix(trs.translation, trs.rotation, trs.scale), m)


def test_shared_child_is_graph_error():
    asset = Asset(nodes=[Node(children=[2]), Node(children=[2]), Node()])
    with pytest.raises(GraphError):
        parent_map(asset)


def test_cycle_is_graph_error():
    asset = Asset(nodes=[Node(children=[1]), Node(children=[0])])
    with pytest.raises(GraphError):
        parent_map(asset)
    with pytest.raises(GraphError):
        list(iter_world_transforms(asset, [0]))


def test_self_parent_is_graph_error():
    asset = Asset(nodes=[Node(children=[0])])
    with pytest.raises(GraphError):
        parent_map(asset)


def test_dangling_child_is_graph_error():
    asset = Asset(nodes=[Node(children=[5])])
    with pytest.raises(GraphError) as ei:
        parent_map(asset)
    assert ei.value.code == "E_REF"
