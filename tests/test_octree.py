import random

import pytest

from orbmapping.keypoint import KeyPoint
from orbmapping.octree import ExtractorNode, distribute_oct_tree


def _node(keys):
    return ExtractorNode((0, 0), (10, 0), (0, 10), (10, 10), list(keys))


def test_divide_children_tile_parent():
    n1, n2, n3, n4 = _node([]).divide()
    assert n1.ul == (0, 0)
    assert n2.ur == (10, 0)
    assert n3.bl == (0, 10)
    assert n4.br == (10, 10)
    assert n1.ur == n2.ul
    assert n1.br == n2.bl == n3.ur == n4.ul
    assert n1.bl == n3.ul
    assert n2.br == n4.ur


def test_divide_assigns_every_key_once_and_inside():
    keys = [KeyPoint(1, 1), KeyPoint(8, 2), KeyPoint(2, 9), KeyPoint(9, 9), KeyPoint(3, 3)]
    children = _node(keys).divide()
    collected = [kp for child in children for kp in child.keys]
    assert sorted((k.x, k.y) for k in collected) == sorted((k.x, k.y) for k in keys)
    for child in children:
        for kp in child.keys:
            assert child.ul[0] <= kp.x <= child.br[0]
            assert child.ul[1] <= kp.y <= child.br[1]


def test_divide_flags_single_key_children():
    keys = [KeyPoint(1, 1), KeyPoint(3, 3), KeyPoint(8, 2), KeyPoint(2, 9), KeyPoint(9, 9)]
    children = _node(keys).divide()
    assert [child.no_more for child in children] == [False, True, True, True]
    assert len(children[0].keys) == 2


def test_distribute_keeps_best_of_each_quadrant():
    keys = [
        KeyPoint(10, 10, response=5), KeyPoint(12, 11, response=9),
        KeyPoint(80, 10, response=3), KeyPoint(81, 13, response=1),
        KeyPoint(10, 80, response=7), KeyPoint(11, 82, response=8),
        KeyPoint(85, 85, response=2), KeyPoint(86, 88, response=6),
    ]
    result = distribute_oct_tree(keys, 0, 100, 0, 100, 4)
    assert sorted(kp.response for kp in result) == [3, 6, 8, 9]


def test_distribute_returns_all_separated_points_when_n_is_large():
    keys = [KeyPoint(5, 5), KeyPoint(50, 50), KeyPoint(95, 5), KeyPoint(25, 75)]
    result = distribute_oct_tree(keys, 0, 100, 0, 100, 100)
    assert sorted((k.x, k.y) for k in result) == sorted((k.x, k.y) for k in keys)


def test_distribute_coincident_points_keep_strongest():
    weak = KeyPoint(30, 30, response=1)
    strong = KeyPoint(30, 30, response=4)
    assert distribute_oct_tree([weak, strong], 0, 100, 0, 100, 10) == [strong]


def test_distribute_single_point():
    kp = KeyPoint(42, 17, response=2)
    assert distribute_oct_tree([kp], 0, 100, 0, 100, 5) == [kp]


def test_distribute_empty():
    assert distribute_oct_tree([], 0, 100, 0, 100, 5) == []


def test_distribute_many_points_invariants():
    rng = random.Random(3)
    cells = [(x, y) for x in range(0, 200, 4) for y in range(0, 100, 4)]
    positions = rng.sample(cells, 200)
    keys = [KeyPoint(x, y, response=rng.random()) for x, y in positions]
    result = distribute_oct_tree(keys, 0, 200, 0, 100, 50)
    assert 50 <= len(result) <= len(keys)
    assert len({id(kp) for kp in result}) == len(result)
    ids = {id(kp) for kp in keys}
    assert all(id(kp) in ids for kp in result)


def test_distribute_rejects_flat_region():
    with pytest.raises(ValueError):
        distribute_oct_tree([KeyPoint(1, 1)], 0, 100, 5, 5, 3)