import numpy as np
import pytest

from orbmapping.keypoint import KeyPoint
from orbmapping.orb_extractor import ORBExtractor
from orbmapping.orb_grid import compute_keypoints_grid, retain_best


def _keys(responses):
    return [KeyPoint(x=float(i), y=0.0, response=r) for i, r in enumerate(responses)]


def test_retain_best_keeps_strongest():
    keys = _keys([0.5, 3.0, 1.0, 2.0])
    kept = retain_best(keys, 2)
    assert sorted(kp.response for kp in kept) == [2.0, 3.0]


def test_retain_best_with_large_n_keeps_everything():
    keys = _keys([0.5, 3.0, 1.0])
    assert retain_best(keys, 10) == keys


def test_retain_best_negative_keeps_everything():
    keys = _keys([0.5, 3.0, 1.0])
    assert retain_best(keys, -1) == keys


def test_retain_best_zero_keeps_nothing():
    assert retain_best(_keys([1.0, 2.0]), 0) == []


def _extractor():
    return ORBExtractor(200, 1.2, 3, 20, 7)


def test_grid_requires_pyramid():
    with pytest.raises(RuntimeError):
        compute_keypoints_grid(_extractor())


def test_grid_on_uniform_image_finds_nothing():
    extractor = _extractor()
    extractor.compute_pyramid(np.full((200, 240), 128, dtype=np.uint8))
    result = compute_keypoints_grid(extractor)
    assert len(result) == 3
    assert all(level == [] for level in result)


def test_grid_keypoints_respect_budget_and_bounds():
    rng = np.random.default_rng(0)
    image = rng.integers(0, 256, size=(200, 240), dtype=np.uint8)
    extractor = _extractor()
    extractor.compute_pyramid(image)
    result = compute_keypoints_grid(extractor)

    assert len(result) == extractor.n_levels
    assert len(result[0]) > 0
    for level, keys in enumerate(result):
        assert len(keys) <= extractor.features_per_level[level]
        rows, cols = extractor.image_pyramid[level].shape
        expected_size = float(int(31 * extractor.scale_factors[level]))
        for kp in keys:
            assert kp.octave == level
            assert kp.size == expected_size
            assert 0 <= kp.x < cols
            assert 0 <= kp.y < rows
            assert 0.0 <= kp.angle < 360.0