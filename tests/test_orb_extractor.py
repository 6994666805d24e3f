import numpy as np
import pytest

from orbmapping.orb_extractor import EDGE_THRESHOLD, PATCH_SIZE, ORBExtractor, fast


def _textured(rows, cols, seed=7):
    return np.random.default_rng(seed).integers(0, 256, size=(rows, cols), dtype=np.uint8)


def _spot(value=255, size=15):
    image = np.zeros((size, size), dtype=np.uint8)
    image[size // 2, size // 2] = value
    return image


def test_fast_flat_image_has_no_corners():
    assert fast(np.full((20, 20), 90, dtype=np.uint8), 10) == []


def test_fast_single_bright_pixel():
    keys = fast(_spot(), 20, True)
    assert [(kp.x, kp.y) for kp in keys] == [(7.0, 7.0)]
    assert keys[0].response == 254


def test_fast_without_suppression_has_zero_response():
    keys = fast(_spot(), 20, False)
    assert [(kp.x, kp.y) for kp in keys] == [(7.0, 7.0)]
    assert keys[0].response == 0


def test_fast_threshold_above_contrast():
    assert fast(_spot(value=30), 40) == []


def test_fast_tiny_image_and_bad_shape():
    assert fast(np.zeros((5, 5), dtype=np.uint8), 10) == []
    with pytest.raises(ValueError):
        fast(np.zeros((10, 10, 3), dtype=np.uint8), 10)


def test_scale_tables():
    extractor = ORBExtractor(1000, 1.2, 8, 20, 7)
    assert extractor.scale_factors[0] == 1.0
    for lower, upper in zip(extractor.scale_factors, extractor.scale_factors[1:]):
        assert upper / lower == pytest.approx(1.2)
    for s, s2, inv, inv2 in zip(extractor.scale_factors, extractor.level_sigma2,
                                extractor.inv_scale_factors, extractor.inv_level_sigma2):
        assert s2 == pytest.approx(s * s)
        assert inv * s == pytest.approx(1.0)
        assert inv2 * s2 == pytest.approx(1.0)


def test_features_per_level_sum_and_order():
    extractor = ORBExtractor(1000, 1.2, 8, 20, 7)
    counts = extractor.features_per_level
    assert len(counts) == 8
    assert sum(counts) == 1000
    assert counts[:-1] == sorted(counts[:-1], reverse=True)


def test_invalid_parameters():
    with pytest.raises(ValueError):
        ORBExtractor(100, 1.0, 4, 20, 7)
    with pytest.raises(ValueError):
        ORBExtractor(100, 1.2, 0, 20, 7)


def test_pyramid_shapes_and_constant_image():
    extractor = ORBExtractor(100, 2.0, 3, 20, 7)
    image = np.full((80, 100), 77, dtype=np.uint8)
    pyramid = extractor.compute_pyramid(image)
    assert len(pyramid) == 3
    assert pyramid[0].shape == image.shape
    for lower, upper in zip(pyramid, pyramid[1:]):
        assert upper.shape[0] < lower.shape[0] and upper.shape[1] < lower.shape[1]
    assert all((level == 77).all() for level in pyramid)


def test_keypoints_before_pyramid_raise():
    with pytest.raises(RuntimeError):
        ORBExtractor(100, 1.2, 3, 20, 7).compute_keypoints_octtree()


def test_octtree_keypoints_levels_and_borders():
    extractor = ORBExtractor(200, 1.2, 3, 20, 7)
    extractor.compute_pyramid(_textured(200, 200))
    per_level = extractor.compute_keypoints_octtree()
    assert len(per_level) == 3
    assert sum(len(level) for level in per_level) > 0
    for level, keys in enumerate(per_level):
        rows, cols = extractor.image_pyramid[level].shape
        for kp in keys:
            assert kp.octave == level
            assert kp.size == int(PATCH_SIZE * extractor.scale_factors[level])
            assert EDGE_THRESHOLD - 3 <= kp.x < cols - EDGE_THRESHOLD + 3
            assert EDGE_THRESHOLD - 3 <= kp.y < rows - EDGE_THRESHOLD + 3
            assert 0.0 <= kp.angle < 360.0


def test_detect_and_compute_consistency():
    image = _textured(200, 200)
    extractor = ORBExtractor(200, 1.2, 3, 20, 7)
    keypoints, descriptors = extractor.detect_and_compute(image)
    assert len(keypoints) > 0
    assert descriptors.shape == (len(keypoints), 32)
    assert descriptors.dtype == np.uint8
    for kp in keypoints:
        assert 0 <= kp.x < 200 and 0 <= kp.y < 200
        assert 0 <= kp.octave < 3
    again, again_desc = ORBExtractor(200, 1.2, 3, 20, 7).detect_and_compute(image)
    assert again == keypoints
    assert np.array_equal(again_desc, descriptors)


def test_detect_and_compute_flat_and_empty():
    extractor = ORBExtractor(100, 1.2, 3, 20, 7)
    keys, desc = extractor.detect_and_compute(np.full((120, 120), 50, dtype=np.uint8))
    assert keys == []
    assert desc.shape == (0, 32)
    keys, desc = extractor.detect_and_compute(np.zeros((0, 0), dtype=np.uint8))
    assert keys == []
    assert desc.shape == (0, 32)


def test_detect_and_compute_rejects_colour():
    with pytest.raises(ValueError):
        ORBExtractor(100, 1.2, 3, 20, 7).detect_and_compute(np.zeros((50, 50, 3), dtype=np.uint8))