# orbmapping

Building blocks for sparse, feature-based visual mapping in Python with NumPy:
ORB keypoint detection and 256-bit binary descriptors over a scale pyramid,
a compact binary form for keypoints and matrices, the two-view geometry used
to triangulate new 3D points between keyframes, and the covisibility
consistency test applied to loop candidates.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `orbmapping.orb_extractor`
  - `ORBExtractor(n_features, scale_factor, n_levels, ini_th_fast, min_th_fast)`
    splits the feature budget across pyramid levels, builds the pyramid with
    `compute_pyramid(image)`, detects and spreads keypoints with
    `compute_keypoints_octtree()`, and with `detect_and_compute(image)` returns
    keypoints in original image coordinates together with an `(n, 32)` `uint8`
    descriptor array. Images must be 2D `uint8` arrays.
  - `fast(image, threshold, nonmax_suppression=True)` detects FAST-9/16 corners.
- `orbmapping.octree`: `distribute_oct_tree(...)` keeps the strongest keypoint
  of each cell of an adaptive quadtree built from `ExtractorNode` regions, so
  that features cover the image evenly.
- `orbmapping.orb_grid`: `compute_keypoints_grid(extractor)` is the fixed-grid
  alternative to the quadtree distribution; `retain_best(keypoints, n)` keeps the
  `n` strongest responses.
- `orbmapping.orb_descriptor`: `fast_atan2`, `compute_umax`, `ic_angle`,
  `compute_orientation`, `compute_orb_descriptor` and `compute_descriptors` —
  intensity-centroid orientation and rotated BRIEF descriptors.
- `orbmapping.orb_pattern`: `pattern_points()` returns the 512 sampling offsets
  of the descriptor tests.
- `orbmapping.keypoint`: `KeyPoint` is an immutable keypoint with `scaled`,
  `translated`, `to_bytes` and `from_bytes`; `save_matrix` / `load_matrix`
  serialise 2D (optionally multi-channel) arrays with their shape and element
  type.
- `orbmapping.triangulation`: `skew_symmetric`, `compute_f12` (fundamental
  matrix between two keyframes given `rotation`, `translation` and `k`),
  `triangulate_linear`, `reprojection_error` and `scale_consistent`.
- `orbmapping.consistency`: `ConsistentGroup` and
  `update_consistent_groups(candidates, previous_groups, threshold=3)`, which
  matches each candidate's covisibility group (the candidate plus its
  `connected_keyframes()`) against the previous groups and returns the new
  groups and the candidates consistent enough to accept.

## Examples

```python
import numpy as np
from orbmapping.orb_extractor import ORBExtractor

rng = np.random.default_rng(0)
image = (rng.random((240, 320)) * 255).astype(np.uint8)

extractor = ORBExtractor(500, 1.2, 8, 20, 7)
keypoints, descriptors = extractor.detect_and_compute(image)
print(len(keypoints), descriptors.shape)
```

```python
import numpy as np
from orbmapping.triangulation import triangulate_linear

tcw1 = np.hstack([np.eye(3), np.zeros((3, 1))])
tcw2 = np.hstack([np.eye(3), np.array([[-1.0], [0.0], [0.0]])])
point = triangulate_linear([0.0, 0.0, 1.0], tcw1, [-0.2, 0.0, 1.0], tcw2)
assert np.allclose(point, [0.0, 0.0, 5.0])
```

## What this package does not do

It provides the feature-extraction and geometry pieces only. It has no map
container, no map-point bookkeeping, no background local-mapping or
loop-closing workers, no similarity-transform type, no bundle adjustment or
pose-graph optimisation, no feature matcher, no vocabulary or place
recognition database, and no command-line tool. Saving and loading a whole
map is not offered; only single keypoints and matrices can be serialised.