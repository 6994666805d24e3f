"""Fixed-grid keypoint detection, the alternative to quadtree distribution."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Iterable

from orbmapping.keypoint import KeyPoint
from orbmapping.orb_descriptor import compute_orientation
from orbmapping.orb_extractor import EDGE_THRESHOLD, PATCH_SIZE, fast


def retain_best(keypoints: Iterable[KeyPoint], n: int) -> list[KeyPoint]:
    """Return at most ``n`` keypoints with the highest responses.

    A negative ``n`` keeps every keypoint. The result is ordered by
    decreasing response.
    """
    keys = list(keypoints)
    if n < 0 or len(keys) <= n:
        return keys
    return sorted(keys, key=lambda kp: kp.response, reverse=True)[:n]


def compute_keypoints_grid(extractor) -> list[list[KeyPoint]]:
    """Detect oriented keypoints per pyramid level on a regular grid of cells.

    ``extractor`` is an :class:`~orbmapping.orb_extractor.ORBExtractor` whose
    pyramid has been built. Each cell gets an equal share of the level's
    feature budget; the share left unused by sparse cells is handed to the
    others. A level too small to hold a single cell yields no keypoints.
    """
    pyramid = extractor.image_pyramid
    if len(pyramid) != extractor.n_levels:
        raise RuntimeError("compute_pyramid must be called first")

    base_rows, base_cols = pyramid[0].shape
    image_ratio = base_cols / base_rows

    all_keypoints: list[list[KeyPoint]] = []
    for level, image in enumerate(pyramid):
        n_desired = extractor.features_per_level[level]
        level_cols = int(math.sqrt(n_desired / (5 * image_ratio)))
        level_rows = int(image_ratio * level_cols)

        rows, cols = image.shape
        min_border_x = min_border_y = EDGE_THRESHOLD
        max_border_x = cols - EDGE_THRESHOLD
        max_border_y = rows - EDGE_THRESHOLD
        width = max_border_x - min_border_x
        height = max_border_y - min_border_y

        if level_cols <= 0 or level_rows <= 0 or width <= 0 or height <= 0:
            all_keypoints.append([])
            continue

        cell_w = math.ceil(width / level_cols)
        cell_h = math.ceil(height / level_rows)
        n_cells = level_rows * level_cols
        features_cell = math.ceil(n_desired / n_cells)

        cell_keys = [[[] for _ in range(level_cols)] for _ in range(level_rows)]
        to_retain = [[0] * level_cols for _ in range(level_rows)]
        total = [[0] * level_cols for _ in range(level_rows)]
        no_more = [[False] * level_cols for _ in range(level_rows)]
        ini_x_col = [0] * level_cols
        ini_y_row = [0] * level_rows
        n_no_more = 0
        to_distribute = 0

        h_y = cell_h + 6
        for i in range(level_rows):
            ini_y = min_border_y + i * cell_h - 3
            ini_y_row[i] = ini_y
            if i == level_rows - 1:
                h_y = max_border_y + 3 - ini_y
                if h_y <= 0:
                    continue

            h_x = cell_w + 6
            for j in range(level_cols):
                if i == 0:
                    ini_x = min_border_x + j * cell_w - 3
                    ini_x_col[j] = ini_x
                else:
                    ini_x = ini_x_col[j]

                if j == level_cols - 1:
                    h_x = max_border_x + 3 - ini_x
                    if h_x <= 0:
                        continue

                cell = image[ini_y:ini_y + h_y, ini_x:ini_x + h_x]
                keys = fast(cell, extractor.ini_th_fast, True)
                if len(keys) <= 3:
                    keys = fast(cell, extractor.min_th_fast, True)
                cell_keys[i][j] = keys

                n_keys = len(keys)
                total[i][j] = n_keys
                if n_keys > features_cell:
                    to_retain[i][j] = features_cell
                    no_more[i][j] = False
                else:
                    to_retain[i][j] = n_keys
                    to_distribute += features_cell - n_keys
                    no_more[i][j] = True
                    n_no_more += 1

        while to_distribute > 0 and n_no_more < n_cells:
            new_features_cell = features_cell + math.ceil(to_distribute / (n_cells - n_no_more))
            to_distribute = 0
            for i in range(level_rows):
                for j in range(level_cols):
                    if no_more[i][j]:
                        continue
                    if total[i][j] > new_features_cell:
                        to_retain[i][j] = new_features_cell
                    else:
                        to_retain[i][j] = total[i][j]
                        to_distribute += new_features_cell - total[i][j]
                        no_more[i][j] = True
                        n_no_more += 1

        scaled_patch = float(int(PATCH_SIZE * extractor.scale_factors[level]))
        keypoints: list[KeyPoint] = []
        for i, row in enumerate(cell_keys):
            for j, keys in enumerate(row):
                for kp in retain_best(keys, to_retain[i][j]):
                    moved = kp.translated(ini_x_col[j], ini_y_row[i])
                    keypoints.append(replace(moved, octave=level, size=scaled_patch))

        if len(keypoints) > n_desired:
            keypoints = retain_best(keypoints, n_desired)

        all_keypoints.append(keypoints)

    return [
        compute_orientation(image, keys, extractor.umax)
        for image, keys in zip(pyramid, all_keypoints)
    ]