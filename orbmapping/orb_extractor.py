"""Multi-scale ORB feature extraction: FAST corners, pyramid, orientation, descriptors."""

from __future__ import annotations

import math
from dataclasses import replace

import numpy as np

from orbmapping.keypoint import KeyPoint
from orbmapping.octree import distribute_oct_tree
from orbmapping.orb_descriptor import (
    DESCRIPTOR_BYTES,
    HALF_PATCH_SIZE,
    compute_descriptors,
    compute_orientation,
    compute_umax,
)
from orbmapping.orb_pattern import pattern_points

PATCH_SIZE = 31
EDGE_THRESHOLD = 19
CELL_SIZE = 30
FAST_KEYPOINT_SIZE = 7.0

# Bresenham circle of radius 3 as (dx, dy), clockwise from the bottom.
_CIRCLE = (
    (0, 3), (1, 3), (2, 2), (3, 1), (3, 0), (3, -1), (2, -2), (1, -3),
    (0, -3), (-1, -3), (-2, -2), (-3, -1), (-3, 0), (-3, 1), (-2, 2), (-1, 3),
)
_ARC = 9


def fast(image, threshold: int, nonmax_suppression: bool = True) -> list[KeyPoint]:
    """Detect FAST-9/16 corners in a 2D grayscale image.

    With non-maximum suppression the response is the corner score; without
    it the response is zero.
    """
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError("FAST needs a single-channel 2D image")
    rows, cols = img.shape
    if rows < 7 or cols < 7:
        return []
    t = min(max(int(threshold), 0), 255)

    data = img.astype(np.int16)
    h, w = rows - 6, cols - 6
    center = data[3:rows - 3, 3:cols - 3]
    diffs = np.stack([center - data[3 + dy:3 + dy + h, 3 + dx:3 + dx + w] for dx, dy in _CIRCLE])
    extended = np.concatenate([diffs, diffs[:_ARC - 1]])
    windows = np.lib.stride_tricks.sliding_window_view(extended, _ARC, axis=0)[:len(_CIRCLE)]
    darker = windows.min(axis=-1).max(axis=0)
    brighter = -(windows.max(axis=-1).min(axis=0))
    best = np.maximum(darker, brighter).astype(np.int32)

    corner = best > t
    score = np.where(corner, best - 1, 0)

    if nonmax_suppression:
        padded = np.pad(score, 1)
        neighbours = np.stack([
            padded[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]
            for dy in (-1, 0, 1) for dx in (-1, 0, 1) if dx or dy
        ]).max(axis=0)
        keep = corner & (score > neighbours)
    else:
        keep = corner

    ys, xs = np.nonzero(keep)
    return [
        KeyPoint(
            x=float(x + 3), y=float(y + 3), size=FAST_KEYPOINT_SIZE,
            response=float(score[y, x]) if nonmax_suppression else 0.0,
        )
        for y, x in zip(ys, xs)
    ]


def _linear_axis(n_dst: int, n_src: int):
    scale = n_src / n_dst
    pos = (np.arange(n_dst) + 0.5) * scale - 0.5
    i0 = np.floor(pos).astype(np.int64)
    frac = pos - i0
    low = i0 < 0
    frac[low] = 0.0
    i0[low] = 0
    high = i0 >= n_src - 1
    frac[high] = 0.0
    i0[high] = n_src - 1
    i1 = np.minimum(i0 + 1, n_src - 1)
    return i0, i1, frac


def _resize_linear(image: np.ndarray, width: int, height: int) -> np.ndarray:
    src = image.astype(np.float64)
    rows, cols = image.shape
    y0, y1, fy = _linear_axis(height, rows)
    x0, x1, fx = _linear_axis(width, cols)
    top = src[y0][:, x0] * (1 - fx) + src[y0][:, x1] * fx
    bottom = src[y1][:, x0] * (1 - fx) + src[y1][:, x1] * fx
    out = top * (1 - fy)[:, None] + bottom * fy[:, None]
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)


def _gaussian_blur(image: np.ndarray, size: int = 7, sigma: float = 2.0) -> np.ndarray:
    offsets = np.arange(size) - (size - 1) / 2
    kernel = np.exp(-offsets * offsets / (2 * sigma * sigma))
    kernel /= kernel.sum()
    r = size // 2
    rows, cols = image.shape
    padded = np.pad(image.astype(np.float64), r, mode="reflect")
    horizontal = sum(k * padded[:, i:i + cols] for i, k in enumerate(kernel))
    blurred = sum(k * horizontal[i:i + rows, :] for i, k in enumerate(kernel))
    return np.clip(np.rint(blurred), 0, 255).astype(np.uint8)


def _check_gray(image) -> np.ndarray:
    img = np.asarray(image)
    if img.ndim != 2 or img.dtype != np.uint8:
        raise ValueError("image must be a 2D array of 8-bit gray values")
    return img


class ORBExtractor:
    """Extracts evenly distributed, oriented ORB features over a scale pyramid."""

    def __init__(self, n_features: int, scale_factor: float, n_levels: int,
                 ini_th_fast: int, min_th_fast: int) -> None:
        if n_levels < 1:
            raise ValueError("at least one pyramid level is needed")
        if scale_factor <= 1.0:
            raise ValueError("scale factor must be greater than 1")
        self.n_features = n_features
        self.scale_factor = scale_factor
        self.n_levels = n_levels
        self.ini_th_fast = ini_th_fast
        self.min_th_fast = min_th_fast

        self.scale_factors = [1.0]
        for _ in range(1, n_levels):
            self.scale_factors.append(self.scale_factors[-1] * scale_factor)
        self.level_sigma2 = [s * s for s in self.scale_factors]
        self.inv_scale_factors = [1.0 / s for s in self.scale_factors]
        self.inv_level_sigma2 = [1.0 / s2 for s2 in self.level_sigma2]

        factor = 1.0 / scale_factor
        desired = n_features * (1 - factor) / (1 - factor ** n_levels)
        self.features_per_level: list[int] = []
        for _ in range(n_levels - 1):
            self.features_per_level.append(round(desired))
            desired *= factor
        self.features_per_level.append(max(n_features - sum(self.features_per_level), 0))

        self.pattern = pattern_points()
        self.umax = compute_umax(HALF_PATCH_SIZE)
        self.image_pyramid: list[np.ndarray] = []

    def compute_pyramid(self, image) -> list[np.ndarray]:
        """Build and store the scale pyramid of ``image``; return its levels."""
        img = _check_gray(image)
        rows, cols = img.shape
        pyramid = [img.copy()]
        for level in range(1, self.n_levels):
            scale = self.inv_scale_factors[level]
            width, height = round(cols * scale), round(rows * scale)
            if width < 1 or height < 1:
                raise ValueError("image is too small for the requested pyramid")
            pyramid.append(_resize_linear(pyramid[-1], width, height))
        self.image_pyramid = pyramid
        return pyramid

    def compute_keypoints_octtree(self) -> list[list[KeyPoint]]:
        """Detect and distribute oriented keypoints on every pyramid level."""
        if len(self.image_pyramid) != self.n_levels:
            raise RuntimeError("compute_pyramid must be called first")

        all_keypoints: list[list[KeyPoint]] = []
        for level, image in enumerate(self.image_pyramid):
            rows, cols = image.shape
            min_border_x = min_border_y = EDGE_THRESHOLD - 3
            max_border_x = cols - EDGE_THRESHOLD + 3
            max_border_y = rows - EDGE_THRESHOLD + 3

            width = max_border_x - min_border_x
            height = max_border_y - min_border_y
            n_cols = int(width / CELL_SIZE)
            n_rows = int(height / CELL_SIZE)
            if n_cols <= 0 or n_rows <= 0:
                all_keypoints.append([])
                continue
            w_cell = math.ceil(width / n_cols)
            h_cell = math.ceil(height / n_rows)

            to_distribute: list[KeyPoint] = []
            for i in range(n_rows):
                ini_y = min_border_y + i * h_cell
                if ini_y >= max_border_y - 3:
                    continue
                max_y = min(ini_y + h_cell + 6, max_border_y)
                for j in range(n_cols):
                    ini_x = min_border_x + j * w_cell
                    if ini_x >= max_border_x - 6:
                        continue
                    max_x = min(ini_x + w_cell + 6, max_border_x)
                    cell = image[ini_y:max_y, ini_x:max_x]
                    cell_keys = fast(cell, self.ini_th_fast, True)
                    if not cell_keys:
                        cell_keys = fast(cell, self.min_th_fast, True)
                    to_distribute.extend(kp.translated(j * w_cell, i * h_cell) for kp in cell_keys)

            distributed = distribute_oct_tree(
                to_distribute, min_border_x, max_border_x, min_border_y, max_border_y,
                self.features_per_level[level],
            )
            scaled_patch = int(PATCH_SIZE * self.scale_factors[level])
            keypoints = [
                replace(kp.translated(min_border_x, min_border_y), octave=level, size=float(scaled_patch))
                for kp in distributed
            ]
            all_keypoints.append(compute_orientation(image, keypoints, self.umax))
        return all_keypoints

    def detect_and_compute(self, image) -> tuple[list[KeyPoint], np.ndarray]:
        """Return keypoints in original image coordinates and their descriptors."""
        empty = np.zeros((0, DESCRIPTOR_BYTES), dtype=np.uint8)
        if np.asarray(image).size == 0:
            return [], empty
        self.compute_pyramid(image)
        per_level = self.compute_keypoints_octtree()

        keypoints: list[KeyPoint] = []
        blocks: list[np.ndarray] = []
        for level, level_keys in enumerate(per_level):
            if not level_keys:
                continue
            working = _gaussian_blur(self.image_pyramid[level])
            blocks.append(compute_descriptors(working, level_keys, self.pattern))
            if level != 0:
                scale = self.scale_factors[level]
                level_keys = [kp.scaled(scale) for kp in level_keys]
            keypoints.extend(level_keys)
        return keypoints, (np.concatenate(blocks) if blocks else empty)