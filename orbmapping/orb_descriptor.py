"""Orientation and binary descriptor computation for ORB keypoints."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Iterable, Optional, Sequence

import numpy as np

from orbmapping.keypoint import KeyPoint
from orbmapping.orb_pattern import pattern_points

HALF_PATCH_SIZE = 15
DESCRIPTOR_BYTES = 32

_DEG = 180.0 / math.pi
_P1 = 0.9997878412794807 * _DEG
_P3 = -0.3258083974640975 * _DEG
_P5 = 0.1555786518463281 * _DEG
_P7 = -0.04432655554792128 * _DEG
_EPS = 2.220446049250313e-16


def fast_atan2(y: float, x: float) -> float:
    """Approximate ``atan2`` in degrees within ``[0, 360)``."""
    ax, ay = abs(x), abs(y)
    if ax >= ay:
        c = ay / (ax + _EPS)
        c2 = c * c
        angle = (((_P7 * c2 + _P5) * c2 + _P3) * c2 + _P1) * c
    else:
        c = ax / (ay + _EPS)
        c2 = c * c
        angle = 90.0 - (((_P7 * c2 + _P5) * c2 + _P3) * c2 + _P1) * c
    if x < 0:
        angle = 180.0 - angle
    if y < 0:
        angle = 360.0 - angle
    return angle


def compute_umax(half_patch_size: int = HALF_PATCH_SIZE) -> list[int]:
    """Return the half-width of each row of a symmetric circular patch."""
    umax = [0] * (half_patch_size + 1)
    vmax = math.floor(half_patch_size * math.sqrt(2.0) / 2 + 1)
    vmin = math.ceil(half_patch_size * math.sqrt(2.0) / 2)
    hp2 = float(half_patch_size * half_patch_size)
    for v in range(min(vmax, half_patch_size) + 1):
        umax[v] = round(math.sqrt(hp2 - v * v))

    v0 = 0
    for v in range(half_patch_size, vmin - 1, -1):
        while umax[v0] == umax[v0 + 1]:
            v0 += 1
        umax[v] = v0
        v0 += 1
    return umax


def _center(image: np.ndarray, x: float, y: float, reach: int) -> tuple[int, int]:
    cx, cy = round(x), round(y)
    rows, cols = image.shape[:2]
    if cx - reach < 0 or cy - reach < 0 or cx + reach >= cols or cy + reach >= rows:
        raise ValueError(f"patch around ({x}, {y}) does not fit inside the image")
    return cx, cy


def ic_angle(image, x: float, y: float, umax: Sequence[int]) -> float:
    """Return the intensity-centroid orientation, in degrees, of the patch at ``(x, y)``."""
    img = np.asarray(image)
    half = len(umax) - 1
    cx, cy = _center(img, x, y, half)

    offsets = np.arange(-half, half + 1, dtype=np.int64)
    m_10 = int((offsets * img[cy, cx - half:cx + half + 1].astype(np.int64)).sum())
    m_01 = 0
    for v in range(1, half + 1):
        d = umax[v]
        us = np.arange(-d, d + 1, dtype=np.int64)
        plus = img[cy + v, cx - d:cx + d + 1].astype(np.int64)
        minus = img[cy - v, cx - d:cx + d + 1].astype(np.int64)
        m_10 += int((us * (plus + minus)).sum())
        m_01 += v * int((plus - minus).sum())
    return fast_atan2(float(m_01), float(m_10))


def compute_orientation(image, keypoints: Iterable[KeyPoint], umax: Sequence[int]) -> list[KeyPoint]:
    """Return the keypoints with their ``angle`` set from the patch orientation."""
    return [replace(kp, angle=ic_angle(image, kp.x, kp.y, umax)) for kp in keypoints]


def compute_orb_descriptor(image, keypoint: KeyPoint, pattern: Optional[np.ndarray] = None) -> np.ndarray:
    """Return the 32-byte rotated BRIEF descriptor of ``keypoint``."""
    img = np.asarray(image)
    points = pattern_points() if pattern is None else np.asarray(pattern)
    points = points.astype(np.float32)
    if points.shape != (8 * DESCRIPTOR_BYTES * 2, 2):
        raise ValueError("pattern must hold 512 (x, y) points")

    angle = np.float32(keypoint.angle) * np.float32(math.pi / 180.0)
    a = np.float32(math.cos(angle))
    b = np.float32(math.sin(angle))
    row_off = np.rint(points[:, 0] * b + points[:, 1] * a).astype(np.int64)
    col_off = np.rint(points[:, 0] * a - points[:, 1] * b).astype(np.int64)

    reach = int(max(np.abs(row_off).max(), np.abs(col_off).max()))
    cx, cy = _center(img, keypoint.x, keypoint.y, reach)
    values = img[cy + row_off, cx + col_off].astype(np.int64)

    bits = (values[0::2] < values[1::2]).astype(np.uint8)
    return np.packbits(bits.reshape(DESCRIPTOR_BYTES, 8), axis=1, bitorder="little").ravel()


def compute_descriptors(image, keypoints: Sequence[KeyPoint], pattern: Optional[np.ndarray] = None) -> np.ndarray:
    """Return an ``(n, 32)`` array with one descriptor row per keypoint."""
    points = pattern_points() if pattern is None else pattern
    descriptors = np.zeros((len(keypoints), DESCRIPTOR_BYTES), dtype=np.uint8)
    for row, kp in zip(descriptors, keypoints):
        row[:] = compute_orb_descriptor(image, kp, points)
    return descriptors