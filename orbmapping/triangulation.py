"""Two-view geometry used when creating new map points between keyframes."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np


def skew_symmetric(v) -> np.ndarray:
    """Return the 3x3 matrix ``[v]x`` such that ``[v]x @ w == cross(v, w)``."""
    x, y, z = np.asarray(v, dtype=float).reshape(3)
    return np.array([
        [0.0, -z, y],
        [z, 0.0, -x],
        [-y, x, 0.0],
    ])


def compute_f12(kf1, kf2) -> np.ndarray:
    """Return the fundamental matrix mapping points of ``kf2`` to epipolar lines in ``kf1``.

    Keyframes provide ``rotation`` (3x3, world to camera), ``translation``
    (3-vector) and ``k`` (3x3 calibration matrix).
    """
    r1w = np.asarray(kf1.rotation, dtype=float)
    t1w = np.asarray(kf1.translation, dtype=float).reshape(3)
    r2w = np.asarray(kf2.rotation, dtype=float)
    t2w = np.asarray(kf2.translation, dtype=float).reshape(3)

    r12 = r1w @ r2w.T
    t12 = -r1w @ r2w.T @ t2w + t1w

    k1 = np.asarray(kf1.k, dtype=float)
    k2 = np.asarray(kf2.k, dtype=float)
    return np.linalg.inv(k1.T) @ skew_symmetric(t12) @ r12 @ np.linalg.inv(k2)


def triangulate_linear(xn1, tcw1, xn2, tcw2) -> Optional[np.ndarray]:
    """Triangulate a point from normalised image coordinates in two views.

    ``xn1`` and ``xn2`` are ``(x, y, 1)`` rays in camera coordinates and
    ``tcw1``, ``tcw2`` the 3x4 world-to-camera poses. Returns the world point,
    or None when the solution lies at infinity.
    """
    p1 = np.asarray(xn1, dtype=float).reshape(-1)
    p2 = np.asarray(xn2, dtype=float).reshape(-1)
    t1 = np.asarray(tcw1, dtype=float).reshape(3, 4)
    t2 = np.asarray(tcw2, dtype=float).reshape(3, 4)

    a = np.stack([
        p1[0] * t1[2] - t1[0],
        p1[1] * t1[2] - t1[1],
        p2[0] * t2[2] - t2[0],
        p2[1] * t2[2] - t2[1],
    ])
    _, _, vt = np.linalg.svd(a)
    homogeneous = vt[3]
    if homogeneous[3] == 0:
        return None
    return homogeneous[:3] / homogeneous[3]


def reprojection_error(rotation, translation, point, intrinsics: Sequence[float],
                       observed: Sequence[float], u_right: float = -1.0,
                       bf: float = 0.0) -> float:
    """Return the squared reprojection error of a world point in one view.

    ``intrinsics`` is ``(fx, fy, cx, cy)`` and ``observed`` the keypoint
    ``(u, v)``. With a non-negative ``u_right`` the error also includes the
    right-image coordinate, predicted as ``u - bf / z``. The point must lie
    in front of the camera.
    """
    r = np.asarray(rotation, dtype=float).reshape(3, 3)
    t = np.asarray(translation, dtype=float).reshape(3)
    camera = r @ np.asarray(point, dtype=float).reshape(3) + t
    x, y, z = camera
    if z <= 0:
        raise ValueError("point is not in front of the camera")
    fx, fy, cx, cy = intrinsics
    inv_z = 1.0 / z
    u = fx * x * inv_z + cx
    v = fy * y * inv_z + cy
    err_x = u - observed[0]
    err_y = v - observed[1]
    error = err_x * err_x + err_y * err_y
    if u_right >= 0:
        err_r = u - bf * inv_z - u_right
        error += err_r * err_r
    return float(error)


def scale_consistent(dist1: float, dist2: float, scale1: float, scale2: float,
                     ratio_factor: float) -> bool:
    """Check that the distance ratio of two views agrees with their octave scale ratio."""
    if dist1 == 0 or dist2 == 0:
        return False
    ratio_dist = dist2 / dist1
    ratio_octave = scale1 / scale2
    return not (ratio_dist * ratio_factor < ratio_octave or ratio_dist > ratio_octave * ratio_factor)