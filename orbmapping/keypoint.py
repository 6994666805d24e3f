"""Image keypoints and the binary layout used to store keypoints and matrices."""

from __future__ import annotations

import struct
from dataclasses import dataclass, replace

import numpy as np

# angle, class_id, octave, response (stored twice), x, y
_KEYPOINT = struct.Struct("<fiiffff")
# cols, rows, element size in bytes, element type code
_MATRIX_HEADER = struct.Struct("<iiQQ")

_MAX_CHANNELS = 512

_DEPTH_TO_DTYPE = {
    0: np.dtype("<u1"),
    1: np.dtype("<i1"),
    2: np.dtype("<u2"),
    3: np.dtype("<i2"),
    4: np.dtype("<i4"),
    5: np.dtype("<f4"),
    6: np.dtype("<f8"),
}
_KIND_TO_DEPTH = {(dtype.kind, dtype.itemsize): depth for depth, dtype in _DEPTH_TO_DTYPE.items()}


@dataclass(frozen=True)
class KeyPoint:
    """A detected image feature: position, scale, orientation and strength."""

    x: float
    y: float
    size: float = 0.0
    angle: float = -1.0
    response: float = 0.0
    octave: int = 0
    class_id: int = -1

    def scaled(self, factor: float) -> "KeyPoint":
        """Return a copy whose position is multiplied by ``factor``."""
        return replace(self, x=self.x * factor, y=self.y * factor)

    def translated(self, dx: float, dy: float) -> "KeyPoint":
        """Return a copy moved by ``(dx, dy)``."""
        return replace(self, x=self.x + dx, y=self.y + dy)

    def to_bytes(self) -> bytes:
        """Serialise angle, class id, octave, response and position.

        The size is not part of the stored record.
        """
        try:
            return _KEYPOINT.pack(
                self.angle, self.class_id, self.octave,
                self.response, self.response, self.x, self.y,
            )
        except struct.error as exc:
            raise ValueError(f"keypoint cannot be serialised: {exc}") from exc

    @classmethod
    def from_bytes(cls, data: bytes) -> "KeyPoint":
        """Rebuild a keypoint written by :meth:`to_bytes`."""
        if len(data) != _KEYPOINT.size:
            raise ValueError(f"expected {_KEYPOINT.size} bytes, got {len(data)}")
        angle, class_id, octave, response, _, x, y = _KEYPOINT.unpack(data)
        return cls(x=x, y=y, angle=angle, response=response, octave=octave, class_id=class_id)


def _type_code(array: np.ndarray) -> tuple[int, int]:
    if array.ndim == 2:
        channels = 1
    elif array.ndim == 3:
        channels = array.shape[2]
    else:
        raise ValueError("matrix must have two dimensions, or three with channels last")
    if not 1 <= channels <= _MAX_CHANNELS:
        raise ValueError(f"unsupported channel count {channels}")
    depth = _KIND_TO_DEPTH.get((array.dtype.kind, array.dtype.itemsize))
    if depth is None:
        raise ValueError(f"unsupported element type {array.dtype}")
    return depth + ((channels - 1) << 3), channels


def save_matrix(matrix) -> bytes:
    """Serialise a 2D (optionally multi-channel) array with its shape and type."""
    array = np.asarray(matrix)
    elem_type, channels = _type_code(array)
    rows, cols = array.shape[:2]
    dtype = _DEPTH_TO_DTYPE[elem_type & 7]
    elem_size = dtype.itemsize * channels
    payload = np.ascontiguousarray(array, dtype=dtype).tobytes()
    return _MATRIX_HEADER.pack(cols, rows, elem_size, elem_type) + payload


def load_matrix(data: bytes) -> np.ndarray:
    """Rebuild an array written by :func:`save_matrix`."""
    if len(data) < _MATRIX_HEADER.size:
        raise ValueError("matrix record is shorter than its header")
    cols, rows, elem_size, elem_type = _MATRIX_HEADER.unpack_from(data)
    if rows < 0 or cols < 0:
        raise ValueError("matrix dimensions must not be negative")
    dtype = _DEPTH_TO_DTYPE.get(elem_type & 7)
    channels = (elem_type >> 3) + 1
    if dtype is None or channels > _MAX_CHANNELS:
        raise ValueError(f"unknown element type code {elem_type}")
    if elem_size != dtype.itemsize * channels:
        raise ValueError("element size does not match the element type")
    size = rows * cols * elem_size
    body = data[_MATRIX_HEADER.size:]
    if len(body) != size:
        raise ValueError(f"expected {size} bytes of matrix data, got {len(body)}")
    values = np.frombuffer(body, dtype=dtype).copy()
    shape = (rows, cols) if channels == 1 else (rows, cols, channels)
    return values.reshape(shape)