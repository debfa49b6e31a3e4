"""Cone-beam geometry descriptor and per-view selection.

A :class:`ConeGeometry` describes a circular cone-beam acquisition. The
distance, offset and detector-rotation fields are either shared by all views
(a scalar or a single vector) or given per view (leading axis equal to the
number of angles). :meth:`ConeGeometry.view` restricts the per-view fields to
a subset of views and returns a new descriptor; the original one is never
modified.

Axis conventions
----------------
* ``n_voxel`` / ``s_voxel`` / ``off_origin`` : (z, y, x), matching the
  ``(nz, ny, nx)`` layout of volume tensors.
* ``n_detector`` / ``d_detector`` / ``off_detector`` : (v, u), i.e.
  (detector rows, detector cols), matching the ``(V, R, C)`` layout of
  projection tensors.
* ``rot_detector`` : (roll, pitch, yaw) in radians.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Sequence, Tuple, Union

import numpy as np

ArrayLike = Union[float, Sequence[float], np.ndarray]

# fields that may carry one entry per projection angle
SCALAR_FIELDS = ("dsd", "dso")
VECTOR_FIELDS = ("off_origin", "off_detector", "rot_detector")
PER_ANGLE_FIELDS = SCALAR_FIELDS + VECTOR_FIELDS


def _as_float_array(value: ArrayLike) -> np.ndarray:
    arr = np.array(value, dtype=np.float64)
    arr.setflags(write=False)
    return arr


def is_per_angle(value: np.ndarray, n_angles: int, vector: bool = False) -> bool:
    """True if ``value`` holds one entry per angle.

    Anything whose leading axis length differs from ``n_angles`` is shared by
    every view. For vector fields (offsets, rotations) a 1-D array is always
    shared, so a ``(3,)`` offset with three angles is not mistaken for
    per-angle data.
    """
    arr = np.asarray(value)
    per_angle_ndim = 2 if vector else 1
    return arr.ndim == per_angle_ndim and arr.shape[0] == n_angles


@dataclass(frozen=True, eq=False)
class ConeGeometry:
    """Circular cone-beam acquisition geometry (lengths in mm)."""
    n_voxel: Tuple[int, int, int]
    s_voxel: np.ndarray
    n_detector: Tuple[int, int]
    d_detector: np.ndarray
    dsd: np.ndarray
    dso: np.ndarray
    off_origin: np.ndarray = field(default_factory=lambda: np.zeros(3))
    off_detector: np.ndarray = field(default_factory=lambda: np.zeros(2))
    rot_detector: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        object.__setattr__(self, "n_voxel", tuple(int(n) for n in self.n_voxel))
        object.__setattr__(self, "n_detector", tuple(int(n) for n in self.n_detector))
        for name in ("s_voxel", "d_detector") + PER_ANGLE_FIELDS:
            object.__setattr__(self, name, _as_float_array(getattr(self, name)))
        if len(self.n_voxel) != 3 or self.s_voxel.shape != (3,):
            raise ValueError("n_voxel and s_voxel must have three entries (z, y, x)")
        if len(self.n_detector) != 2 or self.d_detector.shape != (2,):
            raise ValueError("n_detector and d_detector must have two entries (v, u)")

    @property
    def d_voxel(self) -> np.ndarray:
        return self.s_voxel / np.asarray(self.n_voxel, dtype=np.float64)

    @property
    def s_detector(self) -> np.ndarray:
        return self.d_detector * np.asarray(self.n_detector, dtype=np.float64)

    def view(self, indices: Union[int, Sequence[int], np.ndarray], n_angles: int) -> "ConeGeometry":
        """Return the geometry restricted to the views in ``indices``.

        Per-angle fields (leading axis of length ``n_angles``) are sliced,
        everything else is passed through unchanged.
        """
        idx = np.atleast_1d(np.asarray(indices, dtype=np.int64))
        changes = {}
        for name in PER_ANGLE_FIELDS:
            value = getattr(self, name)
            if is_per_angle(value, n_angles, vector=name in VECTOR_FIELDS):
                changes[name] = value[idx]
        return replace(self, **changes)

    def with_voxels(self, n_voxel: Sequence[int]) -> "ConeGeometry":
        """Same physical volume sampled on a different voxel grid."""
        return replace(self, n_voxel=tuple(int(n) for n in n_voxel))

    def field_per_view(self, name: str, n_views: int) -> np.ndarray:
        """Broadcast a (possibly shared) field to one row per view.

        Fields whose length does not match ``n_views`` are treated as shared
        and their first entry is used for every view.
        """
        value = getattr(self, name)
        vector = name in VECTOR_FIELDS
        if is_per_angle(value, n_views, vector=vector):
            return value
        if not vector:
            return np.full(n_views, value.reshape(-1)[0])
        width = value.shape[-1]
        return np.broadcast_to(value.reshape(-1, width)[0], (n_views, width))


def default_cone_geometry(
    n_voxel: Tuple[int, int, int] = (256, 256, 256),
    voxel_size_mm: float = 1.0,
    n_detector: Tuple[int, int] = (512, 512),
    det_spacing_mm: float = 0.8,
    dsd: float = 1536.0,
    dso: float = 1000.0,
) -> ConeGeometry:
    """Circular cone-beam geometry with a centred object and detector."""
    return ConeGeometry(
        n_voxel=n_voxel,
        s_voxel=np.asarray(n_voxel, dtype=np.float64) * voxel_size_mm,
        n_detector=n_detector,
        d_detector=np.full(2, det_spacing_mm),
        dsd=dsd,
        dso=dso,
    )
