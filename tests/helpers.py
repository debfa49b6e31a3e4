"""Small projector stubs and geometries shared by the tests."""

import numpy as np
import torch

from sart_torch import ConeGeometry


class SumProjector:
    """Every detector pixel sees the sum of the volume.

    The back-projection spreads the sum of the projections evenly over every
    voxel, which makes it the exact adjoint of ``forward``.
    """

    def __init__(self):
        self.forward_calls = 0
        self.backward_calls = 0

    def forward(self, volume, geometry, angles):
        self.forward_calls += 1
        n_views = len(np.atleast_1d(angles))
        rows, cols = geometry.n_detector
        return volume.sum().expand(n_views, rows, cols).clone()

    def backward(self, projections, geometry, angles):
        self.backward_calls += 1
        return projections.sum().expand(*geometry.n_voxel).clone()


class RecordingProjector(SumProjector):
    """SumProjector that keeps the geometry and angles it was called with."""

    def __init__(self):
        super().__init__()
        self.geometries = []
        self.angles = []

    def forward(self, volume, geometry, angles):
        self.geometries.append(geometry)
        self.angles.append(np.atleast_1d(angles).tolist())
        return super().forward(volume, geometry, angles)


def tiny_geometry(n_voxel=(1, 1, 1), n_detector=(1, 1), **kwargs):
    """Geometry with 1 mm voxels, used together with SumProjector."""
    return ConeGeometry(
        n_voxel=n_voxel,
        s_voxel=np.asarray(n_voxel, dtype=np.float64),
        n_detector=n_detector,
        d_detector=np.ones(2),
        dsd=kwargs.pop("dsd", 1500.0),
        dso=kwargs.pop("dso", 1000.0),
        **kwargs,
    )


def projections(values, n_detector=(1, 1)):
    """(V,R,C) projections where view i is filled with values[i]."""
    values = torch.as_tensor(values, dtype=torch.float32)
    return values[:, None, None].expand(len(values), *n_detector).clone()
