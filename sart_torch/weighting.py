"""Projection (W) and back-projection (V) weights for SART-type updates.

The update applied for a block ``b`` is::

    x <- x + lambda * V_b^-1 * A_b^T ( W_b * (p_b - A_b x) )

``W`` has the shape of the projections ``(V, R, C)``; ``V`` holds one
``(ny, nx)`` frame per block and is broadcast along z. This module combines
the weights (``compose_weights``) and provides default implementations of the
weight computations on top of any projector exposing ``forward`` /
``backward``.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np
import torch

from .errors import InvalidConfiguration
from .geometry import ConeGeometry
from .ordering import SubsetPartition


@dataclass
class SARTWeights:
    W: torch.Tensor
    V: Optional[torch.Tensor]
    exact_mode: bool = False

    @property
    def skip_back_weight(self) -> bool:
        return self.V is None


def compose_weights(
    W: torch.Tensor,
    redundancy_frame: Optional[torch.Tensor] = None,
    V: Optional[torch.Tensor] = None,
    skip_back_weight: bool = False,
    exact_mode: bool = False,
) -> SARTWeights:
    """Combine the externally computed weights into the ones used by the solver.

    Parameters
    ----------
    W : (V,R,C) tensor
        Projection-domain weights.
    redundancy_frame : (R,C) tensor, optional
        Multiplied into every view of ``W``.
    V : (n_blocks,ny,nx) tensor, optional
        Back-projection weights. Dropped when ``skip_back_weight`` is set.
    skip_back_weight : bool
        Omit ``V`` entirely.
    exact_mode : bool
        Forwarded only; records which regime ``W`` was computed with.
    """
    if redundancy_frame is not None:
        frame = torch.as_tensor(redundancy_frame, dtype=W.dtype, device=W.device)
        if tuple(frame.shape) != tuple(W.shape[1:]):
            raise InvalidConfiguration(
                f"redundancy frame shape {tuple(frame.shape)} does not match detector shape {tuple(W.shape[1:])}"
            )
        W = W * frame.unsqueeze(0)
    if torch.any(W < 0) or torch.any(torch.isnan(W)):
        raise InvalidConfiguration("projection weights must be non-negative")

    if skip_back_weight:
        V = None
    elif V is None:
        raise InvalidConfiguration("back-projection weights are required unless skip_back_weight is set")
    elif not torch.all(torch.isfinite(V)) or torch.any(V < 0):
        raise InvalidConfiguration("back-projection weights must be finite and non-negative")

    return SARTWeights(W=W, V=V, exact_mode=bool(exact_mode))


# ---------------------------------------------------------------------------
# Default weight computations
# ---------------------------------------------------------------------------

def _extended_geometry(geometry: ConeGeometry) -> ConeGeometry:
    """2x2x2 grid covering the whole field of view seen by the detector."""
    dsd = float(np.min(geometry.dsd))
    dso = float(np.max(geometry.dso))
    s_det_v, s_det_u = geometry.s_detector
    fov_xy = 2 * dso * math.tan(math.atan(s_det_u / 2 / dsd))
    s_voxel = np.array([
        max(geometry.s_voxel[0], s_det_v),
        max(geometry.s_voxel[1], fov_xy),
        max(geometry.s_voxel[2], fov_xy),
    ])
    return replace(geometry, n_voxel=(2, 2, 2), s_voxel=s_voxel)


def compute_projection_weights(
    projector,
    geometry: ConeGeometry,
    angles: np.ndarray,
    exact: bool = False,
    device: Optional[torch.device] = None,
) -> torch.Tensor:
    """W = 1 / A(1), with rays crossing less than a quarter voxel weighted 0."""
    geo = geometry if exact else _extended_geometry(geometry)
    ones = torch.ones(geo.n_voxel, dtype=torch.float32, device=device)
    ray_length = projector.forward(ones, geo, angles)
    W = torch.zeros_like(ray_length)
    valid = ray_length >= float(np.min(geometry.d_voxel)) / 4
    W[valid] = 1.0 / ray_length[valid]
    return W


def compute_back_weights(
    projector,
    geometry: ConeGeometry,
    angles: np.ndarray,
    partition: SubsetPartition,
    device: Optional[torch.device] = None,
) -> torch.Tensor:
    """Per-block z-average of A_b^T(1); voxels no ray reaches get weight 1."""
    n_angles = len(angles)
    nz, ny, nx = geometry.n_voxel
    rows, cols = geometry.n_detector
    V = torch.ones((len(partition), ny, nx), dtype=torch.float32, device=device)
    for k, (block, index) in enumerate(zip(partition.blocks, partition.orig_index)):
        geo_block = geometry.view(index, n_angles)
        ones = torch.ones((len(block), rows, cols), dtype=torch.float32, device=device)
        V[k] = projector.backward(ones, geo_block, block).mean(dim=0)
    V[V <= 0] = 1.0
    return V


def redundancy_weighting(geometry: ConeGeometry) -> torch.Tensor:
    """Wang weights compensating a horizontally offset detector.

    Columns seen twice in a full rotation (the overlap band around the
    rotation axis) are weighted by a smooth sine ramp so that conjugate rays
    sum to one, columns on the truncated side get 0 and the rest keep 1.
    Returns an ``(R, C)`` frame of ones if the detector is centred.
    """
    rows, cols = geometry.n_detector
    d_u = float(geometry.d_detector[1])
    s_u = float(geometry.s_detector[1])
    offset = float(geometry.field_per_view("off_detector", 1)[0, 1])
    dsd = float(geometry.field_per_view("dsd", 1)[0])
    dso = float(geometry.field_per_view("dso", 1)[0])

    if offset == 0 or abs(offset) >= s_u / 2:
        return torch.ones((rows, cols), dtype=torch.float32)

    w = np.ones(cols, dtype=np.float64)
    us = (np.arange(cols) - cols / 2 + 0.5) * d_u + abs(offset)
    us = us * dso / dsd
    theta = (s_u / 2 - abs(offset)) * math.copysign(1.0, offset)
    abs_theta = abs(theta * dso / dsd)

    overlap = np.abs(us) <= abs_theta
    w[overlap] = 0.5 * (np.sin((math.pi / 2) * np.arctan(us[overlap] / dso) / math.atan(abs_theta / dso)) + 1)
    w[us < -abs_theta] = 0.0
    if theta < 0:
        w = w[::-1].copy()
    return torch.from_numpy(np.tile(w, (rows, 1))).to(torch.float32)
