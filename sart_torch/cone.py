"""ASTRA cone-beam projector for :class:`~sart_torch.geometry.ConeGeometry`.

This is the default forward / back-projection operator used by the solvers in
:mod:`sart_torch.sart`. Any object exposing the same three methods can be used
instead:

``forward(volume, geometry, angles) -> (V, R, C)``
    Line integrals of a ``(nz, ny, nx)`` volume for the given views.
``backward(projections, geometry, angles) -> (nz, ny, nx)``
    Adjoint of ``forward``.
``fdk(projections, geometry, angles) -> (nz, ny, nx)``
    Analytic reconstruction, only needed for ``init='FDK'``.

Notes
-----
* Requires the ASTRA toolbox compiled with CUDA support.
* ``geometry`` may carry per-view fields; they must have one entry per angle
  passed to the call (see :meth:`ConeGeometry.view`).
"""
from __future__ import annotations

import math
from typing import Tuple

import numpy as np
import torch

try:
    import astra  # type: ignore
except ImportError as e:  # pragma: no cover
    raise ImportError("astra toolbox is required for sart_torch.cone module") from e

from .geometry import ConeGeometry


# ---------------------------------------------------------------------------
# Geometry conversion
# ---------------------------------------------------------------------------

def _rotation_matrix(roll: float, pitch: float, yaw: float) -> np.ndarray:
    cr, sr = math.cos(roll), math.sin(roll)
    cp, sp = math.cos(pitch), math.sin(pitch)
    cy, sy = math.cos(yaw), math.sin(yaw)
    rx = np.array([[1, 0, 0], [0, cr, -sr], [0, sr, cr]])
    ry = np.array([[cp, 0, sp], [0, 1, 0], [-sp, 0, cp]])
    rz = np.array([[cy, -sy, 0], [sy, cy, 0], [0, 0, 1]])
    return rz @ ry @ rx


def cone_vectors(geometry: ConeGeometry, angles: np.ndarray) -> np.ndarray:
    """ASTRA ``cone_vec`` rows (src, det, u, v), one per angle.

    The source starts on +x at ``dso``, the detector on -x at ``dsd - dso``,
    and both rotate around z by the view angle. Detector offsets move the
    detector centre in its own (u, v) frame; the detector rotation turns
    (u, v) about that centre; an object offset shifts source and detector the
    opposite way.
    """
    angles = np.asarray(angles, dtype=np.float64).reshape(-1)
    n_views = angles.shape[0]
    dsd = geometry.field_per_view("dsd", n_views)
    dso = geometry.field_per_view("dso", n_views)
    off_origin = geometry.field_per_view("off_origin", n_views)
    off_detector = geometry.field_per_view("off_detector", n_views)
    rot_detector = geometry.field_per_view("rot_detector", n_views)
    d_v, d_u = geometry.d_detector

    vectors = np.zeros((n_views, 12))
    for i, theta in enumerate(angles):
        src = np.array([dso[i], 0.0, 0.0])
        u_dir = np.array([0.0, 1.0, 0.0])
        v_dir = np.array([0.0, 0.0, 1.0])
        det = np.array([-(dsd[i] - dso[i]), 0.0, 0.0])
        det = det + off_detector[i, 1] * u_dir + off_detector[i, 0] * v_dir

        rot = _rotation_matrix(*rot_detector[i])
        u_dir = rot @ u_dir
        v_dir = rot @ v_dir

        spin = _rotation_matrix(0.0, 0.0, theta)
        shift = off_origin[i, ::-1]  # (z, y, x) -> (x, y, z)
        vectors[i, 0:3] = spin @ src - shift
        vectors[i, 3:6] = spin @ det - shift
        vectors[i, 6:9] = spin @ u_dir * d_u
        vectors[i, 9:12] = spin @ v_dir * d_v
    return vectors


def _make_volume_geom(geometry: ConeGeometry):
    nz, ny, nx = geometry.n_voxel
    sz, sy, sx = geometry.s_voxel
    return astra.create_vol_geom(ny, nx, nz, -sx / 2, sx / 2, -sy / 2, sy / 2, -sz / 2, sz / 2)


def _make_proj_geom(geometry: ConeGeometry, angles: np.ndarray):
    rows, cols = geometry.n_detector
    return astra.create_proj_geom('cone_vec', rows, cols, cone_vectors(geometry, angles))


# ---------------------------------------------------------------------------
# Projector
# ---------------------------------------------------------------------------

class AstraConeProjector:
    """Cone-beam forward / back-projector backed by ASTRA CUDA kernels."""

    def __init__(self, device=None):
        if device is None:
            device = torch.device('cuda' if torch.cuda.is_available() else 'cpu')
        self.device = torch.device(device)

    def _shapes(self, geometry: ConeGeometry, angles) -> Tuple[Tuple[int, int, int], Tuple[int, int, int]]:
        rows, cols = geometry.n_detector
        return tuple(geometry.n_voxel), (rows, len(np.atleast_1d(angles)), cols)

    def forward(self, volume: torch.Tensor, geometry: ConeGeometry, angles) -> torch.Tensor:
        vol_shape, sino_shape = self._shapes(geometry, angles)
        vol_t = volume.detach().to(self.device, torch.float32).contiguous()
        sino_t = torch.zeros(sino_shape, device=self.device, dtype=torch.float32)
        vol_id = astra.data3d.link('-vol', _make_volume_geom(geometry), vol_t)
        sino_id = astra.data3d.link('-sino', _make_proj_geom(geometry, angles), sino_t)
        cfg = astra.astra_dict('FP3D_CUDA')
        cfg['VolumeDataId'] = vol_id
        cfg['ProjectionDataId'] = sino_id
        alg_id = astra.algorithm.create(cfg)
        try:
            astra.algorithm.run(alg_id, 1)
        finally:
            astra.algorithm.delete(alg_id)
            astra.data3d.delete(sino_id)
            astra.data3d.delete(vol_id)
        # ASTRA (R,V,C) -> (V,R,C)
        return sino_t.permute(1, 0, 2).contiguous()

    def backward(self, projections: torch.Tensor, geometry: ConeGeometry, angles) -> torch.Tensor:
        vol_shape, _ = self._shapes(geometry, angles)
        sino_t = projections.detach().to(self.device, torch.float32).permute(1, 0, 2).contiguous()
        vol_t = torch.zeros(vol_shape, device=self.device, dtype=torch.float32)
        vol_id = astra.data3d.link('-vol', _make_volume_geom(geometry), vol_t)
        sino_id = astra.data3d.link('-sino', _make_proj_geom(geometry, angles), sino_t)
        cfg = astra.astra_dict('BP3D_CUDA')
        cfg['ReconstructionDataId'] = vol_id
        cfg['ProjectionDataId'] = sino_id
        alg_id = astra.algorithm.create(cfg)
        try:
            astra.algorithm.run(alg_id, 1)
        finally:
            astra.algorithm.delete(alg_id)
            astra.data3d.delete(sino_id)
            astra.data3d.delete(vol_id)
        return vol_t

    def fdk(self, projections: torch.Tensor, geometry: ConeGeometry, angles, short_scan: bool = False) -> torch.Tensor:
        """FDK reconstruction of all given views."""
        sino_rvc = np.transpose(projections.detach().cpu().numpy(), (1, 0, 2)).astype(np.float32).copy()
        vol_rec = np.zeros(geometry.n_voxel, dtype=np.float32)
        vol_id = astra.data3d.link('-vol', _make_volume_geom(geometry), vol_rec)
        proj_id = astra.data3d.link('-sino', _make_proj_geom(geometry, angles), sino_rvc)
        cfg = astra.astra_dict('FDK_CUDA')
        cfg['ProjectionDataId'] = proj_id
        cfg['ReconstructionDataId'] = vol_id
        cfg['option'] = {'ShortScan': bool(short_scan)}
        alg_id = astra.algorithm.create(cfg)
        try:
            astra.algorithm.run(alg_id, 1)
        finally:
            astra.algorithm.delete(alg_id)
            astra.data3d.delete(proj_id)
            astra.data3d.delete(vol_id)
        return torch.from_numpy(vol_rec).to(torch.float32).to(self.device)
