"""Coarse-to-fine initialization.

The reconstruction is first solved on a small grid, upsampled by trilinear
interpolation, solved again, and so on until the grid right below the target
size; the last upsampled volume is the initial image of the full solve.
"""
from __future__ import annotations

from typing import Callable, List, Sequence, Tuple

import numpy as np
import torch
import torch.nn.functional as F

from .geometry import ConeGeometry

# solve(geometry, init_volume, niter) -> volume on geometry.n_voxel
SolveFn = Callable[[ConeGeometry, torch.Tensor, int], torch.Tensor]


def multigrid_levels(target: Sequence[int], base_size: int = 64) -> List[Tuple[int, int, int]]:
    """Grid sizes from ``base_size`` up to ``target``, doubling each axis.

    Returns an empty list when ``target`` is smaller than the base grid along
    any axis.
    """
    target_arr = np.asarray(target, dtype=np.int64)
    level = np.full(3, int(base_size), dtype=np.int64)
    if np.any(target_arr < level):
        return []
    levels = [tuple(int(n) for n in level)]
    while not np.array_equal(level, target_arr):
        level = np.minimum(level * 2, target_arr)
        levels.append(tuple(int(n) for n in level))
    return levels


def upsample_volume(volume: torch.Tensor, shape: Sequence[int]) -> torch.Tensor:
    """Trilinear resampling of a ``(nz, ny, nx)`` volume, grid corners aligned."""
    out = F.interpolate(
        volume[None, None],
        size=tuple(int(n) for n in shape),
        mode="trilinear",
        align_corners=True,
    )
    return out[0, 0].contiguous()


def _solve_up_to(levels, geometry, solve, niter, device) -> torch.Tensor:
    """Initial volume for ``levels[-1]``."""
    if len(levels) == 1:
        return torch.zeros(levels[0], dtype=torch.float32, device=device)
    init = _solve_up_to(levels[:-1], geometry, solve, niter, device)
    coarse = solve(geometry.with_voxels(levels[-2]), init, niter)
    return upsample_volume(coarse, levels[-1])


def init_multigrid(
    geometry: ConeGeometry,
    solve: SolveFn,
    base_size: int = 64,
    niter: int = 100,
    device=None,
) -> torch.Tensor:
    """Initial volume on ``geometry.n_voxel`` from a coarse-to-fine solve.

    Parameters
    ----------
    geometry : ConeGeometry
        Target geometry; coarser levels keep its physical extent.
    solve : callable
        ``solve(level_geometry, init_volume, niter)`` running the iterative
        solver on one level.
    base_size : int
        Voxels per axis of the coarsest grid.
    niter : int
        Iterations spent on every coarse level.

    Returns a zero volume when the target grid is smaller than the base grid
    in any axis, or equal to it.
    """
    levels = multigrid_levels(geometry.n_voxel, base_size)
    if not levels:
        return torch.zeros(geometry.n_voxel, dtype=torch.float32, device=device)
    return _solve_up_to(levels, geometry, solve, niter, device)
