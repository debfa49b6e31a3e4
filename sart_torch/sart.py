"""SART / OS-SART iterative reconstruction.

Public functions
----------------
sart(...):
    Simultaneous Algebraic Reconstruction Technique, one view per update.

os_sart(...):
    Ordered-subsets SART, ``block_size`` views per update.

Both run the same loop: for every block of views (in the order chosen by
``order_strategy``) the weighted residual between measured and simulated
projections is back-projected, normalized and added to the volume. Setting
``lmbda='nesterov'`` switches to the accelerated update. When the global
residual is tracked (``compute_l2=True`` or Nesterov) the solver stops as soon
as an iteration fails to decrease it and returns the previous iterate.

Notes
-----
* Projections are ``(V, R, C)`` tensors, volumes ``(nz, ny, nx)``, angles a
  1-D array in radians.
* ``projector`` defaults to :class:`sart_torch.cone.AstraConeProjector`; see
  that module for the interface expected from custom projectors.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

import numpy as np
import torch
from tqdm import tqdm

from .acceleration import make_update_rule
from .convergence import ConvergenceMonitor, residual_norm
from .errors import InvalidConfiguration
from .geometry import ConeGeometry
from .metrics import measure_quality
from .multigrid import init_multigrid
from .options import SARTOptions, options_to_dict, parse_sart_options
from .ordering import SubsetPartition, order_subsets
from .weighting import (
    SARTWeights,
    compose_weights,
    compute_back_weights,
    compute_projection_weights,
    redundancy_weighting,
)


@dataclass
class SARTResult:
    """Output of :func:`sart` / :func:`os_sart`.

    volume : (nz,ny,nx) tensor
    error_l2 : list of float
        Global residual norm after every completed iteration; empty unless
        the residual was tracked.
    qual_meas : (n_metrics, iterations) tensor or None
    iterations : int
        Number of iterations whose updates are contained in ``volume``.
    status : str
        'converged' (early stop) or 'max_iter'.
    """
    volume: torch.Tensor
    error_l2: List[float]
    qual_meas: Optional[torch.Tensor]
    iterations: int
    status: str


def _secs2hms(seconds: float) -> str:
    seconds = int(round(seconds))
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:d}h {minutes:02d}m {secs:02d}s"


def _default_projector(device):
    from .cone import AstraConeProjector
    return AstraConeProjector(device=device)


def _initial_volume(projections, geometry, angles, projector, opts: SARTOptions, block_size: int) -> torch.Tensor:
    if opts.init == "image":
        return opts.init_img.clone().contiguous()
    if opts.init == "FDK":
        return projector.fdk(projections, geometry, angles).to(opts.device, torch.float32).contiguous()
    if opts.init == "multigrid":
        level_options = options_to_dict(opts)
        level_options.update(init="image", verbose=False, qual_meas=[], compute_l2=False)

        def solve(level_geometry, init_volume, niter):
            level_options["init_img"] = init_volume
            result = os_sart(projections, level_geometry, angles, niter, block_size=block_size,
                             projector=projector, **level_options)
            return result.volume

        return init_multigrid(geometry, solve, device=opts.device)
    return torch.zeros(geometry.n_voxel, dtype=torch.float32, device=opts.device)


def _build_weights(projector, geometry, angles, partition: SubsetPartition, opts: SARTOptions) -> SARTWeights:
    W = compute_projection_weights(projector, geometry, angles, exact=opts.exactw, device=opts.device)
    frame = redundancy_weighting(geometry).to(opts.device) if opts.redundancy_weighting else None
    V = None
    if not opts.skipv:
        V = compute_back_weights(projector, geometry, angles, partition, device=opts.device)
    return compose_weights(W, redundancy_frame=frame, V=V, skip_back_weight=opts.skipv, exact_mode=opts.exactw)


def os_sart(
    projections,
    geometry: ConeGeometry,
    angles,
    niter: int,
    block_size: int = 20,
    projector=None,
    **options,
) -> SARTResult:
    """Ordered-subsets SART reconstruction.

    Parameters
    ----------
    projections : (V,R,C) tensor or array
        Measured (log-corrected) projections, one frame per angle.
    geometry : ConeGeometry
        Acquisition geometry; per-angle fields must have one entry per angle.
    angles : (V,) array
        Projection angles in radians.
    niter : int
        Maximum number of outer iterations.
    block_size : int
        Number of views updated together.
    projector : object, optional
        Forward / back-projector (see :mod:`sart_torch.cone`).
    **options
        See :class:`sart_torch.options.SARTOptions`. Unknown or malformed
        options raise :class:`InvalidConfiguration` before anything runs.

    Returns
    -------
    SARTResult
    """
    opts = parse_sart_options(geometry, **options)
    if isinstance(niter, bool) or not isinstance(niter, (int, np.integer)) or niter < 0:
        raise InvalidConfiguration("niter must be a non-negative integer")
    if isinstance(block_size, (bool, np.bool_)) or not isinstance(block_size, (int, np.integer)) or block_size < 1:
        raise InvalidConfiguration(f"block_size must be a positive integer, got {block_size!r}")

    angles = np.asarray(angles, dtype=np.float64).reshape(-1)
    proj = torch.as_tensor(projections).to(device=opts.device, dtype=torch.float32)
    if proj.ndim != 3 or proj.shape[0] != len(angles) or tuple(proj.shape[1:]) != tuple(geometry.n_detector):
        raise InvalidConfiguration(
            f"projections must have shape {(len(angles),) + tuple(geometry.n_detector)}, got {tuple(proj.shape)}"
        )

    if projector is None:
        projector = _default_projector(opts.device)
    if opts.init == "FDK" and not hasattr(projector, "fdk"):
        raise InvalidConfiguration("init='FDK' requires a projector providing fdk()")

    generator = torch.Generator().manual_seed(opts.seed) if opts.seed is not None else None
    partition = order_subsets(angles, block_size, opts.order_strategy, generator=generator)

    volume = _initial_volume(proj, geometry, angles, projector, opts, block_size)
    weights = _build_weights(projector, geometry, angles, partition, opts)
    update = make_update_rule(opts.lmbda, opts.lambda_red, volume, weights.V)

    n_angles = len(angles)
    block_geometries = [geometry.view(index, n_angles) for index in partition.orig_index]
    block_index = [torch.as_tensor(index, device=opts.device) for index in partition.orig_index]

    monitor = ConvergenceMonitor()
    quality = []
    status = "max_iter"
    completed = 0
    keep_previous = bool(opts.qual_meas) or opts.track_residual

    pbar = tqdm(total=niter, leave=True, disable=not opts.verbose, desc="OS-SART" if block_size > 1 else "SART")
    for it in range(niter):
        if it == 0:
            start = time.perf_counter()
        previous = volume.clone() if keep_previous else None

        # blocks are applied one after the other, each on the volume left by the previous one
        for b, (block_angles, idx) in enumerate(zip(partition.blocks, block_index)):
            geo_b = block_geometries[b]
            residual = proj[idx] - projector.forward(volume, geo_b, block_angles)
            backprojection = projector.backward(weights.W[idx] * residual, geo_b, block_angles)
            update.apply(volume, backprojection, b)
            if opts.nonneg:
                volume.clamp_(min=0)

        if opts.qual_meas:
            quality.append(measure_quality(volume, previous, opts.qual_meas))

        update.end_iteration()

        if opts.track_residual:
            norm = residual_norm(proj, projector.forward(volume, geometry, angles))
            if not monitor.record_and_continue(norm):
                volume = previous
                if quality:
                    quality.pop()
                status = "converged"
                if opts.verbose:
                    tqdm.write(f"Convergence criteria met, exiting on iteration number: {it + 1}")
                break

        completed = it + 1
        pbar.update(1)
        if it == 0 and opts.verbose:
            expected = (time.perf_counter() - start) * niter
            finish = datetime.now() + timedelta(seconds=expected)
            tqdm.write(f"Expected duration   :    {_secs2hms(expected)}")
            tqdm.write(f"Expected finish time:    {finish:%Y-%m-%d %H:%M:%S}")
    pbar.close()

    qual_meas = torch.stack(quality, dim=1) if quality else None
    return SARTResult(
        volume=volume,
        error_l2=list(monitor.history),
        qual_meas=qual_meas,
        iterations=completed,
        status=status,
    )


def sart(projections, geometry: ConeGeometry, angles, niter: int, projector=None, **options) -> SARTResult:
    """SART reconstruction: :func:`os_sart` with one view per block."""
    return os_sart(projections, geometry, angles, niter, block_size=1, projector=projector, **options)
