"""Option parsing for the SART family of solvers."""
from __future__ import annotations

import numbers
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Union

import numpy as np
import torch

from .errors import InvalidConfiguration
from .geometry import ConeGeometry
from .metrics import QUALITY_METRICS
from .ordering import ORDER_STRATEGIES

INIT_MODES = ("none", "FDK", "multigrid", "image")


@dataclass
class SARTOptions:
    """Validated solver options.

    lmbda : float or 'nesterov'
        Relaxation parameter, or the Nesterov acceleration token.
    lambda_red : float
        Factor applied to ``lmbda`` after every iteration (plain variant).
    skipv : bool
        Skip the back-projection weights ``V``.
    exactw : bool
        Compute ``W`` on the exact volume instead of an extended one.
    init : str
        'none' (zeros), 'FDK', 'multigrid' or 'image'.
    init_img : torch.Tensor, optional
        Initial volume for ``init='image'``.
    verbose : bool
        Progress bar and timing messages.
    qual_meas : list of str
        Quality measures computed every iteration.
    order_strategy : str
        'ordered', 'random' or 'angularDistance'.
    nonneg : bool
        Clamp the volume to non-negative values after every block.
    device : torch.device
        Device holding the volume, projections and weights.
    redundancy_weighting : bool
        Apply Wang weights for offset detectors.
    compute_l2 : bool
        Track the global residual norm (always on for Nesterov).
    seed : int, optional
        Seed for the 'random' order strategy.
    """
    lmbda: Union[float, str] = 1.0
    lambda_red: float = 1.0
    skipv: bool = False
    exactw: bool = False
    init: str = "none"
    init_img: Optional[torch.Tensor] = None
    verbose: bool = False
    qual_meas: List[str] = field(default_factory=list)
    order_strategy: str = "random"
    nonneg: bool = True
    device: Optional[torch.device] = None
    redundancy_weighting: bool = True
    compute_l2: bool = False
    seed: Optional[int] = None

    @property
    def nesterov(self) -> bool:
        return self.lmbda == "nesterov"

    @property
    def track_residual(self) -> bool:
        return self.compute_l2 or self.nesterov


OPTION_NAMES = tuple(f.name for f in fields(SARTOptions))


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, (bool, np.bool_))


def parse_sart_options(geometry: ConeGeometry, **kwargs) -> SARTOptions:
    """Validate keyword options, failing on anything unknown or malformed."""
    unknown = [name for name in kwargs if name not in OPTION_NAMES]
    if unknown:
        raise InvalidConfiguration(f"Optional parameter(s) {unknown} do not exist")
    opts = SARTOptions(**kwargs)

    if isinstance(opts.lmbda, str):
        if opts.lmbda.lower() != "nesterov":
            raise InvalidConfiguration(f"Invalid lambda: {opts.lmbda!r}")
        opts.lmbda = "nesterov"
    elif _is_number(opts.lmbda):
        opts.lmbda = float(opts.lmbda)
    else:
        raise InvalidConfiguration("Invalid lambda")

    if not _is_number(opts.lambda_red):
        raise InvalidConfiguration("Invalid lambda_red")
    opts.lambda_red = float(opts.lambda_red)

    for flag in ("skipv", "exactw", "verbose", "nonneg", "redundancy_weighting", "compute_l2"):
        value = getattr(opts, flag)
        if not isinstance(value, (bool, np.bool_)):
            raise InvalidConfiguration(f"Invalid {flag}: expected a boolean, got {value!r}")
        setattr(opts, flag, bool(value))

    if opts.init not in INIT_MODES:
        raise InvalidConfiguration(f"Invalid Init option: {opts.init!r}")

    if isinstance(opts.qual_meas, str) or not all(isinstance(q, str) for q in opts.qual_meas):
        raise InvalidConfiguration("Invalid quality measurement parameters")
    bad = [q for q in opts.qual_meas if q not in QUALITY_METRICS]
    if bad:
        raise InvalidConfiguration(f"Unknown quality measures {bad}. Supported: {', '.join(QUALITY_METRICS)}")
    opts.qual_meas = list(opts.qual_meas)

    if opts.order_strategy not in ORDER_STRATEGIES:
        raise InvalidConfiguration(f"Unknown order strategy: {opts.order_strategy!r}")

    if opts.device is None:
        opts.device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
    else:
        try:
            opts.device = torch.device(opts.device)
        except (RuntimeError, TypeError, ValueError) as e:
            raise InvalidConfiguration(f"Invalid device: {opts.device!r}") from e

    if opts.seed is not None:
        if not _is_integer(opts.seed):
            raise InvalidConfiguration(f"Invalid seed: {opts.seed!r}")
        opts.seed = int(opts.seed)

    if opts.init == "image":
        if opts.init_img is None:
            raise InvalidConfiguration("init='image' requires init_img")
        img = torch.as_tensor(opts.init_img)
        if tuple(img.shape) != tuple(geometry.n_voxel):
            raise InvalidConfiguration(
                f"Invalid image for initialization: shape {tuple(img.shape)} does not match {tuple(geometry.n_voxel)}"
            )
        opts.init_img = img.to(device=opts.device, dtype=torch.float32)
    return opts


def options_to_dict(opts: SARTOptions) -> Dict[str, Any]:
    return {f.name: getattr(opts, f.name) for f in fields(opts)}
