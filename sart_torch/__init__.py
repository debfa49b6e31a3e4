"""sart-torch: SART-family iterative cone-beam reconstruction in PyTorch.

This library drives ordered-subsets SART reconstructions (plain, Nesterov
accelerated and multigrid initialized) on top of any forward/back-projector,
with an ASTRA CUDA cone-beam projector as default.

Modules:
--------
sart : SART / OS-SART solvers
geometry : Cone-beam geometry descriptor and per-view selection
ordering : Subset ordering strategies
weighting : Projection / back-projection weights and redundancy weighting
acceleration : Plain and Nesterov update rules
convergence : Residual-norm early stopping
multigrid : Coarse-to-fine initialization
metrics : Image-quality measures between iterates
cone : ASTRA cone-beam projector (requires astra-toolbox)

Examples:
---------
>>> from sart_torch import sart, default_cone_geometry
>>> geo = default_cone_geometry(n_voxel=(128, 128, 128))
>>> result = sart(projs, geo, angles, niter=20, lmbda='nesterov')
>>> volume = result.volume
"""

from .errors import InvalidConfiguration
from .geometry import ConeGeometry, default_cone_geometry
from .ordering import SubsetPartition, order_subsets
from .weighting import (
    SARTWeights,
    compose_weights,
    compute_back_weights,
    compute_projection_weights,
    redundancy_weighting,
)
from .acceleration import NesterovUpdate, SARTUpdate, make_update_rule
from .convergence import ConvergenceMonitor, residual_norm, should_stop
from .multigrid import init_multigrid, upsample_volume
from .metrics import measure_quality
from .options import SARTOptions, parse_sart_options
from .sart import SARTResult, os_sart, sart

# The ASTRA projector is only importable with the astra toolbox installed
try:
    from .cone import AstraConeProjector, cone_vectors
    ASTRA_AVAILABLE = True
except ImportError:
    ASTRA_AVAILABLE = False

__version__ = "0.1.0"

__all__ = [
    # Solvers
    'sart',
    'os_sart',
    'SARTResult',
    'SARTOptions',
    'parse_sart_options',
    'InvalidConfiguration',

    # Geometry and scheduling
    'ConeGeometry',
    'default_cone_geometry',
    'SubsetPartition',
    'order_subsets',

    # Weights
    'SARTWeights',
    'compose_weights',
    'compute_projection_weights',
    'compute_back_weights',
    'redundancy_weighting',

    # Updates, convergence, multigrid
    'SARTUpdate',
    'NesterovUpdate',
    'make_update_rule',
    'ConvergenceMonitor',
    'residual_norm',
    'should_stop',
    'init_multigrid',
    'upsample_volume',
    'measure_quality',

    'ASTRA_AVAILABLE',
    '__version__',
]

if ASTRA_AVAILABLE:
    __all__ += ['AstraConeProjector', 'cone_vectors']
