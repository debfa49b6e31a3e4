"""Test configuration and fixtures."""

import numpy as np
import pytest
import torch

from helpers import SumProjector, tiny_geometry


@pytest.fixture
def device():
    """Get available device (CUDA if available, else CPU)."""
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


@pytest.fixture
def sum_projector():
    return SumProjector()


@pytest.fixture
def small_geometry():
    return tiny_geometry(n_voxel=(4, 4, 4), n_detector=(2, 3))


@pytest.fixture
def circular_angles():
    """Full circular orbit sampled every 10 degrees."""
    return np.linspace(0, 2 * np.pi, 36, endpoint=False)
