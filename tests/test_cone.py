"""Tests for the ASTRA cone-beam projector."""

import unittest
from dataclasses import replace

import numpy as np
import torch

from sart_torch import default_cone_geometry, sart

try:
    from sart_torch.cone import AstraConeProjector, cone_vectors
    ASTRA_AVAILABLE = True
except ImportError:
    ASTRA_AVAILABLE = False


class TestConeVectors(unittest.TestCase):
    """Test conversion of ConeGeometry to ASTRA cone_vec rows."""

    @unittest.skipUnless(ASTRA_AVAILABLE, "ASTRA toolbox not available")
    def test_circular_orbit(self):
        geo = default_cone_geometry(n_voxel=(32, 32, 32), n_detector=(64, 64), dsd=1500.0, dso=1000.0)
        angles = np.linspace(0, 2 * np.pi, 8, endpoint=False)
        vectors = cone_vectors(geo, angles)
        self.assertEqual(vectors.shape, (8, 12))

        src, det = vectors[:, 0:3], vectors[:, 3:6]
        np.testing.assert_allclose(np.linalg.norm(src, axis=1), 1000.0)
        np.testing.assert_allclose(np.linalg.norm(det, axis=1), 500.0)
        np.testing.assert_allclose(np.linalg.norm(src - det, axis=1), 1500.0)
        # detector pixel steps scale the unit (u, v) directions
        np.testing.assert_allclose(np.linalg.norm(vectors[:, 6:9], axis=1), 0.8)
        np.testing.assert_allclose(vectors[:, 9:12], np.tile([0.0, 0.0, 0.8], (8, 1)), atol=1e-12)

    @unittest.skipUnless(ASTRA_AVAILABLE, "ASTRA toolbox not available")
    def test_per_view_distances(self):
        geo = default_cone_geometry(n_voxel=(16, 16, 16), n_detector=(32, 32))
        geo = replace(geo, dso=np.array([900.0, 1100.0]))
        vectors = cone_vectors(geo, np.array([0.0, np.pi / 2]))
        np.testing.assert_allclose(vectors[:, 0:3], [[900.0, 0.0, 0.0], [0.0, 1100.0, 0.0]], atol=1e-9)

    @unittest.skipUnless(ASTRA_AVAILABLE, "ASTRA toolbox not available")
    def test_detector_offset_moves_centre(self):
        geo = default_cone_geometry(n_voxel=(16, 16, 16), n_detector=(32, 32))
        shifted = replace(geo, off_detector=np.array([2.0, 5.0]))
        v0 = cone_vectors(geo, np.zeros(1))[0]
        v1 = cone_vectors(shifted, np.zeros(1))[0]
        np.testing.assert_allclose(v1[3:6] - v0[3:6], [0.0, 5.0, 2.0])


class TestAstraConeProjector(unittest.TestCase):
    """Test the CUDA projector and a short reconstruction."""

    @unittest.skipUnless(ASTRA_AVAILABLE, "ASTRA toolbox not available")
    @unittest.skipUnless(torch.cuda.is_available(), "CUDA not available - test requires GPU")
    def test_forward_backward_shapes(self):
        device = torch.device('cuda')
        geo = default_cone_geometry(n_voxel=(16, 24, 32), voxel_size_mm=1.0, n_detector=(40, 48), det_spacing_mm=1.0)
        angles = np.linspace(0, 2 * np.pi, 10, endpoint=False)
        projector = AstraConeProjector(device)
        volume = torch.ones(geo.n_voxel, device=device)
        projs = projector.forward(volume, geo, angles)
        self.assertEqual(tuple(projs.shape), (10, 40, 48))
        self.assertGreater(projs.max().item(), 0.0)
        back = projector.backward(projs, geo, angles)
        self.assertEqual(tuple(back.shape), (16, 24, 32))

    @unittest.skipUnless(ASTRA_AVAILABLE, "ASTRA toolbox not available")
    @unittest.skipUnless(torch.cuda.is_available(), "CUDA not available - test requires GPU")
    def test_sart_reconstruction_simple(self):
        device = torch.device('cuda')
        size = 32
        geo = default_cone_geometry(n_voxel=(size, size, size), voxel_size_mm=1.0,
                                    n_detector=(48, 48), det_spacing_mm=1.5)
        phantom = torch.zeros(geo.n_voxel, device=device)
        phantom[size // 4:3 * size // 4, size // 4:3 * size // 4, size // 4:3 * size // 4] = 1.0
        angles = np.linspace(0, 2 * np.pi, 60, endpoint=False)
        projector = AstraConeProjector(device)
        projs = projector.forward(phantom, geo, angles)

        result = sart(projs, geo, angles, 5, projector=projector, device=device, compute_l2=True)
        self.assertEqual(tuple(result.volume.shape), (size, size, size))
        self.assertGreaterEqual(result.volume.min().item(), 0.0)
        self.assertGreater(result.volume.max().item(), 0.1)
        self.assertGreaterEqual(len(result.error_l2), 1)


if __name__ == '__main__':
    unittest.main()
