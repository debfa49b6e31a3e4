"""Tests for the cone-beam geometry descriptor."""

import unittest

import numpy as np

from sart_torch import ConeGeometry, default_cone_geometry
from sart_torch.geometry import is_per_angle


class TestConeGeometry(unittest.TestCase):
    """Test per-view selection and derived quantities."""

    def setUp(self):
        self.n_angles = 4
        self.geo = ConeGeometry(
            n_voxel=(8, 16, 32),
            s_voxel=[8.0, 16.0, 64.0],
            n_detector=(10, 20),
            d_detector=[0.5, 0.5],
            dsd=np.array([1500.0, 1510.0, 1520.0, 1530.0]),
            dso=1000.0,
            off_origin=np.arange(12, dtype=float).reshape(4, 3),
            off_detector=[1.0, -2.0],
        )

    def test_derived_sizes(self):
        np.testing.assert_allclose(self.geo.d_voxel, [1.0, 1.0, 2.0])
        np.testing.assert_allclose(self.geo.s_detector, [5.0, 10.0])

    def test_view_slices_per_angle_fields(self):
        view = self.geo.view([2], self.n_angles)
        np.testing.assert_allclose(view.dsd, [1520.0])
        np.testing.assert_allclose(view.off_origin, [[6.0, 7.0, 8.0]])

    def test_view_passes_shared_fields(self):
        view = self.geo.view([1, 3], self.n_angles)
        self.assertEqual(float(view.dso), 1000.0)
        np.testing.assert_allclose(view.off_detector, [1.0, -2.0])
        np.testing.assert_allclose(view.rot_detector, [0.0, 0.0, 0.0])
        self.assertEqual(view.n_voxel, self.geo.n_voxel)

    def test_view_leaves_original_untouched(self):
        self.geo.view([0], self.n_angles)
        self.assertEqual(self.geo.dsd.shape, (4,))
        self.assertEqual(self.geo.off_origin.shape, (4, 3))

    def test_mismatched_length_is_shared(self):
        geo = ConeGeometry(
            n_voxel=(4, 4, 4), s_voxel=[4.0, 4.0, 4.0], n_detector=(4, 4), d_detector=[1.0, 1.0],
            dsd=np.array([1500.0, 1600.0]), dso=1000.0,
        )
        view = geo.view([1], 5)
        np.testing.assert_allclose(view.dsd, [1500.0, 1600.0])
        np.testing.assert_allclose(geo.field_per_view("dsd", 3), [1500.0, 1500.0, 1500.0])

    def test_vector_field_with_three_angles_is_shared(self):
        self.assertFalse(is_per_angle(np.zeros(3), 3, vector=True))
        self.assertTrue(is_per_angle(np.zeros((3, 3)), 3, vector=True))
        self.assertTrue(is_per_angle(np.zeros(3), 3))

    def test_field_per_view(self):
        np.testing.assert_allclose(self.geo.field_per_view("dso", 4), [1000.0] * 4)
        self.assertEqual(self.geo.field_per_view("off_detector", 4).shape, (4, 2))
        self.assertEqual(self.geo.field_per_view("off_origin", 4).shape, (4, 3))

    def test_with_voxels_keeps_extent(self):
        coarse = self.geo.with_voxels((4, 8, 16))
        np.testing.assert_allclose(coarse.s_voxel, self.geo.s_voxel)
        np.testing.assert_allclose(coarse.d_voxel, [2.0, 2.0, 4.0])

    def test_fields_are_read_only(self):
        with self.assertRaises(ValueError):
            self.geo.dsd[0] = 0.0

    def test_invalid_shapes(self):
        with self.assertRaises(ValueError):
            ConeGeometry(n_voxel=(4, 4), s_voxel=[4.0, 4.0], n_detector=(4, 4),
                         d_detector=[1.0, 1.0], dsd=1500.0, dso=1000.0)

    def test_default_geometry(self):
        geo = default_cone_geometry(n_voxel=(64, 64, 64), voxel_size_mm=0.5)
        np.testing.assert_allclose(geo.s_voxel, [32.0, 32.0, 32.0])
        self.assertEqual(geo.n_detector, (512, 512))


if __name__ == '__main__':
    unittest.main()
