import torch
import unittest
from ..circumcenter_calculations import (
    compute_tetrahedron_circumcenter_3d, compute_tetrahedron_barycenter_3d, verify_circumcenter
)
from ..errors import DegenerateCenterWarning
from ..periodic import PeriodicBox

"""
Unit tests for the `circumcenter_calculations.py` module.

This test suite covers:
- Circumcenters of regular and random tetrahedra (equidistance to all four vertices).
- Near-singular (coplanar) tetrahedra yielding an absent center with a diagnostic.
- Barycenters, with and without a periodic box.
"""

class TestCircumcenter(unittest.TestCase):
    """Tests for `compute_tetrahedron_circumcenter_3d`."""

    def test_unit_tetrahedron(self):
        p = [torch.tensor(v, dtype=torch.float64)
             for v in ([0., 0., 0.], [1., 0., 0.], [0., 1., 0.], [0., 0., 1.])]
        result = compute_tetrahedron_circumcenter_3d(*p)
        self.assertTrue(result.present)
        self.assertIsNone(result.warning)
        self.assertTrue(torch.allclose(result.center, torch.full((3,), 0.5, dtype=torch.float64)))

    def test_random_tetrahedra_equidistant(self):
        """Squared distances from the circumcenter to the four vertices agree within 1e-5."""
        gen = torch.Generator().manual_seed(42)
        for _ in range(20):
            p = torch.rand((4, 3), generator=gen, dtype=torch.float64) * 10 - 5
            result = compute_tetrahedron_circumcenter_3d(p[0], p[1], p[2], p[3])
            if not result.present:
                continue
            squared = torch.sum((p - result.center) ** 2, dim=1)
            self.assertLess((torch.max(squared) - torch.min(squared)).item(), 1e-5)

    def test_float32_inputs(self):
        p = torch.tensor([[0., 0., 0.], [2., 0., 0.], [0., 2., 0.], [0., 0., 2.]], dtype=torch.float32)
        result = compute_tetrahedron_circumcenter_3d(p[0], p[1], p[2], p[3])
        self.assertEqual(result.center.dtype, torch.float64)
        self.assertTrue(torch.allclose(result.center, torch.ones(3, dtype=torch.float64)))

    def test_coplanar_is_absent(self):
        """Coplanar vertices make the system singular: no center, a 'singular' diagnostic."""
        p = torch.tensor([[0., 0., 0.], [1., 0., 0.], [0., 1., 0.], [1., 1., 0.]], dtype=torch.float64)
        result = compute_tetrahedron_circumcenter_3d(p[0], p[1], p[2], p[3])
        self.assertFalse(result.present)
        self.assertIsNone(result.center)
        self.assertIsInstance(result.warning, DegenerateCenterWarning)
        self.assertEqual(result.warning.reason, "singular")

    def test_verification_warning_keeps_center(self):
        """A center failing the equidistance check is kept with a 'verification' diagnostic."""
        p = torch.tensor([[0., 0., 0.], [1., 0., 0.], [0., 1., 0.], [0., 0., 1.]], dtype=torch.float64)
        result = compute_tetrahedron_circumcenter_3d(p[0], p[1], p[2], p[3], verify_tol=-1.0)
        self.assertTrue(result.present)
        self.assertEqual(result.warning.reason, "verification")

    def test_verify_circumcenter(self):
        edges = torch.eye(3, dtype=torch.float64)
        self.assertAlmostEqual(verify_circumcenter(torch.full((3,), 0.5, dtype=torch.float64), edges), 0.0)
        self.assertAlmostEqual(verify_circumcenter(torch.zeros(3, dtype=torch.float64), edges), 1.0)

    def test_periodic_minimum_image(self):
        """A tetrahedron straddling the box boundary gets the same center as its unwrapped copy."""
        box = PeriodicBox.cube(0.0, 10.0)
        wrapped = torch.tensor([[9.5, 0., 0.], [0.5, 0., 0.], [9.5, 1., 0.], [9.5, 0., 1.]], dtype=torch.float64)
        result = compute_tetrahedron_circumcenter_3d(*wrapped, box=box)
        self.assertTrue(result.present)
        # Unwrapped: (9.5,0,0), (10.5,0,0), (9.5,1,0), (9.5,0,1) -> center (10, 0.5, 0.5).
        self.assertTrue(torch.allclose(result.center, torch.tensor([10.0, 0.5, 0.5], dtype=torch.float64)))


class TestBarycenter(unittest.TestCase):
    """Tests for `compute_tetrahedron_barycenter_3d`."""

    def test_mean_of_vertices(self):
        p = torch.tensor([[0., 0., 0.], [4., 0., 0.], [0., 4., 0.], [0., 0., 4.]], dtype=torch.float64)
        result = compute_tetrahedron_barycenter_3d(*p)
        self.assertTrue(result.present)
        self.assertIsNone(result.warning)
        self.assertTrue(torch.allclose(result.center, torch.ones(3, dtype=torch.float64)))

    def test_flat_tetrahedron_still_present(self):
        p = torch.tensor([[0., 0., 0.], [1., 0., 0.], [0., 1., 0.], [1., 1., 0.]], dtype=torch.float64)
        result = compute_tetrahedron_barycenter_3d(*p)
        self.assertTrue(result.present)
        self.assertTrue(torch.allclose(result.center, torch.tensor([0.5, 0.5, 0.], dtype=torch.float64)))

    def test_periodic(self):
        box = PeriodicBox.cube(0.0, 1.0)
        p = torch.tensor([[0.9, 0.5, 0.5], [0.1, 0.5, 0.5], [0.9, 0.6, 0.5], [0.1, 0.6, 0.5]], dtype=torch.float64)
        result = compute_tetrahedron_barycenter_3d(*p, box=box)
        self.assertTrue(torch.allclose(result.center, torch.tensor([1.0, 0.55, 0.5], dtype=torch.float64)))

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
