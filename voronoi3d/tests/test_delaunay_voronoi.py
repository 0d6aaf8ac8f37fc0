import math
import numpy as np
import torch
import unittest
from .. import (
    DelaunayVoronoi, PeriodicBox, TetrahedralizationOptions, build_tetrahedralization, voronoi_dual,
    delaunay_edges, DegenerateInputError
)

"""
Unit tests for the entry points in `delaunay_voronoi.py`.

This test suite covers:
- `build_tetrahedralization` with default and overridden options.
- `voronoi_dual` on tensors and on plain lists with missing vertices.
- The `DelaunayVoronoi` pipeline wrapper and its statistics.
"""

UNIT_TETRAHEDRON = [[0., 0., 0.], [1., 0., 0.], [0., 1., 0.], [0., 0., 1.]]
CUBE = [[0., 0., 0.], [1., 0., 0.], [0., 1., 0.], [0., 0., 1.],
        [1., 1., 0.], [1., 0., 1.], [0., 1., 1.], [1., 1., 1.]]


class TestOptions(unittest.TestCase):
    """Tests for `TetrahedralizationOptions`."""

    def test_defaults(self):
        options = TetrahedralizationOptions()
        self.assertEqual(options.center_type, "circumcenter")
        self.assertIsNone(options.periodic)

    def test_mapping_and_pair_periodic(self):
        from_dict = TetrahedralizationOptions(periodic={"min": [0, 0, 0], "max": [2, 2, 2]})
        from_pair = TetrahedralizationOptions(periodic=((0, 0, 0), (2, 2, 2)))
        self.assertEqual(from_dict.periodic, PeriodicBox.cube(0.0, 2.0))
        self.assertEqual(from_pair.periodic, from_dict.periodic)

    def test_invalid(self):
        with self.assertRaises(ValueError):
            TetrahedralizationOptions(center_type="centroid")
        with self.assertRaises(ValueError):
            TetrahedralizationOptions(tol=0.0)


class TestBuildTetrahedralization(unittest.TestCase):
    """Tests for `build_tetrahedralization`."""

    def test_single_tetrahedron(self):
        result = build_tetrahedralization(UNIT_TETRAHEDRON)
        self.assertEqual(result.tetrahedra.shape[0], 1)
        self.assertTrue(torch.allclose(result.vertices[0], torch.full((3,), 0.5, dtype=torch.float64)))
        self.assertEqual(result.warnings, [])

    def test_cube_circumcenters_coincide(self):
        """All cube corners lie on one sphere, so every tetrahedron shares its center."""
        result = build_tetrahedralization(np.array(CUBE))
        self.assertIn(result.tetrahedra.shape[0], (5, 6))
        self.assertTrue(torch.all(result.present))
        expected = torch.full_like(result.vertices, 0.5)
        self.assertTrue(torch.allclose(result.vertices, expected, atol=1e-9))

    def test_overrides(self):
        """Keyword overrides replace fields of the given options."""
        options = TetrahedralizationOptions(center_type="circumcenter")
        result = build_tetrahedralization(CUBE, options, center_type="barycenter")
        self.assertEqual(result.options.center_type, "barycenter")
        self.assertEqual(options.center_type, "circumcenter", "Given options must not be modified.")
        points = torch.tensor(CUBE, dtype=torch.float64)
        self.assertTrue(torch.allclose(result.vertices, points[result.tetrahedra].mean(dim=1)))

    def test_bipyramid_builds(self):
        """A symmetric triangular bipyramid builds with one dual vertex per tetrahedron."""
        h = math.sqrt(2.0)
        points = [[1., 0., 0.], [-0.5, math.sqrt(3) / 2, 0.], [-0.5, -math.sqrt(3) / 2, 0.],
                  [0., 0., h], [0., 0., -h]]
        result = build_tetrahedralization(points)
        self.assertGreaterEqual(result.tetrahedra.shape[0], 2)
        self.assertEqual(result.vertices.shape[0], result.tetrahedra.shape[0])
        self.assertTrue(torch.all(result.present))

    def test_tiny_tetrahedron_has_absent_vertex(self):
        """A valid but tiny tetrahedron gets an absent circumcenter and the dual skips it."""
        points = (torch.tensor(UNIT_TETRAHEDRON, dtype=torch.float64) * 1e-4).tolist()
        result = build_tetrahedralization(points)
        self.assertEqual(result.tetrahedra.shape[0], 1)
        self.assertEqual(result.present.tolist(), [False])
        self.assertTrue(torch.all(torch.isnan(result.vertices[0])))
        self.assertEqual(len(result.warnings), 1)
        self.assertEqual(result.warnings[0].reason, "singular")
        self.assertEqual(result.warnings[0].tetrahedron, 0)

        dv = DelaunayVoronoi(points).compute()
        self.assertEqual(dv.voronoi.vertices.shape[0], 0)
        self.assertEqual(dv.voronoi.edges.shape[0], 0)
        self.assertEqual(dv.get_stats()["degenerate_center_count"], 1)


    def test_degenerate_inputs(self):
        with self.assertRaises(DegenerateInputError):
            build_tetrahedralization(UNIT_TETRAHEDRON[:3])
        with self.assertRaises(DegenerateInputError):
            build_tetrahedralization([[0., 0., 0.], [1., 0., 0.], [0., 1., 0.], [1., 1., 0.], [2., 3., 0.]])


class TestVoronoiDual(unittest.TestCase):
    """Tests for `voronoi_dual`."""

    def test_list_vertices_with_missing_entry(self):
        """A None vertex is absent: the edge across the shared face is skipped."""
        points = UNIT_TETRAHEDRON + [[1., 1., 1.]]
        tetrahedra = [[0, 1, 2, 3], [1, 2, 3, 4]]
        diagram = voronoi_dual(tetrahedra, [[0.5, 0.5, 0.5], None], points)
        self.assertEqual(diagram.vertices.shape[0], 1)
        self.assertEqual(diagram.edges.shape[0], 0)
        diagram = voronoi_dual(tetrahedra, [[0.5, 0.5, 0.5], [0.5, 0.5, 0.5]], points)
        self.assertEqual(diagram.edges.tolist(), [[0, 1]])
        self.assertEqual(diagram.edge_delaunay_faces.tolist(), [[1, 2, 3]])

    def test_round_trip_with_build(self):
        gen = torch.Generator().manual_seed(13)
        points = torch.rand((20, 3), generator=gen, dtype=torch.float64)
        result = build_tetrahedralization(points)
        diagram = voronoi_dual(result.tetrahedra, result.vertices, points, present=result.present)
        self.assertEqual(diagram.vertices.shape[0], int(result.present.sum()))
        self.assertGreater(diagram.edges.shape[0], 0)
        self.assertTrue(all(len(face) >= 3 for face in diagram.faces))


class TestDelaunayVoronoi(unittest.TestCase):
    """Tests for the `DelaunayVoronoi` wrapper."""

    def test_stats_before_compute(self):
        stats = DelaunayVoronoi(CUBE).get_stats()
        self.assertEqual(stats["point_count"], 8)
        self.assertEqual(stats["tetrahedra_count"], 0)
        self.assertFalse(stats["has_computed"])

    def test_compute_and_stats(self):
        gen = torch.Generator().manual_seed(17)
        points = torch.rand((25, 3), generator=gen, dtype=torch.float64)
        dv = DelaunayVoronoi(points).compute()
        stats = dv.get_stats()
        self.assertTrue(stats["has_computed"])
        self.assertEqual(stats["point_count"], 25)
        self.assertEqual(stats["tetrahedra_count"], dv.tetrahedra.shape[0])
        self.assertEqual(stats["voronoi_vertex_count"], dv.voronoi.vertices.shape[0])
        self.assertEqual(stats["voronoi_edge_count"], len(dv.adjacency.interior_faces()))
        self.assertEqual(stats["face_count"], len(dv.adjacency.faces))
        self.assertEqual(stats["degenerate_center_count"], len(dv.result.warnings))
        self.assertTrue(torch.equal(dv.get_delaunay_edges(), delaunay_edges(dv.tetrahedra)))

    def test_compute_with_overrides(self):
        dv = DelaunayVoronoi(UNIT_TETRAHEDRON).compute(center_type="barycenter")
        self.assertTrue(torch.allclose(dv.voronoi.vertices[0], torch.full((3,), 0.25, dtype=torch.float64)))
        self.assertEqual(dv.get_delaunay_edges().shape[0], 6)

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
