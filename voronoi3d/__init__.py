"""
voronoi3d: 3D Delaunay tetrahedralization and Voronoi diagrams in PyTorch.

Delaunay tetrahedra come from the lower hull of the points lifted onto a 4D
paraboloid, built with an incremental quickhull (`convex_hull.ConvexHull`). The
Voronoi diagram is assembled from the tetrahedra's circumcenters or barycenters.
"""
import logging

from .adjacency import AdjacencyIndex, build_adjacency, delaunay_edges
from .circumcenter_calculations import (
    CenterResult,
    compute_tetrahedron_barycenter_3d,
    compute_tetrahedron_circumcenter_3d,
)
from .convex_hull import ConvexHull
from .delaunay_3d import delaunay_triangulation_3d, lift_to_paraboloid, normalize_to_unit_frame
from .delaunay_voronoi import (
    DelaunayVoronoi,
    TetrahedralizationOptions,
    TetrahedralizationResult,
    build_tetrahedralization,
    voronoi_dual,
)
from .errors import DegenerateCenterWarning, DegenerateInputError, InternalConsistencyError, Voronoi3DError
from .periodic import PeriodicBox
from .voronoi_from_delaunay import VoronoiDiagram, compute_dual_vertices, construct_voronoi_dual

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "AdjacencyIndex", "build_adjacency", "delaunay_edges",
    "CenterResult", "compute_tetrahedron_barycenter_3d", "compute_tetrahedron_circumcenter_3d",
    "ConvexHull",
    "delaunay_triangulation_3d", "lift_to_paraboloid", "normalize_to_unit_frame",
    "DelaunayVoronoi", "TetrahedralizationOptions", "TetrahedralizationResult",
    "build_tetrahedralization", "voronoi_dual",
    "DegenerateCenterWarning", "DegenerateInputError", "InternalConsistencyError", "Voronoi3DError",
    "PeriodicBox",
    "VoronoiDiagram", "compute_dual_vertices", "construct_voronoi_dual",
    "__version__",
]
