"""
Entry points tying the tetrahedralization and its Voronoi dual together.

- `build_tetrahedralization`: points -> Delaunay tetrahedra plus one dual vertex
  per tetrahedron, optionally inside a periodic box.
- `voronoi_dual`: tetrahedra + dual vertices + points -> `VoronoiDiagram`.
- `delaunay_edges` (re-exported from `adjacency.py`): unique Delaunay edges.
- `DelaunayVoronoi`: a small stateful wrapper running the whole pipeline and
  reporting statistics.

Inputs may be torch tensors, numpy arrays or nested lists; they are never modified.
"""
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

import torch

from .adjacency import AdjacencyIndex, build_adjacency, delaunay_edges
from .delaunay_3d import delaunay_triangulation_3d
from .errors import DegenerateCenterWarning, DegenerateInputError
from .geometry_core import HULL_EPSILON, as_points_tensor
from .periodic import PeriodicBox, filter_ghost_tetrahedra, ghost_points
from .voronoi_from_delaunay import CENTER_TYPES, VoronoiDiagram, compute_dual_vertices, construct_voronoi_dual

logger = logging.getLogger(__name__)


def _as_periodic_box(periodic) -> PeriodicBox | None:
    """Accepts None, a `PeriodicBox`, a ``{"min": ..., "max": ...}`` mapping or a (min, max) pair."""
    if periodic is None or isinstance(periodic, PeriodicBox):
        return periodic
    if isinstance(periodic, Mapping):
        return PeriodicBox(tuple(periodic["min"]), tuple(periodic["max"]))
    lower, upper = periodic
    return PeriodicBox(tuple(lower), tuple(upper))


@dataclass(frozen=True)
class TetrahedralizationOptions:
    """
    Configuration of `build_tetrahedralization`.

    Attributes:
        center_type (str): "circumcenter" (default) or "barycenter" dual vertices.
        periodic (PeriodicBox | None): Periodic domain; None (default) for a free point set.
                                       Mappings ``{"min": ..., "max": ...}`` are converted.
        tol (float): Hull visibility tolerance. Defaults to `HULL_EPSILON`.
    """
    center_type: str = "circumcenter"
    periodic: PeriodicBox | None = None
    tol: float = HULL_EPSILON

    def __post_init__(self):
        if self.center_type not in CENTER_TYPES:
            raise ValueError(f"center_type must be one of {CENTER_TYPES}, got {self.center_type!r}.")
        if self.tol <= 0:
            raise ValueError(f"tol must be positive, got {self.tol}.")
        object.__setattr__(self, "periodic", _as_periodic_box(self.periodic))


@dataclass(frozen=True)
class TetrahedralizationResult:
    """
    Output of `build_tetrahedralization`.

    Attributes:
        points (torch.Tensor): The input points as float64, shape (N, 3).
        tetrahedra (torch.Tensor): Long tensor of shape (M, 4), positively oriented,
                                   all indices < N.
        vertices (torch.Tensor): (M, 3) dual vertex per tetrahedron, NaN where absent.
        present (torch.Tensor): (M,) bool mask of present dual vertices.
        options (TetrahedralizationOptions): The options used.
        warnings (list[DegenerateCenterWarning]): Per-tetrahedron diagnostics.
    """
    points: torch.Tensor
    tetrahedra: torch.Tensor
    vertices: torch.Tensor
    present: torch.Tensor
    options: TetrahedralizationOptions
    warnings: list[DegenerateCenterWarning] = field(default_factory=list)


def build_tetrahedralization(points, options: TetrahedralizationOptions | None = None,
                             **overrides) -> TetrahedralizationResult:
    """
    Computes the Delaunay tetrahedralization of `points` and a dual vertex per tetrahedron.

    In periodic mode the points are first surrounded by their 26 periodic images;
    tetrahedra using any image are dropped after the lift. The kept tetrahedra are
    simplices of the raw coordinates, so their dual vertices use plain differences.

    Args:
        points: Array-like of shape (N, 3).
        options (TetrahedralizationOptions | None, optional): Configuration; defaults
                                                              to `TetrahedralizationOptions()`.
        **overrides: Field overrides applied on top of `options`
                     (e.g. ``center_type="barycenter"``).

    Returns:
        TetrahedralizationResult: Tetrahedra, dual vertices and diagnostics.

    Raises:
        ValueError: On malformed points or options.
        DegenerateInputError: If the (possibly ghosted) points cannot be tetrahedralized.
        InternalConsistencyError: If the hull construction breaks an invariant.
    """
    options = replace(options or TetrahedralizationOptions(), **overrides)
    points = as_points_tensor(points)
    n_points = points.shape[0]
    box = options.periodic

    if box is not None:
        if n_points == 0:
            raise DegenerateInputError("Periodic tetrahedralization requires at least one point.")
        extended = ghost_points(points, box)
        tetrahedra = filter_ghost_tetrahedra(delaunay_triangulation_3d(extended, tol=options.tol), n_points)
        logger.info(f"Periodic mode: {extended.shape[0]} points after ghosting, "
                    f"{tetrahedra.shape[0]} tetrahedra on original points.")
    else:
        tetrahedra = delaunay_triangulation_3d(points, tol=options.tol)

    dual = compute_dual_vertices(points, tetrahedra, options.center_type)
    return TetrahedralizationResult(
        points=points,
        tetrahedra=tetrahedra,
        vertices=dual.positions,
        present=dual.present,
        options=options,
        warnings=dual.warnings,
    )


def voronoi_dual(tetrahedra, vertices, points, present=None,
                 periodic=None, adjacency: AdjacencyIndex | None = None,
                 warnings: list[DegenerateCenterWarning] | None = None) -> VoronoiDiagram:
    """
    Builds the Voronoi vertices, edges and faces for a tetrahedralization.

    Args:
        tetrahedra: (M, 4) point indices.
        vertices: (M, 3) dual vertex per tetrahedron. NaN rows, or None entries
                  when given as a list, mark absent vertices.
        points: (N, 3) seed points.
        present (optional): (M,) bool mask overriding NaN detection.
        periodic (optional): Periodic domain, for tetrahedra whose vertices are folded
                             into the box; edge directions then use minimum-image differences.
                             Leave None for tetrahedra from `build_tetrahedralization`.
        adjacency (AdjacencyIndex | None, optional): Prebuilt adjacency of `tetrahedra`.
        warnings (list | None, optional): Diagnostics to attach to the diagram.

    Returns:
        VoronoiDiagram: See `voronoi_from_delaunay.VoronoiDiagram`.
    """
    points = as_points_tensor(points)
    tetrahedra = torch.as_tensor(tetrahedra, dtype=torch.long).reshape(-1, 4)
    if not isinstance(vertices, torch.Tensor):
        nan_row = [float("nan")] * 3
        vertices = torch.tensor([nan_row if v is None else [float(c) for c in v] for v in vertices],
                                dtype=torch.float64).reshape(-1, 3)
    if present is not None:
        present = torch.as_tensor(present, dtype=torch.bool)
    return construct_voronoi_dual(points, tetrahedra, vertices, present=present, adjacency=adjacency,
                                  box=_as_periodic_box(periodic), warnings=warnings)


class DelaunayVoronoi:
    """
    Computes a Delaunay tetrahedralization and its dual Voronoi diagram.

    Usage::

        dv = DelaunayVoronoi(points).compute(center_type="barycenter")
        dv.tetrahedra, dv.voronoi.edges, dv.get_stats()

    Attributes:
        points (torch.Tensor): Input points, float64 (N, 3).
        result (TetrahedralizationResult | None): Set by `compute`.
        adjacency (AdjacencyIndex | None): Set by `compute`.
        voronoi (VoronoiDiagram | None): Set by `compute`.
    """
    def __init__(self, points):
        self.points = as_points_tensor(points)
        self.result: TetrahedralizationResult | None = None
        self.adjacency: AdjacencyIndex | None = None
        self.voronoi: VoronoiDiagram | None = None

    @property
    def tetrahedra(self) -> torch.Tensor:
        if self.result is None:
            return torch.empty((0, 4), dtype=torch.long)
        return self.result.tetrahedra

    def compute(self, options: TetrahedralizationOptions | None = None, **overrides) -> "DelaunayVoronoi":
        """Runs the full pipeline; returns self for chaining."""
        self.result = build_tetrahedralization(self.points, options, **overrides)
        self.adjacency = build_adjacency(self.result.tetrahedra)
        self.voronoi = construct_voronoi_dual(
            self.points, self.result.tetrahedra, self.result.vertices,
            present=self.result.present, adjacency=self.adjacency,
            warnings=self.result.warnings,
        )
        return self

    def get_delaunay_edges(self) -> torch.Tensor:
        """Unique Delaunay edges as ascending index pairs, shape (K, 2)."""
        return delaunay_edges(self.tetrahedra)

    def get_stats(self) -> dict:
        """Counts describing the last computation."""
        computed = self.voronoi is not None
        return {
            "point_count": self.points.shape[0],
            "tetrahedra_count": self.tetrahedra.shape[0],
            "voronoi_vertex_count": self.voronoi.vertices.shape[0] if computed else 0,
            "voronoi_edge_count": self.voronoi.edges.shape[0] if computed else 0,
            "voronoi_face_count": len(self.voronoi.faces) if computed else 0,
            "face_count": len(self.adjacency.faces) if self.adjacency is not None else 0,
            "degenerate_center_count": len(self.voronoi.warnings) if computed else 0,
            "has_computed": computed and self.tetrahedra.shape[0] > 0,
        }
