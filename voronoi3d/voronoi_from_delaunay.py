"""
Constructs the 3D Voronoi diagram dual to a Delaunay tetrahedralization.

This module takes a set of input points and their Delaunay tetrahedralization and
computes:
- One dual vertex per tetrahedron (`compute_dual_vertices`), either its
  circumcenter or its barycenter. Degenerate circumcenters are absent rather
  than errors; their diagnostics are collected and logged.
- One Voronoi edge per interior Delaunay face, joining the dual vertices of the
  two tetrahedra sharing it.
- One Voronoi face per Delaunay edge shared by three or more tetrahedra, made of
  their dual vertices ordered angularly around the edge (`_order_face_vertices_3d`).

Everything that references an absent dual vertex is skipped. It relies on
`circumcenter_calculations.py` for the centers, `adjacency.py` for the
face/edge maps and `periodic.py` for minimum-image differences when the
tetrahedra are folded into a periodic box.
"""
import logging
from dataclasses import dataclass, field

import torch

from .adjacency import AdjacencyIndex, build_adjacency
from .circumcenter_calculations import compute_tetrahedron_barycenter_3d, compute_tetrahedron_circumcenter_3d
from .errors import DegenerateCenterWarning
from .geometry_core import EPSILON, cross_3d
from .periodic import PeriodicBox, minimum_image

logger = logging.getLogger(__name__)

CENTER_TYPES = ("circumcenter", "barycenter")


@dataclass(frozen=True)
class DualVertices:
    """
    Dual vertex of every tetrahedron.

    Attributes:
        positions (torch.Tensor): Float64 tensor of shape (M, 3); rows of absent vertices are NaN.
        present (torch.Tensor): Bool tensor of shape (M,).
        warnings (list[DegenerateCenterWarning]): Diagnostics, bound to tetrahedron indices.
    """
    positions: torch.Tensor
    present: torch.Tensor
    warnings: list[DegenerateCenterWarning] = field(default_factory=list)


@dataclass(frozen=True)
class VoronoiDiagram:
    """
    Voronoi vertices, edges and faces as plain tensors and index lists.

    Attributes:
        vertices (torch.Tensor): (V, 3) positions of the present dual vertices.
        vertex_tetrahedra (torch.Tensor): (V,) index of the tetrahedron behind each vertex.
        edges (torch.Tensor): (E, 2) pairs of indices into `vertices`.
        edge_delaunay_faces (torch.Tensor): (E, 3) Delaunay face dual to each edge.
        faces (list[list[int]]): Cyclically ordered indices into `vertices`, >= 3 per face.
        face_delaunay_edges (torch.Tensor): (F, 2) Delaunay edge dual to each face.
        warnings (list[DegenerateCenterWarning]): Diagnostics from the dual vertex computation.
    """
    vertices: torch.Tensor
    vertex_tetrahedra: torch.Tensor
    edges: torch.Tensor
    edge_delaunay_faces: torch.Tensor
    faces: list[list[int]]
    face_delaunay_edges: torch.Tensor
    warnings: list[DegenerateCenterWarning] = field(default_factory=list)

    @property
    def voronoi_vertices(self) -> torch.Tensor:
        return self.vertices

    @property
    def voronoi_edges(self) -> torch.Tensor:
        """Edge endpoint positions, shape (E, 2, 3)."""
        if self.edges.shape[0] == 0:
            return torch.empty((0, 2, 3), dtype=self.vertices.dtype)
        return self.vertices[self.edges]

    @property
    def voronoi_faces(self) -> list[torch.Tensor]:
        """Face polygons, each a (k, 3) tensor of positions in cyclic order."""
        return [self.vertices[torch.tensor(face, dtype=torch.long)] for face in self.faces]


def compute_dual_vertices(points: torch.Tensor, tetrahedra: torch.Tensor,
                          center_type: str = "circumcenter",
                          box: PeriodicBox | None = None) -> DualVertices:
    """
    Computes the dual vertex of every tetrahedron.

    Args:
        points (torch.Tensor): Tensor of shape (N, 3).
        tetrahedra (torch.Tensor): Long tensor of shape (M, 4).
        center_type (str, optional): "circumcenter" (default) or "barycenter".
        box (PeriodicBox | None, optional): Periodic domain for minimum-image differences,
                                            when `tetrahedra` are folded into the box.

    Returns:
        DualVertices: Positions, presence mask and diagnostics. Diagnostics are also
                      logged as warnings; they never abort the computation.

    Raises:
        ValueError: If `center_type` is unknown.
    """
    if center_type not in CENTER_TYPES:
        raise ValueError(f"center_type must be one of {CENTER_TYPES}, got {center_type!r}.")
    center_fn = compute_tetrahedron_barycenter_3d if center_type == "barycenter" else compute_tetrahedron_circumcenter_3d

    points = points.to(dtype=torch.float64)
    n_tets = tetrahedra.shape[0]
    positions = torch.full((n_tets, 3), float("nan"), dtype=torch.float64)
    present = torch.zeros(n_tets, dtype=torch.bool)
    warnings: list[DegenerateCenterWarning] = []

    for tet_idx, tet in enumerate(tetrahedra.tolist()):
        result = center_fn(points[tet[0]], points[tet[1]], points[tet[2]], points[tet[3]], box=box)
        if result.warning is not None:
            diagnostic = result.warning.for_tetrahedron(tet_idx)
            warnings.append(diagnostic)
            logger.warning(f"{diagnostic} (vertices {tet})")
        if result.present:
            positions[tet_idx] = result.center
            present[tet_idx] = True

    logger.info(f"Computed {int(present.sum())} of {n_tets} {center_type} dual vertices "
                f"({len(warnings)} diagnostics).")
    return DualVertices(positions, present, warnings)


def _order_face_vertices_3d(face_vertices_coords: torch.Tensor, edge_direction: torch.Tensor):
    """
    Orders vertices of a 3D Voronoi face angularly around the dual Delaunay edge.

    Each vertex, taken relative to the centroid of the face, is projected onto the
    plane perpendicular to `edge_direction`. The projection of the first vertex
    (or of the first one with a non-negligible projection) is the 0 degree axis,
    the cross product of the edge direction with it the 90 degree axis; vertices
    are sorted by their `atan2` angle in that frame.

    Args:
        face_vertices_coords (torch.Tensor): Tensor of shape (M, 3).
        edge_direction (torch.Tensor): Direction of the dual Delaunay edge, shape (3,).

    Returns:
        Tuple[torch.Tensor, torch.Tensor]:
            - sorted_indices (torch.Tensor): Permutation of range(M) in angular order.
            - sorted_angles (torch.Tensor): The angles, ascending, in (-pi, pi].
        If the face has fewer than 3 vertices, the edge is degenerate or all
        vertices project onto the centroid, the identity order and zero angles
        are returned.
    """
    n_vertices = face_vertices_coords.shape[0]
    identity = (torch.arange(n_vertices), torch.zeros(n_vertices, dtype=face_vertices_coords.dtype))
    if n_vertices < 3:
        return identity

    axis_norm = torch.linalg.norm(edge_direction)
    if axis_norm < EPSILON:
        return identity
    axis = edge_direction / axis_norm

    relative = face_vertices_coords - torch.mean(face_vertices_coords, dim=0)
    planar = relative - (relative @ axis).unsqueeze(1) * axis
    planar_norms = torch.linalg.norm(planar, dim=1)
    candidates = torch.nonzero(planar_norms > EPSILON)
    if candidates.numel() == 0:
        return identity
    reference = int(candidates[0])

    u1 = planar[reference] / planar_norms[reference]
    u2 = cross_3d(axis, u1)
    angles = torch.atan2(planar @ u2, planar @ u1)
    sorted_indices = torch.argsort(angles, stable=True)
    return sorted_indices, angles[sorted_indices]


def construct_voronoi_dual(points: torch.Tensor, tetrahedra: torch.Tensor,
                           vertices: torch.Tensor, present: torch.Tensor | None = None,
                           adjacency: AdjacencyIndex | None = None,
                           box: PeriodicBox | None = None,
                           warnings: list[DegenerateCenterWarning] | None = None) -> VoronoiDiagram:
    """
    Assembles Voronoi edges and faces from per-tetrahedron dual vertices.

    Args:
        points (torch.Tensor): Tensor of shape (N, 3) of seed points.
        tetrahedra (torch.Tensor): Long tensor of shape (M, 4), indices into `points`.
        vertices (torch.Tensor): (M, 3) dual vertex of each tetrahedron; NaN rows are absent.
        present (torch.Tensor | None, optional): (M,) bool mask of present vertices.
                                                 Derived from NaNs in `vertices` when None.
        adjacency (AdjacencyIndex | None, optional): Prebuilt adjacency of `tetrahedra`.
                                                     Built (and validated) when None.
        box (PeriodicBox | None, optional): Periodic domain, for minimum-image edge directions of
                                            tetrahedra folded into the box. None for raw simplices.
        warnings (list | None, optional): Diagnostics to carry into the result.

    Returns:
        VoronoiDiagram: Vertices of present tetrahedra (in tetrahedron order), one edge
                        per interior face whose two dual vertices exist, and one face
                        per Delaunay edge with at least 3 present dual vertices.
    """
    points = points.to(dtype=torch.float64)
    vertices = vertices.to(dtype=torch.float64)
    if vertices.shape[0] != tetrahedra.shape[0]:
        raise ValueError(f"Expected one dual vertex per tetrahedron, got {vertices.shape[0]} for {tetrahedra.shape[0]}.")
    if present is None:
        present = ~torch.any(torch.isnan(vertices), dim=1) if vertices.shape[0] else torch.zeros(0, dtype=torch.bool)
    if adjacency is None:
        adjacency = build_adjacency(tetrahedra)

    vertex_tetrahedra = torch.nonzero(present).flatten()
    compact_index = {tet_idx: v_idx for v_idx, tet_idx in enumerate(vertex_tetrahedra.tolist())}
    voronoi_vertices = vertices[vertex_tetrahedra]

    edges, edge_faces = [], []
    for face_key, tets in adjacency.faces.items():
        if len(tets) != 2:
            continue
        if tets[0] in compact_index and tets[1] in compact_index:
            edges.append((compact_index[tets[0]], compact_index[tets[1]]))
            edge_faces.append(face_key)

    faces, face_edges = [], []
    for edge_key, tets in adjacency.face_supporting_edges().items():
        members = [t for t in tets if t in compact_index]
        if len(members) < 3:
            continue
        face_global = [compact_index[t] for t in members]
        direction = minimum_image(points[edge_key[1]] - points[edge_key[0]], box)
        sorted_indices, _ = _order_face_vertices_3d(voronoi_vertices[face_global], direction)
        faces.append([face_global[k] for k in sorted_indices.tolist()])
        face_edges.append(edge_key)

    diagram = VoronoiDiagram(
        vertices=voronoi_vertices,
        vertex_tetrahedra=vertex_tetrahedra,
        edges=torch.tensor(edges, dtype=torch.long).reshape(-1, 2),
        edge_delaunay_faces=torch.tensor(edge_faces, dtype=torch.long).reshape(-1, 3),
        faces=faces,
        face_delaunay_edges=torch.tensor(face_edges, dtype=torch.long).reshape(-1, 2),
        warnings=list(warnings) if warnings else [],
    )
    logger.info(f"Voronoi dual: {diagram.vertices.shape[0]} vertices, {diagram.edges.shape[0]} edges, "
                f"{len(diagram.faces)} faces.")
    return diagram
