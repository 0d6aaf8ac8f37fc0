"""
Computes 3D Delaunay tetrahedralization by lifting to a 4D paraboloid.

This module provides the `delaunay_triangulation_3d` function for generating a
Delaunay tetrahedralization from a set of 3D input points. Each point p is lifted
to (p, |p|^2); the lower facets of the 4D convex hull of the lifted points, as
computed by `convex_hull.ConvexHull`, project back onto exactly the Delaunay
tetrahedra. The lift works on a centered copy of the points scaled to unit extent,
so hull tolerances mean the same thing at every input scale.
An extra apex point placed high above the lifted centroid keeps the
4D hull full-dimensional for cospherical inputs (cube corners, lattices); every
facet through it is an upper facet and is discarded with the rest of the upper hull.
"""
import logging

import torch

from .convex_hull import ConvexHull, Facet
from .errors import DegenerateInputError
from .geometry_core import EPSILON, HULL_EPSILON, as_points_tensor, orientation_3d

logger = logging.getLogger(__name__)


def lift_to_paraboloid(points: torch.Tensor) -> torch.Tensor:
    """
    Appends the squared Euclidean norm of each point as an extra coordinate.

    Args:
        points (torch.Tensor): Tensor of shape (N, D).

    Returns:
        torch.Tensor: Float64 tensor of shape (N, D+1).
    """
    points = points.to(dtype=torch.float64)
    return torch.cat((points, torch.sum(points ** 2, dim=1, keepdim=True)), dim=1)


def normalize_to_unit_frame(points: torch.Tensor) -> torch.Tensor:
    """
    Translates points to their centroid and divides by their largest axis extent.

    Delaunay tetrahedralizations are invariant under translation and uniform
    scaling, so the hull can run in this frame with scale-free tolerances.

    Args:
        points (torch.Tensor): Tensor of shape (N, 3), N >= 1.

    Returns:
        torch.Tensor: Float64 tensor of shape (N, 3) with largest extent 1.

    Raises:
        DegenerateInputError: If all points coincide.
    """
    points = points.to(dtype=torch.float64)
    extent = torch.max(torch.max(points, dim=0).values - torch.min(points, dim=0).values)
    if float(extent) <= 0.0:
        raise DegenerateInputError("All points coincide; cannot build a tetrahedralization.")
    return (points - torch.mean(points, dim=0)) / extent


def orient_tetrahedra_positive(points: torch.Tensor, tetrahedra: torch.Tensor) -> torch.Tensor:
    """
    Reorders tetrahedra so that det(p1-p0, p2-p0, p3-p0) >= 0 for each of them.

    Args:
        points (torch.Tensor): Tensor of shape (N, 3).
        tetrahedra (torch.Tensor): Long tensor of shape (M, 4).

    Returns:
        torch.Tensor: A new long tensor of shape (M, 4); negatively oriented rows
                      have their first two vertices swapped.
    """
    if tetrahedra.shape[0] == 0:
        return tetrahedra.clone()
    corners = points.to(dtype=torch.float64)[tetrahedra] # (M, 4, 3)
    edges = corners[:, 1:, :] - corners[:, :1, :]
    negative = torch.linalg.det(edges) < 0
    oriented = tetrahedra.clone()
    oriented[negative, 0] = tetrahedra[negative, 1]
    oriented[negative, 1] = tetrahedra[negative, 0]
    return oriented


def delaunay_triangulation_3d(points: torch.Tensor, tol: float = HULL_EPSILON) -> torch.Tensor:
    """
    Computes the 3D Delaunay tetrahedralization of a set of points.

    The points are first moved into a unit frame (`normalize_to_unit_frame`), so
    `tol` and the coplanarity test do not depend on the input scale. They are then
    lifted to the paraboloid w = |p|^2 together with one apex point
    above their centroid, and the 4D convex hull of the lifted set is built with
    quickhull. Facets whose outward normal points down in w (negative 4th
    component) and that do not use the apex form the lower envelope; their vertex
    sets are the Delaunay tetrahedra. Upper facets are discarded from the hull.
    With exactly 4 points the lift is skipped and the single simplex is returned.

    Args:
        points (torch.Tensor): Tensor (or array-like) of shape (N, 3), N >= 4.
        tol (float, optional): Visibility tolerance for the hull, in plane-normal units.
                               Defaults to `HULL_EPSILON`.

    Returns:
        torch.Tensor: Long tensor of shape (M, 4) of point indices, every row
                      positively oriented.

    Raises:
        ValueError: If `points` is not of shape (N, 3).
        DegenerateInputError: If fewer than 4 points are given, all points coincide,
                              or all points are coplanar.
    """
    points = as_points_tensor(points)
    n_points = points.shape[0]
    if n_points < 4:
        raise DegenerateInputError(f"A 3D tetrahedralization requires at least 4 points, got {n_points}.")
    unit = normalize_to_unit_frame(points)

    if n_points == 4:
        if orientation_3d(unit[0], unit[1], unit[2], unit[3], EPSILON) == 0:
            raise DegenerateInputError("The 4 input points are coplanar.")
        single = torch.tensor([[0, 1, 2, 3]], dtype=torch.long)
        return orient_tetrahedra_positive(points, single)

    # The apex sits over the centroid (the unit-frame origin), strictly above every lifted point.
    lifted = lift_to_paraboloid(unit)
    apex_height = torch.max(lifted[:, 3]) + 1.0
    apex = torch.cat((torch.zeros(3, dtype=torch.float64, device=unit.device), apex_height.reshape(1)))
    apex_index = n_points

    hull = ConvexHull(torch.cat((lifted, apex.unsqueeze(0)), dim=0), tol=tol)

    def is_upper(facet: Facet) -> bool:
        return apex_index in facet.vertices or float(facet.normal[3]) >= -EPSILON

    n_upper = hull.discard_facets(is_upper)
    tetrahedra = orient_tetrahedra_positive(points, hull.simplices())
    logger.info(f"Delaunay tetrahedralization: {n_points} points, {tetrahedra.shape[0]} tetrahedra "
                f"({n_upper} upper hull facets discarded).")
    return tetrahedra
