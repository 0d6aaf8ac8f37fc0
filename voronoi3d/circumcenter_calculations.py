"""
Computes circumcenters and barycenters of 3D tetrahedra.

The circumcenter is the center of the unique sphere through the four vertices of
a tetrahedron; the barycenter is the mean of the vertices. Either one serves as
the dual (Voronoi) vertex of a Delaunay tetrahedron.

Both functions return a `CenterResult` instead of raising: a near-singular
circumcenter system yields an absent center with a `DegenerateCenterWarning`
attached, and a center that fails the post-hoc equidistance check is kept but
carries a diagnostic. When a box is given, differences between vertices go
through `periodic.minimum_image`; that is meant for tetrahedra stored with their
vertices folded into the box, not for simplices of raw coordinates.
"""
from dataclasses import dataclass

import torch

from .errors import DegenerateCenterWarning
from .geometry_core import CIRCUMCENTER_VERIFY_TOL, SINGULAR_EPSILON, determinant_3x3, inverse_3x3
from .periodic import PeriodicBox, minimum_image


@dataclass(frozen=True)
class CenterResult:
    """
    Outcome of a dual-vertex computation.

    Attributes:
        center (torch.Tensor | None): Float64 position of shape (3,), or None when absent.
        warning (DegenerateCenterWarning | None): Diagnostic, if the computation was
                                                  degenerate or failed verification.
    """
    center: torch.Tensor | None
    warning: DegenerateCenterWarning | None = None

    @property
    def present(self) -> bool:
        return self.center is not None


def _edge_vectors(p0: torch.Tensor, p1: torch.Tensor, p2: torch.Tensor, p3: torch.Tensor,
                  box: PeriodicBox | None) -> tuple[torch.Tensor, torch.Tensor]:
    """Returns p0 as float64 and the (3, 3) matrix of rows p1-p0, p2-p0, p3-p0."""
    origin = p0.to(dtype=torch.float64)
    rows = torch.stack([p.to(dtype=torch.float64) - origin for p in (p1, p2, p3)], dim=0)
    return origin, minimum_image(rows, box)


def verify_circumcenter(offset: torch.Tensor, edge_vectors: torch.Tensor) -> float:
    """
    Largest pairwise difference between the squared distances from a center to the four vertices.

    Args:
        offset (torch.Tensor): Center relative to the first vertex, shape (3,).
        edge_vectors (torch.Tensor): Rows p1-p0, p2-p0, p3-p0, shape (3, 3).

    Returns:
        float: ``max(d_i) - min(d_i)`` over the squared distances d_0..d_3.
    """
    vertices = torch.cat((torch.zeros_like(edge_vectors[:1]), edge_vectors), dim=0)
    squared = torch.sum((vertices - offset) ** 2, dim=1)
    return float(torch.max(squared) - torch.min(squared))


def compute_tetrahedron_circumcenter_3d(p0: torch.Tensor, p1: torch.Tensor,
                                        p2: torch.Tensor, p3: torch.Tensor,
                                        box: PeriodicBox | None = None,
                                        tol: float = SINGULAR_EPSILON,
                                        verify_tol: float = CIRCUMCENTER_VERIFY_TOL) -> CenterResult:
    """
    Computes the circumcenter of a 3D tetrahedron defined by four points.

    Solves ``A x = b`` where the rows of A are p1-p0, p2-p0, p3-p0 and b holds half
    the squared lengths of those rows; the circumcenter is p0 + x. The system is
    solved through the adjugate of A. If ``|det A| < tol`` the points are treated as
    coplanar and the center is absent. Otherwise the squared distances from the
    center to all four vertices are recomputed, and a spread above `verify_tol`
    attaches a "verification" warning while keeping the center.

    Args:
        p0, p1, p2, p3 (torch.Tensor): Vertices, each of shape (3,).
        box (PeriodicBox | None, optional): Periodic domain for minimum-image
                                            differences. Defaults to None.
        tol (float, optional): Singularity threshold on ``|det A|``. Defaults to `SINGULAR_EPSILON`.
        verify_tol (float, optional): Equidistance tolerance. Defaults to `CIRCUMCENTER_VERIFY_TOL`.

    Returns:
        CenterResult: Center (float64, shape (3,)) or absent, plus optional diagnostic.
    """
    origin, edge_vectors = _edge_vectors(p0, p1, p2, p3, box)
    inverse = inverse_3x3(edge_vectors, tol)
    if inverse is None:
        det = abs(float(determinant_3x3(edge_vectors)))
        return CenterResult(None, DegenerateCenterWarning("singular", max_deviation=det))

    rhs = 0.5 * torch.sum(edge_vectors ** 2, dim=1)
    offset = inverse @ rhs
    deviation = verify_circumcenter(offset, edge_vectors)
    warning = None
    if deviation > verify_tol:
        warning = DegenerateCenterWarning("verification", max_deviation=deviation)
    return CenterResult(origin + offset, warning)


def compute_tetrahedron_barycenter_3d(p0: torch.Tensor, p1: torch.Tensor,
                                      p2: torch.Tensor, p3: torch.Tensor,
                                      box: PeriodicBox | None = None) -> CenterResult:
    """Arithmetic mean of the four vertices (minimum-image aware); never absent."""
    origin, edge_vectors = _edge_vectors(p0, p1, p2, p3, box)
    if box is None:
        corners = torch.stack([p.to(dtype=torch.float64) for p in (p0, p1, p2, p3)], dim=0)
        return CenterResult(torch.mean(corners, dim=0))
    return CenterResult(origin + torch.sum(edge_vectors, dim=0) / 4.0)
