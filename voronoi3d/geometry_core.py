"""
Core linear algebra and geometric predicates implemented using PyTorch.

This module provides the small fixed-size routines the hull engine and the
Voronoi construction are built on:
- Tolerance constants shared across the package (`EPSILON`, `HULL_EPSILON`, ...).
- Determinants by recursive cofactor expansion (`determinant`), with closed-form
  3x3 and cofactor-specialized 4x4 paths, minors, adjugates and a 3x3 inverse.
- Cross products: the ordinary 3D one and the generalized d-dimensional one
  (the vector orthogonal to d-1 vectors, computed from cofactors).
- Hyperplane construction, signed distances and 3D orientation predicates.
- Input coercion of point arrays to float64 tensors.

Everything operates on float64 tensors; dimensions of 3 and 4 are the ones used
in practice (the 3D input and its paraboloid lift).
"""
import torch
import numpy as np

EPSILON = 1e-7 # Global epsilon for float comparisons.
HULL_EPSILON = 1e-4 # Visibility tolerance for hull facets, in plane-normal units.
SINGULAR_EPSILON = 1e-10 # |det A| below this makes a circumcenter system singular.
CIRCUMCENTER_VERIFY_TOL = 1e-5 # Max pairwise difference of squared radii.

# Relative size below which a hyperplane normal is treated as zero.
_PLANE_RELATIVE_EPSILON = 1e-12


def as_points_tensor(points, dim: int = 3) -> torch.Tensor:
    """
    Coerces a point collection to a float64 tensor of shape (N, dim).

    Args:
        points: A torch tensor, numpy array or nested sequence of coordinates.
        dim (int, optional): Expected number of coordinates per point. Defaults to 3.

    Returns:
        torch.Tensor: Float64 tensor of shape (N, dim). The input is never modified.

    Raises:
        ValueError: If the input cannot be interpreted as N points of `dim` coordinates.
    """
    if isinstance(points, torch.Tensor):
        tensor = points.detach().to(dtype=torch.float64)
    else:
        tensor = torch.as_tensor(np.asarray(points, dtype=np.float64))
    if tensor.numel() == 0:
        return torch.empty((0, dim), dtype=torch.float64, device=tensor.device)
    if tensor.ndim != 2 or tensor.shape[1] != dim:
        raise ValueError(f"Points must have shape (N, {dim}), got {tuple(tensor.shape)}.")
    if not torch.all(torch.isfinite(tensor)):
        raise ValueError("Points must have finite coordinates.")
    return tensor


# --- Determinants ---

def minor(matrix: torch.Tensor, row: int, col: int) -> torch.Tensor:
    """Returns `matrix` with row `row` and column `col` removed."""
    n = matrix.shape[0]
    keep_rows = [r for r in range(n) if r != row]
    keep_cols = [c for c in range(matrix.shape[1]) if c != col]
    return matrix[keep_rows][:, keep_cols]


def determinant_3x3(m: torch.Tensor) -> torch.Tensor:
    """Closed-form determinant of a 3x3 matrix (rule of Sarrus)."""
    return (m[0, 0] * (m[1, 1] * m[2, 2] - m[1, 2] * m[2, 1])
            - m[0, 1] * (m[1, 0] * m[2, 2] - m[1, 2] * m[2, 0])
            + m[0, 2] * (m[1, 0] * m[2, 1] - m[1, 1] * m[2, 0]))


def determinant_4x4(m: torch.Tensor) -> torch.Tensor:
    """Determinant of a 4x4 matrix by first-row cofactor expansion over closed-form 3x3 minors."""
    total = torch.zeros((), dtype=m.dtype, device=m.device)
    sign = 1.0
    for col in range(4):
        total = total + sign * m[0, col] * determinant_3x3(minor(m, 0, col))
        sign = -sign
    return total


def determinant(matrix: torch.Tensor) -> torch.Tensor:
    """
    Computes the determinant of a square matrix by recursive cofactor expansion.

    Sizes up to 4 dispatch to closed-form or specialized paths; larger matrices
    expand along the first row, skipping zero entries. This is the general path
    kept for clarity and for cross-checking the specialized ones in tests.

    Args:
        matrix (torch.Tensor): Tensor of shape (n, n).

    Returns:
        torch.Tensor: 0-dimensional tensor holding the determinant.

    Raises:
        ValueError: If `matrix` is not square.
    """
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"Determinant requires a square matrix, got {tuple(matrix.shape)}.")
    n = matrix.shape[0]
    if n == 0:
        return torch.ones((), dtype=matrix.dtype, device=matrix.device)
    if n == 1:
        return matrix[0, 0]
    if n == 2:
        return matrix[0, 0] * matrix[1, 1] - matrix[0, 1] * matrix[1, 0]
    if n == 3:
        return determinant_3x3(matrix)
    if n == 4:
        return determinant_4x4(matrix)

    total = torch.zeros((), dtype=matrix.dtype, device=matrix.device)
    sign = 1.0
    for col in range(n):
        entry = matrix[0, col]
        if entry != 0:
            total = total + sign * entry * determinant(minor(matrix, 0, col))
        sign = -sign
    return total


def adjugate(matrix: torch.Tensor) -> torch.Tensor:
    """Adjugate (transposed cofactor matrix) of a square matrix."""
    n = matrix.shape[0]
    adj = torch.empty_like(matrix)
    for i in range(n):
        for j in range(n):
            sign = 1.0 if (i + j) % 2 == 0 else -1.0
            adj[j, i] = sign * determinant(minor(matrix, i, j))
    return adj


def inverse_3x3(matrix: torch.Tensor, tol: float = SINGULAR_EPSILON) -> torch.Tensor | None:
    """
    Inverts a 3x3 matrix through its adjugate.

    Args:
        matrix (torch.Tensor): Tensor of shape (3, 3).
        tol (float, optional): Matrices with ``|det| < tol`` are treated as singular.
                               Defaults to `SINGULAR_EPSILON`.

    Returns:
        torch.Tensor | None: The inverse, or `None` if the matrix is singular.
    """
    det = determinant_3x3(matrix)
    if torch.abs(det) < tol:
        return None
    return adjugate(matrix) / det


# --- Vector products ---

def dot(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    """Dot product of two equally sized vectors."""
    return torch.sum(a * b)


def cross_3d(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    """Cross product of two 3D vectors."""
    return torch.stack((
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    ))


def generalized_cross(vectors: torch.Tensor) -> torch.Tensor:
    """
    Generalized cross product of d-1 vectors in d dimensions.

    The result n satisfies ``det([v_1; ...; v_{d-1}; x]) == dot(n, x)`` for every x,
    so it is orthogonal to each input vector and its direction follows the
    orientation of the vectors. For d = 3 it equals `cross_3d`.

    Args:
        vectors (torch.Tensor): Tensor of shape (d-1, d).

    Returns:
        torch.Tensor: Tensor of shape (d,).
    """
    k, d = vectors.shape
    if k != d - 1:
        raise ValueError(f"Need {d - 1} vectors in {d} dimensions, got {k}.")
    if d == 3:
        return cross_3d(vectors[0], vectors[1])
    components = []
    for col in range(d):
        # Cofactor of entry (d-1, col) of the matrix whose last row is x.
        sign = 1.0 if (d - 1 + col) % 2 == 0 else -1.0
        cols = [c for c in range(d) if c != col]
        components.append(sign * determinant(vectors[:, cols]))
    return torch.stack(components)


# --- Hyperplanes and predicates ---

def hyperplane_through(points: torch.Tensor) -> tuple[torch.Tensor, torch.Tensor] | None:
    """
    Computes the hyperplane through d points in d-dimensional space.

    The normal is ``generalized_cross(points[1:] - points[0])`` scaled to unit
    length, so the plane evaluates positive on the side x for which the simplex
    (points, x) is positively oriented.

    Args:
        points (torch.Tensor): Tensor of shape (d, d).

    Returns:
        tuple[torch.Tensor, torch.Tensor] | None:
            ``(normal, offset)`` with ``dot(normal, x) + offset`` the signed distance
            of x to the plane, or `None` if the points are affinely dependent.
    """
    vectors = points[1:] - points[0]
    normal = generalized_cross(vectors)
    norm = torch.linalg.norm(normal)
    scale = torch.max(torch.linalg.norm(vectors, dim=1)) ** (points.shape[1] - 1)
    if not torch.isfinite(norm) or norm <= _PLANE_RELATIVE_EPSILON * max(scale.item(), 1.0):
        return None
    normal = normal / norm
    offset = -dot(normal, points[0])
    return normal, offset


def signed_distance(points: torch.Tensor, normal: torch.Tensor, offset: torch.Tensor) -> torch.Tensor:
    """Signed distance of one point (shape (d,)) or many points (shape (N, d)) to a plane."""
    return points @ normal + offset


def signed_volume_tetrahedron(p0: torch.Tensor, p1: torch.Tensor, p2: torch.Tensor, p3: torch.Tensor) -> torch.Tensor:
    """Signed volume of the tetrahedron (p0, p1, p2, p3); positive for positive orientation."""
    mat = torch.stack((p1 - p0, p2 - p0, p3 - p0), dim=0).to(dtype=torch.float64)
    return determinant_3x3(mat) / 6.0


def orientation_3d(p1: torch.Tensor, p2: torch.Tensor, p3: torch.Tensor, p4: torch.Tensor, tol: float = EPSILON) -> int:
    """
    Computes the orientation of point p4 relative to the plane defined by p1, p2, p3.
    Uses the sign of the determinant of a matrix formed by vectors (p2-p1, p3-p1, p4-p1).

    Args:
        p1, p2, p3, p4 (torch.Tensor): Tensors of shape (3,) representing 3D points.
        tol (float, optional): Tolerance for floating point comparisons to determine coplanarity.
                               Defaults to `EPSILON`.
    Returns:
        int:
            0 if points are coplanar (within tolerance).
            1 if the tetrahedron p1-p2-p3-p4 has a positive signed volume.
           -1 if it has a negative signed volume.
    """
    mat = torch.stack((p2 - p1, p3 - p1, p4 - p1), dim=0).to(dtype=torch.float64)
    det_val = determinant_3x3(mat)
    if torch.abs(det_val) < tol: return 0
    return 1 if det_val > 0 else -1


def in_circumsphere_3d(
    p_check: torch.Tensor,
    t1: torch.Tensor, t2: torch.Tensor, t3: torch.Tensor, t4: torch.Tensor,
    tol: float = EPSILON
) -> bool:
    """
    Checks if point `p_check` is strictly inside the circumsphere of the tetrahedron (t1,t2,t3,t4).

    This predicate is based on the sign of a 5x5 determinant involving the coordinates
    of the five points and their squared magnitudes. The interpretation of the sign
    depends on the orientation of the tetrahedron (t1,t2,t3,t4).

    Args:
        p_check (torch.Tensor): The point to check (shape (3,)).
        t1, t2, t3, t4 (torch.Tensor): Vertices of the tetrahedron (shape (3,)).
        tol (float, optional): Tolerance for the determinant sign. Defaults to `EPSILON`.
    Returns:
        bool: True if `p_check` is strictly inside the circumsphere.
              False if on or outside, or if the tetrahedron is degenerate (coplanar).
    """
    rows = []
    for pt in (t1, t2, t3, t4, p_check):
        pt = pt.to(dtype=torch.float64)
        one = torch.ones(1, dtype=torch.float64, device=pt.device)
        rows.append(torch.cat((pt, torch.sum(pt ** 2).unsqueeze(0), one)))
    mat_5x5 = torch.stack(rows, dim=0)

    orient_val = orientation_3d(t1, t2, t3, t4, tol)
    if orient_val == 0:
        return False

    # With (t1..t4) positively oriented, a point inside the sphere makes det(mat_5x5) negative.
    return bool((-orient_val * determinant(mat_5x5)) > tol)
