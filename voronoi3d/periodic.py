"""
Periodic (wrap-around) domains for the tetrahedralization.

A `PeriodicBox` describes an axis-aligned box whose opposite faces are identified.
Before lifting, `ghost_points` surrounds the input with its 26 periodic images so
that tetrahedra near the box faces see their wrap-around neighbors; afterwards
`filter_ghost_tetrahedra` drops every tetrahedron using a ghost index, and
`minimum_image` replaces raw coordinate differences with the shortest periodic
vector.
"""
from dataclasses import dataclass
from itertools import product

import torch

# The 26 non-zero combinations of {-1, 0, 1} offsets, in lexicographic order.
GHOST_OFFSETS = torch.tensor(
    [offset for offset in product((-1, 0, 1), repeat=3) if offset != (0, 0, 0)],
    dtype=torch.float64,
)


@dataclass(frozen=True)
class PeriodicBox:
    """
    Axis-aligned periodic box.

    Attributes:
        lower (tuple[float, float, float]): Minimum corner.
        upper (tuple[float, float, float]): Maximum corner; strictly greater than
                                            `lower` along every axis.
    """
    lower: tuple[float, float, float]
    upper: tuple[float, float, float]

    def __post_init__(self):
        lower = tuple(float(v) for v in self.lower)
        upper = tuple(float(v) for v in self.upper)
        if len(lower) != 3 or len(upper) != 3:
            raise ValueError(f"Periodic box corners must have 3 coordinates, got {lower} and {upper}.")
        if any(hi <= lo for lo, hi in zip(lower, upper)):
            raise ValueError(f"Periodic box max {upper} must exceed min {lower} along every axis.")
        object.__setattr__(self, "lower", lower)
        object.__setattr__(self, "upper", upper)

    @classmethod
    def cube(cls, lo: float, hi: float) -> "PeriodicBox":
        """Box [lo, hi]^3."""
        return cls((lo, lo, lo), (hi, hi, hi))

    @property
    def size(self) -> torch.Tensor:
        """Box edge lengths, float64 tensor of shape (3,)."""
        return torch.tensor(self.upper, dtype=torch.float64) - torch.tensor(self.lower, dtype=torch.float64)


def ghost_points(points: torch.Tensor, box: PeriodicBox) -> torch.Tensor:
    """
    Replicates points into the 26 neighboring periodic images of the box.

    Args:
        points (torch.Tensor): Float tensor of shape (N, 3).
        box (PeriodicBox): The periodic domain.

    Returns:
        torch.Tensor: Float64 tensor of shape (27*N, 3). Rows 0..N-1 are the
                      original points; image k (0-based, in `GHOST_OFFSETS` order)
                      occupies rows (k+1)*N .. (k+2)*N-1.
    """
    points = points.to(dtype=torch.float64)
    shifts = GHOST_OFFSETS.to(device=points.device) * box.size.to(device=points.device) # (26, 3)
    images = points.unsqueeze(0) + shifts.unsqueeze(1) # (26, N, 3)
    return torch.cat((points, images.reshape(-1, 3)), dim=0)


def filter_ghost_tetrahedra(tetrahedra: torch.Tensor, n_real: int) -> torch.Tensor:
    """Keeps only tetrahedra whose four indices all refer to original points (index < n_real)."""
    if tetrahedra.shape[0] == 0:
        return tetrahedra
    keep = torch.all(tetrahedra < n_real, dim=1)
    return tetrahedra[keep]


def minimum_image(delta: torch.Tensor, box: PeriodicBox | None) -> torch.Tensor:
    """
    Wraps displacement vectors to their shortest periodic representative.

    Args:
        delta (torch.Tensor): Displacements of shape (..., 3).
        box (PeriodicBox | None): Periodic domain; with None, `delta` is returned unchanged.

    Returns:
        torch.Tensor: Displacements with every component in [-size/2, size/2].
    """
    if box is None:
        return delta
    size = box.size.to(dtype=delta.dtype, device=delta.device)
    return delta - size * torch.round(delta / size)
