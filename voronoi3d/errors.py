"""
Exception and warning types raised or recorded by the voronoi3d engine.

Geometry-construction failures (`DegenerateInputError`, `InternalConsistencyError`)
abort the whole build. Per-tetrahedron numerical issues are reported as
`DegenerateCenterWarning` instances attached to the result, never raised from the
per-tetrahedron loop.
"""


class Voronoi3DError(Exception):
    """Base class for errors raised by voronoi3d."""


class DegenerateInputError(Voronoi3DError, ValueError):
    """
    Raised when the input cannot span a full-dimensional hull.

    This covers fewer than d+1 points, and point sets lying in a common
    hyperplane (coplanar 3D input, collinear or coincident points).
    """


class InternalConsistencyError(Voronoi3DError, RuntimeError):
    """
    Raised when a derived structure violates a structural invariant.

    Examples are a hull that closes with an unmatched ridge, or a Delaunay face
    shared by zero or more than two tetrahedra. It signals an algorithm or
    numerical-tolerance bug.
    """


class DegenerateCenterWarning(UserWarning):
    """
    Diagnostic for a tetrahedron whose dual vertex is numerically unreliable.

    Attributes:
        tetrahedron (int | None): Index of the affected tetrahedron, if known.
        reason (str): Either ``"singular"`` (the circumcenter system is near-singular,
                      the vertex is absent) or ``"verification"`` (the recomputed
                      distances disagree, the vertex is kept).
        max_deviation (float | None): Largest pairwise difference of squared
                                      distances for ``"verification"`` diagnostics,
                                      or ``|det A|`` for ``"singular"`` ones.
    """
    def __init__(self, reason: str, tetrahedron: int | None = None, max_deviation: float | None = None):
        self.reason = reason
        self.tetrahedron = tetrahedron
        self.max_deviation = max_deviation
        message = f"degenerate center ({reason})"
        if tetrahedron is not None:
            message += f" for tetrahedron {tetrahedron}"
        if max_deviation is not None:
            message += f": {max_deviation:.3e}"
        super().__init__(message)

    def for_tetrahedron(self, tetrahedron: int) -> "DegenerateCenterWarning":
        """Returns a copy of this diagnostic bound to a tetrahedron index."""
        return DegenerateCenterWarning(self.reason, tetrahedron, self.max_deviation)
