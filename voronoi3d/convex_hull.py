"""
Incremental d-dimensional convex hull (quickhull with outside sets).

The `ConvexHull` class builds the boundary of the convex hull of N points in d
dimensions (d = 3 for plain hulls, d = 4 for the paraboloid lift used by
`delaunay_3d.py`). Facets live in an arena (`ConvexHull._facets`) and refer to
each other by slot index only; removing a facet is a tombstone (`alive=False`),
never a structural deletion, so slot indices stay valid for the whole build.

Each facet owns d `Ridge` records, one per dropped vertex. A ridge stores the
slot of the single facet across it, and on a closed hull every ridge is matched
by exactly one ridge of its neighbor pointing back. Points not yet absorbed are
kept in per-facet `OutsideSet`s (vector-backed, O(1) swap-removal), which are
emptied by the time construction finishes.

All visibility tests compare signed distances (unit normals) against `tol`;
points within `tol` of a plane count as inside. The construction is fully
deterministic for a fixed input order.
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Iterable

import torch

from .errors import DegenerateInputError, InternalConsistencyError
from .geometry_core import EPSILON, HULL_EPSILON, hyperplane_through, signed_distance

logger = logging.getLogger(__name__)


class OutsideSet:
    """
    Points lying strictly outside a facet, with their signed distances.

    Membership is tracked by slot (`_slots` maps a point index to its position in
    the parallel `points`/`distances` lists), so `remove` swaps the last entry into
    the freed slot instead of scanning.
    """
    __slots__ = ("points", "distances", "_slots")

    def __init__(self):
        self.points: list[int] = []
        self.distances: list[float] = []
        self._slots: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self.points)

    def __contains__(self, point: int) -> bool:
        return point in self._slots

    def __iter__(self):
        return iter(self.points)

    def add(self, point: int, distance: float) -> None:
        slot = self._slots.get(point)
        if slot is not None:
            self.distances[slot] = distance
            return
        self._slots[point] = len(self.points)
        self.points.append(point)
        self.distances.append(distance)

    def remove(self, point: int) -> None:
        """Removes `point`; raises `KeyError` if it is not a member."""
        slot = self._slots.pop(point)
        last_point = self.points.pop()
        last_distance = self.distances.pop()
        if slot < len(self.points):
            self.points[slot] = last_point
            self.distances[slot] = last_distance
            self._slots[last_point] = slot

    def farthest(self) -> int | None:
        """Point with the largest signed distance (earliest slot on ties), or None if empty."""
        if not self.points:
            return None
        best = max(range(len(self.distances)), key=self.distances.__getitem__)
        return self.points[best]

    def clear(self) -> None:
        self.points.clear()
        self.distances.clear()
        self._slots.clear()


@dataclass
class Ridge:
    """
    A (d-2)-simplex on the boundary of a facet.

    Attributes:
        vertices (tuple[int, ...]): The d-1 point indices of the ridge.
        facet (int): Slot of the owning facet.
        opposite (int): The owning facet's vertex not on this ridge.
        neighbor (int | None): Slot of the facet across the ridge; None while unlinked
                               or after the neighbor was discarded.
    """
    vertices: tuple[int, ...]
    facet: int
    opposite: int
    neighbor: int | None = None

    @property
    def key(self) -> tuple[int, ...]:
        return tuple(sorted(self.vertices))


@dataclass
class Facet:
    """
    A (d-1)-simplex on the hull.

    `vertices` is ordered so that the simplex (vertices, x) is negatively oriented
    for every interior point x; `normal`/`offset` describe the same plane with the
    normal pointing outward (interior points evaluate negative).
    """
    vertices: list[int]
    normal: torch.Tensor
    offset: float
    ridges: list[Ridge] = field(default_factory=list)
    outside: OutsideSet = field(default_factory=OutsideSet)
    alive: bool = True

    def ridge_matching(self, key: tuple[int, ...]) -> Ridge | None:
        for ridge in self.ridges:
            if ridge.key == key:
                return ridge
        return None


def _argmax_high(values: torch.Tensor) -> int:
    """Index of the maximum; the highest index wins ties."""
    return int(torch.nonzero(values == torch.max(values))[-1])


def _argmin_low(values: torch.Tensor) -> int:
    """Index of the minimum; the lowest index wins ties."""
    return int(torch.nonzero(values == torch.min(values))[0])


class ConvexHull:
    """
    Computes the convex hull of N points in d dimensions with quickhull.

    Attributes:
        points (torch.Tensor): The input points as float64, shape (N, d). Never modified.
        dim (int): Dimension d.
        tol (float): Visibility tolerance in plane-normal units.
        seed (list[int]): Indices of the d+1 points of the initial simplex.
        num_added_points (int): Points inserted by the refinement loop.
        num_created_facets (int): Facets created in total, dead ones included.
    """
    def __init__(self, points: torch.Tensor, tol: float = HULL_EPSILON):
        """
        Initializes and computes the convex hull.

        Args:
            points (torch.Tensor): Tensor of shape (N, d).
            tol (float, optional): Visibility tolerance. Defaults to `HULL_EPSILON`.

        Raises:
            ValueError: If `points` is not a 2-dimensional tensor with d >= 2.
            DegenerateInputError: If N < d+1 or all points lie in a common hyperplane.
            InternalConsistencyError: If the finished hull has an unmatched ridge.
        """
        if not isinstance(points, torch.Tensor): raise ValueError("Input points must be a PyTorch tensor.")
        if points.ndim != 2 or points.shape[1] < 2: raise ValueError("Input points tensor must have shape (N, d) with d >= 2.")

        self.points = points.to(dtype=torch.float64)
        self.dim = points.shape[1]
        self.tol = tol
        n_points = points.shape[0]
        if n_points < self.dim + 1:
            raise DegenerateInputError(
                f"A convex hull in {self.dim} dimensions requires at least {self.dim + 1} points, got {n_points}.")

        self._facets: list[Facet] = []
        self.seed: list[int] = []
        self.num_added_points = 0
        self._build()
        self.num_created_facets = len(self._facets)
        logger.debug(f"Convex hull in {self.dim}D: {n_points} points, {self.num_added_points} inserted, "
                     f"{self.num_created_facets} facets created, {self.num_facets} on the hull.")

    # --- Public API ---

    @property
    def num_facets(self) -> int:
        return sum(1 for facet in self._facets if facet.alive)

    def facets(self) -> Iterable[tuple[int, Facet]]:
        """Yields ``(slot, facet)`` for live facets in slot order."""
        for slot, facet in enumerate(self._facets):
            if facet.alive:
                yield slot, facet

    def simplices(self) -> torch.Tensor:
        """Live facets as a long tensor of shape (F, d), vertices in winding order."""
        rows = [facet.vertices for _, facet in self.facets()]
        if not rows:
            return torch.empty((0, self.dim), dtype=torch.long)
        return torch.tensor(rows, dtype=torch.long)

    def equations(self) -> torch.Tensor:
        """Live facet planes as rows ``[normal, offset]``, shape (F, d+1)."""
        rows = [torch.cat((facet.normal, facet.normal.new_tensor([facet.offset]))) for _, facet in self.facets()]
        if not rows:
            return torch.empty((0, self.dim + 1), dtype=torch.float64)
        return torch.stack(rows)

    def vertices(self) -> torch.Tensor:
        """Sorted unique indices of points that are vertices of live facets."""
        return torch.unique(self.simplices().flatten())

    def discard_facets(self, predicate: Callable[[Facet], bool]) -> int:
        """
        Tombstones every live facet for which `predicate` is true.

        Ridges of surviving facets that pointed at a discarded facet are unlinked
        (set to None) so no reference into a dead facet remains.

        Returns:
            int: Number of facets discarded.
        """
        removed = [slot for slot, facet in self.facets() if predicate(facet)]
        removed_set = set(removed)
        for slot in removed:
            facet = self._facets[slot]
            facet.alive = False
            for ridge in facet.ridges:
                if ridge.neighbor is not None and ridge.neighbor not in removed_set:
                    back = self._facets[ridge.neighbor].ridge_matching(ridge.key)
                    if back is not None:
                        back.neighbor = None
                ridge.neighbor = None
        return len(removed)

    def validate(self) -> dict:
        """
        Checks the hull's structural invariants.

        Returns:
            dict: ``facets`` (live count), ``unmatched_ridges`` (list of (slot, ridge
            vertices) with no live neighbor), ``broken_links`` (list of (slot, neighbor)
            pairs without a matching back-link) and ``inward_facets`` (slots whose
            normal does not point away from the seed simplex centroid). Empty lists
            mean the hull is a closed, outward-oriented manifold.
        """
        interior = self._interior
        unmatched, broken, inward = [], [], []
        for slot, facet in self.facets():
            for ridge in facet.ridges:
                nb = ridge.neighbor
                if nb is None or not self._facets[nb].alive:
                    unmatched.append((slot, ridge.vertices))
                    continue
                back = self._facets[nb].ridge_matching(ridge.key)
                if back is None or back.neighbor != slot:
                    broken.append((slot, nb))
            if float(signed_distance(interior, facet.normal, facet.offset)) >= 0.0:
                inward.append(slot)
        return {
            "facets": self.num_facets,
            "unmatched_ridges": unmatched,
            "broken_links": broken,
            "inward_facets": inward,
        }

    # --- Construction ---

    def _build(self) -> None:
        self.seed = self._seed_simplex()
        self._interior = self.points[self.seed].mean(dim=0)
        n_seed = len(self.seed)

        seed_slots = []
        for i in range(n_seed):
            vertices = [self.seed[(i + k) % n_seed] for k in range(self.dim)]
            seed_slots.append(self._new_facet(vertices, self._interior))
        self._link_among(seed_slots)

        seed_set = set(self.seed)
        remaining = [i for i in range(self.points.shape[0]) if i not in seed_set]
        queue: deque[int] = deque()
        self._partition(remaining, seed_slots, queue)

        while queue:
            slot = queue.popleft()
            facet = self._facets[slot]
            if not facet.alive or not facet.outside:
                continue
            apex = facet.outside.farthest()
            facet.outside.remove(apex)
            self._add_point(apex, slot, queue)
            self.num_added_points += 1

        report = self.validate()
        if report["unmatched_ridges"] or report["broken_links"]:
            raise InternalConsistencyError(
                f"Convex hull is not closed: {len(report['unmatched_ridges'])} unmatched ridges, "
                f"{len(report['broken_links'])} broken neighbor links.")

    def _seed_simplex(self) -> list[int]:
        """
        Picks d+1 affinely independent points.

        The first two are the extremes along the axis of largest extent. Every
        further point is the extreme along a coordinate axis made orthogonal (by
        Gram-Schmidt) to the span of the points chosen so far, using the axis with
        the largest such extreme. Minimization ties go to the lower index,
        maximization ties to the higher one.
        """
        pts = self.points
        extents = torch.max(pts, dim=0).values - torch.min(pts, dim=0).values
        axis = int(torch.argmax(extents))
        if extents[axis] <= self.tol:
            raise DegenerateInputError("All points coincide; cannot build a convex hull.")

        lo = _argmin_low(pts[:, axis])
        hi = _argmax_high(pts[:, axis])
        chosen = [lo, hi]
        relative = pts - pts[lo]
        basis = [relative[hi] / torch.linalg.norm(relative[hi])]
        identity = torch.eye(self.dim, dtype=pts.dtype, device=pts.device)

        while len(chosen) < self.dim + 1:
            best_magnitude, best_index = None, None
            for axis in range(self.dim):
                direction = identity[axis].clone()
                for b in basis:
                    direction = direction - torch.dot(direction, b) * b
                norm = torch.linalg.norm(direction)
                if norm <= EPSILON:
                    continue
                projections = relative @ (direction / norm)
                i_max = _argmax_high(projections)
                i_min = _argmin_low(projections)
                candidate = i_max if projections[i_max] >= -projections[i_min] else i_min
                magnitude = abs(float(projections[candidate]))
                if best_magnitude is None or magnitude > best_magnitude:
                    best_magnitude, best_index = magnitude, candidate
            if best_magnitude is None or best_magnitude <= self.tol:
                raise DegenerateInputError(
                    f"Points lie in a common hyperplane; cannot build a {self.dim}-dimensional hull.")
            chosen.append(best_index)
            residual = relative[best_index].clone()
            for b in basis:
                residual = residual - torch.dot(residual, b) * b
            basis.append(residual / torch.linalg.norm(residual))
        return chosen

    def _new_facet(self, vertices: list[int], inside_point: torch.Tensor) -> int:
        """
        Appends a facet oriented so that `inside_point` is on its negative side; returns its slot.

        If `inside_point` lies within `tol` of the plane, the seed simplex centroid
        orients the facet instead.
        """
        plane = hyperplane_through(self.points[vertices])
        if plane is None:
            raise InternalConsistencyError(f"Facet {vertices} is degenerate.")
        normal, offset = plane
        side = float(signed_distance(inside_point, normal, offset))
        if abs(side) <= self.tol:
            side = float(signed_distance(self._interior, normal, offset))
        if side > 0.0:
            # Swapping two vertices flips the winding together with the normal.
            vertices = [vertices[1], vertices[0]] + vertices[2:]
            normal, offset = -normal, -offset

        slot = len(self._facets)
        facet = Facet(vertices=list(vertices), normal=normal, offset=float(offset))
        for i, opposite in enumerate(vertices):
            ridge_vertices = tuple(v for k, v in enumerate(vertices) if k != i)
            facet.ridges.append(Ridge(vertices=ridge_vertices, facet=slot, opposite=opposite))
        self._facets.append(facet)
        return slot

    def _link_among(self, slots: list[int]) -> None:
        """Links ridges shared between the given facets (used for the seed simplex)."""
        pending: dict[tuple[int, ...], Ridge] = {}
        for slot in slots:
            for ridge in self._facets[slot].ridges:
                other = pending.pop(ridge.key, None)
                if other is None:
                    pending[ridge.key] = ridge
                else:
                    ridge.neighbor = other.facet
                    other.neighbor = slot
        if pending:
            raise InternalConsistencyError(f"{len(pending)} seed ridges could not be linked.")

    def _partition(self, point_indices: list[int], facet_slots: list[int], queue: deque) -> None:
        """
        Assigns each point to the outside set of the first facet (in `facet_slots`
        order) it lies outside of. Points inside all of them are dropped for good.
        Facets that receive points are queued for refinement.
        """
        if not point_indices:
            return
        candidates = torch.tensor(point_indices, dtype=torch.long)
        for slot in facet_slots:
            if candidates.numel() == 0:
                break
            facet = self._facets[slot]
            distances = signed_distance(self.points[candidates], facet.normal, facet.offset)
            outside = distances > self.tol
            if not torch.any(outside):
                continue
            for point, distance in zip(candidates[outside].tolist(), distances[outside].tolist()):
                facet.outside.add(point, distance)
            candidates = candidates[~outside]
            queue.append(slot)

    def _is_visible(self, apex_coords: torch.Tensor, slot: int) -> bool:
        facet = self._facets[slot]
        return float(signed_distance(apex_coords, facet.normal, facet.offset)) > self.tol

    def _find_horizon(self, apex_coords: torch.Tensor, seed_slot: int) -> tuple[list[int], list[Ridge]]:
        """
        Traverses the facets visible from `apex_coords`, starting at `seed_slot`.

        Returns:
            tuple[list[int], list[Ridge]]:
                - visible: slots of visible facets, in discovery order.
                - horizon: ridges of visible facets whose neighbor is not visible.
        """
        visibility = {seed_slot: True}
        visible = [seed_slot]
        horizon: list[Ridge] = []
        stack = [seed_slot]
        while stack:
            slot = stack.pop()
            for ridge in self._facets[slot].ridges:
                nb = ridge.neighbor
                if nb is None:
                    raise InternalConsistencyError(f"Facet {slot} has an unlinked ridge {ridge.vertices}.")
                if nb not in visibility:
                    visibility[nb] = self._is_visible(apex_coords, nb)
                    if visibility[nb]:
                        visible.append(nb)
                        stack.append(nb)
                if not visibility[nb]:
                    horizon.append(ridge)
        return visible, horizon

    def _build_cone(self, apex: int, horizon: list[Ridge]) -> list[int]:
        """Creates one facet per horizon ridge joined to `apex` and links the cone."""
        new_slots = []
        pending: dict[tuple[int, ...], Ridge] = {}
        for horizon_ridge in horizon:
            outer = horizon_ridge.neighbor
            slot = self._new_facet(list(horizon_ridge.vertices) + [apex], self.points[horizon_ridge.opposite])
            for ridge in self._facets[slot].ridges:
                if ridge.opposite == apex:
                    # The horizon ridge itself: take over the removed facet's place.
                    back = self._facets[outer].ridge_matching(ridge.key)
                    if back is None or back.neighbor != horizon_ridge.facet:
                        raise InternalConsistencyError(f"Horizon ridge {ridge.vertices} has no back-link.")
                    ridge.neighbor = outer
                    back.neighbor = slot
                    continue
                other = pending.pop(ridge.key, None)
                if other is None:
                    pending[ridge.key] = ridge
                else:
                    ridge.neighbor = other.facet
                    other.neighbor = slot
            new_slots.append(slot)
        if pending:
            raise InternalConsistencyError(f"Cone over the horizon left {len(pending)} ridges unlinked.")
        return new_slots

    def _add_point(self, apex: int, seed_slot: int, queue: deque) -> None:
        """Inserts `apex`: removes the visible region, builds the cone, redistributes orphans."""
        visible, horizon = self._find_horizon(self.points[apex], seed_slot)

        orphans: list[int] = []
        for slot in visible:
            facet = self._facets[slot]
            orphans.extend(facet.outside.points)
            facet.outside.clear()
            facet.alive = False

        new_slots = self._build_cone(apex, horizon)
        self._partition([p for p in orphans if p != apex], new_slots, queue)
