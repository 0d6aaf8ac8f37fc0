"""
Face and edge adjacency of a tetrahedralization.

`AdjacencyIndex` maps every triangular face (sorted 3-tuple of point indices) and
every edge (sorted 2-tuple) of a tetrahedron list to the indices of the tetrahedra
containing it, in tetrahedron order. Faces shared by two tetrahedra are dual to
Voronoi edges; edges shared by three or more tetrahedra are dual to Voronoi faces.
The index is rebuilt from scratch for every tetrahedron list and never updated.
"""
from collections import defaultdict
from itertools import combinations

import torch

from .errors import InternalConsistencyError

FaceKey = tuple[int, int, int]
EdgeKey = tuple[int, int]


class AdjacencyIndex:
    """
    Read-only face/edge to tetrahedra maps for a tetrahedron list.

    Attributes:
        faces (dict[FaceKey, list[int]]): Face key -> indices of the tetrahedra sharing it.
        edges (dict[EdgeKey, list[int]]): Edge key -> indices of the tetrahedra sharing it.
        num_tetrahedra (int): Number of tetrahedra the index was built from.
    """
    def __init__(self, tetrahedra: torch.Tensor):
        faces = defaultdict(list)
        edges = defaultdict(list)
        rows = tetrahedra.tolist() if isinstance(tetrahedra, torch.Tensor) else [list(t) for t in tetrahedra]
        for tet_idx, tet in enumerate(rows):
            for face in combinations(sorted(tet), 3):
                faces[face].append(tet_idx)
            for edge in combinations(sorted(tet), 2):
                edges[edge].append(tet_idx)
        self.faces: dict[FaceKey, list[int]] = dict(faces)
        self.edges: dict[EdgeKey, list[int]] = dict(edges)
        self.num_tetrahedra = len(rows)

    def validate(self) -> None:
        """
        Checks that every face is shared by one or two tetrahedra and every edge by at least one.

        Raises:
            InternalConsistencyError: Listing up to five offending keys.
        """
        bad_faces = [(key, tets) for key, tets in self.faces.items() if len(tets) not in (1, 2)]
        if bad_faces:
            raise InternalConsistencyError(
                f"{len(bad_faces)} faces are not shared by 1 or 2 tetrahedra, e.g. {bad_faces[:5]}.")
        bad_edges = [key for key, tets in self.edges.items() if not tets]
        if bad_edges:
            raise InternalConsistencyError(f"{len(bad_edges)} edges have no tetrahedra, e.g. {bad_edges[:5]}.")

    def interior_faces(self) -> dict[FaceKey, list[int]]:
        """Faces shared by exactly two tetrahedra."""
        return {key: tets for key, tets in self.faces.items() if len(tets) == 2}

    def boundary_faces(self) -> list[FaceKey]:
        """Faces belonging to a single tetrahedron (the boundary of the tetrahedralization)."""
        return [key for key, tets in self.faces.items() if len(tets) == 1]

    def face_supporting_edges(self) -> dict[EdgeKey, list[int]]:
        """Edges shared by three or more tetrahedra; each is dual to a Voronoi face."""
        return {key: tets for key, tets in self.edges.items() if len(tets) >= 3}


def build_adjacency(tetrahedra: torch.Tensor, validate: bool = True) -> AdjacencyIndex:
    """
    Builds the face/edge adjacency of a tetrahedron list.

    Args:
        tetrahedra (torch.Tensor): Long tensor of shape (M, 4).
        validate (bool, optional): Run `AdjacencyIndex.validate`. Defaults to True.

    Returns:
        AdjacencyIndex: The built index.

    Raises:
        InternalConsistencyError: If `validate` is set and a face is shared by more than two tetrahedra.
    """
    index = AdjacencyIndex(tetrahedra)
    if validate:
        index.validate()
    return index


def delaunay_edges(tetrahedra: torch.Tensor) -> torch.Tensor:
    """
    Extracts the unique edges of a tetrahedralization.

    Args:
        tetrahedra (torch.Tensor): Long tensor of shape (M, 4).

    Returns:
        torch.Tensor: Long tensor of shape (K, 2); each row is an ascending pair
                      (i, j), i < j, rows unique and sorted lexicographically.
    """
    tetrahedra = torch.as_tensor(tetrahedra, dtype=torch.long)
    if tetrahedra.numel() == 0:
        return torch.empty((0, 2), dtype=torch.long)
    pairs = torch.tensor(list(combinations(range(4), 2)), dtype=torch.long)
    all_edges = tetrahedra[:, pairs].reshape(-1, 2) # (M*6, 2)
    all_edges, _ = torch.sort(all_edges, dim=1)
    return torch.unique(all_edges, dim=0)
