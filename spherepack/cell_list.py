from itertools import product
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from spherepack.spheres import SphereSet

CellKey = Tuple[int, ...]


def default_cell_size(sphere_set: SphereSet, requested: Optional[float] = None) -> float:
    """Cell size guaranteeing that overlapping spheres always share a cell or sit in adjacent cells.

    A requested size below the largest sphere diameter is raised to the diameter, since it would miss overlaps.
    """
    diameter = 2.0 * sphere_set.max_radius
    if requested is None:
        return diameter
    return max(float(requested), diameter)


class CellList:
    """Uniform grid over a bounding box, bucketing spheres by the cell holding their center.

    The grid has max(1, floor(extent / cell_size)) cells along each axis, so every cell is at least cell_size
    long. As long as cell_size is at least the largest sphere diameter, any two overlapping spheres are in the same
    cell or in adjacent ones (3^d - 1 neighbors, 26 in 3D). Centers outside the box are bucketed in the nearest
    boundary cell. A cell size of 0 (empty sphere set) makes the index a no-op.

    Parameters
    ----------
    lower, upper: Iterable of float
        Corners of the box covered by the grid.

    cell_size: float
        Minimum edge length of a cell.
    """

    def __init__(self, lower: Sequence[float], upper: Sequence[float], cell_size: float):
        self.lower = np.asarray(lower, dtype=float)
        upper = np.asarray(upper, dtype=float)
        self.dim = len(self.lower)
        self.cell_size = float(cell_size)

        extent = np.maximum(upper - self.lower, 0.0)
        if self.cell_size > 0:
            self.shape = np.maximum(1, np.floor(extent / self.cell_size)).astype(np.int64)
            self.cell_length = np.where(extent > 0, extent / self.shape, self.cell_size)
        else:
            self.shape = np.zeros(self.dim, dtype=np.int64)
            self.cell_length = np.zeros(self.dim)

        offsets = list(product((-1, 0, 1), repeat=self.dim))
        self._offsets = offsets
        # Half of the neighborhood (first non-zero component positive), so each cell pair is visited once.
        self._forward = [o for o in offsets if o > (0,) * self.dim]

        self.buckets: Dict[CellKey, Set[int]] = {}
        self._cells = np.zeros((0, self.dim), dtype=np.int64)
        self._members: Optional[Dict[CellKey, np.ndarray]] = None

    @classmethod
    def build(
        cls,
        sphere_set: SphereSet,
        cell_size: float,
        bounds: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    ) -> "CellList":
        """Bucket every sphere of the set, in O(n).

        Parameters
        ----------
            sphere_set: The spheres to index.
            cell_size: Minimum cell edge length, see `default_cell_size`.
            bounds: Corners of the gridded box, usually the container bounds. Defaults to the bounding box of
                the sphere centers.
        """
        positions = sphere_set.positions
        if bounds is None:
            if len(sphere_set):
                bounds = positions.min(axis=0), positions.max(axis=0)
            else:
                bounds = np.zeros(sphere_set.dim), np.zeros(sphere_set.dim)
        index = cls(bounds[0], bounds[1], cell_size)
        index.insert_all(positions)
        return index

    @property
    def is_noop(self) -> bool:
        return self.cell_size <= 0

    def __len__(self) -> int:
        return len(self._cells)

    def cells_of(self, positions: np.ndarray) -> np.ndarray:
        cells = np.floor((np.asarray(positions, dtype=float) - self.lower) / self.cell_length)
        return np.clip(cells, 0, self.shape - 1).astype(np.int64)

    def cell_of(self, position: Sequence[float]) -> CellKey:
        return tuple(self.cells_of(np.asarray(position, dtype=float)[None, :])[0].tolist())

    def insert_all(self, positions: np.ndarray):
        self.buckets = {}
        self._members = None
        n = len(positions)
        if self.is_noop:
            self._cells = np.zeros((n, self.dim), dtype=np.int64)
            return
        self._cells = self.cells_of(positions)
        for i, key in enumerate(map(tuple, self._cells.tolist())):
            self.buckets.setdefault(key, set()).add(i)

    def bucket_of(self, i: int) -> CellKey:
        return tuple(self._cells[i].tolist())

    def neighbors_of(self, i: int) -> List[int]:
        """Indices of the spheres in the same or an adjacent cell as sphere i, sorted and without i itself."""
        if self.is_noop:
            return []
        cell = self._cells[i].tolist()
        found: Set[int] = set()
        for off in self._offsets:
            bucket = self.buckets.get(tuple(c + o for c, o in zip(cell, off)))
            if bucket:
                found.update(bucket)
        found.discard(i)
        return sorted(found)

    def _move(self, i: int, old_key: CellKey, new_key: CellKey):
        bucket = self.buckets[old_key]
        bucket.discard(i)
        if not bucket:
            del self.buckets[old_key]
        self.buckets.setdefault(new_key, set()).add(i)
        self._cells[i] = new_key
        self._members = None

    def relocate(self, i: int, old_pos: Sequence[float], new_pos: Sequence[float]) -> bool:
        """Move sphere i to the bucket of new_pos. Returns True if its cell changed."""
        if self.is_noop:
            return False
        old_key = self.cell_of(old_pos)
        if i not in self.buckets.get(old_key, ()):
            old_key = self.bucket_of(i)
        new_key = self.cell_of(new_pos)
        if new_key == old_key:
            return False
        self._move(i, old_key, new_key)
        return True

    def update(self, positions: np.ndarray) -> int:
        """Relocate every sphere whose cell changed. Returns the number of relocated spheres."""
        if self.is_noop or len(positions) == 0:
            return 0
        new_cells = self.cells_of(positions)
        changed = np.flatnonzero(np.any(new_cells != self._cells, axis=1))
        for i in changed.tolist():
            self._move(i, self.bucket_of(i), tuple(new_cells[i].tolist()))
        return len(changed)

    def candidate_pairs(self) -> Tuple[np.ndarray, np.ndarray]:
        """All pairs (i, j), i < j, of spheres sharing a cell or sitting in adjacent cells.

        Every sphere lives in one bucket and every pair of cells is visited once, so each pair is produced exactly
        once. The sorted member arrays are cached until the next `update` that moves a sphere.

        Returns
        -------
            I, J: Two int arrays of equal length, sorted lexicographically by (I, J).
        """
        if self.is_noop or len(self.buckets) == 0:
            return np.empty(0, np.int64), np.empty(0, np.int64)

        if self._members is None:
            self._members = {
                key: np.fromiter(sorted(b), dtype=np.int64, count=len(b)) for key, b in self.buckets.items()
            }
        members = self._members

        I_list = []
        J_list = []
        for key, ia in members.items():
            # Within-cell (upper triangle)
            if len(ia) >= 2:
                iu, ju = np.triu_indices(len(ia), k=1)
                I_list.append(ia[iu])
                J_list.append(ia[ju])
            for off in self._forward:
                ib = members.get(tuple(k + o for k, o in zip(key, off)))
                if ib is None:
                    continue
                I_list.append(np.repeat(ia, len(ib)))
                J_list.append(np.tile(ib, len(ia)))

        if not I_list:
            return np.empty(0, np.int64), np.empty(0, np.int64)

        I = np.concatenate(I_list)
        J = np.concatenate(J_list)
        # keep i<j, sorted by the packed key i * n + j
        n = len(self._cells)
        keys = np.minimum(I, J) * n + np.maximum(I, J)
        keys.sort()
        return keys // n, keys % n
