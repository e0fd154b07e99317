# lvgrid/synthesis/street_index.py
import math

import numpy as np

from lvgrid.domain.entities.geography import BoundingBox, LatLon, Way


class StreetIndex:
    """
    Coarse lat/lon grid of streets.

    Every street is registered in each cell that contains one of its nodes. Cells left
    empty are then filled from their non-empty neighbours, round after round, so that a
    lookup anywhere in the box yields at least one nearby street.
    """

    def __init__(self, bbox: BoundingBox, cell_size_deg: float = 0.0005):
        self.bbox = bbox
        self.cell = cell_size_deg
        self.rows = max(1, math.ceil((bbox.max_lat - bbox.min_lat) / cell_size_deg))
        self.cols = max(1, math.ceil((bbox.max_lon - bbox.min_lon) / cell_size_deg))
        self._cells: list[list[set[int]]] = [[set() for _ in range(self.cols)] for _ in range(self.rows)]
        self._streets: dict[int, Way] = {}

    @classmethod
    def build(cls, streets: list[Way], bbox: BoundingBox, cell_size_deg: float = 0.0005) -> "StreetIndex":
        index = cls(bbox, cell_size_deg)
        for way in streets:
            index.add(way)
        index.fill_empty()
        return index

    def cell_of(self, p: LatLon) -> tuple[int, int]:
        row = int(np.clip(math.floor((p.lat - self.bbox.min_lat) / self.cell), 0, self.rows - 1))
        col = int(np.clip(math.floor((p.lon - self.bbox.min_lon) / self.cell), 0, self.cols - 1))
        return row, col

    def add(self, way: Way) -> None:
        self._streets[way.id] = way
        for n in way.nodes:
            r, c = self.cell_of(n.position)
            self._cells[r][c].add(way.id)

    def fill_empty(self) -> int:
        """Fill empty cells from their 8 neighbours until none is left; returns rounds used."""
        if not self._streets:
            return 0
        rounds = 0
        empty = np.array([[not cell for cell in row] for row in self._cells], dtype=bool)
        while empty.any():
            rounds += 1
            snapshot = [[set(cell) for cell in row] for row in self._cells]
            for r, c in zip(*np.nonzero(empty)):
                for nr, nc in self._neighbourhood(int(r), int(c), include_self=False):
                    self._cells[r][c] |= snapshot[nr][nc]
            empty = np.array([[not cell for cell in row] for row in self._cells], dtype=bool)
        return rounds

    def _neighbourhood(self, r: int, c: int, *, include_self: bool = True):
        for dr in (-1, 0, 1):
            for dc in (-1, 0, 1):
                if not include_self and dr == 0 and dc == 0:
                    continue
                nr, nc = r + dr, c + dc
                if 0 <= nr < self.rows and 0 <= nc < self.cols:
                    yield nr, nc

    def nearby(self, p: LatLon) -> list[Way]:
        """Streets registered in the cell of p and the 8 cells around it, ordered by way id."""
        r, c = self.cell_of(p)
        ids: set[int] = set()
        for nr, nc in self._neighbourhood(r, c):
            ids |= self._cells[nr][nc]
        return [self._streets[i] for i in sorted(ids)]

    def __len__(self) -> int:
        return len(self._streets)
