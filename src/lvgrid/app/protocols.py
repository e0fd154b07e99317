from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import numpy as np

from lvgrid.domain.entities.graph import StreetGraph
from lvgrid.io.map_data import MapData


@runtime_checkable
class MapDataProvider(Protocol):
    """
    Responsibilities:
    • Supply classified ways (buildings, land uses, streets) and the ids of real substations.
    • Supply the bounding box used for spatial indexing.
    Raw map file parsing happens before this seam.
    """

    def map_data(self) -> MapData: ...


@runtime_checkable
class MedoidInitializer(Protocol):
    """
    Pick `count` additional medoids among `candidates`, none of them in `chosen`.
    `dist` maps vertex id -> {vertex id -> shortest path meters}.
    """

    def select(
        self,
        graph: StreetGraph,
        candidates: Sequence[int],
        chosen: Sequence[int],
        count: int,
        *,
        dist: dict[int, dict[int, float]],
        rng: np.random.Generator,
    ) -> list[int]: ...
