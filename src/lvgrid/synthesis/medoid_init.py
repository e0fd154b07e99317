# lvgrid/synthesis/medoid_init.py
from collections.abc import Sequence

import numpy as np

from lvgrid.app.protocols import MedoidInitializer
from lvgrid.domain.entities.graph import StreetGraph


class RandomMedoids(MedoidInitializer):
    """Uniform draw without replacement."""

    def select(self, graph, candidates, chosen, count, *, dist, rng):
        taken = set(chosen)
        pool = [vid for vid in candidates if vid not in taken]
        if count <= 0 or not pool:
            return []
        picked = rng.choice(len(pool), size=min(count, len(pool)), replace=False)
        return [pool[int(i)] for i in picked]


class PlusPlusMedoids(MedoidInitializer):
    """
    k-medoids++ seeding: every further medoid is drawn with probability proportional to
    the squared shortest-path distance to the closest medoid picked so far.
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
    ) -> list[int]:
        medoids = list(chosen)
        picked: list[int] = []
        taken = set(medoids)
        pool = [vid for vid in candidates if vid not in taken]
        while len(picked) < count and pool:
            if not medoids:
                idx = int(rng.integers(0, len(pool)))
            else:
                d = np.array([min(dist[m].get(vid, np.inf) for m in medoids) for vid in pool])
                w = np.where(np.isfinite(d), d, 0.0) ** 2
                total = w.sum()
                idx = int(rng.choice(len(pool), p=w / total)) if total > 0 else int(rng.integers(0, len(pool)))
            vid = pool.pop(idx)
            medoids.append(vid)
            picked.append(vid)
        return picked
