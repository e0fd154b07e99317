# lvgrid/synthesis/kmedoids.py
"""
K-medoids variant that balances cluster load instead of cluster size.

Vertices are first assigned to their nearest medoid by shortest-path distance, then moved
one at a time from heavier into lighter neighbouring clusters. A move that splits its
source cluster is only kept if the cut-off fragments can follow it into the destination
cluster without breaking the load ceiling.
"""

import logging
from collections.abc import Callable

import networkx as nx
import numpy as np

from lvgrid.app.events import ClusterDisconnected
from lvgrid.app.protocols import MedoidInitializer
from lvgrid.domain.entities.geography import LatLon
from lvgrid.domain.entities.graph import StreetGraph
from lvgrid.domain.errors import EmptyClusterError, UnconnectedClusterError
from lvgrid.domain.geometry import centroid, haversine_m
from lvgrid.synthesis.medoid_init import RandomMedoids

log = logging.getLogger(__name__)


class KMedoidsSameSize:
    def __init__(
        self,
        graph: StreetGraph,
        k: int,
        max_load_kw: float,
        *,
        rng: np.random.Generator,
        consider_real_substations: bool = True,
        max_iterations: int = 500,
        max_restarts: int = 3,
        initializer: MedoidInitializer | None = None,
        report: Callable[[object], None] | None = None,
    ):
        self.graph = graph
        self.max_load = max_load_kw
        self.rng = rng
        self.consider_real_substations = consider_real_substations
        self.max_iterations = max_iterations
        self.max_restarts = max_restarts
        self.initializer = initializer or RandomMedoids()
        self.report = report

        self._all: list[int] = sorted(graph.ids())
        self.nodes: list[int] = list(self._all)
        if k > len(self.nodes):
            log.warning("more clusters than vertices", extra={"extra": {"k": k, "vertices": len(self.nodes)}})
            k = len(self.nodes)
        self.k = k
        self.dist: dict[int, dict[int, float]] = dict(nx.all_pairs_dijkstra_path_length(graph.g, weight="weight"))

        self.medoids: list[int] = []
        self.clusters: list[set[int]] = []
        self.loads: list[float] = []
        self.disconnected: list[UnconnectedClusterError] = []
        self.iterations = 0
        self._flagged: set[int] = set()  # substation flags set by this run

    # ---------------------------------------------------------------

    def run(self) -> list[set[int]]:
        if self.k == 0:
            return []
        log.info(
            "starting k-medoids",
            extra={"extra": {"k": self.k, "max_load_kw": self.max_load, "vertices": len(self.nodes)}},
        )
        for attempt in range(1, self.max_restarts + 1):
            self.select_medoids()
            try:
                self.initial_assignment()
            except UnconnectedClusterError as e:
                log.warning(str(e), extra={"extra": {"cluster": e.cluster, "parts": e.parts}})
                self.disconnected.append(e)
                if self.report:
                    self.report(ClusterDisconnected(cluster=e.cluster, parts=e.parts, stage="initial_assignment"))
            try:
                self.refine()
                break
            except EmptyClusterError:
                log.warning("empty cluster detected", extra={"extra": {"attempt": attempt}})
                if attempt == self.max_restarts:
                    raise
                self._reset()

        self.update_medoids()
        log.info(
            "finished k-medoids",
            extra={"extra": {"iterations": self.iterations, "loads": [round(x, 3) for x in self.loads]}},
        )
        return self.clusters

    # ------------------------ medoids ----------------------------------

    def select_medoids(self) -> list[int]:
        medoids: list[int] = []
        if self.consider_real_substations:
            medoids = [vid for vid in self.nodes if self.graph.vertex(vid).substation][: self.k]
        medoids += self.initializer.select(
            self.graph,
            self.nodes,
            medoids,
            self.k - len(medoids),
            dist=self.dist,
            rng=self.rng,
        )
        for vid in medoids:
            v = self.graph.vertex(vid)
            if not v.substation:
                v.substation = True
                self._flagged.add(vid)
        self.medoids = medoids
        return medoids

    def _reset(self) -> None:
        for vid in self._flagged:
            self.graph.vertex(vid).substation = False
        self._flagged.clear()
        self.nodes = list(self._all)
        for vid in self.nodes:
            self.graph.vertex(vid).cluster = -1
        self.medoids, self.clusters, self.loads = [], [], []

    # ------------------------ assignment ----------------------------------

    def initial_assignment(self) -> None:
        self.clusters = [set() for _ in range(self.k)]
        unreachable = []
        for vid in self.nodes:
            best, best_d = -1, np.inf
            for i, m in enumerate(self.medoids):
                d = self.dist[vid].get(m, np.inf)
                if d < best_d:
                    best, best_d = i, d
            if best < 0:
                unreachable.append(vid)
                continue
            self.graph.vertex(vid).cluster = best
            self.clusters[best].add(vid)
        if unreachable:
            log.error("vertices not reachable from any medoid", extra={"extra": {"ids": unreachable}})
            dropped = set(unreachable)
            self.nodes = [vid for vid in self.nodes if vid not in dropped]
        self.loads = [self.graph.total_load(c) for c in self.clusters]

        for i, cluster in enumerate(self.clusters):
            parts = self._parts(cluster)
            if parts > 1:
                raise UnconnectedClusterError(f"cluster {i} is not fully connected", cluster=i, parts=parts)

    def _parts(self, ids) -> int:
        return nx.number_connected_components(self.graph.g.subgraph(ids)) if ids else 0

    # ------------------------ refinement ----------------------------------

    def _transfer(self, src: int, dst: int, vid: int) -> None:
        load = self.graph.vertex(vid).load_kw
        self.clusters[src].remove(vid)
        self.clusters[dst].add(vid)
        self.loads[src] -= load
        self.loads[dst] += load
        self.graph.vertex(vid).cluster = dst

    def _movable(self) -> dict[int, list[int]]:
        """Vertex -> destination clusters it borders whose load stays below its own cluster's."""
        out: dict[int, list[int]] = {}
        for vid in self.nodes:
            v = self.graph.vertex(vid)
            src = v.cluster
            dests = set()
            for n in self.graph.neighbors(vid):
                dst = self.graph.vertex(n).cluster
                if dst >= 0 and dst != src and self.loads[src] > self.loads[dst] + v.load_kw:
                    dests.add(dst)
            if dests:
                out[vid] = sorted(dests)
        return out

    def refine(self) -> int:
        """Iterate until nothing moves or max_iterations is reached; returns iterations run."""
        it = 0
        while self.max_iterations < 0 or it < self.max_iterations:
            if any(not c for c in self.clusters):
                raise EmptyClusterError("detected empty cluster")
            self.loads = [self.graph.total_load(c) for c in self.clusters]
            it += 1

            movable = self._movable()
            invalid: set[int] = set()
            active = 0
            for vid, dests in movable.items():
                if vid in invalid:
                    continue
                src = self.graph.vertex(vid).cluster
                dst = dests[0]
                if not self.loads[src] > self.loads[dst] + self.graph.vertex(vid).load_kw:
                    continue
                active += self._move(vid, src, dst)
                invalid.update(self.graph.neighbors(vid))
            if active <= 0:
                break
        self.iterations = it
        return it

    def _move(self, vid: int, src: int, dst: int) -> int:
        """Move vid and, if that splits src, the fragments cut off with it. Returns moves kept."""
        self._transfer(src, dst, vid)
        if self.graph.degree(vid) <= 2 or self._parts(self.clusters[src]) <= 1:
            return 1

        moved = [vid]
        parts = sorted(nx.connected_components(self.graph.g.subgraph(self.clusters[src])), key=lambda p: (len(p), min(p)))
        for part in parts:
            part_load = self.graph.total_load(part)
            if self.loads[dst] + part_load < self.max_load and self.loads[dst] + part_load < self.loads[src]:
                for n in sorted(part):
                    self._transfer(src, dst, n)
                    moved.append(n)
                if self._parts(self.clusters[src]) <= 1:
                    return len(moved)
            else:
                break

        # src stays split: undo everything
        for n in moved:
            self._transfer(dst, src, n)
        return 0

    # ------------------------ medoid update ----------------------------------

    def update_medoids(self) -> list[int]:
        """Move each medoid to the loaded vertex nearest its cluster's centroid."""
        updated = list(self.medoids)
        for i, cluster in enumerate(self.clusters):
            if not cluster:
                continue
            ids = sorted(vid for vid in cluster if self.graph.vertex(vid).loaded) or sorted(cluster)
            center: LatLon = centroid([self.graph.vertex(vid).position for vid in ids])
            updated[i] = min(ids, key=lambda vid: (haversine_m(center, self.graph.vertex(vid).position), vid))

        # clear before setting: a new medoid may be another cluster's old one
        for old in set(self.medoids) - set(updated):
            self.graph.vertex(old).substation = False
            self._flagged.discard(old)
        for new in updated:
            v = self.graph.vertex(new)
            if not v.substation:
                v.substation = True
                self._flagged.add(new)
        self.medoids = updated
        return self.medoids
