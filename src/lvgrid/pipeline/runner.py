# pipeline/runner.py
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from lvgrid.app.events import ClusterDisconnected, ClusterDropped
from lvgrid.app.protocols import MapDataProvider
from lvgrid.config.models import SynthesisModel
from lvgrid.domain.entities.graph import StreetGraph
from lvgrid.io.map_data import MapData
from lvgrid.pipeline.hooks import NoopHooks, PipelineHooks
from lvgrid.pipeline.rng import RNGRegistry
from lvgrid.runtime.registries import make_medoid_init
from lvgrid.synthesis.builder import build_street_graph
from lvgrid.synthesis.cleaner import clean_graph, refresh_weights
from lvgrid.synthesis.kmedoids import KMedoidsSameSize
from lvgrid.synthesis.lines import Line, ServiceConnection, service_connections, synthesize_lines
from lvgrid.synthesis.partitioner import Region, clusters_needed, partition
from lvgrid.synthesis.simplifier import simplify

log = logging.getLogger(__name__)


@dataclass
class ClusterGrid:
    index: int
    graph: StreetGraph
    lines: list[Line]
    service_connections: list[ServiceConnection]
    load_kw: float
    substations: list[int]


@dataclass
class SynthesisResult:
    graph: StreetGraph
    regions: list[Region]
    clusters: list[ClusterGrid]
    diagnostics: list = field(default_factory=list)

    @property
    def lines(self) -> list[Line]:
        return [line for c in self.clusters for line in c.lines]


class GridSynthesis:
    """
    Street graph -> regions -> load-balanced clusters -> line topology per cluster.

    Every stage works on values handed in and returns new values; the only shared state
    is the vertex arena of the graph being synthesized.
    """

    def __init__(self, model: SynthesisModel, *, rng: RNGRegistry, hooks: PipelineHooks | None = None):
        self.model = model
        self.rng = rng
        self.hooks = hooks or NoopHooks()
        self.diagnostics: list = []
        self.initializer = make_medoid_init(model.clustering.medoid_init)

    def report(self, ev) -> None:
        self.diagnostics.append(ev)
        self.hooks.diagnostic(ev)

    @contextmanager
    def stage(self, name: str, **extra) -> Iterator[dict]:
        out: dict = {}
        t0 = time.perf_counter()
        self.hooks.stage_start(name, **extra)
        try:
            yield out
        except Exception as e:
            self.hooks.error(name, exc=e, **extra)
            raise
        self.hooks.stage_end(name, ms=(time.perf_counter() - t0) * 1000, **extra, **out)

    # ---------------------------------------------------------------

    def run(self, source: MapData | MapDataProvider) -> SynthesisResult:
        map_data = source if isinstance(source, MapData) else source.map_data()
        self.diagnostics = []
        t0 = time.perf_counter()
        self.hooks.run_start(
            name=self.model.name,
            buildings=len(map_data.buildings),
            highways=len(map_data.highways),
            land_uses=len(map_data.land_uses),
        )
        graph = self.build_graph(map_data)
        regions = self.partition(graph, map_data)
        clusters = self.cluster_regions(graph, regions)
        grids = self.finalize(graph, clusters)
        result = SynthesisResult(graph=graph, regions=regions, clusters=grids, diagnostics=list(self.diagnostics))
        self.hooks.run_end(clusters=len(grids), lines=len(result.lines), wall_ms=(time.perf_counter() - t0) * 1000)
        return result

    def build_graph(self, map_data: MapData) -> StreetGraph:
        with self.stage("build") as out:
            graph = build_street_graph(map_data, grid=self.model.grid, builder=self.model.builder)
            out["vertices"] = len(graph)
        with self.stage("clean") as out:
            out["removed"] = clean_graph(graph)
            refresh_weights(graph)
        return graph

    def partition(self, graph: StreetGraph, map_data: MapData) -> list[Region]:
        with self.stage("partition") as out:
            regions = partition(
                graph,
                map_data.land_uses,
                map_data.buildings,
                separate=self.model.grid.separate_clusters_by_land_uses,
                precision=self.model.builder.hull_precision,
                min_load_kw=self.model.grid.ignore_clusters_smaller_than,
                report=self.report,
            )
            out["regions"] = len(regions)
        return regions

    # ------------------------ clustering ----------------------------------

    def cluster_regions(self, graph: StreetGraph, regions: list[Region]) -> list[set[int]]:
        """Cluster every region and renumber the clusters globally."""
        clusters: list[set[int]] = []
        with self.stage("cluster", regions=len(regions)) as out:
            for idx, region in enumerate(regions):
                clusters.extend(self.cluster_region(graph, region, idx))
            for i, members in enumerate(clusters):
                for vid in members:
                    graph.vertex(vid).cluster = i
            out["clusters"] = len(clusters)
        return clusters

    def cluster_region(self, graph: StreetGraph, region: Region, idx: int) -> list[set[int]]:
        capacity = self.model.grid.load_substation
        k = clusters_needed(region.load_kw, capacity)
        log.info(
            "region load",
            extra={"extra": {"region": idx, "load_kw": region.load_kw, "capacity_kw": capacity, "k": k}},
        )
        if k == 1:
            return [single_cluster(graph, region.ids)]

        sub = graph.subgraph(region.ids)
        clean_graph(sub)
        simplified, smap = simplify(sub, capacity)
        try:
            kmedoids = KMedoidsSameSize(
                simplified,
                k,
                region.load_kw / k * self.model.clustering.load_tolerance,
                rng=self.rng.substream("medoids", idx),
                consider_real_substations=self.model.clustering.consider_real_substations,
                max_iterations=self.model.clustering.max_iterations,
                max_restarts=self.model.clustering.max_restarts,
                initializer=self.initializer,
                report=self.report,
            )
            clusters = kmedoids.run()
            smap.expand(graph, clusters)
        finally:
            smap.restore(graph)
        return clusters

    # ------------------------ finalization ----------------------------------

    def finalize(self, graph: StreetGraph, clusters: list[set[int]]) -> list[ClusterGrid]:
        min_load = self.model.grid.ignore_clusters_smaller_than
        grids: list[ClusterGrid] = []
        with self.stage("finalize", clusters=len(clusters)) as out:
            for i, members in enumerate(clusters):
                sub = graph.subgraph(members)
                parts = len(sub.connected_sets())
                if parts > 1:
                    log.warning("cluster not fully connected", extra={"extra": {"cluster": i, "parts": parts}})
                    self.report(ClusterDisconnected(cluster=i, parts=parts, stage="finalization"))
                load = sub.total_load()
                if load < min_load:
                    self.report(ClusterDropped(cluster=i, load_kw=load, min_load_kw=min_load))
                    continue
                clean_graph(sub)
                grids.append(
                    ClusterGrid(
                        index=i,
                        graph=sub,
                        lines=synthesize_lines(sub),
                        service_connections=(
                            service_connections(sub) if self.model.grid.consider_house_connection_points else []
                        ),
                        load_kw=load,
                        substations=sorted(v.id for v in sub if v.substation),
                    )
                )
                log.info("cluster load", extra={"extra": {"cluster": i, "load_kw": load, "vertices": len(sub)}})
            out["kept"] = len(grids)
        return grids


def single_cluster(graph: StreetGraph, ids) -> set[int]:
    """All of ids form cluster 0; an existing substation keeps the role, else the first loaded vertex takes it."""
    members = set(ids)
    for vid in members:
        graph.vertex(vid).cluster = 0
    if not any(graph.vertex(vid).substation for vid in members):
        loaded = sorted(vid for vid in members if graph.vertex(vid).loaded)
        if loaded:
            graph.vertex(loaded[0]).substation = True
    return members
