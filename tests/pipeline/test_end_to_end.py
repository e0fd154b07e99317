# tests/pipeline/test_end_to_end.py
import math

import numpy as np
import pytest

from lvgrid.app.events import EmptyLandUsesRemoved
from lvgrid.config.models import SynthesisModel
from lvgrid.domain.entities.geography import MapNode, Way
from lvgrid.domain.entities.graph import StreetGraph, Vertex
from lvgrid.domain.errors import GridGenerationError
from lvgrid.io.map_data import MapData
from lvgrid.pipeline.hooks import NoopHooks
from lvgrid.pipeline.rng import RNGRegistry
from lvgrid.pipeline.runner import GridSynthesis
from lvgrid.synthesis.partitioner import Region


def _rect(way_id: int, lat0, lon0, lat1, lon1, **tags) -> Way:
    base = way_id * 10
    corners = [
        MapNode(base + 1, lat0, lon0),
        MapNode(base + 2, lat0, lon1),
        MapNode(base + 3, lat1, lon1),
        MapNode(base + 4, lat1, lon0),
    ]
    return Way(way_id, corners + [corners[0]], tags)


def _house(way_id: int, lat: float, lon: float, half: float = 0.00005) -> Way:
    return _rect(way_id, lat - half, lon - half, lat + half, lon + half, building="yes")


def _straight_street_town(*extra: Way) -> MapData:
    street = Way(100, [MapNode(i, 0.0, 0.001 * (i - 1)) for i in range(1, 7)], {"highway": "residential"})
    land_use = _rect(20, -0.001, -0.001, 0.001, 0.006, landuse="residential")
    return MapData.from_ways([street, land_use, _house(30, 0.0003, 0.0005), _house(40, 0.0003, 0.0045), *extra])


def _ring_street_town() -> MapData:
    corners = [MapNode(1, 0.0, 0.0), MapNode(2, 0.0, 0.002), MapNode(3, 0.002, 0.002), MapNode(4, 0.002, 0.0)]
    street = Way(100, corners + [corners[0]], {"highway": "residential"})
    land_use = _rect(20, -0.001, -0.001, 0.003, 0.003, landuse="residential")
    houses = [
        _house(30, -0.0003, 0.0007),
        _house(40, 0.0012, 0.0023),
        _house(50, 0.0023, 0.0014),
        _house(60, 0.0006, -0.0003),
    ]
    return MapData.from_ways([street, land_use, *houses])


class _Hooks(NoopHooks):
    def __init__(self):
        self.stages: list[str] = []
        self.errors: list[tuple[str, str]] = []
        self.events: list = []

    def stage_end(self, stage, **_):
        self.stages.append(stage)

    def error(self, stage, *, exc, **_):
        self.errors.append((stage, type(exc).__name__))

    def diagnostic(self, ev):
        self.events.append(ev)


def _pipeline(hooks=None, **grid) -> GridSynthesis:
    model = SynthesisModel.model_validate({"grid": {"ignore_clusters_smaller_than": 0.0, **grid}})
    return GridSynthesis(model, rng=RNGRegistry(1, scenario="test"), hooks=hooks)


def test_single_cluster_keeps_existing_substation_and_lines_radiate_from_it():
    gs = _pipeline()
    data = _straight_street_town()
    graph = gs.build_graph(data)
    # street ends 1 and 6 are unloaded dead ends; the two house vertices remain
    assert 1 not in graph and 6 not in graph
    a, b = graph.loaded_ids()
    graph.vertex(3).substation = True

    regions = gs.partition(graph, data)
    clusters = gs.cluster_regions(graph, regions)
    grids = gs.finalize(graph, clusters)

    assert len(grids) == 1
    grid = grids[0]
    assert grid.substations == [3]
    assert {(ln.start, ln.end) for ln in grid.lines} == {(3, a), (3, b)}
    assert grid.load_kw == pytest.approx(graph.total_load())


def test_run_flags_first_loaded_vertex_when_no_substation_exists():
    hooks = _Hooks()
    result = _pipeline(hooks).run(_straight_street_town())
    a, b = result.graph.loaded_ids()
    assert [c.substations for c in result.clusters] == [[a]]
    assert [(ln.start, ln.end) for ln in result.lines] == [(a, b)]
    assert hooks.stages == ["build", "clean", "partition", "cluster", "finalize"]


def test_ring_is_split_into_load_balanced_clusters():
    result = _pipeline(load_substation=3.0).run(_ring_street_town())
    total = result.graph.total_load()
    assert total == 8.0  # four 2 kW houses

    assert len(result.clusters) == 3
    assert sum(c.load_kw for c in result.clusters) == pytest.approx(total)
    seen: set[int] = set()
    for c in result.clusters:
        assert seen.isdisjoint(c.graph.ids())
        seen |= c.graph.ids()
        assert len(c.substations) == 1
        assert c.graph.vertex(c.substations[0]).loaded
    # every loaded vertex ends up in exactly one cluster grid
    assert set(result.graph.loaded_ids()) <= seen


def test_ring_clustering_is_reproducible_for_a_seed():
    first = _pipeline(load_substation=3.0).run(_ring_street_town())
    second = _pipeline(load_substation=3.0).run(_ring_street_town())
    assert [sorted(c.graph.ids()) for c in first.clusters] == [sorted(c.graph.ids()) for c in second.clusters]


def test_diagnostics_reach_result_and_hooks():
    hooks = _Hooks()
    far = _rect(90, 0.01, 0.01, 0.011, 0.011, landuse="residential")
    result = _pipeline(hooks).run(_straight_street_town(far))
    assert result.diagnostics == [EmptyLandUsesRemoved(count=1, remaining=1)]
    assert hooks.events == result.diagnostics


def test_missing_land_use_fails_in_partition_stage():
    hooks = _Hooks()
    street = Way(100, [MapNode(i, 0.0, 0.001 * i) for i in range(3)], {"highway": "residential"})
    data = MapData.from_ways([street, _house(30, 0.0003, 0.0005)])
    with pytest.raises(GridGenerationError):
        _pipeline(hooks).run(data)
    assert hooks.errors == [("partition", "GridGenerationError")]


def test_house_connections_only_when_enabled():
    on = _pipeline(consider_house_connection_points=True).run(_straight_street_town())
    off = _pipeline().run(_straight_street_town())
    assert len(on.clusters[0].service_connections) == 2
    assert off.clusters[0].service_connections == []
    lengths = np.array([sc.length_m for sc in on.clusters[0].service_connections])
    assert np.all(lengths > 30.0)  # houses sit ~33 m off the street


def test_substation_on_a_dead_end_arm_leaves_one_flag_per_cluster():
    g = StreetGraph()
    for i in range(6):
        angle = math.radians(60 * i)
        g.add_vertex(Vertex(i, 0.001 * math.cos(angle), 0.001 * math.sin(angle), load=1.0))
    g.add_vertex(Vertex(6, 0.002, 0.0))
    g.add_vertex(Vertex(7, 0.003, 0.0, load=1.0, substation=True))
    for i in range(6):
        g.add_edge(i, (i + 1) % 6)
    g.add_edge(0, 6)
    g.add_edge(6, 7)

    gs = _pipeline(load_substation=4.0)
    clusters = gs.cluster_region(g, Region(frozenset(g.ids()), g.total_load(), 0), 0)

    assert len(clusters) == 2
    assert set().union(*clusters) == g.ids()
    for members in clusters:
        assert sum(g.vertex(v).substation for v in members) == 1
    assert g.total_load() == 7.0


def test_repeated_runs_report_only_their_own_diagnostics():
    gs = _pipeline()
    far = _rect(90, 0.01, 0.01, 0.011, 0.011, landuse="residential")
    first = gs.run(_straight_street_town(far))
    second = gs.run(_straight_street_town(far))
    assert first.diagnostics == second.diagnostics == [EmptyLandUsesRemoved(count=1, remaining=1)]


def test_repeated_runs_on_one_pipeline_cluster_identically():
    gs = _pipeline(load_substation=3.0)
    partitions = [[sorted(c.graph.ids()) for c in gs.run(_ring_street_town()).clusters] for _ in range(4)]
    assert all(p == partitions[0] for p in partitions)
