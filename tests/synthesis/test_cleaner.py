# tests/synthesis/test_cleaner.py
from lvgrid.domain.entities.graph import StreetGraph, Vertex
from lvgrid.synthesis.cleaner import clean_graph


def _graph(coords: dict[int, tuple[float, float]], edges, loads=None) -> StreetGraph:
    g = StreetGraph()
    for vid, (lat, lon) in coords.items():
        g.add_vertex(Vertex(vid, lat, lon, load=(loads or {}).get(vid)))
    for a, b in edges:
        g.add_edge(a, b)
    return g


def test_unloaded_dead_end_chains_are_removed_completely():
    # 1-2-3-4, only 2 loaded: 1 and 4 go in the first pass, 3 in the second
    g = _graph({i: (0.0, 0.001 * i) for i in range(1, 5)}, [(1, 2), (2, 3), (3, 4)], loads={2: 5.0})
    removed = clean_graph(g)
    assert g.ids() == {2}
    assert removed == 3


def test_cycle_and_loaded_leaves_survive():
    coords = {1: (0.0, 0.0), 2: (0.0, 0.001), 3: (0.001, 0.001), 4: (0.001, 0.0), 5: (0.002, 0.0), 6: (0.003, 0.0)}
    edges = [(1, 2), (2, 3), (3, 4), (4, 1), (4, 5), (5, 6)]
    g = _graph(coords, edges, loads={6: 1.0})
    assert clean_graph(g) == 0
    assert g.ids() == {1, 2, 3, 4, 5, 6}


def test_isolated_unloaded_vertex_is_removed():
    g = _graph({1: (0.0, 0.0), 2: (0.0, 0.001)}, [])
    g.vertex(2).load = 1.0
    clean_graph(g)
    assert g.ids() == {2}


def test_cleaning_is_idempotent():
    coords = {i: (0.0, 0.001 * i) for i in range(8)}
    edges = [(i, i + 1) for i in range(7)] + [(3, 7)]
    g = _graph(coords, edges, loads={2: 1.0, 5: 2.0})
    clean_graph(g)
    once = g.ids()
    assert clean_graph(g) == 0
    assert g.ids() == once
