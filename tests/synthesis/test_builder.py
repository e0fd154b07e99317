# tests/synthesis/test_builder.py
import pytest

from lvgrid.config.models import BuilderModel, GridModel
from lvgrid.domain.entities.geography import BoundingBox, LatLon, MapNode, Way
from lvgrid.domain.entities.graph import StreetGraph
from lvgrid.domain.geometry import haversine_m
from lvgrid.io.map_data import MapData
from lvgrid.synthesis.builder import (
    StreetGraphBuilder,
    build_raw_graph,
    building_load_kw,
    nearest_attachment,
)
from lvgrid.synthesis.street_index import StreetIndex

GRID = GridModel()
BUILDER = BuilderModel()


def _street(way_id: int, first_node: int, lons: list[float], lat: float = 0.0) -> Way:
    nodes = [MapNode(first_node + i, lat, lon) for i, lon in enumerate(lons)]
    return Way(way_id, nodes, {"highway": "residential"})


def _building(way_id: int, lat: float, lon: float, half: float = 0.00005, **tags) -> Way:
    base = way_id * 10
    corners = [
        MapNode(base + 1, lat - half, lon - half),
        MapNode(base + 2, lat - half, lon + half),
        MapNode(base + 3, lat + half, lon + half),
        MapNode(base + 4, lat + half, lon - half),
    ]
    return Way(way_id, corners + [corners[0]], {"building": "yes", **tags})


def _land_use(way_id: int = 900) -> Way:
    corners = [
        MapNode(9001, -0.001, -0.001),
        MapNode(9002, -0.001, 0.003),
        MapNode(9003, 0.002, 0.003),
        MapNode(9004, 0.002, -0.001),
    ]
    return Way(way_id, corners + [corners[0]], {"landuse": "residential"})


def _build(*buildings: Way, streets=None) -> tuple[StreetGraph, StreetGraphBuilder]:
    streets = [_street(1, 1, [0.0, 0.001, 0.002])] if streets is None else streets
    data = MapData.from_ways([*streets, _land_use(), *buildings])
    builder = StreetGraphBuilder(data, grid=GRID, builder=BUILDER)
    return builder.build(), builder


def _vertex_near(g: StreetGraph, p: LatLon):
    return min(g, key=lambda v: haversine_m(v.position, p))


# ------------------ RAW GRAPH & INDEX ------------------


def test_raw_graph_links_consecutive_street_nodes_and_shares_junctions():
    a = _street(1, 1, [0.0, 0.001, 0.002])
    b = Way(2, [a.nodes[1], MapNode(10, 0.001, 0.001)], {"highway": "service"})
    g = build_raw_graph([a, b])
    assert g.ids() == {1, 2, 3, 10}
    assert g.has_edge(1, 2) and g.has_edge(2, 3) and g.has_edge(2, 10)
    assert g.degree(2) == 3


def test_street_index_fills_empty_cells_from_neighbours():
    street = _street(1, 1, [0.0])
    bbox = BoundingBox(0.0, 0.004, 0.0, 0.004)
    index = StreetIndex.build([street], bbox, cell_size_deg=0.0005)
    assert index.rows >= 8 and index.cols >= 8
    # far corner is several cells away from the only street node
    assert [w.id for w in index.nearby(LatLon(0.0039, 0.0039))] == [1]


def test_nearest_attachment_prefers_projection_then_endpoint():
    street = _street(1, 1, [0.0, 0.001, 0.002])
    inner = nearest_attachment(LatLon(0.0003, 0.0005), [street])
    assert inner.endpoint is None and inner.segment == 1
    assert inner.point.lat == 0.0
    assert inner.point.lon == pytest.approx(0.0005)

    # above node 2 the projection parameter is 1 on one segment and 0 on the other
    corner = nearest_attachment(LatLon(0.0003, 0.001), [street])
    assert corner.endpoint == 2

    # beyond the end of the street only the endpoint is a candidate
    beyond = nearest_attachment(LatLon(0.0, 0.0025), [street])
    assert beyond.endpoint == 3


# ------------------ ATTACHMENT ------------------


def test_interior_attachment_splices_a_fresh_vertex():
    house = _building(50, 0.0003, 0.0005)
    g, builder = _build(house)
    v = _vertex_near(g, LatLon(0.0, 0.0005))
    assert v.id > 9004  # above every map node id
    assert g.has_edge(1, v.id) and g.has_edge(v.id, 2)
    assert not g.has_edge(1, 2)
    assert v.load == building_load_kw(house, GRID, BUILDER)
    assert v.house_connection == house.center
    assert builder.attached == 1


def test_second_attachment_on_same_segment_splices_between_bracketing_vertices():
    far = _building(50, 0.0003, 0.0007)
    near = _building(51, 0.0003, 0.0003)
    g, _ = _build(far, near)
    b = _vertex_near(g, LatLon(0.0, 0.0007))
    a = _vertex_near(g, LatLon(0.0, 0.0003))
    assert a.id != b.id
    assert g.has_edge(1, a.id) and g.has_edge(a.id, b.id) and g.has_edge(b.id, 2)
    assert not g.has_edge(1, b.id)
    assert not g.has_edge(1, 2)
    assert g.degree(a.id) == 2 and g.degree(b.id) == 2


def test_buildings_sharing_an_attachment_point_merge_load():
    one = _building(50, 0.0003, 0.0005)
    two = _building(51, -0.0003, 0.0005)
    g, _ = _build(one, two)
    v = _vertex_near(g, LatLon(0.0, 0.0005))
    assert len(g) == 4
    assert v.load == building_load_kw(one, GRID, BUILDER) + building_load_kw(two, GRID, BUILDER)


def test_endpoint_attachment_reuses_the_street_vertex():
    house = _building(50, 0.0003, 0.001)
    g, _ = _build(house)
    assert g.ids() == {1, 2, 3}
    assert g.vertex(2).load == building_load_kw(house, GRID, BUILDER)
    assert g.has_edge(1, 2) and g.has_edge(2, 3)


def test_buildings_outside_land_use_are_ignored():
    g, builder = _build(_building(50, 0.005, 0.0005))
    assert g.total_load() == 0.0
    assert builder.attached == 0


def test_real_substation_flag_survives_later_buildings():
    sub = _building(50, 0.0003, 0.001, power="sub_station")
    plain = _building(51, -0.0003, 0.001)
    g, _ = _build(sub, plain)
    assert g.vertex(2).substation
    assert g.vertex(2).house_connection == plain.center


def test_building_without_any_street_is_skipped():
    g, builder = _build(_building(50, 0.0003, 0.0005), streets=[])
    assert len(g) == 0
    assert builder.skipped == 1


def test_building_load_scales_with_power_density():
    house = _building(50, 0.0, 0.0, half=0.0005)
    low = building_load_kw(house, GridModel(average_power_density=5.0), BUILDER)
    high = building_load_kw(house, GridModel(average_power_density=50.0), BUILDER)
    assert low > 0
    assert high >= 9 * low
