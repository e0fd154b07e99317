# lvgrid/synthesis/builder.py
"""
Street-graph construction and building load attachment.

Distances used to pick an attachment point are planar distances in the lon/lat plane.
They only rank candidates against each other; edge weights are always haversine meters.
"""

import itertools
import logging
import math
from dataclasses import dataclass

from lvgrid.config.models import BuilderModel, GridModel
from lvgrid.domain.entities.geography import LatLon, Way
from lvgrid.domain.entities.graph import StreetGraph, Vertex
from lvgrid.domain.geometry import building_power_kw, geo_to_m2, is_between, polygon_area_deg2, ray_casting
from lvgrid.io.map_data import MapData
from lvgrid.synthesis.street_index import StreetIndex

log = logging.getLogger(__name__)


def build_raw_graph(highways: list[Way]) -> StreetGraph:
    """Every consecutive node pair of every street becomes a haversine-weighted edge."""
    graph = StreetGraph()
    for way in highways:
        for n in way.nodes:
            graph.add_vertex(Vertex(n.id, n.lat, n.lon))
        for a, b in itertools.pairwise(way.nodes):
            graph.add_edge(a.id, b.id)
    return graph


def inside_any(p: LatLon, polygons: list[Way]) -> bool:
    return any(ray_casting(poly.points, p) for poly in polygons)


@dataclass
class Attachment:
    street: Way
    segment: int  # index of the segment's second node
    point: LatLon
    distance: float
    endpoint: int | None = None  # node id when the point is a segment endpoint


def _planar(a: LatLon, b: LatLon) -> float:
    return math.hypot(a.lon - b.lon, a.lat - b.lat)


def nearest_attachment(center: LatLon, streets: list[Way]) -> Attachment | None:
    """
    Closest point on any of the given streets: orthogonal projections with parameter
    strictly inside (0, 1) compete with segment endpoints; the first strictly smaller
    distance wins, so ties go to the earlier candidate.
    """
    best: Attachment | None = None
    for street in streets:
        for i in range(1, len(street.nodes)):
            n1, n2 = street.nodes[i - 1], street.nodes[i]
            ux, uy = n2.lon - n1.lon, n2.lat - n1.lat
            uu = ux * ux + uy * uy
            if uu > 0:
                t = ((center.lon - n1.lon) * ux + (center.lat - n1.lat) * uy) / uu
                if 0 < t < 1:
                    proj = LatLon(n1.lat + t * uy, n1.lon + t * ux)
                    d = _planar(center, proj)
                    if best is None or d < best.distance:
                        best = Attachment(street, i, proj, d)
            for node in (n1, n2):
                d = _planar(center, node.position)
                if best is None or d < best.distance:
                    best = Attachment(street, i, node.position, d, endpoint=node.id)
    return best


def building_load_kw(building: Way, grid: GridModel, builder: BuilderModel) -> float:
    area_m2 = geo_to_m2(polygon_area_deg2(building.points), building.center, builder.area_correction_m2)
    return building_power_kw(area_m2, grid.average_power_density)


class StreetGraphBuilder:
    """
    Builds the raw street graph and attaches every building inside a land use to its
    nearest street point, splicing fresh vertices into the street where needed.
    """

    def __init__(self, map_data: MapData, *, grid: GridModel, builder: BuilderModel):
        self.map_data = map_data
        self.grid = grid
        self.builder = builder
        self.index = StreetIndex.build(map_data.highways, map_data.bbox, builder.cell_size_deg)
        self._ids = itertools.count(map_data.max_node_id() + 1)
        self._by_position: dict[LatLon, int] = {}
        self._on_segment: dict[tuple[int, int], list[int]] = {}
        self.attached = 0
        self.skipped = 0

    def build(self) -> StreetGraph:
        graph = build_raw_graph(self.map_data.highways)
        for building in self.map_data.buildings:
            center = building.center
            if not inside_any(center, self.map_data.land_uses):
                continue
            att = nearest_attachment(center, self.index.nearby(center))
            if att is None:
                self.skipped += 1
                log.warning(
                    "no street near building",
                    extra={"extra": {"building": building.id, "lat": center.lat, "lon": center.lon}},
                )
                continue
            vertex = self._materialize(graph, att)
            vertex.add_load(building_load_kw(building, self.grid, self.builder))
            vertex.house_connection = center
            if building.id in self.map_data.real_substations:
                vertex.substation = True
            self.attached += 1

        log.info(
            "street graph built",
            extra={
                "extra": {
                    "vertices": len(graph),
                    "edges": graph.g.number_of_edges(),
                    "attached": self.attached,
                    "skipped": self.skipped,
                }
            },
        )
        return graph

    def _materialize(self, graph: StreetGraph, att: Attachment) -> Vertex:
        if att.endpoint is not None:
            return graph.vertex(att.endpoint)

        existing = self._by_position.get(att.point)
        if existing is not None:
            return graph.vertex(existing)

        vertex = Vertex(next(self._ids), att.point.lat, att.point.lon)
        graph.add_vertex(vertex)
        self._by_position[att.point] = vertex.id
        self._splice(graph, att, vertex)
        return vertex

    def _splice(self, graph: StreetGraph, att: Attachment, vertex: Vertex) -> None:
        """Insert vertex between the two vertices that bracket it on its street segment."""
        n1 = att.street.nodes[att.segment - 1]
        n2 = att.street.nodes[att.segment]
        key = (att.street.id, att.segment)
        attached = self._on_segment.setdefault(key, [])

        a, b = n1.position, n2.position
        eps = self.builder.between_epsilon
        on_line = [n1.id, n2.id] + [vid for vid in attached if is_between(a, b, graph.vertex(vid).position, eps)]

        def param(vid: int) -> float:
            p = graph.vertex(vid).position
            return _planar(a, p)

        t_new = param(vertex.id)
        before = max((vid for vid in on_line if param(vid) < t_new), key=param, default=n1.id)
        after = min((vid for vid in on_line if param(vid) > t_new), key=param, default=n2.id)

        graph.remove_edge(before, after)
        graph.add_edge(before, vertex.id)
        graph.add_edge(vertex.id, after)
        attached.append(vertex.id)


def build_street_graph(map_data: MapData, *, grid: GridModel, builder: BuilderModel) -> StreetGraph:
    return StreetGraphBuilder(map_data, grid=grid, builder=builder).build()
