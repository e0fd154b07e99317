from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import networkx as nx

from lvgrid.domain.entities.geography import LatLon
from lvgrid.domain.geometry import haversine_m


@dataclass(eq=False)
class Vertex:
    """
    Street graph vertex. Identity is the id alone; every other field is mutated in place
    by the synthesis stages (load aggregation, clustering, substation selection).
    """

    id: int
    lat: float
    lon: float
    load: float | None = None  # kW, None => unloaded
    house_connection: LatLon | None = None
    substation: bool = False
    cluster: int = -1

    @property
    def position(self) -> LatLon:
        return LatLon(self.lat, self.lon)

    @property
    def loaded(self) -> bool:
        return self.load is not None

    @property
    def load_kw(self) -> float:
        return self.load if self.load is not None else 0.0

    def add_load(self, kw: float) -> None:
        self.load = self.load_kw + kw

    def __eq__(self, other) -> bool:
        return isinstance(other, Vertex) and other.id == self.id

    def __hash__(self) -> int:
        return hash(self.id)


class StreetGraph:
    """
    Undirected, distance-weighted graph over an id-indexed vertex arena.

    Edges live in a networkx graph keyed by vertex id and carry a single "weight"
    attribute (meters). Subgraphs share the arena, so Vertex mutations are visible from
    every view while the edge structure of each view stays independent.
    """

    def __init__(self, arena: dict[int, Vertex] | None = None, g: nx.Graph | None = None):
        self.arena: dict[int, Vertex] = arena if arena is not None else {}
        self.g: nx.Graph = g if g is not None else nx.Graph()

    # ------------- vertices -----------------

    def add_vertex(self, v: Vertex) -> bool:
        """Add v; returns False if a vertex with the same id is already present."""
        if v.id in self.g:
            return False
        self.arena.setdefault(v.id, v)
        self.g.add_node(v.id)
        return True

    def vertex(self, vid: int) -> Vertex:
        return self.arena[vid]

    def remove_vertices(self, ids: Iterable[int]) -> None:
        self.g.remove_nodes_from(list(ids))

    def __contains__(self, vid: int) -> bool:
        return vid in self.g

    def __len__(self) -> int:
        return self.g.number_of_nodes()

    def __iter__(self) -> Iterator[Vertex]:
        for vid in self.g.nodes:
            yield self.arena[vid]

    def ids(self) -> set[int]:
        return set(self.g.nodes)

    def degree(self, vid: int) -> int:
        return self.g.degree(vid)

    def neighbors(self, vid: int) -> list[int]:
        return list(self.g.neighbors(vid))

    # ------------- edges -----------------

    def add_edge(self, a: int, b: int) -> None:
        if a == b:
            return
        va, vb = self.arena[a], self.arena[b]
        self.g.add_edge(a, b, weight=haversine_m(va.position, vb.position))

    def remove_edge(self, a: int, b: int) -> None:
        if self.g.has_edge(a, b):
            self.g.remove_edge(a, b)

    def has_edge(self, a: int, b: int) -> bool:
        return self.g.has_edge(a, b)

    def weight(self, a: int, b: int) -> float:
        return self.g.edges[a, b]["weight"]

    def edges(self) -> Iterator[tuple[int, int]]:
        yield from self.g.edges

    def refresh_weights(self) -> None:
        for a, b, data in self.g.edges(data=True):
            data["weight"] = haversine_m(self.arena[a].position, self.arena[b].position)

    # ------------- views & queries -----------------

    def subgraph(self, ids: Iterable[int]) -> "StreetGraph":
        """Independent copy of the induced subgraph, sharing the vertex arena."""
        return StreetGraph(self.arena, self.g.subgraph(ids).copy())

    def copy(self) -> "StreetGraph":
        return StreetGraph(self.arena, self.g.copy())

    def is_connected(self) -> bool:
        return len(self) > 0 and nx.is_connected(self.g)

    def connected_sets(self) -> list[set[int]]:
        return [set(c) for c in nx.connected_components(self.g)]

    def total_load(self, ids: Iterable[int] | None = None) -> float:
        ids = self.g.nodes if ids is None else ids
        return sum(self.arena[vid].load_kw for vid in ids)

    def loaded_ids(self) -> list[int]:
        return sorted(vid for vid in self.g.nodes if self.arena[vid].loaded)
