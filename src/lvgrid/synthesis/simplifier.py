# lvgrid/synthesis/simplifier.py
"""
Pooling of dead-end chains and single-branch cycles into representative vertices.

Representatives live in the shared vertex arena, so their pooled load is visible from
every view until the map is expanded again. Expansion (or restore) puts every
representative back to the load it carried before its first pooling.
"""

import logging
from dataclasses import dataclass, field

import networkx as nx

from lvgrid.domain.entities.graph import StreetGraph

log = logging.getLogger(__name__)


@dataclass
class SimplificationMap:
    members: dict[int, set[int]] = field(default_factory=dict)
    base_load: dict[int, float | None] = field(default_factory=dict)
    # substation flags handed from subsumed vertices to their representative
    base_flag: dict[int, bool] = field(default_factory=dict)
    moved_flags: dict[int, set[int]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.members)

    def __contains__(self, vid: int) -> bool:
        return vid in self.members

    def subsumed(self) -> set[int]:
        return set().union(*self.members.values()) if self.members else set()

    def pool(self, graph: StreetGraph, rep: int, members, added_load: float) -> None:
        v = graph.vertex(rep)
        self.base_load.setdefault(rep, v.load)
        if v.loaded or added_load > 0:
            v.load = v.load_kw + added_load
        self.members.setdefault(rep, set()).update(members)
        self.members[rep].discard(rep)

        flagged = [m for m in members if m != rep and graph.vertex(m).substation]
        if flagged:
            self.base_flag.setdefault(rep, v.substation)
            self.moved_flags.setdefault(rep, set()).update(flagged)
            for m in flagged:
                graph.vertex(m).substation = False
            v.substation = True

    def expand(self, graph: StreetGraph, clusters: list[set[int]]) -> None:
        """
        Replay the map onto clustered vertices: members inherit their representative's
        cluster and join its set, representatives get their pre-pooling load back.
        Substation flags pooled into a representative stay with whatever the clustering
        made of it, so each cluster keeps only its medoid flagged. Entries are consumed;
        whatever could not be replayed is restored as if nothing had been pooled.
        """
        work = [rep for rep in sorted(self.members) if graph.vertex(rep).cluster >= 0]
        while work:
            rep = work.pop()
            members = self.members.pop(rep, None)
            if members is None:
                continue
            v = graph.vertex(rep)
            v.load = self.base_load.pop(rep)
            self.base_flag.pop(rep, None)
            self.moved_flags.pop(rep, None)
            for m in members:
                graph.vertex(m).cluster = v.cluster
                clusters[v.cluster].add(m)
                if m in self.members:
                    work.append(m)
        if self.members:
            log.warning("unclustered representatives", extra={"extra": {"count": len(self.members)}})
        self.restore(graph)

    def restore(self, graph: StreetGraph) -> None:
        for rep, load in self.base_load.items():
            graph.vertex(rep).load = load
        # latest pooling first: a representative may itself have been pooled later on
        for rep in reversed(list(self.base_flag)):
            graph.vertex(rep).substation = self.base_flag[rep]
            for m in self.moved_flags.get(rep, ()):
                graph.vertex(m).substation = True
        self.base_load.clear()
        self.base_flag.clear()
        self.moved_flags.clear()
        self.members.clear()


def walk_dead_end(graph: StreetGraph, start: int) -> tuple[int, list[int], float]:
    """
    Follow a chain of degree-2 vertices away from the degree-1 vertex start.
    Returns the first vertex whose degree differs from 2, the walked vertices
    (start first) and their summed load.
    """
    path = [start]
    load = graph.vertex(start).load_kw
    prev, cur = start, graph.neighbors(start)[0]
    while graph.degree(cur) == 2:
        path.append(cur)
        load += graph.vertex(cur).load_kw
        prev, cur = cur, next(n for n in graph.neighbors(cur) if n != prev)
    return cur, path, load


def pool_dead_ends(graph: StreetGraph, smap: SimplificationMap) -> bool:
    changed = False
    for vid in sorted(v.id for v in graph if graph.degree(v.id) == 1):
        # an earlier walk may have consumed or isolated this one
        if vid not in graph or graph.degree(vid) != 1:
            continue
        terminal, path, load = walk_dead_end(graph, vid)
        smap.pool(graph, terminal, path, load)
        graph.remove_vertices(path)
        changed = True
    return changed


def pool_cycles(graph: StreetGraph, smap: SimplificationMap, max_load_kw: float) -> bool:
    changed = False
    blocks = [b for b in nx.biconnected_components(graph.g) if len(b) > 2]
    for block in sorted(blocks, key=min):
        if not all(vid in graph for vid in block):
            continue
        branch = [vid for vid in block if graph.degree(vid) > 2]
        if len(branch) != 1:
            continue
        load = graph.total_load(block)
        if load >= max_load_kw:
            continue
        rep = branch[0]
        others = block - {rep}
        smap.pool(graph, rep, others, graph.total_load(others))
        graph.remove_vertices(others)
        changed = True
    return changed


def simplify(region: StreetGraph, max_load_kw: float) -> tuple[StreetGraph, SimplificationMap]:
    """Pool dead ends and single-branch cycles on a copy of region until neither applies."""
    graph = region.copy()
    smap = SimplificationMap()
    passes = 0
    while True:
        passes += 1
        pooled_ends = pool_dead_ends(graph, smap)
        pooled_cycles = pool_cycles(graph, smap, max_load_kw)
        if not (pooled_ends or pooled_cycles):
            break
    log.debug(
        "graph simplified",
        extra={"extra": {"before": len(region), "after": len(graph), "representatives": len(smap), "passes": passes}},
    )
    return graph, smap
