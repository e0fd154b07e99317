# lvgrid/synthesis/lines.py
import logging
from dataclasses import dataclass, field
from enum import Enum

from lvgrid.domain.entities.geography import LatLon
from lvgrid.domain.entities.graph import StreetGraph
from lvgrid.domain.geometry import haversine_m, polyline_length_m

log = logging.getLogger(__name__)


class VisitState(Enum):
    UNVISITED = 0
    IN_PROGRESS = 1  # on the stack, edges left to explore
    DONE = 2


@dataclass
class Line:
    start: int
    end: int
    geometry: list[LatLon]  # start, waypoints..., end
    length_m: float

    @property
    def waypoints(self) -> list[LatLon]:
        return self.geometry[1:-1]


@dataclass
class ServiceConnection:
    vertex: int
    street: LatLon
    house: LatLon
    length_m: float


def is_significant(graph: StreetGraph, vid: int) -> bool:
    v = graph.vertex(vid)
    return v.loaded or v.substation or graph.degree(vid) > 2


@dataclass
class _Frame:
    vid: int
    anchor: int | None
    trail: list[int]
    pending: list[int] = field(default_factory=list)


def synthesize_lines(graph: StreetGraph) -> list[Line]:
    """
    Depth-first walk that emits one line per maximal path between significant vertices.
    Every edge is walked once. Paths that close on their own start or run into an
    unloaded dead end produce no line.
    """
    state = {vid: VisitState.UNVISITED for vid in graph.ids()}
    used: set[frozenset[int]] = set()
    lines: list[Line] = []
    dropped = 0

    def emit(trail: list[int]) -> None:
        nonlocal dropped
        if trail[0] == trail[-1]:
            dropped += 1
            return
        geometry = [graph.vertex(vid).position for vid in trail]
        lines.append(Line(trail[0], trail[-1], geometry, polyline_length_m(geometry)))

    def frame(vid: int, anchor: int | None, trail: list[int]) -> _Frame:
        state[vid] = VisitState.IN_PROGRESS
        if is_significant(graph, vid):
            anchor, trail = vid, [vid]
        return _Frame(vid, anchor, trail, sorted(graph.neighbors(vid), reverse=True))

    significant = sorted(vid for vid in graph.ids() if is_significant(graph, vid))
    rest = sorted(graph.ids() - set(significant))
    for root in significant + rest:
        if state[root] is not VisitState.UNVISITED:
            continue
        stack = [frame(root, None, [])]
        while stack:
            top = stack[-1]
            nxt = None
            while top.pending:
                n = top.pending.pop()
                edge = frozenset((top.vid, n))
                if edge not in used:
                    used.add(edge)
                    nxt = n
                    break
            if nxt is None:
                state[top.vid] = VisitState.DONE
                stack.pop()
                continue

            trail = top.trail + [nxt]
            if is_significant(graph, nxt):
                if top.anchor is not None:
                    emit(trail)
                if state[nxt] is VisitState.UNVISITED:
                    stack.append(frame(nxt, None, []))
            elif state[nxt] is VisitState.UNVISITED:
                if graph.degree(nxt) < 2:
                    # unloaded dead end: the path carries nothing
                    state[nxt] = VisitState.DONE
                    dropped += 1
                else:
                    stack.append(frame(nxt, top.anchor, trail))

    if dropped:
        log.debug("paths without line", extra={"extra": {"dropped": dropped, "lines": len(lines)}})
    return lines


def service_connections(graph: StreetGraph) -> list[ServiceConnection]:
    """Service line from each loaded vertex to its house-connection point, where the two differ."""
    out = []
    for vid in sorted(graph.ids()):
        v = graph.vertex(vid)
        if not v.loaded or v.house_connection is None or v.house_connection == v.position:
            continue
        out.append(ServiceConnection(vid, v.position, v.house_connection, haversine_m(v.position, v.house_connection)))
    return out
