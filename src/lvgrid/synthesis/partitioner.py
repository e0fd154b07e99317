# lvgrid/synthesis/partitioner.py
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

from lvgrid.app.events import EmptyLandUsesRemoved, FragmentDropped, LandUseSkipped
from lvgrid.domain.entities.geography import LatLon, Way
from lvgrid.domain.entities.graph import StreetGraph
from lvgrid.domain.errors import ConvexHullError, GridGenerationError
from lvgrid.domain.geometry import convex_hull, ray_casting

log = logging.getLogger(__name__)

Report = Callable[[object], None]


def _ignore(_ev) -> None:
    return None


@dataclass
class Region:
    """Vertices of one hull (or one connected fragment of it) clustered together."""

    ids: frozenset[int]
    load_kw: float
    hull: int  # index into the hull list the region was collected from

    def __len__(self) -> int:
        return len(self.ids)


def clusters_needed(load_kw: float, capacity_kw: float) -> int:
    return max(1, math.ceil(load_kw / capacity_kw))


def remove_empty_land_uses(land_uses: list[Way], buildings: list[Way], *, report: Report = _ignore) -> list[Way]:
    centers = [b.center for b in buildings]
    kept = [lu for lu in land_uses if any(ray_casting(lu.points, c) for c in centers)]
    removed = len(land_uses) - len(kept)
    log.info("empty land uses removed", extra={"extra": {"removed": removed, "remaining": len(kept)}})
    if removed:
        report(EmptyLandUsesRemoved(count=removed, remaining=len(kept)))
    return kept


def build_convex_hulls(
    land_uses: list[Way],
    *,
    separate: bool = True,
    precision: int = 5,
    report: Report = _ignore,
) -> list[list[LatLon]]:
    """
    One hull per land use, or a single hull over the nodes of all land uses.
    A land use whose hull fails is skipped; no hull at all aborts the run.
    """
    if not land_uses:
        raise GridGenerationError("no land use left to build a convex hull from")

    if not separate:
        points = [n.position for lu in land_uses for n in lu.nodes]
        try:
            return [convex_hull(points, precision)]
        except ConvexHullError as e:
            raise GridGenerationError(f"could not build the convex hull over all land uses: {e}") from e

    hulls: list[list[LatLon]] = []
    last_error: ConvexHullError | None = None
    for lu in land_uses:
        try:
            hulls.append(convex_hull(lu.points, precision))
        except ConvexHullError as e:
            last_error = e
            log.warning("convex hull failed", extra={"extra": {"land_use": lu.id, "error": str(e)}})
            report(LandUseSkipped(land_use_id=lu.id, reason=str(e)))
    if not hulls:
        raise GridGenerationError("could not build a convex hull for any land use") from last_error
    return hulls


def assign_to_hulls(graph: StreetGraph, hulls: list[list[LatLon]]) -> list[set[int]]:
    """
    Each vertex joins the first hull containing its house-connection point, or failing
    that its own position. No vertex is assigned twice.
    """
    assigned: set[int] = set()
    order = sorted(graph.ids())
    sets: list[set[int]] = []
    for hull in hulls:
        members: set[int] = set()
        for vid in order:
            if vid in assigned:
                continue
            v = graph.vertex(vid)
            if (v.house_connection is not None and ray_casting(hull, v.house_connection)) or ray_casting(
                hull, v.position
            ):
                members.add(vid)
                assigned.add(vid)
        sets.append(members)
    return sets


def split_disconnected(
    graph: StreetGraph,
    candidates: list[set[int]],
    *,
    min_load_kw: float,
    report: Report = _ignore,
) -> list[Region]:
    regions: list[Region] = []
    dropped = 0
    for hull_idx, members in enumerate(candidates):
        if not members:
            continue
        sub = graph.subgraph(members)
        if sub.is_connected():
            regions.append(Region(frozenset(members), sub.total_load(), hull_idx))
            continue
        for part in sorted(sub.connected_sets(), key=min):
            load = graph.total_load(part)
            if load < min_load_kw:
                dropped += 1
                report(FragmentDropped(size=len(part), load_kw=load, min_load_kw=min_load_kw))
            else:
                regions.append(Region(frozenset(part), load, hull_idx))
    log.info("unconnected fragments left out", extra={"extra": {"dropped": dropped, "regions": len(regions)}})
    return regions


def partition(
    graph: StreetGraph,
    land_uses: list[Way],
    buildings: list[Way],
    *,
    separate: bool,
    precision: int,
    min_load_kw: float,
    report: Report = _ignore,
) -> list[Region]:
    land_uses = remove_empty_land_uses(land_uses, buildings, report=report)
    hulls = build_convex_hulls(land_uses, separate=separate, precision=precision, report=report)
    candidates = assign_to_hulls(graph, hulls)
    regions = split_disconnected(graph, candidates, min_load_kw=min_load_kw, report=report)

    kept = []
    for region in regions:
        if region.load_kw <= 0:
            log.debug("unloaded region skipped", extra={"extra": {"size": len(region), "hull": region.hull}})
            continue
        kept.append(region)
    return kept
