# lvgrid/synthesis/cleaner.py
import logging

from lvgrid.domain.entities.graph import StreetGraph

log = logging.getLogger(__name__)


def dead_ends(graph: StreetGraph) -> list[int]:
    return [v.id for v in graph if not v.loaded and graph.degree(v.id) < 2]


def clean_graph(graph: StreetGraph) -> int:
    """
    Remove unloaded vertices of degree < 2 until none is left. Mutates graph and returns
    the number of removed vertices. Running it again on the result removes nothing.
    """
    removed = 0
    while True:
        batch = dead_ends(graph)
        if not batch:
            break
        graph.remove_vertices(batch)
        removed += len(batch)
    if removed:
        log.debug("graph cleaned", extra={"extra": {"removed": removed, "remaining": len(graph)}})
    return removed


def refresh_weights(graph: StreetGraph) -> None:
    graph.refresh_weights()
