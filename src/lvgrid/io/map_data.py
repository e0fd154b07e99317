# lvgrid/io/map_data.py
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from lvgrid.domain.entities.geography import BoundingBox, MapNode, Way

log = logging.getLogger(__name__)

LAND_USE_VALUES = ("residential", "commercial", "retail", "farmyard")

HIGHWAY_VALUES = (
    "residential",
    "unclassified",
    "secondary",
    "tertiary",
    "living_street",
    "footway",
    "path",
    "primary",
    "service",
    "cycleway",
    "proposed",
    "bus_stop",
    "steps",
    "track",
    "traffic_signals",
    "turning_cycle",
)


def is_building(way: Way) -> bool:
    return way.has_tag("building")


def is_real_substation(way: Way) -> bool:
    return way.has_tag("building", "transformer_tower") or way.has_tag("power", "sub_station")


def is_land_use(way: Way) -> bool:
    return way.tags.get("landuse") in LAND_USE_VALUES


def is_highway(way: Way) -> bool:
    return way.tags.get("highway") in HIGHWAY_VALUES


@dataclass
class MapData:
    """Pre-classified ways handed to the synthesis pipeline by a map-data provider."""

    buildings: list[Way]
    land_uses: list[Way]
    highways: list[Way]
    bbox: BoundingBox
    real_substations: set[int] = field(default_factory=set)  # building way ids

    @classmethod
    def from_ways(cls, ways: Iterable[Way], bbox: BoundingBox | None = None) -> "MapData":
        """
        Classify raw ways by their tags. A way may fall in more than one class.
        Without an explicit bbox, the box around every node of every way is used.
        """
        ways = list(ways)
        buildings = [w for w in ways if is_building(w)]
        substations = {w.id for w in buildings if is_real_substation(w)}
        # grouped by land-use value, in the order of LAND_USE_VALUES
        land_uses = [w for value in LAND_USE_VALUES for w in ways if w.tags.get("landuse") == value]
        highways = [w for w in ways if is_highway(w)]

        if bbox is None:
            bbox = BoundingBox.around(n.position for w in ways for n in w.nodes)

        log.debug(
            "classified ways",
            extra={
                "extra": {
                    "buildings": len(buildings),
                    "land_uses": len(land_uses),
                    "highways": len(highways),
                    "real_substations": len(substations),
                }
            },
        )
        return cls(
            buildings=buildings,
            land_uses=land_uses,
            highways=highways,
            bbox=bbox,
            real_substations=substations,
        )

    def max_node_id(self) -> int:
        ids = [n.id for group in (self.buildings, self.land_uses, self.highways) for w in group for n in w.nodes]
        return max(ids, default=0)


# ------------------ plain-data conversion ------------------


def way_from_dict(d: dict) -> Way:
    nodes = [MapNode(int(n["id"]), float(n["lat"]), float(n["lon"])) for n in d["nodes"]]
    return Way(id=int(d["id"]), nodes=nodes, tags={str(k): str(v) for k, v in d.get("tags", {}).items()})


def way_to_dict(way: Way) -> dict:
    return {
        "id": way.id,
        "nodes": [{"id": n.id, "lat": n.lat, "lon": n.lon} for n in way.nodes],
        "tags": dict(way.tags),
    }
