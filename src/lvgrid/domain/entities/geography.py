from dataclasses import dataclass, field


# Core geometry types consumed by the synthesis stages
@dataclass(frozen=True)
class LatLon:
    lat: float  # degrees, WGS84
    lon: float


@dataclass(frozen=True)
class MapNode:
    id: int
    lat: float
    lon: float

    @property
    def position(self) -> LatLon:
        return LatLon(self.lat, self.lon)


@dataclass
class Way:
    """Ordered sequence of map nodes plus descriptive tags."""

    id: int
    nodes: list[MapNode]
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def closed(self) -> bool:
        return len(self.nodes) > 2 and self.nodes[0].id == self.nodes[-1].id

    @property
    def points(self) -> list[LatLon]:
        return [n.position for n in self.nodes]

    @property
    def center(self) -> LatLon:
        # closing node of a polygon would be counted twice
        nodes = self.nodes[:-1] if self.closed else self.nodes
        n = len(nodes)
        return LatLon(sum(p.lat for p in nodes) / n, sum(p.lon for p in nodes) / n)

    def has_tag(self, key: str, value: str | None = None) -> bool:
        if key not in self.tags:
            return False
        return value is None or self.tags[key] == value


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @classmethod
    def around(cls, points) -> "BoundingBox":
        pts = list(points)
        if not pts:
            raise ValueError("cannot build a bounding box from zero points")
        return cls(
            min_lat=min(p.lat for p in pts),
            max_lat=max(p.lat for p in pts),
            min_lon=min(p.lon for p in pts),
            max_lon=max(p.lon for p in pts),
        )

    def contains(self, p: LatLon) -> bool:
        return self.min_lat <= p.lat <= self.max_lat and self.min_lon <= p.lon <= self.max_lon
