# lvgrid/runtime/resources.py
import json
import pickle
from functools import lru_cache

from lvgrid.domain.entities.geography import BoundingBox
from lvgrid.io.map_data import MapData, way_from_dict


@lru_cache(maxsize=8)
def load_map_data_from_path(file: str, fmt: str) -> MapData:
    """
    Load pre-parsed ways. JSON layout: {"ways": [{"id", "nodes": [{"id", "lat", "lon"}], "tags"}],
    "bbox": {"min_lat", "max_lat", "min_lon", "max_lon"}} with bbox optional.
    A pickle holds either a MapData or a list of Way objects.
    """
    if fmt == "json":
        with open(file, encoding="utf-8") as f:
            raw = json.load(f)
        bbox = BoundingBox(**raw["bbox"]) if raw.get("bbox") else None
        return MapData.from_ways((way_from_dict(w) for w in raw["ways"]), bbox=bbox)
    if fmt == "pickle":
        with open(file, "rb") as f:
            obj = pickle.load(f)
        return obj if isinstance(obj, MapData) else MapData.from_ways(obj)
    raise ValueError(f"Unsupported map data fmt {fmt!r}")
