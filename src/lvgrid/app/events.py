# app/events.py
from dataclasses import dataclass


# Partitioning
@dataclass
class EmptyLandUsesRemoved:
    count: int
    remaining: int


@dataclass
class LandUseSkipped:
    land_use_id: int
    reason: str


@dataclass
class FragmentDropped:
    size: int
    load_kw: float
    min_load_kw: float


# Clustering
@dataclass
class ClusterDisconnected:
    cluster: int
    parts: int
    stage: str  # "initial_assignment" | "finalization"


@dataclass
class ClusterDropped:
    cluster: int
    load_kw: float
    min_load_kw: float
