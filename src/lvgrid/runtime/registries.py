# runtime/registries.py
from collections.abc import Callable
from typing import Any

from lvgrid.app.protocols import MedoidInitializer
from lvgrid.config.models import MedoidInitPlusPlusModel, MedoidInitRandomModel, MedoidInitUnion
from lvgrid.synthesis.medoid_init import PlusPlusMedoids, RandomMedoids

MedoidInitFactory = Callable[[MedoidInitUnion, Any], MedoidInitializer]

_medoid_init_registry: dict[str, MedoidInitFactory] = {}


# ------------------- Medoid initializer registry ---------------------------


def register_medoid_init(kind: str):
    def deco(fn: MedoidInitFactory):
        _medoid_init_registry[kind] = fn
        return fn

    return deco


def make_medoid_init(cfg: MedoidInitUnion, *, deps: dict | None = None) -> MedoidInitializer:
    try:
        factory = _medoid_init_registry[cfg.kind]
    except KeyError:
        raise ValueError(f"Unknown medoid init kind {cfg.kind!r}")
    return factory(cfg, deps or {})


@register_medoid_init("random")
def _make_random(cfg: MedoidInitRandomModel, deps):
    return RandomMedoids()


@register_medoid_init("plus_plus")
def _make_plus_plus(cfg: MedoidInitPlusPlusModel, deps):
    return PlusPlusMedoids()
