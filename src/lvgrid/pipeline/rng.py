# pipeline/rng.py
from dataclasses import dataclass
from zlib import crc32

import numpy as np


def _u32(x: int) -> int:
    return int(x & 0xFFFFFFFF)


def _word(part: object) -> int:
    if isinstance(part, (int, np.integer)):
        return _u32(int(part))
    return _u32(crc32(str(part).encode("utf-8")))


@dataclass(frozen=True)
class RNGKey:
    """Stream name plus substream parts (region index, ...), each folded to a u32 word."""

    stream: str
    words: tuple[int, ...]

    @classmethod
    def of(cls, stream: str, *parts: object) -> "RNGKey":
        return cls(stream=stream, words=(_word(stream), *(_word(p) for p in parts)))


class RNGRegistry:
    """
    Seeds numpy Generators from [master_seed, scenario, *key.words].

    Nothing is cached: every call builds a new generator, so asking twice for the same
    key replays the same draws. Clustering asks for substream("medoids", region) once per
    run, which keeps repeated runs on one registry reproducible and keeps regions
    independent of each other.
    """

    def __init__(self, master_seed: int, *, scenario: str | int = 0):
        self.master_seed = _u32(master_seed)
        self.scenario_word = _word(str(scenario))

    def seed_sequence(self, key: RNGKey) -> np.random.SeedSequence:
        return np.random.SeedSequence(entropy=[self.master_seed, self.scenario_word, *key.words])

    def generator(self, key: RNGKey) -> np.random.Generator:
        return np.random.default_rng(self.seed_sequence(key))

    def stream(self, name: str) -> np.random.Generator:
        return self.generator(RNGKey.of(name))

    def substream(self, name: str, *parts: object) -> np.random.Generator:
        return self.generator(RNGKey.of(name, *parts))
