# tests/pipeline/test_rng_streams.py
import numpy as np

from lvgrid.pipeline.rng import RNGKey, RNGRegistry


def test_named_streams_are_deterministic():
    reg1 = RNGRegistry(123, scenario="A")
    reg2 = RNGRegistry(123, scenario="A")
    a1 = reg1.stream("medoids").random(5)
    a2 = reg2.stream("medoids").random(5)
    assert np.allclose(a1, a2)


def test_streams_are_independent():
    reg = RNGRegistry(123)
    a = reg.stream("medoids").random(5)
    b = reg.stream("jitter").random(5)
    assert not np.allclose(a, b)


def test_region_substreams_are_order_invariant():
    reg = RNGRegistry(123)
    g0 = reg.substream("medoids", 0)
    g3 = reg.substream("medoids", 3)
    # drawing region 3 before region 0 yields the same medoids for each
    reg2 = RNGRegistry(123)
    g3b = reg2.substream("medoids", 3)
    g0b = reg2.substream("medoids", 0)
    assert np.allclose(g0.random(3), g0b.random(3))
    assert np.allclose(g3.random(3), g3b.random(3))


def test_scenarios_are_disjoint():
    a = RNGRegistry(123, scenario="town").stream("medoids").random(10)
    b = RNGRegistry(123, scenario="village").stream("medoids").random(10)
    assert not np.allclose(a, b)


def test_same_key_gives_fresh_generators_that_replay_the_same_draws():
    reg = RNGRegistry(7)
    first = reg.substream("medoids", 1)
    second = reg.substream("medoids", 1)
    assert first is not second
    assert np.allclose(first.random(4), second.random(4))


def test_keys_fold_parts_to_u32_words():
    key = RNGKey.of("medoids", 1, "north")
    assert key == RNGKey.of("medoids", 1, "north")
    assert key.words[1] == 1
    assert all(0 <= w <= 0xFFFFFFFF for w in key.words)
    assert RNGKey.of("medoids", -1).words[1] == 0xFFFFFFFF
