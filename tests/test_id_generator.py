from itertools import count

import pytest

from conquest.id_generator import NODE_BITS, SEQUENCE_BITS, SEQUENCE_MASK, SnowflakeGenerator


def test_ids_are_unique_and_increasing():
    generator = SnowflakeGenerator(node_id=3)
    ids = [generator.generate() for _ in range(5000)]
    assert len(set(ids)) == len(ids)
    assert ids == sorted(ids)
    assert all(0 < i < 2**63 for i in ids)


def test_node_id_is_embedded():
    generator = SnowflakeGenerator(node_id=513)
    generated = generator.generate()
    assert (generated >> SEQUENCE_BITS) & ((1 << NODE_BITS) - 1) == 513


@pytest.mark.parametrize("node_id", [-1, 1 << NODE_BITS])
def test_node_id_out_of_range(node_id):
    with pytest.raises(ValueError):
        SnowflakeGenerator(node_id=node_id)


def test_ids_spread_evenly_over_shards_within_one_millisecond():
    generator = SnowflakeGenerator(node_id=0, clock=lambda: 1_700_000_000.0)
    ids = [generator.generate() for _ in range(100)]
    assert sum(1 for i in ids if i % 2 == 0) == 50


def test_clock_moving_backwards_keeps_ids_increasing():
    ticks = iter([1_700_000_000.010, 1_700_000_000.005, 1_700_000_000.011])
    generator = SnowflakeGenerator(node_id=1, clock=lambda: next(ticks))
    ids = [generator.generate() for _ in range(3)]
    assert ids == sorted(ids)
    assert len(set(ids)) == 3


def test_sequence_wrap_moves_to_the_next_millisecond():
    calls = count()
    # the clock stands still for the first 4100 readings
    generator = SnowflakeGenerator(
        node_id=2, clock=lambda: 1_700_000_000.0 if next(calls) < 4100 else 1_700_000_001.0
    )
    ids = [generator.generate() for _ in range(5000)]

    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)
    timestamps = [i >> (NODE_BITS + SEQUENCE_BITS) for i in ids]
    assert len(set(timestamps[:SEQUENCE_MASK])) == 1
    assert timestamps[SEQUENCE_MASK] > timestamps[0]
    assert ids[SEQUENCE_MASK] & SEQUENCE_MASK == 0
