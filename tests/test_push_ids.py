import pytest

from bustracker.push_ids import PUSH_CHARS, generate_push_id


def test_push_id_shape():
    push_id = generate_push_id()
    assert len(push_id) == 20
    assert all(c in PUSH_CHARS for c in push_id)


def test_push_ids_are_unique_and_ordered():
    ids = [generate_push_id() for _ in range(500)]
    assert len(set(ids)) == len(ids)
    assert ids == sorted(ids)


def test_same_millisecond_ids_stay_ordered():
    now = 1_700_000_000_000
    first = generate_push_id(now)
    second = generate_push_id(now)
    assert first[:8] == second[:8]
    assert first < second


def test_clock_going_backwards_keeps_order():
    later = generate_push_id(1_800_000_000_000)
    earlier_clock = generate_push_id(1_700_000_000_000)
    assert later < earlier_clock


def test_later_time_sorts_after():
    a = generate_push_id(1_900_000_000_000)
    b = generate_push_id(1_900_000_000_001)
    assert a < b
    assert a[:8] < b[:8]


def test_timestamp_out_of_range():
    with pytest.raises(ValueError):
        generate_push_id(64 ** 8)
