"""Fingerprint and TTL dedup behaviour."""

from __future__ import annotations

import pytest

pytest.importorskip("pydantic")

from common.models import FillEvent, RawEvent
from relay.dedup import DEFAULT_TTL_SECONDS, DedupCache, fingerprint
from relay.normalize import normalize_message


class _Clock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def _fill(**fields: object) -> FillEvent:
    base = {
        "address": "0xAbC",
        "hash": "0xdead",
        "oid": 7,
        "time": 1700000000000,
        "coin": "BTC",
        "px": "65000.0",
        "sz": "0.5",
    }
    base.update(fields)
    return FillEvent.model_validate(base)


def test_fingerprint_ignores_which_alias_supplied_a_value() -> None:
    canonical = FillEvent.model_validate(
        {
            "address": "0xabc",
            "txHash": "0xdead",
            "orderId": 7,
            "time": 1700000000000,
            "coin": "BTC",
            "price": "65000.0",
            "size": "0.5",
        }
    )
    aliased = _fill()

    assert fingerprint(canonical) == fingerprint(aliased)


def test_fingerprint_matches_between_stream_and_poll_shapes() -> None:
    stream_event = normalize_message(
        {"fills": [{"user": "0xabc", "hash": "0xdead", "oid": 7, "time": 1700000000000,
                    "coin": "BTC", "px": "65000.0", "sz": "0.5"}]}
    )[0]

    assert fingerprint(stream_event) == fingerprint(_fill(address="0xabc"))


def test_fingerprint_separates_kinds_and_values() -> None:
    fill = _fill()
    raw = RawEvent.model_validate(fill.model_dump(exclude={"kind"}))

    assert fingerprint(fill) != fingerprint(raw)
    assert fingerprint(_fill(sz="0.5")) != fingerprint(_fill(sz="0.6"))


def test_separator_characters_in_values_do_not_collide() -> None:
    first = _fill(coin="A|B", px="1")
    second = _fill(coin="A", px="B|1")

    assert fingerprint(first) != fingerprint(second)


def test_integral_floats_and_ints_agree() -> None:
    assert fingerprint(_fill(time=100)) == fingerprint(_fill(time=100.0))


def test_should_emit_suppresses_within_ttl_and_reopens_after() -> None:
    clock = _Clock()
    cache = DedupCache(clock=clock)
    event = _fill()

    assert cache.should_emit(event) is True
    assert cache.should_emit(event) is False

    clock.now += DEFAULT_TTL_SECONDS - 1
    assert cache.should_emit(event) is False

    clock.now += 1
    assert cache.should_emit(event) is True


def test_duplicate_hits_do_not_extend_the_window() -> None:
    clock = _Clock()
    cache = DedupCache(ttl=10, clock=clock)
    event = _fill()

    cache.should_emit(event)
    clock.now += 9
    assert cache.should_emit(event) is False
    clock.now += 1
    assert cache.should_emit(event) is True


def test_event_without_identifying_fields_always_passes() -> None:
    cache = DedupCache(clock=_Clock())
    empty = RawEvent()

    assert fingerprint(empty) == ""
    assert cache.should_emit(empty) is True
    assert cache.should_emit(empty) is True
    assert len(cache) == 0


def test_sweep_removes_only_expired_entries() -> None:
    clock = _Clock()
    cache = DedupCache(ttl=60, clock=clock)
    cache.should_emit(_fill(oid=1))
    clock.now += 30
    cache.should_emit(_fill(oid=2))

    clock.now += 30
    assert cache.sweep() == 1
    assert len(cache) == 1

    clock.now += 30
    assert cache.sweep() == 1
    assert len(cache) == 0
