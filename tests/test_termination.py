"""Tests for page termination policies."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from candle_builder.data import RawRecord, TerminationPolicy


def _records(*ids: int) -> list[RawRecord]:
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [RawRecord(id=i, timestamp=ts, price=Decimal("1"), quantity=Decimal("1")) for i in ids]


@pytest.mark.parametrize("policy", list(TerminationPolicy))
def test_first_page_is_new_and_empty_page_is_not(policy: TerminationPolicy) -> None:
    assert policy.is_new_page([], _records(1, 2))
    assert not policy.is_new_page([], [])
    assert not policy.is_new_page(_records(1, 2), [])


@pytest.mark.parametrize("policy", list(TerminationPolicy))
def test_disjoint_page_is_new(policy: TerminationPolicy) -> None:
    assert policy.is_new_page(_records(1, 2, 3), _records(4, 5, 6))


def test_min_max_stops_on_shared_boundary() -> None:
    seen = _records(10, 11, 12)

    assert not TerminationPolicy.MIN_MAX.is_new_page(seen, _records(10, 20))
    assert not TerminationPolicy.MIN_MAX.is_new_page(seen, _records(5, 12))
    assert TerminationPolicy.MIN_MAX.is_new_page(seen, _records(11, 13))


def test_first_last_compares_sequence_ends() -> None:
    seen = _records(1, 2, 3)

    assert not TerminationPolicy.FIRST_LAST.is_new_page(seen, _records(3, 4))
    assert not TerminationPolicy.FIRST_LAST.is_new_page(seen, _records(0, 1))
    assert TerminationPolicy.FIRST_LAST.is_new_page(seen, _records(2, 4))


def test_first_last_ignores_arrival_order() -> None:
    cases = [((1, 2), (1, 5)), ((10, 11, 12), (12, 13)), ((4, 5, 6), (2, 3, 4)), ((1, 2, 3), (7, 8))]

    for seen, page in cases:
        ascending = TerminationPolicy.FIRST_LAST.is_new_page(_records(*seen), _records(*page))
        newest_first = TerminationPolicy.FIRST_LAST.is_new_page(_records(*reversed(seen)), _records(*reversed(page)))
        assert ascending == newest_first

    assert TerminationPolicy.FIRST_LAST.is_new_page(_records(2, 1), _records(1, 5))
    assert not TerminationPolicy.FIRST_LAST.is_new_page(_records(12, 11, 10), _records(13, 12))


def test_full_detects_any_unseen_id() -> None:
    seen = _records(1, 2, 3)

    assert not TerminationPolicy.FULL.is_new_page(seen, _records(3, 2))
    assert TerminationPolicy.FULL.is_new_page(seen, _records(3, 4))
    assert not TerminationPolicy.FULL.is_new_page(seen, _records(2))


def test_policy_parses_from_configuration_value() -> None:
    assert TerminationPolicy("first_last") is TerminationPolicy.FIRST_LAST
