"""Tests for record validation and deduplication."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from candle_builder.data.models import RawRecord
from candle_builder.data.validation import check_record, deduplicate, is_page_valid, reject_seen
from candle_builder.errors import MalformedPage

TS = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_reject_seen_drops_ids_at_or_below_high_water() -> None:
    rows = [{"id": 4}, {"id": "5"}, {"id": 6}, {"id": None}]

    kept = reject_seen(rows, 5)

    assert kept == [{"id": 6}, {"id": None}]


def test_reject_seen_without_high_water_keeps_everything() -> None:
    rows = [{"id": 1}, {"id": 2}]

    assert reject_seen(rows, None) == rows


def test_is_page_valid() -> None:
    assert is_page_valid([], "id")
    assert is_page_valid([{"id": 1}, {"id": None}], "id")
    assert not is_page_valid([{"id": None}, {"id": 1}], "id")


def test_deduplicate_sorts_by_id() -> None:
    records = [
        RawRecord(id=3, timestamp=TS, price=Decimal("1"), quantity=Decimal("1")),
        RawRecord(id=1, timestamp=TS, price=Decimal("1"), quantity=Decimal("1")),
        RawRecord(id=3, timestamp=TS, price=Decimal("2"), quantity=Decimal("1")),
    ]

    result = deduplicate(records)

    assert [record.id for record in result] == [1, 3]
    assert result[1].price == Decimal("1")


@pytest.mark.parametrize(
    "record",
    [
        RawRecord(id=1, timestamp=TS, price=Decimal("0"), quantity=Decimal("1")),
        RawRecord(id=1, timestamp=TS, price=Decimal("1"), quantity=Decimal("-1")),
        RawRecord(id=1, timestamp=TS, price=Decimal("1"), quantity=Decimal("1"), quote_quantity=Decimal("-2")),
        RawRecord(
            id=1,
            timestamp=TS,
            price=Decimal("5"),
            quantity=Decimal("1"),
            open=Decimal("4"),
            high=Decimal("4.5"),
            low=Decimal("3"),
        ),
    ],
)
def test_check_record_rejects_inconsistent_values(record: RawRecord) -> None:
    with pytest.raises(MalformedPage):
        check_record(record)


def test_check_record_accepts_consistent_kline() -> None:
    record = RawRecord(
        id=1,
        timestamp=TS,
        price=Decimal("4.2"),
        quantity=Decimal("1"),
        open=Decimal("4"),
        high=Decimal("4.5"),
        low=Decimal("3.9"),
    )

    assert check_record(record) is record
