"""Page validation and deduplication for retrieved exchange records."""
from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Sequence

from candle_builder.data.models import RawRecord
from candle_builder.errors import MalformedPage


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def reject_seen(rows: Sequence[Mapping[str, Any]], high_water: int | None) -> List[Mapping[str, Any]]:
    """Drop rows whose id is at or below the previously persisted high-water id.

    Rows without a readable id are kept so that page validation can flag them.
    """

    if high_water is None:
        return list(rows)

    kept: List[Mapping[str, Any]] = []
    for row in rows:
        if not row:
            continue
        record_id = _as_int(row.get("id"))
        if record_id is not None and record_id <= high_water:
            continue
        kept.append(row)
    return kept


def is_page_valid(rows: Sequence[Mapping[str, Any]], validation_key: str) -> bool:
    """Return True for an empty page or when the first row carries ``validation_key``."""

    if not rows:
        return True
    return rows[0].get(validation_key) is not None


def check_record(record: RawRecord) -> RawRecord:
    """Reject records whose values cannot produce a consistent candle."""

    if record.price <= 0:
        raise MalformedPage(f"non-positive price {record.price}", record=record.id)
    if record.quantity < 0:
        raise MalformedPage(f"negative quantity {record.quantity}", record=record.id)
    if record.quote_quantity is not None and record.quote_quantity < 0:
        raise MalformedPage(f"negative quote quantity {record.quote_quantity}", record=record.id)

    low, high = record.low_price, record.high_price
    if low > high or not (low <= record.open_price <= high) or not (low <= record.close_price <= high):
        raise MalformedPage("inconsistent open/high/low/close", record=record.id)
    return record


def deduplicate(records: Iterable[RawRecord]) -> List[RawRecord]:
    """Keep one record per id and order the result ascending by id."""

    unique: dict[int, RawRecord] = {}
    for record in records:
        unique.setdefault(record.id, record)
    return [unique[key] for key in sorted(unique)]


__all__ = ["reject_seen", "is_page_valid", "check_record", "deduplicate"]
