"""Policies deciding whether a freshly fetched page still contains new data."""
from __future__ import annotations

from enum import Enum
from typing import Sequence

from candle_builder.data.models import RawRecord


class TerminationPolicy(str, Enum):
    """Strategy comparing a page against everything accumulated so far.

    ``MIN_MAX`` compares boundary ids. ``FIRST_LAST`` compares the lowest and
    highest accumulated ids with the opposite ends of the page, both taken in
    id order so that the arrival order of rows does not matter. ``FULL`` treats
    a page as new unless its ids are a subset of the accumulated ids.
    """

    MIN_MAX = "min_max"
    FIRST_LAST = "first_last"
    FULL = "full"

    def is_new_page(self, accumulated: Sequence[RawRecord], page: Sequence[RawRecord]) -> bool:
        """Return True when ``page`` should be accepted and retrieval continue."""

        if not page:
            return False
        if not accumulated:
            return True

        page_ids = sorted(record.id for record in page)
        seen_ids = sorted(record.id for record in accumulated)

        if self is TerminationPolicy.MIN_MAX:
            return not (page_ids[0] == seen_ids[0] or page_ids[-1] == seen_ids[-1])

        if self is TerminationPolicy.FULL:
            return not set(page_ids) <= set(seen_ids)

        return seen_ids[0] != page_ids[-1] and seen_ids[-1] != page_ids[0]


__all__ = ["TerminationPolicy"]
