"""Paginated trade retrieval with dedup and a termination heuristic."""
from __future__ import annotations

from typing import Any, List

import requests
from loguru import logger

from candle_builder.data.adapters import ExchangeAdapter
from candle_builder.data.models import RawRecord, RetrievalCursor
from candle_builder.data.validation import deduplicate, reject_seen
from candle_builder.errors import CandleBuildError, MalformedPage, RateLimited, TransportError

DEFAULT_TIMEOUT = 15.0
USER_AGENT = "candle-builder/0.1"


class TradeRetriever:
    """Fetch every record newer than a high-water id, one page at a time."""

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = USER_AGENT,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._timeout = timeout
        self._headers = {"User-Agent": user_agent, "Accept": "application/json"}

    def __enter__(self) -> "TradeRetriever":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def close(self) -> None:
        """Release the HTTP session when it was created here."""

        if self._owns_session:
            self._session.close()

    def retrieve(self, adapter: ExchangeAdapter, prior_high_water_id: int | None = None) -> List[RawRecord]:
        """Return new records for ``adapter`` ordered oldest first.

        Transport and upstream failures abort the whole retrieval; the terminal
        "out of range" response and malformed pages end it quietly.
        """

        cursor = RetrievalCursor(next_start=adapter.first_cursor(prior_high_water_id), last_seen=prior_high_water_id)
        results: List[RawRecord] = []

        logger.info(
            "Retrieving records from {adapter} (high-water id: {last_seen})",
            adapter=adapter.name,
            last_seen=prior_high_water_id if prior_high_water_id is not None else "N/A",
        )

        while not cursor.found:
            try:
                page = self._fetch_page(adapter, cursor)
            except RateLimited as signal:
                logger.info("{adapter}: no more data ({reason})", adapter=adapter.name, reason=signal.message)
                cursor.finish()
                break
            except MalformedPage as exc:
                logger.error("{adapter}: invalid data received: {error}", adapter=adapter.name, error=exc)
                cursor.finish()
                break
            except CandleBuildError as exc:
                raise exc.with_context(adapter=adapter.name, cursor=cursor.next_start)

            if not adapter.termination.is_new_page(results, page):
                cursor.finish()
                break

            logger.info(
                "{adapter}: start {start} => found {count} records",
                adapter=adapter.name,
                start=cursor.next_start if cursor.next_start is not None else "N/A",
                count=len(page),
            )
            results.extend(page)
            cursor.advance(adapter.next_cursor(page))

        ordered = deduplicate(results)
        logger.info(
            "{adapter}: {count} records in total retrieved over {pages} pages",
            adapter=adapter.name,
            count=len(ordered),
            pages=cursor.pages,
        )
        return ordered

    def _fetch_page(self, adapter: ExchangeAdapter, cursor: RetrievalCursor) -> List[RawRecord]:
        """Request, decode, dedup and validate one page."""

        url = adapter.build_request(cursor.next_start)
        logger.debug("GET {url}", url=url)
        try:
            response = self._session.get(url, headers=self._headers, timeout=self._timeout)
        except requests.RequestException as exc:
            raise TransportError(f"request failed: {exc}") from exc

        body = self._decode(response)
        rows = [adapter.normalise(row) for row in adapter.extract_page(response.status_code, body)]
        rows = reject_seen(rows, cursor.last_seen)
        if not adapter.is_page_valid(rows):
            raise MalformedPage(f"first record is missing '{adapter.config.validation_key}'")
        return [adapter.parse_record(row) for row in rows]

    @staticmethod
    def _decode(response: Any) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            if 200 <= response.status_code < 300:
                raise MalformedPage(f"error while parsing JSON: {exc}") from exc
            # Non-JSON error bodies are still upstream failures.
            return None


__all__ = ["TradeRetriever", "DEFAULT_TIMEOUT"]
