"""Fake exchange sessions shared by the retrieval and build tests."""
from __future__ import annotations

import json
from typing import Any, Callable, Iterable, List
from urllib.parse import parse_qs, urlparse

import pytest

BASE_MS = 1_600_000_000_000


def agg_trade(trade_id: int, seconds: float, price: str = "10", qty: str = "1") -> dict:
    """Binance aggTrades row ``seconds`` after a fixed epoch."""

    return {"a": trade_id, "p": price, "q": qty, "T": BASE_MS + int(seconds * 1000), "m": False}


class FakeResponse:
    def __init__(self, status_code: int, body: Any = None, text: str | None = None) -> None:
        self.status_code = status_code
        self._body = body
        self._text = text

    def json(self) -> Any:
        if self._text is not None:
            return json.loads(self._text)
        return self._body


class ScriptedSession:
    """Serve canned responses in order, then empty pages."""

    def __init__(self, script: Iterable[Any]) -> None:
        self._script = list(script)
        self.urls: List[str] = []

    def get(self, url: str, headers=None, timeout=None) -> FakeResponse:
        self.urls.append(url)
        if not self._script:
            return FakeResponse(200, [])
        item = self._script.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, str):
            return FakeResponse(200, text=item)
        status, body = item
        return FakeResponse(status, body)

    def close(self) -> None:
        pass


class PagedTradeSession:
    """Serve a trade fixture honouring ``fromId`` and ``limit`` like aggTrades."""

    def __init__(self, trades: List[dict], page_size: int) -> None:
        self._trades = sorted(trades, key=lambda row: row["a"])
        self._page_size = page_size
        self.urls: List[str] = []

    def get(self, url: str, headers=None, timeout=None) -> FakeResponse:
        self.urls.append(url)
        query = parse_qs(urlparse(url).query)
        if "fromId" in query:
            start = int(query["fromId"][0])
            page = [row for row in self._trades if row["a"] >= start][: self._page_size]
        else:
            page = self._trades[-self._page_size :]
        return FakeResponse(200, page)

    def close(self) -> None:
        pass


@pytest.fixture
def scripted_session() -> Callable[..., ScriptedSession]:
    return ScriptedSession


@pytest.fixture
def paged_session() -> Callable[..., PagedTradeSession]:
    return PagedTradeSession


@pytest.fixture
def make_trade() -> Callable[..., dict]:
    return agg_trade
