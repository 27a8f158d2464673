from __future__ import annotations

from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Tuple, Union

import httpx

from market_aggregator.config import Settings

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class MockUpstream:
    """
    Route table for ``httpx.MockTransport`` keyed by (host, path).

    Each route holds a queue of replies; the last reply is repeated once the
    queue drains so retried calls keep seeing the same upstream behaviour.
    Unrouted requests get a 404, matching what providers return for unknown ids.
    """

    def __init__(self) -> None:
        self._routes: Dict[Tuple[str, str], Deque[Reply]] = defaultdict(deque)
        self.requests: List[httpx.Request] = []

    def add(self, host: str, path: str, *replies: Reply) -> "MockUpstream":
        self._routes[(host, path)].extend(replies)
        return self

    def json(self, host: str, path: str, payload: Any, status_code: int = 200) -> "MockUpstream":
        return self.add(host, path, httpx.Response(status_code, json=payload))

    def status(self, host: str, path: str, status_code: int) -> "MockUpstream":
        return self.add(host, path, httpx.Response(status_code))

    def calls(self, host: str, path: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.host == host and request.url.path == path]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.url.host, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": "not found"})
        reply = queue.popleft() if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply) and not isinstance(reply, httpx.Response):
            return reply(request)
        return reply

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._handle))


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "coinpaprika_backoff_seconds": 0.01,
        "coingecko_backoff_seconds": 0.01,
        "coincap_backoff_seconds": 0.01,
        "cryptocompare_backoff_seconds": 0.01,
        "messari_backoff_seconds": 0.01,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


PAPRIKA = "api.coinpaprika.com"
GECKO = "api.coingecko.com"
COINCAP = "api.coincap.io"
COMPARE = "min-api.cryptocompare.com"
MESSARI = "data.messari.io"
