"""Shared fixtures: injectable clock, settings, cache tiers, GraphQL mock transport."""

import json

import httpx
import pytest

from predcharts.cache import CacheTiers
from predcharts.config.settings import Settings

HOUR = 3600
# Hour-aligned reference time
T0 = 472222 * HOUR


class FakeClock:
    def __init__(self, now: float = T0 + 5 * HOUR + 100):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings.from_dict(
        {
            "backend": {"mode": "graph_node"},
            "warmer": {"enabled": False},
            "logging": {"level": "WARNING"},
        }
    )


@pytest.fixture
def tiers(settings, clock):
    return CacheTiers.from_settings(settings, clock)


def graphql_handler(routes, calls=None):
    """Answer GraphQL POSTs with the payload of the first route whose marker occurs in the query.

    A payload that is an httpx.Response is replayed (status, headers, body); anything else is wrapped in {"data": ...}.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        query = json.loads(request.content)["query"]
        if calls is not None:
            calls.append(query)
        for marker, payload in routes:
            if marker in query:
                if isinstance(payload, httpx.Response):
                    return httpx.Response(payload.status_code, headers=payload.headers, content=payload.content)
                return httpx.Response(200, json={"data": payload})
        return httpx.Response(200, json={"data": {}})

    return handler


@pytest.fixture
def gql_client():
    """Factory: AsyncClient whose GraphQL POSTs are answered from routes."""
    def _make(routes, calls=None):
        return httpx.AsyncClient(transport=httpx.MockTransport(graphql_handler(routes, calls)))

    return _make
