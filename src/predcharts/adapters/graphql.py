"""Minimal async GraphQL-over-HTTP transport for the registry and candles backends."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from predcharts.errors import UpstreamUnavailable

log = structlog.get_logger(__name__)


async def gql_fetch(
    client: httpx.AsyncClient,
    url: str,
    query: str,
    variables: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """POST a query and return its `data`. Any failure raises UpstreamUnavailable; no retries."""
    try:
        resp = await client.post(url, json={"query": query, "variables": variables or {}})
    except httpx.HTTPError as e:
        log.warning("graphql_transport_error", url=url, error=str(e))
        raise UpstreamUnavailable(f"GraphQL transport error: {e}", source=url) from e
    if resp.status_code >= 400:
        log.warning("graphql_http_error", url=url, status=resp.status_code)
        raise UpstreamUnavailable(
            f"GraphQL HTTP {resp.status_code}", source=url, status_code=resp.status_code
        )
    try:
        body = resp.json()
    except ValueError as e:
        raise UpstreamUnavailable("GraphQL response is not JSON", source=url) from e
    if not isinstance(body, dict):
        raise UpstreamUnavailable("GraphQL response is not an object", source=url)
    errors = body.get("errors")
    if errors:
        first = errors[0] if isinstance(errors, list) and errors else errors
        message = first.get("message") if isinstance(first, dict) else str(first)
        log.warning("graphql_error", url=url, message=message)
        raise UpstreamUnavailable(f"GraphQL: {message}", source=url)
    return body.get("data") or {}
