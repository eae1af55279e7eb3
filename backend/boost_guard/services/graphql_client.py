"""
Minimal async GraphQL client for collaborator endpoints (subgraphs, Snapshot hub)
"""
from typing import Any, Dict, Optional

import httpx

from boost_guard.core.errors import UpstreamError
from boost_guard.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)


class GraphQLClient:
    """
    Posts `{query, variables}` to a single endpoint.

    Transport failures, non-2xx answers, malformed bodies and GraphQL
    `errors` arrays all surface as UpstreamError.
    """

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(
                    max_keepalive_connections=5,
                    max_connections=20,
                )
            )
        return self._client

    async def query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        client = self._get_client()
        try:
            response = await client.post(self.url, json={"query": query, "variables": variables or {}})
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            raise UpstreamError(f"request to {self.url} timed out", details={"url": self.url}) from e
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"HTTP error from {self.url}: {e.response.status_code}",
                details={"url": self.url, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"request to {self.url} failed: {e}", details={"url": self.url}) from e
        except ValueError as e:
            raise UpstreamError(f"malformed JSON from {self.url}", details={"url": self.url}) from e

        if not isinstance(body, dict):
            raise UpstreamError(f"malformed response from {self.url}", details={"url": self.url})
        if body.get("errors"):
            messages = [err.get("message", str(err)) if isinstance(err, dict) else str(err)
                        for err in body["errors"]]
            logger.warning(
                "GraphQL errors from upstream",
                extra={"url": self.url, "errors": messages},
            )
            raise UpstreamError(
                f"GraphQL errors from {self.url}: {'; '.join(messages)}",
                details={"url": self.url, "errors": messages},
            )

        data = body.get("data")
        if not isinstance(data, dict):
            raise UpstreamError(f"missing data from {self.url}", details={"url": self.url})
        return data

    async def aclose(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
