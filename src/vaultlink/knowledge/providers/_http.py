"""Shared plumbing for HTTP-backed knowledge providers."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...config import HTTP_TIMEOUT, USER_AGENT
from ...models import KnowledgeEntry, LookupOptions, LookupResult
from ..base import entries_result, error_result

log = logging.getLogger(__name__)


class ProviderRequestError(Exception):
    """Raised inside an adapter when a request returns an unexpected status."""

    pass


class HttpKnowledgeProvider:
    """Base class for adapters that talk to a JSON/XML web API.

    Subclasses set ``name``, ``display_name`` and ``health_url`` and
    implement ``_search``. Any transport or parse failure raised by
    ``_search`` is turned into an unsuccessful LookupResult.

    An ``httpx.AsyncClient`` can be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise a short-lived client is created per
    request.
    """

    name: str = ""
    display_name: str = ""
    health_url: str = ""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": USER_AGENT, "Accept": "application/json"}

    async def _get(self, url: str, params: dict[str, Any] | None = None, **kwargs: Any) -> httpx.Response:
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        if self._client is not None:
            return await self._client.get(url, params=params, headers=headers, **kwargs)
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, follow_redirects=True) as client:
            return await client.get(url, params=params, headers=headers, **kwargs)

    async def _get_json(self, url: str, params: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        response = await self._get(url, params=params, **kwargs)
        if response.status_code != 200:
            raise ProviderRequestError(f"Request failed: {response.status_code}")
        return response.json()

    async def is_available(self) -> bool:
        try:
            response = await self._get(self.health_url)
        except httpx.HTTPError as e:
            log.debug("%s health check failed: %s", self.name, e)
            return False
        return response.status_code == 200

    async def lookup(self, query: str, options: LookupOptions | None = None) -> LookupResult:
        options = options or LookupOptions()
        try:
            entries = await self._search(query, options)
        except (httpx.HTTPError, ProviderRequestError, ValueError, KeyError, TypeError) as e:
            log.warning("%s lookup failed for %r: %s", self.name, query, e)
            return error_result(self.name, f"{self.display_name} lookup failed: {e}")
        return entries_result(self.name, entries)

    async def _search(self, query: str, options: LookupOptions) -> list[KnowledgeEntry]:
        raise NotImplementedError
