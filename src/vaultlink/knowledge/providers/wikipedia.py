"""Wikipedia search + page summaries."""

from __future__ import annotations

import asyncio
from urllib.parse import quote

from ...models import KnowledgeEntry, LookupOptions
from ._http import HttpKnowledgeProvider


class WikipediaProvider(HttpKnowledgeProvider):
    name = "wikipedia"
    display_name = "Wikipedia"
    health_url = "https://en.wikipedia.org/api/rest_v1/"

    async def _search(self, query: str, options: LookupOptions) -> list[KnowledgeEntry]:
        base_url = f"https://{options.language}.wikipedia.org"

        data = await self._get_json(
            f"{base_url}/w/api.php",
            params={
                "action": "query",
                "list": "search",
                "srsearch": query,
                "srlimit": str(options.max_results),
                "format": "json",
            },
        )
        titles = [hit["title"] for hit in data.get("query", {}).get("search", [])]
        if not titles:
            return []

        summaries = await asyncio.gather(*(self._summary(title, base_url) for title in titles))
        return [entry for entry in summaries if entry is not None]

    async def _summary(self, title: str, base_url: str) -> KnowledgeEntry | None:
        encoded = quote(title.replace(" ", "_"), safe="")
        response = await self._get(f"{base_url}/api/rest_v1/page/summary/{encoded}")
        if response.status_code != 200:
            return None

        data = response.json()
        return KnowledgeEntry(
            title=data.get("title", title),
            summary=data.get("extract", ""),
            url=data.get("content_urls", {}).get("desktop", {}).get("page"),
            source=self.name,
            metadata={"description": data.get("description")},
        )
