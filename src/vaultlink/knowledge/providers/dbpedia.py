"""DBpedia Lookup API."""

from __future__ import annotations

from ...models import KnowledgeEntry, LookupOptions
from ._http import HttpKnowledgeProvider

DBPEDIA_LOOKUP = "https://lookup.dbpedia.org/api/search"


class DBpediaProvider(HttpKnowledgeProvider):
    name = "dbpedia"
    display_name = "DBpedia"
    health_url = f"{DBPEDIA_LOOKUP}?query=test&maxResults=1&format=json"

    async def _search(self, query: str, options: LookupOptions) -> list[KnowledgeEntry]:
        data = await self._get_json(
            DBPEDIA_LOOKUP,
            params={"query": query, "maxResults": str(options.max_results), "format": "json"},
        )
        docs = data.get("docs")
        if not isinstance(docs, list):
            return []

        entries = []
        for doc in docs:
            labels = doc.get("label") or []
            if not labels:
                continue
            resource = (doc.get("resource") or [""])[0]
            types = [t.rsplit("/", 1)[-1] for t in (doc.get("type") or [])[:3]]
            entries.append(
                KnowledgeEntry(
                    title=labels[0],
                    summary=(doc.get("comment") or [""])[0],
                    url=resource or None,
                    source=self.name,
                    metadata={
                        "types": types,
                        "categories": (doc.get("category") or [])[:5],
                        "resourceUri": resource,
                    },
                )
            )
        return entries
