"""Wikidata entity search, with direct QID resolution over SPARQL."""

from __future__ import annotations

import re

from ...models import KnowledgeEntry, LookupOptions
from ._http import HttpKnowledgeProvider

WIKIDATA_API = "https://www.wikidata.org/w/api.php"
WIKIDATA_SPARQL = "https://query.wikidata.org/sparql"

_QID_PATTERN = re.compile(r"^Q\d+$", re.IGNORECASE)


class WikidataProvider(HttpKnowledgeProvider):
    name = "wikidata"
    display_name = "Wikidata"
    health_url = WIKIDATA_API

    async def _search(self, query: str, options: LookupOptions) -> list[KnowledgeEntry]:
        if _QID_PATTERN.match(query.strip()):
            entry = await self._entity_by_id(query.strip().upper(), options.language)
            return [entry] if entry else []

        data = await self._get_json(
            WIKIDATA_API,
            params={
                "action": "wbsearchentities",
                "search": query,
                "language": options.language,
                "limit": str(options.max_results),
                "format": "json",
            },
        )
        return [
            KnowledgeEntry(
                title=item["label"],
                summary=item.get("description", ""),
                url=f"https://www.wikidata.org/wiki/{item['id']}",
                source=self.name,
                metadata={"qid": item["id"]},
            )
            for item in data.get("search", [])
        ]

    async def _entity_by_id(self, qid: str, language: str) -> KnowledgeEntry | None:
        sparql = (
            "SELECT ?item ?itemLabel ?itemDescription WHERE { "
            f"BIND(wd:{qid} AS ?item) "
            f'SERVICE wikibase:label {{ bd:serviceParam wikibase:language "{language},en". }} '
            "} LIMIT 1"
        )
        data = await self._get_json(
            WIKIDATA_SPARQL,
            params={"query": sparql, "format": "json"},
            headers={"Accept": "application/sparql-results+json"},
        )
        bindings = data.get("results", {}).get("bindings", [])
        if not bindings:
            return None

        binding = bindings[0]
        label = binding.get("itemLabel", {}).get("value")
        if not label:
            return None

        return KnowledgeEntry(
            title=label,
            summary=binding.get("itemDescription", {}).get("value", ""),
            url=binding.get("item", {}).get("value"),
            source=self.name,
            metadata={"qid": qid},
        )
