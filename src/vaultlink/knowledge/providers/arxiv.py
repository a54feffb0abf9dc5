"""arXiv search over the Atom export API."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET

from ...models import KnowledgeEntry, LookupOptions
from ._http import HttpKnowledgeProvider, ProviderRequestError

ARXIV_API = "https://export.arxiv.org/api/query"

_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}
_ABS_ID = re.compile(r"arxiv\.org/abs/(.+)")


def _text(element: ET.Element, path: str) -> str:
    found = element.find(path, _NS)
    if found is None or found.text is None:
        return ""
    return " ".join(found.text.split())


def parse_atom_feed(xml: str, source: str = "arxiv") -> list[KnowledgeEntry]:
    """Turn an arXiv Atom feed into knowledge entries.

    Raises:
        ValueError: If the document is not well-formed XML.
    """
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as e:
        raise ValueError(f"Malformed Atom feed: {e}") from e

    entries = []
    for item in root.findall("atom:entry", _NS):
        entry_id = _text(item, "atom:id")
        title = _text(item, "atom:title")
        if not entry_id or not title:
            continue

        authors = [_text(author, "atom:name") for author in item.findall("atom:author", _NS)]
        categories = [c.get("term", "") for c in item.findall("atom:category", _NS)]
        pdf_link = next(
            (link.get("href") for link in item.findall("atom:link", _NS) if link.get("title") == "pdf"),
            None,
        )
        published = _text(item, "atom:published")
        summary = _text(item, "atom:summary")

        author_list = ", ".join(authors[:3]) + (" et al." if len(authors) > 3 else "")
        id_match = _ABS_ID.search(entry_id)

        entries.append(
            KnowledgeEntry(
                title=title,
                summary=f"{author_list} ({published[:4]})\n\n{summary[:400]}",
                url=entry_id,
                source=source,
                metadata={
                    "authors": authors,
                    "published": published,
                    "updated": _text(item, "atom:updated"),
                    "categories": categories,
                    "arxivId": id_match.group(1) if id_match else entry_id,
                    "pdfLink": pdf_link,
                    "doi": _text(item, "arxiv:doi") or None,
                },
            )
        )
    return entries


class ArxivProvider(HttpKnowledgeProvider):
    name = "arxiv"
    display_name = "arXiv"
    health_url = f"{ARXIV_API}?search_query=all:test&max_results=1"

    async def _search(self, query: str, options: LookupOptions) -> list[KnowledgeEntry]:
        response = await self._get(
            ARXIV_API,
            params={
                "search_query": f"all:{query}",
                "start": "0",
                "max_results": str(options.max_results),
                "sortBy": "relevance",
                "sortOrder": "descending",
            },
        )
        if response.status_code != 200:
            raise ProviderRequestError(f"arXiv request failed: {response.status_code}")
        return parse_atom_feed(response.text, self.name)
