"""Open Library books, falling back to authors when books run short."""

from __future__ import annotations

from ...models import KnowledgeEntry, LookupOptions
from ._http import HttpKnowledgeProvider

OPENLIBRARY_API = "https://openlibrary.org"


class OpenLibraryProvider(HttpKnowledgeProvider):
    name = "openlibrary"
    display_name = "OpenLibrary"
    health_url = f"{OPENLIBRARY_API}/search.json?q=test&limit=1"

    async def _search(self, query: str, options: LookupOptions) -> list[KnowledgeEntry]:
        entries = await self._books(query, options.max_results)
        if len(entries) < options.max_results:
            entries.extend(await self._authors(query, options.max_results - len(entries)))
        return entries

    async def _books(self, query: str, limit: int) -> list[KnowledgeEntry]:
        response = await self._get(
            f"{OPENLIBRARY_API}/search.json",
            params={
                "q": query,
                "limit": str(limit),
                "fields": "key,title,author_name,first_publish_year,isbn,subject",
            },
        )
        if response.status_code != 200:
            return []

        entries = []
        for book in response.json().get("docs", []):
            authors = book.get("author_name") or []
            year = book.get("first_publish_year")
            summary = ", ".join(authors) or "Unknown author"
            if year:
                summary += f" ({year})"
            entries.append(
                KnowledgeEntry(
                    title=book["title"],
                    summary=summary,
                    url=f"{OPENLIBRARY_API}{book['key']}",
                    source=self.name,
                    metadata={
                        "type": "book",
                        "authors": authors,
                        "year": year,
                        "isbn": (book.get("isbn") or [None])[0],
                        "subjects": (book.get("subject") or [])[:5],
                    },
                )
            )
        return entries

    async def _authors(self, query: str, limit: int) -> list[KnowledgeEntry]:
        response = await self._get(
            f"{OPENLIBRARY_API}/search/authors.json",
            params={"q": query, "limit": str(limit)},
        )
        if response.status_code != 200:
            return []

        entries = []
        for author in response.json().get("docs", []):
            birth, death = author.get("birth_date"), author.get("death_date")
            summary = "Author"
            if birth or death:
                summary += f" ({birth or '?'} - {death or ''})"
            if author.get("work_count"):
                summary += f", {author['work_count']} works"
            if author.get("top_work"):
                summary += f'. Notable: "{author["top_work"]}"'

            key = author["key"].removeprefix("/authors/")
            entries.append(
                KnowledgeEntry(
                    title=author["name"],
                    summary=summary,
                    url=f"{OPENLIBRARY_API}/authors/{key}",
                    source=self.name,
                    metadata={
                        "type": "author",
                        "birthDate": birth,
                        "deathDate": death,
                        "workCount": author.get("work_count"),
                        "topWork": author.get("top_work"),
                    },
                )
            )
        return entries
