"""Knowledge source adapters."""

from __future__ import annotations

from ..base import KnowledgeProvider
from .arxiv import ArxivProvider
from .dbpedia import DBpediaProvider
from .github import GitHubProvider
from .openlibrary import OpenLibraryProvider
from .shodan import ShodanProvider
from .wikidata import WikidataProvider
from .wikipedia import WikipediaProvider

__all__ = [
    "ArxivProvider",
    "DBpediaProvider",
    "GitHubProvider",
    "OpenLibraryProvider",
    "ShodanProvider",
    "WikidataProvider",
    "WikipediaProvider",
    "create_default_providers",
]


def create_default_providers() -> list[KnowledgeProvider]:
    """Instantiate one of every built-in adapter (unconfigured)."""
    return [
        WikipediaProvider(),
        DBpediaProvider(),
        WikidataProvider(),
        GitHubProvider(),
        OpenLibraryProvider(),
        ArxivProvider(),
        ShodanProvider(),
    ]
