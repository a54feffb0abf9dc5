"""Capabilities implemented by knowledge sources and reasoning backends.

Implementations must never raise for ordinary failure modes (network
errors, HTTP errors, unparsable payloads); they report them as an
unsuccessful result instead.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..models import (
    KnowledgeEntry,
    LookupOptions,
    LookupResult,
    SuggestLinksResult,
    VaultContext,
)


@runtime_checkable
class KnowledgeProvider(Protocol):
    """An external information source (encyclopedia, code host, catalogue...)."""

    name: str

    async def is_available(self) -> bool: ...

    async def lookup(self, query: str, options: LookupOptions | None = None) -> LookupResult: ...


@runtime_checkable
class AIProvider(Protocol):
    """A reasoning backend that proposes links between notes."""

    name: str

    async def is_available(self) -> bool: ...

    async def suggest_links(
        self,
        note_content: str,
        note_path: str,
        vault_context: VaultContext,
    ) -> SuggestLinksResult: ...


def error_result(provider: str, error: str) -> LookupResult:
    return LookupResult(success=False, provider=provider, entries=[], error=error)


def empty_result(provider: str) -> LookupResult:
    return LookupResult(success=True, provider=provider, entries=[])


def entries_result(provider: str, entries: list[KnowledgeEntry]) -> LookupResult:
    return LookupResult(success=True, provider=provider, entries=entries)


def suggestion_error(provider: str, error: str) -> SuggestLinksResult:
    return SuggestLinksResult(success=False, provider=provider, suggestions=[], error=error)
