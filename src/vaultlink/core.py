"""Core business logic for vaultlink.

This module contains the operations used by the CLI. Every function takes
its collaborators explicitly: a ``KnowledgeRegistry`` for lookups and
reasoning backends, and a ``DocumentStore`` for the vault.

Design principles:
- All functions are async for consistency
- Provider failures come back as result objects; only misuse raises
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .batch import batch_apply_links, batch_suggest_links, collect_documents, filter_suggestions
from .config import (
    AI_PROVIDER_NAMES,
    DEFAULT_FIRST_MATCH_ONLY,
    DEFAULT_LANGUAGE,
    DEFAULT_LOOKUP_RESULTS,
    DEFAULT_MAX_PER_NOTE,
    DEFAULT_MAX_SUGGESTIONS,
    DEFAULT_MIN_CONFIDENCE,
    Settings,
    resolve_api_key,
)
from .generator import TemplateStyle, format_note_content, generate_note_from_entry
from .knowledge.registry import AUTO, KnowledgeRegistry
from .linker import insert_links
from .llm_providers import (
    AnthropicProvider,
    LLMProviderError,
    OllamaProvider,
    OpenAIProvider,
    create_ai_provider,
)
from .models import (
    BatchApplyResult,
    BatchOptions,
    BatchResult,
    InsertResult,
    LinkSuggestion,
    LookupOptions,
    LookupResult,
    NoteTemplate,
    SuggestLinksResult,
)
from .vault import DocumentNotFoundError, DocumentStore, build_vault_context

log = logging.getLogger(__name__)


class KnowledgeLookupError(Exception):
    """Raised when a lookup needed to create a note fails or finds nothing."""

    pass


@dataclass
class SuggestOutcome:
    """Suggestions for one note and, when applied, the insertion result."""

    path: str
    suggestions: SuggestLinksResult
    insert: InsertResult | None = None


@dataclass
class BatchOutcome:
    """Result of a batch run: suggestions and, when applied, the insertions."""

    folder: str
    suggestions: BatchResult
    applied: BatchApplyResult | None = None
    dry_run: bool = False


@dataclass
class CreatedNote:
    path: str
    content: str
    template: NoteTemplate
    written: bool


# ─────────────────────────────────────────────────────────────────────────────
# Wiring
# ─────────────────────────────────────────────────────────────────────────────


def build_registry(settings: Settings) -> KnowledgeRegistry:
    """Create a registry with every built-in source and backend, configured from settings.

    All four reasoning backends are registered. The selected one receives
    ``ai_api_key``, ``ai_model`` and ``ai_base_url``; the others use their
    own API key environment variables.
    """
    registry = KnowledgeRegistry(
        cache_size=settings.cache_size,
        cache_ttl_minutes=settings.cache_ttl_minutes,
        enable_cache=settings.enable_cache,
        lookup_timeout=settings.lookup_timeout,
        suggest_timeout=settings.suggest_timeout,
    )
    registry.configure_github(settings.github_token)
    registry.configure_shodan(settings.shodan_api_key)

    registry.register_ai_provider(OpenAIProvider(api_key=resolve_api_key("openai")))
    registry.register_ai_provider(
        OpenAIProvider(api_key=resolve_api_key("openrouter"), name="openrouter")
    )
    registry.register_ai_provider(AnthropicProvider(api_key=resolve_api_key("anthropic")))
    registry.register_ai_provider(OllamaProvider(timeout=settings.suggest_timeout))

    if settings.ai_provider:
        registry.register_ai_provider(create_ai_provider(settings))

    return registry


def resolve_ai_provider_name(settings: Settings | None, provider: str | None) -> str:
    name = provider or (settings.ai_provider if settings else None)
    if not name:
        raise LLMProviderError(
            "No AI provider selected. Pass --provider or set ai_provider "
            f"({', '.join(AI_PROVIDER_NAMES)})."
        )
    return name.lower()


# ─────────────────────────────────────────────────────────────────────────────
# Operations
# ─────────────────────────────────────────────────────────────────────────────


async def knowledge_lookup(
    registry: KnowledgeRegistry,
    query: str,
    provider: str = AUTO,
    max_results: int = DEFAULT_LOOKUP_RESULTS,
    language: str = DEFAULT_LANGUAGE,
    skip_cache: bool = False,
) -> LookupResult:
    """Look a term up in one knowledge source, or the first that has it."""
    if not query.strip():
        raise ValueError("Query must not be empty")
    options = LookupOptions(max_results=max_results, language=language, skip_cache=skip_cache)
    return await registry.lookup(query, provider=provider, options=options)


async def suggest_links(
    registry: KnowledgeRegistry,
    store: DocumentStore,
    path: str,
    provider: str,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
    apply: bool = False,
    first_match_only: bool = DEFAULT_FIRST_MATCH_ONLY,
    dry_run: bool = False,
) -> SuggestOutcome:
    """Ask a reasoning backend which notes ``path`` should link to.

    Suggestions below ``min_confidence`` are dropped and at most
    ``max_suggestions`` are kept. With ``apply`` the kept suggestions are
    inserted into the note (not written when ``dry_run``).

    Raises:
        DocumentNotFoundError: If the note does not exist.
    """
    content = store.read_text(path)
    context = build_vault_context(store)

    result = await registry.suggest_links(provider, content, path, context)
    if result.success:
        result = result.model_copy(
            update={"suggestions": filter_suggestions(result.suggestions, min_confidence, max_suggestions)}
        )
    else:
        log.warning("No suggestions for %s: %s", path, result.error)

    outcome = SuggestOutcome(path=path, suggestions=result)
    if apply and result.suggestions:
        outcome.insert = insert_links(content, result.suggestions, first_match_only=first_match_only)
        if outcome.insert.inserted_links > 0 and not dry_run:
            store.write_text(path, outcome.insert.new_content)
    return outcome


async def apply_links(
    store: DocumentStore,
    path: str,
    targets: list[str],
    first_match_only: bool = DEFAULT_FIRST_MATCH_ONLY,
    max_per_note: int = DEFAULT_MAX_PER_NOTE,
    dry_run: bool = False,
) -> InsertResult:
    """Link the given target note titles wherever they appear in ``path``.

    Raises:
        DocumentNotFoundError: If the note does not exist.
        ValueError: If no targets are given.
    """
    targets = [t.strip() for t in targets if t.strip()]
    if not targets:
        raise ValueError("At least one target is required")

    content = store.read_text(path)
    suggestions = [LinkSuggestion(target_note=t, confidence=1.0, reason="manual") for t in targets]
    result = insert_links(
        content, suggestions, max_per_note=max_per_note, first_match_only=first_match_only
    )
    if result.inserted_links > 0 and not dry_run:
        store.write_text(path, result.new_content)
    return result


async def batch_links(
    registry: KnowledgeRegistry,
    store: DocumentStore,
    folder: str,
    provider: str,
    options: BatchOptions | None = None,
    apply: bool = False,
    dry_run: bool = False,
    first_match_only: bool = DEFAULT_FIRST_MATCH_ONLY,
) -> BatchOutcome:
    """Suggest links for every document under ``folder``, then optionally apply them.

    Raises:
        FolderNotFoundError: If the folder does not exist.
        LLMProviderError: If the backend is unknown or unavailable.
    """
    options = options or BatchOptions()
    backend = registry.get_ai_provider(provider)
    if backend is None:
        raise LLMProviderError(f"Unknown AI provider: {provider}")
    if not await backend.is_available():
        raise LLMProviderError(f"AI provider {provider} is not available")

    items = collect_documents(store, folder, options)
    log.info("Processing %d documents in %s", len(items), folder or "/")

    context = build_vault_context(store)
    suggestions = await batch_suggest_links(items, backend, context, options)

    outcome = BatchOutcome(folder=folder, suggestions=suggestions, dry_run=dry_run)
    if apply or dry_run:
        outcome.applied = await batch_apply_links(
            store, suggestions, first_match_only=first_match_only, dry_run=dry_run
        )
    return outcome


async def create_note(
    registry: KnowledgeRegistry,
    store: DocumentStore,
    query: str,
    provider: str = AUTO,
    result_index: int = 0,
    template_style: TemplateStyle = "standard",
    include_url: bool = True,
    include_metadata: bool = True,
    folder_mapping: dict[str, str] | None = None,
    path: str | None = None,
    overwrite: bool = False,
    dry_run: bool = False,
) -> CreatedNote:
    """Look ``query`` up and write a new note from the chosen entry.

    Raises:
        KnowledgeLookupError: If the lookup fails or has no entry at ``result_index``.
        FileExistsError: If the target note exists and ``overwrite`` is False.
    """
    result = await knowledge_lookup(registry, query, provider=provider, max_results=max(result_index + 1, 1))
    if not result.success:
        raise KnowledgeLookupError(result.error or f"Lookup failed for '{query}'")
    if result_index >= len(result.entries):
        raise KnowledgeLookupError(f"No results for '{query}'")

    template = generate_note_from_entry(
        result.entries[result_index],
        template_style=template_style,
        include_url=include_url,
        include_metadata=include_metadata,
        folder_mapping=folder_mapping,
    )
    target = path or template.suggested_path or f"{template.title}.md"
    content = format_note_content(template)

    if store.exists(target) and not overwrite:
        raise FileExistsError(f"Note already exists: {target}")

    if not dry_run:
        store.write_text(target, content)
    return CreatedNote(path=target, content=content, template=template, written=not dry_run)


__all__ = [
    "BatchOutcome",
    "CreatedNote",
    "DocumentNotFoundError",
    "KnowledgeLookupError",
    "SuggestOutcome",
    "apply_links",
    "batch_links",
    "build_registry",
    "create_note",
    "knowledge_lookup",
    "resolve_ai_provider_name",
    "suggest_links",
]
