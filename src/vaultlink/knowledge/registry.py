"""Registry of knowledge sources and reasoning backends.

The registry owns the lookup cache, routes lookups to a named provider or
falls back across all of them in a fixed order ("auto"), and contains every
provider failure so callers only ever see result objects.

A registry is constructed explicitly and passed to whoever needs it::

    registry = KnowledgeRegistry()
    registry.configure_github(token)
    result = await registry.lookup("Rust", provider="auto")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..config import (
    DEFAULT_CACHE_SIZE,
    DEFAULT_CACHE_TTL_MINUTES,
    DEFAULT_LOOKUP_TIMEOUT,
    DEFAULT_SUGGEST_TIMEOUT,
)
from ..models import LookupOptions, LookupResult, SuggestLinksResult, VaultContext
from .base import AIProvider, KnowledgeProvider, empty_result, error_result, suggestion_error
from .cache import LRUCache, create_cache_key

log = logging.getLogger(__name__)

AUTO = "auto"

# Fallback order for "auto" lookups: general encyclopedias first, then
# specialised sources, then the one that needs an API key.
PROVIDER_ORDER = ("wikipedia", "dbpedia", "wikidata", "github", "openlibrary", "arxiv", "shodan")


class KnowledgeRegistry:
    """Routes lookups and suggestion requests to registered providers."""

    def __init__(
        self,
        providers: list[KnowledgeProvider] | None = None,
        ai_providers: list[AIProvider] | None = None,
        cache_size: int = DEFAULT_CACHE_SIZE,
        cache_ttl_minutes: float = DEFAULT_CACHE_TTL_MINUTES,
        enable_cache: bool = True,
        lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT,
        suggest_timeout: float = DEFAULT_SUGGEST_TIMEOUT,
        cache: LRUCache[LookupResult] | None = None,
    ) -> None:
        if providers is None:
            from .providers import create_default_providers

            providers = create_default_providers()

        self._providers: dict[str, KnowledgeProvider] = {}
        self._ai_providers: dict[str, AIProvider] = {}
        for provider in providers:
            self.register_provider(provider)
        for ai_provider in ai_providers or []:
            self.register_ai_provider(ai_provider)

        self._cache: LRUCache[LookupResult] = cache or LRUCache(cache_size, cache_ttl_minutes)
        self._enable_cache = enable_cache
        self._lookup_timeout = lookup_timeout
        self._suggest_timeout = suggest_timeout

    # ─────────────────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────────────────

    def register_provider(self, provider: KnowledgeProvider) -> None:
        """Add or replace a knowledge provider under its own name."""
        self._providers[provider.name] = provider

    def register_ai_provider(self, provider: AIProvider) -> None:
        """Add or replace a reasoning backend under its own name."""
        self._ai_providers[provider.name] = provider

    def get_provider(self, name: str) -> KnowledgeProvider | None:
        return self._providers.get(name)

    def get_ai_provider(self, name: str) -> AIProvider | None:
        return self._ai_providers.get(name)

    def list_providers(self) -> list[str]:
        return list(self._providers)

    def list_ai_providers(self) -> list[str]:
        return list(self._ai_providers)

    def configure_github(self, token: str | None) -> None:
        """Set the GitHub token on the github provider only."""
        self._configure(self._providers.get("github"), token)

    def configure_shodan(self, api_key: str | None) -> None:
        """Set the Shodan API key on the shodan provider only."""
        self._configure(self._providers.get("shodan"), api_key)

    def configure_ai_provider(self, name: str, **config: Any) -> None:
        """Pass configuration through to one registered reasoning backend.

        Raises:
            KeyError: If no backend is registered under ``name``.
        """
        provider = self._ai_providers.get(name)
        if provider is None:
            raise KeyError(f"Unknown AI provider: {name}")
        configure = getattr(provider, "configure", None)
        if configure is None:
            raise TypeError(f"AI provider {name} does not accept configuration")
        configure(**config)

    @staticmethod
    def _configure(provider: KnowledgeProvider | None, *args: Any) -> None:
        configure = getattr(provider, "configure", None)
        if configure is not None:
            configure(*args)

    # ─────────────────────────────────────────────────────────────────────
    # Cache
    # ─────────────────────────────────────────────────────────────────────

    def clear_cache(self) -> None:
        self._cache.clear()

    def prune_cache(self) -> int:
        return self._cache.prune()

    def cache_stats(self) -> dict[str, Any]:
        return {"size": len(self._cache), "enabled": self._enable_cache}

    def _cache_get(self, key: str, options: LookupOptions) -> LookupResult | None:
        if not self._enable_cache or options.skip_cache:
            return None
        cached = self._cache.get(key)
        if cached is None:
            return None
        log.debug("Cache hit for %s", key)
        return cached.model_copy(update={"cached": True})

    def _cache_put(self, key: str, result: LookupResult, options: LookupOptions) -> None:
        if self._enable_cache and not options.skip_cache and result.success:
            self._cache.set(key, result)

    # ─────────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────────

    async def lookup(
        self,
        query: str,
        provider: str = AUTO,
        options: LookupOptions | None = None,
    ) -> LookupResult:
        """Look ``query`` up with one provider, or with the first that answers.

        With ``provider="auto"`` providers are tried in PROVIDER_ORDER; the
        first successful, non-empty result wins. When every provider comes
        up empty the result is a success with no entries.

        Failures are never cached.
        """
        options = options or LookupOptions()
        if provider == AUTO:
            return await self._lookup_auto(query, options)

        key = create_cache_key(provider, query, _key_options(options))
        cached = self._cache_get(key, options)
        if cached is not None:
            return cached

        instance = self._providers.get(provider)
        if instance is None:
            return error_result(provider, f"Unknown provider: {provider}")

        if not await self._available(instance):
            return error_result(provider, f"Provider {provider} is not available")

        result = await self._call_lookup(instance, query, options)
        self._cache_put(key, result, options)
        return result

    async def _lookup_auto(self, query: str, options: LookupOptions) -> LookupResult:
        key = create_cache_key(AUTO, query, _key_options(options))
        cached = self._cache_get(key, options)
        if cached is not None:
            return cached

        for name in PROVIDER_ORDER:
            instance = self._providers.get(name)
            if instance is None or not await self._available(instance):
                continue

            result = await self._call_lookup(instance, query, options)
            if result.success and result.entries:
                self._cache_put(key, result, options)
                return result
            log.debug("Auto lookup: %s had no results for %r", name, query)

        return empty_result(AUTO)

    async def _available(self, provider: KnowledgeProvider | AIProvider) -> bool:
        try:
            return bool(await asyncio.wait_for(provider.is_available(), self._lookup_timeout))
        except asyncio.TimeoutError:
            log.warning("Availability check for %s timed out", provider.name)
        except Exception as e:
            log.warning("Availability check for %s failed: %s", provider.name, e)
        return False

    async def _call_lookup(
        self, provider: KnowledgeProvider, query: str, options: LookupOptions
    ) -> LookupResult:
        try:
            return await asyncio.wait_for(provider.lookup(query, options), self._lookup_timeout)
        except asyncio.TimeoutError:
            log.warning("Lookup with %s timed out after %ss", provider.name, self._lookup_timeout)
            return error_result(provider.name, f"Lookup timed out after {self._lookup_timeout}s")
        except Exception as e:
            log.warning("Lookup with %s failed: %s", provider.name, e)
            return error_result(provider.name, str(e))

    # ─────────────────────────────────────────────────────────────────────
    # Suggestions
    # ─────────────────────────────────────────────────────────────────────

    async def suggest_links(
        self,
        provider_name: str,
        note_content: str,
        note_path: str,
        vault_context: VaultContext,
    ) -> SuggestLinksResult:
        """Ask a reasoning backend for link suggestions. Never raises."""
        provider = self._ai_providers.get(provider_name)
        if provider is None:
            return suggestion_error(provider_name, f"Unknown AI provider: {provider_name}")

        if not await self._available(provider):
            return suggestion_error(provider_name, f"AI provider {provider_name} is not available")

        try:
            return await asyncio.wait_for(
                provider.suggest_links(note_content, note_path, vault_context),
                self._suggest_timeout,
            )
        except asyncio.TimeoutError:
            log.warning("Suggestions from %s timed out", provider_name)
            return suggestion_error(
                provider_name, f"Suggestion request timed out after {self._suggest_timeout}s"
            )
        except Exception as e:
            log.warning("Suggestions from %s failed: %s", provider_name, e)
            return suggestion_error(provider_name, str(e))


def _key_options(options: LookupOptions) -> dict[str, Any]:
    return options.model_dump(exclude={"skip_cache"})
