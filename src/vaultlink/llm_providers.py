"""Reasoning backends that suggest links between notes.

Three backends are provided:

- ``OpenAIProvider``: OpenAI chat completions. Also serves OpenRouter, which
  speaks the same API at a different base URL.
- ``AnthropicProvider``: Anthropic's messages API.
- ``OllamaProvider``: a local Ollama server over plain HTTP.

All three send the same prompt (``build_prompt``) and parse the reply with
``parse_suggestions``, so they only differ in transport.

Usage:
    provider = create_ai_provider(settings)
    result = await provider.suggest_links(content, "notes/rust.md", context)

    # Model resolution
    model = resolve_model("claude-3.5-haiku", "openrouter")
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import PurePosixPath
from typing import Any

import httpx

from .config import (
    DEFAULT_MODELS,
    DEFAULT_OLLAMA_URL,
    DEFAULT_OPENAI_URL,
    DEFAULT_OPENROUTER_URL,
    PROMPT_CONTENT_LIMIT,
    PROMPT_MAX_TAGS,
    PROMPT_MAX_TITLES,
    Settings,
)
from .knowledge.base import suggestion_error
from .models import LinkSuggestion, SuggestLinksResult, VaultContext

log = logging.getLogger(__name__)


class LLMProviderError(Exception):
    """Raised when a reasoning backend is misconfigured or unavailable."""

    pass


# =============================================================================
# Model Name Translation
# =============================================================================

# Canonical model names mapped to (anthropic_name, openrouter_name)
# Users can specify any of these and they'll be translated appropriately
MODEL_ALIASES: dict[str, tuple[str, str]] = {
    # Haiku models
    "claude-3-haiku": ("claude-3-haiku-20240307", "anthropic/claude-3-haiku"),
    "claude-3.5-haiku": ("claude-3-5-haiku-20241022", "anthropic/claude-3-5-haiku"),
    "claude-haiku-4.5": ("claude-haiku-4-5-20250414", "anthropic/claude-haiku-4.5"),
    # Sonnet models
    "claude-3.5-sonnet": ("claude-3-5-sonnet-20241022", "anthropic/claude-3.5-sonnet"),
    "claude-sonnet-4": ("claude-sonnet-4-20250514", "anthropic/claude-sonnet-4"),
}


def resolve_model(model: str, provider: str) -> str:
    """Resolve a model name to provider-specific format.

    Handles:
    - Canonical names (e.g., "claude-3.5-haiku") -> translated for anthropic/openrouter
    - OpenRouter format for Anthropic -> stripped of "anthropic/" prefix
    - Bare Claude names for OpenRouter -> prefixed with "anthropic/"
    - Everything else (OpenAI, Ollama models) -> passed through unchanged

    Examples:
        >>> resolve_model("claude-3.5-haiku", "anthropic")
        'claude-3-5-haiku-20241022'
        >>> resolve_model("claude-3.5-haiku", "openrouter")
        'anthropic/claude-3-5-haiku'
        >>> resolve_model("llama3.2", "ollama")
        'llama3.2'
    """
    if provider in ("anthropic", "openrouter") and model in MODEL_ALIASES:
        anthropic_name, openrouter_name = MODEL_ALIASES[model]
        return anthropic_name if provider == "anthropic" else openrouter_name

    if provider == "anthropic" and model.startswith("anthropic/"):
        return model.removeprefix("anthropic/")

    if provider == "openrouter" and model.startswith("claude-"):
        return f"anthropic/{model}"

    return model


# =============================================================================
# Prompt and Response Handling
# =============================================================================

SYSTEM_PROMPT = "You suggest internal links for markdown notes. Respond only with valid JSON."

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def build_prompt(note_content: str, note_path: str, context: VaultContext) -> str:
    """Build the link-suggestion prompt shared by every backend.

    The note itself is left out of the candidate list, the content is
    truncated to PROMPT_CONTENT_LIMIT characters, and at most
    PROMPT_MAX_TITLES titles and PROMPT_MAX_TAGS tags are listed.
    """
    note_stem = PurePosixPath(note_path).stem
    titles = [title for title in context.note_titles if title != note_stem]
    available_notes = "\n- ".join(titles[:PROMPT_MAX_TITLES])
    available_tags = ", ".join(context.tags[:PROMPT_MAX_TAGS])

    return f"""Suggest internal links for this note.

Note path: {note_path}

Note content:
{note_content[:PROMPT_CONTENT_LIMIT]}

Available notes in vault:
- {available_notes}

Available tags: {available_tags}

Return a JSON object with a "suggestions" array. Each suggestion:
- "target": exact title of an existing note (from the list above)
- "confidence": 0-1 relevance score
- "reason": brief explanation
- "text": (optional) anchor text

Only suggest notes from the available list. Max 10 suggestions, sorted by confidence."""


def parse_suggestions(raw: str, provider: str) -> list[LinkSuggestion]:
    """Parse a backend reply into suggestions, best first.

    Malformed replies yield an empty list and a logged warning. Entries
    without a target or a numeric confidence are dropped; confidences are
    clamped to [0, 1].
    """
    text = raw.strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        log.warning("[%s] Failed to parse response: %s: %r", provider, e, raw[:200])
        return []

    items = parsed.get("suggestions") if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        log.warning("[%s] Response missing suggestions array: %r", provider, raw[:200])
        return []

    suggestions = []
    for item in items:
        if not isinstance(item, dict):
            continue
        target = item.get("target")
        confidence = item.get("confidence")
        if not target or not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
            continue
        text_value = item.get("text")
        suggestions.append(
            LinkSuggestion(
                target_note=str(target),
                confidence=confidence,
                reason=str(item.get("reason") or ""),
                suggested_text=str(text_value) if text_value else None,
            )
        )

    suggestions.sort(key=lambda s: s.confidence, reverse=True)
    return suggestions


# =============================================================================
# Backends
# =============================================================================


class OpenAIProvider:
    """OpenAI chat completions, or any compatible gateway such as OpenRouter."""

    display_name = "OpenAI"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        name: str = "openai",
        client: Any = None,
    ) -> None:
        self.name = name
        self._api_key = api_key or ""
        self._base_url = base_url or (DEFAULT_OPENROUTER_URL if name == "openrouter" else DEFAULT_OPENAI_URL)
        self._model = model or DEFAULT_MODELS.get(name, DEFAULT_MODELS["openai"])
        self._client = client
        if name == "openrouter":
            self.display_name = "OpenRouter"

    @property
    def model(self) -> str:
        return resolve_model(self._model, self.name)

    def configure(
        self, api_key: str | None = None, base_url: str | None = None, model: str | None = None
    ) -> None:
        if api_key is not None:
            self._api_key = api_key
        if base_url:
            self._base_url = base_url
        if model:
            self._model = model
        self._client = None

    async def is_available(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise LLMProviderError(f"{self.display_name} API key not configured")

        try:
            from openai import AsyncOpenAI
        except ImportError:
            raise LLMProviderError(
                f"openai package is required for the {self.display_name} provider. "
                "Install with: pip install openai"
            )

        self._client = AsyncOpenAI(base_url=self._base_url, api_key=self._api_key)
        return self._client

    async def suggest_links(
        self, note_content: str, note_path: str, vault_context: VaultContext
    ) -> SuggestLinksResult:
        if not self._api_key:
            return suggestion_error(self.name, f"{self.display_name} API key not configured")

        prompt = build_prompt(note_content, note_path, vault_context)
        try:
            client = self._get_client()
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0.3,
            )
            content = response.choices[0].message.content or ""
        except Exception as e:
            log.warning("%s request failed: %s", self.display_name, e)
            return suggestion_error(self.name, f"{self.display_name} request failed: {e}")

        return SuggestLinksResult(
            success=True, provider=self.name, suggestions=parse_suggestions(content, self.name)
        )


class AnthropicProvider:
    """Anthropic messages API."""

    name = "anthropic"

    def __init__(self, api_key: str | None = None, model: str | None = None, client: Any = None) -> None:
        self._api_key = api_key or ""
        self._model = model or DEFAULT_MODELS["anthropic"]
        self._client = client

    @property
    def model(self) -> str:
        return resolve_model(self._model, self.name)

    def configure(self, api_key: str | None = None, model: str | None = None, **_: Any) -> None:
        if api_key is not None:
            self._api_key = api_key
        if model:
            self._model = model
        self._client = None

    async def is_available(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise LLMProviderError(
                "ANTHROPIC_API_KEY is required. Get an API key at https://console.anthropic.com/"
            )

        try:
            import anthropic
        except ImportError:
            raise LLMProviderError(
                "anthropic package is required for Anthropic provider. "
                "Install with: pip install anthropic"
            )

        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def suggest_links(
        self, note_content: str, note_path: str, vault_context: VaultContext
    ) -> SuggestLinksResult:
        if not self._api_key:
            return suggestion_error(self.name, "Anthropic API key not configured")

        prompt = build_prompt(note_content, note_path, vault_context)
        try:
            client = self._get_client()
            response = await client.messages.create(
                model=self.model,
                max_tokens=1024,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
            content = response.content[0].text
        except Exception as e:
            log.warning("Anthropic request failed: %s", e)
            return suggestion_error(self.name, f"Anthropic request failed: {e}")

        return SuggestLinksResult(
            success=True, provider=self.name, suggestions=parse_suggestions(content, self.name)
        )


class OllamaProvider:
    """A local Ollama server. Available when the server answers /api/tags."""

    name = "ollama"

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
    ) -> None:
        self._base_url = (base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        self._model = model or DEFAULT_MODELS["ollama"]
        self._client = client
        self._timeout = timeout

    @property
    def model(self) -> str:
        return self._model

    def configure(self, base_url: str | None = None, model: str | None = None, **_: Any) -> None:
        if base_url:
            self._base_url = base_url.rstrip("/")
        if model:
            self._model = model

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        if self._client is not None:
            return await self._client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)

    async def is_available(self) -> bool:
        try:
            response = await self._request("GET", "/api/tags")
        except httpx.HTTPError as e:
            log.debug("Ollama not reachable at %s: %s", self._base_url, e)
            return False
        return response.status_code == 200

    async def suggest_links(
        self, note_content: str, note_path: str, vault_context: VaultContext
    ) -> SuggestLinksResult:
        prompt = f"{SYSTEM_PROMPT}\n\n{build_prompt(note_content, note_path, vault_context)}\n\nJSON response:"
        try:
            response = await self._request(
                "POST",
                "/api/generate",
                json={"model": self._model, "prompt": prompt, "stream": False, "format": "json"},
            )
        except httpx.HTTPError as e:
            log.warning("Ollama request failed: %s", e)
            return suggestion_error(self.name, f"Ollama request failed: {e}")

        if response.status_code != 200:
            return suggestion_error(self.name, f"Ollama request failed: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            return suggestion_error(self.name, f"Ollama returned invalid JSON: {e}")

        if not isinstance(data, dict):
            return suggestion_error(self.name, "Ollama returned an unexpected response")

        if data.get("error"):
            return suggestion_error(self.name, f"Ollama error: {data['error']}")

        return SuggestLinksResult(
            success=True,
            provider=self.name,
            suggestions=parse_suggestions(data.get("response") or "", self.name),
        )


# =============================================================================
# Factory
# =============================================================================


def create_ai_provider(
    settings: Settings,
) -> OpenAIProvider | AnthropicProvider | OllamaProvider:
    """Build the reasoning backend selected in settings.

    Raises:
        LLMProviderError: If no backend is selected or the name is unknown.
    """
    name = (settings.ai_provider or "").lower()
    if not name:
        raise LLMProviderError(
            "No AI provider configured. Set ai_provider in .vaultlink.yaml "
            "or VAULTLINK_AI_PROVIDER (openai, openrouter, anthropic, ollama)."
        )

    if name in ("openai", "openrouter"):
        return OpenAIProvider(
            api_key=settings.ai_api_key,
            base_url=settings.ai_base_url,
            model=settings.ai_model,
            name=name,
        )
    if name == "anthropic":
        return AnthropicProvider(api_key=settings.ai_api_key, model=settings.ai_model)
    if name == "ollama":
        return OllamaProvider(
            base_url=settings.ai_base_url,
            model=settings.ai_model,
            timeout=settings.suggest_timeout,
        )

    raise LLMProviderError(f"Unknown AI provider '{settings.ai_provider}'")
