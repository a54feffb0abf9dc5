"""Configuration management for vaultlink.

This module contains all configurable constants for link suggestion and
insertion. Magic numbers are documented here rather than scattered
throughout the codebase.

Runtime settings are read from a ``.vaultlink.yaml`` file at the vault root
and then overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = ".vaultlink.yaml"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


# =============================================================================
# Link Suggestions
# =============================================================================

# Minimum confidence (0-1) a suggestion needs before it is shown or applied.
# 0.5 keeps "probably related" links while dropping speculative ones.
DEFAULT_MIN_CONFIDENCE = 0.5

# Maximum suggestions kept for a single note.
DEFAULT_MAX_SUGGESTIONS = 10

# Maximum suggestions kept per note during batch runs.
# Lower than the single-note limit to keep batch reports readable.
DEFAULT_BATCH_MAX_SUGGESTIONS = 5

# Characters of note content sent to a reasoning backend.
PROMPT_CONTENT_LIMIT = 4000

# Note titles and tags listed in the prompt as valid link targets.
PROMPT_MAX_TITLES = 100
PROMPT_MAX_TAGS = 50


# =============================================================================
# Link Insertion
# =============================================================================

# Link only the first occurrence of each target by default.
DEFAULT_FIRST_MATCH_ONLY = True

# Occurrences linked per target when first-match-only is off.
DEFAULT_MAX_PER_NOTE = 1


# =============================================================================
# Batch Processing
# =============================================================================

# Documents requested from the reasoning backend at once.
# This bounds simultaneous outbound requests (a rate-limit concern).
DEFAULT_CONCURRENCY = 3

# Documents included in a batch run when no include patterns are given.
DEFAULT_INCLUDE_PATTERNS = ("*.md",)

# Directory names never descended into.
IGNORED_DIRECTORIES = frozenset({".git", ".obsidian", "node_modules", ".trash"})


# =============================================================================
# Knowledge Lookups and Caching
# =============================================================================

DEFAULT_LOOKUP_RESULTS = 5
DEFAULT_LANGUAGE = "en"

# LRU capacity of the lookup cache (entries).
DEFAULT_CACHE_SIZE = 100

# Time-to-live of a cached lookup, regardless of how often it is read.
DEFAULT_CACHE_TTL_MINUTES = 15.0

# Upper bound for a single knowledge provider call, in seconds.
DEFAULT_LOOKUP_TIMEOUT = 30.0

# Upper bound for a single reasoning backend call, in seconds.
# LLM calls routinely take tens of seconds on local models.
DEFAULT_SUGGEST_TIMEOUT = 120.0

# Timeout applied to every HTTP request made by the source adapters.
HTTP_TIMEOUT = 15.0

USER_AGENT = "vaultlink/0.1 (+https://github.com/vaultlink)"


# =============================================================================
# Reasoning Backends
# =============================================================================

DEFAULT_OPENAI_URL = "https://api.openai.com/v1"
DEFAULT_OPENROUTER_URL = "https://openrouter.ai/api/v1"
DEFAULT_OLLAMA_URL = "http://localhost:11434"

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "openrouter": "anthropic/claude-3-5-haiku",
    "anthropic": "claude-3.5-haiku",
    "ollama": "llama3.2",
}

AI_PROVIDER_NAMES = ("openai", "openrouter", "anthropic", "ollama")


# =============================================================================
# Settings
# =============================================================================


@dataclass
class Settings:
    """Runtime settings for a vault."""

    ai_provider: str | None = None
    ai_model: str | None = None
    ai_base_url: str | None = None
    ai_api_key: str | None = None

    knowledge_provider: str = "auto"
    github_token: str | None = None
    shodan_api_key: str | None = None

    min_confidence: float = DEFAULT_MIN_CONFIDENCE
    max_suggestions: int = DEFAULT_MAX_SUGGESTIONS
    batch_max_suggestions: int = DEFAULT_BATCH_MAX_SUGGESTIONS
    first_match_only: bool = DEFAULT_FIRST_MATCH_ONLY
    dry_run: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    exclude_patterns: list[str] = field(default_factory=list)

    cache_size: int = DEFAULT_CACHE_SIZE
    cache_ttl_minutes: float = DEFAULT_CACHE_TTL_MINUTES
    enable_cache: bool = True
    lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT
    suggest_timeout: float = DEFAULT_SUGGEST_TIMEOUT

    def validate(self) -> None:
        """Raise ConfigurationError for values outside their allowed range."""
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ConfigurationError(
                f"min_confidence must be between 0 and 1, got {self.min_confidence}"
            )
        if self.concurrency < 1:
            raise ConfigurationError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.cache_size < 1:
            raise ConfigurationError(f"cache_size must be at least 1, got {self.cache_size}")
        if self.ai_provider and self.ai_provider.lower() not in AI_PROVIDER_NAMES:
            raise ConfigurationError(
                f"Invalid ai_provider '{self.ai_provider}'. "
                f"Must be one of: {', '.join(AI_PROVIDER_NAMES)}."
            )


def get_vault_root() -> Path:
    """Get the vault root directory.

    Discovery order:
    1. VAULTLINK_VAULT_ROOT environment variable (explicit override)
    2. Walk up from cwd looking for .vaultlink.yaml
    3. Error with helpful message

    Raises:
        ConfigurationError: If no vault can be found.
    """
    root = os.environ.get("VAULTLINK_VAULT_ROOT")
    if root:
        return Path(root)

    discovered = _discover_config_file()
    if discovered:
        return discovered.parent

    raise ConfigurationError(
        "No vault found. Options:\n"
        "  1. Pass --vault PATH\n"
        f"  2. Create {CONFIG_FILENAME} at the vault root\n"
        "  3. Set VAULTLINK_VAULT_ROOT to an existing vault directory"
    )


def _discover_config_file(start_dir: Path | None = None, max_depth: int = 10) -> Path | None:
    """Walk up from start_dir looking for .vaultlink.yaml."""
    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(max_depth):
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate

        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    return None


def _load_config_file(vault_root: Path | None) -> dict[str, Any]:
    if vault_root is None:
        return {}

    config_file = vault_root / CONFIG_FILENAME
    if not config_file.exists():
        return {}

    try:
        data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_file} must contain a YAML mapping")
    return data


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}

    env_map = {
        "VAULTLINK_AI_PROVIDER": "ai_provider",
        "VAULTLINK_AI_MODEL": "ai_model",
        "VAULTLINK_AI_BASE_URL": "ai_base_url",
        "VAULTLINK_KNOWLEDGE_PROVIDER": "knowledge_provider",
        "VAULTLINK_MIN_CONFIDENCE": "min_confidence",
        "VAULTLINK_CONCURRENCY": "concurrency",
        "GITHUB_TOKEN": "github_token",
        "SHODAN_API_KEY": "shodan_api_key",
    }
    for env_name, key in env_map.items():
        value = os.environ.get(env_name)
        if value:
            overrides[key] = value

    return overrides


def resolve_api_key(provider: str | None) -> str | None:
    """Pick the API key environment variable matching the backend."""
    env_name = {
        "openai": "OPENAI_API_KEY",
        "openrouter": "OPENROUTER_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
    }.get((provider or "").lower())
    return os.environ.get(env_name) if env_name else None


def _coerce(settings: Settings, raw: dict[str, Any]) -> Settings:
    known = {f.name: f for f in fields(Settings)}
    for key, value in raw.items():
        if key not in known or value is None:
            continue
        current = getattr(settings, key)
        try:
            if isinstance(current, bool):
                if isinstance(value, str):
                    value = value.strip().lower() in ("1", "true", "yes", "on")
                else:
                    value = bool(value)
            elif isinstance(current, int):
                value = int(value)
            elif isinstance(current, float):
                value = float(value)
            elif isinstance(current, list):
                value = [str(v) for v in value] if isinstance(value, list) else [str(value)]
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid value for {key}: {value!r}") from e
        setattr(settings, key, value)
    return settings


def load_settings(vault_root: Path | None = None) -> Settings:
    """Load settings from .vaultlink.yaml and the environment.

    Environment variables take precedence over the config file. When no
    ``ai_api_key`` is configured, the key is taken from the environment
    variable matching the selected backend (e.g. OPENAI_API_KEY).

    Raises:
        ConfigurationError: If the file is unreadable or a value is invalid.
    """
    settings = Settings()
    _coerce(settings, _load_config_file(vault_root))
    _coerce(settings, _env_overrides())

    if settings.ai_provider:
        settings.ai_provider = settings.ai_provider.lower()
    if not settings.ai_api_key:
        settings.ai_api_key = resolve_api_key(settings.ai_provider)

    settings.validate()
    return settings
