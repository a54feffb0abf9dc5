"""Shared test fixtures for the vaultlink test suite.

Design:
- tmp_vault: isolated vault directory in a temp path
- FakeKnowledgeProvider / FakeAIProvider: in-memory providers with call logs
- runner: CliRunner for CLI tests
- Async tests use pytest-asyncio with explicit @pytest.mark.asyncio
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from vaultlink.knowledge.registry import KnowledgeRegistry
from vaultlink.models import (
    KnowledgeEntry,
    LinkSuggestion,
    LookupOptions,
    LookupResult,
    SuggestLinksResult,
    VaultContext,
)
from vaultlink.vault import FileSystemVault


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────


class FakeKnowledgeProvider:
    """Knowledge provider returning canned entries and recording its calls."""

    def __init__(
        self,
        name: str,
        entries: list[KnowledgeEntry] | None = None,
        available: bool = True,
        error: str | None = None,
        raises: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.entries = entries or []
        self.available = available
        self.error = error
        self.raises = raises
        self.delay = delay
        self.calls: list[tuple[str, LookupOptions | None]] = []
        self.configured: list[object] = []

    def configure(self, value) -> None:
        self.configured.append(value)

    async def is_available(self) -> bool:
        return self.available

    async def lookup(self, query: str, options: LookupOptions | None = None) -> LookupResult:
        self.calls.append((query, options))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return LookupResult(success=False, provider=self.name, error=self.error)
        return LookupResult(success=True, provider=self.name, entries=list(self.entries))


class FakeAIProvider:
    """Reasoning backend with per-path canned suggestions or failures."""

    def __init__(
        self,
        name: str = "fake",
        suggestions: dict[str, list[LinkSuggestion]] | None = None,
        default: list[LinkSuggestion] | None = None,
        fail_paths: set[str] | None = None,
        raise_paths: set[str] | None = None,
        available: bool = True,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.suggestions = suggestions or {}
        self.default = default or []
        self.fail_paths = fail_paths or set()
        self.raise_paths = raise_paths or set()
        self.available = available
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.config: dict[str, object] = {}

    def configure(self, **config) -> None:
        self.config.update(config)

    async def is_available(self) -> bool:
        return self.available

    async def suggest_links(
        self, note_content: str, note_path: str, vault_context: VaultContext
    ) -> SuggestLinksResult:
        self.calls.append(note_path)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if note_path in self.raise_paths:
                raise RuntimeError(f"backend exploded on {note_path}")
            if note_path in self.fail_paths:
                return SuggestLinksResult(success=False, provider=self.name, error="backend error")
            return SuggestLinksResult(
                success=True,
                provider=self.name,
                suggestions=list(self.suggestions.get(note_path, self.default)),
            )
        finally:
            self.in_flight -= 1


def entry(title: str, source: str = "wikipedia", **metadata) -> KnowledgeEntry:
    return KnowledgeEntry(
        title=title,
        summary=f"About {title}",
        url=f"https://example.org/{title.replace(' ', '_')}",
        source=source,
        metadata=metadata,
    )


def suggestion(target: str, confidence: float = 0.9, text: str | None = None) -> LinkSuggestion:
    return LinkSuggestion(target_note=target, confidence=confidence, reason=f"mentions {target}", suggested_text=text)


def create_note(vault_root: Path, path: str, content: str) -> Path:
    """Write a note into a vault, creating parent folders."""
    note_path = vault_root / path
    note_path.parent.mkdir(parents=True, exist_ok=True)
    note_path.write_text(content, encoding="utf-8")
    return note_path


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """An AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def tmp_vault(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Create an isolated vault directory.

    Sets VAULTLINK_VAULT_ROOT to the vault and clears the API key
    environment variables so tests never reach a real backend.
    """
    vault_root = tmp_path / "vault"
    vault_root.mkdir()

    monkeypatch.setenv("VAULTLINK_VAULT_ROOT", str(vault_root))
    for name in (
        "OPENAI_API_KEY",
        "OPENROUTER_API_KEY",
        "ANTHROPIC_API_KEY",
        "GITHUB_TOKEN",
        "SHODAN_API_KEY",
        "VAULTLINK_AI_PROVIDER",
        "VAULTLINK_AI_MODEL",
        "VAULTLINK_AI_BASE_URL",
        "VAULTLINK_KNOWLEDGE_PROVIDER",
        "VAULTLINK_MIN_CONFIDENCE",
        "VAULTLINK_CONCURRENCY",
    ):
        monkeypatch.delenv(name, raising=False)

    yield vault_root


@pytest.fixture
def store(tmp_vault: Path) -> FileSystemVault:
    return FileSystemVault(tmp_vault)


@pytest.fixture
def sample_vault(tmp_vault: Path) -> Path:
    """Vault with a few linked-up notes.

    Creates:
    - Project Phoenix.md (frontmatter tag: project)
    - Project Atlas.md (inline tag: infra)
    - projects/phoenix-notes.md mentions Project Atlas
    - people/ada.md mentions both projects
    - .obsidian/workspace.md (must be ignored)
    """
    create_note(tmp_vault, "Project Phoenix.md", "---\ntags: [project]\n---\n\nThe Phoenix project.\n")
    create_note(tmp_vault, "Project Atlas.md", "# Atlas\n\nInfra work. #infra\n")
    create_note(tmp_vault, "projects/phoenix-notes.md", "Meeting notes. See Project Atlas for context.\n")
    create_note(tmp_vault, "people/ada.md", "Ada works on Project Phoenix and Project Atlas.\n")
    create_note(tmp_vault, ".obsidian/workspace.md", "Project Phoenix\n")
    return tmp_vault


@pytest.fixture
def registry() -> KnowledgeRegistry:
    """Registry with no built-in providers, for tests to populate."""
    return KnowledgeRegistry(providers=[])
