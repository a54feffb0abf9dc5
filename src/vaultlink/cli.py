#!/usr/bin/env python3
"""
vl: CLI for vaultlink

Usage:
    vl lookup "Rust"                     # Look a term up in external sources
    vl suggest notes/rust.md             # Ask an AI backend for link suggestions
    vl link notes/rust.md "Cargo"        # Link given note titles in a note
    vl batch projects --dry-run          # Suggest and preview links for a folder
    vl note "Ada Lovelace"               # Create a note from a lookup
    vl providers                         # List knowledge sources and AI backends
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
from click.exceptions import ClickException

from . import __version__ as VAULTLINK_VERSION
from ._logging import configure_logging, set_quiet_mode
from .batch import format_batch_apply_result, format_batch_result
from .config import ConfigurationError, Settings, get_vault_root, load_settings
from .core import (
    KnowledgeLookupError,
    apply_links,
    batch_links,
    build_registry,
    create_note,
    knowledge_lookup,
    resolve_ai_provider_name,
    suggest_links,
)
from .generator import TEMPLATE_STYLES
from .knowledge.registry import KnowledgeRegistry
from .linker import preview_changes
from .llm_providers import LLMProviderError
from .models import BatchOptions
from .vault import DocumentNotFoundError, FileSystemVault, FolderNotFoundError

_HANDLED_ERRORS = (
    ConfigurationError,
    LLMProviderError,
    DocumentNotFoundError,
    FolderNotFoundError,
    KnowledgeLookupError,
    FileExistsError,
    ValueError,
)


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


@dataclass
class AppContext:
    """Lazily built collaborators shared by the commands of one invocation."""

    vault_option: Path | None
    _settings: Settings | None = None
    _registry: KnowledgeRegistry | None = None
    _vault: FileSystemVault | None = None

    def vault_root(self, required: bool = True) -> Path | None:
        if self.vault_option is not None:
            return self.vault_option
        try:
            return get_vault_root()
        except ConfigurationError:
            if required:
                raise
            return None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = load_settings(self.vault_root(required=False))
        return self._settings

    @property
    def registry(self) -> KnowledgeRegistry:
        if self._registry is None:
            self._registry = build_registry(self.settings)
        return self._registry

    @property
    def vault(self) -> FileSystemVault:
        if self._vault is None:
            root = self.vault_root()
            if root is None or not root.is_dir():
                raise ConfigurationError(f"Vault directory does not exist: {root}")
            self._vault = FileSystemVault(root)
        return self._vault


def _app(ctx: click.Context) -> AppContext:
    return ctx.find_object(AppContext)


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group()
@click.version_option(version=VAULTLINK_VERSION, prog_name="vl")
@click.option(
    "--vault",
    "vault",
    type=click.Path(file_okay=False, path_type=Path),
    help="Vault root (default: VAULTLINK_VAULT_ROOT or nearest .vaultlink.yaml)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="VAULTLINK_QUIET",
    help="Suppress warnings, show only errors and essential output",
)
@click.pass_context
def cli(ctx: click.Context, vault: Path | None, quiet: bool):
    """vl: link suggestion and insertion for markdown vaults.

    \b
    Look things up:
      vl lookup "Rust"                      # First source with results
      vl lookup "rust-lang/rust" -p github  # One specific source
      vl note "Ada Lovelace"                # Create a note from a lookup

    \b
    Link notes:
      vl suggest notes/rust.md              # AI link suggestions
      vl suggest notes/rust.md --apply      # ...and insert them
      vl link notes/rust.md Cargo Tokio     # Link known titles
      vl batch projects --dry-run           # Whole folder, nothing written
    """
    if quiet:
        set_quiet_mode(True)

    ctx.obj = AppContext(vault_option=vault)


# ─────────────────────────────────────────────────────────────────────────────
# Knowledge lookups
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("query")
@click.option("--provider", "-p", default="auto", show_default=True, help="Knowledge source, or 'auto'")
@click.option("--limit", "-n", default=5, show_default=True, type=click.IntRange(min=1), help="Max results")
@click.option("--language", default="en", show_default=True, help="Language (Wikipedia)")
@click.option("--no-cache", is_flag=True, help="Bypass the lookup cache")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def lookup(ctx: click.Context, query: str, provider: str, limit: int, language: str, no_cache: bool, as_json: bool):
    """Look a term up in external knowledge sources.

    \b
    Examples:
      vl lookup "Rust programming language"
      vl lookup "Q42" --provider wikidata
      vl lookup "8.8.8.8" --provider shodan --json
    """
    app = _app(ctx)
    try:
        result = run_async(
            knowledge_lookup(
                app.registry,
                query,
                provider=provider,
                max_results=limit,
                language=language,
                skip_cache=no_cache,
            )
        )
    except _HANDLED_ERRORS as e:
        raise ClickException(str(e)) from e

    if as_json:
        output(result.model_dump(), as_json=True)
        return

    if not result.success:
        raise ClickException(result.error or "Lookup failed")
    if not result.entries:
        click.echo(f"No results for '{query}'.")
        return

    for i, entry in enumerate(result.entries, start=1):
        click.echo(f"{i}. {entry.title} [{entry.source}]")
        if entry.summary:
            for line in entry.summary.splitlines():
                click.echo(f"   {line}" if line else "")
        if entry.url:
            click.echo(f"   {entry.url}")
        click.echo()


@cli.command()
@click.argument("query")
@click.option("--provider", "-p", default="auto", show_default=True, help="Knowledge source, or 'auto'")
@click.option("--index", "result_index", default=1, show_default=True, type=click.IntRange(min=1), help="Which result to use")
@click.option("--style", type=click.Choice(TEMPLATE_STYLES), default="standard", show_default=True)
@click.option("--path", "note_path", help="Vault-relative path (default: <folder>/<title>.md)")
@click.option("--no-url", is_flag=True, help="Leave the source URL out")
@click.option("--no-metadata", is_flag=True, help="Leave source metadata out of the frontmatter")
@click.option("--overwrite", is_flag=True, help="Replace an existing note")
@click.option("--dry-run", is_flag=True, help="Print the note instead of writing it")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def note(
    ctx: click.Context,
    query: str,
    provider: str,
    result_index: int,
    style: str,
    note_path: str | None,
    no_url: bool,
    no_metadata: bool,
    overwrite: bool,
    dry_run: bool,
    as_json: bool,
):
    """Create a note from a knowledge lookup.

    \b
    Examples:
      vl note "Ada Lovelace"
      vl note "tokio-rs/tokio" -p github --style detailed
      vl note "Dune" -p openlibrary --dry-run
    """
    app = _app(ctx)
    try:
        created = run_async(
            create_note(
                app.registry,
                app.vault,
                query,
                provider=provider,
                result_index=result_index - 1,
                template_style=style,
                include_url=not no_url,
                include_metadata=not no_metadata,
                path=note_path,
                overwrite=overwrite,
                dry_run=dry_run,
            )
        )
    except _HANDLED_ERRORS as e:
        raise ClickException(str(e)) from e

    if as_json:
        output(
            {"path": created.path, "written": created.written, "content": created.content},
            as_json=True,
        )
    elif dry_run:
        click.echo(f"Would create {created.path}:\n")
        click.echo(created.content)
    else:
        click.echo(f"Created {created.path}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--check", is_flag=True, help="Check availability (makes network requests)")
@click.pass_context
def providers(ctx: click.Context, as_json: bool, check: bool):
    """List knowledge sources and AI backends."""
    try:
        registry = _app(ctx).registry
    except _HANDLED_ERRORS as e:
        raise ClickException(str(e)) from e

    async def _availability(names, getter) -> dict[str, bool | None]:
        if not check:
            return {name: None for name in names}
        results = await asyncio.gather(*(getter(name).is_available() for name in names), return_exceptions=True)
        return {name: r is True for name, r in zip(names, results)}

    async def _collect():
        knowledge = await _availability(registry.list_providers(), registry.get_provider)
        ai = await _availability(registry.list_ai_providers(), registry.get_ai_provider)
        return knowledge, ai

    knowledge, ai = run_async(_collect())

    if as_json:
        output({"knowledge": knowledge, "ai": ai, "cache": registry.cache_stats()}, as_json=True)
        return

    def _mark(available: bool | None) -> str:
        if available is None:
            return ""
        return " (available)" if available else " (unavailable)"

    click.echo("Knowledge sources:")
    for name, available in knowledge.items():
        click.echo(f"  - {name}{_mark(available)}")
    click.echo("AI backends:")
    for name, available in ai.items():
        click.echo(f"  - {name}{_mark(available)}")


# ─────────────────────────────────────────────────────────────────────────────
# Linking
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("path")
@click.option("--provider", "-p", help="AI backend (default: ai_provider setting)")
@click.option("--min-confidence", type=click.FloatRange(0, 1), help="Drop suggestions below this score")
@click.option("--max", "max_suggestions", type=click.IntRange(min=1), help="Max suggestions to keep")
@click.option("--apply", is_flag=True, help="Insert the suggested links")
@click.option("--dry-run", is_flag=True, help="With --apply: show changes without writing")
@click.option("--all-matches", is_flag=True, help="Link every occurrence, not just the first")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def suggest(
    ctx: click.Context,
    path: str,
    provider: str | None,
    min_confidence: float | None,
    max_suggestions: int | None,
    apply: bool,
    dry_run: bool,
    all_matches: bool,
    as_json: bool,
):
    """Suggest links from a note to other notes in the vault.

    \b
    Examples:
      vl suggest notes/rust.md
      vl suggest notes/rust.md -p ollama --min-confidence 0.7
      vl suggest notes/rust.md --apply --dry-run
    """
    app = _app(ctx)
    try:
        settings = app.settings
        outcome = run_async(
            suggest_links(
                app.registry,
                app.vault,
                path,
                resolve_ai_provider_name(settings, provider),
                min_confidence=settings.min_confidence if min_confidence is None else min_confidence,
                max_suggestions=max_suggestions or settings.max_suggestions,
                apply=apply or dry_run,
                first_match_only=not all_matches and settings.first_match_only,
                dry_run=dry_run or settings.dry_run,
            )
        )
    except _HANDLED_ERRORS as e:
        raise ClickException(str(e)) from e

    result = outcome.suggestions
    if as_json:
        data: dict[str, Any] = {"path": outcome.path, **result.model_dump()}
        if outcome.insert is not None:
            data["insert"] = outcome.insert.model_dump(exclude={"original_content", "new_content"})
        output(data, as_json=True)
        return

    if not result.success:
        raise ClickException(result.error or "Suggestion failed")
    if not result.suggestions:
        click.echo("No link suggestions above the confidence threshold.")
        return

    click.echo(f"## Link suggestions for {outcome.path}\n")
    for s in result.suggestions:
        click.echo(f"- [[{s.target_note}]] ({round(s.confidence * 100)}%) - {s.reason}")

    if outcome.insert is not None:
        click.echo()
        click.echo(preview_changes(outcome.insert))


@cli.command()
@click.argument("path")
@click.argument("targets", nargs=-1, required=True)
@click.option("--all-matches", is_flag=True, help="Link every occurrence, up to --max-per-note")
@click.option("--max-per-note", default=1, show_default=True, type=click.IntRange(min=1))
@click.option("--dry-run", is_flag=True, help="Show changes without writing")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def link(
    ctx: click.Context,
    path: str,
    targets: tuple[str, ...],
    all_matches: bool,
    max_per_note: int,
    dry_run: bool,
    as_json: bool,
):
    """Link mentions of the given note titles inside a note.

    \b
    Examples:
      vl link notes/rust.md Cargo "Borrow Checker"
      vl link notes/rust.md Cargo --all-matches --max-per-note 3 --dry-run
    """
    app = _app(ctx)
    try:
        result = run_async(
            apply_links(
                app.vault,
                path,
                list(targets),
                first_match_only=not all_matches,
                max_per_note=max_per_note,
                dry_run=dry_run,
            )
        )
    except _HANDLED_ERRORS as e:
        raise ClickException(str(e)) from e

    if as_json:
        output(result.model_dump(exclude={"original_content", "new_content"}), as_json=True)
        return

    click.echo(preview_changes(result))
    if dry_run and result.inserted_links:
        click.echo("\n(dry run, nothing written)")


@cli.command()
@click.argument("folder", default="")
@click.option("--provider", "-p", help="AI backend (default: ai_provider setting)")
@click.option("--apply", is_flag=True, help="Insert the suggested links")
@click.option("--dry-run", is_flag=True, help="Compute insertions without writing")
@click.option("--concurrency", type=click.IntRange(min=1), help="Documents processed at once")
@click.option("--min-confidence", type=click.FloatRange(0, 1), help="Drop suggestions below this score")
@click.option("--max", "max_suggestions", type=click.IntRange(min=1), help="Max suggestions per document")
@click.option("--exclude", "exclude_patterns", multiple=True, help="Glob to skip (repeatable)")
@click.option("--include", "include_patterns", multiple=True, help="Glob to include (default: *.md)")
@click.option("--all-matches", is_flag=True, help="Link every occurrence, not just the first")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def batch(
    ctx: click.Context,
    folder: str,
    provider: str | None,
    apply: bool,
    dry_run: bool,
    concurrency: int | None,
    min_confidence: float | None,
    max_suggestions: int | None,
    exclude_patterns: tuple[str, ...],
    include_patterns: tuple[str, ...],
    all_matches: bool,
    as_json: bool,
):
    """Suggest (and optionally insert) links for every note in a folder.

    \b
    Examples:
      vl batch projects
      vl batch projects --dry-run --exclude "archive/**"
      vl batch --apply --concurrency 5 -p openai
    """
    app = _app(ctx)
    try:
        settings = app.settings
        options = BatchOptions(
            max_suggestions=max_suggestions or settings.batch_max_suggestions,
            min_confidence=settings.min_confidence if min_confidence is None else min_confidence,
            concurrency=concurrency or settings.concurrency,
            exclude_patterns=list(exclude_patterns) or list(settings.exclude_patterns),
            **({"include_patterns": list(include_patterns)} if include_patterns else {}),
        )
        outcome = run_async(
            batch_links(
                app.registry,
                app.vault,
                folder,
                resolve_ai_provider_name(settings, provider),
                options=options,
                apply=apply,
                dry_run=dry_run or (apply and settings.dry_run),
                first_match_only=not all_matches and settings.first_match_only,
            )
        )
    except _HANDLED_ERRORS as e:
        raise ClickException(str(e)) from e

    if as_json:
        output(
            {
                "suggestions": outcome.suggestions.model_dump(),
                "applied": outcome.applied.model_dump() if outcome.applied else None,
                "dry_run": outcome.dry_run,
            },
            as_json=True,
        )
        return

    click.echo(format_batch_result(outcome.suggestions))
    if outcome.applied is not None:
        click.echo()
        click.echo(format_batch_apply_result(outcome.applied, dry_run=outcome.dry_run))


def main():
    """Entry point for vl CLI."""
    configure_logging()
    cli()


if __name__ == "__main__":
    main()
