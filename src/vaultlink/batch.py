"""Suggest and insert links across many documents.

A batch run has two phases:

1. ``batch_suggest_links`` asks a reasoning backend for suggestions, a
   bounded number of documents at a time (chunks of ``concurrency``).
2. ``batch_apply_links`` inserts the kept suggestions into every document
   at once, optionally as a dry run that writes nothing.

A failure on one document is recorded on that document's item and never
stops the rest of the batch.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Iterator
from functools import lru_cache
from pathlib import PurePosixPath
from typing import TypeVar

from .knowledge.base import AIProvider
from .linker import insert_links
from .models import (
    BatchApplyItem,
    BatchApplyResult,
    BatchItem,
    BatchOptions,
    BatchResult,
    BatchSuggestion,
    LinkSuggestion,
    VaultContext,
)
from .vault import DocumentNotFoundError, DocumentStore

log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# =============================================================================
# Document selection
# =============================================================================


@lru_cache(maxsize=256)
def _glob_regex(pattern: str) -> re.Pattern[str]:
    parts = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(parts) + "$")


def match_glob(path: str, pattern: str) -> bool:
    """Match a vault-relative path against a glob pattern.

    ``**`` matches anything, ``*`` anything except ``/`` and ``?`` a single
    character other than ``/``. A pattern without ``/`` is matched against
    the last path component only, so ``*.md`` selects markdown files at any
    depth.
    """
    subject = path if "/" in pattern else PurePosixPath(path).name
    return bool(_glob_regex(pattern).match(subject))


def _matches_any(path: str, patterns: list[str]) -> bool:
    return any(match_glob(path, pattern) for pattern in patterns)


def _walk(store: DocumentStore, folder: str, options: BatchOptions) -> Iterator[str]:
    for item in store.list_folder(folder):
        if _matches_any(item.path, options.exclude_patterns):
            continue
        if item.is_folder:
            yield from _walk(store, item.path, options)
        elif not options.include_patterns or _matches_any(item.path, options.include_patterns):
            yield item.path


def collect_documents(
    store: DocumentStore, folder: str = "", options: BatchOptions | None = None
) -> list[BatchItem]:
    """Read every document under ``folder`` that the batch should process.

    Excluded folders are not descended into. Files must match an include
    pattern (``*.md`` by default) and no exclude pattern.

    Raises:
        FolderNotFoundError: If ``folder`` does not exist.
    """
    options = options or BatchOptions()
    items = []
    for path in _walk(store, folder, options):
        try:
            items.append(BatchItem(path=path, content=store.read_text(path)))
        except DocumentNotFoundError:
            log.debug("Skipping %s: vanished while collecting", path)
        except (UnicodeDecodeError, OSError) as e:
            log.warning("Skipping %s: %s", path, e)
    return items


# =============================================================================
# Suggestion phase
# =============================================================================


def _chunks(items: list[T], size: int) -> Iterator[list[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


async def _process_in_chunks(
    items: list[T], size: int, process: Callable[[T], Awaitable[R]]
) -> list[R]:
    results: list[R] = []
    for chunk in _chunks(items, size):
        results.extend(await asyncio.gather(*(process(item) for item in chunk)))
    return results


def filter_suggestions(
    suggestions: list[LinkSuggestion], min_confidence: float, max_results: int
) -> list[LinkSuggestion]:
    """Keep suggestions at or above ``min_confidence``, at most ``max_results``."""
    return [s for s in suggestions if s.confidence >= min_confidence][:max_results]


async def _suggest_for_item(
    item: BatchItem,
    provider: AIProvider,
    vault_context: VaultContext,
    options: BatchOptions,
) -> BatchSuggestion:
    try:
        result = await provider.suggest_links(item.content, item.path, vault_context)
    except Exception as e:
        log.warning("Suggestion failed for %s: %s", item.path, e)
        return BatchSuggestion(path=item.path, error=str(e) or type(e).__name__)

    if not result.success:
        return BatchSuggestion(path=item.path, error=result.error or "Unknown error")

    return BatchSuggestion(
        path=item.path,
        suggestions=filter_suggestions(result.suggestions, options.min_confidence, options.max_suggestions),
    )


async def batch_suggest_links(
    items: list[BatchItem],
    provider: AIProvider,
    vault_context: VaultContext,
    options: BatchOptions | None = None,
) -> BatchResult:
    """Collect link suggestions for every item.

    At most ``options.concurrency`` backend calls are in flight at a time;
    each chunk finishes before the next starts. Items appear in the result
    in input order.
    """
    options = options or BatchOptions()
    log.debug("Suggesting links for %d documents, %d at a time", len(items), options.concurrency)

    results = await _process_in_chunks(
        items,
        options.concurrency,
        lambda item: _suggest_for_item(item, provider, vault_context, options),
    )

    return BatchResult(
        processed=len(results),
        successful=sum(1 for r in results if not r.error),
        failed=sum(1 for r in results if r.error),
        total_suggestions=sum(len(r.suggestions) for r in results),
        items=results,
    )


# =============================================================================
# Apply phase
# =============================================================================


async def _apply_to_item(
    store: DocumentStore,
    item: BatchSuggestion,
    first_match_only: bool,
    dry_run: bool,
) -> BatchApplyItem:
    if not item.suggestions:
        return BatchApplyItem(path=item.path)

    if not store.exists(item.path):
        return BatchApplyItem(path=item.path, error="File not found")

    try:
        content = store.read_text(item.path)
        result = insert_links(content, item.suggestions, first_match_only=first_match_only)
        if result.inserted_links > 0 and not dry_run:
            store.write_text(item.path, result.new_content)
    except DocumentNotFoundError:
        return BatchApplyItem(path=item.path, error="File not found")
    except (OSError, ValueError) as e:
        log.warning("Could not apply links to %s: %s", item.path, e)
        return BatchApplyItem(path=item.path, error=str(e))

    return BatchApplyItem(path=item.path, inserted=result.inserted_links, skipped=result.skipped_links)


async def batch_apply_links(
    store: DocumentStore,
    batch_result: BatchResult,
    first_match_only: bool = True,
    dry_run: bool = False,
) -> BatchApplyResult:
    """Insert the suggestions of a batch run into their documents.

    Documents without suggestions are left untouched and are not errors.
    With ``dry_run`` the counts are computed but nothing is written.
    """
    results = await asyncio.gather(
        *(_apply_to_item(store, item, first_match_only, dry_run) for item in batch_result.items)
    )

    return BatchApplyResult(
        processed=len(results),
        modified=sum(1 for r in results if r.inserted > 0),
        skipped=sum(1 for r in results if r.inserted == 0 and not r.error),
        failed=sum(1 for r in results if r.error),
        total_inserted=sum(r.inserted for r in results),
        items=list(results),
    )


# =============================================================================
# Reports
# =============================================================================


def format_batch_result(result: BatchResult) -> str:
    """Render a batch suggestion run as markdown."""
    lines = [
        "## Batch Link Suggestions",
        "",
        f"- Processed: {result.processed} files",
        f"- Successful: {result.successful}",
        f"- Failed: {result.failed}",
        f"- Total suggestions: {result.total_suggestions}",
        "",
    ]

    with_suggestions = [item for item in result.items if item.suggestions]
    if not with_suggestions:
        lines.append("No link suggestions found.")
    for item in with_suggestions:
        lines.append(f"### {item.path}")
        lines.extend(
            f"- [[{s.target_note}]] ({round(s.confidence * 100)}%) - {s.reason}" for s in item.suggestions
        )
        lines.append("")

    errors = [item for item in result.items if item.error]
    if errors:
        if not with_suggestions:
            lines.append("")
        lines.append("### Errors")
        lines.extend(f"- {item.path}: {item.error}" for item in errors)

    return "\n".join(lines).rstrip("\n")


def format_batch_apply_result(result: BatchApplyResult, dry_run: bool = False) -> str:
    """Render a batch apply run as markdown."""
    mode = " (dry run)" if dry_run else ""
    lines = [
        f"## Batch Link Application{mode}",
        "",
        f"- Processed: {result.processed} files",
        f"- Modified: {result.modified}",
        f"- Skipped: {result.skipped}",
        f"- Failed: {result.failed}",
        f"- Total links inserted: {result.total_inserted}",
        "",
    ]

    modified = [item for item in result.items if item.inserted > 0]
    if modified:
        lines.append("### Modified Files")
        lines.extend(f"- {item.path}: {item.inserted} links inserted" for item in modified)
        lines.append("")

    errors = [item for item in result.items if item.error]
    if errors:
        lines.append("### Errors")
        lines.extend(f"- {item.path}: {item.error}" for item in errors)

    return "\n".join(lines).rstrip("\n")
