"""Tests for batch suggestion and batch application."""

from __future__ import annotations

import pytest

from conftest import FakeAIProvider, create_note, suggestion
from vaultlink.batch import (
    batch_apply_links,
    batch_suggest_links,
    collect_documents,
    filter_suggestions,
    format_batch_apply_result,
    format_batch_result,
    match_glob,
)
from vaultlink.models import BatchItem, BatchOptions, BatchResult, BatchSuggestion, VaultContext
from vaultlink.vault import FolderNotFoundError


def items(*paths: str) -> list[BatchItem]:
    return [BatchItem(path=p, content=f"content of {p}") for p in paths]


# =============================================================================
# Glob matching and document selection
# =============================================================================


class TestMatchGlob:
    @pytest.mark.parametrize(
        ("path", "pattern", "expected"),
        [
            ("a.md", "*.md", True),
            ("deep/nested/a.md", "*.md", True),
            ("a.txt", "*.md", False),
            ("archive/old.md", "archive/**", True),
            ("notes/archive/old.md", "archive/**", False),
            ("notes/archive/old.md", "**/archive/**", True),
            ("drafts/x.md", "drafts/*.md", True),
            ("drafts/sub/x.md", "drafts/*.md", False),
            ("a1.md", "a?.md", True),
            ("templates", "templates", True),
        ],
    )
    def test_patterns(self, path, pattern, expected):
        assert match_glob(path, pattern) is expected


class TestCollectDocuments:
    def test_collects_markdown_in_walk_order(self, sample_vault, store):
        create_note(sample_vault, "people/photo.png", "not markdown")

        collected = collect_documents(store)

        assert [i.path for i in collected] == [
            "people/ada.md",
            "projects/phoenix-notes.md",
            "Project Atlas.md",
            "Project Phoenix.md",
        ]
        assert collected[0].content.startswith("Ada works")

    def test_subfolder(self, sample_vault, store):
        assert [i.path for i in collect_documents(store, "projects")] == ["projects/phoenix-notes.md"]

    def test_excluded_folder_not_descended(self, sample_vault, store):
        options = BatchOptions(exclude_patterns=["projects"])

        paths = [i.path for i in collect_documents(store, "", options)]

        assert "projects/phoenix-notes.md" not in paths
        assert "people/ada.md" in paths

    def test_exclude_file_pattern(self, sample_vault, store):
        options = BatchOptions(exclude_patterns=["Project *.md"])

        paths = [i.path for i in collect_documents(store, "", options)]

        assert paths == ["people/ada.md", "projects/phoenix-notes.md"]

    def test_undecodable_file_skipped(self, tmp_vault, store):
        (tmp_vault / "bad.md").write_bytes(b"caf\xe9 Alpha\n")
        create_note(tmp_vault, "good.md", "Alpha")

        collected = collect_documents(store)

        assert [i.path for i in collected] == ["good.md"]

    def test_include_patterns(self, sample_vault, store):
        options = BatchOptions(include_patterns=["people/*.md"])

        assert [i.path for i in collect_documents(store, "", options)] == ["people/ada.md"]

    def test_missing_folder_raises(self, store):
        with pytest.raises(FolderNotFoundError):
            collect_documents(store, "nope")


# =============================================================================
# Suggestion phase
# =============================================================================


class TestFilterSuggestions:
    def test_threshold_and_truncation(self):
        suggestions = [suggestion("A", 0.9), suggestion("B", 0.4), suggestion("C", 0.5), suggestion("D", 0.7)]

        kept = filter_suggestions(suggestions, min_confidence=0.5, max_results=2)

        assert [s.target_note for s in kept] == ["A", "C"]


class TestBatchSuggest:
    @pytest.mark.asyncio
    async def test_counts_and_bounded_concurrency(self):
        """Five documents, concurrency 2, one failing."""
        backend = FakeAIProvider(
            default=[suggestion("Project Phoenix", 0.9)],
            fail_paths={"c.md"},
            delay=0.01,
        )

        result = await batch_suggest_links(
            items("a.md", "b.md", "c.md", "d.md", "e.md"),
            backend,
            VaultContext(),
            BatchOptions(concurrency=2),
        )

        assert result.processed == 5
        assert result.successful == 4
        assert result.failed == 1
        assert result.total_suggestions == 4
        assert backend.max_in_flight <= 2
        assert [i.path for i in result.items] == ["a.md", "b.md", "c.md", "d.md", "e.md"]
        assert result.items[2].error == "backend error"
        assert result.items[2].suggestions == []

    @pytest.mark.asyncio
    async def test_exception_recorded_on_item(self):
        backend = FakeAIProvider(default=[suggestion("X")], raise_paths={"b.md"})

        result = await batch_suggest_links(items("a.md", "b.md", "c.md"), backend, VaultContext())

        assert result.processed == 3
        assert result.failed == 1
        assert "exploded" in result.items[1].error
        assert result.items[2].suggestions

    @pytest.mark.asyncio
    async def test_filters_each_item(self):
        backend = FakeAIProvider(
            suggestions={
                "a.md": [suggestion("A", 0.95), suggestion("B", 0.9), suggestion("C", 0.2)],
            }
        )

        result = await batch_suggest_links(
            items("a.md", "b.md"),
            backend,
            VaultContext(),
            BatchOptions(min_confidence=0.5, max_suggestions=1),
        )

        assert [s.target_note for s in result.items[0].suggestions] == ["A"]
        assert result.items[1].suggestions == []
        assert result.successful == 2
        assert result.total_suggestions == 1

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        result = await batch_suggest_links([], FakeAIProvider(), VaultContext())
        assert result == BatchResult()

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValueError):
            BatchOptions(concurrency=0)


# =============================================================================
# Apply phase
# =============================================================================


@pytest.fixture
def suggested(sample_vault) -> BatchResult:
    return BatchResult(
        processed=4,
        successful=3,
        failed=1,
        items=[
            BatchSuggestion(path="people/ada.md", suggestions=[suggestion("Project Phoenix"), suggestion("Project Atlas")]),
            BatchSuggestion(path="projects/phoenix-notes.md", suggestions=[suggestion("Nothing Matches")]),
            BatchSuggestion(path="Project Atlas.md"),
            BatchSuggestion(path="gone.md", suggestions=[suggestion("Project Phoenix")]),
        ],
    )


class TestBatchApply:
    @pytest.mark.asyncio
    async def test_writes_and_aggregates(self, sample_vault, store, suggested):
        result = await batch_apply_links(store, suggested)

        assert result.processed == 4
        assert result.modified == 1
        assert result.skipped == 2
        assert result.failed == 1
        assert result.total_inserted == 2

        assert (sample_vault / "people/ada.md").read_text() == (
            "Ada works on [[Project Phoenix]] and [[Project Atlas]].\n"
        )
        by_path = {item.path: item for item in result.items}
        assert by_path["gone.md"].error == "File not found"
        assert by_path["Project Atlas.md"].inserted == 0
        assert by_path["Project Atlas.md"].error is None

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, sample_vault, store, suggested):
        before = (sample_vault / "people/ada.md").read_text()

        result = await batch_apply_links(store, suggested, dry_run=True)

        assert result.total_inserted == 2
        assert (sample_vault / "people/ada.md").read_text() == before

    @pytest.mark.asyncio
    async def test_rerun_inserts_nothing(self, sample_vault, store, suggested):
        await batch_apply_links(store, suggested)
        again = await batch_apply_links(store, suggested)

        assert again.total_inserted == 0
        assert again.modified == 0


# =============================================================================
# Reports
# =============================================================================


class TestReports:
    def test_suggestion_report(self):
        result = BatchResult(
            processed=2,
            successful=1,
            failed=1,
            total_suggestions=1,
            items=[
                BatchSuggestion(path="a.md", suggestions=[suggestion("Atlas", 0.87)]),
                BatchSuggestion(path="b.md", error="timeout"),
            ],
        )

        report = format_batch_result(result)

        assert report.startswith("## Batch Link Suggestions")
        assert "- Processed: 2 files" in report
        assert "### a.md" in report
        assert "- [[Atlas]] (87%) - mentions Atlas" in report
        assert "### Errors" in report
        assert "- b.md: timeout" in report

    def test_suggestion_report_empty(self):
        assert "No link suggestions found." in format_batch_result(BatchResult())

    @pytest.mark.asyncio
    async def test_apply_report(self, sample_vault, store, suggested):
        result = await batch_apply_links(store, suggested, dry_run=True)

        report = format_batch_apply_result(result, dry_run=True)

        assert report.startswith("## Batch Link Application (dry run)")
        assert "- Modified: 1" in report
        assert "- people/ada.md: 2 links inserted" in report
        assert "- gone.md: File not found" in report
