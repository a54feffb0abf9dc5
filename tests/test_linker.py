"""Tests for safe wiki-link insertion."""

from __future__ import annotations

from conftest import suggestion
from vaultlink.linker import (
    apply_changes,
    existing_link_counts,
    find_frontmatter_end,
    find_linkable_matches,
    format_link,
    insert_links,
    preview_changes,
)
from vaultlink.models import InsertResult


PHOENIX = suggestion("Project Phoenix", 0.9)


# =============================================================================
# Basic insertion
# =============================================================================


class TestInsertLinks:
    def test_first_occurrence_only(self):
        content = "Project Phoenix started. Later, Project Phoenix grew."

        result = insert_links(content, [PHOENIX])

        assert result.new_content == "[[Project Phoenix]] started. Later, Project Phoenix grew."
        assert result.inserted_links == 1
        assert result.skipped_links == 1
        assert result.original_content == content

    def test_case_insensitive_keeps_visible_text(self):
        result = insert_links("we love project phoenix.", [PHOENIX])

        assert result.new_content == "we love [[Project Phoenix|project phoenix]]."
        assert result.changes[0].original_text == "project phoenix"

    def test_whole_word_only(self):
        content = "ProjectPhoenix and Project Phoenixes, but Project Phoenix."

        result = insert_links(content, [PHOENIX])

        assert result.new_content == "ProjectPhoenix and Project Phoenixes, but [[Project Phoenix]]."

    def test_no_match_returns_unchanged(self):
        result = insert_links("Nothing relevant here.", [PHOENIX])

        assert result.new_content == "Nothing relevant here."
        assert result.inserted_links == 0
        assert result.changes == []

    def test_empty_suggestions(self):
        result = insert_links("Project Phoenix", [])
        assert result.new_content == "Project Phoenix"

    def test_blank_target_ignored(self):
        result = insert_links("Project Phoenix", [suggestion("   ")])
        assert result.inserted_links == 0

    def test_all_matches_with_limit(self):
        content = "Atlas one. Atlas two. Atlas three."

        result = insert_links(content, [suggestion("Atlas")], first_match_only=False, max_per_note=2)

        assert result.new_content == "[[Atlas]] one. [[Atlas]] two. Atlas three."
        assert result.inserted_links == 2
        assert result.skipped_links == 1

    def test_display_text_used_when_requested(self):
        s = suggestion("Project Phoenix", text="the phoenix effort")

        plain = insert_links("Project Phoenix rocks.", [s])
        shown = insert_links("Project Phoenix rocks.", [s], use_display_text=True)

        assert plain.new_content == "[[Project Phoenix]] rocks."
        assert shown.new_content == "[[Project Phoenix|the phoenix effort]] rocks."

    def test_regex_metacharacters_in_target(self):
        result = insert_links("Uses C++ daily.", [suggestion("C++")])
        # "+" is not a word character, so the trailing boundary is the space
        assert result.new_content == "Uses [[C++]] daily."


# =============================================================================
# Protected regions
# =============================================================================


class TestProtectedRegions:
    def test_frontmatter_untouched(self):
        content = "---\ntitle: Project Phoenix\n---\n\nProject Phoenix is live.\n"

        result = insert_links(content, [PHOENIX])

        assert result.new_content == "---\ntitle: Project Phoenix\n---\n\n[[Project Phoenix]] is live.\n"
        assert result.changes[0].line == 5

    def test_unclosed_frontmatter_is_body(self):
        content = "---\nProject Phoenix\n"
        result = insert_links(content, [PHOENIX])
        assert result.new_content == "---\n[[Project Phoenix]]\n"

    def test_code_span_untouched(self):
        content = "Run `Project Phoenix` then read about Project Phoenix."

        result = insert_links(content, [PHOENIX])

        assert result.new_content == "Run `Project Phoenix` then read about [[Project Phoenix]]."

    def test_inside_other_link_untouched(self):
        content = "See [[Project Phoenix Retro]] and [[Notes|Project Phoenix]]."

        result = insert_links(content, [PHOENIX])

        assert result.new_content == content
        assert result.inserted_links == 0

    def test_line_already_linking_target_skipped(self):
        content = "[[Project Phoenix]] and again Project Phoenix.\nProject Phoenix below."

        matches = find_linkable_matches(content, [PHOENIX])

        assert [m.line for m in matches[0].matches] == [2]

    def test_windows_line_endings_frontmatter(self):
        content = "---\r\ntitle: Project Phoenix\r\n---\r\nProject Phoenix\r\n"
        result = insert_links(content, [PHOENIX])
        assert result.new_content == "---\r\ntitle: Project Phoenix\r\n---\r\n[[Project Phoenix]]\r\n"


# =============================================================================
# Idempotence and multiple suggestions
# =============================================================================


class TestIdempotence:
    def test_second_run_is_noop(self):
        content = "Intro.\n\nProject Phoenix here.\n\nProject Phoenix there."

        once = insert_links(content, [PHOENIX])
        twice = insert_links(once.new_content, [PHOENIX])

        assert twice.new_content == once.new_content
        assert twice.inserted_links == 0

    def test_existing_links_count_against_limit(self):
        content = "[[Atlas]] first.\nAtlas second.\nAtlas third."

        result = insert_links(content, [suggestion("Atlas")], first_match_only=False, max_per_note=2)

        assert result.new_content == "[[Atlas]] first.\n[[Atlas]] second.\nAtlas third."

    def test_existing_link_counts_ignore_frontmatter(self):
        content = "---\nrelated: [[Atlas]]\n---\n[[Atlas]] and [[atlas|the atlas]] and [[Phoenix]]"

        assert existing_link_counts(content) == {"atlas": 2, "phoenix": 1}

    def test_link_syntax_in_code_span_is_not_a_link(self):
        content = "Use `[[Alpha]]` syntax.\nAlpha is great.\n"

        result = insert_links(content, [suggestion("Alpha")])

        assert existing_link_counts(content) == {}
        assert result.new_content == "Use `[[Alpha]]` syntax.\n[[Alpha]] is great.\n"
        assert result.inserted_links == 1


class TestMultipleSuggestions:
    def test_overlapping_targets_never_nest(self):
        content = "Project Phoenix launched."

        result = insert_links(content, [PHOENIX, suggestion("Phoenix")])

        assert result.new_content == "[[Project Phoenix]] launched."
        assert result.inserted_links == 1
        assert "[[[[" not in result.new_content

    def test_changes_sorted_ascending_and_replayable(self):
        content = "Atlas line one.\nProject Phoenix line two.\nMore Atlas and Project Phoenix."

        result = insert_links(content, [PHOENIX, suggestion("Atlas")])

        assert [(c.line, c.column) for c in result.changes] == [(1, 1), (2, 1)]
        assert apply_changes(content, result.changes) == result.new_content

    def test_same_line_changes_replay(self):
        content = "Atlas meets Project Phoenix."

        result = insert_links(content, [PHOENIX, suggestion("Atlas")])

        assert result.new_content == "[[Atlas]] meets [[Project Phoenix]]."
        assert [c.column for c in result.changes] == [1, 13]
        assert apply_changes(content, result.changes) == result.new_content

    def test_offsets_point_into_original(self):
        content = "héllo Atlas"

        result = insert_links(content, [suggestion("Atlas")])

        change = result.changes[0]
        assert content[change.offset : change.offset + len(change.original_text)] == "Atlas"


# =============================================================================
# Helpers
# =============================================================================


class TestFormatLink:
    def test_exact_match(self):
        assert format_link("Atlas", "Atlas") == "[[Atlas]]"

    def test_different_case(self):
        assert format_link("Atlas", "atlas") == "[[Atlas|atlas]]"

    def test_display_text(self):
        assert format_link("Atlas", "Atlas", "the map") == "[[Atlas|the map]]"

    def test_display_text_equal_to_target(self):
        assert format_link("Atlas", "atlas", "Atlas") == "[[Atlas|atlas]]"


class TestFrontmatterEnd:
    def test_closed(self):
        assert find_frontmatter_end(["---", "a: 1", "---", "body"]) == 2

    def test_not_first_line(self):
        assert find_frontmatter_end(["body", "---", "x", "---"]) == -1

    def test_unclosed(self):
        assert find_frontmatter_end(["---", "a: 1"]) == -1

    def test_empty(self):
        assert find_frontmatter_end([]) == -1


class TestPreview:
    def test_no_changes(self):
        result = InsertResult(original_content="x", new_content="x")
        assert preview_changes(result) == "No links to insert."

    def test_lists_changes_and_skips(self):
        content = "Project Phoenix and Project Phoenix."
        preview = preview_changes(insert_links(content, [PHOENIX]))

        assert preview.startswith("## Link Changes Preview (1 insertions)")
        assert '- Line 1: "Project Phoenix" -> [[Project Phoenix]]' in preview
        assert "(1 additional matches skipped)" in preview
