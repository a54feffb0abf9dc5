"""Insert ``[[wiki links]]`` into markdown text without damaging it.

The linker finds whole-word, case-insensitive occurrences of each
suggestion's target and wraps a bounded number of them in wiki links.
Text that must not change is never touched:

- the YAML frontmatter block at the top of the document,
- anything inside an existing ``[[...]]`` link,
- anything inside an inline code span (`` `...` ``).

A line that already links to a target is left alone for that target, and
links already present in the body count against the per-target limit, so
running the linker twice produces the same text as running it once.
"""

from __future__ import annotations

import re

from .config import DEFAULT_FIRST_MATCH_ONLY, DEFAULT_MAX_PER_NOTE
from .models import InsertResult, LinkChange, LinkMatch, LinkSuggestion, MatchOccurrence

FRONTMATTER_DELIMITER = "---"

_WIKI_LINK = re.compile(r"\[\[[^\]]+\]\]")
_CODE_SPAN = re.compile(r"`[^`]+`")
_LINK_TARGET = re.compile(r"\[\[([^\]|]+)(\|[^\]]+)?\]\]")

Span = tuple[int, int]


def find_frontmatter_end(lines: list[str]) -> int:
    """Return the index of the closing frontmatter delimiter, or -1.

    Frontmatter exists only when the first line is exactly ``---`` and a
    later line is exactly ``---``.
    """
    if not lines or lines[0].rstrip("\r") != FRONTMATTER_DELIMITER:
        return -1
    for i, line in enumerate(lines[1:], start=1):
        if line.rstrip("\r") == FRONTMATTER_DELIMITER:
            return i
    return -1


def _body_lines(content: str) -> list[tuple[int, str, int]]:
    """(0-based line number, text, absolute offset) for every non-frontmatter line."""
    lines = content.split("\n")
    frontmatter_end = find_frontmatter_end(lines)

    body = []
    offset = 0
    for line_num, text in enumerate(lines):
        if line_num > frontmatter_end:
            body.append((line_num, text, offset))
        offset += len(text) + 1
    return body


def _spans(pattern: re.Pattern[str], text: str) -> list[Span]:
    return [(m.start(), m.end()) for m in pattern.finditer(text)]


def _overlaps(start: int, end: int, spans: list[Span]) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in spans)


def _links_to(text: str, target: str) -> int:
    target = target.lower()
    return sum(1 for m in _LINK_TARGET.finditer(text) if m.group(1).strip().lower() == target)


def _target_pattern(target: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(target)}(?!\w)", re.IGNORECASE)


def find_linkable_matches(content: str, suggestions: list[LinkSuggestion]) -> list[LinkMatch]:
    """Find every safe occurrence of each suggestion's target.

    Only suggestions with at least one occurrence are returned, in input
    order. Occurrences are listed in document order.
    """
    body = _body_lines(content)
    protected = {line_num: _spans(_WIKI_LINK, text) + _spans(_CODE_SPAN, text) for line_num, text, _ in body}

    results = []
    for suggestion in suggestions:
        target = suggestion.target_note
        if not target.strip():
            continue
        pattern = _target_pattern(target)

        matches = []
        for line_num, text, line_offset in body:
            if _links_to(text, target):
                continue
            for m in pattern.finditer(text):
                if _overlaps(m.start(), m.end(), protected[line_num]):
                    continue
                matches.append(
                    MatchOccurrence(
                        offset=line_offset + m.start(),
                        length=len(m.group(0)),
                        text=m.group(0),
                        line=line_num + 1,
                        column=m.start() + 1,
                    )
                )

        if matches:
            results.append(LinkMatch(suggestion=suggestion, matches=matches))
    return results


def existing_link_counts(content: str) -> dict[str, int]:
    """Count links already present in the body, keyed by lowercased target."""
    counts: dict[str, int] = {}
    for _, text, _ in _body_lines(content):
        for m in _LINK_TARGET.finditer(_CODE_SPAN.sub("", text)):
            key = m.group(1).strip().lower()
            counts[key] = counts.get(key, 0) + 1
    return counts


def select_matches(
    link_matches: list[LinkMatch],
    first_match_only: bool = DEFAULT_FIRST_MATCH_ONLY,
    max_per_note: int = DEFAULT_MAX_PER_NOTE,
    existing_links: dict[str, int] | None = None,
) -> tuple[list[tuple[LinkSuggestion, MatchOccurrence]], int]:
    """Choose which occurrences to link.

    Each target may be linked at most ``limit`` times in the document,
    where ``limit`` is 1 with ``first_match_only`` and ``max_per_note``
    otherwise. Links already present count against that limit. An
    occurrence overlapping one already chosen for another suggestion is
    never chosen.

    Returns:
        The chosen (suggestion, occurrence) pairs and the number of
        occurrences that were found but not chosen.
    """
    limit = 1 if first_match_only else max(max_per_note, 0)
    used = dict(existing_links or {})
    claimed: list[Span] = []
    selected: list[tuple[LinkSuggestion, MatchOccurrence]] = []
    skipped = 0

    for link_match in link_matches:
        key = link_match.suggestion.target_note.strip().lower()
        for occurrence in link_match.matches:
            start, end = occurrence.offset, occurrence.offset + occurrence.length
            if used.get(key, 0) >= limit or _overlaps(start, end, claimed):
                skipped += 1
                continue
            selected.append((link_match.suggestion, occurrence))
            claimed.append((start, end))
            used[key] = used.get(key, 0) + 1

    return selected, skipped


def format_link(target: str, matched_text: str, display_text: str | None = None) -> str:
    """Render a wiki link, keeping the visible text where it differs."""
    if display_text and display_text != target:
        return f"[[{target}|{display_text}]]"
    if matched_text != target:
        return f"[[{target}|{matched_text}]]"
    return f"[[{target}]]"


def insert_links(
    content: str,
    suggestions: list[LinkSuggestion],
    max_per_note: int = DEFAULT_MAX_PER_NOTE,
    first_match_only: bool = DEFAULT_FIRST_MATCH_ONLY,
    use_display_text: bool = False,
) -> InsertResult:
    """Wrap occurrences of suggested targets in wiki links.

    Replacements are spliced from the end of the document backwards so
    earlier offsets stay valid; the reported changes are then sorted by
    line and column.

    Example:
        >>> result = insert_links("See Project Phoenix for details.",
        ...                       [LinkSuggestion(target_note="Project Phoenix", confidence=0.9)])
        >>> result.new_content
        'See [[Project Phoenix]] for details.'
    """
    link_matches = find_linkable_matches(content, suggestions)
    selected, skipped = select_matches(
        link_matches, first_match_only, max_per_note, existing_link_counts(content)
    )

    new_content = content
    changes = []
    for suggestion, occurrence in sorted(selected, key=lambda pair: pair[1].offset, reverse=True):
        linked_text = format_link(
            suggestion.target_note,
            occurrence.text,
            suggestion.suggested_text if use_display_text else None,
        )
        end = occurrence.offset + occurrence.length
        new_content = new_content[: occurrence.offset] + linked_text + new_content[end:]
        changes.append(
            LinkChange(
                target_note=suggestion.target_note,
                line=occurrence.line,
                column=occurrence.column,
                offset=occurrence.offset,
                original_text=occurrence.text,
                linked_text=linked_text,
            )
        )

    changes.sort(key=lambda change: (change.line, change.column))

    return InsertResult(
        original_content=content,
        new_content=new_content,
        inserted_links=len(selected),
        skipped_links=skipped,
        changes=changes,
    )


def apply_changes(original: str, changes: list[LinkChange]) -> str:
    """Replay a list of changes, in the order given, against the original text.

    Offsets in ``changes`` refer to ``original``; the running length
    difference is tracked so each splice lands where it did originally.
    """
    result = original
    delta = 0
    for change in changes:
        start = change.offset + delta
        result = result[:start] + change.linked_text + result[start + len(change.original_text) :]
        delta += len(change.linked_text) - len(change.original_text)
    return result


def preview_changes(result: InsertResult) -> str:
    """Render a short markdown summary of the changes in ``result``."""
    if not result.changes:
        return "No links to insert."

    lines = [f"## Link Changes Preview ({result.inserted_links} insertions)", ""]
    lines.extend(f'- Line {c.line}: "{c.original_text}" -> {c.linked_text}' for c in result.changes)
    if result.skipped_links > 0:
        lines.extend(["", f"({result.skipped_links} additional matches skipped)"])
    return "\n".join(lines)
