"""Turn knowledge entries into new vault notes.

Three template styles are supported:

- ``minimal``: the summary and a source link.
- ``standard``: a titled note with References and Notes sections.
- ``detailed``: standard plus a Details section built from the entry's
  metadata, using a per-source field table.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date
from typing import Any, Literal

from .frontmatter import build_frontmatter
from .models import KnowledgeEntry, NoteTemplate

TemplateStyle = Literal["minimal", "standard", "detailed"]

TEMPLATE_STYLES = ("minimal", "standard", "detailed")

DEFAULT_FOLDER = "References"

# Folder a generated note is placed in, by source
DEFAULT_FOLDER_MAPPING: dict[str, str] = {
    "wikipedia": "References",
    "wikidata": "References",
    "dbpedia": "References",
    "openlibrary": "Books",
    "arxiv": "Papers",
    "shodan": "Security",
    "github": "Code",
}

SOURCE_NAMES: dict[str, str] = {
    "wikipedia": "Wikipedia",
    "wikidata": "Wikidata",
    "dbpedia": "DBpedia",
    "openlibrary": "OpenLibrary",
    "arxiv": "arXiv",
    "shodan": "Shodan",
    "github": "GitHub",
}

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')
MAX_FILENAME_LENGTH = 100


def _join(value: Any, limit: int | None = None) -> str:
    items = list(value)[:limit] if limit else list(value)
    return ", ".join(str(item) for item in items)


# (metadata key, label, formatter) per source
MetaField = tuple[str, str, Callable[[Any], str] | None]

METADATA_FIELDS: dict[str, list[MetaField]] = {
    "openlibrary": [
        ("authors", "Authors", _join),
        ("year", "Published", None),
        ("isbn", "ISBN", None),
        ("subjects", "Subjects", _join),
        ("birthDate", "Born", None),
        ("deathDate", "Died", None),
        ("workCount", "Works", None),
        ("topWork", "Notable work", None),
    ],
    "wikipedia": [
        ("description", "Description", None),
    ],
    "wikidata": [
        ("qid", "Wikidata ID", None),
    ],
    "dbpedia": [
        ("types", "Types", _join),
        ("categories", "Categories", lambda v: _join(v, 5)),
    ],
    "arxiv": [
        ("authors", "Authors", _join),
        ("published", "Published", None),
        ("arxivId", "arXiv ID", None),
        ("categories", "Categories", _join),
        ("doi", "DOI", None),
        ("pdfLink", "PDF", lambda v: f"[Download]({v})"),
    ],
    "shodan": [
        ("ip", "IP", None),
        ("hostnames", "Hostnames", _join),
        ("org", "Organization", None),
        ("country", "Country", None),
        ("ports", "Open Ports", _join),
        ("os", "OS", None),
        ("vulns", "Vulnerabilities", _join),
    ],
    "github": [
        ("owner", "Owner", None),
        ("language", "Language", None),
        ("stars", "Stars", None),
        ("forks", "Forks", None),
        ("license", "License", None),
        ("topics", "Topics", _join),
        ("login", "Username", None),
        ("publicRepos", "Public Repos", None),
        ("followers", "Followers", None),
        ("company", "Company", None),
        ("location", "Location", None),
    ],
}


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def source_name(source: str) -> str:
    return SOURCE_NAMES.get(source, _capitalize(source))


def sanitize_filename(name: str) -> str:
    """Strip characters that are invalid in filenames and collapse whitespace."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("", name)
    return " ".join(cleaned.split())[:MAX_FILENAME_LENGTH].strip()


def format_metadata_section(entry: KnowledgeEntry) -> str | None:
    """Render the entry's metadata as a bullet list, or None if there is nothing to show.

    Sources with a field table show only those fields, in table order.
    Other sources show every scalar metadata value.
    """
    if not entry.metadata:
        return None

    lines = []
    fields = METADATA_FIELDS.get(entry.source)
    if fields is not None:
        for key, label, fmt in fields:
            value = entry.metadata.get(key)
            if value is None or value == []:
                continue
            lines.append(f"- **{label}**: {fmt(value) if fmt else value}")
    else:
        for key, value in entry.metadata.items():
            if value and not isinstance(value, (dict, list, tuple)):
                lines.append(f"- **{_capitalize(key)}**: {value}")

    return "\n".join(lines) if lines else None


def _minimal_content(entry: KnowledgeEntry, include_url: bool) -> str:
    parts = [entry.summary]
    if include_url and entry.url:
        parts.extend(["", f"[Source]({entry.url})"])
    return "\n".join(parts)


def _standard_content(entry: KnowledgeEntry, detailed: bool, include_url: bool) -> str:
    sections = [f"# {entry.title}", "", entry.summary]

    if include_url and entry.url:
        sections.extend(["", "## References", "", f"- [{source_name(entry.source)}]({entry.url})"])

    if detailed:
        details = format_metadata_section(entry)
        if details:
            sections.extend(["", "## Details", "", details])

    sections.extend(["", "## Notes", "", "<!-- Add your notes here -->"])
    return "\n".join(sections)


def _flatten_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value
        for key, value in metadata.items()
        if value is not None and not isinstance(value, dict)
    }


def generate_note_from_entry(
    entry: KnowledgeEntry,
    template_style: TemplateStyle = "standard",
    include_url: bool = True,
    include_metadata: bool = True,
    folder_mapping: dict[str, str] | None = None,
    today: date | None = None,
) -> NoteTemplate:
    """Build a note for ``entry``.

    The frontmatter carries the title, source, creation date, the URL
    (when ``include_url``) and the entry's scalar and list metadata (when
    ``include_metadata``). The suggested path is
    ``<folder for source>/<sanitized title>.md``.

    Raises:
        ValueError: If ``template_style`` is not a known style.
    """
    if template_style not in TEMPLATE_STYLES:
        raise ValueError(f"Unknown template style '{template_style}'. Use one of: {', '.join(TEMPLATE_STYLES)}")

    frontmatter: dict[str, Any] = {
        "title": entry.title,
        "source": entry.source,
        "created": (today or date.today()).isoformat(),
    }
    if include_url and entry.url:
        frontmatter["url"] = entry.url
    if include_metadata and entry.metadata:
        for key, value in _flatten_metadata(entry.metadata).items():
            frontmatter.setdefault(key, value)

    if template_style == "minimal":
        content = _minimal_content(entry, include_url)
    else:
        content = _standard_content(entry, template_style == "detailed", include_url)

    mapping = folder_mapping if folder_mapping is not None else DEFAULT_FOLDER_MAPPING
    folder = mapping.get(entry.source, DEFAULT_FOLDER)

    return NoteTemplate(
        title=entry.title,
        content=content,
        frontmatter=frontmatter,
        suggested_path=f"{folder}/{sanitize_filename(entry.title)}.md",
    )


def generate_notes_from_entries(entries: list[KnowledgeEntry], **options: Any) -> list[NoteTemplate]:
    return [generate_note_from_entry(entry, **options) for entry in entries]


def format_note_content(template: NoteTemplate) -> str:
    """Render a note template as a complete markdown document."""
    return build_frontmatter(template.frontmatter) + template.content
