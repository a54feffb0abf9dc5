"""Pydantic models exchanged between knowledge sources, reasoning backends,
the linker and the batch processor."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import (
    DEFAULT_BATCH_MAX_SUGGESTIONS,
    DEFAULT_CONCURRENCY,
    DEFAULT_INCLUDE_PATTERNS,
    DEFAULT_LANGUAGE,
    DEFAULT_LOOKUP_RESULTS,
    DEFAULT_MIN_CONFIDENCE,
)


# ─────────────────────────────────────────────────────────────────────────────
# Knowledge lookups
# ─────────────────────────────────────────────────────────────────────────────


class KnowledgeEntry(BaseModel):
    """A single record returned by an external knowledge source."""

    model_config = ConfigDict(frozen=True)

    title: str
    summary: str = ""  # Pre-rendered short description
    url: str | None = None
    source: str  # Provider name that produced the entry
    metadata: dict[str, Any] = Field(default_factory=dict)  # Opaque, provider-specific


class LookupOptions(BaseModel):
    """Options for a knowledge lookup."""

    max_results: int = DEFAULT_LOOKUP_RESULTS
    language: str = DEFAULT_LANGUAGE
    skip_cache: bool = False  # Bypass cache read and write for this call


class LookupResult(BaseModel):
    """Outcome of a knowledge lookup."""

    success: bool
    provider: str
    entries: list[KnowledgeEntry] = Field(default_factory=list)
    error: str | None = None
    cached: bool = False  # Set only by the registry


# ─────────────────────────────────────────────────────────────────────────────
# Link suggestions
# ─────────────────────────────────────────────────────────────────────────────


class LinkSuggestion(BaseModel):
    """A proposed link from the current note to an existing note."""

    target_note: str
    confidence: float  # Clamped to [0, 1]
    reason: str = ""
    suggested_text: str | None = None  # Optional anchor text

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        return max(0.0, min(1.0, float(value)))


class SuggestLinksResult(BaseModel):
    """Outcome of asking a reasoning backend for link suggestions."""

    success: bool
    provider: str
    suggestions: list[LinkSuggestion] = Field(default_factory=list)
    error: str | None = None


class VaultContext(BaseModel):
    """Read-only snapshot of the vault given to reasoning backends."""

    note_paths: list[str] = Field(default_factory=list)
    note_titles: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────────────────────
# Link insertion
# ─────────────────────────────────────────────────────────────────────────────


class MatchOccurrence(BaseModel):
    """One textual occurrence of a suggestion's target."""

    offset: int  # Absolute character offset in the whole document
    length: int
    text: str  # The text as it appears in the document
    line: int  # 1-based
    column: int  # 1-based


class LinkMatch(BaseModel):
    """A suggestion paired with every safe occurrence of its target."""

    suggestion: LinkSuggestion
    matches: list[MatchOccurrence] = Field(default_factory=list)


class LinkChange(BaseModel):
    """Audit record of one substitution made by the linker."""

    target_note: str
    line: int
    column: int
    offset: int  # Offset in the original content
    original_text: str
    linked_text: str


class InsertResult(BaseModel):
    """Result of inserting links into a document."""

    original_content: str
    new_content: str
    inserted_links: int = 0
    skipped_links: int = 0
    changes: list[LinkChange] = Field(default_factory=list)  # Ascending line order


# ─────────────────────────────────────────────────────────────────────────────
# Batch processing
# ─────────────────────────────────────────────────────────────────────────────


class BatchOptions(BaseModel):
    """Options for a batch suggestion run."""

    max_suggestions: int = DEFAULT_BATCH_MAX_SUGGESTIONS
    min_confidence: float = DEFAULT_MIN_CONFIDENCE
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    exclude_patterns: list[str] = Field(default_factory=list)
    include_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_INCLUDE_PATTERNS))


class BatchItem(BaseModel):
    """A document queued for suggestion."""

    path: str
    content: str


class BatchSuggestion(BaseModel):
    """Suggestions recorded for one document."""

    path: str
    suggestions: list[LinkSuggestion] = Field(default_factory=list)
    error: str | None = None


class BatchResult(BaseModel):
    """Aggregate of a batch suggestion run."""

    processed: int = 0
    successful: int = 0
    failed: int = 0
    total_suggestions: int = 0
    items: list[BatchSuggestion] = Field(default_factory=list)


class BatchApplyItem(BaseModel):
    """Insertion outcome for one document."""

    path: str
    inserted: int = 0
    skipped: int = 0
    error: str | None = None


class BatchApplyResult(BaseModel):
    """Aggregate of a batch apply run."""

    processed: int = 0
    modified: int = 0
    skipped: int = 0
    failed: int = 0
    total_inserted: int = 0
    items: list[BatchApplyItem] = Field(default_factory=list)


class VaultItem(BaseModel):
    """A file or folder inside a vault."""

    path: str  # Vault-relative, POSIX separators
    name: str
    is_folder: bool = False


# ─────────────────────────────────────────────────────────────────────────────
# Note generation
# ─────────────────────────────────────────────────────────────────────────────


class NoteTemplate(BaseModel):
    """A note generated from a knowledge entry, ready to be written."""

    title: str
    content: str
    frontmatter: dict[str, Any] = Field(default_factory=dict)
    suggested_path: str | None = None
