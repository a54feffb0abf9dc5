"""Document store access.

The linking pipeline only needs a handful of operations on the vault,
captured by the ``DocumentStore`` protocol. ``FileSystemVault`` implements
it over a directory of markdown files; paths are always vault-relative
with forward slashes.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

import frontmatter

from .config import IGNORED_DIRECTORIES
from .models import VaultContext, VaultItem

log = logging.getLogger(__name__)

# Inline #tags: preceded by start of line or whitespace, not a heading marker
_INLINE_TAG = re.compile(r"(?:^|(?<=\s))#([A-Za-z0-9_][\w/-]*)", re.MULTILINE)
_FENCED_CODE = re.compile(r"^```.*?^```", re.MULTILINE | re.DOTALL)


class DocumentNotFoundError(Exception):
    """Raised when a document does not exist in the vault."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Document not found: {path}")


class FolderNotFoundError(Exception):
    """Raised when a folder does not exist in the vault."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Folder not found: {path or '/'}")


@runtime_checkable
class DocumentStore(Protocol):
    """Read/write access to the documents of a vault."""

    def read_text(self, path: str) -> str: ...

    def write_text(self, path: str, text: str) -> None: ...

    def exists(self, path: str) -> bool: ...

    def list_folder(self, path: str = "") -> list[VaultItem]: ...

    def list_documents(self, folder: str = "") -> list[str]: ...


class FileSystemVault:
    """A vault stored as a directory tree on the local filesystem."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        """Map a vault-relative path to an absolute one inside the vault.

        Raises:
            ValueError: If the path escapes the vault root.
        """
        resolved = (self.root / path.strip("/")).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise ValueError(f"Path escapes the vault: {path}")
        return resolved

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def read_text(self, path: str) -> str:
        file_path = self._resolve(path)
        if not file_path.is_file():
            raise DocumentNotFoundError(path)
        return file_path.read_text(encoding="utf-8")

    def write_text(self, path: str, text: str) -> None:
        file_path = self._resolve(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(text, encoding="utf-8")
        log.debug("Wrote %s (%d chars)", path, len(text))

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).exists()
        except ValueError:
            return False

    def list_folder(self, path: str = "") -> list[VaultItem]:
        """List the direct children of a folder, folders first.

        Raises:
            FolderNotFoundError: If the folder does not exist.
        """
        folder = self._resolve(path)
        if not folder.is_dir():
            raise FolderNotFoundError(path)

        items = []
        for child in sorted(folder.iterdir(), key=lambda p: (not p.is_dir(), p.name.lower())):
            if child.is_dir() and child.name in IGNORED_DIRECTORIES:
                continue
            items.append(VaultItem(path=self._relative(child), name=child.name, is_folder=child.is_dir()))
        return items

    def list_documents(self, folder: str = "") -> list[str]:
        """All markdown documents under ``folder``, recursively, sorted.

        Raises:
            FolderNotFoundError: If the folder does not exist.
        """
        base = self._resolve(folder)
        if not base.is_dir():
            raise FolderNotFoundError(folder)

        documents = []
        for file_path in base.rglob("*.md"):
            relative = file_path.relative_to(self.root)
            if any(part in IGNORED_DIRECTORIES for part in relative.parts[:-1]):
                continue
            documents.append(relative.as_posix())
        return sorted(documents)


def extract_tags(text: str) -> set[str]:
    """Tags from a document: frontmatter ``tags`` plus inline ``#tags``."""
    tags: set[str] = set()
    try:
        post = frontmatter.loads(text)
    except Exception as e:
        log.debug("Unparsable frontmatter, using inline tags only: %s", e)
        body = text
    else:
        raw = post.metadata.get("tags") or []
        if isinstance(raw, str):
            raw = [t.strip() for t in raw.split(",")]
        elif not isinstance(raw, list):
            raw = [str(raw)]
        tags.update(str(t).lstrip("#") for t in raw if t)
        body = post.content

    body = _FENCED_CODE.sub("", body)
    tags.update(m.group(1) for m in _INLINE_TAG.finditer(body))
    return tags


def build_vault_context(store: DocumentStore) -> VaultContext:
    """Snapshot every document path, title and tag in the vault."""
    paths = store.list_documents()
    tags: set[str] = set()
    for path in paths:
        try:
            tags |= extract_tags(store.read_text(path))
        except DocumentNotFoundError:
            continue
        except (UnicodeDecodeError, OSError) as e:
            log.warning("Skipping tags from %s: %s", path, e)

    return VaultContext(
        note_paths=paths,
        note_titles=[PurePosixPath(p).stem for p in paths],
        tags=sorted(tags),
    )
