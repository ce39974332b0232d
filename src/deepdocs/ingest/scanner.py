"""Library import: walk paths lazily and register files as documents."""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Iterable, Iterator
from datetime import datetime, timezone
from pathlib import Path

from deepdocs.db.models import Document
from deepdocs.db.repository import Repository

logger = logging.getLogger(__name__)


def iter_files(root: str | Path, exclude: Iterable[str] = ()) -> Iterator[Path]:
    """Yield every regular file under *root* (or *root* itself if it is a file).

    Directories are walked depth-first in sorted order. Entries whose name
    matches one of the *exclude* glob patterns are skipped, directories
    included. Unreadable directories are skipped with a warning.
    """
    patterns = list(exclude)
    root = Path(root)
    if root.is_file():
        if not _excluded(root.name, patterns):
            yield root
        return

    def _on_error(err: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", err.filename, err.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(d for d in dirnames if not _excluded(d, patterns))
        for name in sorted(filenames):
            if not _excluded(name, patterns):
                yield Path(dirpath) / name


def _excluded(name: str, patterns: list[str]) -> bool:
    return any(fnmatch.fnmatch(name, pat) for pat in patterns)


def document_from_path(path: Path) -> Document:
    """Build an unsaved Document from file metadata (absolute, resolved path)."""
    resolved = path.resolve()
    stat = resolved.stat()
    return Document(
        path=str(resolved),
        name=resolved.name,
        size=stat.st_size,
        last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
    )


def add_paths(
    repo: Repository, paths: Iterable[str | Path], exclude: Iterable[str] = ()
) -> list[Document]:
    """Register files and directory contents; already known paths are skipped.

    Returns:
        The newly added documents, in discovery order.
    """
    patterns = list(exclude)
    added: list[Document] = []
    for raw in paths:
        p = Path(raw).expanduser()
        if not p.exists():
            logger.warning("Path does not exist: %s", p)
            continue
        for file in iter_files(p, patterns):
            try:
                doc = document_from_path(file)
            except OSError as exc:
                logger.warning("Cannot stat %s: %s", file, exc)
                continue
            if repo.get_document_by_path(doc.path) is not None:
                continue
            doc.id = repo.insert_document(doc)
            added.append(doc)
    return added


def prune_missing(repo: Repository) -> list[int]:
    """Delete documents whose file no longer exists. Returns the removed ids."""
    missing = [doc.id for doc in repo.list_documents() if not Path(doc.path).exists()]
    if missing:
        repo.delete_documents(missing)
        logger.info("Pruned %d missing documents", len(missing))
    return missing
