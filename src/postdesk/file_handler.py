"""File handler module: workspace-relative path validation, encoding-aware
reads, atomic writes and the markdown file tree.

All paths handed to ``WorkspaceStorage`` are relative to the workspace root.
Sync methods do the I/O; the ``*_async`` wrappers push them through
``run_sync()`` so async callers never block the event loop.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes
from pydantic import BaseModel

from postdesk.core.async_utils import run_sync
from postdesk.validators import validate_document_path

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = (".md", ".markdown")


class FileTreeItem(BaseModel):
    """One entry of the workspace tree (a directory or a markdown file)."""

    name: str
    path: str
    is_directory: bool
    children: list[FileTreeItem] | None = None

    model_config = {"frozen": True}


FileTreeItem.model_rebuild()


# =============================================================================
# Encoding
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Defaults to UTF-8 for empty files or when detection fails.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    best = from_bytes(raw).best()
    if best is None:
        return (raw.decode("utf-8", errors="replace"), "utf-8")

    encoding = best.encoding
    # ascii is a strict subset of utf-8
    if encoding == "ascii":
        encoding = "utf-8"
    return (str(best), encoding)


def atomic_write(path: Path, content: str, encoding: str = "utf-8") -> int:
    """Write *content* to *path* through a temp file and ``os.replace()``.

    Readers see either the previous file or the complete new one.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)


# =============================================================================
# Storage
# =============================================================================


class WorkspaceStorage:
    """Read, write and list markdown documents under one workspace root."""

    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser().resolve()

    def resolve(self, rel_path: str) -> Path:
        """Map a workspace-relative path to an absolute one.

        Raises:
            ValueError: If the path is absolute, uses ``..`` or otherwise
                resolves outside the workspace.
        """
        is_valid, message = validate_document_path(rel_path)
        if not is_valid:
            raise ValueError(message)
        resolved = (self.root / rel_path).resolve()
        if not resolved.is_relative_to(self.root):
            raise ValueError(
                f"Path is outside the workspace: {rel_path} not under {self.root}"
            )
        return resolved

    def relative(self, path: Path) -> str:
        return path.resolve().relative_to(self.root).as_posix()

    def exists(self, rel_path: str) -> bool:
        return self.resolve(rel_path).is_file()

    def read_file(self, rel_path: str) -> str:
        path = self.resolve(rel_path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {rel_path}")
        content, encoding = read_file_with_encoding(path)
        logger.debug("Read %s (%s, %d chars)", rel_path, encoding, len(content))
        return content

    def write_file(self, rel_path: str, content: str) -> int:
        path = self.resolve(rel_path)
        count = atomic_write(path, content)
        logger.debug("Wrote %s (%d bytes)", rel_path, count)
        return count

    def delete_file(self, rel_path: str) -> None:
        path = self.resolve(rel_path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {rel_path}")
        path.unlink()
        logger.info("Deleted %s", rel_path)

    def rename_file(self, rel_path: str, new_rel_path: str) -> str:
        """Move a document within the workspace and return its new path.

        Raises:
            FileNotFoundError: If the source does not exist.
            FileExistsError: If the destination already exists.
        """
        source = self.resolve(rel_path)
        target = self.resolve(new_rel_path)
        if not source.is_file():
            raise FileNotFoundError(f"File not found: {rel_path}")
        if target.exists():
            raise FileExistsError(f"File already exists: {new_rel_path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        os.replace(source, target)
        logger.info("Renamed %s -> %s", rel_path, new_rel_path)
        return self.relative(target)

    def list_tree(self, rel_dir: str | None = None) -> list[FileTreeItem]:
        """List directories and markdown files, directories first.

        Dot-directories (``.git``, ``.postdesk``) are skipped. Directories
        are listed even when they hold no markdown.
        """
        start = self.resolve(rel_dir) if rel_dir else self.root
        if not start.is_dir():
            raise ValueError(f"Not a directory: {rel_dir}")
        return self._walk(start)

    def _walk(self, directory: Path) -> list[FileTreeItem]:
        items: list[FileTreeItem] = []
        for entry in directory.iterdir():
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                items.append(
                    FileTreeItem(
                        name=entry.name,
                        path=self.relative(entry),
                        is_directory=True,
                        children=self._walk(entry),
                    )
                )
            elif entry.suffix.lower() in MARKDOWN_SUFFIXES:
                items.append(
                    FileTreeItem(
                        name=entry.name,
                        path=self.relative(entry),
                        is_directory=False,
                    )
                )
        items.sort(key=lambda item: (not item.is_directory, item.name.lower()))
        return items

    # -------------------------------------------------------------------------
    # Async wrappers
    # -------------------------------------------------------------------------

    async def read_file_async(self, rel_path: str) -> str:
        return await run_sync(self.read_file, rel_path)

    async def write_file_async(self, rel_path: str, content: str) -> int:
        return await run_sync(self.write_file, rel_path, content)

    async def delete_file_async(self, rel_path: str) -> None:
        await run_sync(self.delete_file, rel_path)

    async def list_tree_async(
        self, rel_dir: str | None = None
    ) -> list[FileTreeItem]:
        return await run_sync(self.list_tree, rel_dir)


def flatten_tree(items: list[FileTreeItem]) -> list[str]:
    """Return the paths of every file in *items*, depth first."""
    paths: list[str] = []
    for item in items:
        if item.is_directory:
            paths.extend(flatten_tree(item.children or []))
        else:
            paths.append(item.path)
    return paths
