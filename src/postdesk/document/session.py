"""Editing session for one open document.

``EditorSession`` is the surface callers use. It binds together:

* ``WorkspaceStorage`` -- reads and atomic writes of the file.
* ``ContentSynchronizer`` -- the body in raw and structured form.
* ``EditStateMachine`` -- dirty / pending-publish flags.
* ``PublishPipeline`` -- stage, commit and push of the saved file.

Only one document is open per session. Opening another file, renaming or
deleting the current one starts from a fresh edit state.

Save and publish are serialized by an ``asyncio.Lock``: a save requested
during a publish waits for it, while a second publish is rejected
outright.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import PurePosixPath
from typing import Any

from postdesk.config import Settings
from postdesk.converters import Node
from postdesk.core.async_utils import run_sync
from postdesk.errors import NoDocumentOpen, PublishError, PublishRejected
from postdesk.file_handler import MARKDOWN_SUFFIXES, WorkspaceStorage
from postdesk.git.hints import generate_commit_message
from postdesk.git.models import PublishResult
from postdesk.git.pipeline import PublishPipeline
from postdesk.git.probe import GitStatusProbe
from postdesk.validators import validate_file_name

from .frontmatter import (
    build_post_url,
    new_document,
    parse_document,
    stringify_document,
    update_frontmatter,
)
from .generation import GeneratedContent
from .models import UNTITLED_TITLE, Document
from .state import EditState, EditStateMachine
from .synchronizer import ContentSynchronizer, EditorMode

logger = logging.getLogger(__name__)


def new_post_name() -> str:
    return f"new-post-{int(time.time() * 1000)}.md"


class EditorSession:
    """Open, edit, save and publish markdown posts in one workspace.

    Args:
        settings: Validated settings; the workspace root is the repository
            root that publishes go to.
        storage: File access (default: storage over the workspace root).
        probe: Repository probe (default: a new ``GitStatusProbe``).
        pipeline: Publish pipeline (default: one built from *settings*).
    """

    def __init__(
        self,
        settings: Settings,
        storage: WorkspaceStorage | None = None,
        probe: GitStatusProbe | None = None,
        pipeline: PublishPipeline | None = None,
    ):
        self.settings = settings
        self.storage = storage or WorkspaceStorage(settings.workspace_root)
        self.probe = probe or GitStatusProbe()
        self.pipeline = pipeline or PublishPipeline(settings, self.probe)

        self.state = EditStateMachine()
        self.synchronizer = ContentSynchronizer(
            mode=EditorMode(settings.default_mode),
            on_dirty=self.state.mark_dirty,
        )

        self._document: Document | None = None
        self._is_new = False
        self._publishing = False
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Current document
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._document is not None

    @property
    def document(self) -> Document:
        """The open document with its current (possibly unsaved) body."""
        current = self._require_document()
        return current.with_body(self.synchronizer.markdown)

    @property
    def mode(self) -> EditorMode:
        return self.synchronizer.mode

    @property
    def structured(self) -> Node:
        self._require_document()
        return self.synchronizer.structured

    @property
    def post_url(self) -> str | None:
        return build_post_url(
            self.settings.base_url,
            self.settings.url_format,
            self.document.frontmatter,
        )

    def _require_document(self) -> Document:
        if self._document is None:
            raise NoDocumentOpen("No document is open")
        return self._document

    def get_document_state(self) -> EditState:
        return self.state.snapshot()

    def _load(self, document: Document, has_pending_publish: bool) -> None:
        self._document = document.with_body("")
        self.synchronizer.on_external_replace(document.body, mark_dirty=False)
        self.state.reset(has_pending_publish=has_pending_publish)

    # ------------------------------------------------------------------
    # Open / create / close
    # ------------------------------------------------------------------

    async def open_document(self, path: str) -> Document:
        """Open *path* (workspace-relative), replacing the current document.

        The document is clean after opening. It is pending publish when
        git reports uncommitted changes to the file, or when local commits
        that changed it have not reached the configured remote.
        """
        content = await self.storage.read_file_async(path)
        document = parse_document(content, path)

        changed = set(
            await run_sync(self.probe.list_changed_documents, self.storage.root)
        )
        changed.update(
            await run_sync(
                self.probe.list_unpushed_documents,
                self.storage.root,
                self.settings.remote,
            )
        )
        rel_path = self.storage.relative(self.storage.resolve(path))
        self._is_new = False
        self._load(document, has_pending_publish=rel_path in changed)
        logger.info("Opened %s", path)
        return self.document

    async def create_document(
        self, name: str | None = None, folder: str | None = None
    ) -> Document:
        """Create a post file and open it.

        The file is written immediately with frontmatter seeded from the
        configured defaults, so it is pending publish from the start.

        Args:
            name: File name (default: ``new-post-<timestamp>.md``).
            folder: Workspace-relative folder (default: the configured
                new post folder, else the workspace root).

        Raises:
            ValueError: If the file name is invalid.
            FileExistsError: If the file already exists.
        """
        file_name = name or new_post_name()
        if not file_name.lower().endswith(MARKDOWN_SUFFIXES):
            file_name += ".md"
        is_valid, message = validate_file_name(file_name)
        if not is_valid:
            raise ValueError(message)

        target_folder = (folder or self.settings.new_post_folder or "").strip("/")
        path = f"{target_folder}/{file_name}" if target_folder else file_name
        if self.storage.exists(path):
            raise FileExistsError(f"File already exists: {path}")

        document = new_document(path, self.settings.default_meta)
        await self.storage.write_file_async(
            path, stringify_document(document, self.settings.field_multiplicity)
        )

        self._is_new = True
        self._load(document, has_pending_publish=True)
        logger.info("Created %s", path)
        return self.document

    def close(self) -> None:
        """Forget the open document. Unsaved changes are dropped."""
        if self._document is not None:
            logger.info("Closed %s", self._document.path)
        self._document = None
        self._is_new = False
        self.synchronizer.on_external_replace("", mark_dirty=False)
        self.state.reset()

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def edit(self, representation: str | EditorMode, value: str | Node | dict) -> bool:
        """Apply a user edit from the raw or the structured view.

        Returns:
            True if the body changed.
        """
        self._require_document()
        view = EditorMode(representation)
        if view is EditorMode.RAW:
            if not isinstance(value, str):
                raise ValueError("A raw edit takes markdown text")
            return self.synchronizer.on_raw_edit(value)
        if isinstance(value, str):
            raise ValueError("A structured edit takes a document tree")
        return self.synchronizer.on_structured_edit(value)

    def toggle_mode(self) -> EditorMode:
        return self.synchronizer.toggle_mode()

    def update_frontmatter(self, patch: dict[str, Any]) -> bool:
        """Merge *patch* into the frontmatter. A change marks the document
        dirty, like a body edit.

        Returns:
            True if the frontmatter changed.
        """
        current = self._require_document()
        merged = update_frontmatter(current.frontmatter, patch)
        if merged == current.frontmatter:
            return False
        self._document = current.with_frontmatter(merged)
        self.state.mark_dirty()
        return True

    def set_title(self, title: str) -> bool:
        """Set the title; an empty title stores the untitled sentinel."""
        return self.update_frontmatter({"title": title.strip() or UNTITLED_TITLE})

    def replace_content(
        self, markdown: str, frontmatter_patch: dict[str, Any] | None = None
    ) -> None:
        """Replace the whole body, optionally merging metadata too."""
        current = self._require_document()
        if frontmatter_patch:
            merged = update_frontmatter(current.frontmatter, frontmatter_patch)
            self._document = current.with_frontmatter(merged)
        self.synchronizer.on_external_replace(markdown)

    def apply_generated(self, content: GeneratedContent) -> None:
        """Replace the document with generated content."""
        patch = dict(content.meta)
        if content.title:
            patch["title"] = content.title
        self.replace_content(content.body, patch)

    # ------------------------------------------------------------------
    # Save / discard
    # ------------------------------------------------------------------

    async def save(self) -> bool:
        """Write the document to storage.

        Saving a clean document does nothing.

        Returns:
            True if the file was written.

        Raises:
            OSError: If the write failed; the document stays dirty.
        """
        async with self._lock:
            return await self._save_locked()

    async def _save_locked(self) -> bool:
        current = self._require_document()
        if not self.state.can_save:
            logger.debug("Save skipped: %s is clean", current.path)
            return False

        frontmatter = {
            key: value for key, value in current.frontmatter.items() if value is not None
        }
        saved = current.with_frontmatter(frontmatter).with_body(self.synchronizer.markdown)
        await self.storage.write_file_async(
            saved.path,
            stringify_document(saved, self.settings.field_multiplicity),
        )

        self._document = saved.with_body("")
        self.state.mark_saved()
        logger.info("Saved %s", saved.path)
        return True

    async def discard(self) -> bool:
        """Drop unsaved changes by reloading the file. No-op when clean.

        Returns:
            True if changes were discarded.
        """
        async with self._lock:
            current = self._require_document()
            if not self.state.can_discard:
                return False

            content = await self.storage.read_file_async(current.path)
            persisted = parse_document(content, current.path)
            self._document = persisted.with_body("")
            self.synchronizer.on_external_replace(persisted.body, mark_dirty=False)
            self.state.mark_discarded()
            logger.info("Discarded changes to %s", current.path)
            return True

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish(
        self, commit_message: str | None = None, branch: str | None = None
    ) -> PublishResult:
        """Publish the open document.

        A dirty document is saved first, so the commit always holds the
        latest content.

        Args:
            commit_message: Commit message (default: generated from the
                file name).
            branch: Remote branch (default: the current branch).

        Returns:
            PublishResult; ``needs_manual_push`` when only the local
            commit succeeded.

        Raises:
            PublishRejected: Another publish is running, the workspace is
                not a repository, or nothing is pending.
            PublishError: Staging or committing failed; state is unchanged.
            OSError: The implicit save failed.
        """
        current = self._require_document()
        if self._publishing:
            raise PublishRejected("A publish is already running for this document")

        self._publishing = True
        try:
            async with self._lock:
                status = await run_sync(self.probe.probe, self.storage.root)
                if not status.is_repository:
                    raise PublishRejected(status.error)

                if self.state.is_dirty:
                    await self._save_locked()
                if not self.state.can_publish:
                    raise PublishRejected(
                        f"Nothing to publish: {current.path} has no saved changes"
                    )

                message = commit_message or generate_commit_message(
                    current.name, "create" if self._is_new else "update"
                )
                try:
                    result = await run_sync(
                        self.pipeline.publish, current.path, message, branch
                    )
                except (PublishError, PublishRejected, ValueError):
                    self.state.mark_publish_failed()
                    raise

                self.state.mark_published(result)
                if result.commit_sha:
                    self._is_new = False
                return result
        finally:
            self._publishing = False

    # ------------------------------------------------------------------
    # Rename / delete
    # ------------------------------------------------------------------

    async def rename(self, new_name: str) -> Document:
        """Rename the file within its folder and reopen it.

        Unsaved changes are saved first.
        """
        current = self._require_document()
        file_name = new_name.strip()
        if not file_name.lower().endswith(MARKDOWN_SUFFIXES):
            file_name += ".md"
        is_valid, message = validate_file_name(file_name)
        if not is_valid:
            raise ValueError(message)

        async with self._lock:
            await self._save_locked()
            parent = PurePosixPath(current.path).parent
            new_path = (parent / file_name).as_posix()
            new_path = await run_sync(self.storage.rename_file, current.path, new_path)

        self.close()
        return await self.open_document(new_path)

    async def delete(self) -> None:
        """Delete the file and close the session."""
        current = self._require_document()
        async with self._lock:
            await self.storage.delete_file_async(current.path)
        self.close()
