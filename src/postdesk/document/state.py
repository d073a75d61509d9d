"""Dirty / pending-publish tracking for one open document.

The machine owns two flags:

* ``is_dirty`` -- in-memory content differs from what was last written.
* ``has_pending_publish`` -- content was written but not yet pushed.

The flags are independent: a saved document that is edited again is both
dirty and pending publish. Events outside their precondition are rejected
(return ``False``) and leave the state untouched.
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel

from postdesk.git.models import PublishResult

logger = logging.getLogger(__name__)


class EditStatus(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVED_PENDING_PUBLISH = "saved_pending_publish"


class EditState(BaseModel):
    """Snapshot of the two flags."""

    is_dirty: bool = False
    has_pending_publish: bool = False

    model_config = {"frozen": True}

    @property
    def status(self) -> EditStatus:
        if self.is_dirty:
            return EditStatus.DIRTY
        if self.has_pending_publish:
            return EditStatus.SAVED_PENDING_PUBLISH
        return EditStatus.CLEAN


class EditStateMachine:
    """Gatekeeper for save, publish and discard.

    Args:
        is_dirty: Initial dirty flag.
        has_pending_publish: Initial pending-publish flag (True for a file
            that was just created and written but never published).
    """

    def __init__(self, is_dirty: bool = False, has_pending_publish: bool = False):
        self._is_dirty = is_dirty
        self._has_pending_publish = has_pending_publish

    @property
    def is_dirty(self) -> bool:
        return self._is_dirty

    @property
    def has_pending_publish(self) -> bool:
        return self._has_pending_publish

    @property
    def status(self) -> EditStatus:
        return self.snapshot().status

    def snapshot(self) -> EditState:
        return EditState(
            is_dirty=self._is_dirty,
            has_pending_publish=self._has_pending_publish,
        )

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    @property
    def can_save(self) -> bool:
        return self._is_dirty

    @property
    def can_publish(self) -> bool:
        return self._has_pending_publish and not self._is_dirty

    @property
    def can_discard(self) -> bool:
        return self._is_dirty

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def mark_dirty(self) -> bool:
        """An edit was accepted. Always allowed."""
        if not self._is_dirty:
            logger.debug("Edit state: %s -> dirty", self.status.value)
        self._is_dirty = True
        return True

    def mark_saved(self) -> bool:
        """Content was written to storage."""
        if not self.can_save:
            logger.debug("Save ignored: document is not dirty")
            return False
        self._is_dirty = False
        self._has_pending_publish = True
        logger.debug("Edit state: dirty -> saved_pending_publish")
        return True

    def mark_discarded(self) -> bool:
        """In-memory changes were dropped; pending publish is unchanged."""
        if not self.can_discard:
            logger.debug("Discard ignored: document is not dirty")
            return False
        self._is_dirty = False
        logger.debug("Edit state: dirty -> %s", self.status.value)
        return True

    def mark_published(self, result: PublishResult) -> bool:
        """A publish run finished.

        Pending publish is cleared only when the push went through; a
        commit that still needs a manual push keeps it set.
        """
        if not self.can_publish:
            logger.warning(
                "Publish result ignored in state %s", self.status.value
            )
            return False
        if result.pushed:
            self._has_pending_publish = False
            logger.debug("Edit state: saved_pending_publish -> clean")
        else:
            logger.debug("Publish needs a manual push; still pending")
        return True

    def mark_publish_failed(self) -> bool:
        """A publish run raised. The state does not change."""
        logger.debug("Publish failed in state %s", self.status.value)
        return False

    def reset(self, is_dirty: bool = False, has_pending_publish: bool = False) -> None:
        """Start over for a newly opened document."""
        self._is_dirty = is_dirty
        self._has_pending_publish = has_pending_publish
