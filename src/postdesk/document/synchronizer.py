"""Keep the markdown and structured views of one document consistent.

Markdown is always the canonical value. The structured tree is a cache
derived from it, refreshed when the structured view becomes live or when
the whole document is replaced.

Every change message carries an origin tag:

* ``user-edit`` -- the user typed in one of the views.
* ``external-replace`` -- the caller swapped the whole document (another
  file was opened, generated content was applied).
* ``self-derived`` -- the synchronizer pushed a value into a view for
  rendering. A view that echoes such a message back is ignored, so a render
  can never turn into another edit.

Edits are also compared against ``last_known_value``, the last markdown
this component accepted or produced, so a no-op event from a view (same
content re-emitted) does not mark the document dirty.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel

from postdesk.converters import Node, to_markdown, to_structured

logger = logging.getLogger(__name__)


class EditorMode(str, Enum):
    RAW = "raw"
    STRUCTURED = "structured"


class ChangeOrigin(str, Enum):
    USER_EDIT = "user-edit"
    EXTERNAL_REPLACE = "external-replace"
    SELF_DERIVED = "self-derived"


class ContentChange(BaseModel):
    """One change message.

    Attributes:
        origin: Who caused the change.
        representation: View the change came from (for edits) or is meant
            for (for self-derived renders).
        markdown: Canonical markdown after the change.
        structured: Structured tree, when the message carries one.
    """

    origin: ChangeOrigin
    representation: EditorMode
    markdown: str
    structured: Node | None = None

    model_config = {"frozen": True}


Listener = Callable[[ContentChange], None]


class ContentSynchronizer:
    """Owner of the document body while it is open.

    Args:
        markdown: Initial body.
        mode: View that is live when the document opens.
        on_dirty: Called once for every accepted edit or dirtying replace.
    """

    def __init__(
        self,
        markdown: str = "",
        mode: EditorMode = EditorMode.STRUCTURED,
        on_dirty: Callable[[], Any] | None = None,
    ):
        self._mode = EditorMode(mode)
        self._markdown = markdown
        self._last_known = markdown
        self._source = EditorMode.RAW
        self._structured: Node | None = None
        self._structured_stale = True
        self._on_dirty = on_dirty
        self._listeners: list[tuple[Listener, EditorMode | None]] = []

        if self._mode is EditorMode.STRUCTURED:
            self._refresh_structured()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def mode(self) -> EditorMode:
        return self._mode

    @property
    def markdown(self) -> str:
        return self._markdown

    @property
    def last_known_value(self) -> str:
        return self._last_known

    @property
    def source_of_truth(self) -> EditorMode:
        """The representation most recently produced by direct input."""
        return self._source

    @property
    def structured(self) -> Node:
        if self._structured is None or self._structured_stale:
            self._refresh_structured()
        return self._structured

    def _refresh_structured(self) -> None:
        self._structured = to_structured(self._markdown)
        self._structured_stale = False

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(
        self, listener: Listener, view: EditorMode | None = None
    ) -> Callable[[], None]:
        """Register *listener*.

        Without *view* the listener follows the document: it receives
        ``user-edit`` and ``external-replace`` messages. With *view* it
        stands for that view and only receives ``self-derived`` renders
        while the view is live.

        Returns:
            Function that removes the listener.
        """
        entry = (listener, EditorMode(view) if view is not None else None)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def _emit(self, change: ContentChange, view: EditorMode | None) -> None:
        for listener, listener_view in list(self._listeners):
            if listener_view != view:
                continue
            try:
                listener(change)
            except Exception:
                logger.exception("Content listener failed on %s", change.origin.value)

    def _render_live_view(self) -> None:
        change = ContentChange(
            origin=ChangeOrigin.SELF_DERIVED,
            representation=self._mode,
            markdown=self._markdown,
            structured=self.structured if self._mode is EditorMode.STRUCTURED else None,
        )
        self._emit(change, self._mode)

    def _mark_dirty(self) -> None:
        if self._on_dirty is not None:
            self._on_dirty()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def on_raw_edit(self, markdown: str) -> bool:
        """The user edited the markdown text.

        Returns:
            True if the edit changed the document.
        """
        if markdown == self._last_known:
            return False

        self._markdown = markdown
        self._last_known = markdown
        self._source = EditorMode.RAW
        self._structured_stale = True
        self._accept(EditorMode.RAW, structured=None)
        return True

    def on_structured_edit(self, structured: Node | dict[str, Any]) -> bool:
        """The user edited the structured tree.

        The tree is serialized to markdown; an edit that serializes to the
        current value is dropped. A tree that cannot be read or serialized
        is logged and dropped.

        Returns:
            True if the edit changed the document.
        """
        try:
            node = (
                structured
                if isinstance(structured, Node)
                else Node.model_validate(structured)
            )
            markdown = to_markdown(node)
        except Exception:
            logger.warning("Structured edit could not be converted", exc_info=True)
            return False

        if markdown == self._last_known:
            return False

        self._markdown = markdown
        self._last_known = markdown
        self._source = EditorMode.STRUCTURED
        self._structured = node
        self._structured_stale = False
        self._accept(EditorMode.STRUCTURED, structured=node)
        return True

    def _accept(self, representation: EditorMode, structured: Node | None) -> None:
        self._mark_dirty()
        if representation is not self._mode:
            self._render_live_view()
        self._emit(
            ContentChange(
                origin=ChangeOrigin.USER_EDIT,
                representation=representation,
                markdown=self._markdown,
                structured=structured,
            ),
            None,
        )

    def on_external_replace(self, markdown: str, *, mark_dirty: bool = True) -> None:
        """Replace the whole body. Always accepted.

        ``last_known_value`` is reset before anyone is notified, so a view
        that re-emits the new value while rendering it is seen as a no-op.
        The live view receives exactly one ``self-derived`` render.

        Args:
            markdown: New body.
            mark_dirty: False when the new body is what storage already
                holds (a file was opened or reloaded).
        """
        self._last_known = markdown
        self._markdown = markdown
        self._source = EditorMode.RAW
        if self._mode is EditorMode.STRUCTURED:
            self._refresh_structured()
        else:
            self._structured_stale = True

        if mark_dirty:
            self._mark_dirty()

        self._render_live_view()
        self._emit(
            ContentChange(
                origin=ChangeOrigin.EXTERNAL_REPLACE,
                representation=self._mode,
                markdown=markdown,
            ),
            None,
        )

    def handle(self, change: ContentChange) -> bool:
        """Dispatch a tagged message from a view or the caller.

        Returns:
            True if the message changed the document.
        """
        if change.origin is ChangeOrigin.SELF_DERIVED:
            logger.debug("Ignoring self-derived %s update", change.representation.value)
            return False
        if change.origin is ChangeOrigin.EXTERNAL_REPLACE:
            self.on_external_replace(change.markdown)
            return True
        if change.representation is EditorMode.STRUCTURED and change.structured is not None:
            return self.on_structured_edit(change.structured)
        return self.on_raw_edit(change.markdown)

    def toggle_mode(self) -> EditorMode:
        """Switch the live view. Never marks the document dirty.

        Raw to structured rebuilds the structured cache from the canonical
        markdown; structured to raw shows the canonical markdown as is.

        Returns:
            The new live mode.
        """
        if self._mode is EditorMode.RAW:
            self._mode = EditorMode.STRUCTURED
            self._refresh_structured()
        else:
            self._mode = EditorMode.RAW
        logger.debug("Editor mode switched to %s", self._mode.value)
        self._render_live_view()
        return self._mode
