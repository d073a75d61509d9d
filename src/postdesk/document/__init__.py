"""Documents: frontmatter handling, content synchronization, edit state and
the editing session."""

from .frontmatter import (
    FrontmatterError,
    build_post_url,
    new_document,
    parse_document,
    stringify_document,
    update_frontmatter,
)
from .generation import ContentGenerator, GeneratedContent
from .meta_schema import MetaField, MetaSchema, analyze_meta, get_field_values
from .models import UNTITLED_TITLE, Document
from .session import EditorSession
from .state import EditState, EditStateMachine, EditStatus
from .synchronizer import ChangeOrigin, ContentChange, ContentSynchronizer, EditorMode

__all__ = [
    "UNTITLED_TITLE",
    "ChangeOrigin",
    "ContentChange",
    "ContentGenerator",
    "ContentSynchronizer",
    "Document",
    "EditState",
    "EditStateMachine",
    "EditStatus",
    "EditorMode",
    "EditorSession",
    "FrontmatterError",
    "GeneratedContent",
    "MetaField",
    "MetaSchema",
    "analyze_meta",
    "build_post_url",
    "get_field_values",
    "new_document",
    "parse_document",
    "stringify_document",
    "update_frontmatter",
]
