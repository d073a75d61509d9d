"""Tests for EditorSession: the open -> edit -> save -> publish flow."""

import asyncio
import time
from unittest.mock import MagicMock

import pytest

from postdesk.converters import to_structured
from postdesk.document import EditorMode, EditorSession, EditStatus, GeneratedContent
from postdesk.errors import NoDocumentOpen, PublishError, PublishRejected
from postdesk.git import PublishPipeline, PublishResult


def _state(session):
    snapshot = session.get_document_state()
    return (snapshot.is_dirty, snapshot.has_pending_publish)


@pytest.fixture
def session(settings):
    return EditorSession(settings)


# =============================================================================
# No document
# =============================================================================


class TestNoDocument:
    def test_operations_need_an_open_document(self, session):
        assert not session.is_open
        with pytest.raises(NoDocumentOpen):
            session.edit("raw", "x")
        with pytest.raises(NoDocumentOpen):
            session.update_frontmatter({"title": "x"})
        with pytest.raises(NoDocumentOpen):
            _ = session.document

    async def test_save_needs_an_open_document(self, session):
        with pytest.raises(NoDocumentOpen):
            await session.save()


# =============================================================================
# Create / open
# =============================================================================


class TestCreateDocument:
    async def test_creates_file_pending_publish(self, session, workspace_dir):
        document = await session.create_document("hello")

        assert document.path == "hello.md"
        assert (workspace_dir / "hello.md").is_file()
        assert document.frontmatter["title"] == "Untitled Post"
        assert _state(session) == (False, True)
        assert session.get_document_state().status is EditStatus.SAVED_PENDING_PUBLISH

    async def test_default_name(self, session):
        document = await session.create_document()
        assert document.name.startswith("new-post-")
        assert document.name.endswith(".md")

    async def test_configured_folder_and_meta(self, workspace_dir, make_settings):
        settings = make_settings(
            workspace_dir, new_post_folder="content/posts", default_meta={"draft": True}
        )
        session = EditorSession(settings)

        document = await session.create_document("a.md")

        assert document.path == "content/posts/a.md"
        assert document.frontmatter == {"title": "Untitled Post", "draft": True}
        assert "draft: true" in (workspace_dir / "content/posts/a.md").read_text(encoding="utf-8")

    async def test_existing_file(self, session, workspace_dir):
        (workspace_dir / "a.md").write_text("x", encoding="utf-8")

        with pytest.raises(FileExistsError):
            await session.create_document("a.md")

    async def test_invalid_name(self, session):
        with pytest.raises(ValueError, match="path separators"):
            await session.create_document("a/b.md")


class TestOpenDocument:
    async def test_open_is_clean(self, session, workspace_dir):
        (workspace_dir / "a.md").write_text("---\ntitle: A\n---\nBody\n", encoding="utf-8")

        document = await session.open_document("a.md")

        assert document.title == "A"
        assert document.body == "Body"
        assert _state(session) == (False, False)

    async def test_missing_file(self, session):
        with pytest.raises(FileNotFoundError):
            await session.open_document("missing.md")

    @pytest.mark.git
    async def test_uncommitted_file_is_pending(self, repo_dir, make_settings):
        (repo_dir / "draft.md").write_text("draft", encoding="utf-8")
        session = EditorSession(make_settings(repo_dir))

        await session.open_document("draft.md")
        assert _state(session) == (False, True)

        await session.open_document("README.md")
        assert _state(session) == (False, False)


# =============================================================================
# Editing
# =============================================================================


class TestEditing:
    async def test_title_and_body_then_save(self, session, workspace_dir):
        await session.create_document("post.md")

        session.set_title("Hello")
        session.edit("raw", "World")
        assert _state(session) == (True, True)

        assert await session.save() is True

        assert _state(session) == (False, True)
        content = (workspace_dir / "post.md").read_text(encoding="utf-8")
        assert "title: Hello" in content
        assert "World" in content

    async def test_save_when_clean_is_noop(self, session, workspace_dir):
        (workspace_dir / "a.md").write_text("x", encoding="utf-8")
        await session.open_document("a.md")

        assert await session.save() is False
        assert (workspace_dir / "a.md").read_text(encoding="utf-8") == "x"

    async def test_empty_title_stores_untitled(self, session):
        await session.create_document("a.md")
        session.set_title("Named")

        session.set_title("   ")

        assert session.document.frontmatter["title"] == "Untitled Post"

    async def test_unchanged_frontmatter_is_not_dirty(self, session):
        await session.create_document("a.md")

        assert session.update_frontmatter({"title": "Untitled Post"}) is False
        assert _state(session) == (False, True)

    async def test_none_value_removes_field_on_save(self, session, workspace_dir):
        await session.create_document("a.md")
        session.update_frontmatter({"summary": "s"})
        await session.save()

        session.update_frontmatter({"summary": None})
        await session.save()

        assert "summary" not in (workspace_dir / "a.md").read_text(encoding="utf-8")
        assert "summary" not in session.document.frontmatter

    async def test_structured_edit(self, session):
        await session.create_document("a.md")

        assert session.edit("structured", to_structured("* one\n* two")) is True

        assert session.document.body == "- one\n- two"
        assert session.get_document_state().is_dirty

    async def test_edit_type_mismatch(self, session):
        await session.create_document("a.md")

        with pytest.raises(ValueError):
            session.edit("raw", to_structured("x"))
        with pytest.raises(ValueError):
            session.edit("structured", "x")

    async def test_toggle_twice_keeps_raw_bytes(self, workspace_dir, make_settings):
        body = "Some  *odd*   spacing\n* star bullets\n* here"
        (workspace_dir / "a.md").write_text(body, encoding="utf-8")
        session = EditorSession(make_settings(workspace_dir, default_mode="raw"))
        await session.open_document("a.md")

        assert session.toggle_mode() is EditorMode.STRUCTURED
        assert session.toggle_mode() is EditorMode.RAW

        assert session.document.body == body
        assert _state(session) == (False, False)

    async def test_replace_content_and_generated(self, session):
        await session.create_document("a.md")

        session.apply_generated(
            GeneratedContent(title="Generated", body="# Draft", meta={"tags": ["ai"]})
        )

        document = session.document
        assert document.body == "# Draft"
        assert document.frontmatter["title"] == "Generated"
        assert document.frontmatter["tags"] == ["ai"]
        assert session.get_document_state().is_dirty

    async def test_post_url(self, workspace_dir, make_settings):
        settings = make_settings(
            workspace_dir, base_url="https://example.com", url_format="/posts/{SLUG}"
        )
        session = EditorSession(settings)
        await session.create_document("a.md")
        assert session.post_url is None

        session.update_frontmatter({"slug": "hello"})

        assert session.post_url == "https://example.com/posts/hello"


class TestSaveDiscard:
    async def test_failed_save_stays_dirty(self, session, monkeypatch):
        await session.create_document("a.md")
        session.edit("raw", "changed")

        def _fail(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(session.storage, "write_file", _fail)

        with pytest.raises(OSError, match="disk full"):
            await session.save()
        assert session.get_document_state().is_dirty

    async def test_discard_reloads_file(self, session, workspace_dir):
        (workspace_dir / "a.md").write_text("---\ntitle: A\n---\nSaved\n", encoding="utf-8")
        await session.open_document("a.md")
        session.edit("raw", "Unsaved")
        session.set_title("Changed")

        assert await session.discard() is True

        assert session.document.body == "Saved"
        assert session.document.title == "A"
        assert _state(session) == (False, False)

    async def test_discard_keeps_pending(self, session):
        await session.create_document("a.md")
        session.edit("raw", "x")

        await session.discard()

        assert _state(session) == (False, True)

    async def test_discard_when_clean_is_noop(self, session):
        await session.create_document("a.md")

        assert await session.discard() is False
        assert await session.discard() is False
        assert _state(session) == (False, True)


# =============================================================================
# Publish
# =============================================================================


@pytest.mark.git
class TestPublish:
    async def test_push_succeeds(self, repo_with_remote, make_settings, run_git):
        session = EditorSession(make_settings(repo_with_remote))
        await session.create_document("hello.md")
        session.edit("raw", "Latest words")

        result = await session.publish("msg")

        assert result.pushed is True
        assert result.needs_manual_push is False
        assert _state(session) == (False, False)
        committed = run_git(repo_with_remote, "show", "HEAD:hello.md")
        assert "Latest words" in committed

    async def test_push_fails(self, repo_with_broken_remote, make_settings):
        session = EditorSession(make_settings(repo_with_broken_remote))
        await session.create_document("hello.md")

        result = await session.publish("msg")

        assert result.pushed is False
        assert result.needs_manual_push is True
        assert result.commit_sha
        assert _state(session) == (False, True)

    async def test_unpushed_commit_is_pending_after_reopen(
        self, repo_with_broken_remote, make_settings
    ):
        settings = make_settings(repo_with_broken_remote)
        session = EditorSession(settings)
        await session.create_document("hello.md")
        await session.publish("msg")

        reopened = EditorSession(settings)
        await reopened.open_document("hello.md")

        assert _state(reopened) == (False, True)
        retry = await reopened.publish("msg")
        assert retry.needs_manual_push is True
        assert retry.commit_sha is None

    async def test_pushed_file_is_clean_after_reopen(self, repo_with_remote, make_settings):
        settings = make_settings(repo_with_remote)
        session = EditorSession(settings)
        await session.create_document("hello.md")
        await session.publish("msg")

        reopened = EditorSession(settings)
        await reopened.open_document("hello.md")

        assert _state(reopened) == (False, False)

    async def test_default_commit_messages(self, repo_with_remote, make_settings, run_git):
        session = EditorSession(make_settings(repo_with_remote))
        await session.create_document("hello.md")

        await session.publish()
        assert run_git(repo_with_remote, "log", "-1", "--format=%s") == "Create: hello.md"

        session.edit("raw", "more")
        await session.publish()
        assert run_git(repo_with_remote, "log", "-1", "--format=%s") == "Update: hello.md"

    async def test_nothing_pending(self, repo_with_remote, make_settings):
        session = EditorSession(make_settings(repo_with_remote))
        await session.open_document("README.md")

        with pytest.raises(PublishRejected, match="Nothing to publish"):
            await session.publish("msg")

    async def test_not_a_repository(self, session, workspace_dir):
        await session.create_document("a.md")
        session.edit("raw", "unsaved")

        with pytest.raises(PublishRejected, match="No .git directory"):
            await session.publish("msg")

        # rejected before the implicit save
        assert _state(session) == (True, True)
        assert "unsaved" not in (workspace_dir / "a.md").read_text(encoding="utf-8")

    async def test_commit_failure_keeps_state(self, repo_dir, make_settings):
        pipeline = MagicMock(spec=PublishPipeline)
        pipeline.publish.side_effect = PublishError("committing", "index locked")
        session = EditorSession(make_settings(repo_dir), pipeline=pipeline)
        await session.create_document("a.md")

        with pytest.raises(PublishError):
            await session.publish("msg")

        assert _state(session) == (False, True)

    async def test_second_publish_rejected_while_running(self, repo_dir, make_settings):
        def _slow_publish(path, message, branch=None):
            time.sleep(0.2)
            return PublishResult(pushed=True, needs_manual_push=False, commit_sha="c" * 40)

        pipeline = MagicMock(spec=PublishPipeline)
        pipeline.publish.side_effect = _slow_publish
        session = EditorSession(make_settings(repo_dir), pipeline=pipeline)
        await session.create_document("a.md")

        first, second = await asyncio.gather(
            session.publish("one"), session.publish("two"), return_exceptions=True
        )

        assert first.pushed is True
        assert isinstance(second, PublishRejected)
        pipeline.publish.assert_called_once()


# =============================================================================
# Rename / delete
# =============================================================================


class TestRenameDelete:
    async def test_rename_saves_and_reopens(self, session, workspace_dir):
        await session.create_document("old.md")
        session.edit("raw", "Body")

        document = await session.rename("new")

        assert document.path == "new.md"
        assert not (workspace_dir / "old.md").exists()
        assert "Body" in (workspace_dir / "new.md").read_text(encoding="utf-8")
        assert not session.get_document_state().is_dirty

    async def test_rename_keeps_folder(self, session, workspace_dir):
        await session.create_document("a.md", folder="posts")

        document = await session.rename("b.md")

        assert document.path == "posts/b.md"

    async def test_rename_onto_existing(self, session, workspace_dir):
        (workspace_dir / "taken.md").write_text("x", encoding="utf-8")
        await session.create_document("a.md")

        with pytest.raises(FileExistsError):
            await session.rename("taken.md")

    async def test_delete_closes(self, session, workspace_dir):
        await session.create_document("a.md")

        await session.delete()

        assert not (workspace_dir / "a.md").exists()
        assert not session.is_open
        assert _state(session) == (False, False)
