"""Tests for file_handler module: path resolution, encoding-aware reads,
atomic writes and the markdown tree."""

import pytest

from postdesk.file_handler import (
    FileTreeItem,
    WorkspaceStorage,
    atomic_write,
    flatten_tree,
    read_file_with_encoding,
)


@pytest.fixture
def storage(tmp_path):
    return WorkspaceStorage(tmp_path)


# =============================================================================
# read_file_with_encoding / atomic_write
# =============================================================================


class TestReadFileWithEncoding:
    def test_empty_file_defaults_to_utf8(self, tmp_path):
        f = tmp_path / "empty.md"
        f.write_bytes(b"")
        assert read_file_with_encoding(f) == ("", "utf-8")

    def test_ascii_reported_as_utf8(self, tmp_path):
        f = tmp_path / "plain.md"
        f.write_bytes(b"# Hello\n\nPlain ascii body text for detection.\n")

        content, encoding = read_file_with_encoding(f)

        assert content.startswith("# Hello")
        assert encoding == "utf-8"

    def test_utf8_content_preserved(self, tmp_path):
        f = tmp_path / "accents.md"
        text = "# Café\n\nDéjà vu, naïve façade, smörgåsbord and crème brûlée.\n"
        f.write_text(text, encoding="utf-8")

        content, _ = read_file_with_encoding(f)

        assert content == text


class TestAtomicWrite:
    def test_creates_parents_and_returns_bytes(self, tmp_path):
        target = tmp_path / "posts" / "2024" / "a.md"

        count = atomic_write(target, "héllo")

        assert target.read_text(encoding="utf-8") == "héllo"
        assert count == len("héllo".encode("utf-8"))

    def test_no_temp_files_left(self, tmp_path):
        target = tmp_path / "a.md"
        atomic_write(target, "one")
        atomic_write(target, "two")

        assert target.read_text(encoding="utf-8") == "two"
        assert [p.name for p in tmp_path.iterdir()] == ["a.md"]

    def test_failed_encode_keeps_old_content(self, tmp_path):
        target = tmp_path / "a.md"
        target.write_text("original", encoding="utf-8")

        with pytest.raises(UnicodeEncodeError):
            atomic_write(target, "naïve", encoding="ascii")

        assert target.read_text(encoding="utf-8") == "original"


# =============================================================================
# WorkspaceStorage
# =============================================================================


class TestResolve:
    def test_relative_path_inside_root(self, storage, tmp_path):
        assert storage.resolve("posts/a.md") == (tmp_path / "posts" / "a.md").resolve()

    @pytest.mark.parametrize("path", ["/etc/passwd", "../x.md", ".git/config", ""])
    def test_rejects_invalid_paths(self, storage, path):
        with pytest.raises(ValueError):
            storage.resolve(path)

    def test_rejects_symlink_escape(self, storage, tmp_path):
        outside = tmp_path.parent / f"{tmp_path.name}-outside"
        outside.mkdir()
        (tmp_path / "link").symlink_to(outside)

        with pytest.raises(ValueError, match="outside the workspace"):
            storage.resolve("link/a.md")


class TestReadWrite:
    def test_write_then_read(self, storage):
        storage.write_file("posts/a.md", "# A\n")

        assert storage.exists("posts/a.md")
        assert storage.read_file("posts/a.md") == "# A\n"

    def test_read_missing(self, storage):
        with pytest.raises(FileNotFoundError):
            storage.read_file("missing.md")

    def test_exists_false_for_directory(self, storage, tmp_path):
        (tmp_path / "posts").mkdir()
        assert storage.exists("posts") is False

    async def test_async_wrappers(self, storage):
        await storage.write_file_async("a.md", "body")
        assert await storage.read_file_async("a.md") == "body"

        await storage.delete_file_async("a.md")
        assert storage.exists("a.md") is False


class TestDeleteRename:
    def test_delete(self, storage):
        storage.write_file("a.md", "x")
        storage.delete_file("a.md")
        assert storage.exists("a.md") is False

    def test_delete_missing(self, storage):
        with pytest.raises(FileNotFoundError):
            storage.delete_file("a.md")

    def test_rename(self, storage):
        storage.write_file("posts/a.md", "x")

        new_path = storage.rename_file("posts/a.md", "posts/b.md")

        assert new_path == "posts/b.md"
        assert storage.exists("posts/a.md") is False
        assert storage.read_file("posts/b.md") == "x"

    def test_rename_onto_existing(self, storage):
        storage.write_file("a.md", "a")
        storage.write_file("b.md", "b")

        with pytest.raises(FileExistsError):
            storage.rename_file("a.md", "b.md")
        assert storage.read_file("b.md") == "b"

    def test_rename_missing_source(self, storage):
        with pytest.raises(FileNotFoundError):
            storage.rename_file("a.md", "b.md")


class TestListTree:
    def test_directories_first_markdown_only(self, storage, tmp_path):
        storage.write_file("zeta.md", "")
        storage.write_file("Alpha.markdown", "")
        storage.write_file("posts/hello.md", "")
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
        (tmp_path / "empty").mkdir()
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "HEAD.md").write_text("", encoding="utf-8")

        tree = storage.list_tree()

        assert [item.name for item in tree] == ["empty", "posts", "Alpha.markdown", "zeta.md"]
        posts = tree[1]
        assert posts.is_directory
        assert posts.children == [
            FileTreeItem(name="hello.md", path="posts/hello.md", is_directory=False)
        ]
        assert tree[0].children == []

    def test_subdirectory(self, storage):
        storage.write_file("posts/a.md", "")
        storage.write_file("b.md", "")

        assert [item.path for item in storage.list_tree("posts")] == ["posts/a.md"]

    def test_not_a_directory(self, storage):
        storage.write_file("a.md", "")
        with pytest.raises(ValueError, match="Not a directory"):
            storage.list_tree("a.md")

    def test_flatten_tree(self, storage):
        storage.write_file("posts/2024/a.md", "")
        storage.write_file("posts/b.md", "")
        storage.write_file("c.md", "")

        assert flatten_tree(storage.list_tree()) == [
            "posts/2024/a.md",
            "posts/b.md",
            "c.md",
        ]
