"""Tests for document frontmatter parsing, serialization and patching."""

import datetime

import pytest

from postdesk.document import (
    UNTITLED_TITLE,
    Document,
    FrontmatterError,
    build_post_url,
    new_document,
    parse_document,
    stringify_document,
    update_frontmatter,
)
from postdesk.document.frontmatter import split_frontmatter


class TestSplitFrontmatter:
    def test_no_block(self):
        assert split_frontmatter("# Hi\n") == ({}, "# Hi\n", False)

    def test_empty_block(self):
        assert split_frontmatter("---\n---\nbody") == ({}, "body", True)

    def test_dot_terminator(self):
        data, body, has_block = split_frontmatter("---\ntitle: A\n...\nbody")
        assert (data, body, has_block) == ({"title": "A"}, "body", True)

    def test_invalid_yaml(self):
        with pytest.raises(FrontmatterError, match="Invalid frontmatter"):
            split_frontmatter("---\ntitle: [unclosed\n---\nbody")

    def test_not_a_mapping(self):
        with pytest.raises(FrontmatterError, match="must be a mapping"):
            split_frontmatter("---\n- a\n- b\n---\nbody")


class TestParseDocument:
    def test_frontmatter_and_body(self):
        content = "---\ntitle: Hello\ntags: python\n---\n\n# Body\n"

        document = parse_document(content, "posts/hello.md")

        assert document.frontmatter == {"title": "Hello", "tags": ["python"]}
        assert document.body == "# Body"
        assert document.name == "hello.md"

    def test_title_defaults_to_stem(self):
        document = parse_document("Just text", "posts/my-post.md")

        assert document.frontmatter == {"title": "my-post"}
        assert document.body == "Just text"

    def test_nulls_become_empty_strings(self):
        document = parse_document("---\ntitle: A\nsummary:\n---\nx", "a.md")
        assert document.frontmatter["summary"] == ""

    def test_category_seeds_categories(self):
        document = parse_document("---\ncategory: news\n---\nx", "a.md")
        assert document.frontmatter["categories"] == ["news"]

    def test_existing_categories_win_over_category(self):
        document = parse_document(
            "---\ncategory: news\ncategories: [a, b]\n---\nx", "a.md"
        )
        assert document.frontmatter["categories"] == ["a", "b"]

    def test_empty_tags_become_empty_list(self):
        document = parse_document("---\ntags: ''\n---\nx", "a.md")
        assert document.frontmatter["tags"] == []

    def test_malformed_frontmatter_keeps_body(self):
        document = parse_document("---\ntitle: [broken\n---\nThe body", "posts/x.md")

        assert document.frontmatter == {"title": "x"}
        assert document.body == "The body"

    def test_dates_parsed(self):
        document = parse_document("---\ndate: 2024-01-02\n---\nx", "a.md")
        assert document.frontmatter["date"] == datetime.date(2024, 1, 2)


class TestStringifyDocument:
    def test_drops_none_keeps_empty(self):
        document = Document(
            path="a.md",
            body="Body",
            frontmatter={"title": "Hi", "draft": None, "tags": [], "summary": ""},
        )

        content = stringify_document(document)

        assert content.startswith("---\ntitle: Hi\n")
        assert content.endswith("---\nBody\n")
        data, _, _ = split_frontmatter(content)
        assert data == {"title": "Hi", "tags": [], "summary": ""}

    def test_keeps_key_order(self):
        document = Document(path="a.md", frontmatter={"zeta": "1", "alpha": "2"})

        content = stringify_document(document)

        assert content.index("zeta") < content.index("alpha")

    def test_no_frontmatter_writes_body_only(self):
        assert stringify_document(Document(path="a.md", body="x")) == "x\n"

    def test_multiplicity(self):
        document = Document(
            path="a.md",
            body="x",
            frontmatter={"author": ["Ada", "Grace"], "categories": "news", "tags": " "},
        )

        content = stringify_document(
            document,
            {"author": "single", "categories": "multi", "tags": "multi"},
        )

        data, _, _ = split_frontmatter(content)
        assert data == {"author": "Ada", "categories": ["news"], "tags": []}

    def test_round_trip(self):
        document = Document(
            path="posts/a.md",
            body="# Title\n\nText",
            frontmatter={
                "title": "Naïve café",
                "date": datetime.date(2024, 5, 1),
                "tags": ["a", "b"],
                "draft": False,
            },
        )

        assert parse_document(stringify_document(document), "posts/a.md") == document


class TestUpdateFrontmatter:
    def test_merges_in_order(self):
        merged = update_frontmatter({"title": "A", "tags": ["x"]}, {"tags": ["y"], "new": 1})

        assert merged == {"title": "A", "tags": ["y"], "new": 1}
        assert list(merged) == ["title", "tags", "new"]

    def test_does_not_mutate(self):
        original = {"title": "A"}
        update_frontmatter(original, {"title": "B"})
        assert original == {"title": "A"}

    def test_none_marks_removal(self):
        assert update_frontmatter({"a": 1}, {"a": None}) == {"a": None}

    def test_nested_mapping(self):
        merged = update_frontmatter({}, {"seo": {"description": "d"}})
        assert merged == {"seo": {"description": "d"}}

    @pytest.mark.parametrize(
        "patch",
        [
            {"": "x"},
            {"tags": [1, 2]},
            {"weird": {1, 2}},
            {"seo": {"": "x"}},
        ],
    )
    def test_rejects_invalid(self, patch):
        with pytest.raises(ValueError):
            update_frontmatter({}, patch)


class TestNewDocument:
    def test_defaults(self):
        document = new_document("new.md")

        assert document.frontmatter == {"title": UNTITLED_TITLE}
        assert document.body == ""
        assert document.is_untitled
        assert document.display_title == "Untitled"

    def test_configured_defaults(self):
        document = new_document("new.md", {"draft": True, "title": ""})
        assert document.frontmatter == {"title": UNTITLED_TITLE, "draft": True}


class TestBuildPostUrl:
    def test_fills_placeholders(self):
        url = build_post_url(
            "https://example.com/",
            "/{CATEGORIES}/{SLUG}",
            {"slug": "hello", "categories": ["a", "b"]},
        )
        assert url == "https://example.com/a,b/hello"

    @pytest.mark.parametrize(
        "base_url, url_format, frontmatter",
        [
            (None, "/{SLUG}", {"slug": "x"}),
            ("https://example.com", None, {"slug": "x"}),
            ("https://example.com", "/{SLUG}", {}),
            ("https://example.com", "/{SLUG}", {"slug": ""}),
        ],
    )
    def test_missing_parts(self, base_url, url_format, frontmatter):
        assert build_post_url(base_url, url_format, frontmatter) is None
