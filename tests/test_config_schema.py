"""Tests for postdesk.config_schema: Pydantic models and the Settings adapter."""

import pytest
from pydantic import ValidationError

from postdesk.config_schema import (
    EditorConfig,
    GitConfig,
    UnifiedConfig,
    build_config,
    to_settings,
)


class TestModels:
    def test_zero_config_is_valid(self):
        unified = UnifiedConfig()

        assert unified.workspace.root is None
        assert unified.git.remote == "origin"
        assert unified.git.push_timeout == 60
        assert unified.editor.default_mode == "structured"
        assert unified.logging.level == "INFO"

    def test_frozen(self):
        with pytest.raises(ValidationError):
            GitConfig().remote = "upstream"

    def test_push_timeout_bounds(self):
        with pytest.raises(ValidationError):
            GitConfig(push_timeout=0)
        with pytest.raises(ValidationError):
            GitConfig(push_timeout=3601)

    def test_editor_mode_literal(self):
        with pytest.raises(ValidationError):
            EditorConfig(default_mode="wysiwyg")

    def test_multiplicity_literal(self):
        with pytest.raises(ValidationError):
            EditorConfig(field_multiplicity={"tags": "many"})


class TestBuildConfig:
    def test_empty_dict(self):
        assert build_config({}) == UnifiedConfig()

    def test_partial_sections(self):
        unified = build_config(
            {
                "workspace": {"root": "/srv/blog"},
                "editor": {"default_meta": {"draft": True}},
            }
        )

        assert unified.workspace.root == "/srv/blog"
        assert unified.editor.default_meta == {"draft": True}
        assert unified.git == GitConfig()


class TestToSettings:
    def test_maps_all_sections(self):
        unified = build_config(
            {
                "workspace": {"root": "/srv/blog", "new_post_folder": "content"},
                "git": {
                    "remote": "upstream",
                    "default_branch": "trunk",
                    "author_name": "Ada",
                    "author_email": "ada@example.com",
                    "push_ssh_remotes": False,
                    "push_timeout": 30,
                },
                "editor": {
                    "default_mode": "raw",
                    "field_multiplicity": {"tags": "multi"},
                    "base_url": "https://example.com",
                    "url_format": "/{SLUG}",
                },
            }
        )

        settings = to_settings(unified)

        assert settings.workspace_root == "/srv/blog"
        assert settings.new_post_folder == "content"
        assert settings.remote == "upstream"
        assert settings.default_branch == "trunk"
        assert settings.author_name == "Ada"
        assert settings.push_ssh_remotes is False
        assert settings.push_timeout == 30
        assert settings.default_mode == "raw"
        assert settings.field_multiplicity == {"tags": "multi"}
        assert settings.url_format == "/{SLUG}"

    def test_cli_overrides_win(self):
        unified = build_config({"workspace": {"root": "/srv/blog"}})

        settings = to_settings(
            unified, {"root": "/tmp/other", "branch": "gh-pages", "debug": True}
        )

        assert settings.workspace_root == "/tmp/other"
        assert settings.default_branch == "gh-pages"
        assert settings.debug is True

    def test_missing_root_is_empty_string(self):
        assert to_settings(UnifiedConfig()).workspace_root == ""
