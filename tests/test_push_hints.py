"""Tests for push failure hints, manual push commands and commit messages."""

from datetime import datetime

import pytest

from postdesk.git import (
    PushHintKind,
    classify_push_failure,
    generate_commit_message,
    is_ssh_url,
    manual_push_command,
)

HTTPS = "https://github.com/me/blog.git"


class TestIsSshUrl:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("git@github.com:me/blog.git", True),
            ("ssh://git@github.com/me/blog.git", True),
            (HTTPS, False),
            ("/srv/git/blog.git", False),
            (None, False),
        ],
    )
    def test_detection(self, url, expected):
        assert is_ssh_url(url) is expected


class TestClassifyPushFailure:
    def test_no_remote(self):
        assert classify_push_failure(None, "anything").kind is PushHintKind.NO_REMOTE

    def test_ssh_wins_over_text(self):
        hint = classify_push_failure("git@github.com:me/blog.git", "401 Unauthorized")
        assert hint.kind is PushHintKind.SSH_TRANSPORT

    @pytest.mark.parametrize(
        "error_text, kind",
        [
            ("remote: HTTP Basic: Access denied 401", PushHintKind.AUTHENTICATION),
            ("Authentication failed for 'https://github.com/'", PushHintKind.AUTHENTICATION),
            ("Your token has expired", PushHintKind.AUTHENTICATION),
            ("Could not resolve host: github.com", PushHintKind.NETWORK),
            ("Failed to connect: Connection timed out", PushHintKind.NETWORK),
            ("error: 429 Too Many Requests", PushHintKind.RATE_LIMIT),
            ("remote: Permission to me/blog.git denied", PushHintKind.PERMISSION),
            ("protected branch hook declined", PushHintKind.PERMISSION),
            ("remote: Repository not found.", PushHintKind.NOT_FOUND),
            ("'x' does not appear to be a git repository", PushHintKind.NOT_FOUND),
            ("something else entirely", PushHintKind.UNKNOWN),
            ("", PushHintKind.UNKNOWN),
        ],
    )
    def test_error_text(self, error_text, kind):
        assert classify_push_failure(HTTPS, error_text).kind is kind

    def test_auth_checked_before_network(self):
        text = "unable to access: The requested URL returned error: 403"
        assert classify_push_failure(HTTPS, text).kind is PushHintKind.AUTHENTICATION

    def test_hint_has_message(self):
        hint = classify_push_failure(HTTPS, None)
        assert hint.message


class TestManualPushCommand:
    def test_simple(self):
        assert manual_push_command("/srv/blog", "origin", "main") == (
            "cd /srv/blog && git push origin main"
        )

    def test_quotes_paths_with_spaces(self):
        command = manual_push_command("/home/me/My Blog", "origin", "main")
        assert command == "cd '/home/me/My Blog' && git push origin main"


class TestGenerateCommitMessage:
    NOW = datetime(2024, 3, 5, 14, 7)

    def test_update(self):
        message = generate_commit_message("hello.md", now=self.NOW)

        assert message == "Update: hello.md\n\nUpdated via postdesk on Mar 05, 2024, 14:07"

    def test_create(self):
        message = generate_commit_message("hello.md", action="create", now=self.NOW)

        assert message.splitlines()[0] == "Create: hello.md"
        assert "Created via postdesk" in message
