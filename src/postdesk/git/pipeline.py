"""Publish one file: stage it, commit it, push the branch.

Only staging or committing can fail the run (``PublishError``). A push
that does not go through still returns a ``PublishResult``, with
``needs_manual_push`` set and the command the user has to run.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from git import Actor, Repo
from git.exc import GitCommandError

from postdesk.config import Settings
from postdesk.errors import PublishError, PublishRejected
from postdesk.validators import validate_branch_name, validate_commit_message

from .hints import classify_push_failure, is_ssh_url, manual_push_command
from .models import PublishResult, PublishStage
from .probe import NOT_A_REPOSITORY, GitStatusProbe

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR_NAME = "Postdesk User"
DEFAULT_AUTHOR_EMAIL = "user@postdesk.local"

# Fail instead of waiting on a credential prompt nobody can answer
_PUSH_ENV = {"GIT_TERMINAL_PROMPT": "0"}


class PublishPipeline:
    """Runs stage -> commit -> push against the workspace repository.

    One run at a time: a second ``publish()`` while one is in flight is
    rejected, since both would commit against the same index.
    """

    def __init__(self, settings: Settings, probe: GitStatusProbe | None = None):
        self.settings = settings
        self.root = Path(settings.workspace_root)
        self.probe = probe or GitStatusProbe()
        self._lock = threading.Lock()
        self._stage = PublishStage.IDLE

    @property
    def stage(self) -> PublishStage:
        return self._stage

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def _set_stage(self, stage: PublishStage) -> None:
        logger.debug("Publish stage: %s -> %s", self._stage.value, stage.value)
        self._stage = stage

    def publish(
        self,
        file_path: str,
        commit_message: str,
        branch: str | None = None,
    ) -> PublishResult:
        """Publish *file_path* (relative to the workspace root).

        Args:
            file_path: File to stage; nothing else is staged.
            commit_message: Message for the commit.
            branch: Remote branch to push to (default: the current branch,
                or the configured default branch when HEAD is detached).

        Returns:
            PublishResult; ``pushed`` or ``needs_manual_push`` is set.

        Raises:
            PublishRejected: Not a repository, or a publish is already running.
            ValueError: Invalid commit message or branch name.
            PublishError: Staging or committing failed.
        """
        if not self._lock.acquire(blocking=False):
            raise PublishRejected("A publish is already running for this workspace")
        try:
            return self._run(file_path, commit_message, branch)
        finally:
            self._lock.release()

    def _run(
        self, file_path: str, commit_message: str, branch: str | None
    ) -> PublishResult:
        status = self.probe.probe(self.root)
        if not status.is_repository:
            raise PublishRejected(status.error or NOT_A_REPOSITORY)

        is_valid, message = validate_commit_message(commit_message)
        if not is_valid:
            raise ValueError(message)

        local_branch = status.current_branch
        target_branch = branch or local_branch or self.settings.default_branch
        is_valid, message = validate_branch_name(target_branch)
        if not is_valid:
            raise ValueError(message)

        repo = Repo(self.root)
        try:
            self._set_stage(PublishStage.STAGING)
            rel_path = self._stage_file(repo, file_path)

            self._set_stage(PublishStage.COMMITTING)
            commit_sha = self._commit(repo, rel_path, commit_message)

            self._set_stage(PublishStage.PUSHING)
            result = self._push(repo, local_branch, target_branch, commit_sha)
            self._set_stage(result.stage)
            return result
        except PublishError:
            self._set_stage(PublishStage.FAILED)
            raise
        finally:
            repo.close()

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _stage_file(self, repo: Repo, file_path: str) -> str:
        root = self.root.resolve()
        path = Path(file_path)
        target = (path if path.is_absolute() else root / path).resolve()
        if not target.is_relative_to(root):
            raise PublishError(
                PublishStage.STAGING.value,
                f"{file_path} is outside the repository",
            )
        if not target.is_file():
            raise PublishError(
                PublishStage.STAGING.value, f"File not found: {file_path}"
            )

        rel_path = target.relative_to(root).as_posix()
        try:
            repo.index.add([rel_path])
        except (GitCommandError, OSError, ValueError) as e:
            raise PublishError(
                PublishStage.STAGING.value, f"Could not stage {rel_path}: {e}"
            ) from e
        logger.info("Staged %s", rel_path)
        return rel_path

    def _author(self, repo: Repo) -> Actor:
        name = self.settings.author_name
        email = self.settings.author_email
        if not name or not email:
            reader = repo.config_reader()
            name = name or reader.get_value("user", "name", "")
            email = email or reader.get_value("user", "email", "")
        return Actor(
            str(name) if name else DEFAULT_AUTHOR_NAME,
            str(email) if email else DEFAULT_AUTHOR_EMAIL,
        )

    def _commit(self, repo: Repo, rel_path: str, message: str) -> str | None:
        """Commit the staged file; return the new SHA, or None if the file
        has no change against HEAD."""
        has_head = repo.head.is_valid()
        if has_head and not repo.index.diff("HEAD", paths=[rel_path]):
            logger.info("%s unchanged since HEAD, skipping commit", rel_path)
            return None

        author = self._author(repo)
        env = {
            "GIT_AUTHOR_NAME": author.name,
            "GIT_AUTHOR_EMAIL": author.email,
            "GIT_COMMITTER_NAME": author.name,
            "GIT_COMMITTER_EMAIL": author.email,
        }
        try:
            # --only: entries the user staged for other paths stay in the
            # index and out of this commit
            repo.git.commit("-q", "--only", "-m", message, "--", rel_path, env=env)
            sha = repo.head.commit.hexsha
        except (GitCommandError, OSError, ValueError) as e:
            self._unstage(repo, rel_path, has_head)
            raise PublishError(
                PublishStage.COMMITTING.value, f"Could not create commit: {e}"
            ) from e

        logger.info("Committed %s as %s", rel_path, sha[:7])
        return sha

    def _unstage(self, repo: Repo, rel_path: str, has_head: bool) -> None:
        try:
            if has_head:
                repo.git.reset("-q", "HEAD", "--", rel_path)
            else:
                repo.git.rm("--cached", "-q", "--", rel_path)
        except GitCommandError as e:
            logger.warning("Could not unstage %s: %s", rel_path, e)

    def _push(
        self,
        repo: Repo,
        local_branch: str | None,
        target_branch: str,
        commit_sha: str | None,
    ) -> PublishResult:
        remote_name = self.settings.remote
        refspec = f"{local_branch or 'HEAD'}:refs/heads/{target_branch}"
        command = manual_push_command(
            str(self.root),
            remote_name,
            target_branch
            if local_branch == target_branch
            else f"{local_branch or 'HEAD'}:{target_branch}",
        )

        try:
            remote = repo.remote(remote_name)
            remote_url: str | None = next(iter(remote.urls), None)
        except (ValueError, GitCommandError) as e:
            logger.warning("Remote %r not available: %s", remote_name, e)
            return self._manual_result(
                commit_sha, target_branch, remote_name, None, str(e), command
            )

        if is_ssh_url(remote_url) and not self.settings.push_ssh_remotes:
            logger.info("Skipping push to SSH remote %s", remote_url)
            return self._manual_result(
                commit_sha, target_branch, remote_name, remote_url, "", command
            )

        try:
            repo.git.push(
                remote_name,
                refspec,
                kill_after_timeout=self.settings.push_timeout,
                env=_PUSH_ENV,
            )
        except GitCommandError as e:
            error_text = str(e.stderr or e)
            logger.warning("Push to %s failed: %s", remote_name, error_text.strip())
            return self._manual_result(
                commit_sha,
                target_branch,
                remote_name,
                remote_url,
                error_text,
                command,
            )

        logger.info("Pushed %s to %s/%s", refspec, remote_name, target_branch)
        short = commit_sha[:7] if commit_sha else None
        return PublishResult(
            pushed=True,
            needs_manual_push=False,
            commit_sha=commit_sha,
            branch=target_branch,
            remote=remote_name,
            message=(
                f"Published to {target_branch} (commit {short})."
                if short
                else f"Nothing new to commit; {target_branch} pushed to {remote_name}."
            ),
        )

    def _manual_result(
        self,
        commit_sha: str | None,
        branch: str,
        remote_name: str,
        remote_url: str | None,
        error_text: str,
        command: str,
    ) -> PublishResult:
        hint = classify_push_failure(remote_url, error_text)
        committed = (
            f"Committed locally (commit {commit_sha[:7]})."
            if commit_sha
            else "No new commit was needed."
        )
        return PublishResult(
            pushed=False,
            needs_manual_push=True,
            commit_sha=commit_sha,
            branch=branch,
            remote=remote_name,
            hint=hint,
            manual_push_command=command,
            message=f"{committed} Push to {remote_name} did not complete. {hint.message}",
        )
