"""Read-only repository status checks.

The probe only answers questions; it never stages, commits or changes the
working tree, and it reports a missing repository as a normal result.
"""

import logging
from pathlib import Path

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from .models import GitStatus

logger = logging.getLogger(__name__)

NOT_A_REPOSITORY = "No .git directory found. Please select the project root folder."

_MARKDOWN_SUFFIXES = (".md", ".markdown")


def _markdown_paths(paths) -> list[str]:
    found = {path.strip('"') for path in paths}
    return sorted(p for p in found if p.lower().endswith(_MARKDOWN_SUFFIXES))


def _branch_name(repo: Repo) -> str | None:
    """Active branch name, or None if HEAD is detached."""
    try:
        if repo.head.is_detached:
            return None
        return repo.active_branch.name
    except (TypeError, ValueError) as e:
        logger.debug("Could not read active branch: %s", e)
        return None


class GitStatusProbe:
    """Answers "is this directory a repository root, and on which branch?"."""

    def probe(self, working_directory: str | Path) -> GitStatus:
        """Inspect *working_directory*. Never raises.

        Only the directory itself is considered: a subfolder of a
        repository is reported as not a repository so the user picks the
        root instead.
        """
        root = Path(working_directory)
        if not root.is_dir():
            return GitStatus(
                is_repository=False,
                error=f"Directory not found: {root}",
            )
        if not (root / ".git").exists():
            return GitStatus(is_repository=False, error=NOT_A_REPOSITORY)

        try:
            repo = Repo(root)
        except (InvalidGitRepositoryError, NoSuchPathError, OSError) as e:
            logger.info("%s has a .git entry but is not a repository: %s", root, e)
            return GitStatus(
                is_repository=False,
                error=f"The .git directory in {root} is not a valid repository.",
            )

        try:
            branch = _branch_name(repo)
            try:
                has_changes = repo.is_dirty(untracked_files=True)
            except GitCommandError as e:
                logger.warning("git status failed in %s: %s", root, e)
                has_changes = False
            return GitStatus(
                is_repository=True,
                current_branch=branch,
                has_changes=has_changes,
            )
        finally:
            repo.close()

    def list_changed_documents(self, working_directory: str | Path) -> list[str]:
        """Markdown files with uncommitted changes, relative to the root.

        Returns an empty list when the directory is not a repository or git
        cannot be run.
        """
        root = Path(working_directory)
        if not (root / ".git").exists():
            return []
        try:
            repo = Repo(root)
        except (InvalidGitRepositoryError, NoSuchPathError, OSError):
            return []

        try:
            output = repo.git.status("--porcelain", "--untracked-files=all")
        except GitCommandError as e:
            logger.warning("git status failed in %s: %s", root, e)
            return []
        finally:
            repo.close()

        paths = []
        for line in output.splitlines():
            if len(line) < 4:
                continue
            path = line[3:]
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            paths.append(path)
        return _markdown_paths(paths)

    def list_unpushed_documents(
        self, working_directory: str | Path, remote: str = "origin"
    ) -> list[str]:
        """Markdown files touched by commits that *remote* does not have.

        A commit counts as unpushed when no ref of *remote* reaches it, so
        on a branch that was never pushed every commit counts. Returns an
        empty list when *remote* is not configured, HEAD has no commits or
        git cannot be run.
        """
        root = Path(working_directory)
        if not (root / ".git").exists():
            return []
        try:
            repo = Repo(root)
        except (InvalidGitRepositoryError, NoSuchPathError, OSError):
            return []

        try:
            if remote not in [r.name for r in repo.remotes] or not repo.head.is_valid():
                return []
            output = repo.git.log(
                "--name-only", "--format=", "HEAD", "--not", f"--remotes={remote}"
            )
        except GitCommandError as e:
            logger.warning("git log failed in %s: %s", root, e)
            return []
        finally:
            repo.close()

        return _markdown_paths(line for line in output.splitlines() if line)
