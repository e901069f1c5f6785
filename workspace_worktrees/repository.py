"""Keep local repository clones present, valid and fresh."""

from __future__ import annotations

import logging
from pathlib import Path

from . import git
from .exceptions import (
    CloneError,
    FreshnessWarning,
    GitCommandError,
    IntegrityError,
    ValidationError,
    WorkspaceError,
)
from .fs import ensure_directory, remove_path
from .models import BindingOutcome, RepositoryRef
from .validation import validate_remote_url

logger = logging.getLogger(__name__)

FALLBACK_DEFAULT_BRANCH = "main"


def has_git_metadata(path: Path) -> bool:
    return (path / ".git").exists()


class RepositoryStateManager:
    """Clone, validate and refresh the repositories a workspace is built from.

    The three steps always run in that order for a single repository, but
    distinct repositories are handled independently of each other.
    """

    def __init__(self, *, dry_run: bool = False):
        self.dry_run = dry_run

    def ensure_exists(self, ref: RepositoryRef) -> bool:
        """Clone ``ref`` unless it is already present. Returns True on clone."""

        path = ref.local_path
        if has_git_metadata(path):
            logger.debug("Repository %s already present at %s", ref.role.value, path)
            return False
        try:
            url = validate_remote_url(ref.remote_url)
        except ValidationError as exc:
            raise CloneError(ref.remote_url, path, str(exc)) from exc
        if self.dry_run:
            logger.info("[dry run] Would clone %s into %s", url, path)
            return False
        existed = path.exists()
        ensure_directory(path.parent)
        logger.info("Cloning %s into %s", url, path)
        try:
            git.clone(url, path)
        except WorkspaceError as exc:
            if not existed:
                remove_path(path)
            if isinstance(exc, CloneError):
                raise
            raise CloneError(url, path, str(exc)) from exc
        return True

    def validate(self, ref: RepositoryRef) -> None:
        path = ref.local_path
        if self.dry_run:
            logger.info("[dry run] Would validate repository %s", path)
            return
        if not path.exists():
            raise ValidationError(f"Repository directory does not exist: {path}")
        if not has_git_metadata(path):
            raise ValidationError(f"Directory is not a git repository: {path}")
        if git.remote_url(path) is None:
            logger.warning("Repository %s has no 'origin' remote; continuing with local refs", path)
        proc = git.run_git(["worktree", "list"], cwd=path, raise_on_error=False)
        if proc.returncode != 0:
            logger.debug("Could not check worktree status for %s: %s", path, proc.stderr.strip())
        logger.debug("Repository %s validation passed", path)

    def freshen(self, ref: RepositoryRef) -> FreshnessWarning | None:
        """Fetch ``origin``; only remote-tracking refs are updated."""

        path = ref.local_path
        if self.dry_run:
            logger.info("[dry run] Would fetch latest changes for %s", path)
            return None
        try:
            git.fetch(path, "origin", prune=True)
        except WorkspaceError as exc:
            warning = FreshnessWarning(path, _error_summary(exc))
            logger.warning("%s; continuing with existing refs", warning)
            return warning
        logger.debug("Fetched origin for %s", path)
        return None

    def discover_default_branch(self, ref: RepositoryRef) -> str:
        if self.dry_run:
            return FALLBACK_DEFAULT_BRANCH
        branch = git.default_branch(ref.local_path)
        if branch is None:
            logger.debug(
                "Could not determine default branch of %s, assuming %s",
                ref.local_path,
                FALLBACK_DEFAULT_BRANCH,
            )
            return FALLBACK_DEFAULT_BRANCH
        return branch

    def check_integrity(self, ref: RepositoryRef, binding: BindingOutcome | None = None) -> None:
        path = ref.local_path
        if self.dry_run:
            logger.info("[dry run] Would check integrity of %s", path)
            return
        for args in (["status", "--porcelain"], ["branch", "-a"]):
            try:
                git.run_git(args, cwd=path)
            except WorkspaceError as exc:
                raise IntegrityError(path, _error_summary(exc)) from exc
        if binding is None:
            return
        if not has_git_metadata(binding.worktree_path):
            raise IntegrityError(path, f"worktree {binding.worktree_path} is missing")
        checked_out = git.current_branch(binding.worktree_path)
        if checked_out != binding.branch:
            raise IntegrityError(
                path,
                f"worktree {binding.worktree_path} has {checked_out or 'a detached HEAD'} "
                f"checked out instead of {binding.branch}",
            )
        logger.debug("Repository integrity validated: %s", path)


def _error_summary(exc: Exception) -> str:
    if isinstance(exc, GitCommandError) and exc.stderr.strip():
        return exc.stderr.strip().splitlines()[-1]
    return str(exc).splitlines()[0]
