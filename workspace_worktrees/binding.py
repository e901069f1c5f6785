"""Attach a branch to a worktree directory, whatever state the branch is in."""

from __future__ import annotations

import logging
from pathlib import Path

from . import git
from .exceptions import BranchConflictError, GitCommandError, WorkspaceError
from .fs import ensure_directory, remove_path
from .models import BindingOutcome, BranchClassification, BranchState, RepoRole

logger = logging.getLogger(__name__)


class BranchBindingResolver:
    """Resolve the git action that binds a branch to a worktree.

    Branch and worktree state is read from git on every call. A local
    branch always takes precedence over a remote-tracking one, and a branch
    that is live in another worktree is never taken over.
    """

    def __init__(self, *, dry_run: bool = False):
        self.dry_run = dry_run

    def classify(self, repo_path: Path, branch: str) -> BranchClassification:
        if not git.branch_exists(repo_path, branch):
            if git.remote_branch_exists(repo_path, branch):
                return BranchClassification(BranchState.REMOTE_ONLY, branch)
            return BranchClassification(BranchState.NEW_BRANCH, branch)
        wanted = f"refs/heads/{branch}"
        stale: list[Path] = []
        locked: list[Path] = []
        for record in git.worktree_list(repo_path):
            if record.branch_ref != wanted:
                continue
            if record.path.exists():
                return BranchClassification(
                    BranchState.BOUND_ELSEWHERE, branch, existing_path=record.path
                )
            stale.append(record.path)
            # prune keeps locked registrations
            if record.locked:
                locked.append(record.path)
        return BranchClassification(
            BranchState.LOCAL_EXISTS,
            branch,
            stale_paths=tuple(stale),
            locked_paths=tuple(locked),
        )

    def bind(
        self,
        repo_path: Path,
        worktree_path: Path,
        target_branch: str,
        base_branch: str,
        *,
        role: RepoRole = RepoRole.PRIMARY,
    ) -> BindingOutcome:
        if self.dry_run:
            logger.info(
                "[dry run] Would bind %s to %s in %s (base %s)",
                target_branch,
                worktree_path,
                repo_path,
                base_branch,
            )
            return BindingOutcome(
                role=role,
                repo_path=repo_path,
                worktree_path=worktree_path,
                branch=target_branch,
                state=None,
                dry_run=True,
            )

        if worktree_path.exists() or worktree_path.is_symlink():
            logger.info("Removing existing directory %s before recreating the worktree", worktree_path)
            remove_path(worktree_path)
        # after removal, so a worktree that lived at worktree_path is unregistered too
        self._prune(repo_path)
        ensure_directory(worktree_path.parent)

        classification = self.classify(repo_path, target_branch)
        logger.debug("Branch %s in %s classified as %s", target_branch, repo_path, classification.state.value)

        if classification.state is BranchState.BOUND_ELSEWHERE:
            raise BranchConflictError(target_branch, classification.existing_path, repo_path)

        start_point = None
        forced = False
        if classification.state is BranchState.NEW_BRANCH:
            start_point = self._base_start_point(repo_path, base_branch)
            logger.info("Creating branch %s from %s at %s", target_branch, start_point, worktree_path)
            git.worktree_add(
                repo_path, worktree_path, target_branch, start_point=start_point, new_branch=True
            )
        elif classification.state is BranchState.REMOTE_ONLY:
            start_point = f"origin/{target_branch}"
            logger.info("Creating tracking branch %s from %s at %s", target_branch, start_point, worktree_path)
            git.worktree_add(
                repo_path,
                worktree_path,
                target_branch,
                start_point=start_point,
                new_branch=True,
                track=True,
            )
        else:
            if classification.stale_paths:
                logger.info(
                    "Pruning stale registrations of %s: %s",
                    target_branch,
                    ", ".join(str(path) for path in classification.stale_paths),
                )
                self._prune(repo_path)
            forced = self._attach_existing(
                repo_path, worktree_path, target_branch, locked_paths=classification.locked_paths
            )

        return BindingOutcome(
            role=role,
            repo_path=repo_path,
            worktree_path=worktree_path,
            branch=target_branch,
            state=classification.state,
            start_point=start_point,
            forced=forced,
        )

    def _attach_existing(
        self,
        repo_path: Path,
        worktree_path: Path,
        branch: str,
        *,
        locked_paths: tuple[Path, ...] = (),
    ) -> bool:
        """Plain attach, then one forced retry. Returns True when forced."""

        logger.info("Attaching existing branch %s at %s", branch, worktree_path)
        try:
            git.worktree_add(repo_path, worktree_path, branch)
            return False
        except WorkspaceError as exc:
            logger.warning("Plain attach of %s failed, retrying with -f: %s", branch, exc)
        try:
            git.worktree_add(repo_path, worktree_path, branch, force=True)
        except GitCommandError as exc:
            raise GitCommandError(
                exc.command,
                exc.returncode,
                exc.stderr,
                cwd=repo_path,
                hint=_attach_hint(repo_path, branch, locked_paths),
            ) from exc
        logger.warning("Attached %s at %s with -f", branch, worktree_path)
        return True

    def _base_start_point(self, repo_path: Path, base_branch: str) -> str:
        if git.remote_branch_exists(repo_path, base_branch):
            return f"origin/{base_branch}"
        if git.branch_exists(repo_path, base_branch):
            logger.info("origin/%s not found in %s, branching from local %s", base_branch, repo_path, base_branch)
            return base_branch
        return f"origin/{base_branch}"

    @staticmethod
    def _prune(repo_path: Path) -> None:
        try:
            git.worktree_prune(repo_path)
        except WorkspaceError as exc:
            logger.debug("git worktree prune failed in %s: %s", repo_path, exc)


def _attach_hint(repo_path: Path, branch: str, locked_paths: tuple[Path, ...]) -> str:
    if locked_paths:
        commands = "; ".join(
            f"`git -C {repo_path} worktree unlock {path}` then `git -C {repo_path} worktree prune` "
            f"(or `git -C {repo_path} worktree remove -f -f {path}`)"
            for path in locked_paths
        )
        return (
            f"Forced attach of branch '{branch}' also failed because it is registered to a locked "
            f"worktree that no longer exists. Release it with {commands}, then run setup again."
        )
    return (
        f"Forced attach of branch '{branch}' also failed. Delete the branch manually "
        f"(`git -C {repo_path} branch -D {branch}`) or choose a different branch name."
    )
