"""Custom exception hierarchy for workspace-worktrees."""

from __future__ import annotations

from pathlib import Path


class WorkspaceError(Exception):
    """Base error for all custom exceptions."""


class MissingEnvError(WorkspaceError):
    """Raised when the required environment variables are absent."""


class ValidationError(WorkspaceError):
    """Raised when input or repository state is invalid."""


class GitCommandError(WorkspaceError):
    """Raised when a git invocation fails."""

    def __init__(
        self,
        command: list[str],
        returncode: int,
        stderr: str | None = None,
        *,
        cwd: Path | None = None,
        hint: str | None = None,
    ):
        message = "Git command failed"
        if command:
            message = f"Git command failed: {' '.join(command)}"
        if cwd is not None:
            message = f"{message} (in {cwd})"
        detail = (stderr or "").strip()
        if detail:
            message = f"{message}\n{detail}"
        if hint:
            message = f"{message}\n{hint}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr or ""
        self.cwd = cwd


class CloneError(WorkspaceError):
    """Raised when a repository cannot be cloned."""

    def __init__(self, url: str, path: Path, reason: str):
        super().__init__(f"Could not clone {url} into {path}: {reason}")
        self.url = url
        self.path = path
        self.reason = reason


class BranchConflictError(WorkspaceError):
    """Raised when a branch is already checked out in another live worktree."""

    def __init__(self, branch: str, existing_path: Path, repo_path: Path):
        message = (
            f"Branch '{branch}' in {repo_path} is already checked out at {existing_path}.\n"
            f"Remove that worktree with `git -C {repo_path} worktree remove {existing_path}` "
            "or choose a different branch name."
        )
        super().__init__(message)
        self.branch = branch
        self.existing_path = existing_path
        self.repo_path = repo_path


class IntegrityError(WorkspaceError):
    """Raised when a repository looks corrupted after worktrees were bound."""

    def __init__(self, repo_path: Path, detail: str):
        super().__init__(f"Repository integrity check failed for {repo_path}: {detail}")
        self.repo_path = repo_path
        self.detail = detail


class OperationSkipped(WorkspaceError):
    """Recorded for an operation whose dependencies did not succeed."""

    def __init__(self, operation_id: str, reason: str):
        super().__init__(f"Skipped {operation_id}: {reason}")
        self.operation_id = operation_id
        self.reason = reason


class FreshnessWarning(UserWarning):
    """A fetch from origin failed; local refs are used as they are."""

    def __init__(self, repo_path: Path, detail: str):
        super().__init__(f"Could not fetch latest changes for {repo_path}: {detail}")
        self.repo_path = repo_path
        self.detail = detail
