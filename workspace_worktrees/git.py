"""Thin wrappers around git CLI commands."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Iterable

from .exceptions import CloneError, GitCommandError, ValidationError, WorkspaceError
from .models import WorktreeRecord

logger = logging.getLogger(__name__)

# Substrings of `git clone` stderr, mapped to the reason reported to the user.
_CLONE_REASONS = (
    ("could not resolve host", "remote unreachable"),
    ("unable to access", "remote unreachable"),
    ("connection refused", "remote unreachable"),
    ("connection timed out", "remote unreachable"),
    ("authentication failed", "authentication failed"),
    ("permission denied", "authentication failed"),
    ("could not read username", "authentication failed"),
    ("repository not found", "repository not found"),
    ("does not exist", "repository not found"),
    ("does not appear to be a git repository", "repository not found"),
    ("already exists and is not an empty directory", "target directory is not empty"),
)


def run_git(
    args: Iterable[str],
    *,
    cwd: Path,
    raise_on_error: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Execute a git command and optionally raise on failure."""

    cmd = ["git", *args]
    logger.debug("git %s (cwd: %s)", " ".join(cmd[1:]), cwd)
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        if not raise_on_error:
            return subprocess.CompletedProcess(cmd, 127, "", str(exc))
        raise GitCommandError(cmd, 127, str(exc), cwd=cwd) from exc
    if raise_on_error and proc.returncode != 0:
        raise translate_failure(cmd, proc, cwd)
    return proc


def translate_failure(
    command: list[str],
    proc: subprocess.CompletedProcess[str],
    cwd: Path,
) -> WorkspaceError:
    """Map a failed git invocation to the matching typed error."""

    stderr = (proc.stderr or "").strip()
    lowered = stderr.lower()
    if len(command) > 1 and command[1] == "clone":
        target = Path(command[-1])
        if not target.is_absolute():
            target = cwd / target
        return CloneError(command[-2], target, _clone_reason(lowered, stderr))
    if "not a git repository" in lowered:
        return ValidationError(f"Not a git repository: {cwd}")
    return GitCommandError(command, proc.returncode, stderr, cwd=cwd)


def _clone_reason(lowered: str, stderr: str) -> str:
    for needle, reason in _CLONE_REASONS:
        if needle in lowered:
            return reason
    last_line = stderr.splitlines()[-1] if stderr else ""
    return last_line or "git clone failed"


def remote_url(path: Path, remote: str = "origin") -> str | None:
    proc = run_git(["remote", "get-url", remote], cwd=path, raise_on_error=False)
    if proc.returncode != 0:
        return None
    return proc.stdout.strip()


def default_branch(path: Path) -> str | None:
    proc = run_git(
        ["symbolic-ref", "refs/remotes/origin/HEAD"],
        cwd=path,
        raise_on_error=False,
    )
    if proc.returncode == 0:
        ref = proc.stdout.strip()
        return ref[len("refs/remotes/origin/"):]
    # fallback heuristics
    for candidate in ("main", "master"):
        if branch_exists(path, candidate) or remote_branch_exists(path, candidate):
            return candidate
    return None


def _ref_exists(path: Path, ref: str) -> bool:
    proc = run_git(
        ["show-ref", "--verify", "--quiet", ref],
        cwd=path,
        raise_on_error=False,
    )
    return proc.returncode == 0


def branch_exists(path: Path, branch: str) -> bool:
    return _ref_exists(path, f"refs/heads/{branch}")


def remote_branch_exists(path: Path, branch: str, remote: str = "origin") -> bool:
    """Check the remote-tracking ref; this never touches the network."""

    return _ref_exists(path, f"refs/remotes/{remote}/{branch}")


def list_branches(path: Path, include_remote: bool = True) -> list[str]:
    namespaces = ["refs/heads"]
    if include_remote:
        namespaces.append("refs/remotes")
    proc = run_git(["for-each-ref", "--format=%(refname)", *namespaces], cwd=path)
    reduced = set()
    for raw in proc.stdout.splitlines():
        ref = raw.strip()
        if not ref or ref.endswith("/HEAD"):
            continue
        reduced.add(normalize_branch_name(ref))
    return sorted(reduced)


def normalize_branch_name(ref: str) -> str:
    if ref.startswith("refs/heads/"):
        return ref[len("refs/heads/"):]
    if ref.startswith("refs/remotes/"):
        return ref.split("/", 3)[-1]
    return ref


def fetch(path: Path, remote: str = "origin", prune: bool = True) -> None:
    args = ["fetch", remote]
    if prune:
        args.append("--prune")
    run_git(args, cwd=path)


def clone(remote: str, target: Path) -> None:
    run_git(["clone", "--", remote, str(target)], cwd=target.parent)


def current_branch(path: Path) -> str | None:
    proc = run_git(["symbolic-ref", "-q", "--short", "HEAD"], cwd=path, raise_on_error=False)
    if proc.returncode == 0:
        return proc.stdout.strip() or None
    return None


def worktree_list(path: Path) -> list[WorktreeRecord]:
    proc = run_git(["worktree", "list", "--porcelain"], cwd=path)
    return parse_worktree_porcelain(proc.stdout)


def parse_worktree_porcelain(output: str) -> list[WorktreeRecord]:
    """Parse porcelain output into one record per blank-line separated block."""

    records: list[WorktreeRecord] = []
    block: list[str] = []
    for raw_line in output.splitlines() + [""]:
        if raw_line.strip():
            block.append(raw_line)
            continue
        if block:
            record = _parse_block(block)
            if record is not None:
                records.append(record)
            block = []
    return records


def _parse_block(lines: list[str]) -> WorktreeRecord | None:
    fields: dict = {}
    for line in lines:
        key, _, value = line.partition(" ")
        if key == "worktree":
            fields["path"] = Path(value)
        elif key == "HEAD":
            fields["head"] = value.strip()
        elif key == "branch":
            fields["branch_ref"] = value.strip()
        elif key == "bare":
            fields["bare"] = True
        elif key == "detached":
            fields["detached"] = True
        elif key == "locked":
            fields["locked"] = True
            fields["locked_reason"] = value.strip() or None
        elif key == "prunable":
            fields["prunable"] = True
            fields["prunable_reason"] = value.strip() or None
        else:
            logger.debug("Ignoring unknown worktree attribute %r", key)
    if "path" not in fields:
        return None
    return WorktreeRecord(**fields)


def worktree_prune(path: Path) -> None:
    run_git(["worktree", "prune"], cwd=path)


def worktree_add(
    path: Path,
    target: Path,
    branch: str,
    *,
    start_point: str | None = None,
    new_branch: bool = False,
    track: bool = False,
    force: bool = False,
) -> None:
    args = ["worktree", "add"]
    if force:
        args.append("-f")
    if track:
        args.append("--track")
    if new_branch:
        args.extend(["-b", branch, str(target)])
        if start_point:
            args.append(start_point)
    else:
        args.extend([str(target), branch])
    run_git(args, cwd=path)
