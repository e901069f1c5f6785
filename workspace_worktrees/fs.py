"""Filesystem helpers for workspace-worktrees."""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from .models import ProjectConfig, WorkspacePaths


_SAFE_PATTERN = re.compile(r"[^A-Za-z0-9._-]")

SAMPLE_BRANCH_SUFFIX = "-samples"


def slugify_branch(name: str) -> str:
    """Produce a filesystem-safe representation of a branch name."""

    slug = name.strip()
    if not slug:
        return "unnamed"
    slug = slug.replace("/", "__").replace(" ", "-")
    slug = _SAFE_PATTERN.sub("-", slug)
    return slug.lower()


def derive_sample_branch(branch: str) -> str:
    """Branch used in the shared sample repository for a primary branch."""

    return branch.replace("/", "-") + SAMPLE_BRANCH_SUFFIX


def build_workspace_paths(
    project: ProjectConfig,
    workspace_name: str,
    src_dir: Path,
    workspace_root: Path,
    *,
    repo_name: str,
    sample_repo_name: str | None = None,
) -> WorkspacePaths:
    workspace_dir = workspace_root / project.key / workspace_name
    if sample_repo_name is None:
        return WorkspacePaths(
            source_repo_path=src_dir / repo_name,
            source_path=workspace_dir / repo_name,
        )
    return WorkspacePaths(
        source_repo_path=src_dir / repo_name,
        source_path=workspace_dir / repo_name,
        destination_repo_path=src_dir / sample_repo_name,
        destination_path=workspace_dir / sample_repo_name,
    )


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def remove_path(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)
