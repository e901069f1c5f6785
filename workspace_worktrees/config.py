"""Load environment variables that shape a workspace setup run."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping
from urllib.parse import urlparse

from .coordinator import DEFAULT_MAX_WORKERS
from .exceptions import MissingEnvError, ValidationError
from .fs import build_workspace_paths
from .models import ProjectConfig, WorkspacePaths

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    max_concurrency: int = DEFAULT_MAX_WORKERS
    sequential: bool = False
    ensure_freshness: bool = True


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    raw_concurrency = env.get("WORKSPACE_MAX_CONCURRENCY", "").strip()
    max_concurrency = DEFAULT_MAX_WORKERS
    if raw_concurrency:
        try:
            max_concurrency = int(raw_concurrency)
        except ValueError as exc:
            raise ValidationError(
                f"WORKSPACE_MAX_CONCURRENCY must be an integer, got {raw_concurrency!r}"
            ) from exc
        if max_concurrency <= 0:
            raise ValidationError("WORKSPACE_MAX_CONCURRENCY must be greater than zero.")
    return Settings(
        max_concurrency=max_concurrency,
        sequential=_env_flag(env, "SEQUENTIAL_GIT_OPS", default=False),
        ensure_freshness=_env_flag(env, "WORKSPACE_ENSURE_FRESHNESS", default=True),
    )


def resolve_env_paths(
    src_dir: Path | None = None,
    workspace_root: Path | None = None,
) -> tuple[Path, Path]:
    src = src_dir.expanduser() if src_dir else _require_env("WORKSPACE_SRC_DIR")
    root = workspace_root.expanduser() if workspace_root else _require_env("WORKSPACE_ROOT")
    return src, root


def workspace_paths_for(
    project: ProjectConfig,
    workspace_name: str,
    src_dir: Path | None = None,
    workspace_root: Path | None = None,
) -> WorkspacePaths:
    src, root = resolve_env_paths(src_dir, workspace_root)
    name = repository_name(project.repo_url)
    sample_name = None
    if project.sample_repo_url:
        sample_name = repository_name(project.sample_repo_url)
        if sample_name == name:
            sample_name = f"{sample_name}-samples"
    return build_workspace_paths(
        project,
        workspace_name,
        src,
        root,
        repo_name=name,
        sample_repo_name=sample_name,
    )


def repository_name(remote: str) -> str:
    """Directory name for a clone of ``remote``."""

    remote = remote.strip()
    if remote.startswith("/"):
        path = remote
    elif "://" not in remote and "@" in remote and ":" in remote:
        path = remote.split(":", 1)[1]
    else:
        parsed = urlparse(remote)
        path = parsed.path
    parts = [part for part in path.rstrip("/").split("/") if part]
    if not parts:
        raise ValidationError(f"Unsupported remote URL: {remote}")
    name = parts[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name:
        raise ValidationError(f"Unsupported remote URL: {remote}")
    return name


def _env_flag(env: Mapping[str, str], var: str, *, default: bool) -> bool:
    raw = env.get(var)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValidationError(f"{var} must be true or false, got {raw!r}")


def _require_env(var: str) -> Path:
    raw = os.environ.get(var)
    if not raw:
        raise MissingEnvError(
            f"Environment variable {var} is required. Example: export {var}=$HOME/workspaces"
        )
    return Path(raw).expanduser()
