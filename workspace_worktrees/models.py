"""Dataclasses shared across modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable


class RepoRole(str, Enum):
    PRIMARY = "primary"
    SAMPLE = "sample"


class OperationKind(str, Enum):
    CLONE = "clone"
    VALIDATE = "validate"
    FRESHEN = "freshen"
    DISCOVER_BRANCH = "discover_branch"
    BIND_WORKTREE = "bind_worktree"
    INTEGRITY = "integrity"


class BranchState(str, Enum):
    NEW_BRANCH = "new_branch"
    LOCAL_EXISTS = "local_exists"
    REMOTE_ONLY = "remote_only"
    BOUND_ELSEWHERE = "bound_elsewhere"


@dataclass(frozen=True)
class ProjectConfig:
    """Repositories participating in a workspace, as configured by the user."""

    key: str
    repo_url: str
    sample_repo_url: str | None = None


@dataclass(frozen=True)
class RepositoryRef:
    """One of the (at most two) repositories of a workspace."""

    local_path: Path
    remote_url: str
    role: RepoRole


@dataclass(frozen=True)
class WorkspacePaths:
    """Concrete filesystem locations computed by the caller."""

    source_repo_path: Path
    source_path: Path
    destination_repo_path: Path | None = None
    destination_path: Path | None = None


@dataclass(frozen=True)
class Operation:
    """A schedulable unit of work bound to a single repository path."""

    id: str
    repo_path: Path
    kind: OperationKind
    execute: Callable[[], Any]
    depends_on: frozenset[str] = field(default_factory=frozenset)
    description: str = ""

    @property
    def label(self) -> str:
        return self.description or f"{self.kind.value} {self.repo_path}"


@dataclass(frozen=True)
class OperationResult:
    id: str
    kind: OperationKind
    repo_path: Path
    ok: bool
    duration_ms: float
    value: Any = None
    error: BaseException | None = None
    skipped: bool = False


@dataclass(frozen=True)
class BatchSummary:
    total: int
    succeeded: int
    failed: int
    skipped: int
    total_duration_ms: float
    average_duration_ms: float
    success_rate: float


@dataclass(frozen=True)
class WorktreeRecord:
    """A single block of `git worktree list --porcelain` output."""

    path: Path
    head: str | None = None
    branch_ref: str | None = None
    bare: bool = False
    detached: bool = False
    locked: bool = False
    locked_reason: str | None = None
    prunable: bool = False
    prunable_reason: str | None = None

    @property
    def branch(self) -> str | None:
        if self.branch_ref and self.branch_ref.startswith("refs/heads/"):
            return self.branch_ref[len("refs/heads/"):]
        return self.branch_ref

    @property
    def status(self) -> str:
        if self.bare:
            return "bare"
        if self.locked:
            return "locked"
        if self.prunable or not self.path.exists():
            return "stale"
        return "active"


@dataclass(frozen=True)
class BranchClassification:
    state: BranchState
    branch: str
    existing_path: Path | None = None
    stale_paths: tuple[Path, ...] = ()
    locked_paths: tuple[Path, ...] = ()


@dataclass(frozen=True)
class BindingOutcome:
    """What the resolver did (or would do, in dry run) for one repository."""

    role: RepoRole
    repo_path: Path
    worktree_path: Path
    branch: str
    state: BranchState | None
    start_point: str | None = None
    forced: bool = False
    dry_run: bool = False


@dataclass
class SetupReport:
    branch: str
    sample_branch: str | None = None
    bindings: list[BindingOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    phases: dict[str, list[OperationResult]] = field(default_factory=dict)
