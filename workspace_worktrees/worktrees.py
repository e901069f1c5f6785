"""High-level orchestration for workspace worktrees.

A workspace is built in phases. Each phase submits at most one operation per
repository to the coordinator and acts as a barrier: the next phase starts
only once every result of the current one has been collected. Clone,
validate, branch discovery, binding and the final integrity check are fatal
when they fail; a failed fetch only produces a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .binding import BranchBindingResolver
from .config import Settings
from .coordinator import OperationCoordinator, summarize
from .exceptions import FreshnessWarning, ValidationError, WorkspaceError
from .fs import derive_sample_branch
from .models import (
    BindingOutcome,
    Operation,
    OperationKind,
    OperationResult,
    ProjectConfig,
    RepoRole,
    RepositoryRef,
    SetupReport,
    WorkspacePaths,
)
from .repository import RepositoryStateManager
from .validation import validate_branch_name

logger = logging.getLogger(__name__)

PostBindHook = Callable[[BindingOutcome], None]


@dataclass(frozen=True)
class _Target:
    ref: RepositoryRef
    worktree_path: Path
    branch: str


class WorktreeOrchestrator:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        coordinator: OperationCoordinator | None = None,
        hooks: Iterable[PostBindHook] = (),
    ):
        self.settings = settings or Settings()
        self.coordinator = coordinator or OperationCoordinator(
            self.settings.max_concurrency, sequential=self.settings.sequential
        )
        self.hooks = list(hooks)

    def setup_worktrees(
        self,
        project: ProjectConfig,
        paths: WorkspacePaths,
        branch_name: str,
        dry_run: bool = False,
    ) -> SetupReport:
        branch = validate_branch_name(branch_name)
        targets = _build_targets(project, paths, branch)
        sample_branch = next((t.branch for t in targets if t.ref.role is RepoRole.SAMPLE), None)
        report = SetupReport(branch=branch, sample_branch=sample_branch)
        manager = RepositoryStateManager(dry_run=dry_run)
        resolver = BranchBindingResolver(dry_run=dry_run)
        ledger: dict[str, OperationResult] = {}

        def run_phase(
            kind: OperationKind,
            build: Callable[[_Target], Callable[[], object]],
            after: OperationKind | None,
        ) -> list[OperationResult]:
            operations = [
                Operation(
                    id=_op_id(kind, target.ref),
                    repo_path=target.ref.local_path,
                    kind=kind,
                    execute=build(target),
                    depends_on=frozenset({_op_id(after, target.ref)}) if after else frozenset(),
                    description=f"{kind.value} {target.ref.role.value} repository {target.ref.local_path}",
                )
                for target in targets
            ]
            logger.debug("Phase %s: %d operation(s)", kind.value, len(operations))
            results = self.coordinator.execute_parallel(operations, completed=ledger)
            for result in results:
                ledger[result.id] = result
            report.phases[kind.value] = results
            stats = summarize(results)
            logger.debug(
                "Phase %s finished: %d/%d succeeded in %.0fms",
                kind.value,
                stats.succeeded,
                stats.total,
                stats.total_duration_ms,
            )
            return results

        logger.info("Ensuring repositories exist")
        _raise_first_failure(run_phase(OperationKind.CLONE, lambda t: partial(manager.ensure_exists, t.ref), None))

        logger.info("Validating repository state")
        _raise_first_failure(
            run_phase(OperationKind.VALIDATE, lambda t: partial(manager.validate, t.ref), OperationKind.CLONE)
        )

        if self.settings.ensure_freshness:
            logger.info("Fetching latest changes from origin")
            for result in run_phase(
                OperationKind.FRESHEN, lambda t: partial(manager.freshen, t.ref), OperationKind.VALIDATE
            ):
                _collect_freshness(result, report)
        else:
            logger.info("Skipping repository freshness check (disabled)")

        discovered = run_phase(
            OperationKind.DISCOVER_BRANCH,
            lambda t: partial(manager.discover_default_branch, t.ref),
            OperationKind.VALIDATE,
        )
        _raise_first_failure(discovered)
        base_branches = {result.id: result.value for result in discovered}

        def bind(target: _Target) -> Callable[[], BindingOutcome]:
            base = base_branches[_op_id(OperationKind.DISCOVER_BRANCH, target.ref)]
            return partial(
                resolver.bind,
                target.ref.local_path,
                target.worktree_path,
                target.branch,
                base,
                role=target.ref.role,
            )

        logger.info("Binding worktrees to %s", branch)
        bound = run_phase(OperationKind.BIND_WORKTREE, bind, OperationKind.DISCOVER_BRANCH)
        _raise_first_failure(bound)
        report.bindings = [result.value for result in bound]

        if not dry_run:
            outcomes = {binding.role: binding for binding in report.bindings}
            _raise_first_failure(
                run_phase(
                    OperationKind.INTEGRITY,
                    lambda t: partial(manager.check_integrity, t.ref, outcomes[t.ref.role]),
                    OperationKind.BIND_WORKTREE,
                )
            )
            self._run_hooks(report)

        logger.info("Worktrees ready for %s", branch)
        return report

    def _run_hooks(self, report: SetupReport) -> None:
        for binding in report.bindings:
            for hook in self.hooks:
                name = getattr(hook, "__name__", repr(hook))
                try:
                    hook(binding)
                except Exception as exc:
                    message = f"Post-bind hook {name} failed for {binding.worktree_path}: {exc}"
                    logger.warning(message)
                    report.warnings.append(message)


def setup_worktrees(
    project: ProjectConfig,
    paths: WorkspacePaths,
    branch_name: str,
    dry_run: bool = False,
    *,
    settings: Settings | None = None,
    hooks: Sequence[PostBindHook] = (),
) -> SetupReport:
    """Provision the primary (and optional sample) worktrees for a branch."""

    orchestrator = WorktreeOrchestrator(settings, hooks=hooks)
    return orchestrator.setup_worktrees(project, paths, branch_name, dry_run)


def _build_targets(project: ProjectConfig, paths: WorkspacePaths, branch: str) -> list[_Target]:
    targets = [
        _Target(
            ref=RepositoryRef(paths.source_repo_path, project.repo_url, RepoRole.PRIMARY),
            worktree_path=paths.source_path,
            branch=branch,
        )
    ]
    if project.sample_repo_url:
        if paths.destination_repo_path is None or paths.destination_path is None:
            raise ValidationError(
                f"Project {project.key} has a sample repository but no destination paths were given."
            )
        targets.append(
            _Target(
                ref=RepositoryRef(paths.destination_repo_path, project.sample_repo_url, RepoRole.SAMPLE),
                worktree_path=paths.destination_path,
                branch=derive_sample_branch(branch),
            )
        )
    return targets


def _op_id(kind: OperationKind, ref: RepositoryRef) -> str:
    return f"{kind.value}:{ref.role.value}"


def _collect_freshness(result: OperationResult, report: SetupReport) -> None:
    if result.ok and isinstance(result.value, FreshnessWarning):
        report.warnings.append(str(result.value))
    elif not result.ok:
        message = f"Could not fetch latest changes for {result.repo_path}: {result.error}"
        logger.warning(message)
        report.warnings.append(message)


def _raise_first_failure(results: list[OperationResult]) -> None:
    failures = [result for result in results if not result.ok]
    if not failures:
        return
    for extra in failures[1:]:
        logger.error("%s failed for %s: %s", extra.kind.value, extra.repo_path, extra.error)
    error = failures[0].error
    if isinstance(error, WorkspaceError):
        raise error
    raise WorkspaceError(f"{failures[0].kind.value} failed for {failures[0].repo_path}: {error}") from error
