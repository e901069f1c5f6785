"""End-to-end tests for the phased worktree setup against local origins."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from workspace_worktrees.binding import BranchBindingResolver
from workspace_worktrees.config import Settings, workspace_paths_for
from workspace_worktrees.exceptions import BranchConflictError, ValidationError
from workspace_worktrees.models import BranchState, OperationKind, ProjectConfig, RepoRole, WorkspacePaths
from workspace_worktrees.repository import RepositoryStateManager
from workspace_worktrees.worktrees import WorktreeOrchestrator, setup_worktrees

from gitrepos import clone, git, make_origin, requires_git


@requires_git
class SetupWorktreesTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        origins = self.root / "origins"
        origins.mkdir()
        self.primary_bare, _ = make_origin(origins, "sdk")
        self.sample_bare, _ = make_origin(origins, "sdk-samples")
        self.src = self.root / "src"
        self.workspaces = self.root / "workspaces"
        self.project = ProjectConfig(
            key="sdk",
            repo_url=str(self.primary_bare),
            sample_repo_url=str(self.sample_bare),
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _paths(self, name: str = "feature-x") -> WorkspacePaths:
        return workspace_paths_for(self.project, name, self.src, self.workspaces)

    def test_primary_and_sample_are_cloned_and_bound(self) -> None:
        paths = self._paths()

        report = setup_worktrees(self.project, paths, "feature/x", settings=Settings(max_concurrency=2))

        self.assertEqual(report.branch, "feature/x")
        self.assertEqual(report.sample_branch, "feature-x-samples")
        self.assertEqual(report.warnings, [])
        self.assertEqual([b.role for b in report.bindings], [RepoRole.PRIMARY, RepoRole.SAMPLE])
        self.assertTrue(all(b.state is BranchState.NEW_BRANCH for b in report.bindings))
        self.assertEqual(paths.source_repo_path, self.src / "sdk")
        self.assertEqual(paths.source_path, self.workspaces / "sdk" / "feature-x" / "sdk")
        self.assertEqual(git(paths.source_path, "rev-parse", "--abbrev-ref", "HEAD"), "feature/x")
        self.assertEqual(
            git(paths.destination_path, "rev-parse", "--abbrev-ref", "HEAD"),
            "feature-x-samples",
        )
        self.assertEqual(
            set(report.phases),
            {kind.value for kind in OperationKind},
        )

    def test_failed_fetch_is_a_warning_not_an_error(self) -> None:
        project = ProjectConfig(key="sdk", repo_url=str(self.primary_bare))
        paths = workspace_paths_for(project, "feature-x", self.src, self.workspaces)
        clone(self.primary_bare, paths.source_repo_path)
        git(paths.source_repo_path, "remote", "set-url", "origin", str(self.root / "gone.git"))

        report = setup_worktrees(project, paths, "feature/x")

        self.assertEqual(len(report.warnings), 1)
        self.assertIn(str(paths.source_repo_path), report.warnings[0])
        self.assertEqual(git(paths.source_path, "rev-parse", "--abbrev-ref", "HEAD"), "feature/x")

    def test_freshness_can_be_disabled(self) -> None:
        report = setup_worktrees(
            self.project,
            self._paths(),
            "feature/x",
            settings=Settings(ensure_freshness=False, sequential=True),
        )

        self.assertNotIn(OperationKind.FRESHEN.value, report.phases)
        self.assertEqual(len(report.bindings), 2)

    def test_validation_failure_stops_before_binding(self) -> None:
        with mock.patch.object(
            RepositoryStateManager, "validate", side_effect=ValidationError("corrupted")
        ), mock.patch.object(BranchBindingResolver, "bind") as bind:
            with self.assertRaises(ValidationError):
                setup_worktrees(self.project, self._paths(), "feature/x")

        bind.assert_not_called()
        self.assertFalse((self.workspaces / "sdk" / "feature-x").exists())

    def test_dry_run_creates_nothing(self) -> None:
        report = setup_worktrees(self.project, self._paths(), "feature/x", dry_run=True)

        self.assertEqual(len(report.bindings), 2)
        self.assertTrue(all(b.dry_run and b.state is None for b in report.bindings))
        self.assertNotIn(OperationKind.INTEGRITY.value, report.phases)
        self.assertFalse(self.src.exists())
        self.assertFalse(self.workspaces.exists())

    def test_rerun_is_idempotent_but_second_workspace_conflicts(self) -> None:
        setup_worktrees(self.project, self._paths(), "feature/x")

        again = setup_worktrees(self.project, self._paths(), "feature/x")

        self.assertTrue(all(b.state is BranchState.LOCAL_EXISTS for b in again.bindings))
        with self.assertRaises(BranchConflictError) as ctx:
            setup_worktrees(self.project, self._paths("other"), "feature/x")
        self.assertEqual(ctx.exception.branch, "feature/x")

    def test_workspace_name_can_be_reused_for_another_branch(self) -> None:
        paths = self._paths("shared")
        setup_worktrees(self.project, paths, "feature/a")

        report = setup_worktrees(self.project, paths, "feature/b")

        self.assertTrue(all(b.state is BranchState.NEW_BRANCH for b in report.bindings))
        self.assertEqual(git(paths.source_path, "rev-parse", "--abbrev-ref", "HEAD"), "feature/b")
        self.assertEqual(
            git(paths.destination_path, "rev-parse", "--abbrev-ref", "HEAD"),
            "feature-b-samples",
        )

    def test_hooks_run_per_binding_and_failures_become_warnings(self) -> None:
        seen = []

        def record(binding):
            seen.append(binding.role)

        def explode(binding):
            raise RuntimeError("hook broke")

        orchestrator = WorktreeOrchestrator(hooks=[record, explode])
        with self.assertLogs("workspace_worktrees.worktrees", level="WARNING"):
            report = orchestrator.setup_worktrees(self.project, self._paths(), "feature/x")

        self.assertEqual(seen, [RepoRole.PRIMARY, RepoRole.SAMPLE])
        self.assertEqual(len(report.warnings), 2)
        self.assertTrue(all("hook broke" in warning for warning in report.warnings))

    def test_invalid_branch_name_is_rejected_up_front(self) -> None:
        with self.assertRaises(ValidationError):
            setup_worktrees(self.project, self._paths(), "bad..branch")
        self.assertFalse(self.src.exists())


class TargetValidationTests(unittest.TestCase):
    def test_sample_repository_needs_destination_paths(self) -> None:
        project = ProjectConfig(key="sdk", repo_url="https://example.com/sdk.git", sample_repo_url="https://example.com/s.git")
        paths = WorkspacePaths(source_repo_path=Path("/src/sdk"), source_path=Path("/ws/sdk/x/sdk"))

        with self.assertRaises(ValidationError):
            setup_worktrees(project, paths, "feature/x", dry_run=True)


if __name__ == "__main__":
    unittest.main()
