"""Tests for cloning, validating and refreshing repositories."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from workspace_worktrees.binding import BranchBindingResolver
from workspace_worktrees.exceptions import CloneError, FreshnessWarning, IntegrityError, ValidationError
from workspace_worktrees.models import RepoRole, RepositoryRef
from workspace_worktrees.repository import RepositoryStateManager

from gitrepos import clone, git, init_repo, make_origin, requires_git


@requires_git
class RepositoryStateManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.bare, self.seed = make_origin(self.root)
        self.manager = RepositoryStateManager()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _ref(self, path: Path, url: str | None = None) -> RepositoryRef:
        return RepositoryRef(path, url or str(self.bare), RepoRole.PRIMARY)

    def test_clones_missing_repository_into_new_parents(self) -> None:
        target = self.root / "src" / "nested" / "sdk"

        cloned = self.manager.ensure_exists(self._ref(target))

        self.assertTrue(cloned)
        self.assertTrue((target / ".git").is_dir())
        self.assertEqual(git(target, "rev-parse", "--abbrev-ref", "HEAD"), "main")

    def test_existing_repository_is_left_alone(self) -> None:
        target = clone(self.bare, self.root / "sdk")

        cloned = self.manager.ensure_exists(self._ref(target, "https://github.com/acme/other.git"))

        self.assertFalse(cloned)

    def test_unreachable_remote_leaves_nothing_behind(self) -> None:
        target = self.root / "src" / "missing"

        with self.assertRaises(CloneError) as ctx:
            self.manager.ensure_exists(self._ref(target, str(self.root / "does-not-exist.git")))

        self.assertEqual(ctx.exception.path, target)
        self.assertFalse(target.exists())
        with self.assertRaises(ValidationError):
            self.manager.validate(self._ref(target))

    def test_disallowed_url_is_rejected_before_cloning(self) -> None:
        target = self.root / "src" / "evil"

        with self.assertRaises(CloneError) as ctx:
            self.manager.ensure_exists(self._ref(target, "ext::sh -c touch% /tmp/pwned"))

        self.assertIn("scheme", ctx.exception.reason)
        self.assertFalse(target.exists())

    def test_validate_rejects_missing_path_and_plain_directory(self) -> None:
        with self.assertRaises(ValidationError):
            self.manager.validate(self._ref(self.root / "nowhere"))
        plain = self.root / "plain"
        plain.mkdir()
        with self.assertRaises(ValidationError):
            self.manager.validate(self._ref(plain))

    def test_missing_origin_is_only_a_warning(self) -> None:
        local = init_repo(self.root / "local-only")

        with self.assertLogs("workspace_worktrees.repository", level="WARNING") as logs:
            self.manager.validate(self._ref(local))

        self.assertIn("no 'origin' remote", "\n".join(logs.output))

    def test_freshen_failure_returns_warning_and_keeps_local_refs(self) -> None:
        repo = clone(self.bare, self.root / "sdk")
        before = git(repo, "rev-parse", "refs/remotes/origin/main")
        git(repo, "remote", "set-url", "origin", str(self.root / "gone.git"))

        with self.assertLogs("workspace_worktrees.repository", level="WARNING"):
            warning = self.manager.freshen(self._ref(repo))

        self.assertIsInstance(warning, FreshnessWarning)
        self.assertEqual(warning.repo_path, repo)
        self.assertEqual(git(repo, "rev-parse", "refs/remotes/origin/main"), before)

    def test_freshen_only_moves_remote_tracking_refs(self) -> None:
        repo = clone(self.bare, self.root / "sdk")
        local_before = git(repo, "rev-parse", "refs/heads/main")
        seed = self.seed
        (seed / "more.txt").write_text("more")
        git(seed, "add", "more.txt")
        git(seed, "commit", "-q", "-m", "more")
        git(seed, "push", "-q", "origin", "main")

        self.assertIsNone(self.manager.freshen(self._ref(repo)))

        self.assertEqual(git(repo, "rev-parse", "refs/heads/main"), local_before)
        self.assertEqual(git(repo, "rev-parse", "refs/remotes/origin/main"), git(seed, "rev-parse", "HEAD"))

    def test_discover_default_branch(self) -> None:
        repo = clone(self.bare, self.root / "sdk")
        self.assertEqual(self.manager.discover_default_branch(self._ref(repo)), "main")
        legacy = init_repo(self.root / "legacy", branch="master")
        self.assertEqual(self.manager.discover_default_branch(self._ref(legacy)), "master")
        odd = init_repo(self.root / "odd", branch="trunk")
        self.assertEqual(self.manager.discover_default_branch(self._ref(odd)), "main")

    def test_integrity_of_bound_worktree(self) -> None:
        repo = clone(self.bare, self.root / "sdk")
        outcome = BranchBindingResolver().bind(repo, self.root / "ws" / "sdk", "feature/x", "main")

        self.manager.check_integrity(self._ref(repo), outcome)

        git(outcome.worktree_path, "checkout", "-q", "--detach")
        with self.assertRaises(IntegrityError):
            self.manager.check_integrity(self._ref(repo), outcome)

    def test_integrity_of_broken_repository(self) -> None:
        repo = clone(self.bare, self.root / "sdk")
        (repo / ".git" / "HEAD").write_text("garbage\n")

        with self.assertRaises(IntegrityError):
            self.manager.check_integrity(self._ref(repo))


class DryRunTests(unittest.TestCase):
    def test_dry_run_touches_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "src" / "sdk"
            ref = RepositoryRef(target, "https://github.com/acme/sdk.git", RepoRole.PRIMARY)
            manager = RepositoryStateManager(dry_run=True)

            self.assertFalse(manager.ensure_exists(ref))
            manager.validate(ref)
            self.assertIsNone(manager.freshen(ref))
            self.assertEqual(manager.discover_default_branch(ref), "main")
            manager.check_integrity(ref)

            self.assertFalse((Path(tmp) / "src").exists())


if __name__ == "__main__":
    unittest.main()
