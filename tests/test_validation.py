"""Tests for URL, branch and path validation."""

from __future__ import annotations

import unittest
from pathlib import Path

from workspace_worktrees.exceptions import ValidationError
from workspace_worktrees.validation import (
    validate_branch_name,
    validate_local_path,
    validate_remote_url,
)


class RemoteUrlTests(unittest.TestCase):
    def test_accepts_allow_listed_forms(self) -> None:
        for url in (
            "https://github.com/acme/sdk.git",
            "ssh://git@github.com/acme/sdk.git",
            "git://example.org/acme/sdk.git",
            "file:///srv/git/sdk.git",
            "git@github.com:acme/sdk.git",
            "/srv/git/sdk.git",
        ):
            with self.subTest(url=url):
                self.assertEqual(validate_remote_url(f"  {url} "), url)

    def test_rejects_everything_else(self) -> None:
        for url in (
            "",
            "ext::sh -c touch% /tmp/pwned",
            "http://github.com/acme/sdk.git",
            "ftp://example.org/sdk.git",
            "--upload-pack=touch /tmp/pwned",
            "https://github.com/acme/../sdk.git",
            "https://github.com/acme/sdk\n.git",
            "relative/path/sdk",
            "https:///no-host",
        ):
            with self.subTest(url=url):
                with self.assertRaises(ValidationError):
                    validate_remote_url(url)


class BranchNameTests(unittest.TestCase):
    def test_accepts_common_names(self) -> None:
        for name in ("main", "feature/x", "fix/ISSUE-123_login", "release/1.2.3"):
            with self.subTest(name=name):
                self.assertEqual(validate_branch_name(name), name)

    def test_rejects_unsafe_names(self) -> None:
        for name in (
            "",
            "   ",
            "-b",
            ".hidden",
            "/leading",
            "trailing/",
            "feature..x",
            "feature//x",
            "topic.lock",
            "has space",
            "semi;colon",
            "$(whoami)",
            "x" * 101,
        ):
            with self.subTest(name=name):
                with self.assertRaises(ValidationError):
                    validate_branch_name(name)


class LocalPathTests(unittest.TestCase):
    def test_requires_absolute_paths(self) -> None:
        self.assertEqual(validate_local_path("/srv/repos"), Path("/srv/repos"))
        with self.assertRaises(ValidationError):
            validate_local_path("repos/sdk")
        with self.assertRaises(ValidationError):
            validate_local_path("/srv/\x07repos")


if __name__ == "__main__":
    unittest.main()
