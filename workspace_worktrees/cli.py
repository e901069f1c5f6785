"""Typer-based CLI for workspace-worktrees."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import git
from .config import load_settings, repository_name, resolve_env_paths, workspace_paths_for
from .exceptions import WorkspaceError
from .fs import slugify_branch
from .interactive import select_branch
from .models import ProjectConfig, SetupReport
from .repository import has_git_metadata
from .worktrees import setup_worktrees

app = typer.Typer(help="Provision branch-scoped workspaces from git worktrees")
console = Console()


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, show_time=verbose)],
        force=True,
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every git command and phase timing."),
) -> None:
    configure_logging(verbose)


@app.command(help="Create (or recreate) the worktrees of a workspace for a branch")
def setup(
    branch: str | None = typer.Argument(None, help="Branch to bind. Prompted for when omitted."),
    repo: str = typer.Option(..., "--repo", help="URL of the primary repository."),
    sample_repo: str | None = typer.Option(None, "--sample-repo", help="URL of the linked sample repository."),
    project: str | None = typer.Option(None, "--project", help="Project key. Defaults to the repository name."),
    name: str | None = typer.Option(None, "--name", help="Workspace directory name. Defaults to the branch slug."),
    src_dir: Path | None = typer.Option(
        None,
        "--src-dir",
        help="Directory holding repository clones (default: $WORKSPACE_SRC_DIR).",
        file_okay=False,
    ),
    workspace_root: Path | None = typer.Option(
        None,
        "--workspace-root",
        help="Directory under which workspaces are created (default: $WORKSPACE_ROOT).",
        file_okay=False,
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log intended actions without touching disk or network."),
    max_concurrency: int | None = typer.Option(
        None,
        "--max-concurrency",
        min=1,
        help="Parallel git operations (default: $WORKSPACE_MAX_CONCURRENCY or 4).",
    ),
) -> None:
    try:
        settings = load_settings()
        if max_concurrency is not None:
            settings = replace(settings, max_concurrency=max_concurrency)
        project_config = ProjectConfig(
            key=project or repository_name(repo),
            repo_url=repo,
            sample_repo_url=sample_repo,
        )
        src, root = resolve_env_paths(src_dir, workspace_root)
        if branch is None:
            branch = _prompt_branch(src / repository_name(repo))
        paths = workspace_paths_for(project_config, name or slugify_branch(branch), src, root)
        report = setup_worktrees(project_config, paths, branch, dry_run, settings=settings)
    except WorkspaceError as err:
        _fail(str(err))
    _print_report(report)


@app.command(help="List the worktrees registered in a repository")
def ls(
    repo: Path = typer.Argument(Path("."), help="Repository whose worktrees should be listed.", file_okay=False),
    as_json: bool = typer.Option(False, "--json", help="Output JSON for scripting."),
) -> None:
    try:
        records = git.worktree_list(repo.expanduser())
    except WorkspaceError as err:
        _fail(str(err))
    if as_json:
        data = [
            {
                "path": str(record.path),
                "branch": record.branch,
                "head": record.head,
                "status": record.status,
            }
            for record in records
        ]
        typer.echo(json.dumps(data, indent=2))
        return
    if not records:
        console.print("No worktrees found.")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Branch")
    table.add_column("Status")
    table.add_column("Path")
    for record in records:
        table.add_row(record.branch or "(detached)", record.status, str(record.path))
    console.print(table)


def _prompt_branch(repo_path: Path) -> str:
    if not has_git_metadata(repo_path):
        return select_branch([])
    return select_branch(
        git.list_branches(repo_path, include_remote=False),
        current=git.current_branch(repo_path),
    )


def _print_report(report: SetupReport) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Repository")
    table.add_column("Branch")
    table.add_column("State")
    table.add_column("Worktree")
    for binding in report.bindings:
        state = binding.state.value if binding.state else "dry run"
        if binding.forced:
            state = f"{state} (forced)"
        table.add_row(binding.role.value, binding.branch, state, str(binding.worktree_path))
    console.print(table)
    for warning in report.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")


def _fail(message: str, code: int = 1) -> None:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code)


if __name__ == "__main__":
    app()
