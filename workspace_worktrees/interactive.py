"""Branch prompts for `setup` when no branch is passed on the command line."""

from __future__ import annotations

import sys
from typing import Any, Iterable, Sequence

from InquirerPy import inquirer
from InquirerPy.base.control import Choice

from .exceptions import ValidationError
from .validation import validate_branch_name

NEW_BRANCH_CHOICE = "__new__"


def _ensure_tty() -> None:
    if not sys.stdin.isatty():
        raise ValidationError(
            "Interactive mode requires a TTY. Pass the branch name to run non-interactively."
        )


def fuzzy_select(message: str, choices: Sequence[Choice | str]) -> Any:
    _ensure_tty()
    return inquirer.fuzzy(message=message, choices=choices).execute()


def text_input(message: str, default: str | None = None) -> str:
    _ensure_tty()
    return inquirer.text(
        message=message,
        default=default or "",
        validate=_is_valid_branch,
        invalid_message="Use letters, digits, '.', '_', '-' and '/' only.",
    ).execute().strip()


def build_choices(branches: Iterable[str], *, highlight: Sequence[str] | None = None) -> list[Choice]:
    """Branch choices with ``highlight`` first, followed by a create-new entry."""

    highlight = highlight or []
    result: list[Choice] = []
    seen: set[str] = set()
    for branch in list(highlight) + list(branches):
        if not branch or branch in seen:
            continue
        seen.add(branch)
        result.append(Choice(value=branch, name=branch))
    result.append(Choice(value=NEW_BRANCH_CHOICE, name="Create new branch…"))
    return result


def select_branch(branches: Sequence[str], *, current: str | None = None) -> str:
    """Pick one of ``branches`` or type a new name when there is nothing to pick."""

    if not branches:
        return text_input("Branch name")
    selection = fuzzy_select("Select branch", build_choices(branches, highlight=[current] if current else None))
    if selection == NEW_BRANCH_CHOICE:
        return text_input("New branch name")
    return str(selection)


def _is_valid_branch(value: str) -> bool:
    try:
        validate_branch_name(value)
    except ValidationError:
        return False
    return True
