"""Input checks applied before anything reaches a git command line."""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import urlparse

from .exceptions import ValidationError

ALLOWED_SCHEMES = ("https", "ssh", "git", "file")
MAX_BRANCH_LENGTH = 100

_SCP_LIKE = re.compile(r"^[A-Za-z0-9._-]+@[A-Za-z0-9.-]+:[A-Za-z0-9._~/-]+$")
_BRANCH_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")


def _has_control_characters(value: str) -> bool:
    return any(ord(char) < 32 or 127 <= ord(char) <= 159 for char in value)


def validate_remote_url(url: str) -> str:
    """Return the trimmed URL, or raise if its scheme is not allow-listed."""

    trimmed = (url or "").strip()
    if not trimmed:
        raise ValidationError("Repository URL is required.")
    if _has_control_characters(trimmed):
        raise ValidationError(f"Repository URL contains control characters: {trimmed!r}")
    if trimmed.startswith("-"):
        raise ValidationError(f"Repository URL cannot start with '-': {trimmed}")
    if ".." in trimmed.split("/"):
        raise ValidationError(f"Repository URL contains '..' segments: {trimmed}")
    if trimmed.startswith("/"):
        return validate_local_path(trimmed).as_posix()
    if _SCP_LIKE.match(trimmed):
        return trimmed
    parsed = urlparse(trimmed)
    if parsed.scheme not in ALLOWED_SCHEMES:
        allowed = ", ".join(f"{scheme}://" for scheme in ALLOWED_SCHEMES)
        raise ValidationError(
            f"Unsupported repository URL scheme in {trimmed}. Allowed: {allowed}, user@host:path or an absolute path."
        )
    if parsed.scheme == "file":
        if not parsed.path:
            raise ValidationError(f"file:// URL has no path: {trimmed}")
    elif not parsed.hostname:
        raise ValidationError(f"Repository URL has no host: {trimmed}")
    return trimmed


def validate_branch_name(name: str) -> str:
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValidationError("Branch name is required.")
    if len(trimmed) > MAX_BRANCH_LENGTH:
        raise ValidationError(f"Branch name too long (max {MAX_BRANCH_LENGTH} characters): {trimmed}")
    if not _BRANCH_PATTERN.match(trimmed):
        raise ValidationError(
            f"Branch name may only contain letters, digits, '.', '_', '-' and '/': {trimmed}"
        )
    if trimmed[0] in "-./" or trimmed.endswith("/") or trimmed.endswith(".lock"):
        raise ValidationError(f"Branch name has an invalid start or end: {trimmed}")
    if ".." in trimmed or "//" in trimmed:
        raise ValidationError(f"Branch name contains '..' or '//': {trimmed}")
    return trimmed


def validate_local_path(value: str | Path) -> Path:
    raw = str(value).strip()
    if not raw:
        raise ValidationError("Path is required.")
    if _has_control_characters(raw):
        raise ValidationError(f"Path contains control characters: {raw!r}")
    path = Path(raw).expanduser()
    if not path.is_absolute():
        raise ValidationError(f"Path must be absolute: {raw}")
    return path
