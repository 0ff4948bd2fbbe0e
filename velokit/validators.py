"""Input and environment validation.

Everything here runs before the first filesystem effect of a build.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

PROJECT_NAME_PATTERN = re.compile(r"[a-z0-9\-_]+")
MAX_PROJECT_NAME_LENGTH = 214

MIN_PYTHON: tuple[int, int] = (3, 10)


@dataclass(frozen=True)
class DirectoryCheck:
    exists: bool
    empty: bool
    path: Path


@dataclass(frozen=True)
class RuntimeCheck:
    valid: bool
    current: str
    required: str


def validate_project_name(name: str) -> Optional[str]:
    """Return an error message for an invalid project name, or ``None``.

    Valid names are non-empty, at most 214 characters, and contain only
    lowercase letters, digits, hyphens and underscores (npm package rules).
    """
    if not name or not name.strip():
        return "Project name cannot be empty"
    if len(name) > MAX_PROJECT_NAME_LENGTH:
        return f"Project name must be at most {MAX_PROJECT_NAME_LENGTH} characters"
    if not PROJECT_NAME_PATTERN.fullmatch(name):
        return "Project name can only contain lowercase letters, numbers, hyphens, and underscores"
    return None


def check_directory_exists(name: str, parent: str | Path | None = None) -> DirectoryCheck:
    """Report whether ``<parent>/<name>`` exists and whether it is empty."""
    path = (Path(parent) if parent is not None else Path.cwd()) / name
    if not path.exists():
        return DirectoryCheck(exists=False, empty=True, path=path)
    empty = path.is_dir() and not any(path.iterdir())
    return DirectoryCheck(exists=True, empty=empty, path=path)


def validate_runtime() -> RuntimeCheck:
    """Check that the running interpreter is recent enough."""
    current = ".".join(str(part) for part in sys.version_info[:3])
    return RuntimeCheck(
        valid=sys.version_info[:2] >= MIN_PYTHON,
        current=current,
        required=">=" + ".".join(str(part) for part in MIN_PYTHON),
    )
