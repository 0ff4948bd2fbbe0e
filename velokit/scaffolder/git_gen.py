"""Git configuration files and optional repository initialisation.

``setup_git_files`` writes ``.gitignore`` (a common block plus sections
gated on project type, language and docker) and a fixed ``.gitattributes``.
``initialize_git`` shells out to ``git``; a missing binary or a failing step
is reported as a warning and never raised.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..models import Language, ProjectType, ResolvedConfig
from ..utils import print_info, print_success, print_warning, run_command, write_text
from .templates import TemplateRenderer

DEFAULT_INITIAL_COMMIT = "Initial commit from VeloKit"


@dataclass(frozen=True)
class GitOptions:
    branch: Optional[str] = "main"
    remote_url: Optional[str] = None
    initial_commit: Optional[str] = DEFAULT_INITIAL_COMMIT


def generate_gitignore(
    project_type: ProjectType,
    language: Optional[Language] = None,
    docker: bool = False,
    renderer: Optional[TemplateRenderer] = None,
) -> str:
    """Return ``.gitignore`` content for the given project shape."""
    renderer = renderer or TemplateRenderer()
    return renderer.render(
        "git/gitignore.j2",
        {
            "project_type": project_type.value,
            "language": language.value if language else None,
            "docker": docker,
        },
    )


def generate_gitattributes(renderer: Optional[TemplateRenderer] = None) -> str:
    """Return the fixed line-ending / binary attributes manifest."""
    renderer = renderer or TemplateRenderer()
    return renderer.render("git/gitattributes.j2", {})


async def setup_git_files(
    config: ResolvedConfig,
    dest: str | Path,
    renderer: Optional[TemplateRenderer] = None,
) -> list[Path]:
    """Write ``.gitignore`` and ``.gitattributes`` into *dest*."""
    renderer = renderer or TemplateRenderer()
    root = Path(dest)
    gitignore = generate_gitignore(
        config.project_type, config.language, config.infrastructure.docker, renderer
    )
    written = [
        await asyncio.to_thread(write_text, root / ".gitignore", gitignore),
        await asyncio.to_thread(
            write_text, root / ".gitattributes", generate_gitattributes(renderer)
        ),
    ]
    print_info("Git configuration files created")
    return written


async def initialize_git(dest: str | Path, options: Optional[GitOptions] = None) -> bool:
    """Initialise a repository in *dest*, optionally with branch, remote and commit.

    Returns:
        ``True`` if the repository exists when this returns (including when
        it was already initialised), ``False`` if git is unavailable or a
        step failed.
    """
    options = options or GitOptions()
    root = Path(dest)

    try:
        code, _, _ = await run_command(["git", "--version"])
    except OSError:
        code = -1
    if code != 0:
        print_warning("Git is not installed. Skipping git initialization.")
        return False

    if (root / ".git").exists():
        print_info("Git repository already initialized")
        return True

    steps: list[tuple[str, list[str]]] = [("init", ["git", "init"])]
    if options.branch:
        steps.append(("set default branch", ["git", "branch", "-M", options.branch]))
    if options.remote_url:
        steps.append(("add remote", ["git", "remote", "add", "origin", options.remote_url]))
    if options.initial_commit:
        steps.append(("stage files", ["git", "add", "."]))
        steps.append(("initial commit", ["git", "commit", "-m", options.initial_commit]))

    for label, cmd in steps:
        code, _, stderr = await run_command(cmd, cwd=root)
        if code != 0:
            print_warning(f"Git {label} failed: {stderr or f'exit code {code}'}")
            return False

    if options.remote_url:
        print_info(f"Remote added: {options.remote_url}")
    print_success("Git repository initialized")
    return True
