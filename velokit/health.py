"""Project analytics and health checks for generated projects."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from rich.table import Table

from .utils import console, load_json, print_box, print_warning

SOURCE_SUFFIXES: tuple[str, ...] = (".ts", ".js")
SKIPPED_DIRS: tuple[str, ...] = ("node_modules", "dist")

STRUCTURE_CHECKS: tuple[tuple[str, str], ...] = (
    ("package.json", "package.json"),
    (".env file", ".env"),
    ("src directory", "src"),
    ("node_modules", "node_modules"),
)

MAX_SCORE = 100


class ProjectAnalytics(BaseModel):
    project_name: str
    project_type: Optional[str] = None
    language: Optional[str] = None
    file_count: int = 0
    total_lines: int = 0
    command_count: int = 0
    event_count: int = 0
    dependencies: int = 0
    dev_dependencies: int = 0
    last_modified: datetime = Field(default_factory=datetime.now)


class HealthCheck(BaseModel):
    name: str
    path: str
    ok: bool


class HealthReport(BaseModel):
    """Structural checks, warnings and a quality score for one project."""

    project_dir: Path
    checks: list[HealthCheck] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    score: int = 0
    recommendations: list[str] = Field(default_factory=list)
    analytics: ProjectAnalytics


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


def _count_files_and_lines(directory: Path) -> tuple[int, int]:
    file_count = 0
    total_lines = 0
    for entry in sorted(directory.iterdir()):
        if entry.is_dir():
            if entry.name not in SKIPPED_DIRS:
                files, lines = _count_files_and_lines(entry)
                file_count += files
                total_lines += lines
        elif entry.is_file() and entry.suffix in SOURCE_SUFFIXES:
            file_count += 1
            total_lines += len(entry.read_text(encoding="utf-8", errors="replace").split("\n"))
    return file_count, total_lines


def _analyze(project_dir: Path) -> ProjectAnalytics:
    analytics = ProjectAnalytics(project_name=project_dir.resolve().name)

    manifest_path = project_dir / "package.json"
    if manifest_path.is_file():
        try:
            manifest = load_json(manifest_path)
        except json.JSONDecodeError:
            manifest = {}
        analytics.dependencies = len(manifest.get("dependencies") or {})
        analytics.dev_dependencies = len(manifest.get("devDependencies") or {})

    src = project_dir / "src"
    if src.is_dir():
        commands = src / "commands"
        events = src / "events"
        if commands.is_dir():
            analytics.project_type = "discord"
            analytics.command_count = len(list(commands.iterdir()))
        if events.is_dir():
            analytics.event_count = len(list(events.iterdir()))

        names = [entry.name for entry in src.iterdir()]
        if any(name.endswith(".ts") for name in names):
            analytics.language = "TypeScript"
        elif any(name.endswith(".js") for name in names):
            analytics.language = "JavaScript"

        analytics.file_count, analytics.total_lines = _count_files_and_lines(src)

    return analytics


async def analyze_project(project_dir: str | Path) -> ProjectAnalytics:
    """Collect file, line, command and dependency counts for *project_dir*."""
    return await asyncio.to_thread(_analyze, Path(project_dir))


def score_project(analytics: ProjectAnalytics, has_env: bool, has_git: bool, has_readme: bool) -> int:
    score = 0
    if analytics.file_count > 0:
        score += 20
    if analytics.total_lines > 100:
        score += 20
    if analytics.dependencies > 0:
        score += 15
    if analytics.command_count > 0:
        score += 15
    if analytics.event_count > 0:
        score += 15
    score += 5 * sum((has_env, has_git, has_readme))
    return score


def _recommendations(analytics: ProjectAnalytics, has_env: bool, has_git: bool, has_readme: bool) -> list[str]:
    recommendations: list[str] = []
    if not has_env:
        recommendations.append("Create .env file for environment variables")
    if not has_git:
        recommendations.append("Initialize Git repository")
    if not has_readme:
        recommendations.append("Add README.md documentation")
    if analytics.file_count < 5:
        recommendations.append("Consider adding more structure to your project")
    if analytics.dependencies == 0:
        recommendations.append("Install required dependencies")
    return recommendations


async def check_project_health(project_dir: str | Path) -> HealthReport:
    """Run structural checks and score the project at *project_dir*."""
    root = Path(project_dir)
    checks = [
        HealthCheck(name=name, path=relative, ok=(root / relative).exists())
        for name, relative in STRUCTURE_CHECKS
    ]

    warnings: list[str] = []
    env_path = root / ".env"
    if env_path.is_file():
        env_content = await asyncio.to_thread(env_path.read_text, encoding="utf-8")
        if "TOKEN" not in env_content:
            warnings.append("No DISCORD_TOKEN found in .env")
    if not (root / "node_modules").exists():
        warnings.append("Dependencies not installed. Run npm/pnpm/yarn install")

    analytics = await analyze_project(root)
    has_env = env_path.exists()
    has_git = (root / ".git").exists()
    has_readme = (root / "README.md").exists()

    return HealthReport(
        project_dir=root,
        checks=checks,
        warnings=warnings,
        score=score_project(analytics, has_env, has_git, has_readme),
        recommendations=_recommendations(analytics, has_env, has_git, has_readme),
        analytics=analytics,
    )


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def print_health_report(report: HealthReport) -> None:
    analytics = report.analytics
    lines = [
        f"Project:  {analytics.project_name}",
        f"Type:     {analytics.project_type or 'Unknown'}",
    ]
    if analytics.language:
        lines.append(f"Language: {analytics.language}")
    lines += [
        "",
        f"Files: {analytics.file_count}",
        f"Lines of Code: {analytics.total_lines}",
        f"Commands: {analytics.command_count}",
        f"Events: {analytics.event_count}",
        f"Dependencies: {analytics.dependencies} (dev: {analytics.dev_dependencies})",
    ]
    print_box("PROJECT HEALTH REPORT", lines)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Check")
    table.add_column("Status", justify="center")
    for check in report.checks:
        table.add_row(check.name, "[green]OK[/green]" if check.ok else "[red]MISSING[/red]")
    console.print(table)

    for warning in report.warnings:
        print_warning(f"  - {warning}")

    colour = "green" if report.score >= 80 else "yellow" if report.score >= 50 else "red"
    console.print(f"\n  [cyan]Health Score:[/cyan] [bold {colour}]{report.score}/{MAX_SCORE}[/bold {colour}]\n")

    if report.recommendations:
        console.print("[yellow]  Recommendations:[/yellow]")
        for recommendation in report.recommendations:
            console.print(f"[dim]    - {recommendation}[/dim]")
        console.print()
