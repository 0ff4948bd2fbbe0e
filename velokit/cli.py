"""Command-line entry point for VeloKit.

Usage::

    velokit                                  # interactive build
    velokit --quick my-bot                   # smart defaults, no questions
    velokit --config velokit.config.json     # build from a saved config
    velokit --dry-run                        # resolve and preview only
    velokit migrate ./my-bot --to 1.0.1
    velokit health ./my-bot
    velokit plugin create my-plugin
    velokit plugin list
    velokit git ./my-bot --remote git@github.com:me/my-bot.git
    velokit add-testing ./my-bot --framework vitest
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError
from rich.prompt import Confirm, Prompt
from rich.table import Table

from . import __version__
from .config import ConfigFileError, Settings, load_config_file, save_config_file
from .health import check_project_health, print_health_report
from .migration import migrate_project
from .models import ProjectType, ResolvedConfig, TestFramework
from .plugins import PluginManager, create_plugin_scaffold
from .prompts import Question, QuestionKind, next_questions, quick_defaults, resolve_answers, validate_answer
from .scaffolder.generator import BuildPlan, PostProcessError, ProjectGenerator
from .scaffolder.git_gen import GitOptions, initialize_git
from .scaffolder.materializer import MaterializationError
from .scaffolder.resolver import TemplateNotFoundError
from .scaffolder.testing_gen import detect_language, setup_test_framework
from .utils import (
    console,
    install_dependencies,
    print_box,
    print_error,
    print_info,
    print_section,
    print_success,
    print_summary_table,
    print_warning,
)
from .validators import check_directory_exists, validate_project_name, validate_runtime
from .version_check import check_for_updates, random_tip

COMMANDS = ("create", "migrate", "health", "plugin", "git", "add-testing")

Asker = Callable[[Question], Any]


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="velokit",
        description="VeloKit -- scaffold Discord bots and API services",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  velokit --quick my-bot\n"
            "  velokit --config velokit.config.json --skip-install\n"
            "  velokit health ./my-bot\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"velokit {__version__}")
    sub = parser.add_subparsers(dest="command")

    create = sub.add_parser("create", help="Create a new project (default command)")
    create.add_argument("--config", "-c", type=Path, help="Build from a saved config file")
    create.add_argument("--quick", "-q", metavar="NAME", help="Quick mode with smart defaults")
    create.add_argument("--type", choices=[t.value for t in ProjectType], help="Project type")
    create.add_argument("--dry-run", action="store_true", help="Preview without writing files")
    create.add_argument("--save-config", type=Path, metavar="PATH", help="Save the resolved config")
    create.add_argument("--skip-git", action="store_true", help="Skip git initialization")
    create.add_argument("--skip-install", action="store_true", help="Skip dependency installation")
    create.add_argument("--output", "-o", type=Path, default=Path("."), help="Parent directory")
    create.add_argument("--yes", "-y", action="store_true", help="Assume yes for confirmations")
    create.add_argument("--verbose", "-v", action="store_true", help="Show tracebacks on failure")

    migrate = sub.add_parser("migrate", help="Migrate a project to a newer VeloKit version")
    migrate.add_argument("directory", type=Path)
    migrate.add_argument("--to", dest="target", required=True, help="Target version")
    migrate.add_argument("--no-backup", action="store_true", help="Skip the project backup")

    health = sub.add_parser("health", help="Run a project health check")
    health.add_argument("directory", type=Path, nargs="?", default=Path("."))

    plugin = sub.add_parser("plugin", help="Manage plugins")
    plugin_sub = plugin.add_subparsers(dest="plugin_command", required=True)
    plugin_create = plugin_sub.add_parser("create", help="Create a plugin scaffold")
    plugin_create.add_argument("name")
    plugin_create.add_argument("--dir", type=Path, default=None, help="Plugins directory")
    plugin_sub.add_parser("list", help="List installed plugins")

    git = sub.add_parser("git", help="Initialize git in an existing project")
    git.add_argument("directory", type=Path, nargs="?", default=Path("."))
    git.add_argument("--remote", default=None, help="Remote origin URL")
    git.add_argument("--branch", default="main", help="Default branch name")

    testing = sub.add_parser("add-testing", help="Add a test framework to a project")
    testing.add_argument("directory", type=Path, nargs="?", default=Path("."))
    testing.add_argument(
        "--framework", required=True, choices=[TestFramework.JEST.value, TestFramework.VITEST.value]
    )

    return parser


def _normalise_argv(argv: list[str]) -> list[str]:
    """Route bare invocations and top-level create flags to ``create``."""
    if not argv or (argv[0] not in COMMANDS and argv[0] not in ("-h", "--help", "--version")):
        return ["create", *argv]
    return argv


# ---------------------------------------------------------------------------
# Interactive questions
# ---------------------------------------------------------------------------


def ask_question(question: Question) -> Any:
    """Put one question to the user with ``rich.prompt``."""
    while True:
        if question.kind is QuestionKind.CONFIRM:
            return Confirm.ask(question.message, default=bool(question.default), console=console)

        if question.kind is QuestionKind.SELECT:
            return Prompt.ask(
                question.message, choices=question.choices, default=question.default, console=console
            )

        if question.kind is QuestionKind.MULTISELECT:
            raw = Prompt.ask(
                f"{question.message} ({', '.join(question.choices)}; comma-separated, blank for none)",
                default="",
                show_default=False,
                console=console,
            )
            selected = [item.strip() for item in raw.split(",") if item.strip()]
            unknown = [item for item in selected if item not in question.choices]
            if unknown:
                print_error(f"Unknown choice(s): {', '.join(unknown)}")
                continue
            return list(dict.fromkeys(selected))

        value = Prompt.ask(
            question.message,
            default=question.default,
            password=question.kind is QuestionKind.PASSWORD,
            show_default=question.kind is not QuestionKind.PASSWORD,
            console=console,
        )
        error = validate_answer(question, value)
        if error:
            print_error(error)
            continue
        return value


def collect_answers(initial: Optional[dict[str, Any]] = None, ask: Asker = ask_question) -> dict[str, Any]:
    """Ask every stage's questions until the answers are complete."""
    answers: dict[str, Any] = dict(initial or {})
    while True:
        questions = next_questions(answers)
        if not questions:
            return answers
        print_section(questions[0].message.rstrip(":"))
        for question in questions:
            answers[question.name] = ask(question)


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


def resolve_config(args: argparse.Namespace, ask: Asker = ask_question) -> ResolvedConfig:
    """Build the ``ResolvedConfig`` from a config file, quick mode, or prompts.

    Raises:
        ConfigFileError: If the config file is missing or invalid.
        pydantic.ValidationError: If the choices describe an invalid build.
    """
    project_type = ProjectType(args.type) if args.type else ProjectType.DISCORD

    if args.config is not None:
        loaded = load_config_file(args.config)
        if loaded is None:
            raise ConfigFileError(args.config, "file not found")
        print_info(f"Loaded configuration from {args.config}")
        return ResolvedConfig.from_config_file(loaded, token=os.environ.get("DISCORD_TOKEN", ""))

    if args.quick:
        print_info("Quick mode: using smart defaults")
        return quick_defaults(args.quick, project_type)

    initial: dict[str, Any] = {"project_type": project_type.value} if args.type else {}
    return resolve_answers(collect_answers(initial, ask))


def config_summary(config: ResolvedConfig) -> dict[str, str]:
    summary = {
        "Name": config.project_name,
        "Type": config.project_type.value,
        "Package manager": config.package_manager.value,
    }
    if config.is_discord:
        summary["Language"] = config.language.value
        summary["Soul"] = config.focus.value.upper()
        summary["Modules"] = ", ".join(e.value for e in config.extra_modules) or "None"
        summary["DB"] = config.infrastructure.database.value
        summary["Web bridge"] = "yes" if config.infrastructure.web_bridge else "no"
    summary["Docker"] = "yes" if config.infrastructure.docker else "no"
    summary["Testing"] = config.test_framework.value
    summary["CI/CD"] = config.cicd.value
    return summary


def print_plan(plan: BuildPlan) -> None:
    print_summary_table(
        {
            "Destination": str(plan.destination),
            "Overlays": "\n".join(str(o) for o in plan.overlays),
            "Missing modules": ", ".join(plan.missing_modules) or "None",
            "Removals": ", ".join(plan.removals) or "None",
            "Post-processors": ", ".join(plan.post_processors),
        },
        title="Dry run",
    )
    table = Table(title="Substitutions", show_header=True, header_style="bold cyan")
    table.add_column("Key", style="dim", no_wrap=True)
    table.add_column("Value")
    for key, value in plan.variables.items():
        table.add_row(key, repr(value))
    console.print(table)


async def _confirm(message: str, default: bool) -> bool:
    """Ask a yes/no question off the event loop so background tasks keep running."""
    return await asyncio.to_thread(Confirm.ask, message, default=default, console=console)


async def run_create(args: argparse.Namespace, settings: Settings, ask: Asker = ask_question) -> int:
    runtime = validate_runtime()
    if not runtime.valid:
        print_error(f"Python {runtime.required} is required (found {runtime.current})")
        return 1

    update_task = asyncio.create_task(check_for_updates(__version__, settings))
    try:
        return await _create(args, settings, ask)
    finally:
        if not update_task.done():
            update_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await update_task


async def _create(args: argparse.Namespace, settings: Settings, ask: Asker) -> int:
    plugins = PluginManager(settings.plugins_dir)
    await plugins.load_plugins()

    try:
        config = await asyncio.to_thread(resolve_config, args, ask)
        if args.save_config is not None:
            path = save_config_file(config.to_config_file(), args.save_config)
            print_success(f"Configuration saved to {path}")
    except ConfigFileError as exc:
        print_error(str(exc))
        return 1
    except ValidationError as exc:
        print_error(f"Invalid configuration:\n{exc}")
        return 1

    print_summary_table(config_summary(config), title="Forge configuration")
    generator = ProjectGenerator(config, settings=settings, plugins=plugins)

    try:
        if args.dry_run:
            print_plan(await generator.plan(args.output))
            print_info("Dry run: no files were written")
            return 0

        check = check_directory_exists(config.project_name, args.output)
        if check.exists and not check.empty and not args.yes:
            if not await _confirm(f"Directory {check.path} is not empty. Overwrite?", default=False):
                print_info("Cancelled")
                return 0

        if not args.yes and not await _confirm("Begin the forge?", default=True):
            print_info("Cancelled")
            return 0

        with console.status("[cyan]Forging VeloKit architecture..."):
            result = await generator.generate(args.output)
    except (TemplateNotFoundError, MaterializationError, PostProcessError) as exc:
        print_error(f"Forge failed: {exc}")
        if args.verbose:
            console.print_exception()
        return 1

    print_success("VeloKit project forged successfully!")
    if not result.env_validation.valid:
        print_warning(f"Fill in required .env keys: {', '.join(result.env_validation.missing_keys)}")

    if not args.skip_install:
        await install_dependencies(result.destination, config.package_manager.value, settings.install_timeout)
    if not args.skip_git:
        await initialize_git(result.destination, GitOptions())

    print_box(
        "CONSTRUCTION COMPLETE",
        [
            f"Path:    {result.destination}",
            f"Command: cd {config.project_name} && {config.package_manager.value} run dev",
        ],
    )
    console.print(f"[italic magenta]{random_tip()}[/italic magenta]")
    return 0


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


async def run_migrate(args: argparse.Namespace) -> int:
    if not args.directory.is_dir():
        print_error(f"Directory not found: {args.directory}")
        return 1
    ok = await migrate_project(args.directory, args.target, backup=not args.no_backup)
    return 0 if ok else 1


async def run_health(args: argparse.Namespace) -> int:
    if not args.directory.is_dir():
        print_error(f"Directory not found: {args.directory}")
        return 1
    print_health_report(await check_project_health(args.directory))
    return 0


async def run_plugin(args: argparse.Namespace, settings: Settings) -> int:
    if args.plugin_command == "create":
        error = validate_project_name(args.name)
        if error:
            print_error(error)
            return 1
        plugin_dir = await create_plugin_scaffold(args.name, args.dir or settings.plugins_dir)
        print_success(f"Plugin created: {plugin_dir}")
        return 0

    manager = PluginManager(settings.plugins_dir)
    await manager.load_plugins()
    if not manager.plugins:
        print_info(f"No plugins installed in {settings.plugins_dir}")
        return 0

    table = Table(title="Installed plugins", show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Description")
    for plugin in manager.plugins:
        table.add_row(plugin.name, plugin.version, plugin.description)
    console.print(table)
    return 0


async def run_git(args: argparse.Namespace) -> int:
    if not args.directory.is_dir():
        print_error(f"Directory not found: {args.directory}")
        return 1
    ok = await initialize_git(args.directory, GitOptions(branch=args.branch, remote_url=args.remote))
    return 0 if ok else 1


async def run_add_testing(args: argparse.Namespace) -> int:
    if not args.directory.is_dir():
        print_error(f"Directory not found: {args.directory}")
        return 1
    framework = TestFramework(args.framework)
    try:
        await setup_test_framework(args.directory, framework, detect_language(args.directory))
    except json.JSONDecodeError as exc:
        print_error(f"package.json is not valid JSON: {exc}")
        return 1
    return 0


async def dispatch(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "migrate":
        return await run_migrate(args)
    if args.command == "health":
        return await run_health(args)
    if args.command == "plugin":
        return await run_plugin(args, settings)
    if args.command == "git":
        return await run_git(args)
    if args.command == "add-testing":
        return await run_add_testing(args)
    return await run_create(args, settings)


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point for ``velokit`` and ``python -m velokit``."""
    parser = build_parser()
    args = parser.parse_args(_normalise_argv(list(sys.argv[1:] if argv is None else argv)))
    settings = Settings.from_env()

    try:
        return asyncio.run(dispatch(args, settings))
    except KeyboardInterrupt:
        print_warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
