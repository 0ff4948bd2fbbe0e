"""Project version detection and migration.

Generated projects record the VeloKit version that produced them in
``.velokit.json`` (older projects may carry it under ``package.json``'s
``velokit`` key).  Migrations form a simple chain keyed by their ``from``
version; ``find_migration_path`` walks it until the target is reached.
"""

from __future__ import annotations

import asyncio
import json
import shutil
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .config import Settings
from .utils import load_json, print_box, print_error, print_info, print_success, print_warning, save_json

BUILD_CONFIG_FILE = Settings().build_config_name
DEFAULT_SOURCE_VERSION = "1.0.0"
BACKUP_EXCLUDES: tuple[str, ...] = ("node_modules", "dist")


class MigrationError(Exception):
    """Raised by a migration step that cannot be applied."""


@dataclass
class MigrationContext:
    project_dir: Path
    current_version: str
    target_version: str
    backup_dir: Optional[Path] = None


@dataclass(frozen=True)
class Migration:
    from_version: str
    to_version: str
    description: str
    apply: Callable[[MigrationContext], Awaitable[None]]


# ---------------------------------------------------------------------------
# Registered migrations
# ---------------------------------------------------------------------------


def _infer_project_type(project_dir: Path) -> str:
    manifest_path = project_dir / "package.json"
    if manifest_path.is_file():
        dependencies = load_json(manifest_path).get("dependencies", {})
        if "discord.js" in dependencies:
            return "discord"
        return "api"
    return "discord"


async def _record_project_type(context: MigrationContext) -> None:
    """1.0.0 -> 1.0.1: store ``projectType`` for multi-project support."""
    config_path = context.project_dir / BUILD_CONFIG_FILE
    data: dict[str, Any] = {}
    if config_path.is_file():
        data = await asyncio.to_thread(load_json, config_path)

    if "projectType" not in data:
        recorded = data.get("config", {}).get("project", {}).get("type")
        data["projectType"] = recorded or await asyncio.to_thread(
            _infer_project_type, context.project_dir
        )
        await save_json(data, config_path)
    print_info(f"Project type recorded: {data['projectType']}")


MIGRATIONS: list[Migration] = [
    Migration(
        from_version="1.0.0",
        to_version="1.0.1",
        description="Update to multi-project support",
        apply=_record_project_type,
    ),
]


# ---------------------------------------------------------------------------
# Version metadata
# ---------------------------------------------------------------------------


def detect_project_version(project_dir: str | Path) -> Optional[str]:
    """Return the VeloKit version recorded in *project_dir*, if any."""
    root = Path(project_dir)
    try:
        config_path = root / BUILD_CONFIG_FILE
        if config_path.is_file():
            return load_json(config_path).get("version") or None

        manifest_path = root / "package.json"
        if manifest_path.is_file():
            velokit = load_json(manifest_path).get("velokit") or {}
            return velokit.get("version") or None
    except (OSError, json.JSONDecodeError, AttributeError):
        return None
    return None


async def update_project_version(
    project_dir: str | Path, version: str, now: Optional[datetime] = None
) -> Path:
    """Write *version* and the migration timestamp into ``.velokit.json``."""
    config_path = Path(project_dir) / BUILD_CONFIG_FILE
    data: dict[str, Any] = {}
    if config_path.is_file():
        data = await asyncio.to_thread(load_json, config_path)

    data["version"] = version
    data["lastMigration"] = (now or datetime.now(timezone.utc)).isoformat()
    await save_json(data, config_path)
    print_info(f"Updated project version to {version}")
    return config_path


def find_migration_path(
    from_version: str, to_version: str, migrations: Optional[list[Migration]] = None
) -> list[Migration]:
    """Chain migrations starting at *from_version* until *to_version*.

    The walk stops early when no migration starts at the current version,
    so the result may not reach *to_version*.
    """
    available = MIGRATIONS if migrations is None else migrations
    path: list[Migration] = []
    current = from_version
    while current != to_version:
        step = next((m for m in available if m.from_version == current), None)
        if step is None or step in path:
            break
        path.append(step)
        current = step.to_version
    return path


# ---------------------------------------------------------------------------
# Backup and migrate
# ---------------------------------------------------------------------------


def _backup_ignore(directory: str, names: list[str]) -> list[str]:
    return [name for name in names if name in BACKUP_EXCLUDES]


async def create_backup(project_dir: str | Path, now: Optional[datetime] = None) -> Path:
    """Copy *project_dir* next to itself, skipping build output and dependencies."""
    root = Path(project_dir).resolve()
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    backup_dir = root.parent / f"{root.name}-backup-{timestamp}"

    await asyncio.to_thread(shutil.copytree, root, backup_dir, ignore=_backup_ignore)
    print_success(f"Backup created: {backup_dir}")
    return backup_dir


async def migrate_project(
    project_dir: str | Path,
    target_version: str,
    backup: bool = True,
    current_version: Optional[str] = None,
    migrations: Optional[list[Migration]] = None,
) -> bool:
    """Migrate the project at *project_dir* to *target_version*.

    Args:
        project_dir: Root of a generated project.
        target_version: Version to migrate to.
        backup: Copy the project before applying anything.
        current_version: Overrides the detected version.
        migrations: Migration chain (defaults to ``MIGRATIONS``).

    Returns:
        ``True`` on success, including when no migration is needed.
    """
    root = Path(project_dir)
    detected = current_version or detect_project_version(root)
    if detected is None:
        print_warning(f"Could not detect project version; assuming {DEFAULT_SOURCE_VERSION}")
        detected = DEFAULT_SOURCE_VERSION

    context = MigrationContext(
        project_dir=root, current_version=detected, target_version=target_version
    )
    print_box(
        "MIGRATION PLAN",
        [f"From:    {detected}", f"To:      {target_version}", f"Project: {root.name}"],
    )

    try:
        if backup:
            context.backup_dir = await create_backup(root)

        steps = find_migration_path(detected, target_version, migrations)
        if not steps:
            print_info("No migrations needed")
            return True

        print_info(f"Found {len(steps)} migration(s) to apply")
        for step in steps:
            print_info(f"Applying: {step.description}")
            await step.apply(context)

        await update_project_version(root, target_version)
    except (OSError, json.JSONDecodeError, MigrationError) as exc:
        print_error(f"Migration failed: {exc}")
        return False

    print_success("Migration completed successfully!")
    return True
