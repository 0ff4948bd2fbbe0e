"""Main scaffolding orchestrator.

Takes a ``ResolvedConfig`` and produces a materialised project directory:

1. ``before_generate`` plugin hooks
2. Template resolution and variable derivation
3. Overlay copy, placeholder substitution, infrastructure cleanup
4. Post-processors: env files, git files, README, test scaffold, CI
5. Persisted build configuration (``.velokit.json``)
6. ``after_generate`` plugin hooks

Dependency installation and ``git init`` happen afterwards and are driven
by the CLI.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .. import __version__
from ..config import Settings
from ..models import CiProvider, Language, ResolvedConfig, TestFramework
from ..plugins import PluginManager, PluginModule
from ..utils import print_warning, save_json
from .ci_gen import copy_ci_template
from .env_gen import EnvValidation, generate_env_files
from .git_gen import setup_git_files
from .materializer import Materializer, conditional_removals
from .readme_gen import write_readme
from .registry import MODULE, TemplateRegistry
from .resolver import destination, missing_modules, resolve
from .templates import TemplateRenderer
from .testing_gen import setup_test_framework
from .variables import derive


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class PostProcessError(Exception):
    """Raised when a post-processor cannot write into the materialised tree."""

    def __init__(self, step: str, path: Path, cause: Exception) -> None:
        self.step = step
        self.path = path
        self.cause = cause
        super().__init__(f"{step} failed for {path}: {cause}")


@contextmanager
def _post_processing(step: str, path: Path) -> Iterator[None]:
    try:
        yield
    except (OSError, json.JSONDecodeError) as exc:
        raise PostProcessError(step, path, exc) from exc


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class BuildPlan(BaseModel):
    """Everything a build would do, computed without touching the disk."""

    destination: Path
    overlays: list[Path]
    missing_modules: list[str] = Field(default_factory=list)
    variables: dict[str, str] = Field(default_factory=dict)
    removals: list[str] = Field(default_factory=list)
    post_processors: list[str] = Field(default_factory=list)


class BuildResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    destination: Path
    overlays: list[Path]
    env_validation: EnvValidation
    failed_hooks: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Main generator
# ---------------------------------------------------------------------------


class ProjectGenerator:
    """Builds one project from a ``ResolvedConfig``."""

    def __init__(
        self,
        config: ResolvedConfig,
        settings: Optional[Settings] = None,
        registry: Optional[TemplateRegistry] = None,
        plugins: Optional[PluginManager] = None,
        renderer: Optional[TemplateRenderer] = None,
    ) -> None:
        self.config = config
        self.settings = settings or Settings()
        self.registry = registry or TemplateRegistry.scan(self.settings.templates_dir)
        self.plugins = plugins or PluginManager(self.settings.plugins_dir)
        self.renderer = renderer or TemplateRenderer()
        self.materializer = Materializer()
        self._plugin_modules_merged = False

    # -- Public API --------------------------------------------------------

    async def plan(self, output_dir: str | Path) -> BuildPlan:
        """Resolve the build without writing anything (dry-run).

        Plugin modules are merged into the registry first, so the overlay
        list matches what ``generate`` would use.

        Raises:
            TemplateNotFoundError: If the core template is missing.
        """
        await self._merge_plugin_modules()
        return BuildPlan(
            destination=destination(self.config, output_dir),
            overlays=resolve(self.config, self.registry),
            missing_modules=missing_modules(self.config, self.registry),
            variables=derive(self.config),
            removals=conditional_removals(self.config),
            post_processors=self._post_processor_names(),
        )

    async def generate(self, output_dir: str | Path) -> BuildResult:
        """Generate the project under ``<output_dir>/<project_name>``.

        Raises:
            TemplateNotFoundError: If the core template is missing.
            MaterializationError: If copying or rendering fails.
            PostProcessError: If a post-processor cannot write its files.
        """
        failed = await self.plugins.execute_hook("before_generate", self.config)

        await self._merge_plugin_modules()
        for module in missing_modules(self.config, self.registry):
            print_warning(f"Module '{module}' has no template for this language; skipping")

        overlays = resolve(self.config, self.registry)
        variables = derive(self.config)
        project_root = destination(self.config, output_dir)

        await self.materializer.materialize(
            overlays, variables, project_root, remove=conditional_removals(self.config)
        )

        with _post_processing("env files", project_root):
            env_validation = await generate_env_files(self.config, project_root, self.renderer)
        with _post_processing("git files", project_root):
            await setup_git_files(self.config, project_root, self.renderer)
        with _post_processing("readme", project_root):
            await write_readme(self.config, project_root, self.renderer)
        if self.config.test_framework is not TestFramework.NONE:
            with _post_processing("test framework", project_root):
                await setup_test_framework(
                    project_root,
                    self.config.test_framework,
                    self.config.language or Language.JS,
                    self.renderer,
                )
        if self.config.cicd is not CiProvider.NONE:
            with _post_processing("ci template", project_root):
                await copy_ci_template(project_root, self.config.cicd, self.registry)

        with _post_processing("build config", project_root):
            await self.save_build_config(project_root)

        failed += await self.plugins.execute_hook("after_generate", self.config, project_root)

        return BuildResult(
            destination=project_root,
            overlays=overlays,
            env_validation=env_validation,
            failed_hooks=failed,
        )

    async def save_build_config(self, project_root: Path, now: Optional[datetime] = None) -> Path:
        """Persist version, timestamp and configuration for later migrations."""
        payload: dict[str, Any] = {
            "version": __version__,
            "generatedAt": (now or datetime.now(timezone.utc)).isoformat(),
            "config": self.config.to_config_file().model_dump(
                mode="json", by_alias=True, exclude_unset=True
            ),
        }
        target = project_root / self.settings.build_config_name
        await save_json(payload, target)
        return target

    # -- Helpers -----------------------------------------------------------

    def _post_processor_names(self) -> list[str]:
        names = ["env", "git-files", "readme"]
        if self.config.test_framework is not TestFramework.NONE:
            names.append(f"testing:{self.config.test_framework.value}")
        if self.config.cicd is not CiProvider.NONE:
            names.append(f"ci:{self.config.cicd.value}")
        return names

    async def _merge_plugin_modules(self) -> None:
        if self._plugin_modules_merged:
            return
        self.registry = self.registry.with_entries(await self._plugin_module_entries())
        self._plugin_modules_merged = True

    async def _plugin_module_entries(self) -> list[tuple[str, str, Path]]:
        """Registry rows for plugin modules matching this project's language."""
        if not self.config.is_discord:
            return []
        modules: list[PluginModule] = await self.plugins.get_custom_modules()
        language = self.config.language.value
        return [
            (MODULE, f"discord/{language}/{module.name}", module.path)
            for module in modules
            if module.type == "discord" and module.language in (None, language)
        ]
