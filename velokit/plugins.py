"""Plugin discovery and hook execution.

A plugin is a directory under the plugins root (``.velokit/plugins/`` by
default) containing a ``plugin.json`` manifest::

    {"name": "my-plugin", "version": "1.0.0", "description": "..."}

and, optionally, a ``hooks.py`` module defining any of ``before_generate``,
``after_generate``, ``custom_templates`` and ``custom_modules``.  Hooks may
be plain functions or coroutines.

Plugins enter the manager through one explicit point, ``register``; disk
discovery is a thin layer that builds descriptors and registers them.  Each
hook invocation is isolated: an exception from one plugin is reported and
the remaining plugins still run.
"""

from __future__ import annotations

import asyncio
import importlib.util
import inspect
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import DEFAULT_PLUGINS_DIR
from .scaffolder.templates import TemplateRenderer
from .utils import print_error, print_info, print_warning, sanitize_name, save_json

MANIFEST_FILE = "plugin.json"
HOOKS_FILE = "hooks.py"

HookFn = Callable[..., Any]

# Hook names as written in manifests and docs -> descriptor attribute.
HOOK_ALIASES: dict[str, str] = {
    "beforeGenerate": "before_generate",
    "afterGenerate": "after_generate",
    "customTemplates": "custom_templates",
    "customModules": "custom_modules",
}


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


class PluginTemplate(BaseModel):
    """A project template contributed by a plugin."""

    name: str
    type: Literal["discord", "api", "custom"]
    path: Path
    description: str = ""


class PluginModule(BaseModel):
    """A feature module overlay contributed by a plugin."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    display_name: str = Field(alias="displayName")
    type: Literal["discord", "api"] = "discord"
    language: Optional[Literal["ts", "js"]] = None
    path: Path
    dependencies: list[str] = Field(default_factory=list)


@dataclass
class PluginHooks:
    before_generate: Optional[HookFn] = None
    after_generate: Optional[HookFn] = None
    custom_templates: Optional[HookFn] = None
    custom_modules: Optional[HookFn] = None


@dataclass
class Plugin:
    name: str
    version: str
    description: str = ""
    hooks: PluginHooks = field(default_factory=PluginHooks)
    path: Optional[Path] = None


def load_hooks_module(plugin_dir: Path) -> PluginHooks:
    """Import ``hooks.py`` from *plugin_dir* and collect its hook functions."""
    hooks_path = plugin_dir / HOOKS_FILE
    if not hooks_path.is_file():
        return PluginHooks()

    module_name = f"velokit_plugin_{sanitize_name(plugin_dir.name).replace('-', '_')}"
    spec = importlib.util.spec_from_file_location(module_name, hooks_path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot import {hooks_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    return PluginHooks(
        before_generate=getattr(module, "before_generate", None),
        after_generate=getattr(module, "after_generate", None),
        custom_templates=getattr(module, "custom_templates", None),
        custom_modules=getattr(module, "custom_modules", None),
    )


# ---------------------------------------------------------------------------
# PluginManager
# ---------------------------------------------------------------------------


class PluginManager:
    """Holds registered plugins and runs their hooks in registration order."""

    def __init__(
        self,
        plugins_dir: str | Path | None = None,
        loader: Callable[[Path], PluginHooks] = load_hooks_module,
    ) -> None:
        self.plugins_dir = Path(plugins_dir) if plugins_dir is not None else DEFAULT_PLUGINS_DIR
        self.loader = loader
        self._plugins: list[Plugin] = []

    @property
    def plugins(self) -> list[Plugin]:
        return list(self._plugins)

    def register(self, plugin: Plugin) -> None:
        """Add *plugin* to the manager.

        Raises:
            ValueError: If the plugin has no name or version.
        """
        if not plugin.name or not plugin.version:
            raise ValueError("plugin must define a name and a version")
        self._plugins.append(plugin)

    # -- Discovery -----------------------------------------------------------

    async def load_plugins(self) -> list[Plugin]:
        """Register every valid plugin found in the plugins directory.

        Returns:
            The plugins registered by this call.
        """
        if not self.plugins_dir.is_dir():
            return []

        loaded: list[Plugin] = []
        for entry in sorted(self.plugins_dir.iterdir()):
            if not entry.is_dir():
                continue
            plugin = await self._load_plugin(entry)
            if plugin is not None:
                self.register(plugin)
                loaded.append(plugin)

        if loaded:
            print_info(f"Loaded {len(loaded)} plugin(s)")
        return loaded

    async def _load_plugin(self, plugin_dir: Path) -> Optional[Plugin]:
        manifest_path = plugin_dir / MANIFEST_FILE
        if not manifest_path.is_file():
            return None

        try:
            raw = await asyncio.to_thread(manifest_path.read_text, encoding="utf-8")
            manifest = json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            print_warning(f"Invalid plugin at {plugin_dir}: {exc}")
            return None

        if not isinstance(manifest, dict) or not manifest.get("name") or not manifest.get("version"):
            print_warning(f"Invalid plugin at {plugin_dir}: missing name or version")
            return None

        try:
            hooks = await asyncio.to_thread(self.loader, plugin_dir)
        except Exception as exc:
            print_error(f"Failed to load plugin at {plugin_dir}: {exc}")
            return None

        plugin = Plugin(
            name=str(manifest["name"]),
            version=str(manifest["version"]),
            description=str(manifest.get("description", "")),
            hooks=hooks,
            path=plugin_dir,
        )
        print_info(f"Plugin loaded: {plugin.name} v{plugin.version}")
        return plugin

    # -- Hooks ---------------------------------------------------------------

    async def execute_hook(self, hook_name: str, *args: Any) -> list[str]:
        """Run *hook_name* on every plugin that defines it.

        Args:
            hook_name: ``before_generate``/``after_generate`` (the camelCase
                ``beforeGenerate``/``afterGenerate`` spellings are accepted).
            *args: Passed through to each hook.

        Returns:
            Names of plugins whose hook raised.
        """
        attr = HOOK_ALIASES.get(hook_name, hook_name)
        failed: list[str] = []
        for plugin in self._plugins:
            hook = getattr(plugin.hooks, attr, None)
            if hook is None:
                continue
            try:
                await _call(hook, *args)
            except Exception as exc:
                print_error(f"Plugin {plugin.name} hook {hook_name} failed: {exc}")
                failed.append(plugin.name)
        return failed

    async def get_custom_templates(self) -> list[PluginTemplate]:
        return await self._collect("custom_templates", PluginTemplate)

    async def get_custom_modules(self) -> list[PluginModule]:
        return await self._collect("custom_modules", PluginModule)

    async def _collect(self, attr: str, model: type[BaseModel]) -> list[Any]:
        items: list[Any] = []
        for plugin in self._plugins:
            hook = getattr(plugin.hooks, attr)
            if hook is None:
                continue
            try:
                provided = await _call(hook)
                items.extend(model.model_validate(item) for item in provided or [])
            except Exception as exc:
                print_error(f"Plugin {plugin.name} {attr} failed: {exc}")
        return items


async def _call(hook: HookFn, *args: Any) -> Any:
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


# ---------------------------------------------------------------------------
# Scaffold
# ---------------------------------------------------------------------------


async def create_plugin_scaffold(
    plugin_name: str,
    target_dir: str | Path,
    renderer: Optional[TemplateRenderer] = None,
) -> Path:
    """Create a new plugin skeleton at ``<target_dir>/<plugin_name>``."""
    renderer = renderer or TemplateRenderer()
    plugin_dir = Path(target_dir) / plugin_name
    context = {"plugin_name": plugin_name}

    await save_json(
        {
            "name": plugin_name,
            "version": "1.0.0",
            "description": f"VeloKit plugin: {plugin_name}",
        },
        plugin_dir / MANIFEST_FILE,
    )
    await renderer.render_to_file("plugin/hooks.py.j2", plugin_dir / HOOKS_FILE, context)
    await renderer.render_to_file("plugin/README.md.j2", plugin_dir / "README.md", context)

    print_info(f"Plugin scaffold created at {plugin_dir}")
    return plugin_dir
