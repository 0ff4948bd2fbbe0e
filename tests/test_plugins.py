"""Tests for plugin registration, discovery and hook execution."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from velokit.plugins import (
    Plugin,
    PluginHooks,
    PluginManager,
    create_plugin_scaffold,
    load_hooks_module,
)


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

pytestmark = pytest.mark.unit


def _write_plugin(root: Path, dirname: str, manifest: dict | str, hooks: str | None = None) -> Path:
    plugin_dir = root / dirname
    plugin_dir.mkdir(parents=True)
    text = manifest if isinstance(manifest, str) else json.dumps(manifest)
    (plugin_dir / "plugin.json").write_text(text)
    if hooks is not None:
        (plugin_dir / "hooks.py").write_text(hooks)
    return plugin_dir


# ---------------------------------------------------------------------------
# register
# ---------------------------------------------------------------------------


class TestRegister:
    def test_register(self, tmp_path: Path):
        manager = PluginManager(tmp_path)
        manager.register(Plugin("a", "1.0.0"))
        assert [p.name for p in manager.plugins] == ["a"]

    @pytest.mark.parametrize(("name", "version"), [("", "1.0.0"), ("a", "")])
    def test_requires_name_and_version(self, tmp_path: Path, name, version):
        with pytest.raises(ValueError):
            PluginManager(tmp_path).register(Plugin(name, version))


# ---------------------------------------------------------------------------
# execute_hook
# ---------------------------------------------------------------------------


class TestExecuteHook:
    @pytest.mark.asyncio
    async def test_sync_and_async_hooks(self, tmp_path: Path):
        sync_hook = MagicMock()
        async_hook = AsyncMock()
        manager = PluginManager(tmp_path)
        manager.register(Plugin("sync", "1.0.0", hooks=PluginHooks(before_generate=sync_hook)))
        manager.register(Plugin("async", "1.0.0", hooks=PluginHooks(before_generate=async_hook)))

        failed = await manager.execute_hook("before_generate", "cfg")

        assert failed == []
        sync_hook.assert_called_once_with("cfg")
        async_hook.assert_awaited_once_with("cfg")

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, tmp_path: Path):
        after = MagicMock()
        manager = PluginManager(tmp_path)
        manager.register(
            Plugin("broken", "1.0.0", hooks=PluginHooks(after_generate=MagicMock(side_effect=RuntimeError)))
        )
        manager.register(Plugin("fine", "1.0.0", hooks=PluginHooks(after_generate=after)))

        failed = await manager.execute_hook("after_generate", "cfg", "/out")

        assert failed == ["broken"]
        after.assert_called_once_with("cfg", "/out")

    @pytest.mark.asyncio
    async def test_camel_case_alias(self, tmp_path: Path):
        hook = MagicMock()
        manager = PluginManager(tmp_path)
        manager.register(Plugin("a", "1.0.0", hooks=PluginHooks(before_generate=hook)))
        await manager.execute_hook("beforeGenerate", "cfg")
        hook.assert_called_once_with("cfg")

    @pytest.mark.asyncio
    async def test_plugins_without_hook_skipped(self, tmp_path: Path):
        manager = PluginManager(tmp_path)
        manager.register(Plugin("a", "1.0.0"))
        assert await manager.execute_hook("before_generate", "cfg") == []


class TestCustomContributions:
    @pytest.mark.asyncio
    async def test_custom_modules(self, tmp_path: Path):
        manager = PluginManager(tmp_path)
        manager.register(
            Plugin(
                "eco",
                "1.0.0",
                hooks=PluginHooks(
                    custom_modules=AsyncMock(
                        return_value=[{"name": "bank", "displayName": "Bank", "path": "mods/bank"}]
                    )
                ),
            )
        )
        modules = await manager.get_custom_modules()
        assert len(modules) == 1
        assert modules[0].display_name == "Bank"
        assert modules[0].path == Path("mods/bank")
        assert modules[0].language is None

    @pytest.mark.asyncio
    async def test_invalid_contribution_reported(self, tmp_path: Path):
        manager = PluginManager(tmp_path)
        manager.register(
            Plugin("bad", "1.0.0", hooks=PluginHooks(custom_templates=lambda: [{"name": "x"}]))
        )
        manager.register(
            Plugin(
                "good",
                "1.0.0",
                hooks=PluginHooks(
                    custom_templates=lambda: [{"name": "t", "type": "custom", "path": "t"}]
                ),
            )
        )
        templates = await manager.get_custom_templates()
        assert [t.name for t in templates] == ["t"]


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class TestLoadPlugins:
    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path: Path):
        assert await PluginManager(tmp_path / "absent").load_plugins() == []

    @pytest.mark.asyncio
    async def test_injected_loader(self, tmp_path: Path):
        _write_plugin(tmp_path, "b-plugin", {"name": "b", "version": "1.0.0"})
        _write_plugin(tmp_path, "a-plugin", {"name": "a", "version": "2.0.0", "description": "d"})
        hooks = PluginHooks(before_generate=MagicMock())
        loader = MagicMock(return_value=hooks)

        manager = PluginManager(tmp_path, loader=loader)
        loaded = await manager.load_plugins()

        assert [p.name for p in loaded] == ["a", "b"]
        assert loaded[0].description == "d"
        assert loaded[0].hooks is hooks
        assert loader.call_count == 2

    @pytest.mark.asyncio
    async def test_invalid_manifests_skipped(self, tmp_path: Path):
        _write_plugin(tmp_path, "no-version", {"name": "x"})
        _write_plugin(tmp_path, "bad-json", "{oops")
        (tmp_path / "no-manifest").mkdir()
        (tmp_path / "stray.txt").write_text("x")
        _write_plugin(tmp_path, "ok", {"name": "ok", "version": "1.0.0"})

        manager = PluginManager(tmp_path, loader=lambda _: PluginHooks())
        loaded = await manager.load_plugins()
        assert [p.name for p in loaded] == ["ok"]

    @pytest.mark.asyncio
    async def test_loader_failure_skips_plugin(self, tmp_path: Path):
        _write_plugin(tmp_path, "boom", {"name": "boom", "version": "1.0.0"})
        manager = PluginManager(tmp_path, loader=MagicMock(side_effect=SyntaxError("bad")))
        assert await manager.load_plugins() == []

    @pytest.mark.asyncio
    async def test_real_hooks_module(self, tmp_path: Path):
        _write_plugin(
            tmp_path,
            "real",
            {"name": "real", "version": "1.0.0"},
            hooks="calls = []\n\ndef before_generate(config):\n    calls.append(config)\n",
        )
        manager = PluginManager(tmp_path)
        await manager.load_plugins()

        assert await manager.execute_hook("before_generate", "cfg") == []
        hooks = manager.plugins[0].hooks
        assert hooks.after_generate is None
        assert hooks.before_generate.__globals__["calls"] == ["cfg"]


class TestLoadHooksModule:
    def test_no_hooks_file(self, tmp_path: Path):
        assert load_hooks_module(tmp_path) == PluginHooks()

    def test_picks_up_functions(self, tmp_path: Path):
        (tmp_path / "hooks.py").write_text("async def custom_modules():\n    return []\n")
        hooks = load_hooks_module(tmp_path)
        assert hooks.custom_modules is not None
        assert hooks.before_generate is None


# ---------------------------------------------------------------------------
# Scaffold
# ---------------------------------------------------------------------------


class TestCreatePluginScaffold:
    @pytest.mark.asyncio
    async def test_creates_files(self, tmp_path: Path):
        plugin_dir = await create_plugin_scaffold("my-plugin", tmp_path)

        assert plugin_dir == tmp_path / "my-plugin"
        manifest = json.loads((plugin_dir / "plugin.json").read_text())
        assert manifest == {
            "name": "my-plugin",
            "version": "1.0.0",
            "description": "VeloKit plugin: my-plugin",
        }
        assert "def before_generate" in (plugin_dir / "hooks.py").read_text()
        readme = (plugin_dir / "README.md").read_text()
        assert readme.startswith("# MyPlugin\n")
        assert ".velokit/plugins/my-plugin" in readme

    @pytest.mark.asyncio
    async def test_scaffold_is_loadable(self, tmp_path: Path):
        await create_plugin_scaffold("fresh", tmp_path)
        loaded = await PluginManager(tmp_path).load_plugins()
        assert [p.name for p in loaded] == ["fresh"]
