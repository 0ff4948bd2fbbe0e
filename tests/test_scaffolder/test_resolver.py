"""Tests for overlay resolution order and destination paths."""

from __future__ import annotations

from pathlib import Path

import pytest

from velokit.models import ExtraModule, Focus, Language
from velokit.scaffolder.registry import TemplateRegistry
from velokit.scaffolder.resolver import (
    TemplateNotFoundError,
    core_template_name,
    destination,
    missing_modules,
    resolve,
)


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

pytestmark = pytest.mark.unit


def _names(overlays: list[Path], root: Path) -> list[str]:
    return [p.relative_to(root.resolve()).as_posix() for p in overlays]


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------


class TestResolve:
    def test_core_then_focus(self, music_config, registry, template_root):
        overlays = resolve(music_config, registry)
        assert _names(overlays, template_root) == [
            "discord/ts/core",
            "discord/ts/modules/music",
        ]

    def test_extras_follow_selection_order(self, mod_config, registry, template_root):
        overlays = resolve(mod_config, registry)
        assert _names(overlays, template_root) == [
            "discord/ts/core",
            "discord/ts/modules/mod",
            "discord/ts/modules/extra_mod",
            "discord/ts/modules/extra_util",
        ]

    def test_reordered_extras_reorder_overlays(self, config_factory, registry, template_root):
        config = config_factory(
            focus=Focus.MOD,
            extra_modules=(ExtraModule.EXTRA_UTIL, ExtraModule.EXTRA_MOD),
        )
        assert _names(resolve(config, registry), template_root)[2:] == [
            "discord/ts/modules/extra_util",
            "discord/ts/modules/extra_mod",
        ]

    def test_is_deterministic(self, mod_config, registry):
        assert resolve(mod_config, registry) == resolve(mod_config, registry)

    def test_missing_module_is_skipped(self, config_factory, registry, template_root):
        config = config_factory(language=Language.JS, focus=Focus.AI)
        assert _names(resolve(config, registry), template_root) == ["discord/js/core"]
        assert missing_modules(config, registry) == ["ai"]

    def test_api_has_core_only(self, api_config, registry, template_root):
        assert _names(resolve(api_config, registry), template_root) == ["api/express"]
        assert missing_modules(api_config, registry) == []

    def test_missing_core_raises(self, music_config, tmp_path: Path):
        empty = TemplateRegistry.scan(tmp_path)
        with pytest.raises(TemplateNotFoundError) as exc_info:
            resolve(music_config, empty)
        assert exc_info.value.name == "discord/ts"
        assert "discord/ts" in str(exc_info.value)


# ---------------------------------------------------------------------------
# Naming helpers
# ---------------------------------------------------------------------------


class TestNames:
    def test_core_template_name(self, music_config, api_config):
        assert core_template_name(music_config) == "discord/ts"
        assert core_template_name(api_config) == "api/express"

    def test_destination_is_parent_plus_name(self, music_config, tmp_path: Path):
        assert destination(music_config, tmp_path) == tmp_path.resolve() / "my-bot"
