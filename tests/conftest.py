"""Shared pytest fixtures for the VeloKit test suite.

Provides reusable fixtures for:
- A miniature template root mirroring the bundled layout
- Registries scanned from that root
- Representative resolved configurations (music, ai, mod, api)
- A mocked subprocess runner
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from velokit.models import (
    AIModuleConfig,
    AIProvider,
    Database,
    ExtraModule,
    Focus,
    Infrastructure,
    Language,
    ProjectType,
    ResolvedConfig,
)
from velokit.scaffolder.registry import TemplateRegistry


# ---------------------------------------------------------------------------
# Template root
# ---------------------------------------------------------------------------

PACKAGE_JSON_TEMPLATE = (
    "{\n"
    '  "name": "{{projectName}}",\n'
    '  "dependencies": {\n'
    '    "discord.js": "^14.14.1",\n'
    '    "dotenv": "^16.3.1"{{dependencies}}\n'
    "  }\n"
    "}\n"
)

INDEX_TEMPLATE = (
    "{{webBridgeImport}}"
    "const intents = [{{extraIntents}}GatewayIntentBits.Guilds];\n"
    "const soul = '{{soul}}';\n"
    "{{webBridgeStart}}login();\n"
)

API_PACKAGE_JSON_TEMPLATE = (
    "{\n"
    '  "name": "{{projectName}}",\n'
    '  "dependencies": {\n'
    '    "express": "^4.18.2"{{dependencies}}\n'
    "  }\n"
    "}\n"
)

TEMPLATE_TREE: dict[str, str] = {
    "discord/ts/core/package.json.template": PACKAGE_JSON_TEMPLATE,
    "discord/ts/core/src/index.ts.template": INDEX_TEMPLATE,
    "discord/ts/core/tsconfig.json": "{}\n",
    "discord/ts/core/Dockerfile": "FROM node:20-alpine\n",
    "discord/ts/core/docker-compose.yml": "services:\n  bot:\n    build: .\n",
    "discord/ts/core/src/utils/webBridge.ts": "export function startWebBridge() {}\n",
    "discord/ts/core/src/commands/ping.ts": "export default { name: 'ping' };\n",
    "discord/ts/modules/music/src/commands/play.ts": "export default { name: 'play' };\n",
    "discord/ts/modules/ai/src/commands/chat.ts": "export default { name: 'chat' };\n",
    "discord/ts/modules/mod/src/commands/warn.ts": "// from mod\n",
    "discord/ts/modules/extra_mod/src/commands/warn.ts": "// from extra_mod\n",
    "discord/ts/modules/extra_mod/src/commands/shared.ts": "// from extra_mod\n",
    "discord/ts/modules/extra_util/src/commands/shared.ts": "// from extra_util\n",
    "discord/js/core/package.json.template": PACKAGE_JSON_TEMPLATE,
    "discord/js/core/src/index.js.template": INDEX_TEMPLATE,
    "discord/js/modules/music/src/commands/play.js": "export default { name: 'play' };\n",
    "api/express/package.json.template": API_PACKAGE_JSON_TEMPLATE,
    "api/express/index.js.template": "app.listen(); // {{projectName}}\n",
    "api/express/Dockerfile": "FROM node:20-alpine\n",
    "ci/github.yml": "name: CI\n",
    "ci/gitlab.yml": "stages:\n  - test\n",
}


def build_template_root(root: Path, tree: dict[str, str] | None = None) -> Path:
    """Write *tree* (relative path -> content) under *root*."""
    for relative, content in (tree or TEMPLATE_TREE).items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def template_root(tmp_path: Path) -> Path:
    """A small template root laid out like ``velokit/templates``."""
    return build_template_root(tmp_path / "templates")


@pytest.fixture
def registry(template_root: Path) -> TemplateRegistry:
    return TemplateRegistry.scan(template_root)


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Parent directory that generated projects are written into."""
    out = tmp_path / "out"
    out.mkdir()
    return out


# ---------------------------------------------------------------------------
# Configurations
# ---------------------------------------------------------------------------


def make_config(**overrides: Any) -> ResolvedConfig:
    """A discord/ts/music configuration with *overrides* applied."""
    data: dict[str, Any] = {
        "project_type": ProjectType.DISCORD,
        "project_name": "my-bot",
        "language": Language.TS,
        "focus": Focus.MUSIC,
    }
    data.update(overrides)
    return ResolvedConfig(**data)


@pytest.fixture
def config_factory():
    """Build discord configurations: ``config_factory(focus=Focus.AI, ...)``."""
    return make_config


@pytest.fixture
def music_config() -> ResolvedConfig:
    """discord/ts/music with no database, docker or web bridge."""
    return make_config()


@pytest.fixture
def ai_config() -> ResolvedConfig:
    return make_config(
        project_name="ai-bot",
        focus=Focus.AI,
        module_config=AIModuleConfig(provider=AIProvider.OPENAI, api_key="sk-test"),
        infrastructure=Infrastructure(database=Database.MONGO, web_bridge=True, docker=True),
    )


@pytest.fixture
def mod_config() -> ResolvedConfig:
    return make_config(
        project_name="mod-bot",
        focus=Focus.MOD,
        extra_modules=(ExtraModule.EXTRA_MOD, ExtraModule.EXTRA_UTIL),
    )


@pytest.fixture
def api_config() -> ResolvedConfig:
    return ResolvedConfig(project_type=ProjectType.API, project_name="my-api")


# ---------------------------------------------------------------------------
# Mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_run_command():
    """Patch ``velokit.utils.run_command`` users to succeed without spawning.

    Usage::

        def test_git(mock_run_command):
            mock_run_command.return_value = (0, "", "")
    """
    mock = AsyncMock(return_value=(0, "", ""))
    with patch("velokit.scaffolder.git_gen.run_command", mock), \
         patch("velokit.utils.run_command", mock):
        yield mock
