"""Tests for substitution variable derivation."""

from __future__ import annotations

import pytest

from velokit.models import (
    AIModuleConfig,
    AIProvider,
    Database,
    ExtraModule,
    Focus,
    Infrastructure,
    Language,
)
from velokit.scaffolder.variables import (
    DEPENDENCY_SEPARATOR,
    MEMBERS_INTENT,
    VOICE_STATE_INTENT,
    dependency_declarations,
    derive,
    derive_dependencies,
    derive_extra_intents,
    derive_web_bridge_import,
)


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# derive
# ---------------------------------------------------------------------------


class TestDerive:
    def test_discord_keys(self, music_config):
        variables = derive(music_config)
        assert set(variables) == {
            "projectName",
            "packageManager",
            "database",
            "dependencies",
            "soul",
            "extraIntents",
            "webBridgeImport",
            "webBridgeStart",
        }
        assert variables["projectName"] == "my-bot"
        assert variables["packageManager"] == "pnpm"
        assert variables["soul"] == "MUSIC"
        assert variables["database"] == "none"

    def test_api_keys(self, api_config):
        variables = derive(api_config)
        assert set(variables) == {"projectName", "packageManager", "database", "dependencies"}
        assert variables["dependencies"] == ""

    def test_is_pure(self, ai_config):
        assert derive(ai_config) == derive(ai_config)

    def test_web_bridge_disabled_yields_empty_strings(self, music_config):
        variables = derive(music_config)
        assert variables["webBridgeImport"] == ""
        assert variables["webBridgeStart"] == ""

    def test_web_bridge_enabled(self, ai_config):
        variables = derive(ai_config)
        assert variables["webBridgeImport"] == "import { startWebBridge } from './utils/webBridge';\n"
        assert variables["webBridgeStart"] == "startWebBridge(client);\n"


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------


class TestExtraIntents:
    def test_music_adds_voice_states(self, music_config):
        assert derive_extra_intents(music_config) == f"{VOICE_STATE_INTENT}, "

    def test_music_then_members(self, config_factory):
        config = config_factory(extra_modules=(ExtraModule.EXTRA_MOD,))
        assert derive_extra_intents(config) == (
            "GatewayIntentBits.GuildVoiceStates, GatewayIntentBits.GuildMembers, "
        )

    def test_extra_mod_alone(self, config_factory):
        config = config_factory(focus=Focus.ECONOMY, extra_modules=(ExtraModule.EXTRA_MOD,))
        assert derive_extra_intents(config) == f"{MEMBERS_INTENT}, "

    def test_none_needed(self, config_factory):
        config = config_factory(focus=Focus.ECONOMY, extra_modules=(ExtraModule.EXTRA_UTIL,))
        assert derive_extra_intents(config) == ""


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


class TestDependencies:
    def test_music_no_database(self, music_config):
        assert derive_dependencies(music_config) == ',\n    "shoukaku": "^4.0.1"'

    def test_no_declarations_is_empty(self, config_factory):
        assert derive_dependencies(config_factory(focus=Focus.MOD)) == ""

    def test_order_database_ai_bridge(self, ai_config):
        assert dependency_declarations(ai_config) == [
            '"mongoose": "^8.0.3"',
            '"openai": "^4.24.1"',
            '"express": "^4.18.2"',
        ]

    def test_each_declaration_is_prefixed(self, ai_config):
        value = derive_dependencies(ai_config)
        assert value.startswith(DEPENDENCY_SEPARATOR)
        assert value.count(DEPENDENCY_SEPARATOR) == 3

    @pytest.mark.parametrize(
        ("provider", "expected"),
        [
            (AIProvider.GEMINI, '"@google/generative-ai": "^0.2.1"'),
            (AIProvider.GROQ, '"groq-sdk": "^0.3.0"'),
            (AIProvider.OPENAI, '"openai": "^4.24.1"'),
        ],
    )
    def test_ai_provider_dependency(self, config_factory, provider, expected):
        config = config_factory(focus=Focus.AI, module_config=AIModuleConfig(provider=provider))
        assert dependency_declarations(config) == [expected]

    def test_postgres(self, config_factory):
        config = config_factory(
            focus=Focus.MOD, infrastructure=Infrastructure(database=Database.POSTGRES)
        )
        assert dependency_declarations(config) == ['"@prisma/client": "^5.7.1"']

    def test_api_with_docker_has_no_dependencies(self, api_config):
        assert dependency_declarations(api_config) == []


class TestWebBridgeImport:
    def test_javascript_uses_extension(self, config_factory):
        config = config_factory(
            language=Language.JS, infrastructure=Infrastructure(web_bridge=True)
        )
        assert derive_web_bridge_import(config) == (
            "import { startWebBridge } from './utils/webBridge.js';\n"
        )
