"""Substitution variables derived from a ``ResolvedConfig``.

``derive`` is pure: the same configuration always produces the same map and
nothing here touches the filesystem or network.  Fragment order is fixed so
the rendered manifest and entry point are byte-for-byte reproducible.
"""

from __future__ import annotations

from ..models import (
    AIModuleConfig,
    AIProvider,
    Database,
    ExtraModule,
    Focus,
    Language,
    ResolvedConfig,
)

INTENT_SEPARATOR = ", "
VOICE_STATE_INTENT = "GatewayIntentBits.GuildVoiceStates"
MEMBERS_INTENT = "GatewayIntentBits.GuildMembers"

# Each declaration is emitted behind this separator so the value slots
# directly after the last fixed entry of the manifest's dependency block.
DEPENDENCY_SEPARATOR = ",\n    "

DATABASE_DEPENDENCIES: dict[Database, str] = {
    Database.MONGO: '"mongoose": "^8.0.3"',
    Database.POSTGRES: '"@prisma/client": "^5.7.1"',
}
MUSIC_DEPENDENCY = '"shoukaku": "^4.0.1"'
AI_DEPENDENCIES: dict[AIProvider, str] = {
    AIProvider.GEMINI: '"@google/generative-ai": "^0.2.1"',
    AIProvider.OPENAI: '"openai": "^4.24.1"',
    AIProvider.GROQ: '"groq-sdk": "^0.3.0"',
}
WEB_BRIDGE_DEPENDENCY = '"express": "^4.18.2"'

WEB_BRIDGE_START = "startWebBridge(client);\n"


def derive(config: ResolvedConfig) -> dict[str, str]:
    """Compute the ``{{key}}`` substitution map for *config*."""
    variables = {
        "projectName": config.project_name,
        "packageManager": config.package_manager.value,
        "database": config.infrastructure.database.value,
        "dependencies": derive_dependencies(config),
    }
    if config.is_discord:
        variables.update(
            soul=config.focus.value.upper(),
            extraIntents=derive_extra_intents(config),
            webBridgeImport=derive_web_bridge_import(config),
            webBridgeStart=WEB_BRIDGE_START if config.infrastructure.web_bridge else "",
        )
    return variables


def derive_extra_intents(config: ResolvedConfig) -> str:
    """Gateway intents beyond the core set, music gate before mod gate."""
    fragments = []
    if config.focus is Focus.MUSIC:
        fragments.append(VOICE_STATE_INTENT)
    if ExtraModule.EXTRA_MOD in config.extra_modules:
        fragments.append(MEMBERS_INTENT)
    return "".join(fragment + INTENT_SEPARATOR for fragment in fragments)


def dependency_declarations(config: ResolvedConfig) -> list[str]:
    """Ordered ``"name": "range"`` declarations: database, music, AI, web bridge."""
    declarations = []
    database = DATABASE_DEPENDENCIES.get(config.infrastructure.database)
    if database:
        declarations.append(database)
    if config.focus is Focus.MUSIC:
        declarations.append(MUSIC_DEPENDENCY)
    if config.focus is Focus.AI and isinstance(config.module_config, AIModuleConfig):
        declarations.append(AI_DEPENDENCIES[config.module_config.provider])
    if config.infrastructure.web_bridge:
        declarations.append(WEB_BRIDGE_DEPENDENCY)
    return declarations


def derive_dependencies(config: ResolvedConfig) -> str:
    return "".join(DEPENDENCY_SEPARATOR + decl for decl in dependency_declarations(config))


def derive_web_bridge_import(config: ResolvedConfig) -> str:
    if not config.infrastructure.web_bridge:
        return ""
    # ESM JavaScript needs the extension; the TypeScript compiler resolves it.
    module = "./utils/webBridge.js" if config.language is Language.JS else "./utils/webBridge"
    return f"import {{ startWebBridge }} from '{module}';\n"
