"""README generation.

Keyed on the same configuration fields as the variable deriver but
independent of it: this produces human documentation, not substitutions.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

from ..models import AIModuleConfig, Database, ExtraModule, Focus, MusicModuleConfig, ResolvedConfig
from ..utils import write_text
from .templates import TemplateRenderer

_FOCUS_FEATURES: dict[Focus, str] = {
    Focus.MUSIC: "Music Playback (Lavalink)",
    Focus.AI: "AI Integration",
    Focus.MOD: "Moderation Commands",
    Focus.ECONOMY: "Economy System",
}

_EXTRA_FEATURES: dict[ExtraModule, str] = {
    ExtraModule.EXTRA_MOD: "Moderation Commands",
    ExtraModule.EXTRA_UTIL: "Utility Commands",
    ExtraModule.EXTRA_OWNER: "Owner-only Commands",
}


def readme_features(config: ResolvedConfig) -> list[str]:
    """Feature bullet points, without duplicates, in a stable order."""
    features: list[str] = []
    if config.focus is not None:
        features.append(_FOCUS_FEATURES[config.focus])
    for extra in config.extra_modules:
        label = _EXTRA_FEATURES[extra]
        if label not in features:
            features.append(label)
    if config.infrastructure.web_bridge:
        features.append("Web Bridge (Express Dashboard)")
    if config.infrastructure.database is not Database.NONE:
        features.append("Database Integration")
    if config.infrastructure.docker:
        features.append("Docker Support")
    return features


def _context(config: ResolvedConfig) -> dict[str, Any]:
    module = config.module_config
    return {
        "project_name": config.project_name,
        "package_manager": config.package_manager.value,
        "language": config.language.value if config.language else "js",
        "soul": config.focus.value if config.focus else None,
        "database": config.infrastructure.database.value,
        "docker": config.infrastructure.docker,
        "features": readme_features(config),
        "test_framework": config.test_framework.value,
        "music": module if isinstance(module, MusicModuleConfig) else None,
        "ai": module if isinstance(module, AIModuleConfig) else None,
    }


def generate_readme(config: ResolvedConfig, renderer: Optional[TemplateRenderer] = None) -> str:
    """Render README content for *config*.

    Secrets never appear: the env block shows placeholders for the token,
    the AI key and the audio node password.
    """
    renderer = renderer or TemplateRenderer()
    template = "readme/discord.md.j2" if config.is_discord else "readme/api.md.j2"
    return renderer.render(template, _context(config))


async def write_readme(
    config: ResolvedConfig,
    dest: str | Path,
    renderer: Optional[TemplateRenderer] = None,
) -> Path:
    content = generate_readme(config, renderer)
    return await asyncio.to_thread(write_text, Path(dest) / "README.md", content)
