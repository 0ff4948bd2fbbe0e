"""Pydantic v2 models for a resolved VeloKit build.

``ResolvedConfig`` is the immutable snapshot of every choice needed to build
one project.  It is constructed once per invocation (from prompts, a config
file, or quick-mode defaults) and is read-only afterwards; the template
overlay list and substitution map are derived from it, never stored on it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import (
    ApiSection,
    CiSection,
    ConfigFile,
    DiscordSection,
    InfrastructureSection,
    LEGACY_DATABASE_LABELS,
    ProjectSection,
    TestingSection,
)
from .validators import validate_project_name


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ProjectType(str, Enum):
    DISCORD = "discord"
    API = "api"


class PackageManager(str, Enum):
    NPM = "npm"
    PNPM = "pnpm"
    YARN = "yarn"


class Language(str, Enum):
    TS = "ts"
    JS = "js"


class Focus(str, Enum):
    """The single primary feature module of a discord project ("soul")."""
    MUSIC = "music"
    AI = "ai"
    MOD = "mod"
    ECONOMY = "economy"


class ExtraModule(str, Enum):
    """Additional, non-exclusive feature overlays."""
    EXTRA_MOD = "extra_mod"
    EXTRA_UTIL = "extra_util"
    EXTRA_OWNER = "extra_owner"


class Database(str, Enum):
    MONGO = "mongo"
    POSTGRES = "postgres"
    NONE = "none"


class MusicEngine(str, Enum):
    LAVALINK = "Lavalink"
    NODELINK = "NodeLink"


class AIProvider(str, Enum):
    GEMINI = "Gemini"
    GROQ = "Groq"
    OPENAI = "OpenAI"


class TestFramework(str, Enum):
    JEST = "jest"
    VITEST = "vitest"
    NONE = "none"


class CiProvider(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"
    NONE = "none"


def normalise_database(value: Optional[str]) -> Database:
    """Map a config-file database value (or legacy label) to ``Database``."""
    if value is None:
        return Database.NONE
    return Database(LEGACY_DATABASE_LABELS.get(value, value.lower()))


# ---------------------------------------------------------------------------
# Nested models
# ---------------------------------------------------------------------------

class MusicModuleConfig(BaseModel):
    """Audio node connection for the music focus."""
    model_config = ConfigDict(frozen=True)

    engine: MusicEngine = MusicEngine.LAVALINK
    host: str = "localhost"
    port: int = Field(default=2333, ge=1, le=65535)
    password: str = "youshallnotpass"


class AIModuleConfig(BaseModel):
    """Provider credentials for the AI focus."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    provider: AIProvider = AIProvider.GEMINI
    api_key: str = Field(default="", alias="apiKey")


class Infrastructure(BaseModel):
    model_config = ConfigDict(frozen=True)

    database: Database = Database.NONE
    web_bridge: bool = False
    docker: bool = False


ModuleConfig = Union[MusicModuleConfig, AIModuleConfig]

# Credentials that stay out of saved config files and .velokit.json.
SECRET_MODULE_FIELDS: set[str] = {"api_key", "password"}

_MODULE_CONFIG_TYPES: dict[Focus, type[BaseModel]] = {
    Focus.MUSIC: MusicModuleConfig,
    Focus.AI: AIModuleConfig,
}


# ---------------------------------------------------------------------------
# ResolvedConfig
# ---------------------------------------------------------------------------

class ResolvedConfig(BaseModel):
    """Immutable snapshot of all choices needed to build one project."""

    model_config = ConfigDict(frozen=True)

    project_type: ProjectType = ProjectType.DISCORD
    project_name: str
    package_manager: PackageManager = PackageManager.PNPM
    language: Optional[Language] = None
    focus: Optional[Focus] = None
    extra_modules: tuple[ExtraModule, ...] = ()
    infrastructure: Infrastructure = Field(default_factory=Infrastructure)
    module_config: Optional[ModuleConfig] = None
    test_framework: TestFramework = TestFramework.NONE
    cicd: CiProvider = CiProvider.NONE
    token: str = Field(default="", repr=False)
    api_framework: str = "express"

    @field_validator("project_name")
    @classmethod
    def _check_project_name(cls, value: str) -> str:
        error = validate_project_name(value)
        if error:
            raise ValueError(error)
        return value

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        """Default the language and coerce ``module_config`` by focus."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        project_type = ProjectType(data.get("project_type", ProjectType.DISCORD))
        if project_type is not ProjectType.DISCORD:
            return data

        if data.get("language") is None:
            data["language"] = Language.TS

        focus = data.get("focus")
        if focus is None:
            return data
        model_type = _MODULE_CONFIG_TYPES.get(Focus(focus))
        if model_type is None:
            return data

        raw = data.get("module_config")
        if raw is None:
            data["module_config"] = model_type()
        elif isinstance(raw, dict):
            data["module_config"] = model_type.model_validate(raw)
        return data

    @model_validator(mode="after")
    def _check_consistency(self) -> "ResolvedConfig":
        if self.project_type is ProjectType.DISCORD:
            if self.focus is None:
                raise ValueError("focus is required for discord projects")
        else:
            if self.focus is not None:
                raise ValueError("focus is only valid for discord projects")
            if self.extra_modules:
                raise ValueError("extra modules are only valid for discord projects")
            if self.language is not None:
                raise ValueError("language is only valid for discord projects")

        expected = _MODULE_CONFIG_TYPES.get(self.focus) if self.focus else None
        if expected is None and self.module_config is not None:
            raise ValueError(f"module_config is not accepted for focus {self.focus!r}")
        if expected is not None and not isinstance(self.module_config, expected):
            raise ValueError(
                f"module_config for focus {self.focus.value!r} must be {expected.__name__}"
            )

        if len(set(self.extra_modules)) != len(self.extra_modules):
            raise ValueError("extra modules must not contain duplicates")
        return self

    # -- Convenience -------------------------------------------------------

    @property
    def is_discord(self) -> bool:
        return self.project_type is ProjectType.DISCORD

    @property
    def modules(self) -> list[str]:
        """Overlay module names in precedence order: focus, then extras."""
        if self.focus is None:
            return []
        return [self.focus.value, *(extra.value for extra in self.extra_modules)]

    # -- Config file conversion -------------------------------------------

    @classmethod
    def from_config_file(cls, config: ConfigFile, *, token: str = "") -> "ResolvedConfig":
        """Resolve a loaded ``ConfigFile`` into a ``ResolvedConfig``.

        Raises:
            pydantic.ValidationError: If the file describes an invalid build.
        """
        data: dict[str, Any] = {
            "project_type": config.project.type,
            "project_name": config.project.name,
            "package_manager": config.project.package_manager,
            "token": token,
        }
        if config.project.type == ProjectType.DISCORD.value:
            discord = config.discord or DiscordSection()
            infra = discord.infrastructure or InfrastructureSection()
            data.update(
                language=discord.language,
                focus=discord.soul,
                extra_modules=tuple(discord.extras or ()),
                infrastructure=Infrastructure(
                    database=normalise_database(infra.db),
                    web_bridge=bool(infra.web_bridge),
                    docker=bool(infra.docker),
                ),
                module_config=discord.module_config,
            )
        else:
            api = config.api or ApiSection()
            data["api_framework"] = api.framework
            data["infrastructure"] = Infrastructure(docker=bool(api.docker))

        if config.testing is not None:
            data["test_framework"] = config.testing.framework
        if config.cicd is not None:
            data["cicd"] = config.cicd.provider
        return cls(**data)

    def to_config_file(self) -> ConfigFile:
        """Express this configuration as a saveable ``ConfigFile``.

        The bot token, the AI provider key and the audio node password are
        never written to the config file.
        """
        project = ProjectSection(
            type=self.project_type.value,
            name=self.project_name,
            packageManager=self.package_manager.value,
        )
        sections: dict[str, Any] = {"project": project}

        if self.is_discord:
            infra = self.infrastructure
            discord_kwargs: dict[str, Any] = {
                "language": self.language.value,
                "soul": self.focus.value,
                "extras": [extra.value for extra in self.extra_modules],
                "infrastructure": InfrastructureSection(
                    db=infra.database.value,
                    docker=infra.docker,
                    webBridge=infra.web_bridge,
                ),
            }
            if self.module_config is not None:
                discord_kwargs["moduleConfig"] = self.module_config.model_dump(
                    mode="json", by_alias=True, exclude=SECRET_MODULE_FIELDS
                )
            sections["discord"] = DiscordSection(**discord_kwargs)
        else:
            sections["api"] = ApiSection(
                framework=self.api_framework, docker=self.infrastructure.docker
            )

        if self.test_framework is not TestFramework.NONE:
            sections["testing"] = TestingSection(framework=self.test_framework.value)
        if self.cicd is not CiProvider.NONE:
            sections["cicd"] = CiSection(provider=self.cicd.value)
        return ConfigFile(**sections)
