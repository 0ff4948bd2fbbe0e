"""VeloKit configuration.

Two layers live here:

* ``Settings`` -- tool-level knobs (template root, plugin directory, update
  check) constructed once per invocation, optionally from environment
  variables.
* ``ConfigFile`` -- the on-disk build configuration document
  (``project`` / ``discord`` / ``api`` sections) used by ``--config`` and
  ``--save-config``.  It round-trips losslessly: only the keys that were
  present when loading are written back.

All models use Pydantic v2 so they are validated at construction time and
serialised to/from JSON without boiler-plate.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

_PACKAGE_DIR = Path(__file__).parent

DEFAULT_TEMPLATES_DIR = _PACKAGE_DIR / "templates"
DEFAULT_PLUGINS_DIR = Path(".velokit") / "plugins"
DEFAULT_UPDATE_URL = "https://pypi.org/pypi/velokit/json"

DATABASE_VALUES: tuple[str, ...] = ("mongo", "postgres", "none")

# Labels written by older releases of the interactive prompt.
LEGACY_DATABASE_LABELS: dict[str, str] = {
    "MongoDB (Mongoose)": "mongo",
    "PostgreSQL (Prisma)": "postgres",
    "None": "none",
}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigFileError(Exception):
    """Raised when a build configuration file cannot be read or is invalid."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


# ---------------------------------------------------------------------------
# Tool settings
# ---------------------------------------------------------------------------


class Settings(BaseModel):
    """Global VeloKit settings.

    Instances are typically created once by the CLI entry point and then
    passed to ``ProjectGenerator`` and the plugin manager.
    """

    templates_dir: Path = Field(default=DEFAULT_TEMPLATES_DIR)
    plugins_dir: Path = Field(default=DEFAULT_PLUGINS_DIR)
    update_url: str = Field(default=DEFAULT_UPDATE_URL)
    update_timeout: float = Field(
        default=3.0, ge=0.5, description="Update-check request timeout in seconds"
    )
    check_updates: bool = Field(default=True)
    install_timeout: int = Field(
        default=600, ge=30, description="Package manager install timeout in seconds"
    )
    build_config_name: str = Field(default=".velokit.json")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build ``Settings`` from environment variables.

        Recognised variables (all optional):
            VELOKIT_TEMPLATES_DIR, VELOKIT_PLUGINS_DIR, VELOKIT_UPDATE_URL,
            VELOKIT_UPDATE_TIMEOUT, VELOKIT_NO_UPDATE_CHECK,
            VELOKIT_INSTALL_TIMEOUT.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("VELOKIT_TEMPLATES_DIR"):
            kwargs["templates_dir"] = Path(os.environ["VELOKIT_TEMPLATES_DIR"])
        if os.environ.get("VELOKIT_PLUGINS_DIR"):
            kwargs["plugins_dir"] = Path(os.environ["VELOKIT_PLUGINS_DIR"])
        if os.environ.get("VELOKIT_UPDATE_URL"):
            kwargs["update_url"] = os.environ["VELOKIT_UPDATE_URL"]
        if os.environ.get("VELOKIT_UPDATE_TIMEOUT"):
            kwargs["update_timeout"] = float(os.environ["VELOKIT_UPDATE_TIMEOUT"])
        if os.environ.get("VELOKIT_INSTALL_TIMEOUT"):
            kwargs["install_timeout"] = int(os.environ["VELOKIT_INSTALL_TIMEOUT"])

        no_check = os.environ.get("VELOKIT_NO_UPDATE_CHECK", "").strip().lower()
        if no_check in ("1", "true", "yes"):
            kwargs["check_updates"] = False

        return cls(**kwargs)


# ---------------------------------------------------------------------------
# Build configuration file
# ---------------------------------------------------------------------------


class _Section(BaseModel):
    """Base for config-file sections: camelCase aliases, unknown keys kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ProjectSection(_Section):
    type: Literal["discord", "api"] = "discord"
    name: str
    package_manager: Literal["npm", "pnpm", "yarn"] = Field(
        default="pnpm", alias="packageManager"
    )


class InfrastructureSection(_Section):
    db: Optional[str] = None
    docker: Optional[bool] = None
    web_bridge: Optional[bool] = Field(default=None, alias="webBridge")

    @field_validator("db")
    @classmethod
    def _check_db(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value in LEGACY_DATABASE_LABELS or value.lower() in DATABASE_VALUES:
            return value
        raise ValueError(
            f"unknown database {value!r}; expected one of: {', '.join(DATABASE_VALUES)}"
        )


class DiscordSection(_Section):
    language: Literal["ts", "js"] = "ts"
    soul: Optional[str] = None
    extras: Optional[list[str]] = None
    infrastructure: Optional[InfrastructureSection] = None
    module_config: Optional[dict[str, Any]] = Field(default=None, alias="moduleConfig")


class ApiSection(_Section):
    framework: str = "express"
    docker: Optional[bool] = None


class TestingSection(_Section):
    framework: Literal["jest", "vitest", "none"] = "none"


class CiSection(_Section):
    provider: Literal["github", "gitlab", "none"] = "none"


class ConfigFile(_Section):
    """Structured build configuration document."""

    project: ProjectSection
    discord: Optional[DiscordSection] = None
    api: Optional[ApiSection] = None
    testing: Optional[TestingSection] = None
    cicd: Optional[CiSection] = None

    def to_json(self) -> str:
        """Serialise only the keys that were set, using camelCase aliases."""
        data = self.model_dump(mode="json", by_alias=True, exclude_unset=True)
        return json.dumps(data, indent=2) + "\n"


def load_config_file(path: str | Path) -> Optional[ConfigFile]:
    """Load a build configuration file.

    Returns:
        The parsed ``ConfigFile``, or ``None`` if *path* does not exist.

    Raises:
        ConfigFileError: If the file is not valid JSON or does not match the
            expected schema.
    """
    file_path = Path(path).resolve()
    if not file_path.exists():
        return None

    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigFileError(file_path, f"could not read config file: {exc}") from exc

    try:
        return ConfigFile.model_validate(raw)
    except ValidationError as exc:
        raise ConfigFileError(file_path, f"invalid config file:\n{exc}") from exc


def save_config_file(config: ConfigFile, path: str | Path) -> Path:
    """Persist *config* as pretty-printed JSON.

    Returns:
        The resolved path where the file was written.

    Raises:
        ConfigFileError: If the file cannot be written.
    """
    target = Path(path).resolve()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(config.to_json(), encoding="utf-8")
    except OSError as exc:
        raise ConfigFileError(target, f"could not write config file: {exc}") from exc
    return target
