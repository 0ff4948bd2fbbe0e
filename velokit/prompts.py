"""Staged configuration resolution.

The interactive flow is expressed as a pure function from the answers
collected so far to the next group of questions.  Nothing here touches the
terminal: the CLI asks whatever ``next_questions`` returns, merges the
answers and calls it again until it returns an empty list, then hands the
answers to ``resolve_answers``.

Stages, in order:

1. identity       -- project name, bot token, package manager
2. project type   -- discord or api
3. core           -- language and focus (discord only)
4. engine config  -- music node or AI provider (focus dependent)
5. extras         -- additional feature modules (discord only)
6. infrastructure -- database, web bridge, docker
7. quality        -- test framework and CI provider
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from .models import (
    AIModuleConfig,
    AIProvider,
    CiProvider,
    Database,
    ExtraModule,
    Focus,
    Infrastructure,
    Language,
    MusicEngine,
    MusicModuleConfig,
    PackageManager,
    ProjectType,
    ResolvedConfig,
    TestFramework,
)
from .validators import validate_project_name

DEFAULT_PROJECT_NAME = "my-velokit-bot"


class QuestionKind(str, Enum):
    TEXT = "text"
    PASSWORD = "password"
    SELECT = "select"
    MULTISELECT = "multiselect"
    CONFIRM = "confirm"


class Question(BaseModel):
    """One prompt the CLI should put to the user."""

    name: str
    kind: QuestionKind
    message: str
    choices: list[str] = Field(default_factory=list)
    default: Any = None
    required: bool = True


class IncompleteAnswersError(ValueError):
    """Raised when answers are resolved before every stage is complete."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Unanswered questions: {', '.join(missing)}")


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def _values(enum: type[Enum]) -> list[str]:
    return [member.value for member in enum]


def _identity(answers: Mapping[str, Any]) -> list[Question]:
    return [
        Question(
            name="project_name",
            kind=QuestionKind.TEXT,
            message="Project Name:",
            default=DEFAULT_PROJECT_NAME,
        ),
        Question(
            name="token",
            kind=QuestionKind.PASSWORD,
            message="Discord Bot Token (optional):",
            default="",
            required=False,
        ),
        Question(
            name="package_manager",
            kind=QuestionKind.SELECT,
            message="Package Manager:",
            choices=_values(PackageManager),
            default=PackageManager.PNPM.value,
        ),
    ]


def _project_type(answers: Mapping[str, Any]) -> list[Question]:
    return [
        Question(
            name="project_type",
            kind=QuestionKind.SELECT,
            message="Project Type:",
            choices=_values(ProjectType),
            default=ProjectType.DISCORD.value,
        )
    ]


def _core(answers: Mapping[str, Any]) -> list[Question]:
    if not _is_discord(answers):
        return []
    return [
        Question(
            name="language",
            kind=QuestionKind.SELECT,
            message="Language:",
            choices=_values(Language),
            default=Language.TS.value,
        ),
        Question(
            name="focus",
            kind=QuestionKind.SELECT,
            message="Select Bot Focus:",
            choices=_values(Focus),
            default=Focus.MUSIC.value,
        ),
    ]


def _engine(answers: Mapping[str, Any]) -> list[Question]:
    if not _is_discord(answers):
        return []
    focus = answers.get("focus")
    if focus == Focus.MUSIC.value:
        defaults = MusicModuleConfig()
        return [
            Question(name="engine", kind=QuestionKind.SELECT, message="Music Engine:",
                     choices=_values(MusicEngine), default=defaults.engine.value),
            Question(name="host", kind=QuestionKind.TEXT, message="Host Address:",
                     default=defaults.host),
            Question(name="port", kind=QuestionKind.TEXT, message="Port:",
                     default=str(defaults.port)),
            Question(name="password", kind=QuestionKind.PASSWORD, message="Password:",
                     default=defaults.password),
        ]
    if focus == Focus.AI.value:
        return [
            Question(name="provider", kind=QuestionKind.SELECT, message="AI Provider:",
                     choices=_values(AIProvider), default=AIProvider.GEMINI.value),
            Question(name="api_key", kind=QuestionKind.PASSWORD, message="Provider API Key:",
                     default="", required=False),
        ]
    return []


def _extras(answers: Mapping[str, Any]) -> list[Question]:
    if not _is_discord(answers):
        return []
    return [
        Question(
            name="extra_modules",
            kind=QuestionKind.MULTISELECT,
            message="Layer on features:",
            choices=_values(ExtraModule),
            default=[],
            required=False,
        )
    ]


def _infrastructure(answers: Mapping[str, Any]) -> list[Question]:
    docker = Question(
        name="docker", kind=QuestionKind.CONFIRM, message="Generate Docker Files?", default=False
    )
    if not _is_discord(answers):
        return [docker]
    return [
        Question(
            name="database",
            kind=QuestionKind.SELECT,
            message="Primary Database:",
            choices=_values(Database),
            default=Database.MONGO.value,
        ),
        Question(
            name="web_bridge",
            kind=QuestionKind.CONFIRM,
            message="Enable Web Bridge (Express dashboard)?",
            default=False,
        ),
        docker,
    ]


def _quality(answers: Mapping[str, Any]) -> list[Question]:
    return [
        Question(
            name="test_framework",
            kind=QuestionKind.SELECT,
            message="Testing Framework:",
            choices=_values(TestFramework),
            default=TestFramework.NONE.value,
        ),
        Question(
            name="cicd",
            kind=QuestionKind.SELECT,
            message="CI/CD Provider:",
            choices=_values(CiProvider),
            default=CiProvider.NONE.value,
        ),
    ]


STAGES: tuple[Callable[[Mapping[str, Any]], list[Question]], ...] = (
    _identity,
    _project_type,
    _core,
    _engine,
    _extras,
    _infrastructure,
    _quality,
)


def _is_discord(answers: Mapping[str, Any]) -> bool:
    return answers.get("project_type", ProjectType.DISCORD.value) == ProjectType.DISCORD.value


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def next_questions(answers: Mapping[str, Any]) -> list[Question]:
    """Return the unanswered questions of the first incomplete stage.

    An empty list means every stage is complete and ``resolve_answers`` can
    be called.
    """
    for stage in STAGES:
        pending = [q for q in stage(answers) if q.name not in answers]
        if pending:
            return pending
    return []


def validate_answer(question: Question, value: Any) -> Optional[str]:
    """Return an error message if *value* is unacceptable for *question*."""
    if question.name == "project_name":
        return validate_project_name(str(value))
    if question.name == "port":
        try:
            port = int(value)
        except (TypeError, ValueError):
            return "Port must be a number"
        if not 1 <= port <= 65535:
            return "Port must be between 1 and 65535"
    return None


def resolve_answers(answers: Mapping[str, Any]) -> ResolvedConfig:
    """Build a ``ResolvedConfig`` from a complete set of answers.

    Raises:
        IncompleteAnswersError: If ``next_questions(answers)`` is non-empty.
        pydantic.ValidationError: If the answers describe an invalid build.
    """
    pending = next_questions(answers)
    if pending:
        raise IncompleteAnswersError([q.name for q in pending])

    data: dict[str, Any] = {
        "project_type": answers["project_type"],
        "project_name": answers["project_name"],
        "package_manager": answers["package_manager"],
        "token": answers.get("token") or "",
        "test_framework": answers["test_framework"],
        "cicd": answers["cicd"],
    }

    if answers["project_type"] != ProjectType.DISCORD.value:
        data["infrastructure"] = Infrastructure(docker=bool(answers["docker"]))
        return ResolvedConfig(**data)

    focus = Focus(answers["focus"])
    data.update(
        language=answers["language"],
        focus=focus,
        extra_modules=tuple(answers.get("extra_modules") or ()),
        infrastructure=Infrastructure(
            database=Database(answers["database"]),
            web_bridge=bool(answers["web_bridge"]),
            docker=bool(answers["docker"]),
        ),
    )
    if focus is Focus.MUSIC:
        data["module_config"] = MusicModuleConfig(
            engine=answers["engine"],
            host=answers["host"],
            port=int(answers["port"]),
            password=answers["password"],
        )
    elif focus is Focus.AI:
        data["module_config"] = AIModuleConfig(
            provider=answers["provider"], api_key=answers.get("api_key") or ""
        )
    return ResolvedConfig(**data)


def quick_defaults(name: str, project_type: ProjectType = ProjectType.DISCORD) -> ResolvedConfig:
    """Smart defaults for quick mode: a buildable project with no questions.

    Discord projects get TypeScript, the moderation focus and the utility
    extra, with no database, docker, tests or CI.  API projects get the
    express skeleton without docker.
    """
    if project_type is ProjectType.API:
        return ResolvedConfig(project_type=ProjectType.API, project_name=name)
    return ResolvedConfig(
        project_type=ProjectType.DISCORD,
        project_name=name,
        language=Language.TS,
        focus=Focus.MOD,
        extra_modules=(ExtraModule.EXTRA_UTIL,),
    )
