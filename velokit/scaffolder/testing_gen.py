"""Test framework scaffolding.

Writes a framework config file and one sample test, then merges the
framework's scripts and devDependencies into the existing ``package.json``
(read-modify-write; every other manifest field is preserved).
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

from ..models import Language, TestFramework
from ..utils import load_json, print_info, print_success, save_json
from .templates import TemplateRenderer

_SCRIPTS: dict[TestFramework, dict[str, str]] = {
    TestFramework.JEST: {
        "test": "jest",
        "test:watch": "jest --watch",
        "test:coverage": "jest --coverage",
    },
    TestFramework.VITEST: {
        "test": "vitest run",
        "test:watch": "vitest",
        "test:coverage": "vitest run --coverage",
    },
}

_DEV_DEPENDENCIES: dict[TestFramework, dict[str, str]] = {
    TestFramework.JEST: {"jest": "^29.7.0", "@jest/globals": "^29.7.0"},
    TestFramework.VITEST: {"vitest": "^1.1.0", "@vitest/coverage-v8": "^1.1.0"},
}

_JEST_TS_DEV_DEPENDENCIES: dict[str, str] = {
    "ts-jest": "^29.1.1",
    "@types/jest": "^29.5.11",
}


def config_filename(framework: TestFramework, language: Language) -> str:
    if framework is TestFramework.VITEST:
        return "vitest.config.ts"
    return f"jest.config.{language.value}"


def detect_language(project_dir: str | Path) -> Language:
    """Guess the language of an existing project (``tsconfig.json`` means ts)."""
    return Language.TS if (Path(project_dir) / "tsconfig.json").exists() else Language.JS


def merge_test_manifest(
    manifest: dict[str, Any], framework: TestFramework, language: Language
) -> dict[str, Any]:
    """Return *manifest* with test scripts and devDependencies merged in."""
    merged = dict(manifest)
    merged["scripts"] = {**merged.get("scripts", {}), **_SCRIPTS[framework]}

    dev_dependencies = dict(_DEV_DEPENDENCIES[framework])
    if framework is TestFramework.JEST and language is Language.TS:
        dev_dependencies.update(_JEST_TS_DEV_DEPENDENCIES)
    merged["devDependencies"] = {**merged.get("devDependencies", {}), **dev_dependencies}
    return merged


async def setup_test_framework(
    dest: str | Path,
    framework: TestFramework,
    language: Language,
    renderer: Optional[TemplateRenderer] = None,
) -> list[Path]:
    """Scaffold *framework* into the project at *dest*.

    ``TestFramework.NONE`` is a no-op.  A missing ``package.json`` skips the
    manifest merge but still writes the config and sample test.

    Raises:
        json.JSONDecodeError: If the existing manifest is not valid JSON.
    """
    if framework is TestFramework.NONE:
        return []

    renderer = renderer or TemplateRenderer()
    root = Path(dest)
    context = {"framework": framework.value, "language": language.value}
    template = "testing/vitest.config.j2" if framework is TestFramework.VITEST else "testing/jest.config.j2"

    written = [
        await renderer.render_to_file(
            template, root / config_filename(framework, language), context
        ),
        await renderer.render_to_file(
            "testing/sample.test.j2",
            root / "src" / "__tests__" / f"sample.test.{language.value}",
            context,
        ),
    ]

    manifest_path = root / "package.json"
    if manifest_path.is_file():
        manifest = await asyncio.to_thread(load_json, manifest_path)
        await save_json(merge_test_manifest(manifest, framework, language), manifest_path)
        print_info("package.json updated with test scripts")
        written.append(manifest_path)

    print_success(f"{framework.value.capitalize()} testing framework configured")
    return written

