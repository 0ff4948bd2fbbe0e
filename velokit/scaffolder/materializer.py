"""Overlay copying and placeholder substitution.

Materialisation runs in four steps:

1. Ensure the destination exists.  Overwrite confirmation for a non-empty
   destination is the caller's job.
2. Copy each overlay directory onto the destination, in order.  Later
   overlays overwrite same-path files from earlier ones.
3. For each enumerated ``.template`` file present in the destination,
   replace ``{{key}}`` tokens, write the result without the suffix and
   delete the suffixed original.
4. Delete files belonging to disabled infrastructure.

Any ``OSError`` aborts the run as a ``MaterializationError``.  Files
written before the failure stay on disk.
"""

from __future__ import annotations

import asyncio
import re
import shutil
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..models import ResolvedConfig

TEMPLATE_SUFFIX = ".template"

# Relative paths (with suffix) that receive substitution; nothing else does.
TEMPLATE_FILES: tuple[str, ...] = (
    "package.json.template",
    "src/index.ts.template",
    "src/index.js.template",
    "index.js.template",
    "README.md.template",
)

DOCKER_FILES: tuple[str, ...] = ("Dockerfile", "docker-compose.yml")
WEB_BRIDGE_FILES: tuple[str, ...] = ("src/utils/webBridge.ts", "src/utils/webBridge.js")

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


class MaterializationError(Exception):
    """Raised when copying, rendering or cleaning up the project tree fails."""

    def __init__(self, step: str, path: Path, cause: OSError) -> None:
        self.step = step
        self.path = path
        self.cause = cause
        super().__init__(f"{step} failed for {path}: {cause}")


@dataclass
class MaterializeResult:
    destination: Path
    overlays: list[Path] = field(default_factory=list)
    rendered: list[Path] = field(default_factory=list)
    removed: list[Path] = field(default_factory=list)


def substitute(text: str, mapping: Mapping[str, str]) -> str:
    """Replace ``{{key}}`` tokens in a single pass.

    Unknown keys are left verbatim.  Substituted values are not rescanned,
    so a value that itself contains ``{{...}}`` is inserted literally.
    """

    def _replace(match: re.Match[str]) -> str:
        return mapping.get(match.group(1), match.group(0))

    return _PLACEHOLDER.sub(_replace, text)


def conditional_removals(config: ResolvedConfig) -> list[str]:
    """Relative paths to delete because their infrastructure is disabled."""
    removals: list[str] = []
    if not config.infrastructure.docker:
        removals.extend(DOCKER_FILES)
    if not config.infrastructure.web_bridge:
        removals.extend(WEB_BRIDGE_FILES)
    return removals


class Materializer:
    """Copies overlays onto a destination and fills the template files."""

    def __init__(self, template_files: Sequence[str] = TEMPLATE_FILES) -> None:
        self.template_files = tuple(template_files)

    async def materialize(
        self,
        overlays: Sequence[Path],
        substitutions: Mapping[str, str],
        dest: str | Path,
        remove: Iterable[str] = (),
    ) -> MaterializeResult:
        """Build the project tree at *dest*.

        Args:
            overlays: Template directories in precedence order (last wins).
            substitutions: ``{{key}}`` replacement values.
            dest: Project root; created if absent.
            remove: Relative paths to delete after rendering, if present.

        Raises:
            MaterializationError: On any I/O failure.
        """
        root = Path(dest)
        result = MaterializeResult(destination=root)

        try:
            await asyncio.to_thread(root.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise MaterializationError("create destination", root, exc) from exc

        for overlay in overlays:
            await self._copy_overlay(Path(overlay), root)
            result.overlays.append(Path(overlay))

        for relative in self.template_files:
            source = root / relative
            if not source.is_file():
                continue
            rendered = await self._render_template_file(source, substitutions)
            result.rendered.append(rendered)

        for relative in remove:
            target = root / relative
            if not target.exists():
                continue
            try:
                await asyncio.to_thread(target.unlink)
            except OSError as exc:
                raise MaterializationError("remove", target, exc) from exc
            result.removed.append(target)

        return result

    async def _copy_overlay(self, overlay: Path, root: Path) -> None:
        try:
            await asyncio.to_thread(shutil.copytree, overlay, root, dirs_exist_ok=True)
        except OSError as exc:
            raise MaterializationError("copy overlay", overlay, exc) from exc

    async def _render_template_file(self, source: Path, substitutions: Mapping[str, str]) -> Path:
        target = source.with_name(source.name[: -len(TEMPLATE_SUFFIX)])
        try:
            text = await asyncio.to_thread(source.read_text, encoding="utf-8")
            await asyncio.to_thread(
                target.write_text, substitute(text, substitutions), encoding="utf-8"
            )
            await asyncio.to_thread(source.unlink)
        except OSError as exc:
            raise MaterializationError("render template", source, exc) from exc
        return target
