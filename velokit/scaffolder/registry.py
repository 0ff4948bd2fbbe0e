"""Template lookup table.

``TemplateRegistry.scan`` walks a template root once and records every
overlay directory it finds.  Lookups are side-effect free; a registry is
never mutated after construction.

Layout of a template root::

    discord/<language>/core/             -> ("core", "discord/<language>")
    discord/<language>/modules/<name>/   -> ("module", "discord/<language>/<name>")
    api/<framework>/                     -> ("core", "api/<framework>")
    ci/<provider>.yml                    -> ("ci", "<provider>")
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Optional

CORE = "core"
MODULE = "module"
CI = "ci"


@dataclass(frozen=True)
class TemplateRegistry:
    """Immutable ``(category, name) -> path`` table."""

    root: Path
    entries: Mapping[tuple[str, str], Path] = field(default_factory=dict)

    @classmethod
    def scan(cls, root: str | Path) -> "TemplateRegistry":
        """Build a registry from the directories present under *root*.

        A missing *root* yields an empty registry; the resolver reports the
        missing core template when it is asked for one.
        """
        root_path = Path(root).resolve()
        entries: dict[tuple[str, str], Path] = {}

        discord_root = root_path / "discord"
        for lang_dir in _subdirs(discord_root):
            core = lang_dir / "core"
            if core.is_dir():
                entries[(CORE, f"discord/{lang_dir.name}")] = core
            for module_dir in _subdirs(lang_dir / "modules"):
                entries[(MODULE, f"discord/{lang_dir.name}/{module_dir.name}")] = module_dir

        for framework_dir in _subdirs(root_path / "api"):
            entries[(CORE, f"api/{framework_dir.name}")] = framework_dir

        ci_root = root_path / "ci"
        if ci_root.is_dir():
            for ci_file in sorted(ci_root.glob("*.yml")):
                entries[(CI, ci_file.stem)] = ci_file

        return cls(root=root_path, entries=MappingProxyType(entries))

    def lookup(self, category: str, name: str) -> Optional[Path]:
        """Return the path registered for ``(category, name)``, if any."""
        return self.entries.get((category, name))

    def categories(self) -> list[str]:
        return sorted({category for category, _ in self.entries})

    def names(self, category: str) -> list[str]:
        """All registered names in *category*, sorted."""
        return sorted(name for cat, name in self.entries if cat == category)

    def with_entries(self, extra: Iterable[tuple[str, str, Path]]) -> "TemplateRegistry":
        """Return a new registry with *extra* ``(category, name, path)`` rows added.

        Used to layer plugin-provided modules over the built-in table.
        """
        merged = dict(self.entries)
        for category, name, path in extra:
            merged[(category, name)] = Path(path).resolve()
        return TemplateRegistry(root=self.root, entries=MappingProxyType(merged))


def _subdirs(path: Path) -> list[Path]:
    if not path.is_dir():
        return []
    return sorted(p for p in path.iterdir() if p.is_dir())
