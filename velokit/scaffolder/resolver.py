"""Template resolution: which directories to overlay, in which order.

The overlay order is ``[core, focus, *extra_modules]``.  Later overlays
overwrite same-path files from earlier ones, so the order is a user-visible
contract: the same configuration always yields the same list.
"""

from __future__ import annotations

from pathlib import Path

from ..models import ProjectType, ResolvedConfig
from .registry import CORE, MODULE, TemplateRegistry


class TemplateNotFoundError(Exception):
    """Raised when the core template for a configuration is missing.

    This indicates a malformed installation (or a wrong ``templates_dir``),
    unlike a missing optional module directory, which is skipped.
    """

    def __init__(self, name: str, root: Path) -> None:
        self.name = name
        self.root = root
        super().__init__(f"Core template '{name}' not found under {root}")


def core_template_name(config: ResolvedConfig) -> str:
    if config.project_type is ProjectType.DISCORD:
        return f"discord/{config.language.value}"
    return f"api/{config.api_framework}"


def module_template_name(config: ResolvedConfig, module: str) -> str:
    return f"discord/{config.language.value}/{module}"


def resolve(config: ResolvedConfig, registry: TemplateRegistry) -> list[Path]:
    """Compute the ordered list of template directories to overlay.

    Raises:
        TemplateNotFoundError: If the core template directory is missing.
    """
    core_name = core_template_name(config)
    core = registry.lookup(CORE, core_name)
    if core is None or not core.is_dir():
        raise TemplateNotFoundError(core_name, registry.root)

    overlays = [core]
    for module in config.modules:
        path = registry.lookup(MODULE, module_template_name(config, module))
        if path is not None and path.is_dir():
            overlays.append(path)
    return overlays


def missing_modules(config: ResolvedConfig, registry: TemplateRegistry) -> list[str]:
    """Names of selected modules that have no template directory."""
    return [
        module
        for module in config.modules
        if registry.lookup(MODULE, module_template_name(config, module)) is None
    ]


def destination(config: ResolvedConfig, parent: str | Path) -> Path:
    """The project root a build of *config* writes into."""
    return Path(parent).resolve() / config.project_name
