"""CI template copying.

Copies one fixed workflow file to the provider-specific path.  No
substitution is applied.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import Optional

from ..models import CiProvider
from ..utils import print_info, print_warning
from .registry import CI, TemplateRegistry

CI_DESTINATIONS: dict[CiProvider, Path] = {
    CiProvider.GITHUB: Path(".github") / "workflows" / "ci.yml",
    CiProvider.GITLAB: Path(".gitlab-ci.yml"),
}


def _copy(source: Path, target: Path) -> Path:
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, target)
    return target


async def copy_ci_template(
    dest: str | Path, provider: CiProvider, registry: TemplateRegistry
) -> Optional[Path]:
    """Copy the workflow for *provider* into *dest*.

    Returns:
        The written path, or ``None`` for ``CiProvider.NONE`` or when the
        installation ships no workflow for the provider.
    """
    if provider is CiProvider.NONE:
        return None

    source = registry.lookup(CI, provider.value)
    if source is None:
        print_warning(f"No CI template for {provider.value}; skipping CI setup")
        return None

    target = await asyncio.to_thread(_copy, source, Path(dest) / CI_DESTINATIONS[provider])
    print_info(f"CI workflow written to {CI_DESTINATIONS[provider].as_posix()}")
    return target
