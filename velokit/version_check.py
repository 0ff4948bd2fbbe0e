"""Non-blocking check for a newer VeloKit release.

The check queries the package index with a short timeout.  It is advisory
only: every failure (network, HTTP status, malformed payload) is swallowed
and reported as "no update".
"""

from __future__ import annotations

import random
from typing import Optional

import httpx

from .config import Settings
from .utils import print_warning

TIPS: tuple[str, ...] = (
    "Tip: Use TypeScript for better IntelliSense support",
    "Tip: Lavalink requires Java 17 or higher",
    "Tip: Never commit your .env file to Git",
    "Tip: Use pnpm for faster installations",
    "Tip: Customize your bot's commands in the src/commands folder",
    "Tip: Events are automatically loaded from src/events",
    "Tip: Use Docker for consistent development environments",
    "Tip: Run `velokit health` to score an existing project",
    "Tip: Save your answers with --save-config and replay them with --config",
)


def _parse(version: str) -> list[int]:
    parts: list[int] = []
    for piece in version.split(".")[:3]:
        digits = "".join(ch for ch in piece if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return parts + [0] * (3 - len(parts))


def is_newer_version(latest: str, current: str) -> bool:
    """Compare ``major.minor.patch`` strings numerically."""
    return _parse(latest) > _parse(current)


async def fetch_latest_version(
    url: str,
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """Return the latest published version from a PyPI-style JSON endpoint.

    Raises:
        httpx.HTTPError: On connection failure, timeout, or error status.
        KeyError: If the payload carries no version.
    """
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport) as client:
        response = await client.get(url)
        response.raise_for_status()
        return str(response.json()["info"]["version"])


async def check_for_updates(
    current: str,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[str]:
    """Warn and return the newer version if one is published, else ``None``."""
    settings = settings or Settings()
    if not settings.check_updates:
        return None

    try:
        latest = await fetch_latest_version(settings.update_url, settings.update_timeout, transport)
    except (httpx.HTTPError, KeyError, TypeError, ValueError):
        return None

    if not is_newer_version(latest, current):
        return None

    print_warning(
        f"New version available: {latest} (current: {current})\n"
        "  Run: pip install --upgrade velokit to update"
    )
    return latest


def random_tip() -> str:
    return random.choice(TIPS)
