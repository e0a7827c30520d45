"""Logging setup shared by the CLI and tests."""

from __future__ import annotations

import logging

from .env import optional_env

LOG_LEVEL_ENV = "REVIEWSYNC_LOG_LEVEL"


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once with a terse CLI format.

    ``level`` wins over ``REVIEWSYNC_LOG_LEVEL``; both fall back to INFO. Pass
    ``force=True`` to reconfigure from tests or secondary entry points.
    """

    if level is None:
        name = (optional_env(LOG_LEVEL_ENV) or "INFO").upper()
        resolved = logging.getLevelNamesMapping().get(name, logging.INFO)
    else:
        resolved = level

    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    # httpx logs every request URL at INFO, including OAuth codes in query strings
    logging.getLogger("httpx").setLevel(max(resolved, logging.WARNING))
