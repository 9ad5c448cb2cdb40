"""Logging helpers for mimegate.

Modules log through ``logging.getLogger(__name__)``. This module registers
the extra ``TRACE`` level used for envelope details and offers a Rich console
handler for applications that do not configure logging themselves.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.logging import RichHandler

if TYPE_CHECKING:
    from rich.console import Console

__all__ = ["TRACE_LEVEL", "setup_logging"]

#: More verbose than DEBUG, used for envelope and payload details.
TRACE_LEVEL = 5

logging.addLevelName(TRACE_LEVEL, "TRACE")

_ROOT_LOGGER = "mimegate"


def setup_logging(level: int | str = logging.INFO, *, console: Console | None = None) -> logging.Logger:
    """Attach a Rich console handler to the ``mimegate`` logger.

    Calling it again replaces the handler installed by a previous call, so
    the level can be changed at runtime.

    Args:
        level: Handler level, as a number or a level name (``"TRACE"`` works).
        console: Optional Rich console, mostly useful to capture output.

    Returns:
        The configured ``mimegate`` logger.

    Examples:
        >>> logger = setup_logging("DEBUG")  # doctest: +SKIP
        >>> logger.name  # doctest: +SKIP
        'mimegate'
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved

    logger = logging.getLogger(_ROOT_LOGGER)
    for handler in logger.handlers[:]:
        if getattr(handler, "_mimegate_handler", False):
            logger.removeHandler(handler)

    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    handler.setLevel(level)
    handler._mimegate_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    # Logger allows everything, the handler filters
    logger.setLevel(TRACE_LEVEL)
    return logger
