#!/usr/bin/env python3
"""
Logging setup: stdlib logging rendered through rich.
"""

import logging
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler


def verbosity_to_level(verbosity: int, default: str = 'WARNING') -> Union[int, str]:
    """Map -v counts onto logging levels"""
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return default.upper()


def setup_logging(level: Union[int, str] = logging.WARNING, console: Optional[Console] = None) -> None:
    """Route the vistutor loggers through a RichHandler"""
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root = logging.getLogger('vistutor')
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
