"""
Logging Module - Rich console logging for the scraping core and API.
====================================================================

One place configures handlers for the whole process: the CLI, the API server
and the tests all call ``setup_logging`` (directly or through ``get_logger``).
Session tokens must never reach a log record in clear; use ``mask_secret``.
"""

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from better_mycourses.shared.config import Settings

_logging_configured = False
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_console = Console(stderr=True)

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "requests",
    "uvicorn.access",
)


def setup_logging(
    level: str = "INFO",
    use_rich: bool = True,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    force: bool = False,
) -> None:
    """
    Install handlers on the root logger.

    Args:
        level: Level name; unknown names fall back to INFO
        use_rich: Rich console output on stderr instead of plain lines
        log_file: Also append plain lines to this file
        log_format: Format for plain and file output
        force: Replace an earlier configuration

    Without ``force`` only the first call has an effect, so ``get_logger``
    can trigger setup lazily from any module.
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    plain = logging.Formatter(log_format or DEFAULT_FORMAT)

    handlers: list[logging.Handler] = []
    if use_rich:
        console_handler: logging.Handler = RichHandler(
            console=_console,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(plain)
    handlers.append(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(plain)
        handlers.append(file_handler)

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    for handler in handlers:
        handler.setLevel(numeric_level)
        root.addHandler(handler)
    root.setLevel(numeric_level)

    # Request-level chatter from the HTTP stacks stays out of INFO output
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    _logging_configured = True

    logging.getLogger(__name__).debug(
        f"Logging configured: level={level}, rich={use_rich}, file={log_file}"
    )


def configure_from_settings(settings: "Settings") -> None:
    """Apply the ``logging`` section of the settings, replacing any earlier setup."""
    setup_logging(
        level=settings.get_effective_log_level(),
        use_rich=settings.logging.rich_console,
        log_file=settings.logging.file or None,
        log_format=settings.logging.format,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """
    Return ``logging.getLogger(name)``, setting up default handlers on first use.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Fetching course 42")
    """
    if not _logging_configured:
        setup_logging()

    return logging.getLogger(name)


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """
    Shorten a secret for log output.

    Example:
        >>> mask_secret("abcdef123456")
        'abcd…(12)'
    """
    if not value:
        return "<none>"
    return f"{value[:visible]}…({len(value)})"
