"""Rich logging integration for gnucore.

Console output goes through a ``RichHandler`` that carries the correlation id
and highlights accounting keywords; file output strips Rich markup.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

# Accounting events worth spotting in a busy console
ACTION_PATTERNS = [
    r"Promoted to \w+",
    r"Demoted to \w+",
    r"latched ON",
    r"Evicted \S+",
    r"underflow",
]

_MARKUP_PATTERN = re.compile(r"\[/?[^\]]+\]")


class CorrelationRichHandler(RichHandler):
    """RichHandler with correlation ID support and action highlighting."""

    LEVEL_COLORS: dict[str, str] = {
        "DEBUG": "dim",
        "INFO": "cyan",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold red",
    }

    def __init__(
        self,
        *args: Any,
        console: Console | None = None,
        show_colors: bool = True,
        **kwargs: Any,
    ) -> None:
        """Initialize the handler.

        Args:
            *args: Positional arguments for RichHandler
            console: Optional Rich Console instance
            show_colors: Whether to highlight action text
            **kwargs: Keyword arguments for RichHandler

        """
        if console is None:
            console = Console(file=sys.stdout, markup=True, color_system="auto")

        self.show_colors = show_colors
        kwargs.setdefault("markup", True)
        super().__init__(*args, console=console, **kwargs)

    def _colorize_action_text(self, message: str) -> str:
        """Wrap accounting keywords in bright cyan markup."""
        for pattern in ACTION_PATTERNS:
            for match in reversed(list(re.finditer(pattern, message))):
                start, end = match.span()
                message = (
                    message[:start]
                    + f"[bright_cyan]{message[start:end]}[/bright_cyan]"
                    + message[end:]
                )
        return message

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record with correlation ID and action highlighting."""
        try:
            if not hasattr(record, "correlation_id"):
                from gnucore.utils.logging_config import correlation_id

                record.correlation_id = correlation_id.get() or "no-correlation-id"

            # Work on a copy; other handlers keep the original message
            record = logging.makeLogRecord(record.__dict__)
            # Interpolated values (cache keys, hosts) are never markup
            message = escape(record.getMessage())
            if self.show_colors:
                message = self._colorize_action_text(message)
            record.msg = message
            record.args = ()

            super().emit(record)
        except Exception:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:
        """Report logging failures on stderr without re-entering logging."""
        try:
            sys.stderr.write(
                f"Logging error: {record.levelname} {record.name}: {record.msg}\n"
            )
            sys.stderr.flush()
        except OSError:
            pass


def strip_rich_markup(text: str) -> str:
    """Strip Rich markup from text for file logging."""
    return _MARKUP_PATTERN.sub("", text)


class FileFormatter(logging.Formatter):
    """Formatter for file output that strips Rich markup."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record, stripping Rich markup for file output."""
        return strip_rich_markup(super().format(record))


def create_rich_handler(
    console: Console | None = None,
    level: int | str = logging.INFO,
    show_path: bool = False,
    rich_tracebacks: bool = True,
    show_colors: bool = True,
) -> logging.Handler:
    """Create a RichHandler with correlation ID support.

    Args:
        console: Optional Rich Console instance
        level: Log level
        show_path: Whether to show file paths in log output
        rich_tracebacks: Whether to use rich tracebacks
        show_colors: Whether to highlight action text

    Returns:
        Configured handler instance

    """
    return CorrelationRichHandler(
        console=console,
        level=level,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
        show_colors=show_colors,
    )
