"""
Logging for the certificate updater and monitor.

Log records go to stderr. Stdout is reserved for machine-readable
output: the monitor's CSV report and ``--json-summary``, and the
updater's raw record dump.
"""

import logging
import sys
from typing import Optional, TextIO


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

# Level an expiry check result is reported at
STATUS_LEVELS = {
    "OK": logging.INFO,
    "WARNING": logging.WARNING,
    "CRITICAL": logging.ERROR,
    "EXPIRED": logging.ERROR,
}


class ColoredFormatter(logging.Formatter):
    """
    Colours the level name on a terminal.

    Records at WARNING and above are coloured as a whole line so that
    expiring certificates stand out in a long monitor run.
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = False):
        super().__init__(LOG_FORMAT)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if not self.use_colors:
            return line

        color = self.COLORS.get(record.levelname, "")
        if record.levelno >= logging.WARNING:
            return f"{color}{line}{self.RESET}"
        return line.replace(
            f"[{record.levelname}]",
            f"[{color}{record.levelname}{self.RESET}]",
            1,
        )


class StructuredLogger(logging.Logger):
    """Logger with section headers, result markers and expiry reporting."""

    def section(self, title: str) -> None:
        self.info("")
        self.info("=" * 60)
        self.info(title)
        self.info("=" * 60)

    def subsection(self, title: str) -> None:
        self.info("")
        self.info(f"--- {title} ---")

    def success(self, message: str) -> None:
        self.info(f"[OK] {message}")

    def failure(self, message: str) -> None:
        self.error(f"[FAIL] {message}")

    def certificate_status(self, cert_uid: str, status: str, days: int) -> None:
        """Report an expiry check at the level its status calls for."""
        level = STATUS_LEVELS.get(status, logging.INFO)
        self.log(level, f"{cert_uid}: {status} ({days} days until expiry)")


_logger: Optional[StructuredLogger] = None


def setup_logger(
    name: str = "VenafiVault",
    verbose: bool = False,
    use_colors: bool = True,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> StructuredLogger:
    """
    Configure the shared logger used by every module.

    Args:
        name: Logger name
        verbose: Enable debug-level logging
        use_colors: Colour console output when the stream is a terminal
        log_file: Also write uncoloured records to this file
        stream: Console stream (defaults to the current sys.stderr)

    Returns:
        Configured StructuredLogger instance
    """
    global _logger

    logging.setLoggerClass(StructuredLogger)
    logger = logging.getLogger(name)
    logger.__class__ = StructuredLogger

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    stream = stream or sys.stderr
    console_handler = logging.StreamHandler(stream)
    console_handler.setFormatter(
        ColoredFormatter(use_colors=use_colors and stream.isatty())
    )
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    _logger = logger
    return logger


def get_logger() -> StructuredLogger:
    """Return the shared logger, creating a default one on first use."""
    global _logger

    if _logger is None:
        _logger = setup_logger()

    return _logger
