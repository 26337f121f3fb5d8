"""Console logging for the report commands."""

import logging
import sys

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Loggers that flood DEBUG output with one line per RPC or HTTP request
CHATTY_LOGGERS = ("web3", "urllib3")


class ColoredFormatter(logging.Formatter):
    """Prints the level name in bold ANSI colour."""

    COLORS = {
        "TRACE": "\033[90m",
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def format(self, record: logging.LogRecord) -> str:
        plain = record.levelname
        color = self.COLORS.get(plain)
        if color:
            record.levelname = f"{color}{self.BOLD}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def resolve_level(name: str) -> int:
    """Numeric level for a level name; unknown names mean INFO."""
    name = name.upper()
    if name == "TRACE":
        return TRACE
    return getattr(logging, name, logging.INFO)


def setup_logging(log_level: str = "INFO") -> None:
    """Send every log record to stdout at ``log_level`` and above.

    web3 and urllib3 stay at WARNING under DEBUG and are let through
    entirely under TRACE.
    """
    level = resolve_level(log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ColoredFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)

    if level == logging.DEBUG:
        for name in CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    elif level == TRACE:
        for name in CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(TRACE)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
