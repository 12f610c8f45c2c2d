"""Simple logging configuration for staking-valuation."""

import logging
import os
import sys

# Define TRACE level (lower than DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class ColoredFormatter(logging.Formatter):
    """Colored log formatter using ANSI escape codes."""

    # ANSI color codes
    COLORS = {
        "TRACE": "\033[90m",  # Dark gray
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[levelname]}{self.BOLD}{levelname}{self.RESET}"
            )

        result = super().format(record)

        record.levelname = levelname

        return result


def setup_logging(log_level: str | None = None) -> None:
    """Configure logging for the application.

    Uses ``log_level`` when given, otherwise the LOG_LEVEL environment
    variable (defaults to INFO). Output goes to stderr so JSON written by the
    CLI to stdout stays machine readable.

    At DEBUG the urllib3 and web3 loggers are held at WARNING; use TRACE to
    see everything.
    """
    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if level_name == "TRACE":
        level = TRACE
    else:
        level = getattr(logging, level_name, logging.INFO)

    # stdout is reserved for --json output
    handler = logging.StreamHandler(sys.stderr)
    formatter = ColoredFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
        force=True,
    )

    # Quieten noisy third-party loggers at DEBUG; TRACE shows everything
    if level_name == "DEBUG":
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("web3").setLevel(logging.WARNING)
    elif level_name == "TRACE":
        # TRACE level (5) - show everything including web3/urllib3
        logging.getLogger("urllib3").setLevel(TRACE)
        logging.getLogger("web3").setLevel(TRACE)

