"""
EduConnect Logging Configuration - Color-Coded Logs

Provides:
- ColorFormatter: ANSI color-coded log output
- Helper functions: log_message_in, log_message_out, log_provider, log_store
- setup_logging(): Configure application logging

Usage:
    from logging_config import setup_logging, log_message_in, log_provider
    setup_logging()
    logger = logging.getLogger(__name__)
    log_message_in(logger, "User question", subject="math")
"""

import logging
import sys

# ANSI color codes
COLORS = {
    "RESET": "\033[0m",
    "BOLD": "\033[1m",
    "DIM": "\033[2m",
    # Event colors
    "MSG_IN": "\033[96m",  # Cyan - incoming message
    "MSG_OUT": "\033[92m",  # Green - outgoing response
    "PROVIDER": "\033[94m",  # Blue - provider calls
    "STORE": "\033[95m",  # Magenta - store events
    "ERROR": "\033[91m",  # Red - errors
    "WARN": "\033[33m",  # Orange/Yellow - warnings
    "DEBUG": "\033[90m",  # Gray - debug info
}


class ColorFormatter(logging.Formatter):
    """Custom formatter with colors for different log levels."""

    LEVEL_COLORS = {
        logging.DEBUG: COLORS["DEBUG"],
        logging.INFO: COLORS["RESET"],
        logging.WARNING: COLORS["WARN"],
        logging.ERROR: COLORS["ERROR"],
        logging.CRITICAL: COLORS["ERROR"] + COLORS["BOLD"],
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, COLORS["RESET"])

        # Format: timestamp [LEVEL] message
        timestamp = self.formatTime(record, "%H:%M:%S")
        level = record.levelname[:4]

        formatted = (
            f"{COLORS['DIM']}{timestamp}{COLORS['RESET']} "
            f"[{color}{level}{COLORS['RESET']}] "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure colored logging for the application."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColorFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# =============================================================================
# COLORED LOG HELPER FUNCTIONS
# =============================================================================


def log_message_in(logger: logging.Logger, message: str, **context) -> None:
    """Log incoming user message.

    Args:
        logger: Logger instance
        message: User message text
        **context: Additional context (user, subject, stream, etc.)
    """
    preview = message[:80] + "..." if len(message) > 80 else message
    ctx = " ".join(f"{k}={v}" for k, v in context.items())
    logger.info(f"{COLORS['MSG_IN']}>>> MESSAGE{COLORS['RESET']} {preview} [{ctx}]")


def log_message_out(logger: logging.Logger, source: str = "none", chars: int = 0) -> None:
    """Log outgoing answer with the provider that served it."""
    logger.info(f"{COLORS['MSG_OUT']}<<< RESPONSE{COLORS['RESET']} source={source} chars={chars}")


def log_provider(
    logger: logging.Logger,
    state: str,
    provider: str = "",
    duration: float = 0,
    error: str = "",
) -> None:
    """Log a provider call.

    Args:
        logger: Logger instance
        state: 'start', 'end' or 'fail'
        provider: Provider name
        duration: Call duration in seconds (for end/fail states)
        error: Error code (for fail state)
    """
    if state == "start":
        logger.info(f"{COLORS['PROVIDER']}>>> PROVIDER{COLORS['RESET']} calling {provider}")
    elif state == "end":
        logger.info(f"{COLORS['PROVIDER']}<<< PROVIDER{COLORS['RESET']} " f"{provider} completed in {duration:.1f}s")
    else:
        logger.warning(
            f"{COLORS['WARN']}xxx PROVIDER{COLORS['RESET']} " f"{provider} failed after {duration:.1f}s [{error}]"
        )


def log_store(logger: logging.Logger, tier: str, action: str, **context) -> None:
    """Log a conversation/post store event.

    Args:
        logger: Logger instance
        tier: 'remote' or 'local'
        action: What happened (append, history, fallback, ...)
        **context: Additional context (user, count, error, etc.)
    """
    ctx = " ".join(f"{k}={v}" for k, v in context.items()) if context else ""
    logger.debug(f"{COLORS['STORE']}--- STORE{COLORS['RESET']} {tier}:{action} {ctx}")
