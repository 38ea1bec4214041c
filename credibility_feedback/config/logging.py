"""Loguru setup for pipeline components: console in a terminal, JSON lines otherwise."""

import sys
from loguru import logger

from credibility_feedback.config.settings import settings


def configure_logging() -> None:
    """
    Install the single loguru sink for the feedback pipeline.

    A terminal with FEEDBACK_LOG_FORMAT=console gets colorized lines tagged
    with the bound component. Anything else (services, CI, the CLI piped to
    a file) gets one JSON object per line on stdout. Local variables are
    never rendered in tracebacks, since they may hold decrypted free text.
    """
    logger.remove()
    logger.configure(extra={"component": "app"})

    if sys.stderr.isatty() and settings.log_format.lower() == "console":
        logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[component]}</cyan> | <level>{message}</level>",
            level=settings.log_level,
            colorize=True,
        )
    else:
        logger.add(
            sys.stdout,
            format="{message}",
            level=settings.log_level,
            serialize=True,
            diagnose=False,
        )


def get_logger(component: str):
    """
    Logger tagged with a pipeline component, e.g. ``get_logger("cli")``.

    Submitter ids must go through mask_submitter before they reach a message.
    """
    return logger.bind(component=component)


def mask_submitter(submitter_id: str) -> str:
    """Keep the first eight characters of a submitter id for log correlation."""
    return submitter_id[:8] + "***"


configure_logging()

__all__ = ["logger", "get_logger", "configure_logging", "mask_submitter"]
