"""
Configure logging for the API.

One console handler on the root logger so every module logger created with
logging.getLogger(__name__) shares the same format and level.
"""
import logging
import sys

from config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> logging.Logger:
    """
    Install the console handler and set the level from settings.log_level.
    Safe to call more than once; existing handlers are replaced.
    """
    root = logging.getLogger()
    level_name = (level or settings.log_level or "INFO").upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(console_handler)

    # SQL echo is controlled by settings.debug, keep the engine logger quiet otherwise
    if not settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    root.debug("Logging configured at %s", level_name)
    return root
