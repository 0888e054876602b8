import logging

from marketplace.core.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s"


def setup_logging() -> None:
    """Configure the root logger from settings. Safe to call more than once."""
    level = get_settings().log_level
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)
