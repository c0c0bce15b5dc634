import logging

LOGGER_NAME = "musync"


def configure_logging(level: str | int = logging.INFO) -> logging.Logger:
    """Make module loggers under ``musync`` emit at ``level``.

    Python's root logger defaults to WARNING, which would silence the sync
    diagnostics. A stream handler is attached only when the host application
    has not configured logging itself.
    """
    if not logging.getLogger().handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return logger
