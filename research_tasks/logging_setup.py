# research_tasks/logging_setup.py
import logging
import sys

APP_LOGGER = "research_tasks"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach one stdout handler to the package logger.

    Uvicorn keeps its own handlers; we only configure ``research_tasks.*``.
    Safe to call more than once (tests build several apps).
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    logger = logging.getLogger(APP_LOGGER)
    logger.setLevel(numeric_level)
    for h in list(logger.handlers):
        logger.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    logger.propagate = False

    return logger
