import logging
import os
from logging.handlers import RotatingFileHandler

from cwv_auditor.platform.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _log_file_path() -> str:
    log_dir = settings.LOG_DIR or os.path.join(os.getcwd(), "logs")
    os.makedirs(log_dir, exist_ok=True)
    return os.path.join(log_dir, "cwv_auditor.log")


def get_logger(name: str) -> logging.Logger:
    """
    Logger writing to the console and, unless disabled, to a rotating file
    under LOG_DIR. Handlers are attached once per logger name.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_TO_FILE:
        file_handler = RotatingFileHandler(_log_file_path(), maxBytes=10_000_000, backupCount=5)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # uvicorn configures the root logger too; keep records from printing twice
    logger.propagate = False
    return logger
