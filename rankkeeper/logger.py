"""
rankkeeper/logger.py
Shared application logger: rotating debug file plus console output.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from rankkeeper.constants import (
    DATA_FOLDER_DEFAULT,
    LOG_FILE_NAME,
    LOG_FILE_MAX_BYTES,
    LOG_FILE_BACKUP_COUNT,
    LOGGER_NAME,
)

LOG_FORMAT = "<%(asctime)s> %(levelname)s - %(module)s.%(funcName)s - %(message)s"


def create_logger(log_folder: str = DATA_FOLDER_DEFAULT) -> logging.Logger:
    """Return the shared logger, attaching handlers the first time it is requested"""
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.WARNING)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    try:
        if not os.path.exists(log_folder):
            os.makedirs(log_folder)
        file_handler = RotatingFileHandler(
            os.path.join(log_folder, LOG_FILE_NAME),
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as error:
        logger.warning(f"Debug log file unavailable: {error}")

    return logger
