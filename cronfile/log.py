from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "cronfile"
LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[Path] = None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    if logger.handlers:
        return logger
    formatter = logging.Formatter(LOG_FORMAT)
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    return logger
