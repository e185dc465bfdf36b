"""
Logging for the league API: one stdout stream and an optional file per run.
"""

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from mahjong_league.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_PREFIX = "mahjong-league"
LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
SQL_LOGGER_NAME = "sqlalchemy.engine"


def log_file_path(log_dir: Path | str) -> Path:
    timestamp = datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)
    return Path(log_dir) / f"{LOG_FILE_PREFIX}_{timestamp}.log"


def setup_logging(config: Settings) -> Path | None:
    """
    Configure the root logger from the service settings.

    ``log_level`` applies to the root logger, ``sql_log_level`` to SQLAlchemy's
    engine logger. With ``log_dir`` set, a file such as
    logs/mahjong-league_2026-01-31_14-30-00.log is added and its path returned.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(config.log_level.upper())
    # repeated startups in one process must not stack handlers
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    logging.getLogger(SQL_LOGGER_NAME).setLevel(config.sql_log_level.upper())

    if config.log_dir is None:
        return None

    file_path = log_file_path(config.log_dir)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(file_path)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    return file_path
